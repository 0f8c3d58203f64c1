from __future__ import annotations

from concurrent.futures import Executor, Future
from datetime import date

import pytest


def _run(future: Future, fn, args, kwargs) -> None:
    try:
        future.set_result(fn(*args, **kwargs))
    except Exception as e:
        future.set_exception(e)


class ImmediateExecutor(Executor):
    """Runs each task inline so fan-out fetches finish before ``submit`` returns."""

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        _run(future, fn, args, kwargs)
        return future


class DeferredExecutor(Executor):
    """Holds tasks until the test runs them, to control completion order."""

    def __init__(self):
        self.tasks: list = []

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        self.tasks.append((future, fn, args, kwargs))
        return future

    def take(self) -> list:
        """Detach the queued tasks so later submissions are tracked separately."""
        taken, self.tasks = self.tasks, []
        return taken

    @staticmethod
    def run(tasks) -> None:
        for future, fn, args, kwargs in tasks:
            _run(future, fn, args, kwargs)


@pytest.fixture
def fixed_today() -> date:
    return date(2026, 10, 19)


@pytest.fixture
def immediate_executor() -> ImmediateExecutor:
    return ImmediateExecutor()


@pytest.fixture
def deferred_executor() -> DeferredExecutor:
    return DeferredExecutor()
