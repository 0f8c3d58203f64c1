from __future__ import annotations

from roster_attendance.attendance.registry import SessionRegistry


def test_session_is_opened_once_per_operator_and_class():
    registry = SessionRegistry()
    opened = []

    def opener():
        opened.append(object())
        return opened[-1]

    first = registry.get_or_open("tok-a", 1, opener)
    again = registry.get_or_open("tok-a", 1, opener)
    other_class = registry.get_or_open("tok-a", 2, opener)
    other_operator = registry.get_or_open("tok-b", 1, opener)

    assert first is again
    assert len({id(first), id(other_class), id(other_operator)}) == 3
    assert len(registry) == 3


def test_close_forgets_session():
    registry = SessionRegistry()
    registry.get_or_open("tok-a", 1, object)

    assert registry.close("tok-a", 1) is True
    assert registry.get("tok-a", 1) is None
    assert registry.close("tok-a", 1) is False


def test_idle_sessions_are_dropped_and_reopened():
    now = [0.0]
    registry = SessionRegistry(idle_seconds=60, clock=lambda: now[0])
    first = registry.get_or_open("tok-a", 1, object)
    registry.get_or_open("tok-b", 1, object)

    now[0] = 50.0
    assert registry.get("tok-a", 1) is first

    now[0] = 80.0
    assert registry.get("tok-b", 1) is None
    assert registry.get("tok-a", 1) is first

    now[0] = 140.0
    reopened = registry.get_or_open("tok-a", 1, object)

    assert reopened is not first
    assert len(registry) == 1
