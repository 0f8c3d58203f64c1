from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

import requests

from .api.connection import ApiConfig, ApiConnection
from .attendance.http_attendance_repository import HttpAttendanceRepository
from .attendance.registry import SessionRegistry
from .attendance.service import AttendanceService, ClassSession
from .core.constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_API_TIMEOUT,
    DEFAULT_CLASS_PAGE_SIZE,
    DEFAULT_FETCH_WORKERS,
    DEFAULT_ROSTER_PAGE_SIZE,
    DEFAULT_SAVE_SUCCESS_SECONDS,
    DEFAULT_SESSION_IDLE_SECONDS,
)
from .roster.http_roster_repository import HttpRosterRepository
from .roster.service import RosterService


@dataclass(frozen=True)
class Container:
    api_config: ApiConfig
    executor: Executor
    registry: SessionRegistry
    http: requests.Session

    roster_page_size: int = DEFAULT_ROSTER_PAGE_SIZE
    class_page_size: int = DEFAULT_CLASS_PAGE_SIZE
    save_success_seconds: float = DEFAULT_SAVE_SUCCESS_SECONDS

    def connection(self, access_token: str) -> ApiConnection:
        return ApiConnection(self.api_config, access_token, session=self.http)

    def roster_service(self, access_token: str) -> RosterService:
        repo = HttpRosterRepository(self.connection(access_token))
        return RosterService(
            repo,
            repo,
            roster_page_size=self.roster_page_size,
            class_page_size=self.class_page_size,
        )

    def attendance_service(self, access_token: str) -> AttendanceService:
        return AttendanceService(
            HttpAttendanceRepository(self.connection(access_token)),
            executor=self.executor,
            save_success_seconds=self.save_success_seconds,
        )

    def class_session(self, access_token: str, class_id: int) -> ClassSession:
        """Roster + edit session for the operator, opened (and loaded) on first use."""

        def _open() -> ClassSession:
            roster = self.roster_service(access_token).load_roster(class_id)
            return self.attendance_service(access_token).open_session(class_id, roster)

        return self.registry.get_or_open(access_token, class_id, _open)


def build_container(*, settings: dict, executor: Optional[Executor] = None, http: Optional[requests.Session] = None) -> Container:
    api_config = ApiConfig(
        base_url=str(settings.get("API_BASE_URL") or DEFAULT_API_BASE_URL),
        timeout=float(settings.get("API_TIMEOUT", DEFAULT_API_TIMEOUT)),
    )
    workers = int(settings.get("FETCH_WORKERS", DEFAULT_FETCH_WORKERS))
    idle_seconds = float(settings.get("SESSION_IDLE_SECONDS", DEFAULT_SESSION_IDLE_SECONDS))

    return Container(
        api_config=api_config,
        executor=executor or ThreadPoolExecutor(max_workers=workers, thread_name_prefix="attendance-fetch"),
        registry=SessionRegistry(idle_seconds=idle_seconds),
        http=http or requests.Session(),
        roster_page_size=int(settings.get("ROSTER_PAGE_SIZE", DEFAULT_ROSTER_PAGE_SIZE)),
        class_page_size=int(settings.get("CLASS_PAGE_SIZE", DEFAULT_CLASS_PAGE_SIZE)),
        save_success_seconds=float(settings.get("SAVE_SUCCESS_SECONDS", DEFAULT_SAVE_SUCCESS_SECONDS)),
    )
