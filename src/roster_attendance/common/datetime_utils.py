from __future__ import annotations

from datetime import date, datetime, timedelta


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_api_date(value: str) -> date:
    """Parse a service date, dropping any time component (``2026-10-19T00:00:00Z``)."""
    return parse_iso_date(value.split("T", 1)[0].strip())


def format_iso_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def format_date_display(value: date) -> str:
    """Long form used in headings, e.g. ``Monday, October 19, 2026``."""
    return f"{value.strftime('%A')}, {value.strftime('%B')} {value.day}, {value.year}"


def shift_days(value: date, days: int) -> date:
    return value + timedelta(days=days)


def today_local() -> date:
    """Current local date.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now().date()
