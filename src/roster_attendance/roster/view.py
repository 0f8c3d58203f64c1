from __future__ import annotations

import math
from typing import Callable, Generic, List, Sequence, TypeVar

from ..core.constants import DEFAULT_CLASS_PAGE_SIZE, DEFAULT_ROSTER_PAGE_SIZE
from ..core.enums import SortField, SortOrder
from .model import Registration, StudentClass

T = TypeVar("T")


class _PagedView(Generic[T]):
    """Filter + order + page window over an immutable item list.

    Subclasses provide ``_matches`` and ``_ordered``; the page is always kept
    inside ``[1, total_pages]``.
    """

    def __init__(self, items: Sequence[T], *, page_size: int):
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self._all: List[T] = list(items)
        self._page_size = int(page_size)
        self._query = ""
        self._current_page = 1
        self._filtered: List[T] = []

    def _matches(self, item: T, query: str) -> bool:
        raise NotImplementedError

    def _ordered(self, items: List[T]) -> List[T]:
        return items

    def _refresh(self) -> None:
        query = self._query
        items = [i for i in self._all if self._matches(i, query)] if query else list(self._all)
        self._filtered = self._ordered(items)
        self._current_page = 1

    def set_filter(self, query: str) -> None:
        self._query = (query or "").strip().lower()
        self._refresh()

    @property
    def query(self) -> str:
        return self._query

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def total_count(self) -> int:
        return len(self._filtered)

    @property
    def total_pages(self) -> int:
        return math.ceil(len(self._filtered) / self._page_size)

    @property
    def current_page(self) -> int:
        return self._current_page

    def page(self, n: int) -> List[T]:
        self._current_page = min(max(1, int(n)), max(1, self.total_pages))
        return self.items

    def next_page(self) -> List[T]:
        return self.page(self._current_page + 1)

    def previous_page(self) -> List[T]:
        return self.page(self._current_page - 1)

    @property
    def items(self) -> List[T]:
        start = (self._current_page - 1) * self._page_size
        return self._filtered[start : start + self._page_size]

    @property
    def filtered(self) -> List[T]:
        return list(self._filtered)


def _name_key(r: Registration) -> str:
    return f"{r.first_name} {r.last_name}".lower()


def _status_key(r: Registration) -> str:
    return (r.status or "").lower()


def _id_key(r: Registration) -> int:
    return int(r.id)


_SORT_KEYS: dict[SortField, Callable[[Registration], object]] = {
    SortField.NAME: _name_key,
    SortField.STATUS: _status_key,
    SortField.ID: _id_key,
}


class RosterView(_PagedView[Registration]):
    """Searchable, sortable, paged roster of one class.

    Search matches first name, last name and enrollment status. Sorting is
    stable: equal keys keep the roster's original order in both directions.
    """

    def __init__(self, registrations: Sequence[Registration], *, page_size: int = DEFAULT_ROSTER_PAGE_SIZE):
        super().__init__(registrations, page_size=page_size)
        self._sort_field = SortField.NAME
        self._sort_order = SortOrder.ASC
        self._refresh()

    def _matches(self, item: Registration, query: str) -> bool:
        return (
            query in item.first_name.lower()
            or query in item.last_name.lower()
            or query in (item.status or "").lower()
        )

    def _ordered(self, items: List[Registration]) -> List[Registration]:
        # list.sort is stable, including with reverse=True
        return sorted(items, key=_SORT_KEYS[self._sort_field], reverse=self._sort_order is SortOrder.DESC)

    @property
    def sort_field(self) -> SortField:
        return self._sort_field

    @property
    def sort_order(self) -> SortOrder:
        return self._sort_order

    def set_sort(self, field: SortField | str, order: SortOrder | str = SortOrder.ASC) -> None:
        self._sort_field = SortField(field)
        self._sort_order = SortOrder(order)
        self._refresh()

    def toggle_sort(self, field: SortField | str) -> None:
        """Header-click behaviour: same field flips the order, a new field sorts ascending."""
        field = SortField(field)
        if field is self._sort_field:
            self.set_sort(field, self._sort_order.flipped())
        else:
            self.set_sort(field, SortOrder.ASC)

    @property
    def registrations(self) -> List[Registration]:
        return list(self._all)

    def filtered_ids(self) -> List[int]:
        return [r.id for r in self._filtered]


class ClassListView(_PagedView[StudentClass]):
    """Class overview: search by class or course name, fixed small pages."""

    def __init__(self, classes: Sequence[StudentClass], *, page_size: int = DEFAULT_CLASS_PAGE_SIZE):
        super().__init__(classes, page_size=page_size)
        self._refresh()

    def _matches(self, item: StudentClass, query: str) -> bool:
        return query in item.name.lower() or query in item.course_name.lower()
