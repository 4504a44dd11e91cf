"""
Incremental list session for one list view.
"""

import threading
from dataclasses import replace
from datetime import date
from typing import Any, Callable, List, Optional, Tuple

from ..core.enums import EntityType
from .query_engine import DEFAULT_PAGE_SIZE, QueryEngine, QueryRequest, QueryResult, collection_query


class ListSession:
    """Holds search, filter, sort and page for one list.

    Changing the search text, filter or sort returns to page 1. ``load_more``
    grows the cumulative window by one page. Results are recomputed whenever
    the store revision, the calendar day or the request changes.
    """

    def __init__(self, engine: QueryEngine, entity_type: EntityType,
                 page_size: int = DEFAULT_PAGE_SIZE, professor_id: Optional[str] = None,
                 course_id: Optional[str] = None):
        vocab = collection_query(entity_type)
        self.engine = engine
        self.entity_type = entity_type
        self._request = QueryRequest(
            filter=vocab.filter_enum("all").value,
            sort=vocab.default_sort.value,
            page_size=page_size,
            professor_id=professor_id,
            course_id=course_id,
        )
        self._cached: Optional[Tuple[Tuple[int, date, QueryRequest], QueryResult]] = None
        self._reset_listeners: List[Callable[[], None]] = []
        self._lock = threading.RLock()

    @property
    def request(self) -> QueryRequest:
        return self._request

    @property
    def page(self) -> int:
        return self._request.page

    def add_reset_listener(self, callback: Callable[[], None]) -> None:
        """Register a callback run on ``refresh``."""
        self._reset_listeners.append(callback)

    def _update(self, **changes: Any) -> QueryResult:
        with self._lock:
            self._request = replace(self._request, **changes)
            return self.result()

    def set_search(self, text: str) -> QueryResult:
        return self._update(search=text or "", page=1)

    def set_filter(self, filter_name: Any) -> QueryResult:
        vocab = collection_query(self.entity_type)
        return self._update(filter=vocab.filter_enum(filter_name).value, page=1)

    def set_sort(self, sort_name: Any) -> QueryResult:
        vocab = collection_query(self.entity_type)
        return self._update(sort=vocab.sort_enum(sort_name).value, page=1)

    def load_more(self) -> QueryResult:
        """Extend the window by one page when more rows exist."""
        with self._lock:
            current = self.result()
            if not current.has_more:
                return current
            return self._update(page=self._request.page + 1)

    def refresh(self) -> QueryResult:
        """Back to page 1 and drop any selection."""
        with self._lock:
            self._cached = None
            for callback in self._reset_listeners:
                callback()
            return self._update(page=1)

    def result(self) -> QueryResult:
        with self._lock:
            # Rows depend on the calendar day as well as the data.
            key = (self.engine.store.revision, self.engine.clock().date(), self._request)
            if self._cached and self._cached[0] == key:
                return self._cached[1]
            result = self.engine.query(self.entity_type, self._request)
            self._cached = (key, result)
            return result

    def displayed_ids(self) -> List[str]:
        return self.result().ids
