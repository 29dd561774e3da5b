"""
Forward-only cursor over query results

Records are decoded on demand in value(), not when the page arrives. When the
current page runs out and the backend reported a continuation key, the next
page is fetched lazily, so a caller walking the iterator sees the aggregate's
whole history regardless of the page size.
"""

from collections.abc import Callable, Iterator
from typing import Any

from event_ledger.kernel.backend import QueryPage, RecordKey
from event_ledger.kernel.codec import decode_event
from event_ledger.kernel.errors import IteratorOutOfBounds
from event_ledger.kernel.events import Event
from event_ledger.kernel.metrics import events_loaded_total

PageFetcher = Callable[[RecordKey], QueryPage]


class ResultIterator:
    """
    Lazy cursor: not started -> positioned -> exhausted

    Usage:
        with store.get("order-42", "order", 0) as it:
            while it.next():
                event = it.value()

    Args:
        page: First page of results
        fetch_page: Loads the page that starts after the given key; None
            disables continuation
    """

    def __init__(self, page: QueryPage, fetch_page: PageFetcher | None = None) -> None:
        self._records = list(page.records)
        self._last_key = page.last_key
        self._fetch_page = fetch_page
        self._index = -1
        self._exhausted = False
        self._closed = False

    def next(self) -> bool:
        """Advance to the next record; False once there are no more"""
        if self._exhausted or self._closed:
            return False

        self._index += 1
        while self._index >= len(self._records):
            if self._last_key is None or self._fetch_page is None:
                self._exhausted = True
                return False
            page = self._fetch_page(self._last_key)
            self._records = list(page.records)
            self._last_key = page.last_key
            self._index = 0
        return True

    def value(self) -> Event:
        """
        Decode the record at the current position

        Raises:
            IteratorOutOfBounds: Before the first next(), after exhaustion or after close()
            SerializationError: If the stored record cannot be decoded
        """
        if self._closed or self._exhausted or not 0 <= self._index < len(self._records):
            raise IteratorOutOfBounds(self._index, len(self._records))
        event = decode_event(self._records[self._index])
        events_loaded_total.labels(aggregate_type=event.aggregate_type).inc()
        return event

    def close(self) -> None:
        """Release loaded records and stop further page fetches; idempotent"""
        self._closed = True
        self._records = []
        self._last_key = None
        self._fetch_page = None

    def __iter__(self) -> Iterator[Event]:
        while self.next():
            yield self.value()

    def __enter__(self) -> "ResultIterator":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
