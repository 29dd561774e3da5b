"""
Tests for caller deadlines and cancellation

A fake clock drives expiry so nothing here sleeps.
"""

import pytest

from event_ledger.backends import InMemoryBackend
from event_ledger.kernel.deadline import Deadline, check_deadline, remaining_or
from event_ledger.kernel.errors import BackendError, DeadlineExceeded
from event_ledger.store import EventStore
from tests.helpers import FailingBackend, make_batch, make_event


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_deadline_without_timeout_never_expires() -> None:
    deadline = Deadline()

    assert deadline.remaining() is None
    assert deadline.expired is False
    deadline.check("query")


def test_deadline_expires_with_clock() -> None:
    clock = FakeClock()
    deadline = Deadline(timeout=2.0, clock=clock)

    assert deadline.remaining() == 2.0
    clock.now += 1.5
    assert deadline.remaining() == 0.5
    clock.now += 1.0

    assert deadline.expired is True
    assert deadline.remaining() == 0.0
    with pytest.raises(DeadlineExceeded) as exc_info:
        deadline.check("increment")
    assert exc_info.value.operation == "increment"
    assert exc_info.value.cancelled is False


def test_cancel() -> None:
    deadline = Deadline.after(60)

    deadline.cancel()

    assert deadline.cancelled is True
    with pytest.raises(DeadlineExceeded) as exc_info:
        deadline.check("query")
    assert exc_info.value.cancelled is True


def test_deadline_exceeded_is_a_backend_error() -> None:
    assert issubclass(DeadlineExceeded, BackendError)
    assert DeadlineExceeded("query").code == "DeadlineExceeded"


def test_helpers_accept_none() -> None:
    check_deadline(None, "query")
    assert remaining_or(None, 5.0) == 5.0
    assert remaining_or(Deadline(), 5.0) == 5.0


def test_remaining_or_caps_at_deadline() -> None:
    clock = FakeClock()
    deadline = Deadline(timeout=1.0, clock=clock)

    assert remaining_or(deadline, 5.0) == 1.0
    assert remaining_or(deadline, 0.5) == 0.5


def test_save_with_cancelled_deadline_makes_no_request() -> None:
    backend = FailingBackend()
    store = EventStore(backend)
    deadline = Deadline()
    deadline.cancel()

    with pytest.raises(DeadlineExceeded):
        store.save([make_event("A1", 1)], deadline=deadline)

    assert backend.calls == []


def test_deadline_expiring_mid_save_stops_before_commit() -> None:
    """Expiry between allocations stops the save; no event is written"""
    clock = FakeClock()
    deadline = Deadline(timeout=1.0, clock=clock)

    class SlowIncrementBackend(InMemoryBackend):
        def increment(self, key, attribute, *, deadline=None):
            value = super().increment(key, attribute, deadline=deadline)
            clock.now += 0.6
            return value

    store = EventStore(SlowIncrementBackend())
    batch = make_batch("A1", 1, 3)

    with pytest.raises(DeadlineExceeded):
        store.save(batch, deadline=deadline)

    assert store.last_version("A1") == 0
    assert [e.global_version for e in batch] == [0, 0, 0]


def test_get_with_expired_deadline() -> None:
    clock = FakeClock()
    deadline = Deadline(timeout=0.0, clock=clock)
    store = EventStore(InMemoryBackend())

    with pytest.raises(DeadlineExceeded):
        store.get("A1", "order", deadline=deadline)


def test_deadline_applies_to_later_pages() -> None:
    """Cancelling mid-read stops the next page fetch"""
    store = EventStore(InMemoryBackend(), page_size=2)
    store.save(make_batch("A1", 1, 5))
    deadline = Deadline()

    it = store.get("A1", "order", deadline=deadline)
    assert it.next() and it.next()
    deadline.cancel()

    with pytest.raises(DeadlineExceeded):
        it.next()
