"""
Caller-owned deadlines for store operations

Every public store operation accepts an optional Deadline. It is checked
before each outbound request (allocator round trips, version lookups,
transaction commits, page fetches), so a cancelled or expired deadline stops
a save between requests instead of only at the top-level call.

A deadline can expire on its own (timeout) or be cancelled explicitly from
another thread, e.g. when the request that triggered the save goes away.
"""

import threading
import time
from collections.abc import Callable

from event_ledger.kernel.errors import DeadlineExceeded


class Deadline:
    """
    Absolute deadline plus a cancellation flag

    Args:
        timeout: Seconds from now until expiry, or None for no time limit
        clock: Monotonic clock (injectable for tests)
    """

    def __init__(
        self,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._expires_at = None if timeout is None else clock() + timeout
        self._cancelled = threading.Event()

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        """Deadline that expires ``seconds`` from now"""
        return cls(timeout=seconds)

    def cancel(self) -> None:
        """Cancel the deadline; the next check raises DeadlineExceeded"""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and self._clock() >= self._expires_at

    def remaining(self) -> float | None:
        """Seconds left, 0.0 once expired, None when there is no time limit"""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    def check(self, operation: str) -> None:
        """
        Raise if the deadline can no longer be honoured

        Raises:
            DeadlineExceeded: If cancelled or expired
        """
        if self.cancelled:
            raise DeadlineExceeded(operation, cancelled=True)
        if self.expired:
            raise DeadlineExceeded(operation)


def check_deadline(deadline: Deadline | None, operation: str) -> None:
    """Check an optional deadline"""
    if deadline is not None:
        deadline.check(operation)


def remaining_or(deadline: Deadline | None, default: float) -> float:
    """Remaining seconds of an optional deadline, capped by ``default``"""
    if deadline is None:
        return default
    remaining = deadline.remaining()
    if remaining is None:
        return default
    return min(default, remaining)
