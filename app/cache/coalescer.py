"""
Request coalescing for upstream calls.

Concurrent fan-outs (thirty roster fetches for search while a roster
crawl is running) frequently ask for the same URL. Only the first caller
goes upstream; the rest wait for its result, each for at most its own
wait budget.
"""
import threading
import time
import logging
from typing import Dict, Optional, Callable, Any
from dataclasses import dataclass, field

logger = logging.getLogger("cache.coalescer")


class CoalescedWaitTimeout(TimeoutError):
    """A waiter gave up on another caller's in-flight request."""

    def __init__(self, cache_key: str, waited: float):
        self.cache_key = cache_key
        self.waited = waited
        super().__init__(f"Request for {cache_key} still in flight after {waited:.2f}s")


@dataclass
class InFlightRequest:
    """An upstream call in progress."""
    event: threading.Event = field(default_factory=threading.Event)
    result: Optional[Any] = None
    error: Optional[Exception] = None
    started_at: float = field(default_factory=time.monotonic)
    waiter_count: int = 0

    @property
    def age_seconds(self) -> float:
        return time.monotonic() - self.started_at


class RequestCoalescer:
    """
    Shares one upstream call among concurrent callers for the same key.

    The initiator runs fetch_fn; waiters block on an Event and receive the
    same result, or the same exception. A waiter that runs out of budget
    raises CoalescedWaitTimeout while the initiator carries on.
    """

    def __init__(self, timeout: float = 30.0):
        self._in_flight: Dict[str, InFlightRequest] = {}
        self._lock = threading.Lock()
        self._timeout = timeout

    def get_or_fetch(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Any],
        wait_timeout: Optional[float] = None,
    ) -> Any:
        """
        Join an in-flight request for cache_key or start one.

        Args:
            cache_key: Key shared by identical upstream calls
            fetch_fn: Performs the upstream call when this caller initiates
            wait_timeout: Seconds a waiter blocks; defaults to the coalescer timeout

        Raises:
            CoalescedWaitTimeout: the in-flight request outlasted wait_timeout
            Exception: whatever fetch_fn raised
        """
        with self._lock:
            in_flight = self._in_flight.get(cache_key)
            if in_flight is not None:
                in_flight.waiter_count += 1
                is_initiator = False
                logger.debug(
                    f"Coalescing {cache_key} (waiters: {in_flight.waiter_count})"
                )
            else:
                in_flight = InFlightRequest()
                self._in_flight[cache_key] = in_flight
                is_initiator = True

        if is_initiator:
            try:
                in_flight.result = fetch_fn()
            except Exception as e:
                in_flight.error = e
            finally:
                with self._lock:
                    self._in_flight.pop(cache_key, None)
                in_flight.event.set()

            if in_flight.error is not None:
                raise in_flight.error
            return in_flight.result

        budget = self._timeout if wait_timeout is None else wait_timeout
        if not in_flight.event.wait(timeout=budget):
            logger.warning(
                f"Gave up waiting on {cache_key} after {budget:.2f}s "
                f"(in flight {in_flight.age_seconds:.2f}s)"
            )
            raise CoalescedWaitTimeout(cache_key, budget)

        if in_flight.error is not None:
            raise in_flight.error
        return in_flight.result

    @property
    def active_requests(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "active_requests": len(self._in_flight),
                "active_keys": {
                    key: round(req.age_seconds, 2) for key, req in self._in_flight.items()
                },
            }
