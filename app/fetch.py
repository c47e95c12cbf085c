"""
Upstream fetch primitives.

Every outbound call goes through fetch_with_retry: one timeout per
attempt, exponential backoff between attempts, and a typed FetchError
once retries are exhausted so callers can decide whether to fall back
to another source.
"""
import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar
from concurrent.futures import ThreadPoolExecutor, as_completed

import requests
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.cache import (
    CacheManager,
    CoalescedWaitTimeout,
    DataCategory,
    get_cache_manager,
    get_category_for_url,
)
from config.settings import settings

logger = logging.getLogger("fetch")

T = TypeVar("T")
R = TypeVar("R")

# Caps concurrent upstream calls across every fan-out running in the process
_api_semaphore = threading.BoundedSemaphore(settings.max_concurrent_requests)


class FailureKind(Enum):
    """Why an upstream call failed."""
    HTTP_STATUS = "http_status"
    TIMEOUT = "timeout"
    NETWORK = "network"
    INVALID_PAYLOAD = "invalid_payload"


class FetchError(Exception):
    """An upstream call that failed after all retries."""

    def __init__(
        self,
        kind: FailureKind,
        url: str,
        status_code: Optional[int] = None,
        message: str = "",
    ):
        self.kind = kind
        self.url = url
        self.status_code = status_code
        self.message = message
        super().__init__(str(self))

    @property
    def retryable(self) -> bool:
        """Timeouts, network errors, 429 and 5xx are transient."""
        if self.kind in (FailureKind.TIMEOUT, FailureKind.NETWORK):
            return True
        if self.kind == FailureKind.HTTP_STATUS:
            return self.status_code is None or self.status_code == 429 or self.status_code >= 500
        return False

    @property
    def is_not_found(self) -> bool:
        return self.kind == FailureKind.HTTP_STATUS and self.status_code == 404

    def __str__(self) -> str:
        if self.kind == FailureKind.HTTP_STATUS:
            return f"HTTP {self.status_code} from {self.url}"
        if self.kind == FailureKind.TIMEOUT:
            return f"timeout fetching {self.url}"
        if self.kind == FailureKind.INVALID_PAYLOAD:
            return f"invalid payload from {self.url}: {self.message}"
        return f"network error fetching {self.url}: {self.message}"


def _default_headers() -> Dict[str, str]:
    return {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }


def _backoff_sleep(seconds: float) -> None:
    time.sleep(seconds)


def fetch_budget_seconds(
    timeout: Optional[float] = None,
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    max_delay: Optional[float] = None,
) -> float:
    """
    Longest a fetch_with_retry call with these arguments should take:
    every attempt running to its timeout plus every backoff wait.
    """
    timeout = settings.request_timeout_seconds if timeout is None else timeout
    max_retries = settings.max_retries if max_retries is None else max_retries
    base_delay = settings.retry_base_delay_seconds if base_delay is None else base_delay
    max_delay = settings.retry_max_delay_seconds if max_delay is None else max_delay

    backoff = sum(min(base_delay * 2 ** n, max_delay) for n in range(max_retries))
    return timeout * (max_retries + 1) + backoff


def fetch_with_retry(
    url: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    max_delay: Optional[float] = None,
    on_retry: Optional[Callable[[FetchError], None]] = None,
) -> requests.Response:
    """
    GET a URL with a per-attempt timeout and exponential backoff.

    Args:
        url: Absolute upstream URL
        params: Query parameters
        headers: Extra headers merged over the defaults
        timeout: Seconds allowed per attempt
        max_retries: Retries after the first attempt (0 = single attempt)
        base_delay: Backoff base; the wait before retry n is base * 2^(n-1), capped
        max_delay: Backoff cap in seconds
        on_retry: Called with the failure before each retry sleep

    Returns:
        The successful (2xx) response

    Raises:
        FetchError: after the last attempt, or immediately for non-transient failures
    """
    timeout = settings.request_timeout_seconds if timeout is None else timeout
    max_retries = settings.max_retries if max_retries is None else max_retries
    base_delay = settings.retry_base_delay_seconds if base_delay is None else base_delay
    max_delay = settings.retry_max_delay_seconds if max_delay is None else max_delay

    request_headers = _default_headers()
    if headers:
        request_headers.update(headers)

    def attempt() -> requests.Response:
        try:
            with _api_semaphore:
                response = requests.get(
                    url,
                    params=params,
                    headers=request_headers,
                    timeout=timeout,
                )
        except requests.Timeout as e:
            raise FetchError(FailureKind.TIMEOUT, url, message=str(e)) from e
        except requests.RequestException as e:
            raise FetchError(FailureKind.NETWORK, url, message=str(e)) from e

        if not response.ok:
            raise FetchError(FailureKind.HTTP_STATUS, url, status_code=response.status_code)
        return response

    def before_sleep(retry_state) -> None:
        error = retry_state.outcome.exception()
        logger.debug(
            f"Retrying {url} (attempt {retry_state.attempt_number}/{max_retries + 1}): {error}"
        )
        if on_retry is not None:
            on_retry(error)

    retryer = Retrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=base_delay, max=max_delay),
        retry=retry_if_exception(
            lambda e: isinstance(e, FetchError) and e.retryable
        ),
        before_sleep=before_sleep,
        sleep=_backoff_sleep,
        reraise=True,
    )
    return retryer(attempt)


def fetch_json(url: str, **kwargs) -> Any:
    """fetch_with_retry and decode the JSON body."""
    response = fetch_with_retry(url, **kwargs)
    try:
        return response.json()
    except ValueError as e:
        raise FetchError(FailureKind.INVALID_PAYLOAD, url, message=str(e)) from e


def _cache_key(url: str, params: Optional[Dict[str, Any]]) -> str:
    if not params:
        return url
    sorted_params = sorted((k, v) for k, v in params.items() if v is not None)
    return f"{url}:{sorted_params}"


class SourceClient:
    """
    JSON client used by every aggregator: cache read-through in front of
    fetch_with_retry.

    Aggregators take a client argument so tests can inject a fake one.
    """

    def __init__(self, cache: Optional[CacheManager] = None):
        self.cache = cache if cache is not None else get_cache_manager()

    def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        category: Optional[DataCategory] = None,
        headers: Optional[Dict[str, str]] = None,
        on_retry: Optional[Callable[[FetchError], None]] = None,
        force_refresh: bool = False,
    ) -> Any:
        """
        Fetch and decode JSON, served from cache while fresh.

        A caller that joins an identical in-flight request waits at most
        this call's own fetch budget plus coalesce_wait_margin_seconds.

        Raises:
            FetchError: when the upstream call fails after retries, or the
                in-flight request it joined outlasts the wait budget
        """
        def fetch():
            return fetch_json(
                url,
                params=params,
                headers=headers,
                timeout=timeout,
                max_retries=max_retries,
                on_retry=on_retry,
            )

        wait_budget = (
            fetch_budget_seconds(timeout, max_retries)
            + settings.coalesce_wait_margin_seconds
        )
        try:
            data, _ = self.cache.get(
                cache_key=_cache_key(url, params),
                fetch_fn=fetch,
                category=category or get_category_for_url(url),
                force_refresh=force_refresh,
                wait_timeout=wait_budget,
            )
        except CoalescedWaitTimeout as e:
            raise FetchError(FailureKind.TIMEOUT, url, message=str(e)) from e
        return data


_source_client: Optional[SourceClient] = None


def get_source_client() -> SourceClient:
    """Get or create the process-wide source client."""
    global _source_client
    if _source_client is None:
        _source_client = SourceClient()
    return _source_client


def fetch_all(
    fn: Callable[[T], R],
    items: Sequence[T],
    max_workers: Optional[int] = None,
) -> List[Optional[R]]:
    """
    Run fn over items concurrently and wait for all of them.

    Results come back in input order. An item whose call raises yields
    None instead of failing the batch.
    """
    if not items:
        return []

    workers = min(len(items), max_workers or settings.max_concurrent_requests)
    results: List[Optional[R]] = [None] * len(items)

    with ThreadPoolExecutor(max_workers=workers) as executor:
        future_to_index = {
            executor.submit(fn, item): index
            for index, item in enumerate(items)
        }
        for future in as_completed(future_to_index):
            index = future_to_index[future]
            try:
                results[index] = future.result()
            except Exception as e:
                logger.warning(f"Fan-out call failed for {items[index]!r}: {e}")

    return results
