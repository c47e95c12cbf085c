"""
Shared fixtures: a fake source client serving canned upstream payloads.
"""
import copy
import threading
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

import pytest

from app.fetch import FailureKind, FetchError


class WithRetries:
    """A route response that reports some retries before succeeding."""

    def __init__(self, payload: Any, retries: int):
        self.payload = payload
        self.retries = retries


class FakeSourceClient:
    """
    Stand-in for SourceClient.

    Routes map a URL fragment to a payload, an exception to raise, a
    callable(url, params) or a WithRetries. The longest matching fragment
    wins; unmatched URLs raise a 404 FetchError.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes: Dict[str, Any] = dict(routes or {})
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def add(self, fragment: str, response: Any) -> "FakeSourceClient":
        self.routes[fragment] = response
        return self

    def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        on_retry: Optional[Callable[[FetchError], None]] = None,
        **kwargs,
    ) -> Any:
        full_url = f"{url}?{urlencode(sorted(params.items()))}" if params else url
        with self._lock:
            self.calls.append(full_url)

        for fragment in sorted(self.routes, key=len, reverse=True):
            if fragment not in full_url:
                continue
            response = self.routes[fragment]
            if isinstance(response, Exception):
                raise response
            if isinstance(response, WithRetries):
                for _ in range(response.retries):
                    if on_retry is not None:
                        on_retry(FetchError(FailureKind.TIMEOUT, url))
                return copy.deepcopy(response.payload)
            if callable(response):
                return response(url, params)
            return copy.deepcopy(response)

        raise FetchError(FailureKind.HTTP_STATUS, url, status_code=404)

    def calls_matching(self, fragment: str) -> List[str]:
        return [c for c in self.calls if fragment in c]


def http_error(status_code: int = 503, url: str = "https://example.test") -> FetchError:
    return FetchError(FailureKind.HTTP_STATUS, url, status_code=status_code)


@pytest.fixture
def fake_client():
    return FakeSourceClient()


@pytest.fixture(autouse=True)
def no_batch_delay(monkeypatch):
    """Keep roster batching instant in tests."""
    from config.settings import settings
    monkeypatch.setattr(settings, "roster_batch_delay_seconds", 0.0)
