"""
Tests for the retrying fetch primitive, the source client and fan-out.
"""
import threading
from datetime import date

import pytest
import requests

from app import fetch
from app.cache import CacheManager, CoalescedWaitTimeout
from app.fetch import (
    FailureKind,
    FetchError,
    SourceClient,
    fetch_all,
    fetch_budget_seconds,
    fetch_json,
    fetch_with_retry,
)
from app.scoreboard import fetch_scoreboard_payload, get_scoreboard


class FakeResponse:
    def __init__(self, status_code=200, payload=None, invalid_json=False):
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class ScriptedGet:
    """Replaces requests.get; each call consumes the next scripted outcome."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def __call__(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def scripted(monkeypatch):
    def install(*outcomes):
        get = ScriptedGet(*outcomes)
        monkeypatch.setattr(fetch.requests, "get", get)
        return get
    return install


def test_success_first_attempt(scripted):
    get = scripted(FakeResponse(200, {"ok": True}))
    response = fetch_with_retry("https://example.test/a", timeout=2.5, base_delay=0)
    assert response.json() == {"ok": True}
    assert len(get.calls) == 1
    assert get.calls[0]["timeout"] == 2.5
    assert "User-Agent" in get.calls[0]["headers"]
    assert get.calls[0]["headers"]["Accept"] == "application/json"


def test_retries_transient_status_then_succeeds(scripted):
    get = scripted(FakeResponse(503), FakeResponse(502), FakeResponse(200, {"n": 1}))
    retries = []
    response = fetch_with_retry(
        "https://example.test/a", max_retries=2, base_delay=0, on_retry=retries.append
    )
    assert response.json() == {"n": 1}
    assert len(get.calls) == 3
    assert len(retries) == 2
    assert all(e.status_code in (502, 503) for e in retries)


def test_exhausted_retries_raise_typed_error(scripted):
    get = scripted(FakeResponse(500))
    with pytest.raises(FetchError) as exc_info:
        fetch_with_retry("https://example.test/a", max_retries=2, base_delay=0)
    assert exc_info.value.kind == FailureKind.HTTP_STATUS
    assert exc_info.value.status_code == 500
    assert len(get.calls) == 3


def test_not_found_is_not_retried(scripted):
    get = scripted(FakeResponse(404))
    with pytest.raises(FetchError) as exc_info:
        fetch_with_retry("https://example.test/a", max_retries=3, base_delay=0)
    assert exc_info.value.is_not_found
    assert len(get.calls) == 1


def test_rate_limit_is_retried(scripted):
    get = scripted(FakeResponse(429), FakeResponse(200, {}))
    fetch_with_retry("https://example.test/a", max_retries=1, base_delay=0)
    assert len(get.calls) == 2


def test_timeout_classified(scripted):
    get = scripted(requests.Timeout("read timed out"))
    with pytest.raises(FetchError) as exc_info:
        fetch_with_retry("https://example.test/a", max_retries=1, base_delay=0)
    assert exc_info.value.kind == FailureKind.TIMEOUT
    assert len(get.calls) == 2


def test_network_error_classified(scripted):
    scripted(requests.ConnectionError("connection refused"))
    with pytest.raises(FetchError) as exc_info:
        fetch_with_retry("https://example.test/a", max_retries=0, base_delay=0)
    assert exc_info.value.kind == FailureKind.NETWORK
    assert "connection refused" in str(exc_info.value)


def test_invalid_json_classified(scripted):
    scripted(FakeResponse(200, invalid_json=True))
    with pytest.raises(FetchError) as exc_info:
        fetch_json("https://example.test/a", max_retries=0, base_delay=0)
    assert exc_info.value.kind == FailureKind.INVALID_PAYLOAD
    assert not exc_info.value.retryable


@pytest.fixture
def waits(monkeypatch):
    recorded = []
    monkeypatch.setattr(fetch, "_backoff_sleep", recorded.append)
    return recorded


def test_backoff_doubles_from_base_delay(scripted, waits):
    get = scripted(FakeResponse(503))
    with pytest.raises(FetchError):
        fetch_with_retry("https://example.test/a", max_retries=5, base_delay=0.5, max_delay=4.0)
    assert len(get.calls) == 6
    assert waits == [0.5, 1.0, 2.0, 4.0, 4.0]


def test_backoff_is_capped_at_max_delay(scripted, waits):
    scripted(FakeResponse(503), FakeResponse(503), FakeResponse(503), FakeResponse(200, {}))
    fetch_with_retry("https://example.test/a", max_retries=3, base_delay=0.5, max_delay=1.0)
    assert waits == [0.5, 1.0, 1.0]


def test_backoff_defaults_come_from_settings(scripted, waits, monkeypatch):
    monkeypatch.setattr(fetch.settings, "retry_base_delay_seconds", 0.25)
    monkeypatch.setattr(fetch.settings, "retry_max_delay_seconds", 0.5)
    scripted(FakeResponse(500))
    with pytest.raises(FetchError):
        fetch_with_retry("https://example.test/a", max_retries=3)
    assert waits == [0.25, 0.5, 0.5]


def test_no_backoff_for_non_retryable_failure(scripted, waits):
    scripted(FakeResponse(404))
    with pytest.raises(FetchError):
        fetch_with_retry("https://example.test/a", max_retries=3, base_delay=0.5)
    assert waits == []


def test_fetch_budget_covers_every_attempt_and_backoff():
    # three 10s attempts with 0.5s and 1s waits between them
    assert fetch_budget_seconds(timeout=10, max_retries=2, base_delay=0.5, max_delay=4) == 31.5
    assert fetch_budget_seconds(timeout=1, max_retries=5, base_delay=0.5, max_delay=2) == 13.5
    assert fetch_budget_seconds(timeout=3, max_retries=0, base_delay=0.5, max_delay=4) == 3


@pytest.mark.parametrize("kind,status,retryable", [
    (FailureKind.TIMEOUT, None, True),
    (FailureKind.NETWORK, None, True),
    (FailureKind.HTTP_STATUS, 500, True),
    (FailureKind.HTTP_STATUS, 429, True),
    (FailureKind.HTTP_STATUS, 404, False),
    (FailureKind.HTTP_STATUS, 400, False),
    (FailureKind.INVALID_PAYLOAD, None, False),
])
def test_retryable_classification(kind, status, retryable):
    assert FetchError(kind, "u", status_code=status).retryable is retryable


def test_source_client_serves_from_cache(scripted):
    get = scripted(FakeResponse(200, {"events": []}))
    client = SourceClient(cache=CacheManager(enabled=True))
    url = "https://site.api.espn.com/apis/site/v2/sports/basketball/nba/scoreboard"

    first = client.get_json(url, params={"dates": "20240315"})
    second = client.get_json(url, params={"dates": "20240315"})

    assert first == second == {"events": []}
    assert len(get.calls) == 1
    assert client.cache.get_stats()["hits"] == 1


def test_source_client_does_not_cache_failures(scripted):
    get = scripted(FakeResponse(404))
    client = SourceClient(cache=CacheManager(enabled=True))
    for _ in range(2):
        with pytest.raises(FetchError):
            client.get_json("https://example.test/teams/1/roster", max_retries=0)
    assert len(get.calls) == 2


def test_source_client_cache_disabled(scripted):
    get = scripted(FakeResponse(200, {"a": 1}))
    client = SourceClient(cache=CacheManager(enabled=False))
    client.get_json("https://example.test/x")
    client.get_json("https://example.test/x")
    assert len(get.calls) == 2


SCOREBOARD_URL = "https://site.api.espn.com/apis/site/v2/sports/basketball/nba/scoreboard"


class HeldGet:
    """requests.get that holds calls matching a fragment until released."""

    def __init__(self, held_fragment, other):
        self.held_fragment = held_fragment
        self.other = other
        self.entered = threading.Event()
        self.release = threading.Event()
        self.calls = []

    def __call__(self, url, params=None, headers=None, timeout=None):
        self.calls.append(url)
        if self.held_fragment in url:
            self.entered.set()
            self.release.wait(5)
            return FakeResponse(200, {"events": []})
        return self.other


@pytest.fixture
def held(monkeypatch):
    def install(fragment, other):
        get = HeldGet(fragment, other)
        monkeypatch.setattr(fetch.requests, "get", get)
        monkeypatch.setattr(fetch.settings, "coalesce_wait_margin_seconds", 0.0)
        return get
    return install


def start_in_flight(get, fn):
    results = []
    thread = threading.Thread(target=lambda: results.append(fn()))
    thread.start()
    assert get.entered.wait(5)
    return thread, results


def test_waiting_on_slow_identical_call_raises_fetch_error(held):
    get = held("/scoreboard", FakeResponse(503))
    client = SourceClient(cache=CacheManager())
    params = {"dates": "20240315"}
    thread, results = start_in_flight(
        get, lambda: client.get_json(SCOREBOARD_URL, params=params, max_retries=0)
    )

    try:
        with pytest.raises(FetchError) as exc_info:
            client.get_json(SCOREBOARD_URL, params=params, timeout=0.05, max_retries=0)
    finally:
        get.release.set()
        thread.join(5)

    assert exc_info.value.kind == FailureKind.TIMEOUT
    assert exc_info.value.retryable
    assert isinstance(exc_info.value.__cause__, CoalescedWaitTimeout)
    assert results == [{"events": []}]
    # only the initiator went upstream
    assert len(get.calls) == 1


def test_scoreboard_waiter_falls_back_instead_of_raising(held, monkeypatch):
    get = held("/nba/scoreboard", FakeResponse(503))
    monkeypatch.setattr(fetch.settings, "request_timeout_seconds", 0.05)
    monkeypatch.setattr(fetch.settings, "max_retries", 0)
    client = SourceClient(cache=CacheManager())
    thread, _ = start_in_flight(get, lambda: fetch_scoreboard_payload(date(2024, 3, 15), client))

    try:
        result = get_scoreboard("2024-03-15", client)
    finally:
        get.release.set()
        thread.join(5)

    assert result is None
    assert any("scoreboardv2" in url for url in get.calls)


def test_fetch_all_keeps_input_order_and_isolates_failures():
    def work(n):
        if n == 3:
            raise FetchError(FailureKind.TIMEOUT, f"item-{n}")
        return n * 10

    assert fetch_all(work, [1, 2, 3, 4], max_workers=4) == [10, 20, None, 40]


def test_fetch_all_waits_for_every_item():
    done = []
    lock = threading.Lock()

    def work(n):
        with lock:
            done.append(n)
        return n

    results = fetch_all(work, list(range(25)), max_workers=5)
    assert results == list(range(25))
    assert sorted(done) == list(range(25))


def test_fetch_all_empty():
    assert fetch_all(lambda x: x, []) == []
