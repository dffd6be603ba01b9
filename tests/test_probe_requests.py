# tests/test_probe_requests.py
from __future__ import annotations
from typing import Any, Dict, List, Tuple

import pytest
import requests

from nodelisting.services.probe_requests import RequestsProbe, candidate_urls


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, bad_json: bool = False) -> None:
        self.status_code = status_code
        self._body = body
        self._bad_json = bad_json

    def json(self) -> Any:
        if self._bad_json:
            raise ValueError("not json")
        return self._body


class FakeGet:
    """Подменяет requests.get: url -> ответ или исключение."""

    def __init__(self, routes: Dict[str, Any]) -> None:
        self.routes = routes
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def __call__(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append((url, kwargs))
        outcome = self.routes.get(url, requests.ConnectionError(f"no route to {url}"))
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _probe(routes: Dict[str, Any]) -> Tuple[RequestsProbe, FakeGet]:
    fake = FakeGet(routes)
    return RequestsProbe(timeout=8.0, http_get=fake), fake


@pytest.mark.parametrize(
    "domain, expected",
    [
        ("a.example", ["https://a.example/healthz", "http://a.example/healthz"]),
        ("localhost:3000", ["http://localhost:3000/healthz"]),
        ("127.0.0.1:8080", ["http://127.0.0.1:8080/healthz"]),
        ("[::1]:8080", ["http://[::1]:8080/healthz"]),
    ],
)
def test_candidate_urls(domain, expected):
    assert candidate_urls(domain, "/healthz") == expected


def test_healthy_over_https_sends_user_agent_and_split_timeout(event_loop):
    probe, fake = _probe({"https://a.example/healthz": FakeResponse(200, {"status": "ok"})})
    assert event_loop.run_until_complete(probe.probe_health("a.example")) is True
    assert len(fake.calls) == 1
    _, kwargs = fake.calls[0]
    assert kwargs["headers"]["User-Agent"] == "SoundTime-Listing/1.0"
    assert kwargs["timeout"] == (4.0, 4.0)


def test_falls_back_to_http(event_loop):
    probe, fake = _probe(
        {
            "https://a.example/healthz": requests.exceptions.SSLError("bad cert"),
            "http://a.example/healthz": FakeResponse(200, {"status": "ok"}),
        }
    )
    assert event_loop.run_until_complete(probe.probe_health("a.example")) is True
    assert [u for u, _ in fake.calls] == ["https://a.example/healthz", "http://a.example/healthz"]


def test_loopback_never_tries_https(event_loop):
    probe, fake = _probe({"https://localhost:3000/healthz": FakeResponse(200, {"status": "ok"})})
    assert event_loop.run_until_complete(probe.probe_health("localhost:3000")) is False
    assert [u for u, _ in fake.calls] == ["http://localhost:3000/healthz"]


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(503, {"status": "ok"}),
        FakeResponse(200, {"status": "degraded"}),
        FakeResponse(200, ["ok"]),
        FakeResponse(200, bad_json=True),
        requests.Timeout("slow"),
    ],
)
def test_unhealthy_outcomes_are_false(event_loop, response):
    probe, _ = _probe({"https://a.example/healthz": response, "http://a.example/healthz": response})
    assert event_loop.run_until_complete(probe.probe_health("a.example")) is False


def test_fetch_info_parses_object(event_loop):
    probe, _ = _probe({"https://a.example/api/nodeinfo": FakeResponse(200, {"name": "A", "track_count": 10})})
    info = event_loop.run_until_complete(probe.fetch_info("a.example"))
    assert info is not None
    assert info.name == "A" and info.track_count == 10


def test_fetch_info_absent_on_failure(event_loop):
    probe, fake = _probe({"https://a.example/api/nodeinfo": FakeResponse(500, {"name": "A"}), "http://a.example/api/nodeinfo": FakeResponse(200, "text")})
    assert event_loop.run_until_complete(probe.fetch_info("a.example")) is None
    assert len(fake.calls) == 2


def test_malformed_host_is_unhealthy_not_an_error(event_loop):
    # urllib3 LocationParseError наследует ValueError и не оборачивается requests
    from urllib3.exceptions import LocationParseError

    domain = "x" * 70 + ".example"
    bad = LocationParseError(f"{domain}: label empty or too long")
    probe, fake = _probe({f"https://{domain}/healthz": bad, f"http://{domain}/healthz": bad, f"https://{domain}/api/nodeinfo": ValueError("bad")})
    assert event_loop.run_until_complete(probe.probe_health(domain)) is False
    assert event_loop.run_until_complete(probe.fetch_info(domain)) is None
    assert len(fake.calls) == 4


def test_hung_request_is_cut_at_timeout(event_loop):
    import threading

    release = threading.Event()

    def hanging_get(url: str, **kwargs: Any) -> FakeResponse:
        release.wait(5)
        return FakeResponse(200, {"status": "ok"})

    probe = RequestsProbe(timeout=0.05, http_get=hanging_get)
    try:
        assert event_loop.run_until_complete(probe.probe_health("a.example")) is False
    finally:
        release.set()
