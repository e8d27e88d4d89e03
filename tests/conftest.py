from __future__ import annotations

from types import SimpleNamespace
from typing import Optional

import pytest
import requests
from requests.cookies import cookiejar_from_dict
from requests.structures import CaseInsensitiveDict

from chanscraper.chan_client import ChanClient, ChanClientConfig
from chanscraper.http_client import HttpClient, HttpConfig

BASE_URL = "https://chan.test"


class FakeSession(requests.Session):
    """requests.Session that answers from a scripted list instead of the network."""

    def __init__(self, responses):
        super().__init__()
        self.responses = list(responses)
        self.calls: list[tuple[str, str, dict]] = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def build_response(
    status_code: int = 200,
    body: str = "",
    headers: Optional[dict[str, str]] = None,
    cookies: Optional[dict[str, str]] = None,
) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status_code
    resp._content = body.encode("utf-8")
    resp.headers = CaseInsensitiveDict(headers or {})
    resp.url = BASE_URL + "/"
    if cookies:
        resp.cookies = cookiejar_from_dict(cookies)
    return resp


def make_http(session: requests.Session, delay_sec: float = 0.0, max_throttle_retries: int = 1) -> HttpClient:
    return HttpClient(
        HttpConfig(
            base_url=BASE_URL,
            timeout_sec=1.0,
            delay_sec=delay_sec,
            backoff_max_sec=30.0,
            max_throttle_retries=max_throttle_retries,
            user_agent="test",
        ),
        session=session,
    )


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, sec: float) -> None:
        self.sleeps.append(sec)
        self.now += sec


@pytest.fixture
def clock(monkeypatch):
    """Fake time for the rate limiter and the transport; sleeps return at once."""
    fake = FakeClock()
    fake_time = SimpleNamespace(monotonic=fake.monotonic, sleep=fake.sleep)
    monkeypatch.setattr("chanscraper.rate_limiter.time", fake_time)
    monkeypatch.setattr("chanscraper.http_client.time", fake_time)
    return fake


@pytest.fixture
def make_client(clock):
    def _make(responses, cache_enabled: bool = True):
        session = FakeSession(responses)
        client = ChanClient(make_http(session), ChanClientConfig(cache_enabled=cache_enabled))
        return client, session

    return _make
