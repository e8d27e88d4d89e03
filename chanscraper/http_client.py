from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from http.cookiejar import DefaultCookiePolicy
from typing import Any, Mapping, Optional
from urllib.parse import urljoin, urlparse

import requests

from chanscraper.errors import RateLimitedError, TransportError
from chanscraper.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpConfig:
    base_url: str
    timeout_sec: float
    delay_sec: float
    backoff_max_sec: float
    max_throttle_retries: int
    user_agent: str
    max_redirects: int = 10


class CookieJar:
    """
    Session cookies as a plain name -> value mapping.

    Written only from responses, read only when building requests.
    Cookie attributes (path, expiry, ...) are ignored on purpose: everything
    lives for the lifetime of the client.
    """

    def __init__(self) -> None:
        self._cookies: dict[str, str] = {}
        self._lock = threading.Lock()

    def merge_from(self, resp: requests.Response) -> None:
        # history is only non-empty when requests followed redirects itself.
        found: dict[str, str] = {}
        for r in [*resp.history, resp]:
            for cookie in r.cookies:
                if cookie.name and cookie.value:
                    found[cookie.name] = cookie.value
        if found:
            with self._lock:
                self._cookies.update(found)

    def header(self) -> Optional[str]:
        with self._lock:
            if not self._cookies:
                return None
            return "; ".join(f"{k}={v}" for k, v in self._cookies.items())

    def as_dict(self) -> dict[str, str]:
        with self._lock:
            return dict(self._cookies)


class HttpClient:
    """
    Session transport for the chan site:
    - Fixed identity headers
    - Shared rate limiter before every request
    - Own cookie jar (the requests.Session jar is disabled)
    - Status < 500 is handed back to the caller, >= 500 raises TransportError
    - 429: escalate the delay, sleep it, re-send (bounded by max_throttle_retries)

    Transport failures are never retried here; only throttle signals are.
    """

    def __init__(
        self,
        config: HttpConfig,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self._cfg = config
        self._base_url = config.base_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "User-Agent": self._cfg.user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.5",
                "Connection": "keep-alive",
                "Upgrade-Insecure-Requests": "1",
                "Cache-Control": "max-age=0",
            }
        )
        self._session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))
        self.rate_limiter = rate_limiter or RateLimiter(config.delay_sec, config.backoff_max_sec)
        self.cookies = CookieJar()

    @property
    def base_url(self) -> str:
        return self._base_url

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    def fetch(self, path: str, params: Optional[Mapping[str, Any]] = None) -> requests.Response:
        """
        GET a site path (redirects followed).

        Redirects are followed here rather than inside requests, so every hop
        is throttled and carries the cookies set by the hops before it.
        The hops are available as resp.history.

        Raises:
            TransportError: network errors, timeouts, status >= 500 and bad
                or too many redirects
            RateLimitedError: still throttled after the allowed retries
        """
        resp = self._request("GET", path, params=params, allow_redirects=False)
        history: list[requests.Response] = []
        while resp.is_redirect:
            if len(history) >= self._cfg.max_redirects:
                logger.error("Too many redirects: url=%s hops=%s", resp.url, len(history))
                raise TransportError(f"Too many redirects: url={resp.url}", url=resp.url)
            next_url = self._redirect_target(resp)
            history.append(resp)
            logger.debug("Following redirect: status=%s url=%s", resp.status_code, next_url)
            resp = self._request("GET", next_url, allow_redirects=False)
        resp.history = history
        return resp

    def _redirect_target(self, resp: requests.Response) -> str:
        location = resp.headers.get("Location", "")
        try:
            target = urljoin(resp.url or self.url_for("/"), location)
            scheme = urlparse(target).scheme
        except ValueError as e:
            raise TransportError(f"Bad redirect: location={location!r} err={e}", url=resp.url) from e
        if scheme not in ("http", "https"):
            raise TransportError(f"Bad redirect: location={location!r}", url=resp.url)
        return target

    def submit(
        self,
        path: str,
        fields: Mapping[str, str],
        files: Optional[Mapping[str, tuple[str, bytes, str]]] = None,
        referer: Optional[str] = None,
    ) -> requests.Response:
        """
        POST a multipart form. Redirects are NOT followed so the caller can
        read the Location target.
        """
        # (None, value) parts force multipart encoding even without a file.
        parts: list[tuple[str, tuple[Optional[str], Any]]] = [
            (name, (None, value)) for name, value in fields.items()
        ]
        for name, (file_name, data, content_type) in (files or {}).items():
            parts.append((name, (file_name, data, content_type)))

        headers = {"Referer": referer} if referer else None
        return self._request("POST", path, files=parts, headers=headers, allow_redirects=False)

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = self.url_for(path)
        retries = 0
        while True:
            resp = self._send(method, url, **kwargs)
            if resp.status_code != 429:
                return resp

            delay = self.rate_limiter.escalate()
            if retries >= self._cfg.max_throttle_retries:
                logger.error("Still rate-limited after retries: method=%s url=%s retries=%s", method, url, retries)
                raise RateLimitedError(
                    f"Rate-limited: status=429 url={url}", status_code=429, url=url
                )
            retries += 1
            logger.warning(
                "Rate-limited by server (retrying): attempt=%s url=%s sleep=%.2fs",
                retries,
                url,
                delay,
            )
            time.sleep(delay)

    def _send(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        **kwargs: Any,
    ) -> requests.Response:
        self.rate_limiter.throttle()

        req_headers = dict(headers or {})
        cookie_header = self.cookies.header()
        # The jar is not domain-scoped, so it only goes to the site's own host.
        if cookie_header and urlparse(url).netloc == urlparse(self._base_url).netloc:
            req_headers["Cookie"] = cookie_header

        try:
            resp = self._session.request(
                method,
                url,
                headers=req_headers,
                timeout=self._cfg.timeout_sec,
                **kwargs,
            )
        except requests.RequestException as e:
            logger.error("HTTP %s failed: url=%s err=%s", method, url, e)
            raise TransportError(f"HTTP {method} failed: url={url} err={e}", url=url) from e

        self.cookies.merge_from(resp)

        if resp.status_code >= 500:
            logger.error("Server error: method=%s url=%s status=%s", method, url, resp.status_code)
            raise TransportError(
                f"Server error: status={resp.status_code} url={url}",
                status_code=resp.status_code,
                url=url,
            )

        resp.encoding = "utf-8"
        return resp
