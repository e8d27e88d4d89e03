from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

import requests

from chanscraper import strategies as st
from chanscraper.cache import ResponseCache, make_key
from chanscraper.chan_parser import ChanParser
from chanscraper.errors import ActionError, ChanError
from chanscraper.http_client import HttpClient, HttpConfig
from chanscraper.models import (
    ActionResult,
    Board,
    ReplyDraft,
    SearchResult,
    ThreadDetail,
    ThreadDraft,
    ThreadSummary,
)
from chanscraper.settings import ChanSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ChanClientConfig:
    cache_enabled: bool = True
    cache_ttl_sec: float = 300.0


class ChanClient:
    """
    Client for the chan site (boards, threads, search, posting).

    Endpoints:
    - Homepage:      /                                  (board list)
    - Catalog:       /board/<board>/catalog?page=<n>    (thread list, tried first)
    - Board page:    /board/<board>?page=<n>            (thread list fallback)
    - Thread:        /board/<board>/thread/<thread>
    - Search:        /search?q=<query>
    - New thread:    POST /board/<board>/thread/create
    - Reply:         POST /board/<board>/thread/<thread>/reply

    Reads never raise: transport failures degrade to fallback boards, an empty
    thread list, or a ThreadDetail carrying `error`. Search and writes raise.
    All mutable state (cookies, rate limit, cache) belongs to this instance.
    """

    def __init__(
        self,
        http: HttpClient,
        config: Optional[ChanClientConfig] = None,
        cache: Optional[ResponseCache] = None,
    ):
        self.http = http
        self.config = config or ChanClientConfig()
        self.parser = ChanParser(http.base_url)
        self.cache = cache or ResponseCache(self.config.cache_ttl_sec)

    @classmethod
    def from_settings(cls, s: ChanSettings, session: Optional[requests.Session] = None) -> "ChanClient":
        http = HttpClient(
            HttpConfig(
                base_url=s.base_url,
                timeout_sec=s.request_timeout_sec,
                delay_sec=s.request_delay_sec,
                backoff_max_sec=s.backoff_max_sec,
                max_throttle_retries=s.max_throttle_retries,
                user_agent=s.user_agent,
            ),
            session=session,
        )
        return cls(http, ChanClientConfig(cache_enabled=s.cache_enabled, cache_ttl_sec=s.cache_ttl_sec))

    # -------------------------
    # Reads
    # -------------------------

    def get_boards(self, use_cache: bool = True) -> list[Board]:
        def load() -> tuple[Board, ...]:
            logger.info("Fetching board list")
            return tuple(self.parser.parse_boards(self.http.fetch("/").text))

        try:
            return list(self._cached(make_key("get_boards"), load, use_cache))
        except ChanError as e:
            logger.warning("Board list unavailable, using fallback boards: err=%s", e)
            return [
                Board(id=board_id, name=name, description="Fallback board", fallback=True)
                for board_id, name in st.OFFLINE_BOARDS
            ]

    def get_threads(self, board_id: str, page: int = 1, use_cache: bool = True) -> list[ThreadSummary]:
        """
        Threads of one board page. The catalog view is tried first; the plain
        board page is used when the catalog yields nothing.
        """

        def load() -> tuple[ThreadSummary, ...]:
            logger.info("Fetching catalog: board=%s page=%s", board_id, page)
            threads = self.parser.parse_threads(self.fetch_catalog_html(board_id, page), board_id)
            if not threads:
                logger.info("Catalog empty, trying board page: board=%s page=%s", board_id, page)
                threads = self.parser.parse_threads(self.fetch_board_html(board_id, page), board_id)
            return tuple(threads)

        try:
            return list(self._cached(make_key("get_threads", board_id, page), load, use_cache))
        except ChanError as e:
            logger.warning("Thread list unavailable: board=%s page=%s err=%s", board_id, page, e)
            return []

    def get_thread(self, board_id: str, thread_id: str, use_cache: bool = True) -> ThreadDetail:
        def load() -> ThreadDetail:
            logger.info("Fetching thread: board=%s thread=%s", board_id, thread_id)
            html = self.http.fetch(self._thread_path(board_id, thread_id)).text
            return self.parser.parse_thread(html, board_id, thread_id)

        try:
            return self._cached(make_key("get_thread", board_id, thread_id), load, use_cache)
        except ChanError as e:
            logger.warning("Thread unavailable: board=%s thread=%s err=%s", board_id, thread_id, e)
            return ThreadDetail(
                id=thread_id,
                title=f"Thread {thread_id}",
                text="",
                image_url="",
                board=board_id,
                op_post_id=thread_id,
                posts=(),
                url=self.parser.thread_url(board_id, thread_id),
                error=str(e),
            )

    def search(self, query: str) -> list[SearchResult]:
        """
        Search the site. Not cached.

        Raises:
            TransportError: on network failure or status >= 500
        """
        logger.info("Searching: query=%r", query)
        try:
            resp = self.http.fetch("/search", params={"q": query})
        except ChanError as e:
            logger.error("Search failed: query=%r err=%s", query, e)
            raise
        return self.parser.parse_search(resp.text)

    def fetch_board_html(self, board_id: str, page: int = 1) -> str:
        """Fetch raw board page HTML (useful for debugging DOM changes)."""
        return self.http.fetch(f"/board/{board_id}", params={"page": page}).text

    def fetch_catalog_html(self, board_id: str, page: int = 1) -> str:
        return self.http.fetch(f"/board/{board_id}/catalog", params={"page": page}).text

    # -------------------------
    # Writes
    # -------------------------

    def create_thread(self, board_id: str, draft: ThreadDraft) -> ActionResult:
        """
        Post a new thread.

        Success is a redirect whose Location names the new thread.

        Raises:
            ActionError: the site rejected the post (reason scraped from the page)
            TransportError: network failure or status >= 500
        """
        priming_path = f"/board/{board_id}"
        fields = {"title": draft.title, "text": draft.text}
        resp = self._submit_action(priming_path, f"/board/{board_id}/thread/create", fields, draft.image, draft.file_name)

        if resp.is_redirect:
            thread_id = self.parser.thread_id_from_location(resp.headers.get("Location", ""))
            if thread_id:
                logger.info("Thread created: board=%s thread=%s", board_id, thread_id)
                return ActionResult(
                    success=True,
                    id=thread_id,
                    board=board_id,
                    url=self.parser.thread_url(board_id, thread_id),
                    thread_id=thread_id,
                )

        raise self._action_failure(resp, "Unknown error creating thread", board_id=board_id)

    def reply_to_thread(self, board_id: str, thread_id: str, draft: ReplyDraft) -> ActionResult:
        """
        Reply to a thread. Any 2xx or 3xx answer counts as success; the new
        post id is taken from the redirect fragment when there is one.

        Raises:
            ActionError: the site rejected the reply
            TransportError: network failure or status >= 500
        """
        thread_path = self._thread_path(board_id, thread_id)
        resp = self._submit_action(thread_path, f"{thread_path}/reply", {"text": draft.text}, draft.image, draft.file_name)

        if 200 <= resp.status_code < 400:
            post_id = None
            if resp.is_redirect:
                post_id = self.parser.post_id_from_location(resp.headers.get("Location", ""))
            logger.info("Reply posted: board=%s thread=%s post=%s", board_id, thread_id, post_id)
            return ActionResult(
                success=True,
                id=post_id,
                board=board_id,
                url=self.parser.thread_url(board_id, thread_id),
                thread_id=thread_id,
            )

        raise self._action_failure(resp, "Unknown error posting reply", board_id=board_id, thread_id=thread_id)

    # -------------------------
    # Helpers
    # -------------------------

    def _cached(self, key: str, load: Callable[[], T], use_cache: bool) -> T:
        caching = self.config.cache_enabled and use_cache
        if caching:
            hit = self.cache.get(key)
            if hit is not None:
                logger.debug("Cache hit: key=%s", key)
                return hit
        data = load()
        if caching:
            self.cache.set(key, data)
        return data

    def _thread_path(self, board_id: str, thread_id: str) -> str:
        return f"/board/{board_id}/thread/{thread_id}"

    def _submit_action(
        self,
        priming_path: str,
        action_path: str,
        fields: dict[str, str],
        image: Optional[bytes],
        file_name: str,
    ) -> requests.Response:
        # Priming page: sets session cookies and carries the CSRF token.
        priming = self.http.fetch(priming_path)
        token = self.parser.extract_csrf_token(priming.text)

        form: dict[str, str] = {}
        if token:
            form[st.CSRF_FIELD] = token
        else:
            logger.debug("No CSRF token on priming page: path=%s", priming_path)
        form.update(fields)

        files: dict[str, Any] = {}
        if image:
            content_type = mimetypes.guess_type(file_name)[0] or "application/octet-stream"
            files["image"] = (file_name, image, content_type)

        return self.http.submit(
            action_path,
            form,
            files=files,
            referer=self.http.url_for(priming_path),
        )

    def _action_failure(self, resp: requests.Response, default_reason: str, **context: str) -> ActionError:
        reason = self.parser.extract_error_message(resp.text) or default_reason
        logger.error("Action failed: status=%s reason=%s context=%s", resp.status_code, reason, context)
        return ActionError(reason)
