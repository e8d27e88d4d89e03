from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from chanscraper import strategies as st
from chanscraper.models import Board, IdKind, Post, SearchResult, ThreadDetail, ThreadSummary

logger = logging.getLogger(__name__)

_BOARD_HREF_RE = re.compile(r"/board/([^/?#]+)")
_THREAD_HREF_RE = re.compile(r"/thread/(\d+)")
_REPLY_COUNT_RE = re.compile(r"(\d+)\s*(?:replies|posts)", re.IGNORECASE)
_LEADING_INT_RE = re.compile(r"^\s*(\d+)")
# "Some thread - /b/ - Site" -> "Some thread"
_PAGE_TITLE_RE = re.compile(r"^(.*?)\s*(?:/|-)?\s*/?[a-z]+?/", re.IGNORECASE)
_SELECTOR_SAFE_ID_RE = re.compile(r"^[\w-]+$")
_THREAD_ID_PREFIX_RE = re.compile(r"^thread[-_]?")
_POST_ID_PREFIX_RE = re.compile(r"^(?:post|reply)[-_]?")
_LOCATION_POST_RE = re.compile(r"#(?:p|post-?|reply-?)?(\d+)$")

_URL_SCHEMES = ("http", "https")


def make_soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "lxml")


def _to_int(digits: str) -> int:
    # int() refuses very long digit strings (sys.set_int_max_str_digits).
    try:
        return int(digits)
    except ValueError:
        return 0


class ChanParser:
    """
    HTML -> domain objects for the chan site.

    Pure: output depends only on (markup, base_url, ids passed in). No network
    access and no state kept between calls, so the same markup always parses
    to equal objects.

    Nothing here raises on unexpected markup. Missing structure degrades to
    link-pattern scanning, built-in board ids, synthesized ids or empty lists.
    """

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")

    # -------------------------
    # URLs
    # -------------------------

    def absolute_url(self, url: Optional[str]) -> str:
        """Absolute http(s) URL for `url`, or "" when there is none."""
        url = (url or "").strip()
        if not url:
            return ""
        try:
            joined = urljoin(self.base_url + "/", url)
            scheme = urlparse(joined).scheme
        except ValueError:
            logger.debug("Unparseable URL in markup: %r", url)
            return ""
        if scheme not in _URL_SCHEMES:
            return ""
        return joined

    def board_url(self, board_id: str) -> str:
        return f"{self.base_url}/board/{board_id}"

    def thread_url(self, board_id: str, thread_id: str) -> str:
        return f"{self.base_url}/board/{board_id}/thread/{thread_id}"

    # -------------------------
    # Boards
    # -------------------------

    def parse_boards(self, html: str) -> list[Board]:
        soup = make_soup(html)
        boards: dict[str, Board] = {}

        for selector in st.BOARD_ITEMS.selectors:
            for el in soup.select(selector):
                board = self._board_from_element(el)
                if board is not None and board.id not in boards:
                    boards[board.id] = board
            if boards:
                break

        if not boards:
            logger.info("No boards matched any selector; scanning all links.")
            for a in soup.find_all("a", href=True):
                m = _BOARD_HREF_RE.search(a["href"])
                if not m or m.group(1) in boards:
                    continue
                board_id = m.group(1)
                boards[board_id] = Board(id=board_id, name=a.get_text(" ", strip=True) or board_id)

        if not boards:
            logger.warning("No boards found in HTML; using the built-in board list.")
            for board_id in st.COMMON_BOARD_IDS:
                boards[board_id] = Board(id=board_id, name=f"/{board_id}/ - Board", fallback=True)

        for board_id in st.KNOWN_BOARD_IDS:
            if board_id not in boards:
                boards[board_id] = Board(
                    id=board_id, name=f"/{board_id}/", description="Known board", fallback=True
                )

        return list(boards.values())

    def _board_from_element(self, el: Tag) -> Optional[Board]:
        link = el if el.name == "a" else el.find("a")
        if link is None:
            return None
        m = _BOARD_HREF_RE.search(link.get("href", ""))
        if not m:
            return None
        board_id = m.group(1)

        description = ""
        desc_el = el.select_one(st.BOARD_DESCRIPTION)
        if desc_el is None:
            sibling = el.find_next_sibling()
            if sibling is not None and st.BOARD_DESCRIPTION_CLASS in (sibling.get("class") or []):
                desc_el = sibling
        if desc_el is not None:
            description = desc_el.get_text(" ", strip=True)

        return Board(
            id=board_id,
            name=link.get_text(" ", strip=True) or board_id,
            description=description,
        )

    # -------------------------
    # Thread listing
    # -------------------------

    def parse_threads(self, html: str, board_id: str) -> list[ThreadSummary]:
        soup = make_soup(html)
        threads: dict[str, ThreadSummary] = {}

        for el in st.THREAD_ITEMS.select(soup):
            thread_id = self._thread_id(el)
            if not thread_id or thread_id in threads:
                continue
            threads[thread_id] = ThreadSummary(
                id=thread_id,
                title=st.THREAD_TITLE.text(el) or f"Thread {thread_id}",
                text=st.THREAD_TEXT.text(el),
                reply_count=self._reply_count(el),
                image_url=self._image_url(st.THREAD_IMAGE.select_one(el)),
                board=board_id,
                url=self.thread_url(board_id, thread_id),
            )

        if not threads:
            logger.info("No threads matched any selector: board=%s; scanning thread links.", board_id)
            for a in soup.find_all("a", href=True):
                m = _THREAD_HREF_RE.search(a["href"])
                if not m or m.group(1) in threads:
                    continue
                thread_id = m.group(1)
                title = a.get_text(" ", strip=True) or f"Thread {thread_id}"
                context = a.parent.parent if a.parent is not None else None
                text = ""
                if context is not None:
                    text = context.get_text(" ", strip=True).replace(title, "", 1).strip()
                threads[thread_id] = ThreadSummary(
                    id=thread_id,
                    title=title,
                    text=text,
                    reply_count=0,
                    image_url="",
                    board=board_id,
                    url=self.thread_url(board_id, thread_id),
                )

        return list(threads.values())

    def _thread_id(self, el: Tag) -> str:
        for attr in st.THREAD_ID_ATTRS:
            value = (el.get(attr) or "").strip()
            if attr == "id":
                value = _THREAD_ID_PREFIX_RE.sub("", value)
            if value:
                return value
        child = el.select_one(st.THREAD_ID_CHILD)
        if child is not None:
            return (child.get("data-thread-id") or "").strip()
        return ""

    def _reply_count(self, el: Tag) -> int:
        count = 0
        count_el = st.REPLY_COUNT.select_one(el)
        if count_el is not None:
            m = _LEADING_INT_RE.match(count_el.get_text(" ", strip=True))
            count = _to_int(m.group(1)) if m else 0

        if count == 0:
            m = _REPLY_COUNT_RE.search(el.get_text(" ", strip=True))
            if m:
                count = _to_int(m.group(1))
        return count

    def _image_url(self, el: Optional[Tag]) -> str:
        if el is None:
            return ""
        src = el.get("src") or el.get("data-src")
        if not src and el.name != "img":
            img = el.find("img")
            if img is not None:
                src = img.get("src") or img.get("data-src")
        return self.absolute_url(src)

    # -------------------------
    # Thread page
    # -------------------------

    def parse_thread(self, html: str, board_id: str, thread_id: str) -> ThreadDetail:
        soup = make_soup(html)

        container = self._thread_container(soup, thread_id)

        title = st.DETAIL_TITLE.text(soup)
        if not title:
            title = self._title_from_page_title(soup) or f"Thread {thread_id}"

        text = st.OP_TEXT.text(soup)

        op_post_id = thread_id
        for selector in st.OP_POST.selectors:
            op_el = container.select_one(selector)
            if op_el is not None and op_el.get("data-id"):
                op_post_id = op_el["data-id"].strip()
                break

        posts = self._reply_posts(soup, thread_id)
        if posts is None:
            logger.info("No replies matched any selector: thread=%s; using container heuristic.", thread_id)
            posts = self._heuristic_posts(soup, thread_id, text)

        return ThreadDetail(
            id=thread_id,
            title=title,
            text=text,
            image_url=self._image_url(st.OP_IMAGE.select_one(soup)),
            board=board_id,
            op_post_id=op_post_id,
            posts=tuple(posts),
            url=self.thread_url(board_id, thread_id),
        )

    def _thread_container(self, soup: BeautifulSoup, thread_id: str) -> Tag:
        if _SELECTOR_SAFE_ID_RE.match(thread_id):
            chain = st.DETAIL_CONTAINER.formatted(thread_id=thread_id)
        else:
            chain = st.DETAIL_CONTAINER_PLAIN

        container = chain.select_one(soup)
        if container is None:
            op = soup.select_one(".post.op")
            if op is not None:
                container = op if "thread" in (op.get("class") or []) else op.find_parent(class_="thread")
        if container is None:
            container = st.DETAIL_LAST_RESORT.select_one(soup)
        return container if container is not None else soup

    def _title_from_page_title(self, soup: BeautifulSoup) -> str:
        if soup.title is None:
            return ""
        m = _PAGE_TITLE_RE.match(soup.title.get_text(" ", strip=True))
        return m.group(1).strip() if m else ""

    def _reply_posts(self, soup: BeautifulSoup, thread_id: str) -> Optional[list[Post]]:
        """Posts from the first reply selector with matches, or None if none matched."""
        for selector in st.REPLY_ITEMS.selectors:
            elements = soup.select(selector)
            if not elements:
                continue

            posts: list[Post] = []
            for i, el in enumerate(elements, start=1):
                post_id, id_kind = self._post_id(el, thread_id, i)
                posts.append(
                    Post(
                        id=post_id,
                        text=st.POST_TEXT.text(el) or el.get_text(" ", strip=True),
                        image_url=self._image_url(el.find("img")),
                        id_kind=id_kind,
                    )
                )
            return posts
        return None

    def _post_id(self, el: Tag, thread_id: str, position: int) -> tuple[str, IdKind]:
        data_id = (el.get("data-id") or "").strip()
        if data_id:
            return data_id, IdKind.EXTRACTED
        el_id = _POST_ID_PREFIX_RE.sub("", (el.get("id") or "").strip())
        if el_id:
            return el_id, IdKind.EXTRACTED
        return f"{thread_id}_reply_{position}", IdKind.SYNTHESIZED

    def _heuristic_posts(self, soup: BeautifulSoup, thread_id: str, op_text: str) -> list[Post]:
        """
        Treat leftover text containers as replies.

        Skips containers in (or containing) nav/header/footer, short ones, and
        ones that contain the OP text. Unlike a plain scan of every remaining
        container, only the innermost qualifying ones are kept, so a wrapper
        and its children are not both reported.
        """
        candidates: list[tuple[Tag, str]] = []
        for el in soup.select(st.HEURISTIC_CONTAINERS):
            if el.find(st.HEURISTIC_EXCLUDED_REGIONS) is not None:
                continue
            if el.find_parent(st.HEURISTIC_EXCLUDED_REGIONS) is not None:
                continue
            text = el.get_text(" ", strip=True)
            if len(text) < st.HEURISTIC_MIN_TEXT:
                continue
            if len(op_text) > st.HEURISTIC_MIN_TEXT and op_text in text:
                continue
            candidates.append((el, text))

        candidate_ids = {id(el) for el, _ in candidates}
        wrappers: set[int] = set()
        for el, _ in candidates:
            for parent in el.parents:
                if id(parent) in candidate_ids:
                    wrappers.add(id(parent))

        posts: list[Post] = []
        for el, text in candidates:
            if id(el) in wrappers:
                continue
            posts.append(
                Post(
                    id=f"{thread_id}_reply_{len(posts) + 1}",
                    text=text,
                    image_url=self._image_url(el.find("img")),
                    id_kind=IdKind.SYNTHESIZED,
                )
            )
        return posts

    # -------------------------
    # Search
    # -------------------------

    def parse_search(self, html: str) -> list[SearchResult]:
        soup = make_soup(html)
        results: list[SearchResult] = []

        for el in st.SEARCH_ITEMS.select(soup):
            link = el if el.name == "a" and el.get("href") else el.find("a", href=True)
            href = link["href"] if link is not None else ""

            board_m = _BOARD_HREF_RE.search(href)
            thread_m = _THREAD_HREF_RE.search(href)

            title = st.SEARCH_TITLE.text(el)
            if not title and link is not None:
                title = link.get_text(" ", strip=True)

            results.append(
                SearchResult(
                    title=title,
                    snippet=st.SEARCH_SNIPPET.text(el),
                    url=self.absolute_url(href) or self.base_url,
                    board_id=board_m.group(1) if board_m else None,
                    thread_id=thread_m.group(1) if thread_m else None,
                )
            )

        return results

    # -------------------------
    # Forms / action responses
    # -------------------------

    def extract_csrf_token(self, html: str) -> str:
        el = make_soup(html).select_one(st.CSRF_TOKEN)
        if el is None:
            return ""
        return (el.get("value") or "").strip()

    def extract_error_message(self, html: str) -> str:
        el = make_soup(html).select_one(st.ERROR_MESSAGE)
        return el.get_text(" ", strip=True) if el is not None else ""

    def thread_id_from_location(self, location: str) -> Optional[str]:
        m = _THREAD_HREF_RE.search(location or "")
        return m.group(1) if m else None

    def post_id_from_location(self, location: str) -> Optional[str]:
        m = _LOCATION_POST_RE.search(location or "")
        return m.group(1) if m else None
