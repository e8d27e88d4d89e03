"""
Selector strategies for the chan site's markup.

The site's HTML is unversioned and changes without notice, so every entity and
field is located through an ordered list of CSS selectors. Earlier entries are
preferred; later ones cover older or alternative templates. Add or reorder
selectors here, the extraction code in chan_parser.py does not need to change.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from bs4 import Tag

logger = logging.getLogger(__name__)


class SelectorChain:
    """
    Ordered CSS selector fallback chain.

    select() returns the matches of the first selector that finds anything.
    Stateless: the same root always yields the same result.
    """

    def __init__(self, name: str, selectors: Sequence[str]):
        self.name = name
        self.selectors = tuple(selectors)

    def select(self, root: Tag) -> list[Tag]:
        for i, selector in enumerate(self.selectors):
            found = root.select(selector)
            if found:
                if i > 0:
                    logger.debug("%s: using fallback selector #%s: %s", self.name, i + 1, selector)
                return found
        return []

    def select_one(self, root: Tag) -> Optional[Tag]:
        for selector in self.selectors:
            found = root.select_one(selector)
            if found is not None:
                return found
        return None

    def text(self, root: Tag) -> str:
        """Stripped text of the first selector that matches at all (may be empty)."""
        el = self.select_one(root)
        return el.get_text(" ", strip=True) if el is not None else ""

    def formatted(self, **values: str) -> "SelectorChain":
        return SelectorChain(self.name, [s.format(**values) for s in self.selectors])


# ---- Boards (homepage) ----

BOARD_ITEMS = SelectorChain(
    "board_items",
    [
        ".boards-list .board-item",
        ".board-list .board-item",
        ".boardlist a",
        'a[href*="/board/"]',
        ".board-item",
        "#boardlist a",
    ],
)
BOARD_DESCRIPTION_CLASS = "board-description"
BOARD_DESCRIPTION = f".{BOARD_DESCRIPTION_CLASS}"

# Used only when nothing at all could be parsed from the homepage.
COMMON_BOARD_IDS = ("b", "g", "pol", "tv", "v", "a", "tech", "int", "sci", "his", "mus", "fit", "lit")

# Always present in a board listing, whatever the homepage looks like.
KNOWN_BOARD_IDS = ("b", "acd", "pol", "tech")

# Returned when the homepage could not be fetched at all.
OFFLINE_BOARDS = (
    ("b", "/b/ - Random"),
    ("acd", "/acd/ - Academia"),
    ("pol", "/pol/ - Politics"),
    ("tech", "/tech/ - Technology"),
)

# ---- Thread listing (catalog / board page) ----

THREAD_ITEMS = SelectorChain(
    "thread_items",
    [
        ".thread",
        ".thread-container",
        ".threadContainer",
        'div[id^="thread"]',
        ".post.op",
        "article.thread",
        "div.card.thread",
    ],
)
THREAD_TITLE = SelectorChain("thread_title", [".thread-title", ".title", "h2", "h3", ".subject", ".post-title"])
THREAD_TEXT = SelectorChain(
    "thread_text",
    [".thread-text", ".text", ".post-content", ".message", ".post-body", ".body"],
)
REPLY_COUNT = SelectorChain("reply_count", [".reply-count", ".post-count", ".replies", ".backlink-count"])
THREAD_IMAGE = SelectorChain("thread_image", ["img", ".post-image img", ".thread-image", ".attachment img"])

THREAD_ID_ATTRS = ("data-id", "id", "thread-id")
THREAD_ID_CHILD = "[data-thread-id]"

# ---- Thread page ----

# {thread_id} is filled in per request (only for ids that are safe in a selector).
DETAIL_CONTAINER = SelectorChain(
    "detail_container",
    [
        ".thread",
        ".thread-container",
        ".threadContainer",
        'div[id="thread-{thread_id}"]',
        'div[id="thread_{thread_id}"]',
        'div[data-id="{thread_id}"]',
        "article.thread",
    ],
)
DETAIL_CONTAINER_PLAIN = SelectorChain(
    "detail_container",
    [s for s in DETAIL_CONTAINER.selectors if "{thread_id}" not in s],
)
DETAIL_LAST_RESORT = SelectorChain("detail_last_resort", [".main-container", "main", "body"])

DETAIL_TITLE = SelectorChain("detail_title", [".thread-title", ".title", "h1", "h2", ".subject", ".post-title"])
OP_TEXT = SelectorChain(
    "op_text",
    [
        ".thread-text",
        ".op-post .text",
        ".op-post .message",
        ".op-post .post-content",
        ".post.op .post-body",
        ".post.op .message",
        ".post:first-child .post-body",
    ],
)
OP_POST = SelectorChain("op_post", [".op-post", ".post.op", ".post:first-child"])
OP_IMAGE = SelectorChain(
    "op_image",
    [".op-post img", ".post.op img", ".post:first-child img", ".thread-image", ".op-image"],
)

REPLY_ITEMS = SelectorChain(
    "reply_items",
    [
        ".post:not(.op-post):not(.op)",
        ".post:not(.post.op)",
        ".reply",
        ".thread-reply",
        ".post-container:not(:first-child)",
    ],
)
POST_TEXT = SelectorChain(
    "post_text",
    [".post-text", ".text", ".message", ".post-body", ".reply-content", ".post-content"],
)

# Heuristic reply pass over generic containers.
HEURISTIC_CONTAINERS = "div, article"
HEURISTIC_EXCLUDED_REGIONS = ["nav", "header", "footer"]
HEURISTIC_MIN_TEXT = 20

# ---- Search ----

SEARCH_ITEMS = SelectorChain("search_items", [".search-result", ".result"])
SEARCH_TITLE = SelectorChain("search_title", [".result-title", "h3"])
SEARCH_SNIPPET = SelectorChain("search_snippet", [".result-snippet", ".snippet"])

# ---- Forms ----

CSRF_TOKEN = 'input[name="_csrf"]'
CSRF_FIELD = "_csrf"
ERROR_MESSAGE = ".error-message"
