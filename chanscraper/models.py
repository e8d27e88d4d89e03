from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class IdKind(str, Enum):
    """How an entity id was obtained."""

    EXTRACTED = "extracted"
    # Positional id built from the thread id; not stable across fetches.
    SYNTHESIZED = "synthesized"


@dataclass(frozen=True)
class Board:
    """Board entry parsed from the homepage (or filled in from built-in ids)."""

    id: str
    name: str
    description: str = ""
    fallback: bool = False


@dataclass(frozen=True)
class ThreadSummary:
    """Thread as listed on a board or catalog page."""

    id: str
    title: str
    text: str
    reply_count: int
    image_url: str
    board: str
    url: str


@dataclass(frozen=True)
class Post:
    id: str
    text: str
    image_url: str
    id_kind: IdKind = IdKind.EXTRACTED


@dataclass(frozen=True)
class ThreadDetail:
    """Full thread page: OP fields plus replies in markup order."""

    id: str
    title: str
    text: str
    image_url: str
    board: str
    op_post_id: str
    posts: tuple[Post, ...]
    url: str
    error: Optional[str] = None


@dataclass(frozen=True)
class SearchResult:
    title: str
    snippet: str
    url: str
    board_id: Optional[str] = None
    thread_id: Optional[str] = None


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a create-thread or reply action."""

    success: bool
    id: Optional[str]
    board: str
    url: str
    thread_id: Optional[str] = None


@dataclass(frozen=True)
class ThreadDraft:
    title: str
    text: str
    image: Optional[bytes] = None
    file_name: str = "image.jpg"


@dataclass(frozen=True)
class ReplyDraft:
    text: str
    image: Optional[bytes] = None
    file_name: str = "image.jpg"
