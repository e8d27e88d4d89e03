from __future__ import annotations

from typing import Optional


class ChanError(Exception):
    """Base class for errors raised by the chan client."""


class TransportError(ChanError):
    """Network failure, timeout, a 5xx status or an unusable redirect from the site."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class RateLimitedError(TransportError):
    """The site kept answering 429 after the allowed number of retries."""


class ActionError(ChanError):
    """A create-thread or reply action was rejected by the site."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
