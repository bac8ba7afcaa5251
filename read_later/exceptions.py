"""Error types raised by read_later."""

from __future__ import annotations

from typing import Optional


class ReadLaterError(Exception):
    """Base class for all read_later errors."""


class MalformedFeed(ReadLaterError):
    """The document has neither an RSS <channel> nor an Atom <feed>."""


class NotInitialized(ReadLaterError):
    """The store was used before init() completed."""


class TransportFailure(ReadLaterError):
    """A network request failed or returned a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MissingCredential(ReadLaterError):
    """A summary was requested without an API key."""


class RecordNotFound(ReadLaterError, KeyError):
    """A referenced feed, article or highlight does not exist."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
