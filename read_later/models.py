"""Shared data models for read_later."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

DEFAULT_CATEGORY = "General"
DEFAULT_UPDATE_INTERVAL = 3600


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Highlight:
    """A user-marked excerpt of an article."""

    text: str
    color: str
    article_id: Optional[str] = None
    note: Optional[str] = None
    position: Optional[int] = None
    id: Optional[str] = None


@dataclass
class Article:
    """A saved unit of content, feed-derived or imported by hand."""

    title: str
    content: str
    url: str
    publish_date: datetime = field(default_factory=utcnow)
    feed_id: Optional[str] = None
    author: Optional[str] = None
    summary: Optional[str] = None
    is_read: bool = False
    tags: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    highlights: List[Highlight] = field(default_factory=list)
    guid: Optional[str] = None
    id: Optional[str] = None


@dataclass
class Feed:
    """A subscribed RSS or Atom source."""

    url: str
    title: str
    description: str = ""
    category: str = DEFAULT_CATEGORY
    last_updated: datetime = field(default_factory=utcnow)
    update_interval: int = DEFAULT_UPDATE_INTERVAL
    favicon: Optional[str] = None
    id: Optional[str] = None


@dataclass
class FeedItem:
    """A single <item> or <entry> as found in the feed document."""

    title: str
    link: str
    description: str
    pub_date: str
    author: str = ""
    guid: str = ""


@dataclass
class ParsedFeed:
    """Normalized feed document."""

    title: str
    description: str
    link: str
    items: List[FeedItem] = field(default_factory=list)


@dataclass
class PageMetadata:
    """Metadata captured while converting a page to markdown."""

    title: str
    author: str
    description: str
    url: str
    extracted_at: datetime = field(default_factory=utcnow)


@dataclass
class ConversionResult:
    """Markdown rendition of a web page."""

    markdown: str
    title: str
    metadata: PageMetadata


@dataclass
class CustomPrompt:
    """A named summarization prompt."""

    id: str
    name: str
    content: str
