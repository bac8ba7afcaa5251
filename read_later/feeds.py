"""RSS 2.0 and Atom parsing helpers."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag
from dateutil import parser as date_parser

from .exceptions import MalformedFeed, TransportFailure
from .fetching import DEFAULT_TIMEOUT, fetch_text
from .models import FeedItem, ParsedFeed

logger = logging.getLogger(__name__)

CONTAINER_TAGS = ("channel", "feed")
ENTRY_TAGS = ("item", "entry")


def _qualified_name(tag: Tag) -> str:
    if tag.prefix:
        return f"{tag.prefix}:{tag.name}"
    return tag.name


def _find_first(parent: Tag, name: str) -> Optional[Tag]:
    return parent.find(lambda tag: _qualified_name(tag) == name)


def _text(parent: Tag, *names: str) -> str:
    """Return the stripped text of the first alias with non-empty text."""
    for name in names:
        element = _find_first(parent, name)
        if element is None:
            continue
        value = element.get_text().strip()
        if value:
            return value
    return ""


def _attribute(parent: Tag, name: str, attribute: str) -> str:
    element = _find_first(parent, name)
    if element is None:
        return ""
    return (element.get(attribute) or "").strip()


def _parse_item(item: Tag) -> FeedItem:
    return FeedItem(
        title=_text(item, "title") or "Untitled",
        link=_text(item, "link") or _attribute(item, "link", "href"),
        description=_text(item, "description", "summary", "content"),
        pub_date=_text(item, "pubDate", "published", "updated"),
        author=_text(item, "author", "dc:creator"),
        guid=_text(item, "guid", "id"),
    )


def parse_feed(xml_text: str) -> ParsedFeed:
    """Parse an RSS or Atom document into a ParsedFeed."""
    soup = BeautifulSoup(xml_text, "xml")

    container = None
    for name in CONTAINER_TAGS:
        container = _find_first(soup, name)
        if container is not None:
            break
    if container is None:
        raise MalformedFeed("Document has no <channel> or <feed> element.")

    items = [
        _parse_item(item)
        for item in soup.find_all(lambda tag: _qualified_name(tag) in ENTRY_TAGS)
    ]
    feed = ParsedFeed(
        title=_text(container, "title") or "Unknown Feed",
        description=_text(container, "description", "subtitle"),
        link=_text(container, "link"),
        items=items,
    )
    logger.debug("Parsed feed '%s' with %d items", feed.title, len(items))
    return feed


def fetch_and_parse(
    url: str, timeout: float = DEFAULT_TIMEOUT, fallback: bool = True
) -> ParsedFeed:
    """Fetch a feed URL and parse it, substituting demo data on transport errors."""
    logger.info("Fetching feed %s", url)
    try:
        xml_text = fetch_text(url, timeout=timeout)
    except TransportFailure as exc:
        if not fallback:
            raise
        logger.warning("Feed fetch failed for %s, using demo feed: %s", url, exc)
        return demo_feed(url)

    return parse_feed(xml_text)


def parse_pub_date(value: Optional[str]) -> Optional[datetime]:
    """Convert an RFC 822 or ISO 8601 date string to an aware UTC datetime.

    Values without an offset are taken as UTC. Returns None when the string
    is not a date.
    """
    if not value or not value.strip():
        return None

    try:
        parsed = date_parser.parse(value.strip())
    except (ValueError, OverflowError) as exc:
        logger.debug("Unparseable publish date %r: %s", value, exc)
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def unique_items(items: Iterable[FeedItem], known_keys: Iterable[str]) -> list:
    """Drop items whose link (or guid, when there is no link) was already seen.

    Document order is kept.
    """
    seen = set(known_keys)
    fresh = []
    for item in items:
        key = item.link or item.guid
        if key and key in seen:
            continue
        fresh.append(item)
        if key:
            seen.add(key)
    return fresh


def demo_feed(url: str) -> ParsedFeed:
    """Sample feed shown when the real one cannot be downloaded."""
    now = datetime.now(timezone.utc)
    return ParsedFeed(
        title="Demo RSS Feed",
        description="A demonstration RSS feed with sample articles",
        link=url,
        items=[
            FeedItem(
                title="Getting Started with RSS Readers",
                link="https://example.com/article1",
                description=(
                    "Learn how to effectively use RSS readers to stay up-to-date "
                    "with your favorite content sources. This comprehensive guide "
                    "covers everything from basics to advanced features."
                ),
                pub_date=now.isoformat(),
                author="Tech Writer",
                guid="article-1",
            ),
            FeedItem(
                title="The Future of Content Aggregation",
                link="https://example.com/article2",
                description=(
                    "Exploring how content aggregation is evolving in the modern "
                    "web. From RSS to AI-powered curation, discover what's next "
                    "in information management."
                ),
                pub_date=(now - timedelta(days=1)).isoformat(),
                author="Content Strategist",
                guid="article-2",
            ),
            FeedItem(
                title="Building Your Personal Knowledge Base",
                link="https://example.com/article3",
                description=(
                    "Tips and strategies for creating and maintaining a personal "
                    "knowledge management system that grows with you over time."
                ),
                pub_date=(now - timedelta(days=2)).isoformat(),
                author="Productivity Expert",
                guid="article-3",
            ),
        ],
    )
