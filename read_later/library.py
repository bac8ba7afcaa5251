"""High-level operations on the article library."""

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .articles import convert_url, excerpt
from .exceptions import ReadLaterError, RecordNotFound
from .feeds import fetch_and_parse, parse_pub_date, unique_items
from .fetching import DEFAULT_TIMEOUT
from .models import (
    DEFAULT_CATEGORY,
    DEFAULT_UPDATE_INTERVAL,
    Article,
    ConversionResult,
    Feed,
    FeedItem,
    Highlight,
    PageMetadata,
    utcnow,
)
from .settings import SummarySettings
from .store import ArticleStore
from .summaries import DEFAULT_TIMEOUT as SUMMARY_TIMEOUT
from .summaries import summarize_text

logger = logging.getLogger(__name__)

URL_FETCHED_TAG = "url-fetched"
SORT_KEYS = ("date", "title", "author")


def item_to_article(item: FeedItem, feed_id: str) -> Article:
    """Build an unread article from a feed item."""
    return Article(
        feed_id=feed_id,
        title=item.title,
        author=item.author or None,
        publish_date=parse_pub_date(item.pub_date) or utcnow(),
        content=item.description,
        summary=excerpt(item.description),
        url=item.link,
        guid=item.guid or None,
        is_read=False,
        tags=[],
    )


def subscribe_feed(
    store: ArticleStore,
    url: str,
    category: str = DEFAULT_CATEGORY,
    timeout: float = DEFAULT_TIMEOUT,
) -> Tuple[str, int]:
    """Subscribe to a feed and import its items. Returns (feed id, item count)."""
    parsed = fetch_and_parse(url, timeout=timeout)

    feed_id = store.save_feed(
        Feed(
            url=url,
            title=parsed.title,
            description=parsed.description,
            category=category,
            last_updated=utcnow(),
            update_interval=DEFAULT_UPDATE_INTERVAL,
        )
    )
    for item in parsed.items:
        store.save_article(item_to_article(item, feed_id))

    logger.info("Added feed '%s' with %d articles", parsed.title, len(parsed.items))
    return feed_id, len(parsed.items)


def refresh_feed(
    store: ArticleStore, feed: Feed, timeout: float = DEFAULT_TIMEOUT
) -> int:
    """Import items not yet stored for the feed and bump its timestamp."""
    parsed = fetch_and_parse(feed.url, timeout=timeout, fallback=False)
    known = []
    for article in store.get_articles_by_feed(feed.id):
        known.extend(key for key in (article.url, article.guid) if key)
    fresh = unique_items(parsed.items, known)

    for item in fresh:
        store.save_article(item_to_article(item, feed.id))
    store.update_feed(replace(feed, last_updated=utcnow()))

    logger.info("Refreshed feed '%s': %d new articles", feed.title, len(fresh))
    return len(fresh)


def refresh_all_feeds(
    store: ArticleStore, concurrency: int = 4, timeout: float = DEFAULT_TIMEOUT
) -> Dict[str, int]:
    """Refresh every feed in a thread pool; failures are logged per feed."""
    feeds = store.get_feeds()
    results: Dict[str, int] = {}

    def process_feed(feed: Feed) -> int:
        try:
            return refresh_feed(store, feed, timeout=timeout)
        except Exception:
            logger.exception("Failed to refresh feed %s", feed.url)
            return 0

    with concurrent.futures.ThreadPoolExecutor(max_workers=concurrency) as executor:
        future_to_feed = {executor.submit(process_feed, feed): feed for feed in feeds}
        for future in concurrent.futures.as_completed(future_to_feed):
            results[future_to_feed[future].id] = future.result()

    logger.info(
        "Refreshed %d feeds, %d new articles", len(feeds), sum(results.values())
    )
    return results


def conversion_to_article(
    result: ConversionResult, tags: Optional[Sequence[str]] = None
) -> Article:
    return Article(
        title=result.title,
        author=result.metadata.author or "Unknown",
        publish_date=utcnow(),
        content=result.markdown,
        summary=excerpt(result.markdown),
        url=result.metadata.url,
        is_read=False,
        tags=list(tags) if tags is not None else [URL_FETCHED_TAG],
    )


def import_url(
    store: ArticleStore,
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    extractor: str = "builtin",
) -> str:
    """Convert a web page and save it as an article. Returns the article id."""
    result = convert_url(url, timeout=timeout, extractor=extractor)
    article_id = store.save_article(conversion_to_article(result))
    logger.info("Imported '%s' from %s as %s", result.title, url, article_id)
    return article_id


def convert_batch(
    urls: Iterable[str],
    timeout: float = DEFAULT_TIMEOUT,
    extractor: str = "builtin",
) -> Optional[ConversionResult]:
    """Convert several pages into one combined markdown document."""
    urls = list(urls)
    results: List[ConversionResult] = []
    for url in urls:
        try:
            results.append(convert_url(url, timeout=timeout, extractor=extractor))
        except ReadLaterError as exc:
            logger.warning("Failed to convert %s: %s", url, exc)

    if not results:
        return None

    markdown = "".join(
        f"# {result.title}\n\n{result.markdown}\n\n---\n\n" for result in results
    )
    title = f"Batch Conversion ({len(results)} articles)"
    logger.info("Converted %d of %d URLs", len(results), len(urls))
    return ConversionResult(
        markdown=markdown,
        title=title,
        metadata=PageMetadata(
            title=title,
            author="",
            description=", ".join(result.metadata.url for result in results),
            url="",
        ),
    )


def get_article_or_raise(store: ArticleStore, article_id: str) -> Article:
    article = store.get_article(article_id)
    if article is None:
        raise RecordNotFound(f"Article not found: {article_id}")
    return article


def mark_read(store: ArticleStore, article_id: str, is_read: bool = True) -> Article:
    article = replace(get_article_or_raise(store, article_id), is_read=is_read)
    store.update_article(article)
    return article


def add_tag(store: ArticleStore, article_id: str, tag: str) -> Article:
    """Add a tag unless it is blank or already present."""
    article = get_article_or_raise(store, article_id)
    tag = tag.strip()
    if not tag or tag in article.tags:
        return article
    article = replace(article, tags=article.tags + [tag])
    store.update_article(article)
    return article


def remove_tag(store: ArticleStore, article_id: str, tag: str) -> Article:
    article = get_article_or_raise(store, article_id)
    article = replace(article, tags=[value for value in article.tags if value != tag])
    store.update_article(article)
    return article


def set_notes(store: ArticleStore, article_id: str, notes: str) -> Article:
    article = replace(get_article_or_raise(store, article_id), notes=notes)
    store.update_article(article)
    return article


def add_highlight(
    store: ArticleStore,
    article_id: str,
    text: str,
    color: str = "yellow",
    note: Optional[str] = None,
) -> str:
    """Highlight an excerpt of an article. Blank selections are rejected."""
    text = text.strip()
    if not text:
        raise ValueError("Highlight text must not be empty.")
    return store.add_highlight(
        Highlight(article_id=article_id, text=text, color=color, note=note)
    )


def summarize_article(
    store: ArticleStore,
    article_id: str,
    model: Optional[str] = None,
    prompt_id: Optional[str] = None,
    timeout: float = SUMMARY_TIMEOUT,
) -> str:
    """Summarize a stored article with the saved settings and keep the result."""
    article = get_article_or_raise(store, article_id)
    settings = SummarySettings(store)

    summary = summarize_text(
        article.content,
        api_key=settings.api_key,
        model=model or settings.preferred_model,
        prompt=settings.resolve_prompt(prompt_id),
        timeout=timeout,
    )
    store.update_article(replace(article, summary=summary))
    return summary


def _contains(value: Optional[str], needle: str) -> bool:
    return bool(value) and needle in value.lower()


def filter_articles(
    articles: Iterable[Article],
    query: Optional[str] = None,
    tags: Optional[Sequence[str]] = None,
    sort_by: str = "date",
) -> List[Article]:
    """Filter by text and tags, then sort newest first, by title or by author."""
    if sort_by not in SORT_KEYS:
        raise ValueError(f"Unsupported sort key: {sort_by}")

    filtered = list(articles)
    if query:
        needle = query.lower()
        filtered = [
            article
            for article in filtered
            if _contains(article.title, needle)
            or _contains(article.content, needle)
            or _contains(article.notes, needle)
            or _contains(article.author, needle)
        ]
    if tags:
        wanted = set(tags)
        filtered = [article for article in filtered if wanted.intersection(article.tags)]

    if sort_by == "title":
        filtered.sort(key=lambda article: article.title.lower())
    elif sort_by == "author":
        filtered.sort(key=lambda article: (article.author or "").lower())
    else:
        filtered.sort(key=lambda article: article.publish_date, reverse=True)
    return filtered


def all_tags(articles: Iterable[Article]) -> List[str]:
    """Unique tags across articles, in first-seen order."""
    seen: Dict[str, None] = {}
    for article in articles:
        for tag in article.tags:
            seen.setdefault(tag, None)
    return list(seen)


def article_stats(articles: Iterable[Article]) -> Dict[str, int]:
    articles = list(articles)
    return {
        "total": len(articles),
        "with_notes": sum(1 for article in articles if article.notes),
        "with_highlights": sum(1 for article in articles if article.highlights),
        "tagged": sum(1 for article in articles if article.tags),
    }
