"""Persistent store for feeds, articles, highlights and settings."""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections import defaultdict
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from . import db
from .db import ArticleModel, ArticleTagModel, FeedModel, HighlightModel, SettingModel
from .exceptions import NotInitialized, RecordNotFound
from .models import Article, Feed, Highlight

logger = logging.getLogger(__name__)


class DeletePolicy(str, Enum):
    """What happens to dependent records when their owner is deleted."""

    ORPHAN = "orphan"
    CASCADE = "cascade"


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def _feed_from_model(model: FeedModel) -> Feed:
    return Feed(
        id=model.id,
        url=model.url,
        title=model.title,
        description=model.description or "",
        category=model.category,
        last_updated=db.as_utc(model.last_updated),
        update_interval=model.update_interval,
        favicon=model.favicon,
    )


def _apply_feed(model: FeedModel, feed: Feed) -> None:
    model.url = feed.url
    model.title = feed.title
    model.description = feed.description or ""
    model.category = feed.category
    model.last_updated = db.as_utc(feed.last_updated)
    model.update_interval = feed.update_interval
    model.favicon = feed.favicon


def _highlight_from_model(model: HighlightModel) -> Highlight:
    return Highlight(
        id=model.id,
        article_id=model.article_id,
        text=model.text,
        color=model.color,
        note=model.note,
        position=model.position,
    )


def _article_from_model(model: ArticleModel, highlights: List[Highlight]) -> Article:
    return Article(
        id=model.id,
        feed_id=model.feed_id,
        title=model.title,
        author=model.author,
        publish_date=db.as_utc(model.publish_date),
        content=model.content or "",
        summary=model.summary,
        url=model.url,
        guid=model.guid,
        is_read=bool(model.is_read),
        tags=[row.tag for row in model.tags],
        notes=model.notes,
        highlights=highlights,
    )


def _apply_article(model: ArticleModel, article: Article) -> None:
    model.feed_id = article.feed_id
    model.title = article.title
    model.author = article.author
    model.publish_date = db.as_utc(article.publish_date)
    model.content = article.content
    model.summary = article.summary
    model.url = article.url
    model.guid = article.guid
    model.is_read = article.is_read
    model.notes = article.notes

    existing = {row.tag: row for row in model.tags}
    rows = []
    for position, tag in enumerate(dict.fromkeys(article.tags)):
        row = existing.get(tag) or ArticleTagModel(tag=tag)
        row.position = position
        rows.append(row)
    model.tags = rows


def _matches(article: Article, needle: str) -> bool:
    fields = (article.title, article.content, article.summary or "")
    if any(needle in value.lower() for value in fields):
        return True
    return any(needle in tag.lower() for tag in article.tags)


class ArticleStore:
    """SQLAlchemy-backed store with an explicit ``init()`` lifecycle.

    Sessions are serialized through a re-entrant lock so one store can be
    shared by worker threads, including an in-memory database that lives on
    a single connection. Nothing is transactional across calls: saving a
    feed and then its articles is several independent commits.
    """

    def __init__(
        self,
        connection_string: str = "sqlite:///:memory:",
        delete_policy: DeletePolicy = DeletePolicy.ORPHAN,
    ):
        self.connection_string = connection_string
        self.delete_policy = DeletePolicy(delete_policy)
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker[Session]] = None
        self._lock = threading.RLock()

    @property
    def is_ready(self) -> bool:
        return self._session_factory is not None

    def init(self) -> None:
        """Create the schema if needed. Safe to call more than once."""
        with self._lock:
            if self._session_factory is not None:
                return
            self._engine = db.init_engine(self.connection_string)
            self._session_factory = db.get_session_factory(self._engine)
        logger.info("Article store ready (delete policy: %s)", self.delete_policy.value)

    def close(self) -> None:
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self._session_factory = None

    def _session(self) -> Session:
        if self._session_factory is None:
            raise NotInitialized("Database not initialized")
        return self._session_factory()

    @contextmanager
    def _read(self) -> Iterator[Session]:
        session = self._session()
        with self._lock, session:
            yield session

    @contextmanager
    def _write(self) -> Iterator[Session]:
        session = self._session()
        with self._lock, session:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    # Articles

    def save_article(self, article: Article) -> str:
        """Persist a new article under a freshly generated id and return it."""
        article_id = new_id("article")
        with self._write() as session:
            model = ArticleModel(id=article_id)
            _apply_article(model, article)
            session.add(model)
            self._replace_highlights(session, article_id, article.highlights)
        logger.debug("Saved article %s (%s)", article_id, article.url)
        return article_id

    def get_articles(self) -> List[Article]:
        """Return every article; ordering is unspecified."""
        with self._read() as session:
            models = session.execute(select(ArticleModel)).scalars().all()
            return self._to_articles(session, models, all_rows=True)

    def get_article(self, article_id: str) -> Optional[Article]:
        with self._read() as session:
            model = session.get(ArticleModel, article_id)
            if model is None:
                return None
            return self._to_articles(session, [model])[0]

    def update_article(self, article: Article) -> None:
        """Overwrite the article with the same id, inserting it when absent."""
        if not article.id:
            raise ValueError("update_article requires an article id.")

        with self._write() as session:
            model = session.get(ArticleModel, article.id)
            if model is None:
                logger.debug("Article %s not found; inserting", article.id)
                model = ArticleModel(id=article.id)
                session.add(model)
            _apply_article(model, article)
            self._replace_highlights(session, article.id, article.highlights)

    def delete_article(self, article_id: str) -> None:
        """Delete an article; its highlights go too only under CASCADE."""
        with self._write() as session:
            self._delete_articles(session, [article_id])
        logger.debug("Deleted article %s", article_id)

    def get_articles_by_feed(self, feed_id: str) -> List[Article]:
        stmt = select(ArticleModel).where(ArticleModel.feed_id == feed_id)
        return self._query_articles(stmt)

    def get_articles_by_read_state(self, is_read: bool) -> List[Article]:
        stmt = select(ArticleModel).where(ArticleModel.is_read == is_read)
        return self._query_articles(stmt)

    def get_articles_by_tag(self, tag: str) -> List[Article]:
        stmt = (
            select(ArticleModel)
            .join(ArticleTagModel, ArticleTagModel.article_id == ArticleModel.id)
            .where(ArticleTagModel.tag == tag)
        )
        return self._query_articles(stmt)

    def search_articles(self, query: str) -> List[Article]:
        """Case-insensitive substring search over title, content, summary and tags."""
        needle = query.lower()
        matches = [article for article in self.get_articles() if _matches(article, needle)]
        logger.debug("Search for %r matched %d articles", query, len(matches))
        return matches

    def _query_articles(self, stmt) -> List[Article]:
        with self._read() as session:
            models = session.execute(stmt).scalars().all()
            return self._to_articles(session, models)

    def _to_articles(
        self, session: Session, models: Iterable[ArticleModel], all_rows: bool = False
    ) -> List[Article]:
        models = list(models)
        if not models:
            return []
        ids = None if all_rows else [model.id for model in models]
        highlights = self._load_highlights(session, ids)
        return [_article_from_model(model, highlights.get(model.id, [])) for model in models]

    def _delete_articles(self, session: Session, article_ids: List[str]) -> None:
        for article_id in article_ids:
            model = session.get(ArticleModel, article_id)
            if model is not None:
                session.delete(model)
        if self.delete_policy is DeletePolicy.CASCADE and article_ids:
            session.execute(
                delete(HighlightModel).where(HighlightModel.article_id.in_(article_ids))
            )

    # Feeds

    def save_feed(self, feed: Feed) -> str:
        """Persist a new feed under a freshly generated id and return it."""
        feed_id = new_id("feed")
        with self._write() as session:
            model = FeedModel(id=feed_id)
            _apply_feed(model, feed)
            session.add(model)
        logger.debug("Saved feed %s (%s)", feed_id, feed.url)
        return feed_id

    def get_feeds(self) -> List[Feed]:
        with self._read() as session:
            models = session.execute(select(FeedModel)).scalars().all()
            return [_feed_from_model(model) for model in models]

    def get_feed(self, feed_id: str) -> Optional[Feed]:
        with self._read() as session:
            model = session.get(FeedModel, feed_id)
            return _feed_from_model(model) if model else None

    def get_feeds_by_category(self, category: str) -> List[Feed]:
        with self._read() as session:
            stmt = select(FeedModel).where(FeedModel.category == category)
            return [_feed_from_model(model) for model in session.execute(stmt).scalars()]

    def update_feed(self, feed: Feed) -> None:
        """Overwrite the feed with the same id, inserting it when absent."""
        if not feed.id:
            raise ValueError("update_feed requires a feed id.")

        with self._write() as session:
            model = session.get(FeedModel, feed.id)
            if model is None:
                model = FeedModel(id=feed.id)
                session.add(model)
            _apply_feed(model, feed)

    def delete_feed(self, feed_id: str) -> None:
        """Delete a feed; its articles go too only under CASCADE."""
        with self._write() as session:
            model = session.get(FeedModel, feed_id)
            if model is not None:
                session.delete(model)
            if self.delete_policy is DeletePolicy.CASCADE:
                stmt = select(ArticleModel.id).where(ArticleModel.feed_id == feed_id)
                article_ids = list(session.execute(stmt).scalars())
                self._delete_articles(session, article_ids)
                logger.info(
                    "Deleted feed %s with %d articles", feed_id, len(article_ids)
                )

    # Highlights

    def add_highlight(self, highlight: Highlight) -> str:
        """Attach a highlight to an existing article and return its id."""
        with self._write() as session:
            if not highlight.article_id or session.get(
                ArticleModel, highlight.article_id
            ) is None:
                raise RecordNotFound(f"Article not found: {highlight.article_id}")

            position = highlight.position
            if position is None:
                stmt = select(func.max(HighlightModel.position)).where(
                    HighlightModel.article_id == highlight.article_id
                )
                current = session.execute(stmt).scalar()
                position = 0 if current is None else current + 1

            highlight_id = highlight.id or new_id("highlight")
            session.add(
                HighlightModel(
                    id=highlight_id,
                    article_id=highlight.article_id,
                    text=highlight.text,
                    color=highlight.color,
                    note=highlight.note,
                    position=position,
                )
            )
        return highlight_id

    def get_highlights(self, article_id: str) -> List[Highlight]:
        with self._read() as session:
            return self._load_highlights(session, [article_id]).get(article_id, [])

    def delete_highlight(self, highlight_id: str) -> None:
        with self._write() as session:
            session.execute(delete(HighlightModel).where(HighlightModel.id == highlight_id))

    def _load_highlights(
        self, session: Session, article_ids: Optional[List[str]]
    ) -> Dict[str, List[Highlight]]:
        stmt = select(HighlightModel).order_by(
            HighlightModel.article_id, HighlightModel.position
        )
        if article_ids is not None:
            stmt = stmt.where(HighlightModel.article_id.in_(article_ids))

        grouped: Dict[str, List[Highlight]] = defaultdict(list)
        for model in session.execute(stmt).scalars():
            grouped[model.article_id].append(_highlight_from_model(model))
        return grouped

    def _replace_highlights(
        self, session: Session, article_id: str, highlights: Iterable[Highlight]
    ) -> None:
        session.execute(delete(HighlightModel).where(HighlightModel.article_id == article_id))
        for index, highlight in enumerate(highlights):
            session.add(
                HighlightModel(
                    id=highlight.id or new_id("highlight"),
                    article_id=article_id,
                    text=highlight.text,
                    color=highlight.color,
                    note=highlight.note,
                    position=index if highlight.position is None else highlight.position,
                )
            )

    # Settings

    def get_setting(self, key: str, default: Any = None) -> Any:
        with self._read() as session:
            model = session.get(SettingModel, key)
            if model is None:
                return default
            return json.loads(model.value)

    def set_setting(self, key: str, value: Any) -> None:
        with self._write() as session:
            session.merge(SettingModel(key=key, value=json.dumps(value)))
