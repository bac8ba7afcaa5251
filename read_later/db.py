"""Database schema and engine helpers for the article library."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, relationship, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.schema import ForeignKey

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class FeedModel(Base):
    """Subscribed feed."""

    __tablename__ = "feeds"

    id = Column(String, primary_key=True)
    url = Column(String, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String, nullable=False, index=True)
    last_updated = Column(DateTime(timezone=True), nullable=False, index=True)
    update_interval = Column(Integer, nullable=False)
    favicon = Column(String, nullable=True)


class ArticleModel(Base):
    """Saved article. ``feed_id`` is a soft reference without a foreign key."""

    __tablename__ = "articles"

    id = Column(String, primary_key=True)
    feed_id = Column(String, nullable=True, index=True)
    title = Column(String, nullable=False)
    author = Column(String, nullable=True)
    publish_date = Column(DateTime(timezone=True), nullable=False, index=True)
    content = Column(Text, nullable=False, default="")
    summary = Column(Text, nullable=True)
    url = Column(String, nullable=False)
    guid = Column(String, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False, index=True)
    notes = Column(Text, nullable=True)

    tags = relationship(
        "ArticleTagModel",
        cascade="all, delete-orphan",
        order_by="ArticleTagModel.position",
        lazy="selectin",
    )


class ArticleTagModel(Base):
    """One row per (article, tag); the primary key forbids duplicates."""

    __tablename__ = "article_tags"

    article_id = Column(
        String, ForeignKey("articles.id", ondelete="CASCADE"), primary_key=True
    )
    tag = Column(String, primary_key=True)
    position = Column(Integer, nullable=False, default=0)

    __table_args__ = (Index("ix_article_tags_tag", "tag"),)


class HighlightModel(Base):
    """Highlight owned by an article. ``article_id`` is checked on insert only."""

    __tablename__ = "highlights"

    id = Column(String, primary_key=True)
    article_id = Column(String, nullable=False, index=True)
    text = Column(Text, nullable=False)
    color = Column(String, nullable=False)
    note = Column(Text, nullable=True)
    position = Column(Integer, nullable=False)


class SettingModel(Base):
    """JSON-encoded value keyed by a fixed name."""

    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)


def init_engine(connection_string: str) -> Engine:
    """Initialize the database engine and create any missing tables."""
    logger.info("Initializing database connection: %s", connection_string)
    if connection_string.startswith("sqlite") and ":memory:" in connection_string:
        # One shared connection so every session sees the same in-memory data.
        engine = create_engine(
            connection_string,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(connection_string)
    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a session factory for the given engine."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo on the way back; treat naive values as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
