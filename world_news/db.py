"""Database layer for pinned articles."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine, delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import PinnedArticle

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class PinnedArticleModel(Base):
    """A pinned article row."""

    __tablename__ = "pinned_articles"

    id = Column(String, primary_key=True)
    display_title = Column(Text, nullable=False, default="")
    display_description = Column(Text, nullable=False, default="")
    display_date = Column(String, nullable=False, default="")
    link = Column(String, nullable=False, unique=True)
    pinned_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )


def init_engine(connection_string: Optional[str]) -> Optional[Engine]:
    """Initialize the database engine."""
    if not connection_string:
        return None

    logger.info("Initializing database connection: %s", connection_string)
    kwargs = {}
    if connection_string.startswith("sqlite") and ":memory:" in connection_string:
        # Keep one connection so every session sees the same in-memory database.
        kwargs = {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    engine = create_engine(connection_string, **kwargs)
    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a session factory for the given engine."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def _to_pinned(row: PinnedArticleModel) -> PinnedArticle:
    pinned_at = row.pinned_at
    if pinned_at is not None and pinned_at.tzinfo is None:
        # SQLite drops the offset; values are always written in UTC.
        pinned_at = pinned_at.replace(tzinfo=timezone.utc)
    return PinnedArticle(
        id=row.id,
        display_title=row.display_title,
        display_description=row.display_description,
        display_date=row.display_date,
        link=row.link,
        pinned_at=pinned_at,
    )


def list_pinned(session: Session) -> List[PinnedArticle]:
    """Return all pins, most recently pinned first."""
    stmt = select(PinnedArticleModel).order_by(PinnedArticleModel.pinned_at.desc())
    return [_to_pinned(row) for row in session.execute(stmt).scalars().all()]


def insert_pinned(session: Session, pinned: PinnedArticle) -> None:
    """Insert a pin and commit; rolls back and re-raises on failure."""
    session.add(
        PinnedArticleModel(
            id=pinned.id,
            display_title=pinned.display_title,
            display_description=pinned.display_description,
            display_date=pinned.display_date,
            link=pinned.link,
            pinned_at=pinned.pinned_at,
        )
    )
    try:
        session.commit()
    except Exception:
        session.rollback()
        raise


def delete_pinned(session: Session, article_id: str) -> int:
    """Delete a pin by id and commit; returns the number of rows removed."""
    stmt = delete(PinnedArticleModel).where(PinnedArticleModel.id == article_id)
    try:
        result = session.execute(stmt)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return result.rowcount
