"""Persistent set of pinned articles."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from . import db
from .errors import StorageFailure
from .models import DisplayArticle, PinnedArticle

logger = logging.getLogger(__name__)


class PinStore:
    """Pinned articles keyed by id, mirrored in memory.

    Each change is committed to the database before the in-memory copy is
    touched, so a storage failure leaves both sides as they were.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory
        self._lock = threading.RLock()
        self._pinned: Dict[str, PinnedArticle] = {}
        self.reload()

    @classmethod
    def from_connection_string(cls, connection_string: str) -> "PinStore":
        engine = db.init_engine(connection_string)
        if engine is None:
            raise ValueError("A database connection string is required for pins.")
        return cls(db.get_session_factory(engine))

    def reload(self) -> None:
        """Re-read pins from storage."""
        with self._lock:
            try:
                with self._session_factory() as session:
                    pins = db.list_pinned(session)
            except SQLAlchemyError as exc:
                raise StorageFailure(f"Could not load pinned articles: {exc}") from exc
            self._pinned = {pin.id: pin for pin in pins}
            logger.debug("Loaded %d pinned articles", len(self._pinned))

    def pin(self, article: DisplayArticle) -> bool:
        """Pin ``article``; returns False when it was already pinned."""
        with self._lock:
            if self._is_pinned_locked(article):
                logger.info("Article already pinned: %s", article.link)
                return False

            pinned = PinnedArticle(
                id=article.id,
                display_title=article.display_title,
                display_description=article.display_description,
                display_date=article.display_date,
                link=article.link,
                pinned_at=datetime.now(timezone.utc),
            )
            try:
                with self._session_factory() as session:
                    db.insert_pinned(session, pinned)
            except SQLAlchemyError as exc:
                logger.error("Failed to pin %s: %s", article.link, exc)
                raise StorageFailure(f"Could not pin article: {exc}") from exc

            self._pinned[pinned.id] = pinned
            logger.info("Pinned %s", article.link)
            return True

    def unpin(self, article: DisplayArticle) -> bool:
        """Remove the pin for ``article``; returns False when it was not pinned."""
        with self._lock:
            if article.id not in self._pinned:
                logger.debug("Article not pinned: %s", article.link)
                return False
            try:
                with self._session_factory() as session:
                    db.delete_pinned(session, article.id)
            except SQLAlchemyError as exc:
                logger.error("Failed to unpin %s: %s", article.link, exc)
                raise StorageFailure(f"Could not unpin article: {exc}") from exc

            self._pinned.pop(article.id, None)
            logger.info("Unpinned %s", article.link)
            self.reload()
            return True

    def list_pinned(self) -> List[PinnedArticle]:
        """Return pins ordered by pin time, newest first."""
        with self._lock:
            return sorted(
                self._pinned.values(), key=lambda pin: pin.pinned_at, reverse=True
            )

    def is_pinned(self, article: DisplayArticle) -> bool:
        with self._lock:
            return article.id in self._pinned

    def find_by_link(self, link: str):
        with self._lock:
            for pin in self._pinned.values():
                if pin.link == link:
                    return pin
            return None

    def _is_pinned_locked(self, article: DisplayArticle) -> bool:
        if article.id in self._pinned:
            return True
        return any(pin.link == article.link for pin in self._pinned.values())
