"""Shared data models for world_news."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple


@dataclass
class Credentials:
    """Client id/secret pair sent with every search request."""

    client_id: str
    client_secret: str

    def is_usable(self) -> bool:
        return bool(self.client_id) and bool(self.client_secret)


@dataclass
class RawArticle:
    """One search result exactly as returned by the API."""

    title: str
    original_link: str
    link: str
    description: str
    published_at_raw: str

    @classmethod
    def from_api(cls, item: dict) -> "RawArticle":
        return cls(
            title=item.get("title") or "",
            original_link=item.get("originallink") or "",
            link=item.get("link") or "",
            description=item.get("description") or "",
            published_at_raw=item.get("pubDate") or "",
        )


def article_id_for_link(link: str) -> str:
    """Return the stable identifier used for an article link."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, link))


@dataclass(frozen=True)
class DisplayArticle:
    """Cleaned, display-ready article handed to the UI and the pin store."""

    id: str
    display_title: str
    display_description: str
    display_date: str
    link: str


class FeedPhase(str, enum.Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"
    LOADING_MORE = "loading_more"
    ERROR = "error"


@dataclass(frozen=True)
class FeedState:
    """Immutable snapshot of the feed published after every change."""

    query: str = ""
    page_offset: int = 1
    page_size: int = 10
    has_more: bool = True
    is_loading: bool = False
    is_loading_more: bool = False
    last_error: Optional[str] = None
    items: Tuple[DisplayArticle, ...] = field(default_factory=tuple)
    phase: FeedPhase = FeedPhase.IDLE


@dataclass
class PinnedArticle:
    """A persisted pin, independent of the current feed contents."""

    id: str
    display_title: str
    display_description: str
    display_date: str
    link: str
    pinned_at: datetime

    def to_display(self) -> DisplayArticle:
        return DisplayArticle(
            id=self.id,
            display_title=self.display_title,
            display_description=self.display_description,
            display_date=self.display_date,
            link=self.link,
        )
