"""Rendering helpers for feed and pin listings."""

from __future__ import annotations

import dataclasses
import json
from typing import Any, Dict, Iterable, List, Optional, Set

from .models import FeedState, PinnedArticle
from .templating import get_environment


def render_feed_text(state: FeedState, pinned_ids: Optional[Set[str]] = None) -> str:
    """Render the plain-text feed listing."""
    template = get_environment().get_template("feed.txt.j2")
    return template.render(state=state, pinned_ids=pinned_ids or set())


def render_pins_text(pins: Iterable[PinnedArticle]) -> str:
    """Render the plain-text list of pinned articles."""
    template = get_environment().get_template("pins.txt.j2")
    return template.render(pins=list(pins))


def feed_to_dict(state: FeedState, pinned_ids: Optional[Set[str]] = None) -> Dict[str, Any]:
    pinned_ids = pinned_ids or set()
    items: List[Dict[str, Any]] = []
    for article in state.items:
        data = dataclasses.asdict(article)
        data["pinned"] = article.id in pinned_ids
        items.append(data)
    return {
        "query": state.query,
        "page_offset": state.page_offset,
        "page_size": state.page_size,
        "has_more": state.has_more,
        "phase": state.phase.value,
        "error": state.last_error,
        "items": items,
    }


def pins_to_list(pins: Iterable[PinnedArticle]) -> List[Dict[str, Any]]:
    output = []
    for pin in pins:
        data = dataclasses.asdict(pin)
        data["pinned_at"] = pin.pinned_at.isoformat()
        output.append(data)
    return output


def to_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)
