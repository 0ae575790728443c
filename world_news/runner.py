"""High-level orchestration for one feed session."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .credentials import CredentialSlot
from .dispatch import SerialDispatcher
from .engine import FeedSyncEngine, RetryPolicy
from .fetcher import ArticleFetcher
from .models import FeedState
from .pins import PinStore
from .renderers import (
    feed_to_dict,
    pins_to_list,
    render_feed_text,
    render_pins_text,
    to_json,
)

logger = logging.getLogger(__name__)


@dataclass
class RunConfig:
    """Runtime options for one feed session."""

    query: str
    pages: int = 1
    page_size: int = 10
    pin_positions: List[int] = field(default_factory=list)
    output_format: str = "json"
    endpoint: Optional[str] = None
    client_id_header: Optional[str] = None
    client_secret_header: Optional[str] = None
    request_timeout: float = 10.0
    display_timezone: Optional[str] = None
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    database_connection_string: str = "sqlite:///world_news.db"
    wait_timeout: float = 120.0


@dataclass
class RunResult:
    """Returned data after executing a session."""

    output_text: str
    state: Optional[FeedState] = None
    error: Optional[str] = None


def _load_timezone(name: Optional[str]):
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"Unknown display timezone: {name}") from exc


def _build_fetcher(config: RunConfig) -> ArticleFetcher:
    kwargs = {"timeout": config.request_timeout}
    if config.endpoint:
        kwargs["endpoint"] = config.endpoint
    if config.client_id_header:
        kwargs["client_id_header"] = config.client_id_header
    if config.client_secret_header:
        kwargs["client_secret_header"] = config.client_secret_header
    return ArticleFetcher(**kwargs)


def _wait(engine: FeedSyncEngine, timeout: float) -> FeedState:
    try:
        return engine.wait_until_idle(timeout)
    except TimeoutError as exc:
        raise RuntimeError(f"Feed request did not finish within {timeout:.0f}s") from exc


def _collect_pages(engine: FeedSyncEngine, config: RunConfig) -> FeedState:
    engine.set_query(config.query)
    state = _wait(engine, config.wait_timeout)

    for _ in range(config.pages - 1):
        if state.last_error or not state.has_more:
            break
        if not engine.load_more().result(config.wait_timeout):
            break
        state = _wait(engine, config.wait_timeout)

    return state


def _pin_positions(pin_store: PinStore, state: FeedState, positions: List[int]) -> None:
    for position in positions:
        if position < 1 or position > len(state.items):
            raise ValueError(
                f"Cannot pin article {position}; the feed has {len(state.items)} articles."
            )
        article = state.items[position - 1]
        if not pin_store.pin(article):
            logger.info("Article %d was already pinned", position)


def execute(config: RunConfig) -> RunResult:
    """Load the feed for ``config.query`` and render it."""
    if config.pages < 1:
        raise ValueError("--pages must be at least 1.")
    if config.output_format not in ("json", "text"):
        raise ValueError(f"Unsupported output format: {config.output_format}")

    display_tz = _load_timezone(config.display_timezone)
    pin_store = PinStore.from_connection_string(config.database_connection_string)
    credentials = CredentialSlot.from_env()
    fetcher = _build_fetcher(config)
    dispatcher = SerialDispatcher()
    engine = FeedSyncEngine(
        fetcher=fetcher,
        credentials=credentials,
        dispatcher=dispatcher,
        page_size=config.page_size,
        retry_policy=config.retry_policy,
        display_tz=display_tz,
    )

    try:
        state = _collect_pages(engine, config)
        if state.last_error:
            logger.error("Feed finished with error: %s", state.last_error)
        elif config.pin_positions:
            _pin_positions(pin_store, state, config.pin_positions)
    finally:
        engine.close()
        dispatcher.shutdown()
        fetcher.close()

    pinned_ids = {pin.id for pin in pin_store.list_pinned()}
    if config.output_format == "text":
        output_text = render_feed_text(state, pinned_ids)
    else:
        output_text = to_json(feed_to_dict(state, pinned_ids))

    logger.info("Rendered %d articles for '%s'", len(state.items), state.query)
    return RunResult(output_text=output_text, state=state, error=state.last_error)


def list_pins(
    connection_string: str, output_format: str = "json", unpin_link: Optional[str] = None
) -> RunResult:
    """Render pinned articles, optionally removing one by link first."""
    pin_store = PinStore.from_connection_string(connection_string)

    if unpin_link:
        pinned = pin_store.find_by_link(unpin_link)
        if pinned is None:
            raise ValueError(f"No pinned article with link {unpin_link}")
        pin_store.unpin(pinned.to_display())

    pins = pin_store.list_pinned()
    if output_format == "text":
        output_text = render_pins_text(pins)
    elif output_format == "json":
        output_text = to_json(pins_to_list(pins))
    else:
        raise ValueError(f"Unsupported output format: {output_format}")
    return RunResult(output_text=output_text)
