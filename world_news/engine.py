"""Pagination and deduplication state machine for the article feed."""

from __future__ import annotations

import concurrent.futures
import dataclasses
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import tzinfo
from typing import Any, Callable, Iterable, List, Optional, Protocol

from .credentials import CredentialSource
from .dates import format_date
from .errors import CredentialsUnavailable, FetchError, WorldNewsError
from .fetcher import FetchCallback, FetchTask
from .models import (
    Credentials,
    DisplayArticle,
    FeedPhase,
    FeedState,
    RawArticle,
    article_id_for_link,
)
from .text import clean_html

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10

Listener = Callable[[FeedState], None]


class Dispatcher(Protocol):
    def submit(self, fn: Callable[..., Any], *args: Any) -> concurrent.futures.Future: ...

    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any) -> Any: ...


class PageFetcher(Protocol):
    def submit(
        self,
        query: str,
        offset: int,
        page_size: int,
        credentials: Credentials,
        callback: FetchCallback,
    ) -> FetchTask: ...


@dataclass
class RetryPolicy:
    """Bounded backoff used while waiting for credentials."""

    initial_delay: float = 0.5
    backoff: float = 1.5
    max_delay: float = 5.0
    max_attempts: int = 20

    def delay_for(self, attempt: int) -> float:
        delay = self.initial_delay * (self.backoff ** max(attempt - 1, 0))
        return min(delay, self.max_delay)


@dataclass
class _Request:
    query: str
    offset: int
    refresh: bool
    attempts: int = 0
    task: Optional[FetchTask] = None
    retry_handle: Any = None


def normalize_article(raw: RawArticle, tz: Optional[tzinfo] = None) -> DisplayArticle:
    """Build the display form of a raw search result."""
    article_id = article_id_for_link(raw.link) if raw.link else str(uuid.uuid4())
    return DisplayArticle(
        id=article_id,
        display_title=clean_html(raw.title),
        display_description=clean_html(raw.description),
        display_date=format_date(raw.published_at_raw, tz),
        link=raw.link,
    )


def merge_page(
    existing: Iterable[DisplayArticle], page: Iterable[DisplayArticle]
) -> List[DisplayArticle]:
    """Append ``page`` to ``existing``, skipping links already present."""
    merged = list(existing)
    seen_links = {article.link for article in merged}
    for article in page:
        if article.link in seen_links:
            continue
        merged.append(article)
        seen_links.add(article.link)
    return merged


class FeedSyncEngine:
    """Owns the feed state; every mutation runs on the dispatcher.

    Public methods may be called from any thread. They enqueue work on the
    dispatcher and return a future for it.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        credentials: CredentialSource,
        dispatcher: Dispatcher,
        page_size: int = DEFAULT_PAGE_SIZE,
        retry_policy: Optional[RetryPolicy] = None,
        display_tz: Optional[tzinfo] = None,
    ):
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._fetcher = fetcher
        self._credentials = credentials
        self._dispatcher = dispatcher
        self._retry_policy = retry_policy or RetryPolicy()
        self._display_tz = display_tz
        self._state = FeedState(page_size=page_size)
        self._current: Optional[_Request] = None
        # Query whose first page was applied; load_more only extends that feed.
        self._loaded_query: Optional[str] = None
        self._listeners: List[Listener] = []
        self._listeners_lock = threading.Lock()
        self._idle = threading.Condition()

        credentials.add_listener(self._credentials_arrived)

    @property
    def state(self) -> FeedState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for state snapshots; returns an unsubscriber."""
        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def set_query(self, query: str) -> concurrent.futures.Future:
        if not query or not query.strip():
            raise ValueError("Query must be provided")
        return self._dispatcher.submit(self._start_refresh, query)

    def refresh(self) -> concurrent.futures.Future:
        return self._dispatcher.submit(self._refresh_current)

    def load_more(self) -> concurrent.futures.Future:
        return self._dispatcher.submit(self._start_load_more)

    def wait_until_idle(self, timeout: Optional[float] = None) -> FeedState:
        """Block until no request is outstanding and return the state."""
        self._dispatcher.submit(lambda: None).result(timeout)
        with self._idle:
            if not self._idle.wait_for(lambda: self._current is None, timeout):
                raise TimeoutError("Feed did not become idle in time")
        return self._state

    def close(self) -> None:
        self._dispatcher.submit(self._cancel_outstanding).result()

    # Everything below runs on the dispatcher.

    def _refresh_current(self) -> None:
        if not self._state.query:
            logger.debug("Refresh ignored; no query set")
            return
        self._start_refresh(self._state.query)

    def _start_refresh(self, query: str) -> None:
        self._cancel_outstanding()
        logger.info("Loading feed for '%s'", query)
        self._update(
            query=query,
            page_offset=1,
            has_more=True,
            is_loading=True,
            is_loading_more=False,
            last_error=None,
            phase=FeedPhase.REFRESHING,
        )
        self._issue(_Request(query=query, offset=1, refresh=True))

    def _start_load_more(self) -> bool:
        state = self._state
        if (
            not state.query
            or not state.has_more
            or state.is_loading
            or state.is_loading_more
            or self._current is not None
            or state.query != self._loaded_query
        ):
            logger.debug(
                "load_more ignored (has_more=%s, loading=%s, loading_more=%s, busy=%s, loaded=%s)",
                state.has_more,
                state.is_loading,
                state.is_loading_more,
                self._current is not None,
                state.query == self._loaded_query,
            )
            return False

        offset = state.page_offset + state.page_size
        logger.info("Loading more for '%s' (start=%d)", state.query, offset)
        self._update(
            page_offset=offset,
            is_loading_more=True,
            last_error=None,
            phase=FeedPhase.LOADING_MORE,
        )
        self._issue(_Request(query=state.query, offset=offset, refresh=False))
        return True

    def _issue(self, request: _Request) -> None:
        self._set_current(request)
        credentials = self._credentials.current()
        if credentials is None or not credentials.is_usable():
            self._defer(request)
            return

        def on_done(articles, error) -> None:
            self._dispatcher.submit(self._apply_result, request, articles, error)

        request.task = self._fetcher.submit(
            request.query,
            request.offset,
            self._state.page_size,
            credentials,
            on_done,
        )

    def _defer(self, request: _Request) -> None:
        request.attempts += 1
        policy = self._retry_policy
        if request.attempts > policy.max_attempts:
            logger.error(
                "Credentials still unavailable after %d attempts", policy.max_attempts
            )
            self._fail(request, CredentialsUnavailable("API credentials are not available."))
            return
        delay = policy.delay_for(request.attempts)
        logger.warning(
            "API credentials not loaded yet; retrying in %.2fs (attempt %d/%d)",
            delay,
            request.attempts,
            policy.max_attempts,
        )
        request.retry_handle = self._dispatcher.call_later(delay, self._retry, request)

    def _retry(self, request: _Request) -> None:
        if request is not self._current or request.task is not None:
            return
        request.retry_handle = None
        self._issue(request)

    def _credentials_arrived(self, credentials: Credentials) -> None:
        self._dispatcher.submit(self._resume_waiting)

    def _resume_waiting(self) -> None:
        request = self._current
        if request is None or request.task is not None:
            return
        if request.retry_handle is not None:
            request.retry_handle.cancel()
            request.retry_handle = None
        logger.info("Credentials arrived; resuming request for '%s'", request.query)
        self._issue(request)

    def _apply_result(
        self,
        request: _Request,
        articles: Optional[List[RawArticle]],
        error: Optional[FetchError],
    ) -> None:
        if request is not self._current:
            logger.debug("Dropping stale result for '%s'", request.query)
            return

        if error is not None:
            self._fail(request, error)
            return

        articles = articles or []
        page = [normalize_article(raw, self._display_tz) for raw in articles]
        if request.refresh:
            items = merge_page([], page)
        else:
            items = merge_page(self._state.items, page)
        has_more = len(articles) >= self._state.page_size

        logger.info(
            "Feed '%s' now has %d items (page returned %d, has_more=%s)",
            request.query,
            len(items),
            len(articles),
            has_more,
        )
        if request.refresh:
            self._loaded_query = request.query
        self._set_current(None)
        self._update(
            items=tuple(items),
            has_more=has_more,
            is_loading=False,
            is_loading_more=False,
            last_error=None,
            phase=FeedPhase.IDLE,
        )

    def _fail(self, request: _Request, error: WorldNewsError) -> None:
        logger.warning(
            "Fetch for '%s' failed (%s): %s",
            request.query,
            error.__class__.__name__,
            error,
        )
        self._set_current(None)
        self._update(
            is_loading=False,
            is_loading_more=False,
            last_error=str(error) or error.__class__.__name__,
            phase=FeedPhase.ERROR,
        )

    def _cancel_outstanding(self) -> None:
        request = self._current
        if request is None:
            return
        if request.task is not None:
            request.task.cancel()
        if request.retry_handle is not None:
            request.retry_handle.cancel()
            request.retry_handle = None
        self._set_current(None)
        if self._state.is_loading or self._state.is_loading_more:
            self._update(is_loading=False, is_loading_more=False, phase=FeedPhase.IDLE)

    def _set_current(self, request: Optional[_Request]) -> None:
        with self._idle:
            self._current = request
            self._idle.notify_all()

    def _update(self, **changes) -> None:
        self._state = dataclasses.replace(self._state, **changes)
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(self._state)
            except Exception:
                logger.exception("Feed listener failed")
