"""Paginated requests against the remote news search endpoint."""

from __future__ import annotations

import concurrent.futures
import json
import logging
import threading
from typing import Callable, List, Optional
from urllib.parse import quote, urlencode

import requests

from .errors import (
    DecodeFailure,
    EmptyResponseBody,
    FetchCancelled,
    FetchError,
    NetworkFailure,
)
from .models import Credentials, RawArticle

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://openapi.naver.com/v1/search/news.json"
DEFAULT_CLIENT_ID_HEADER = "X-Client-Id"
DEFAULT_CLIENT_SECRET_HEADER = "X-Client-Secret"

FetchCallback = Callable[[Optional[List[RawArticle]], Optional[FetchError]], None]


def build_query_string(query: str, offset: int, page_size: int) -> str:
    """Return the encoded query string for one page, recency sorted."""
    return urlencode(
        {"query": query, "display": page_size, "start": offset, "sort": "date"},
        quote_via=quote,
    )


def parse_articles(body: bytes) -> List[RawArticle]:
    """Decode a search response body into raw articles."""
    if not body:
        raise EmptyResponseBody("The server returned no data.")
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise DecodeFailure(f"Could not decode response: {exc}") from exc

    items = payload.get("items") if isinstance(payload, dict) else None
    if not isinstance(items, list):
        raise DecodeFailure("Could not decode response: missing 'items' list")

    articles: List[RawArticle] = []
    for item in items:
        if not isinstance(item, dict):
            raise DecodeFailure("Could not decode response: item is not an object")
        articles.append(RawArticle.from_api(item))
    return articles


class FetchTask:
    """Handle for one background page request."""

    def __init__(self, description: str):
        self.description = description
        self._cancelled = threading.Event()
        self._future: Optional[concurrent.futures.Future] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Drop the request; its callback will not be invoked."""
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        if self._future is not None:
            self._future.cancel()
        logger.debug("Cancelled %s", self.description)

    def raise_if_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise FetchCancelled(self.description)


class ArticleFetcher:
    """Issues one search request per page and tracks it as a ``FetchTask``."""

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = 10.0,
        client_id_header: str = DEFAULT_CLIENT_ID_HEADER,
        client_secret_header: str = DEFAULT_CLIENT_SECRET_HEADER,
        session: Optional[requests.Session] = None,
        max_workers: int = 2,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.client_id_header = client_id_header
        self.client_secret_header = client_secret_header
        self._session = session or requests.Session()
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="article-fetch"
        )

    def fetch_page(
        self, query: str, offset: int, page_size: int, credentials: Credentials
    ) -> List[RawArticle]:
        """Fetch one page of results synchronously."""
        if not query or not query.strip():
            raise ValueError("Query must be provided")
        if offset < 1:
            raise ValueError("offset must be >= 1")
        if page_size <= 0:
            raise ValueError("page_size must be positive")

        url = f"{self.endpoint}?{build_query_string(query, offset, page_size)}"
        headers = {
            self.client_id_header: credentials.client_id,
            self.client_secret_header: credentials.client_secret,
        }
        logger.info("Fetching '%s' (start=%d, display=%d)", query, offset, page_size)
        try:
            response = self._session.get(url, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Request for '%s' failed: %s", query, exc)
            raise NetworkFailure(f"Network error: {exc}") from exc

        articles = parse_articles(response.content)
        logger.info("Received %d articles for '%s'", len(articles), query)
        return articles

    def submit(
        self,
        query: str,
        offset: int,
        page_size: int,
        credentials: Credentials,
        callback: FetchCallback,
    ) -> FetchTask:
        """Run ``fetch_page`` in the background and report through ``callback``.

        ``callback(articles, error)`` is called once with exactly one of the
        two set, unless the task is cancelled first.
        """
        task = FetchTask(f"fetch '{query}' start={offset}")

        def run() -> None:
            articles: Optional[List[RawArticle]] = None
            error: Optional[FetchError] = None
            try:
                task.raise_if_cancelled()
                try:
                    articles = self.fetch_page(query, offset, page_size, credentials)
                except FetchError as exc:
                    error = exc
                except Exception as exc:  # noqa: BLE001
                    logger.exception("Unexpected error in %s", task.description)
                    error = NetworkFailure(f"Network error: {exc}")
                task.raise_if_cancelled()
            except FetchCancelled:
                logger.debug("Discarding result of cancelled %s", task.description)
                return
            callback(articles, error)

        task._future = self._executor.submit(run)
        return task

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._session.close()
