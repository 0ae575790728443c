import concurrent.futures
from types import SimpleNamespace

import pytest

from world_news import db
from world_news.credentials import CredentialSlot
from world_news.engine import FeedSyncEngine, RetryPolicy
from world_news.fetcher import FetchTask
from world_news.models import Credentials, RawArticle
from world_news.pins import PinStore


class FakeTimer:
    def __init__(self, delay, fn, args):
        self.delay = delay
        self.fn = fn
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class InlineDispatcher:
    """Runs work immediately on the calling thread; timers fire on demand."""

    def __init__(self):
        self.timers = []

    def submit(self, fn, *args):
        future = concurrent.futures.Future()
        try:
            future.set_result(fn(*args))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def call_later(self, delay, fn, *args):
        timer = FakeTimer(delay, fn, args)
        self.timers.append(timer)
        return timer

    def pending_timers(self):
        return [timer for timer in self.timers if not timer.cancelled]

    def fire_timers(self):
        pending, self.timers = self.timers, []
        for timer in pending:
            if not timer.cancelled:
                self.submit(timer.fn, *timer.args)


class ManualFetcher:
    """Records requests; the test decides when and how each one finishes."""

    def __init__(self):
        self.calls = []

    def submit(self, query, offset, page_size, credentials, callback):
        task = FetchTask(f"fake fetch '{query}' start={offset}")
        self.calls.append(
            SimpleNamespace(
                query=query,
                offset=offset,
                page_size=page_size,
                credentials=credentials,
                callback=callback,
                task=task,
            )
        )
        return task

    @property
    def last(self):
        return self.calls[-1]

    def resolve(self, call, articles=None, error=None, ignore_cancel=False):
        if call.task.cancelled and not ignore_cancel:
            return
        call.callback(articles, error)


def make_raw_articles(count, prefix="page", start=0):
    return [
        RawArticle(
            title=f"<b>{prefix}</b> title {i}",
            original_link=f"https://origin.example.com/{prefix}/{i}",
            link=f"https://n.news.example.com/{prefix}/{i}",
            description=f"desc {i} &amp; more",
            published_at_raw="Wed, 9 Feb 2026 10:15:00 +0900",
        )
        for i in range(start, start + count)
    ]


@pytest.fixture
def dispatcher():
    return InlineDispatcher()


@pytest.fixture
def fetcher():
    return ManualFetcher()


@pytest.fixture
def credentials():
    return CredentialSlot(Credentials(client_id="id", client_secret="secret"))


@pytest.fixture
def make_engine(dispatcher, fetcher, credentials):
    def factory(**kwargs):
        kwargs.setdefault("credentials", credentials)
        kwargs.setdefault("retry_policy", RetryPolicy(max_attempts=3))
        return FeedSyncEngine(fetcher=fetcher, dispatcher=dispatcher, **kwargs)

    return factory


@pytest.fixture
def session_factory():
    engine = db.init_engine("sqlite:///:memory:")
    return db.get_session_factory(engine)


@pytest.fixture
def pin_store(session_factory):
    return PinStore(session_factory)
