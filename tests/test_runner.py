import json
from types import SimpleNamespace
from urllib.parse import parse_qs, urlparse

import pytest
import requests

import world_news.runner as runner
from world_news.credentials import CLIENT_ID_ENV, CLIENT_SECRET_ENV
from world_news.engine import RetryPolicy
from world_news.fetcher import ArticleFetcher
from world_news.runner import RunConfig, execute, list_pins


class PagedSession:
    def __init__(self, total=14, error=None):
        self.total = total
        self.error = error
        self.starts = []

    def get(self, url, headers=None, timeout=None):
        if self.error is not None:
            raise self.error
        params = parse_qs(urlparse(url).query)
        start = int(params["start"][0])
        display = int(params["display"][0])
        self.starts.append(start)
        count = max(0, min(display, self.total - (start - 1)))
        items = [
            {
                "title": f"<b>Story</b> {start + i}",
                "originallink": "",
                "link": f"https://n.news/{start + i}",
                "description": "desc &amp; more",
                "pubDate": "Wed, 9 Feb 2026 10:15:00 +0900",
            }
            for i in range(count)
        ]
        body = json.dumps({"items": items}).encode("utf-8")
        return SimpleNamespace(content=body, raise_for_status=lambda: None)

    def close(self):
        pass


@pytest.fixture
def env_credentials(monkeypatch):
    monkeypatch.setenv(CLIENT_ID_ENV, "id")
    monkeypatch.setenv(CLIENT_SECRET_ENV, "secret")


def _use_session(monkeypatch, session):
    monkeypatch.setattr(runner, "_build_fetcher", lambda config: ArticleFetcher(session=session))


def _config(tmp_path, **kwargs):
    kwargs.setdefault("query", "세계 뉴스")
    kwargs.setdefault("database_connection_string", f"sqlite:///{tmp_path / 'pins.db'}")
    kwargs.setdefault("wait_timeout", 10.0)
    return RunConfig(**kwargs)


def test_execute_loads_requested_pages(monkeypatch, tmp_path, env_credentials):
    session = PagedSession(total=14)
    _use_session(monkeypatch, session)

    result = execute(_config(tmp_path, pages=3))

    payload = json.loads(result.output_text)
    assert session.starts == [1, 11]
    assert len(payload["items"]) == 14
    assert payload["has_more"] is False
    assert payload["items"][0]["display_title"] == "Story 1"
    assert payload["items"][0]["display_description"] == "desc & more"
    assert payload["items"][0]["display_date"] == "2026.02.09 10:15"
    assert result.error is None


def test_execute_pins_positions_and_lists_them(monkeypatch, tmp_path, env_credentials):
    _use_session(monkeypatch, PagedSession(total=5))
    config = _config(tmp_path, pin_positions=[2, 4], output_format="text")

    result = execute(config)

    assert "[pinned] Story 2" in result.output_text
    assert "[pinned] Story 4" in result.output_text

    pins = json.loads(list_pins(config.database_connection_string).output_text)
    assert sorted(pin["link"] for pin in pins) == ["https://n.news/2", "https://n.news/4"]

    list_pins(config.database_connection_string, unpin_link="https://n.news/2")
    pins = json.loads(list_pins(config.database_connection_string).output_text)
    assert [pin["link"] for pin in pins] == ["https://n.news/4"]


def test_execute_rejects_out_of_range_pin(monkeypatch, tmp_path, env_credentials):
    _use_session(monkeypatch, PagedSession(total=3))

    with pytest.raises(ValueError, match="Cannot pin article 7"):
        execute(_config(tmp_path, pin_positions=[7]))


def test_execute_reports_network_error(monkeypatch, tmp_path, env_credentials):
    _use_session(monkeypatch, PagedSession(error=requests.ConnectionError("offline")))

    result = execute(_config(tmp_path, pages=2))

    payload = json.loads(result.output_text)
    assert "offline" in result.error
    assert payload["phase"] == "error"
    assert payload["items"] == []


def test_execute_gives_up_without_credentials(monkeypatch, tmp_path):
    monkeypatch.delenv(CLIENT_ID_ENV, raising=False)
    monkeypatch.delenv(CLIENT_SECRET_ENV, raising=False)
    session = PagedSession()
    _use_session(monkeypatch, session)

    result = execute(
        _config(tmp_path, retry_policy=RetryPolicy(initial_delay=0.01, max_attempts=2))
    )

    assert result.error == "API credentials are not available."
    assert session.starts == []


def test_execute_validates_options(tmp_path):
    with pytest.raises(ValueError):
        execute(_config(tmp_path, pages=0))
    with pytest.raises(ValueError):
        execute(_config(tmp_path, output_format="xml"))
    with pytest.raises(ValueError):
        execute(_config(tmp_path, display_timezone="Mars/Olympus"))


def test_list_pins_unknown_link(tmp_path):
    with pytest.raises(ValueError):
        list_pins(f"sqlite:///{tmp_path / 'pins.db'}", unpin_link="https://n.news/none")
