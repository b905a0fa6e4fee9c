"""Shared pytest fixtures for repodoctor tests."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from repodoctor.alerts.collector import ActivityCollector
from repodoctor.alerts.engine import AlertEngine
from repodoctor.alerts.formatting import Payload
from repodoctor.alerts.targets import DeliveryTarget, TransportConfig
from repodoctor.alerts.webhook import Transport
from repodoctor.errors import HostingApiError
from repodoctor.github.client import HostingClient, RepoRef
from repodoctor.store.memory import InMemoryDeliveryHistory, InMemorySettingsStore

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


def iso_days_ago(days: float, now: datetime = NOW) -> str:
    return (now - timedelta(days=days)).strftime("%Y-%m-%dT%H:%M:%SZ")


class FakeHostingClient(HostingClient):
    """Serves canned activity in pages of ``per_page`` and records every call."""

    def __init__(
        self,
        commits: list[dict[str, Any]] | None = None,
        pulls: list[dict[str, Any]] | None = None,
        issues: list[dict[str, Any]] | None = None,
        stale_count: int = 0,
        search_error: Exception | None = None,
        fail_repos: set[str] | None = None,
    ) -> None:
        self.commits = commits or []
        self.pulls = pulls or []
        self.issues = issues or []
        self.stale_count = stale_count
        self.search_error = search_error
        self.fail_repos = fail_repos or set()
        self.calls: dict[str, list[Any]] = {"commits": [], "pulls": [], "issues": [], "search": []}

    def _check(self, repo: RepoRef) -> None:
        if str(repo) in self.fail_repos:
            raise HostingApiError(f"GitHub API /repos/{repo} returned HTTP 502", status=502)

    @staticmethod
    def _page(items: list[dict[str, Any]], per_page: int, page: int) -> list[dict[str, Any]]:
        start = (page - 1) * per_page
        return items[start:start + per_page]

    def list_commits(self, repo, per_page=1, page=1):
        self.calls["commits"].append({"per_page": per_page, "page": page})
        self._check(repo)
        return self._page(self.commits, per_page, page)

    def list_pulls(self, repo, state="open", sort="updated", direction="asc", per_page=100, page=1):
        self.calls["pulls"].append({"state": state, "sort": sort, "direction": direction, "page": page})
        self._check(repo)
        return self._page(self.pulls, per_page, page)

    def list_issues(self, repo, state="all", since=None, sort="updated", direction="desc", per_page=100, page=1):
        self.calls["issues"].append(
            {"state": state, "since": since, "sort": sort, "direction": direction, "page": page}
        )
        self._check(repo)
        return self._page(self.issues, per_page, page)

    def search_issue_count(self, query):
        self.calls["search"].append(query)
        if self.search_error is not None:
            raise self.search_error
        return self.stale_count


class RecordingTransport(Transport):
    def __init__(self, error: Exception | None = None) -> None:
        self.sent: list[tuple[DeliveryTarget, Payload]] = []
        self.error = error

    def send(self, target: DeliveryTarget, payload: Payload) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append((target, payload))


class Clock:
    """Mutable clock for cooldown tests."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def make_commit():
    def _make(days_ago: float, field: str = "author") -> dict[str, Any]:
        return {"sha": "abc123", "commit": {field: {"name": "dev", "date": iso_days_ago(days_ago)}}}

    return _make


@pytest.fixture()
def make_pull():
    def _make(number: int, idle_days: float, title: str | None = None, draft: bool = False) -> dict[str, Any]:
        return {
            "number": number,
            "title": title or f"PR {number}",
            "html_url": f"https://github.com/octo/repo/pull/{number}",
            "state": "open",
            "draft": draft,
            "updated_at": iso_days_ago(idle_days),
        }

    return _make


@pytest.fixture()
def make_issue():
    def _make(
        number: int,
        updated_days_ago: float,
        labels: tuple[str, ...] = ("stale",),
        pull_request: bool = False,
    ) -> dict[str, Any]:
        issue: dict[str, Any] = {
            "number": number,
            "labels": [{"name": name} for name in labels],
            "updated_at": iso_days_ago(updated_days_ago),
            "closed_at": None,
        }
        if pull_request:
            issue["pull_request"] = {"url": f"https://api.github.com/repos/octo/repo/pulls/{number}"}
        return issue

    return _make


@pytest.fixture()
def clock() -> Clock:
    return Clock()


@pytest.fixture()
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture()
def history() -> InMemoryDeliveryHistory:
    return InMemoryDeliveryHistory()


@pytest.fixture()
def settings_store() -> InMemorySettingsStore:
    return InMemorySettingsStore()


@pytest.fixture()
def make_engine(clock, transport, history, settings_store):
    """Return a factory building an AlertEngine around a FakeHostingClient."""

    def _make(
        client: FakeHostingClient | None = None,
        config: TransportConfig | None = None,
    ) -> AlertEngine:
        return AlertEngine(
            collector=ActivityCollector(client or FakeHostingClient()),
            settings_store=settings_store,
            history=history,
            transport=transport,
            transport_config=config or TransportConfig(webhook_url="https://hooks.example.com/alerts"),
            clock=clock,
        )

    return _make
