"""Activity collector: bounded reads of commits, pull requests and issues.

Four independent reads per repository:

    1. the single most recent commit
    2. open pull requests, oldest-updated first, at most 5 pages of 100
    3. issues of any state updated in the last 2 × staleWindowDays,
       newest-updated first, at most 10 pages of 100
    4. a search count of open issues carrying the stale label

Caps are page counts, not item counts, so the worst case against a huge
repository is fixed. Pagination inside a stream is sequential; the streams
themselves run concurrently on a small thread pool.

Only the search count may fail softly (logged, reported as ``None``). Any
other failure propagates and no snapshot is returned.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from ..errors import HostingApiError
from ..github.client import HostingClient, RepoRef
from .settings import AlertSettings

logger = logging.getLogger(__name__)

PER_PAGE = 100
MAX_OPEN_PR_PAGES = 5
MAX_STALE_SCAN_PAGES = 10
MAX_CONCURRENT_STREAMS = 3

_ISO_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


@dataclass
class ActivitySnapshot:
    """Raw activity for one repository, as returned by the hosting API.

    Attributes:
        last_commit_at:  Author (else committer) date of the newest commit.
        open_pulls:      Open pull requests, oldest-updated first.
        stale_issues:    Stale-labeled, non-PR issues updated since
                         ``since``, newest-updated first.
        stale_open_now:  Open stale issue count, None when the search failed.
        since:           Lower bound used for the issue scan.
    """

    last_commit_at: str | None
    open_pulls: list[dict[str, Any]] = field(default_factory=list)
    stale_issues: list[dict[str, Any]] = field(default_factory=list)
    stale_open_now: int | None = None
    since: str = ""


def paginate(fetch: Callable[[int], list[dict[str, Any]]], max_pages: int) -> list[dict[str, Any]]:
    """Call fetch(page) for pages 1..max_pages, stopping at a short page."""
    items: list[dict[str, Any]] = []
    for page in range(1, max_pages + 1):
        batch = fetch(page)
        if not batch:
            break
        items.extend(batch)
        if len(batch) < PER_PAGE:
            break
    return items


def label_names(labels: list[Any]) -> list[str]:
    """Normalize GitHub labels (strings or ``{"name": ...}`` objects)."""
    names: list[str] = []
    for label in labels or []:
        name = label if isinstance(label, str) else (label or {}).get("name") or ""
        if name:
            names.append(name)
    return names


def stale_search_query(repo: RepoRef, label: str) -> str:
    escaped = label.replace('"', '\\"')
    return f'repo:{repo} is:issue is:open label:"{escaped}"'


class ActivityCollector:
    """Fetch the bounded activity windows the rule evaluator needs.

    Args:
        client:       HostingClient implementation.
        stale_label:  Label that marks an issue as stale.
        max_workers:  Concurrent streams (default 3).
    """

    def __init__(
        self,
        client: HostingClient,
        stale_label: str = "stale",
        max_workers: int = MAX_CONCURRENT_STREAMS,
    ) -> None:
        self._client = client
        self._stale_label = stale_label
        self._max_workers = max_workers

    def collect(self, repo: RepoRef, settings: AlertSettings, now: datetime) -> ActivitySnapshot:
        since = (now - timedelta(days=settings.rules.stale_window_days * 2)).strftime(_ISO_FORMAT)

        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="collector") as pool:
            commit_future = pool.submit(self._last_commit_at, repo)
            pulls_future = pool.submit(self._open_pulls, repo)
            issues_future = pool.submit(self._stale_issues, repo, since)
            count_future = pool.submit(self._stale_open_count, repo)

            snapshot = ActivitySnapshot(
                last_commit_at=commit_future.result(),
                open_pulls=pulls_future.result(),
                stale_issues=issues_future.result(),
                stale_open_now=count_future.result(),
                since=since,
            )

        logger.debug(
            "Collected %s: %d open PRs, %d stale issues since %s",
            repo, len(snapshot.open_pulls), len(snapshot.stale_issues), since,
        )
        return snapshot

    # ------------------------------------------------------------------
    # Streams
    # ------------------------------------------------------------------

    def _last_commit_at(self, repo: RepoRef) -> str | None:
        commits = self._client.list_commits(repo, per_page=1, page=1)
        if not commits:
            return None
        commit = commits[0].get("commit") or {}
        author = commit.get("author") or {}
        committer = commit.get("committer") or {}
        return author.get("date") or committer.get("date") or None

    def _open_pulls(self, repo: RepoRef) -> list[dict[str, Any]]:
        return paginate(
            lambda page: self._client.list_pulls(
                repo, state="open", sort="updated", direction="asc", per_page=PER_PAGE, page=page
            ),
            MAX_OPEN_PR_PAGES,
        )

    def _stale_issues(self, repo: RepoRef, since: str) -> list[dict[str, Any]]:
        issues = paginate(
            lambda page: self._client.list_issues(
                repo, state="all", since=since, sort="updated", direction="desc", per_page=PER_PAGE, page=page
            ),
            MAX_STALE_SCAN_PAGES,
        )
        return [
            issue
            for issue in issues
            if not issue.get("pull_request") and self._stale_label in label_names(issue.get("labels", []))
        ]

    def _stale_open_count(self, repo: RepoRef) -> int | None:
        try:
            return self._client.search_issue_count(stale_search_query(repo, self._stale_label))
        except HostingApiError as exc:
            logger.warning("Failed to fetch open stale issue count for %s: %s", repo, exc)
            return None
