"""Rule evaluator — turn an ActivitySnapshot into the three alert states.

Rules (always evaluated in this order):

    NO_COMMITS   HIGH    last commit age >= noCommitDays, or no commit at all
    PR_STUCK     MEDIUM  at least one open PR idle >= prStuckDays
    STALE_SPIKE  MEDIUM  stale updates in the current window >= staleSpikeCount
                         and strictly more than in the previous window

NO_COMMITS treats "no commit found" as active. An empty or unreadable history
is reported the same way as a dormant one; this is intentional and
conservative.
"""
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

from .collector import ActivitySnapshot
from .models import AlertId, AlertState, Evaluation, EvaluationMetrics, Severity, StuckPullRequest
from .settings import AlertSettings
from .severity import rank_stuck_pull_requests

SECONDS_PER_DAY = 86_400

# Formats tried in order when parsing API timestamps
_TIMESTAMP_FORMATS: list[str] = [
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%d",
]


def parse_timestamp(raw: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not raw:
        return None
    raw = str(raw).strip()
    for fmt in _TIMESTAMP_FORMATS:
        try:
            ts = datetime.strptime(raw, fmt)
        except ValueError:
            continue
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts
    return None


def days_since(raw: str | None, now: datetime) -> int | None:
    """Whole days elapsed since raw (floored), or None if unparseable."""
    ts = parse_timestamp(raw)
    if ts is None:
        return None
    return math.floor((now - ts).total_seconds() / SECONDS_PER_DAY)


def format_timestamp(now: datetime) -> str:
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def find_stuck_pull_requests(
    pulls: list[dict], stuck_days: int, now: datetime
) -> list[StuckPullRequest]:
    stuck: list[StuckPullRequest] = []
    for pull in pulls:
        idle = days_since(pull.get("updated_at"), now)
        if idle is None or idle < stuck_days:
            continue
        stuck.append(
            StuckPullRequest(
                number=pull.get("number", 0),
                title=pull.get("title") or "",
                url=pull.get("html_url") or "",
                updated_at=pull.get("updated_at") or "",
                days_since_update=idle,
            )
        )
    return stuck


def count_stale_windows(issues: list[dict], window_days: int, now: datetime) -> tuple[int, int]:
    """Return (current, previous) counts of issues by ``updated_at`` window.

    current:   updated_at >= now - window
    previous:  now - 2*window <= updated_at < now - window
    """
    current_start = now - timedelta(days=window_days)
    previous_start = now - timedelta(days=window_days * 2)
    current = previous = 0
    for issue in issues:
        updated = parse_timestamp(issue.get("updated_at"))
        if updated is None:
            continue
        if updated >= current_start:
            current += 1
        elif updated >= previous_start:
            previous += 1
    return current, previous


def is_stale_spike(current: int, previous: int, threshold: int) -> bool:
    """Past the absolute threshold and trending upward; a plateau does not fire."""
    return current >= threshold and current > previous


def _no_commits_state(days: int | None, threshold: int) -> AlertState:
    if days is None:
        message = "No commits were found in repository history."
    else:
        message = f"Last commit was {days} day(s) ago (threshold {threshold}d)."
    return AlertState(
        id=AlertId.NO_COMMITS,
        title="No Recent Commits",
        severity=Severity.HIGH,
        active=days is None or days >= threshold,
        threshold=threshold,
        value=days,
        message=message,
    )


def _pr_stuck_state(stuck_count: int, threshold: int) -> AlertState:
    if stuck_count > 0:
        message = f"{stuck_count} open PR(s) have no updates for at least {threshold} day(s)."
    else:
        message = f"No open PR has been idle for {threshold}+ day(s)."
    return AlertState(
        id=AlertId.PR_STUCK,
        title="Stuck Pull Requests",
        severity=Severity.MEDIUM,
        active=stuck_count > 0,
        threshold=threshold,
        value=stuck_count,
        message=message,
    )


def _stale_spike_state(current: int, previous: int, threshold: int, window_days: int) -> AlertState:
    active = is_stale_spike(current, previous, threshold)
    if active:
        message = (
            f"{current} stale-labeled issue(s) updated in last {window_days} day(s), up from {previous}."
        )
    else:
        message = (
            f"Stale update volume ({current}) is below spike threshold ({threshold}) "
            f"or not above previous window ({previous})."
        )
    return AlertState(
        id=AlertId.STALE_SPIKE,
        title="Stale Spike",
        severity=Severity.MEDIUM,
        active=active,
        threshold=threshold,
        value=current,
        message=message,
    )


def evaluate_rules(
    repo: str,
    settings: AlertSettings,
    snapshot: ActivitySnapshot,
    now: datetime,
) -> Evaluation:
    """Compute metrics and all three alert states for one snapshot."""
    rules = settings.rules
    days_since_commit = days_since(snapshot.last_commit_at, now)
    stuck = find_stuck_pull_requests(snapshot.open_pulls, rules.pr_stuck_days, now)
    current, previous = count_stale_windows(snapshot.stale_issues, rules.stale_window_days, now)

    alerts = (
        _no_commits_state(days_since_commit, rules.no_commit_days),
        _pr_stuck_state(len(stuck), rules.pr_stuck_days),
        _stale_spike_state(current, previous, rules.stale_spike_count, rules.stale_window_days),
    )
    metrics = EvaluationMetrics(
        last_commit_at=snapshot.last_commit_at,
        days_since_last_commit=days_since_commit,
        total_open_prs=len(snapshot.open_pulls),
        stuck_prs=len(stuck),
        stale_current_window=current,
        stale_previous_window=previous,
        stale_open_now=snapshot.stale_open_now,
    )
    return Evaluation(
        repo=repo,
        generated_at=format_timestamp(now),
        settings=settings,
        alerts=alerts,
        metrics=metrics,
        stuck_pull_requests=tuple(rank_stuck_pull_requests(stuck)),
    )
