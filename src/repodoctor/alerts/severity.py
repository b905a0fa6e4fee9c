"""Severity ordering and stuck-PR sample ranking."""
from __future__ import annotations

from collections.abc import Iterable

from .models import AlertState, Severity, StuckPullRequest

MAX_STUCK_SAMPLES = 8

_PRIORITY: dict[Severity, int] = {
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}

_COLOR: dict[Severity, int] = {
    Severity.HIGH: 0xB91C1C,
    Severity.MEDIUM: 0xD97706,
    Severity.LOW: 0x047857,
}

_EMOJI: dict[Severity, str] = {
    Severity.HIGH: "🔴",
    Severity.MEDIUM: "🟠",
    Severity.LOW: "🟢",
}


def highest_severity(alerts: Iterable[AlertState]) -> Severity:
    """Return the most severe level among alerts (LOW for an empty input)."""
    current = Severity.LOW
    for alert in alerts:
        if _PRIORITY[alert.severity] > _PRIORITY[current]:
            current = alert.severity
    return current


def severity_color(severity: Severity) -> int:
    return _COLOR[severity]


def severity_emoji(severity: Severity) -> str:
    return _EMOJI[severity]


def rank_stuck_pull_requests(
    pulls: Iterable[StuckPullRequest],
    limit: int = MAX_STUCK_SAMPLES,
) -> list[StuckPullRequest]:
    """Most idle first, truncated to ``limit``.

    Idle days descending is the only key; equal values keep their input
    order (Python's sort is stable under ``reverse=True``).
    """
    ranked = sorted(pulls, key=lambda pr: pr.days_since_update, reverse=True)
    return ranked[:limit]
