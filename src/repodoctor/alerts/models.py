"""Value objects produced by evaluation and dispatch."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .settings import AlertSettings


class AlertId(str, Enum):
    NO_COMMITS = "NO_COMMITS"
    PR_STUCK = "PR_STUCK"
    STALE_SPIKE = "STALE_SPIKE"


class Severity(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass(frozen=True)
class AlertState:
    """Outcome of one rule for one evaluation. Never persisted."""

    id: AlertId
    title: str
    severity: Severity
    active: bool
    threshold: int
    value: int | None
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id.value,
            "title": self.title,
            "severity": self.severity.value,
            "active": self.active,
            "threshold": self.threshold,
            "value": self.value,
            "message": self.message,
        }


@dataclass(frozen=True)
class StuckPullRequest:
    number: int
    title: str
    url: str
    updated_at: str
    days_since_update: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "title": self.title,
            "url": self.url,
            "updatedAt": self.updated_at,
            "daysSinceUpdate": self.days_since_update,
        }


@dataclass(frozen=True)
class EvaluationMetrics:
    last_commit_at: str | None
    days_since_last_commit: int | None
    total_open_prs: int
    stuck_prs: int
    stale_current_window: int
    stale_previous_window: int
    stale_open_now: int | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "lastCommitAt": self.last_commit_at,
            "daysSinceLastCommit": self.days_since_last_commit,
            "totalOpenPrs": self.total_open_prs,
            "stuckPrs": self.stuck_prs,
            "staleCurrentWindow": self.stale_current_window,
            "stalePreviousWindow": self.stale_previous_window,
            "staleOpenNow": self.stale_open_now,
        }


@dataclass(frozen=True)
class Evaluation:
    """Health snapshot of one repository at ``generated_at``.

    ``alerts`` always holds one state per rule, in AlertId order;
    ``active_alerts`` is the order-preserving subset with ``active=True``.
    """

    repo: str
    generated_at: str
    settings: AlertSettings
    alerts: tuple[AlertState, ...]
    metrics: EvaluationMetrics
    stuck_pull_requests: tuple[StuckPullRequest, ...] = ()

    @property
    def active_alerts(self) -> tuple[AlertState, ...]:
        return tuple(alert for alert in self.alerts if alert.active)

    def alert(self, alert_id: AlertId) -> AlertState:
        for state in self.alerts:
            if state.id == alert_id:
                return state
        raise KeyError(alert_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "repo": self.repo,
            "generatedAt": self.generated_at,
            "settings": self.settings.to_dict(),
            "alerts": [a.to_dict() for a in self.alerts],
            "activeAlerts": [a.to_dict() for a in self.active_alerts],
            "metrics": self.metrics.to_dict(),
            "samples": {"stuckPullRequests": [pr.to_dict() for pr in self.stuck_pull_requests]},
        }


@dataclass(frozen=True)
class DeliveryEvent:
    """Durable record of one rule delivered to one channel."""

    repo: str
    rule_id: AlertId
    severity: Severity
    channel: str
    force: bool
    sent_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "repo": self.repo,
            "ruleId": self.rule_id.value,
            "severity": self.severity.value,
            "channel": self.channel,
            "force": self.force,
            "sentAt": self.sent_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "DeliveryEvent":
        return cls(
            repo=raw["repo"],
            rule_id=AlertId(raw["ruleId"]),
            severity=Severity(raw["severity"]),
            channel=raw["channel"],
            force=bool(raw.get("force", False)),
            sent_at=datetime.fromisoformat(raw["sentAt"]),
        )


@dataclass
class DispatchResult:
    sent: bool
    reason: str = ""
    sent_rule_ids: list[AlertId] = field(default_factory=list)
    suppressed_rule_ids: list[AlertId] = field(default_factory=list)
    channel_used: str | None = None
    sent_at: datetime | None = None
    evaluation: Evaluation | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "sent": self.sent,
            "reason": self.reason,
            "sentRuleIds": [r.value for r in self.sent_rule_ids],
            "suppressedRuleIds": [r.value for r in self.suppressed_rule_ids],
        }
        if self.channel_used is not None:
            out["channelUsed"] = self.channel_used
        if self.sent_at is not None:
            out["sentAt"] = self.sent_at.isoformat()
        if self.evaluation is not None:
            out["evaluation"] = self.evaluation.to_dict()
        return out


@dataclass
class BatchOutcome:
    repo: str
    ok: bool
    sent: bool = False
    reason: str = ""
    error: str = ""
    sent_rule_ids: list[AlertId] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"repo": self.repo, "ok": self.ok, "sent": self.sent}
        if self.reason:
            out["reason"] = self.reason
        if self.error:
            out["error"] = self.error
        if self.ok:
            out["sentRuleIds"] = [r.value for r in self.sent_rule_ids]
        return out


@dataclass
class BatchResult:
    outcomes: list[BatchOutcome] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def sent(self) -> int:
        return sum(1 for o in self.outcomes if o.sent)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "sent": self.sent,
            "failed": self.failed,
            "results": [o.to_dict() for o in self.outcomes],
        }
