"""Per-repository alert settings and the sanitizer that guards them.

Settings arrive from untrusted places (HTTP bodies, CLI flags, whatever is
stored in Redis). The inbound shape is validated by permissive pydantic DTOs
and then converted into the frozen AlertSettings dataclass, with every number
clamped into range:

    cooldownHours     1..168   (default 24)
    noCommitDays      1..180   (default 7)
    prStuckDays       1..90    (default 3)
    staleSpikeCount   1..200   (default 5)
    staleWindowDays   1..30    (default 7)

Missing or non-numeric values fall back to the default. Sanitizing is
idempotent: ``sanitize_settings(sanitize_settings(x)) == sanitize_settings(x)``.
"""
from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

COOLDOWN_HOURS_RANGE = (1, 168)
NO_COMMIT_DAYS_RANGE = (1, 180)
PR_STUCK_DAYS_RANGE = (1, 90)
STALE_SPIKE_COUNT_RANGE = (1, 200)
STALE_WINDOW_DAYS_RANGE = (1, 30)

# Python field name -> stored/wire key
_RULE_WIRE_KEYS = {
    "no_commit_days": "noCommitDays",
    "pr_stuck_days": "prStuckDays",
    "stale_spike_count": "staleSpikeCount",
    "stale_window_days": "staleWindowDays",
}


@dataclass(frozen=True)
class RuleThresholds:
    no_commit_days: int = 7
    pr_stuck_days: int = 3
    stale_spike_count: int = 5
    stale_window_days: int = 7

    def to_dict(self) -> dict[str, int]:
        return {
            "noCommitDays": self.no_commit_days,
            "prStuckDays": self.pr_stuck_days,
            "staleSpikeCount": self.stale_spike_count,
            "staleWindowDays": self.stale_window_days,
        }


@dataclass(frozen=True)
class AlertSettings:
    """Tunable alert configuration for one repository.

    Attributes:
        enabled:         When False, only forced dispatches send anything.
        cooldown_hours:  Minimum hours before the same rule notifies again.
        rules:           Per-rule thresholds.
    """

    enabled: bool = True
    cooldown_hours: int = 24
    rules: RuleThresholds = field(default_factory=RuleThresholds)

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "cooldownHours": self.cooldown_hours,
            "rules": self.rules.to_dict(),
        }


DEFAULT_ALERT_SETTINGS = AlertSettings()


# ---------------------------------------------------------------------------
# Inbound DTOs
# ---------------------------------------------------------------------------

class RuleThresholdsInput(BaseModel):
    """Untrusted ``rules`` object. Accepts camelCase and snake_case keys."""

    model_config = ConfigDict(extra="ignore")

    no_commit_days: Any = Field(default=None, validation_alias=AliasChoices("noCommitDays", "no_commit_days"))
    pr_stuck_days: Any = Field(default=None, validation_alias=AliasChoices("prStuckDays", "pr_stuck_days"))
    stale_spike_count: Any = Field(
        default=None, validation_alias=AliasChoices("staleSpikeCount", "stale_spike_count")
    )
    stale_window_days: Any = Field(
        default=None, validation_alias=AliasChoices("staleWindowDays", "stale_window_days")
    )


class AlertSettingsInput(BaseModel):
    """Untrusted settings object as received at the boundary."""

    model_config = ConfigDict(extra="ignore")

    enabled: Any = None
    cooldown_hours: Any = Field(default=None, validation_alias=AliasChoices("cooldownHours", "cooldown_hours"))
    rules: Any = None

    @classmethod
    def parse(cls, raw: Any) -> "AlertSettingsInput":
        if isinstance(raw, AlertSettings):
            raw = raw.to_dict()
        if not isinstance(raw, Mapping):
            return cls()
        return cls.model_validate(dict(raw))

    def rules_input(self) -> RuleThresholdsInput:
        rules = self.rules
        if isinstance(rules, RuleThresholds):
            rules = rules.to_dict()
        if not isinstance(rules, Mapping):
            return RuleThresholdsInput()
        return RuleThresholdsInput.model_validate(dict(rules))


# ---------------------------------------------------------------------------
# Sanitizer
# ---------------------------------------------------------------------------

def _clamp(value: Any, bounds: tuple[int, int], fallback: int) -> int:
    """Round half up and clamp into bounds; non-numbers return fallback."""
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return fallback
    if math.isnan(value):
        return fallback
    if math.isinf(value):
        return high if value > 0 else low
    return min(high, max(low, math.floor(value + 0.5)))


def sanitize_settings(raw: Any) -> AlertSettings:
    """Convert any settings-like input into a valid AlertSettings."""
    source = AlertSettingsInput.parse(raw)
    rules = source.rules_input()
    defaults = DEFAULT_ALERT_SETTINGS
    return AlertSettings(
        enabled=source.enabled if isinstance(source.enabled, bool) else defaults.enabled,
        cooldown_hours=_clamp(source.cooldown_hours, COOLDOWN_HOURS_RANGE, defaults.cooldown_hours),
        rules=RuleThresholds(
            no_commit_days=_clamp(rules.no_commit_days, NO_COMMIT_DAYS_RANGE, defaults.rules.no_commit_days),
            pr_stuck_days=_clamp(rules.pr_stuck_days, PR_STUCK_DAYS_RANGE, defaults.rules.pr_stuck_days),
            stale_spike_count=_clamp(
                rules.stale_spike_count, STALE_SPIKE_COUNT_RANGE, defaults.rules.stale_spike_count
            ),
            stale_window_days=_clamp(
                rules.stale_window_days, STALE_WINDOW_DAYS_RANGE, defaults.rules.stale_window_days
            ),
        ),
    )


def merge_settings(current: AlertSettings, patch: Any) -> AlertSettings:
    """Apply a partial update on top of current settings.

    Only keys present in ``patch`` are replaced; ``rules`` is merged key by
    key. The result is sanitized, so an invalid patched value falls back to
    its default rather than to the current value.
    """
    update = AlertSettingsInput.parse(patch)
    merged = current.to_dict()
    top = update.model_dump(include={"enabled", "cooldown_hours"}, exclude_unset=True)
    if "enabled" in top:
        merged["enabled"] = top["enabled"]
    if "cooldown_hours" in top:
        merged["cooldownHours"] = top["cooldown_hours"]

    rule_update = update.rules_input().model_dump(exclude_unset=True)
    for python_name, value in rule_update.items():
        merged["rules"][_RULE_WIRE_KEYS[python_name]] = value
    return sanitize_settings(merged)
