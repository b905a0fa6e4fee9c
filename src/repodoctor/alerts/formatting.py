"""Payload builders for each delivery channel.

Two payload variants exist:

    PlainTextPayload  ``{"text": "..."}`` digest, for the generic webhook and Slack
    ChatEmbedPayload  Discord message with a single rich embed

``build_payload(kind, evaluation, alerts)`` picks the builder from the
resolved target kind. Long text is truncated with an ellipsis so payloads stay
under the transports' size limits.

Example plain-text body::

    Repo Doctor Alert: octo/repo
    2 active rules triggered

    [HIGH] No Recent Commits
    - Last commit was 9 day(s) ago (threshold 7d).
    [MEDIUM] Stuck Pull Requests
    - 3 open PR(s) have no updates for at least 3 day(s).

    Generated at: 2026-10-19T12:00:00Z
    Open stale issues: 4
"""
from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar

from ..github.client import RepoRef
from .models import AlertState, Evaluation
from .severity import highest_severity, severity_color, severity_emoji
from .targets import CHANNEL_DISCORD, CHANNEL_SLACK, CHANNEL_WEBHOOK

BOT_NAME = "Repo Doctor"
FOOTER_TEXT = "Repo Doctor · Smart Alerts"
DESCRIPTION_LIMIT = 3900
FIELD_LIMIT = 1000
PR_TITLE_LIMIT = 72
PREVIEW_COUNT = 3
ELLIPSIS = "…"


def truncate_text(value: str, limit: int = FIELD_LIMIT) -> str:
    if len(value) <= limit:
        return value
    return value[: max(0, limit - 1)] + ELLIPSIS


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


@dataclass(frozen=True)
class PlainTextPayload:
    kind: ClassVar[str] = "plain_text"

    text: str

    def body(self) -> dict[str, Any]:
        return {"text": self.text}

    def to_json(self) -> bytes:
        return json.dumps(self.body(), ensure_ascii=False).encode("utf-8")


@dataclass(frozen=True)
class ChatEmbedPayload:
    kind: ClassVar[str] = "chat_embed"

    content: str
    embeds: list[dict[str, Any]] = field(default_factory=list)
    username: str = BOT_NAME

    def body(self) -> dict[str, Any]:
        return {"username": self.username, "content": self.content, "embeds": self.embeds}

    def to_json(self) -> bytes:
        return json.dumps(self.body(), ensure_ascii=False).encode("utf-8")


Payload = PlainTextPayload | ChatEmbedPayload


def build_plain_text(evaluation: Evaluation, alerts: Sequence[AlertState]) -> PlainTextPayload:
    stale_now = evaluation.metrics.stale_open_now
    lines = [
        f"{BOT_NAME} Alert: {evaluation.repo}",
        f"{_plural(len(alerts), 'active rule')} triggered",
        "",
    ]
    for alert in alerts:
        lines.append(f"[{alert.severity.value}] {alert.title}")
        lines.append(f"- {alert.message}")
    lines.extend([
        "",
        f"Generated at: {evaluation.generated_at}",
        f"Open stale issues: {'N/A' if stale_now is None else stale_now}",
    ])
    return PlainTextPayload(text=truncate_text("\n".join(lines), DESCRIPTION_LIMIT))


def _stuck_preview(evaluation: Evaluation) -> str:
    return "\n".join(
        f"• [#{pr.number}]({pr.url}) - {truncate_text(pr.title, PR_TITLE_LIMIT)} ({pr.days_since_update}d idle)"
        for pr in evaluation.stuck_pull_requests[:PREVIEW_COUNT]
    )


def build_chat_embed(evaluation: Evaluation, alerts: Sequence[AlertState]) -> ChatEmbedPayload:
    metrics = evaluation.metrics
    rules = evaluation.settings.rules
    stale_now = "N/A" if metrics.stale_open_now is None else metrics.stale_open_now

    triggered = "\n\n".join(
        f"{severity_emoji(alert.severity)} **{alert.title}**\n{alert.message}" for alert in alerts
    )
    if metrics.days_since_last_commit is None:
        commit_value = f"No commit found (threshold {rules.no_commit_days}d)"
    else:
        commit_value = (
            f"Last commit: **{metrics.days_since_last_commit}d** ago (threshold {rules.no_commit_days}d)"
        )

    fields: list[dict[str, Any]] = [
        {"name": "Commit Activity", "value": commit_value, "inline": True},
        {
            "name": "Pull Requests",
            "value": (
                f"Open: **{metrics.total_open_prs}**\n"
                f"Stuck: **{metrics.stuck_prs}** (threshold {rules.pr_stuck_days}d)"
            ),
            "inline": True,
        },
        {
            "name": "Stale Trend",
            "value": (
                f"Current: **{metrics.stale_current_window}**\n"
                f"Previous: **{metrics.stale_previous_window}**\n"
                f"Open stale: **{stale_now}**"
            ),
            "inline": True,
        },
        {
            "name": "Rule Thresholds",
            "value": (
                f"No commits: {rules.no_commit_days}d\n"
                f"PR stuck: {rules.pr_stuck_days}d\n"
                f"Stale spike: {rules.stale_spike_count} in {rules.stale_window_days}d"
            ),
            "inline": False,
        },
    ]
    preview = _stuck_preview(evaluation)
    if preview:
        fields.append({"name": "Top Stuck PRs", "value": truncate_text(preview, FIELD_LIMIT), "inline": False})

    embed = {
        "title": f"{_plural(len(alerts), 'active alert')} detected",
        "url": RepoRef.parse(evaluation.repo).html_url,
        "description": truncate_text(triggered, DESCRIPTION_LIMIT),
        "color": severity_color(highest_severity(alerts)),
        "fields": fields,
        "footer": {"text": FOOTER_TEXT},
        "timestamp": evaluation.generated_at,
    }
    return ChatEmbedPayload(
        content=f"🚨 **Repo health alert triggered for `{evaluation.repo}`**",
        embeds=[embed],
    )


PayloadBuilder = Callable[[Evaluation, Sequence[AlertState]], Payload]

_BUILDERS: dict[str, PayloadBuilder] = {
    CHANNEL_WEBHOOK: build_plain_text,
    CHANNEL_SLACK: build_plain_text,
    CHANNEL_DISCORD: build_chat_embed,
}


def build_payload(kind: str, evaluation: Evaluation, alerts: Sequence[AlertState]) -> Payload:
    try:
        builder = _BUILDERS[kind]
    except KeyError:
        raise ValueError(f"No payload format for channel {kind!r}") from None
    return builder(evaluation, alerts)
