"""Delivery target resolution.

Three transports may be configured: a generic JSON webhook, a Slack incoming
webhook and a Discord webhook. ``auto`` picks the first configured one in
that order; an explicit channel only ever resolves to its own endpoint.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

CHANNEL_AUTO = "auto"
CHANNEL_WEBHOOK = "webhook"
CHANNEL_SLACK = "slack"
CHANNEL_DISCORD = "discord"

CHANNELS = (CHANNEL_AUTO, CHANNEL_WEBHOOK, CHANNEL_SLACK, CHANNEL_DISCORD)
AUTO_PRIORITY = (CHANNEL_WEBHOOK, CHANNEL_SLACK, CHANNEL_DISCORD)


@dataclass(frozen=True)
class TransportConfig:
    """Endpoint URLs, read once at startup. Empty string = not configured."""

    webhook_url: str = ""
    slack_webhook_url: str = ""
    discord_webhook_url: str = ""

    @classmethod
    def from_settings(cls, settings: Any) -> "TransportConfig":
        return cls(
            webhook_url=(settings.alert_webhook_url or "").strip(),
            slack_webhook_url=(settings.alert_slack_webhook_url or "").strip(),
            discord_webhook_url=(settings.alert_discord_webhook_url or "").strip(),
        )

    def url_for(self, kind: str) -> str:
        return {
            CHANNEL_WEBHOOK: self.webhook_url,
            CHANNEL_SLACK: self.slack_webhook_url,
            CHANNEL_DISCORD: self.discord_webhook_url,
        }.get(kind, "")

    def configured(self) -> list[str]:
        return [kind for kind in AUTO_PRIORITY if self.url_for(kind)]


@dataclass(frozen=True)
class DeliveryTarget:
    kind: str
    url: str


def parse_channel(value: Any) -> str:
    """Map untrusted input to a channel name; anything unknown is ``auto``."""
    if isinstance(value, str) and value.strip().lower() in CHANNELS:
        return value.strip().lower()
    return CHANNEL_AUTO


def resolve_target(channel: str, config: TransportConfig) -> DeliveryTarget | None:
    if channel == CHANNEL_AUTO:
        for kind in AUTO_PRIORITY:
            url = config.url_for(kind)
            if url:
                return DeliveryTarget(kind=kind, url=url)
        return None
    url = config.url_for(channel)
    return DeliveryTarget(kind=channel, url=url) if url else None


def is_webhook_configured(config: TransportConfig) -> bool:
    return resolve_target(CHANNEL_AUTO, config) is not None
