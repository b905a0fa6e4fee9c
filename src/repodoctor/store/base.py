"""Storage interfaces for alert settings and delivery history."""
from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ..alerts.models import AlertId, DeliveryEvent


class SettingsStore:
    """Base class / Protocol for per-repository settings storage.

    Records are stored as the wire-format dict (``AlertSettings.to_dict()``)
    plus server-set ``createdAt`` / ``updatedAt`` timestamps.
    """

    def get(self, repo: str) -> dict[str, Any] | None:
        raise NotImplementedError

    def put(self, repo: str, settings: dict[str, Any]) -> None:
        """Upsert; sets ``updatedAt`` and keeps ``createdAt`` from the first insert."""
        raise NotImplementedError

    def list_enabled(self, limit: int = 150) -> list[str]:
        raise NotImplementedError


class DeliveryHistory:
    """Base class / Protocol for the append-only delivery log."""

    def insert_many(self, events: Iterable[DeliveryEvent]) -> None:
        raise NotImplementedError

    def find_latest(self, repo: str, rule_id: AlertId) -> DeliveryEvent | None:
        raise NotImplementedError
