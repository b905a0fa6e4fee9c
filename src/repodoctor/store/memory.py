"""In-process stores for tests, dry runs and single-shot CLI use."""
from __future__ import annotations

import threading
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from ..alerts.models import AlertId, DeliveryEvent
from .base import DeliveryHistory, SettingsStore


class InMemorySettingsStore(SettingsStore):
    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, repo: str) -> dict[str, Any] | None:
        with self._lock:
            record = self._records.get(repo)
            return dict(record) if record is not None else None

    def put(self, repo: str, settings: dict[str, Any]) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            created = (self._records.get(repo) or {}).get("createdAt", now)
            self._records[repo] = {**settings, "repo": repo, "createdAt": created, "updatedAt": now}

    def list_enabled(self, limit: int = 150) -> list[str]:
        with self._lock:
            return [repo for repo, rec in self._records.items() if rec.get("enabled") is True][:limit]


class InMemoryDeliveryHistory(DeliveryHistory):
    def __init__(self) -> None:
        self._events: list[DeliveryEvent] = []
        self._lock = threading.Lock()

    def insert_many(self, events: Iterable[DeliveryEvent]) -> None:
        with self._lock:
            self._events.extend(events)

    def find_latest(self, repo: str, rule_id: AlertId) -> DeliveryEvent | None:
        with self._lock:
            matches = [e for e in self._events if e.repo == repo and e.rule_id == rule_id]
        if not matches:
            return None
        return max(matches, key=lambda e: e.sent_at)

    @property
    def events(self) -> list[DeliveryEvent]:
        with self._lock:
            return list(self._events)
