"""Redis-backed settings store and delivery history.

Key schema:
    repodoctor:settings:{owner/name}             JSON settings record
    repodoctor:settings:enabled                  set of repos with enabled=true
    repodoctor:deliveries:{owner/name}:{ruleId}  list of JSON DeliveryEvents,
                                                 newest at index 0

Unlike a cache, these stores are the only record of past deliveries, so Redis
errors propagate instead of degrading to a no-op: a silently empty history
would re-send every alert.

Usage::

    from repodoctor.store.redis_store import RedisDeliveryHistory, RedisSettingsStore

    settings_store = RedisSettingsStore(url="redis://localhost:6379/0")
    history = RedisDeliveryHistory(url="redis://localhost:6379/0")
"""
from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

import redis

from ..alerts.models import AlertId, DeliveryEvent
from .base import DeliveryHistory, SettingsStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "repodoctor"
ENABLED_KEY = f"{KEY_PREFIX}:settings:enabled"


def settings_key(repo: str) -> str:
    return f"{KEY_PREFIX}:settings:{repo}"


def delivery_key(repo: str, rule_id: AlertId) -> str:
    return f"{KEY_PREFIX}:deliveries:{repo}:{rule_id.value}"


def _client_from_url(url: str) -> Any:
    return redis.Redis.from_url(url, decode_responses=True)


class RedisSettingsStore(SettingsStore):
    """Settings records keyed by repository.

    Args:
        url:     Redis connection URL (redis://host:port/db).
        client:  Pre-built client; takes precedence over url.
    """

    def __init__(self, url: str = "redis://localhost:6379/0", client: Any = None) -> None:
        self._client = client if client is not None else _client_from_url(url)

    def get(self, repo: str) -> dict[str, Any] | None:
        raw = self._client.get(settings_key(repo))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unreadable settings record for %s", repo)
            return None

    def put(self, repo: str, settings: dict[str, Any]) -> None:
        now = datetime.now(timezone.utc).isoformat()
        existing = self.get(repo) or {}
        record = {
            **settings,
            "repo": repo,
            "createdAt": existing.get("createdAt", now),
            "updatedAt": now,
        }
        pipe = self._client.pipeline()
        pipe.set(settings_key(repo), json.dumps(record))
        if record.get("enabled") is True:
            pipe.sadd(ENABLED_KEY, repo)
        else:
            pipe.srem(ENABLED_KEY, repo)
        pipe.execute()
        logger.debug("Saved alert settings for %s", repo)

    def list_enabled(self, limit: int = 150) -> list[str]:
        return sorted(self._client.smembers(ENABLED_KEY))[:limit]


class RedisDeliveryHistory(DeliveryHistory):
    """Append-only delivery log, one Redis list per (repo, rule)."""

    def __init__(self, url: str = "redis://localhost:6379/0", client: Any = None) -> None:
        self._client = client if client is not None else _client_from_url(url)

    def insert_many(self, events: Iterable[DeliveryEvent]) -> None:
        events = list(events)
        if not events:
            return
        pipe = self._client.pipeline()
        for event in events:
            pipe.lpush(delivery_key(event.repo, event.rule_id), json.dumps(event.to_dict()))
        pipe.execute()

    def find_latest(self, repo: str, rule_id: AlertId) -> DeliveryEvent | None:
        raw = self._client.lindex(delivery_key(repo, rule_id), 0)
        if raw is None:
            return None
        return DeliveryEvent.from_dict(json.loads(raw))
