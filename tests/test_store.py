"""Tests for settings and delivery-history stores (no live Redis required)."""
from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from repodoctor.alerts.models import AlertId, DeliveryEvent, Severity
from repodoctor.store.memory import InMemoryDeliveryHistory, InMemorySettingsStore
from repodoctor.store.redis_store import (
    ENABLED_KEY,
    RedisDeliveryHistory,
    RedisSettingsStore,
    delivery_key,
    settings_key,
)

SENT_AT = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _event(rule: AlertId = AlertId.NO_COMMITS, sent_at: datetime = SENT_AT, repo: str = "octo/repo") -> DeliveryEvent:
    return DeliveryEvent(repo, rule, Severity.HIGH, "slack", False, sent_at)


class TestKeys:
    def test_settings_key(self) -> None:
        assert settings_key("octo/repo") == "repodoctor:settings:octo/repo"

    def test_delivery_key(self) -> None:
        assert delivery_key("octo/repo", AlertId.PR_STUCK) == "repodoctor:deliveries:octo/repo:PR_STUCK"


class TestDeliveryEventSerialization:
    def test_round_trip(self) -> None:
        event = _event()
        assert DeliveryEvent.from_dict(json.loads(json.dumps(event.to_dict()))) == event


class TestInMemoryStores:
    def test_settings_upsert_preserves_created_at(self) -> None:
        store = InMemorySettingsStore()
        store.put("octo/repo", {"enabled": True})
        created = store.get("octo/repo")["createdAt"]
        store.put("octo/repo", {"enabled": False})
        record = store.get("octo/repo")
        assert record["createdAt"] == created
        assert record["enabled"] is False
        assert store.list_enabled() == []

    def test_get_missing(self) -> None:
        assert InMemorySettingsStore().get("octo/none") is None

    def test_latest_by_sent_at(self) -> None:
        history = InMemoryDeliveryHistory()
        history.insert_many([
            _event(sent_at=SENT_AT - timedelta(hours=5)),
            _event(sent_at=SENT_AT),
            _event(sent_at=SENT_AT - timedelta(hours=1)),
            _event(AlertId.PR_STUCK, SENT_AT + timedelta(hours=1)),
        ])
        assert history.find_latest("octo/repo", AlertId.NO_COMMITS).sent_at == SENT_AT
        assert history.find_latest("other/repo", AlertId.NO_COMMITS) is None


class TestRedisSettingsStore:
    def _store(self) -> tuple[RedisSettingsStore, MagicMock]:
        client = MagicMock()
        return RedisSettingsStore(client=client), client

    def test_get_missing(self) -> None:
        store, client = self._store()
        client.get.return_value = None
        assert store.get("octo/repo") is None
        client.get.assert_called_with("repodoctor:settings:octo/repo")

    def test_get_decodes_json(self) -> None:
        store, client = self._store()
        client.get.return_value = '{"enabled": false, "cooldownHours": 6}'
        assert store.get("octo/repo") == {"enabled": False, "cooldownHours": 6}

    def test_get_unreadable_record(self) -> None:
        store, client = self._store()
        client.get.return_value = "{not json"
        assert store.get("octo/repo") is None

    def test_put_sets_timestamps_and_enabled_index(self) -> None:
        store, client = self._store()
        client.get.return_value = json.dumps({"createdAt": "2026-01-01T00:00:00+00:00"})
        pipe = client.pipeline.return_value

        store.put("octo/repo", {"enabled": True, "cooldownHours": 12})

        key, raw = pipe.set.call_args[0]
        record = json.loads(raw)
        assert key == "repodoctor:settings:octo/repo"
        assert record["createdAt"] == "2026-01-01T00:00:00+00:00"
        assert record["updatedAt"] != record["createdAt"]
        assert record["cooldownHours"] == 12
        pipe.sadd.assert_called_once_with(ENABLED_KEY, "octo/repo")
        pipe.execute.assert_called_once()

    def test_put_disabled_removes_from_index(self) -> None:
        store, client = self._store()
        client.get.return_value = None
        pipe = client.pipeline.return_value
        store.put("octo/repo", {"enabled": False})
        record = json.loads(pipe.set.call_args[0][1])
        assert record["createdAt"] == record["updatedAt"]
        pipe.srem.assert_called_once_with(ENABLED_KEY, "octo/repo")

    def test_list_enabled_sorted_and_limited(self) -> None:
        store, client = self._store()
        client.smembers.return_value = {"b/b", "a/a", "c/c"}
        assert store.list_enabled(limit=2) == ["a/a", "b/b"]


class TestRedisDeliveryHistory:
    def _history(self) -> tuple[RedisDeliveryHistory, MagicMock]:
        client = MagicMock()
        return RedisDeliveryHistory(client=client), client

    def test_insert_many_pushes_each_event(self) -> None:
        history, client = self._history()
        pipe = client.pipeline.return_value
        history.insert_many([_event(), _event(AlertId.PR_STUCK)])
        keys = [c.args[0] for c in pipe.lpush.call_args_list]
        assert keys == [
            "repodoctor:deliveries:octo/repo:NO_COMMITS",
            "repodoctor:deliveries:octo/repo:PR_STUCK",
        ]
        pipe.execute.assert_called_once()

    def test_insert_nothing(self) -> None:
        history, client = self._history()
        history.insert_many([])
        client.pipeline.assert_not_called()

    def test_find_latest_reads_list_head(self) -> None:
        history, client = self._history()
        client.lindex.return_value = json.dumps(_event().to_dict())
        event = history.find_latest("octo/repo", AlertId.NO_COMMITS)
        client.lindex.assert_called_with("repodoctor:deliveries:octo/repo:NO_COMMITS", 0)
        assert event == _event()

    def test_find_latest_empty(self) -> None:
        history, client = self._history()
        client.lindex.return_value = None
        assert history.find_latest("octo/repo", AlertId.NO_COMMITS) is None
