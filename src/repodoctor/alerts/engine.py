"""Alert engine — evaluate repositories and dispatch notifications with cooldowns.

Each (repository, rule) pair is either *suppressed* (delivered less than
``cooldown_hours`` ago) or *sendable*. The only state is the delivery history
store; the engine keeps nothing between calls.

Known race: two concurrent dispatches for the same repository can both read
"sendable" for a rule before either writes its DeliveryEvent, and both will
send. Delivery is at-most-approximately-once per cooldown window, not exact.

Usage::

    engine = AlertEngine(
        collector=ActivityCollector(GitHubClient(token)),
        settings_store=RedisSettingsStore(url),
        history=RedisDeliveryHistory(url),
        transport=WebhookTransport(timeout=5.0),
        transport_config=TransportConfig.from_settings(settings),
    )
    result = engine.dispatch("octo/repo", engine.get_settings("octo/repo"))
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from ..errors import AlertConfigurationError, InvalidRepoError
from ..github.client import RepoRef
from ..store.base import DeliveryHistory, SettingsStore
from .collector import ActivityCollector
from .formatting import build_payload
from .models import (
    AlertId,
    AlertState,
    BatchOutcome,
    BatchResult,
    DeliveryEvent,
    DispatchResult,
    Evaluation,
)
from .rules import evaluate_rules
from .settings import AlertSettings, merge_settings, sanitize_settings
from .targets import CHANNEL_AUTO, TransportConfig, is_webhook_configured, parse_channel, resolve_target
from .webhook import Transport

logger = logging.getLogger(__name__)

REASON_DISABLED = "Alerts are disabled for this repository."
REASON_NOTHING_TO_SEND = "No active alerts to send."
REASON_ALL_IN_COOLDOWN = "All active alerts are in cooldown."
DEFAULT_BATCH_LIMIT = 150


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_repo(repo: RepoRef | str) -> RepoRef:
    return repo if isinstance(repo, RepoRef) else RepoRef.parse(repo)


class AlertEngine:
    """Evaluate rule states and deliver notifications for repositories.

    Args:
        collector:         Reads repository activity.
        settings_store:    Per-repository AlertSettings records.
        history:           Append-only DeliveryEvent log (cooldown source).
        transport:         Sends formatted payloads.
        transport_config:  Configured endpoint URLs.
        clock:             Returns the current aware UTC datetime.
    """

    def __init__(
        self,
        collector: ActivityCollector,
        settings_store: SettingsStore,
        history: DeliveryHistory,
        transport: Transport,
        transport_config: TransportConfig,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._collector = collector
        self._settings_store = settings_store
        self._history = history
        self._transport = transport
        self._transport_config = transport_config
        self._clock = clock

    @property
    def webhook_configured(self) -> bool:
        return is_webhook_configured(self._transport_config)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self, repo: RepoRef | str) -> AlertSettings:
        return sanitize_settings(self._settings_store.get(str(_as_repo(repo))))

    def save_settings(self, repo: RepoRef | str, patch: Any) -> AlertSettings:
        """Merge a partial update over the stored settings and upsert."""
        key = str(_as_repo(repo))
        merged = merge_settings(self.get_settings(key), patch)
        self._settings_store.put(key, merged.to_dict())
        return merged

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate(self, repo: RepoRef | str, settings: Any) -> Evaluation:
        """Read-only: fetch activity and compute the three alert states."""
        return self._evaluate(_as_repo(repo), sanitize_settings(settings), self._clock())

    def _evaluate(self, ref: RepoRef, settings: AlertSettings, now: datetime) -> Evaluation:
        snapshot = self._collector.collect(ref, settings, now)
        return evaluate_rules(str(ref), settings, snapshot, now)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(
        self,
        repo: RepoRef | str,
        settings: Any,
        channel: str = CHANNEL_AUTO,
        force: bool = False,
    ) -> DispatchResult:
        """Send one notification covering every active rule not in cooldown.

        Unknown ``channel`` values fall back to ``auto``.

        Raises:
            AlertConfigurationError: no endpoint resolves for ``channel``.
            DeliveryError:           the transport failed; nothing is recorded.
            HostingApiError:         activity could not be collected.
        """
        ref = _as_repo(repo)
        key = str(ref)
        settings = sanitize_settings(settings)
        now = self._clock()
        evaluation = self._evaluate(ref, settings, now)

        if not settings.enabled and not force:
            return DispatchResult(sent=False, reason=REASON_DISABLED, evaluation=evaluation)

        active = evaluation.active_alerts
        if not active:
            return DispatchResult(sent=False, reason=REASON_NOTHING_TO_SEND, evaluation=evaluation)

        channel = parse_channel(channel)
        target = resolve_target(channel, self._transport_config)
        if target is None:
            raise AlertConfigurationError(
                f"Alert webhook is not configured for channel {channel!r}. "
                "Set REPODOCTOR_ALERT_WEBHOOK_URL or a channel-specific webhook URL."
            )

        sendable, suppressed = self._apply_cooldown(key, active, settings, now, force)
        if not sendable:
            logger.info("All %d active alert(s) for %s are in cooldown", len(suppressed), key)
            return DispatchResult(
                sent=False,
                reason=REASON_ALL_IN_COOLDOWN,
                suppressed_rule_ids=suppressed,
                evaluation=evaluation,
            )

        payload = build_payload(target.kind, evaluation, sendable)
        self._transport.send(target, payload)

        self._history.insert_many(
            DeliveryEvent(
                repo=key,
                rule_id=alert.id,
                severity=alert.severity,
                channel=target.kind,
                force=force,
                sent_at=now,
            )
            for alert in sendable
        )
        sent_ids = [alert.id for alert in sendable]
        logger.info("Sent %s alert(s) for %s via %s", ",".join(a.value for a in sent_ids), key, target.kind)
        return DispatchResult(
            sent=True,
            sent_rule_ids=sent_ids,
            suppressed_rule_ids=suppressed,
            channel_used=target.kind,
            sent_at=now,
            evaluation=evaluation,
        )

    def _apply_cooldown(
        self,
        repo: str,
        active: tuple[AlertState, ...],
        settings: AlertSettings,
        now: datetime,
        force: bool,
    ) -> tuple[list[AlertState], list[AlertId]]:
        if force:
            return list(active), []
        cooldown = timedelta(hours=settings.cooldown_hours)
        sendable: list[AlertState] = []
        suppressed: list[AlertId] = []
        for alert in active:
            last = self._history.find_latest(repo, alert.id)
            if last is not None and now - last.sent_at < cooldown:
                suppressed.append(alert.id)
            else:
                sendable.append(alert)
        return sendable, suppressed

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def run_batch(self, repos: list[str] | None = None, limit: int = DEFAULT_BATCH_LIMIT) -> BatchResult:
        """Dispatch (auto channel, not forced) for each repository.

        ``repos=None`` processes every enabled repository in the settings
        store. At most ``limit`` distinct repositories are processed. A
        failure for one repository is recorded in its outcome and never stops
        the rest of the batch.
        """
        if repos is None:
            repos = self._settings_store.list_enabled(limit)
        result = BatchResult()

        unique = list(dict.fromkeys(r.strip() for r in repos if r and r.strip()))
        for repo in unique[:limit]:
            try:
                ref = RepoRef.parse(repo)
            except InvalidRepoError:
                result.outcomes.append(BatchOutcome(repo=repo, ok=False, error="Invalid repo format"))
                continue

            try:
                dispatch = self.dispatch(ref, self.get_settings(ref), channel=CHANNEL_AUTO, force=False)
            except Exception as exc:
                logger.exception("Alert dispatch failed for %s", repo)
                result.outcomes.append(BatchOutcome(repo=repo, ok=False, error=str(exc) or type(exc).__name__))
                continue

            result.outcomes.append(
                BatchOutcome(
                    repo=repo,
                    ok=True,
                    sent=dispatch.sent,
                    reason=dispatch.reason,
                    sent_rule_ids=dispatch.sent_rule_ids,
                )
            )

        logger.info(
            "Batch run: %d processed, %d sent, %d failed", result.processed, result.sent, result.failed
        )
        return result
