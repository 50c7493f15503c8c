"""Turn matched rules into persisted, cooldown-gated, notified alerts."""

from __future__ import annotations

import asyncio
import math
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import structlog

from pipewatch.core.cooldown import CooldownTracker
from pipewatch.core.errors import (
    AlertNotFoundError,
    InvalidAlertTransitionError,
    NotificationDeliveryError,
)
from pipewatch.core.events import EventPublisher
from pipewatch.core.notifications import NotificationSender
from pipewatch.db.store import SQLiteStore
from pipewatch.models.alert import Alert, AlertStatistics, AlertStatus
from pipewatch.models.build import Build
from pipewatch.models.events import EventType
from pipewatch.models.metric import MetricPeriod
from pipewatch.models.rules import AlertRule, AlertSeverity, ChannelType, NotificationChannel

logger = structlog.get_logger(__name__)

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def _utc_now() -> datetime:
    return datetime.now(UTC)


def render_message(template: str | None, build: Build) -> str:
    """Fill ``{placeholder}`` fields from the build; unknown ones stay as written."""
    if not template:
        return f"Build {build.project_name}#{build.build_number} failed"
    values = {
        "projectName": build.project_name,
        "buildNumber": str(build.build_number),
        "status": build.status,
        "branch": build.branch,
        "duration": f"{math.floor(build.duration / 60 + 0.5)}m",
        "environment": build.environment,
        "triggeredBy": build.triggered_by,
    }
    return _PLACEHOLDER.sub(lambda match: values.get(match.group(1), match.group(0)), template)


@dataclass(slots=True)
class DeliveryResult:
    """Outcome of one channel delivery attempt."""

    channel: ChannelType
    delivered: bool
    error: str | None = None


class AlertDispatcher:
    """Own Alert writes: creation on rule match and operator transitions.

    The cooldown is taken when an alert is persisted, not when a notification
    is delivered. Deliveries run as background tasks with their own timeout;
    one failing channel never affects the others or the alert itself.
    """

    def __init__(
        self,
        store: SQLiteStore,
        notifier: NotificationSender,
        events: EventPublisher,
        cooldowns: CooldownTracker,
        *,
        notification_timeout: float = 10.0,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._events = events
        self._cooldowns = cooldowns
        self._timeout = notification_timeout
        self._clock = clock
        self._pending: set[asyncio.Task[DeliveryResult]] = set()

    async def dispatch(self, rule: AlertRule, build: Build, *, wait: bool = False) -> Alert | None:
        """Fire ``rule`` for ``build`` unless it is cooling down.

        Returns the created alert, or ``None`` when suppressed. With ``wait``
        the call also awaits the channel deliveries.
        """
        now = self._clock()
        key = (rule.id, build.project_name)
        previous = self._cooldowns.last_fired(key)
        window = timedelta(minutes=rule.cooldown_minutes)
        if not self._cooldowns.try_acquire(key, window, now):
            logger.info(
                "alert_suppressed",
                rule=rule.name,
                project=build.project_name,
                cooldown_minutes=rule.cooldown_minutes,
            )
            return None

        alert = Alert(
            rule_id=rule.id,
            rule_name=rule.name,
            severity=rule.severity,
            message=render_message(rule.message_template, build),
            project_name=build.project_name,
            build_id=build.id,
            build_number=build.build_number,
            timestamp=now,
            metadata={
                "condition": rule.condition.model_dump(mode="json"),
                "build_data": {
                    "status": build.status,
                    "duration": build.duration,
                    "branch": build.branch,
                    "environment": build.environment,
                },
            },
        )
        try:
            await self._store.upsert_alert(alert)
        except Exception:
            self._cooldowns.release(key, now, previous)
            raise

        tasks = [self._schedule(alert, channel) for channel in rule.channels]
        await self._events.publish(
            EventType.ALERT_TRIGGERED,
            {
                "id": alert.id,
                "rule_name": alert.rule_name,
                "severity": alert.severity.value,
                "project_name": alert.project_name,
                "build_id": alert.build_id,
                "timestamp": alert.timestamp.isoformat(),
            },
            project_name=alert.project_name,
        )
        logger.info(
            "alert_fired",
            rule=rule.name,
            project=build.project_name,
            build_number=build.build_number,
            alert_id=alert.id,
            channels=len(tasks),
        )
        if wait and tasks:
            await asyncio.gather(*tasks)
        return alert

    async def drain(self) -> None:
        """Wait for every in-flight delivery to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    @property
    def pending_deliveries(self) -> int:
        return len(self._pending)

    def _schedule(self, alert: Alert, channel: NotificationChannel) -> asyncio.Task[DeliveryResult]:
        task = asyncio.create_task(self._deliver(alert, channel))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, alert: Alert, channel: NotificationChannel) -> DeliveryResult:
        log = logger.bind(alert_id=alert.id, channel=channel.type.value, project=alert.project_name)
        try:
            await asyncio.wait_for(
                self._notifier.send(channel.type, channel.configuration, alert),
                timeout=self._timeout,
            )
        except TimeoutError:
            log.error("notification_timed_out", timeout=self._timeout)
            return DeliveryResult(channel.type, delivered=False, error="timed out")
        except NotificationDeliveryError as exc:
            log.error("notification_failed", error=str(exc))
            return DeliveryResult(channel.type, delivered=False, error=str(exc))
        except Exception as exc:
            log.exception("notification_failed")
            return DeliveryResult(channel.type, delivered=False, error=str(exc))
        return DeliveryResult(channel.type, delivered=True)

    # Operator transitions

    async def acknowledge(self, alert_id: str, acknowledged_by: str) -> Alert:
        alert = await self._transition(alert_id, AlertStatus.ACKNOWLEDGED)
        alert.acknowledged_by = acknowledged_by
        alert.acknowledged_at = self._clock()
        await self._store.upsert_alert(alert)
        await self._events.publish(
            EventType.ALERT_ACKNOWLEDGED,
            {"id": alert.id, "acknowledged_by": acknowledged_by},
            project_name=alert.project_name,
        )
        logger.info("alert_acknowledged", alert_id=alert_id, by=acknowledged_by)
        return alert

    async def resolve(
        self,
        alert_id: str,
        resolved_by: str,
        resolution: str | None = None,
    ) -> Alert:
        alert = await self._transition(alert_id, AlertStatus.RESOLVED)
        alert.resolved_by = resolved_by
        alert.resolved_at = self._clock()
        alert.resolution = resolution
        await self._store.upsert_alert(alert)
        await self._events.publish(
            EventType.ALERT_RESOLVED,
            {"id": alert.id, "resolved_by": resolved_by, "resolution": resolution},
            project_name=alert.project_name,
        )
        logger.info("alert_resolved", alert_id=alert_id, by=resolved_by)
        return alert

    async def _transition(self, alert_id: str, target: AlertStatus) -> Alert:
        alert = await self.get(alert_id)
        if not alert.can_transition(target):
            msg = f"Cannot move alert {alert_id} from {alert.status.value} to {target.value}"
            raise InvalidAlertTransitionError(msg)
        alert.status = target
        return alert

    # Queries

    async def get(self, alert_id: str) -> Alert:
        alert = await self._store.get_alert(alert_id)
        if alert is None:
            msg = f"Alert not found: {alert_id}"
            raise AlertNotFoundError(msg)
        return alert

    async def list_alerts(
        self,
        *,
        status: AlertStatus | None = None,
        project_name: str | None = None,
        severity: AlertSeverity | None = None,
        limit: int | None = None,
    ) -> list[Alert]:
        return await self._store.list_alerts(
            status=status,
            project_name=project_name,
            severity=severity,
            limit=limit,
        )

    async def statistics(self, period: MetricPeriod = MetricPeriod.LAST_DAY) -> AlertStatistics:
        alerts = await self._store.list_alerts(since=self._clock() - period.window)
        return AlertStatistics(
            total_alerts=len(alerts),
            critical_alerts=sum(1 for a in alerts if a.severity is AlertSeverity.CRITICAL),
            warning_alerts=sum(1 for a in alerts if a.severity is AlertSeverity.WARNING),
            info_alerts=sum(1 for a in alerts if a.severity is AlertSeverity.INFO),
            active_alerts=sum(1 for a in alerts if a.status is AlertStatus.ACTIVE),
            acknowledged_alerts=sum(1 for a in alerts if a.status is AlertStatus.ACKNOWLEDGED),
            resolved_alerts=sum(1 for a in alerts if a.status is AlertStatus.RESOLVED),
        )
