"""Build ingestion: normalize, aggregate, evaluate, dispatch."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from pipewatch.core.aggregator import MetricsAggregator, RecordResult
from pipewatch.core.dispatcher import AlertDispatcher
from pipewatch.core.evaluator import RuleEvaluator
from pipewatch.core.events import EventPublisher
from pipewatch.core.normalizer import normalize
from pipewatch.models.alert import Alert
from pipewatch.models.build import Build
from pipewatch.models.events import EventType

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class IngestResult:
    """What one webhook delivery produced."""

    record: RecordResult
    alerts: list[Alert] = field(default_factory=list)
    suppressed: list[str] = field(default_factory=list)

    @property
    def build(self) -> Build:
        return self.record.build

    @property
    def build_id(self) -> str:
        return self.record.build.id


class BuildPipeline:
    """Process one webhook payload end to end.

    Normalization and aggregation errors propagate to the caller, who decides
    whether to retry. Evaluation and dispatch problems are contained: a rule
    that fails to dispatch never prevents the remaining rules from firing.
    """

    def __init__(
        self,
        aggregator: MetricsAggregator,
        evaluator: RuleEvaluator,
        dispatcher: AlertDispatcher,
        events: EventPublisher,
    ) -> None:
        self._aggregator = aggregator
        self._evaluator = evaluator
        self._dispatcher = dispatcher
        self._events = events

    async def ingest_build(
        self,
        payload: Mapping[str, Any],
        source: str = "jenkins",
        *,
        wait_for_notifications: bool = False,
    ) -> IngestResult:
        build = normalize(payload, source)
        log = logger.bind(project=build.project_name, build_number=build.build_number)

        record = await self._aggregator.record(build)
        stored = record.build
        await self._publish_build(stored)
        log.info("build_processed", status=stored.status, source=source)

        result = IngestResult(record=record)
        for rule in await self._evaluator.evaluate(stored):
            try:
                alert = await self._dispatcher.dispatch(
                    rule,
                    stored,
                    wait=wait_for_notifications,
                )
            except Exception:
                log.exception("alert_dispatch_failed", rule=rule.name)
                continue
            if alert is None:
                result.suppressed.append(rule.id)
            else:
                result.alerts.append(alert)
        return result

    async def _publish_build(self, build: Build) -> None:
        await self._events.publish(
            EventType.BUILD_COMPLETED,
            {
                "id": build.id,
                "project_name": build.project_name,
                "status": build.status,
                "build_number": build.build_number,
                "branch": build.branch,
                "duration": build.duration,
                "timestamp": build.end_time.isoformat(),
            },
            project_name=build.project_name,
        )
        await self._events.publish(
            EventType.PROJECT_BUILD_UPDATE,
            {
                "project_name": build.project_name,
                "build": {
                    "id": build.id,
                    "status": build.status,
                    "build_number": build.build_number,
                    "duration": build.duration,
                },
            },
            project_name=build.project_name,
            scoped=True,
        )
