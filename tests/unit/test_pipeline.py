from __future__ import annotations

from pathlib import Path

import pytest

from pipewatch.core.errors import PayloadValidationError
from pipewatch.models.events import EventType
from pipewatch.models.rules import (
    AlertRule,
    BuildFailureCondition,
    ChannelType,
    DeploymentFailureCondition,
    DurationThresholdCondition,
    NotificationChannel,
)
from tests.support.pipewatch_helpers import (
    PipewatchTestClock,
    RecordingNotifier,
    build_payload,
    make_services,
)

SLACK = NotificationChannel(
    type=ChannelType.SLACK,
    configuration={"webhookUrl": "https://hooks.slack.test/T1"},
)


@pytest.mark.asyncio
async def test_failed_production_build_fires_two_alerts(tmp_path: Path) -> None:
    clock = PipewatchTestClock()
    notifier = RecordingNotifier()
    services = make_services(tmp_path, clock, notifier)
    await services.registry.create(
        AlertRule(
            name="Build failed",
            condition=BuildFailureCondition(),
            channels=[SLACK],
            cooldown_minutes=0,
        )
    )
    await services.registry.create(
        AlertRule(
            name="Deployment failed",
            condition=DeploymentFailureCondition(environments=["production"]),
            channels=[SLACK],
            cooldown_minutes=0,
        )
    )
    subscription = services.events.subscribe()

    result = await services.pipeline.ingest_build(
        build_payload(
            clock,
            build_id="42",
            project="api",
            status="FAILURE",
            duration=120,
            environment="production",
        ),
        "jenkins",
        wait_for_notifications=True,
    )

    assert len(result.alerts) == 2
    assert len(await services.store.list_alerts()) == 2
    assert len(notifier.sent) == 2

    published = []
    while not subscription.queue.empty():
        published.append(subscription.queue.get_nowait().event_type)
    assert published.count(EventType.BUILD_COMPLETED) == 1
    assert published.count(EventType.ALERT_TRIGGERED) == 2
    assert EventType.PROJECT_BUILD_UPDATE not in published


@pytest.mark.asyncio
async def test_disabled_rule_stops_firing(tmp_path: Path) -> None:
    clock = PipewatchTestClock()
    services = make_services(tmp_path, clock)
    rule = await services.registry.create(
        AlertRule(name="Build failed", condition=BuildFailureCondition(), cooldown_minutes=0)
    )

    first = await services.pipeline.ingest_build(
        build_payload(clock, build_id="1", status="FAILED")
    )
    assert [alert.rule_id for alert in first.alerts] == [rule.id]

    await services.registry.set_enabled(rule.id, False)
    second = await services.pipeline.ingest_build(
        build_payload(clock, build_id="2", status="FAILED", build_number=2)
    )
    assert second.alerts == []


@pytest.mark.asyncio
async def test_cooldown_suppression_is_reported(tmp_path: Path) -> None:
    clock = PipewatchTestClock()
    services = make_services(tmp_path, clock)
    rule = await services.registry.create(
        AlertRule(name="Slow build", condition=DurationThresholdCondition(threshold_minutes=1))
    )

    await services.pipeline.ingest_build(build_payload(clock, build_id="1", duration=300))
    clock.advance(minutes=5)
    result = await services.pipeline.ingest_build(
        build_payload(clock, build_id="2", duration=300, build_number=2)
    )

    assert result.alerts == []
    assert result.suppressed == [rule.id]


@pytest.mark.asyncio
async def test_redelivery_updates_existing_build(tmp_path: Path) -> None:
    clock = PipewatchTestClock()
    services = make_services(tmp_path, clock)

    first = await services.pipeline.ingest_build(
        build_payload(clock, build_id="42", status="RUNNING")
    )
    second = await services.pipeline.ingest_build(
        build_payload(clock, build_id="42", status="SUCCESS", duration=200)
    )

    assert second.build_id == first.build_id
    builds = await services.store.list_builds(project_name="api")
    assert len(builds) == 1
    assert builds[0].status == "success"
    assert builds[0].duration == 200


@pytest.mark.asyncio
async def test_invalid_payload_writes_nothing(tmp_path: Path) -> None:
    clock = PipewatchTestClock()
    services = make_services(tmp_path, clock)

    with pytest.raises(PayloadValidationError):
        await services.pipeline.ingest_build({"status": "FAILED"})

    assert await services.store.list_builds() == []
    assert await services.store.list_events() == []


@pytest.mark.asyncio
async def test_consecutive_failures_see_the_current_build(tmp_path: Path) -> None:
    clock = PipewatchTestClock()
    services = make_services(tmp_path, clock)
    await services.registry.create(
        AlertRule(
            name="Failure streak",
            condition={"type": "consecutive_failures", "count": 3},
            cooldown_minutes=0,
        )
    )

    results = []
    for number in range(1, 4):
        clock.advance(minutes=1)
        results.append(
            await services.pipeline.ingest_build(
                build_payload(clock, build_id=str(number), status="FAILED", build_number=number)
            )
        )

    assert [len(result.alerts) for result in results] == [0, 0, 1]
