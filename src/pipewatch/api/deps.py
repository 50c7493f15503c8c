"""Service wiring and FastAPI dependency providers."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from fastapi import Depends, Request

from pipewatch.config import Settings
from pipewatch.core.aggregator import MetricsAggregator, utc_now
from pipewatch.core.cooldown import CooldownTracker
from pipewatch.core.dispatcher import AlertDispatcher
from pipewatch.core.evaluator import RuleEvaluator
from pipewatch.core.events import EventBus
from pipewatch.core.notifications import NotificationSender, NotificationService
from pipewatch.core.pipeline import BuildPipeline
from pipewatch.core.rule_registry import RuleRegistry
from pipewatch.db.store import SQLiteStore


@dataclass(slots=True)
class Services:
    """Long-lived components shared by every request."""

    settings: Settings
    store: SQLiteStore
    events: EventBus
    registry: RuleRegistry
    cooldowns: CooldownTracker
    notifier: NotificationSender
    aggregator: MetricsAggregator
    evaluator: RuleEvaluator
    dispatcher: AlertDispatcher
    pipeline: BuildPipeline


def build_services(
    settings: Settings,
    *,
    notifier: NotificationSender | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> Services:
    settings.database_path.parent.mkdir(parents=True, exist_ok=True)
    store = SQLiteStore(db_path=settings.database_path)
    events = EventBus(store=store)
    registry = RuleRegistry(store)
    cooldowns = CooldownTracker()
    sender = notifier or NotificationService(settings)
    aggregator = MetricsAggregator(store, clock=clock)
    evaluator = RuleEvaluator(registry, store, clock=clock)
    dispatcher = AlertDispatcher(
        store,
        sender,
        events,
        cooldowns,
        notification_timeout=settings.notification_timeout_seconds,
        clock=clock,
    )
    return Services(
        settings=settings,
        store=store,
        events=events,
        registry=registry,
        cooldowns=cooldowns,
        notifier=sender,
        aggregator=aggregator,
        evaluator=evaluator,
        dispatcher=dispatcher,
        pipeline=BuildPipeline(aggregator, evaluator, dispatcher, events),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_store(services: Services = Depends(get_services)) -> SQLiteStore:
    return services.store


def get_pipeline(services: Services = Depends(get_services)) -> BuildPipeline:
    return services.pipeline


def get_aggregator(services: Services = Depends(get_services)) -> MetricsAggregator:
    return services.aggregator


def get_rule_registry(services: Services = Depends(get_services)) -> RuleRegistry:
    return services.registry


def get_dispatcher(services: Services = Depends(get_services)) -> AlertDispatcher:
    return services.dispatcher


def get_notifier(services: Services = Depends(get_services)) -> NotificationSender:
    return services.notifier
