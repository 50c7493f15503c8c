"""Alert rule management with an in-memory cache of enabled rules."""

from __future__ import annotations

import threading
from typing import Any

import structlog

from pipewatch.core.errors import RuleNotFoundError
from pipewatch.db.store import SQLiteStore
from pipewatch.models.rules import AlertRule

logger = structlog.get_logger(__name__)


class RuleRegistry:
    """Persist rules and cache the enabled ones for evaluation.

    The cache is invalidated explicitly by every mutation made through the
    registry and reloaded lazily on the next :meth:`get_enabled` call.
    """

    def __init__(self, store: SQLiteStore) -> None:
        self._store = store
        self._lock = threading.Lock()
        self._cache: dict[str, AlertRule] | None = None
        self._generation = 0

    async def get_enabled(self) -> list[AlertRule]:
        with self._lock:
            cache = self._cache
        if cache is None:
            cache = await self.reload()
        return list(cache.values())

    async def reload(self) -> dict[str, AlertRule]:
        """Read the enabled rules and cache them.

        A read that overlaps a mutation is returned to the caller but not
        cached, so the next call reads again.
        """
        with self._lock:
            generation = self._generation
        rules = await self._store.list_rules(enabled=True)
        cache = {rule.id: rule for rule in rules}
        with self._lock:
            current = self._generation == generation
            if current:
                self._cache = cache
        if current:
            logger.info("alert_rules_loaded", count=len(cache))
        else:
            logger.debug("alert_rules_reload_superseded", count=len(cache))
        return cache

    def invalidate(self) -> None:
        with self._lock:
            self._generation += 1
            self._cache = None

    async def list(self) -> list[AlertRule]:
        return await self._store.list_rules()

    async def get(self, rule_id: str) -> AlertRule:
        rule = await self._store.get_rule(rule_id)
        if rule is None:
            msg = f"Alert rule not found: {rule_id}"
            raise RuleNotFoundError(msg)
        return rule

    async def create(self, rule: AlertRule) -> AlertRule:
        await self._store.upsert_rule(rule)
        self.invalidate()
        logger.info("alert_rule_created", rule=rule.name, rule_id=rule.id)
        return rule

    async def update(self, rule_id: str, changes: dict[str, Any]) -> AlertRule:
        """Apply a partial update; ``changes`` uses AlertRule field names."""
        current = await self.get(rule_id)
        data = current.model_dump()
        data.update(
            {key: value for key, value in changes.items() if key not in {"id", "created_at"}}
        )
        updated = AlertRule.model_validate(data)
        updated.touch()
        await self._store.upsert_rule(updated)
        self.invalidate()
        logger.info("alert_rule_updated", rule=updated.name, rule_id=rule_id)
        return updated

    async def set_enabled(self, rule_id: str, enabled: bool) -> AlertRule:
        return await self.update(rule_id, {"enabled": enabled})

    async def delete(self, rule_id: str) -> None:
        if not await self._store.delete_rule(rule_id):
            msg = f"Alert rule not found: {rule_id}"
            raise RuleNotFoundError(msg)
        self.invalidate()
        logger.info("alert_rule_deleted", rule_id=rule_id)
