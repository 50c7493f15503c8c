"""Per (rule, project) alert cooldown tracking."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta

CooldownKey = tuple[str, str]


class CooldownTracker:
    """Remember when each (rule id, project) pair last fired."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_fired: dict[CooldownKey, datetime] = {}

    def try_acquire(self, key: CooldownKey, window: timedelta, now: datetime) -> bool:
        """Mark ``key`` as fired at ``now`` unless it fired within ``window``.

        Check and update happen under one lock, so two concurrent callers
        cannot both acquire the same key.
        """
        with self._lock:
            last = self._last_fired.get(key)
            if last is not None and now - last < window:
                return False
            self._last_fired[key] = now
            return True

    def release(self, key: CooldownKey, fired_at: datetime, previous: datetime | None) -> None:
        """Undo an acquisition made at ``fired_at`` that produced no alert."""
        with self._lock:
            if self._last_fired.get(key) != fired_at:
                return
            if previous is None:
                del self._last_fired[key]
            else:
                self._last_fired[key] = previous

    def last_fired(self, key: CooldownKey) -> datetime | None:
        with self._lock:
            return self._last_fired.get(key)
