"""
Change Tracker - Innovation Assessment Client
assessment_app/sync/change_tracker.py

In-memory set of edits not yet confirmed by the remote store.

Keys are "<changeType>_<pillarId>_<indicatorId>", so at most one payload per
indicator and change type is ever pending; a newer edit overwrites the older
payload and receives a higher version.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

import structlog

from assessment_app.models.application import utc_now
from assessment_app.models.enumerations import ChangeType

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PendingChange:
    """Latest unconfirmed payload for one key."""
    key: str
    change_type: ChangeType
    pillar_id: int
    indicator_id: str
    payload: Dict[str, Any]
    version: int
    recorded_at: datetime = field(default_factory=utc_now)


def change_key(change_type: ChangeType, pillar_id: int, indicator_id: str) -> str:
    return f"{ChangeType(change_type).value}_{pillar_id}_{indicator_id}"


class ChangeTracker:
    """Pending-change map with a monotonically increasing version counter."""

    def __init__(self):
        self._pending: Dict[str, PendingChange] = {}
        self._version = 0

    @property
    def version(self) -> int:
        """Version of the most recent record_change()."""
        return self._version

    def record_change(
        self,
        change_type: ChangeType,
        pillar_id: int,
        indicator_id: str,
        payload: Dict[str, Any],
    ) -> PendingChange:
        self._version += 1
        key = change_key(change_type, pillar_id, indicator_id)
        change = PendingChange(
            key=key,
            change_type=ChangeType(change_type),
            pillar_id=pillar_id,
            indicator_id=indicator_id,
            payload=dict(payload),
            version=self._version,
        )
        self._pending[key] = change
        logger.debug("change_recorded", key=key, version=change.version)
        return change

    def clear_change(self, key: str, version: Optional[int] = None) -> bool:
        """
        Drop a pending change once the store confirmed it.

        With `version`, the entry is only dropped if nothing newer was recorded
        for that key in the meantime. Returns True when an entry was removed.
        """
        current = self._pending.get(key)
        if current is None:
            return False
        if version is not None and current.version > version:
            logger.debug(
                "change_clear_skipped",
                key=key,
                confirmed_version=version,
                pending_version=current.version,
            )
            return False
        del self._pending[key]
        return True

    def clear_through(self, version: int) -> List[str]:
        """Drop every change recorded at or before `version`; returns the cleared keys."""
        cleared = [k for k, c in self._pending.items() if c.version <= version]
        for key in cleared:
            del self._pending[key]
        return cleared

    def get(self, key: str) -> Optional[PendingChange]:
        return self._pending.get(key)

    def has_pending(self) -> bool:
        return bool(self._pending)

    def all_pending(self) -> List[PendingChange]:
        """Snapshot ordered by version, oldest first."""
        return sorted(self._pending.values(), key=lambda c: c.version)

    def keys(self) -> List[str]:
        return [c.key for c in self.all_pending()]

    def clear(self) -> None:
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: object) -> bool:
        return key in self._pending

    def __iter__(self) -> Iterator[PendingChange]:
        return iter(self.all_pending())
