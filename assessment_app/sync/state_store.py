"""
Application State Store - Innovation Assessment Client
assessment_app/sync/state_store.py

Single owner of the in-progress application. Every mutation goes through
this class: edits apply locally and synchronously, pillar caches are
recomputed, a pending change is recorded and listeners (the persistence
scheduler) are notified.

Navigation gating:
    step 0 (institution setup) is always reachable
    step k >= 1 requires a complete institution profile and every pillar
    1..k-1 at or above the completion threshold, recomputed live
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

import structlog

from assessment_app.catalog.indicator_catalog import IndicatorCatalog
from assessment_app.config import settings
from assessment_app.core.exceptions import (
    ApplicationLockedException,
    ApplicationNotLoadedException,
    InvalidStepException,
    UnknownIndicatorException,
)
from assessment_app.models.application import (
    EVIDENCE_KINDS,
    Application,
    ApplicationScores,
    EvidenceData,
    IndicatorData,
    IndicatorValue,
    InstitutionData,
    PillarData,
    StepValidation,
    pillar_key,
    utc_now,
)
from assessment_app.models.enumerations import (
    ApplicationStatus,
    ChangeType,
    NotificationVariant,
)
from assessment_app.models.notification import Notification
from assessment_app.scoring.institution_validator import is_institution_complete
from assessment_app.scoring.progress_calculator import PillarProgress, ProgressCalculator
from assessment_app.sync.change_tracker import ChangeTracker, PendingChange

logger = structlog.get_logger(__name__)


# Event kinds emitted to listeners
LOADED = "loaded"
INSTITUTION_UPDATED = "institution_updated"
INDICATOR_UPDATED = "indicator_updated"
EVIDENCE_UPDATED = "evidence_updated"
CHANGE_CONFIRMED = "change_confirmed"
STEP_CHANGED = "step_changed"
SAVED = "saved"
SUBMITTED = "submitted"
ONLINE_CHANGED = "online_changed"


@dataclass(frozen=True)
class StoreEvent:
    kind: str
    change: Optional[PendingChange] = None


Listener = Callable[[StoreEvent], None]


def _same_value(current: IndicatorValue, value: IndicatorValue) -> bool:
    """Numbers compare numerically; anything else must also match in type."""
    numeric = (int, float)
    if (
        isinstance(current, numeric) and isinstance(value, numeric)
        and not isinstance(current, bool) and not isinstance(value, bool)
    ):
        return current == value
    return current == value and type(current) is type(value)


def _content(item: Any) -> Optional[Dict[str, Any]]:
    """Evidence substructure without its persisted flag, for equality checks."""
    if item is None:
        return None
    return item.model_dump(exclude={"persisted"})


class ApplicationStateStore:
    """In-memory application state plus save-status flags."""

    def __init__(
        self,
        catalog: IndicatorCatalog,
        calculator: Optional[ProgressCalculator] = None,
        tracker: Optional[ChangeTracker] = None,
        navigation_threshold: Optional[float] = None,
    ):
        self.catalog = catalog
        self.calculator = calculator if calculator is not None else ProgressCalculator(catalog)
        self.tracker = tracker if tracker is not None else ChangeTracker()
        self.navigation_threshold = (
            settings.NAVIGATION_COMPLETION_THRESHOLD
            if navigation_threshold is None
            else navigation_threshold
        )

        self.application: Optional[Application] = None
        self.is_loading = False
        self.is_saving = False
        self.error: Optional[str] = None
        self.last_save_time: Optional[datetime] = None
        self.is_online = True
        self.has_unsaved_changes = False
        self.notifications: List[Notification] = []
        self.revision = 0

        self._listeners: List[Listener] = []

    # =========================================================================
    # Listeners
    # =========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, kind: str, change: Optional[PendingChange] = None) -> None:
        event = StoreEvent(kind=kind, change=change)
        for listener in list(self._listeners):
            listener(event)

    # =========================================================================
    # Guards
    # =========================================================================

    def _require_application(self, operation: str) -> Application:
        if self.application is None:
            raise ApplicationNotLoadedException(operation)
        return self.application

    def _require_editable(self, operation: str) -> Application:
        application = self._require_application(operation)
        if not application.is_editable:
            raise ApplicationLockedException(application.id, application.status.value)
        return application

    def _check_membership(self, pillar_id: int, indicator_id: str) -> None:
        if indicator_id not in self.catalog.indicators_for_pillar(pillar_id):
            raise UnknownIndicatorException(indicator_id, pillar_id)

    def _touch(self) -> None:
        self.revision += 1
        self.has_unsaved_changes = True
        self.application.last_modified = utc_now()

    # =========================================================================
    # Loading
    # =========================================================================

    def load(self, application: Application) -> Application:
        """Adopt an application fetched from the store and resume at the first incomplete step."""
        self.application = application.model_copy(deep=True)
        self.tracker.clear()
        self.refresh_pillar_caches()
        self.recompute_scores()
        self.application.current_step = self.get_next_incomplete_step()
        self.has_unsaved_changes = False
        self.error = None
        self.is_loading = False
        logger.info(
            "application_loaded",
            application_id=self.application.id,
            status=self.application.status.value,
            current_step=self.application.current_step,
        )
        self._emit(LOADED)
        return self.application

    # =========================================================================
    # Edits
    # =========================================================================

    def update_institution(self, **fields: Any) -> bool:
        """
        Update institution profile fields by attribute name.

        Returns False when nothing changed. No partial change is recorded;
        the profile travels with the consolidated save.
        """
        application = self._require_editable("update institution")
        unknown = set(fields) - set(InstitutionData.model_fields)
        if unknown:
            raise ValueError(f"Unknown institution field(s): {', '.join(sorted(unknown))}")

        current = application.institution_data
        updated = InstitutionData.model_validate({**current.model_dump(), **fields})
        if updated == current:
            return False

        application.institution_data = updated
        self._touch()
        self._emit(INSTITUTION_UPDATED)
        return True

    def update_indicator(
        self, pillar_id: int, indicator_id: str, value: IndicatorValue
    ) -> Optional[PendingChange]:
        """
        Set an indicator's raw value.

        Returns the recorded pending change, or None when the value is unchanged
        (no pending change, no timestamp update).
        """
        application = self._require_editable("update indicator")
        self._check_membership(pillar_id, indicator_id)

        key = pillar_key(pillar_id)
        pillar = application.pillar_data.get(key)
        indicator = pillar.indicators.get(indicator_id) if pillar else None
        current = indicator.value if indicator else None
        if _same_value(current, value):
            return None

        now = utc_now()
        if pillar is None:
            pillar = PillarData(last_modified=now)
            application.pillar_data[key] = pillar
        if indicator is None:
            pillar.indicators[indicator_id] = IndicatorData(
                id=indicator_id, value=value, last_modified=now
            )
        else:
            indicator.value = value
            indicator.last_modified = now
        pillar.last_modified = now

        self._refresh_pillar(pillar_id)
        self._touch()
        change = self.tracker.record_change(
            ChangeType.INDICATOR,
            pillar_id,
            indicator_id,
            {"pillarId": pillar_id, "indicatorId": indicator_id, "value": value},
        )
        self._emit(INDICATOR_UPDATED, change)
        return change

    def update_evidence(
        self,
        pillar_id: int,
        indicator_id: str,
        evidence: Union[EvidenceData, Dict[str, Any]],
    ) -> Optional[PendingChange]:
        """
        Merge evidence into an indicator, kind by kind.

        Kinds whose content changed become local (persisted=False) until a save
        confirms them. Returns None when the merge changes nothing.
        """
        application = self._require_editable("update evidence")
        self._check_membership(pillar_id, indicator_id)
        if not isinstance(evidence, EvidenceData):
            evidence = EvidenceData.model_validate(evidence)

        key = pillar_key(pillar_id)
        pillar = application.pillar_data.get(key)
        indicator = pillar.indicators.get(indicator_id) if pillar else None
        current = indicator.evidence if indicator else EvidenceData()

        incoming: Dict[str, Any] = {}
        for kind in EVIDENCE_KINDS:
            item = getattr(evidence, kind)
            if item is None or _content(item) == _content(getattr(current, kind)):
                continue
            incoming[kind] = item.model_copy(update={"persisted": False})
        if not incoming:
            return None
        merged = current.merge(EvidenceData(**incoming))

        now = utc_now()
        if pillar is None:
            pillar = PillarData(last_modified=now)
            application.pillar_data[key] = pillar
        if indicator is None:
            indicator = IndicatorData(id=indicator_id, last_modified=now)
            pillar.indicators[indicator_id] = indicator
        indicator.evidence = merged
        indicator.last_modified = now
        pillar.last_modified = now

        self._refresh_pillar(pillar_id)
        self._touch()
        change = self.tracker.record_change(
            ChangeType.EVIDENCE,
            pillar_id,
            indicator_id,
            {
                "pillarId": pillar_id,
                "indicatorId": indicator_id,
                "evidence": merged.model_dump(mode="json", by_alias=True, exclude_none=True),
            },
        )
        self._emit(EVIDENCE_UPDATED, change)
        return change

    # =========================================================================
    # Local -> Confirmed
    # =========================================================================

    def confirm_change(self, change: PendingChange) -> bool:
        """
        Mark evidence sent with `change` as persisted.

        Only substructures that still equal what was sent are confirmed; a newer
        local edit stays local. Returns True when any flag flipped.
        """
        if change.change_type != ChangeType.EVIDENCE or self.application is None:
            return False
        sent = EvidenceData.model_validate(change.payload.get("evidence") or {})
        return self._confirm_evidence(change.pillar_id, change.indicator_id, sent)

    def confirm_snapshot(self, snapshot: Application) -> bool:
        """Confirm every evidence substructure that a full save carried unchanged."""
        if self.application is None:
            return False
        changed = False
        for pillar_id in self.catalog.pillar_ids:
            pillar = snapshot.pillar_data.get(pillar_key(pillar_id))
            if pillar is None:
                continue
            for indicator_id, indicator in pillar.indicators.items():
                if self._confirm_evidence(pillar_id, indicator_id, indicator.evidence):
                    changed = True
        return changed

    def _confirm_evidence(self, pillar_id: int, indicator_id: str, sent: EvidenceData) -> bool:
        pillar = self.application.pillar_data.get(pillar_key(pillar_id))
        indicator = pillar.indicators.get(indicator_id) if pillar else None
        if indicator is None:
            return False
        changed = False
        for kind in EVIDENCE_KINDS:
            local = getattr(indicator.evidence, kind)
            if local is None or local.persisted:
                continue
            if _content(local) == _content(getattr(sent, kind)):
                local.persisted = True
                changed = True
        if changed:
            self._refresh_pillar(pillar_id)
            self._emit(CHANGE_CONFIRMED)
        return changed

    # =========================================================================
    # Derived state
    # =========================================================================

    def _refresh_pillar(self, pillar_id: int) -> PillarProgress:
        pillar = self.application.pillar_data.get(pillar_key(pillar_id))
        progress = self.calculator.compute_pillar_progress(pillar, pillar_id)
        if pillar is not None:
            pillar.completion = progress.completion
            pillar.score = progress.score
        return progress

    def refresh_pillar_caches(self) -> None:
        self._require_application("refresh pillar caches")
        for pillar_id in self.catalog.pillar_ids:
            self._refresh_pillar(pillar_id)

    def recompute_scores(self) -> ApplicationScores:
        application = self._require_application("recompute scores")
        application.scores = self.calculator.compute_overall(application)
        return application.scores

    def get_pillar_progress(self, pillar_id: int) -> PillarProgress:
        application = self._require_application("compute pillar progress")
        return self.calculator.compute_pillar_progress(
            application.pillar_data.get(pillar_key(pillar_id)), pillar_id
        )

    def get_overall_progress(self) -> float:
        """Mean completion over every catalog pillar."""
        application = self._require_application("compute overall progress")
        return self.calculator.compute_overall(application).overall_completion

    def is_institution_complete(self) -> bool:
        if self.application is None:
            return False
        return is_institution_complete(self.application.institution_data)

    def validate_step(self, step: int) -> StepValidation:
        application = self._require_application("validate step")
        return self.calculator.validate_step(application, step)

    # =========================================================================
    # Navigation
    # =========================================================================

    @property
    def max_step(self) -> int:
        return max(self.catalog.pillar_ids)

    def _pillar_complete(self, application: Application, pillar_id: int) -> bool:
        progress = self.calculator.compute_pillar_progress(
            application.pillar_data.get(pillar_key(pillar_id)), pillar_id
        )
        return progress.completion >= self.navigation_threshold

    def can_navigate_to_step(self, step: int) -> bool:
        if step == 0:
            return True
        if self.application is None or step < 0 or step > self.max_step:
            return False
        if not is_institution_complete(self.application.institution_data):
            return False
        return all(
            self._pillar_complete(self.application, pillar_id)
            for pillar_id in self.catalog.pillar_ids
            if pillar_id < step
        )

    def get_next_incomplete_step(self, application: Optional[Application] = None) -> int:
        """First step that still needs work; the last pillar when everything is complete."""
        application = application or self._require_application("find next step")
        if not is_institution_complete(application.institution_data):
            return 0
        for pillar_id in self.catalog.pillar_ids:
            if not self._pillar_complete(application, pillar_id):
                return pillar_id
        return self.max_step

    def set_current_step(self, step: int) -> None:
        application = self._require_application("change step")
        if step < 0 or step > self.max_step:
            raise InvalidStepException(step)
        if application.current_step != step:
            application.current_step = step
            self._emit(STEP_CHANGED)

    # =========================================================================
    # Save status
    # =========================================================================

    def mark_saved(self, revision: Optional[int] = None, at: Optional[datetime] = None) -> None:
        """
        Record a successful consolidated save.

        has_unsaved_changes is only cleared when no edit happened after
        `revision` was captured.
        """
        application = self._require_application("mark saved")
        saved_at = at or utc_now()
        application.last_saved = saved_at
        self.last_save_time = saved_at
        self.error = None
        if revision is None or revision == self.revision:
            self.has_unsaved_changes = False
        self._emit(SAVED)

    def mark_submitted(self, at: Optional[datetime] = None) -> None:
        application = self._require_application("mark submitted")
        application.status = ApplicationStatus.SUBMITTED
        application.submitted_at = at or utc_now()
        self.has_unsaved_changes = False
        logger.info("application_submitted", application_id=application.id)
        self._emit(SUBMITTED)

    def set_online(self, online: bool) -> None:
        if online == self.is_online:
            return
        self.is_online = online
        logger.info("connectivity_changed", online=online)
        self._emit(ONLINE_CHANGED)

    def set_error(self, message: str) -> None:
        self.error = message

    def clear_error(self) -> None:
        self.error = None

    # =========================================================================
    # Notifications
    # =========================================================================

    def notify(
        self,
        title: str,
        message: str = "",
        variant: NotificationVariant = NotificationVariant.DEFAULT,
    ) -> Notification:
        notification = Notification(title=title, message=message, variant=variant)
        self.notifications.append(notification)
        return notification

    def dismiss_notification(self, notification_id: str) -> bool:
        for i, notification in enumerate(self.notifications):
            if notification.id == notification_id:
                del self.notifications[i]
                return True
        return False
