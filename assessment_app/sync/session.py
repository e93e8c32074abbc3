"""
Application Session - Innovation Assessment Client
assessment_app/sync/session.py

One editing session: owns the state store, change tracker and persistence
scheduler for a single application, and tears them down on close().

    async with ApplicationSession(service) as session:
        session.update_indicator(1, "1.1.1", 2)
        if await session.go_to_step(2):
            ...
        await session.submit()
"""

import asyncio
from typing import Any, Dict, Optional, Union

import structlog

from assessment_app.catalog.indicator_catalog import IndicatorCatalog
from assessment_app.core.dependencies import get_catalog
from assessment_app.core.exceptions import (
    ApplicationNotFoundException,
    ApplicationNotLoadedException,
    ConflictException,
    ServiceException,
)
from assessment_app.models.application import (
    Application,
    EvidenceData,
    IndicatorValue,
    StepValidation,
)
from assessment_app.models.enumerations import ApplicationStatus, NotificationVariant
from assessment_app.scoring.progress_calculator import ProgressCalculator
from assessment_app.services.application_service import ApplicationService
from assessment_app.sync.change_tracker import ChangeTracker, PendingChange
from assessment_app.sync.persistence_scheduler import PersistenceScheduler
from assessment_app.sync.retry import RetryPolicy, Sleep, call_with_retry
from assessment_app.sync.state_store import ApplicationStateStore

logger = structlog.get_logger(__name__)

SUBMITTED_TITLE = "Application Submitted"
SUBMITTED_MESSAGE = "Your application has been submitted successfully."


class ApplicationSession:
    """Explicit context object replacing a process-wide application state."""

    def __init__(
        self,
        service: ApplicationService,
        catalog: Optional[IndicatorCatalog] = None,
        retry_policy: Optional[RetryPolicy] = None,
        debounce_seconds: Optional[float] = None,
        auto_save_seconds: Optional[float] = None,
        navigation_threshold: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.service = service
        self.catalog = catalog if catalog is not None else get_catalog()
        self.store = ApplicationStateStore(
            self.catalog,
            calculator=ProgressCalculator(self.catalog),
            tracker=ChangeTracker(),
            navigation_threshold=navigation_threshold,
        )
        self.tracker = self.store.tracker
        self.calculator = self.store.calculator
        self.scheduler = PersistenceScheduler(
            service,
            self.store,
            retry_policy=retry_policy,
            debounce_seconds=debounce_seconds,
            auto_save_seconds=auto_save_seconds,
            sleep=sleep,
        )
        self.retry_policy = self.scheduler.retry_policy
        self._sleep = sleep
        self._closed = False

    async def __aenter__(self) -> "ApplicationSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def application(self) -> Optional[Application]:
        return self.store.application

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def _with_retry(self, operation, name: str):
        return await call_with_retry(
            operation, self.retry_policy, operation_name=name, sleep=self._sleep
        )

    async def start(self) -> Application:
        """
        Load the current user's application, creating a draft when none exists.

        A create that races another session (409) falls back to loading the
        application that won.
        """
        self.store.is_loading = True
        try:
            try:
                application = await self._with_retry(self.service.load_application, "load_application")
            except ApplicationNotFoundException:
                logger.info("application_not_found_creating")
                try:
                    application = await self._with_retry(
                        self.service.create_application, "create_application"
                    )
                except ConflictException:
                    logger.info("application_create_conflict_reloading")
                    application = await self._with_retry(
                        self.service.load_application, "load_application"
                    )
        except ServiceException as e:
            self.store.set_error(f"Failed to load application: {e.message}")
            raise
        finally:
            self.store.is_loading = False
        return self.store.load(application)

    async def close(self) -> None:
        """Flush pending changes (when online) and stop all timers."""
        if self._closed:
            return
        self._closed = True
        try:
            if self.store.is_online and self.store.tracker.has_pending():
                await self.scheduler.save_all_pending_changes()
        finally:
            await self.scheduler.aclose()

    # =========================================================================
    # Edits
    # =========================================================================

    def update_institution(self, **fields: Any) -> bool:
        return self.store.update_institution(**fields)

    def update_indicator(
        self, pillar_id: int, indicator_id: str, value: IndicatorValue
    ) -> Optional[PendingChange]:
        return self.store.update_indicator(pillar_id, indicator_id, value)

    def update_evidence(
        self,
        pillar_id: int,
        indicator_id: str,
        evidence: Union[EvidenceData, Dict[str, Any]],
    ) -> Optional[PendingChange]:
        return self.store.update_evidence(pillar_id, indicator_id, evidence)

    def set_online(self, online: bool) -> None:
        self.store.set_online(online)

    # =========================================================================
    # Navigation
    # =========================================================================

    async def go_to_step(self, step: int) -> bool:
        """
        Move to `step` if gating allows it and every pending change is saved.

        Returns False (staying on the current step) when the step is locked or
        the flush failed.
        """
        if not self.store.can_navigate_to_step(step):
            logger.info("navigation_blocked", step=step, reason="incomplete_prerequisites")
            return False
        if not await self.scheduler.save_all_pending_changes():
            logger.info("navigation_blocked", step=step, reason="save_failed")
            return False
        self.store.set_current_step(step)
        return True

    # =========================================================================
    # Saving
    # =========================================================================

    async def save(self, force: bool = True) -> bool:
        return await self.scheduler.save_application(force=force)

    async def submit(self) -> bool:
        """
        Forced save followed by submission.

        Raises ConflictException when the application is no longer a draft.
        """
        application = self.store.application
        if application is None:
            raise ApplicationNotLoadedException("submit application")
        if application.status != ApplicationStatus.DRAFT:
            raise ConflictException(f"Application {application.id} has already been submitted")
        if not await self.scheduler.save_application(force=True):
            return False
        try:
            await self._with_retry(
                lambda: self.service.submit_application(application.id), "submit_application"
            )
        except ServiceException as e:
            self.store.set_error(f"Failed to submit application: {e.message}")
            self.store.notify("Submission Failed", e.message, NotificationVariant.DESTRUCTIVE)
            raise
        self.store.mark_submitted()
        self.store.notify(SUBMITTED_TITLE, SUBMITTED_MESSAGE)
        return True

    async def validate_step_remote(self, step: int) -> StepValidation:
        """Server-side validation after flushing pending changes for an accurate answer."""
        application = self.store.application
        if application is None:
            raise ApplicationNotLoadedException("validate step")
        await self.scheduler.save_all_pending_changes()
        return await self._with_retry(
            lambda: self.service.validate_step(application.id, step), "validate_step"
        )
