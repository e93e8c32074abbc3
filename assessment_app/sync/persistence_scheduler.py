"""
Persistence Scheduler - Innovation Assessment Client
assessment_app/sync/persistence_scheduler.py

Moves pending changes from the store to the remote application service.

Two lanes:
    partial  one debounced write per pending-change key, carrying only that
             change; coalesces bursts of edits to the same indicator
    full     consolidated save of the whole application after an idle
             window (auto-save) or on demand (forced save)

Partial lane states per key:
    IDLE -> PENDING_DEBOUNCE -> IN_FLIGHT -> IDLE
                                          -> PENDING_RETRY -> IN_FLIGHT ...
                                          -> FAILED (change stays pending)

A failed key is not retried automatically until it is edited again or a
forced save runs.
"""

import asyncio
from typing import Dict, Optional, Set

import structlog

from assessment_app.config import settings
from assessment_app.core.exceptions import ApplicationNotLoadedException, ServiceException
from assessment_app.models.application import FullApplicationPayload, utc_now
from assessment_app.models.enumerations import NotificationVariant, SaveLaneState
from assessment_app.services.application_service import ApplicationService
from assessment_app.sync import state_store
from assessment_app.sync.debounced_queue import DebouncedTaskQueue
from assessment_app.sync.retry import RetryPolicy, Sleep, call_with_retry
from assessment_app.sync.state_store import ApplicationStateStore, StoreEvent

logger = structlog.get_logger(__name__)

OFFLINE_TITLE = "No Internet Connection"
OFFLINE_MESSAGE = "Changes will be saved when connection is restored."
SAVED_TITLE = "Application Saved"
SAVED_MESSAGE = "Your changes have been saved successfully."
SAVE_FAILED_TITLE = "Save Failed"
SAVE_FAILED_MESSAGE = "Failed to save your changes. Please try again."


class PersistenceScheduler:
    """Debounced partial saves, idle auto-save and forced saves for one store."""

    def __init__(
        self,
        service: ApplicationService,
        store: ApplicationStateStore,
        retry_policy: Optional[RetryPolicy] = None,
        debounce_seconds: Optional[float] = None,
        auto_save_seconds: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.service = service
        self.store = store
        self.tracker = store.tracker
        self.calculator = store.calculator
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.debounce_seconds = (
            settings.PARTIAL_SAVE_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self.auto_save_seconds = (
            settings.AUTO_SAVE_IDLE_SECONDS if auto_save_seconds is None else auto_save_seconds
        )
        self._sleep = sleep

        self._partial_queue = DebouncedTaskQueue(
            self._flush_partial, self.debounce_seconds, name="partial_save"
        )
        self._lanes: Dict[str, SaveLaneState] = {}
        self._save_lock = asyncio.Lock()
        self._auto_save_timer: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False
        self._unsubscribe = store.subscribe(self._on_store_event)

    # =========================================================================
    # Store events
    # =========================================================================

    def _on_store_event(self, event: StoreEvent) -> None:
        if self._closed:
            return
        if event.kind in (state_store.INDICATOR_UPDATED, state_store.EVIDENCE_UPDATED):
            self._schedule_partial(event.change.key)
            self._arm_auto_save()
        elif event.kind == state_store.INSTITUTION_UPDATED:
            self._arm_auto_save()
        elif event.kind == state_store.ONLINE_CHANGED:
            if self.store.is_online:
                self._resume()
            else:
                self._suspend()

    def _schedule_partial(self, key: str) -> None:
        if not self.store.is_online or _running_loop() is None:
            return
        self._partial_queue.schedule(key)
        self._lanes[key] = SaveLaneState.PENDING_DEBOUNCE

    def _resume(self) -> None:
        for key in self.tracker.keys():
            if self.lane_state(key) != SaveLaneState.FAILED:
                self._schedule_partial(key)
        self._arm_auto_save()

    def _suspend(self) -> None:
        self._partial_queue.cancel_all()
        self._cancel_auto_save()
        for key, lane in self._lanes.items():
            if lane == SaveLaneState.PENDING_DEBOUNCE:
                self._lanes[key] = SaveLaneState.IDLE

    def lane_state(self, key: str) -> SaveLaneState:
        return self._lanes.get(key, SaveLaneState.IDLE)

    # =========================================================================
    # Partial lane
    # =========================================================================

    async def _flush_partial(self, key: str, _payload: object) -> bool:
        return await self._send_partial(key)

    async def _send_partial(self, key: str) -> bool:
        """Send the latest pending payload for `key`; True when nothing is left to send."""
        change = self.tracker.get(key)
        if change is None:
            self._lanes[key] = SaveLaneState.IDLE
            return True
        application = self.store.application
        if application is None or not self.store.is_online:
            self._lanes[key] = SaveLaneState.IDLE
            return False

        self._lanes[key] = SaveLaneState.IN_FLIGHT

        def on_retry(attempt: int, delay: float, error: ServiceException) -> None:
            self._lanes[key] = SaveLaneState.PENDING_RETRY

        try:
            await call_with_retry(
                lambda: self.service.write_partial_change(
                    application.id, change.change_type, change.payload
                ),
                self.retry_policy,
                operation_name=f"partial_save:{key}",
                sleep=self._sleep,
                on_retry=on_retry,
            )
        except ServiceException as e:
            self._lanes[key] = SaveLaneState.FAILED
            self.store.set_error(f"Failed to save changes: {e.message}")
            logger.warning("partial_save_failed", key=key, version=change.version, error=e.message)
            return False
        except Exception as e:
            self._lanes[key] = SaveLaneState.FAILED
            self.store.set_error(f"Failed to save changes: {e}")
            logger.exception("partial_save_error", key=key, version=change.version, error_type=type(e).__name__)
            return False

        self.tracker.clear_change(key, change.version)
        self.store.confirm_change(change)
        self.store.last_save_time = utc_now()
        self.store.clear_error()
        self._lanes[key] = (
            SaveLaneState.PENDING_DEBOUNCE
            if self._partial_queue.is_scheduled(key)
            else SaveLaneState.IDLE
        )
        logger.info("partial_save_succeeded", key=key, version=change.version)
        return True

    async def save_all_pending_changes(self) -> bool:
        """
        Flush every pending change now, one partial write per key, concurrently.

        Returns False when any write failed; the user is notified and the
        failed changes stay pending.
        """
        keys = self.tracker.keys()
        if not keys:
            return True
        if not self.store.is_online:
            self.store.notify(OFFLINE_TITLE, OFFLINE_MESSAGE, NotificationVariant.DESTRUCTIVE)
            return False

        self._partial_queue.cancel_all()
        results = await asyncio.gather(*(self._partial_queue.run_now(k) for k in keys))
        ok = all(result is not False for result in results)
        if not ok:
            self.store.notify(SAVE_FAILED_TITLE, SAVE_FAILED_MESSAGE, NotificationVariant.DESTRUCTIVE)
        logger.info("pending_changes_flushed", keys=len(keys), success=ok)
        return ok

    # =========================================================================
    # Full lane
    # =========================================================================

    def _arm_auto_save(self) -> None:
        if self._closed or not self.store.has_unsaved_changes or not self.store.is_online:
            return
        loop = _running_loop()
        if loop is None:
            return
        self._cancel_auto_save()
        self._auto_save_timer = loop.call_later(self.auto_save_seconds, self._fire_auto_save)

    def _cancel_auto_save(self) -> None:
        if self._auto_save_timer is not None:
            self._auto_save_timer.cancel()
            self._auto_save_timer = None

    def _fire_auto_save(self) -> None:
        self._auto_save_timer = None
        task = asyncio.get_running_loop().create_task(self.save_application(force=False))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("auto_save_task_failed", error=str(exc), error_type=type(exc).__name__)

    @property
    def is_auto_save_armed(self) -> bool:
        return self._auto_save_timer is not None

    async def save_application(self, force: bool = False) -> bool:
        """
        Consolidated save of the whole application.

        Non-forced saves are dropped while another full save is in flight;
        forced saves wait their turn and notify the user of the outcome.
        """
        if self.store.application is None:
            raise ApplicationNotLoadedException("save application")
        if not self.store.is_online:
            if force:
                self.store.notify(OFFLINE_TITLE, OFFLINE_MESSAGE, NotificationVariant.DESTRUCTIVE)
            return False
        if not force:
            if self._save_lock.locked():
                logger.debug("auto_save_skipped", reason="save_in_flight")
                return False
            if not self.store.has_unsaved_changes:
                return True

        try:
            async with self._save_lock:
                return await self._save_full(force)
        finally:
            if self.store.has_unsaved_changes:
                self._arm_auto_save()

    async def _save_full(self, force: bool) -> bool:
        self._cancel_auto_save()
        application = self.store.application
        revision = self.store.revision
        version = self.tracker.version

        self.store.is_saving = True
        try:
            self.store.recompute_scores()
            snapshot = application.model_copy(deep=True)
            payload = FullApplicationPayload(
                status=snapshot.status,
                institution_data=snapshot.institution_data,
                pillar_data=snapshot.pillar_data,
                indicator_responses=self.calculator.build_indicator_responses(snapshot),
            )
            await call_with_retry(
                lambda: self.service.write_full_application(application.id, payload),
                self.retry_policy,
                operation_name="full_save",
                sleep=self._sleep,
            )
        except ServiceException as e:
            self.store.set_error(f"Failed to save application: {e.message}")
            logger.warning("full_save_failed", application_id=application.id, forced=force, error=e.message)
            if force:
                self.store.notify(SAVE_FAILED_TITLE, SAVE_FAILED_MESSAGE, NotificationVariant.DESTRUCTIVE)
            return False
        except Exception as e:
            self.store.set_error(f"Failed to save application: {e}")
            logger.exception("full_save_error", application_id=application.id, forced=force, error_type=type(e).__name__)
            if force:
                self.store.notify(SAVE_FAILED_TITLE, SAVE_FAILED_MESSAGE, NotificationVariant.DESTRUCTIVE)
            return False
        finally:
            self.store.is_saving = False

        for key in self.tracker.clear_through(version):
            self._partial_queue.cancel(key)
            self._lanes[key] = SaveLaneState.IDLE
        self.store.confirm_snapshot(snapshot)
        self.store.mark_saved(revision)
        logger.info(
            "full_save_succeeded",
            application_id=application.id,
            forced=force,
            indicator_responses=len(payload.indicator_responses),
            still_unsaved=self.store.has_unsaved_changes,
        )
        if force:
            self.store.notify(SAVED_TITLE, SAVED_MESSAGE)
        return True

    # =========================================================================
    # Teardown
    # =========================================================================

    async def aclose(self) -> None:
        """Stop reacting to edits, cancel timers and wait for running saves."""
        if self._closed:
            return
        self._closed = True
        self._unsubscribe()
        self._cancel_auto_save()
        await self._partial_queue.aclose()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
