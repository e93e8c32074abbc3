"""
Application Session Tests - Innovation Assessment Client
tests/test_session.py

Load-or-create, flush-before-navigate, submission and remote validation,
plus an end-to-end walk through the evidence rule.
"""
import asyncio

import pytest

from assessment_app.catalog.indicator_catalog import EvidenceRule
from assessment_app.core.exceptions import (
    ApplicationNotFoundException,
    ApplicationNotLoadedException,
    ConflictException,
    ServiceErrorException,
    ValidationException,
)
from assessment_app.models.application import StepValidation
from assessment_app.models.enumerations import ApplicationStatus
from assessment_app.sync.retry import RetryPolicy
from assessment_app.sync.session import SUBMITTED_TITLE, ApplicationSession
from tests.conftest import FakeApplicationService, make_catalog


def make_session(service, catalog, sleep, **kwargs):
    kwargs.setdefault("debounce_seconds", 10)
    kwargs.setdefault("auto_save_seconds", 60)
    return ApplicationSession(
        service,
        catalog=catalog,
        retry_policy=RetryPolicy(max_retries=3, base_delay=1.0, timeout=None),
        sleep=sleep,
        **kwargs,
    )


class TestStart:
    """Tests for start()."""

    def test_loads_existing_application(self, fake_service, simple_catalog, recording_sleep):
        async def scenario():
            session = make_session(fake_service, simple_catalog, recording_sleep)
            application = await session.start()
            await session.close()
            return session, application

        session, application = asyncio.run(scenario())
        assert application.id == "app-1"
        assert session.store.is_loading is False
        assert fake_service.calls == ["load_application"]

    def test_creates_when_missing(self, simple_catalog, recording_sleep):
        service = FakeApplicationService()

        async def scenario():
            session = make_session(service, simple_catalog, recording_sleep)
            application = await session.start()
            await session.close()
            return application

        application = asyncio.run(scenario())
        assert application.status == ApplicationStatus.DRAFT
        assert application.current_step == 0
        assert service.calls == ["load_application", "create_application"]

    def test_create_conflict_reloads(self, fake_service, simple_catalog, recording_sleep):
        fake_service.fail_next("load_application", ApplicationNotFoundException())

        async def scenario():
            session = make_session(fake_service, simple_catalog, recording_sleep)
            application = await session.start()
            await session.close()
            return application

        application = asyncio.run(scenario())
        assert application.institution_data.name == "Acme Institute"
        assert fake_service.calls == ["load_application", "create_application", "load_application"]

    def test_load_failure_sets_error(self, fake_service, simple_catalog, recording_sleep):
        fake_service.fail_always("load_application", ServiceErrorException("down", 503))
        session = make_session(fake_service, simple_catalog, recording_sleep)

        async def scenario():
            try:
                await session.start()
            finally:
                await session.close()

        with pytest.raises(ServiceErrorException):
            asyncio.run(scenario())
        assert session.store.error.startswith("Failed to load application")
        assert session.application is None
        assert fake_service.calls.count("load_application") == 4


class TestNavigation:
    """Tests for go_to_step()."""

    def test_blocked_by_gating(self, fake_service, simple_catalog, recording_sleep):
        async def scenario():
            async with make_session(fake_service, simple_catalog, recording_sleep) as session:
                return await session.go_to_step(3), session.application.current_step

        moved, step = asyncio.run(scenario())
        assert moved is False
        assert step == 1

    def test_flushes_before_moving(self, fake_service, simple_catalog, recording_sleep):
        async def scenario():
            async with make_session(fake_service, simple_catalog, recording_sleep) as session:
                session.update_indicator(1, "1.1.1", 2)
                moved = await session.go_to_step(2)
                return moved, session

        moved, session = asyncio.run(scenario())
        assert moved is True
        assert session.application.current_step == 2
        assert len(fake_service.partial_calls) == 1
        assert session.tracker.has_pending() is False

    def test_failed_flush_keeps_current_step(self, fake_service, simple_catalog, recording_sleep):
        fake_service.fail_always("write_partial_change", ServiceErrorException())

        async def scenario():
            session = make_session(fake_service, simple_catalog, recording_sleep)
            await session.start()
            session.update_indicator(1, "1.1.1", 2)
            moved = await session.go_to_step(2)
            fake_service.recover("write_partial_change")
            await session.close()
            return moved, session

        moved, session = asyncio.run(scenario())
        assert moved is False
        assert session.application.current_step == 1

    def test_back_navigation_always_allowed(self, fake_service, simple_catalog, recording_sleep):
        async def scenario():
            async with make_session(fake_service, simple_catalog, recording_sleep) as session:
                return await session.go_to_step(0)

        assert asyncio.run(scenario()) is True


class TestSubmit:
    """Tests for submit()."""

    def test_submit_saves_then_submits(self, fake_service, simple_catalog, recording_sleep):
        async def scenario():
            async with make_session(fake_service, simple_catalog, recording_sleep) as session:
                session.update_indicator(1, "1.1.1", 2)
                ok = await session.submit()
                return ok, session

        ok, session = asyncio.run(scenario())
        assert ok is True
        assert fake_service.calls[-2:] == ["write_full_application", "submit_application"]
        assert session.application.status == ApplicationStatus.SUBMITTED
        assert session.store.notifications[-1].title == SUBMITTED_TITLE
        with pytest.raises(ConflictException):
            asyncio.run(session.submit())

    def test_submit_stops_when_save_fails(self, fake_service, simple_catalog, recording_sleep):
        fake_service.fail_always("write_full_application", ServiceErrorException())

        async def scenario():
            async with make_session(fake_service, simple_catalog, recording_sleep) as session:
                return await session.submit(), session

        ok, session = asyncio.run(scenario())
        assert ok is False
        assert fake_service.submit_calls == []
        assert session.application.status == ApplicationStatus.DRAFT

    def test_submit_rejected(self, fake_service, simple_catalog, recording_sleep):
        fake_service.fail_always("submit_application", ValidationException("Pillar 3 incomplete"))
        session = make_session(fake_service, simple_catalog, recording_sleep)

        async def scenario():
            async with session:
                await session.submit()

        with pytest.raises(ValidationException):
            asyncio.run(scenario())
        assert session.store.notifications[-1].title == "Submission Failed"
        assert session.application.status == ApplicationStatus.DRAFT

    def test_submit_before_start(self, fake_service, simple_catalog, recording_sleep):
        session = make_session(fake_service, simple_catalog, recording_sleep)
        with pytest.raises(ApplicationNotLoadedException):
            asyncio.run(session.submit())


class TestRemoteValidation:
    """Tests for validate_step_remote()."""

    def test_flushes_then_asks_service(self, fake_service, simple_catalog, recording_sleep):
        fake_service.validation_result = StepValidation(
            is_valid=False, missing_items=["Indicator 2.1.1 - No value provided"], step=2
        )

        async def scenario():
            async with make_session(fake_service, simple_catalog, recording_sleep) as session:
                session.update_indicator(1, "1.1.1", 2)
                return await session.validate_step_remote(2)

        result = asyncio.run(scenario())
        assert result.is_valid is False
        assert fake_service.calls[-2:] == ["write_partial_change", "validate_step"]


class TestClose:
    """Tests for close()."""

    def test_close_flushes_pending(self, fake_service, simple_catalog, recording_sleep):
        async def scenario():
            session = make_session(fake_service, simple_catalog, recording_sleep)
            await session.start()
            session.update_indicator(1, "1.1.1", 2)
            await session.close()
            await session.close()
            return session

        session = asyncio.run(scenario())
        assert len(fake_service.partial_calls) == 1
        assert session.tracker.has_pending() is False

    def test_session_and_store_share_one_tracker(self, fake_service, simple_catalog, recording_sleep):
        session = make_session(fake_service, simple_catalog, recording_sleep)
        assert session.tracker is session.store.tracker
        assert session.calculator is session.store.calculator

    def test_close_flushes_edit_recorded_through_store(self, fake_service, simple_catalog, recording_sleep):
        async def scenario():
            session = make_session(fake_service, simple_catalog, recording_sleep)
            await session.start()
            session.store.update_indicator(1, "1.1.1", 2)
            await session.close()
            return session

        session = asyncio.run(scenario())
        assert len(fake_service.partial_calls) == 1
        assert session.store.tracker.keys() == []

    def test_close_offline_keeps_pending(self, fake_service, simple_catalog, recording_sleep):
        async def scenario():
            session = make_session(fake_service, simple_catalog, recording_sleep)
            await session.start()
            session.set_online(False)
            session.update_indicator(1, "1.1.1", 2)
            await session.close()
            return session

        session = asyncio.run(scenario())
        assert fake_service.partial_calls == []
        assert session.tracker.has_pending() is True


class TestEndToEnd:
    """Institution, answers and evidence through to navigation."""

    def test_low_answer_needs_evidence(self, recording_sleep, complete_institution):
        catalog = make_catalog(rule=EvidenceRule(threshold=50, direction="below"))
        service = FakeApplicationService()

        async def scenario():
            async with make_session(service, catalog, recording_sleep) as session:
                assert session.application.current_step == 0
                assert await session.go_to_step(1) is False

                session.update_institution(**complete_institution.model_dump())
                assert session.store.can_navigate_to_step(1) is True

                session.update_indicator(1, "1.1.1", 2)
                assert session.store.get_pillar_progress(1).completion == 100.0

                session.update_indicator(1, "1.1.1", 0)
                assert session.store.get_pillar_progress(1).completion == 0.0
                assert await session.go_to_step(2) is False

                session.update_evidence(1, "1.1.1", {"text": {"description": "not in scope"}})
                assert await session.go_to_step(1) is True
                assert session.store.get_pillar_progress(1).completion == 100.0
                assert await session.go_to_step(2) is True
                return session

        session = asyncio.run(scenario())
        assert session.application.current_step == 2
