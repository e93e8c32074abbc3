# tests/conftest.py

"""
Pytest Fixtures - Shared catalogs, applications and an in-memory application service

CATALOG REFERENCE:
- default_catalog: the shipped six-pillar catalog (73 indicators)
- make_catalog(): six pillars with ONE indicator each ("<p>.1.1"), unit / max
  score / evidence rule chosen by the test
"""

import asyncio
from collections import defaultdict
from typing import Any, Dict, List, Optional

import pytest

from assessment_app.catalog.indicator_catalog import (
    EvidenceRule,
    IndicatorCatalog,
    IndicatorDefinition,
    PillarDefinition,
    SubPillarDefinition,
    build_default_catalog,
)
from assessment_app.core.exceptions import ApplicationNotFoundException, ConflictException
from assessment_app.models.application import (
    Application,
    FullApplicationPayload,
    InstitutionData,
    StepValidation,
)
from assessment_app.models.enumerations import ApplicationStatus, ChangeType, MeasurementUnit
from assessment_app.services.application_service import ApplicationService
from assessment_app.sync.retry import RetryPolicy


# =============================================================================
# CATALOGS
# =============================================================================

def make_catalog(
    unit: MeasurementUnit = MeasurementUnit.SCORE,
    max_score: float = 2,
    rule: Optional[EvidenceRule] = None,
    pillars: int = 6,
) -> IndicatorCatalog:
    """Catalog with one indicator "<p>.1.1" per pillar."""
    pillar_defs = []
    indicator_defs = []
    for p in range(1, pillars + 1):
        indicator_id = f"{p}.1.1"
        pillar_defs.append(PillarDefinition(
            id=p,
            name=f"Pillar {p}",
            sub_pillars=(SubPillarDefinition(id=f"{p}.1", name=f"Sub {p}.1", indicators=(indicator_id,)),),
        ))
        indicator_defs.append(IndicatorDefinition(
            id=indicator_id,
            pillar_id=p,
            sub_pillar_id=f"{p}.1",
            measurement_unit=unit,
            max_score=max_score,
            evidence_rule=rule,
        ))
    return IndicatorCatalog(pillar_defs, indicator_defs)


@pytest.fixture(scope="session")
def default_catalog():
    """The shipped six-pillar catalog."""
    return build_default_catalog()


@pytest.fixture
def simple_catalog():
    """One Score (0-2) indicator per pillar, no evidence rules."""
    return make_catalog()


# =============================================================================
# APPLICATIONS
# =============================================================================

@pytest.fixture
def complete_institution():
    """Institution profile that passes step 0 validation."""
    return InstitutionData(
        name="Acme Institute",
        industry="Technology",
        organization_size="11-50 employees",
        country="US",
        contact_email="a@b.com",
    )


@pytest.fixture
def draft_application():
    """Empty draft, as returned by create_application."""
    return Application(id="app-1")


@pytest.fixture
def started_application(complete_institution):
    """Draft with a complete institution profile and no indicator answers."""
    return Application(id="app-1", institution_data=complete_institution)


# =============================================================================
# FAKE SERVICE
# =============================================================================

class FakeApplicationService(ApplicationService):
    """
    In-memory ApplicationService.

    Records every call and raises queued (fail_next) or permanent
    (fail_always) errors per method name.
    """

    def __init__(self, application: Optional[Application] = None):
        self.application = application
        self.calls: List[str] = []
        self.partial_calls: List[Dict[str, Any]] = []
        self.full_calls: List[FullApplicationPayload] = []
        self.submit_calls: List[str] = []
        self.validation_result: Optional[StepValidation] = None
        self.delay = 0.0
        self._queued: Dict[str, List[Exception]] = defaultdict(list)
        self._always: Dict[str, Exception] = {}

    def fail_next(self, method: str, *errors: Exception) -> None:
        self._queued[method].extend(errors)

    def fail_always(self, method: str, error: Exception) -> None:
        self._always[method] = error

    def recover(self, method: str) -> None:
        self._always.pop(method, None)
        self._queued.pop(method, None)

    async def _enter(self, method: str) -> None:
        self.calls.append(method)
        if self.delay:
            await asyncio.sleep(self.delay)
        if method in self._always:
            raise self._always[method]
        if self._queued[method]:
            raise self._queued[method].pop(0)

    async def load_application(self) -> Application:
        await self._enter("load_application")
        if self.application is None:
            raise ApplicationNotFoundException()
        return self.application.model_copy(deep=True)

    async def create_application(self) -> Application:
        await self._enter("create_application")
        if self.application is not None:
            raise ConflictException()
        self.application = Application(id="app-1")
        return self.application.model_copy(deep=True)

    async def write_partial_change(self, application_id: str, change_type: ChangeType, payload: Dict[str, Any]) -> None:
        await self._enter("write_partial_change")
        self.partial_calls.append({
            "application_id": application_id,
            "change_type": ChangeType(change_type),
            "payload": dict(payload),
        })

    async def write_full_application(self, application_id: str, payload: FullApplicationPayload) -> Optional[Application]:
        await self._enter("write_full_application")
        self.full_calls.append(payload.model_copy(deep=True))
        return None

    async def submit_application(self, application_id: str) -> Optional[Application]:
        await self._enter("submit_application")
        self.submit_calls.append(application_id)
        if self.application is not None:
            self.application.status = ApplicationStatus.SUBMITTED
        return None

    async def validate_step(self, application_id: str, step: int) -> StepValidation:
        await self._enter("validate_step")
        return self.validation_result or StepValidation(is_valid=True, step=step)


@pytest.fixture
def fake_service(started_application):
    """Service that already holds a started application."""
    return FakeApplicationService(started_application)


# =============================================================================
# TIMING
# =============================================================================

class RecordingSleep:
    """Replacement for asyncio.sleep in retry loops; records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def fast_retry():
    """Three retries, 1 s base delay (never actually slept), no timeout."""
    return RetryPolicy(max_retries=3, base_delay=1.0, timeout=None)
