from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from assessment_app.models.enumerations import (
    ApplicationStatus,
    CertificationLevel,
    MeasurementUnit,
)

# Raw answer as typed by the user; its meaning depends on the indicator's measurement unit.
IndicatorValue = Union[bool, int, float, str, None]

EVIDENCE_KINDS = ("text", "link", "file")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def pillar_key(pillar_id: int) -> str:
    """Key under which a pillar is stored in Application.pillar_data."""
    return f"pillar_{pillar_id}"


def parse_pillar_key(key: str) -> Optional[int]:
    """Inverse of pillar_key(); None for keys that do not name a pillar."""
    if not key.startswith("pillar_"):
        return None
    suffix = key[len("pillar_"):]
    return int(suffix) if suffix.isdigit() else None


class WireModel(BaseModel):
    """
    Base model for everything exchanged with the remote store.

    Attributes are snake_case in Python and camelCase on the wire.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# INSTITUTION
# =============================================================================

class InstitutionData(WireModel):
    """
    Institution profile filled in at step 0.
    """

    name: str = Field(default="", description="Institution name")
    logo: Optional[str] = None
    year_founded: Optional[int] = Field(default=None, ge=1000, le=9999)
    industry: str = ""
    organization_size: str = ""
    country: str = ""
    website: Optional[str] = None
    contact_email: str = ""
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    description: Optional[str] = None


# =============================================================================
# EVIDENCE
# =============================================================================

class EvidenceItem(WireModel):
    """Common part of every evidence kind: the Local vs Confirmed flag."""

    persisted: bool = Field(
        default=False,
        validation_alias=AliasChoices("persisted", "_persisted"),
        serialization_alias="persisted",
        description="True once the remote store has confirmed this entry",
    )


class EvidenceText(EvidenceItem):
    description: str = ""


class EvidenceLink(EvidenceItem):
    url: str = ""
    description: str = ""


class EvidenceFile(EvidenceItem):
    file_name: str = ""
    file_size: Optional[int] = Field(default=None, ge=0)
    file_type: Optional[str] = None
    url: str = Field(default="", description="Inline content reference")
    description: str = ""


class EvidenceData(WireModel):
    """
    Evidence attached to one indicator. Every kind is optional.
    """

    text: Optional[EvidenceText] = None
    link: Optional[EvidenceLink] = None
    file: Optional[EvidenceFile] = None

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, kind) is None for kind in EVIDENCE_KINDS)

    def merge(self, other: "EvidenceData") -> "EvidenceData":
        """
        Merge another evidence block into this one, kind by kind.

        Kinds present in `other` replace ours; kinds absent from `other` are kept,
        so editing only the link never drops an existing text entry.
        """
        update = {
            kind: getattr(other, kind).model_copy(deep=True)
            for kind in EVIDENCE_KINDS
            if getattr(other, kind) is not None
        }
        return self.model_copy(update=update, deep=True)


# =============================================================================
# INDICATORS & PILLARS
# =============================================================================

class IndicatorData(WireModel):
    """
    One answered (or evidence-only) indicator inside a pillar.
    """

    id: str
    value: IndicatorValue = None
    evidence: EvidenceData = Field(default_factory=EvidenceData)
    last_modified: datetime = Field(default_factory=utc_now)


class PillarData(WireModel):
    """
    Indicator answers for one pillar.

    completion and score are display caches; gating always recomputes them.
    """

    indicators: Dict[str, IndicatorData] = Field(default_factory=dict)
    last_modified: datetime = Field(default_factory=utc_now)
    completion: float = Field(default=0.0, ge=0, le=100)
    score: float = Field(default=0.0, ge=0, le=100)


class ApplicationScores(WireModel):
    """
    Summary computed from every pillar of the application.
    """

    overall_completion: float = Field(default=0.0, ge=0, le=100)
    overall_score: float = Field(default=0.0, ge=0, le=100)
    pillar_completion: Dict[str, float] = Field(default_factory=dict)
    pillar_scores: Dict[str, float] = Field(default_factory=dict)
    certification_level: CertificationLevel = CertificationLevel.NOT_CERTIFIED
    recommendations: List[str] = Field(default_factory=list)
    calculated_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# APPLICATION
# =============================================================================

class Application(WireModel):
    """
    The in-progress assessment: institution profile plus six pillars.
    """

    id: str = Field(..., min_length=1, description="Application identifier")
    institution_data: InstitutionData = Field(default_factory=InstitutionData)
    pillar_data: Dict[str, PillarData] = Field(default_factory=dict)
    scores: Optional[ApplicationScores] = None
    status: ApplicationStatus = Field(default=ApplicationStatus.DRAFT)
    submitted_at: Optional[datetime] = None
    last_saved: datetime = Field(default_factory=utc_now)
    last_modified: datetime = Field(default_factory=utc_now)
    current_step: int = Field(default=0, ge=0, le=6)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        """The store reports statuses in upper case (DRAFT, SUBMITTED, ...)."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def is_editable(self) -> bool:
        return self.status == ApplicationStatus.DRAFT


# =============================================================================
# PAYLOADS
# =============================================================================

class IndicatorResponse(WireModel):
    """
    Flattened indicator row sent with a full save.
    """

    indicator_id: str
    pillar_id: int = Field(..., ge=1, le=6)
    raw_value: IndicatorValue = None
    normalized_score: float = Field(..., ge=0, le=100)
    measurement_unit: MeasurementUnit
    has_evidence: bool = False
    evidence: Optional[EvidenceData] = None


class FullApplicationPayload(WireModel):
    """
    Body of a consolidated save.
    """

    status: ApplicationStatus
    institution_data: InstitutionData
    pillar_data: Dict[str, PillarData]
    indicator_responses: List[IndicatorResponse] = Field(default_factory=list)


class StepValidation(WireModel):
    """
    Result of validating one step, locally or on the server.
    """

    is_valid: bool
    missing_items: List[str] = Field(default_factory=list)
    step: Optional[int] = None
