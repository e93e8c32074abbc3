"""
Indicator Scoring - Innovation Assessment Client
assessment_app/scoring/indicator_scoring.py

Turns a raw indicator answer into a normalized 0-100 score and decides
whether the answer has to be backed by evidence.

Normalization by measurement unit (N = catalog max score / ceiling):
    Score       min(v / N, 1) * 100
    Percentage  min(v, 100)
    Binary      100 if v is truthy else 0
    Number      min(v / N, 1) * 100
    Hours       min(v / N, 1) * 100
    Ratio       "a:b" -> a / (a + b) * 100, plain number -> min(v, 1) * 100

Blank answers (None, "", whitespace) are unanswered and score 0.
Unparseable answers score 0. Every result is clamped to [0, 100].
"""

from typing import Any, Callable, Dict, Optional

from assessment_app.catalog.indicator_catalog import IndicatorCatalog
from assessment_app.models.application import EVIDENCE_KINDS, EvidenceData, IndicatorValue
from assessment_app.models.enumerations import MeasurementUnit
from assessment_app.scoring.utils import clamp, is_blank, to_number


# =============================================================================
# Normalizers
# =============================================================================

def _normalize_scaled(value: Any, max_score: float) -> float:
    number = to_number(value)
    if number is None:
        return 0.0
    return min(number / max_score, 1.0) * 100


def _normalize_percentage(value: Any, max_score: float) -> float:
    number = to_number(value)
    if number is None:
        return 0.0
    return min(number, 100.0)


def _normalize_binary(value: Any, max_score: float) -> float:
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("yes", "true"):
            return 100.0
        if text in ("no", "false"):
            return 0.0
    number = to_number(value)
    return 100.0 if number is not None and number > 0 else 0.0


def _normalize_ratio(value: Any, max_score: float) -> float:
    if isinstance(value, str) and ":" in value:
        left, _, right = value.partition(":")
        proactive, reactive = to_number(left), to_number(right)
        if proactive is None or reactive is None:
            return 0.0
        total = proactive + reactive
        if total <= 0:
            return 0.0
        return proactive / total * 100
    number = to_number(value)
    if number is None:
        return 0.0
    return min(number, 1.0) * 100


Normalizer = Callable[[Any, float], float]

NORMALIZERS: Dict[MeasurementUnit, Normalizer] = {
    MeasurementUnit.SCORE: _normalize_scaled,
    MeasurementUnit.PERCENTAGE: _normalize_percentage,
    MeasurementUnit.BINARY: _normalize_binary,
    MeasurementUnit.NUMBER: _normalize_scaled,
    MeasurementUnit.HOURS: _normalize_scaled,
    MeasurementUnit.RATIO: _normalize_ratio,
}

_missing_units = set(MeasurementUnit) - set(NORMALIZERS)
if _missing_units:
    raise ImportError(
        "No normalizer registered for measurement unit(s): "
        + ", ".join(sorted(u.value for u in _missing_units))
    )


# =============================================================================
# Scorer
# =============================================================================

class IndicatorScorer:
    """Score individual indicator answers against the catalog."""

    def __init__(self, catalog: IndicatorCatalog):
        self.catalog = catalog

    @staticmethod
    def is_answered(value: IndicatorValue) -> bool:
        return not is_blank(value)

    def normalize_score(self, indicator_id: str, raw_value: IndicatorValue) -> float:
        """
        Normalized 0-100 score for one answer.

        Raises UnknownIndicatorException for ids missing from the catalog.
        """
        definition = self.catalog.definition(indicator_id)
        if not self.is_answered(raw_value):
            return 0.0
        normalizer = NORMALIZERS[definition.measurement_unit]
        return clamp(normalizer(raw_value, definition.max_score))

    def is_evidence_required(self, indicator_id: str, raw_value: IndicatorValue) -> bool:
        """Unanswered indicators never require evidence."""
        if not self.is_answered(raw_value):
            # still validates the id
            self.catalog.definition(indicator_id)
            return False
        return self.catalog.evidence_required(
            indicator_id, self.normalize_score(indicator_id, raw_value)
        )


def has_evidence_content(evidence: Optional[EvidenceData]) -> bool:
    """Any evidence kind with its key field filled in, confirmed or not."""
    if evidence is None:
        return False
    return any(_content_of(evidence, kind) for kind in EVIDENCE_KINDS)


def validate_evidence(evidence: Optional[EvidenceData]) -> bool:
    """
    True iff at least one evidence kind is filled in AND confirmed by the store.

    Local-only evidence does not count toward completion until a save
    round-trip marks it persisted.
    """
    if evidence is None:
        return False
    for kind in EVIDENCE_KINDS:
        item = getattr(evidence, kind)
        if item is not None and item.persisted and _content_of(evidence, kind):
            return True
    return False


def _content_of(evidence: EvidenceData, kind: str) -> bool:
    item = getattr(evidence, kind)
    if item is None:
        return False
    if kind == "text":
        return not is_blank(item.description)
    if kind == "link":
        return not is_blank(item.url)
    return not is_blank(item.file_name)
