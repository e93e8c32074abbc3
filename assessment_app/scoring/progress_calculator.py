"""
Progress Calculator - Innovation Assessment Client
assessment_app/scoring/progress_calculator.py

Completion and score per pillar, overall summary and certification level.

Pillar completion:
    completed / total * 100, where total is the catalog's canonical indicator
    list (indicators the user never touched still count) and an indicator is
    complete when it has a value AND (evidence is not required OR confirmed
    evidence is present).

Pillar score:
    mean normalized score over answered indicators, 0 when none.

Overall:
    completion = mean pillar completion over every catalog pillar
    score      = mean pillar score over pillars with at least one answer
    level      = GOLD >= 85, CERTIFIED >= 70, otherwise NOT_CERTIFIED
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import structlog

from assessment_app.catalog.indicator_catalog import IndicatorCatalog
from assessment_app.core.exceptions import InvalidStepException, UnknownIndicatorException
from assessment_app.models.application import (
    Application,
    ApplicationScores,
    IndicatorResponse,
    PillarData,
    StepValidation,
    pillar_key,
)
from assessment_app.models.enumerations import CertificationLevel
from assessment_app.scoring.indicator_scoring import (
    IndicatorScorer,
    has_evidence_content,
    validate_evidence,
)
from assessment_app.scoring.institution_validator import validate_institution
from assessment_app.scoring.utils import mean

logger = structlog.get_logger(__name__)

GOLD_THRESHOLD = 85.0
CERTIFIED_THRESHOLD = 70.0
RECOMMENDATION_THRESHOLD = 60.0

PILLAR_RECOMMENDATIONS: Dict[int, str] = {
    1: "Strengthen strategic foundation by formalizing innovation intent and improving leadership engagement.",
    2: "Increase resource allocation for innovation activities and improve infrastructure support.",
    3: "Enhance innovation processes and foster a more supportive innovation culture.",
    4: "Improve IP management strategy and knowledge sharing systems.",
    5: "Strengthen external intelligence gathering and partnership management.",
    6: "Implement better performance measurement and continuous improvement processes.",
}
NO_DATA_RECOMMENDATION = "Complete all pillar assessments to receive certification."
BELOW_THRESHOLD_RECOMMENDATION = (
    "Overall score below certification threshold. Focus on improving lowest-scoring pillars."
)


@dataclass
class IndicatorStatus:
    """Per-indicator breakdown used for completion and missing-item lists."""
    indicator_id: str
    has_value: bool
    normalized_score: float
    evidence_required: bool
    evidence_valid: bool

    @property
    def is_complete(self) -> bool:
        return self.has_value and (not self.evidence_required or self.evidence_valid)


@dataclass
class PillarProgress:
    """Output of ProgressCalculator.compute_pillar_progress()."""
    pillar_id: int
    completion: float          # 0-100
    score: float               # 0-100
    completed_count: int
    answered_count: int
    total_count: int
    indicators: List[IndicatorStatus] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.total_count > 0 and self.completed_count == self.total_count


class ProgressCalculator:
    """Derive completion, score and validation results from application data."""

    def __init__(self, catalog: IndicatorCatalog, scorer: Optional[IndicatorScorer] = None):
        self.catalog = catalog
        self.scorer = scorer or IndicatorScorer(catalog)

    # =========================================================================
    # Pillars
    # =========================================================================

    def indicator_status(
        self, pillar_data: Optional[PillarData], indicator_id: str
    ) -> IndicatorStatus:
        indicator = pillar_data.indicators.get(indicator_id) if pillar_data else None
        value = indicator.value if indicator else None
        evidence = indicator.evidence if indicator else None
        has_value = self.scorer.is_answered(value)
        return IndicatorStatus(
            indicator_id=indicator_id,
            has_value=has_value,
            normalized_score=self.scorer.normalize_score(indicator_id, value),
            evidence_required=self.scorer.is_evidence_required(indicator_id, value),
            evidence_valid=validate_evidence(evidence),
        )

    def compute_pillar_progress(
        self,
        pillar_data: Optional[PillarData],
        pillar_id: int,
        indicator_ids: Optional[List[str]] = None,
    ) -> PillarProgress:
        """
        Args:
            pillar_data: Stored answers for the pillar; None when never touched.
            pillar_id: Catalog pillar id (1-6).
            indicator_ids: Override of the canonical list. Ids must belong to
                           the pillar; defaults to the catalog's list.
        """
        canonical = self.catalog.indicators_for_pillar(pillar_id)
        if indicator_ids is None:
            indicator_ids = canonical
        else:
            for indicator_id in indicator_ids:
                if indicator_id not in canonical:
                    raise UnknownIndicatorException(indicator_id, pillar_id)

        statuses = [self.indicator_status(pillar_data, i) for i in indicator_ids]
        total = len(statuses)
        completed = sum(1 for s in statuses if s.is_complete)
        answered = [s.normalized_score for s in statuses if s.has_value]

        return PillarProgress(
            pillar_id=pillar_id,
            completion=(completed / total * 100) if total else 0.0,
            score=mean(answered),
            completed_count=completed,
            answered_count=len(answered),
            total_count=total,
            indicators=statuses,
        )

    def missing_items(self, pillar_data: Optional[PillarData], pillar_id: int) -> List[str]:
        """Human-readable reasons why the pillar is not complete."""
        items = []
        for status in self.compute_pillar_progress(pillar_data, pillar_id).indicators:
            if not status.has_value:
                items.append(f"Indicator {status.indicator_id} - No value provided")
            elif status.evidence_required and not status.evidence_valid:
                items.append(f"Indicator {status.indicator_id} - Evidence required")
        return items

    # =========================================================================
    # Steps
    # =========================================================================

    def validate_step(self, application: Application, step: int) -> StepValidation:
        """Step 0 checks the institution profile; steps 1-6 check one pillar."""
        if step == 0:
            return validate_institution(application.institution_data)
        if step not in self.catalog.pillar_ids:
            raise InvalidStepException(step)
        pillar_data = application.pillar_data.get(pillar_key(step))
        missing = self.missing_items(pillar_data, step)
        return StepValidation(is_valid=not missing, missing_items=missing, step=step)

    # =========================================================================
    # Overall
    # =========================================================================

    def all_pillar_progress(self, application: Application) -> Dict[int, PillarProgress]:
        return {
            pillar_id: self.compute_pillar_progress(
                application.pillar_data.get(pillar_key(pillar_id)), pillar_id
            )
            for pillar_id in self.catalog.pillar_ids
        }

    def compute_overall(self, application: Application) -> ApplicationScores:
        progress = self.all_pillar_progress(application)

        overall_completion = mean([p.completion for p in progress.values()])
        scored = [p for p in progress.values() if p.answered_count > 0]
        overall_score = mean([p.score for p in scored])
        level = certification_level(overall_score)

        if not scored:
            recommendations = [NO_DATA_RECOMMENDATION]
        else:
            recommendations = []
            if overall_score < CERTIFIED_THRESHOLD:
                recommendations.append(BELOW_THRESHOLD_RECOMMENDATION)
            for p in sorted(scored, key=lambda p: p.score):
                if p.score < RECOMMENDATION_THRESHOLD and p.pillar_id in PILLAR_RECOMMENDATIONS:
                    recommendations.append(PILLAR_RECOMMENDATIONS[p.pillar_id])

        logger.debug(
            "overall_scores_calculated",
            application_id=application.id,
            overall_completion=round(overall_completion, 2),
            overall_score=round(overall_score, 2),
            certification_level=level.value,
        )

        return ApplicationScores(
            overall_completion=overall_completion,
            overall_score=overall_score,
            pillar_completion={pillar_key(i): p.completion for i, p in progress.items()},
            pillar_scores={pillar_key(i): p.score for i, p in progress.items()},
            certification_level=level,
            recommendations=recommendations,
        )

    # =========================================================================
    # Full-save rows
    # =========================================================================

    def build_indicator_responses(self, application: Application) -> List[IndicatorResponse]:
        """
        One row per indicator that has a value or evidence content.

        Stored ids the catalog does not list under that pillar (answers written
        by an older form revision) are logged and left out; they are never
        scored with a fallback rule.
        """
        rows = []
        for pillar_id in self.catalog.pillar_ids:
            pillar_data = application.pillar_data.get(pillar_key(pillar_id))
            if pillar_data is None:
                continue
            known = set(self.catalog.indicators_for_pillar(pillar_id))
            for indicator_id, indicator in pillar_data.indicators.items():
                if indicator_id not in known:
                    logger.warning(
                        "indicator_response_skipped",
                        application_id=application.id,
                        pillar_id=pillar_id,
                        indicator_id=indicator_id,
                        reason="not_in_catalog",
                    )
                    continue
                definition = self.catalog.definition(indicator_id)
                has_value = self.scorer.is_answered(indicator.value)
                has_evidence = has_evidence_content(indicator.evidence)
                if not has_value and not has_evidence:
                    continue
                rows.append(IndicatorResponse(
                    indicator_id=indicator_id,
                    pillar_id=pillar_id,
                    raw_value=indicator.value,
                    normalized_score=self.scorer.normalize_score(indicator_id, indicator.value),
                    measurement_unit=definition.measurement_unit,
                    has_evidence=has_evidence,
                    evidence=indicator.evidence if has_evidence else None,
                ))
        return rows


def certification_level(overall_score: float) -> CertificationLevel:
    if overall_score >= GOLD_THRESHOLD:
        return CertificationLevel.GOLD
    if overall_score >= CERTIFIED_THRESHOLD:
        return CertificationLevel.CERTIFIED
    return CertificationLevel.NOT_CERTIFIED
