"""
Progress Calculator Tests - Innovation Assessment Client
tests/test_progress_calculator.py

Pillar completion/score, evidence gating, missing items, step validation,
overall scores and full-save indicator rows.
"""
import pytest

from assessment_app.catalog.indicator_catalog import EvidenceRule
from assessment_app.core.exceptions import InvalidStepException, UnknownIndicatorException
from assessment_app.models.application import (
    Application,
    EvidenceData,
    EvidenceText,
    IndicatorData,
    InstitutionData,
    PillarData,
)
from assessment_app.models.enumerations import CertificationLevel, MeasurementUnit
from assessment_app.scoring.progress_calculator import (
    NO_DATA_RECOMMENDATION,
    PILLAR_RECOMMENDATIONS,
    ProgressCalculator,
    certification_level,
)
from tests.conftest import make_catalog


def pillar(**values) -> PillarData:
    """PillarData from indicator id (dots replaced by underscores) -> value."""
    return PillarData(indicators={
        key.replace("_", "."): IndicatorData(id=key.replace("_", "."), value=value)
        for key, value in values.items()
    })


class TestPillarProgress:
    """Tests for compute_pillar_progress()."""

    def test_untouched_pillar(self, default_catalog):
        progress = ProgressCalculator(default_catalog).compute_pillar_progress(None, 2)
        assert progress.completion == 0.0
        assert progress.score == 0.0
        assert progress.total_count == 12
        assert progress.answered_count == 0

    def test_denominator_includes_untouched_indicators(self, default_catalog):
        """One answered indicator out of sixteen."""
        calc = ProgressCalculator(default_catalog)
        progress = calc.compute_pillar_progress(pillar(**{"1_1_2": 50}), 1)
        assert progress.completed_count == 1
        assert progress.completion == pytest.approx(100 / 16)
        assert progress.score == 50.0

    def test_score_averages_answered_only(self, default_catalog):
        calc = ProgressCalculator(default_catalog)
        progress = calc.compute_pillar_progress(pillar(**{"1_1_2": 40, "1_2_2": 80, "1_1_1": None}), 1)
        assert progress.answered_count == 2
        assert progress.score == 60.0

    def test_single_indicator_complete(self, simple_catalog):
        progress = ProgressCalculator(simple_catalog).compute_pillar_progress(pillar(**{"1_1_1": 2}), 1)
        assert progress.completion == 100.0
        assert progress.score == 100.0
        assert progress.is_complete is True

    def test_explicit_indicator_list(self, default_catalog):
        calc = ProgressCalculator(default_catalog)
        progress = calc.compute_pillar_progress(pillar(**{"1_1_2": 50}), 1, ["1.1.2", "1.1.3"])
        assert progress.total_count == 2
        assert progress.completion == 50.0

    def test_explicit_list_with_foreign_indicator(self, default_catalog):
        with pytest.raises(UnknownIndicatorException):
            ProgressCalculator(default_catalog).compute_pillar_progress(None, 1, ["2.1.1"])


class TestEvidenceGating:
    """A "score < 70" rule on a Percentage indicator."""

    @pytest.fixture
    def calc(self):
        catalog = make_catalog(
            unit=MeasurementUnit.PERCENTAGE,
            max_score=100,
            rule=EvidenceRule(threshold=70, direction="below"),
        )
        return ProgressCalculator(catalog)

    def test_high_score_needs_no_evidence(self, calc):
        assert calc.compute_pillar_progress(pillar(**{"1_1_1": 80}), 1).completion == 100.0

    def test_low_score_without_evidence_is_incomplete(self, calc):
        progress = calc.compute_pillar_progress(pillar(**{"1_1_1": 40}), 1)
        assert progress.completion == 0.0
        assert progress.score == 40.0

    def test_low_score_with_local_evidence_is_incomplete(self, calc):
        data = PillarData(indicators={"1.1.1": IndicatorData(
            id="1.1.1", value=40,
            evidence=EvidenceData(text=EvidenceText(description="Audit report")),
        )})
        assert calc.compute_pillar_progress(data, 1).completion == 0.0

    def test_low_score_with_confirmed_evidence_is_complete(self, calc):
        data = PillarData(indicators={"1.1.1": IndicatorData(
            id="1.1.1", value=40,
            evidence=EvidenceData(text=EvidenceText(description="Audit report", persisted=True)),
        )})
        assert calc.compute_pillar_progress(data, 1).completion == 100.0


class TestMissingItems:
    """Tests for missing_items() and validate_step()."""

    def test_missing_item_messages(self, default_catalog):
        calc = ProgressCalculator(default_catalog)
        items = calc.missing_items(pillar(**{"1_1_1": 1, "1_2_1": 1}), 1)
        assert "Indicator 1.2.1 - Evidence required" in items
        assert "Indicator 1.1.2 - No value provided" in items
        assert not any(item.startswith("Indicator 1.1.1 ") for item in items)
        assert len(items) == 15

    def test_validate_institution_step(self, default_catalog):
        app = Application(id="a", institution_data=InstitutionData(name="A", contact_email="bad"))
        result = ProgressCalculator(default_catalog).validate_step(app, 0)
        assert result.is_valid is False
        assert "Institution Name" in result.missing_items
        assert "Contact Email" in result.missing_items
        assert result.step == 0

    def test_validate_pillar_step(self, simple_catalog):
        app = Application(id="a", pillar_data={"pillar_1": pillar(**{"1_1_1": 1})})
        calc = ProgressCalculator(simple_catalog)
        assert calc.validate_step(app, 1).is_valid is True
        assert calc.validate_step(app, 2).missing_items == ["Indicator 2.1.1 - No value provided"]

    @pytest.mark.parametrize("step", [-1, 7])
    def test_invalid_step(self, default_catalog, step):
        with pytest.raises(InvalidStepException):
            ProgressCalculator(default_catalog).validate_step(Application(id="a"), step)


class TestOverall:
    """Tests for compute_overall() and certification levels."""

    @pytest.mark.parametrize("score,level", [
        (85, CertificationLevel.GOLD),
        (84.9, CertificationLevel.CERTIFIED),
        (70, CertificationLevel.CERTIFIED),
        (69.9, CertificationLevel.NOT_CERTIFIED),
        (0, CertificationLevel.NOT_CERTIFIED),
    ])
    def test_certification_level(self, score, level):
        assert certification_level(score) == level

    def test_empty_application(self, default_catalog):
        scores = ProgressCalculator(default_catalog).compute_overall(Application(id="a"))
        assert scores.overall_completion == 0.0
        assert scores.overall_score == 0.0
        assert scores.certification_level == CertificationLevel.NOT_CERTIFIED
        assert scores.recommendations == [NO_DATA_RECOMMENDATION]
        assert set(scores.pillar_completion) == {f"pillar_{i}" for i in range(1, 7)}

    def test_overall_over_answered_pillars(self, simple_catalog):
        app = Application(id="a", pillar_data={
            "pillar_1": pillar(**{"1_1_1": 2}),
            "pillar_2": pillar(**{"2_1_1": 1}),
        })
        scores = ProgressCalculator(simple_catalog).compute_overall(app)
        assert scores.overall_score == 75.0
        assert scores.overall_completion == pytest.approx(200 / 6)
        assert scores.pillar_scores["pillar_2"] == 50.0
        assert PILLAR_RECOMMENDATIONS[2] in scores.recommendations
        assert PILLAR_RECOMMENDATIONS[1] not in scores.recommendations

    def test_gold(self, simple_catalog):
        app = Application(id="a", pillar_data={
            f"pillar_{p}": pillar(**{f"{p}_1_1": 2}) for p in range(1, 7)
        })
        scores = ProgressCalculator(simple_catalog).compute_overall(app)
        assert scores.overall_completion == 100.0
        assert scores.certification_level == CertificationLevel.GOLD
        assert scores.recommendations == []


class TestIndicatorResponses:
    """Tests for build_indicator_responses()."""

    def test_rows_for_values_and_evidence_only(self, default_catalog):
        app = Application(id="a", pillar_data={"pillar_1": PillarData(indicators={
            "1.1.1": IndicatorData(id="1.1.1", value=1),
            "1.1.2": IndicatorData(id="1.1.2", value=None,
                                   evidence=EvidenceData(text=EvidenceText(description="note"))),
            "1.1.3": IndicatorData(id="1.1.3", value=""),
        })})
        rows = ProgressCalculator(default_catalog).build_indicator_responses(app)
        by_id = {r.indicator_id: r for r in rows}
        assert set(by_id) == {"1.1.1", "1.1.2"}
        assert by_id["1.1.1"].normalized_score == 50.0
        assert by_id["1.1.1"].measurement_unit == MeasurementUnit.SCORE
        assert by_id["1.1.1"].has_evidence is False
        assert by_id["1.1.2"].has_evidence is True
        assert by_id["1.1.2"].pillar_id == 1

    def test_ids_outside_catalog_are_left_out(self, default_catalog):
        app = Application(id="a", pillar_data={
            "pillar_1": pillar(**{"9_9_9": 1, "6_1_3": 2}),
            "pillar_6": pillar(**{"6_1_4": 3, "6_1_3": 5}),
        })
        rows = ProgressCalculator(default_catalog).build_indicator_responses(app)
        assert [(r.pillar_id, r.indicator_id) for r in rows] == [(6, "6.1.3")]
        assert rows[0].normalized_score == 100.0
