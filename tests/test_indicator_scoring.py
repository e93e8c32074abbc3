"""
Indicator Scoring Tests - Innovation Assessment Client
tests/test_indicator_scoring.py

Normalization per measurement unit, answered/blank handling, evidence rules
and evidence validation.
"""
import pytest

from assessment_app.catalog.indicator_catalog import EvidenceRule
from assessment_app.core.exceptions import UnknownIndicatorException
from assessment_app.models.application import (
    EvidenceData,
    EvidenceFile,
    EvidenceLink,
    EvidenceText,
)
from assessment_app.models.enumerations import MeasurementUnit
from assessment_app.scoring.indicator_scoring import (
    NORMALIZERS,
    IndicatorScorer,
    has_evidence_content,
    validate_evidence,
)
from assessment_app.scoring.utils import clamp, is_blank, to_number
from tests.conftest import make_catalog


@pytest.fixture
def scorer(default_catalog):
    return IndicatorScorer(default_catalog)


class TestUtils:
    """Tests for numeric helpers."""

    @pytest.mark.parametrize("value", [None, "", "   ", "\t"])
    def test_blank_values(self, value):
        assert is_blank(value) is True

    @pytest.mark.parametrize("value", [0, 0.0, False, "0", "abc"])
    def test_non_blank_values(self, value):
        assert is_blank(value) is False

    def test_to_number_parses_strings(self):
        assert to_number("42") == 42.0
        assert to_number(" 75% ") == 75.0
        assert to_number("3.5") == 3.5

    def test_to_number_rejects_garbage(self):
        assert to_number("abc") is None
        assert to_number("nan") is None
        assert to_number(float("inf")) is None

    def test_to_number_booleans(self):
        assert to_number(True) == 1.0
        assert to_number(False) == 0.0

    def test_clamp(self):
        assert clamp(-5) == 0
        assert clamp(150) == 100
        assert clamp(42.5) == 42.5


class TestNormalization:
    """Tests for IndicatorScorer.normalize_score()."""

    def test_every_unit_has_a_normalizer(self):
        assert set(NORMALIZERS) == set(MeasurementUnit)

    def test_score_scale(self, scorer):
        """Score (0-2): value / 2."""
        assert scorer.normalize_score("1.1.1", 2) == 100.0
        assert scorer.normalize_score("1.1.1", 1) == 50.0
        assert scorer.normalize_score("1.1.1", 0) == 0.0

    def test_score_above_scale_is_capped(self, scorer):
        assert scorer.normalize_score("1.1.1", 7) == 100.0

    def test_percentage_capped_at_100(self, scorer):
        assert scorer.normalize_score("1.1.2", 150) == 100.0
        assert scorer.normalize_score("1.1.2", 42) == 42.0

    def test_negative_values_clamped(self, scorer):
        assert scorer.normalize_score("1.1.2", -20) == 0.0

    def test_binary(self, scorer):
        assert scorer.normalize_score("1.2.1", 1) == 100.0
        assert scorer.normalize_score("1.2.1", True) == 100.0
        assert scorer.normalize_score("1.2.1", "yes") == 100.0
        assert scorer.normalize_score("1.2.1", 0) == 0.0
        assert scorer.normalize_score("1.2.1", "no") == 0.0

    def test_number_against_ceiling(self, scorer):
        """2.2.1 is a count with a ceiling of 200."""
        assert scorer.normalize_score("2.2.1", 100) == 50.0
        assert scorer.normalize_score("2.2.1", 400) == 100.0

    def test_hours_per_employee(self, scorer):
        """2.2.3 uses a 40 hour ceiling."""
        assert scorer.normalize_score("2.2.3", 20) == 50.0
        assert scorer.normalize_score("2.2.3", 60) == 100.0

    def test_ratio_pair(self, scorer):
        assert scorer.normalize_score("4.1.2", "3:1") == 75.0
        assert scorer.normalize_score("4.1.2", "0:0") == 0.0
        assert scorer.normalize_score("4.1.2", "x:1") == 0.0

    def test_ratio_fraction(self, scorer):
        assert scorer.normalize_score("4.1.2", 0.25) == 25.0
        assert scorer.normalize_score("4.1.2", 3) == 100.0

    @pytest.mark.parametrize("value", [None, "", "  "])
    def test_blank_scores_zero(self, scorer, value):
        assert scorer.normalize_score("1.1.1", value) == 0.0
        assert scorer.is_answered(value) is False

    def test_unparseable_scores_zero_but_counts_as_answered(self, scorer):
        assert scorer.normalize_score("1.1.2", "lots") == 0.0
        assert scorer.is_answered("lots") is True

    def test_numeric_strings(self, scorer):
        assert scorer.normalize_score("1.1.2", "80") == 80.0

    def test_unknown_indicator(self, scorer):
        with pytest.raises(UnknownIndicatorException):
            scorer.normalize_score("0.0.0", 1)


class TestEvidenceRequired:
    """Tests for IndicatorScorer.is_evidence_required()."""

    def test_unanswered_never_requires_evidence(self, scorer):
        assert scorer.is_evidence_required("1.2.1", None) is False

    def test_binary_positive_requires_evidence(self, scorer):
        assert scorer.is_evidence_required("1.2.1", 1) is True
        assert scorer.is_evidence_required("1.2.1", 0) is False

    def test_percentage_above_90(self, scorer):
        assert scorer.is_evidence_required("1.1.2", 95) is True
        assert scorer.is_evidence_required("1.1.2", 90) is False

    def test_score_above_90_percent_of_scale(self, scorer):
        assert scorer.is_evidence_required("1.2.4", 5) is True
        assert scorer.is_evidence_required("1.2.4", 4) is False

    def test_ratio_never(self, scorer):
        assert scorer.is_evidence_required("4.1.2", "9:1") is False

    def test_below_rule(self):
        catalog = make_catalog(rule=EvidenceRule(threshold=50, direction="below"))
        scorer = IndicatorScorer(catalog)
        assert scorer.is_evidence_required("1.1.1", 0) is True
        assert scorer.is_evidence_required("1.1.1", 1) is False
        assert scorer.is_evidence_required("1.1.1", 2) is False

    def test_unknown_indicator_unanswered(self, scorer):
        with pytest.raises(UnknownIndicatorException):
            scorer.is_evidence_required("0.0.0", None)


class TestValidateEvidence:
    """Tests for validate_evidence()."""

    def test_none_and_empty(self):
        assert validate_evidence(None) is False
        assert validate_evidence(EvidenceData()) is False

    def test_local_text_does_not_count(self):
        evidence = EvidenceData(text=EvidenceText(description="Board minutes"))
        assert validate_evidence(evidence) is False
        assert has_evidence_content(evidence) is True

    def test_persisted_text_counts(self):
        evidence = EvidenceData(text=EvidenceText(description="Board minutes", persisted=True))
        assert validate_evidence(evidence) is True

    def test_persisted_but_blank(self):
        evidence = EvidenceData(text=EvidenceText(description="   ", persisted=True))
        assert validate_evidence(evidence) is False

    def test_link_needs_url(self):
        assert validate_evidence(EvidenceData(link=EvidenceLink(url="https://x.org", persisted=True))) is True
        assert validate_evidence(EvidenceData(link=EvidenceLink(description="see site", persisted=True))) is False

    def test_file_needs_name(self):
        assert validate_evidence(EvidenceData(file=EvidenceFile(file_name="policy.pdf", persisted=True))) is True
        assert validate_evidence(EvidenceData(file=EvidenceFile(persisted=True))) is False

    def test_any_confirmed_kind_is_enough(self):
        evidence = EvidenceData(
            text=EvidenceText(description="draft note"),
            link=EvidenceLink(url="https://x.org", persisted=True),
        )
        assert validate_evidence(evidence) is True
