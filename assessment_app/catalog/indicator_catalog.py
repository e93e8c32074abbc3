"""
Indicator Catalog - Innovation Assessment Client
assessment_app/catalog/indicator_catalog.py

Static lookup table for the six pillars: which indicators each pillar holds,
how each indicator is measured, its maximum score (or benchmark ceiling for
count-type indicators) and when it must be backed by evidence.

Default policy (evidence rules are applied to the normalized 0-100 score):

  Unit         | Normalization                 | Evidence required when
  -------------+-------------------------------+-------------------------------
  Score (0-N)  | value / N                     | normalized > 90
  Percentage   | value, capped at 100          | normalized > 90
  Binary (0-1) | 100 if positive else 0        | positive answer (normalized > 90)
  Number       | value / benchmark ceiling     | normalized > 90
  Hours        | value / 40                    | more than 35 hours (> 87.5)
  Ratio        | proactive / (proactive + re.) | never

Lookups never fall back to a default unit or score: an unknown indicator id
is an error.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Tuple

from assessment_app.core.exceptions import (
    CatalogException,
    UnknownIndicatorException,
    UnknownPillarException,
)
from assessment_app.models.enumerations import MeasurementUnit


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EvidenceRule:
    """When an answer has to be substantiated, expressed on the normalized score."""
    threshold: float
    direction: Literal["above", "below"] = "above"

    def applies(self, normalized_score: float) -> bool:
        if self.direction == "below":
            return normalized_score < self.threshold
        return normalized_score > self.threshold


@dataclass(frozen=True)
class IndicatorDefinition:
    """One catalog row."""
    id: str
    pillar_id: int
    sub_pillar_id: str
    measurement_unit: MeasurementUnit
    max_score: float                      # N for Score, ceiling for Number/Hours
    evidence_rule: Optional[EvidenceRule] = None


@dataclass(frozen=True)
class SubPillarDefinition:
    id: str
    name: str
    indicators: Tuple[str, ...]


@dataclass(frozen=True)
class PillarDefinition:
    id: int
    name: str
    sub_pillars: Tuple[SubPillarDefinition, ...] = field(default_factory=tuple)

    @property
    def indicator_ids(self) -> List[str]:
        return [ind for sp in self.sub_pillars for ind in sp.indicators]


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class IndicatorCatalog:
    """Read-only lookup table consumed by scoring and progress calculation."""

    def __init__(
        self,
        pillars: Iterable[PillarDefinition],
        indicators: Iterable[IndicatorDefinition],
    ):
        self._pillars: Dict[int, PillarDefinition] = {p.id: p for p in pillars}
        self._indicators: Dict[str, IndicatorDefinition] = {d.id: d for d in indicators}
        self._validate()

    def _validate(self) -> None:
        if not self._pillars:
            raise CatalogException("Catalog must define at least one pillar")
        for pillar in self._pillars.values():
            ids = pillar.indicator_ids
            if len(ids) != len(set(ids)):
                raise CatalogException(f"Pillar {pillar.id} lists an indicator twice")
            for indicator_id in ids:
                definition = self._indicators.get(indicator_id)
                if definition is None:
                    raise UnknownIndicatorException(indicator_id)
                if definition.pillar_id != pillar.id:
                    raise UnknownIndicatorException(indicator_id, pillar.id)
        for definition in self._indicators.values():
            if definition.max_score <= 0:
                raise CatalogException(
                    f"Indicator {definition.id} must have a positive max score, got {definition.max_score}"
                )

    # -- pillars ---------------------------------------------------------

    @property
    def pillar_ids(self) -> List[int]:
        return sorted(self._pillars)

    def pillar(self, pillar_id: int) -> PillarDefinition:
        try:
            return self._pillars[pillar_id]
        except KeyError:
            raise UnknownPillarException(pillar_id) from None

    def indicators_for_pillar(self, pillar_id: int) -> List[str]:
        """Canonical, ordered indicator list: the completion denominator."""
        return self.pillar(pillar_id).indicator_ids

    # -- indicators ------------------------------------------------------

    def definition(self, indicator_id: str) -> IndicatorDefinition:
        try:
            return self._indicators[indicator_id]
        except KeyError:
            raise UnknownIndicatorException(indicator_id) from None

    def measurement_unit(self, indicator_id: str) -> MeasurementUnit:
        return self.definition(indicator_id).measurement_unit

    def max_score(self, indicator_id: str) -> float:
        return self.definition(indicator_id).max_score

    def evidence_rule(self, indicator_id: str) -> Optional[EvidenceRule]:
        return self.definition(indicator_id).evidence_rule

    def evidence_required(self, indicator_id: str, normalized_score: float) -> bool:
        rule = self.evidence_rule(indicator_id)
        return rule is not None and rule.applies(normalized_score)

    def __contains__(self, indicator_id: object) -> bool:
        return indicator_id in self._indicators

    def __len__(self) -> int:
        return len(self._indicators)

    # -- construction ----------------------------------------------------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IndicatorCatalog":
        """
        Build a catalog from plain data, e.g. a JSON export.

        Expected shape:
            {"pillars": [{"id": 1, "name": "...",
                          "subPillars": [{"id": "1.1", "name": "...", "indicators": ["1.1.1"]}]}],
             "indicators": [{"id": "1.1.1", "measurementUnit": "score", "maxScore": 2,
                             "evidenceRule": {"threshold": 50, "direction": "below"}}]}
        """
        pillars: List[PillarDefinition] = []
        pillar_of: Dict[str, Tuple[int, str]] = {}
        for p in data["pillars"]:
            subs = []
            for sp in p.get("subPillars", []):
                indicator_ids = tuple(sp["indicators"])
                subs.append(SubPillarDefinition(id=sp["id"], name=sp.get("name", ""), indicators=indicator_ids))
                for indicator_id in indicator_ids:
                    pillar_of[indicator_id] = (int(p["id"]), sp["id"])
            pillars.append(PillarDefinition(id=int(p["id"]), name=p.get("name", ""), sub_pillars=tuple(subs)))

        indicators: List[IndicatorDefinition] = []
        for ind in data["indicators"]:
            if ind["id"] not in pillar_of:
                raise CatalogException(f"Indicator {ind['id']} is not listed under any pillar")
            pillar_id, sub_pillar_id = pillar_of[ind["id"]]
            rule_data = ind.get("evidenceRule")
            indicators.append(IndicatorDefinition(
                id=ind["id"],
                pillar_id=pillar_id,
                sub_pillar_id=sub_pillar_id,
                measurement_unit=MeasurementUnit(ind["measurementUnit"]),
                max_score=float(ind["maxScore"]),
                evidence_rule=EvidenceRule(**rule_data) if rule_data else None,
            ))
        return cls(pillars, indicators)


# ---------------------------------------------------------------------------
# DEFAULT CATALOG
# ---------------------------------------------------------------------------

PILLAR_STRUCTURE: Dict[int, Tuple[str, Tuple[Tuple[str, str, Tuple[str, ...]], ...]]] = {
    1: ("Strategic Foundation & Leadership Commitment", (
        ("1.1", "Innovation Intent & Strategic Alignment", ("1.1.1", "1.1.2", "1.1.3", "1.1.4")),
        ("1.2", "Leadership Commitment & Accountability", ("1.2.1", "1.2.2", "1.2.3", "1.2.4")),
        ("1.3", "Formal Policy & IP Strategy", ("1.3.1", "1.3.2", "1.3.3", "1.3.4")),
        ("1.4", "Strategic Flexibility & Feedback Loops", ("1.4.1", "1.4.2", "1.4.3", "1.4.4")),
    )),
    2: ("Resource Allocation & Infrastructure", (
        ("2.1", "Financial Investment", ("2.1.1", "2.1.2", "2.1.3")),
        ("2.2", "Human Capital Development", ("2.2.1", "2.2.2", "2.2.3", "2.2.4", "2.2.5")),
        ("2.3", "Infrastructure & Tools", ("2.3.1", "2.3.2", "2.3.3", "2.3.4")),
    )),
    3: ("Innovation Processes & Culture", (
        ("3.1", "Process Maturity", ("3.1.1", "3.1.2", "3.1.3", "3.1.4")),
        ("3.2", "Idea Management", ("3.2.1", "3.2.2", "3.2.3")),
        ("3.3", "Experimentation & Learning", ("3.3.1", "3.3.2", "3.3.3")),
        ("3.4", "Innovation Culture", ("3.4.1", "3.4.2", "3.4.3", "3.4.4")),
        ("3.5", "Strategy Communication", ("3.5.1", "3.5.2")),
    )),
    4: ("Knowledge & IP Management", (
        ("4.1", "IP Strategy & Value", ("4.1.1", "4.1.2", "4.1.3")),
        ("4.2", "IP Identification & Protection", ("4.2.1", "4.2.2", "4.2.3")),
        ("4.3", "IP Risk Management", ("4.3.1", "4.3.2")),
        ("4.4", "Knowledge Sharing", ("4.4.1", "4.4.2", "4.4.3")),
    )),
    5: ("Strategic Intelligence & Collaboration", (
        ("5.1", "Intelligence Gathering", ("5.1.1", "5.1.2", "5.1.3", "5.1.4", "5.1.5")),
        ("5.2", "External Collaboration", ("5.2.1", "5.2.2", "5.2.3", "5.2.4")),
    )),
    6: ("Performance Measurement & Improvement", (
        ("6.1", "Performance Metrics", ("6.1.1", "6.1.2", "6.1.3")),
        ("6.2", "Assessment & Auditing", ("6.2.1", "6.2.2", "6.2.3")),
        ("6.3", "Continuous Improvement", ("6.3.1", "6.3.2", "6.3.3")),
    )),
}

_S, _P, _B, _N, _H, _R = (
    MeasurementUnit.SCORE,
    MeasurementUnit.PERCENTAGE,
    MeasurementUnit.BINARY,
    MeasurementUnit.NUMBER,
    MeasurementUnit.HOURS,
    MeasurementUnit.RATIO,
)

# indicator id -> (measurement unit, max score / benchmark ceiling)
INDICATOR_UNITS: Dict[str, Tuple[MeasurementUnit, float]] = {
    # Pillar 1
    "1.1.1": (_S, 2), "1.1.2": (_P, 100), "1.1.3": (_S, 2), "1.1.4": (_S, 3),
    "1.2.1": (_B, 1), "1.2.2": (_P, 100), "1.2.3": (_P, 100), "1.2.4": (_S, 5),
    "1.3.1": (_S, 3), "1.3.2": (_P, 100), "1.3.3": (_S, 2), "1.3.4": (_P, 100),
    "1.4.1": (_S, 3), "1.4.2": (_P, 100), "1.4.3": (_B, 1), "1.4.4": (_S, 2),
    # Pillar 2
    "2.1.1": (_P, 100), "2.1.2": (_P, 100), "2.1.3": (_S, 5),
    "2.2.1": (_N, 200), "2.2.2": (_P, 100), "2.2.3": (_H, 40), "2.2.4": (_S, 3), "2.2.5": (_S, 3),
    "2.3.1": (_S, 5), "2.3.2": (_S, 5), "2.3.3": (_S, 5), "2.3.4": (_S, 5),
    # Pillar 3
    "3.1.1": (_S, 5), "3.1.2": (_P, 100), "3.1.3": (_S, 5), "3.1.4": (_S, 5),
    "3.2.1": (_P, 100), "3.2.2": (_S, 5), "3.2.3": (_B, 1),
    "3.3.1": (_S, 5), "3.3.2": (_P, 100), "3.3.3": (_P, 100),
    "3.4.1": (_S, 5), "3.4.2": (_S, 5), "3.4.3": (_S, 3), "3.4.4": (_S, 5),
    "3.5.1": (_S, 5), "3.5.2": (_S, 5),
    # Pillar 4
    "4.1.1": (_S, 5), "4.1.2": (_R, 1), "4.1.3": (_S, 5),
    "4.2.1": (_P, 100), "4.2.2": (_S, 5), "4.2.3": (_P, 100),
    "4.3.1": (_S, 3), "4.3.2": (_P, 100),
    "4.4.1": (_P, 100), "4.4.2": (_P, 100), "4.4.3": (_P, 100),
    # Pillar 5
    "5.1.1": (_S, 5), "5.1.2": (_P, 100), "5.1.3": (_P, 100), "5.1.4": (_N, 5), "5.1.5": (_S, 3),
    "5.2.1": (_P, 100), "5.2.2": (_S, 5), "5.2.3": (_P, 100), "5.2.4": (_P, 100),
    # Pillar 6
    "6.1.1": (_P, 100), "6.1.2": (_P, 100), "6.1.3": (_S, 5),
    "6.2.1": (_S, 3), "6.2.2": (_N, 2), "6.2.3": (_S, 5),
    "6.3.1": (_P, 100), "6.3.2": (_P, 100), "6.3.3": (_N, 4),
}

DEFAULT_EVIDENCE_RULES: Dict[MeasurementUnit, Optional[EvidenceRule]] = {
    MeasurementUnit.SCORE: EvidenceRule(threshold=90.0),
    MeasurementUnit.PERCENTAGE: EvidenceRule(threshold=90.0),
    MeasurementUnit.BINARY: EvidenceRule(threshold=90.0),
    MeasurementUnit.NUMBER: EvidenceRule(threshold=90.0),
    MeasurementUnit.HOURS: EvidenceRule(threshold=87.5),
    MeasurementUnit.RATIO: None,
}


def build_default_catalog() -> IndicatorCatalog:
    """Catalog for the six-pillar innovation assessment."""
    pillars: List[PillarDefinition] = []
    indicators: List[IndicatorDefinition] = []
    for pillar_id, (pillar_name, sub_pillars) in PILLAR_STRUCTURE.items():
        subs = []
        for sub_id, sub_name, indicator_ids in sub_pillars:
            subs.append(SubPillarDefinition(id=sub_id, name=sub_name, indicators=indicator_ids))
            for indicator_id in indicator_ids:
                unit, max_score = INDICATOR_UNITS[indicator_id]
                indicators.append(IndicatorDefinition(
                    id=indicator_id,
                    pillar_id=pillar_id,
                    sub_pillar_id=sub_id,
                    measurement_unit=unit,
                    max_score=float(max_score),
                    evidence_rule=DEFAULT_EVIDENCE_RULES[unit],
                ))
        pillars.append(PillarDefinition(id=pillar_id, name=pillar_name, sub_pillars=tuple(subs)))
    return IndicatorCatalog(pillars, indicators)
