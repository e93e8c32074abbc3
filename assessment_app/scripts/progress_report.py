"""
Offline progress report for an exported application.

Reads an application JSON (as returned by the assessment API, optionally
wrapped in {"data": ...}) and prints per-pillar completion, score, missing
items and the overall certification outlook.

Usage:
    python -m assessment_app.scripts.progress_report application.json
    python -m assessment_app.scripts.progress_report application.json --pillar 2
    python -m assessment_app.scripts.progress_report application.json --json
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from assessment_app.catalog.indicator_catalog import IndicatorCatalog
from assessment_app.config import configure_logging
from assessment_app.core.dependencies import get_catalog
from assessment_app.core.exceptions import CatalogException
from assessment_app.models.application import Application, pillar_key
from assessment_app.scoring.progress_calculator import ProgressCalculator
from assessment_app.scoring.institution_validator import missing_institution_fields

logger = logging.getLogger(__name__)


def load_application(path: Path) -> Application:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, dict) and "data" in raw:
        raw = raw["data"]
    if isinstance(raw, list):
        if not raw:
            raise ValueError(f"{path} contains no application")
        raw = raw[0]
    return Application.model_validate(raw)


def build_report(
    application: Application,
    catalog: IndicatorCatalog,
    pillars: Optional[List[int]] = None,
) -> Dict[str, Any]:
    calculator = ProgressCalculator(catalog)
    overall = calculator.compute_overall(application)
    selected = pillars or catalog.pillar_ids

    pillar_rows = []
    for pillar_id in selected:
        pillar_data = application.pillar_data.get(pillar_key(pillar_id))
        progress = calculator.compute_pillar_progress(pillar_data, pillar_id)
        pillar_rows.append({
            "pillar": pillar_id,
            "name": catalog.pillar(pillar_id).name,
            "completion": round(progress.completion, 1),
            "score": round(progress.score, 1),
            "completed": progress.completed_count,
            "answered": progress.answered_count,
            "total": progress.total_count,
            "missing": calculator.missing_items(pillar_data, pillar_id),
        })

    return {
        "application_id": application.id,
        "status": application.status.value,
        "institution_missing": missing_institution_fields(application.institution_data),
        "pillars": pillar_rows,
        "overall_completion": round(overall.overall_completion, 1),
        "overall_score": round(overall.overall_score, 1),
        "certification_level": overall.certification_level.value,
        "recommendations": overall.recommendations,
    }


def print_report(report: Dict[str, Any], show_missing: bool = True) -> None:
    print("=" * 72)
    print(f"Application {report['application_id']}  [{report['status']}]")
    print("=" * 72)
    if report["institution_missing"]:
        print(f"Institution profile incomplete: {', '.join(report['institution_missing'])}")
    else:
        print("Institution profile complete")
    print()
    print(f"{'Pillar':<8}{'Completion':>12}{'Score':>10}{'Done':>8}{'Answered':>10}{'Total':>8}  Name")
    print("-" * 72)
    for row in report["pillars"]:
        print(
            f"{row['pillar']:<8}{row['completion']:>11.1f}%{row['score']:>10.1f}"
            f"{row['completed']:>8}{row['answered']:>10}{row['total']:>8}  {row['name']}"
        )
    print("-" * 72)
    print(f"Overall completion: {report['overall_completion']:.1f}%")
    print(f"Overall score:      {report['overall_score']:.1f}  ({report['certification_level']})")

    if show_missing:
        for row in report["pillars"]:
            if row["missing"]:
                print(f"\nPillar {row['pillar']} missing:")
                for item in row["missing"]:
                    print(f"  - {item}")

    if report["recommendations"]:
        print("\nRecommendations:")
        for rec in report["recommendations"]:
            print(f"  * {rec}")


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Progress report for an exported assessment application")
    ap.add_argument("path", type=Path, help="Application JSON file")
    ap.add_argument("--pillar", type=int, action="append", help="Only report this pillar (repeatable)")
    ap.add_argument("--json", action="store_true", help="Print the report as JSON")
    ap.add_argument("--no-missing", action="store_true", help="Skip the missing-item lists")
    args = ap.parse_args(argv)

    configure_logging()
    catalog = get_catalog()
    try:
        application = load_application(args.path)
        report = build_report(application, catalog, args.pillar)
    except (OSError, ValueError, ValidationError, CatalogException) as e:
        logger.error(f"Cannot build report for {args.path}: {e}")
        return 1

    if args.json:
        json.dump(report, sys.stdout, indent=2)
        print()
    else:
        print_report(report, show_missing=not args.no_missing)
    return 0


if __name__ == "__main__":
    sys.exit(main())
