"""
Institution Validator - Innovation Assessment Client
assessment_app/scoring/institution_validator.py

Step 0 gate: the institution profile must be filled in before any pillar
can be opened.
"""

import re
from typing import List, Tuple

from assessment_app.models.application import InstitutionData, StepValidation
from assessment_app.scoring.utils import is_blank

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# (attribute, label shown to the user)
REQUIRED_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("name", "Institution Name"),
    ("industry", "Industry"),
    ("organization_size", "Organization Size"),
    ("country", "Country"),
    ("contact_email", "Contact Email"),
)

MIN_NAME_LENGTH = 2


def missing_institution_fields(institution: InstitutionData) -> List[str]:
    """Labels of required fields that are absent or malformed."""
    missing = []
    for attr, label in REQUIRED_FIELDS:
        value = getattr(institution, attr)
        if attr == "name":
            invalid = is_blank(value) or len(value.strip()) < MIN_NAME_LENGTH
        elif attr == "contact_email":
            invalid = is_blank(value) or not EMAIL_PATTERN.match(value.strip())
        else:
            invalid = is_blank(value)
        if invalid:
            missing.append(label)
    return missing


def validate_institution(institution: InstitutionData) -> StepValidation:
    missing = missing_institution_fields(institution)
    return StepValidation(is_valid=not missing, missing_items=missing, step=0)


def is_institution_complete(institution: InstitutionData) -> bool:
    return not missing_institution_fields(institution)
