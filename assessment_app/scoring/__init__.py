"""
scoring/ - Indicator scoring and progress

Modules:
    utils.py                  - Tolerant number parsing, clamp, mean
    indicator_scoring.py      - Per-unit normalization and evidence rules
    institution_validator.py  - Step 0 institution profile checks
    progress_calculator.py    - Pillar completion/score, overall scores, step validation
"""
