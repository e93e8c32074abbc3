"""
catalog/ - Indicator catalog

Modules:
    indicator_catalog.py  - Pillar structure, measurement units, max scores, evidence rules
"""
