"""
Core Package - Innovation Assessment Client
assessment_app/core/__init__.py

Core infrastructure: dependencies, exceptions.
"""

from assessment_app.core.exceptions import (
    ApplicationLockedException,
    ApplicationNotFoundException,
    ApplicationNotLoadedException,
    ApplicationStateException,
    CatalogException,
    ConflictException,
    InvalidStepException,
    NetworkException,
    NetworkTimeoutException,
    ServiceErrorException,
    ServiceException,
    UnknownIndicatorException,
    UnknownPillarException,
    ValidationException,
)

__all__ = [
    # Remote service
    "ServiceException",
    "NetworkException",
    "NetworkTimeoutException",
    "ServiceErrorException",
    "ValidationException",
    "ConflictException",
    "ApplicationNotFoundException",
    # Local state
    "ApplicationStateException",
    "ApplicationNotLoadedException",
    "ApplicationLockedException",
    "InvalidStepException",
    # Catalog
    "CatalogException",
    "UnknownIndicatorException",
    "UnknownPillarException",
]
