"""
Custom Exceptions - Innovation Assessment Client
assessment_app/core/exceptions.py

Remote-store failures, local state violations and catalog lookups.
"""

from typing import Optional


# =============================================================================
# REMOTE SERVICE FAILURES
# =============================================================================

class ServiceException(Exception):
    """Base exception for remote application-store operations."""

    retryable = False

    def __init__(self, message: str = "Application service request failed", status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class NetworkException(ServiceException):
    """Request never reached the store or the connection dropped."""

    retryable = True

    def __init__(self, message: str = "Network request failed"):
        super().__init__(message)


class NetworkTimeoutException(NetworkException):
    """Request exceeded the configured timeout and was cancelled."""

    def __init__(self, operation: str, timeout_seconds: float):
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(f"{operation} timed out after {timeout_seconds:g}s")


class ServiceErrorException(ServiceException):
    """Store answered with a 5xx status."""

    retryable = True

    def __init__(self, message: str = "Application service error", status_code: int = 500):
        super().__init__(message, status_code)


class ValidationException(ServiceException):
    """Store rejected the request (4xx)."""

    def __init__(self, message: str = "Request rejected by application service", status_code: int = 400):
        super().__init__(message, status_code)


class ConflictException(ValidationException):
    """Store reported a conflicting write (409)."""

    def __init__(self, message: str = "Application already exists"):
        super().__init__(message, 409)


class ApplicationNotFoundException(ServiceException):
    """No application exists for the current identity (404)."""

    def __init__(self, application_id: Optional[str] = None):
        self.application_id = application_id
        if application_id:
            message = f"Application with ID {application_id} not found"
        else:
            message = "No application found for current user"
        super().__init__(message, 404)


# =============================================================================
# LOCAL STATE VIOLATIONS
# =============================================================================

class ApplicationStateException(Exception):
    """Base exception for invalid operations on the local application state."""

    pass


class ApplicationNotLoadedException(ApplicationStateException):
    """An edit arrived before an application was loaded."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Cannot {operation}: no application loaded")


class ApplicationLockedException(ApplicationStateException):
    """Application is no longer a draft; indicator data is read-only."""

    def __init__(self, application_id: str, status: str):
        self.application_id = application_id
        self.status = status
        super().__init__(f"Application {application_id} is {status} and can no longer be edited")


class InvalidStepException(ApplicationStateException):
    """Step index outside institution setup (0) and pillars (1-6)."""

    def __init__(self, step: int):
        self.step = step
        super().__init__(f"Step {step} is out of range")


# =============================================================================
# CATALOG LOOKUPS
# =============================================================================

class CatalogException(Exception):
    """Base exception for indicator catalog lookups."""

    pass


class UnknownIndicatorException(CatalogException):
    """Indicator id missing from the catalog (or from the requested pillar)."""

    def __init__(self, indicator_id: str, pillar_id: Optional[int] = None):
        self.indicator_id = indicator_id
        self.pillar_id = pillar_id
        if pillar_id is None:
            message = f"Indicator {indicator_id} is not defined in the catalog"
        else:
            message = f"Indicator {indicator_id} does not belong to pillar {pillar_id}"
        super().__init__(message)


class UnknownPillarException(CatalogException):
    """Pillar id missing from the catalog."""

    def __init__(self, pillar_id: int):
        self.pillar_id = pillar_id
        super().__init__(f"Pillar {pillar_id} is not defined in the catalog")
