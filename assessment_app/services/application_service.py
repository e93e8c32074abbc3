"""
Application Service Contract - Innovation Assessment Client
assessment_app/services/application_service.py

Async contract for the remote application store. The sync layer only talks
to this interface; HttpApplicationService is the production implementation.

Implementations raise the exceptions in assessment_app.core.exceptions:
    NetworkException / NetworkTimeoutException  connection problems (retryable)
    ServiceErrorException                       5xx (retryable)
    ValidationException / ConflictException     4xx / 409
    ApplicationNotFoundException                404
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from assessment_app.models.application import (
    Application,
    FullApplicationPayload,
    StepValidation,
)
from assessment_app.models.enumerations import ChangeType


class ApplicationService(ABC):
    """Remote persistence for the current user's application."""

    @abstractmethod
    async def load_application(self) -> Application:
        """Fetch the current user's application; ApplicationNotFoundException when none exists."""

    @abstractmethod
    async def create_application(self) -> Application:
        """Create a draft application; ConflictException when one already exists."""

    @abstractmethod
    async def write_partial_change(
        self, application_id: str, change_type: ChangeType, payload: Dict[str, Any]
    ) -> None:
        """Persist one indicator or evidence change."""

    @abstractmethod
    async def write_full_application(
        self, application_id: str, payload: FullApplicationPayload
    ) -> Optional[Application]:
        """Persist the whole application."""

    @abstractmethod
    async def submit_application(self, application_id: str) -> Optional[Application]:
        """Move the application from draft to submitted."""

    @abstractmethod
    async def validate_step(self, application_id: str, step: int) -> StepValidation:
        """Server-side validation of one step."""

    async def aclose(self) -> None:
        """Release network resources; no-op by default."""
