"""
HTTP Application Service - Innovation Assessment Client
assessment_app/services/http_application_service.py

httpx implementation of ApplicationService against the assessment web API:

    GET  /api/applications/enhanced                    -> {"data": [application, ...]}
    POST /api/applications/enhanced                    -> {"data": application}
    PUT  /api/applications/enhanced/{id}/partial       body {"changeType", "changes"}
    PUT  /api/applications/enhanced/{id}               body full payload
    PUT  /api/applications/enhanced/{id}/submit
    GET  /api/applications/enhanced/{id}/validate?step -> {"isValid", "missingItems"}
"""

import logging
from typing import Any, Dict, Optional

import httpx

from assessment_app.config import settings
from assessment_app.core.exceptions import (
    ApplicationNotFoundException,
    ConflictException,
    NetworkException,
    NetworkTimeoutException,
    ServiceErrorException,
    ValidationException,
)
from assessment_app.models.application import (
    Application,
    FullApplicationPayload,
    StepValidation,
)
from assessment_app.models.enumerations import ChangeType
from assessment_app.services.application_service import ApplicationService

logger = logging.getLogger(__name__)

APPLICATIONS_PATH = "/api/applications/enhanced"


class HttpApplicationService(ApplicationService):
    """Talks to the remote store over HTTP; maps failures onto the service exceptions."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if token is None and settings.API_TOKEN is not None:
            token = settings.API_TOKEN.get_secret_value()
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS
        self.client = httpx.AsyncClient(
            base_url=(base_url or settings.API_BASE_URL).rstrip("/"),
            headers=headers,
            timeout=self.timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    # =========================================================================
    # Transport
    # =========================================================================

    async def _request(self, method: str, path: str, read_body: bool = True, **kwargs: Any) -> Any:
        operation = f"{method} {path}"
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"Request timed out: {operation}")
            raise NetworkTimeoutException(operation, self.timeout) from e
        except httpx.TransportError as e:
            logger.warning(f"Network error on {operation}: {e}")
            raise NetworkException(f"Network error on {operation}: {e}") from e

        if response.status_code >= 400:
            self._raise_for_status(response, operation)
        if not read_body or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.warning(f"{operation} returned a non-JSON body ({response.status_code})")
            raise ServiceErrorException(
                f"Invalid JSON response from {operation}", response.status_code
            ) from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict):
            return str(body.get("error") or body.get("message") or body)
        return str(body)

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        status = response.status_code
        message = self._error_message(response)
        logger.warning(f"{operation} failed with {status}: {message}")
        if status == 404:
            raise ApplicationNotFoundException()
        if status == 409:
            raise ConflictException(message)
        if status >= 500:
            raise ServiceErrorException(message, status)
        raise ValidationException(message, status)

    @staticmethod
    def _unwrap(body: Any) -> Any:
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    # =========================================================================
    # ApplicationService
    # =========================================================================

    async def load_application(self) -> Application:
        data = self._unwrap(await self._request("GET", APPLICATIONS_PATH))
        if isinstance(data, list):
            if not data:
                raise ApplicationNotFoundException()
            data = data[0]
        if not data:
            raise ApplicationNotFoundException()
        return Application.model_validate(data)

    async def create_application(self) -> Application:
        data = self._unwrap(await self._request("POST", APPLICATIONS_PATH, json={}))
        application = Application.model_validate(data)
        logger.info(f"Created application {application.id}")
        return application

    async def write_partial_change(
        self, application_id: str, change_type: ChangeType, payload: Dict[str, Any]
    ) -> None:
        await self._request(
            "PUT",
            f"{APPLICATIONS_PATH}/{application_id}/partial",
            json={"changeType": ChangeType(change_type).value, "changes": payload},
            read_body=False,
        )

    async def write_full_application(
        self, application_id: str, payload: FullApplicationPayload
    ) -> Optional[Application]:
        body = await self._request(
            "PUT",
            f"{APPLICATIONS_PATH}/{application_id}",
            json=payload.model_dump(mode="json", by_alias=True),
        )
        data = self._unwrap(body)
        return Application.model_validate(data) if isinstance(data, dict) and data.get("id") else None

    async def submit_application(self, application_id: str) -> Optional[Application]:
        body = await self._request("PUT", f"{APPLICATIONS_PATH}/{application_id}/submit")
        data = self._unwrap(body)
        logger.info(f"Submitted application {application_id}")
        return Application.model_validate(data) if isinstance(data, dict) and data.get("id") else None

    async def validate_step(self, application_id: str, step: int) -> StepValidation:
        body = await self._request(
            "GET",
            f"{APPLICATIONS_PATH}/{application_id}/validate",
            params={"step": step},
        )
        result = StepValidation.model_validate(self._unwrap(body) or {"isValid": False})
        if result.step is None:
            result.step = step
        return result
