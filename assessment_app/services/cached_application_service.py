"""
Cached Application Service - Innovation Assessment Client
assessment_app/services/cached_application_service.py

Read-through Redis cache in front of any ApplicationService.

    load_application   cached for TTL_APPLICATION per identity namespace
    validate_step      cached for TTL_STEP_VALIDATION per application and step
    every write        invalidates both, whether or not the write succeeded

Redis errors never fail a call: the wrapper logs a warning and talks to the
wrapped service directly.
"""

import hashlib
import logging
from typing import Any, Dict, Optional, Type, TypeVar

import redis
from pydantic import BaseModel

from assessment_app.models.application import (
    Application,
    FullApplicationPayload,
    StepValidation,
)
from assessment_app.models.enumerations import ChangeType
from assessment_app.services.application_service import ApplicationService
from assessment_app.services.cache import TTL_APPLICATION, TTL_STEP_VALIDATION, get_cache
from assessment_app.services.redis_cache import (
    RedisCache,
    application_key,
    step_validation_key,
    step_validation_pattern,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_UNSET = object()


def identity_namespace(token: Optional[str]) -> str:
    """Cache namespace for the caller behind `token`; the token itself never reaches Redis."""
    if not token:
        return "anonymous"
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]


class CachedApplicationService(ApplicationService):
    """Caching decorator; pass cache=None to disable caching explicitly."""

    def __init__(
        self,
        inner: ApplicationService,
        cache: Any = _UNSET,
        namespace: str = "default",
    ):
        self.inner = inner
        self.cache: Optional[RedisCache] = get_cache() if cache is _UNSET else cache
        self.namespace = namespace
        if self.cache is None:
            logger.info("Redis unavailable, application cache disabled")

    # =========================================================================
    # Cache helpers
    # =========================================================================

    def _get(self, key: str, model: Type[T]) -> Optional[T]:
        if self.cache is None:
            return None
        try:
            return self.cache.get(key, model)
        except redis.RedisError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    def _set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(key, value, ttl_seconds)
        except redis.RedisError as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    def invalidate(self, application_id: str) -> None:
        if self.cache is None:
            return
        try:
            self.cache.delete(application_key(self.namespace))
            self.cache.delete_pattern(step_validation_pattern(application_id))
        except redis.RedisError as e:
            logger.warning(f"Cache invalidation failed for application {application_id}: {e}")

    # =========================================================================
    # ApplicationService
    # =========================================================================

    async def load_application(self) -> Application:
        key = application_key(self.namespace)
        cached = self._get(key, Application)
        if cached is not None:
            logger.debug(f"Cache hit: {key}")
            return cached
        application = await self.inner.load_application()
        self._set(key, application, TTL_APPLICATION)
        return application

    async def create_application(self) -> Application:
        application = await self.inner.create_application()
        self._set(application_key(self.namespace), application, TTL_APPLICATION)
        return application

    async def write_partial_change(
        self, application_id: str, change_type: ChangeType, payload: Dict[str, Any]
    ) -> None:
        try:
            await self.inner.write_partial_change(application_id, change_type, payload)
        finally:
            self.invalidate(application_id)

    async def write_full_application(
        self, application_id: str, payload: FullApplicationPayload
    ) -> Optional[Application]:
        try:
            return await self.inner.write_full_application(application_id, payload)
        finally:
            self.invalidate(application_id)

    async def submit_application(self, application_id: str) -> Optional[Application]:
        try:
            return await self.inner.submit_application(application_id)
        finally:
            self.invalidate(application_id)

    async def validate_step(self, application_id: str, step: int) -> StepValidation:
        key = step_validation_key(application_id, step)
        cached = self._get(key, StepValidation)
        if cached is not None:
            return cached
        result = await self.inner.validate_step(application_id, step)
        self._set(key, result, TTL_STEP_VALIDATION)
        return result

    async def aclose(self) -> None:
        await self.inner.aclose()
