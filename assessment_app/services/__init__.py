"""
Services module for the Innovation Assessment Client.
"""

from assessment_app.services.application_service import ApplicationService
from assessment_app.services.cache import get_cache, reset_cache
from assessment_app.services.cached_application_service import CachedApplicationService
from assessment_app.services.http_application_service import HttpApplicationService
from assessment_app.services.redis_cache import RedisCache

__all__ = [
    "ApplicationService",
    "CachedApplicationService",
    "HttpApplicationService",
    "RedisCache",
    "get_cache",
    "reset_cache",
]
