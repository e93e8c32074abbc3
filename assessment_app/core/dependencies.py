"""
Dependencies - Innovation Assessment Client
assessment_app/core/dependencies.py

Cached factories for the catalog and the remote application service.
"""

from functools import lru_cache

from assessment_app.catalog.indicator_catalog import IndicatorCatalog, build_default_catalog
from assessment_app.config import settings
from assessment_app.services.application_service import ApplicationService
from assessment_app.services.cached_application_service import CachedApplicationService, identity_namespace
from assessment_app.services.http_application_service import HttpApplicationService


@lru_cache()
def get_catalog() -> IndicatorCatalog:
    """Get cached default IndicatorCatalog instance."""
    return build_default_catalog()


@lru_cache()
def get_application_service() -> ApplicationService:
    """Get cached HTTP application service behind the Redis read-through cache."""
    token = settings.API_TOKEN.get_secret_value() if settings.API_TOKEN is not None else None
    return CachedApplicationService(HttpApplicationService(), namespace=identity_namespace(token))
