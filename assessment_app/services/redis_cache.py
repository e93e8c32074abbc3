import redis
from typing import Optional, TypeVar, Type
from pydantic import BaseModel
from assessment_app.config import settings

T = TypeVar("T", bound=BaseModel)

KEY_PREFIX = "assessment"


def application_key(namespace: str) -> str:
    """Cached load_application() result for one identity."""
    return f"{KEY_PREFIX}:application:{namespace}"


def step_validation_key(application_id: str, step: int) -> str:
    return f"{KEY_PREFIX}:validation:{application_id}:{step}"


def step_validation_pattern(application_id: str) -> str:
    return f"{KEY_PREFIX}:validation:{application_id}:*"


class RedisCache:
    def __init__(self, url: Optional[str] = None):
        self.client = redis.from_url(
            url or settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
        )

    def get(self, key: str, model: Type[T]) -> Optional[T]:
        """Get cached item and deserialize to Pydantic model."""
        data = self.client.get(key)
        if data:
            return model.model_validate_json(data)
        return None

    def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        """Cache Pydantic model with TTL, camelCase as the store sends it."""
        self.client.setex(
            key,
            ttl_seconds,
            value.model_dump_json(by_alias=True),
        )

    def delete(self, key: str) -> None:
        """Invalidate single cache entry."""
        self.client.delete(key)

    def delete_pattern(self, pattern: str) -> None:
        """Invalidate all keys matching pattern."""
        for key in self.client.scan_iter(match=pattern):
            self.client.delete(key)
