import redis

from imagegen.core.config import settings
from imagegen.core.errors import StoreUnavailable


class IdempotencyStore:
    def __init__(self) -> None:
        self.client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        self.default_ttl = settings.idempotency_ttl

    def check_and_set(self, key: str, ttl_seconds: int | None = None) -> bool:
        """Atomic operation: setnx + expire in one call. False if the key was already taken."""
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl
        try:
            created = self.client.set(f"idempotency:{key}", "1", nx=True, ex=ttl)
        except redis.RedisError as exc:
            raise StoreUnavailable("Idempotency store unavailable") from exc
        return created is not None

    def release(self, key: str) -> None:
        """Drop a key whose submission failed so the client can retry with it."""
        try:
            self.client.delete(f"idempotency:{key}")
        except redis.RedisError as exc:
            raise StoreUnavailable("Idempotency store unavailable") from exc

    def ping(self) -> bool:
        return bool(self.client.ping())
