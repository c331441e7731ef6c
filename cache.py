from datetime import timedelta
from typing import Optional, Union

import redis

from config import REDIS_URL

FEATURED_PRODUCTS_KEY = "featured_products"


def refresh_token_key(user_id) -> str:
    return f"refresh_token:{user_id}"


class Cache:
    """Thin string key/value wrapper over a redis client."""

    def __init__(self, client: redis.Redis):
        self.client = client

    def get(self, key: str) -> Optional[str]:
        return self.client.get(key)

    def set(self, key: str, value: str, ttl: Optional[Union[int, timedelta]] = None) -> None:
        self.client.set(key, value, ex=ttl)

    def delete(self, key: str) -> None:
        self.client.delete(key)


_cache = Cache(redis.Redis.from_url(REDIS_URL, decode_responses=True))


def get_cache() -> Cache:
    return _cache
