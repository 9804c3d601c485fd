"""
Per-visitor key/value store backing demo mode.

Each visitor profile sees only its own keys. Values are text; callers
serialize structured data themselves. Supports an in-memory fallback for
tests/local runs and a Redis-backed implementation for production.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from visionboard.errors import BackendError


class LocalStore(Protocol):
    """Minimal keyed text storage scoped by visitor profile."""

    def get_item(self, profile_id: str, key: str) -> Optional[str]:
        ...

    def set_item(self, profile_id: str, key: str, value: str) -> None:
        ...

    def remove_item(self, profile_id: str, key: str) -> None:
        ...


@dataclass
class InMemoryLocalStore:
    """Simple dict-of-dicts store for testing/dev."""

    profiles: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def __post_init__(self):
        self._lock = Lock()

    def get_item(self, profile_id: str, key: str) -> Optional[str]:
        with self._lock:
            return self.profiles.get(profile_id, {}).get(key)

    def set_item(self, profile_id: str, key: str, value: str) -> None:
        with self._lock:
            self.profiles.setdefault(profile_id, {})[key] = value

    def remove_item(self, profile_id: str, key: str) -> None:
        with self._lock:
            self.profiles.get(profile_id, {}).pop(key, None)

    def reset(self) -> None:
        with self._lock:
            self.profiles.clear()


@dataclass
class RedisLocalStore:
    """Redis-backed store keeping one hash per visitor profile."""

    url: str
    key_prefix: str = "visionboard:demo"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url, decode_responses=True)

    def _hash_key(self, profile_id: str) -> str:
        return f"{self.key_prefix}:{profile_id}"

    def get_item(self, profile_id: str, key: str) -> Optional[str]:
        try:
            return self.client.hget(self._hash_key(profile_id), key)
        except redis_exceptions.RedisError as exc:
            raise BackendError(f"Demo store read failed: {exc}") from exc

    def set_item(self, profile_id: str, key: str, value: str) -> None:
        try:
            self.client.hset(self._hash_key(profile_id), key, value)
        except redis_exceptions.RedisError as exc:
            raise BackendError(f"Demo store write failed: {exc}") from exc

    def remove_item(self, profile_id: str, key: str) -> None:
        try:
            self.client.hdel(self._hash_key(profile_id), key)
        except redis_exceptions.RedisError as exc:
            raise BackendError(f"Demo store write failed: {exc}") from exc
