"""Expiring named locks used to serialize order fulfillment.

``ILockStore`` is the contract consumed by ``OrderService``.
``CacheLockStore`` implements it on top of the Django cache framework:
with ``django-redis`` the lock survives process boundaries and
``acquire_if_absent`` maps to Redis ``SET NX EX``; with ``LocMemCache``
(tests) the same calls are serialized inside the process.

A lock expires on its own after ``ttl_seconds`` so a worker that
crashes while holding an order does not starve it forever.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import structlog
from django.conf import settings
from django.core.cache import caches
from django.utils import timezone

logger = structlog.get_logger(__name__)

DEFAULT_LOCK_TTL_SECONDS = 20 * 60


class ILockStore(ABC):
    """Key/value mutual-exclusion primitive with expiring entries."""

    @abstractmethod
    def acquire(self, key: str, ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS) -> None:
        """Create or refresh the lock for *key* (last write wins)."""

    @abstractmethod
    def acquire_if_absent(
        self, key: str, ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS
    ) -> bool:
        """Create the lock only if none is held; ``True`` if this call created it."""

    @abstractmethod
    def is_locked(self, key: str) -> bool:
        """Return ``True`` iff a non-expired lock exists for *key*."""

    @abstractmethod
    def release(self, key: str) -> None:
        """Remove the lock for *key*.  Releasing a missing lock is a no-op."""


class CacheLockStore(ILockStore):
    """Lock store backed by a Django cache alias."""

    prefix = "lock"

    def __init__(self, alias: Optional[str] = None) -> None:
        self._alias = alias or getattr(settings, "ORDER_LOCK_CACHE", "default")

    @property
    def _cache(self):
        return caches[self._alias]

    def _cache_key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def _token(self) -> str:
        return timezone.now().isoformat()

    def acquire(self, key: str, ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS) -> None:
        self._cache.set(self._cache_key(key), self._token(), timeout=ttl_seconds)
        logger.debug("lock.acquired", key=key, ttl_seconds=ttl_seconds)

    def acquire_if_absent(
        self, key: str, ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS
    ) -> bool:
        created = self._cache.add(
            self._cache_key(key), self._token(), timeout=ttl_seconds
        )
        logger.debug(
            "lock.acquire_attempted", key=key, acquired=created, ttl_seconds=ttl_seconds
        )
        return bool(created)

    def is_locked(self, key: str) -> bool:
        return self._cache.get(self._cache_key(key)) is not None

    def release(self, key: str) -> None:
        self._cache.delete(self._cache_key(key))
        logger.debug("lock.released", key=key)


def default_lock_ttl_seconds() -> int:
    """Lock TTL from ``ORDER_LOCK_TIMEOUT_MINUTES`` (20 minutes by default)."""
    minutes = getattr(settings, "ORDER_LOCK_TIMEOUT_MINUTES", None)
    if minutes is None:
        return DEFAULT_LOCK_TTL_SECONDS
    return int(minutes) * 60
