# -*- coding: utf-8 -*-
"""Caching for suggestion responses.

Suggestions change slowly and are requested on every panel open, so they are
kept for a short TTL. Search results are never cached.
"""

import hashlib
from datetime import datetime, UTC
from typing import Any

from cachetools import TTLCache

from src.core.config import get_settings


class CacheTTL:
    """Cache TTL constants in seconds."""

    SUGGESTIONS = 300  # 5 minutes


class CacheService:
    """Service for caching suggestion payloads."""

    def __init__(
        self,
        suggestion_maxsize: int = 256,
        suggestion_ttl: int = CacheTTL.SUGGESTIONS,
    ):
        """Initialize cache service with a TTL cache.

        Args:
            suggestion_maxsize: Maximum number of cached suggestion payloads
            suggestion_ttl: Seconds a payload stays valid
        """
        # key = hash(query + role + limit)
        self._suggestion_cache: TTLCache = TTLCache(
            maxsize=suggestion_maxsize,
            ttl=suggestion_ttl,
        )
        self._ttl = suggestion_ttl
        self._stats = {"hits": 0, "misses": 0}

    @staticmethod
    def _generate_suggestion_key(query: str | None, role: str | None, limit: int) -> str:
        """Generate cache key for a suggestion request.

        Args:
            query: Partial query, None for the empty-query suggestions
            role: Caller role
            limit: Requested number of suggestions

        Returns:
            Hash-based cache key
        """
        content = f"{(query or '').strip().lower()}:{role or ''}:{limit}"
        return hashlib.sha256(content.encode()).hexdigest()[:32]

    def get_suggestions(
        self,
        query: str | None,
        role: str | None,
        limit: int,
    ) -> dict[str, Any] | None:
        """Get a cached suggestion payload.

        Returns:
            Cached payload or None if not found
        """
        key = self._generate_suggestion_key(query, role, limit)
        result = self._suggestion_cache.get(key)

        if result is not None:
            self._stats["hits"] += 1
        else:
            self._stats["misses"] += 1

        return result

    def set_suggestions(
        self,
        query: str | None,
        role: str | None,
        limit: int,
        payload: dict[str, Any],
    ) -> None:
        """Cache a suggestion payload."""
        key = self._generate_suggestion_key(query, role, limit)
        self._suggestion_cache[key] = {
            **payload,
            "_cached_at": datetime.now(UTC).isoformat(),
        }

    def clear_all(self) -> None:
        """Clear all caches."""
        self._suggestion_cache.clear()

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        return {
            "suggestions": {
                **self._stats,
                "size": len(self._suggestion_cache),
                "maxsize": self._suggestion_cache.maxsize,
                "ttl": self._ttl,
                "hit_rate": round(self.get_hit_rate(), 2),
            },
        }

    def get_hit_rate(self) -> float:
        """Calculate hit rate as percentage (0-100)."""
        total = self._stats["hits"] + self._stats["misses"]
        if total == 0:
            return 0.0
        return (self._stats["hits"] / total) * 100


# Global cache instance
_cache_service: CacheService | None = None


def get_cache_service() -> CacheService:
    """Get the global cache service instance.

    Returns:
        CacheService singleton instance
    """
    global _cache_service
    if _cache_service is None:
        _cache_service = CacheService(
            suggestion_ttl=get_settings().suggestion_cache_ttl_seconds,
        )
    return _cache_service


def reset_cache_service() -> None:
    """Reset the global cache service (for testing)."""
    global _cache_service
    if _cache_service is not None:
        _cache_service.clear_all()
    _cache_service = None
