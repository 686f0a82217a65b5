"""
lookup_cache.py — TTL-based in-memory cache in front of a lookup collaborator.

A card held under the camera is seen frame after frame; once a strategy
has been answered there is no reason to ask the remote API again. Results
are cached per strategy label ("name:Pikachu lang:en"), including empty
ones. Lookup errors are never cached.

Default TTL: 30 minutes (LOOKUP_CACHE_TTL).
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from config import LOOKUP_CACHE_TTL
from models import SearchStrategy

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# CACHE ENTRY
# ─────────────────────────────────────────────────────────────

@dataclass
class CacheEntry:
    """Single cached strategy result with expiry timestamp."""
    matches: tuple
    expires_at: float
    created_at: float = field(default_factory=time.time)


# ─────────────────────────────────────────────────────────────
# CACHED LOOKUP
# ─────────────────────────────────────────────────────────────

class CachedLookup:
    """
    Wraps any lookup collaborator; same execute() contract.

    Usage:
        lookup = CachedLookup(TCGDexClient(), ttl_seconds=1800)
        matches = lookup.execute(strategy)   # network
        matches = lookup.execute(strategy)   # cache hit
        print(lookup.stats())
    """

    def __init__(self, inner, ttl_seconds: int = LOOKUP_CACHE_TTL):
        self.inner = inner
        self.ttl_seconds = ttl_seconds
        self._cache: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def __repr__(self):
        return f"CachedLookup({self.inner!r}, ttl={self.ttl_seconds}s)"

    @property
    def warning(self) -> Optional[str]:
        return getattr(self.inner, "warning", None)

    @property
    def ranks_results(self) -> bool:
        return getattr(self.inner, "ranks_results", True)

    @staticmethod
    def _make_key(strategy: SearchStrategy) -> str:
        return strategy.label.strip().lower()

    def get(self, strategy: SearchStrategy) -> Optional[list]:
        """Cached matches for a strategy, or None on miss / expiry."""
        key = self._make_key(strategy)
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None

            if time.time() > entry.expires_at:
                del self._cache[key]
                self._misses += 1
                logger.debug("Cache expired: %s", key)
                return None

            self._hits += 1
        logger.debug("Cache hit: %s", key)
        return list(entry.matches)

    def put(self, strategy: SearchStrategy, matches: list) -> None:
        key = self._make_key(strategy)
        with self._lock:
            self._cache[key] = CacheEntry(
                matches=tuple(matches),
                expires_at=time.time() + self.ttl_seconds,
            )
        logger.debug("Cache store: %s (%d matches, TTL: %ds)", key, len(matches), self.ttl_seconds)

    def execute(self, strategy: SearchStrategy) -> list:
        if self.ttl_seconds <= 0:
            return self.inner.execute(strategy)

        cached = self.get(strategy)
        if cached is not None:
            return cached

        matches = self.inner.execute(strategy)
        self.put(strategy, matches)
        return matches

    def get_card(self, card_id: str):
        getter = getattr(self.inner, "get_card", None)
        return getter(card_id) if getter else None

    def invalidate(self, strategy: SearchStrategy) -> bool:
        """Remove a specific entry from the cache. Returns True if removed."""
        key = self._make_key(strategy)
        with self._lock:
            return self._cache.pop(key, None) is not None

    def clear(self) -> int:
        """Clear all cached entries. Returns the number of entries removed."""
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        logger.info("Lookup cache cleared: %d entries removed", count)
        return count

    def purge_expired(self) -> int:
        """Remove all expired entries. Returns count of purged entries."""
        now = time.time()
        with self._lock:
            expired_keys = [k for k, v in self._cache.items() if now > v.expires_at]
            for key in expired_keys:
                del self._cache[key]
        if expired_keys:
            logger.debug("Purged %d expired entries", len(expired_keys))
        return len(expired_keys)

    def stats(self) -> dict:
        """
        Return cache statistics for the status endpoint and logs.

        Returns dict with:
            size: Current number of cached entries
            hits: Total cache hits since init
            misses: Total cache misses since init
            hit_rate: Hit percentage (0-100), or None if no lookups yet
            ttl_seconds: Configured TTL
        """
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._cache),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round((self._hits / total) * 100, 1) if total > 0 else None,
                "ttl_seconds": self.ttl_seconds,
            }

    def reset_stats(self) -> None:
        """Reset hit/miss counters without clearing cached data."""
        with self._lock:
            self._hits = 0
            self._misses = 0


def build_lookup(backend: Optional[str] = None, ttl_seconds: int = LOOKUP_CACHE_TTL):
    """
    Lookup collaborator for a backend name: tcgdex, pokemontcg or local.
    Wrapped in CachedLookup unless ttl_seconds is 0.
    """
    from config import LOOKUP_BACKEND

    backend = (backend or LOOKUP_BACKEND).lower()
    if backend == "tcgdex":
        from lookup_tcgdex import TCGDexClient
        inner = TCGDexClient()
    elif backend == "pokemontcg":
        from lookup_pokemontcg import PokemonTCGClient
        inner = PokemonTCGClient()
    elif backend == "local":
        from database import LocalCardIndex
        inner = LocalCardIndex.from_file()
    else:
        raise ValueError(f"Unknown lookup backend: '{backend}'. Use tcgdex, pokemontcg or local.")

    logger.info("Lookup backend: %r", inner)
    if ttl_seconds <= 0:
        return inner
    return CachedLookup(inner, ttl_seconds=ttl_seconds)
