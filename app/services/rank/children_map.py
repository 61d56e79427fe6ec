"""
Children map construction with a single-slot TTL cache.

The children map (sponsor -> direct downline) is derived from a full scan of
user records. A scan is expensive, so the last map is kept for a short window
and shared by every rank computation in that window. Freshness is not
correctness-critical: every rank-affecting mutation invalidates the slot
before recomputing.
"""

import logging
import time
from collections.abc import Callable, Iterable
from typing import Any

from cachetools import TTLCache  # type: ignore[import-untyped]

from app.config.settings import settings
from app.domain.network_user_operations import NetworkUserOperations, network_user_ops
from app.schemas.network_user import NetworkUser
from app.services.kv_store import KVStore
from app.services.rank.types import ChildrenMap

logger = logging.getLogger(__name__)

_SLOT = "children_map"


def build_children_map(users: Iterable[NetworkUser]) -> ChildrenMap:
    """
    Derive sponsor -> direct downline ids from user records.

    Every user gets an entry, even with no downline. A sponsor id that does
    not belong to any scanned user still gets an entry for its children.
    """
    users = list(users)
    children_map: ChildrenMap = {user.id: [] for user in users}

    for user in users:
        if user.sponsor_id:
            children_map.setdefault(user.sponsor_id, []).append(user.id)

    return children_map


class ChildrenMapBuilder:
    """Builds the children map and holds the last one in a single TTL slot."""

    def __init__(
        self,
        store: KVStore,
        ttl_seconds: float | None = None,
        timer: Callable[[], float] = time.monotonic,
        user_ops: NetworkUserOperations = network_user_ops,
    ) -> None:
        self._store = store
        self._user_ops = user_ops
        ttl = settings.children_map_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._cache: TTLCache[str, ChildrenMap] = TTLCache(maxsize=1, ttl=ttl, timer=timer)
        self._hits = 0
        self._misses = 0
        self._rebuilds = 0

    async def build(self) -> ChildrenMap:
        """
        Return the children map, rescanning users if the slot is empty or expired.

        The returned map is a shared snapshot: callers must not mutate it.
        Store errors propagate and leave the slot empty.
        """
        cached = self._cache.get(_SLOT)
        if cached is not None:
            self._hits += 1
            logger.debug("Children map cache HIT")
            return cached

        self._misses += 1
        logger.debug("Children map cache MISS, rescanning users")
        users = await self._user_ops.get_network_users(self._store)
        return self.prime(users)

    def prime(self, users: Iterable[NetworkUser]) -> ChildrenMap:
        """Build the map from already-loaded users and store it in the slot."""
        started = time.perf_counter()
        children_map = build_children_map(users)
        self._cache[_SLOT] = children_map
        self._rebuilds += 1

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"Children map built: {len(children_map)} users ({elapsed_ms:.1f}ms)")
        return children_map

    def invalidate(self) -> None:
        """Drop the cached map; the next build() rescans."""
        self._cache.clear()
        logger.debug("Children map cache invalidated")

    def get_cache_stats(self) -> dict[str, Any]:
        """Get current cache statistics for monitoring."""
        return {
            "cached": _SLOT in self._cache,
            "ttl_seconds": self._cache.ttl,
            "hits": self._hits,
            "misses": self._misses,
            "rebuilds": self._rebuilds,
        }
