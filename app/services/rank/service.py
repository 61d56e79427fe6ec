"""
Rank service: cached rank reads and rank write-back.

Main entry point for the rank engine. Usage:

    service = await RankService.create()
    rank = await service.get_rank(user_id)
    await service.propagate_upline(new_user_id)  # after a structural change

Ranks are cached per user in the key-value store with no expiry. Any
structural change must go through propagate_upline() or invalidate_chain()
so stale entries are refreshed or removed.
"""

import logging
import time
from typing import Any

from app.config.settings import settings
from app.core.exceptions import PartialRankWriteError, StoreAccessError
from app.domain.network_user_operations import NetworkUserOperations, network_user_ops
from app.domain.rank_cache_operations import RankCacheOperations, rank_cache_ops
from app.schemas.network_user import NetworkUser
from app.services.kv_store import KVStore, SupabaseKVStore
from app.services.rank.children_map import ChildrenMapBuilder
from app.services.rank.constants import MISSING_USER_RANK
from app.services.rank.depth import calculate_subtree_depth
from app.services.rank.types import ChainWalkReport, ChildrenMap, ReconcileReport
from app.services.rank.upline import UplinePropagator

logger = logging.getLogger(__name__)


class RankService:
    """Computes, caches and persists user ranks."""

    def __init__(
        self,
        store: KVStore,
        children_maps: ChildrenMapBuilder | None = None,
        max_upline_hops: int | None = None,
        user_ops: NetworkUserOperations = network_user_ops,
        cache_ops: RankCacheOperations = rank_cache_ops,
    ) -> None:
        self.store = store
        self.user_ops = user_ops
        self.cache_ops = cache_ops
        self.children_maps = children_maps or ChildrenMapBuilder(store, user_ops=user_ops)
        hops = settings.rank_max_upline_hops if max_upline_hops is None else max_upline_hops
        self._upline = UplinePropagator(self, max_hops=hops)

    @classmethod
    async def create(cls) -> "RankService":
        """Build a service on the configured Supabase key-value store."""
        store = await SupabaseKVStore.create()
        return cls(store)

    # ─────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────

    async def calculate_rank(
        self,
        user_id: str,
        children_map: ChildrenMap | None = None,
        memo: dict[str, int] | None = None,
    ) -> int:
        """Compute a rank without touching the rank cache."""
        if children_map is None:
            children_map = await self.children_maps.build()

        started = time.perf_counter()
        rank = calculate_subtree_depth(user_id, children_map, memo)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.debug(f"Rank calculated for user {user_id}: {rank} ({elapsed_ms:.1f}ms)")
        return rank

    async def get_rank(self, user_id: str, use_cache: bool = True) -> int:
        """
        Get a user's rank, serving the cache entry when there is one.

        With use_cache=False the rank is always recomputed and the cache
        entry overwritten.
        """
        if use_cache:
            cached = await self.cache_ops.get(self.store, user_id)
            if cached is not None:
                logger.debug(f"Rank cache HIT for user {user_id}: {cached}")
                return cached
            logger.debug(f"Rank cache MISS for user {user_id}")

        rank = await self.calculate_rank(user_id)
        await self.cache_ops.set(self.store, user_id, rank)
        return rank

    async def compute_all_ranks(self) -> dict[str, int]:
        """
        Compute the rank of every network user from one scan.

        Each rank is measured on its own, so cyclic data gives the same
        values a single calculate_rank() call would.
        """
        users = await self.user_ops.get_network_users(self.store)
        children_map = self.children_maps.prime(users)
        return {user.id: calculate_subtree_depth(user.id, children_map) for user in users}

    # ─────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────

    async def update_rank(self, user_id: str) -> int:
        """
        Recompute a user's rank from a fresh scan and persist it.

        Writes the rank onto the user record and into the rank cache.
        Returns MISSING_USER_RANK without writing anything if the user
        does not exist.
        """
        self.children_maps.invalidate()
        rank, _ = await self.refresh_rank(user_id)
        return rank

    async def refresh_rank(
        self,
        user_id: str,
        children_map: ChildrenMap | None = None,
        memo: dict[str, int] | None = None,
    ) -> tuple[int, NetworkUser | None]:
        """
        Recompute and persist a rank against a given (or cached) children map.

        Returns the rank and the user record it was written to, or
        (MISSING_USER_RANK, None) when the user does not exist.
        """
        user = await self.user_ops.get(self.store, user_id)
        if user is None:
            logger.error(f"User {user_id} not found, cannot update rank")
            return MISSING_USER_RANK, None

        rank = await self.calculate_rank(user_id, children_map, memo)
        await self._write_rank(user, rank)
        logger.info(f"User {user_id} rank updated: {rank}")
        return rank, user

    async def _write_rank(self, user: NetworkUser, rank: int) -> None:
        # Record first: if it fails nothing has been written
        await self.user_ops.save_rank(self.store, user, rank)

        try:
            await self.cache_ops.set(self.store, user.id, rank)
        except StoreAccessError as e:
            cache_cleared = True
            try:
                await self.cache_ops.delete(self.store, user.id)
            except StoreAccessError:
                cache_cleared = False
            logger.error(
                f"Rank cache write failed for user {user.id} after record update "
                f"(cache entry {'cleared' if cache_cleared else 'possibly stale'}): {e}"
            )
            raise PartialRankWriteError(user.id, rank, cache_cleared) from e

    async def invalidate(self, user_id: str) -> None:
        """Delete a user's cached rank without recomputing it."""
        await self.cache_ops.delete(self.store, user_id)
        logger.debug(f"Rank cache invalidated for user {user_id}")

    async def propagate_upline(self, user_id: str) -> ChainWalkReport:
        """Recompute and persist the rank of a user and every ancestor."""
        return await self._upline.propagate_upline(user_id)

    async def invalidate_chain(self, user_id: str) -> ChainWalkReport:
        """Delete the cached rank of a user and every ancestor."""
        return await self._upline.invalidate_chain(user_id)

    async def recalculate_all_ranks(self, dry_run: bool = False) -> ReconcileReport:
        """
        Recompute every network user's rank and repair stored values.

        Rewrites the rank on records whose stored value differs and refreshes
        every cache entry. With dry_run=True nothing is written; the report
        still counts the records that would change.
        """
        started = time.perf_counter()
        report = ReconcileReport(dry_run=dry_run)

        users = await self.user_ops.get_network_users(self.store)
        children_map = self.children_maps.prime(users)

        for user in users:
            report.users_scanned += 1
            rank = calculate_subtree_depth(user.id, children_map)

            if user.rank != rank:
                report.records_updated += 1
                if not dry_run:
                    await self.user_ops.save_rank(self.store, user, rank)

            if not dry_run:
                await self.cache_ops.set(self.store, user.id, rank)
                report.cache_entries_written += 1

        report.duration_seconds = round(time.perf_counter() - started, 2)
        logger.info(
            f"Rank reconciliation {'(dry run) ' if dry_run else ''}completed: "
            f"{report.users_scanned} scanned, {report.records_updated} out of date, "
            f"{report.cache_entries_written} cache entries written, "
            f"{report.duration_seconds}s"
        )
        return report

    def get_cache_stats(self) -> dict[str, Any]:
        """Get children-map cache statistics for monitoring."""
        return {"children_map": self.children_maps.get_cache_stats()}
