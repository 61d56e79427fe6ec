"""
Upline propagation.

A change to a user's position only changes the rank of that user and of
every ancestor above them; siblings and other branches keep their ranks.
So after a structural change we walk the sponsor chain upward and either
recompute each rank (propagate_upline) or just drop each cache entry
(invalidate_chain) so the next read recomputes.

Both walks stop at a root, on the first revisited user (cycle), at a
missing record, or after max_hops sponsor hops.
"""

import logging
from typing import TYPE_CHECKING

from app.core.exceptions import StoreAccessError
from app.services.rank.types import ChainWalkReport, StopReason

if TYPE_CHECKING:
    from app.services.rank.service import RankService

logger = logging.getLogger(__name__)


class UplinePropagator:
    """Walks sponsor chains on behalf of a RankService."""

    def __init__(self, service: "RankService", max_hops: int) -> None:
        self._service = service
        self.max_hops = max_hops

    def _guard(self, report: ChainWalkReport, user_id: str, hops: int) -> bool:
        """Record why the walk must stop at `user_id`, if it must."""
        if user_id in report.visited:
            logger.warning(
                f"Sponsor cycle detected at user {user_id} while walking from "
                f"{report.start_user_id}"
            )
            report.stop_reason = StopReason.CYCLE
            return True
        if hops >= self.max_hops:
            logger.warning(
                f"Upline walk from {report.start_user_id} stopped after {hops} hops "
                f"(limit {self.max_hops})"
            )
            report.stop_reason = StopReason.HOP_LIMIT
            return True
        return False

    async def propagate_upline(self, user_id: str) -> ChainWalkReport:
        """
        Recompute and persist the rank of `user_id` and each of its ancestors.

        The children map is rebuilt once and shared across the whole walk.
        Each rank is measured with a fresh memo so that, on cyclic data, it
        matches what update_rank() would write for the same user.

        Store failures before anything is written propagate to the caller.
        A failure further up the chain stops the walk; ranks already written
        stay written and the report carries the error. Retrying is safe.
        """
        report = ChainWalkReport(start_user_id=user_id)
        logger.info(f"Updating ranks for user {user_id} and upline")

        self._service.children_maps.invalidate()
        children_map = await self._service.children_maps.build()

        current: str = user_id
        hops = 0
        while not self._guard(report, current, hops):
            report.visited.append(current)

            try:
                rank, user = await self._service.refresh_rank(current, children_map)
            except StoreAccessError as e:
                if not report.ranks:
                    raise
                logger.error(
                    f"Upline walk from {user_id} stopped at user {current} "
                    f"after {len(report.ranks)} updates: {e}"
                )
                report.stop_reason = StopReason.STORE_ERROR
                report.error = str(e)
                break

            if user is None:
                report.stop_reason = StopReason.MISSING_USER
                break

            report.ranks[current] = rank
            if not user.sponsor_id:
                report.stop_reason = StopReason.ROOT
                break

            current = user.sponsor_id
            hops += 1

        logger.info(
            f"Updated ranks for upline chain of {user_id} "
            f"({len(report.ranks)} users, stopped: {report.stop_reason.value})"
        )
        return report

    async def invalidate_chain(self, user_id: str) -> ChainWalkReport:
        """
        Delete the cached rank of `user_id` and each of its ancestors.

        Nothing is recomputed and user records are not touched. Cheaper than
        propagate_upline when only the next read needs to be correct.
        """
        report = ChainWalkReport(start_user_id=user_id)
        logger.info(f"Invalidating rank cache for user {user_id} and upline")

        await self._service.invalidate(user_id)
        self._service.children_maps.invalidate()
        report.visited.append(user_id)

        user = await self._service.user_ops.get(self._service.store, user_id)
        if user is None:
            report.stop_reason = StopReason.MISSING_USER
            return report

        current = user.sponsor_id
        hops = 1  # the start user counts towards the hop limit
        while current and not self._guard(report, current, hops):
            report.visited.append(current)

            try:
                await self._service.invalidate(current)
                ancestor = await self._service.user_ops.get(self._service.store, current)
            except StoreAccessError as e:
                logger.error(f"Invalidation walk from {user_id} stopped at user {current}: {e}")
                report.stop_reason = StopReason.STORE_ERROR
                report.error = str(e)
                break

            if ancestor is None:
                report.stop_reason = StopReason.MISSING_USER
                break

            current = ancestor.sponsor_id
            hops += 1

        logger.info(
            f"Invalidated rank cache for {len(report.visited)} users "
            f"(stopped: {report.stop_reason.value})"
        )
        return report
