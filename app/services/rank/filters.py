"""Filtering users by rank for admin listings."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable

from app.core.exceptions import InvalidRankFilterError
from app.schemas.network_user import NetworkUser
from app.services.rank.constants import EXACT_RANK_FILTERS, RANK_FILTER_BANDS

logger = logging.getLogger(__name__)

RankLookup = Callable[[str], Awaitable[int]]


def matches_rank_filter(rank: int, rank_filter: str) -> bool:
    """
    Check a rank against a filter expression.

    "0".."10" match exactly, "10-20" style bands match low < rank <= high,
    and "100+" matches anything above 100.
    """
    if rank_filter in EXACT_RANK_FILTERS:
        return rank == int(rank_filter)

    band = RANK_FILTER_BANDS.get(rank_filter)
    if band is None:
        raise InvalidRankFilterError(rank_filter)

    low, high = band
    return rank > low and (high is None or rank <= high)


async def filter_users_by_rank(
    users: Iterable[NetworkUser],
    rank_filter: str | None,
    rank_lookup: RankLookup,
) -> list[NetworkUser]:
    """
    Keep the users whose rank matches `rank_filter`.

    An empty filter returns the users unchanged. Admin accounts have no rank
    and never match a non-empty filter. Ranks are looked up concurrently
    through `rank_lookup` (usually RankService.get_rank); lookup errors
    propagate.
    """
    users = list(users)
    if not rank_filter:
        return users

    if rank_filter not in EXACT_RANK_FILTERS and rank_filter not in RANK_FILTER_BANDS:
        raise InvalidRankFilterError(rank_filter)

    members = [user for user in users if user.is_network_member]
    ranks = await asyncio.gather(*(rank_lookup(user.id) for user in members))

    filtered = [
        user for user, rank in zip(members, ranks, strict=True) if matches_rank_filter(rank, rank_filter)
    ]
    logger.info(f"Rank filter {rank_filter!r}: {len(filtered)} of {len(users)} users match")
    return filtered
