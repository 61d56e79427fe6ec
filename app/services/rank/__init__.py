"""
Rank engine package.

A user's rank is the depth of their downline: 0 with no downline, otherwise
one more than the highest-ranked direct downline member.

Usage: `from app.services.rank import RankService`

Module structure:
- service.py: RankService facade (cached reads, write-back, reconciliation)
- upline.py: Sponsor-chain walks (propagate_upline, invalidate_chain)
- children_map.py: Children map construction and its TTL slot
- depth.py: Cycle-safe subtree depth calculation
- filters.py: Rank filter expressions for listings
- types.py: Data types and walk reports
- constants.py: Sentinels and filter bands
"""

from app.services.rank.children_map import ChildrenMapBuilder, build_children_map
from app.services.rank.constants import MISSING_USER_RANK, RANK_FILTER_BANDS
from app.services.rank.depth import calculate_subtree_depth
from app.services.rank.filters import filter_users_by_rank, matches_rank_filter
from app.services.rank.service import RankService
from app.services.rank.types import ChainWalkReport, ChildrenMap, ReconcileReport, StopReason
from app.services.rank.upline import UplinePropagator

__all__ = [
    # Service (main entry point)
    "RankService",
    "UplinePropagator",
    # Building blocks
    "ChildrenMapBuilder",
    "build_children_map",
    "calculate_subtree_depth",
    # Filtering
    "filter_users_by_rank",
    "matches_rank_filter",
    # Types
    "ChainWalkReport",
    "ChildrenMap",
    "ReconcileReport",
    "StopReason",
    # Constants
    "MISSING_USER_RANK",
    "RANK_FILTER_BANDS",
]
