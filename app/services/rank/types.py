"""Data types for the rank engine."""

from dataclasses import dataclass, field
from enum import Enum

# sponsor id -> ids of users that name it as their sponsor
ChildrenMap = dict[str, list[str]]


class StopReason(str, Enum):
    """Why an upline walk ended."""

    ROOT = "root"  # reached a user without a sponsor
    CYCLE = "cycle"  # sponsor chain revisited a user
    HOP_LIMIT = "hop_limit"  # walked the maximum number of hops
    MISSING_USER = "missing_user"  # a user record in the chain does not exist
    STORE_ERROR = "store_error"  # the store failed part-way through


@dataclass
class ChainWalkReport:
    """Outcome of walking a sponsor chain upward."""

    start_user_id: str
    visited: list[str] = field(default_factory=list)  # in walk order, start first
    ranks: dict[str, int] = field(default_factory=dict)  # empty for invalidation-only walks
    stop_reason: StopReason = StopReason.ROOT
    error: str | None = None

    @property
    def complete(self) -> bool:
        """True if the walk reached the top of the chain normally."""
        return self.stop_reason == StopReason.ROOT


@dataclass
class ReconcileReport:
    """Result of a full rank reconciliation pass."""

    users_scanned: int = 0
    records_updated: int = 0  # records whose stored rank differed
    cache_entries_written: int = 0
    dry_run: bool = False
    duration_seconds: float = 0.0
