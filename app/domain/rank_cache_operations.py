"""Domain operations for the persisted rank cache."""

from typing import Any

from app.config.settings import settings
from app.core.exceptions import MalformedRecordError
from app.services.kv_store import KVStore


class RankCacheOperations:
    """
    Operations for per-user rank cache entries.

    Entries never expire. A present entry is authoritative until it is
    deleted; absence means the rank has to be recomputed.
    """

    def __init__(self, key_prefix: str | None = None) -> None:
        self.key_prefix = key_prefix or settings.rank_cache_prefix

    def key_for(self, user_id: str) -> str:
        return f"{self.key_prefix}{user_id}"

    async def get(self, store: KVStore, user_id: str) -> int | None:
        """Get the cached rank, or None on a miss."""
        key = self.key_for(user_id)
        value = await store.get(key)
        if value is None:
            return None
        return _parse_rank(value, key)

    async def set(self, store: KVStore, user_id: str, rank: int) -> None:
        await store.set(self.key_for(user_id), rank)

    async def delete(self, store: KVStore, user_id: str) -> None:
        await store.delete(self.key_for(user_id))


def _parse_rank(value: Any, key: str) -> int:
    """Validate a cached rank; ranks are non-negative integers."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise MalformedRecordError(f"Invalid cached rank {value!r}", key=key)
    return value


rank_cache_ops = RankCacheOperations()
