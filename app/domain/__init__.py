from app.domain.network_user_operations import network_user_ops
from app.domain.rank_cache_operations import rank_cache_ops

__all__ = [
    "network_user_ops",
    "rank_cache_ops",
]
