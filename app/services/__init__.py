# Services package
# The rank engine lives in app.services.rank; it depends on app.domain, which
# imports the store from here, so it is not re-exported at this level.

from app.services.kv_store import KVStore, SupabaseKVStore

__all__ = [
    "KVStore",
    "SupabaseKVStore",
]
