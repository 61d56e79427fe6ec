"""Key-value store backed by a Supabase table.

The surrounding application keeps all of its records in a single two-column
table (`key` text primary key, `value` jsonb). This module is the only place
that talks to it; everything above works against the `KVStore` protocol so
tests can swap in an in-memory store.
"""

import logging
from typing import Any, Protocol

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from app.config.settings import settings
from app.core.exceptions import StoreAccessError

logger = logging.getLogger(__name__)

# PostgREST caps a single response (1000 rows by default on Supabase)
PREFIX_PAGE_SIZE = 1000


class KVStore(Protocol):
    """Minimal async key-value contract used by the rank engine."""

    async def get(self, key: str) -> Any | None:
        """Return the stored value, or None if the key is absent."""
        ...

    async def set(self, key: str, value: Any) -> None:
        """Create or overwrite the value at `key`."""
        ...

    async def delete(self, key: str) -> None:
        """Remove `key`. Deleting an absent key is not an error."""
        ...

    async def get_by_prefix(self, prefix: str) -> list[Any]:
        """Return every value whose key starts with `prefix`."""
        ...


class SupabaseKVStore:
    """`KVStore` implementation over a Supabase `key`/`value` table."""

    def __init__(self, client: AsyncClient, table_name: str | None = None) -> None:
        self._client = client
        self._table_name = table_name or settings.kv_table_name

    @classmethod
    async def create(cls, table_name: str | None = None) -> "SupabaseKVStore":
        """
        Build a store with the service role client.

        The kv table is not exposed through RLS, so only the service role key
        can read it. Never use this from anything that runs client-side.
        """
        if not settings.supabase_service_role_key:
            raise ValueError(
                "SUPABASE_SERVICE_ROLE_KEY not configured. "
                "Set it in .env to access the key-value store."
            )

        client = await acreate_client(
            settings.supabase_url,
            settings.supabase_service_role_key,
        )
        return cls(client, table_name)

    def _table(self):
        return self._client.table(self._table_name)

    async def _execute(self, query: Any, key: str) -> Any:
        try:
            return await query.execute()
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"KV store request failed for {key!r}: {e}")
            raise StoreAccessError(f"KV store request failed for {key!r}: {e}", key=key) from e

    async def get(self, key: str) -> Any | None:
        response = await self._execute(
            self._table().select("value").eq("key", key).limit(1),
            key,
        )
        rows = response.data or []
        if not rows:
            return None
        return rows[0].get("value")

    async def set(self, key: str, value: Any) -> None:
        await self._execute(self._table().upsert({"key": key, "value": value}), key)

    async def delete(self, key: str) -> None:
        await self._execute(self._table().delete().eq("key", key), key)

    async def get_by_prefix(self, prefix: str) -> list[Any]:
        values: list[Any] = []
        start = 0
        while True:
            response = await self._execute(
                self._table()
                .select("key, value")
                .like("key", f"{prefix}%")
                .order("key")
                .range(start, start + PREFIX_PAGE_SIZE - 1),
                prefix,
            )
            rows = response.data or []
            values.extend(row.get("value") for row in rows)
            if len(rows) < PREFIX_PAGE_SIZE:
                break
            start += PREFIX_PAGE_SIZE

        logger.debug(f"KV prefix scan {prefix!r}: {len(values)} values")
        return values
