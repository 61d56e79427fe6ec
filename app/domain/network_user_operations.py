"""Domain operations for network user records."""

import logging
from typing import Any

from app.config.settings import settings
from app.schemas.network_user import NetworkUser, is_admin_record
from app.services.kv_store import KVStore

logger = logging.getLogger(__name__)


class NetworkUserOperations:
    """
    Read/write access to user records in the key-value store.

    Records live under `<user_key_prefix><id>`. Only the rank is ever written
    back; the rest of the record belongs to the surrounding application.
    """

    def __init__(self, key_prefix: str | None = None) -> None:
        self.key_prefix = key_prefix or settings.user_key_prefix

    def key_for(self, user_id: str) -> str:
        return f"{self.key_prefix}{user_id}"

    async def get(self, store: KVStore, user_id: str) -> NetworkUser | None:
        """Get a single user, or None if no record exists."""
        key = self.key_for(user_id)
        record = await store.get(key)
        if record is None:
            return None
        return NetworkUser.from_record(record, key=key)

    async def get_network_users(self, store: KVStore) -> list[NetworkUser]:
        """
        Get every user that takes part in the referral network.

        Admin and service accounts are dropped on their markers before the
        record is validated, so their shape never matters. A malformed network
        record fails the whole scan rather than producing a partial network.
        """
        records = await store.get_by_prefix(self.key_prefix)
        network = [
            NetworkUser.from_record(record, key=self._scan_key(record))
            for record in records
            if not is_admin_record(record)
        ]

        skipped = len(records) - len(network)
        if skipped:
            logger.debug(f"Skipped {skipped} non-network accounts in user scan")
        return network

    def _scan_key(self, record: Any) -> str:
        # Prefix scans return values only; rebuild the key from the record id
        if isinstance(record, dict) and isinstance(record.get("id"), str | int):
            return self.key_for(str(record["id"]))
        return f"{self.key_prefix}*"

    async def save_rank(self, store: KVStore, user: NetworkUser, rank: int) -> NetworkUser:
        """Write `rank` onto the user's stored record."""
        user.rank = rank
        await store.set(self.key_for(user.id), user.to_record())
        return user


network_user_ops = NetworkUserOperations()
