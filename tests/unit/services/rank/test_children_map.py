"""Unit tests for the children map builder and its TTL slot."""

import pytest

from app.core.exceptions import MalformedRecordError, StoreAccessError
from app.schemas.network_user import NetworkUser
from app.services.rank import build_children_map

from tests.helpers.factories import make_admin_record, make_user_record, seed_network, user_key


def _users(**sponsors: str | None) -> list[NetworkUser]:
    return [NetworkUser(id=uid, sponsor_id=sponsor) for uid, sponsor in sponsors.items()]


class TestBuildChildrenMap:
    """Tests for the pure map derivation."""

    def test_every_user_has_an_entry(self):
        children_map = build_children_map(_users(A=None, B="A", C="B"))

        assert children_map == {"A": ["B"], "B": ["C"], "C": []}

    def test_siblings_collected_under_sponsor(self):
        children_map = build_children_map(_users(R=None, M1="R", M2="R"))

        assert sorted(children_map["R"]) == ["M1", "M2"]

    def test_unknown_sponsor_gets_entry(self):
        children_map = build_children_map(_users(B="ghost"))

        assert children_map == {"B": [], "ghost": ["B"]}

    def test_empty_scan(self):
        assert build_children_map([]) == {}


class TestChildrenMapBuilder:
    """Tests for scanning, caching and invalidation."""

    @pytest.mark.asyncio
    async def test_build_scans_store(self, store, children_maps):
        seed_network(store, {"A": None, "B": "A"})

        children_map = await children_maps.build()

        assert children_map == {"A": ["B"], "B": []}
        assert store.calls["get_by_prefix"] == 1

    @pytest.mark.asyncio
    async def test_admin_accounts_excluded(self, store, children_maps):
        seed_network(store, {"A": None, "B": "A"})
        store.data[user_key("admin")] = make_admin_record("admin")
        store.data[user_key("ops")] = make_user_record("ops", "A", isAdmin=True)

        children_map = await children_maps.build()

        assert "admin" not in children_map
        assert children_map["A"] == ["B"]

    @pytest.mark.asyncio
    async def test_hit_within_ttl_does_not_rescan(self, store, clock, children_maps):
        seed_network(store, {"A": None})

        first = await children_maps.build()
        clock.advance(59)
        second = await children_maps.build()

        assert second is first
        assert store.calls["get_by_prefix"] == 1
        assert children_maps.get_cache_stats()["hits"] == 1

    @pytest.mark.asyncio
    async def test_expired_slot_rescans(self, store, clock, children_maps):
        seed_network(store, {"A": None})
        await children_maps.build()

        seed_network(store, {"B": "A"})
        clock.advance(61)
        children_map = await children_maps.build()

        assert children_map["A"] == ["B"]
        assert store.calls["get_by_prefix"] == 2

    @pytest.mark.asyncio
    async def test_invalidate_forces_rescan(self, store, children_maps):
        seed_network(store, {"A": None})
        await children_maps.build()

        children_maps.invalidate()
        await children_maps.build()

        assert store.calls["get_by_prefix"] == 2
        assert children_maps.get_cache_stats()["rebuilds"] == 2

    @pytest.mark.asyncio
    async def test_store_error_propagates_and_nothing_cached(self, store, children_maps):
        store.fail_on("get_by_prefix", "user:id:")

        with pytest.raises(StoreAccessError):
            await children_maps.build()

        assert children_maps.get_cache_stats()["cached"] is False

    @pytest.mark.asyncio
    async def test_malformed_record_fails_scan(self, store, children_maps):
        seed_network(store, {"A": None})
        store.data[user_key("broken")] = ["not", "a", "record"]

        with pytest.raises(MalformedRecordError):
            await children_maps.build()

    def test_stats_report_ttl(self, children_maps):
        stats = children_maps.get_cache_stats()

        assert stats == {"cached": False, "ttl_seconds": 60.0, "hits": 0, "misses": 0, "rebuilds": 0}
