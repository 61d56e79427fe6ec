"""Unit tests for rank filter expressions."""

from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import InvalidRankFilterError, StoreAccessError
from app.schemas.network_user import NetworkUser
from app.services.rank import filter_users_by_rank, matches_rank_filter

from tests.helpers.factories import make_admin_record, seed_network


class TestMatchesRankFilter:
    """Tests for single-rank matching."""

    @pytest.mark.parametrize("rank_filter,rank", [("0", 0), ("3", 3), ("10", 10)])
    def test_exact_match(self, rank_filter, rank):
        assert matches_rank_filter(rank, rank_filter)

    def test_exact_mismatch(self):
        assert not matches_rank_filter(4, "5")

    def test_band_excludes_lower_bound(self):
        assert not matches_rank_filter(10, "10-20")
        assert matches_rank_filter(11, "10-20")

    def test_band_includes_upper_bound(self):
        assert matches_rank_filter(20, "10-20")
        assert not matches_rank_filter(21, "10-20")

    def test_open_ended_band(self):
        assert matches_rank_filter(250, "100+")
        assert not matches_rank_filter(100, "100+")

    @pytest.mark.parametrize("rank_filter", ["11", "-1", "5-15", "abc", "100-110"])
    def test_unknown_filter_raises(self, rank_filter):
        with pytest.raises(InvalidRankFilterError):
            matches_rank_filter(1, rank_filter)


class TestFilterUsersByRank:
    """Tests for filtering user lists."""

    def setup_method(self):
        self.users = [
            NetworkUser(id="A"),
            NetworkUser(id="B"),
            NetworkUser(id="C"),
            NetworkUser.from_record(make_admin_record("admin")),
        ]
        self.ranks = {"A": 2, "B": 1, "C": 0, "admin": 2}
        self.lookup = AsyncMock(side_effect=lambda user_id: self.ranks[user_id])

    @pytest.mark.asyncio
    async def test_empty_filter_returns_everyone(self):
        result = await filter_users_by_rank(self.users, "", self.lookup)

        assert result == self.users
        self.lookup.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_none_filter_returns_everyone(self):
        result = await filter_users_by_rank(self.users, None, self.lookup)

        assert len(result) == 4

    @pytest.mark.asyncio
    async def test_exact_filter(self):
        result = await filter_users_by_rank(self.users, "2", self.lookup)

        assert [user.id for user in result] == ["A"]

    @pytest.mark.asyncio
    async def test_admins_never_match_or_looked_up(self):
        await filter_users_by_rank(self.users, "2", self.lookup)

        looked_up = [call.args[0] for call in self.lookup.await_args_list]
        assert "admin" not in looked_up

    @pytest.mark.asyncio
    async def test_invalid_filter_raises_before_lookup(self):
        with pytest.raises(InvalidRankFilterError):
            await filter_users_by_rank(self.users, "bogus", self.lookup)

        self.lookup.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lookup_errors_propagate(self):
        lookup = AsyncMock(side_effect=StoreAccessError("down"))

        with pytest.raises(StoreAccessError):
            await filter_users_by_rank(self.users, "1", lookup)

    @pytest.mark.asyncio
    async def test_with_rank_service(self, store, rank_service):
        seed_network(store, {"R": None, "M1": "R", "M2": "R", "L1": "M1"})
        users = await rank_service.user_ops.get_network_users(store)

        result = await filter_users_by_rank(users, "0", rank_service.get_rank)

        assert sorted(user.id for user in result) == ["L1", "M2"]
