"""Root conftest — test infrastructure for all rank engine tests.

Provides:
- In-memory key-value store (no Supabase access in unit tests)
- Controllable clock for the children-map TTL slot
- A RankService wired to both
- Autouse guard that fails any test reaching the real Supabase client
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from app.services.rank import ChildrenMapBuilder, RankService

from tests.helpers.memory_store import InMemoryKVStore

CHILDREN_MAP_TTL = 60.0


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def store() -> InMemoryKVStore:
    return InMemoryKVStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def children_maps(store: InMemoryKVStore, clock: FakeClock) -> ChildrenMapBuilder:
    return ChildrenMapBuilder(store, ttl_seconds=CHILDREN_MAP_TTL, timer=clock)


@pytest.fixture
def rank_service(store: InMemoryKVStore, children_maps: ChildrenMapBuilder) -> RankService:
    return RankService(store, children_maps=children_maps, max_upline_hops=100)


# ─────────────────────────────────────────────────────────────────────────────
# External Service Guard
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def block_supabase(request):
    """SAFETY: Never let a unit test open a real Supabase connection.

    Tests that exercise the Supabase adapter patch acreate_client themselves
    and opt out with the `uses_supabase_client` marker.
    """
    if request.node.get_closest_marker("uses_supabase_client"):
        yield None
        return

    def _refuse(*_args, **_kwargs):
        raise AssertionError("Unit tests must not create a real Supabase client")

    with patch("app.services.kv_store.acreate_client", side_effect=_refuse) as guard:
        yield guard


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers", "uses_supabase_client: test patches the Supabase client itself"
    )
