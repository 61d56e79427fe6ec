"""Constants for the rank engine."""

# Returned by update_rank when the user record does not exist
MISSING_USER_RANK = 0

# Rank filter expressions understood by filter_users_by_rank.
# "0".."10" match exactly; bands match low < rank <= high; "100+" is open-ended.
EXACT_RANK_FILTERS: frozenset[str] = frozenset(str(rank) for rank in range(0, 11))

RANK_FILTER_BANDS: dict[str, tuple[int, int | None]] = {
    **{f"{low}-{low + 10}": (low, low + 10) for low in range(10, 100, 10)},
    "100+": (100, None),
}
