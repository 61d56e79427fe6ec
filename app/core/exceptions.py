"""Exceptions raised by the rank engine."""


class RankEngineError(Exception):
    """Base error for the rank engine."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class StoreAccessError(RankEngineError):
    """The key-value store could not be read or written."""

    def __init__(self, message: str, key: str | None = None):
        self.key = key
        super().__init__(message)


class MalformedRecordError(StoreAccessError):
    """A stored record or cached value does not have the expected shape."""


class PartialRankWriteError(StoreAccessError):
    """The user record was updated but the rank cache entry was not.

    The engine tries to delete the stale cache entry before raising, so the
    next read recomputes. `cache_cleared` tells the caller whether that worked.
    """

    def __init__(self, user_id: str, rank: int, cache_cleared: bool):
        self.user_id = user_id
        self.rank = rank
        self.cache_cleared = cache_cleared
        state = "cleared" if cache_cleared else "possibly stale"
        super().__init__(
            f"Rank {rank} written to user {user_id} but cache write failed (cache entry {state})",
            key=user_id,
        )


class InvalidRankFilterError(RankEngineError):
    """Raised when a rank filter expression is not recognised."""

    def __init__(self, rank_filter: str):
        self.rank_filter = rank_filter
        super().__init__(f"Unknown rank filter: {rank_filter!r}")
