"""Pydantic schema for network user records held in the key-value store.

Records are free-form JSON written by the surrounding application. The
engine only reads the few keys it needs (id, sponsor, rank, admin markers)
and writes back the rank. Every other key is carried through untouched, so
a write-back never drops data the engine does not know about.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, field_validator

from app.core.exceptions import MalformedRecordError

# Stored record keys
SPONSOR_KEY = "sponsorId"
RANK_KEY = "rank"
ADMIN_FLAG_KEY = "isAdmin"
RECORD_TYPE_KEY = "__type"

ADMIN_RECORD_TYPE = "admin"


def is_admin_record(record: Any) -> bool:
    """Check the admin markers on a raw record without validating anything else."""
    if not isinstance(record, dict):
        return False
    return bool(record.get(ADMIN_FLAG_KEY)) or record.get(RECORD_TYPE_KEY) == ADMIN_RECORD_TYPE


class NetworkUser(BaseModel):
    """A participant in the referral network."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Opaque user identifier")
    sponsor_id: str | None = Field(
        default=None,
        alias=SPONSOR_KEY,
        description="User who referred this one; None for roots",
    )
    rank: int = Field(default=0, alias=RANK_KEY, description="Last computed rank")
    is_admin: bool = Field(default=False, alias=ADMIN_FLAG_KEY)
    record_type: str | None = Field(default=None, alias=RECORD_TYPE_KEY)

    _raw: dict[str, Any] = PrivateAttr(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def _normalise_id(cls, value: Any) -> str:
        # Ids are loosely typed upstream; numeric ids are accepted as strings
        if isinstance(value, bool) or not isinstance(value, str | int):
            raise ValueError("id must be a string or integer")
        text = str(value).strip()
        if not text:
            raise ValueError("id must not be empty")
        return text

    @field_validator("sponsor_id", mode="before")
    @classmethod
    def _normalise_sponsor(cls, value: Any) -> str | None:
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return str(value)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    @field_validator("rank", mode="before")
    @classmethod
    def _normalise_rank(cls, value: Any) -> Any:
        if value is None:
            return 0
        return value

    @field_validator("is_admin", mode="before")
    @classmethod
    def _normalise_admin(cls, value: Any) -> bool:
        return bool(value)

    @field_validator("record_type", mode="before")
    @classmethod
    def _normalise_record_type(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None

    @property
    def is_network_member(self) -> bool:
        """Admin and other service accounts are not part of the referral tree."""
        return not self.is_admin and self.record_type != ADMIN_RECORD_TYPE

    @classmethod
    def from_record(cls, record: Any, key: str | None = None) -> "NetworkUser":
        """Validate a raw store record, keeping the original for write-back."""
        if not isinstance(record, dict):
            raise MalformedRecordError(
                f"Expected a JSON object for user record, got {type(record).__name__}",
                key=key,
            )
        try:
            user = cls.model_validate(record)
        except ValidationError as e:
            raise MalformedRecordError(f"Invalid user record: {e}", key=key) from e
        user._raw = dict(record)
        return user

    def to_record(self) -> dict[str, Any]:
        """Return the stored record with the current rank applied."""
        record = dict(self._raw)
        if "id" not in record:
            record["id"] = self.id
        record[RANK_KEY] = self.rank
        return record
