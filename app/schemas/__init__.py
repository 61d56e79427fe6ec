"""Pydantic schemas for records held in the key-value store."""

from app.schemas.network_user import NetworkUser

__all__ = [
    "NetworkUser",
]
