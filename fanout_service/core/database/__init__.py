"""Core database package: declarative base, mixins and the generic repository."""

from fanout_service.core.database.base import (
    NAMING_CONVENTION,
    Base,
    CreatedAtMixin,
    IntegerPKMixin,
    UUIDv7PKMixin,
    generate_uuid7,
)
from fanout_service.core.database.repository import BaseRepository

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "BaseRepository",
    "CreatedAtMixin",
    "IntegerPKMixin",
    "UUIDv7PKMixin",
    "generate_uuid7",
]
