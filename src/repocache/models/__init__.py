"""Data models for stored records and repository status."""

from repocache.models.records import DataStatus, Freshness, InvalidationResult, StoredRecord

__all__ = [
    "DataStatus",
    "Freshness",
    "InvalidationResult",
    "StoredRecord",
]
