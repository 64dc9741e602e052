"""Pydantic models for the stored record and its read-only projections."""

from typing import Any

from pydantic import BaseModel


class StoredRecord(BaseModel):
    """The single cached entry a repository keeps under its name.

    A record written by invalidating a never-fetched repository has no
    fetched_at and is treated as absent.
    """

    data: Any = None
    fetched_at: int | None = None  # epoch milliseconds
    invalid: bool = False


class Freshness(BaseModel):
    """Outcome of evaluating a stored record against a staleness threshold."""

    up_to_date: bool
    invalid: bool = False
    data: Any = None
    fetched_at: int | None = None


class DataStatus(BaseModel):
    """Public status of a repository's cached data."""

    is_data_up_to_date: bool
    last_fetched: int | None = None
    is_invalid: bool = False
    local_data: Any = None


class InvalidationResult(BaseModel):
    """Record before and after invalidate_data()."""

    prev_data: StoredRecord | None = None
    next_data: StoredRecord
