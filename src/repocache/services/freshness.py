"""Staleness decision for a stored record."""

from repocache.models.records import Freshness, StoredRecord


def evaluate(record: StoredRecord | None, stale_after: int, now_ms: int) -> Freshness:
    """Decide whether cached data is usable.

    Rules, first match wins:
      1. No record (or one never fetched) -> stale, nothing to return.
      2. Invalidated -> stale, but data and fetched_at are kept for inspection.
      3. stale_after == 0 -> fresh until invalidated or cleared.
      4. Otherwise fresh iff now - fetched_at <= stale_after.

    Args:
        record: Stored record, or None when nothing is stored.
        stale_after: Threshold in milliseconds.
        now_ms: Current time in epoch milliseconds.

    Returns:
        Freshness verdict plus the record's data and fetch time.
    """
    if record is None or record.fetched_at is None:
        return Freshness(up_to_date=False)

    if record.invalid:
        return Freshness(
            up_to_date=False,
            invalid=True,
            data=record.data,
            fetched_at=record.fetched_at,
        )

    if stale_after == 0:
        up_to_date = True
    else:
        up_to_date = (now_ms - record.fetched_at) <= stale_after

    return Freshness(up_to_date=up_to_date, data=record.data, fetched_at=record.fetched_at)
