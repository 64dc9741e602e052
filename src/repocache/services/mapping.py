"""Normalization and post-processing of raw fetch results.

Both steps are pure and run after a successful fetch, before the result is
written to storage.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from repocache.data.config import FieldMap, PostProcessor
from repocache.exceptions import NormalizationError


def _lookup(item: Any, field: str) -> Any:
    """Shallow field lookup; missing fields come back as None."""
    if isinstance(item, Mapping):
        return item.get(field)
    return getattr(item, field, None)


def _rename(item: Any, mapping: Mapping[str, str]) -> dict[str, Any]:
    return {target: _lookup(item, source) for target, source in mapping.items()}


def normalize(raw: Any, field_map: FieldMap | None) -> Any:
    """Apply a field rename map to raw response data.

    A flat map produces one dict whose key k holds raw's field field_map[k].
    A one-item list [m] expects raw to be a sequence and applies m to every
    element. Fields not named in the map are dropped.

    Args:
        raw: Data returned by the fetch function.
        field_map: Output-to-input field names, or None for identity.

    Returns:
        The renamed data, or raw unchanged when there is no map.

    Raises:
        NormalizationError: If a list map is given but raw is not a sequence.
    """
    if field_map is None:
        return raw

    if isinstance(field_map, list):
        if not isinstance(raw, Sequence) or isinstance(raw, str | bytes):
            raise NormalizationError(
                f"Field map expects a sequence of items, got {type(raw).__name__}"
            )
        mapping = field_map[0]
        return [_rename(item, mapping) for item in raw]

    return _rename(raw, field_map)


def post_process(data: Any, fn: PostProcessor | None) -> Any:
    """Apply the optional user hook once; identity when there is none."""
    return data if fn is None else fn(data)
