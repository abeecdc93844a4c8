"""
Filtering of attribute payloads down to values that are safe on the wire.

Text, numbers (finite floats and decimals), booleans and None pass through.
Mappings and sequences are filtered recursively: unsupported values are
dropped from mappings and removed from sequences (an emptied sequence keeps
its key). Non-text mapping keys are converted to text the way JSON encodes
them; keys that cannot be converted are dropped with their value.

Containers are copied only when something inside them changed. Unchanged
substructures are returned as the same objects, so the cost of filtering a
payload does not grow with the size of its safe parts.
"""

import json
import math
from collections.abc import Mapping
from decimal import Decimal
from itertools import islice
from typing import Any, Optional, Sequence

_NOT_MAPPED = object()

_SEQUENCE_TYPES = (list, tuple)


def filter_safe_for_serialization(value: Any) -> Optional[Any]:
    """
    Return a wire-safe equivalent of value.

    Args:
        value: Attribute mapping (or any value)

    Returns:
        The filtered value; the input itself when nothing needed to change.
        None when value itself is of an unsupported type.
    """
    filtered = _filter(value)
    return None if filtered is _NOT_MAPPED else filtered


def _filter(value: Any) -> Any:
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else _NOT_MAPPED
    if isinstance(value, Decimal):
        return value if value.is_finite() else _NOT_MAPPED
    if isinstance(value, Mapping):
        return _filter_mapping(value)
    if isinstance(value, _SEQUENCE_TYPES):
        return _filter_sequence(value)
    return _NOT_MAPPED


def _filter_key(key: Any) -> Any:
    if isinstance(key, str):
        return key
    if key is None or isinstance(key, (bool, int)):
        return json.dumps(key)
    if isinstance(key, float) and math.isfinite(key):
        return json.dumps(key)
    return _NOT_MAPPED


def _filter_mapping(mapping: Mapping) -> Any:
    filtered = None
    for index, (key, value) in enumerate(mapping.items()):
        new_key = _filter_key(key)
        new_value = _filter(value)

        if filtered is None:
            if new_key is key and new_value is value:
                continue
            filtered = dict(islice(mapping.items(), index))

        if new_key is _NOT_MAPPED or new_value is _NOT_MAPPED:
            continue
        filtered[new_key] = new_value

    return mapping if filtered is None else filtered


def _filter_sequence(sequence: Sequence) -> Any:
    filtered = None
    for index, item in enumerate(sequence):
        new_item = _filter(item)

        if filtered is None:
            if new_item is item:
                continue
            filtered = list(islice(sequence, index))

        if new_item is not _NOT_MAPPED:
            filtered.append(new_item)

    return sequence if filtered is None else filtered
