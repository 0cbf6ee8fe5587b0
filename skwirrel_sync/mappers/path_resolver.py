"""
Dot-path lookup into a nested source record.

``resolve(record, "_product_status.product_status_description")`` walks
one mapping level per segment. Only atomic values are returned: a
missing segment, a non-mapping intermediate, or a list / mapping at the
end of the path all resolve to ``None``.
"""

from collections.abc import Mapping
from typing import Any

Scalar = str | int | float | bool

_SCALAR_TYPES = (str, int, float, bool)


def is_scalar(value: Any) -> bool:
    return isinstance(value, _SCALAR_TYPES)


def resolve(record: Any, path: str) -> Scalar | None:
    """Return the scalar at ``path`` or ``None``; never raises."""
    if not isinstance(path, str) or not path:
        return None

    current: Any = record
    for segment in path.split("."):
        if not isinstance(current, Mapping) or segment not in current:
            return None
        current = current[segment]

    return current if is_scalar(current) else None
