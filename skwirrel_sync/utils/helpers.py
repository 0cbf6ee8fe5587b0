"""
Shared utility helpers.
"""

import re
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def utc_now() -> datetime:
    """Return the current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def safe_get(data: Any, *keys: str, default=None):
    """
    Safely traverse nested mappings.

    Usage:
        safe_get(result, "page", "current_page", default=1)
    """
    current = data
    for key in keys:
        if not isinstance(current, Mapping) or key not in current:
            return default
        current = current[key]
    return current


def sanitize_key(value: Any) -> str:
    """
    Turn a label or locale tag into a destination-safe key segment.

    Lowercases and replaces every character outside ``[a-z0-9]`` with
    ``_``, so ``"nl-NL"`` becomes ``"nl_nl"``.
    """
    return _NON_ALNUM.sub("_", str(value).lower())


def is_empty(value: Any) -> bool:
    """Absent and empty-string values are never written."""
    return value is None or value == ""
