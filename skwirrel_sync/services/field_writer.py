"""
Destination side of a sync: applies ``(entity_id, field_name, value)``.

Writers must be idempotent: writing the same pair twice leaves the
destination in the same observable state. A writer is also responsible
for serializing writes per entity if several runs can target the same
entity at once.

``KeyValueFieldStore`` is the generic fallback used when no structured
field store is available.
"""

import copy
import threading
from collections.abc import Iterable
from typing import Any, Protocol, runtime_checkable

from skwirrel_sync.core.logging import get_logger
from skwirrel_sync.schemas import FieldDeclaration

logger = get_logger(__name__)


@runtime_checkable
class FieldWriter(Protocol):
    def write(self, entity_id: str, field_name: str, value: Any) -> None:
        ...


class KeyValueFieldStore:
    """In-process key-value store: ``entity_id → {field_name: value}``."""

    def __init__(self) -> None:
        self._fields: dict[str, dict[str, Any]] = {}
        self._declarations: dict[str, FieldDeclaration] = {}
        self._lock = threading.Lock()

    def write(self, entity_id: str, field_name: str, value: Any) -> None:
        # Stored values are copies, so later mutation by the caller cannot leak in.
        with self._lock:
            self._fields.setdefault(entity_id, {})[field_name] = copy.deepcopy(value)

    def declare(self, declarations: Iterable[FieldDeclaration]) -> None:
        """Register destination field declarations, keyed by their stable key."""
        with self._lock:
            for declaration in declarations:
                self._declarations[declaration.key] = declaration
        logger.debug("Field declarations registered",
                     extra={"declared": len(self._declarations)})

    def fields_for(self, entity_id: str) -> dict[str, Any] | None:
        with self._lock:
            fields = self._fields.get(entity_id)
            return copy.deepcopy(fields) if fields is not None else None

    @property
    def declarations(self) -> list[FieldDeclaration]:
        with self._lock:
            return list(self._declarations.values())

    def __len__(self) -> int:
        return len(self._fields)


def select_field_writer(structured: FieldWriter | None = None) -> FieldWriter:
    """The structured field store when one is available, else the key-value fallback."""
    if structured is not None:
        return structured
    logger.info("No structured field store available; using key-value fallback")
    return KeyValueFieldStore()
