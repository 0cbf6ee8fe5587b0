"""
Explicit extension points for a sync run.

Collaborators register callbacks on a ``SyncHooks`` instance before the
run starts; the field mapper, paginator and sync service invoke them at
fixed checkpoints, in registration order.

  - Field-map filters adjust the effective field map after the default
    map and the custom overrides have been merged.
  - Event listeners are notified when a page has been fetched, a record
    has been projected and written, and when a run completes or fails.
    Listeners are observers: a failing listener is logged and the run
    carries on.
"""

from collections.abc import Callable
from enum import Enum
from typing import Any

from skwirrel_sync.core.logging import get_logger

logger = get_logger(__name__)

FieldMapFilter = Callable[[dict[str, str]], dict[str, str]]
EventListener = Callable[[dict[str, Any]], None]


class SyncEvent(str, Enum):
    PAGE_FETCHED = "page_fetched"
    PROJECTION_COMPLETED = "projection_completed"
    RUN_COMPLETED = "run_completed"
    RUN_FAILED = "run_failed"


class SyncHooks:
    """Ordered registry of field-map filters and event listeners."""

    def __init__(self) -> None:
        self._field_map_filters: list[FieldMapFilter] = []
        self._listeners: dict[SyncEvent, list[EventListener]] = {
            event: [] for event in SyncEvent
        }

    # ── Field map ─────────────────────────────────────────────────────

    def add_field_map_filter(self, fn: FieldMapFilter) -> None:
        self._field_map_filters.append(fn)

    def apply_field_map_filters(self, field_map: dict[str, str]) -> dict[str, str]:
        """Run every filter on a copy of ``field_map``; each sees the previous result."""
        result = dict(field_map)
        for fn in self._field_map_filters:
            result = dict(fn(result))
        return result

    # ── Events ────────────────────────────────────────────────────────

    def on(self, event: SyncEvent, listener: EventListener) -> None:
        self._listeners[event].append(listener)

    def emit(self, event: SyncEvent, payload: dict[str, Any]) -> None:
        for listener in self._listeners[event]:
            try:
                listener(payload)
            except Exception:
                logger.warning(
                    "Sync event listener failed",
                    extra={
                        "event": event.value,
                        "listener": getattr(listener, "__name__", repr(listener)),
                    },
                    exc_info=True,
                )
