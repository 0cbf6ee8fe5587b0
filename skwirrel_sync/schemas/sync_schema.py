"""
Schemas describing a sync run: the options snapshot, projected field
writes, destination field declarations and the run summary.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from skwirrel_sync.config import Settings


class EntityKind(str, Enum):
    """Which projection applies to a source record."""

    PRODUCT = "product"
    VARIATION = "variation"
    GROUPED = "grouped"


class FieldMapEntry(BaseModel):
    """
    One user-supplied override: source dot-path → destination field name.

    Both sides are optional here so that a partial entry reaches the
    field mapper and is dropped there instead of failing validation.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True)

    source_path: str | None = Field(default=None, description="e.g. _product_status.product_status_description")
    destination: str | None = Field(default=None, description="Destination field name")

    @field_validator("source_path", "destination", mode="before")
    @classmethod
    def _non_string_as_missing(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None


class SyncOptions(BaseModel):
    """
    Read-only configuration snapshot taken once per run.

    Accepts both snake_case and camelCase keys (``syncTradeItems``).
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True)

    sync_attributes: bool = Field(default=True)
    sync_trade_items: bool = Field(default=False)
    sync_translations: bool = Field(default=False)
    custom_field_map: tuple[FieldMapEntry, ...] = Field(default=())

    @classmethod
    def from_settings(cls, settings: Settings) -> "SyncOptions":
        return cls(
            sync_attributes=settings.sync_attributes,
            sync_trade_items=settings.sync_trade_items,
            sync_translations=settings.sync_translations,
            custom_field_map=tuple(
                FieldMapEntry.model_validate(entry)
                for entry in settings.custom_field_map
                if isinstance(entry, dict)
            ),
        )


class FieldWrite(BaseModel):
    """A single (field name, value) pair bound for the field writer."""

    field_name: str
    value: Any


class ProjectionResult(BaseModel):
    """Ordered field writes produced for one source record."""

    entity_kind: EntityKind = Field(default=EntityKind.PRODUCT)
    writes: list[FieldWrite] = Field(default_factory=list)

    def add(self, field_name: str, value: Any) -> None:
        self.writes.append(FieldWrite(field_name=field_name, value=value))

    def as_pairs(self) -> list[tuple[str, Any]]:
        return [(w.field_name, w.value) for w in self.writes]

    def field_names(self) -> list[str]:
        return [w.field_name for w in self.writes]


class FieldDeclaration(BaseModel):
    """Destination-side declaration of a mapped field."""

    key: str
    label: str
    name: str
    type: str = "text"
    instructions: str = ""
    readonly: bool = True
    order_no: int = 0


class SyncSummary(BaseModel):
    """Outcome of one sync run (also attached to a failed run)."""

    run_id: str
    status: str = Field(default="running", description="running | ok | failed")
    delta: bool = False
    updated_since: str | None = None
    pages_fetched: int = 0
    projected: int = 0
    grouped_projected: int = 0
    variations: int = Field(
        default=0, description="Products projected as group members, also counted in projected")
    skipped: int = 0
    failed: int = 0
    fields_written: int = 0
    truncated: bool = False
    error: str | None = None
    started_at: datetime
    finished_at: datetime | None = None
