"""
Source-path → destination-field mapping table.

The effective map for a run is built in three steps:
  1. the built-in defaults (identity / catalog fields), named under the
     configured namespace (``skwirrel_gtin``, ``skwirrel_brand``, ...);
  2. the user's custom entries, merged on top keyed by source path;
  3. the registered field-map filters (see ``SyncHooks``).
"""

import hashlib
from collections.abc import Callable, Iterable, Mapping

from skwirrel_sync.core.exceptions import MappingWarning
from skwirrel_sync.core.hooks import FieldMapFilter, SyncHooks
from skwirrel_sync.core.logging import get_logger
from skwirrel_sync.schemas import FieldDeclaration, FieldMapEntry, SyncOptions

logger = get_logger(__name__)

DEFAULT_NAMESPACE = "skwirrel"

# Source path → destination suffix; destination is "{namespace}_{suffix}"
_DEFAULT_FIELDS: dict[str, str] = {
    "product_gtin": "gtin",
    "brand_name": "brand",
    "manufacturer_name": "manufacturer",
    "product_id": "product_id",
    "external_product_id": "external_id",
    "internal_product_code": "internal_code",
    "manufacturer_product_code": "manufacturer_code",
}


def default_field_map(namespace: str = DEFAULT_NAMESPACE) -> dict[str, str]:
    return {path: f"{namespace}_{suffix}" for path, suffix in _DEFAULT_FIELDS.items()}


def merge_field_map(
    defaults: Mapping[str, str],
    entries: Iterable[FieldMapEntry],
) -> tuple[dict[str, str], list[MappingWarning]]:
    """
    Apply custom entries on top of ``defaults``.

    An entry needs a non-empty source path and destination name, anything
    else is dropped and reported as a ``MappingWarning``. An entry for an
    existing source path replaces its destination; an entry reusing a
    destination name evicts the path that held it, so destination names
    stay unique.
    """
    merged = dict(defaults)
    dropped: list[MappingWarning] = []

    for entry in entries:
        source_path = (entry.source_path or "").strip()
        destination = (entry.destination or "").strip()
        if not source_path or not destination:
            dropped.append(MappingWarning(entry.model_dump()))
            continue

        for path, name in list(merged.items()):
            if name == destination and path != source_path:
                del merged[path]
        merged[source_path] = destination

    return merged, dropped


class FieldMapper:
    """Resolves the effective field map for one run."""

    def __init__(
        self,
        namespace: str = DEFAULT_NAMESPACE,
        hooks: SyncHooks | None = None,
    ) -> None:
        self._namespace = namespace
        self._hooks = hooks or SyncHooks()

    @property
    def namespace(self) -> str:
        return self._namespace

    def effective_map(self, options: SyncOptions) -> dict[str, str]:
        merged, dropped = merge_field_map(
            default_field_map(self._namespace), options.custom_field_map)

        for warning in dropped:
            logger.warning(warning.message, extra={
                           "error_code": warning.error_code, "details": warning.details})

        return self._hooks.apply_field_map_filters(merged)


def build_field_declarations(
    field_map: Mapping[str, str],
    namespace: str = DEFAULT_NAMESPACE,
) -> list[FieldDeclaration]:
    """Read-only text field declarations for every mapped destination field."""
    declarations: list[FieldDeclaration] = []
    prefix = f"{namespace}_"

    for position, (source_path, field_name) in enumerate(field_map.items()):
        label = field_name[len(prefix):] if field_name.startswith(prefix) else field_name
        label = label.replace("_", " ")
        declarations.append(
            FieldDeclaration(
                key=f"field_{namespace}_{hashlib.md5(field_name.encode()).hexdigest()}",
                label=label[:1].upper() + label[1:],
                name=field_name,
                instructions=f"Source field: {source_path}",
                order_no=position,
            )
        )
    return declarations


def declaration_filter(
    declare: Callable[[list[FieldDeclaration]], None],
    namespace: str = DEFAULT_NAMESPACE,
) -> FieldMapFilter:
    """
    Field-map filter that declares every mapped field on the destination.

    Leaves the map unchanged; register it with
    ``SyncHooks.add_field_map_filter`` to auto-register declarations
    whenever an effective map is built.
    """

    def _declare(field_map: dict[str, str]) -> dict[str, str]:
        declare(build_field_declarations(field_map, namespace))
        return field_map

    return _declare
