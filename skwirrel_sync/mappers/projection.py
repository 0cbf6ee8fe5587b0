"""
Concrete mapper: PIM source record → ordered destination field writes.

One ``ProjectionPipeline`` is built per run and carries that run's
options snapshot and effective field map. ``project`` is a pure function
of the record: no I/O, no logging, and missing or malformed source data
only ever leads to an omitted field.

Passes, in emission order:
  1. standard fields     – effective field map, resolved by dot-path
  2. attribute fields    – ``{ns}_etim_{label}``          (sync_attributes)
  3. trade-item fields   – ``{ns}_prices``, ``{ns}_ean``   (sync_trade_items)
  4. translation fields  – ``{ns}_translation_{locale}_{attr}`` (sync_translations)

Grouped records get a separate three-field projection instead.
"""

from collections.abc import Mapping
from typing import Any

from skwirrel_sync.config import Settings
from skwirrel_sync.core.exceptions import TransformationException
from skwirrel_sync.core.hooks import SyncHooks
from skwirrel_sync.mappers.attribute_extractor import (
    AttributeExtractor,
    EtimAttributeExtractor,
)
from skwirrel_sync.mappers.field_mapper import DEFAULT_NAMESPACE, FieldMapper, default_field_map
from skwirrel_sync.mappers.path_resolver import is_scalar, resolve
from skwirrel_sync.schemas import EntityKind, ProjectionResult, SyncOptions
from skwirrel_sync.utils.helpers import is_empty, sanitize_key

_DEFAULT_CURRENCY = "EUR"

# Translation entry key → destination suffix
_TRANSLATION_FIELDS: dict[str, str] = {
    "product_description": "description",
    "product_long_description": "long_description",
    "product_marketing_text": "marketing_text",
    "product_web_text": "web_text",
    "product_model": "model",
}

# Destination suffix → (primary key, fallback key)
_GROUPED_FIELDS: dict[str, tuple[str, str]] = {
    "grouped_product_id": ("grouped_product_id", "id"),
    "grouped_product_name": ("grouped_product_name", "name"),
    "grouped_product_code": ("grouped_product_code", "internal_product_code"),
}


class ProjectionPipeline:
    """Project PIM records onto destination fields for one sync run."""

    def __init__(
        self,
        options: SyncOptions | None = None,
        field_map: Mapping[str, str] | None = None,
        attribute_extractor: AttributeExtractor | None = None,
        namespace: str = DEFAULT_NAMESPACE,
        default_currency: str = _DEFAULT_CURRENCY,
    ) -> None:
        self._options = options or SyncOptions()
        self._field_map = dict(field_map) if field_map is not None else default_field_map(namespace)
        self._extractor = attribute_extractor or EtimAttributeExtractor()
        self._namespace = namespace
        self._default_currency = default_currency

    @classmethod
    def for_run(
        cls,
        options: SyncOptions,
        settings: Settings,
        hooks: SyncHooks | None = None,
        attribute_extractor: AttributeExtractor | None = None,
    ) -> "ProjectionPipeline":
        """Snapshot the effective field map and build the pipeline for one run."""
        mapper = FieldMapper(namespace=settings.field_namespace, hooks=hooks)
        return cls(
            options=options,
            field_map=mapper.effective_map(options),
            attribute_extractor=attribute_extractor
            or EtimAttributeExtractor(language=settings.attribute_language),
            namespace=settings.field_namespace,
            default_currency=settings.default_currency,
        )

    @property
    def field_map(self) -> dict[str, str]:
        return dict(self._field_map)

    @property
    def options(self) -> SyncOptions:
        return self._options

    def project(
        self,
        record: Mapping[str, Any],
        kind: EntityKind = EntityKind.PRODUCT,
    ) -> ProjectionResult:
        """
        Derive the ordered field writes for one record.

        Variation records only get the standard and attribute passes.

        Raises:
            TransformationException: If ``record`` is not a mapping.
        """
        self._require_mapping(record)
        if kind == EntityKind.GROUPED:
            return self.project_group(record)

        result = ProjectionResult(entity_kind=kind)
        self._standard_fields(record, result)
        if self._options.sync_attributes:
            self._attribute_fields(record, result)
        if kind == EntityKind.VARIATION:
            return result
        if self._options.sync_trade_items:
            self._trade_item_fields(record, result)
        if self._options.sync_translations:
            self._translation_fields(record, result)
        return result

    def project_group(self, record: Mapping[str, Any]) -> ProjectionResult:
        """Group id, name and code, each from a primary key with one fallback."""
        self._require_mapping(record)
        result = ProjectionResult(entity_kind=EntityKind.GROUPED)
        for suffix, (primary, fallback) in _GROUPED_FIELDS.items():
            value = record.get(primary)
            if value is None:
                value = record.get(fallback)
            if is_scalar(value) and not is_empty(value):
                result.add(f"{self._namespace}_{suffix}", value)
        return result

    # ── Passes ────────────────────────────────────────────────────────

    def _standard_fields(self, record: Mapping[str, Any], result: ProjectionResult) -> None:
        for source_path, field_name in self._field_map.items():
            value = resolve(record, source_path)
            if not is_empty(value):
                result.add(field_name, value)

    def _attribute_fields(self, record: Mapping[str, Any], result: ProjectionResult) -> None:
        for label, value in self._extractor.extract(record).items():
            if is_empty(value):
                continue
            result.add(f"{self._namespace}_etim_{sanitize_key(label)}", value)

    def _trade_item_fields(self, record: Mapping[str, Any], result: ProjectionResult) -> None:
        # Only the first trade item is projected.
        trade_items = record.get("_trade_items")
        if not isinstance(trade_items, list) or not trade_items:
            return
        first = trade_items[0]
        if not isinstance(first, Mapping):
            return

        prices = first.get("_trade_item_prices")
        price_list = [
            self._price_record(p)
            for p in (prices if isinstance(prices, list) else [])
            if isinstance(p, Mapping)
        ]
        if price_list:
            result.add(f"{self._namespace}_prices", price_list)

        ean = _first_present(first, "trade_item_ean", "ean")
        if is_scalar(ean) and not is_empty(ean):
            result.add(f"{self._namespace}_ean", ean)

    def _translation_fields(self, record: Mapping[str, Any], result: ProjectionResult) -> None:
        translations = record.get("_product_translations")
        if not isinstance(translations, list):
            return

        for entry in translations:
            if not isinstance(entry, Mapping):
                continue
            language = entry.get("language")
            locale = sanitize_key(language if language is not None else "unknown")
            for source_key, suffix in _TRANSLATION_FIELDS.items():
                value = entry.get(source_key)
                if is_scalar(value) and not is_empty(value):
                    result.add(
                        f"{self._namespace}_translation_{locale}_{suffix}", value)

    # ── Private helpers ───────────────────────────────────────────────

    def _price_record(self, price: Mapping[str, Any]) -> dict[str, Any]:
        currency = _first_present(price, "currency_code", "currency")
        return {
            "net_price": price.get("net_price"),
            "gross_price": price.get("gross_price"),
            "currency": currency if currency is not None else self._default_currency,
            "price_on_request": _truthy(price.get("price_on_request")),
        }

    @staticmethod
    def _require_mapping(record: Any) -> None:
        if not isinstance(record, Mapping):
            raise TransformationException(
                message="Source record must be a mapping.",
                details={"record_type": type(record).__name__},
            )


def _first_present(data: Mapping[str, Any], *keys: str) -> Any:
    """Value of the first key that is present and not null."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _truthy(value: Any) -> bool:
    """``"0"`` and empty containers count as false, as the PIM sends them."""
    if isinstance(value, str):
        return value not in ("", "0")
    return bool(value)
