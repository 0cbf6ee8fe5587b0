"""
Attribute extraction: source record → ordered ``{label: value}`` pairs.

The projection pipeline's attribute pass consumes whatever an
``AttributeExtractor`` returns. The default implementation reads ETIM
classification features (optionally preceded by the base catalog
attributes), which the PIM may deliver in several shapes:

  - ``_etim`` as one object or a list of objects, each with ``_etim_features``;
  - ``_etim_features`` directly on the product;
  - ``_etim`` / ``_etim_features`` on each entry of ``_product_groups``;
  - as a last resort, any nested list whose items carry ``etim_feature_code``.

Features may be a list or an object keyed by feature code; translations
may be a list of ``{language, ...}`` entries or an object keyed by locale.
"""

import re
from collections.abc import Mapping
from typing import Any, Protocol

from skwirrel_sync.utils.helpers import is_empty

_LOCALE_KEY = re.compile(r"^[a-z]{2}(-[a-z]{2})?$", re.IGNORECASE)
_FEATURE_CODE_KEY = re.compile(r"^[A-Za-z0-9]+$")
_MAX_SEARCH_DEPTH = 10

_BASE_ATTRIBUTES = (
    ("Brand", "brand_name"),
    ("Manufacturer", "manufacturer_name"),
    ("GTIN", "product_gtin"),
)


class AttributeExtractor(Protocol):
    def extract(self, record: Mapping[str, Any]) -> Mapping[str, Any]:
        ...


class EtimAttributeExtractor:
    """
    ETIM features labelled in ``language``.

    With ``include_base_attributes`` the Brand, Manufacturer and GTIN
    catalog attributes come first; they are off by default because the
    standard field map already carries them.
    """

    def __init__(
        self,
        language: str = "nl",
        logical_labels: tuple[str, str] = ("Yes", "No"),
        include_base_attributes: bool = False,
    ) -> None:
        self._language = language
        self._yes, self._no = logical_labels
        self._include_base = include_base_attributes

    def extract(self, record: Mapping[str, Any]) -> dict[str, Any]:
        attrs: dict[str, Any] = {}
        if self._include_base:
            for label, key in _BASE_ATTRIBUTES:
                value = record.get(key)
                if _present(value):
                    attrs[label] = value

        seen: set[str] = set()
        for item in _collect_etim_items(record):
            for feature in _normalize_features(item.get("_etim_features")):
                value = self._format_value(feature)
                if is_empty(value):
                    continue

                code = str(feature.get("etim_feature_code") or "")
                label = _pick_translation(
                    _normalize_translations(feature.get("_etim_feature_translations")),
                    self._language,
                    "etim_feature_description",
                ) or code
                if not label:
                    continue

                key = code or f"etim_{feature.get('order_number', 0)}"
                if key in seen:
                    continue
                seen.add(key)
                attrs[label] = value

        return attrs

    # ── Value formatting per ETIM feature type ────────────────────────

    def _format_value(self, feature: Mapping[str, Any]) -> str | None:
        if feature.get("not_applicable"):
            return None

        feature_type = str(feature.get("etim_feature_type") or "")
        value_code = feature.get("etim_value_code")
        numeric = feature.get("numeric_value")

        if feature_type == "A" and value_code:
            return self._value_description(feature) or str(value_code)

        if feature_type == "N" and not is_empty(numeric):
            return _with_unit(_format_number(numeric), self._unit(feature))

        is_logical = feature_type in ("L", "") or feature_type.upper() == "LOGICAL"
        if is_logical and feature.get("logical_value") is not None:
            return self._yes if feature["logical_value"] else self._no

        if feature_type == "R" and (
            feature.get("range_min") is not None or feature.get("range_max") is not None
        ):
            low = _format_number(feature.get("range_min"))
            high = _format_number(feature.get("range_max"))
            separator = " - " if low and high else ""
            return _with_unit(f"{low}{separator}{high}", self._unit(feature))

        if feature_type == "A" and not value_code and numeric is not None:
            return _format_number(numeric)

        if feature_type in ("C", "M") and value_code:
            return self._value_description(feature) or str(value_code)

        return None

    def _value_description(self, feature: Mapping[str, Any]) -> str:
        return _pick_translation(
            _normalize_translations(feature.get("_etim_value_translations")),
            self._language,
            "etim_value_description",
        )

    def _unit(self, feature: Mapping[str, Any]) -> str:
        translations = _normalize_translations(feature.get("_etim_unit_translations"))
        return (
            _pick_translation(translations, self._language, "etim_unit_abbreviation")
            or _pick_translation(translations, self._language, "etim_unit_description")
        )


# ─── Collection helpers ───────────────────────────────────────────────


def _collect_etim_items(record: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    items = [e for e in _as_list(record.get("_etim")) if e.get("_etim_features")]

    if not items and record.get("_etim_features"):
        items.append({"_etim_features": record["_etim_features"]})

    groups = record.get("_product_groups")
    if isinstance(groups, list):
        for group in groups:
            if not isinstance(group, Mapping):
                continue
            items.extend(e for e in _as_list(group.get("_etim")) if e.get("_etim_features"))
            if group.get("_etim_features"):
                items.append({"_etim_features": group["_etim_features"]})

    if not items:
        items = [{"_etim_features": found} for found in _find_features(record)]
    return items


def _as_list(raw: Any) -> list[Mapping[str, Any]]:
    """``_etim`` is either one object or a list of objects."""
    if isinstance(raw, list):
        return [e for e in raw if isinstance(e, Mapping)]
    if isinstance(raw, Mapping) and raw:
        return [raw]
    return []


def _find_features(data: Any, depth: int = 0) -> list[Any]:
    """Nested containers whose items look like ETIM features."""
    if depth > _MAX_SEARCH_DEPTH:
        return []

    children = data.values() if isinstance(data, Mapping) else data
    found: list[Any] = []
    for child in children:
        if not isinstance(child, (Mapping, list)):
            continue
        members = child.values() if isinstance(child, Mapping) else child
        if any(isinstance(m, Mapping) and "etim_feature_code" in m for m in members):
            found.append(child)
        else:
            found.extend(_find_features(child, depth + 1))
    return found


def _normalize_features(features: Any) -> list[Mapping[str, Any]]:
    """Features keyed by code become a list, with the code copied into each feature."""
    if not features:
        return []
    if isinstance(features, Mapping):
        result = []
        for key, feature in features.items():
            if not isinstance(feature, Mapping):
                continue
            if (
                not feature.get("etim_feature_code")
                and isinstance(key, str)
                and _FEATURE_CODE_KEY.match(key)
            ):
                feature = {**feature, "etim_feature_code": key}
            result.append(feature)
        return result
    if isinstance(features, list):
        return [f for f in features if isinstance(f, Mapping)]
    return []


def _normalize_translations(translations: Any) -> list[Mapping[str, Any]]:
    """Translations as a list of ``{language, ...}`` entries."""
    if not translations:
        return []
    if isinstance(translations, Mapping):
        values = list(translations.values())
    elif isinstance(translations, list):
        values = translations
    else:
        return []

    normalized = [t for t in values if isinstance(t, Mapping) and "language" in t]
    if normalized or not isinstance(translations, Mapping):
        return normalized

    return [
        {"language": locale, **data}
        for locale, data in translations.items()
        if isinstance(data, Mapping) and _LOCALE_KEY.match(str(locale))
    ]


def _pick_translation(
    translations: list[Mapping[str, Any]], language: str, field: str
) -> str:
    """Exact locale, then same 2-letter language, then the first entry."""
    for t in translations:
        if str(t.get("language", "")).lower() == language.lower():
            return _text(t.get(field))
    if len(language) >= 2:
        for t in translations:
            locale = str(t.get("language", ""))
            if len(locale) >= 2 and locale[:2].lower() == language[:2].lower():
                return _text(t.get(field))
    return _text(translations[0].get(field)) if translations else ""


# ─── Value helpers ────────────────────────────────────────────────────


def _present(value: Any) -> bool:
    return not is_empty(value) and value not in (0, "0", False)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _format_number(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _with_unit(value: str, unit: str) -> str:
    return f"{value} {unit}" if unit else value
