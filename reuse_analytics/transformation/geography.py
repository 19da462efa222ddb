"""
Geographic Reconciliation

Extracts and validates city/province/country from order payloads whose
geography columns may be:

- a clean value ("Manchester")
- a JSON object string holding the real city/province/country keys
- a JSON string escaped one or more times, possibly wrapped in quotes
- the wrong column entirely (the whole destination JSON in the city field)

Extraction is an ordered list of pure strategies composed by first-success.
Every path returns a value or None; nothing in this module raises.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import structlog

from reuse_analytics.transformation.reference_data import (
    canonical_country,
    canonical_province,
)

logger = structlog.get_logger(__name__)

GEO_FIELDS = ("city", "province", "country")

# Unescape passes before giving up on a multiply-encoded value
MAX_UNESCAPE_PASSES = 5

_NULL_LITERALS = {"null", "none", "undefined", "nan", "n/a", ""}

_JSON_MARKERS = re.compile(
    r'[{}\[\]\\]|"\s*:|\b(address1|address2|address|phone|zip|first_name|last_name'
    r'|country_code|province_code|company)\b',
    re.IGNORECASE,
)

_ADDRESS_TOKENS = re.compile(
    r"\b(street|road|rd|lane|ln|close|drive|dr|avenue|ave|court|place|flat|floor"
    r"|unit|apartment|apt|building|house|estate)\b",
    re.IGNORECASE,
)

# Field value -> extracted text or None ("no match")
Strategy = Callable[[str, str], Optional[str]]


@dataclass(frozen=True)
class GeoTriple:
    """Reconciled geography for one order; each field independently nullable"""
    city: Optional[str] = None
    province: Optional[str] = None
    country: Optional[str] = None

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {"city": self.city, "province": self.province, "country": self.country}


# =============================================================================
# HELPERS
# =============================================================================

def looks_like_json(text: str) -> bool:
    """True when the value carries JSON syntax or leaked address field names"""
    return bool(_JSON_MARKERS.search(text))


def _unwrap_quotes(text: str) -> str:
    text = text.strip()
    while len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        text = text[1:-1].strip()
    return text


def _unescape_once(text: str) -> str:
    return text.replace('\\"', '"').replace("\\\\", "\\")


def _clean_value(value: Any) -> Optional[str]:
    """Trim a candidate value; reject empties, null literals and nested JSON"""
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = _unwrap_quotes(str(value))
    if text.lower() in _NULL_LITERALS:
        return None
    if looks_like_json(text):
        return None
    return " ".join(text.split())


def _field_from_parsed(parsed: Any, field: str) -> Optional[str]:
    # Decoding a double-encoded value yields a string holding more JSON
    for _ in range(MAX_UNESCAPE_PASSES):
        if not isinstance(parsed, str):
            break
        try:
            parsed = json.loads(parsed)
        except ValueError:
            return None
    if isinstance(parsed, Mapping):
        return _clean_value(parsed.get(field))
    return None


def _try_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


# =============================================================================
# STRATEGIES
# =============================================================================

def parse_direct(text: str, field: str) -> Optional[str]:
    """Parse the value as JSON as-is, then with one outer quote layer removed"""
    for candidate in (text, _unwrap_quotes(text)):
        parsed = _try_json(candidate)
        if parsed is not None:
            value = _field_from_parsed(parsed, field)
            if value is not None:
                return value
    return None


def parse_unescaped(text: str, field: str) -> Optional[str]:
    """Strip escaping one layer at a time, attempting a parse after each pass"""
    current = _unwrap_quotes(text)
    for _ in range(MAX_UNESCAPE_PASSES):
        unescaped = _unwrap_quotes(_unescape_once(current))
        if unescaped == current:
            break
        current = unescaped
        parsed = _try_json(current)
        if parsed is not None:
            value = _field_from_parsed(parsed, field)
            if value is not None:
                return value
    return None


def extract_with_regex(text: str, field: str) -> Optional[str]:
    """Tolerant match of "field":"value", with or without escaped quotes"""
    name = re.escape(field)
    patterns = (
        rf'"{name}"\s*:\s*"([^"\\]*)"',
        rf'\\+"{name}\\+"\s*:\s*\\+"([^"\\]*)\\+"',
    )
    for pattern in patterns:
        match = re.search(pattern, text)
        if match:
            value = _clean_value(match.group(1))
            if value is not None:
                return value
    return None


JSON_STRATEGIES: Sequence[Strategy] = (
    parse_direct,
    parse_unescaped,
    extract_with_regex,
)


def first_success(strategies: Iterable[Strategy], text: str, field: str) -> Optional[str]:
    """Return the first non-None strategy result"""
    for strategy in strategies:
        value = strategy(text, field)
        if value is not None:
            return value
    return None


def extract_field(raw: Any, field: str, allow_literal: bool = True) -> Optional[str]:
    """
    Extract one logical geography field from a raw column value.

    Args:
        raw: Column value (string, mapping, or None)
        field: Logical field name ("city", "province", "country")
        allow_literal: Accept a plain non-JSON string as the field's value.
            Only true when the raw value comes from the field's own column.

    Returns:
        Extracted text, or None when nothing can be extracted safely
    """
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        return _clean_value(raw.get(field))
    if not isinstance(raw, str):
        return _clean_value(raw) if allow_literal else None

    text = raw.strip()
    if text.lower() in _NULL_LITERALS:
        return None
    if not looks_like_json(text):
        return _clean_value(text) if allow_literal else None

    return first_success(JSON_STRATEGIES, text, field)


# =============================================================================
# VALIDATION
# =============================================================================

def is_address_like(value: str) -> bool:
    """Street-address shapes that must never be stored as a city"""
    stripped = value.strip()
    if not stripped or stripped[0].isdigit():
        return True
    return bool(_ADDRESS_TOKENS.search(stripped))


def validate_city(value: Optional[str]) -> Optional[str]:
    if not value or is_address_like(value):
        return None
    return value


def validate_province(value: Optional[str]) -> Optional[str]:
    return canonical_province(value)


def validate_country(value: Optional[str]) -> Optional[str]:
    return canonical_country(value)


VALIDATORS: Dict[str, Callable[[Optional[str]], Optional[str]]] = {
    "city": validate_city,
    "province": validate_province,
    "country": validate_country,
}


def validate_triple(
    city: Optional[str],
    province: Optional[str],
    country: Optional[str],
) -> GeoTriple:
    """Apply the closed-vocabulary and address rules to already-extracted values"""
    return GeoTriple(
        city=validate_city(city),
        province=validate_province(province),
        country=validate_country(country),
    )


# =============================================================================
# RECONCILER
# =============================================================================

class GeographicReconciler:
    """
    Reconciles the three geography columns of a raw order.

    Each logical field is looked for first in its own column (literal values
    allowed), then in the embedded destination payload, then in the other
    two columns (JSON only), since misplacement occurs in the source. The
    first candidate that passes validation wins, so an address in the city
    column does not hide a real city in the destination.

    Example:
        reconciler = GeographicReconciler()
        geo = reconciler.reconcile(raw_city, raw_province, raw_country)
    """

    def reconcile(
        self,
        raw_city: Any,
        raw_province: Any,
        raw_country: Any,
        destination: Any = None,
    ) -> GeoTriple:
        columns = {"city": raw_city, "province": raw_province, "country": raw_country}
        resolved: Dict[str, Optional[str]] = {}
        rejected: List[str] = []

        for field in GEO_FIELDS:
            candidates: List[tuple] = [(columns[field], True)]
            if destination is not None:
                candidates.append((destination, False))
            candidates.extend(
                (columns[other], False) for other in GEO_FIELDS if other != field
            )

            validate = VALIDATORS[field]
            resolved[field] = None
            for raw, allow_literal in candidates:
                value = extract_field(raw, field, allow_literal=allow_literal)
                if value is None:
                    continue
                valid = validate(value)
                if valid is not None:
                    resolved[field] = valid
                    break
                if field not in rejected:
                    rejected.append(field)

        if rejected:
            logger.debug(
                "Geography values rejected by validation",
                fields=rejected,
                recovered=[field for field in rejected if resolved[field] is not None],
            )
        return GeoTriple(**resolved)


_default_reconciler = GeographicReconciler()


def reconcile(
    raw_city: Any,
    raw_province: Any,
    raw_country: Any,
    destination: Any = None,
) -> GeoTriple:
    """Module-level convenience wrapper around GeographicReconciler"""
    return _default_reconciler.reconcile(raw_city, raw_province, raw_country, destination)
