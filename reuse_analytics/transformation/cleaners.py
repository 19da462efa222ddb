"""
Order Record Cleaning

Turns raw order payloads (remote API records or CSV rows) into canonical
OrderRecord values ready for upsert. Handles:
- Identifier and store key aliases
- Opt-in flag coercion
- Price parsing
- Source timestamp parsing
- Geography reconciliation
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import structlog
from pydantic import BaseModel, Field, field_validator

from reuse_analytics.transformation.geography import GeographicReconciler

logger = structlog.get_logger(__name__)

_TRUE_VALUES = {"true", "1", "yes", "y", "t"}

# Upper bound of the Numeric(12, 2) price column
MAX_PRICE = Decimal("1e10")

STORE_KEYS = ("store_id", "user_id", "shop", "store")
TIMESTAMP_KEYS = ("shopify_created_at", "created_at")


class OrderRecord(BaseModel):
    """Canonical order ready for persistence"""
    external_id: str = Field(min_length=1, max_length=64)
    store_id: Optional[str] = None
    opt_in: bool = False
    total_price: Decimal = Field(default=Decimal("0"), ge=0)
    city: Optional[str] = None
    province: Optional[str] = None
    country: Optional[str] = None
    payment_status: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("total_price")
    @classmethod
    def quantize_price(cls, v: Decimal) -> Decimal:
        if v >= MAX_PRICE:
            raise ValueError("total_price exceeds the stored precision")
        return v.quantize(Decimal("0.01"))

    @property
    def external_seq(self) -> Optional[int]:
        """Numeric form of the external id, when it has one"""
        if self.external_id.isdecimal() and len(self.external_id) <= 18:
            return int(self.external_id)
        return None


@dataclass
class CleaningStats:
    """Statistics from a cleaning pass"""
    total_rows: int = 0
    cleaned_rows: int = 0
    skipped_rows: int = 0


def parse_opt_in(value: Any) -> bool:
    """Opt-in arrives as bool, 1/0, or their string forms; null is false"""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value == 1
    return str(value).strip().lower() in _TRUE_VALUES


def parse_price(value: Any) -> Decimal:
    """
    Non-negative decimal rounded to cents. Unparseable, negative, or
    out-of-range amounts become zero.
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")
    text = str(value).strip()
    for symbol in ("$", "£", "€", ","):
        text = text.replace(symbol, "")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return Decimal("0")
    if not amount.is_finite() or amount < 0 or amount >= MAX_PRICE:
        return Decimal("0")
    return amount.quantize(Decimal("0.01"))


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 style timestamps into UTC; naive values are taken as UTC"""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text or text.lower() in ("null", "none"):
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _first_present(raw: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and str(value).strip() != "":
            return value
    return None


def _parse_destination(value: Any) -> Any:
    """Objects pass through; strings are left for the reconciler's strategies"""
    if isinstance(value, Mapping) or value is None:
        return value
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


class OrderCleaner:
    """
    Normalizes raw order payloads.

    Example:
        cleaner = OrderCleaner()
        records, stats = cleaner.clean_many(raw_orders)
    """

    def __init__(self, reconciler: Optional[GeographicReconciler] = None):
        self.reconciler = reconciler or GeographicReconciler()

    def clean(self, raw: Mapping[str, Any]) -> Optional[OrderRecord]:
        """Normalize one raw order; None when it has no usable identifier"""
        raw_id = _first_present(raw, ("external_id", "id"))
        if raw_id is None:
            return None
        external_id = str(raw_id).strip()
        if len(external_id) > 64:
            return None

        geo = self.reconciler.reconcile(
            raw.get("city"),
            raw.get("province"),
            raw.get("country"),
            destination=_parse_destination(raw.get("destination")),
        )

        store_id = _first_present(raw, STORE_KEYS)
        payment_status = raw.get("payment_status")

        return OrderRecord(
            external_id=external_id,
            store_id=str(store_id).strip() if store_id is not None else None,
            opt_in=parse_opt_in(raw.get("opt_in")),
            total_price=parse_price(raw.get("total_price")),
            city=geo.city,
            province=geo.province,
            country=geo.country,
            payment_status=str(payment_status).strip()[:50] if payment_status else None,
            created_at=parse_timestamp(_first_present(raw, TIMESTAMP_KEYS)),
        )

    def clean_many(
        self,
        raw_orders: Iterable[Mapping[str, Any]],
    ) -> Tuple[List[OrderRecord], CleaningStats]:
        """Normalize a sequence of raw orders, skipping those without an id"""
        stats = CleaningStats()
        records: List[OrderRecord] = []

        for raw in raw_orders:
            stats.total_rows += 1
            record = self.clean(raw)
            if record is None:
                stats.skipped_rows += 1
                continue
            records.append(record)

        stats.cleaned_rows = len(records)
        if stats.skipped_rows:
            logger.warning(
                "Skipped orders without a usable identifier",
                skipped=stats.skipped_rows,
                total=stats.total_rows,
            )
        return records, stats


def filter_newer_than(raw_orders: Iterable[Dict[str, Any]], watermark: str) -> List[Dict[str, Any]]:
    """
    Client-side watermark filter: keep records whose numeric id exceeds the
    watermark. Records with non-numeric ids are dropped.
    """
    try:
        threshold = int(watermark)
    except (TypeError, ValueError):
        return list(raw_orders)

    kept = []
    for raw in raw_orders:
        raw_id = _first_present(raw, ("external_id", "id"))
        try:
            if raw_id is not None and int(str(raw_id).strip()) > threshold:
                kept.append(raw)
        except ValueError:
            continue
    return kept
