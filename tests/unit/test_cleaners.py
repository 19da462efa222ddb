"""
Tests for order record cleaning
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from reuse_analytics.transformation.cleaners import (
    OrderCleaner,
    OrderRecord,
    filter_newer_than,
    parse_opt_in,
    parse_price,
    parse_timestamp,
)


class TestParsers:
    @pytest.mark.parametrize("value,expected", [
        (True, True),
        (False, False),
        (None, False),
        (1, True),
        (0, False),
        ("true", True),
        ("TRUE", True),
        ("1", True),
        ("false", False),
        ("0", False),
        ("", False),
        ("maybe", False),
    ])
    def test_parse_opt_in(self, value, expected):
        assert parse_opt_in(value) is expected

    @pytest.mark.parametrize("value,expected", [
        ("62.50", Decimal("62.50")),
        (18.0, Decimal("18.0")),
        ("$1,200.00", Decimal("1200.00")),
        ("£9.99", Decimal("9.99")),
        ("-5", Decimal("0")),
        ("abc", Decimal("0")),
        (None, Decimal("0")),
        ("NaN", Decimal("0")),
        ("1e30", Decimal("0")),
        ("1e11", Decimal("0")),
        ("9999999999.99", Decimal("9999999999.99")),
        ("3.456", Decimal("3.46")),
    ])
    def test_parse_price(self, value, expected):
        assert parse_price(value) == expected

    def test_parse_timestamp_zulu(self):
        assert parse_timestamp("2025-03-02T12:00:00Z") == datetime(2025, 3, 2, 12, 0, tzinfo=timezone.utc)

    def test_parse_timestamp_offset_converted_to_utc(self):
        parsed = parse_timestamp("2025-03-02T12:00:00+02:00")
        assert parsed == datetime(2025, 3, 2, 10, 0, tzinfo=timezone.utc)
        assert parsed.utcoffset().total_seconds() == 0

    def test_parse_timestamp_naive_is_utc(self):
        assert parse_timestamp("2025-03-02 12:00:00").tzinfo == timezone.utc

    @pytest.mark.parametrize("value", [None, "", "null", "not a date"])
    def test_parse_timestamp_invalid(self, value):
        assert parse_timestamp(value) is None


class TestOrderCleaner:
    """Tests for OrderCleaner"""

    def test_clean_many(self, raw_orders):
        records, stats = OrderCleaner().clean_many(raw_orders)

        assert stats.total_rows == 3
        assert stats.cleaned_rows == 3
        assert stats.skipped_rows == 0

        first, second, third = records
        assert first.external_id == "1001"
        assert first.store_id == "green-basket.myshopify.com"
        assert first.opt_in is True
        assert first.total_price == Decimal("62.50")
        assert (first.city, first.province, first.country) == ("Manchester", "England", "United Kingdom")
        assert first.created_at == datetime(2025, 3, 2, 12, 0, tzinfo=timezone.utc)

        assert second.opt_in is False
        assert second.country == "United States"
        assert second.total_price == Decimal("18.00")

        assert third.opt_in is True
        assert third.total_price == Decimal("120.00")
        assert third.city is None
        assert third.country is None

    def test_huge_price_becomes_zero(self):
        record = OrderCleaner().clean({"id": "1", "total_price": "1e30"})
        assert record.total_price == Decimal("0")

    def test_records_without_id_are_skipped(self):
        records, stats = OrderCleaner().clean_many([
            {"opt_in": True, "total_price": 10},
            {"id": "", "opt_in": True},
            {"id": "7"},
        ])
        assert [r.external_id for r in records] == ["7"]
        assert stats.skipped_rows == 2

    def test_store_and_timestamp_aliases(self):
        record = OrderCleaner().clean({
            "id": "9",
            "shop": "loop-home",
            "created_at": "2025-01-01T00:00:00Z",
            "shopify_created_at": "2024-12-31T23:00:00Z",
        })
        assert record.store_id == "loop-home"
        assert record.created_at == datetime(2024, 12, 31, 23, 0, tzinfo=timezone.utc)

    def test_defaults_for_sparse_record(self):
        record = OrderCleaner().clean({"id": "10"})
        assert record.opt_in is False
        assert record.total_price == Decimal("0.00")
        assert record.created_at is None
        assert record.store_id is None


class TestOrderRecord:
    def test_external_seq(self):
        assert OrderRecord(external_id="1042").external_seq == 1042
        assert OrderRecord(external_id="ord-1042").external_seq is None
        assert OrderRecord(external_id="9" * 19).external_seq is None

    def test_price_quantized(self):
        assert OrderRecord(external_id="1", total_price=Decimal("3.456")).total_price == Decimal("3.46")

    def test_price_beyond_column_precision_rejected(self):
        with pytest.raises(ValidationError):
            OrderRecord(external_id="1", total_price=Decimal("1e30"))


class TestFilterNewerThan:
    def test_keeps_only_higher_numeric_ids(self):
        raw = [{"id": "99"}, {"id": 100}, {"id": "101"}, {"id": "abc"}, {"total_price": 5}]
        assert filter_newer_than(raw, "100") == [{"id": "101"}]

    def test_out_of_order_late_arrival_is_skipped(self):
        # A late record whose id is below the watermark is never re-fetched
        raw = [{"id": "205"}, {"id": "150"}]
        assert filter_newer_than(raw, "200") == [{"id": "205"}]
