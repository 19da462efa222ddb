"""
Tests for CSV order import
"""
from decimal import Decimal

from reuse_analytics.ingestion.csv_importer import CsvOrderImporter, ImportStatus

HEADER = "id,user_id,opt_in,payment_status,total_price,destination,shopify_created_at,created_at\n"


def write_csv(tmp_path, rows: str):
    path = tmp_path / "orders.csv"
    path.write_text(HEADER + rows, encoding="utf-8")
    return path


class TestCsvOrderImporter:
    """Tests for CsvOrderImporter"""

    async def test_import_rows(self, tmp_path, order_store):
        path = write_csv(
            tmp_path,
            '2001,green-basket.myshopify.com,true,paid,45.00,'
            '"{""city"":""Cardiff"",""province"":""Wales"",""country"":""United Kingdom""}",'
            '2025-05-01T10:00:00Z,\n'
            '2002,refill-co.myshopify.com,0,paid,12.50,,,2025-05-02T11:00:00Z\n',
        )

        result = await CsvOrderImporter(order_store).import_file(path)

        assert result.status == ImportStatus.COMPLETED
        assert result.parsed == 2
        assert result.inserted == 2
        assert result.parse_errors == 0
        assert await order_store.count() == 2

        cardiff = await order_store.get("2001")
        assert cardiff.opt_in is True
        assert (cardiff.city, cardiff.province, cardiff.country) == ("Cardiff", "Wales", "United Kingdom")
        assert cardiff.total_price == Decimal("45.00")

        second = await order_store.get("2002")
        assert second.opt_in is False
        assert second.city is None
        assert second.created_at is not None

    async def test_rows_without_id_are_parse_errors(self, tmp_path, order_store):
        path = write_csv(
            tmp_path,
            ",green-basket.myshopify.com,true,paid,10.00,,,\n"
            "2003,green-basket.myshopify.com,false,paid,10.00,,,\n",
        )

        result = await CsvOrderImporter(order_store).import_file(path)

        assert result.status == ImportStatus.PARTIAL
        assert result.parsed == 1
        assert result.parse_errors == 1
        assert result.inserted == 1

    async def test_reimport_is_idempotent(self, tmp_path, order_store):
        path = write_csv(tmp_path, "2004,green-basket.myshopify.com,true,paid,10.00,,,\n")
        importer = CsvOrderImporter(order_store)

        await importer.import_file(path)
        await importer.import_file(path)

        assert await order_store.count() == 1

    async def test_missing_file(self, tmp_path, order_store):
        result = await CsvOrderImporter(order_store).import_file(tmp_path / "absent.csv")

        assert result.status == ImportStatus.FAILED
        assert "not found" in result.error_message
        assert result.completed_at is not None
