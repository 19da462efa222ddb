"""
CSV Order Importer

Loads CSV exports of the order source into the order store. Rows go
through the same cleaning and geography reconciliation as remote records
and are upserted in batches keyed on external_id.
"""

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import polars as pl
import structlog
from pydantic import BaseModel

from reuse_analytics.database.repository import OrderStore
from reuse_analytics.transformation.cleaners import OrderCleaner

logger = structlog.get_logger(__name__)

CSV_BATCH_SIZE = 500

NULL_VALUES = ["", "NULL", "null", "None", "NA", "N/A"]


class ImportStatus(str, Enum):
    """CSV import status"""
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class ImportResult(BaseModel):
    """Result of a CSV import"""
    file_path: str
    status: ImportStatus
    parsed: int = 0
    inserted: int = 0
    errors: int = 0
    parse_errors: int = 0
    error_message: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None


class CsvOrderImporter:
    """
    CSV import of order exports.

    Expected columns follow the source export: id, user_id (store),
    opt_in, payment_status, total_price, destination, shopify_created_at,
    created_at. Extra columns are ignored.

    Example:
        importer = CsvOrderImporter(store)
        result = await importer.import_file("exports/orders.csv")
    """

    def __init__(
        self,
        store: OrderStore,
        cleaner: Optional[OrderCleaner] = None,
        delimiter: str = ",",
        encoding: str = "utf8",
    ):
        self.store = store
        self.cleaner = cleaner or OrderCleaner()
        self.delimiter = delimiter
        self.encoding = encoding

    def _read_csv(self, path: Path) -> pl.DataFrame:
        """Read every column as text; cleaning decides types"""
        return pl.read_csv(
            path,
            separator=self.delimiter,
            encoding=self.encoding,
            infer_schema_length=0,
            null_values=NULL_VALUES,
            truncate_ragged_lines=True,
        )

    async def import_file(self, file_path: Union[str, Path]) -> ImportResult:
        path = Path(file_path)
        result = ImportResult(
            file_path=str(path),
            status=ImportStatus.COMPLETED,
            started_at=datetime.now(timezone.utc),
        )

        logger.info("Starting CSV import", file=str(path))

        try:
            if not path.exists():
                raise FileNotFoundError(f"File not found: {path}")
            df = self._read_csv(path)
        except (OSError, pl.exceptions.PolarsError) as e:
            result.status = ImportStatus.FAILED
            result.error_message = str(e)
            result.completed_at = datetime.now(timezone.utc)
            logger.error("CSV import failed", file=str(path), error=str(e))
            return result

        rows: List[dict] = list(df.iter_rows(named=True))
        records, stats = self.cleaner.clean_many(rows)
        result.parsed = stats.cleaned_rows
        result.parse_errors = stats.skipped_rows

        upserted = await self.store.upsert(records, batch_size=CSV_BATCH_SIZE)

        result.inserted = upserted.inserted
        result.errors = upserted.errors
        if upserted.errors or stats.skipped_rows:
            result.status = ImportStatus.PARTIAL
        result.completed_at = datetime.now(timezone.utc)

        logger.info(
            "CSV import completed",
            file=str(path),
            parsed=result.parsed,
            inserted=result.inserted,
            errors=result.errors,
            parse_errors=result.parse_errors,
        )
        return result
