"""
Order Store

Idempotent persistence for imported orders, keyed by the source's
external_id. Writes are chunked into fixed-size batches; each batch commits
on its own so a failing batch never blocks the ones after it.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import AsyncIterator, Dict, List, Optional, Sequence

import structlog
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reuse_analytics.database.models import ImportedOrder
from reuse_analytics.transformation.cleaners import OrderRecord

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 500

# Every non-key column is overwritten on conflict
_UPDATE_COLUMNS = (
    "external_seq",
    "store_id",
    "opt_in",
    "total_price",
    "city",
    "province",
    "country",
    "payment_status",
    "created_at",
    "ingested_at",
)


class UpsertResult(BaseModel):
    """Outcome of an upsert call"""
    inserted: int = 0
    errors: int = 0
    batches: int = 0
    failed_batches: int = 0


@dataclass
class OrderFilters:
    """Optional read-side filters; empty means every order"""
    store_ids: List[str] = field(default_factory=list)
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @property
    def is_empty(self) -> bool:
        return not self.store_ids and self.date_from is None and self.date_to is None


def _chunks(items: Sequence, size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


class OrderStore:
    """
    Idempotent order persistence.

    Example:
        store = OrderStore(session_factory)
        result = await store.upsert(records)
        watermark = await store.highest_external_id()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self._session_factory = session_factory
        self.batch_size = batch_size

    def _insert_for(self, session: AsyncSession):
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert
        if dialect == "sqlite":
            return sqlite.insert
        raise RuntimeError(f"Upsert not supported for dialect: {dialect}")

    def _build_upsert(self, session: AsyncSession, rows: List[Dict]):
        insert = self._insert_for(session)
        stmt = insert(ImportedOrder).values(rows)
        return stmt.on_conflict_do_update(
            index_elements=[ImportedOrder.external_id],
            set_={column: getattr(stmt.excluded, column) for column in _UPDATE_COLUMNS},
        )

    @staticmethod
    def _to_row(record: OrderRecord, ingested_at: datetime) -> Dict:
        return {
            "external_id": record.external_id,
            "external_seq": record.external_seq,
            "store_id": record.store_id,
            "opt_in": record.opt_in,
            "total_price": record.total_price,
            "city": record.city,
            "province": record.province,
            "country": record.country,
            "payment_status": record.payment_status,
            "created_at": record.created_at,
            "ingested_at": ingested_at,
        }

    async def upsert(
        self,
        records: Sequence[OrderRecord],
        batch_size: Optional[int] = None,
    ) -> UpsertResult:
        """
        Insert or overwrite orders keyed on external_id.

        Duplicate ids inside one call collapse to their last occurrence.
        A batch that fails is counted as errors and the remaining batches
        still run.

        Returns:
            UpsertResult with written and errored record counts
        """
        latest: Dict[str, OrderRecord] = {}
        for record in records:
            latest.pop(record.external_id, None)
            latest[record.external_id] = record
        unique_records = list(latest.values())

        result = UpsertResult()
        ingested_at = datetime.now(timezone.utc)

        for batch in _chunks(unique_records, batch_size or self.batch_size):
            result.batches += 1
            rows = [self._to_row(record, ingested_at) for record in batch]
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        await session.execute(self._build_upsert(session, rows))
                result.inserted += len(batch)
            except SQLAlchemyError as e:
                result.errors += len(batch)
                result.failed_batches += 1
                logger.error(
                    "Upsert batch failed",
                    batch=result.batches,
                    size=len(batch),
                    error=str(e),
                )

        logger.info(
            "Upsert completed",
            received=len(records),
            unique=len(unique_records),
            inserted=result.inserted,
            errors=result.errors,
        )
        return result

    async def count(self, filters: Optional[OrderFilters] = None) -> int:
        """Current number of stored orders"""
        stmt = select(func.count()).select_from(ImportedOrder)
        stmt = self._apply_filters(stmt, filters)
        async with self._session_factory() as session:
            return int((await session.execute(stmt)).scalar_one())

    async def highest_external_id(self) -> Optional[str]:
        """Highest numeric external id stored, used as the incremental watermark"""
        async with self._session_factory() as session:
            value = (await session.execute(select(func.max(ImportedOrder.external_seq)))).scalar()
        return str(value) if value is not None else None

    async def get(self, external_id: str) -> Optional[ImportedOrder]:
        async with self._session_factory() as session:
            return (
                await session.execute(
                    select(ImportedOrder).where(ImportedOrder.external_id == external_id)
                )
            ).scalar_one_or_none()

    async def fetch_page(
        self,
        offset: int,
        limit: int,
        filters: Optional[OrderFilters] = None,
    ) -> List[ImportedOrder]:
        """One page of orders in primary-key order"""
        stmt = select(ImportedOrder).order_by(ImportedOrder.id).offset(offset).limit(limit)
        stmt = self._apply_filters(stmt, filters)
        async with self._session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def iter_pages(
        self,
        page_size: int,
        filters: Optional[OrderFilters] = None,
    ) -> AsyncIterator[List[ImportedOrder]]:
        """Sequential pages until a short page signals the end of the table"""
        offset = 0
        while True:
            page = await self.fetch_page(offset, page_size, filters)
            if page:
                yield page
            if len(page) < page_size:
                break
            offset += page_size

    @staticmethod
    def _apply_filters(stmt, filters: Optional[OrderFilters]):
        if filters is None or filters.is_empty:
            return stmt
        if filters.store_ids:
            stmt = stmt.where(ImportedOrder.store_id.in_(filters.store_ids))
        if filters.date_from is not None:
            start = datetime.combine(filters.date_from, time.min, tzinfo=timezone.utc)
            stmt = stmt.where(ImportedOrder.created_at >= start)
        if filters.date_to is not None:
            end = datetime.combine(filters.date_to, time.max, tzinfo=timezone.utc)
            stmt = stmt.where(ImportedOrder.created_at <= end)
        return stmt
