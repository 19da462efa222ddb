"""
Database Models

Tables owned by the ingestion pipeline:

- ImportedOrder: one row per order from the external source of record,
  keyed by the source's identifier
- SyncLockRecord: TTL-bounded lock rows shared by every process that syncs
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


class ImportedOrder(Base):
    """
    Imported Order Table

    Canonical order record. Created or overwritten only by the sync upsert;
    never deleted by the pipeline. Geography columns hold reconciled values
    or NULL.
    """
    __tablename__ = "imported_orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    # Numeric form of external_id, NULL when the id is not purely digits
    external_seq: Mapped[Optional[int]] = mapped_column(BigInteger)

    store_id: Mapped[Optional[str]] = mapped_column(String(255))
    opt_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)

    # Reconciled geography
    city: Mapped[Optional[str]] = mapped_column(String(255))
    province: Mapped[Optional[str]] = mapped_column(String(255))
    country: Mapped[Optional[str]] = mapped_column(String(255))

    payment_status: Mapped[Optional[str]] = mapped_column(String(50))

    # Source timestamp and local write time
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    ingested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_imported_orders_store", "store_id"),
        Index("ix_imported_orders_created", "created_at"),
        Index("ix_imported_orders_seq", "external_seq"),
    )

    def __repr__(self) -> str:
        return f"<ImportedOrder {self.external_id} store={self.store_id} opt_in={self.opt_in}>"


class SyncLockRecord(Base):
    """
    Sync Lock Table

    At most one row per lock name. A row past its expires_at is stale and
    may be replaced by the next acquirer.
    """
    __tablename__ = "sync_locks"

    name: Mapped[str] = mapped_column(String(100), primary_key=True)
    owner: Mapped[str] = mapped_column(String(64), nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
