"""SQLAlchemy tables for persisted records, one table per record kind."""

from typing import Any

from sqlalchemy import JSON, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from staking_pool_metrics.core.exceptions import StoreError
from staking_pool_metrics.core.models import (
    FinancialsDailySnapshot,
    Pool,
    PoolDailySnapshot,
    PoolHourlySnapshot,
    Protocol,
)


class Base(DeclarativeBase):
    pass


class RecordRow:
    """
    Columns shared by every record table.

    The record itself is kept as its JSON dump, so Decimal fields round-trip
    as strings and raw token amounts as arbitrary-size integers.

    """

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)


class ProtocolRow(RecordRow, Base):
    __tablename__ = Protocol.kind


class PoolRow(RecordRow, Base):
    __tablename__ = Pool.kind


class FinancialsDailySnapshotRow(RecordRow, Base):
    __tablename__ = FinancialsDailySnapshot.kind


class PoolDailySnapshotRow(RecordRow, Base):
    __tablename__ = PoolDailySnapshot.kind


class PoolHourlySnapshotRow(RecordRow, Base):
    __tablename__ = PoolHourlySnapshot.kind


ROW_TABLES: dict[str, type[RecordRow]] = {
    Protocol.kind: ProtocolRow,
    Pool.kind: PoolRow,
    FinancialsDailySnapshot.kind: FinancialsDailySnapshotRow,
    PoolDailySnapshot.kind: PoolDailySnapshotRow,
    PoolHourlySnapshot.kind: PoolHourlySnapshotRow,
}


def row_table(kind: str) -> type[RecordRow]:
    """Return the table class storing records of a kind."""
    try:
        return ROW_TABLES[kind]
    except KeyError as e:
        msg = f"No table for record kind {kind!r}"
        raise StoreError(msg) from e
