"""Delayed queue tables: the time index and the per-timestamp buckets."""

from typing import override

from sqlalchemy import BigInteger, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class DelayedIndexEntry(Base):
    """Index entry mapping an encoded job to its due timestamp.

    One row per distinct (timestamp, item) pair; the bucket holds the
    true population.
    """

    __tablename__ = "delayed_queue_schedule"  # pyright: ignore[reportUnannotatedClassAttribute]
    __table_args__ = (  # pyright: ignore[reportUnannotatedClassAttribute]
        UniqueConstraint("timestamp", "item", name="uq_delayed_queue_schedule_timestamp_item"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    item: Mapped[str] = mapped_column(Text, nullable=False)

    @override
    def __repr__(self) -> str:
        return f"<DelayedIndexEntry(timestamp={self.timestamp}, item={self.item})>"


class DelayedItem(Base):
    """One encoded job inside the bucket for its timestamp.

    Rows sharing a timestamp form the bucket; ``id`` order is FIFO order.
    """

    __tablename__ = "delayed_items"  # pyright: ignore[reportUnannotatedClassAttribute]
    __table_args__ = (  # pyright: ignore[reportUnannotatedClassAttribute]
        Index("ix_delayed_items_timestamp_id", "timestamp", "id"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    item: Mapped[str] = mapped_column(Text, nullable=False)

    @override
    def __repr__(self) -> str:
        return f"<DelayedItem(id={self.id}, timestamp={self.timestamp})>"
