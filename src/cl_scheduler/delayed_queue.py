"""Delayed queue: one-off jobs held until their due timestamp.

Storage is two tables in the shared database:

- ``delayed_queue_schedule`` is the time index, one row per distinct
  (timestamp, encoded job) pair, used to find the next due timestamp.
- ``delayed_items`` holds the buckets. Rows sharing a timestamp form the
  bucket for that second, in insertion (FIFO) order.

Every timestamp is truncated to whole seconds. Index rows never outlive the
bucket rows they describe: whenever items leave a bucket, index rows with no
matching bucket row are deleted by one conditional statement, so a process
pushing into the same bucket at the same moment never loses its entry.
"""

import logging
import time
from datetime import datetime

from sqlalchemy import delete, exists, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased, sessionmaker

from .models import DelayedIndexEntry, DelayedItem
from .schemas import JobDescriptor
from .serialization import decode, encode, to_timestamp

logger = logging.getLogger(__name__)

Timestamp = int | float | datetime


class DelayedQueue:
    """Time-ordered store of jobs that are not yet due.

    Any number of processes may push and pop against the same database;
    all coordination happens in the database.

    Example:
        queue = DelayedQueue(session_factory)
        job = JobDescriptor(class_name="SendEmail", queue="mail", args=["x"])
        queue.push(1000, job)

        timestamp = queue.next_due_timestamp(at_time=1000)  # 1000
        queue.pop_next(timestamp)  # job
        queue.pop_next(timestamp)  # None
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        """Initialize queue with a session factory.

        Args:
            session_factory: SQLAlchemy session factory (sessionmaker)
        """
        self.session_factory: sessionmaker[Session] = session_factory

    # -------------------------------------------------------------------------
    # Insertion
    # -------------------------------------------------------------------------

    def push(self, timestamp: Timestamp, job: JobDescriptor) -> bool:
        """Add a job to the bucket for ``timestamp``.

        The job is always appended to the bucket. The index row for the
        (timestamp, job) pair is only added if it isn't there already.

        Args:
            timestamp: Due time (seconds since the epoch or datetime)
            job: Job to store

        Returns:
            True if this is the first copy of the job at that timestamp
        """
        ts = to_timestamp(timestamp)
        encoded = encode(job)

        for attempt in range(2):
            with self.session_factory() as session:
                # Bucket row first: the write lock is held before the index is read
                session.add(DelayedItem(timestamp=ts, item=encoded))
                session.flush()

                indexed = session.execute(
                    select(DelayedIndexEntry.id)
                    .where(DelayedIndexEntry.timestamp == ts, DelayedIndexEntry.item == encoded)
                    .with_for_update()
                ).scalar_one_or_none()
                if indexed is None:
                    session.add(DelayedIndexEntry(timestamp=ts, item=encoded))

                try:
                    session.commit()
                except IntegrityError:
                    # Another process indexed the same job in between
                    session.rollback()
                    if attempt:
                        raise
                    logger.debug(f"Index row for {encoded} at {ts} created concurrently, retrying")
                    continue

            logger.debug(f"Pushed {encoded} at {ts}")
            return indexed is None

        return False

    delayed_push = push

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def peek_range(self, start: int, count: int) -> list[int]:
        """Timestamps of index rows ``start`` to ``start + count - 1``, ascending."""
        if count <= 0:
            return []

        with self.session_factory() as session:
            stmt = (
                select(DelayedIndexEntry.timestamp)
                .order_by(DelayedIndexEntry.timestamp, DelayedIndexEntry.id)
                .offset(start)
                .limit(count)
            )
            return list(session.execute(stmt).scalars())

    delayed_queue_peek = peek_range

    def schedule_size(self) -> int:
        """Number of index rows, i.e. distinct (timestamp, job) pairs.

        Use ``count_all`` for the number of queued jobs.
        """
        with self.session_factory() as session:
            return session.execute(select(func.count(DelayedIndexEntry.id))).scalar_one()

    delayed_queue_schedule_size = schedule_size

    def bucket_size(self, timestamp: Timestamp) -> int:
        """Number of jobs in the bucket for ``timestamp`` (0 if absent)."""
        ts = to_timestamp(timestamp)
        with self.session_factory() as session:
            return session.execute(
                select(func.count(DelayedItem.id)).where(DelayedItem.timestamp == ts)
            ).scalar_one()

    delayed_timestamp_size = bucket_size

    def bucket_peek(self, timestamp: Timestamp, start: int, count: int) -> list[JobDescriptor]:
        """Jobs at offsets ``start`` to ``start + count - 1`` of a bucket, without removing them."""
        if count <= 0:
            return []

        ts = to_timestamp(timestamp)
        with self.session_factory() as session:
            stmt = (
                select(DelayedItem.item)
                .where(DelayedItem.timestamp == ts)
                .order_by(DelayedItem.id)
                .offset(start)
                .limit(count)
            )
            items = list(session.execute(stmt).scalars())

        return [JobDescriptor.model_validate(decode(item)) for item in items]

    delayed_timestamp_peek = bucket_peek

    def next_due_timestamp(self, at_time: Timestamp | None = None) -> int | None:
        """Smallest indexed timestamp at or before ``at_time`` (default: now).

        Returns:
            Timestamp, or None if nothing is due
        """
        at = to_timestamp(at_time if at_time is not None else time.time())
        with self.session_factory() as session:
            return session.execute(
                select(func.min(DelayedIndexEntry.timestamp)).where(DelayedIndexEntry.timestamp <= at)
            ).scalar_one_or_none()

    next_delayed_timestamp = next_due_timestamp

    def count_all(self) -> int:
        """Total number of queued jobs across every indexed bucket."""
        with self.session_factory() as session:
            indexed = select(DelayedIndexEntry.timestamp).distinct()
            return session.execute(
                select(func.count(DelayedItem.id)).where(DelayedItem.timestamp.in_(indexed))
            ).scalar_one()

    count_all_scheduled_jobs = count_all

    # -------------------------------------------------------------------------
    # Consumption
    # -------------------------------------------------------------------------

    def pop_next(self, timestamp: Timestamp) -> JobDescriptor | None:
        """Remove and return the job at the front of the bucket for ``timestamp``.

        The delete targets the current front row; if a concurrent poller got
        there first the statement removes nothing and the next front row is
        tried. Emptied buckets lose their index rows in the same transaction.

        Returns:
            The job, or None if the bucket is empty
        """
        ts = to_timestamp(timestamp)
        bucket = aliased(DelayedItem)
        front = (
            select(bucket.id)
            .where(bucket.timestamp == ts)
            .order_by(bucket.id)
            .limit(1)
            .scalar_subquery()
        )
        stmt = (
            delete(DelayedItem)
            .where(DelayedItem.id == front)
            .returning(DelayedItem.item)
            .execution_options(synchronize_session=False)
        )

        with self.session_factory() as session:
            while True:
                encoded: str | None = session.execute(stmt).scalar_one_or_none()
                if encoded is not None:
                    break
                if not self._bucket_exists(session, ts):
                    _ = self._clean_up_bucket(session, ts)
                    session.commit()
                    return None

            _ = self._clean_up_bucket(session, ts)
            session.commit()

        logger.debug(f"Popped {encoded} at {ts}")
        return JobDescriptor.model_validate(decode(encoded))

    next_item_for_timestamp = pop_next

    # -------------------------------------------------------------------------
    # Removal
    # -------------------------------------------------------------------------

    def remove_all(self) -> int:
        """Clear every bucket referenced by the index, then the index itself.

        Returns:
            Number of jobs removed
        """
        with self.session_factory() as session:
            indexed = select(DelayedIndexEntry.timestamp).distinct()
            result = session.execute(
                delete(DelayedItem)
                .where(DelayedItem.timestamp.in_(indexed))
                .execution_options(synchronize_session=False)
            )
            _ = session.execute(delete(DelayedIndexEntry).execution_options(synchronize_session=False))
            session.commit()
            removed: int = result.rowcount  # pyright: ignore[reportAttributeAccessIssue]

        logger.info(f"Delayed queue reset, {removed} jobs removed")
        return removed

    reset_delayed_queue = remove_all

    def remove_matching(self, job: JobDescriptor) -> int:
        """Remove every copy of ``job`` from every bucket.

        There is no index from job to timestamps, so this scans all buckets.
        Meant for rare administrative use.

        Returns:
            Number of jobs removed
        """
        encoded = encode(job)
        with self.session_factory() as session:
            timestamps = list(
                session.execute(
                    delete(DelayedItem)
                    .where(DelayedItem.item == encoded)
                    .returning(DelayedItem.timestamp)
                    .execution_options(synchronize_session=False)
                ).scalars()
            )
            for ts in set(timestamps):
                _ = self._clean_up_bucket(session, ts)
            session.commit()

        logger.info(f"Removed {len(timestamps)} copies of {encoded} from the delayed queue")
        return len(timestamps)

    def remove_matching_at(self, timestamp: Timestamp, job: JobDescriptor) -> int:
        """Remove every copy of ``job`` from the bucket for ``timestamp``.

        Returns:
            Number of jobs removed
        """
        ts = to_timestamp(timestamp)
        encoded = encode(job)
        with self.session_factory() as session:
            result = session.execute(
                delete(DelayedItem)
                .where(DelayedItem.timestamp == ts, DelayedItem.item == encoded)
                .execution_options(synchronize_session=False)
            )
            removed: int = result.rowcount  # pyright: ignore[reportAttributeAccessIssue]
            _ = self._clean_up_bucket(session, ts)
            session.commit()

        logger.debug(f"Removed {removed} copies of {encoded} at {ts}")
        return removed

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _bucket_exists(session: Session, ts: int) -> bool:
        return bool(session.execute(select(exists().where(DelayedItem.timestamp == ts))).scalar())

    @staticmethod
    def _clean_up_bucket(session: Session, ts: int) -> int:
        """Delete index rows at ``ts`` whose job no longer has a bucket row.

        The check and the delete are one statement; a row pushed by another
        process keeps its index entry.
        """
        still_queued = (
            select(DelayedItem.id)
            .where(DelayedItem.timestamp == ts, DelayedItem.item == DelayedIndexEntry.item)
            .correlate(DelayedIndexEntry)
            .exists()
        )
        result = session.execute(
            delete(DelayedIndexEntry)
            .where(DelayedIndexEntry.timestamp == ts, ~still_queued)
            .execution_options(synchronize_session=False)
        )
        cleaned: int = result.rowcount  # pyright: ignore[reportAttributeAccessIssue]
        if cleaned:
            logger.debug(f"Cleaned {cleaned} index rows at {ts}")
        return cleaned
