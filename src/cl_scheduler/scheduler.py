"""Scheduler facade: schedule registry, delayed queue and job enqueueing.

Usage:
    from cl_scheduler import Scheduler

    scheduler = Scheduler.from_config(job_classes={"SendEmail": SendEmail})

    scheduler.enqueue_in(60, "SendEmail", "user@example.com")
    scheduler.poll()  # from the polling process, until stopped
"""

import logging
import threading
import time
from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import JsonValue
from sqlalchemy.orm import Session, sessionmaker

from .database import create_db_engine, create_session_factory, init_db
from .delayed_queue import DelayedQueue, Timestamp
from .errors import NoClassError, NoQueueError
from .executor import JobExecutor, NoOpExecutor
from .mqtt import Broadcaster, get_broadcaster
from .plugins import run_after_schedule_hooks, run_before_schedule_hooks
from .registry import DefinitionLike, ScheduleRegistry
from .schemas import JobDescriptor, ScheduleDefinition, prepare_schedule

logger = logging.getLogger(__name__)

_C = TypeVar("_C", bound=type)


class Scheduler:
    """Entry point for enqueuers, pollers and schedule loaders.

    Job classes are looked up by name in ``job_classes``. A class's
    ``queue`` attribute names its destination queue, and its
    ``before_schedule*`` / ``after_schedule*`` methods run around every
    ``enqueue_at``.

    Flags left as None are read from ``Config``.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        job_classes: Mapping[str, type] | None = None,
        executor: JobExecutor | None = None,
        *,
        inline: bool | None = None,
        dynamic: bool | None = None,
        env: str | None = None,
        broadcaster: Broadcaster | None = None,
    ):
        if inline is None or dynamic is None or env is None:
            from .config import Config

            inline = Config.SCHEDULER_INLINE if inline is None else inline
            dynamic = Config.SCHEDULER_DYNAMIC if dynamic is None else dynamic
            env = Config.SCHEDULER_ENV if env is None else env

        self.registry: ScheduleRegistry = ScheduleRegistry(session_factory, broadcaster)
        self.delayed_queue: DelayedQueue = DelayedQueue(session_factory)
        self.job_classes: dict[str, type] = dict(job_classes or {})
        self.executor: JobExecutor = executor or NoOpExecutor()
        self.inline: bool = inline
        self.dynamic: bool = dynamic
        self.env: str = env
        self._schedule: dict[str, ScheduleDefinition] = {}

    @classmethod
    def from_config(
        cls,
        job_classes: Mapping[str, type] | None = None,
        executor: JobExecutor | None = None,
    ) -> "Scheduler":
        """Build a scheduler from ``Config``: database, tables and broadcaster."""
        from .config import Config

        engine = create_db_engine(Config.SCHEDULER_DATABASE_URL)
        init_db(engine)

        broadcaster = get_broadcaster(
            broadcast_type=Config.BROADCAST_TYPE,
            broker=Config.MQTT_BROKER,
            port=Config.MQTT_PORT,
            topic=Config.MQTT_TOPIC,
        )
        return cls(create_session_factory(engine), job_classes, executor, broadcaster=broadcaster)

    def register_job_class(self, job_class: _C) -> _C:
        """Register a job class under its own name. Usable as a decorator."""
        self.job_classes[job_class.__name__] = job_class
        return job_class

    # -------------------------------------------------------------------------
    # Recurring schedules
    # -------------------------------------------------------------------------

    @property
    def schedule(self) -> dict[str, ScheduleDefinition]:
        """The schedule snapshot held by this process."""
        return self._schedule

    @schedule.setter
    def schedule(self, schedule: Mapping[str, DefinitionLike]) -> None:
        prepared = prepare_schedule(schedule)

        if self.dynamic:
            for name, definition in prepared.items():
                _ = self.registry.set_schedule(name, definition)

        self._schedule = prepared

    def reload_schedule(self) -> dict[str, ScheduleDefinition]:
        """Replace the snapshot with what the registry currently stores."""
        self._schedule = self.registry.load_all() or {}
        logger.info(f"Schedule reloaded, {len(self._schedule)} entries")
        return self._schedule

    def active_schedules(self) -> dict[str, ScheduleDefinition]:
        """Snapshot entries enabled in this process's environment."""
        return {
            name: definition
            for name, definition in self._schedule.items()
            if definition.enabled_in(self.env)
        }

    def set_schedule(self, name: str, definition: DefinitionLike) -> DefinitionLike:
        return self.registry.set_schedule(name, definition)

    def get_schedule(self, name: str) -> ScheduleDefinition | None:
        return self.registry.get_schedule(name)

    def get_schedules(self) -> dict[str, ScheduleDefinition] | None:
        return self.registry.load_all()

    def remove_schedule(self, name: str) -> bool:
        return self.registry.remove_schedule(name)

    # -------------------------------------------------------------------------
    # Job validation
    # -------------------------------------------------------------------------

    def queue_from_class(self, class_name: str) -> str | None:
        """Destination queue declared by the job class, if it is known."""
        job_class = self.job_classes.get(class_name)
        if job_class is None:
            return None
        return getattr(job_class, "queue", None) or None

    def validate_job(self, class_name: str) -> str:
        """Check a job class before anything is stored.

        Returns:
            The class's destination queue

        Raises:
            NoClassError: If ``class_name`` is empty
            NoQueueError: If the class doesn't resolve to a queue
        """
        if not class_name:
            raise NoClassError("Jobs must be given a class.")

        queue = self.queue_from_class(class_name)
        if not queue:
            raise NoQueueError("Jobs must be placed onto a queue.")
        return queue

    def _job(self, class_name: str, args: tuple[Any, ...], queue: str | None = None) -> JobDescriptor:
        if queue is None:
            queue = self.validate_job(class_name)
        elif not class_name:
            raise NoClassError("Jobs must be given a class.")
        elif not queue:
            raise NoQueueError("Jobs must be placed onto a queue.")
        return JobDescriptor(class_name=class_name, queue=queue, args=list(args))

    # -------------------------------------------------------------------------
    # Enqueueing
    # -------------------------------------------------------------------------

    def enqueue(self, class_name: str, *args: JsonValue, queue: str | None = None) -> Any:
        """Hand a job to the executor right away."""
        job = self._job(class_name, args, queue)
        return self.executor.create(job.queue, job.class_name, job.args)

    def enqueue_at(self, timestamp: Timestamp, class_name: str, *args: JsonValue) -> bool:
        """Schedule a job to be queued at ``timestamp``.

        Returns:
            False if a before_schedule hook rejected the job, True otherwise
        """
        queue = self.validate_job(class_name)
        return self.enqueue_at_with_queue(queue, timestamp, class_name, *args)

    def enqueue_at_with_queue(
        self, queue: str, timestamp: Timestamp, class_name: str, *args: JsonValue
    ) -> bool:
        """Like ``enqueue_at`` but with an explicit destination queue.

        In inline mode the job goes straight to the executor.
        """
        job = self._job(class_name, args, queue)
        job_class = self.job_classes.get(class_name)

        if not run_before_schedule_hooks(job_class, *args):
            logger.info(f"Job {class_name} rejected by a before_schedule hook")
            return False

        if self.inline:
            _ = self.executor.create(job.queue, job.class_name, job.args)
        else:
            _ = self.delayed_queue.push(timestamp, job)

        run_after_schedule_hooks(job_class, *args)
        return True

    def enqueue_in(self, seconds_from_now: float, class_name: str, *args: JsonValue) -> bool:
        return self.enqueue_at(time.time() + seconds_from_now, class_name, *args)

    def enqueue_in_with_queue(
        self, queue: str, seconds_from_now: float, class_name: str, *args: JsonValue
    ) -> bool:
        return self.enqueue_at_with_queue(queue, time.time() + seconds_from_now, class_name, *args)

    # -------------------------------------------------------------------------
    # Removal
    # -------------------------------------------------------------------------

    def _stored_job(self, class_name: str, args: tuple[Any, ...]) -> JobDescriptor | None:
        # No validation: jobs of classes unregistered since they were pushed can't match
        queue = self.queue_from_class(class_name)
        if not class_name or not queue:
            logger.debug(f"No queue known for {class_name!r}, nothing to remove")
            return None
        return JobDescriptor(class_name=class_name, queue=queue, args=list(args))

    def remove_delayed(self, class_name: str, *args: JsonValue) -> int:
        """Remove every scheduled copy of a job. Scans all buckets.

        Returns:
            Number of jobs removed, 0 if the class has no known queue
        """
        job = self._stored_job(class_name, args)
        if job is None:
            return 0
        return self.delayed_queue.remove_matching(job)

    def remove_delayed_job_from_timestamp(
        self, timestamp: Timestamp, class_name: str, *args: JsonValue
    ) -> int:
        job = self._stored_job(class_name, args)
        if job is None:
            return 0
        return self.delayed_queue.remove_matching_at(timestamp, job)

    # -------------------------------------------------------------------------
    # Draining (called by the polling process)
    # -------------------------------------------------------------------------

    def enqueue_delayed_items_for_timestamp(self, timestamp: Timestamp) -> int:
        """Pop every job in one bucket and hand it to the executor.

        Returns:
            Number of jobs handed over
        """
        handed = 0
        while (job := self.delayed_queue.pop_next(timestamp)) is not None:
            _ = self.executor.create(job.queue, job.class_name, job.args)
            handed += 1
        return handed

    def handle_delayed_items(self, at_time: Timestamp | None = None) -> int:
        """Drain every bucket due at ``at_time`` (default: now), oldest first.

        Returns:
            Number of jobs handed over
        """
        handed = 0
        while (timestamp := self.delayed_queue.next_due_timestamp(at_time)) is not None:
            handed += self.enqueue_delayed_items_for_timestamp(timestamp)

        if handed:
            logger.info(f"Handed {handed} delayed jobs to the executor")
        return handed

    def poll(self, poll_interval: float | None = None, stop: threading.Event | None = None) -> int:
        """Drain due buckets every ``poll_interval`` seconds until ``stop`` is set.

        At least one pass always runs. ``poll_interval`` defaults to
        ``Config.SCHEDULER_POLL_INTERVAL``.

        Returns:
            Number of jobs handed over across all passes
        """
        if poll_interval is None:
            from .config import Config

            poll_interval = Config.SCHEDULER_POLL_INTERVAL
        stop = stop or threading.Event()

        logger.info(f"Polling the delayed queue every {poll_interval}s")
        handed = 0
        while True:
            handed += self.handle_delayed_items()
            if stop.wait(poll_interval):
                break

        logger.info(f"Polling stopped, {handed} delayed jobs handed over")
        return handed
