"""Shared test fixtures for cl_scheduler tests."""

from __future__ import annotations

import os
import tempfile
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

# Config reads CL_SERVER_DIR at import time
os.environ.setdefault("CL_SERVER_DIR", tempfile.mkdtemp(prefix="cl_scheduler_test_"))

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from cl_scheduler import (  # noqa: E402
    DelayedQueue,
    JobDescriptor,
    ScheduleRegistry,
    Scheduler,
)
from cl_scheduler.models import Base  # noqa: E402

if TYPE_CHECKING:
    from collections.abc import Generator

    from sqlalchemy.engine import Engine


class SendEmail:
    """Job class with a queue and no hooks."""

    queue = "mail"


class Resize:
    """Job class whose hooks record calls and can veto scheduling."""

    queue = "images"
    allow = True
    calls: list[tuple[str, tuple]] = []

    @classmethod
    def before_schedule_check(cls, *args):
        cls.calls.append(("before", args))
        return cls.allow

    @classmethod
    def after_schedule_record(cls, *args):
        cls.calls.append(("after", args))


class NoQueue:
    """Job class without a queue."""


@pytest.fixture
def in_memory_engine() -> Generator[Engine, None, None]:
    """Create SQLite in-memory engine with all tables created.

    Yields:
        Engine: SQLAlchemy engine with in-memory SQLite database
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(in_memory_engine: Engine) -> sessionmaker[Session]:
    """Create session factory bound to in-memory engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=in_memory_engine)


@pytest.fixture
def delayed_queue(session_factory: sessionmaker[Session]) -> DelayedQueue:
    return DelayedQueue(session_factory)


@pytest.fixture
def broadcaster() -> MagicMock:
    return MagicMock()


@pytest.fixture
def registry(session_factory: sessionmaker[Session], broadcaster: MagicMock) -> ScheduleRegistry:
    return ScheduleRegistry(session_factory, broadcaster=broadcaster)


@pytest.fixture
def executor() -> MagicMock:
    """Stand-in for the execution engine."""
    return MagicMock()


@pytest.fixture
def job_classes() -> Generator[dict[str, type], None, None]:
    Resize.allow = True
    Resize.calls = []
    yield {"SendEmail": SendEmail, "Resize": Resize, "NoQueue": NoQueue}


@pytest.fixture
def scheduler(
    session_factory: sessionmaker[Session],
    job_classes: dict[str, type],
    executor: MagicMock,
) -> Scheduler:
    """Scheduler storing delayed jobs, with dynamic schedules disabled."""
    return Scheduler(
        session_factory,
        job_classes=job_classes,
        executor=executor,
        inline=False,
        dynamic=False,
        env="production",
    )


@pytest.fixture
def sample_job() -> JobDescriptor:
    return JobDescriptor(class_name="Send", queue="mail", args=["x"])
