"""Delayed job queue and schedule registry for CL Server services."""

# Public API - Pydantic models
from .schemas import JobDescriptor, ScheduleDefinition, prepare_schedule

# Public API - Service implementations
from .database import create_db_engine, create_session_factory, init_db
from .delayed_queue import DelayedQueue
from .errors import NoClassError, NoQueueError, SchedulerError
from .executor import JobExecutor, NoOpExecutor
from .registry import ScheduleRegistry
from .scheduler import Scheduler
from .serialization import decode, encode, to_timestamp

__all__ = [
    # Services
    "DelayedQueue",
    "ScheduleRegistry",
    "Scheduler",
    # Database
    "create_db_engine",
    "create_session_factory",
    "init_db",
    # Execution boundary
    "JobExecutor",
    "NoOpExecutor",
    # Pydantic Models
    "JobDescriptor",
    "ScheduleDefinition",
    "prepare_schedule",
    # Encoding
    "decode",
    "encode",
    "to_timestamp",
    # Errors
    "NoClassError",
    "NoQueueError",
    "SchedulerError",
]
