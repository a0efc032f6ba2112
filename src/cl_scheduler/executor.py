"""Execution engine boundary.

The scheduler never runs job code itself. Due jobs, and jobs enqueued in
inline mode, are handed to a ``JobExecutor``.
"""

import logging
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from pydantic import JsonValue

logger = logging.getLogger(__name__)


@runtime_checkable
class JobExecutor(Protocol):
    def create(self, queue: str, class_name: str, args: Sequence[JsonValue]) -> Any:
        """Place a job on ``queue``, or run it when the executor is inline."""
        ...


class NoOpExecutor:
    """Executor that only logs the jobs it receives."""

    def create(self, queue: str, class_name: str, args: Sequence[JsonValue]) -> None:
        logger.info(f"Job {class_name} for queue {queue} dropped by NoOpExecutor (args={list(args)})")
