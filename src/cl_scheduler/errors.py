"""Exceptions raised by the scheduler."""


class SchedulerError(Exception):
    """Base class for scheduler errors."""


class NoClassError(SchedulerError, ValueError):
    """Raised when a job is enqueued without a class name."""


class NoQueueError(SchedulerError, ValueError):
    """Raised when a job class does not resolve to a destination queue."""
