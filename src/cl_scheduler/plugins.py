"""Schedule hooks declared on job classes.

A job class takes part in scheduling by defining class or static methods
whose names start with ``before_schedule`` or ``after_schedule``. They are
called with the job's arguments, in name order.
"""

from collections.abc import Callable
from typing import Any


def hooks(job_class: type | None, prefix: str) -> list[Callable[..., Any]]:
    """Callables on ``job_class`` whose names start with ``prefix``, sorted by name."""
    if job_class is None:
        return []
    names = sorted(name for name in dir(job_class) if name.startswith(prefix))
    return [hook for hook in (getattr(job_class, name) for name in names) if callable(hook)]


def run_before_schedule_hooks(job_class: type | None, *args: Any) -> bool:
    """Run every before_schedule hook.

    Returns:
        False if any hook returned False, True otherwise
    """
    results = [hook(*args) for hook in hooks(job_class, "before_schedule")]
    return all(result is not False for result in results)


def run_after_schedule_hooks(job_class: type | None, *args: Any) -> None:
    for hook in hooks(job_class, "after_schedule"):
        hook(*args)
