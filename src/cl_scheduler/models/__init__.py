"""Scheduler database models."""

from .base import Base
from .delayed import DelayedIndexEntry, DelayedItem
from .schedule import ScheduleChange, ScheduleEntry

__all__ = ["Base", "DelayedIndexEntry", "DelayedItem", "ScheduleChange", "ScheduleEntry"]
