"""Schedule registry tables."""

from typing import override

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ScheduleEntry(Base):
    """Named recurring job definition, stored in its encoded form.

    The registry is the only writer; trigger evaluators read it.
    """

    __tablename__ = "schedules"  # pyright: ignore[reportUnannotatedClassAttribute]

    name: Mapped[str] = mapped_column(String, primary_key=True)
    config: Mapped[str] = mapped_column(Text, nullable=False)

    @override
    def __repr__(self) -> str:
        return f"<ScheduleEntry(name={self.name})>"


class ScheduleChange(Base):
    """Change feed: names set or removed since consumers last drained it."""

    __tablename__ = "schedules_changed"  # pyright: ignore[reportUnannotatedClassAttribute]

    name: Mapped[str] = mapped_column(String, primary_key=True)

    @override
    def __repr__(self) -> str:
        return f"<ScheduleChange(name={self.name})>"
