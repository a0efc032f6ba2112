"""Store-backed registry of named recurring schedule definitions.

Every write that actually changes a definition records the name in the
``schedules_changed`` feed so that processes holding a live copy of the
schedule know what to reload.
"""

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import delete, exists, select
from sqlalchemy.orm import Session, sessionmaker

from .database import upsert_insert
from .mqtt import Broadcaster
from .models import ScheduleChange, ScheduleEntry
from .schemas import ScheduleDefinition
from .serialization import decode, encode

logger = logging.getLogger(__name__)

DefinitionLike = ScheduleDefinition | Mapping[str, Any]


def as_definition(definition: DefinitionLike) -> ScheduleDefinition:
    """Validate a raw mapping into a ScheduleDefinition (models pass through)."""
    if isinstance(definition, ScheduleDefinition):
        return definition
    return ScheduleDefinition.model_validate(dict(definition))


class ScheduleRegistry:
    """Create, update and remove named schedule definitions.

    Example:
        registry = ScheduleRegistry(session_factory)
        registry.set_schedule("clear_cache", {"class": "ClearCache", "every": "15m"})
        registry.get_schedule("clear_cache").every  # "15m"
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        broadcaster: Broadcaster | None = None,
    ):
        """Initialize registry with a session factory.

        Args:
            session_factory: SQLAlchemy session factory (sessionmaker)
            broadcaster: Optional broadcaster notified of every change
        """
        self.session_factory: sessionmaker[Session] = session_factory
        self.broadcaster: Broadcaster | None = broadcaster

    def _broadcast_change(self, event_type: str, name: str) -> None:
        if self.broadcaster:
            _ = self.broadcaster.publish_event(event_type=event_type, name=name, data={})

    def _stored_config(self, session: Session, name: str) -> str | None:
        return session.execute(
            select(ScheduleEntry.config).where(ScheduleEntry.name == name)
        ).scalar_one_or_none()

    @staticmethod
    def _record_change(session: Session, name: str) -> None:
        # Always issues the INSERT, so a marker drained concurrently is recreated
        stmt = upsert_insert(session, ScheduleChange).values(name=name)
        _ = session.execute(stmt.on_conflict_do_nothing(index_elements=["name"]))

    def set_schedule(self, name: str, definition: DefinitionLike) -> DefinitionLike:
        """Create or update the schedule stored under ``name``.

        Nothing is written, and no change is recorded, when the stored
        definition already encodes identically. Concurrent writers of the
        same name never conflict; the last commit wins.

        Args:
            name: Schedule name
            definition: ScheduleDefinition or raw mapping

        Returns:
            The definition as given
        """
        encoded = encode(as_definition(definition))

        with self.session_factory() as session:
            if self._stored_config(session, name) == encoded:
                return definition

            stmt = upsert_insert(session, ScheduleEntry).values(name=name, config=encoded)
            _ = session.execute(
                stmt.on_conflict_do_update(index_elements=["name"], set_={"config": encoded})
            )
            self._record_change(session, name)
            session.commit()

        logger.debug(f"Schedule {name} set")
        self._broadcast_change("schedule_changed", name)
        return definition

    def get_schedule(self, name: str) -> ScheduleDefinition | None:
        """Get the schedule stored under ``name``.

        Returns:
            ScheduleDefinition if found, None otherwise
        """
        with self.session_factory() as session:
            config = self._stored_config(session, name)

        if config is None:
            return None
        return ScheduleDefinition.model_validate(decode(config))

    def remove_schedule(self, name: str) -> bool:
        """Remove the schedule stored under ``name`` and record the change.

        The change is recorded even when nothing was stored, so watchers
        still drop any copy they hold.

        Returns:
            True if a stored schedule was deleted
        """
        with self.session_factory() as session:
            result = session.execute(delete(ScheduleEntry).where(ScheduleEntry.name == name))
            self._record_change(session, name)
            session.commit()
            removed = result.rowcount > 0  # pyright: ignore[reportAttributeAccessIssue]

        logger.debug(f"Schedule {name} removed")
        self._broadcast_change("schedule_removed", name)
        return removed

    def is_initialized(self) -> bool:
        """Whether any schedule has been stored."""
        with self.session_factory() as session:
            return bool(session.execute(select(exists().where(ScheduleEntry.name.is_not(None)))).scalar())

    def load_all(self) -> dict[str, ScheduleDefinition] | None:
        """Get every stored schedule.

        Returns:
            Mapping of name to definition, or None when no schedule is stored
        """
        with self.session_factory() as session:
            rows = session.execute(select(ScheduleEntry.name, ScheduleEntry.config)).all()

        if not rows:
            return None
        return {name: ScheduleDefinition.model_validate(decode(config)) for name, config in rows}

    get_schedules = load_all

    def changed_schedules(self) -> set[str]:
        """Names changed since the feed was last drained."""
        with self.session_factory() as session:
            return set(session.execute(select(ScheduleChange.name)).scalars())

    def pop_changed_schedules(self) -> set[str]:
        """Drain the change feed, returning the names it held."""
        with self.session_factory() as session:
            names = set(
                session.execute(
                    delete(ScheduleChange)
                    .returning(ScheduleChange.name)
                    .execution_options(synchronize_session=False)
                ).scalars()
            )
            session.commit()
        return names
