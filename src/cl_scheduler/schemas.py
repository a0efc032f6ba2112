"""
Pydantic schemas for delayed jobs and recurring schedule definitions.
Shared by the registry, the delayed queue and the scheduler facade.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, JsonValue, field_validator, model_validator


class JobDescriptor(BaseModel):
    """A job waiting in the delayed queue.

    Serialised with the execution target under the ``class`` key.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    class_name: str = Field(..., alias="class", min_length=1, description="Job class name")
    queue: str = Field(..., min_length=1, description="Destination queue")
    args: list[JsonValue] = Field(default_factory=list, description="Positional job arguments")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ScheduleDefinition(BaseModel):
    """Recurring job definition stored in the registry.

    Unknown keys are kept so that trigger evaluators can carry their own
    options through the registry unchanged.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    class_name: str | None = Field(None, alias="class", description="Job class name")
    cron: str | None = Field(None, description="Cron expression")
    every: str | None = Field(None, description="Interval, e.g. '1m' or '2h'")
    args: JsonValue = Field(None, description="Arguments passed to the job")
    queue: str | None = Field(None, description="Queue override")
    enabled_envs: list[str] | None = Field(
        None,
        validation_alias=AliasChoices("enabled_envs", "rails_envs"),
        description="Environment tags the schedule loads in",
    )
    description: str | None = None

    @field_validator("enabled_envs", mode="before")
    @classmethod
    def split_envs(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [env.strip() for env in v.split(",") if env.strip()]
        return v

    @model_validator(mode="after")
    def require_trigger(self) -> "ScheduleDefinition":
        if not self.cron and not self.every:
            raise ValueError("Schedule needs a 'cron' or 'every' trigger")
        return self

    @property
    def trigger(self) -> str:
        """The effective trigger; cron takes precedence over every."""
        return self.cron or self.every or ""

    def enabled_in(self, env: str) -> bool:
        """Whether the schedule loads in ``env``. No tags means every environment."""
        return not self.enabled_envs or env in self.enabled_envs

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def prepare_schedule(
    schedule: Mapping[str, ScheduleDefinition | Mapping[str, Any]],
) -> dict[str, ScheduleDefinition]:
    """Validate a name -> definition mapping, defaulting each class to its name.

    A definition without ``class`` runs the job class named like the schedule.
    """
    prepared: dict[str, ScheduleDefinition] = {}
    for name, spec in schedule.items():
        if isinstance(spec, ScheduleDefinition):
            definition = spec if spec.class_name else spec.model_copy(update={"class_name": name})
        else:
            spec = dict(spec)
            if "class" not in spec and "class_name" not in spec:
                spec["class"] = name
            definition = ScheduleDefinition.model_validate(spec)
        prepared[name] = definition
    return prepared
