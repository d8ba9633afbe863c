"""Deployment configuration models.

These models only describe the *shape* of an environment descriptor. The
stage dependency graph is checked separately by
:mod:`deploybot.core.graph` once a descriptor has been decoded.
"""

from typing import Annotated, Any, Literal
from urllib.parse import urlparse

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

TriggerKind = Literal["push", "pull_request", "manual"]

BranchName = Annotated[str, Field(min_length=1)]
StageId = Annotated[str, Field(min_length=1)]
ActionId = Annotated[str, Field(min_length=1, max_length=20)]


def _as_list(value: Any) -> Any:
    """Accept a single value where a list is expected."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


class TriggerFilter(BaseModel):
    """Branch filter attached to a trigger in the map form."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    branches: Annotated[tuple[BranchName, ...], Field(min_length=1)] | None = None


Triggers = (
    TriggerKind
    | Annotated[tuple[TriggerKind, ...], Field(min_length=1)]
    | Annotated[dict[TriggerKind, TriggerFilter | None], Field(min_length=1)]
)


class Action(BaseModel):
    """An offerable next step attached to a stage."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., min_length=1, max_length=20)
    description: str | None = Field(default=None, max_length=40)
    runs: Annotated[tuple[StageId, ...], Field(min_length=1)]

    @field_validator("runs", mode="before")
    @classmethod
    def _normalize_runs(cls, value: Any) -> Any:
        if value is None:
            return value
        return _as_list(value)


class Stage(BaseModel):
    """A named unit of work within one environment's deployment."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str | None = Field(default=None, max_length=30)
    description: str | None = Field(default=None, max_length=140)
    needs: tuple[StageId, ...] = ()
    actions: dict[ActionId, Action] = Field(default_factory=dict)

    @field_validator("needs", mode="before")
    @classmethod
    def _normalize_needs(cls, value: Any) -> Any:
        return _as_list(value)

    @field_validator("actions", mode="before")
    @classmethod
    def _normalize_actions(cls, value: Any) -> Any:
        return {} if value is None else value


class DeploymentConfig(BaseModel):
    """One deployment environment descriptor."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(..., pattern=r"^[a-zA-Z0-9-]{2,30}$")
    name: str = Field(..., pattern=r"^[a-zA-Z0-9-]{2,30}$")
    description: str = Field(..., max_length=140)
    url: str | None = None
    triggers: Triggers = Field(..., validation_alias=AliasChoices("on", "triggers"))
    stages: Annotated[dict[StageId, Stage], Field(min_length=1)]

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str | None) -> str | None:
        if value is None:
            return value
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("url must be an absolute http(s) URL")
        return value
