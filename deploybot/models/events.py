"""Inbound events the orchestrator reacts to."""

from typing import Annotated, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class RepositoryRef(BaseModel):
    """Repository an event was delivered for."""

    model_config = ConfigDict(frozen=True)

    owner: str
    name: str
    installation_id: int | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class CommitEvent(BaseModel):
    """A commit was pushed or a pull request was opened or updated."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["commit"] = "commit"
    sha: str
    branch: str
    trigger: Literal["push", "pull_request"]


class ActionRequestedEvent(BaseModel):
    """An action button was pressed on a deployment check run."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["action_requested"] = "action_requested"
    sha: str
    environment: str
    check_run_id: int
    action: str


class RerequestEvent(BaseModel):
    """A failed deployment check run was re-run."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["rerequested"] = "rerequested"
    sha: str
    environment: str
    check_run_id: int


class RunStartedEvent(BaseModel):
    """The workflow runner created a run on an environment's lock branch."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["run_started"] = "run_started"
    sha: str
    environment: str
    suite_id: int


class RunCompletedEvent(BaseModel):
    """A workflow run suite on an environment's lock branch completed."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["run_completed"] = "run_completed"
    sha: str
    environment: str
    suite_id: int


class StatusReportEvent(BaseModel):
    """An out-of-band status pushed for a deployment resource."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["status_report"] = "status_report"
    deployment_id: int = Field(
        ..., validation_alias=AliasChoices("deployment_id", "deployment")
    )
    state: str
    output: str | None = None
    url: str | None = None


InboundEvent = Annotated[
    Union[
        CommitEvent,
        ActionRequestedEvent,
        RerequestEvent,
        RunStartedEvent,
        RunCompletedEvent,
        StatusReportEvent,
    ],
    Field(discriminator="kind"),
]
