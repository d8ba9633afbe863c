"""Deployment unit models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DeploymentStatus(str, Enum):
    """Lifecycle state of a deployment for one environment and commit."""

    NO_SUITE = "no-suite"
    MISSING_WORKFLOW = "missing-workflow"
    INVALID = "invalid"
    READY = "ready"
    QUEUED = "queued"
    RUNNING = "running"
    INCOMPLETE = "incomplete"
    SUCCESS = "success"
    FAILURE = "failure"


class ArtifactRef(BaseModel):
    """A named artifact produced by a previous stage."""

    model_config = ConfigDict(frozen=True)

    id: int
    url: str


class DeploymentPlan(BaseModel):
    """The work a new deployment unit should carry.

    Produced by the transition functions in :mod:`deploybot.core.transitions`
    and bound to a check run once one has been created.
    """

    model_config = ConfigDict(frozen=True)

    task: str = "deploy"
    stages: tuple[str, ...] = ()
    completed_stages: tuple[str, ...] = ()
    artifacts: dict[str, ArtifactRef] = Field(default_factory=dict)

    def bind(self, check_run_id: int) -> "DeploymentPayload":
        """Attach the plan to a check run."""
        return DeploymentPayload(
            check_run_id=check_run_id,
            stages=self.stages,
            completed_stages=self.completed_stages,
            artifacts=self.artifacts,
        )


class DeploymentPayload(BaseModel):
    """Opaque payload stored on the platform deployment resource."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    # Used to work back from a deployment to its check run.
    check_run_id: int
    stages: tuple[str, ...] = ()
    completed_stages: tuple[str, ...] = ()
    artifacts: dict[str, ArtifactRef] = Field(default_factory=dict)


class Deployment(BaseModel):
    """A deployment resource as returned by the platform."""

    model_config = ConfigDict(extra="ignore")

    id: int
    environment: str
    sha: str
    ref: str = ""
    task: str = "deploy"
    payload: DeploymentPayload

    def plan(self) -> DeploymentPlan:
        """Return the unit's state as a plan that can be re-queued."""
        return DeploymentPlan(
            task=self.task,
            stages=self.payload.stages,
            completed_stages=self.payload.completed_stages,
            artifacts=self.payload.artifacts,
        )
