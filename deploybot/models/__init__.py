"""Data models for deploybot."""

from deploybot.models.config import (
    Action,
    DeploymentConfig,
    Stage,
    TriggerFilter,
    TriggerKind,
)
from deploybot.models.deployment import (
    ArtifactRef,
    Deployment,
    DeploymentPayload,
    DeploymentPlan,
    DeploymentStatus,
)
from deploybot.models.events import (
    ActionRequestedEvent,
    CommitEvent,
    InboundEvent,
    RepositoryRef,
    RerequestEvent,
    RunCompletedEvent,
    RunStartedEvent,
    StatusReportEvent,
)
from deploybot.models.platform import (
    Artifact,
    CheckRun,
    CheckRunAction,
    CheckRunOutput,
    ContentEntry,
    WorkflowRun,
)

__all__ = [
    # Config models
    "Action",
    "DeploymentConfig",
    "Stage",
    "TriggerFilter",
    "TriggerKind",
    # Deployment models
    "ArtifactRef",
    "Deployment",
    "DeploymentPayload",
    "DeploymentPlan",
    "DeploymentStatus",
    # Event models
    "ActionRequestedEvent",
    "CommitEvent",
    "InboundEvent",
    "RepositoryRef",
    "RerequestEvent",
    "RunCompletedEvent",
    "RunStartedEvent",
    "StatusReportEvent",
    # Platform models
    "Artifact",
    "CheckRun",
    "CheckRunAction",
    "CheckRunOutput",
    "ContentEntry",
    "WorkflowRun",
]
