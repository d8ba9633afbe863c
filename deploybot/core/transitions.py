"""Pure transition functions of the deployment lifecycle.

Nothing in this module talks to the platform. The orchestrator gathers the
inputs, calls these functions and applies the returned values.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from deploybot.core.configs import ConfigEntry
from deploybot.core.exceptions import NotFoundError, ValidationError
from deploybot.core.graph import entry_stages
from deploybot.core.triggers import matches
from deploybot.models.config import DeploymentConfig
from deploybot.models.deployment import (
    ArtifactRef,
    DeploymentPayload,
    DeploymentPlan,
    DeploymentStatus,
)
from deploybot.models.platform import Artifact, CheckRunAction


def unique(items: Iterable[str]) -> tuple[str, ...]:
    """Drop duplicates, keeping first occurrences in order."""
    return tuple(dict.fromkeys(items))


@dataclass(frozen=True)
class CommitDecision:
    """What to do for one environment when a commit arrives."""

    environment: str
    status: DeploymentStatus
    config: DeploymentConfig | None = None
    error: str | None = None


def decide_commit(
    entries: Mapping[str, ConfigEntry],
    workflow_exists: bool,
    trigger: str,
    branch: str,
) -> list[CommitDecision]:
    """Decide the initial state of every configured environment.

    Environments that neither match the trigger nor offer a manual start
    are left out. ``QUEUED`` means a lock should be attempted; the caller
    falls back to ``READY`` if it cannot be taken.
    """
    decisions = []

    for env, entry in entries.items():
        if not workflow_exists:
            decisions.append(CommitDecision(env, DeploymentStatus.MISSING_WORKFLOW))
        elif isinstance(entry, ValidationError):
            decisions.append(
                CommitDecision(env, DeploymentStatus.INVALID, error=entry.message)
            )
        elif matches(entry, trigger, branch):
            decisions.append(CommitDecision(env, DeploymentStatus.QUEUED, config=entry))
        elif trigger == "push" and matches(entry, "manual", branch):
            # Manual start buttons come from pushes only
            decisions.append(CommitDecision(env, DeploymentStatus.READY, config=entry))

    return decisions


def initial_plan(config: DeploymentConfig) -> DeploymentPlan:
    """Plan a deployment from scratch: every stage without dependencies."""
    return DeploymentPlan(task="deploy", stages=entry_stages(config.stages))


def action_targets(
    config: DeploymentConfig, stages: Sequence[str], action: str
) -> tuple[str, ...]:
    """Union of the ``runs`` of ``action`` across the given stages."""
    targets: list[str] = []
    for key, stage in config.stages.items():
        if key in stages and action in stage.actions:
            targets.extend(stage.actions[action].runs)
    return unique(targets)


def merge_artifacts(
    current: Mapping[str, ArtifactRef], produced: Iterable[Artifact]
) -> dict[str, ArtifactRef]:
    """Carry artifacts forward, newer ones replacing those with the same name."""
    merged = dict(current)
    for artifact in produced:
        merged[artifact.name] = ArtifactRef(
            id=artifact.id, url=artifact.archive_download_url
        )
    return merged


def advance_plan(
    config: DeploymentConfig,
    payload: DeploymentPayload,
    action: str,
    produced: Iterable[Artifact] = (),
) -> DeploymentPlan:
    """Plan the unit that follows ``payload`` when ``action`` is requested.

    Raises:
        NotFoundError: If none of the current stages offers ``action``.
    """
    stages = action_targets(config, payload.stages, action)
    if not stages:
        raise NotFoundError(
            f"No current stage offers action '{action}'",
            {"action": action, "stages": list(payload.stages)},
        )

    return DeploymentPlan(
        task=f"deploy:{action}",
        stages=stages,
        completed_stages=unique([*payload.completed_stages, *payload.stages]),
        artifacts=merge_artifacts(payload.artifacts, produced),
    )


def next_actions(
    config: DeploymentConfig, stages: Sequence[str]
) -> list[CheckRunAction]:
    """Actions offered once ``stages`` have finished.

    When parallel stages declare the same action id the first one wins.
    """
    actions: dict[str, CheckRunAction] = {}
    for stage_id in stages:
        stage = config.stages.get(stage_id)
        if stage is None:
            continue
        for key, action in stage.actions.items():
            if key not in actions:
                actions[key] = CheckRunAction(
                    identifier=key,
                    label=action.name,
                    description=action.description or key,
                )
    return list(actions.values())


def completion_status(
    config: DeploymentConfig | None,
    payload: DeploymentPayload,
    succeeded: bool,
) -> tuple[DeploymentStatus, list[CheckRunAction]]:
    """State a unit moves to when its stages finish.

    Without a usable config the unit is treated as finished.
    """
    if not succeeded:
        return DeploymentStatus.FAILURE, []

    actions = next_actions(config, payload.stages) if config else []
    if actions:
        return DeploymentStatus.INCOMPLETE, actions
    return DeploymentStatus.SUCCESS, []
