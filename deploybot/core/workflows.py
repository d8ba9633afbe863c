"""Discovery of deployment workflows and their runs."""

from typing import Any

import yaml

from deploybot.config import settings
from deploybot.core.configs import YAML_SUFFIXES, load_yaml
from deploybot.core.exceptions import NotFoundError, PlatformError
from deploybot.models.platform import Artifact, WorkflowRun
from deploybot.services.platform import DeploymentPlatform
from deploybot.utils.logging import get_logger

logger = get_logger(__name__)


def is_deployment_workflow(data: Any) -> bool:
    """Check whether a decoded workflow runs on deployment events."""
    if not isinstance(data, dict):
        return False

    on = data.get("on")
    if on == "deployment":
        return True
    if isinstance(on, list):
        return "deployment" in on
    if isinstance(on, dict):
        return "deployment" in on
    return False


class WorkflowLocator:
    """Finds deployment workflows and the runs they produce."""

    def __init__(self, platform: DeploymentPlatform, directory: str | None = None):
        self.platform = platform
        self.directory = directory or settings.workflow_directory

    async def exists(self, sha: str) -> bool:
        """Check whether any deployment workflow is defined at ``sha``.

        Without one, deployment progress cannot be tracked.
        """
        entries = await self.platform.list_directory(self.directory, sha)

        for entry in entries:
            if entry.type != "file" or not entry.name.endswith(YAML_SUFFIXES):
                continue
            try:
                raw = await self.platform.read_file(entry.path, sha)
                data = load_yaml(raw)
            except (NotFoundError, PlatformError, yaml.YAMLError) as e:
                logger.warning("workflows.unreadable", path=entry.path, error=str(e))
                continue
            if is_deployment_workflow(data):
                return True

        return False

    async def latest_run(self, branch: str, sha: str) -> WorkflowRun:
        """Most recent deployment run on a lock branch for ``sha``.

        Raises:
            NotFoundError: If the branch has no run for the commit.
        """
        runs = await self.platform.list_workflow_runs(branch, "deployment")
        for run in runs:
            if run.head_sha == sha:
                return run

        raise NotFoundError(
            f"No matching workflow run on {branch} at {sha}",
            {"branch": branch, "sha": sha},
        )

    async def artifacts(self, run: WorkflowRun) -> list[Artifact]:
        return await self.platform.list_run_artifacts(run.id)
