"""Hosting platform collaborator interface.

Every side effect the orchestrator has on the outside world goes through
this interface. A concrete binding talks to one repository.
"""

from abc import ABC, abstractmethod
from typing import Any

from deploybot.models.deployment import Deployment
from deploybot.models.platform import (
    Artifact,
    CheckRun,
    CheckRunAction,
    CheckRunOutput,
    ContentEntry,
    WorkflowRun,
)


class DeploymentPlatform(ABC):
    """Operations consumed by the orchestrator.

    Implementations raise :class:`~deploybot.core.exceptions.NotFoundError`
    for missing resources, :class:`~deploybot.core.exceptions.ReferenceExistsError`
    when ``create_ref`` would overwrite a reference, and
    :class:`~deploybot.core.exceptions.PlatformError` for anything else.
    """

    # Repository contents

    @abstractmethod
    async def list_directory(self, path: str, ref: str) -> list[ContentEntry]:
        """List a directory; a missing directory yields an empty list."""

    @abstractmethod
    async def read_file(self, path: str, ref: str) -> bytes:
        """Read a file's raw content at a ref."""

    # Checks

    @abstractmethod
    async def has_check_suite(self, sha: str) -> bool:
        """Check whether this app already created a check suite for ``sha``."""

    @abstractmethod
    async def create_check_suite(self, sha: str) -> None:
        """Create a check suite for ``sha``."""

    @abstractmethod
    async def create_check_run(
        self,
        name: str,
        sha: str,
        external_id: str,
        output: CheckRunOutput,
    ) -> CheckRun:
        """Create a queued check run."""

    @abstractmethod
    async def get_check_run(self, check_run_id: int) -> CheckRun:
        """Get a check run by id."""

    @abstractmethod
    async def find_latest_check_run(self, sha: str, name: str) -> CheckRun | None:
        """Find the most recent check run with ``name`` on ``sha``."""

    @abstractmethod
    async def update_check_run(
        self,
        check_run_id: int,
        status: str,
        conclusion: str | None = None,
        actions: list[CheckRunAction] | None = None,
        output: CheckRunOutput | None = None,
        details_url: str | None = None,
    ) -> CheckRun:
        """Update a check run's status, conclusion, actions and output."""

    # Deployments

    @abstractmethod
    async def list_deployments(
        self, sha: str, ref: str, environment: str
    ) -> list[Deployment]:
        """List deployments for a commit, newest first."""

    @abstractmethod
    async def get_deployment(self, deployment_id: int) -> Deployment:
        """Get a deployment by id."""

    @abstractmethod
    async def create_deployment(
        self,
        environment: str,
        ref: str,
        task: str,
        payload: dict[str, Any],
    ) -> Deployment:
        """Create a deployment resource."""

    @abstractmethod
    async def create_deployment_status(
        self,
        deployment_id: int,
        state: str,
        description: str | None = None,
        environment_url: str | None = None,
        log_url: str | None = None,
        auto_inactive: bool | None = None,
    ) -> None:
        """Append a status to a deployment resource."""

    @abstractmethod
    async def delete_deployment(self, deployment_id: int) -> None:
        """Mark a deployment inactive and delete it."""

    # Git references

    @abstractmethod
    async def create_ref(self, ref: str, sha: str) -> None:
        """Create ``refs/heads/<ref>``; must fail if it exists."""

    @abstractmethod
    async def update_ref(self, ref: str, sha: str) -> None:
        """Move ``refs/heads/<ref>`` to ``sha``."""

    @abstractmethod
    async def get_ref(self, ref: str) -> str:
        """Get the commit ``refs/heads/<ref>`` points to."""

    @abstractmethod
    async def delete_ref(self, ref: str) -> None:
        """Delete ``refs/heads/<ref>``."""

    # Workflow runner

    @abstractmethod
    async def list_workflow_runs(self, branch: str, event: str) -> list[WorkflowRun]:
        """List runs on ``branch`` triggered by ``event``, newest first."""

    @abstractmethod
    async def list_run_artifacts(self, run_id: int) -> list[Artifact]:
        """List artifacts uploaded by a run."""

    async def aclose(self) -> None:
        """Release any connections held by the binding."""
