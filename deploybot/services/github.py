"""GitHub REST binding of the deployment platform interface."""

import base64
import json
from typing import Any
from urllib.parse import quote

import httpx

from deploybot.config import settings
from deploybot.core.exceptions import NotFoundError, PlatformError, ReferenceExistsError
from deploybot.models.deployment import Deployment
from deploybot.models.platform import (
    Artifact,
    CheckRun,
    CheckRunAction,
    CheckRunOutput,
    ContentEntry,
    WorkflowRun,
)
from deploybot.services.platform import DeploymentPlatform
from deploybot.utils.logging import get_logger

logger = get_logger(__name__)


class GitHubClient(DeploymentPlatform):
    """Talks to the GitHub REST API on behalf of one repository."""

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str | None = None,
        base_url: str | None = None,
        app_id: int | None = None,
        app_slug: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.owner = owner
        self.repo = repo
        self.app_id = app_id if app_id is not None else settings.github_app_id
        self.app_slug = app_slug if app_slug is not None else settings.github_app_slug

        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        token = token if token is not None else settings.github_token
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.github_api_url).rstrip("/"),
            headers=headers,
            timeout=timeout or settings.github_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    @property
    def _prefix(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method, f"{self._prefix}{path}", params=params, json=body
            )
        except httpx.HTTPError as e:
            logger.error("github.request_failed", operation=operation, error=str(e))
            raise PlatformError(f"GitHub {operation} failed: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(
                f"GitHub {operation}: not found",
                {"path": path, "status_code": 404},
            )
        if response.status_code >= 400:
            raise PlatformError(
                f"GitHub {operation} failed: {self._message(response)}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _message(response: httpx.Response) -> str:
        try:
            return str(response.json().get("message", response.text))
        except ValueError:
            return response.text

    # Repository contents

    async def list_directory(self, path: str, ref: str) -> list[ContentEntry]:
        try:
            response = await self._request(
                "GET", f"/contents/{quote(path)}", "list_directory", params={"ref": ref}
            )
        except NotFoundError:
            return []

        data = response.json()
        if not isinstance(data, list):
            return []
        return [ContentEntry.model_validate(item) for item in data]

    async def read_file(self, path: str, ref: str) -> bytes:
        response = await self._request(
            "GET", f"/contents/{quote(path)}", "read_file", params={"ref": ref}
        )
        data = response.json()

        if isinstance(data, list):
            raise PlatformError(f"Expected file, found directory at '{path}' for '{ref}'")
        if data.get("type") != "file":
            raise PlatformError(
                f"Expected file, found '{data.get('type')}' at '{path}' for '{ref}'"
            )
        if data.get("encoding") != "base64":
            raise PlatformError(
                f"Unknown encoding '{data.get('encoding')}' for file at '{path}' for '{ref}'"
            )

        return base64.b64decode(data.get("content", ""))

    # Checks

    def _owns(self, app: dict[str, Any] | None) -> bool:
        app = app or {}
        if self.app_id:
            return app.get("id") == self.app_id
        return bool(self.app_slug) and app.get("slug") == self.app_slug

    async def has_check_suite(self, sha: str) -> bool:
        """Whether this app already created a check suite for ``sha``.

        Raises:
            PlatformError: If neither an app id nor an app slug is configured.
        """
        if not self.app_id and not self.app_slug:
            raise PlatformError(
                "GitHub app id or slug is required to recognise own check suites"
            )

        params: dict[str, Any] = {"per_page": 100}
        if self.app_id:
            params["app_id"] = self.app_id
        response = await self._request(
            "GET", f"/commits/{sha}/check-suites", "list_check_suites", params=params
        )
        suites = response.json().get("check_suites", [])
        return any(self._owns(suite.get("app")) for suite in suites)

    async def create_check_suite(self, sha: str) -> None:
        await self._request(
            "POST", "/check-suites", "create_check_suite", body={"head_sha": sha}
        )

    async def create_check_run(
        self,
        name: str,
        sha: str,
        external_id: str,
        output: CheckRunOutput,
    ) -> CheckRun:
        response = await self._request(
            "POST",
            "/check-runs",
            "create_check_run",
            body={
                "name": name,
                "head_sha": sha,
                "external_id": external_id,
                "status": "queued",
                "output": output.model_dump(exclude_none=True),
            },
        )
        return CheckRun.model_validate(response.json())

    async def get_check_run(self, check_run_id: int) -> CheckRun:
        response = await self._request(
            "GET", f"/check-runs/{check_run_id}", "get_check_run"
        )
        return CheckRun.model_validate(response.json())

    async def find_latest_check_run(self, sha: str, name: str) -> CheckRun | None:
        response = await self._request(
            "GET",
            f"/commits/{sha}/check-runs",
            "list_check_runs",
            params={"check_name": name, "filter": "latest"},
        )
        runs = response.json().get("check_runs", [])
        if not runs:
            return None
        return CheckRun.model_validate(runs[0])

    async def update_check_run(
        self,
        check_run_id: int,
        status: str,
        conclusion: str | None = None,
        actions: list[CheckRunAction] | None = None,
        output: CheckRunOutput | None = None,
        details_url: str | None = None,
    ) -> CheckRun:
        body: dict[str, Any] = {"status": status}
        if conclusion is not None:
            body["conclusion"] = conclusion
        if actions is not None:
            body["actions"] = [action.model_dump() for action in actions]
        if output is not None:
            body["output"] = output.model_dump(exclude_none=True)
        if details_url is not None:
            body["details_url"] = details_url

        response = await self._request(
            "PATCH", f"/check-runs/{check_run_id}", "update_check_run", body=body
        )
        return CheckRun.model_validate(response.json())

    # Deployments

    @staticmethod
    def _deployment(data: dict[str, Any]) -> Deployment:
        payload = data.get("payload")
        if isinstance(payload, str):
            payload = json.loads(payload) if payload else {}
        return Deployment.model_validate({**data, "payload": payload})

    async def list_deployments(
        self, sha: str, ref: str, environment: str
    ) -> list[Deployment]:
        response = await self._request(
            "GET",
            "/deployments",
            "list_deployments",
            params={"sha": sha, "ref": ref, "environment": environment},
        )
        deployments = []
        for item in response.json():
            payload = item.get("payload")
            # Deployments created by other tools carry no check run id.
            if isinstance(payload, dict) and "check_run_id" in payload:
                deployments.append(self._deployment(item))
        return deployments

    async def get_deployment(self, deployment_id: int) -> Deployment:
        response = await self._request(
            "GET", f"/deployments/{deployment_id}", "get_deployment"
        )
        return self._deployment(response.json())

    async def create_deployment(
        self,
        environment: str,
        ref: str,
        task: str,
        payload: dict[str, Any],
    ) -> Deployment:
        response = await self._request(
            "POST",
            "/deployments",
            "create_deployment",
            body={
                "environment": environment,
                "ref": ref,
                "task": task,
                "auto_merge": False,
                "required_contexts": [],
                "payload": payload,
            },
        )
        if response.status_code != 201:
            raise PlatformError(
                f"GitHub create_deployment failed: {self._message(response)}",
                status_code=response.status_code,
            )
        return self._deployment(response.json())

    async def create_deployment_status(
        self,
        deployment_id: int,
        state: str,
        description: str | None = None,
        environment_url: str | None = None,
        log_url: str | None = None,
        auto_inactive: bool | None = None,
    ) -> None:
        body: dict[str, Any] = {"state": state}
        if description is not None:
            body["description"] = description
        if environment_url is not None:
            body["environment_url"] = environment_url
        if log_url is not None:
            body["log_url"] = log_url
        if auto_inactive is not None:
            body["auto_inactive"] = auto_inactive

        await self._request(
            "POST",
            f"/deployments/{deployment_id}/statuses",
            "create_deployment_status",
            body=body,
        )

    async def delete_deployment(self, deployment_id: int) -> None:
        # Only inactive deployments can be deleted.
        await self.create_deployment_status(deployment_id, "inactive")
        await self._request(
            "DELETE", f"/deployments/{deployment_id}", "delete_deployment"
        )

    # Git references

    async def create_ref(self, ref: str, sha: str) -> None:
        try:
            await self._request(
                "POST",
                "/git/refs",
                "create_ref",
                body={"ref": f"refs/heads/{ref}", "sha": sha},
            )
        except PlatformError as e:
            if e.status_code == 422:
                raise ReferenceExistsError(ref) from e
            raise

    async def update_ref(self, ref: str, sha: str) -> None:
        await self._request(
            "PATCH",
            f"/git/refs/heads/{ref}",
            "update_ref",
            body={"sha": sha, "force": False},
        )

    async def get_ref(self, ref: str) -> str:
        response = await self._request("GET", f"/git/ref/heads/{ref}", "get_ref")
        return response.json()["object"]["sha"]

    async def delete_ref(self, ref: str) -> None:
        try:
            await self._request("DELETE", f"/git/refs/heads/{ref}", "delete_ref")
        except PlatformError as e:
            # GitHub answers 422 for a reference that does not exist.
            if e.status_code == 422:
                raise NotFoundError(f"Reference does not exist: {ref}") from e
            raise

    # Workflow runner

    async def list_workflow_runs(self, branch: str, event: str) -> list[WorkflowRun]:
        response = await self._request(
            "GET",
            "/actions/runs",
            "list_workflow_runs",
            params={"branch": branch, "event": event},
        )
        return [
            WorkflowRun.model_validate(run)
            for run in response.json().get("workflow_runs", [])
        ]

    async def list_run_artifacts(self, run_id: int) -> list[Artifact]:
        response = await self._request(
            "GET", f"/actions/runs/{run_id}/artifacts", "list_run_artifacts"
        )
        return [
            Artifact.model_validate(artifact)
            for artifact in response.json().get("artifacts", [])
        ]
