"""Hosting platform resource models.

Field names follow the GitHub REST API so responses can be validated
directly.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

CheckStatus = Literal["queued", "in_progress", "completed"]


class ContentEntry(BaseModel):
    """An entry of a repository directory listing."""

    model_config = ConfigDict(extra="ignore")

    name: str
    path: str
    type: str = "file"


class CheckRunAction(BaseModel):
    """A button offered on a completed check run."""

    identifier: str = Field(..., max_length=20)
    label: str = Field(..., max_length=20)
    description: str = Field(..., max_length=40)


class CheckRunOutput(BaseModel):
    """Human-readable check run output."""

    title: str
    summary: str
    text: str | None = None


class CheckRun(BaseModel):
    """A check run attached to a commit."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str = ""
    head_sha: str = ""
    external_id: str | None = None
    status: CheckStatus = "queued"
    conclusion: str | None = None
    html_url: str | None = None


class WorkflowRun(BaseModel):
    """A run of the external workflow runner."""

    model_config = ConfigDict(extra="ignore")

    id: int
    status: str
    conclusion: str | None = None
    check_suite_url: str = ""
    head_sha: str = ""
    head_branch: str | None = None

    def belongs_to(self, suite_id: int) -> bool:
        """Check whether the run was reported by the given check suite."""
        tail = self.check_suite_url.rstrip("/").rsplit("/", 1)[-1]
        return tail == str(suite_id)


class Artifact(BaseModel):
    """An artifact uploaded by a workflow run."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    archive_download_url: str = ""
