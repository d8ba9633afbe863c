"""Platform services for deploybot."""

from deploybot.services.platform import DeploymentPlatform
from deploybot.services.github import GitHubClient

__all__ = [
    "DeploymentPlatform",
    "GitHubClient",
]
