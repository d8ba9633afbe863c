"""Dependency injection for API endpoints."""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends

from deploybot.config import settings
from deploybot.models.events import RepositoryRef
from deploybot.services.github import GitHubClient
from deploybot.services.platform import DeploymentPlatform

PlatformFactory = Callable[[RepositoryRef], DeploymentPlatform]


def github_platform(repository: RepositoryRef) -> DeploymentPlatform:
    """Bind the GitHub REST API to the repository an event came from."""
    return GitHubClient(repository.owner, repository.name)


async def get_platform_factory() -> PlatformFactory:
    """Get the factory that binds a platform to a repository."""
    return github_platform


async def get_webhook_secret() -> str:
    """Get the shared secret webhook deliveries are signed with."""
    return settings.webhook_secret


# Type aliases for cleaner signatures
PlatformFactoryDep = Annotated[PlatformFactory, Depends(get_platform_factory)]
WebhookSecretDep = Annotated[str, Depends(get_webhook_secret)]
