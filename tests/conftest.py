"""Pytest configuration and fixtures."""

import pytest
from httpx import ASGITransport, AsyncClient

from deploybot.api.deps import get_platform_factory, get_webhook_secret
from deploybot.core.locks import LockManager
from deploybot.core.orchestrator import DeploymentOrchestrator
from deploybot.main import app
from fakes import FakePlatform

DEPLOY_WORKFLOW = """\
name: Deploy
on: deployment
jobs:
  deploy:
    runs-on: ubuntu-latest
    steps:
      - run: echo deploying
"""


@pytest.fixture
def platform() -> FakePlatform:
    """Create an empty in-memory platform."""
    return FakePlatform()


@pytest.fixture
def repo(platform: FakePlatform) -> FakePlatform:
    """Platform whose repository has a deployment workflow."""
    platform.add_file(".github/workflows/deploy.yml", DEPLOY_WORKFLOW)
    return platform


@pytest.fixture
def locks(platform: FakePlatform) -> LockManager:
    return LockManager(platform)


@pytest.fixture
def orchestrator(platform: FakePlatform) -> DeploymentOrchestrator:
    return DeploymentOrchestrator(platform)


@pytest.fixture
async def client(platform: FakePlatform) -> AsyncClient:
    """Create an async test client bound to the in-memory platform."""
    app.dependency_overrides[get_platform_factory] = lambda: (lambda repository: platform)
    app.dependency_overrides[get_webhook_secret] = lambda: ""

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
