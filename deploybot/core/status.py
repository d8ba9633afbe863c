"""Status reporting for deployment check runs and deployments."""

from deploybot.models.deployment import Deployment
from deploybot.models.platform import CheckRun, CheckRunAction, CheckRunOutput
from deploybot.services.platform import DeploymentPlatform
from deploybot.utils.logging import get_logger


class StatusReporter:
    """Moves check runs and deployment resources between visible states."""

    def __init__(self, platform: DeploymentPlatform):
        self.platform = platform
        self.logger = get_logger("status")

    async def create_check(self, env: str, sha: str) -> CheckRun:
        """Create a queued check run for ``env``."""
        return await self.platform.create_check_run(
            name=env,
            sha=sha,
            external_id=env,
            output=CheckRunOutput(
                title="Queued",
                summary=f"Queued deployment to the {env} environment.",
            ),
        )

    async def missing(self, env: str, run: CheckRun) -> None:
        """No deployment workflow exists at the commit."""
        await self.platform.update_check_run(
            run.id,
            status="completed",
            conclusion="failure",
            details_url=run.html_url,
            output=CheckRunOutput(
                title="Missing workflow",
                summary=f"No deployment workflow found for the {env} environment.",
            ),
        )
        self.logger.info("status.missing_workflow", environment=env, check_run=run.id)

    async def invalid(self, env: str, run: CheckRun, message: str) -> None:
        """The environment's configuration failed validation."""
        await self.platform.update_check_run(
            run.id,
            status="completed",
            conclusion="failure",
            details_url=run.html_url,
            output=CheckRunOutput(
                title="Invalid",
                summary=f"Invalid deployment configuration for the {env} environment.",
                text=f"## Error\n\n```\n{message}\n```",
            ),
        )
        self.logger.info("status.invalid", environment=env, check_run=run.id)

    async def ready(self, env: str, run: CheckRun) -> None:
        """Not deployed, but can be started by hand.

        Posting a conclusion without actions would make a later manual start
        impossible, so the deploy action is always offered.
        """
        await self.platform.update_check_run(
            run.id,
            status="completed",
            conclusion="neutral",
            details_url=run.html_url,
            actions=[
                CheckRunAction(
                    identifier="deploy",
                    label="Deploy",
                    description=f"Deploy to {env}"[:40],
                )
            ],
            output=CheckRunOutput(
                title="Not deployed",
                summary=f"Not deployed to the {env} environment.",
            ),
        )
        self.logger.info("status.ready", environment=env, check_run=run.id)

    async def queued(self, env: str, run: CheckRun, dep: Deployment) -> None:
        await self.platform.create_deployment_status(
            dep.id,
            state="queued",
            description=f"Queued deployment to the {env} environment.",
            log_url=run.html_url,
        )
        await self.platform.update_check_run(
            run.id,
            status="queued",
            details_url=run.html_url,
            output=CheckRunOutput(
                title="Queued",
                summary=f"Queued deployment to the {env} environment.",
            ),
        )
        self.logger.info(
            "status.queued",
            environment=env,
            check_run=run.id,
            deployment=dep.id,
            stages=list(dep.payload.stages),
        )

    async def started(self, env: str, run: CheckRun, dep: Deployment) -> None:
        await self.platform.create_deployment_status(
            dep.id,
            state="in_progress",
            description=f"Deploying to the {env} environment.",
            log_url=run.html_url,
        )
        await self.platform.update_check_run(
            run.id,
            status="in_progress",
            details_url=run.html_url,
            output=CheckRunOutput(
                title="Deploying",
                summary=f"Deploying to the {env} environment.",
            ),
        )
        self.logger.info("status.started", environment=env, check_run=run.id)

    async def success(
        self,
        env: str,
        run: CheckRun,
        dep: Deployment,
        url: str | None = None,
        text: str | None = None,
    ) -> None:
        await self.platform.create_deployment_status(
            dep.id,
            state="success",
            description=f"Deployed to the {env} environment.",
            environment_url=url,
            log_url=run.html_url,
            auto_inactive=True,
        )
        await self.platform.update_check_run(
            run.id,
            status="completed",
            conclusion="success",
            details_url=run.html_url,
            output=CheckRunOutput(
                title="Deployed",
                summary=f"Deployed to the {env} environment.",
                text=text,
            ),
        )
        self.logger.info("status.success", environment=env, check_run=run.id)

    async def failure(
        self,
        env: str,
        run: CheckRun,
        dep: Deployment,
        text: str | None = None,
    ) -> None:
        await self.platform.create_deployment_status(
            dep.id,
            state="failure",
            description=f"Failed deployment to the {env} environment.",
            log_url=run.html_url,
            auto_inactive=False,
        )
        await self.platform.update_check_run(
            run.id,
            status="completed",
            conclusion="failure",
            details_url=run.html_url,
            output=CheckRunOutput(
                title="Failed",
                summary=f"Failed deployment to the {env} environment.",
                text=text,
            ),
        )
        self.logger.info("status.failure", environment=env, check_run=run.id)

    async def incomplete(
        self,
        env: str,
        run: CheckRun,
        dep: Deployment,
        actions: list[CheckRunAction],
        text: str | None = None,
    ) -> None:
        """Stages finished but further actions are available."""
        await self.platform.create_deployment_status(
            dep.id,
            state="pending",
            description=f"Action required for deployment to the {env} environment.",
            log_url=run.html_url,
            auto_inactive=False,
        )
        await self.platform.update_check_run(
            run.id,
            status="completed",
            conclusion="action_required",
            details_url=run.html_url,
            actions=actions,
            output=CheckRunOutput(
                title="Action required",
                summary=f"Action required for deployment to the {env} environment.",
                text=text,
            ),
        )
        self.logger.info(
            "status.incomplete",
            environment=env,
            check_run=run.id,
            actions=[action.identifier for action in actions],
        )
