"""Deployment Lifecycle Orchestrator.

Reacts to inbound repository events and drives each environment's
deployment through its lifecycle:

    no-suite -> missing-workflow | invalid | ready | queued
    queued -> running -> success | failure | incomplete
    incomplete -> queued (next stages)

All durable state lives on the platform: the lock branch per environment,
the deployment payload and the check run status.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from deploybot.config import settings
from deploybot.core.configs import ConfigLoader
from deploybot.core.exceptions import (
    CorrelationMismatchError,
    LockConflictError,
    NotFoundError,
    ValidationError,
)
from deploybot.core.locks import LockManager
from deploybot.core.status import StatusReporter
from deploybot.core.transitions import (
    CommitDecision,
    advance_plan,
    completion_status,
    decide_commit,
    initial_plan,
)
from deploybot.core.workflows import WorkflowLocator
from deploybot.models.config import DeploymentConfig
from deploybot.models.deployment import Deployment, DeploymentPlan, DeploymentStatus
from deploybot.models.events import (
    ActionRequestedEvent,
    CommitEvent,
    RerequestEvent,
    RunCompletedEvent,
    RunStartedEvent,
    StatusReportEvent,
)
from deploybot.models.platform import Artifact, CheckRun, WorkflowRun
from deploybot.services.platform import DeploymentPlatform
from deploybot.utils.logging import get_logger


class DeploymentOrchestrator:
    """Applies lifecycle transitions for one repository.

    Handlers never retry platform failures; ``PlatformError`` propagates to
    the caller. Lock conflicts, stale deliveries and correlation mismatches
    are dropped with a log entry.
    """

    def __init__(
        self,
        platform: DeploymentPlatform,
        locks: LockManager | None = None,
        configs: ConfigLoader | None = None,
        workflows: WorkflowLocator | None = None,
        status: StatusReporter | None = None,
        config_directory: str | None = None,
    ):
        self.platform = platform
        self.locks = locks or LockManager(platform)
        self.configs = configs or ConfigLoader(platform)
        self.workflows = workflows or WorkflowLocator(platform)
        self.status = status or StatusReporter(platform)
        self.config_directory = config_directory or settings.config_directory
        self.logger = get_logger("orchestrator")

        self._handlers: dict[type, Callable[[Any], Awaitable[None]]] = {
            CommitEvent: self.on_commit,
            ActionRequestedEvent: self.on_action_requested,
            RerequestEvent: self.on_rerequest,
            RunStartedEvent: self.on_run_started,
            RunCompletedEvent: self.on_run_completed,
            StatusReportEvent: self.on_status_report,
        }

    async def handle(self, event: Any) -> None:
        """Dispatch an inbound event to its handler.

        Raises:
            PlatformError: If the platform fails mid-transition.
        """
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unsupported event: {type(event).__name__}")

        self.logger.info("orchestrator.event.received", kind=event.kind)

        try:
            await handler(event)
        except (LockConflictError, CorrelationMismatchError, NotFoundError) as e:
            self.logger.info(
                "orchestrator.event.dropped",
                kind=event.kind,
                reason=type(e).__name__,
                message=e.message,
            )

    # Commit

    async def on_commit(self, event: CommitEvent) -> None:
        """Create checks and queue deployments for a pushed commit."""
        if await self.platform.has_check_suite(event.sha):
            self.logger.info("orchestrator.commit.seen", sha=event.sha)
            return

        exists, entries = await asyncio.gather(
            self.workflows.exists(event.sha),
            self.configs.list(self.config_directory, event.sha),
        )
        decisions = decide_commit(entries, exists, event.trigger, event.branch)
        if not decisions:
            self.logger.info(
                "orchestrator.commit.unmatched",
                sha=event.sha,
                trigger=event.trigger,
                branch=event.branch,
            )
            return

        await self.platform.create_check_suite(event.sha)
        await asyncio.gather(
            *(self._apply_decision(decision, event.sha) for decision in decisions)
        )

    async def _apply_decision(self, decision: CommitDecision, sha: str) -> None:
        env = decision.environment
        check = await self.status.create_check(env, sha)

        if decision.status == DeploymentStatus.MISSING_WORKFLOW:
            await self.status.missing(env, check)
        elif decision.status == DeploymentStatus.INVALID:
            await self.status.invalid(env, check, decision.error or "")
        elif decision.status == DeploymentStatus.READY:
            await self.status.ready(env, check)
        else:
            try:
                await self.locks.lock(env, sha)
            except LockConflictError:
                # Busy environments fall back to a manual start
                self.logger.info("orchestrator.commit.busy", environment=env, sha=sha)
                await self.status.ready(env, check)
                return
            await self._queue(env, check, initial_plan(decision.config))

    # Manual action

    async def on_action_requested(self, event: ActionRequestedEvent) -> None:
        """Start a deployment by hand or advance it to its next stages."""
        env, sha = event.environment, event.sha
        current = await self._find_deployment(sha, env, event.check_run_id)

        if current is None:
            await self.locks.lock(env, sha)
            acquired = True
        else:
            acquired = await self.locks.ensure(env, sha)

        latest = await self.platform.find_latest_check_run(sha, env)
        if latest is None or latest.id != event.check_run_id:
            if acquired:
                await self._release(env)
            raise CorrelationMismatchError(
                f"Check run {event.check_run_id} is not the latest for {env} at {sha}",
                {"environment": env, "check_run_id": event.check_run_id},
            )

        # Must be the latest check before any slow call
        check = await self.status.create_check(env, sha)

        try:
            config = await self.configs.get(self.config_directory, sha, env)
        except (ValidationError, NotFoundError) as e:
            await self.status.invalid(env, check, e.message)
            await self._release(env)
            return

        if current is None:
            await self._queue(env, check, initial_plan(config))
            return

        produced = await self._produced_artifacts(env, sha)
        try:
            plan = advance_plan(config, current.payload, event.action, produced)
        except NotFoundError as e:
            await self.status.invalid(env, check, e.message)
            await self._release(env)
            return

        await self._queue(env, check, plan)
        await self.platform.delete_deployment(current.id)

    async def _produced_artifacts(self, env: str, sha: str) -> list[Artifact]:
        try:
            run = await self.workflows.latest_run(self.locks.reference(env), sha)
        except NotFoundError:
            self.logger.warning("orchestrator.artifacts.no_run", environment=env, sha=sha)
            return []
        return await self.workflows.artifacts(run)

    # Rerequest

    async def on_rerequest(self, event: RerequestEvent) -> None:
        """Retry a failed deployment with the state of the failed attempt."""
        env, sha = event.environment, event.sha

        previous = await self.platform.get_check_run(event.check_run_id)
        if previous.status != "completed" or previous.conclusion != "failure":
            self.logger.info(
                "orchestrator.rerequest.skipped",
                environment=env,
                status=previous.status,
                conclusion=previous.conclusion,
            )
            return

        current = await self._find_deployment(sha, env, event.check_run_id)
        if current is None:
            await self.locks.lock(env, sha)
        else:
            await self.locks.ensure(env, sha)

        if not await self.workflows.exists(sha):
            check = await self.status.create_check(env, sha)
            await self.status.missing(env, check)
            await self._release(env)
            return

        try:
            config = await self.configs.get(self.config_directory, sha, env)
        except (ValidationError, NotFoundError) as e:
            check = await self.status.create_check(env, sha)
            await self.status.invalid(env, check, e.message)
            await self._release(env)
            return

        plan = current.plan() if current else initial_plan(config)
        check = await self.status.create_check(env, sha)
        await self._queue(env, check, plan)
        if current is not None:
            await self.platform.delete_deployment(current.id)

    # Workflow runs

    async def on_run_started(self, event: RunStartedEvent) -> None:
        """Mark the current deployment as running."""
        env, sha = event.environment, event.sha
        acquired = await self.locks.ensure(env, sha)

        try:
            run = await self._correlate(env, sha, event.suite_id)
            if run.status == "completed":
                # Short workflows can report completion first.
                self.logger.info("orchestrator.run.already_completed", environment=env)
                return

            deployment = await self._latest_deployment(sha, env)
            check = await self.platform.get_check_run(deployment.payload.check_run_id)
            if check.status != "queued":
                return

            await self.status.started(env, check, deployment)
        finally:
            # A start never takes ownership of a free environment.
            if acquired:
                await self._release(env)

    async def on_run_completed(self, event: RunCompletedEvent) -> None:
        """Conclude the current deployment from its workflow run."""
        env, sha = event.environment, event.sha
        acquired = await self.locks.ensure(env, sha)

        try:
            run = await self._correlate(env, sha, event.suite_id)
            if run.status != "completed":
                hold = not acquired
            else:
                deployment = await self._latest_deployment(sha, env)
                check = await self.platform.get_check_run(
                    deployment.payload.check_run_id
                )
                if check.status == "completed":
                    # Concluded from inside the workflow already.
                    hold = check.conclusion == "action_required"
                else:
                    hold = await self._conclude(
                        env, sha, check, deployment, run.conclusion == "success"
                    )
        except (CorrelationMismatchError, NotFoundError):
            if acquired:
                await self._release(env)
            raise

        if not hold:
            await self._release(env)

    async def _correlate(self, env: str, sha: str, suite_id: int) -> WorkflowRun:
        run = await self.workflows.latest_run(self.locks.reference(env), sha)
        if not run.belongs_to(suite_id):
            raise CorrelationMismatchError(
                f"Invalid workflow run for {env} on {suite_id} at {sha}",
                {"environment": env, "suite_id": suite_id, "run_id": run.id},
            )
        return run

    # Status report

    async def on_status_report(self, event: StatusReportEvent) -> None:
        """Conclude a deployment from an out-of-band status."""
        if event.state not in ("success", "failure"):
            self.logger.info("orchestrator.status_report.ignored", state=event.state)
            return

        deployment = await self.platform.get_deployment(event.deployment_id)
        check = await self.platform.get_check_run(deployment.payload.check_run_id)
        env, sha = deployment.environment, deployment.sha

        hold = await self._conclude(
            env,
            sha,
            check,
            deployment,
            event.state == "success",
            text=event.output,
            url=event.url,
        )
        if hold:
            return

        try:
            await self.locks.ensure(env, sha)
        except LockConflictError:
            self.logger.info("orchestrator.status_report.foreign_lock", environment=env)
            return
        await self._release(env)

    # Shared steps

    async def _conclude(
        self,
        env: str,
        sha: str,
        check: CheckRun,
        deployment: Deployment,
        succeeded: bool,
        text: str | None = None,
        url: str | None = None,
    ) -> bool:
        """Post the outcome of a finished unit.

        Returns:
            True if the lock must stay held for further stages.
        """
        config: DeploymentConfig | None
        try:
            config = await self.configs.get(self.config_directory, sha, env)
        except (ValidationError, NotFoundError) as e:
            self.logger.warning(
                "orchestrator.config.unavailable", environment=env, error=e.message
            )
            config = None

        outcome, actions = completion_status(config, deployment.payload, succeeded)

        if outcome == DeploymentStatus.INCOMPLETE:
            await self.status.incomplete(env, check, deployment, actions, text)
            return True
        if outcome == DeploymentStatus.SUCCESS:
            await self.status.success(
                env, check, deployment, url or (config.url if config else None), text
            )
        else:
            await self.status.failure(env, check, deployment, text)
        return False

    async def _queue(
        self, env: str, check: CheckRun, plan: DeploymentPlan
    ) -> Deployment:
        deployment = await self.platform.create_deployment(
            environment=env,
            ref=self.locks.reference(env),
            task=plan.task,
            payload=plan.bind(check.id).model_dump(mode="json"),
        )
        await self.status.queued(env, check, deployment)
        return deployment

    async def _find_deployment(
        self, sha: str, env: str, check_run_id: int
    ) -> Deployment | None:
        deployments = await self.platform.list_deployments(
            sha, self.locks.reference(env), env
        )
        for deployment in deployments:
            if deployment.payload.check_run_id == check_run_id:
                return deployment
        return None

    async def _latest_deployment(self, sha: str, env: str) -> Deployment:
        deployments = await self.platform.list_deployments(
            sha, self.locks.reference(env), env
        )
        if not deployments:
            raise NotFoundError(
                f"No matching deployment for {env} at {sha}",
                {"environment": env, "sha": sha},
            )
        return deployments[0]

    async def _release(self, env: str) -> None:
        try:
            await self.locks.unlock(env)
        except NotFoundError:
            self.logger.info("orchestrator.lock.already_released", environment=env)


def get_orchestrator(platform: DeploymentPlatform) -> DeploymentOrchestrator:
    """Get an orchestrator bound to a repository's platform."""
    return DeploymentOrchestrator(platform)
