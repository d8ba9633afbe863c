"""Integration tests for the deployment orchestrator."""

import pytest

from deploybot.core.exceptions import PlatformError
from deploybot.models.events import (
    ActionRequestedEvent,
    CommitEvent,
    RerequestEvent,
    RunCompletedEvent,
    RunStartedEvent,
    StatusReportEvent,
)
from deploybot.models.platform import Artifact

SHA = "0a1b2c3d"
LOCK = "deployments/production"
PRODUCTION = ".github/deployments/production.yml"

APPROVAL = """
on: push
url: https://example.com
stages:
  deploy:
    actions:
      approve:
        name: Approve
        description: Promote the release
        runs: approve
  approve:
    needs: deploy
"""


def push(sha: str = SHA, branch: str = "main") -> CommitEvent:
    return CommitEvent(sha=sha, branch=branch, trigger="push")


async def run_workflow(platform, orchestrator, suite_id: int, conclusion: str = "success"):
    """Report a deployment workflow run from start to finish."""
    run = platform.add_run(LOCK, SHA, suite_id=suite_id)
    await orchestrator.handle(
        RunStartedEvent(sha=SHA, environment="production", suite_id=suite_id)
    )
    run = platform.finish_run(run, conclusion)
    await orchestrator.handle(
        RunCompletedEvent(sha=SHA, environment="production", suite_id=suite_id)
    )
    return run


class TestCommit:
    """Tests for push and pull request handling."""

    @pytest.mark.asyncio
    async def test_push_queues_deployment(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: push\n")

        await orchestrator.handle(push())

        [check] = repo.checks_for("production")
        [deployment] = repo.deployments_for("production")
        assert repo.refs == {LOCK: SHA}
        assert check.status == "queued"
        assert deployment.task == "deploy"
        assert deployment.ref == LOCK
        assert deployment.payload.check_run_id == check.id
        assert deployment.payload.stages == ("deploy",)
        assert deployment.payload.completed_stages == ()
        assert deployment.payload.artifacts == {}
        assert repo.states(deployment.id) == ["queued"]

    @pytest.mark.asyncio
    async def test_redelivery_is_noop(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: push\n")

        await orchestrator.handle(push())
        await orchestrator.handle(push())
        await orchestrator.handle(CommitEvent(sha=SHA, branch="main", trigger="pull_request"))

        assert len(repo.check_runs) == 1
        assert len(repo.deployments) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("branch,queued", [("master", True), ("develop", False)])
    async def test_pull_request_branch_filter(self, repo, orchestrator, branch, queued):
        repo.add_file(PRODUCTION, "on:\n  pull_request:\n    branches: [master]\n")

        await orchestrator.handle(CommitEvent(sha=SHA, branch=branch, trigger="pull_request"))

        assert bool(repo.deployments_for("production")) is queued
        assert bool(repo.refs) is queued
        assert (SHA in repo.suites) is queued

    @pytest.mark.asyncio
    async def test_environments_are_independent(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: push\n")
        repo.add_file(".github/deployments/staging.yml", "on: push\n")

        await orchestrator.handle(push())

        assert repo.refs == {LOCK: SHA, "deployments/staging": SHA}
        assert len(repo.deployments_for("production")) == 1
        assert len(repo.deployments_for("staging")) == 1

    @pytest.mark.asyncio
    async def test_invalid_config_does_not_block_others(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: push\n")
        repo.add_file(".github/deployments/broken.yml", "id: 'a&b'\non: push\n")

        await orchestrator.handle(push())

        [broken] = repo.checks_for("broken")
        assert broken.status == "completed"
        assert broken.conclusion == "failure"
        assert repo.check_outputs[broken.id].title == "Invalid"
        assert repo.check_outputs[broken.id].text.startswith("## Error\n\n```\n")
        assert repo.refs == {LOCK: SHA}

    @pytest.mark.asyncio
    async def test_missing_workflow(self, platform, orchestrator):
        platform.add_file(PRODUCTION, "on: push\n")

        await orchestrator.handle(push())

        [check] = platform.checks_for("production")
        assert check.conclusion == "failure"
        assert platform.check_outputs[check.id].title == "Missing workflow"
        assert platform.refs == {}
        assert platform.deployments == {}

    @pytest.mark.asyncio
    async def test_busy_environment_falls_back_to_ready(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: push\n")
        repo.refs[LOCK] = "ffffffff"

        await orchestrator.handle(push())

        [check] = repo.checks_for("production")
        assert check.conclusion == "neutral"
        assert [a.identifier for a in repo.check_actions[check.id]] == ["deploy"]
        assert repo.refs == {LOCK: "ffffffff"}
        assert repo.deployments == {}

    @pytest.mark.asyncio
    async def test_manual_config_is_ready(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: manual\n")

        await orchestrator.handle(push())

        [check] = repo.checks_for("production")
        assert check.conclusion == "neutral"
        assert repo.check_outputs[check.id].title == "Not deployed"
        assert repo.refs == {}

    @pytest.mark.asyncio
    async def test_platform_errors_propagate(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: push\n")

        async def unavailable(sha):
            raise PlatformError("GitHub create_check_suite failed", status_code=502)

        repo.create_check_suite = unavailable

        with pytest.raises(PlatformError):
            await orchestrator.handle(push())


class TestManualAction:
    """Tests for action requests on check runs."""

    @pytest.mark.asyncio
    async def test_manual_start(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: manual\n")
        await orchestrator.handle(push())
        [ready] = repo.checks_for("production")

        await orchestrator.handle(
            ActionRequestedEvent(
                sha=SHA, environment="production", check_run_id=ready.id, action="deploy"
            )
        )

        [deployment] = repo.deployments_for("production")
        assert repo.refs == {LOCK: SHA}
        assert deployment.payload.stages == ("deploy",)
        assert deployment.payload.check_run_id != ready.id

    @pytest.mark.asyncio
    async def test_duplicate_request_is_dropped(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: manual\n")
        await orchestrator.handle(push())
        [ready] = repo.checks_for("production")
        event = ActionRequestedEvent(
            sha=SHA, environment="production", check_run_id=ready.id, action="deploy"
        )

        await orchestrator.handle(event)
        await orchestrator.handle(event)

        assert len(repo.deployments_for("production")) == 1
        assert len(repo.checks_for("production")) == 2

    @pytest.mark.asyncio
    async def test_stale_request_releases_fresh_lock(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: manual\n")
        await orchestrator.handle(push())
        [stale] = repo.checks_for("production")
        await orchestrator.status.create_check("production", SHA)

        await orchestrator.handle(
            ActionRequestedEvent(
                sha=SHA, environment="production", check_run_id=stale.id, action="deploy"
            )
        )

        assert repo.refs == {}
        assert repo.deployments == {}

    @pytest.mark.asyncio
    async def test_invalid_config_releases_lock(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: manual\n")
        await orchestrator.handle(push())
        [ready] = repo.checks_for("production")
        repo.add_file(PRODUCTION, "on: manual\nstages: {}\n")

        await orchestrator.handle(
            ActionRequestedEvent(
                sha=SHA, environment="production", check_run_id=ready.id, action="deploy"
            )
        )

        latest = repo.checks_for("production")[-1]
        assert latest.conclusion == "failure"
        assert repo.check_outputs[latest.id].title == "Invalid"
        assert repo.refs == {}


class TestMultiStage:
    """Tests for deployments that pause for an action between stages."""

    @pytest.mark.asyncio
    async def test_approval_flow(self, repo, orchestrator):
        repo.add_file(PRODUCTION, APPROVAL)
        await orchestrator.handle(push())
        [first] = repo.deployments_for("production")
        assert first.payload.stages == ("deploy",)

        run = await run_workflow(repo, orchestrator, suite_id=100)
        repo.artifacts[run.id] = [
            Artifact(id=9, name="build", archive_download_url="https://github.test/a/9")
        ]

        check = await repo.get_check_run(first.payload.check_run_id)
        assert check.conclusion == "action_required"
        assert [a.identifier for a in repo.check_actions[check.id]] == ["approve"]
        assert repo.states(first.id)[-1] == "pending"
        assert repo.refs == {LOCK: SHA}

        await orchestrator.handle(
            ActionRequestedEvent(
                sha=SHA, environment="production", check_run_id=check.id, action="approve"
            )
        )

        [second] = repo.deployments_for("production")
        assert first.id in repo.deleted_deployments
        assert second.task == "deploy:approve"
        assert second.payload.stages == ("approve",)
        assert second.payload.completed_stages == ("deploy",)
        assert second.payload.artifacts["build"].url == "https://github.test/a/9"
        assert repo.refs == {LOCK: SHA}

        await run_workflow(repo, orchestrator, suite_id=200)

        final = await repo.get_check_run(second.payload.check_run_id)
        assert final.conclusion == "success"
        assert repo.deployment_statuses[second.id][-1]["environment_url"] == "https://example.com"
        assert repo.deployment_statuses[second.id][-1]["auto_inactive"] is True
        assert repo.refs == {}

    @pytest.mark.asyncio
    async def test_duplicate_completion_keeps_lock(self, repo, orchestrator):
        repo.add_file(PRODUCTION, APPROVAL)
        await orchestrator.handle(push())
        await run_workflow(repo, orchestrator, suite_id=100)

        await orchestrator.handle(
            RunCompletedEvent(sha=SHA, environment="production", suite_id=100)
        )

        assert repo.refs == {LOCK: SHA}

    @pytest.mark.asyncio
    async def test_unknown_action_releases_lock(self, repo, orchestrator):
        repo.add_file(PRODUCTION, APPROVAL)
        await orchestrator.handle(push())
        await run_workflow(repo, orchestrator, suite_id=100)
        [deployment] = repo.deployments_for("production")

        await orchestrator.handle(
            ActionRequestedEvent(
                sha=SHA,
                environment="production",
                check_run_id=deployment.payload.check_run_id,
                action="rollback",
            )
        )

        latest = repo.checks_for("production")[-1]
        assert latest.conclusion == "failure"
        assert repo.refs == {}


class TestWorkflowRuns:
    """Tests for run started and completed handling."""

    @pytest.mark.asyncio
    async def test_single_stage_success(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: push\n")
        await orchestrator.handle(push())
        [deployment] = repo.deployments_for("production")

        run = repo.add_run(LOCK, SHA, suite_id=100)
        await orchestrator.handle(
            RunStartedEvent(sha=SHA, environment="production", suite_id=100)
        )

        check = await repo.get_check_run(deployment.payload.check_run_id)
        assert check.status == "in_progress"
        assert repo.states(deployment.id) == ["queued", "in_progress"]

        repo.finish_run(run, "success")
        await orchestrator.handle(
            RunCompletedEvent(sha=SHA, environment="production", suite_id=100)
        )

        check = await repo.get_check_run(deployment.payload.check_run_id)
        assert check.conclusion == "success"
        assert repo.refs == {}

    @pytest.mark.asyncio
    async def test_failure_releases_lock(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: push\n")
        await orchestrator.handle(push())
        [deployment] = repo.deployments_for("production")

        await run_workflow(repo, orchestrator, suite_id=100, conclusion="failure")

        check = await repo.get_check_run(deployment.payload.check_run_id)
        assert check.conclusion == "failure"
        assert repo.deployment_statuses[deployment.id][-1]["auto_inactive"] is False
        assert repo.refs == {}

    @pytest.mark.asyncio
    async def test_foreign_suite_is_dropped(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: push\n")
        await orchestrator.handle(push())
        [deployment] = repo.deployments_for("production")
        repo.add_run(LOCK, SHA, suite_id=100)

        await orchestrator.handle(
            RunStartedEvent(sha=SHA, environment="production", suite_id=999)
        )

        check = await repo.get_check_run(deployment.payload.check_run_id)
        assert check.status == "queued"
        assert repo.refs == {LOCK: SHA}

    @pytest.mark.asyncio
    async def test_late_start_does_not_relock(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: push\n")
        await orchestrator.handle(push())
        await run_workflow(repo, orchestrator, suite_id=100)

        await orchestrator.handle(
            RunStartedEvent(sha=SHA, environment="production", suite_id=100)
        )

        [check] = repo.checks_for("production")
        assert check.conclusion == "success"
        assert repo.refs == {}

    @pytest.mark.asyncio
    async def test_run_for_other_commit_is_dropped(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: push\n")
        await orchestrator.handle(push())

        await orchestrator.handle(
            RunCompletedEvent(sha="99999999", environment="production", suite_id=100)
        )

        assert repo.refs == {LOCK: SHA}


class TestRerequest:
    """Tests for retrying failed deployments."""

    @pytest.mark.asyncio
    async def test_rerequest_reuses_failed_state(self, repo, orchestrator):
        repo.add_file(PRODUCTION, APPROVAL)
        await orchestrator.handle(push())
        [failed] = repo.deployments_for("production")
        await run_workflow(repo, orchestrator, suite_id=100, conclusion="failure")
        assert repo.refs == {}

        await orchestrator.handle(
            RerequestEvent(
                sha=SHA, environment="production", check_run_id=failed.payload.check_run_id
            )
        )

        [retry] = repo.deployments_for("production")
        assert failed.id in repo.deleted_deployments
        assert retry.task == failed.task
        assert retry.payload.stages == failed.payload.stages
        assert retry.payload.completed_stages == failed.payload.completed_stages
        assert retry.payload.artifacts == failed.payload.artifacts
        assert retry.payload.check_run_id != failed.payload.check_run_id
        assert repo.states(retry.id) == ["queued"]
        assert repo.refs == {LOCK: SHA}

    @pytest.mark.asyncio
    async def test_rerequest_of_unfinished_check_is_ignored(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: push\n")
        await orchestrator.handle(push())
        [deployment] = repo.deployments_for("production")

        await orchestrator.handle(
            RerequestEvent(
                sha=SHA,
                environment="production",
                check_run_id=deployment.payload.check_run_id,
            )
        )

        assert len(repo.checks_for("production")) == 1
        assert repo.deleted_deployments == []

    @pytest.mark.asyncio
    async def test_rerequest_without_workflow(self, platform, orchestrator):
        platform.add_file(PRODUCTION, "on: push\n")
        await orchestrator.handle(push())
        [missing] = platform.checks_for("production")

        await orchestrator.handle(
            RerequestEvent(sha=SHA, environment="production", check_run_id=missing.id)
        )

        latest = platform.checks_for("production")[-1]
        assert latest.id != missing.id
        assert platform.check_outputs[latest.id].title == "Missing workflow"
        assert platform.refs == {}


class TestStatusReport:
    """Tests for out-of-band status reports."""

    @pytest.mark.asyncio
    async def test_success_report(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: push\nurl: https://example.com\n")
        await orchestrator.handle(push())
        [deployment] = repo.deployments_for("production")

        await orchestrator.handle(
            StatusReportEvent(
                deployment_id=deployment.id,
                state="success",
                output="Smoke tests passed",
                url="https://preview.example.com",
            )
        )

        check = await repo.get_check_run(deployment.payload.check_run_id)
        assert check.conclusion == "success"
        assert repo.check_outputs[check.id].text == "Smoke tests passed"
        status = repo.deployment_statuses[deployment.id][-1]
        assert status["environment_url"] == "https://preview.example.com"
        assert repo.refs == {}

    @pytest.mark.asyncio
    async def test_incomplete_report_keeps_lock(self, repo, orchestrator):
        repo.add_file(PRODUCTION, APPROVAL)
        await orchestrator.handle(push())
        [deployment] = repo.deployments_for("production")

        await orchestrator.handle(
            StatusReportEvent(deployment_id=deployment.id, state="success")
        )

        check = await repo.get_check_run(deployment.payload.check_run_id)
        assert check.conclusion == "action_required"
        assert repo.refs == {LOCK: SHA}

    @pytest.mark.asyncio
    async def test_completion_after_report(self, repo, orchestrator):
        repo.add_file(PRODUCTION, "on: push\n")
        await orchestrator.handle(push())
        [deployment] = repo.deployments_for("production")
        await orchestrator.handle(
            StatusReportEvent(deployment_id=deployment.id, state="failure")
        )

        await run_workflow(repo, orchestrator, suite_id=100)

        check = await repo.get_check_run(deployment.payload.check_run_id)
        assert check.conclusion == "failure"
        assert repo.refs == {}

    @pytest.mark.asyncio
    async def test_unknown_deployment_is_dropped(self, repo, orchestrator):
        await orchestrator.handle(StatusReportEvent(deployment_id=404, state="success"))

        assert repo.check_runs == {}
