"""Translation of GitHub webhook deliveries into inbound events."""

import hashlib
import hmac
from typing import Any

import pydantic

from deploybot.core.exceptions import ValidationError
from deploybot.core.locks import lock_environment
from deploybot.models.events import (
    ActionRequestedEvent,
    CommitEvent,
    InboundEvent,
    RepositoryRef,
    RerequestEvent,
    RunCompletedEvent,
    RunStartedEvent,
    StatusReportEvent,
)

WORKFLOW_APP_SLUG = "github-actions"


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Check an ``X-Hub-Signature-256`` header against the raw body."""
    if not signature or not signature.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature[len("sha256="):], expected)


def repository_ref(payload: dict[str, Any]) -> RepositoryRef:
    repository = payload["repository"]
    owner = repository["owner"]
    installation = payload.get("installation") or {}
    return RepositoryRef(
        owner=owner.get("login") or owner["name"],
        name=repository["name"],
        installation_id=installation.get("id"),
    )


def _push(payload: dict[str, Any], prefix: str) -> InboundEvent | None:
    if payload.get("deleted"):
        return None
    ref = payload["ref"]
    if not ref.startswith("refs/heads/"):
        return None
    return CommitEvent(
        sha=payload["after"], branch=ref[len("refs/heads/"):], trigger="push"
    )


def _pull_request(payload: dict[str, Any], prefix: str) -> InboundEvent | None:
    if payload.get("action") not in ("opened", "synchronize"):
        return None
    pull = payload["pull_request"]
    return CommitEvent(
        sha=pull["head"]["sha"], branch=pull["base"]["ref"], trigger="pull_request"
    )


def _check_run(payload: dict[str, Any], prefix: str) -> InboundEvent | None:
    action = payload.get("action")
    run = payload["check_run"]

    if action == "created":
        if (run.get("app") or {}).get("slug") != WORKFLOW_APP_SLUG:
            return None
        suite = run["check_suite"]
        env = lock_environment(suite.get("head_branch"), prefix)
        if env is None:
            return None
        return RunStartedEvent(sha=run["head_sha"], environment=env, suite_id=suite["id"])

    # Only checks created by this app carry the environment as external id.
    if not run.get("external_id"):
        return None

    if action == "requested_action":
        return ActionRequestedEvent(
            sha=run["head_sha"],
            environment=run["external_id"],
            check_run_id=run["id"],
            action=payload["requested_action"]["identifier"],
        )
    if action == "rerequested":
        return RerequestEvent(
            sha=run["head_sha"],
            environment=run["external_id"],
            check_run_id=run["id"],
        )
    return None


def _check_suite(payload: dict[str, Any], prefix: str) -> InboundEvent | None:
    if payload.get("action") != "completed":
        return None
    suite = payload["check_suite"]
    if (suite.get("app") or {}).get("slug") != WORKFLOW_APP_SLUG:
        return None
    env = lock_environment(suite.get("head_branch"), prefix)
    if env is None:
        return None
    return RunCompletedEvent(sha=suite["head_sha"], environment=env, suite_id=suite["id"])


def _repository_dispatch(payload: dict[str, Any], prefix: str) -> InboundEvent | None:
    if payload.get("action") != "deployment_status":
        return None
    return StatusReportEvent.model_validate(payload.get("client_payload") or {})


_PARSERS = {
    "push": _push,
    "pull_request": _pull_request,
    "check_run": _check_run,
    "check_suite": _check_suite,
    "repository_dispatch": _repository_dispatch,
}


def parse_webhook(
    name: str, payload: dict[str, Any], prefix: str
) -> tuple[RepositoryRef, InboundEvent] | None:
    """Map a webhook delivery to the event the orchestrator handles.

    Args:
        name: Value of the ``X-GitHub-Event`` header.
        payload: Decoded delivery body.
        prefix: Branch prefix of environment locks.

    Returns:
        The repository and event, or None for deliveries that need no work.

    Raises:
        ValidationError: If a handled delivery is missing required fields.
    """
    parser = _PARSERS.get(name)
    if parser is None:
        return None

    try:
        event = parser(payload, prefix)
        if event is None:
            return None
        return repository_ref(payload), event
    except (KeyError, TypeError, AttributeError, pydantic.ValidationError) as e:
        raise ValidationError(f"Malformed {name} payload: {e}") from e
