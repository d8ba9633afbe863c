"""Custom exceptions for deploybot."""

from typing import Any


class DeployBotError(Exception):
    """Base exception for deploybot."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(DeployBotError):
    """Deployment configuration is malformed."""

    def __init__(self, message: str, path: str | None = None):
        details = {}
        if path is not None:
            details["path"] = path
        super().__init__(message, details)
        self.path = path


class NotFoundError(DeployBotError):
    """A resource the orchestrator correlates against does not exist."""

    pass


class LockConflictError(DeployBotError):
    """An environment lock is held by a different commit or cannot be taken."""

    def __init__(self, message: str, environment: str, sha: str | None = None):
        super().__init__(message, {"environment": environment, "sha": sha})
        self.environment = environment
        self.sha = sha


class CorrelationMismatchError(DeployBotError):
    """An inbound event refers to a stale or unrelated run or check."""

    pass


class PlatformError(DeployBotError):
    """The hosting platform rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        details = {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details)
        self.status_code = status_code


class ReferenceExistsError(PlatformError):
    """A git reference could not be created because it already exists."""

    def __init__(self, ref: str):
        super().__init__(f"Reference already exists: {ref}", status_code=422)
        self.ref = ref
