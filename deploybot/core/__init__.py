"""Core functionality for deploybot."""

from deploybot.core.exceptions import (
    CorrelationMismatchError,
    DeployBotError,
    LockConflictError,
    NotFoundError,
    PlatformError,
    ReferenceExistsError,
    ValidationError,
)
from deploybot.core.configs import ConfigLoader
from deploybot.core.locks import LockManager
from deploybot.core.orchestrator import DeploymentOrchestrator, get_orchestrator

__all__ = [
    "CorrelationMismatchError",
    "DeployBotError",
    "LockConflictError",
    "NotFoundError",
    "PlatformError",
    "ReferenceExistsError",
    "ValidationError",
    "ConfigLoader",
    "LockManager",
    "DeploymentOrchestrator",
    "get_orchestrator",
]
