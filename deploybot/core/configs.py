"""Deployment configuration loading.

Descriptors live as ``*.yml``/``*.yaml`` files in one directory of the
repository and are read fresh at the commit being processed.
"""

import asyncio
import re
from pathlib import PurePosixPath
from typing import Any

import pydantic
import yaml

from deploybot.core.exceptions import NotFoundError, ValidationError
from deploybot.core.graph import validate_stage_graph
from deploybot.models.config import DeploymentConfig
from deploybot.services.platform import DeploymentPlatform
from deploybot.utils.logging import get_logger

logger = get_logger(__name__)

YAML_SUFFIXES = (".yml", ".yaml")

ConfigEntry = DeploymentConfig | ValidationError


def derive_id(path: str) -> str:
    """Derive an environment id from a descriptor's filename."""
    return re.sub(r"[\W_-]+", "-", PurePosixPath(path).stem)


def defaults(path: str) -> dict[str, Any]:
    """Default descriptor values applied before validation."""
    env_id = derive_id(path)
    return {
        "id": env_id,
        "description": f"The {env_id} environment.",
        "stages": {
            "deploy": {
                "name": "Deploy",
                "description": f"Deploy to {env_id}",
            },
        },
    }


def load_yaml(raw: bytes | str) -> Any:
    """Decode YAML, restoring an ``on`` key read as boolean true."""
    data = yaml.safe_load(raw)
    if isinstance(data, dict) and True in data and "on" not in data:
        data["on"] = data.pop(True)
    return data


def _format_errors(error: pydantic.ValidationError) -> str:
    lines = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        lines.append(f"{location}: {item['msg']}")
    return "\n".join(lines)


def parse(raw: bytes | str | dict[str, Any], path: str) -> DeploymentConfig:
    """Parse and validate one descriptor.

    Args:
        raw: File content, or already decoded data.
        path: Path of the file, used to derive defaults.

    Raises:
        ValidationError: If the descriptor is malformed in shape or graph.
    """
    if isinstance(raw, dict):
        data: Any = raw
    else:
        try:
            data = load_yaml(raw)
        except yaml.YAMLError as e:
            raise ValidationError(f"Invalid YAML: {e}", path=path) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Expected a mapping at the top level", path=path)

    merged = {**defaults(path), **data}
    merged.setdefault("name", merged.get("id"))

    try:
        config = DeploymentConfig.model_validate(merged)
    except pydantic.ValidationError as e:
        raise ValidationError(_format_errors(e), path=path) from e

    try:
        validate_stage_graph(config.stages)
    except ValidationError as e:
        raise ValidationError(e.message, path=path) from e

    return config


class ConfigLoader:
    """Loads environment descriptors from the repository."""

    def __init__(self, platform: DeploymentPlatform):
        self.platform = platform

    async def load(self, path: str, ref: str) -> DeploymentConfig:
        """Read and parse one descriptor."""
        raw = await self.platform.read_file(path, ref)
        return parse(raw, path)

    async def _load_entry(self, path: str, ref: str) -> ConfigEntry | None:
        try:
            return await self.load(path, ref)
        except ValidationError as e:
            return e
        except NotFoundError:
            logger.warning("configs.vanished", path=path, ref=ref)
            return None

    async def list(self, directory: str, ref: str) -> dict[str, ConfigEntry]:
        """Load every descriptor in ``directory``, non-recursively.

        Each file is parsed on its own. Valid descriptors are placed first,
        keyed by their id; an id declared by two files is reported as an
        error on the later one. Failing files are then keyed by their
        filename-derived id, or by their path when that id is taken.
        """
        entries = [
            entry
            for entry in await self.platform.list_directory(directory, ref)
            if entry.type == "file" and entry.name.endswith(YAML_SUFFIXES)
        ]
        results = await asyncio.gather(
            *(self._load_entry(entry.path, ref) for entry in entries)
        )

        items: dict[str, ConfigEntry] = {}
        failures: list[tuple[str, ValidationError]] = []
        for entry, result in zip(entries, results):
            if isinstance(result, DeploymentConfig):
                if result.id not in items:
                    items[result.id] = result
                    continue
                result = ValidationError(
                    f"Duplicate environment id '{result.id}'", path=entry.path
                )
            if result is not None:
                failures.append((entry.path, result))

        for path, result in failures:
            key = derive_id(path)
            if key in items:
                key = path
            items[key] = result
            logger.warning(
                "configs.invalid",
                path=path,
                ref=ref,
                error=result.message,
            )

        return items

    async def get(self, directory: str, ref: str, env: str) -> DeploymentConfig:
        """Load the descriptor for one environment.

        Raises:
            ValidationError: If the environment's descriptor is invalid.
            NotFoundError: If no descriptor declares the environment.
        """
        items = await self.list(directory, ref)
        entry = items.get(env)

        if isinstance(entry, DeploymentConfig):
            return entry
        if isinstance(entry, ValidationError):
            raise entry

        raise NotFoundError(
            f"Unable to get config for {env} at {ref}",
            {"environment": env, "ref": ref},
        )
