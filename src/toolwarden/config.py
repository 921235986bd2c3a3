"""
Toolwarden Configuration

Settings are resolved once per session and handed to the agent loop as a
snapshot. Resolution order (later wins):

  1. Built-in defaults
  2. The nearest ``.toolwarden.toml`` found walking up from the working
     directory, or else the global ``~/.config/toolwarden/config.toml``
  3. Environment variables TOOLWARDEN_POLICY, TOOLWARDEN_MODEL,
     TOOLWARDEN_PROVIDER and TOOLWARDEN_MAX_ITERATIONS

The API key falls back to ANTHROPIC_API_KEY / OPENAI_API_KEY through the
provider SDKs when not configured here.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from toolwarden.core.models import PolicyLevel
from toolwarden.exceptions import ConfigurationError
from toolwarden.logging import get_logger
from toolwarden.tools.user_defined import UserToolConfig

logger = get_logger("toolwarden.config")

PROJECT_CONFIG_FILE = ".toolwarden.toml"
GLOBAL_CONFIG_PATH = Path("~/.config/toolwarden/config.toml")

ENV_OVERRIDES = {
    "TOOLWARDEN_POLICY": "policy",
    "TOOLWARDEN_MODEL": "model",
    "TOOLWARDEN_PROVIDER": "provider",
    "TOOLWARDEN_MAX_ITERATIONS": "max_iterations",
}


class Settings(BaseModel):
    """Resolved toolwarden settings."""

    policy: PolicyLevel = PolicyLevel.CONFIRM_WRITES
    max_iterations: int = Field(default=10, ge=1, le=1000)
    provider: Literal["claude", "openai"] = "claude"
    model: str | None = None
    api_key: str | None = None
    base_url: str | None = None
    system_prompt: str | None = None
    confirmation_timeout_seconds: float | None = Field(default=300.0, gt=0)
    abort_on_deny: bool = False
    max_concurrency: int = Field(default=4, ge=1, le=64)
    workspace: Path = Field(default_factory=Path.cwd)
    command_timeout_seconds: float = Field(default=120.0, gt=0, le=3600)
    max_output_bytes: int = Field(default=65536, ge=1024)
    log_level: str = "WARNING"
    json_logs: bool = False
    user_tools: list[UserToolConfig] = Field(default_factory=list)

    @field_validator("policy", mode="before")
    @classmethod
    def _normalize_policy(cls, value: Any) -> Any:
        # Accept "confirm-writes", "confirm_writes", "ConfirmWrites" alike
        if isinstance(value, str):
            text = value.strip().replace("-", "_")
            if "_" not in text and not text.isupper():
                text = "".join(f"_{c}" if c.isupper() else c for c in text).lstrip("_")
            return text.upper()
        return value

    @field_validator("provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            return "claude" if value == "anthropic" else value
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value!r}")
        return level


def find_project_config(start: Path | None = None) -> Path | None:
    """The nearest project config file at or above ``start``."""
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / PROJECT_CONFIG_FILE
        if candidate.is_file():
            return candidate
    return None


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse one TOML config file.

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigurationError(f"cannot read config file: {e}", source=str(path)) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"invalid TOML: {e}", source=str(path)) from e

    # Relative workspace paths are relative to the config file
    workspace = data.get("workspace")
    if isinstance(workspace, str) and not Path(workspace).expanduser().is_absolute():
        data["workspace"] = str((path.parent / workspace).resolve())
    return data


def load_settings(
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    global_path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Resolve settings from files, environment and explicit overrides.

    Args:
        cwd: Directory to start the project config search from.
        env: Environment mapping (defaults to ``os.environ``).
        global_path: Global config file location override.
        overrides: Highest-priority values, e.g. from CLI flags. ``None``
            values are ignored.

    Raises:
        ConfigurationError: If any source holds invalid content.
    """
    env = os.environ if env is None else env
    data: dict[str, Any] = {}
    source = "defaults"

    project = find_project_config(cwd)
    if project is not None:
        data.update(read_config_file(project))
        source = str(project)
        logger.info("Loaded project configuration from %s", project)
    else:
        global_file = (global_path or GLOBAL_CONFIG_PATH).expanduser()
        if global_file.is_file():
            data.update(read_config_file(global_file))
            source = str(global_file)
            logger.info("Loaded global configuration from %s", global_file)

    if "workspace" not in data and cwd is not None:
        data["workspace"] = str(cwd)

    for var, key in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            data[key] = value
            source = f"{source} + ${var}"

    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigurationError(
            "invalid configuration: " + "; ".join(problems),
            source=source,
            details={"problems": problems},
        ) from e
