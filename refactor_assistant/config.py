"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. --config <path> CLI flag
2. ./refactor-assistant.yaml (working directory)
3. ~/.refactor-assistant/config.yaml (user home)

Environment variables override YAML: REFACTOR_ASSISTANT_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.
When no file is found, defaults (plus env overrides) are used.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ENV_PREFIX = "REFACTOR_ASSISTANT_"

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

# Mirrors the exclusion list the IDE extension applied before zipping.
DEFAULT_EXCLUDE_PATTERNS = [
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    "__pycache__",
    ".venv",
    "venv",
    "dist",
    "build",
    "package-lock.json",
    "yarn.lock",
    ".gitignore",
    ".gitattributes",
    ".eslintignore",
    ".prettierrc",
    ".npmrc",
    ".eslintrc.*",
    "*babel.config.*",
    ".env*",
    "license.txt",
    "License.txt",
    "LICENSE.txt",
    "LICENSE",
    "*.zip",
    "*.bin",
    "*.png",
    "*.jpg",
    "*.svg",
    "*.ico",
    "*.gif",
    "*.jfif",
    "*.pyc",
    "*.md",
    "*.sql",
]


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Args:
        value: String potentially containing ${VAR} references.

    Returns:
        String with all ${VAR} references replaced by their env values.
        Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve ${VAR} references in a nested data structure."""
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class RemoteConfig(BaseModel):
    """Connection settings for the remote refactoring job API."""

    base_url: str = "http://localhost:3030"
    timeout_seconds: float = 30.0
    identity_token: str | None = None


class PollingConfig(BaseModel):
    """Fixed-delay polling policy for long-running remote jobs."""

    interval_seconds: float = Field(default=5.0, ge=0)
    max_consecutive_errors: int = Field(default=3, ge=1)


class WorkspaceConfig(BaseModel):
    """Workspace snapshot settings."""

    root: str | None = None
    max_file_size_bytes: int = 10 * 1024 * 1024
    exclude_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS)
    )


class ArtifactConfig(BaseModel):
    """Where downloaded plans are written. None keeps them in memory."""

    directory: str | None = None


class ServerConfig(BaseModel):
    """Configuration for the HTTP/SSE server process."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"
    api_key: str | None = None


class AssistantConfig(BaseModel):
    """Top-level configuration for the Refactor Assistant."""

    remote: RemoteConfig = RemoteConfig()
    polling: PollingConfig = PollingConfig()
    workspace: WorkspaceConfig = WorkspaceConfig()
    artifacts: ArtifactConfig = ArtifactConfig()
    server: ServerConfig = ServerConfig()


def _find_config_file() -> Path | None:
    """Search for config file in standard locations.

    Returns:
        Path to config file if found, None otherwise.
    """
    candidates = [
        Path.cwd() / "refactor-assistant.yaml",
        Path.cwd() / "refactor-assistant.yml",
        Path.home() / ".refactor-assistant" / "config.yaml",
        Path.home() / ".refactor-assistant" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply REFACTOR_ASSISTANT_<SECTION>_<KEY> env var overrides.

    Section names are matched by longest prefix. For example,
    ``REFACTOR_ASSISTANT_POLLING_INTERVAL_SECONDS`` maps to section
    ``polling``, field ``interval_seconds``.

    Args:
        data: Parsed YAML config dict.

    Returns:
        Config dict with env var overrides applied.
    """
    known_sections = sorted(
        AssistantConfig.model_fields.keys(), key=len, reverse=True
    )
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX):].lower()
        matched_section = None
        matched_field = None
        for section in known_sections:
            section_prefix = section + "_"
            if suffix.startswith(section_prefix):
                matched_section = section
                matched_field = suffix[len(section_prefix):]
                break
        if matched_section is None or not matched_field:
            continue
        if data.get(matched_section) is None:
            data[matched_section] = {}
        if isinstance(data[matched_section], dict):
            # Raw string; pydantic coerces to the declared field type
            data[matched_section][matched_field] = value
    return data


def load_config(config_path: str | None = None) -> AssistantConfig:
    """Load configuration from YAML file with env var resolution.

    Args:
        config_path: Explicit path to config file. If None, searches
            standard locations (cwd, then ~/.refactor-assistant/).

    Returns:
        Parsed and validated AssistantConfig.

    Raises:
        FileNotFoundError: If an explicit config_path does not exist.
    """
    if config_path:
        path: Path | None = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = _find_config_file()

    raw_data: dict[str, Any] = {}
    if path is not None:
        logger.info("Loading config from %s", path)
        with open(path) as f:
            raw_data = yaml.safe_load(f) or {}
    else:
        logger.info("No config file found, using defaults")

    data = _resolve_env_vars_recursive(raw_data)
    data = _apply_env_overrides(data)
    return AssistantConfig(**data)
