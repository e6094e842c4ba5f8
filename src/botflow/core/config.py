# src/botflow/core/config.py
"""
Configuration schema and loading for botflow.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

import os
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field


class CompilerSettings(BaseModel):
    """Ceilings enforced while validating and compiling a graph.

    Example YAML:
        compiler:
          max_nodes: 100
          max_edges: 200
          max_depth: 20
    """

    model_config = {"frozen": True}

    max_nodes: int = Field(default=100, gt=0, description="Maximum nodes per plugin graph")
    max_edges: int = Field(default=200, gt=0, description="Maximum edges per plugin graph")
    max_depth: int = Field(default=20, gt=0, description="Maximum breadth-first depth from a trigger")
    max_indent_depth: int = Field(
        default=50,
        gt=0,
        description="Indentation levels at which generated lines are clamped",
    )
    default_max_iterations: int = Field(
        default=1000,
        ge=0,
        description="Iteration cap for loop nodes that do not set maxIterations",
    )
    max_json_path_length: int = Field(default=1000, gt=0, description="Longest accepted JSON extraction path")


class RuntimeSettings(BaseModel):
    """Settings for loading and invoking compiled routines."""

    model_config = {"frozen": True}

    timeout_seconds: float = Field(default=5.0, gt=0, description="Wall-clock limit per invocation")
    http_timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout for http_request nodes")
    state_database_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL for the plugin state store; in-memory when unset",
    )


class LoggingSettings(BaseModel):
    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_output: bool = False


class BotflowSettings(BaseModel):
    """Top-level settings. Every section has defaults, so an empty file is valid."""

    model_config = {"frozen": True}

    compiler: CompilerSettings = Field(default_factory=CompilerSettings)
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(value: Any) -> Any:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in string values."""
    if isinstance(value, str):

        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            if match.group(2) is not None:
                return match.group(2)
            # Unresolved; left in place so validation reports it.
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    return value


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def load_settings(config_path: Path | None = None) -> BotflowSettings:
    """Load settings from a YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (BOTFLOW_*) - highest priority
    2. Config file, when given
    3. Defaults from the Pydantic schema - lowest priority

    Environment variable format: BOTFLOW_RUNTIME__TIMEOUT_SECONDS for nested keys.

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config_path is given but doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="BOTFLOW",
        settings_files=[str(config_path)] if config_path is not None else [],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k: v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = _expand_env_vars(_lower_keys(raw_config))

    return BotflowSettings(**raw_config)
