"""
Configuration loader for Agent Buddy.
Merges defaults with per-directory .agentbuddy/config.yaml overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or a required key is missing."""


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

class EndpointConfig(BaseModel):
    model: str = "openai/gemini-2.0-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    api_key_env: str = "GEMINI_API_KEY"
    temperature: float = 0.2
    max_tokens: int = 8192
    request_attempts: int = Field(default=3, ge=1)
    retry_wait_min: float = Field(default=1.0, ge=0)
    retry_wait_max: float = Field(default=10.0, ge=0)


class LimitsConfig(BaseModel):
    max_protocol_retries: int = Field(default=3, ge=1)
    max_turns_per_cycle: int = Field(default=60, ge=1)
    shell_timeout: int = Field(default=600, ge=1)
    max_result_chars: int = Field(default=4000, ge=100)


class AgentConfig(BaseModel):
    endpoint: EndpointConfig = Field(default_factory=EndpointConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must be a mapping, got {type(data).__name__}")
    return data


def load_config(work_dir: Path | None = None) -> AgentConfig:
    """
    Load config by merging:
      1. Built-in defaults (agentbuddy/config.yaml)
      2. Directory overrides (<work_dir>/.agentbuddy/config.yaml)
    """
    base = _read_yaml(_DEFAULT_CONFIG_PATH)

    if work_dir:
        local_config = work_dir / ".agentbuddy" / "config.yaml"
        if local_config.exists():
            base = _deep_merge(base, _read_yaml(local_config))

    try:
        return AgentConfig(**base)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def resolve_api_key(config: AgentConfig) -> str:
    """Return the planner API key from the configured environment variable."""
    env_name = config.endpoint.api_key_env
    key = os.environ.get(env_name, "").strip()
    if not key:
        raise ConfigError(f"{env_name} is not set. Export it or add it to a .env file.")
    return key
