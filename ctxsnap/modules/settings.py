"""
Configuration for the context pipeline.

Settings are an explicit structure passed into extraction and reduction
entry points. They can be loaded from a YAML file shaped like:

    context:
      adaptive_context_enabled: true
      enable_pro: true
      enable_pro_smart_files_context_mode: true
      recent_days: 7
      relevance_threshold: 30
      max_tokens: 2000
      max_files: 8
    chat_context:
      contextPaths:
        - globPath: "src/**/*.ts"
      excludePaths: []
      smartContextAutoIncludes: []
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .schemas import ChatContext, validate_chat_context


class ConfigError(ValueError):
    """Raised when a configuration file exists but cannot be used."""


class ContextSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    adaptive_context_enabled: bool = False
    enable_pro: bool = False
    enable_pro_smart_files_context_mode: bool = False

    # Minimal context reducer
    recent_days: int = Field(default=7, ge=0)
    relevance_threshold: int = Field(default=30, ge=0)
    max_tokens: int = Field(default=2000, ge=0)
    max_files: int = Field(default=8, ge=0)
    include_recent_files: bool = True
    include_relevant_files: bool = True

    # Above this estimate the adaptive path switches to minimal context.
    minimal_context_threshold_tokens: int = Field(default=8000, ge=0)

    @property
    def smart_context_enabled(self) -> bool:
        return self.enable_pro and self.enable_pro_smart_files_context_mode


def load_config(config_path: str | Path = "config.yaml") -> Dict[str, Any]:
    """Load configuration from YAML file."""
    config_file = Path(config_path)

    if not config_file.exists():
        logger.warning(f"Config file not found: {config_path}. Using defaults.")
        return {}

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Error loading config {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigError(f"Config {config_path} must be a mapping, got {type(config).__name__}")

    logger.info(f"Loaded configuration from: {config_path}")
    return config


def settings_from_config(
    config: Dict[str, Any],
    overrides: Optional[Dict[str, Any]] = None,
) -> Tuple[ContextSettings, ChatContext]:
    section = config.get("context") or {}
    if not isinstance(section, dict):
        raise ConfigError("'context' section must be a mapping")

    values = dict(section)
    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    try:
        settings = ContextSettings.model_validate(values)
    except ValidationError as e:
        raise ConfigError(f"Invalid context settings: {e}") from e
    chat_context = validate_chat_context(config.get("chat_context"))
    return settings, chat_context
