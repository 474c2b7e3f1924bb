"""
Configuration system for QueryAdvisor.

Implements 12-factor config principles:
- Environment variables as primary config source
- Optional JSON or YAML config file for local development
- Per-rule enable flags and threshold overrides

Usage:
    from queryadvisor.config import get_config

    config = get_config()

    if config.is_rule_enabled("EXTERNAL_SORT"):
        ...

    # Threshold override, or None to use the rule's own default
    rows = config.get_rule_threshold("EXTERNAL_SORT", "large_sort_rows")
"""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from queryadvisor.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "QUERYADVISOR_"
RULE_ENV_PREFIX = f"{ENV_PREFIX}RULE_"


class RuleConfig(BaseModel):
    """Configuration for a single rule."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Whether the rule is enabled")
    thresholds: dict[str, int | float] = Field(
        default_factory=dict,
        description="Rule-specific threshold overrides",
    )


class Config(BaseModel):
    """
    QueryAdvisor configuration.

    Loaded from environment variables and an optional config file.
    Thresholds live on each rule's own config schema; this model only
    carries overrides, so an empty ``rules`` mapping means "all defaults".
    """

    model_config = ConfigDict(frozen=True)

    language: str = Field(
        default="en",
        description="Locale used to render recommendation text",
    )
    statement_timeout_ms: int = Field(
        default=10_000,
        ge=0,
        description="Server-side statement timeout for plan and metadata queries",
    )
    connect_timeout_s: int = Field(
        default=10,
        ge=1,
        description="Seconds to wait when opening a database session",
    )
    log_level: str = Field(
        default="WARNING",
        description="Root log level used by the CLI",
    )
    rules: dict[str, RuleConfig] = Field(
        default_factory=dict,
        description="Per-rule configurations keyed by rule_id",
    )

    def get_rule_threshold(
        self,
        rule_id: str,
        threshold_name: str,
        default: int | float | None = None,
    ) -> int | float | None:
        """Get a threshold override for a rule, or ``default``."""
        rule_config = self.rules.get(rule_id)
        if rule_config is not None and threshold_name in rule_config.thresholds:
            return rule_config.thresholds[threshold_name]
        return default

    def rule_thresholds(self, rule_id: str) -> dict[str, int | float]:
        """All threshold overrides configured for ``rule_id``."""
        rule_config = self.rules.get(rule_id)
        return dict(rule_config.thresholds) if rule_config is not None else {}

    def is_rule_enabled(self, rule_id: str) -> bool:
        """Check if a rule is enabled."""
        if rule_id in self.rules:
            return self.rules[rule_id].enabled
        return True  # Rules enabled by default


def _parse_env_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_env_int(value: str | None, default: int) -> int:
    """Parse integer from environment variable."""
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_threshold(value: str) -> int | float:
    return float(value) if "." in value else int(value)


def load_config_from_env(environ: dict[str, str] | None = None) -> Config:
    """
    Load configuration from environment variables.

    Environment variable naming convention:
    - QUERYADVISOR_<SETTING> for global settings
    - QUERYADVISOR_RULE_<RULE_ID>_ENABLED to toggle a rule
    - QUERYADVISOR_RULE_<RULE_ID>__<THRESHOLD> for a threshold override
      (double underscore, since rule IDs contain single underscores)

    Examples:
    - QUERYADVISOR_LANGUAGE=id
    - QUERYADVISOR_STATEMENT_TIMEOUT_MS=5000
    - QUERYADVISOR_RULE_LOOSE_INDEX_SCAN_ENABLED=false
    - QUERYADVISOR_RULE_TABLE_STATISTICS__LARGE_TABLE_ROWS=50000
    """
    env = os.environ if environ is None else environ

    config_kwargs: dict[str, Any] = {
        "language": env.get(f"{ENV_PREFIX}LANGUAGE", "en"),
        "statement_timeout_ms": _parse_env_int(
            env.get(f"{ENV_PREFIX}STATEMENT_TIMEOUT_MS"), 10_000
        ),
        "connect_timeout_s": _parse_env_int(
            env.get(f"{ENV_PREFIX}CONNECT_TIMEOUT_S"), 10
        ),
        "log_level": env.get(f"{ENV_PREFIX}LOG_LEVEL", "WARNING").upper(),
    }

    rules: dict[str, RuleConfig] = {}

    for key, value in env.items():
        if not key.startswith(RULE_ENV_PREFIX):
            continue
        remainder = key[len(RULE_ENV_PREFIX):]

        if "__" in remainder:
            rule_id, setting = remainder.split("__", 1)
            current = rules.get(rule_id, RuleConfig())
            thresholds = dict(current.thresholds)
            try:
                thresholds[setting.lower()] = _parse_threshold(value)
            except ValueError:
                logger.warning("Could not parse threshold %s=%s", key, value)
                continue
            rules[rule_id] = current.model_copy(update={"thresholds": thresholds})

        elif remainder.endswith("_ENABLED"):
            rule_id = remainder[: -len("_ENABLED")]
            current = rules.get(rule_id, RuleConfig())
            rules[rule_id] = current.model_copy(
                update={"enabled": _parse_env_bool(value, True)}
            )

        else:
            logger.warning("Ignoring unrecognized rule setting %s", key)

    config_kwargs["rules"] = rules
    return Config(**config_kwargs)


def load_config_from_file(path: Path) -> Config:
    """
    Load configuration from a JSON or YAML file.

    A missing file falls back to environment variables. A file that
    exists but cannot be parsed or validated raises ConfigurationError.
    """
    if not path.exists():
        logger.warning("Config file not found: %s, using environment", path)
        return load_config_from_env()

    try:
        with open(path) as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
        return Config(**(data or {}))
    except (OSError, ValueError, yaml.YAMLError) as e:
        # ValidationError is a ValueError subclass
        key = None
        if isinstance(e, ValidationError) and e.errors():
            key = ".".join(str(part) for part in e.errors()[0]["loc"])
        raise ConfigurationError(
            f"Failed to load config from {path}: {e}", config_key=key
        ) from e


@lru_cache(maxsize=1)
def get_config() -> Config:
    """
    Get the global configuration instance.

    Loads from:
    1. QUERYADVISOR_CONFIG_FILE environment variable (if set)
    2. Environment variables (default)

    Result is cached for the lifetime of the process.
    """
    config_file = os.environ.get(f"{ENV_PREFIX}CONFIG_FILE")

    if config_file:
        return load_config_from_file(Path(config_file))

    return load_config_from_env()


def reset_config() -> None:
    """Reset the cached configuration (mainly for testing)."""
    get_config.cache_clear()
