"""Configuration file loading and validation.

Loads a YAML configuration file, expands ``${ENV_VAR}`` placeholders,
and validates against Pydantic models defined in :mod:`schema`.

The public API is :func:`load_sentinel_config`, which returns a validated
:class:`~graphql_sentinel.config.schema.SentinelConfig`.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from graphql_sentinel.config.env import expand_env_vars
from graphql_sentinel.config.schema import SentinelConfig
from graphql_sentinel.constants import CONFIG_ENV_VAR
from graphql_sentinel.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Recognised config file extensions.
_YAML_EXTS = frozenset({".yaml", ".yml"})

# Config file search order (first match wins)
_CONFIG_SEARCH_ORDER = ("config.yaml", "config.yml")


def _read_config_file(cfg_fpath: str) -> Dict[str, Any]:
    """Read and parse a YAML config file from *cfg_fpath*.

    Raises :class:`ConfigurationError` on I/O or parse errors.
    """
    ext = os.path.splitext(cfg_fpath)[1].lower()
    if ext not in _YAML_EXTS:
        raise ConfigurationError(
            f"Unsupported config file extension '{ext}'. "
            "Only YAML files (.yaml, .yml) are supported."
        )

    try:
        with open(cfg_fpath, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except Exception as exc:
        raise ConfigurationError(f"Error reading configuration file: {cfg_fpath}\n  {exc}") from exc

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise ConfigurationError(
            "Top-level configuration content must be a YAML mapping (dictionary)."
        )
    return raw_data


def _format_validation_errors(exc: ValidationError) -> str:
    """Format Pydantic validation errors into a readable multi-line string."""
    lines: List[str] = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        lines.append(f"  • {loc}: {err['msg']}")
    return "\n".join(lines)


def find_config_file(search_dirs: Optional[List[str]] = None) -> Optional[str]:
    """Locate a config file: ``GRAPHQL_SENTINEL_CONFIG`` first, then well-known names.

    Returns ``None`` when nothing is found; the server then runs on defaults.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return env_path
    for base_dir in search_dirs or [os.getcwd()]:
        for name in _CONFIG_SEARCH_ORDER:
            candidate = os.path.join(base_dir, name)
            if os.path.isfile(candidate):
                return candidate
    return None


def parse_sentinel_config(raw_data: Dict[str, Any]) -> SentinelConfig:
    """Validate an already-loaded mapping, expanding ``${VAR}`` placeholders first."""
    try:
        return SentinelConfig.model_validate(expand_env_vars(raw_data))
    except ValidationError as exc:
        raise ConfigurationError(
            "Configuration validation failed:\n" + _format_validation_errors(exc)
        ) from exc


def load_sentinel_config(cfg_fpath: Optional[str]) -> SentinelConfig:
    """Load and validate the configuration at *cfg_fpath*.

    ``None`` yields the built-in defaults.
    """
    if cfg_fpath is None:
        logger.info("No configuration file found; using defaults.")
        return SentinelConfig()

    logger.info("Loading configuration from: %s", cfg_fpath)
    config = parse_sentinel_config(_read_config_file(cfg_fpath))
    logger.debug(
        "Configuration loaded: graphql path=%s, playground path=%s",
        config.graphql.path,
        config.graphql.playground_path or config.graphql.path,
    )
    return config
