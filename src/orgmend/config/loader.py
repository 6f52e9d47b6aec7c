"""Configuration loader with YAML and environment variable support.

This module reads ~/.config/orgmend/config.yaml (or $XDG_CONFIG_HOME/orgmend/config.yaml)
and lets environment variables using the ORGMEND_* prefix override it.

Environment variables:
- ORGMEND_LOG_DONE: none, time or note
- ORGMEND_LOG_INTO_DRAWER: Drawer name for log entries (empty for none)
- ORGMEND_DEADLINE_WARNING_DAYS: Days before a deadline it shows as a warning
- ORGMEND_TAG_INHERITANCE: true/false
- ORGMEND_ARCHIVE_LOCATION: Archive template ("%s_archive::")

Example config.yaml:

    todoKeywords:
      activeStates: [TODO, "WAIT(w@/!)"]
      doneStates: [DONE, CANCELLED]
    logDone: note
    logIntoDrawer: LOGBOOK
    tagsExcludeFromInheritance: [project]
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from org_outline.config import DEFAULT_CONFIG, OrgConfig, build_config, layer_from_env, layer_from_mapping
from org_outline.errors import OrgParseError
from orgmend.utils.logging import get_logger

logger = get_logger(__name__)


def default_config_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if environ is None else environ
    config_home = env.get("XDG_CONFIG_HOME")
    base = Path(config_home) if config_home else Path.home() / ".config"
    return base / "orgmend" / "config.yaml"


def _read_mapping(config_path: Path) -> Dict[str, Any]:
    try:
        with config_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error("config_invalid", path=str(config_path), error=str(e))
        raise OrgParseError(f"Invalid configuration file: {config_path}", detail=str(e)) from e
    except OSError as e:
        logger.error("config_invalid", path=str(config_path), error=str(e))
        raise OrgParseError(f"Cannot read configuration file: {config_path}", detail=str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.error("config_invalid", path=str(config_path), error="not a mapping")
        raise OrgParseError(
            f"Invalid configuration file: {config_path}",
            detail="Top level must be a mapping",
        )
    return data


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> OrgConfig:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to config file. If None, uses the XDG default
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated OrgConfig; built-in defaults where neither source sets a field

    Raises:
        OrgParseError: If the config file exists but is not a valid YAML mapping
    """
    env = os.environ if environ is None else environ
    if config_path is None:
        config_path = default_config_path(env)

    logger.debug("config_loading", path=str(config_path))

    layers = []
    if config_path.exists():
        layers.append(layer_from_mapping(_read_mapping(config_path)))
    # Environment overrides the file
    layers.append(layer_from_env(env))

    config = build_config(*layers, base=DEFAULT_CONFIG)
    logger.info("config_loaded", path=str(config_path), from_file=config_path.exists())
    return config
