"""
User configuration for xcodeskit.

Configuration is read from a YAML file (default ``~/.xcodeskit/config.yaml``).
Loading is best effort: a missing or broken file is logged and defaults apply,
so no command ever fails because of configuration.

Example config.yaml:

    install_directory: /Applications
    catalog_url: https://example.com/xcodes/catalog.json
    catalog_max_age_hours: 24
    keep_archives: false
    verify_commands:
      - [codesign, -vv, -d, "{path}"]
    select_command: [sudo, xcode-select, -s, "{path}"]
"""

import logging
import math
import os
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from xcodeskit.core.directory import (
    get_default_install_dir,
    get_downloads_dir,
    get_global_state_dir,
    get_lock_dir,
)

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "XCODESKIT_CONFIG"

MAX_CATALOG_AGE_HOURS = 24 * 365 * 10
MAX_DOWNLOAD_TIMEOUT = 24 * 60 * 60


def _default_verify_commands() -> List[List[str]]:
    if sys.platform == "darwin":
        return [
            ["spctl", "--assess", "--verbose", "--type", "execute", "{path}"],
            ["codesign", "-vv", "-d", "{path}"],
        ]
    return []


@dataclass
class Configuration:
    """Effective configuration after defaults are applied."""

    state_dir: Path = field(default_factory=get_global_state_dir)
    install_directory: Path = field(default_factory=get_default_install_dir)
    active_link: Optional[Path] = None
    catalog_url: Optional[str] = None
    catalog_max_age_hours: float = 24.0
    download_timeout: int = 30
    keep_archives: bool = False
    verify_commands: List[List[str]] = field(default_factory=_default_verify_commands)
    select_command: Optional[List[str]] = None

    def __post_init__(self):
        if self.active_link is None:
            self.active_link = self.state_dir / "active"

    @property
    def catalog_cache_path(self) -> Path:
        return self.state_dir / "catalog.json"

    @property
    def downloads_dir(self) -> Path:
        return get_downloads_dir(self.state_dir)

    @property
    def lock_dir(self) -> Path:
        return get_lock_dir(self.state_dir)

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], state_dir: Optional[Path] = None
    ) -> "Configuration":
        """
        Build configuration from a parsed YAML mapping.

        Unknown keys are ignored. Values of the wrong type are reported and
        replaced by the default.
        """
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        if state_dir is not None:
            kwargs["state_dir"] = Path(state_dir)

        for key, value in data.items():
            if key not in known or key == "state_dir":
                logger.debug(f"Ignoring unknown configuration key: {key}")
                continue
            try:
                kwargs[key] = _coerce(key, value)
            except (TypeError, ValueError, OverflowError) as e:
                logger.warning(f"Ignoring invalid value for '{key}': {e}")

        return cls(**kwargs)


def _coerce(key: str, value: Any) -> Any:
    if key in ("install_directory", "active_link"):
        if not isinstance(value, str):
            raise TypeError("expected a path")
        return Path(value).expanduser()
    if key == "catalog_url":
        if value is not None and not isinstance(value, str):
            raise TypeError("expected a URL string")
        return value
    if key == "catalog_max_age_hours":
        return _coerce_number(value, 0, MAX_CATALOG_AGE_HOURS)
    if key == "download_timeout":
        return int(_coerce_number(value, 1, MAX_DOWNLOAD_TIMEOUT))
    if key == "keep_archives":
        if not isinstance(value, bool):
            raise TypeError("expected true or false")
        return value
    if key == "verify_commands":
        if not isinstance(value, list) or not all(
            isinstance(cmd, list) and cmd for cmd in value
        ):
            raise TypeError("expected a list of argument lists")
        return [[str(part) for part in cmd] for cmd in value]
    if key == "select_command":
        if value is None:
            return None
        if not isinstance(value, list) or not value:
            raise TypeError("expected an argument list")
        return [str(part) for part in value]
    return value


def _coerce_number(value: Any, minimum: float, maximum: float) -> float:
    if isinstance(value, bool):
        raise TypeError("expected a number")
    number = float(value)
    if not math.isfinite(number) or not minimum <= number <= maximum:
        raise ValueError(f"expected a number from {minimum} to {maximum}")
    return number


def default_config_path(state_dir: Optional[Path] = None) -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return (state_dir or get_global_state_dir()) / "config.yaml"


def load_yaml_config(config_file: Path, required: bool = False) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Args:
        config_file: Path to YAML configuration file
        required: If True, raise error if file doesn't exist

    Returns:
        Configuration dictionary (empty dict if file doesn't exist and not required)

    Raises:
        FileNotFoundError: If required=True and file doesn't exist
        ValueError: If YAML parsing fails or the document is not a mapping
    """
    if not config_file.exists():
        if required:
            raise FileNotFoundError(f"Configuration file not found: {config_file}")
        logger.debug(f"Config file not found (optional): {config_file}")
        return {}

    logger.debug(f"Loading configuration from {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_file}: {e}") from e

    config = config or {}
    if not isinstance(config, dict):
        raise ValueError(f"Expected a mapping at the top of {config_file}")
    return config


def load_configuration(config_file: Optional[Path] = None) -> Configuration:
    """
    Load configuration, falling back to defaults on any error.

    Args:
        config_file: Explicit config file (default: $XCODESKIT_CONFIG or
            <state dir>/config.yaml)

    Returns:
        Configuration instance (never raises for bad files)
    """
    state_dir = get_global_state_dir()
    path = Path(config_file).expanduser() if config_file else default_config_path(state_dir)

    try:
        data = load_yaml_config(path, required=config_file is not None)
    except (FileNotFoundError, ValueError, OSError) as e:
        logger.warning(f"Could not load configuration, using defaults: {e}")
        data = {}

    return Configuration.from_dict(data, state_dir=state_dir)
