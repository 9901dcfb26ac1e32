"""Configuration loader for stagecrypt."""
import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

import yaml

from .cipher import DEFAULT_SCHEME, SCHEMES
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "STAGECRYPT_CONFIG"
CONFIG_FILE_NAMES = ("stagecrypt.yml", "stagecrypt.yaml")
DEFAULT_SUBDIR_KEY = "secrets.local_path"
DEFAULT_PREFLIGHT_EVENT = "before:deploy:cleanup"


@dataclass(frozen=True)
class Settings:
    """Resolved settings for one invocation."""
    secrets_subdir: str
    scheme: str = DEFAULT_SCHEME
    preflight_event: str = DEFAULT_PREFLIGHT_EVENT
    config_path: Optional[Path] = None


def get_nested(config: Optional[Dict[str, Any]], key: Union[str, Sequence[str]]) -> Any:
    """
    Look up a dotted key (``"secrets.local_path"``) in nested mappings.

    Returns None as soon as any segment is missing or not a mapping.
    """
    parts = key.split(".") if isinstance(key, str) else key
    value: Any = config
    for part in parts:
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    return value


def _get_config_path(project_root: Union[str, Path], config_path: Optional[Union[str, Path]] = None) -> Path:
    """
    Get the config file path for a project.

    Priority order:
    1. Explicit path (``--config``)
    2. STAGECRYPT_CONFIG environment variable
    3. stagecrypt.yml / stagecrypt.yaml in the project root

    Raises:
        ConfigurationError: If no config file exists in any location
    """
    # 1. Explicit path wins, but must exist
    if config_path:
        explicit = Path(config_path)
        if not explicit.is_file():
            raise ConfigurationError(f"Configuration file not found at: {explicit}")
        logger.info(f"Using config from --config: {explicit}")
        return explicit

    # 2. Environment override
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        candidate = Path(env_path)
        if candidate.is_file():
            logger.info(f"Using config from {CONFIG_ENV_VAR}: {candidate}")
            return candidate
        logger.warning(f"Config path from {CONFIG_ENV_VAR} doesn't exist: {candidate}")

    # 3. Project root
    root = Path(project_root)
    for name in CONFIG_FILE_NAMES:
        candidate = root / name
        if candidate.is_file():
            logger.info(f"Using project config: {candidate}")
            return candidate

    raise ConfigurationError(
        f"Configuration file not found in {root}. Set one up using one of these methods:\n\n"
        f"1. Create {root / CONFIG_FILE_NAMES[0]} with:\n"
        "   secrets:\n"
        "     local_path: secrets\n\n"
        f"2. Point {CONFIG_ENV_VAR} at an existing config file\n\n"
        "3. Pass --config /path/to/stagecrypt.yml\n"
    )


def read_config(path: Path) -> Dict[str, Any]:
    """
    Parse a YAML config file.

    Raises:
        ConfigurationError: If the file is unreadable, empty or not a YAML mapping
    """
    try:
        with open(path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML config at {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read config file at {path}: {e}") from e

    if not config:
        raise ConfigurationError(f"Config file at {path} is empty")

    if not isinstance(config, dict):
        raise ConfigurationError(f"Config file at {path} must contain a mapping at the top level")

    return config


def load_config(project_root: Union[str, Path], config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Locate and load the raw YAML configuration for a project.

    Raises:
        ConfigurationError: If no config file is found or it cannot be parsed
    """
    # Resolved on every call, never cached at module level
    return read_config(_get_config_path(project_root, config_path))


def settings_from_config(
    config: Dict[str, Any],
    subdir_key: str = DEFAULT_SUBDIR_KEY,
    path: Optional[Path] = None,
) -> Settings:
    """
    Validate a loaded configuration and extract stagecrypt settings.

    ``subdir_key`` names where the secrets subdirectory lives, so hosts that
    keep it under a different section can reuse the same loader.

    Raises:
        ConfigurationError: If the secrets section is absent or a value is invalid
    """
    section_key, _, leaf = subdir_key.rpartition(".")

    section = get_nested(config, section_key) if section_key else config
    if not isinstance(section, dict):
        raise ConfigurationError(
            f"Missing '{section_key}' section in config at {path}\n"
            f"Required format:\n"
            f"secrets:\n"
            f"  local_path: path/to/secrets/dir"
        )

    subdir = section.get(leaf)
    if subdir is None:
        subdir = ""
    if not isinstance(subdir, str):
        raise ConfigurationError(f"'{subdir_key}' must be a path string, got: {subdir!r}")

    scheme = section.get("scheme") or DEFAULT_SCHEME
    if scheme not in SCHEMES:
        raise ConfigurationError(
            f"Unsupported cipher scheme: {scheme}\n"
            f"Supported schemes: {', '.join(SCHEMES)}"
        )

    preflight_event = get_nested(config, "hooks.preflight") or DEFAULT_PREFLIGHT_EVENT
    if not isinstance(preflight_event, str):
        raise ConfigurationError(f"'hooks.preflight' must be an event name, got: {preflight_event!r}")

    logger.debug(f"Using secrets directory: {subdir or '<project root>'}")
    logger.debug(f"Using cipher scheme: {scheme}")

    return Settings(
        secrets_subdir=subdir,
        scheme=scheme,
        preflight_event=preflight_event,
        config_path=path,
    )


def load_settings(
    project_root: Union[str, Path],
    config_path: Optional[Union[str, Path]] = None,
    subdir_key: str = DEFAULT_SUBDIR_KEY,
) -> Settings:
    """Load and validate the configuration for a project in one step."""
    path = _get_config_path(project_root, config_path)
    settings = settings_from_config(read_config(path), subdir_key, path)
    logger.info(f"Configuration loaded successfully from {path}")
    return settings
