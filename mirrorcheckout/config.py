"""Configuration for the mirror cache, retry policy and runner environment"""

import configparser
import os
import platform
from typing import Optional, Any

from pathlib import Path

APP_NAME = "mirrorcheckout"

_home = os.path.expanduser("~")

xdg_config_home = os.environ.get("XDG_CONFIG_HOME") or os.path.join(_home, ".config")

# Environment provided by the CI runner
MIRROR_ROOT_ENV = "NSC_GIT_MIRROR"
WORKSPACE_ENV = "GITHUB_WORKSPACE"
RUNNER_PROFILE_ENV = "NSC_RUNNER_PROFILE_INFO"

# Layout versions of the mirror cache:
# v1 forced a re-clone when submodules started being cached next to the main mirror.
# v2 restored the plain full mirror after shallow mirrors broke object sharing
# for checkouts with submodules.
default_cfg = {
    "retry": {"max_attempts": "3", "backoff_seconds": "1"},
    # 1001 is the runner user of hosted runner images
    "mirror": {"layout_version": "v2", "default_uid": "1001"},
    "submodules": {"helper": "nsc"},
}

if platform.system() == "Darwin":
    # macOS
    config_dir = Path("~/Library/Application Support/mirrorcheckout").expanduser()
else:
    # Linux or others
    config_dir = Path(os.path.join(xdg_config_home, APP_NAME))


def get_config_file():
    return config_dir / f"{APP_NAME}.cfg"


def init_dirs():
    """Initialize the configuration directory.

    Fails gracefully if the directory cannot be created (e.g., read-only filesystem).
    """
    import logging

    logger = logging.getLogger(__name__)

    try:
        os.makedirs(config_dir, exist_ok=True)
    except OSError as e:
        logger.warning(
            f"Could not create config directory {config_dir}: {e}. "
            "Using in-memory configuration only."
        )


class ConfigAccessor:
    """
    A dict-like accessor for configuration files.

    This class provides a way to access configuration options with a dictionary-like
    interface while handling missing sections or keys gracefully.

    Usage:
        config = ConfigAccessor()
        value = config.get('retry', 'max_attempts', default='3')
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize a ConfigAccessor with an optional config file path.

        Args:
            config_path: Path to the configuration file. If None, uses the default path.
        """
        if config_path is None:
            self.config_path = get_config_file()
        else:
            self.config_path = config_path

        # Ensure the config directory exists
        init_dirs()

        self.config = configparser.ConfigParser()
        if self.config_path.exists():
            self.config.read(self.config_path)

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Get a configuration value from the specified section and key.

        Args:
            section: The configuration section
            key: The configuration key
            default: Value to return if the section or key doesn't exist

        Returns:
            The configuration value if it exists, otherwise the default value
        """
        try:
            return self.config[section][key]
        except (KeyError, configparser.NoSectionError, configparser.NoOptionError):
            return default


# Create a global config accessor instance
config = ConfigAccessor()


def _get_default(section: str, key: str) -> str:
    return config.get(section, key, default_cfg[section][key])


def get_mirror_root() -> Optional[Path]:
    """Get the mirror root announced by the runner, or None when caching is disabled."""
    mirror_root = os.environ.get(MIRROR_ROOT_ENV)
    if not mirror_root:
        return None
    return Path(mirror_root)


def get_workspace_root() -> Optional[Path]:
    workspace = os.environ.get(WORKSPACE_ENV)
    if not workspace:
        return None
    return Path(workspace)


def is_runner_profile_managed() -> bool:
    """Whether the runner documents git caching as a runner profile setting."""
    return bool(os.environ.get(RUNNER_PROFILE_ENV))


def get_default_max_attempts() -> int:
    return max(1, int(_get_default("retry", "max_attempts")))


def get_backoff_seconds() -> float:
    """Unit of the linear backoff between attempts of network operations."""
    return float(_get_default("retry", "backoff_seconds"))


def get_layout_version() -> str:
    return _get_default("mirror", "layout_version")


def get_default_uid() -> int:
    """Get the uid whose mirrors live directly under the layout version directory."""
    return int(_get_default("mirror", "default_uid"))


def get_submodule_helper() -> str:
    return _get_default("submodules", "helper")
