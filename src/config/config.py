"""
Minimal Configuration Reader for DayZ Tool

A lightweight configuration system for DayZ Tool that provides:
- Profile-based configuration management, one JSON file per server profile
- Hierarchical configuration with dot-notation access
- Automatic path resolution for file paths

Usage:
    from config import Config
    server_config = Config(profile='my_server')
    workshop = server_config.get_path('server.workshop_path')

Profiles live in ``~/.dayz-tool/profiles`` unless the ``DAYZ_TOOL_HOME``
environment variable points somewhere else. Per-profile mod state lives
next to them in ``state``.
"""

import os
from typing import Dict, Any, List, Optional
from pathlib import Path

from dayz_tool.base import JSONTool, logger

HOME_ENV_VAR = "DAYZ_TOOL_HOME"


def get_home_dir() -> Path:
    """Return the DayZ Tool home directory."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".dayz-tool"


class Config(JSONTool):
    """
    A minimal JSON-based configuration reader for DayZ Tool.

    Attributes:
        config_dir (str): Directory containing profile JSON files
        profile (str): Currently active profile name
        data (dict): Loaded configuration data
    """

    DEFAULT_PROFILE = "default"

    def __init__(self, config_dir: str = None, profile: str = None,
                 config: Optional[Dict[str, Any]] = None):
        """
        Initialize the Config instance.

        Args:
            config_dir (str, optional): Directory for config profiles.
                Defaults to ``<home>/profiles``.
            profile (str, optional): Profile name to use. Defaults to 'default'.
            config (dict, optional): Base configuration dictionary for JSONTool compatibility.
        """
        super().__init__(config)

        self.config_dir = config_dir or self.default_config_dir()
        self.profile = profile or self.DEFAULT_PROFILE
        self.data = {}

        Path(self.config_dir).mkdir(parents=True, exist_ok=True)

        self._load()

    @staticmethod
    def default_config_dir() -> str:
        return str(get_home_dir() / "profiles")

    @staticmethod
    def default_state_dir() -> str:
        return str(get_home_dir() / "state")

    def run(self) -> Dict[str, Any]:
        """
        Run the config tool (implementation of abstract method from DayZTool).

        Returns:
            The full configuration dictionary.
        """
        return self.data

    def profile_path(self, profile: str = None) -> Path:
        return Path(self.config_dir) / f"{profile or self.profile}.json"

    def exists(self) -> bool:
        return self.profile_path().exists()

    def _load(self):
        """
        Load configuration from the profile JSON file.

        A missing profile leaves an empty configuration;
        callers that need the profile check ``exists()``.
        """
        profile_path = self.profile_path()

        if not profile_path.exists():
            logger.debug(f"Profile '{self.profile}' not found. Using empty configuration.")
            self.data = {}
            return

        try:
            self.data = self.read_json(str(profile_path))
            logger.debug(f"Loaded configuration from '{self.profile}'")
        except (OSError, ValueError) as e:
            logger.error(f"Error loading configuration: {e}")
            self.data = {}

    def save(self, data: Optional[Dict[str, Any]] = None) -> str:
        """
        Write the configuration back to the profile file.

        Args:
            data (dict, optional): New configuration; defaults to the loaded data.

        Returns:
            str: Path of the written profile file.
        """
        if data is not None:
            self.data = data
        path = self.write_json(self.data, str(self.profile_path()))
        logger.info(f"Saved profile '{self.profile}' to '{path}'")
        return path

    def delete(self) -> bool:
        """Delete the profile file. Returns False if it did not exist."""
        profile_path = self.profile_path()
        if not profile_path.exists():
            return False
        profile_path.unlink()
        self.data = {}
        return True

    def get(self, path: str = None, default: Any = None) -> Any:
        """
        Get a configuration value by path using dot notation.

        Args:
            path (str, optional): Dot notation path to the value
                (e.g., "server.workshop_path", "general.log_level").
                If None, returns the entire configuration dictionary.
            default (Any, optional): Value to return if path not found.

        Returns:
            Any: The configuration value at the specified path, or default if not found.

        Examples:
            >>> config.get('general.log_level', 'INFO')
            'DEBUG'
            >>> config.get()  # Returns entire config
            {'general': {...}, 'server': {...}}
        """
        if path is None:
            return self.data

        current = self.data
        if path:
            for key in path.split('.'):
                if isinstance(current, dict) and key in current:
                    current = current[key]
                else:
                    return default

        return current

    def list_profiles(self) -> List[str]:
        """
        List all available profile names.

        Returns:
            List[str]: Sorted profile names (without .json extension)
                found in the config directory.
        """
        config_path = Path(self.config_dir)
        return sorted(f.stem for f in config_path.glob("*.json"))

    def get_path(self, path_key: str, fallback: str = None) -> str:
        """
        Get a resolved filesystem path from configuration.

        Args:
            path_key (str): Path key in dot notation (e.g., "server.server_path")
            fallback (str, optional): Default path if not found

        Returns:
            str: Resolved absolute path. Returns empty string if path is None/empty.
                 Relative paths are resolved relative to the config directory.
        """
        path = self.get(path_key, fallback)
        if not path:
            return ""

        path_obj = Path(os.path.expanduser(os.path.expandvars(path)))
        if path_obj.is_absolute():
            return str(path_obj)

        return str(Path(self.config_dir) / path_obj)
