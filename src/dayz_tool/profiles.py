#!/usr/bin/env python3
"""
DayZ Tool - Server Profiles

A profile names one DayZ server: where its Steam Workshop cache lives, where
the server is installed and which subdirectories hold mods and keys. Each
profile is stored as its own JSON file through the ``Config`` reader.
"""

import argparse
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from .base import DayZTool
from .errors import DayZToolError, ProfileExists, ProfileNotFound

logger = logging.getLogger(__name__)

DEFAULT_KEYS_DIR = "keys"
DEFAULT_WORKERS = 4

_NAME_PATTERN = re.compile(r'^[A-Za-z0-9._ -]+$')


class Profile:
    """A server profile. Read-only for the mod synchronization engine."""

    def __init__(self, name: str, workshop_path: str, server_path: str,
                 mods_dir: str = "", keys_dir: str = DEFAULT_KEYS_DIR,
                 mission: Optional[str] = None) -> None:
        self.name = name
        self.workshop_path = Path(workshop_path)
        self.server_path = Path(server_path)
        self.mods_dir = mods_dir or ""
        self.keys_dir = keys_dir or DEFAULT_KEYS_DIR
        self.mission = mission

    @property
    def mods_path(self) -> Path:
        """Directory that holds the ``@mod`` folders (the server root by default)."""
        return self.server_path / self.mods_dir if self.mods_dir else self.server_path

    @property
    def keys_path(self) -> Path:
        return self.server_path / self.keys_dir

    @classmethod
    def from_config(cls, name: str, data: Dict[str, Any]) -> 'Profile':
        """
        Build a profile from a loaded configuration dictionary.

        Raises:
            ValueError: If a required path is missing.
        """
        server = data.get('server', {}) if isinstance(data, dict) else {}
        for key in ('workshop_path', 'server_path'):
            if not server.get(key):
                raise ValueError(f"Profile '{name}' is missing 'server.{key}'")
        return cls(
            name=name,
            workshop_path=server['workshop_path'],
            server_path=server['server_path'],
            mods_dir=server.get('mods_dir', ""),
            keys_dir=server.get('keys_dir', DEFAULT_KEYS_DIR),
            mission=server.get('mission'),
        )

    def to_config(self) -> Dict[str, Any]:
        return {
            'general': {'log_level': 'INFO', 'workers': DEFAULT_WORKERS},
            'server': {
                'name': self.name,
                'workshop_path': str(self.workshop_path),
                'server_path': str(self.server_path),
                'mods_dir': self.mods_dir,
                'keys_dir': self.keys_dir,
                'mission': self.mission,
            },
            'mods': {'register_economy': False, 'key_extensions': ['.bikey', '.key']},
        }

    def __repr__(self) -> str:
        return f"Profile(name={self.name!r}, server_path={str(self.server_path)!r})"


class ProfileStore:
    """
    Create, read and delete server profiles.

    Usage:
        store = ProfileStore()
        store.add_profile(Profile("main", "/srv/workshop", "/srv/dayz"))
        profile = store.get_profile("main")
    """

    def __init__(self, config_dir: Optional[str] = None) -> None:
        from config.config import Config

        self._config_cls = Config
        self.config_dir = config_dir or Config.default_config_dir()

    def _config(self, name: str):
        return self._config_cls(config_dir=self.config_dir, profile=name)

    def get_profile(self, name: str) -> Profile:
        """
        Get a profile by name.

        Raises:
            ProfileNotFound: If no profile file exists for ``name``.
        """
        config_obj = self._config(name)
        if not config_obj.exists():
            raise ProfileNotFound(name)
        profile = Profile.from_config(name, config_obj.get())
        # Relative paths are relative to the profiles directory
        profile.workshop_path = Path(config_obj.get_path('server.workshop_path'))
        profile.server_path = Path(config_obj.get_path('server.server_path'))
        return profile

    def list_profiles(self) -> List[str]:
        return self._config(None).list_profiles()

    def add_profile(self, profile: Profile) -> str:
        """
        Persist a new profile.

        Returns:
            Path of the written profile file.

        Raises:
            ProfileExists: If a profile with the same name exists.
            ValueError: If the name cannot be used as a file name.
        """
        if not _NAME_PATTERN.match(profile.name):
            raise ValueError(f"Invalid profile name: {profile.name!r}")
        config_obj = self._config(profile.name)
        if config_obj.exists():
            raise ProfileExists(profile.name)
        return config_obj.save(profile.to_config())

    def remove_profile(self, name: str) -> None:
        if not self._config(name).delete():
            raise ProfileNotFound(name)
        logger.info(f"Removed profile '{name}'")


def main():
    """
    Main entry point for the profile manager CLI.
    """
    parser = argparse.ArgumentParser(description="Manage DayZ server profiles")

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    add_parser = subparsers.add_parser('add', help='Create a new profile')
    add_parser.add_argument('name', help='Profile name (e.g. your server name)')
    add_parser.add_argument('--workshop-path', required=True,
                            help='Steam Workshop content directory (e.g. .../workshop/content/221100)')
    add_parser.add_argument('--server-path', required=True,
                            help="DayZ server's working directory")
    add_parser.add_argument('--mods-dir', default="",
                            help='Mods subdirectory of the server (default: server root)')
    add_parser.add_argument('--keys-dir', default=DEFAULT_KEYS_DIR,
                            help='Keys subdirectory of the server (default: keys)')
    add_parser.add_argument('--mission', default=None,
                            help='Mission folder name (default: read from serverDZ.cfg)')

    subparsers.add_parser('list', help='List profiles')

    show_parser = subparsers.add_parser('show', help='Show a profile')
    show_parser.add_argument('name')

    remove_parser = subparsers.add_parser('remove', help='Delete a profile')
    remove_parser.add_argument('name')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    DayZTool.configure_logging('INFO')
    store = ProfileStore()

    try:
        if args.command == 'add':
            path = store.add_profile(Profile(
                name=args.name,
                workshop_path=args.workshop_path,
                server_path=args.server_path,
                mods_dir=args.mods_dir,
                keys_dir=args.keys_dir,
                mission=args.mission,
            ))
            print(f"Profile '{args.name}' created at {path}")
        elif args.command == 'list':
            names = store.list_profiles()
            if not names:
                print("No profiles found.")
            for name in names:
                print(name)
        elif args.command == 'show':
            profile = store.get_profile(args.name)
            print(f"Name:          {profile.name}")
            print(f"Workshop path: {profile.workshop_path}")
            print(f"Server path:   {profile.server_path}")
            print(f"Mods path:     {profile.mods_path}")
            print(f"Keys path:     {profile.keys_path}")
            print(f"Mission:       {profile.mission or '(from serverDZ.cfg)'}")
        elif args.command == 'remove':
            store.remove_profile(args.name)
            print(f"Profile '{args.name}' removed")
        return 0
    except (DayZToolError, ValueError) as e:
        logger.error(str(e))
        return 1


if __name__ == '__main__':
    exit(main())
