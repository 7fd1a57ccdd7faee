#!/usr/bin/env python3
"""
DayZ Tool - Mod Manager

Keeps a DayZ server's mod folders in sync with the local Steam Workshop
cache.

Usage:
    dayz-mods --profile main install 1559212036
    dayz-mods --profile main update
    dayz-mods --profile main list --export mods.xlsx
    dayz-mods --profile main startup
"""

import argparse
import logging

from config.config import Config

from ..base import DayZTool
from ..errors import DayZToolError
from ..profiles import ProfileStore
from .engine import ReconciliationEngine
from .report import ModListExporter, format_listing, format_result
from .store import ModRecordStore

logger = logging.getLogger(__name__)


def build_engine(profile_name=None, config_dir=None, state_dir=None) -> ReconciliationEngine:
    """
    Create an engine for a stored profile.

    Raises:
        ProfileNotFound: If the profile does not exist.
    """
    name = profile_name or Config.DEFAULT_PROFILE
    profile = ProfileStore(config_dir).get_profile(name)
    config = DayZTool.load_config(name, config_dir=config_dir)
    return ReconciliationEngine.from_config(profile, ModRecordStore(state_dir), config)


def main():
    """
    Main entry point for the mod manager CLI.
    """
    parser = argparse.ArgumentParser(description="Synchronize DayZ server mods with the Steam Workshop cache")
    DayZTool.add_standard_arguments(parser)

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    install_parser = subparsers.add_parser('install', help='Install a Workshop mod on the server')
    install_parser.add_argument('mod_id', help='Workshop id of the mod')

    subparsers.add_parser('update', help='Update every installed mod that changed in the Workshop cache')

    uninstall_parser = subparsers.add_parser('uninstall', help='Remove an installed mod from the server')
    uninstall_parser.add_argument('mod_id', help='Workshop id of the mod')

    list_parser = subparsers.add_parser('list', help='List installed mods and whether updates are available')
    list_parser.add_argument('--export', metavar='FILE',
                             help='Also write the list to a .csv or .xlsx file')

    subparsers.add_parser('startup', help='Print the -mod= server startup parameter')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    try:
        engine = build_engine(args.profile)

        if args.command == 'install':
            result = engine.install(args.mod_id)
        elif args.command == 'update':
            result = engine.update()
        elif args.command == 'uninstall':
            result = engine.uninstall(args.mod_id)
        elif args.command == 'list':
            listing = engine.list()
            print(format_listing(listing))
            if args.export:
                path = ModListExporter().export(listing, args.export)
                print(f"Exported to {path}")
            return 0
        else:
            print(engine.startup_parameter())
            return 0

        print(format_result(result, detailed=args.console))
        return 0 if result.ok else 1

    except (DayZToolError, ValueError) as e:
        logger.error(str(e))
        return 1


if __name__ == '__main__':
    exit(main())
