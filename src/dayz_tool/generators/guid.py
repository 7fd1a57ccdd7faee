#!/usr/bin/env python3
"""
DayZ Tool - GUID Generator

Turns a Steam64 id into the GUID the DayZ server uses in its ban and
whitelist files and in the ADM logs.

Usage:
    dayz-guid 76561198039479170
"""

import argparse
import base64
import hashlib
import logging

from ..base import DayZTool
from ..errors import GuidError

logger = logging.getLogger(__name__)

STEAM64_LENGTH = 17
STEAM64_PREFIX = "7656119"


def validate_id(steam_id: str) -> str:
    """
    Check that ``steam_id`` looks like a Steam64 id.

    Raises:
        GuidError: On a wrong length, prefix or a non-digit character.
    """
    if len(steam_id) != STEAM64_LENGTH:
        raise GuidError(f"Invalid Steam64 id length: expected {STEAM64_LENGTH} digits, got {len(steam_id)}")
    if not steam_id.startswith(STEAM64_PREFIX):
        raise GuidError(f"Invalid Steam64 id prefix: must start with {STEAM64_PREFIX}")
    if not steam_id.isdigit():
        raise GuidError("Invalid Steam64 id: only digits are allowed")
    return steam_id


def generate_guid(steam_id: str) -> str:
    """
    Args:
        steam_id: A 17 digit Steam64 id.

    Returns:
        URL-safe base64 of the SHA-256 digest of the id.

    Raises:
        GuidError: If the id is not a valid Steam64 id.
    """
    digest = hashlib.sha256(validate_id(steam_id).encode('ascii')).digest()
    return base64.urlsafe_b64encode(digest).decode('ascii')


def main():
    """Main entry point for the GUID generator."""
    parser = argparse.ArgumentParser(description="Generate the DayZ GUID of a Steam64 id")
    parser.add_argument('steam_ids', nargs='+', metavar='STEAM64ID', help='Steam64 id(s) to convert')
    args = parser.parse_args()

    DayZTool.configure_logging('INFO')

    status = 0
    for steam_id in args.steam_ids:
        try:
            guid = generate_guid(steam_id.strip())
        except GuidError as e:
            logger.error(f"{steam_id}: {e}")
            status = 1
            continue
        if len(args.steam_ids) > 1:
            print(f"{steam_id}: {guid}")
        else:
            print(guid)
    return status


if __name__ == '__main__':
    exit(main())
