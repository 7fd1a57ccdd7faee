"""
DayZ Tool - Python package for DayZ server administration

Keeps a server's mods in sync with the local Steam Workshop cache and
provides a few generators for server settings.

The package depends on the config module for server profile management.
"""

__version__ = '1.0.0'
