# Configuration package initialization
"""
DayZ Tool - Configuration System

This package provides a lightweight configuration system for DayZ Tool.
Each server profile is one JSON file.

Quick Usage:
    from config import Config
    server_config = Config(profile='my_server')

    value = server_config.get('server.workshop_path')
"""

from config.config import Config, get_home_dir

__all__ = ['Config', 'get_home_dir']
