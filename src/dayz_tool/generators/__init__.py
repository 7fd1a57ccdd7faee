"""
Small generators for DayZ server settings.
"""

from .dnc import calculate_dnc
from .guid import generate_guid

__all__ = ['calculate_dnc', 'generate_guid']
