#!/usr/bin/env python3
"""
DayZ Tool - Day/Night Cycle Calculator

Computes the ``serverTimeAcceleration`` and ``serverNightTimeAcceleration``
values of serverDZ.cfg for a desired day and night length.

Usage:
    dayz-dnc --day 8h --night 10min
"""

import argparse
import logging
import re
from typing import Tuple

from ..base import DayZTool
from ..errors import DncError

logger = logging.getLogger(__name__)

FULL_DAY_MINUTES = 720.0
MIN_ACCELERATION = 0.1
MAX_ACCELERATION = 64.0

_NUMBER_PATTERN = re.compile(r'(\d+)')


def parse_time(value: str) -> float:
    """
    Parse ``<number>h`` or ``<number>min`` into minutes.

    Only the leading run of digits is read, so ``0.5h`` is zero hours.

    Raises:
        DncError: If the value has no number or an unknown unit.
    """
    match = _NUMBER_PATTERN.search(value)
    if not match:
        raise DncError(f"Invalid time format: {value!r} (use e.g. 8h or 10min)")
    number = float(match.group(1))
    if value.endswith('h'):
        return number * 60.0
    if value.endswith('min'):
        return number
    raise DncError(f"Invalid time format: {value!r} (use e.g. 8h or 10min)")


def validate_dnc(time_acceleration: float, night_acceleration: float) -> Tuple[float, float]:
    """
    Raises:
        DncError: If either value lies outside the range the server accepts.
    """
    if not MIN_ACCELERATION <= time_acceleration <= MAX_ACCELERATION:
        raise DncError(f"Invalid time acceleration {time_acceleration:g}: "
                       f"must be between {MIN_ACCELERATION:g} and {MAX_ACCELERATION:g}")
    if not MIN_ACCELERATION <= night_acceleration <= MAX_ACCELERATION:
        raise DncError(f"Invalid night time acceleration {night_acceleration:g}: "
                       f"must be between {MIN_ACCELERATION:g} and {MAX_ACCELERATION:g}")
    return time_acceleration, night_acceleration


def calculate_dnc(day: str, night: str) -> Tuple[float, float]:
    """
    Calculate the server accelerations for the given day and night lengths.

    Args:
        day: Desired day length, e.g. ``8h`` or ``480min``.
        night: Desired night length, e.g. ``10min``.

    Returns:
        ``(serverTimeAcceleration, serverNightTimeAcceleration)``

    Raises:
        DncError: If an input cannot be parsed or a result is out of range.
    """
    day_minutes = parse_time(day)
    night_minutes = parse_time(night)

    if day_minutes <= 0:
        raise DncError(f"Invalid time acceleration: day length {day!r} is zero")
    time_acceleration = FULL_DAY_MINUTES / day_minutes
    if night_minutes <= 0:
        raise DncError(f"Invalid night time acceleration: night length {night!r} is zero")
    night_acceleration = (FULL_DAY_MINUTES / night_minutes) / time_acceleration

    return validate_dnc(time_acceleration, night_acceleration)


def main():
    """Main entry point for the day/night cycle calculator."""
    parser = argparse.ArgumentParser(description="Calculate DayZ day/night cycle server settings")
    parser.add_argument('--day', required=True, help='Day length, e.g. 8h or 480min')
    parser.add_argument('--night', required=True, help='Night length, e.g. 10min or 1h')
    args = parser.parse_args()

    DayZTool.configure_logging('INFO')

    try:
        time_acceleration, night_acceleration = calculate_dnc(args.day, args.night)
    except DncError as e:
        logger.error(str(e))
        return 1

    print(f"serverTimeAcceleration = {time_acceleration:g};")
    print(f"serverNightTimeAcceleration = {night_acceleration:g};")
    return 0


if __name__ == '__main__':
    exit(main())
