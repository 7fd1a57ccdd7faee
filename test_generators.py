#!/usr/bin/env python3
"""
Test the GUID and day/night cycle generators.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from dayz_tool.errors import DncError, GuidError
from dayz_tool.generators.dnc import calculate_dnc, parse_time, validate_dnc
from dayz_tool.generators.guid import generate_guid, validate_id


def test_generate_guid():
    assert generate_guid("76561198039479170") == "VmZuANA0NjRb6XNrwgOZsaRtzk3Xy2DFd91Usr8Q61E="


def test_validate_id_valid():
    assert validate_id("76561198000000000") == "76561198000000000"


@pytest.mark.parametrize("steam_id, message", [
    ("7656119800000000", "length"),
    ("86561198000000000", "prefix"),
    ("76561198000000abc", "digits"),
])
def test_validate_id_invalid(steam_id, message):
    with pytest.raises(GuidError, match=message):
        validate_id(steam_id)


def test_calculate_dnc_valid_input():
    assert calculate_dnc("8h", "10min") == (1.5, 48.0)


def test_calculate_dnc_invalid_time_format():
    with pytest.raises(DncError, match="Invalid time format"):
        calculate_dnc("8", "10")


def test_calculate_dnc_invalid_time_acceleration():
    # Only the leading digits count, so 0.5h is zero hours
    with pytest.raises(DncError, match="Invalid time acceleration"):
        calculate_dnc("0.5h", "10min")


def test_calculate_dnc_invalid_night_time_acceleration():
    with pytest.raises(DncError, match="Invalid night time acceleration"):
        calculate_dnc("8h", "1min")


def test_parse_time():
    assert parse_time("8h") == 480.0
    assert parse_time("10min") == 10.0
    with pytest.raises(DncError, match="Invalid time format"):
        parse_time("abc")


def test_validate_dnc():
    assert validate_dnc(1.5, 48.0) == (1.5, 48.0)
    with pytest.raises(DncError, match="Invalid time acceleration"):
        validate_dnc(0.05, 48.0)
    with pytest.raises(DncError, match="Invalid night time acceleration"):
        validate_dnc(1.5, 65.0)
