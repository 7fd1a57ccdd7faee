#!/usr/bin/env python3
"""
Test result summaries, mod list export and the mod manager CLI.
"""

import csv
import os
import sys

import pandas as pd
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from dayz_tool.mods import cli
from dayz_tool.mods.models import (Freshness, KeyConflict, ListResult, ModAction, ModListing,
                                   ModRecord, ModStatus, SyncResult)
from dayz_tool.mods.report import ModListExporter, format_listing, format_result
from dayz_tool.profiles import Profile, ProfileStore


def sample_listing():
    listing = ListResult()
    listing.mods.append(ModListing(
        ModRecord("1559212036", "Community Framework", "10-1", keys=["cf.bikey"]), Freshness.CURRENT, "10-1"))
    listing.mods.append(ModListing(
        ModRecord("1564026768", "Community Online Tools", "20-2"), Freshness.UPDATE_AVAILABLE, "25-3"))
    listing.unmanaged.append("@ServerPack")
    return listing


def test_format_result():
    result = SyncResult()
    result.add("111", ModAction.UPDATE, ModStatus.UPDATED, "First")
    result.add("222", ModAction.UPDATE, ModStatus.FAILED, "Permission denied")
    result.key_conflicts.append(KeyConflict("shared.bikey", "111", "222"))

    summary = format_result(result)
    assert "Permission denied" in summary
    assert "First" not in summary.splitlines()[0]
    assert "1 updated, 1 failed" in summary
    assert "shared.bikey" in summary

    assert "First" in format_result(result, detailed=True)


def test_format_listing():
    text = format_listing(sample_listing())

    assert "Community Framework" in text
    assert "update-available" in text
    assert "2 installed, 1 with updates available" in text
    assert "@ServerPack" in text
    assert format_listing(ListResult()) == "No mods installed"


def test_export_csv(tmp_path):
    path = ModListExporter().export(sample_listing(), str(tmp_path / "out" / "mods.csv"))

    with open(path, newline='') as f:
        rows = list(csv.DictReader(f))
    assert [r['workshop_id'] for r in rows] == ["1559212036", "1564026768"]
    assert rows[0]['keys'] == "cf.bikey"
    assert rows[1]['status'] == "update-available"


def test_export_xlsx(tmp_path):
    path = ModListExporter().export(sample_listing(), str(tmp_path / "mods.xlsx"))

    df = pd.read_excel(path, sheet_name='Mods', dtype=str)
    assert list(df['workshop_id']) == ["1559212036", "1564026768"]
    assert list(df['name']) == ["Community Framework", "Community Online Tools"]


@pytest.fixture
def cli_home(tmp_path, monkeypatch):
    monkeypatch.setenv("DAYZ_TOOL_HOME", str(tmp_path / "home"))
    workshop = tmp_path / "workshop"
    (workshop / "111" / "addons").mkdir(parents=True)
    (workshop / "111" / "addons" / "first.pbo").write_bytes(b"PBO")
    (tmp_path / "server").mkdir()
    ProfileStore().add_profile(Profile("main", str(workshop), str(tmp_path / "server")))
    return tmp_path


def test_cli_install_and_startup(cli_home, monkeypatch, capsys):
    monkeypatch.setattr(sys, 'argv', ['dayz-mods', '--profile', 'main', 'install', '111'])
    assert cli.main() == 0
    assert (cli_home / "server" / "@111" / "addons" / "first.pbo").is_file()

    monkeypatch.setattr(sys, 'argv', ['dayz-mods', '--profile', 'main', 'startup'])
    capsys.readouterr()
    assert cli.main() == 0
    assert capsys.readouterr().out.strip() == '"-mod=@111;"'


def test_cli_errors_return_one(cli_home, monkeypatch):
    monkeypatch.setattr(sys, 'argv', ['dayz-mods', '--profile', 'main', 'install', '999'])
    assert cli.main() == 1

    monkeypatch.setattr(sys, 'argv', ['dayz-mods', '--profile', 'missing', 'list'])
    assert cli.main() == 1
