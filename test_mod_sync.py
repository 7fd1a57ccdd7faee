#!/usr/bin/env python3
"""
Test mod synchronization between a Workshop cache and a server directory.
"""

import os
import shutil
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from dayz_tool.errors import (AlreadyInstalled, DayZToolError, InstallFailed, ModNotFound, ScanError,
                              StoreWriteError)
from dayz_tool.mods import server
from dayz_tool.mods.engine import ReconciliationEngine
from dayz_tool.mods.fingerprint import fingerprint_directory
from dayz_tool.mods.models import Freshness, KeyConflict, ModStatus
from dayz_tool.mods.server import ServerModInspector
from dayz_tool.mods.store import ModRecordStore
from dayz_tool.mods.workshop import WorkshopScanner
from dayz_tool.profiles import Profile

# Sample meta.cpp as shipped by the Workshop
META_CPP = """protocol = 1;
publishedid = {mod_id};
name = "{name}";
timestamp = 5249603948917296139;
"""


def make_workshop_mod(workshop, mod_id, name, pbo=b"PBO", keys=None):
    mod = workshop / mod_id
    (mod / "addons").mkdir(parents=True)
    (mod / "addons" / f"{name.replace(' ', '_')}.pbo").write_bytes(pbo)
    (mod / "meta.cpp").write_text(META_CPP.format(mod_id=mod_id, name=name))
    for filename, content in (keys or {}).items():
        (mod / "keys").mkdir(exist_ok=True)
        (mod / "keys" / filename).write_bytes(content)
    return mod


def snapshot(root):
    """Map relative path to file bytes for every file below ``root``."""
    files = {}
    for dirpath, _, filenames in os.walk(root):
        for filename in filenames:
            path = os.path.join(dirpath, filename)
            with open(path, 'rb') as f:
                files[os.path.relpath(path, root)] = f.read()
    return files


@pytest.fixture
def profile(tmp_path):
    (tmp_path / "workshop").mkdir()
    (tmp_path / "server").mkdir()
    return Profile("test", str(tmp_path / "workshop"), str(tmp_path / "server"))


@pytest.fixture
def store(tmp_path):
    return ModRecordStore(str(tmp_path / "state"))


@pytest.fixture
def engine(profile, store):
    return ReconciliationEngine(profile, store)


def test_install_then_list(profile, store, engine):
    make_workshop_mod(profile.workshop_path, "1559212036", "Community Framework")

    result = engine.install("1559212036")

    assert result.ok
    assert result.by_status(ModStatus.INSTALLED) == ["1559212036"]
    installed = profile.server_path / "@1559212036"
    assert snapshot(installed) == snapshot(profile.workshop_path / "1559212036")

    listing = engine.list()
    assert [(m.record.workshop_id, m.freshness) for m in listing.mods] == \
        [("1559212036", Freshness.CURRENT)]
    assert store.load(profile)["1559212036"].name == "Community Framework"


def test_install_errors(profile, engine):
    make_workshop_mod(profile.workshop_path, "111", "First")

    with pytest.raises(ModNotFound):
        engine.install("999")

    engine.install("111")
    with pytest.raises(AlreadyInstalled):
        engine.install("111")


def test_install_refuses_unrecorded_folder(profile, store, engine):
    make_workshop_mod(profile.workshop_path, "111", "First")
    (profile.server_path / "@111").mkdir()
    (profile.server_path / "@111" / "notes.txt").write_text("hand copied")

    with pytest.raises(InstallFailed):
        engine.install("111")

    assert (profile.server_path / "@111" / "notes.txt").read_text() == "hand copied"
    assert store.load(profile) == {}


def test_missing_workshop_directory(tmp_path, store):
    profile = Profile("test", str(tmp_path / "nowhere"), str(tmp_path / "server"))
    engine = ReconciliationEngine(profile, store)

    with pytest.raises(ScanError):
        engine.update()


def test_update_is_idempotent(profile, store, engine):
    make_workshop_mod(profile.workshop_path, "111", "First", keys={"first.bikey": b"k1"})
    make_workshop_mod(profile.workshop_path, "222", "Second")
    engine.install("111")
    engine.install("222")

    store_mtime = store.path_for(profile).stat().st_mtime_ns
    before = snapshot(profile.server_path)

    result = engine.update()

    assert result.ok
    assert result.by_status(ModStatus.UNCHANGED) == ["111", "222"]
    assert snapshot(profile.server_path) == before
    assert store.path_for(profile).stat().st_mtime_ns == store_mtime


def test_update_copies_changed_mods(profile, store, engine):
    mod = make_workshop_mod(profile.workshop_path, "111", "First")
    make_workshop_mod(profile.workshop_path, "222", "Second")
    engine.install("111")
    engine.install("222")
    old_fingerprint = store.load(profile)["111"].fingerprint

    (mod / "addons" / "First.pbo").write_bytes(b"PBO version 2")
    (mod / "addons" / "extra.pbo").write_bytes(b"new addon")

    result = engine.update()

    assert result.by_status(ModStatus.UPDATED) == ["111"]
    assert result.by_status(ModStatus.UNCHANGED) == ["222"]
    assert snapshot(profile.server_path / "@111") == snapshot(mod)
    assert store.load(profile)["111"].fingerprint != old_fingerprint
    assert not any(p.name.startswith('.') for p in profile.server_path.iterdir())


def test_update_isolates_failures(profile, store):
    for mod_id in ("111", "222", "333"):
        make_workshop_mod(profile.workshop_path, mod_id, f"Mod {mod_id}")
    ReconciliationEngine(profile, store).install("111")
    ReconciliationEngine(profile, store).install("222")
    ReconciliationEngine(profile, store).install("333")
    before_222 = snapshot(profile.server_path / "@222")
    fingerprint_222 = store.load(profile)["222"].fingerprint

    for mod_id in ("111", "222", "333"):
        (profile.workshop_path / mod_id / "addons" / "new.pbo").write_bytes(b"update")

    def failing_copy(src, dst, **kwargs):
        if os.sep + "222" + os.sep in str(src):
            raise PermissionError(f"Permission denied: {src}")
        return shutil.copy2(src, dst, **kwargs)

    result = ReconciliationEngine(profile, store, copy_function=failing_copy).update()

    assert not result.ok
    assert result.by_status(ModStatus.UPDATED) == ["111", "333"]
    assert result.by_status(ModStatus.FAILED) == ["222"]
    assert snapshot(profile.server_path / "@222") == before_222
    records = store.load(profile)
    assert records["222"].fingerprint == fingerprint_222
    for mod_id in ("111", "333"):
        assert records[mod_id].fingerprint == fingerprint_directory(profile.workshop_path / mod_id)
    assert (profile.server_path / "@333" / "addons" / "new.pbo").exists()
    assert not (profile.server_path / ".222.staging").exists()


def test_orphaned_mod_is_reported_not_removed(profile, store, engine):
    make_workshop_mod(profile.workshop_path, "111", "First")
    engine.install("111")
    shutil.rmtree(profile.workshop_path / "111")

    result = engine.update()

    assert result.by_status(ModStatus.ORPHANED) == ["111"]
    assert result.ok
    assert (profile.server_path / "@111").is_dir()
    assert "111" in store.load(profile)
    assert engine.list().mods[0].freshness == Freshness.ORPHANED


def test_list_reports_updates_without_writing(profile, store, engine):
    mod = make_workshop_mod(profile.workshop_path, "111", "First")
    engine.install("111")
    (mod / "addons" / "First.pbo").write_bytes(b"a newer and longer pbo")
    before = snapshot(profile.server_path)

    listing = engine.list()

    assert listing.mods[0].freshness == Freshness.UPDATE_AVAILABLE
    assert snapshot(profile.server_path) == before


def test_unmanaged_folders_are_left_alone(profile, store, engine):
    make_workshop_mod(profile.workshop_path, "111", "First")
    custom = profile.server_path / "@MyServerPack"
    (custom / "addons").mkdir(parents=True)
    (custom / "addons" / "pack.pbo").write_bytes(b"server pack")
    before = snapshot(custom)

    engine.install("111")
    engine.update()
    listing = engine.list()
    engine.uninstall("111")

    assert snapshot(custom) == before
    assert "@MyServerPack" in listing.unmanaged
    assert "@111" not in listing.unmanaged


def test_uninstall_then_install_round_trip(profile, store, engine):
    make_workshop_mod(profile.workshop_path, "111", "First", keys={"first.bikey": b"key one"})
    engine.install("111")
    installed = snapshot(profile.server_path)

    result = engine.uninstall("111")

    assert result.by_status(ModStatus.REMOVED) == ["111"]
    assert not (profile.server_path / "@111").exists()
    assert not (profile.keys_path / "first.bikey").exists()
    assert store.load(profile) == {}

    engine.install("111")
    assert snapshot(profile.server_path) == installed


def test_uninstall_tolerates_missing_folder(profile, store, engine):
    make_workshop_mod(profile.workshop_path, "111", "First")
    engine.install("111")
    shutil.rmtree(profile.server_path / "@111")

    result = engine.uninstall("111")

    assert result.ok
    assert store.load(profile) == {}
    with pytest.raises(ModNotFound):
        engine.uninstall("111")


def test_key_conflict_lowest_id_wins(profile, store, engine):
    make_workshop_mod(profile.workshop_path, "222", "Second", keys={"server.key": b"from 222"})
    make_workshop_mod(profile.workshop_path, "111", "First", keys={"server.key": b"from 111"})
    engine.install("222")

    result = engine.install("111")

    assert result.ok
    assert result.key_conflicts == [KeyConflict("server.key", "111", "222")]
    assert (profile.keys_path / "server.key").read_bytes() == b"from 111"

    engine.uninstall("111")
    assert (profile.keys_path / "server.key").read_bytes() == b"from 222"


def test_foreign_key_is_not_overwritten(profile, store, engine):
    profile.keys_path.mkdir()
    (profile.keys_path / "server.bikey").write_bytes(b"operator key")
    make_workshop_mod(profile.workshop_path, "111", "First", keys={"server.bikey": b"mod key"})

    result = engine.install("111")

    assert result.key_conflicts == [KeyConflict("server.bikey", None, "111")]
    assert (profile.keys_path / "server.bikey").read_bytes() == b"operator key"

    engine.uninstall("111")
    assert (profile.keys_path / "server.bikey").read_bytes() == b"operator key"


def test_stale_staging_is_cleaned_up(profile, store, engine):
    make_workshop_mod(profile.workshop_path, "111", "First")
    staging = profile.server_path / ".111.staging"
    staging.mkdir()
    (staging / "partial.pbo").write_bytes(b"half")

    engine.install("111")

    assert not staging.exists()
    assert snapshot(profile.server_path / "@111") == snapshot(profile.workshop_path / "111")


def test_interrupted_update_is_restored(profile, store, engine):
    make_workshop_mod(profile.workshop_path, "111", "First")
    engine.install("111")
    # Killed after moving the old folder aside but before the new one landed
    os.replace(profile.server_path / "@111", profile.server_path / ".111.backup")

    result = engine.update()

    assert result.by_status(ModStatus.UNCHANGED) == ["111"]
    assert (profile.server_path / "@111").is_dir()
    assert not (profile.server_path / ".111.backup").exists()


def test_store_write_failure_names_mods(profile, store, engine, monkeypatch):
    make_workshop_mod(profile.workshop_path, "111", "First")

    def broken_save(profile, records):
        raise StoreWriteError(str(store.path_for(profile)), "disk full")

    monkeypatch.setattr(store, "save", broken_save)

    with pytest.raises(StoreWriteError) as excinfo:
        engine.install("111")
    assert excinfo.value.mod_ids == ["111"]
    assert "111" in str(excinfo.value)


def test_startup_parameter_orders_ids_numerically(profile, store, engine):
    make_workshop_mod(profile.workshop_path, "10", "Ten")
    make_workshop_mod(profile.workshop_path, "9", "Nine")
    engine.install("10")
    engine.install("9")

    assert engine.startup_parameter() == '"-mod=@9;@10;"'


def test_mods_subdirectory(tmp_path, store):
    (tmp_path / "workshop").mkdir()
    profile = Profile("test", str(tmp_path / "workshop"), str(tmp_path / "server"), mods_dir="mods")
    make_workshop_mod(profile.workshop_path, "111", "First")

    ReconciliationEngine(profile, store).install("111")

    assert (tmp_path / "server" / "mods" / "@111" / "meta.cpp").is_file()


def test_update_removes_keys_a_mod_stopped_shipping(profile, store, engine):
    mod = make_workshop_mod(profile.workshop_path, "111", "First", keys={"old.bikey": b"old key"})
    engine.install("111")
    (mod / "keys" / "old.bikey").unlink()
    (mod / "keys" / "new.bikey").write_bytes(b"the renamed key")

    result = engine.update()

    assert result.by_status(ModStatus.UPDATED) == ["111"]
    assert sorted(p.name for p in profile.keys_path.iterdir()) == ["new.bikey"]
    assert store.load(profile)["111"].keys == ["new.bikey"]

    engine.uninstall("111")
    assert list(profile.keys_path.iterdir()) == []


def test_unreadable_server_folder_is_unmanaged(profile, store, engine, monkeypatch):
    make_workshop_mod(profile.workshop_path, "111", "First")
    (profile.server_path / "@OperatorPrivate" / "addons").mkdir(parents=True)
    resolve = server.resolve_workshop_id

    def denied(path):
        if path.name == "@OperatorPrivate":
            raise PermissionError(f"Permission denied: {path}")
        return resolve(path)

    monkeypatch.setattr(server, "resolve_workshop_id", denied)

    result = engine.install("111")

    assert result.ok
    assert "@OperatorPrivate" in engine.list().unmanaged
    entry = [e for e in ServerModInspector(profile.mods_path).inspect() if e.folder == "@OperatorPrivate"][0]
    assert not entry.managed
    assert not entry.well_formed


def test_workshop_scan_skips_malformed_folders(profile):
    make_workshop_mod(profile.workshop_path, "111", "First")
    (profile.workshop_path / "222").mkdir()
    (profile.workshop_path / "222" / "readme.txt").write_text("not a mod")
    (profile.workshop_path / "stray.txt").write_text("not a folder")

    catalog = WorkshopScanner(profile.workshop_path).scan()

    assert list(catalog.entries) == ["111"]
    assert catalog.warnings == 1
    assert catalog.get("111").name == "First"


def test_server_folder_identity_from_manifest(profile, store, engine):
    make_workshop_mod(profile.workshop_path, "1559212036", "Community Framework")
    renamed = profile.server_path / "@CF"
    (renamed / "addons").mkdir(parents=True)
    (renamed / "meta.cpp").write_text(META_CPP.format(mod_id="1559212036", name="Community Framework"))
    before = snapshot(renamed)

    entries = ServerModInspector(profile.mods_path).inspect()
    assert [(e.folder, e.workshop_id) for e in entries] == [("@CF", "1559212036")]

    engine.install("1559212036")
    engine.update()
    engine.uninstall("1559212036")

    assert snapshot(renamed) == before


def test_mods_path_not_a_directory(tmp_path, store):
    (tmp_path / "workshop").mkdir()
    (tmp_path / "server").mkdir()
    (tmp_path / "server" / "mods").write_text("not a directory")
    profile = Profile("test", str(tmp_path / "workshop"), str(tmp_path / "server"), mods_dir="mods")

    with pytest.raises(ScanError):
        ServerModInspector(profile.mods_path).inspect()
    with pytest.raises(ScanError):
        ReconciliationEngine(profile, store).update()


@pytest.mark.parametrize("mods", [
    [{"name": "No id"}],
    ["not a record"],
])
def test_invalid_record_file(profile, store, mods):
    path = store.path_for(profile)
    path.parent.mkdir(parents=True)
    store.write_json({"version": 1, "profile": "test", "mods": mods}, str(path))

    with pytest.raises(DayZToolError, match="Invalid mod record file"):
        store.load(profile)
