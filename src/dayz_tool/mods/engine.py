"""
Reconciliation Engine

Brings a server's mod folders in line with the mods a profile has installed
and the content of the Workshop cache.

Every copy lands in a hidden staging folder first and is renamed to its
real name only once complete, so a mod is never visible half-copied:

    .<id>.staging   new content being copied
    .<id>.backup    previous content while an update swaps folders
    .<id>.trash     content being deleted by uninstall

Leftovers from an interrupted run are cleaned up by the next operation that
touches the same mod.
"""

import logging
import os
import shutil
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Tuple

from ..errors import (AlreadyInstalled, DayZToolError, InstallFailed, ModNotFound,
                      StoreWriteError, UpdateFailed)
from .keys import DEFAULT_KEY_EXTENSIONS, KeyConsolidator
from .models import (Freshness, ListResult, ModAction, ModListing, ModRecord, ModStatus,
                     SyncResult, WorkshopCatalog, WorkshopEntry, default_folder_name,
                     utc_now, workshop_sort_key)
from .server import ServerModInspector, backup_path, staging_path
from .workshop import WorkshopScanner

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4
TRASH_SUFFIX = ".trash"


def trash_path(mods_path: Path, mod_id: str) -> Path:
    return Path(mods_path) / f".{mod_id}{TRASH_SUFFIX}"


class ReconciliationEngine:
    """
    Install, update, uninstall and list the mods of one profile.

    The engine borrows the profile read-only and owns the record store for
    the duration of an operation.

    Usage:
        engine = ReconciliationEngine(profile, ModRecordStore())
        engine.install("1559212036")
        result = engine.update()
        if not result.ok:
            ...
    """

    def __init__(self, profile, store, workers: int = DEFAULT_WORKERS,
                 key_extensions: Iterable[str] = DEFAULT_KEY_EXTENSIONS,
                 economy=None, copy_function: Callable = shutil.copy2) -> None:
        """
        Args:
            profile: The server profile to operate on.
            store: ModRecordStore used to load and save records.
            workers: Maximum number of parallel copies during an update.
            key_extensions: File extensions treated as whitelist keys.
            economy: Optional EconomyRegistrar; when set, CE files are
                registered on install/update and removed on uninstall.
            copy_function: Per-file copy function handed to ``shutil.copytree``.
        """
        self.profile = profile
        self.store = store
        self.workers = max(1, int(workers))
        self.keys = KeyConsolidator(profile.keys_path, key_extensions)
        self.economy = economy
        self.copy_function = copy_function
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, profile, store, config: Dict[str, Any]) -> 'ReconciliationEngine':
        """Build an engine using the ``general`` and ``mods`` sections of a profile config."""
        general = config.get('general', {}) if config else {}
        mods = config.get('mods', {}) if config else {}
        economy = None
        if mods.get('register_economy'):
            from .economy import EconomyRegistrar
            economy = EconomyRegistrar(profile, config)
        return cls(
            profile,
            store,
            workers=general.get('workers', DEFAULT_WORKERS),
            key_extensions=mods.get('key_extensions') or DEFAULT_KEY_EXTENSIONS,
            economy=economy,
        )

    @property
    def mods_path(self) -> Path:
        return self.profile.mods_path

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def scan_workshop(self) -> WorkshopCatalog:
        return WorkshopScanner(self.profile.workshop_path).scan()

    def inspect_server(self, create: bool = True):
        return ServerModInspector(self.mods_path).inspect(create=create)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def install(self, mod_id: str) -> SyncResult:
        """
        Copy one Workshop mod into the server and record it.

        Raises:
            ScanError: If the Workshop or server mods directory is unreadable.
            AlreadyInstalled: If the profile already has a record for ``mod_id``.
            ModNotFound: If ``mod_id`` is not in the Workshop cache.
            InstallFailed: If the copy failed; the server is left as it was.
            StoreWriteError: If the new record could not be saved.
        """
        catalog = self.scan_workshop()
        entries = self.inspect_server()
        records = self.store.load(self.profile)

        if mod_id in records:
            raise AlreadyInstalled(mod_id)
        entry = catalog.get(mod_id)
        if entry is None:
            raise ModNotFound(mod_id, "the Workshop cache")

        folder = default_folder_name(mod_id)
        self._recover(mod_id, folder)

        others = [e.folder for e in entries if e.workshop_id == mod_id and e.folder != folder]
        if others:
            logger.warning(f"Mod {mod_id} also appears to be present as unmanaged "
                           f"folder(s): {', '.join(others)}")

        final = self.mods_path / folder
        if final.exists():
            raise InstallFailed(mod_id, f"{final} already exists and is not managed by this profile")

        logger.info(f"Installing {entry.name} ({mod_id}) into {final}")
        staging = staging_path(self.mods_path, mod_id)
        try:
            self._stage(entry)
            os.replace(staging, final)
        except OSError as e:
            self._discard(staging)
            raise InstallFailed(mod_id, str(e)) from e

        record = ModRecord(workshop_id=mod_id, name=entry.name,
                           fingerprint=entry.fingerprint, folder=folder)
        records[mod_id] = record

        result = SyncResult()
        result.add(mod_id, ModAction.INSTALL, ModStatus.INSTALLED, entry.name)
        if self.economy is not None:
            self._register_economy(record, final, result)
        self._consolidate_keys(records, result)
        self._save(records, [mod_id])
        return result

    def update(self) -> SyncResult:
        """
        Refresh every installed mod whose Workshop content changed.

        Mods are processed in ascending Workshop id order. Copies run in
        parallel; a failing mod is reported and keeps its previous folder and
        record while the rest of the batch carries on.

        Raises:
            ScanError: If the Workshop or server mods directory is unreadable.
            StoreWriteError: If updated records could not be saved.
        """
        catalog = self.scan_workshop()
        self.inspect_server()
        records = self.store.load(self.profile)

        statuses: Dict[str, Tuple[ModStatus, str]] = {}
        pending: List[Tuple[ModRecord, WorkshopEntry]] = []

        for mod_id in sorted(records, key=workshop_sort_key):
            record = records[mod_id]
            entry = catalog.get(mod_id)
            if entry is None:
                logger.warning(f"Mod {mod_id} is no longer in the Workshop cache; "
                               "run uninstall to remove it")
                statuses[mod_id] = (ModStatus.ORPHANED,
                                    "no longer in the Workshop cache; run uninstall to remove it")
                continue
            self._recover(mod_id, record.folder)
            if entry.fingerprint == record.fingerprint and (self.mods_path / record.folder).is_dir():
                statuses[mod_id] = (ModStatus.UNCHANGED, "")
                continue
            pending.append((record, entry))

        changed: List[str] = []
        if pending:
            logger.info(f"Updating {len(pending)} mod(s)")
            workers = min(self.workers, len(pending))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = [(record.workshop_id, executor.submit(self._update_one, record, entry, changed))
                           for record, entry in pending]
                for mod_id, future in futures:
                    try:
                        future.result()
                        statuses[mod_id] = (ModStatus.UPDATED, records[mod_id].name)
                    except UpdateFailed as e:
                        logger.error(str(e))
                        statuses[mod_id] = (ModStatus.FAILED, e.reason)

        result = SyncResult()
        for mod_id in sorted(statuses, key=workshop_sort_key):
            status, message = statuses[mod_id]
            result.add(mod_id, ModAction.UPDATE, status, message)

        if self.economy is not None:
            for mod_id in sorted(changed, key=workshop_sort_key):
                record = records[mod_id]
                self._register_economy(record, self.mods_path / record.folder, result)

        keys_changed = self._consolidate_keys(records, result)
        if changed or keys_changed:
            self._save(records, changed)
        return result

    def uninstall(self, mod_id: str) -> SyncResult:
        """
        Remove an installed mod's server folder and record.

        A server folder that is already gone counts as removed.

        Raises:
            ModNotFound: If the profile has no record for ``mod_id``.
            ScanError: If the server mods directory is unreadable.
            StoreWriteError: If the record removal could not be saved.
        """
        records = self.store.load(self.profile)
        record = records.get(mod_id)
        if record is None:
            raise ModNotFound(mod_id)

        self.inspect_server()
        self._recover(mod_id, record.folder)

        result = SyncResult()
        final = self.mods_path / record.folder
        message = record.name
        if final.exists():
            trash = trash_path(self.mods_path, mod_id)
            try:
                os.replace(final, trash)
            except OSError as e:
                logger.error(f"Could not remove {final}: {e}")
                result.add(mod_id, ModAction.UNINSTALL, ModStatus.FAILED, str(e))
                return result
            logger.info(f"Removing {record.name} ({mod_id}) from {final}")
            self._discard(trash)
        else:
            logger.info(f"Server folder {final} already missing")
            message = f"{record.name} (folder was already missing)"

        del records[mod_id]
        result.add(mod_id, ModAction.UNINSTALL, ModStatus.REMOVED, message)

        try:
            self.keys.remove_keys(record.keys, records)
        except OSError as e:
            result.warnings.append(f"Could not remove keys of mod {mod_id}: {e}")
        if self.economy is not None and record.economy:
            try:
                self.economy.unregister(record.economy)
            except (DayZToolError, OSError) as e:
                result.warnings.append(f"Could not remove CE entries of mod {mod_id}: {e}")
        self._consolidate_keys(records, result)
        self._save(records, [mod_id])
        return result

    def list(self) -> ListResult:
        """
        Annotate every record with its freshness against the Workshop cache.

        Pure read: nothing on disk is created or modified.

        Raises:
            ScanError: If the Workshop directory is unreadable.
        """
        catalog = self.scan_workshop()
        entries = self.inspect_server(create=False)
        records = self.store.load(self.profile)

        listing = ListResult()
        for mod_id in sorted(records, key=workshop_sort_key):
            record = records[mod_id]
            entry = catalog.get(mod_id)
            if entry is None:
                freshness = Freshness.ORPHANED
            elif entry.fingerprint == record.fingerprint and (self.mods_path / record.folder).is_dir():
                freshness = Freshness.CURRENT
            else:
                freshness = Freshness.UPDATE_AVAILABLE
            listing.mods.append(ModListing(record, freshness,
                                           entry.fingerprint if entry else None))

        managed_folders = {record.folder for record in records.values()}
        listing.unmanaged = [e.folder for e in entries
                             if e.folder not in managed_folders
                             and (e.folder.startswith('@') or e.well_formed)]
        return listing

    def startup_parameter(self) -> str:
        """The ``-mod=`` server launch parameter for the installed mods."""
        records = self.store.load(self.profile)
        folders = [records[mod_id].folder for mod_id in sorted(records, key=workshop_sort_key)]
        return f"\"-mod={''.join(f'{folder};' for folder in folders)}\""

    # ------------------------------------------------------------------
    # Filesystem steps
    # ------------------------------------------------------------------

    def _stage(self, entry: WorkshopEntry) -> Path:
        """Copy a Workshop mod into its staging folder."""
        staging = staging_path(self.mods_path, entry.workshop_id)
        if staging.exists():
            self._discard(staging)
        try:
            shutil.copytree(entry.path, staging, copy_function=self.copy_function)
        except OSError:
            self._discard(staging)
            raise
        return staging

    def _update_one(self, record: ModRecord, entry: WorkshopEntry, changed: List[str]) -> None:
        mod_id = record.workshop_id
        logger.info(f"Updating {record.name} ({mod_id})")
        try:
            staging = self._stage(entry)
        except OSError as e:
            raise UpdateFailed(mod_id, str(e)) from e

        with self._lock:
            final = self.mods_path / record.folder
            try:
                self._swap(staging, final, backup_path(self.mods_path, mod_id))
            except OSError as e:
                self._discard(staging)
                raise UpdateFailed(mod_id, str(e)) from e
            record.fingerprint = entry.fingerprint
            record.synced_at = utc_now()
            changed.append(mod_id)

    def _swap(self, staging: Path, final: Path, backup: Path) -> None:
        """Replace ``final`` with ``staging``, keeping ``final`` intact on failure."""
        if not final.exists():
            os.replace(staging, final)
            return
        os.replace(final, backup)
        try:
            os.replace(staging, final)
        except OSError:
            os.replace(backup, final)
            raise
        self._discard(backup)

    def _recover(self, mod_id: str, folder: str) -> None:
        """Clean up what an interrupted run left behind for ``mod_id``."""
        final = self.mods_path / folder
        backup = backup_path(self.mods_path, mod_id)
        if backup.exists():
            if final.exists():
                logger.info(f"Deleting stale backup folder {backup.name}")
                self._discard(backup)
            else:
                logger.warning(f"Restoring {final.name} from interrupted update")
                os.replace(backup, final)
        for stale in (staging_path(self.mods_path, mod_id), trash_path(self.mods_path, mod_id)):
            if stale.exists():
                logger.info(f"Deleting stale folder {stale.name}")
                self._discard(stale)

    @staticmethod
    def _discard(path: Path) -> None:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path, ignore_errors=True)
        elif path.exists() or path.is_symlink():
            path.unlink()

    # ------------------------------------------------------------------
    # Follow-up steps
    # ------------------------------------------------------------------

    def _consolidate_keys(self, records: Dict[str, ModRecord], result: SyncResult) -> bool:
        """Sync the keys directory; returns True if any record's key list changed."""
        installed = [(mod_id, self.mods_path / record.folder)
                     for mod_id, record in records.items()
                     if (self.mods_path / record.folder).is_dir()]
        try:
            report = self.keys.consolidate(installed, records)
        except OSError as e:
            logger.error(f"Key consolidation failed: {e}")
            result.warnings.append(f"Key consolidation failed: {e}")
            return False

        result.key_conflicts.extend(report.conflicts)
        changed = False
        dropped = set()
        for mod_id, names in report.keys_by_mod.items():
            record = records[mod_id]
            if sorted(record.keys) != sorted(names):
                dropped.update(set(record.keys) - set(names))
                record.keys = sorted(names)
                changed = True

        # Keys a mod stopped shipping are removed unless another mod still contributes them
        if dropped:
            try:
                self.keys.remove_keys(dropped, records)
            except OSError as e:
                logger.error(f"Could not remove stale keys: {e}")
                result.warnings.append(f"Could not remove stale keys: {e}")
        return changed

    def _register_economy(self, record: ModRecord, mod_path: Path, result: SyncResult) -> None:
        try:
            record.economy = self.economy.register(record.workshop_id, record.name, mod_path) or ""
        except (DayZToolError, OSError) as e:
            logger.warning(f"Could not register CE files of mod {record.workshop_id}: {e}")
            result.warnings.append(f"Could not register CE files of mod {record.workshop_id}: {e}")

    def _save(self, records: Dict[str, ModRecord], touched: Iterable[str]) -> None:
        try:
            self.store.save(self.profile, records)
        except StoreWriteError as e:
            error = StoreWriteError(e.path, e.reason, touched)
            logger.error(f"Server mods and recorded state have diverged: {error}")
            raise error from e
