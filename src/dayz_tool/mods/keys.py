"""
Key File Consolidator

Collects the whitelist key files (``.bikey``) shipped by installed mods into
the server's shared keys directory. The lowest Workshop id wins when two
mods ship different files under the same name; the clash is reported as a
``KeyConflict`` and never aborts the operation.
"""

import filecmp
import logging
import shutil
from pathlib import Path
from typing import Dict, Iterable, List, Set, Tuple

from .models import KeyConflict, ModRecord, workshop_sort_key

logger = logging.getLogger(__name__)

DEFAULT_KEY_EXTENSIONS = (".bikey", ".key")
KEY_FOLDER_NAMES = {"keys", "key"}


class KeyReport:
    """What a consolidation pass did."""

    def __init__(self) -> None:
        self.conflicts: List[KeyConflict] = []
        self.keys_by_mod: Dict[str, List[str]] = {}
        self.written: List[str] = []


class KeyConsolidator:
    """
    Copies mod key files into the server keys directory.

    Usage:
        consolidator = KeyConsolidator(profile.keys_path)
        report = consolidator.consolidate([("1559212036", Path("/srv/dayz/@1559212036"))], records)
    """

    def __init__(self, keys_path: Path, extensions: Iterable[str] = DEFAULT_KEY_EXTENSIONS) -> None:
        self.keys_path = Path(keys_path)
        self.extensions = {ext.lower() if ext.startswith('.') else f".{ext.lower()}"
                           for ext in extensions}

    def find_key_files(self, mod_path: Path) -> List[Path]:
        """Key files in the mod root and in any ``keys``/``key`` folder, sorted by name."""
        found: Dict[str, Path] = {}
        search_dirs = [mod_path]
        try:
            search_dirs += sorted(p for p in mod_path.iterdir()
                                  if p.is_dir() and p.name.lower() in KEY_FOLDER_NAMES)
        except OSError as e:
            logger.warning(f"Cannot list {mod_path} for key files: {e}")
            return []
        for directory in search_dirs:
            for path in sorted(directory.iterdir()):
                if path.is_file() and path.suffix.lower() in self.extensions:
                    found.setdefault(path.name, path)
        return [found[name] for name in sorted(found)]

    def consolidate(self, mods: Iterable[Tuple[str, Path]],
                    records: Dict[str, ModRecord]) -> KeyReport:
        """
        Bring the keys directory in line with the installed mods.

        Args:
            mods: ``(workshop_id, server mod folder)`` pairs of installed mods.
            records: Current mod records; their ``keys`` tell which files in
                the keys directory are managed and may be overwritten.

        Returns:
            A KeyReport listing conflicts, written files and the key names
            each mod contributes.
        """
        report = KeyReport()
        owned: Set[str] = {name for record in records.values() for name in record.keys}
        winners: Dict[str, Tuple[str, Path]] = {}
        shipped: Dict[str, List[str]] = {}

        for mod_id, mod_path in sorted(mods, key=lambda m: workshop_sort_key(m[0])):
            shipped[mod_id] = []
            for key_file in self.find_key_files(Path(mod_path)):
                shipped[mod_id].append(key_file.name)
                winner = winners.get(key_file.name)
                if winner is None:
                    winners[key_file.name] = (mod_id, key_file)
                elif not filecmp.cmp(winner[1], key_file, shallow=False):
                    conflict = KeyConflict(key_file.name, winner[0], mod_id)
                    logger.warning(f"Key conflict: {conflict.describe()}")
                    report.conflicts.append(conflict)

        managed = set(owned)
        for filename, (mod_id, source) in sorted(winners.items()):
            if self._install_key(filename, mod_id, source, owned, report):
                managed.add(filename)

        for mod_id, names in shipped.items():
            report.keys_by_mod[mod_id] = [name for name in names if name in managed]
        return report

    def _install_key(self, filename: str, mod_id: str, source: Path,
                     owned: Set[str], report: KeyReport) -> bool:
        """Copy one winning key file. Returns True if the target is now managed."""
        target = self.keys_path / filename
        if target.exists():
            if filecmp.cmp(source, target, shallow=False):
                return filename in owned
            if filename not in owned:
                conflict = KeyConflict(filename, None, mod_id)
                logger.warning(f"Key conflict: {conflict.describe()}")
                report.conflicts.append(conflict)
                return False
        self.keys_path.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        report.written.append(filename)
        logger.info(f"Copied key {filename} from mod {mod_id}")
        return True

    def remove_keys(self, names: Iterable[str], remaining: Dict[str, ModRecord]) -> List[str]:
        """
        Delete key files no remaining record contributes.

        Returns:
            Names of the deleted files.
        """
        still_used = {name for record in remaining.values() for name in record.keys}
        removed = []
        for name in sorted(set(names) - still_used):
            target = self.keys_path / name
            if target.is_file():
                target.unlink()
                removed.append(name)
                logger.info(f"Removed key {name}")
        return removed
