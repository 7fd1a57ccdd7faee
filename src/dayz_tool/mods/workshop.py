"""
Workshop Scanner

Builds the catalog of mods available in a local Steam Workshop cache
directory (``steamapps/workshop/content/221100`` or a launcher
``!Workshop`` folder).
"""

import logging
import re
from pathlib import Path
from typing import Dict, Optional

from ..errors import ScanError
from .fingerprint import fingerprint_directory, is_ignored
from .models import WorkshopCatalog, WorkshopEntry

logger = logging.getLogger(__name__)

MANIFEST_FILES = ("meta.cpp", "mod.cpp")

# meta.cpp / mod.cpp entries look like:  name = "Community Framework";
MANIFEST_ENTRY_PATTERN = re.compile(r'^\s*(\w+)\s*=\s*"?([^";]*)"?\s*;', re.MULTILINE)


def read_manifest(mod_path: Path) -> Dict[str, str]:
    """
    Read the key/value pairs of a mod's ``meta.cpp`` and ``mod.cpp``.

    Keys are lower-cased; ``meta.cpp`` wins over ``mod.cpp``. Unreadable or
    missing files yield an empty mapping.
    """
    values: Dict[str, str] = {}
    for filename in reversed(MANIFEST_FILES):
        manifest = find_child(mod_path, filename)
        if manifest is None or not manifest.is_file():
            continue
        try:
            text = manifest.read_text(encoding='utf-8', errors='replace')
        except OSError as e:
            logger.debug(f"Could not read {manifest}: {e}")
            continue
        for key, value in MANIFEST_ENTRY_PATTERN.findall(text):
            values[key.lower()] = value.strip()
    return values


def find_child(directory: Path, name: str) -> Optional[Path]:
    """Case-insensitive lookup of an immediate child of ``directory``."""
    exact = directory / name
    if exact.exists():
        return exact
    try:
        for child in directory.iterdir():
            if child.name.lower() == name.lower():
                return child
    except OSError:
        return None
    return None


def looks_like_mod(mod_path: Path) -> bool:
    """A mod ships a manifest or at least one packed addon (.pbo)."""
    if any(find_child(mod_path, name) is not None for name in MANIFEST_FILES):
        return True
    return any(p.is_file() for p in mod_path.rglob("*.pbo"))


class WorkshopScanner:
    """
    Inspects the Workshop cache and produces a ``WorkshopCatalog``.

    Usage:
        catalog = WorkshopScanner("/srv/steam/workshop/content/221100").scan()
        entry = catalog.get("1559212036")
    """

    def __init__(self, workshop_path: Path) -> None:
        self.workshop_path = Path(workshop_path)

    def scan(self) -> WorkshopCatalog:
        """
        Scan the Workshop cache.

        Returns:
            Catalog keyed by Workshop id. Subdirectories that are not mods or
            cannot be read are skipped and counted in ``catalog.warnings``.

        Raises:
            ScanError: If the Workshop directory is missing or unreadable.
        """
        if not self.workshop_path.is_dir():
            raise ScanError(f"Workshop directory does not exist: {self.workshop_path}")

        try:
            children = sorted(self.workshop_path.iterdir())
        except OSError as e:
            raise ScanError(f"Cannot read Workshop directory {self.workshop_path}: {e}") from e

        catalog = WorkshopCatalog()
        for child in children:
            if is_ignored(child.name) or not child.is_dir():
                continue
            try:
                entry = self._scan_mod(child)
            except OSError as e:
                logger.warning(f"Skipping unreadable Workshop folder {child.name}: {e}")
                catalog.warnings += 1
                continue
            if entry is None:
                logger.warning(f"Skipping Workshop folder {child.name}: no mod content found")
                catalog.warnings += 1
                continue
            if entry.workshop_id in catalog.entries:
                logger.warning(f"Skipping Workshop folder {child.name}: "
                               f"duplicate id {entry.workshop_id}")
                catalog.warnings += 1
                continue
            catalog.entries[entry.workshop_id] = entry

        logger.info(f"Found {len(catalog)} mods in {self.workshop_path}"
                    + (f" ({catalog.warnings} skipped)" if catalog.warnings else ""))
        return catalog

    def _scan_mod(self, mod_path: Path) -> Optional[WorkshopEntry]:
        if not looks_like_mod(mod_path):
            return None
        workshop_id = mod_path.name.lstrip('@')
        if not workshop_id:
            return None
        manifest = read_manifest(mod_path)
        return WorkshopEntry(
            workshop_id=workshop_id,
            name=manifest.get('name') or mod_path.name,
            fingerprint=fingerprint_directory(mod_path),
            path=mod_path.resolve(),
        )
