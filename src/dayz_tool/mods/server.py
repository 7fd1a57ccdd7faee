"""
Server Mod Directory Inspector

Lists the mod folders materialized in a server's mods directory and works
out which Workshop mod each one is. Folders whose identity cannot be
resolved are unmanaged: nothing in this package ever modifies them.
"""

import logging
import re
from pathlib import Path
from typing import List, Optional

from ..errors import ScanError
from .models import ServerModEntry
from .workshop import find_child, read_manifest

logger = logging.getLogger(__name__)

FOLDER_ID_PATTERN = re.compile(r'^@(\d+)$')

STAGING_SUFFIX = ".staging"
BACKUP_SUFFIX = ".backup"


def staging_path(mods_path: Path, mod_id: str) -> Path:
    return Path(mods_path) / f".{mod_id}{STAGING_SUFFIX}"


def backup_path(mods_path: Path, mod_id: str) -> Path:
    return Path(mods_path) / f".{mod_id}{BACKUP_SUFFIX}"


def resolve_workshop_id(mod_path: Path) -> Optional[str]:
    """
    Resolve the Workshop id of a server mod folder.

    ``@<digits>`` folder names resolve directly; otherwise the
    ``publishedid`` of an embedded ``meta.cpp`` is used.
    """
    match = FOLDER_ID_PATTERN.match(mod_path.name)
    if match:
        return match.group(1)
    published_id = read_manifest(mod_path).get('publishedid', '')
    if published_id.isdigit() and published_id != '0':
        return published_id
    return None


class ServerModInspector:
    """Produces ``ServerModEntry`` values for a server mods directory."""

    def __init__(self, mods_path: Path) -> None:
        self.mods_path = Path(mods_path)

    def inspect(self, create: bool = True) -> List[ServerModEntry]:
        """
        Inspect the mods directory, creating it when absent.

        Args:
            create: Create a missing directory. When False a missing
                directory is simply empty.

        Raises:
            ScanError: If the directory exists but cannot be listed.
        """
        if not self.mods_path.exists():
            if not create:
                return []
            logger.info(f"Creating server mods directory {self.mods_path}")
            try:
                self.mods_path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ScanError(f"Cannot create server mods directory {self.mods_path}: {e}") from e
            return []

        if not self.mods_path.is_dir():
            raise ScanError(f"Server mods path is not a directory: {self.mods_path}")

        try:
            children = sorted(self.mods_path.iterdir())
        except OSError as e:
            raise ScanError(f"Cannot read server mods directory {self.mods_path}: {e}") from e

        entries = []
        for child in children:
            # Dot folders are our own staging/backup folders or not mods at all
            if child.name.startswith('.') or not child.is_dir():
                continue
            try:
                entry = ServerModEntry(
                    folder=child.name,
                    path=child,
                    well_formed=find_child(child, "addons") is not None,
                    workshop_id=resolve_workshop_id(child),
                )
            except OSError as e:
                logger.warning(f"Cannot read server folder {child.name}, treating it as unmanaged: {e}")
                entry = ServerModEntry(folder=child.name, path=child, well_formed=False)
            entries.append(entry)

        unmanaged = [e.folder for e in entries if not e.managed]
        if unmanaged:
            logger.debug(f"Unmanaged folders in {self.mods_path}: {', '.join(unmanaged)}")
        return entries
