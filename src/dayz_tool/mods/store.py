"""
ModRecord Store

Persists the installed-mod records of each profile as one JSON document,
``<state_dir>/<profile>.mods.json``. Every save replaces the whole document.
"""

import logging
from pathlib import Path
from typing import Dict, Optional

from ..base import JSONTool
from ..errors import DayZToolError, StoreWriteError
from .models import ModRecord, workshop_sort_key

logger = logging.getLogger(__name__)

STORE_VERSION = 1


class ModRecordStore(JSONTool):
    """
    Load and save ``ModRecord`` mappings keyed by Workshop id.

    Usage:
        store = ModRecordStore("~/.dayz-tool/state")
        records = store.load(profile)
        records["1559212036"] = ModRecord(...)
        store.save(profile, records)
    """

    def __init__(self, state_dir: Optional[str] = None) -> None:
        super().__init__()
        if state_dir is None:
            from config.config import Config
            state_dir = Config.default_state_dir()
        self.state_dir = Path(self.resolve_path(state_dir))

    def run(self, profile) -> Dict[str, ModRecord]:
        return self.load(profile)

    def path_for(self, profile) -> Path:
        return self.state_dir / f"{profile.name}.mods.json"

    def load(self, profile) -> Dict[str, ModRecord]:
        """
        Load the records of ``profile``. A missing file means no mods.

        Raises:
            DayZToolError: If the file exists but cannot be parsed.
        """
        path = self.path_for(profile)
        if not path.exists():
            return {}
        try:
            data = self.read_json(str(path))
        except (OSError, ValueError) as e:
            raise DayZToolError(f"Cannot read mod records from {path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get('mods'), list):
            raise DayZToolError(f"Invalid mod record file: {path}")

        records: Dict[str, ModRecord] = {}
        try:
            for item in data['mods']:
                record = ModRecord.from_dict(item)
                if record.workshop_id in records:
                    logger.warning(f"Duplicate record for mod {record.workshop_id} in {path}; keeping the first")
                    continue
                records[record.workshop_id] = record
        except (KeyError, TypeError) as e:
            raise DayZToolError(f"Invalid mod record file: {path}") from e
        logger.debug(f"Loaded {len(records)} mod records for profile '{profile.name}'")
        return records

    def save(self, profile, records: Dict[str, ModRecord]) -> None:
        """
        Atomically replace the records of ``profile``.

        Raises:
            StoreWriteError: If the file cannot be written.
        """
        path = self.path_for(profile)
        data = {
            'version': STORE_VERSION,
            'profile': profile.name,
            'mods': [records[mod_id].to_dict()
                     for mod_id in sorted(records, key=workshop_sort_key)],
        }
        try:
            self.write_json(data, str(path))
        except (OSError, TypeError, ValueError) as e:
            raise StoreWriteError(str(path), str(e)) from e
        logger.debug(f"Saved {len(records)} mod records for profile '{profile.name}'")
