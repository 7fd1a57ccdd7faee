"""
Data models for mod synchronization.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


def workshop_sort_key(mod_id: str):
    """Sort numeric Workshop ids numerically, anything else after them by name."""
    if mod_id.isdigit():
        return (0, int(mod_id), mod_id)
    return (1, 0, mod_id)


def utc_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def default_folder_name(mod_id: str) -> str:
    return f"@{mod_id}"


@dataclass
class ModRecord:
    """A mod the profile considers installed."""
    workshop_id: str
    name: str
    fingerprint: str
    synced_at: str = field(default_factory=utc_now)
    folder: str = ""
    keys: List[str] = field(default_factory=list)
    economy: str = ""

    def __post_init__(self):
        if not self.folder:
            self.folder = default_folder_name(self.workshop_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'workshop_id': self.workshop_id,
            'name': self.name,
            'fingerprint': self.fingerprint,
            'synced_at': self.synced_at,
            'folder': self.folder,
            'keys': sorted(self.keys),
            'economy': self.economy,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ModRecord':
        return cls(
            workshop_id=str(data['workshop_id']),
            name=data.get('name') or str(data['workshop_id']),
            fingerprint=data.get('fingerprint', ''),
            synced_at=data.get('synced_at') or utc_now(),
            folder=data.get('folder', ''),
            keys=list(data.get('keys') or []),
            economy=data.get('economy') or "",
        )


@dataclass
class WorkshopEntry:
    """A mod available in the Workshop cache. Recomputed every run."""
    workshop_id: str
    name: str
    fingerprint: str
    path: Path


@dataclass
class WorkshopCatalog:
    entries: Dict[str, WorkshopEntry] = field(default_factory=dict)
    warnings: int = 0

    def get(self, mod_id: str) -> Optional[WorkshopEntry]:
        return self.entries.get(mod_id)

    def __contains__(self, mod_id: str) -> bool:
        return mod_id in self.entries

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class ServerModEntry:
    """A folder in the server mods directory. Recomputed every run."""
    folder: str
    path: Path
    well_formed: bool
    workshop_id: Optional[str] = None

    @property
    def managed(self) -> bool:
        return self.workshop_id is not None


class Freshness(str, Enum):
    CURRENT = "current"
    UPDATE_AVAILABLE = "update-available"
    ORPHANED = "orphaned"


class ModAction(str, Enum):
    INSTALL = "install"
    UPDATE = "update"
    UNINSTALL = "uninstall"


class ModStatus(str, Enum):
    INSTALLED = "installed"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    REMOVED = "removed"
    ORPHANED = "orphaned"
    FAILED = "failed"


@dataclass
class ModOutcome:
    mod_id: str
    action: ModAction
    status: ModStatus
    message: str = ""


@dataclass
class KeyConflict:
    """
    Two sources ship a key file with the same name but different bytes.

    ``winner_id`` is None when the file already in the keys directory does
    not belong to any managed mod.
    """
    filename: str
    winner_id: Optional[str]
    loser_id: str

    def describe(self) -> str:
        winner = f"mod {self.winner_id}" if self.winner_id else "an unmanaged file"
        return (f"{self.filename}: mod {self.loser_id} ships a different version; "
                f"keeping the one from {winner}")


@dataclass
class SyncResult:
    """Outcome of one engine operation."""
    outcomes: List[ModOutcome] = field(default_factory=list)
    key_conflicts: List[KeyConflict] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not any(o.status == ModStatus.FAILED for o in self.outcomes)

    def add(self, mod_id: str, action: ModAction, status: ModStatus, message: str = "") -> ModOutcome:
        outcome = ModOutcome(mod_id, action, status, message)
        self.outcomes.append(outcome)
        return outcome

    def by_status(self, status: ModStatus) -> List[str]:
        return [o.mod_id for o in self.outcomes if o.status == status]


@dataclass
class ModListing:
    record: ModRecord
    freshness: Freshness
    workshop_fingerprint: Optional[str] = None


@dataclass
class ListResult:
    mods: List[ModListing] = field(default_factory=list)
    unmanaged: List[str] = field(default_factory=list)
