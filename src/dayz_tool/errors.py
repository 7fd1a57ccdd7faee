"""
Exceptions raised by DayZ Tool.

Every error derives from ``DayZToolError`` so command-line entry points can
report them uniformly.
"""

from typing import Iterable


class DayZToolError(Exception):
    """Base class for all DayZ Tool errors."""


class ScanError(DayZToolError):
    """A Workshop or server mod directory could not be read."""


class ModNotFound(DayZToolError):
    """The requested mod is not in the Workshop cache or not installed."""

    def __init__(self, mod_id: str, where: str = "installed mods"):
        super().__init__(f"Mod '{mod_id}' not found in {where}")
        self.mod_id = mod_id


class AlreadyInstalled(DayZToolError):
    """The requested mod already has a record in the profile."""

    def __init__(self, mod_id: str):
        super().__init__(f"Mod '{mod_id}' is already installed")
        self.mod_id = mod_id


class InstallFailed(DayZToolError):
    """Copying a mod into the server failed; prior state is untouched."""

    def __init__(self, mod_id: str, reason: str):
        super().__init__(f"Installing mod '{mod_id}' failed: {reason}")
        self.mod_id = mod_id
        self.reason = reason


class UpdateFailed(DayZToolError):
    """Replacing an installed mod failed; the previous folder was kept."""

    def __init__(self, mod_id: str, reason: str):
        super().__init__(f"Updating mod '{mod_id}' failed: {reason}")
        self.mod_id = mod_id
        self.reason = reason


class StoreWriteError(DayZToolError):
    """
    The mod record store could not be persisted after the server changed.

    The server mod folders and the recorded state have diverged for the
    mods listed in ``mod_ids``.
    """

    def __init__(self, path: str, reason: str, mod_ids: Iterable[str] = ()):
        self.path = path
        self.reason = reason
        self.mod_ids = sorted(mod_ids)
        message = f"Could not write mod records to {path}: {reason}"
        if self.mod_ids:
            message += (f". Server folders for {', '.join(self.mod_ids)} were changed "
                        "but not recorded; re-run the command to reconcile")
        super().__init__(message)


class ProfileNotFound(DayZToolError):
    """No profile with the given name exists."""

    def __init__(self, name: str):
        super().__init__(f"Profile '{name}' not found")
        self.name = name


class ProfileExists(DayZToolError):
    """A profile with the given name already exists."""

    def __init__(self, name: str):
        super().__init__(f"Profile '{name}' already exists")
        self.name = name


class GuidError(DayZToolError):
    """A Steam64 id failed validation."""


class DncError(DayZToolError):
    """Day/night cycle input could not be turned into valid server settings."""
