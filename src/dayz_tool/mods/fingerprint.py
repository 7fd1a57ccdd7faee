"""
Cheap content fingerprints for mod directories.

A fingerprint combines the total byte size and the newest modification time
of every file below a directory. It is a change detector, not a content
hash: both the Workshop side and the recorded side are computed by
``fingerprint_directory`` so they stay comparable.
"""

import os
from pathlib import Path
from typing import Iterator

IGNORED_FILES = {"desktop.ini", "thumbs.db"}


def is_ignored(name: str) -> bool:
    """Hidden files and OS clutter do not count towards a mod's content."""
    return name.startswith('.') or name.lower() in IGNORED_FILES


def iter_mod_files(root: Path) -> Iterator[Path]:
    """
    Yield every regular file below ``root``, skipping ignored names.

    Raises:
        OSError: If a directory below ``root`` cannot be listed.
    """
    def _raise(error: OSError):
        raise error

    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        dirnames[:] = sorted(d for d in dirnames if not is_ignored(d))
        for filename in sorted(filenames):
            if not is_ignored(filename):
                yield Path(dirpath) / filename


def fingerprint_directory(root: Path) -> str:
    """
    Return ``"<total_bytes>-<latest_mtime_ns>"`` for the files below ``root``.

    Raises:
        OSError: If the tree cannot be walked or a file cannot be stat'ed.
    """
    total_size = 0
    latest_mtime = 0
    for path in iter_mod_files(Path(root)):
        stat = path.stat()
        total_size += stat.st_size
        latest_mtime = max(latest_mtime, stat.st_mtime_ns)
    return f"{total_size}-{latest_mtime}"
