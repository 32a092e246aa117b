"""On-disk naming contract for backup stores.

A store root mirrors the original filesystem below it: the backup of
``/home/me/project/app.py`` lives in ``<root>/home/me/project/`` as
``app.py.<timestamp>`` with its descriptor ``app.py.<timestamp>.meta.json``.
Every path that points into a store is built here.
"""

import os
import re
from datetime import datetime
from typing import Optional

METADATA_SUFFIX = ".meta.json"
EMERGENCY_INFIX = ".emergency."

TIMESTAMP_PATTERN = re.compile(r"^\d{8}-\d{6}-\d{3}$")
VERSIONED_SUFFIX_PATTERN = re.compile(r"\.\d{8}-\d{6}-\d{3}$")

_DRIVE_PREFIX = re.compile(r"^[a-zA-Z]:")


def generate_timestamp(now: Optional[datetime] = None) -> str:
    """Generate a fixed-width, lexically sortable timestamp.

    Args:
        now: Instant to format, defaults to the current local time

    Returns:
        Timestamp in format: YYYYMMDD-HHMMSS-mmm
    """
    now = now or datetime.now()
    return f"{now.strftime('%Y%m%d-%H%M%S')}-{now.microsecond // 1000:03d}"


def normalize_path(path: str) -> str:
    """Absolute, platform-normalized form of a user-supplied path."""
    return os.path.normpath(os.path.abspath(path))


def is_ancestor_or_same(parent: str, child: str) -> bool:
    """True when ``child`` is ``parent`` or lies somewhere below it."""
    parent = os.path.normcase(normalize_path(parent)).rstrip(os.sep) + os.sep
    child = os.path.normcase(normalize_path(child)).rstrip(os.sep) + os.sep
    return child.startswith(parent)


def is_versioned_name(name: str) -> bool:
    return VERSIONED_SUFFIX_PATTERN.search(name) is not None


def metadata_path_for(entry_path: str) -> str:
    """Descriptor path for a backup entry."""
    return f"{entry_path}{METADATA_SUFFIX}"


class PathMapper:
    """Maps original paths to entry locations below one store root."""

    def __init__(self, store_root: str):
        self.store_root = normalize_path(store_root)

    def backup_dir_for(self, original_path: str) -> str:
        """Directory mirroring the original's parent, drive and root stripped."""
        parent = os.path.dirname(normalize_path(original_path))
        _, relative = os.path.splitdrive(parent)
        relative = _DRIVE_PREFIX.sub("", relative)
        relative = relative.lstrip("/\\")
        return os.path.join(self.store_root, relative) if relative else self.store_root

    @staticmethod
    def entry_name_for(original_path: str, timestamp: str, emergency: bool = False) -> str:
        """``<name><ext>.<timestamp>``, with an ``.emergency.`` infix for safety-net entries."""
        base = os.path.basename(normalize_path(original_path))
        separator = EMERGENCY_INFIX if emergency else "."
        return f"{base}{separator}{timestamp}"

    def entry_path_for(self, original_path: str, timestamp: str, emergency: bool = False) -> str:
        return os.path.join(
            self.backup_dir_for(original_path),
            self.entry_name_for(original_path, timestamp, emergency=emergency),
        )

    def contains(self, path: str) -> bool:
        """True when ``path`` lies inside this store root."""
        return is_ancestor_or_same(self.store_root, path)
