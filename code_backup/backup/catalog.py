"""Full enumeration of the backup stores."""

import fnmatch
import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .._utils import logger
from .copier import Checkpoint, directory_size
from .models import CatalogEntry, CatalogListing
from .paths import METADATA_SUFFIX, is_versioned_name, metadata_path_for, normalize_path

ProgressCallback = Optional[Callable[[int], None]]


def read_original_path(descriptor_path: str) -> Optional[str]:
    """Best-effort ``original_path`` lookup that tolerates foreign or corrupt descriptors."""
    try:
        with open(descriptor_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to read metadata {descriptor_path}: {e}")
        return None

    original_path = data.get("original_path") if isinstance(data, dict) else None
    return original_path if isinstance(original_path, str) else None


@dataclass
class _ScanRun:
    """State of one ``scan`` call."""
    include_pattern: Optional[str]
    exclude_pattern: Optional[str]
    checkpoint: Checkpoint
    progress: ProgressCallback
    found: int = 0

    def record(self) -> None:
        self.found += 1
        if self.progress and self.found % 10 == 0:
            self.progress(min(90, (self.found // 10) * 5))


class CatalogScanner:
    """Walks the main and emergency store roots and reports every backup found.

    Include/exclude globs are matched against full paths. Exclude prunes
    directories as well as entries; include only decides which entries
    are reported, so the walk still reaches nested matches. A scanner
    holds no per-scan state and may run several scans at once.
    """

    def __init__(self, main_root: str, emergency_root: str):
        self.main_root = normalize_path(main_root)
        self.emergency_root = normalize_path(emergency_root)

    def scan(
        self,
        include_pattern: Optional[str] = None,
        exclude_pattern: Optional[str] = None,
        include_emergency: bool = True,
        checkpoint: Checkpoint = None,
        progress: ProgressCallback = None
    ) -> CatalogListing:
        """Scan the stores.

        Args:
            include_pattern: Optional glob an entry path must match
            exclude_pattern: Optional glob that drops an entry path or prunes a directory
            include_emergency: Whether to scan the emergency store too
            checkpoint: Cancellation hook called for every directory entry visited;
                if it raises, the scan is abandoned and nothing is returned
            progress: Optional callback receiving progress percentages

        Returns:
            Entries of each store in discovery order
        """
        listing = CatalogListing()
        run = _ScanRun(include_pattern, exclude_pattern, checkpoint, progress)

        self._scan_dir(self.main_root, listing.main, run)
        if progress:
            progress(50)

        if include_emergency:
            logger.debug(f"Scanning emergency backup directory: {self.emergency_root}")
            self._scan_dir(self.emergency_root, listing.emergency, run)

        logger.info(f"Catalog scan found {len(listing.main)} main and {len(listing.emergency)} emergency entries")
        return listing

    def _scan_dir(self, directory: str, results: List[CatalogEntry], run: _ScanRun) -> None:
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning(f"Failed to read backup directory {directory}: {e}")
            return

        for entry in entries:
            if run.checkpoint:
                run.checkpoint()

            if run.exclude_pattern and fnmatch.fnmatch(entry.path, run.exclude_pattern):
                continue

            is_dir = entry.is_dir(follow_symlinks=False)
            if is_dir and not is_versioned_name(entry.name):
                self._scan_dir(entry.path, results, run)
                continue

            if not (is_versioned_name(entry.name) or entry.name.endswith(METADATA_SUFFIX)):
                continue
            if run.include_pattern and not fnmatch.fnmatch(entry.path, run.include_pattern):
                continue

            try:
                results.append(self._describe(entry.path, entry.name, is_dir))
            except OSError as e:
                logger.warning(f"Error processing backup entry {entry.path}: {e}")
                continue

            run.record()

    @staticmethod
    def _describe(path: str, name: str, is_dir: bool) -> CatalogEntry:
        stats = os.stat(path)
        created = getattr(stats, "st_birthtime", stats.st_mtime)

        if name.endswith(METADATA_SUFFIX):
            original_path = read_original_path(path)
        else:
            original_path = read_original_path(metadata_path_for(path))

        return CatalogEntry(
            path=path,
            type="directory" if is_dir else "file",
            size=directory_size(path) if is_dir else stats.st_size,
            created_at=datetime.fromtimestamp(created, tz=timezone.utc).isoformat(),
            original_path=original_path,
        )
