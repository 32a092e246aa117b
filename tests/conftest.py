"""Global pytest configuration and fixtures."""

import os
import sys
import tempfile
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from code_backup.backup import BackupManager, OperationTracker
from code_backup.config import BackupConfig


@pytest.fixture
def temp_root():
    """Temporary directory holding the stores and the working tree."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(os.path.realpath(tmpdir))


@pytest.fixture
def work_dir(temp_root):
    """Directory for the files and folders being backed up."""
    path = temp_root / "work"
    path.mkdir()
    return path


@pytest.fixture
def config(temp_root):
    return BackupConfig(
        backup_dir=str(temp_root / "backups"),
        emergency_backup_dir=str(temp_root / "emergency"),
        max_versions=3,
        copy_chunk_size=4,
    )


@pytest.fixture
def tracker():
    return OperationTracker()


@pytest.fixture
def manager(config, tracker):
    return BackupManager(config, tracker)
