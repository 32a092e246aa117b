"""Configuration management for code-backup."""

import os
from dataclasses import dataclass


DEFAULT_BACKUP_DIR = os.path.join("~", ".code_backups")
DEFAULT_EMERGENCY_BACKUP_DIR = os.path.join("~", ".code_emergency_backups")


def _resolve_dir(path: str) -> str:
    return os.path.normpath(os.path.abspath(os.path.expanduser(path)))


@dataclass(frozen=True)
class BackupConfig:
    """Backup store configuration.

    Store roots are expanded and made absolute once, at construction, and
    stay fixed for the lifetime of the process.
    """
    backup_dir: str = DEFAULT_BACKUP_DIR
    emergency_backup_dir: str = DEFAULT_EMERGENCY_BACKUP_DIR
    max_versions: int = 10
    copy_chunk_size: int = 1024 * 1024  # cancellation is polled once per chunk

    @classmethod
    def from_env(cls) -> 'BackupConfig':
        """Create config from environment variables."""
        return cls(
            backup_dir=os.getenv("BACKUP_DIR", DEFAULT_BACKUP_DIR),
            emergency_backup_dir=os.getenv("EMERGENCY_BACKUP_DIR", DEFAULT_EMERGENCY_BACKUP_DIR),
            max_versions=int(os.getenv("MAX_VERSIONS", "10")),
            copy_chunk_size=int(os.getenv("COPY_CHUNK_SIZE", str(1024 * 1024)))
        )

    def __post_init__(self):
        """Normalize store roots and validate configuration."""
        object.__setattr__(self, "backup_dir", _resolve_dir(self.backup_dir))
        object.__setattr__(self, "emergency_backup_dir", _resolve_dir(self.emergency_backup_dir))

        if self.max_versions <= 0:
            raise ValueError(f"max_versions must be positive, got {self.max_versions}")
        if self.copy_chunk_size <= 0:
            raise ValueError(f"copy_chunk_size must be positive, got {self.copy_chunk_size}")
        if os.path.normcase(self.backup_dir) == os.path.normcase(self.emergency_backup_dir):
            raise ValueError(
                f"backup_dir and emergency_backup_dir must differ, both are {self.backup_dir}"
            )

    def to_dict(self) -> dict:
        """Convert config to a plain dictionary."""
        return {
            "backup_dir": self.backup_dir,
            "emergency_backup_dir": self.emergency_backup_dir,
            "max_versions": self.max_versions,
            "copy_chunk_size": self.copy_chunk_size,
        }
