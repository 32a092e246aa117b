from .config import BackupConfig
from .backup import BackupManager, OperationTracker

__version__ = "1.0.0"
__author__ = "code-backup contributors"
__url__ = "https://github.com/code-backup/code-backup"

__all__ = ["BackupConfig", "BackupManager", "OperationTracker", "__version__"]
