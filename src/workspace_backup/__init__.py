"""
Workspace Backup & Restore

Exports a workspace of folders and files to a versioned snapshot and
replaces a workspace from one, through local-file, GitHub or S3 storage.
"""

__version__ = "1.0.0"
__author__ = "Workspace Backup Restore"

from .backup.manager import WorkspaceBackupManager
from .restore.manager import WorkspaceRestoreManager
from .restore.engine import ReconciliationEngine
from .snapshot import SnapshotCodec, Snapshot, Folder, File
from .config import WorkspaceConfig

__all__ = [
    "WorkspaceBackupManager",
    "WorkspaceRestoreManager",
    "ReconciliationEngine",
    "SnapshotCodec",
    "Snapshot",
    "Folder",
    "File",
    "WorkspaceConfig",
    "__version__",
]
