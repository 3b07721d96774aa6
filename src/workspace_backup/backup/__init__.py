"""
Backup orchestration: read the workspace, encode it, store it.
"""

from .manager import BackupResult, WorkspaceBackupManager

__all__ = [
    "BackupResult",
    "WorkspaceBackupManager",
]
