"""
Restore modules: repositories, identifier remapping, folder ordering,
the reconciliation engine and the restore orchestration manager.
"""

from .repository import Repository, InMemoryRepository, JsonFileRepository
from .remap import RemapTable, FolderMapping
from .ordering import FolderOrderResolver
from .engine import ReconciliationEngine, ReplaceReport, OperationFailure
from .manager import WorkspaceRestoreManager

__all__ = [
    "Repository",
    "InMemoryRepository",
    "JsonFileRepository",
    "RemapTable",
    "FolderMapping",
    "FolderOrderResolver",
    "ReconciliationEngine",
    "ReplaceReport",
    "OperationFailure",
    "WorkspaceRestoreManager",
]
