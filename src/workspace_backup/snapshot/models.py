"""
Workspace data model shared by the snapshot codec, the repositories
and the reconciliation engine.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

# Repositories may use integers or opaque strings as identifiers
Identifier = Union[int, str]


@dataclass
class Folder:
    """A folder in the workspace tree."""
    id: Identifier
    name: str
    parent_id: Optional[Identifier] = None
    is_open: bool = True


@dataclass
class File:
    """A document stored in a folder (or unfiled when folder_id is None)."""
    id: Identifier
    folder_id: Optional[Identifier]
    title: str
    content: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class Snapshot:
    """
    Decoded snapshot of a whole workspace.

    Identifiers inside a snapshot are foreign: they belonged to the
    repository the snapshot was exported from.
    """
    version: int
    exported_at: Optional[str]
    folders: List[Folder] = field(default_factory=list)
    files: List[File] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.folders and not self.files

    def folder_index(self) -> Dict[Identifier, Folder]:
        """Map folder id to folder (last one wins on duplicates)."""
        return {folder.id: folder for folder in self.folders}

    def get_stats(self) -> Dict[str, Any]:
        root_folders = sum(1 for folder in self.folders if folder.parent_id is None)
        unfiled = sum(1 for file in self.files if file.folder_id is None)
        return {
            "version": self.version,
            "exported_at": self.exported_at,
            "total_folders": len(self.folders),
            "root_folders": root_folders,
            "total_files": len(self.files),
            "unfiled_files": unfiled,
            "total_content_chars": sum(len(file.content) for file in self.files),
        }
