"""
Identifier remap table for a single reconciliation run.

Tracks which repository identifier each snapshot folder received so
child folders and files can be attached to the recreated parents.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

from ..snapshot.models import Identifier


@dataclass
class FolderMapping:
    """Represents a single old -> new folder mapping."""
    original_id: Identifier
    new_id: Identifier
    name: Optional[str] = None


class RemapTable:
    """
    Maps snapshot (foreign) folder identifiers to newly created ones.

    A mapping, once recorded, cannot be redirected to another identifier.
    """

    def __init__(self):
        self._mappings: Dict[Identifier, FolderMapping] = {}
        self._reverse_mappings: Dict[Identifier, Identifier] = {}  # new_id -> original_id

    def add_mapping(self, original_id: Identifier, new_id: Identifier,
                    name: Optional[str] = None) -> None:
        """
        Record the identifier a snapshot folder received.

        Args:
            original_id: Identifier in the snapshot
            new_id: Identifier assigned by the repository
            name: Folder name, kept for reporting

        Raises:
            ValueError: If original_id is already mapped elsewhere
        """
        existing = self._mappings.get(original_id)
        if existing is not None:
            if existing.new_id != new_id:
                raise ValueError(
                    f"Folder {original_id!r} already mapped to {existing.new_id!r}, "
                    f"cannot remap to {new_id!r}"
                )
            return

        self._mappings[original_id] = FolderMapping(original_id, new_id, name)
        self._reverse_mappings[new_id] = original_id

    def get_new_id(self, original_id: Identifier) -> Optional[Identifier]:
        mapping = self._mappings.get(original_id)
        return mapping.new_id if mapping else None

    def get_original_id(self, new_id: Identifier) -> Optional[Identifier]:
        return self._reverse_mappings.get(new_id)

    def resolve(self, original_id: Optional[Identifier]) -> Optional[Identifier]:
        """
        Translate a nullable snapshot reference.

        None stays None; a non-null identifier must already be mapped.

        Raises:
            KeyError: If original_id has no mapping yet
        """
        if original_id is None:
            return None
        mapping = self._mappings.get(original_id)
        if mapping is None:
            raise KeyError(original_id)
        return mapping.new_id

    def get_unmapped_ids(self, ids: Iterable[Identifier]) -> Set[Identifier]:
        return {item_id for item_id in ids if item_id not in self._mappings}

    def to_list(self) -> List[Dict[str, Any]]:
        """Serializable view, one record per mapping in creation order."""
        return [
            {"original_id": mapping.original_id, "new_id": mapping.new_id, "name": mapping.name}
            for mapping in self._mappings.values()
        ]

    def clear(self) -> None:
        self._mappings.clear()
        self._reverse_mappings.clear()

    def __len__(self) -> int:
        return len(self._mappings)

    def __contains__(self, original_id: Identifier) -> bool:
        return original_id in self._mappings

    def __repr__(self) -> str:
        return f"RemapTable(mappings={len(self._mappings)})"
