"""
Folder ordering for restoration and wipe.

Folders form a forest through their parent references. Restoration needs
parents before children (topological order); wiping a live repository
needs the reverse. Cycles are detected instead of looping forever.
"""

from collections import deque
from typing import Dict, List, Optional, Sequence

from ..exceptions import CyclicHierarchy
from ..snapshot.models import Folder, Identifier


class FolderOrderResolver:
    """
    Computes parent-before-child orderings over a list of folders.

    Sibling order follows the input order, so the same folder list always
    produces the same sequence.
    """

    def __init__(self, folders: Sequence[Folder]):
        """
        Initialize resolver.

        Args:
            folders: Folders to order (identifiers must be unique)
        """
        self.folders: List[Folder] = list(folders)
        self._by_id: Dict[Identifier, Folder] = {folder.id: folder for folder in self.folders}

    def build_children_graph(self, lenient: bool = False) -> Dict[Optional[Identifier], List[Folder]]:
        """
        Group folders by parent identifier.

        Args:
            lenient: Treat folders whose parent is unknown as roots

        Returns:
            Mapping of parent id (None for roots) to children in input order
        """
        graph: Dict[Optional[Identifier], List[Folder]] = {}
        for folder in self.folders:
            parent_id = folder.parent_id
            if lenient and parent_id is not None and parent_id not in self._by_id:
                parent_id = None
            graph.setdefault(parent_id, []).append(folder)
        return graph

    def _walk(self, lenient: bool) -> List[Folder]:
        graph = self.build_children_graph(lenient=lenient)
        queue = deque(graph.get(None, []))
        result: List[Folder] = []

        while queue:
            current = queue.popleft()
            result.append(current)
            queue.extend(graph.get(current.id, []))

        return result

    def get_restoration_order(self) -> List[Folder]:
        """
        Order folders so every folder comes after its parent.

        Returns:
            Folders in restoration order

        Raises:
            CyclicHierarchy: If some folders can never be reached from a
                root (a cycle, or a parent outside the folder set)
        """
        result = self._walk(lenient=False)

        if len(result) != len(self.folders):
            ordered = {folder.id for folder in result}
            remaining = [folder.id for folder in self.folders if folder.id not in ordered]
            raise CyclicHierarchy(self.find_cycle() or remaining)

        return result

    def get_deletion_order(self) -> List[Folder]:
        """
        Order folders children-first for deletion.

        Never fails: unknown parents count as roots and folders caught in
        a cycle are appended in input order.
        """
        result = self._walk(lenient=True)
        ordered = {folder.id for folder in result}
        stragglers = [folder for folder in self.folders if folder.id not in ordered]
        return list(reversed(result)) + stragglers

    def find_cycle(self) -> Optional[List[Identifier]]:
        """
        Find one cycle among the parent references.

        Returns:
            Identifiers forming the cycle (first repeated at the end), or None
        """
        finished = set()

        for folder in self.folders:
            path: List[Identifier] = []
            on_path = set()
            current: Optional[Folder] = folder

            while current is not None and current.id not in finished:
                if current.id in on_path:
                    start = path.index(current.id)
                    return path[start:] + [current.id]
                path.append(current.id)
                on_path.add(current.id)
                parent_id = current.parent_id
                current = self._by_id.get(parent_id) if parent_id is not None else None

            finished.update(path)

        return None

    def validate(self) -> List[str]:
        """
        Check the parent references and return any issues found.

        Returns:
            List of validation error messages
        """
        errors = []

        for folder in self.folders:
            if folder.parent_id is not None and folder.parent_id == folder.id:
                errors.append(f"Folder {folder.id!r} ('{folder.name}') is its own parent")
            elif folder.parent_id is not None and folder.parent_id not in self._by_id:
                errors.append(
                    f"Folder {folder.id!r} ('{folder.name}') references unknown parent "
                    f"{folder.parent_id!r}"
                )

        cycle = self.find_cycle()
        if cycle and len(cycle) > 2:
            errors.append("Cyclic folder hierarchy: " + " -> ".join(repr(i) for i in cycle))

        return errors

    def get_depths(self) -> Dict[Identifier, int]:
        """Depth of every reachable folder (roots are depth 0)."""
        depths: Dict[Identifier, int] = {}
        for folder in self._walk(lenient=True):
            parent_depth = depths.get(folder.parent_id, -1) if folder.parent_id is not None else -1
            depths[folder.id] = parent_depth + 1
        return depths
