"""
Repository interface consumed by the reconciliation engine, plus two
implementations: an in-memory store and a JSON-file backed store used
as the local workspace by the command-line tools.

The engine treats every repository call as fallible; any exception a
repository raises is recorded against the item being processed.
"""

import json
import os
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Protocol, Union

from ..exceptions import RepositoryError
from ..snapshot.codec import SnapshotCodec
from ..snapshot.models import File, Folder, Identifier


class Repository(Protocol):
    """CRUD surface of a workspace store."""

    def list_folders(self) -> List[Folder]:
        ...

    def list_files(self) -> List[File]:
        ...

    def create_folder(self, name: str, parent_id: Optional[Identifier]) -> Identifier:
        ...

    def delete_folder(self, folder_id: Identifier) -> None:
        ...

    def toggle_folder_open(self, folder_id: Identifier) -> None:
        ...

    def create_file(self, folder_id: Optional[Identifier], title: str, content: str) -> Identifier:
        ...

    def delete_file(self, file_id: Identifier) -> None:
        ...


class InMemoryRepository:
    """
    In-memory workspace store.

    Enforces referential integrity: parents and folders must exist when
    referenced, and only empty folders can be deleted. New folders start
    open. Listing returns copies in creation order.
    """

    def __init__(self):
        self._folders: Dict[Identifier, Folder] = {}
        self._files: Dict[Identifier, File] = {}
        self._next_id = 1

    def _allocate_id(self) -> int:
        new_id = self._next_id
        self._next_id += 1
        return new_id

    @staticmethod
    def _timestamp() -> str:
        return datetime.now(timezone.utc).isoformat()

    # Read access

    def list_folders(self) -> List[Folder]:
        return [replace(folder) for folder in self._folders.values()]

    def list_files(self) -> List[File]:
        return [replace(file) for file in self._files.values()]

    def get_folder(self, folder_id: Identifier) -> Folder:
        try:
            return replace(self._folders[folder_id])
        except KeyError:
            raise RepositoryError(f"Folder not found: {folder_id!r}") from None

    # Mutations

    @contextmanager
    def _mutation(self) -> Iterator[None]:
        """
        Apply one change and persist it.

        When ``_changed`` fails the folders, files and id counter are put
        back as they were.
        """
        previous = (dict(self._folders), dict(self._files), self._next_id)
        yield
        try:
            self._changed()
        except Exception:
            self._folders, self._files, self._next_id = previous
            raise

    def create_folder(self, name: str, parent_id: Optional[Identifier] = None) -> Identifier:
        if not name:
            raise RepositoryError("Folder name must not be empty")
        if parent_id is not None and parent_id not in self._folders:
            raise RepositoryError(f"Parent folder not found: {parent_id!r}")

        with self._mutation():
            folder_id = self._allocate_id()
            self._folders[folder_id] = Folder(id=folder_id, name=name, parent_id=parent_id, is_open=True)
        return folder_id

    def delete_folder(self, folder_id: Identifier) -> None:
        if folder_id not in self._folders:
            raise RepositoryError(f"Folder not found: {folder_id!r}")
        if any(folder.parent_id == folder_id for folder in self._folders.values()):
            raise RepositoryError(f"Folder {folder_id!r} still has subfolders")
        if any(file.folder_id == folder_id for file in self._files.values()):
            raise RepositoryError(f"Folder {folder_id!r} still contains files")

        with self._mutation():
            del self._folders[folder_id]

    def toggle_folder_open(self, folder_id: Identifier) -> None:
        if folder_id not in self._folders:
            raise RepositoryError(f"Folder not found: {folder_id!r}")
        folder = self._folders[folder_id]
        with self._mutation():
            self._folders[folder_id] = replace(folder, is_open=not folder.is_open)

    def create_file(self, folder_id: Optional[Identifier], title: str, content: str = "") -> Identifier:
        if folder_id is not None and folder_id not in self._folders:
            raise RepositoryError(f"Folder not found: {folder_id!r}")

        now = self._timestamp()
        with self._mutation():
            file_id = self._allocate_id()
            self._files[file_id] = File(
                id=file_id,
                folder_id=folder_id,
                title=title,
                content=content,
                created_at=now,
                updated_at=now
            )
        return file_id

    def delete_file(self, file_id: Identifier) -> None:
        if file_id not in self._files:
            raise RepositoryError(f"File not found: {file_id!r}")
        with self._mutation():
            del self._files[file_id]

    def _changed(self) -> None:
        """Hook called after every successful mutation."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(folders={len(self._folders)}, files={len(self._files)})"


class JsonFileRepository(InMemoryRepository):
    """
    Workspace store persisted to a single JSON file.

    The file uses the snapshot record shape plus a ``nextId`` counter and
    is rewritten after every mutation.
    """

    def __init__(self, path: Union[str, Path], codec: Optional[SnapshotCodec] = None):
        """
        Initialize repository.

        Args:
            path: Workspace file (created on first mutation if missing)
            codec: Codec used to read and write records
        """
        super().__init__()
        self.path = Path(path)
        self.codec = codec or SnapshotCodec()

        if self.path.exists():
            self._load()

    def _load(self) -> None:
        with open(self.path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        # Unknown keys such as nextId are ignored by the codec
        state = self.codec.decode(data)
        self._folders = {folder.id: folder for folder in state.folders}
        self._files = {file.id: file for file in state.files}

        known_ids = [
            item_id for item_id in list(self._folders) + list(self._files)
            if isinstance(item_id, int)
        ]
        self._next_id = max([data.get("nextId", 1)] + [item_id + 1 for item_id in known_ids])

    def _changed(self) -> None:
        self.save()

    def save(self) -> None:
        """Write the store to disk (via a temporary file, then rename)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        data = self.codec.to_dict(self._folders.values(), self._files.values())
        data["nextId"] = self._next_id

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except Exception:
            if tmp_path.exists():
                tmp_path.unlink()
            raise
