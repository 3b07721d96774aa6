"""
Snapshot codec: converts a workspace to and from the versioned JSON format.

The wire format uses camelCase keys:

    {
      "version": 1,
      "exportedAt": "<ISO-8601>",
      "folders": [{"id", "name", "parentId", "isOpen"}, ...],
      "files": [{"id", "folderId", "title", "content", "createdAt", "updatedAt"}, ...]
    }

Decoding checks structure only. Cross references (file -> folder,
folder -> parent) are left to the reconciliation engine so a broken
snapshot can still be inspected.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .models import File, Folder, Identifier, Snapshot
from ..exceptions import MalformedSnapshot, UnsupportedVersion

CURRENT_VERSION = 1

RawSnapshot = Union[str, bytes, bytearray, Mapping[str, Any]]


def utc_timestamp() -> str:
    """Current time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class SnapshotCodec:
    """
    Encodes and decodes workspace snapshots.

    Encoding is pure: inputs are only read, order is preserved and the
    only varying field is ``exportedAt``.
    """

    version = CURRENT_VERSION

    def __init__(self, indent: Optional[int] = 2):
        """
        Initialize codec.

        Args:
            indent: JSON indentation for encoded output (None for compact)
        """
        self.indent = indent

    # Encoding

    def to_dict(
        self,
        folders: Iterable[Folder],
        files: Iterable[File],
        exported_at: Optional[str] = None
    ) -> Dict[str, Any]:
        """Build the serializable snapshot structure."""
        return {
            "version": self.version,
            "exportedAt": exported_at or utc_timestamp(),
            "folders": [self.folder_to_record(folder) for folder in folders],
            "files": [self.file_to_record(file) for file in files],
        }

    def encode(
        self,
        folders: Iterable[Folder],
        files: Iterable[File],
        exported_at: Optional[str] = None
    ) -> str:
        """
        Serialize a workspace into snapshot text.

        Args:
            folders: Folders in the order they should be written
            files: Files in the order they should be written
            exported_at: Override for the export timestamp

        Returns:
            JSON text of the snapshot
        """
        return json.dumps(
            self.to_dict(folders, files, exported_at),
            indent=self.indent,
            ensure_ascii=False
        )

    def encode_snapshot(self, snapshot: Snapshot) -> str:
        """Re-serialize an already decoded snapshot, keeping its timestamp."""
        return self.encode(snapshot.folders, snapshot.files, snapshot.exported_at)

    @staticmethod
    def folder_to_record(folder: Folder) -> Dict[str, Any]:
        return {
            "id": folder.id,
            "name": folder.name,
            "parentId": folder.parent_id,
            "isOpen": folder.is_open,
        }

    @staticmethod
    def file_to_record(file: File) -> Dict[str, Any]:
        return {
            "id": file.id,
            "folderId": file.folder_id,
            "title": file.title,
            "content": file.content,
            "createdAt": file.created_at,
            "updatedAt": file.updated_at,
        }

    # Decoding

    def decode(self, raw: RawSnapshot) -> Snapshot:
        """
        Parse snapshot text (or an already parsed mapping).

        Args:
            raw: JSON text, UTF-8 bytes or a mapping

        Returns:
            Decoded Snapshot

        Raises:
            MalformedSnapshot: If the input does not have the snapshot shape
            UnsupportedVersion: If the version is not one this codec reads
        """
        data = self._load(raw)

        version = self._parse_version(data)

        exported_at = data.get("exportedAt")
        if exported_at is not None and not isinstance(exported_at, str):
            raise MalformedSnapshot("'exportedAt' must be a string timestamp")
        if exported_at is not None:
            self._check_text(exported_at, "'exportedAt'")

        folders_data = self._require_list(data, "folders")
        files_data = self._require_list(data, "files")

        folders = [
            self._parse_folder(record, index)
            for index, record in enumerate(folders_data)
        ]
        files = [
            self._parse_file(record, index)
            for index, record in enumerate(files_data)
        ]

        return Snapshot(
            version=version,
            exported_at=exported_at,
            folders=folders,
            files=files
        )

    def _load(self, raw: RawSnapshot) -> Mapping[str, Any]:
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedSnapshot(f"Snapshot is not valid UTF-8: {e}") from e

        if isinstance(raw, str):
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                raise MalformedSnapshot(f"Snapshot is not valid JSON: {e}") from e
        else:
            data = raw

        if not isinstance(data, Mapping):
            raise MalformedSnapshot(
                f"Snapshot must be a JSON object, got {type(data).__name__}"
            )
        return data

    def _parse_version(self, data: Mapping[str, Any]) -> int:
        if "version" not in data:
            # Snapshots written before versioning are treated as version 1
            return self.version

        version = data["version"]
        if isinstance(version, bool) or not isinstance(version, int):
            raise MalformedSnapshot(f"'version' must be an integer, got {version!r}")
        if version < 1 or version > self.version:
            raise UnsupportedVersion(version, self.version)
        return version

    @staticmethod
    def _require_list(data: Mapping[str, Any], key: str) -> List[Any]:
        if key not in data:
            raise MalformedSnapshot(f"Snapshot is missing required field '{key}'")
        value = data[key]
        if not isinstance(value, list):
            raise MalformedSnapshot(
                f"'{key}' must be a list, got {type(value).__name__}"
            )
        return value

    def _parse_folder(self, record: Any, index: int) -> Folder:
        where = f"folders[{index}]"
        if not isinstance(record, Mapping):
            raise MalformedSnapshot(f"{where} must be an object")

        name = record.get("name")
        if not isinstance(name, str) or not name:
            raise MalformedSnapshot(f"{where}.name must be a non-empty string")
        self._check_text(name, f"{where}.name")

        is_open = record.get("isOpen", True)
        if not isinstance(is_open, bool):
            raise MalformedSnapshot(f"{where}.isOpen must be a boolean")

        return Folder(
            id=self._parse_identifier(record.get("id"), f"{where}.id"),
            name=name,
            parent_id=self._parse_optional_identifier(
                record.get("parentId"), f"{where}.parentId"
            ),
            is_open=is_open
        )

    def _parse_file(self, record: Any, index: int) -> File:
        where = f"files[{index}]"
        if not isinstance(record, Mapping):
            raise MalformedSnapshot(f"{where} must be an object")

        title = record.get("title", "")
        content = record.get("content", "")
        if not isinstance(title, str):
            raise MalformedSnapshot(f"{where}.title must be a string")
        if not isinstance(content, str):
            raise MalformedSnapshot(f"{where}.content must be a string")
        self._check_text(title, f"{where}.title")
        self._check_text(content, f"{where}.content")

        timestamps = {}
        for key in ("createdAt", "updatedAt"):
            value = record.get(key)
            if value is not None and not isinstance(value, str):
                raise MalformedSnapshot(f"{where}.{key} must be a string timestamp")
            if value is not None:
                self._check_text(value, f"{where}.{key}")
            timestamps[key] = value

        return File(
            id=self._parse_identifier(record.get("id"), f"{where}.id"),
            folder_id=self._parse_optional_identifier(
                record.get("folderId"), f"{where}.folderId"
            ),
            title=title,
            content=content,
            created_at=timestamps["createdAt"],
            updated_at=timestamps["updatedAt"]
        )

    @staticmethod
    def _parse_identifier(value: Any, where: str) -> Identifier:
        # bool is a subclass of int and never a valid identifier
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise MalformedSnapshot(f"{where} must be an integer or string identifier")
        if isinstance(value, str) and not value:
            raise MalformedSnapshot(f"{where} must not be empty")
        if isinstance(value, str):
            SnapshotCodec._check_text(value, where)
        return value

    @staticmethod
    def _check_text(value: str, where: str) -> None:
        # Rejects lone surrogates such as a decoded "\ud800" escape
        try:
            value.encode("utf-8")
        except UnicodeEncodeError as e:
            raise MalformedSnapshot(f"{where} is not valid Unicode text: {e.reason}") from e

    def _parse_optional_identifier(self, value: Any, where: str) -> Optional[Identifier]:
        if value is None:
            return None
        return self._parse_identifier(value, where)


_default_codec = SnapshotCodec()


def encode(folders: Iterable[Folder], files: Iterable[File],
           exported_at: Optional[str] = None) -> str:
    """Encode a workspace with the default codec."""
    return _default_codec.encode(folders, files, exported_at)


def decode(raw: RawSnapshot) -> Snapshot:
    """Decode a snapshot with the default codec."""
    return _default_codec.decode(raw)
