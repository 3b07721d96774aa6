"""
Local-file storage adapter.

Snapshots are plain JSON files; there is no remote transport. Writing
and reading the files is done with the helpers below.
"""

from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from .base import AdapterKind, StorageAdapter
from ..snapshot.codec import SnapshotCodec

SNAPSHOT_FILE_PREFIX = "workspace_backup_"


def create_local_adapter(codec: Optional[SnapshotCodec] = None) -> StorageAdapter:
    """
    Create the local-file adapter.

    Args:
        codec: Snapshot codec (default: indented JSON)

    Returns:
        StorageAdapter with encode/decode only
    """
    codec = codec or SnapshotCodec()
    return StorageAdapter(
        id=AdapterKind.LOCAL.value,
        kind=AdapterKind.LOCAL,
        name="Local file",
        encode=codec.encode,
        decode=codec.decode,
        description="JSON snapshot files on the local file system",
    )


def snapshot_filename(timestamp: Optional[datetime] = None) -> str:
    timestamp = timestamp or datetime.now()
    return f"{SNAPSHOT_FILE_PREFIX}{timestamp.strftime('%Y%m%d_%H%M%S')}.json"


def write_snapshot_file(payload: str, output_dir: Union[str, Path],
                        filename: Optional[str] = None) -> Path:
    """
    Write an encoded snapshot into a directory.

    Args:
        payload: Encoded snapshot text
        output_dir: Target directory (created if missing)
        filename: File name (default: timestamped name)

    Returns:
        Path of the written file
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    path = output_dir / (filename or snapshot_filename())
    with open(path, 'w', encoding='utf-8') as f:
        f.write(payload)
    return path


def read_snapshot_file(path: Union[str, Path]) -> str:
    """Read an encoded snapshot file."""
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


def list_snapshot_files(backups_dir: Union[str, Path]) -> List[Path]:
    """Snapshot files in a directory, newest first."""
    backups_dir = Path(backups_dir)
    if not backups_dir.is_dir():
        return []
    files = [
        path for path in backups_dir.glob("*.json")
        if path.is_file()
    ]
    files.sort(key=lambda path: path.stat().st_mtime, reverse=True)
    return files
