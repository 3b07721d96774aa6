"""
Snapshot data model and codec.

This package defines the folder/file/snapshot value objects and the
versioned JSON format used for every backup, whatever the storage backend.
"""

from .models import Folder, File, Snapshot
from .codec import SnapshotCodec, CURRENT_VERSION, encode, decode

__all__ = [
    "Folder",
    "File",
    "Snapshot",
    "SnapshotCodec",
    "CURRENT_VERSION",
    "encode",
    "decode",
]
