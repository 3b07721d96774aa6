"""
Storage adapters and the adapter registry.
"""

from .base import AdapterKind, StorageAdapter, UploadResult
from .local import create_local_adapter
from .registry import AdapterRegistry, create_default_registry

__all__ = [
    "AdapterKind",
    "StorageAdapter",
    "UploadResult",
    "create_local_adapter",
    "AdapterRegistry",
    "create_default_registry",
]
