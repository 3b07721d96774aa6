"""
Storage adapter capability record.

An adapter is a plain record of functions: every adapter can encode and
decode snapshots, and may additionally upload, download,
authenticate and list stored snapshots. Callers check the ``supports_*`` flags instead of probing
with failing calls.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..exceptions import UnsupportedCapability
from ..snapshot.codec import RawSnapshot
from ..snapshot.models import File, Folder, Snapshot


class AdapterKind(str, Enum):
    """Closed set of adapter variants shipped with the package."""
    LOCAL = "local"
    GITHUB = "github"
    S3 = "s3"


@dataclass
class UploadResult:
    """Where an uploaded snapshot ended up."""
    remote_id: str
    remote_url: Optional[str] = None


EncodeFn = Callable[[Iterable[Folder], Iterable[File]], str]
DecodeFn = Callable[[RawSnapshot], Snapshot]
UploadFn = Callable[[str], UploadResult]
DownloadFn = Callable[[str], str]
AuthenticateFn = Callable[..., None]
ListFn = Callable[[], List[Dict[str, Any]]]

CAPABILITY_FIELDS = {
    "upload": "upload",
    "download": "download",
    "authenticate": "authenticate",
    "list": "list_snapshots",
}


@dataclass
class StorageAdapter:
    """
    Capability-tagged storage adapter.

    ``encode``/``decode`` are mandatory and may wrap the snapshot JSON
    in backend framing. ``upload``, ``download``, ``authenticate`` and
    ``list_snapshots`` are None when the backend does not provide them.
    ``close`` releases the backend client and is None when there is
    nothing to release.
    """
    id: str
    kind: AdapterKind
    name: str
    encode: EncodeFn
    decode: DecodeFn
    upload: Optional[UploadFn] = None
    download: Optional[DownloadFn] = None
    authenticate: Optional[AuthenticateFn] = None
    list_snapshots: Optional[ListFn] = None
    close: Optional[Callable[[], None]] = None
    description: str = ""
    backend: Any = None  # client object behind the functions, if any

    @property
    def supports_upload(self) -> bool:
        return self.upload is not None

    @property
    def supports_download(self) -> bool:
        return self.download is not None

    @property
    def supports_authenticate(self) -> bool:
        return self.authenticate is not None

    @property
    def supports_listing(self) -> bool:
        return self.list_snapshots is not None

    def capabilities(self) -> Dict[str, bool]:
        return {
            "upload": self.supports_upload,
            "download": self.supports_download,
            "authenticate": self.supports_authenticate,
            "list": self.supports_listing,
        }

    def require(self, capability: str) -> Callable[..., Any]:
        """
        Return an optional capability's function.

        Raises:
            UnsupportedCapability: If the adapter does not provide it
        """
        if capability not in CAPABILITY_FIELDS:
            raise ValueError(f"Unknown capability: {capability}")
        func = getattr(self, CAPABILITY_FIELDS[capability])
        if func is None:
            raise UnsupportedCapability(self.id, capability)
        return func

    def __repr__(self) -> str:
        flags = ",".join(name for name, supported in self.capabilities().items() if supported)
        return f"StorageAdapter(id={self.id!r}, kind={self.kind.value}, capabilities=[{flags}])"
