"""
Error taxonomy for workspace backup and restore operations.

Decode-time and pre-flight errors are raised before anything is mutated.
Errors discovered while replaying a snapshot carry the replace report so
the caller can tell whether the repository is untouched, empty or
partially restored.
"""

from typing import Any, List, Optional, Sequence, Tuple


class WorkspaceBackupError(Exception):
    """Base exception for all workspace backup errors."""
    pass


class MalformedSnapshot(WorkspaceBackupError):
    """Raised when a serialized snapshot does not have the expected shape."""
    pass


class UnsupportedVersion(WorkspaceBackupError):
    """Raised when a snapshot declares a format version the codec does not know."""

    def __init__(self, version: Any, supported: int):
        super().__init__(
            f"Unsupported snapshot version {version!r} (supported: {supported})"
        )
        self.version = version
        self.supported = supported


class ReconciliationError(WorkspaceBackupError):
    """Base class for errors raised by the reconciliation engine."""

    def __init__(self, message: str, report: Optional[Any] = None):
        super().__init__(message)
        self.report = report

    @property
    def repository_state(self) -> str:
        """State of the target repository when the error was raised."""
        if self.report is None:
            return "untouched"
        return self.report.repository_state


class DanglingReference(ReconciliationError):
    """
    Raised when a snapshot references identifiers it does not contain.

    Detected before any mutation, so the repository is untouched.
    """

    def __init__(self, references: Sequence[Tuple[str, Any, Any]]):
        self.references: List[Tuple[str, Any, Any]] = list(references)
        details = ", ".join(
            f"{kind} {item_id!r} -> folder {target!r}"
            for kind, item_id, target in self.references[:5]
        )
        if len(self.references) > 5:
            details += f" (and {len(self.references) - 5} more)"
        super().__init__(f"Snapshot contains dangling references: {details}")


class CyclicHierarchy(ReconciliationError):
    """Raised when the snapshot's folder parent references form a cycle."""

    def __init__(self, folder_ids: Sequence[Any], report: Optional[Any] = None):
        self.folder_ids = list(folder_ids)
        cycle = " -> ".join(repr(folder_id) for folder_id in self.folder_ids)
        super().__init__(f"Cyclic folder hierarchy detected: {cycle}", report)


class ReplaceIncomplete(ReconciliationError):
    """Raised after a replace that could not apply every item of the snapshot."""

    def __init__(self, report: Any):
        super().__init__(
            f"Replace finished with {len(report.failures)} failed operation(s); "
            f"repository is {report.repository_state}",
            report,
        )


class RepositoryError(WorkspaceBackupError):
    """Raised by the bundled repositories when a CRUD operation is rejected."""
    pass


class AdapterError(WorkspaceBackupError):
    """Base class for storage adapter failures."""
    pass


class Unauthenticated(AdapterError):
    """Raised when an adapter needs credentials it does not have."""
    pass


class TransportError(AdapterError):
    """Raised for network or backend failures during upload or download."""

    def __init__(self, message: str, status: Optional[int] = None,
                 backend_message: Optional[str] = None):
        detail = message
        if status is not None:
            detail += f" (status {status})"
        if backend_message:
            detail += f": {backend_message}"
        super().__init__(detail)
        self.status = status
        self.backend_message = backend_message


class NotFound(AdapterError):
    """Raised when a remote snapshot identifier does not resolve."""

    def __init__(self, remote_id: str, backend_message: Optional[str] = None):
        message = f"Remote snapshot not found: {remote_id}"
        if backend_message:
            message += f" ({backend_message})"
        super().__init__(message)
        self.remote_id = remote_id
        self.backend_message = backend_message


class UnsupportedCapability(AdapterError):
    """Raised when an adapter is asked for a capability it does not advertise."""

    def __init__(self, adapter_id: str, capability: str):
        super().__init__(f"Adapter '{adapter_id}' does not support {capability}")
        self.adapter_id = adapter_id
        self.capability = capability


class UnknownAdapter(WorkspaceBackupError):
    """Raised when the registry is asked for an adapter that was never registered."""

    def __init__(self, adapter_id: str, known: Sequence[str] = ()):
        message = f"Unknown adapter: {adapter_id!r}"
        if known:
            message += f" (registered: {', '.join(known)})"
        super().__init__(message)
        self.adapter_id = adapter_id
