"""
Integrity checks for snapshots and restored workspaces.

Snapshot checks run without touching any repository, so a snapshot that
fails decoding-level cross-reference rules can still be diagnosed.
Restoration checks compare the repository against the snapshot by folder
path and file title, since identifiers always change during a restore.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..restore.engine import find_dangling_references, find_duplicate_folder_ids
from ..restore.ordering import FolderOrderResolver
from ..restore.repository import Repository
from ..snapshot.models import File, Folder, Identifier, Snapshot

FolderPath = Tuple[str, ...]


@dataclass
class ValidationResult:
    """Result of a validation check."""
    check_name: str
    passed: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_errors(self) -> int:
        return len(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "check_name": self.check_name,
            "passed": self.passed,
            "errors": self.errors,
            "warnings": self.warnings,
            "details": self.details,
        }


def build_folder_paths(folders: Sequence[Folder]) -> Dict[Identifier, FolderPath]:
    """
    Name path of every folder reachable from a root.

    Folders caught in a cycle have no path and are left out.
    """
    by_id = {folder.id: folder for folder in folders}
    paths: Dict[Identifier, FolderPath] = {}

    for folder in reversed(FolderOrderResolver(folders).get_deletion_order()):
        parent_path: FolderPath = ()
        if folder.parent_id is not None and folder.parent_id in by_id:
            if folder.parent_id not in paths:
                continue
            parent_path = paths[folder.parent_id]
        paths[folder.id] = parent_path + (folder.name,)

    return paths


class IntegrityChecker:
    """
    Validates snapshots before a restore and workspaces after one.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize integrity checker.

        Args:
            logger: Logger instance
        """
        self.logger = logger or logging.getLogger(__name__)

    def validate_snapshot(self, snapshot: Snapshot) -> ValidationResult:
        """
        Diagnose a decoded snapshot without restoring it.

        Args:
            snapshot: Decoded snapshot

        Returns:
            ValidationResult listing dangling references, duplicate ids and cycles
        """
        errors = []
        warnings = []

        for folder_id in find_duplicate_folder_ids(snapshot):
            errors.append(f"Duplicate folder id: {folder_id!r}")

        file_ids = Counter(file.id for file in snapshot.files)
        for file_id, count in file_ids.items():
            if count > 1:
                warnings.append(f"File id {file_id!r} appears {count} times")

        for item_type, item_id, target in find_dangling_references(snapshot):
            errors.append(f"{item_type.capitalize()} {item_id!r} references missing folder {target!r}")

        resolver = FolderOrderResolver(snapshot.folders)
        for message in resolver.validate():
            if "unknown parent" not in message:  # already reported as dangling
                errors.append(message)

        sibling_names = Counter(
            (folder.parent_id, folder.name) for folder in snapshot.folders
        )
        for (parent_id, name), count in sibling_names.items():
            if count > 1:
                warnings.append(
                    f"{count} folders named '{name}' share parent {parent_id!r}"
                )

        if snapshot.is_empty:
            warnings.append("Snapshot is empty; restoring it clears the workspace")

        depths = resolver.get_depths()
        result = ValidationResult(
            check_name="snapshot",
            passed=not errors,
            errors=errors,
            warnings=warnings,
            details={
                **snapshot.get_stats(),
                "max_depth": max(depths.values()) + 1 if depths else 0,
            }
        )
        self._log_result(result)
        return result

    def validate_restoration(self, snapshot: Snapshot, repository: Repository) -> ValidationResult:
        """
        Compare a restored repository with the snapshot it came from.

        Folders are compared by name path and open state, files by the
        path of their folder, title and content.

        Args:
            snapshot: Snapshot that was restored
            repository: Repository after the replace

        Returns:
            ValidationResult with one error per missing or unexpected item
        """
        errors = []

        live_folders = repository.list_folders()
        live_files = repository.list_files()

        expected_folders = self._folder_signatures(snapshot.folders)
        actual_folders = self._folder_signatures(live_folders)
        errors.extend(self._compare("folder", expected_folders, actual_folders))

        expected_files = self._file_signatures(snapshot.folders, snapshot.files)
        actual_files = self._file_signatures(live_folders, live_files)
        errors.extend(self._compare("file", expected_files, actual_files))

        result = ValidationResult(
            check_name="restoration",
            passed=not errors,
            errors=errors,
            details={
                "expected_folders": len(snapshot.folders),
                "actual_folders": len(live_folders),
                "expected_files": len(snapshot.files),
                "actual_files": len(live_files),
            }
        )
        self._log_result(result)
        return result

    @staticmethod
    def _folder_signatures(folders: Sequence[Folder]) -> Counter:
        paths = build_folder_paths(folders)
        return Counter(
            ("/".join(paths[folder.id]), folder.is_open)
            for folder in folders
            if folder.id in paths
        )

    @staticmethod
    def _file_signatures(folders: Sequence[Folder], files: Sequence[File]) -> Counter:
        paths = build_folder_paths(folders)
        signatures = Counter()
        for file in files:
            if file.folder_id is None:
                location = None
            else:
                location = "/".join(paths.get(file.folder_id, ("<unreachable>",)))
            signatures[(location, file.title, file.content)] += 1
        return signatures

    @staticmethod
    def _compare(kind: str, expected: Counter, actual: Counter) -> List[str]:
        errors = []
        for signature, count in (expected - actual).items():
            errors.append(f"Missing {kind} {signature[:2]!r} (x{count})")
        for signature, count in (actual - expected).items():
            errors.append(f"Unexpected {kind} {signature[:2]!r} (x{count})")
        return errors

    def _log_result(self, result: ValidationResult) -> None:
        if result.passed:
            self.logger.info(
                f"Validation '{result.check_name}' passed "
                f"({len(result.warnings)} warnings)"
            )
        else:
            self.logger.warning(
                f"Validation '{result.check_name}' found {result.total_errors} issues"
            )
            for error in result.errors[:10]:
                self.logger.warning(f"  {error}")
