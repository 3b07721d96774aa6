"""
Reconciliation engine: replaces a repository's contents with a snapshot.

The replace runs in four strictly sequential phases:

1. pre-flight validation of the snapshot's references (no mutation)
2. wipe: delete every file, then every folder (children first)
3. folder replay in parent-before-child order, building the remap table
4. file replay in snapshot order with remapped folder references

The repository offers no transactions. Once the wipe has started, item
failures are collected and the run keeps going; the caller receives a
report describing what happened and whether the repository ended up
restored, partially restored or empty.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from .ordering import FolderOrderResolver
from .remap import RemapTable
from .repository import Repository
from ..exceptions import CyclicHierarchy, DanglingReference, MalformedSnapshot, ReplaceIncomplete
from ..snapshot.models import Identifier, Snapshot

ProgressCallback = Callable[[str, int, int], None]


@dataclass
class OperationFailure:
    """A single repository operation that failed or was skipped."""
    phase: str  # 'wipe', 'folders', 'folder_state', 'files'
    item_type: str  # 'folder' or 'file'
    item_id: Any
    name: str
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "item_type": self.item_type,
            "item_id": self.item_id,
            "name": self.name,
            "error": self.error,
        }


@dataclass
class ReplaceReport:
    """Outcome of one replace run."""
    started_at: str
    snapshot_folders: int
    snapshot_files: int
    files_deleted: int = 0
    folders_deleted: int = 0
    folders_created: int = 0
    folders_closed: int = 0
    files_created: int = 0
    wipe_started: bool = False
    completed: bool = False
    finished_at: Optional[str] = None
    failures: List[OperationFailure] = field(default_factory=list)
    remap: RemapTable = field(default_factory=RemapTable)

    @property
    def succeeded(self) -> bool:
        return self.completed and not self.failures

    @property
    def repository_state(self) -> str:
        """
        One of ``untouched``, ``empty``, ``partial`` or ``restored``.
        """
        if not self.wipe_started:
            return "untouched"
        if self.succeeded:
            return "restored"
        wipe_failed = any(failure.phase == "wipe" for failure in self.failures)
        if self.folders_created == 0 and self.files_created == 0 and not wipe_failed:
            return "empty"
        return "partial"

    def failures_by_phase(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for failure in self.failures:
            counts[failure.phase] = counts.get(failure.phase, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "repository_state": self.repository_state,
            "snapshot": {
                "folders": self.snapshot_folders,
                "files": self.snapshot_files,
            },
            "wipe": {
                "files_deleted": self.files_deleted,
                "folders_deleted": self.folders_deleted,
            },
            "replay": {
                "folders_created": self.folders_created,
                "folders_closed": self.folders_closed,
                "files_created": self.files_created,
            },
            "failures_by_phase": self.failures_by_phase(),
            "failures": [failure.to_dict() for failure in self.failures],
            "folder_mappings": self.remap.to_list(),
        }


def find_dangling_references(snapshot: Snapshot) -> List[Tuple[str, Any, Any]]:
    """
    List references that do not resolve inside the snapshot.

    Returns:
        Tuples of (item type, item id, missing folder id)
    """
    folder_ids = {folder.id for folder in snapshot.folders}
    dangling = []

    for folder in snapshot.folders:
        if folder.parent_id is not None and folder.parent_id not in folder_ids:
            dangling.append(("folder", folder.id, folder.parent_id))

    for file in snapshot.files:
        if file.folder_id is not None and file.folder_id not in folder_ids:
            dangling.append(("file", file.id, file.folder_id))

    return dangling


def find_duplicate_folder_ids(snapshot: Snapshot) -> List[Identifier]:
    seen: Set[Identifier] = set()
    duplicates = []
    for folder in snapshot.folders:
        if folder.id in seen and folder.id not in duplicates:
            duplicates.append(folder.id)
        seen.add(folder.id)
    return duplicates


class ReconciliationEngine:
    """
    Performs destructive replaces of a repository from a snapshot.

    The engine holds no state between runs and no locks; callers must
    not mutate the repository while a replace is in progress.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize reconciliation engine.

        Args:
            logger: Logger instance
        """
        self.logger = logger or logging.getLogger(__name__)

    def validate(self, snapshot: Snapshot) -> None:
        """
        Pre-flight checks that must pass before anything is deleted.

        Raises:
            MalformedSnapshot: If folder identifiers are not unique
            DanglingReference: If a file or folder points outside the snapshot
        """
        duplicates = find_duplicate_folder_ids(snapshot)
        if duplicates:
            raise MalformedSnapshot(
                f"Snapshot folder identifiers are not unique: {duplicates!r}"
            )

        dangling = find_dangling_references(snapshot)
        if dangling:
            raise DanglingReference(dangling)

    def replace(
        self,
        repository: Repository,
        snapshot: Snapshot,
        progress_callback: Optional[ProgressCallback] = None
    ) -> ReplaceReport:
        """
        Replace the repository's whole tree with the snapshot's.

        Args:
            repository: Target repository
            snapshot: Decoded snapshot
            progress_callback: Optional callback(phase, completed, total)

        Returns:
            ReplaceReport of a fully successful run

        Raises:
            MalformedSnapshot, DanglingReference: Before any mutation
            CyclicHierarchy: After the wipe, with the report attached
            ReplaceIncomplete: When any item failed, with the report attached
        """
        self.validate(snapshot)

        report = ReplaceReport(
            started_at=datetime.now(timezone.utc).isoformat(),
            snapshot_folders=len(snapshot.folders),
            snapshot_files=len(snapshot.files)
        )

        self.logger.info(
            f"Replacing repository with snapshot "
            f"({len(snapshot.folders)} folders, {len(snapshot.files)} files)"
        )

        self._wipe(repository, report, progress_callback)

        try:
            order = FolderOrderResolver(snapshot.folders).get_restoration_order()
        except CyclicHierarchy as e:
            report.finished_at = datetime.now(timezone.utc).isoformat()
            e.report = report
            self.logger.error(f"{e}; repository is {report.repository_state}")
            raise

        skipped = self._replay_folders(repository, order, report, progress_callback)
        self._replay_files(repository, snapshot, skipped, report, progress_callback)

        report.completed = True
        report.finished_at = datetime.now(timezone.utc).isoformat()

        if report.failures:
            self.logger.warning(
                f"Replace finished with {len(report.failures)} failure(s): "
                f"{report.failures_by_phase()}"
            )
            raise ReplaceIncomplete(report)

        self.logger.info(
            f"Replace completed: {report.folders_created} folders, "
            f"{report.files_created} files"
        )
        return report

    def _wipe(
        self,
        repository: Repository,
        report: ReplaceReport,
        progress_callback: Optional[ProgressCallback]
    ) -> None:
        """Delete every file, then every folder; collect individual failures."""
        # Read both listings before the first delete so a read failure
        # leaves the repository untouched
        files = repository.list_files()
        folders = repository.list_folders()
        total = len(files) + len(folders)
        done = 0

        self.logger.info(f"Wipe phase: {len(files)} files, {len(folders)} folders")
        report.wipe_started = True

        for file in files:
            try:
                repository.delete_file(file.id)
                report.files_deleted += 1
            except Exception as e:
                self._record(report, "wipe", "file", file.id, file.title, e)
            done += 1
            if progress_callback:
                progress_callback("Wiping workspace", done, total)

        for folder in FolderOrderResolver(folders).get_deletion_order():
            try:
                repository.delete_folder(folder.id)
                report.folders_deleted += 1
            except Exception as e:
                self._record(report, "wipe", "folder", folder.id, folder.name, e)
            done += 1
            if progress_callback:
                progress_callback("Wiping workspace", done, total)

    def _replay_folders(
        self,
        repository: Repository,
        order: List,
        report: ReplaceReport,
        progress_callback: Optional[ProgressCallback]
    ) -> Set[Identifier]:
        """
        Recreate folders parents-first.

        Returns:
            Snapshot ids of folders that could not be recreated
        """
        skipped: Set[Identifier] = set()
        total = len(order)

        for i, folder in enumerate(order, 1):
            if folder.parent_id is not None and folder.parent_id in skipped:
                skipped.add(folder.id)
                self._record(
                    report, "folders", "folder", folder.id, folder.name,
                    f"parent folder {folder.parent_id!r} was not restored"
                )
            else:
                try:
                    new_parent_id = report.remap.resolve(folder.parent_id)
                except KeyError:
                    # Parents are processed first, so a missing entry means
                    # the ordering was fed a broken hierarchy
                    raise CyclicHierarchy([folder.id, folder.parent_id], report) from None

                try:
                    new_id = repository.create_folder(folder.name, new_parent_id)
                except Exception as e:
                    skipped.add(folder.id)
                    self._record(report, "folders", "folder", folder.id, folder.name, e)
                else:
                    report.remap.add_mapping(folder.id, new_id, folder.name)
                    report.folders_created += 1

                    # New folders start open
                    if not folder.is_open:
                        try:
                            repository.toggle_folder_open(new_id)
                            report.folders_closed += 1
                        except Exception as e:
                            self._record(report, "folder_state", "folder", folder.id, folder.name, e)

            if progress_callback:
                progress_callback("Restoring folders", i, total)

        return skipped

    def _replay_files(
        self,
        repository: Repository,
        snapshot: Snapshot,
        skipped_folders: Set[Identifier],
        report: ReplaceReport,
        progress_callback: Optional[ProgressCallback]
    ) -> None:
        """Recreate files in snapshot order with remapped folder ids."""
        total = len(snapshot.files)

        for i, file in enumerate(snapshot.files, 1):
            if file.folder_id is not None and file.folder_id in skipped_folders:
                self._record(
                    report, "files", "file", file.id, file.title,
                    f"folder {file.folder_id!r} was not restored"
                )
            else:
                try:
                    new_folder_id = report.remap.resolve(file.folder_id)
                    repository.create_file(new_folder_id, file.title, file.content)
                    report.files_created += 1
                except Exception as e:
                    self._record(report, "files", "file", file.id, file.title, e)

            if progress_callback:
                progress_callback("Restoring files", i, total)

    def _record(self, report: ReplaceReport, phase: str, item_type: str,
                item_id: Any, name: str, error: Any) -> None:
        message = str(error)
        report.failures.append(OperationFailure(
            phase=phase,
            item_type=item_type,
            item_id=item_id,
            name=name,
            error=message
        ))
        self.logger.error(f"{phase}: {item_type} {item_id!r} ('{name}') failed: {message}")
