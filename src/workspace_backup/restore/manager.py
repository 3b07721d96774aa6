"""
Main restoration orchestration manager.

Loads a snapshot through a storage adapter, diagnoses it, runs the
reconciliation engine against the workspace repository and produces a
restoration report. A dry run stops after the pre-flight checks and
never touches the repository.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .engine import ProgressCallback, ReconciliationEngine, ReplaceReport
from .ordering import FolderOrderResolver
from .repository import JsonFileRepository, Repository
from ..adapters.base import StorageAdapter
from ..adapters.local import read_snapshot_file
from ..adapters.registry import AdapterRegistry, create_default_registry
from ..config import WorkspaceConfig
from ..exceptions import ReconciliationError
from ..snapshot.models import Snapshot
from ..utils.logger import ProgressLogger, setup_logger
from ..validation.integrity_checker import IntegrityChecker, ValidationResult


class WorkspaceRestoreManager:
    """
    Main restoration orchestration class.

    Coordinates loading, pre-flight diagnostics, the destructive replace
    and post-restore validation.
    """

    def __init__(
        self,
        config: WorkspaceConfig,
        repository: Optional[Repository] = None,
        registry: Optional[AdapterRegistry] = None,
        engine: Optional[ReconciliationEngine] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize restore manager.

        Args:
            config: Workspace configuration
            repository: Workspace to replace (default: JSON workspace file)
            registry: Adapter registry (default: built from environment)
            engine: Reconciliation engine
            logger: Logger instance
        """
        self.config = config
        self.logger = logger or setup_logger(
            name="restore_manager",
            log_level=config.log_level,
            log_file=config.log_file,
            log_max_size=config.log_max_size,
            log_backup_count=config.log_backup_count,
            verbose=config.verbose,
            debug=config.debug
        )
        self.progress_logger = ProgressLogger(self.logger)
        self.repository = repository or JsonFileRepository(config.workspace_file)
        self.registry = registry or create_default_registry(config, logger=self.logger)
        self.engine = engine or ReconciliationEngine(self.logger)
        self.integrity_checker = IntegrityChecker(self.logger)

    def close(self) -> None:
        """Release remote adapter clients."""
        self.registry.close()

    def _adapter(self, adapter_id: Optional[str]) -> StorageAdapter:
        return self.registry.get(adapter_id) if adapter_id else self.registry.current()

    def load_snapshot(self, source: str, adapter_id: Optional[str] = None) -> Snapshot:
        """
        Load and decode a snapshot.

        Adapters that can download treat ``source`` as a remote id; the
        others read it as a local file path.

        Args:
            source: Remote id or file path
            adapter_id: Adapter to use (default: the registry's current one)

        Returns:
            Decoded snapshot
        """
        adapter = self._adapter(adapter_id)

        if adapter.supports_download:
            self.logger.info(f"Downloading snapshot '{source}' via '{adapter.id}'")
            raw = adapter.download(source)
        else:
            path = Path(source)
            if not path.is_file():
                raise FileNotFoundError(f"Snapshot file not found: {path}")
            self.logger.info(f"Loading snapshot file: {path}")
            raw = read_snapshot_file(path)

        snapshot = adapter.decode(raw)
        self.logger.info(
            f"Loaded snapshot v{snapshot.version} exported at {snapshot.exported_at}: "
            f"{len(snapshot.folders)} folders, {len(snapshot.files)} files"
        )
        return snapshot

    def preflight(self, snapshot: Snapshot) -> ValidationResult:
        """Diagnose a snapshot without touching the repository."""
        return self.integrity_checker.validate_snapshot(snapshot)

    def restore(
        self,
        snapshot: Snapshot,
        source: Optional[str] = None,
        dry_run: Optional[bool] = None,
        validate_after: Optional[bool] = None,
        progress_callback: Optional[ProgressCallback] = None,
        on_replaced: Optional[Callable[[], None]] = None
    ) -> Dict[str, Any]:
        """
        Replace the workspace with a snapshot.

        Args:
            snapshot: Decoded snapshot
            source: Where the snapshot came from (for the report)
            dry_run: Only run pre-flight checks (default: config.dry_run)
            validate_after: Compare the result with the snapshot (default: config.validate_after)
            progress_callback: Optional callback(phase, completed, total)
            on_replaced: Called once the repository has been mutated, even
                when the replace failed part way, so views can refresh

        Returns:
            Restoration report

        Raises:
            ReconciliationError: With the report in ``error.report`` once the
                repository has been touched
        """
        dry_run = self.config.dry_run if dry_run is None else dry_run
        validate_after = self.config.validate_after if validate_after is None else validate_after

        self.logger.info(f"Starting restoration{' (dry run)' if dry_run else ''}")
        preflight = self.preflight(snapshot)

        if dry_run:
            # Raise the same errors a real run would, without the wipe
            self.engine.validate(snapshot)
            FolderOrderResolver(snapshot.folders).get_restoration_order()
            self.logger.info("Dry run mode: skipping replace")
            report = self._build_report(snapshot, source, True, preflight, None, None)
            self._save_report(report)
            return report

        total = len(snapshot.folders) + len(snapshot.files)
        self.progress_logger.start_operation("Restore", total)

        try:
            replace_report = self.engine.replace(self.repository, snapshot, progress_callback)
        except ReconciliationError as e:
            if e.report is not None:
                self._save_report(
                    self._build_report(snapshot, source, False, preflight, e.report, None, error=e)
                )
                if on_replaced:
                    on_replaced()
            raise

        if on_replaced:
            on_replaced()

        self.progress_logger.complete_operation(
            "Restore", total,
            replace_report.folders_created + replace_report.files_created
        )

        validation = None
        if validate_after:
            validation = self.integrity_checker.validate_restoration(snapshot, self.repository)

        report = self._build_report(snapshot, source, False, preflight, replace_report, validation)
        self._save_report(report)
        self.logger.info("Restoration completed successfully")
        return report

    def restore_from(self, source: str, adapter_id: Optional[str] = None, **kwargs) -> Dict[str, Any]:
        """Load a snapshot and restore it in one call."""
        snapshot = self.load_snapshot(source, adapter_id)
        return self.restore(snapshot, source=source, **kwargs)

    def _build_report(
        self,
        snapshot: Snapshot,
        source: Optional[str],
        dry_run: bool,
        preflight: ValidationResult,
        replace_report: Optional[ReplaceReport],
        validation: Optional[ValidationResult],
        error: Optional[Exception] = None
    ) -> Dict[str, Any]:
        """Generate the restoration report."""
        if replace_report is not None:
            state = replace_report.repository_state
        else:
            state = "untouched"

        report: Dict[str, Any] = {
            "restoration_summary": {
                "source": source,
                "restoration_time": datetime.now(timezone.utc).isoformat(),
                "dry_run": dry_run,
                "repository_state": state,
                "succeeded": error is None,
            },
            "snapshot": snapshot.get_stats(),
            "preflight": preflight.to_dict(),
            "replace": replace_report.to_dict() if replace_report else None,
            "validation": validation.to_dict() if validation else None,
        }
        if error is not None:
            report["restoration_summary"]["error"] = str(error)
        return report

    def _save_report(self, report: Dict[str, Any]) -> None:
        if not self.config.report_file:
            return

        report_file = Path(self.config.report_file)
        report_file.parent.mkdir(parents=True, exist_ok=True)
        with open(report_file, 'w', encoding='utf-8') as f:
            json.dump(report, f, indent=2, ensure_ascii=False, default=str)
        self.logger.info(f"Generated restoration report: {report_file}")
