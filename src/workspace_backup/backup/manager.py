"""
Main backup orchestration manager.

Reads the live workspace, encodes it with the selected adapter and
either writes a local snapshot file or uploads it to the adapter's
remote backend.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..adapters.base import StorageAdapter
from ..adapters.local import snapshot_filename, write_snapshot_file
from ..adapters.registry import AdapterRegistry, create_default_registry
from ..config import WorkspaceConfig
from ..restore.repository import JsonFileRepository, Repository
from ..snapshot.models import Snapshot
from ..snapshot.codec import CURRENT_VERSION
from ..utils.logger import ProgressLogger, setup_logger


@dataclass
class BackupResult:
    """Where a backup was written and what it contained."""
    adapter_id: str
    created_at: str
    path: Optional[Path] = None
    remote_id: Optional[str] = None
    remote_url: Optional[str] = None
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def location(self) -> str:
        if self.remote_url:
            return self.remote_url
        if self.remote_id:
            return self.remote_id
        return str(self.path)


class WorkspaceBackupManager:
    """
    Main backup orchestration class.

    Exports the whole workspace tree through one storage adapter.
    """

    def __init__(
        self,
        config: WorkspaceConfig,
        repository: Optional[Repository] = None,
        registry: Optional[AdapterRegistry] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize backup manager.

        Args:
            config: Workspace configuration
            repository: Workspace to export (default: JSON workspace file)
            registry: Adapter registry (default: built from environment)
            logger: Logger instance
        """
        self.config = config
        self.logger = logger or setup_logger(
            name="backup_manager",
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

    def close(self) -> None:
        """Release remote adapter clients."""
        self.registry.close()

    def read_workspace(self) -> Snapshot:
        """Current workspace contents as a snapshot value."""
        folders = self.repository.list_folders()
        files = self.repository.list_files()
        return Snapshot(
            version=CURRENT_VERSION,
            exported_at=datetime.now(timezone.utc).isoformat(),
            folders=folders,
            files=files
        )

    def start_backup(
        self,
        adapter_id: Optional[str] = None,
        output_dir: Optional[Path] = None,
        progress_callback: Optional[Callable[[str, int, int], None]] = None
    ) -> BackupResult:
        """
        Export the workspace.

        Adapters that can upload send the snapshot to their backend; the
        rest write a timestamped file into the output directory.

        Args:
            adapter_id: Adapter to use (default: the registry's current one)
            output_dir: Directory for snapshot files (default: config.output_dir)
            progress_callback: Optional callback(step, completed, total)

        Returns:
            BackupResult describing where the snapshot went
        """
        adapter = self.registry.get(adapter_id) if adapter_id else self.registry.current()
        self.logger.info(f"Starting backup with adapter '{adapter.id}'")
        self.progress_logger.start_operation("Backup", 3)

        try:
            state = self.read_workspace()
            if progress_callback:
                progress_callback("Reading workspace", 1, 3)

            payload = adapter.encode(state.folders, state.files)
            if progress_callback:
                progress_callback("Encoding snapshot", 2, 3)

            result = BackupResult(
                adapter_id=adapter.id,
                created_at=state.exported_at,
                stats=state.get_stats()
            )

            if adapter.supports_upload:
                self._upload(adapter, payload, result)
            else:
                target_dir = Path(output_dir or self.config.output_dir)
                result.path = write_snapshot_file(payload, target_dir, snapshot_filename())
                self.logger.info(f"Wrote snapshot file: {result.path}")

            if progress_callback:
                progress_callback("Storing snapshot", 3, 3)

        except Exception as e:
            self.logger.error(f"Backup failed: {e}")
            raise

        self.progress_logger.complete_operation("Backup", 3, 3)
        self.logger.info(
            f"Backup completed: {result.stats['total_folders']} folders, "
            f"{result.stats['total_files']} files -> {result.location}"
        )
        return result

    def _upload(self, adapter: StorageAdapter, payload: str, result: BackupResult) -> None:
        if adapter.supports_authenticate:
            adapter.authenticate()

        uploaded = adapter.upload(payload)
        result.remote_id = uploaded.remote_id
        result.remote_url = uploaded.remote_url
        self.logger.info(f"Uploaded snapshot via '{adapter.id}': {uploaded.remote_id}")
