"""
Test suite for the backup and restore command-line interfaces.
"""

import json
from datetime import datetime
from unittest.mock import Mock, patch

import pytest
from typer.testing import CliRunner

from conftest import build_workspace
from workspace_backup.adapters.base import AdapterKind, StorageAdapter
from workspace_backup.adapters.local import create_local_adapter, list_snapshot_files
from workspace_backup.adapters.registry import AdapterRegistry
from workspace_backup.cli.backup_cli import backup_app
from workspace_backup.cli.restore_cli import restore_app
from workspace_backup.restore.repository import JsonFileRepository

runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep remote adapters and report files out of CLI runs."""
    for name in ("DEFAULT_ADAPTER", "GITHUB_OWNER", "GITHUB_REPO", "S3_BUCKET_NAME",
                 "RESTORE_REPORT_FILE", "RESTORE_DRY_RUN", "LOG_FILE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def workspace_file(tmp_path):
    path = tmp_path / "workspace.json"
    build_workspace(JsonFileRepository(path))
    return path


def write_snapshot(path, folders, files):
    path.write_text(json.dumps({
        "version": 1,
        "exportedAt": "2024-01-01T12:00:00Z",
        "folders": folders,
        "files": files,
    }), encoding="utf-8")
    return path


class TestBackupCli:
    """Test the backup command."""

    def test_backup_to_local_file(self, tmp_path, workspace_file):
        output_dir = tmp_path / "out"

        result = runner.invoke(backup_app, [
            "main", "--workspace", str(workspace_file), "--output-dir", str(output_dir)
        ])

        assert result.exit_code == 0, result.output
        assert "Backup completed successfully" in result.output
        files = list_snapshot_files(output_dir)
        assert len(files) == 1
        data = json.loads(files[0].read_text(encoding="utf-8"))
        assert len(data["folders"]) == 4
        assert len(data["files"]) == 4

    def test_backup_unknown_adapter(self, tmp_path, workspace_file):
        result = runner.invoke(backup_app, [
            "main", "--workspace", str(workspace_file),
            "--output-dir", str(tmp_path / "out"), "--adapter", "dropbox"
        ])

        assert result.exit_code == 1
        assert "Unknown adapter" in result.output

    def test_list_adapters(self):
        result = runner.invoke(backup_app, ["adapters"])

        assert result.exit_code == 0, result.output
        assert "Selected adapter (*): local" in result.output


class TestRestoreCli:
    """Test the restore commands."""

    @pytest.fixture
    def snapshot_file(self, tmp_path):
        return write_snapshot(
            tmp_path / "snapshot.json",
            [
                {"id": 10, "name": "Archive", "parentId": None, "isOpen": True},
                {"id": 11, "name": "2023", "parentId": 10, "isOpen": False},
            ],
            [{"id": 100, "folderId": 11, "title": "notes.md", "content": "old notes"}],
        )

    def test_restore_replaces_workspace(self, workspace_file, snapshot_file):
        result = runner.invoke(restore_app, [
            "main", str(snapshot_file), "--workspace", str(workspace_file), "--force"
        ])

        assert result.exit_code == 0, result.output
        assert "Restoration completed successfully" in result.output

        repository = JsonFileRepository(workspace_file)
        assert sorted(f.name for f in repository.list_folders()) == ["2023", "Archive"]
        assert [f.title for f in repository.list_files()] == ["notes.md"]

    def test_dry_run_leaves_workspace(self, workspace_file, snapshot_file):
        before = workspace_file.read_text(encoding="utf-8")

        result = runner.invoke(restore_app, [
            "main", str(snapshot_file), "--workspace", str(workspace_file), "--dry-run"
        ])

        assert result.exit_code == 0, result.output
        assert "Dry run completed" in result.output
        assert workspace_file.read_text(encoding="utf-8") == before

    def test_confirmation_declined(self, workspace_file, snapshot_file):
        before = workspace_file.read_text(encoding="utf-8")

        result = runner.invoke(
            restore_app,
            ["main", str(snapshot_file), "--workspace", str(workspace_file)],
            input="n\n"
        )

        assert result.exit_code == 0
        assert "cancelled" in result.output
        assert workspace_file.read_text(encoding="utf-8") == before

    def test_cycle_reports_workspace_state(self, tmp_path, workspace_file):
        snapshot_file = write_snapshot(
            tmp_path / "cycle.json",
            [
                {"id": 1, "name": "A", "parentId": 2, "isOpen": True},
                {"id": 2, "name": "B", "parentId": 1, "isOpen": True},
            ],
            [],
        )

        result = runner.invoke(restore_app, [
            "main", str(snapshot_file), "--workspace", str(workspace_file), "--force"
        ])

        assert result.exit_code == 1
        assert "Workspace state:" in result.output
        assert "empty" in result.output

    def test_missing_snapshot_file(self, tmp_path, workspace_file):
        result = runner.invoke(restore_app, [
            "main", str(tmp_path / "missing.json"), "--workspace", str(workspace_file), "--force"
        ])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_list_backups(self, tmp_path, snapshot_file):
        (tmp_path / "broken.json").write_text("{", encoding="utf-8")

        result = runner.invoke(restore_app, ["list-backups", "--backups-dir", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "snapshot.json" in result.output
        assert "broken.json" in result.output
        assert "Found 2 backup(s)" in result.output

    def test_list_backups_defaults_to_output_dir(self, tmp_path, monkeypatch, snapshot_file):
        monkeypatch.setenv("BACKUP_OUTPUT_DIR", str(tmp_path))

        result = runner.invoke(restore_app, ["list-backups"])

        assert result.exit_code == 0, result.output
        assert "snapshot.json" in result.output
        assert "Found 1 backup(s)" in result.output

    def test_list_backups_from_remote_adapter(self):
        remote = StorageAdapter(
            id="s3", kind=AdapterKind.S3, name="Amazon S3", encode=Mock(), decode=Mock(),
            list_snapshots=Mock(return_value=[
                {"key": "backups/0201.json", "size": 2048, "last_modified": datetime(2024, 2, 1, 0, 0, 5)},
            ]),
            close=Mock(),
            description="s3://bucket/workspace-backups"
        )
        registry = AdapterRegistry()
        registry.register(create_local_adapter())
        registry.register(remote)

        with patch("workspace_backup.cli.restore_cli.create_default_registry", return_value=registry):
            result = runner.invoke(restore_app, ["list-backups", "--adapter", "s3"])

        assert result.exit_code == 0, result.output
        assert "backups/0201.json" in result.output
        assert "2024-02-01 00:00:05" in result.output
        assert "Found 1 backup(s) in s3://bucket/workspace-backups" in result.output
        remote.close.assert_called_once_with()

    def test_list_backups_adapter_without_listing(self):
        registry = AdapterRegistry()
        registry.register(create_local_adapter())
        registry.register(StorageAdapter(
            id="github", kind=AdapterKind.GITHUB, name="GitHub", encode=Mock(), decode=Mock()
        ))

        with patch("workspace_backup.cli.restore_cli.create_default_registry", return_value=registry):
            result = runner.invoke(restore_app, ["list-backups", "-a", "github"])

        assert result.exit_code == 1
        assert "does not support list" in result.output

    def test_list_backups_missing_directory(self, tmp_path):
        result = runner.invoke(restore_app, ["list-backups", "-d", str(tmp_path / "none")])

        assert result.exit_code == 0
        assert "not found" in result.output

    def test_validate_backup(self, snapshot_file):
        result = runner.invoke(restore_app, ["validate-backup", str(snapshot_file)])

        assert result.exit_code == 0, result.output
        assert "Backup validation passed" in result.output

    def test_validate_backup_with_dangling_reference(self, tmp_path):
        snapshot_file = write_snapshot(
            tmp_path / "dangling.json",
            [{"id": 1, "name": "A", "parentId": None, "isOpen": True}],
            [{"id": 2, "folderId": 99, "title": "lost.md", "content": ""}],
        )

        result = runner.invoke(restore_app, ["validate-backup", str(snapshot_file)])

        assert result.exit_code == 1
        assert "problem(s)" in result.output

    def test_validate_backup_unsupported_version(self, tmp_path):
        snapshot_file = tmp_path / "future.json"
        snapshot_file.write_text(json.dumps({"version": 2, "folders": [], "files": []}), encoding="utf-8")

        result = runner.invoke(restore_app, ["validate-backup", str(snapshot_file)])

        assert result.exit_code == 1
        assert "Unsupported snapshot version" in result.output
