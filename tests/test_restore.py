"""
Test suite for restore functionality.

Tests the repositories, the remap table, folder ordering, the
reconciliation engine and the restore manager, including partial
failures and the errors raised before and after the wipe.
"""

import json
import os
from unittest.mock import Mock, patch

import pytest

from conftest import build_workspace
from workspace_backup.adapters.local import create_local_adapter, write_snapshot_file
from workspace_backup.adapters.registry import AdapterRegistry
from workspace_backup.exceptions import (
    CyclicHierarchy,
    DanglingReference,
    MalformedSnapshot,
    ReplaceIncomplete,
    RepositoryError,
)
from workspace_backup.restore.engine import ReconciliationEngine
from workspace_backup.restore.manager import WorkspaceRestoreManager
from workspace_backup.restore.ordering import FolderOrderResolver
from workspace_backup.restore.remap import RemapTable
from workspace_backup.restore.repository import InMemoryRepository, JsonFileRepository
from workspace_backup.snapshot.codec import SnapshotCodec
from workspace_backup.snapshot.models import File, Folder, Snapshot
from workspace_backup.validation.integrity_checker import IntegrityChecker, build_folder_paths


def folder_paths(repository):
    """Set of (path, is_open) for every folder in a repository."""
    folders = repository.list_folders()
    paths = build_folder_paths(folders)
    return {("/".join(paths[f.id]), f.is_open) for f in folders}


def file_locations(repository):
    """Set of (folder path or None, title, content) for every file."""
    paths = build_folder_paths(repository.list_folders())
    return {
        ("/".join(paths[f.folder_id]) if f.folder_id is not None else None, f.title, f.content)
        for f in repository.list_files()
    }


def export(repository):
    """Export a repository through the codec, as a backup would."""
    codec = SnapshotCodec()
    return codec.decode(codec.encode(repository.list_folders(), repository.list_files()))


class FlakyRepository(InMemoryRepository):
    """Repository that rejects chosen operations."""

    def __init__(self, fail_folders=(), fail_files=(), fail_toggle=False, fail_delete_files=False):
        super().__init__()
        self.fail_folders = set(fail_folders)
        self.fail_files = set(fail_files)
        self.fail_toggle = fail_toggle
        self.fail_delete_files = fail_delete_files

    def create_folder(self, name, parent_id=None):
        if name in self.fail_folders:
            raise RepositoryError(f"cannot create {name}")
        return super().create_folder(name, parent_id)

    def create_file(self, folder_id, title, content=""):
        if title in self.fail_files:
            raise RepositoryError(f"cannot create {title}")
        return super().create_file(folder_id, title, content)

    def toggle_folder_open(self, folder_id):
        if self.fail_toggle:
            raise RepositoryError("toggle rejected")
        super().toggle_folder_open(folder_id)

    def delete_file(self, file_id):
        if self.fail_delete_files:
            raise RepositoryError("delete rejected")
        super().delete_file(file_id)


class TestInMemoryRepository:
    """Test the reference repository."""

    def test_ids_are_allocated_sequentially(self):
        repository = InMemoryRepository()
        assert repository.create_folder("A", None) == 1
        assert repository.create_file(1, "t", "") == 2

    def test_new_folders_start_open(self):
        repository = InMemoryRepository()
        folder_id = repository.create_folder("A", None)
        assert repository.get_folder(folder_id).is_open is True

        repository.toggle_folder_open(folder_id)
        assert repository.get_folder(folder_id).is_open is False

    def test_referential_integrity(self):
        repository = InMemoryRepository()
        parent = repository.create_folder("A", None)
        repository.create_folder("B", parent)

        with pytest.raises(RepositoryError):
            repository.create_folder("C", 999)
        with pytest.raises(RepositoryError):
            repository.create_file(999, "t", "")
        with pytest.raises(RepositoryError):
            repository.delete_folder(parent)

    def test_listing_returns_copies(self):
        repository = InMemoryRepository()
        folder_id = repository.create_folder("A", None)

        repository.list_folders()[0].name = "changed"
        assert repository.get_folder(folder_id).name == "A"

    def test_missing_items(self):
        repository = InMemoryRepository()
        with pytest.raises(RepositoryError):
            repository.delete_file(1)
        with pytest.raises(RepositoryError):
            repository.get_folder(1)


class TestJsonFileRepository:
    """Test the file backed repository."""

    def test_persists_every_mutation(self, tmp_path):
        path = tmp_path / "workspace.json"
        repository = JsonFileRepository(path)
        ids = build_workspace(repository)

        reloaded = JsonFileRepository(path)
        assert folder_paths(reloaded) == folder_paths(repository)
        assert file_locations(reloaded) == file_locations(repository)
        assert reloaded.get_folder(ids["Reports"]).is_open is False

    def test_ids_continue_after_reload(self, tmp_path):
        path = tmp_path / "workspace.json"
        repository = JsonFileRepository(path)
        repository.create_folder("A", None)
        repository.create_folder("B", None)

        reloaded = JsonFileRepository(path)
        assert reloaded.create_folder("C", None) == 3

    def test_file_uses_snapshot_shape(self, tmp_path):
        path = tmp_path / "workspace.json"
        JsonFileRepository(path).create_folder("A", None)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["folders"][0]["name"] == "A"
        assert data["nextId"] == 2

    def test_failed_save_rolls_back_mutation(self, tmp_path):
        path = tmp_path / "workspace.json"
        repository = JsonFileRepository(path)
        repository.create_folder("Kept", None)

        with patch("workspace_backup.restore.repository.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                repository.create_folder("Lost", None)

        assert [f.name for f in repository.list_folders()] == ["Kept"]
        assert not (tmp_path / "workspace.json.tmp").exists()
        assert repository.create_folder("Next", None) == 2
        assert [f.name for f in JsonFileRepository(path).list_folders()] == ["Kept", "Next"]

    def test_failed_toggle_save_keeps_folder_open(self, tmp_path):
        repository = JsonFileRepository(tmp_path / "workspace.json")
        folder_id = repository.create_folder("A", None)

        with patch("workspace_backup.restore.repository.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                repository.toggle_folder_open(folder_id)

        assert repository.get_folder(folder_id).is_open is True

    def test_replace_with_failing_first_save(self, tmp_path):
        path = tmp_path / "workspace.json"
        repository = JsonFileRepository(path)
        snapshot = Snapshot(
            version=1, exported_at=None,
            folders=[Folder(id=1, name="A"), Folder(id=2, name="B", parent_id=1)],
            files=[File(id=3, folder_id=2, title="f.md", content="x")]
        )
        real_replace = os.replace
        calls = []

        def replace_failing_once(src, dst):
            calls.append(dst)
            if len(calls) == 1:
                raise OSError("disk full")
            real_replace(src, dst)

        with patch("workspace_backup.restore.repository.os.replace", side_effect=replace_failing_once):
            with pytest.raises(ReplaceIncomplete) as exc_info:
                ReconciliationEngine().replace(repository, snapshot)

        assert "A" not in [f.name for f in repository.list_folders()]
        assert repository.list_files() == []
        assert exc_info.value.repository_state == "empty"
        assert not path.exists()
        assert not (tmp_path / "workspace.json.tmp").exists()

    def test_missing_file_is_empty_workspace(self, tmp_path):
        repository = JsonFileRepository(tmp_path / "missing.json")
        assert repository.list_folders() == []
        assert not (tmp_path / "missing.json").exists()


class TestRemapTable:
    """Test identifier remapping."""

    def test_resolve(self):
        table = RemapTable()
        table.add_mapping(10, 1, "Projects")

        assert table.resolve(10) == 1
        assert table.resolve(None) is None
        assert table.get_original_id(1) == 10
        assert 10 in table
        assert len(table) == 1

    def test_resolve_unmapped_raises(self):
        with pytest.raises(KeyError):
            RemapTable().resolve(10)

    def test_conflicting_remap_rejected(self):
        table = RemapTable()
        table.add_mapping(10, 1)
        table.add_mapping(10, 1)

        with pytest.raises(ValueError):
            table.add_mapping(10, 2)

    def test_unmapped_ids_and_records(self):
        table = RemapTable()
        table.add_mapping(10, 1, "Projects")

        assert table.get_unmapped_ids([10, 11]) == {11}
        assert table.to_list() == [{"original_id": 10, "new_id": 1, "name": "Projects"}]

        table.clear()
        assert len(table) == 0

    def test_records_keep_int_and_string_ids_apart(self):
        table = RemapTable()
        table.add_mapping(1, 100, "Numeric")
        table.add_mapping("1", 200, "Text")

        records = table.to_list()

        assert len(records) == 2
        assert {(r["original_id"], r["new_id"]) for r in records} == {(1, 100), ("1", 200)}
        assert json.loads(json.dumps(records))[1]["original_id"] == "1"


class TestFolderOrderResolver:
    """Test folder ordering."""

    def test_parents_before_children(self):
        folders = [
            Folder(id=3, name="C", parent_id=2),
            Folder(id=2, name="B", parent_id=1),
            Folder(id=1, name="A"),
            Folder(id=4, name="D"),
        ]
        order = [f.id for f in FolderOrderResolver(folders).get_restoration_order()]

        assert order.index(1) < order.index(2) < order.index(3)
        assert sorted(order) == [1, 2, 3, 4]

    def test_sibling_order_is_stable(self):
        folders = [Folder(id=i, name=str(i)) for i in (5, 3, 9)]
        order = FolderOrderResolver(folders).get_restoration_order()
        assert [f.id for f in order] == [5, 3, 9]

    def test_deletion_order_children_first(self):
        folders = [
            Folder(id=1, name="A"),
            Folder(id=2, name="B", parent_id=1),
            Folder(id=3, name="C", parent_id=2),
        ]
        order = [f.id for f in FolderOrderResolver(folders).get_deletion_order()]
        assert order == [3, 2, 1]

    def test_deletion_order_includes_cycles(self):
        folders = [
            Folder(id=1, name="A", parent_id=2),
            Folder(id=2, name="B", parent_id=1),
            Folder(id=3, name="C"),
        ]
        order = [f.id for f in FolderOrderResolver(folders).get_deletion_order()]
        assert order == [3, 1, 2]

    def test_two_folder_cycle(self):
        folders = [
            Folder(id=1, name="A", parent_id=2),
            Folder(id=2, name="B", parent_id=1),
        ]
        resolver = FolderOrderResolver(folders)

        with pytest.raises(CyclicHierarchy) as exc_info:
            resolver.get_restoration_order()

        assert set(exc_info.value.folder_ids) == {1, 2}
        assert exc_info.value.report is None

    def test_self_parent(self):
        resolver = FolderOrderResolver([Folder(id=1, name="A", parent_id=1)])

        assert resolver.find_cycle() == [1, 1]
        assert any("its own parent" in message for message in resolver.validate())

    def test_longer_cycle_reported(self):
        folders = [
            Folder(id=1, name="A", parent_id=3),
            Folder(id=2, name="B", parent_id=1),
            Folder(id=3, name="C", parent_id=2),
        ]
        messages = FolderOrderResolver(folders).validate()
        assert any("Cyclic" in message for message in messages)

    def test_depths(self):
        folders = [
            Folder(id=1, name="A"),
            Folder(id=2, name="B", parent_id=1),
            Folder(id=3, name="C", parent_id=2),
        ]
        assert FolderOrderResolver(folders).get_depths() == {1: 0, 2: 1, 3: 2}


class TestReconciliationEngine:
    """Test the destructive replace."""

    @pytest.fixture
    def engine(self):
        return ReconciliationEngine()

    def test_round_trip_restores_equivalent_tree(self, engine, populated_repository):
        """Export then import into an empty repository reproduces the tree."""
        snapshot = export(populated_repository)
        target = InMemoryRepository()

        report = engine.replace(target, snapshot)

        assert report.succeeded
        assert report.repository_state == "restored"
        assert folder_paths(target) == folder_paths(populated_repository)
        assert file_locations(target) == file_locations(populated_repository)

    def test_hierarchy_preserved_at_depth_three(self, engine, sample_snapshot):
        target = InMemoryRepository()
        engine.replace(target, sample_snapshot)

        assert ("Projects/Work/Reports", False) in folder_paths(target)
        assert ("Personal", False) in folder_paths(target)
        assert ("Projects", True) in folder_paths(target)

    def test_file_references_follow_folder_names(self, engine, sample_snapshot):
        """Files land in the recreated folder with the same name, not the same id."""
        target = InMemoryRepository()
        target.create_folder("Unrelated", None)  # occupies id 1 before the wipe

        engine.replace(target, sample_snapshot)

        assert file_locations(target) == {
            ("Projects/Work/Reports", "q1.md", "# Q1"),
            ("Projects/Work", "plan.md", "plan"),
            (None, "inbox.md", ""),
        }

    def test_remap_table_in_report(self, engine, sample_snapshot):
        target = InMemoryRepository()
        report = engine.replace(target, sample_snapshot)

        assert len(report.remap) == 4
        new_reports_id = report.remap.get_new_id(12)
        assert target.get_folder(new_reports_id).name == "Reports"

    def test_double_import_is_idempotent(self, engine, sample_snapshot):
        target = InMemoryRepository()
        engine.replace(target, sample_snapshot)
        first = (folder_paths(target), file_locations(target))

        report = engine.replace(target, sample_snapshot)

        assert (folder_paths(target), file_locations(target)) == first
        assert len(target.list_folders()) == 4
        assert len(target.list_files()) == 3
        assert report.files_deleted == 3
        assert report.folders_deleted == 4

    def test_replace_discards_existing_content(self, engine, populated_repository, sample_snapshot):
        engine.replace(populated_repository, sample_snapshot)

        titles = {f.title for f in populated_repository.list_files()}
        assert titles == {"q1.md", "plan.md", "inbox.md"}
        assert ("Projects/Work/Reports", False) in folder_paths(populated_repository)

    def test_empty_snapshot_empties_repository(self, engine, populated_repository):
        report = engine.replace(populated_repository, Snapshot(version=1, exported_at=None))

        assert populated_repository.list_folders() == []
        assert populated_repository.list_files() == []
        assert report.succeeded

    def test_dangling_file_reference_leaves_repository_untouched(self, engine, populated_repository):
        before = (len(populated_repository.list_folders()), len(populated_repository.list_files()))
        snapshot = Snapshot(
            version=1,
            exported_at=None,
            folders=[Folder(id=1, name="A")],
            files=[File(id=5, folder_id=99, title="orphan")]
        )

        with pytest.raises(DanglingReference) as exc_info:
            engine.replace(populated_repository, snapshot)

        assert exc_info.value.references == [("file", 5, 99)]
        assert exc_info.value.repository_state == "untouched"
        after = (len(populated_repository.list_folders()), len(populated_repository.list_files()))
        assert after == before

    def test_dangling_folder_parent_rejected_before_wipe(self, engine, populated_repository):
        before = len(populated_repository.list_folders())
        snapshot = Snapshot(
            version=1, exported_at=None,
            folders=[Folder(id=1, name="A", parent_id=42)]
        )

        with pytest.raises(DanglingReference):
            engine.replace(populated_repository, snapshot)

        assert len(populated_repository.list_folders()) == before

    def test_duplicate_folder_ids_rejected_before_wipe(self, engine, populated_repository):
        before = len(populated_repository.list_folders())
        snapshot = Snapshot(
            version=1, exported_at=None,
            folders=[Folder(id=1, name="A"), Folder(id=1, name="B")]
        )

        with pytest.raises(MalformedSnapshot):
            engine.replace(populated_repository, snapshot)

        assert len(populated_repository.list_folders()) == before

    def test_two_folder_cycle_raises_after_wipe(self, engine, populated_repository):
        snapshot = Snapshot(
            version=1, exported_at=None,
            folders=[Folder(id=1, name="A", parent_id=2), Folder(id=2, name="B", parent_id=1)]
        )

        with pytest.raises(CyclicHierarchy) as exc_info:
            engine.replace(populated_repository, snapshot)

        assert exc_info.value.report is not None
        assert exc_info.value.repository_state == "empty"
        assert populated_repository.list_folders() == []

    def test_self_parent_raises_cycle(self, engine):
        snapshot = Snapshot(
            version=1, exported_at=None,
            folders=[Folder(id=7, name="Loop", parent_id=7)]
        )
        with pytest.raises(CyclicHierarchy):
            engine.replace(InMemoryRepository(), snapshot)

    def test_failed_folder_skips_descendants(self, engine, sample_snapshot):
        """Children of a folder that could not be created are reported, never misplaced."""
        target = FlakyRepository(fail_folders={"Work"})

        with pytest.raises(ReplaceIncomplete) as exc_info:
            engine.replace(target, sample_snapshot)

        report = exc_info.value.report
        assert exc_info.value.repository_state == "partial"
        assert {p for p, _ in folder_paths(target)} == {"Projects", "Personal"}
        assert file_locations(target) == {(None, "inbox.md", "")}

        failed = {(f.phase, f.item_id) for f in report.failures}
        assert failed == {("folders", 11), ("folders", 12), ("files", 100), ("files", 101)}

    def test_failed_file_does_not_stop_replay(self, engine, sample_snapshot):
        target = FlakyRepository(fail_files={"plan.md"})

        with pytest.raises(ReplaceIncomplete) as exc_info:
            engine.replace(target, sample_snapshot)

        assert {f.title for f in target.list_files()} == {"q1.md", "inbox.md"}
        assert exc_info.value.report.failures_by_phase() == {"files": 1}

    def test_failed_toggle_is_reported(self, engine, sample_snapshot):
        target = FlakyRepository(fail_toggle=True)

        with pytest.raises(ReplaceIncomplete) as exc_info:
            engine.replace(target, sample_snapshot)

        assert exc_info.value.report.failures_by_phase() == {"folder_state": 2}
        assert len(target.list_files()) == 3

    def test_wipe_failures_are_collected(self, engine, sample_snapshot):
        target = FlakyRepository(fail_delete_files=True)
        build_workspace(target)

        with pytest.raises(ReplaceIncomplete) as exc_info:
            engine.replace(target, sample_snapshot)

        report = exc_info.value.report
        assert report.failures_by_phase()["wipe"] >= 4
        assert report.repository_state == "partial"
        # Snapshot content was still replayed
        assert "q1.md" in {f.title for f in target.list_files()}

    def test_progress_callback(self, engine, sample_snapshot):
        callback = Mock()
        engine.replace(InMemoryRepository(), sample_snapshot, progress_callback=callback)

        phases = [c.args[0] for c in callback.call_args_list]
        assert phases.index("Restoring folders") < phases.index("Restoring files")
        callback.assert_any_call("Restoring files", 3, 3)

    def test_report_dict(self, engine, sample_snapshot):
        report = engine.replace(InMemoryRepository(), sample_snapshot).to_dict()

        assert report["repository_state"] == "restored"
        assert report["replay"] == {"folders_created": 4, "folders_closed": 2, "files_created": 3}
        assert report["failures"] == []
        assert sorted(m["original_id"] for m in report["folder_mappings"]) == [10, 11, 12, 20]

    def test_string_identifiers(self, engine):
        snapshot = Snapshot(
            version=1, exported_at=None,
            folders=[Folder(id="root", name="Root"), Folder(id="child", name="Child", parent_id="root")],
            files=[File(id="f", folder_id="child", title="t", content="c")]
        )
        target = InMemoryRepository()
        engine.replace(target, snapshot)

        assert file_locations(target) == {("Root/Child", "t", "c")}


class TestIntegrityChecker:
    """Test snapshot diagnostics and post-restore validation."""

    @pytest.fixture
    def checker(self):
        return IntegrityChecker()

    def test_clean_snapshot(self, checker, sample_snapshot):
        result = checker.validate_snapshot(sample_snapshot)

        assert result.passed
        assert result.details["max_depth"] == 3
        assert result.details["total_files"] == 3

    def test_reports_all_problems(self, checker):
        snapshot = Snapshot(
            version=1, exported_at=None,
            folders=[
                Folder(id=1, name="A", parent_id=2),
                Folder(id=2, name="B", parent_id=1),
                Folder(id=3, name="C", parent_id=3),
                Folder(id=4, name="D", parent_id=77),
                Folder(id=4, name="E"),
            ],
            files=[File(id=9, folder_id=99, title="orphan")]
        )
        result = checker.validate_snapshot(snapshot)
        joined = "\n".join(result.errors)

        assert not result.passed
        assert "Duplicate folder id: 4" in joined
        assert "missing folder 99" in joined
        assert "missing folder 77" in joined
        assert "its own parent" in joined

    def test_empty_snapshot_warns(self, checker):
        result = checker.validate_snapshot(Snapshot(version=1, exported_at=None))
        assert result.passed
        assert result.warnings

    def test_validate_restoration(self, checker, sample_snapshot):
        target = InMemoryRepository()
        ReconciliationEngine().replace(target, sample_snapshot)

        assert checker.validate_restoration(sample_snapshot, target).passed

        target.create_file(None, "extra.md", "")
        result = checker.validate_restoration(sample_snapshot, target)
        assert not result.passed
        assert any("Unexpected file" in error for error in result.errors)


class TestWorkspaceRestoreManager:
    """Test restore orchestration."""

    @pytest.fixture
    def registry(self):
        registry = AdapterRegistry()
        registry.register(create_local_adapter())
        return registry

    @pytest.fixture
    def snapshot_file(self, tmp_path, sample_snapshot):
        payload = SnapshotCodec().encode_snapshot(sample_snapshot)
        return write_snapshot_file(payload, tmp_path / "backups", "snap.json")

    def test_restore_from_file(self, workspace_config, registry, snapshot_file):
        repository = InMemoryRepository()
        manager = WorkspaceRestoreManager(workspace_config, repository, registry)

        report = manager.restore_from(str(snapshot_file))

        assert report["restoration_summary"]["repository_state"] == "restored"
        assert report["validation"]["passed"] is True
        assert len(repository.list_files()) == 3

    def test_dry_run_never_wipes(self, workspace_config, registry, populated_repository, sample_snapshot):
        manager = WorkspaceRestoreManager(workspace_config, populated_repository, registry)
        before = folder_paths(populated_repository)

        report = manager.restore(sample_snapshot, dry_run=True)

        assert report["restoration_summary"]["dry_run"] is True
        assert report["restoration_summary"]["repository_state"] == "untouched"
        assert report["replace"] is None
        assert folder_paths(populated_repository) == before

    def test_dry_run_detects_cycles_without_wiping(self, workspace_config, registry, populated_repository):
        manager = WorkspaceRestoreManager(workspace_config, populated_repository, registry)
        snapshot = Snapshot(
            version=1, exported_at=None,
            folders=[Folder(id=1, name="A", parent_id=2), Folder(id=2, name="B", parent_id=1)]
        )

        with pytest.raises(CyclicHierarchy) as exc_info:
            manager.restore(snapshot, dry_run=True)

        assert exc_info.value.repository_state == "untouched"
        assert populated_repository.list_folders()

    def test_report_file_written_on_failure(self, workspace_config, registry, sample_snapshot, tmp_path):
        workspace_config.report_file = tmp_path / "reports" / "restore.json"
        manager = WorkspaceRestoreManager(
            workspace_config, FlakyRepository(fail_folders={"Projects"}), registry
        )
        refreshed = Mock()

        with pytest.raises(ReplaceIncomplete):
            manager.restore(sample_snapshot, on_replaced=refreshed)

        refreshed.assert_called_once()
        report = json.loads(workspace_config.report_file.read_text(encoding="utf-8"))
        assert report["restoration_summary"]["succeeded"] is False
        assert report["restoration_summary"]["repository_state"] == "partial"
        assert report["replace"]["failures_by_phase"]["folders"] == 3

    def test_missing_snapshot_file(self, workspace_config, registry, tmp_path):
        manager = WorkspaceRestoreManager(workspace_config, InMemoryRepository(), registry)

        with pytest.raises(FileNotFoundError):
            manager.load_snapshot(str(tmp_path / "nope.json"))

    def test_load_uses_adapter_download(self, workspace_config, sample_snapshot):
        codec = SnapshotCodec()
        adapter = create_local_adapter()
        adapter.id = "remote"
        adapter.download = Mock(return_value=codec.encode_snapshot(sample_snapshot))
        registry = AdapterRegistry()
        registry.register(adapter)

        manager = WorkspaceRestoreManager(workspace_config, InMemoryRepository(), registry)
        snapshot = manager.load_snapshot("snapshots/latest")

        adapter.download.assert_called_once_with("snapshots/latest")
        assert snapshot.folders == sample_snapshot.folders

    def test_close_releases_adapter_clients(self, workspace_config):
        adapter = create_local_adapter()
        adapter.id = "remote"
        adapter.close = Mock()
        registry = AdapterRegistry()
        registry.register(adapter)

        WorkspaceRestoreManager(workspace_config, InMemoryRepository(), registry).close()

        adapter.close.assert_called_once_with()
