"""
Shared fixtures for the test suite.
"""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from workspace_backup.config import GitHubConfig, S3Config, TransportConfig, WorkspaceConfig
from workspace_backup.restore.repository import InMemoryRepository
from workspace_backup.snapshot.models import File, Folder, Snapshot


def build_workspace(repository: InMemoryRepository) -> dict:
    """
    Populate a repository with a three-level tree.

    Projects/
        Work/
            Reports/   (closed)
                q1.md
            plan.md
        ideas.md
    Personal/          (closed)
    inbox.md           (unfiled)
    """
    projects = repository.create_folder("Projects", None)
    work = repository.create_folder("Work", projects)
    reports = repository.create_folder("Reports", work)
    personal = repository.create_folder("Personal", None)
    repository.toggle_folder_open(reports)
    repository.toggle_folder_open(personal)

    repository.create_file(reports, "q1.md", "# Q1\nnumbers")
    repository.create_file(work, "plan.md", "plan")
    repository.create_file(projects, "ideas.md", "ideas ✓")
    repository.create_file(None, "inbox.md", "")

    return {
        "Projects": projects,
        "Work": work,
        "Reports": reports,
        "Personal": personal,
    }


@pytest.fixture
def populated_repository():
    repository = InMemoryRepository()
    build_workspace(repository)
    return repository


@pytest.fixture
def sample_snapshot():
    """Snapshot with foreign identifiers that do not start at 1."""
    return Snapshot(
        version=1,
        exported_at="2024-01-01T12:00:00+00:00",
        folders=[
            Folder(id=10, name="Projects", parent_id=None, is_open=True),
            Folder(id=11, name="Work", parent_id=10, is_open=True),
            Folder(id=12, name="Reports", parent_id=11, is_open=False),
            Folder(id=20, name="Personal", parent_id=None, is_open=False),
        ],
        files=[
            File(id=100, folder_id=12, title="q1.md", content="# Q1"),
            File(id=101, folder_id=11, title="plan.md", content="plan"),
            File(id=102, folder_id=None, title="inbox.md", content=""),
        ]
    )


@pytest.fixture
def workspace_config(tmp_path):
    return WorkspaceConfig(
        workspace_file=tmp_path / "workspace.json",
        output_dir=tmp_path / "backups",
        default_adapter="local",
        validate_after=True,
        dry_run=False,
        report_file=None,
        log_level="INFO",
        log_file=None,
        debug=False,
        verbose=False
    )


@pytest.fixture
def transport_config():
    return TransportConfig(
        max_retries=2,
        retry_backoff_factor=1.0,
        retry_max_delay=1,
        timeout=5,
        circuit_breaker_threshold=10,
        circuit_breaker_timeout=60
    )


@pytest.fixture
def github_config():
    return GitHubConfig(
        token="ghp_test",
        owner="octo",
        repo="notes",
        branch="main",
        path="backups/workspace.json",
        api_url="https://api.github.test",
        commit_message="Update workspace backup"
    )


@pytest.fixture
def s3_config():
    return S3Config(
        bucket_name="workspace-bucket",
        region="us-east-1",
        prefix="workspace-backups/",
        use_iam_role=True,
        access_key_id="",
        secret_access_key=""
    )
