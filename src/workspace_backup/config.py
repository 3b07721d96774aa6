"""
Configuration management for workspace backup and restore operations.

This module provides dataclasses for the workspace, the remote transport
and each remote storage backend, loaded from environment variables
(and a ``.env`` file) and validated on creation.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, TypeVar
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

ConfigT = TypeVar("ConfigT")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class WorkspaceConfig:
    """Configuration for export and import runs against the local workspace."""

    # Workspace store
    workspace_file: Path = field(default_factory=lambda: Path(os.getenv("WORKSPACE_FILE", "./workspace.json")))

    # Backup settings
    output_dir: Path = field(default_factory=lambda: Path(os.getenv("BACKUP_OUTPUT_DIR", "./backups")))
    default_adapter: str = field(default_factory=lambda: os.getenv("DEFAULT_ADAPTER", "local"))

    # Restore settings
    validate_after: bool = field(default_factory=lambda: _env_flag("RESTORE_VALIDATE_AFTER", "true"))
    dry_run: bool = field(default_factory=lambda: _env_flag("RESTORE_DRY_RUN", "false"))
    report_file: Optional[Path] = field(
        default_factory=lambda: Path(os.environ["RESTORE_REPORT_FILE"]) if os.getenv("RESTORE_REPORT_FILE") else None
    )

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: os.getenv("LOG_FILE"))
    log_max_size: int = field(default_factory=lambda: int(os.getenv("LOG_MAX_SIZE", "10485760")))  # 10MB
    log_backup_count: int = field(default_factory=lambda: int(os.getenv("LOG_BACKUP_COUNT", "5")))

    # Development
    debug: bool = field(default_factory=lambda: _env_flag("DEBUG", "false"))
    verbose: bool = field(default_factory=lambda: _env_flag("VERBOSE", "false"))

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.validate()

    def validate(self) -> None:
        """Validate configuration settings."""
        if not str(self.workspace_file):
            raise ValueError("WORKSPACE_FILE must not be empty")

        if self.workspace_file.exists() and self.workspace_file.is_dir():
            raise ValueError(f"Workspace path is a directory: {self.workspace_file}")

        if self.output_dir.exists() and not self.output_dir.is_dir():
            raise ValueError(f"Backup output path is not a directory: {self.output_dir}")

        if not self.default_adapter:
            raise ValueError("DEFAULT_ADAPTER must not be empty")

        if self.log_level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"LOG_LEVEL is not a valid logging level: {self.log_level}")

        if self.log_max_size <= 0:
            raise ValueError("LOG_MAX_SIZE must be positive")


@dataclass
class TransportConfig:
    """Retry and timeout settings shared by remote adapters."""

    max_retries: int = field(default_factory=lambda: int(os.getenv("MAX_RETRIES", "3")))
    retry_backoff_factor: float = field(default_factory=lambda: float(os.getenv("RETRY_BACKOFF_FACTOR", "2")))
    retry_max_delay: int = field(default_factory=lambda: int(os.getenv("RETRY_MAX_DELAY", "60")))
    timeout: float = field(default_factory=lambda: float(os.getenv("TRANSPORT_TIMEOUT", "30")))
    circuit_breaker_threshold: int = field(default_factory=lambda: int(os.getenv("CIRCUIT_BREAKER_THRESHOLD", "5")))
    circuit_breaker_timeout: int = field(default_factory=lambda: int(os.getenv("CIRCUIT_BREAKER_TIMEOUT", "60")))

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.max_retries < 0:
            raise ValueError("MAX_RETRIES must be non-negative")

        if self.retry_backoff_factor <= 0:
            raise ValueError("RETRY_BACKOFF_FACTOR must be positive")

        if self.timeout <= 0:
            raise ValueError("TRANSPORT_TIMEOUT must be positive")

        if self.circuit_breaker_threshold < 1:
            raise ValueError("CIRCUIT_BREAKER_THRESHOLD must be at least 1")


@dataclass
class GitHubConfig:
    """
    Configuration for the GitHub contents adapter.

    A missing token is not a configuration error: the adapter raises
    ``Unauthenticated`` when a call needs it.
    """

    token: str = field(default_factory=lambda: os.getenv("GITHUB_TOKEN", ""))
    owner: str = field(default_factory=lambda: os.getenv("GITHUB_OWNER", ""))
    repo: str = field(default_factory=lambda: os.getenv("GITHUB_REPO", ""))
    branch: str = field(default_factory=lambda: os.getenv("GITHUB_BRANCH", "main"))
    path: str = field(default_factory=lambda: os.getenv("GITHUB_BACKUP_PATH", "workspace-backup.json"))
    api_url: str = field(default_factory=lambda: os.getenv("GITHUB_API_URL", "https://api.github.com"))
    commit_message: str = field(default_factory=lambda: os.getenv("GITHUB_COMMIT_MESSAGE", "Update workspace backup"))

    def __post_init__(self):
        self.validate()

    @property
    def is_configured(self) -> bool:
        return bool(self.owner and self.repo)

    def validate(self) -> None:
        if bool(self.owner) != bool(self.repo):
            raise ValueError("GITHUB_OWNER and GITHUB_REPO must be set together")

        if "/" in self.owner or "/" in self.repo:
            raise ValueError("GITHUB_OWNER and GITHUB_REPO must not contain '/'")

        if not self.path or self.path.startswith("/"):
            raise ValueError("GITHUB_BACKUP_PATH must be a relative path inside the repository")

        if not self.api_url.startswith(("http://", "https://")):
            raise ValueError("GITHUB_API_URL must be an http(s) URL")


@dataclass
class S3Config:
    """Configuration for the S3 adapter."""

    bucket_name: str = field(default_factory=lambda: os.getenv("S3_BUCKET_NAME", ""))
    region: str = field(default_factory=lambda: os.getenv("AWS_REGION", "us-east-1"))
    prefix: str = field(default_factory=lambda: os.getenv("S3_PREFIX", "workspace-backups/"))
    use_iam_role: bool = field(default_factory=lambda: _env_flag("AWS_USE_IAM_ROLE", "true"))
    access_key_id: str = field(default_factory=lambda: os.getenv("AWS_ACCESS_KEY_ID", ""))
    secret_access_key: str = field(default_factory=lambda: os.getenv("AWS_SECRET_ACCESS_KEY", ""))

    def __post_init__(self):
        self.validate()

    @property
    def is_configured(self) -> bool:
        return bool(self.bucket_name)

    def validate(self) -> None:
        if not self.is_configured:
            return

        # Without an IAM role (OIDC/IRSA) explicit access keys are required
        if not self.use_iam_role and not (self.access_key_id and self.secret_access_key):
            raise ValueError(
                "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY are required "
                "when AWS_USE_IAM_ROLE is false"
            )


def _apply_overrides(config: ConfigT, overrides: dict) -> ConfigT:
    known = {f.name for f in fields(config)}
    for key, value in overrides.items():
        if key not in known:
            raise ValueError(f"Unknown configuration key: {key}")
        setattr(config, key, value)
    config.validate()
    return config


def get_workspace_config(**overrides) -> WorkspaceConfig:
    """
    Get workspace configuration with optional overrides.

    Args:
        **overrides: Configuration values to override

    Returns:
        WorkspaceConfig instance
    """
    return _apply_overrides(WorkspaceConfig(), overrides)


def get_transport_config(**overrides) -> TransportConfig:
    """Get transport configuration with optional overrides."""
    return _apply_overrides(TransportConfig(), overrides)


def get_github_config(**overrides) -> GitHubConfig:
    """Get GitHub adapter configuration with optional overrides."""
    return _apply_overrides(GitHubConfig(), overrides)


def get_s3_config(**overrides) -> S3Config:
    """Get S3 adapter configuration with optional overrides."""
    return _apply_overrides(S3Config(), overrides)
