"""
Command-line interfaces for backup and restore operations.
"""

from .backup_cli import backup_app
from .restore_cli import restore_app

__all__ = [
    "backup_app",
    "restore_app",
]
