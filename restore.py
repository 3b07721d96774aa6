#!/usr/bin/env python3
"""
Restore script entry point.

Runs the restore CLI without installing the package:
`python restore.py main backups/workspace_backup_20240101_120000.json`.
"""

import sys
from pathlib import Path

# Add src to Python path to allow imports
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from workspace_backup.cli.restore_cli import restore_app

if __name__ == "__main__":
    restore_app()
