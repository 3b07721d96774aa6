#!/usr/bin/env python3
"""
Backup script entry point.

Runs the backup CLI without installing the package: `python backup.py main`.
"""

import sys
from pathlib import Path

# Add src to Python path to allow imports
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from workspace_backup.cli.backup_cli import backup_app

if __name__ == "__main__":
    backup_app()
