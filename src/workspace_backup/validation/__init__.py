"""
Validation of snapshots before a restore and of workspaces after one.
"""

from .integrity_checker import IntegrityChecker, ValidationResult

__all__ = [
    "IntegrityChecker",
    "ValidationResult",
]
