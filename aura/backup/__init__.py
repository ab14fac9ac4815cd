"""Backup export and merge import."""

from aura.backup.merge import (
    BackupManager,
    ImportParseError,
    ImportReferenceError,
    ImportSummary,
    MergePlan,
    ReferencePolicy,
    default_backup_filename,
    parse_backup_document,
    plan_merge,
)

__all__ = [
    "BackupManager",
    "ImportParseError",
    "ImportReferenceError",
    "ImportSummary",
    "MergePlan",
    "ReferencePolicy",
    "default_backup_filename",
    "parse_backup_document",
    "plan_merge",
]
