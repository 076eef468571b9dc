from deltadoc.domains.versions.entities import (
    OperationType, Operation, Retain, Insert, Delete, SaveType,
    ChangeStats, ChangeSummary, Document, DocumentVersion
)
from deltadoc.domains.versions.delta import optimize, apply, calculate_change_stats, generate_change_summary
from deltadoc.domains.versions.diff import DiffEngine, diff
from deltadoc.domains.versions.snapshot import SnapshotPolicy
from deltadoc.domains.versions.reconstruct import Reconstructor
from deltadoc.domains.versions.locks import FileLockRegistry, file_locks
from deltadoc.domains.versions.services import VersionManager

__all__ = [
    "OperationType", "Operation", "Retain", "Insert", "Delete", "SaveType",
    "ChangeStats", "ChangeSummary", "Document", "DocumentVersion",
    "optimize", "apply", "calculate_change_stats", "generate_change_summary",
    "DiffEngine", "diff", "SnapshotPolicy", "Reconstructor",
    "FileLockRegistry", "file_locks",
    "VersionManager"
]
