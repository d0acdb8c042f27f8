from .project_state import (
    AccessType,
    AccessSource,
    MessageRole,
    ProjectFile,
    AccessRecord,
    Snapshot,
    SnapshotInfo,
    Message,
    ContextStats,
    ContextBundle,
    ValidationReport,
)

__all__ = [
    "AccessType",
    "AccessSource",
    "MessageRole",
    "ProjectFile",
    "AccessRecord",
    "Snapshot",
    "SnapshotInfo",
    "Message",
    "ContextStats",
    "ContextBundle",
    "ValidationReport",
]
