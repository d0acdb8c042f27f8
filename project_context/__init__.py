from project_context.domain.models import (
    AccessSource,
    AccessType,
    ContextBundle,
    Message,
    MessageRole,
    ProjectFile,
)
from project_context.domain.store import FileStore, SnapshotManager
from project_context.domain.context import AccessTracker, ContextAssembler, collapse_messages, estimate_tokens
from project_context.domain.session import ProjectSession, ProjectSessionRegistry
from project_context.infrastructure.config import ContextSettings

__all__ = [
    "AccessSource",
    "AccessType",
    "ContextBundle",
    "Message",
    "MessageRole",
    "ProjectFile",
    "FileStore",
    "SnapshotManager",
    "AccessTracker",
    "ContextAssembler",
    "collapse_messages",
    "estimate_tokens",
    "ProjectSession",
    "ProjectSessionRegistry",
    "ContextSettings",
]
