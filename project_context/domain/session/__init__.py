# Session = one project's handle on the shared file store, its snapshots and
# its own access history. Sessions are created and evicted explicitly.

from .session_registry import ProjectSession, ProjectSessionRegistry

__all__ = ["ProjectSession", "ProjectSessionRegistry"]
