# Store = the project's files as they are right now, plus the copies needed to undo.

# The file store is authoritative for reads: callers never wait on durable
# storage. Durable writes trail behind, debounced per path (or per batch).

# Snapshots are taken before the agent edits files and are either rolled back
# ("undo AI changes") or cleared ("keep AI changes").

from .file_store import FileStore, PendingSync, SyncFn, BatchSyncFn
from .snapshot_manager import SnapshotManager

__all__ = ["FileStore", "PendingSync", "SyncFn", "BatchSyncFn", "SnapshotManager"]
