from typing import Dict, List, Optional
from datetime import datetime, timezone
import uuid
import structlog

from project_context.domain.models import Snapshot, SnapshotInfo
from project_context.infrastructure.observability.logging import context_logger, metrics
from .file_store import FileStore, BatchSyncFn

logger = structlog.get_logger(__name__)


class SnapshotManager:
    """Captures and restores point-in-time copies of a project's files"""

    def __init__(self, file_store: FileStore):
        self.file_store = file_store
        # project_id -> snapshot_id -> snapshot, oldest first
        self._snapshots: Dict[str, Dict[str, Snapshot]] = {}

    def create_snapshot(self, project_id: str, description: str) -> str:
        """Copy the current state of a project and return the snapshot id"""

        files = {file.path: file for file in self.file_store.get_files(project_id)}
        snapshot = Snapshot(
            id=uuid.uuid4().hex,
            project_id=project_id,
            files=files,
            timestamp=datetime.now(timezone.utc),
            description=description
        )

        self._snapshots.setdefault(project_id, {})[snapshot.id] = snapshot

        logger.info(
            "Created snapshot",
            project_id=project_id,
            snapshot_id=snapshot.id,
            description=description,
            file_count=len(files)
        )
        return snapshot.id

    def _resolve(self, project_id: str, snapshot_id: Optional[str]) -> Optional[Snapshot]:
        snapshots = self._snapshots.get(project_id)
        if not snapshots:
            return None

        if snapshot_id is None:
            return next(reversed(snapshots.values()))

        return snapshots.get(snapshot_id)

    def has_snapshot(self, project_id: str, snapshot_id: Optional[str] = None) -> bool:
        return self._resolve(project_id, snapshot_id) is not None

    def get_snapshot(self, project_id: str, snapshot_id: Optional[str] = None) -> Optional[Snapshot]:
        """Get a copy of a snapshot; the latest one when no id is given"""

        snapshot = self._resolve(project_id, snapshot_id)
        return snapshot.model_copy(deep=True) if snapshot is not None else None

    def list_snapshots(self, project_id: str) -> List[SnapshotInfo]:
        return [snapshot.info() for snapshot in self._snapshots.get(project_id, {}).values()]

    def rollback(
        self,
        project_id: str,
        snapshot_id: Optional[str] = None,
        sync_fn: Optional[BatchSyncFn] = None
    ) -> bool:
        """
        Restore a project to a snapshot.

        Files added after the snapshot disappear, removed files come back and
        modified files revert. Armed durable writes of the project are
        rebased onto the restored set: writes of paths the snapshot holds
        now carry the restored value, writes of paths it lacks are dropped.
        With a sync function the whole restored set is also synced as one
        batch, queued behind any write of the same paths still in flight.
        Returns False when no matching snapshot exists.
        """

        snapshot = self._resolve(project_id, snapshot_id)
        if snapshot is None:
            logger.warning("No snapshot to roll back to", project_id=project_id, snapshot_id=snapshot_id)
            metrics.increment_counter("snapshots.rollback_misses")
            return False

        restored = [file.model_copy() for file in snapshot.files.values()]
        self.file_store.load_project(project_id, restored)
        dropped = self.file_store.rebase_pending(project_id, snapshot.files)

        if sync_fn is not None and restored:
            self.file_store.set_files(project_id, restored, sync_fn)

        del self._snapshots[project_id][snapshot.id]
        if not self._snapshots[project_id]:
            del self._snapshots[project_id]

        context_logger.log_cache_event(
            "rollback",
            project_id,
            {"snapshot_id": snapshot.id, "restored": len(restored), "dropped_syncs": dropped}
        )
        metrics.increment_counter("snapshots.rollbacks")
        return True

    def clear_snapshot(self, project_id: str, snapshot_id: Optional[str] = None) -> bool:
        """Discard a snapshot without restoring it; all of the project's when no id is given"""

        snapshots = self._snapshots.get(project_id)
        if not snapshots:
            return False

        if snapshot_id is None:
            del self._snapshots[project_id]
            logger.info("Cleared snapshots", project_id=project_id, count=len(snapshots))
            return True

        if snapshots.pop(snapshot_id, None) is None:
            return False

        if not snapshots:
            del self._snapshots[project_id]

        logger.info("Cleared snapshot", project_id=project_id, snapshot_id=snapshot_id)
        return True

    def get_stats(self, project_id: Optional[str] = None) -> Dict[str, int]:
        if project_id is not None:
            return {"snapshots": len(self._snapshots.get(project_id, {}))}

        return {
            "projects": len(self._snapshots),
            "snapshots": sum(len(snapshots) for snapshots in self._snapshots.values())
        }
