from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Union, Any
from dataclasses import dataclass
import asyncio
import inspect
import time
import structlog

from project_context.domain.models import ProjectFile
from project_context.infrastructure.observability.logging import context_logger, metrics

logger = structlog.get_logger(__name__)

SyncFn = Callable[[ProjectFile], Union[Awaitable[None], None]]
BatchSyncFn = Callable[[List[ProjectFile]], Union[Awaitable[None], None]]

# Timer key: (project_id, path) or (project_id, None) for the batch slot
TimerKey = Tuple[str, Optional[str]]

DEFAULT_DEBOUNCE_SECONDS = 0.5


@dataclass(eq=False)
class PendingSync:
    """A durable write waiting for its debounce window to elapse"""
    project_id: str
    key: Optional[str]
    files: Dict[str, ProjectFile]
    sync_fn: Callable[[Any], Union[Awaitable[None], None]]
    handle: Optional[asyncio.TimerHandle] = None

    @property
    def is_batch(self) -> bool:
        return self.key is None

    @property
    def label(self) -> str:
        return "batch" if self.is_batch else str(self.key)

    def cancel(self):
        if self.handle is not None:
            self.handle.cancel()


class FileStore:
    """
    In-memory working copy of project files.

    Reads and writes are synchronous and never touch durable storage. Writes
    that pass a sync function schedule a debounced durable write: every new
    write to the same key cancels the armed timer and starts a fresh one, so
    only the last value written inside a burst is persisted. A sync that
    starts while an earlier sync of the same path is still running waits
    for it, so durable values land in write order. Scheduling a sync needs
    a running asyncio event loop.
    """

    def __init__(self, debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS):
        self.debounce_seconds = debounce_seconds
        self._projects: Dict[str, Dict[str, ProjectFile]] = {}
        # project_id -> path -> pending sync that currently owns the path
        self._pending: Dict[str, Dict[str, PendingSync]] = {}
        self._timers: Dict[TimerKey, PendingSync] = {}
        self._in_flight: Dict[asyncio.Task, PendingSync] = {}

    def _project(self, project_id: str) -> Dict[str, ProjectFile]:
        if project_id not in self._projects:
            self._projects[project_id] = {}
        return self._projects[project_id]

    def load_project(self, project_id: str, files: Iterable[ProjectFile]) -> None:
        """Replace the whole in-memory file set of a project"""

        project = self._project(project_id)
        project.clear()

        for file in files:
            project[file.path] = file.model_copy()

        logger.info("Loaded project files", project_id=project_id, count=len(project))

    def has_project(self, project_id: str) -> bool:
        return project_id in self._projects

    def get_file(self, project_id: str, path: str) -> Optional[ProjectFile]:
        """Get a copy of a file, None when absent"""

        file = self._projects.get(project_id, {}).get(path)
        return file.model_copy() if file is not None else None

    def get_files(self, project_id: str) -> List[ProjectFile]:
        """Get copies of every file of a project"""

        return [file.model_copy() for file in self._projects.get(project_id, {}).values()]

    def get_paths(self, project_id: str) -> List[str]:
        return list(self._projects.get(project_id, {}).keys())

    def set_file(self, project_id: str, file: ProjectFile, sync_fn: Optional[SyncFn] = None) -> None:
        """Write a file to memory, optionally scheduling a debounced durable write"""

        stored = file.model_copy()
        self._project(project_id)[stored.path] = stored

        logger.debug("Set file", project_id=project_id, path=stored.path, length=len(stored.content))

        if sync_fn is not None:
            self._schedule(project_id, stored.path, {stored.path: stored}, sync_fn)

    def set_files(self, project_id: str, files: Iterable[ProjectFile], sync_fn: Optional[BatchSyncFn] = None) -> None:
        """Write several files at once, debounced under the project's batch key"""

        project = self._project(project_id)
        written: Dict[str, ProjectFile] = {}

        for file in files:
            stored = file.model_copy()
            project[stored.path] = stored
            written[stored.path] = stored

        context_logger.log_cache_event("set_files", project_id, {"count": len(written)})

        if sync_fn is not None and written:
            self._schedule(project_id, None, written, sync_fn)

    def delete_file(self, project_id: str, path: str) -> bool:
        """Remove a file from memory and from any pending durable write"""

        project = self._projects.get(project_id)
        if project is None or path not in project:
            return False

        del project[path]
        self._supersede(project_id, [path], keep=None)
        self._pending.get(project_id, {}).pop(path, None)

        context_logger.log_cache_event("delete_file", project_id, {"path": path})
        return True

    def is_pending(self, project_id: str, path: str) -> bool:
        """Whether a durable write for the path has not yet succeeded"""
        return path in self._pending.get(project_id, {})

    def _schedule(
        self,
        project_id: str,
        key: Optional[str],
        files: Dict[str, ProjectFile],
        sync_fn: Callable[[Any], Union[Awaitable[None], None]]
    ) -> None:
        loop = asyncio.get_running_loop()
        timer_key: TimerKey = (project_id, key)

        payload: Dict[str, ProjectFile] = {}
        previous = self._timers.pop(timer_key, None)
        if previous is not None:
            previous.cancel()
            # Batch writes coalesce; a single path is simply replaced
            if previous.is_batch:
                payload.update(previous.files)
        payload.update(files)

        entry = PendingSync(project_id=project_id, key=key, files=payload, sync_fn=sync_fn)

        # Newer values win over any other key still holding the same paths
        self._supersede(project_id, files.keys(), keep=entry)

        entry.handle = loop.call_later(self.debounce_seconds, self._fire, timer_key, entry)
        self._timers[timer_key] = entry

        pending = self._pending.setdefault(project_id, {})
        for path in payload:
            pending[path] = entry

    def _supersede(self, project_id: str, paths: Iterable[str], keep: Optional[PendingSync]) -> None:
        paths = set(paths)
        for timer_key, entry in list(self._timers.items()):
            if timer_key[0] != project_id or entry is keep:
                continue

            for path in paths:
                entry.files.pop(path, None)

            if not entry.files:
                entry.cancel()
                del self._timers[timer_key]

    def _fire(self, timer_key: TimerKey, entry: PendingSync) -> None:
        if self._timers.get(timer_key) is not entry:
            return
        del self._timers[timer_key]
        self._start_sync(entry)

    def _start_sync(self, entry: PendingSync) -> asyncio.Task:
        """Start a durable write behind any running write of the same paths"""

        previous = [
            task for task, running in self._in_flight.items()
            if running.project_id == entry.project_id and not running.files.keys().isdisjoint(entry.files)
        ]

        task = asyncio.get_running_loop().create_task(self._run_after(previous, entry))
        self._in_flight[task] = entry
        task.add_done_callback(self._forget_task)
        return task

    async def _run_after(self, previous: List[asyncio.Task], entry: PendingSync) -> bool:
        if previous:
            await asyncio.gather(*previous, return_exceptions=True)
        return await self._run_sync(entry)

    def _forget_task(self, task: asyncio.Task) -> None:
        self._in_flight.pop(task, None)

    async def _run_sync(self, entry: PendingSync) -> bool:
        """Run one durable write; failures are logged and the cache is left untouched"""

        files = [file.model_copy() for file in entry.files.values()]
        if not files:
            return True

        start = time.perf_counter()
        try:
            result = entry.sync_fn(files if entry.is_batch else files[0])
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            context_logger.log_sync(
                entry.project_id, entry.label, len(files),
                duration_ms=duration_ms, success=False, error=str(e)
            )
            metrics.increment_counter("file_store.sync_failures")
            return False

        duration_ms = (time.perf_counter() - start) * 1000

        pending = self._pending.get(entry.project_id)
        if pending is not None:
            for path in entry.files:
                if pending.get(path) is entry:
                    del pending[path]

        context_logger.log_sync(entry.project_id, entry.label, len(files), duration_ms=duration_ms)
        metrics.increment_counter("file_store.syncs")
        metrics.record_latency("file_store.sync", duration_ms)
        return True

    def cancel_pending(self, project_id: str) -> int:
        """Cancel every armed durable write of a project without running it"""

        cancelled = 0
        for timer_key, entry in list(self._timers.items()):
            if timer_key[0] == project_id:
                entry.cancel()
                del self._timers[timer_key]
                cancelled += 1

        self._pending.pop(project_id, None)
        return cancelled

    def rebase_pending(self, project_id: str, files: Dict[str, ProjectFile]) -> int:
        """
        Point the armed durable writes of a project at a restored file set.

        Armed paths present in ``files`` keep their timer and sync function
        but now carry the restored value. Armed paths absent from ``files``
        are dropped. Writes already in flight are left alone. Returns the
        number of dropped paths.
        """

        dropped = 0
        pending = self._pending.get(project_id, {})

        for timer_key, entry in list(self._timers.items()):
            if timer_key[0] != project_id:
                continue

            for path in list(entry.files):
                if path in files:
                    entry.files[path] = files[path].model_copy()
                    continue

                del entry.files[path]
                if pending.get(path) is entry:
                    del pending[path]
                dropped += 1

            if not entry.files:
                entry.cancel()
                del self._timers[timer_key]

        return dropped

    def clear_project(self, project_id: str) -> None:
        """Drop all in-memory state of a project and cancel its timers"""

        self._projects.pop(project_id, None)
        cancelled = self.cancel_pending(project_id)

        logger.info("Cleared project cache", project_id=project_id, cancelled_syncs=cancelled)

    async def flush(self, project_id: Optional[str] = None) -> int:
        """
        Run pending durable writes now instead of waiting for their timers.

        Syncs already in flight are awaited as well. Returns the number of
        pending writes that were executed.
        """

        entries = []
        for timer_key, entry in list(self._timers.items()):
            if project_id is None or timer_key[0] == project_id:
                entry.cancel()
                del self._timers[timer_key]
                entries.append(entry)

        if entries:
            await asyncio.gather(*(self._start_sync(entry) for entry in entries))

        in_flight = [
            task for task, running in list(self._in_flight.items())
            if project_id is None or running.project_id == project_id
        ]
        if in_flight:
            await asyncio.gather(*in_flight, return_exceptions=True)

        logger.info("Flushed pending writes", project_id=project_id, executed=len(entries))
        return len(entries)

    def get_stats(self, project_id: Optional[str] = None) -> Dict[str, int]:
        """Get cache statistics"""

        if project_id is not None:
            return {
                "project_count": 1 if project_id in self._projects else 0,
                "file_count": len(self._projects.get(project_id, {})),
                "pending_writes": len(self._pending.get(project_id, {})),
                "armed_timers": sum(1 for key in self._timers if key[0] == project_id)
            }

        return {
            "project_count": len(self._projects),
            "file_count": sum(len(files) for files in self._projects.values()),
            "pending_writes": sum(len(paths) for paths in self._pending.values()),
            "armed_timers": len(self._timers)
        }
