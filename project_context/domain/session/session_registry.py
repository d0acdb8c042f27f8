from typing import Dict, List, Optional, Iterable
import structlog

from project_context.domain.models import (
    AccessSource, AccessType, ContextBundle, Message, ProjectFile
)
from project_context.domain.store import BatchSyncFn, FileStore, SnapshotManager, SyncFn
from project_context.domain.context.access_tracker import AccessTracker
from project_context.domain.context.context_assembler import ContextAssembler, InstructionProvider
from project_context.domain.context.token_estimator import TokenEstimator, estimate_tokens
from project_context.infrastructure.config import ContextSettings
from project_context.infrastructure.observability.logging import configure_logging

logger = structlog.get_logger(__name__)


class ProjectSession:
    """Handle binding one project to the shared store and its own tracker"""

    def __init__(
        self,
        project_id: str,
        file_store: FileStore,
        snapshots: SnapshotManager,
        tracker: AccessTracker,
        assembler: ContextAssembler
    ):
        self.project_id = project_id
        self.file_store = file_store
        self.snapshots = snapshots
        self.tracker = tracker
        self.assembler = assembler

    def read_file(self, path: str, source: AccessSource = AccessSource.AGENT) -> Optional[ProjectFile]:
        """Read a file and record the access; None when the path is unknown"""

        file = self.file_store.get_file(self.project_id, path)
        if file is not None:
            self.tracker.record_access(path, AccessType.READ, source)
        return file

    def write_file(
        self,
        file: ProjectFile,
        source: AccessSource = AccessSource.USER,
        sync_fn: Optional[SyncFn] = None
    ) -> None:
        existed = self.file_store.get_file(self.project_id, file.path) is not None
        access_type = AccessType.EDIT if existed else AccessType.WRITE

        self.tracker.record_access(file.path, access_type, source)
        self.file_store.set_file(self.project_id, file, sync_fn)

    def apply_agent_edits(
        self,
        files: Iterable[ProjectFile],
        description: str = "before-ai-edit",
        sync_fn: Optional[BatchSyncFn] = None
    ) -> str:
        """Snapshot the project, then write the agent's files; returns the snapshot id"""

        files = list(files)
        snapshot_id = self.snapshots.create_snapshot(self.project_id, description)

        for file in files:
            self.tracker.record_access(file.path, AccessType.WRITE, AccessSource.AGENT)
        self.file_store.set_files(self.project_id, files, sync_fn)

        return snapshot_id

    def undo_agent_edits(self, snapshot_id: Optional[str] = None, sync_fn: Optional[BatchSyncFn] = None) -> bool:
        return self.snapshots.rollback(self.project_id, snapshot_id, sync_fn)

    def accept_agent_edits(self, snapshot_id: Optional[str] = None) -> bool:
        return self.snapshots.clear_snapshot(self.project_id, snapshot_id)

    def build_context(
        self,
        user_message: str,
        history: List[Message],
        provider_hint: str = "openai",
        compact: bool = False
    ) -> ContextBundle:
        """Assemble a prompt from the project's current files and log validation findings"""

        with structlog.contextvars.bound_contextvars(project_id=self.project_id):
            files = self.file_store.get_files(self.project_id)
            if compact:
                bundle = self.assembler.assemble_compact_context(user_message, history, files, provider_hint)
            else:
                bundle = self.assembler.assemble_context(user_message, history, files, provider_hint)

            report = self.assembler.validate_context(bundle)
            if not report.valid:
                logger.error("Assembled context is invalid", errors=report.errors)
            elif report.warnings:
                logger.warning("Assembled context has warnings", warnings=report.warnings)

        return bundle


class ProjectSessionRegistry:
    """Creates, hands out and evicts project sessions"""

    def __init__(
        self,
        instruction_provider: InstructionProvider,
        settings: Optional[ContextSettings] = None,
        file_store: Optional[FileStore] = None,
        snapshots: Optional[SnapshotManager] = None,
        estimate: TokenEstimator = estimate_tokens
    ):
        self.settings = settings or ContextSettings()
        self.instruction_provider = instruction_provider
        self.file_store = file_store or FileStore(debounce_seconds=self.settings.debounce_seconds)
        self.snapshots = snapshots or SnapshotManager(self.file_store)
        self.estimate = estimate
        self.sessions: Dict[str, ProjectSession] = {}

    @classmethod
    def from_env(
        cls,
        instruction_provider: InstructionProvider,
        estimate: TokenEstimator = estimate_tokens
    ) -> "ProjectSessionRegistry":
        """Entry point for services: settings from the environment, logging configured"""

        settings = ContextSettings.from_env()
        configure_logging(settings)
        return cls(instruction_provider, settings=settings, estimate=estimate)

    def create_session(self, project_id: str, files: Optional[Iterable[ProjectFile]] = None) -> ProjectSession:
        """Create a session, replacing any previous one for the project"""

        if files is not None:
            self.file_store.load_project(project_id, files)

        tracker = AccessTracker(
            max_working_set_size=self.settings.max_working_set_size,
            max_age_seconds=self.settings.access_max_age_seconds
        )
        assembler = ContextAssembler(
            tracker=tracker,
            instruction_provider=self.instruction_provider,
            settings=self.settings,
            estimate=self.estimate,
            project_id=project_id
        )

        session = ProjectSession(project_id, self.file_store, self.snapshots, tracker, assembler)
        self.sessions[project_id] = session

        logger.info("Created project session", project_id=project_id)
        return session

    def get_session(self, project_id: str) -> Optional[ProjectSession]:
        return self.sessions.get(project_id)

    def get_or_create_session(self, project_id: str) -> ProjectSession:
        return self.sessions.get(project_id) or self.create_session(project_id)

    def evict_session(self, project_id: str) -> bool:
        """Drop every piece of in-memory state held for a project"""

        session = self.sessions.pop(project_id, None)
        if session is None:
            return False

        session.tracker.clear()
        self.snapshots.clear_snapshot(project_id)
        self.file_store.clear_project(project_id)

        logger.info("Evicted project session", project_id=project_id)
        return True

    def active_projects(self) -> List[str]:
        return list(self.sessions.keys())

    async def shutdown(self) -> int:
        """Flush every pending durable write"""

        executed = await self.file_store.flush()
        logger.info("Session registry shut down", flushed=executed, sessions=len(self.sessions))
        return executed
