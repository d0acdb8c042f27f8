from typing import Callable, Dict, Iterable, List, Optional, Any
import time
import structlog

from project_context.domain.models import AccessRecord, AccessSource, AccessType
from .hot_paths import get_existing_hot_paths, is_always_hot

logger = structlog.get_logger(__name__)

TYPE_WEIGHTS: Dict[AccessType, int] = {
    AccessType.WRITE: 30,
    AccessType.EDIT: 20,
    AccessType.READ: 10,
}

SOURCE_WEIGHTS: Dict[AccessSource, int] = {
    AccessSource.USER: 25,
    AccessSource.AGENT: 15,
}

HOT_PATH_BONUS = 100

PriorityScorer = Callable[[str, AccessType, AccessSource], int]


def default_priority(path: str, access_type: AccessType, source: AccessSource) -> int:
    """Weighted sum of access type, source and the always-hot bonus"""

    priority = TYPE_WEIGHTS[access_type] + SOURCE_WEIGHTS[source]
    if is_always_hot(path):
        priority += HOT_PATH_BONUS
    return priority


class AccessTracker:
    """
    Tracks which files the agent and the user touched and picks the working set.

    Only the latest access per path is kept. The working set is every
    always-hot candidate followed by tracked candidates ordered by priority,
    then recency.
    """

    def __init__(
        self,
        max_working_set_size: int = 16,
        max_age_seconds: float = 3600,
        scorer: PriorityScorer = default_priority,
        clock: Callable[[], float] = time.time
    ):
        self.max_working_set_size = max_working_set_size
        self.max_age_seconds = max_age_seconds
        self.scorer = scorer
        self.clock = clock
        self._records: Dict[str, AccessRecord] = {}

    def record_access(
        self,
        path: str,
        type: AccessType = AccessType.READ,
        source: AccessSource = AccessSource.AGENT
    ) -> AccessRecord:
        """Record an access, replacing the previous record of the path"""

        access_type = AccessType(type)
        access_source = AccessSource(source)

        record = AccessRecord(
            path=path,
            timestamp=self.clock(),
            type=access_type,
            source=access_source,
            priority=self.scorer(path, access_type, access_source)
        )
        self._records[path] = record

        logger.debug("Recorded file access", path=path, type=access_type.value,
                     source=access_source.value, priority=record.priority)
        return record.model_copy()

    def get_relevant_files(self, candidate_paths: Iterable[str]) -> List[str]:
        """Select the working set among the candidate paths"""

        self.cleanup()

        ordered = list(dict.fromkeys(candidate_paths))
        candidates = set(ordered)
        hot = get_existing_hot_paths(ordered)[:self.max_working_set_size]

        accessed = [
            record for path, record in self._records.items()
            if path in candidates and not is_always_hot(path)
        ]
        accessed.sort(key=lambda record: (-record.priority, -record.timestamp))

        remaining = max(self.max_working_set_size - len(hot), 0)
        return hot + [record.path for record in accessed[:remaining]]

    def get_access_info(self, path: str) -> Optional[AccessRecord]:
        record = self._records.get(path)
        return record.model_copy() if record is not None else None

    def was_recently_accessed(self, path: str, max_age: Optional[float] = None) -> bool:
        record = self._records.get(path)
        if record is None:
            return False

        max_age = self.max_age_seconds if max_age is None else max_age
        return self.clock() - record.timestamp < max_age

    def get_all_accessed_paths(self) -> List[str]:
        return list(self._records.keys())

    def cleanup(self) -> int:
        """Drop records older than the max age; always-hot paths are kept"""

        cutoff = self.clock() - self.max_age_seconds
        expired = [
            path for path, record in self._records.items()
            if record.timestamp < cutoff and not is_always_hot(path)
        ]

        for path in expired:
            del self._records[path]

        if expired:
            logger.debug("Pruned stale file accesses", count=len(expired))
        return len(expired)

    def clear(self):
        self._records.clear()

    def get_stats(self) -> Dict[str, Any]:
        """Get tracker statistics"""

        records = list(self._records.values())
        return {
            "total_tracked": len(records),
            "by_type": {
                access_type.value: sum(1 for r in records if r.type == access_type)
                for access_type in AccessType
            },
            "by_source": {
                source.value: sum(1 for r in records if r.source == source)
                for source in AccessSource
            },
            "hot_count": sum(1 for r in records if is_always_hot(r.path))
        }

    def export_state(self) -> List[AccessRecord]:
        """Export records, most recent first"""

        return sorted(
            (record.model_copy() for record in self._records.values()),
            key=lambda record: record.timestamp,
            reverse=True
        )

    def import_state(self, records: Iterable[AccessRecord]):
        """Replace tracked records, e.g. from a saved session"""

        self._records = {record.path: record.model_copy() for record in records}
