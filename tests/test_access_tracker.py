"""
Tests for access tracking, priority scoring and working-set selection.

Run with:
    pytest tests/test_access_tracker.py -v
"""

from __future__ import annotations

import pytest

from project_context.domain.context import AccessTracker, default_priority, get_existing_hot_paths, is_always_hot
from project_context.domain.models import AccessSource, AccessType


@pytest.fixture
def tracker(clock) -> AccessTracker:
    return AccessTracker(clock=clock)


class TestPriority:
    """The weights are a design choice and pinned here."""

    @pytest.mark.parametrize("access_type, source, expected", [
        (AccessType.WRITE, AccessSource.USER, 55),
        (AccessType.WRITE, AccessSource.AGENT, 45),
        (AccessType.EDIT, AccessSource.USER, 45),
        (AccessType.EDIT, AccessSource.AGENT, 35),
        (AccessType.READ, AccessSource.USER, 35),
        (AccessType.READ, AccessSource.AGENT, 25),
    ])
    def test_weights(self, access_type, source, expected):
        assert default_priority("src/screen.tsx", access_type, source) == expected

    def test_hot_path_bonus(self):
        assert default_priority("package.json", AccessType.READ, AccessSource.AGENT) == 125

    def test_record_access_computes_priority(self, tracker):
        record = tracker.record_access("src/a.ts", AccessType.EDIT, AccessSource.USER)

        assert record.priority == 45
        assert tracker.get_access_info("src/a.ts").priority == 45

    def test_latest_access_replaces_previous(self, tracker, clock):
        tracker.record_access("src/a.ts", AccessType.WRITE, AccessSource.USER)
        clock.advance(5)
        tracker.record_access("src/a.ts", AccessType.READ, AccessSource.AGENT)

        info = tracker.get_access_info("src/a.ts")
        assert info.type == AccessType.READ
        assert info.priority == 25
        assert tracker.get_all_accessed_paths() == ["src/a.ts"]

    def test_accepts_plain_strings(self, tracker):
        record = tracker.record_access("src/a.ts", "write", "agent")

        assert record.type == AccessType.WRITE
        assert record.source == AccessSource.AGENT

    def test_custom_scorer(self, clock):
        tracker = AccessTracker(scorer=lambda path, access_type, source: len(path), clock=clock)

        assert tracker.record_access("abc").priority == 3


class TestHotPaths:
    """Always-hot matching and ordering."""

    def test_matches_exact_and_nested(self):
        assert is_always_hot("package.json")
        assert is_always_hot("my-app/package.json")
        assert not is_always_hot("mypackage.json")
        assert not is_always_hot("src/screen.tsx")

    def test_ordered_by_allow_list(self):
        candidates = ["tsconfig.json", "src/a.ts", "app/_layout.tsx", "package.json"]

        assert get_existing_hot_paths(candidates) == ["package.json", "app/_layout.tsx", "tsconfig.json"]


class TestRelevantFiles:
    """Working-set selection."""

    def test_only_hot_path_without_accesses(self, tracker):
        # 100, 2000 and 50000 character files; only one is hot
        candidates = ["src/small.ts", "src/medium.ts", "app.json"]

        assert tracker.get_relevant_files(candidates) == ["app.json"]

    def test_hot_paths_first_then_priority(self, tracker, clock):
        tracker.record_access("src/read.ts", AccessType.READ, AccessSource.AGENT)
        tracker.record_access("src/written.ts", AccessType.WRITE, AccessSource.USER)
        tracker.record_access("src/edited.ts", AccessType.EDIT, AccessSource.AGENT)

        relevant = tracker.get_relevant_files([
            "src/read.ts", "src/written.ts", "src/edited.ts", "package.json"
        ])

        assert relevant == ["package.json", "src/written.ts", "src/edited.ts", "src/read.ts"]

    def test_ties_broken_by_recency(self, tracker, clock):
        tracker.record_access("src/old.ts", AccessType.READ, AccessSource.AGENT)
        clock.advance(10)
        tracker.record_access("src/new.ts", AccessType.READ, AccessSource.AGENT)

        assert tracker.get_relevant_files(["src/old.ts", "src/new.ts"]) == ["src/new.ts", "src/old.ts"]

    def test_untracked_candidates_excluded(self, tracker):
        tracker.record_access("src/a.ts")

        assert tracker.get_relevant_files(["src/a.ts", "src/untracked.ts"]) == ["src/a.ts"]

    def test_tracked_paths_outside_candidates_excluded(self, tracker):
        tracker.record_access("src/deleted.ts", AccessType.WRITE, AccessSource.USER)

        assert tracker.get_relevant_files(["src/other.ts"]) == []

    def test_hot_path_listed_once_even_when_tracked(self, tracker):
        tracker.record_access("package.json", AccessType.WRITE, AccessSource.USER)

        assert tracker.get_relevant_files(["package.json"]) == ["package.json"]

    def test_never_exceeds_working_set_size(self, clock):
        tracker = AccessTracker(max_working_set_size=5, clock=clock)
        paths = [f"src/file{i}.ts" for i in range(20)]
        for path in paths:
            tracker.record_access(path, AccessType.EDIT, AccessSource.USER)
            clock.advance(1)

        relevant = tracker.get_relevant_files(paths + ["package.json", "app.json"])

        assert len(relevant) == 5
        assert relevant[:2] == ["package.json", "app.json"]
        # Most recent first among equal priorities
        assert relevant[2:] == ["src/file19.ts", "src/file18.ts", "src/file17.ts"]

    def test_hot_paths_truncated_to_working_set_size(self, clock):
        tracker = AccessTracker(max_working_set_size=2, clock=clock)

        relevant = tracker.get_relevant_files(["package.json", "app.json", "tsconfig.json"])

        assert relevant == ["package.json", "app.json"]

    def test_default_working_set_is_sixteen(self, tracker, clock):
        paths = [f"src/file{i}.ts" for i in range(30)]
        for path in paths:
            tracker.record_access(path)
            clock.advance(1)

        assert len(tracker.get_relevant_files(paths)) == 16


class TestCleanup:
    """Age-based pruning."""

    def test_old_records_pruned_before_selection(self, tracker, clock):
        tracker.record_access("src/stale.ts", AccessType.WRITE, AccessSource.USER)
        clock.advance(3601)
        tracker.record_access("src/fresh.ts")

        assert tracker.get_relevant_files(["src/stale.ts", "src/fresh.ts"]) == ["src/fresh.ts"]
        assert tracker.get_access_info("src/stale.ts") is None

    def test_hot_paths_never_pruned(self, tracker, clock):
        tracker.record_access("app/_layout.tsx")
        clock.advance(10 * 3600)

        assert tracker.cleanup() == 0
        assert tracker.get_access_info("app/_layout.tsx") is not None

    def test_was_recently_accessed(self, tracker, clock):
        tracker.record_access("src/a.ts")
        clock.advance(120)

        assert tracker.was_recently_accessed("src/a.ts")
        assert not tracker.was_recently_accessed("src/a.ts", max_age=60)
        assert not tracker.was_recently_accessed("src/never.ts")


class TestState:
    """Stats, export and import."""

    def test_stats(self, tracker):
        tracker.record_access("src/a.ts", AccessType.READ, AccessSource.AGENT)
        tracker.record_access("src/b.ts", AccessType.WRITE, AccessSource.USER)
        tracker.record_access("package.json", AccessType.READ, AccessSource.AGENT)

        stats = tracker.get_stats()

        assert stats["total_tracked"] == 3
        assert stats["by_type"] == {"read": 2, "write": 1, "edit": 0}
        assert stats["by_source"] == {"agent": 2, "user": 1}
        assert stats["hot_count"] == 1

    def test_export_import_round_trip(self, tracker, clock):
        tracker.record_access("src/a.ts")
        clock.advance(1)
        tracker.record_access("src/b.ts")

        exported = tracker.export_state()
        assert [record.path for record in exported] == ["src/b.ts", "src/a.ts"]

        restored = AccessTracker(clock=clock)
        restored.import_state(exported)
        assert restored.get_relevant_files(["src/a.ts", "src/b.ts"]) == ["src/b.ts", "src/a.ts"]

    def test_clear(self, tracker):
        tracker.record_access("src/a.ts")
        tracker.clear()

        assert tracker.get_all_accessed_paths() == []
