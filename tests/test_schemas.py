"""Tests for the change, config, and result schemas."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from specsync.schemas import (
    DEFAULT_TESTS_FIELD,
    ChangeDirection,
    ChangeKind,
    ChangeRecord,
    ChangeSet,
    ConflictStrategyName,
    MatchPolicy,
    SyncConfig,
    TestScript,
)


def _make_record(conflict: bool = False, **overrides) -> ChangeRecord:
    data = {
        "path": "paths./test.get.description",
        "segments": ["paths", "/test", "get", "description"],
        "kind": ChangeKind.MODIFIED,
        "old_value": "A",
        "new_value": "B",
        "direction": ChangeDirection.BIDIRECTIONAL,
        "has_conflict": conflict,
    }
    data.update(overrides)
    return ChangeRecord(**data)


class TestChangeRecord:
    def test_camel_case_dump(self):
        dumped = _make_record(conflict=True).model_dump(by_alias=True)
        assert dumped["oldValue"] == "A"
        assert dumped["newValue"] == "B"
        assert dumped["hasConflict"] is True
        assert "old_value" not in dumped

    def test_populate_by_either_name(self):
        record = ChangeRecord(
            path="p", kind="added", direction="collection-only", newValue=[1]
        )
        assert record.new_value == [1]
        assert record.kind == ChangeKind.ADDED

    def test_enum_values(self):
        assert ChangeKind.DELETED == "deleted"
        assert ChangeDirection.STRUCTURAL_ONLY == "structural-only"

    def test_invalid_kind(self):
        with pytest.raises(ValidationError):
            _make_record(kind="renamed")


class TestChangeSet:
    def test_empty(self):
        changes = ChangeSet()
        assert changes.is_empty
        assert not changes.has_conflicts
        assert not changes.degraded

    def test_summary_counts(self):
        changes = ChangeSet(
            safe_to_sync=[_make_record(), _make_record()],
            needs_review=[_make_record(conflict=True)],
            tests=[_make_record(direction=ChangeDirection.COLLECTION_ONLY)],
        )
        summary = changes.summary()
        assert summary.safe_to_sync == 2
        assert summary.needs_review == 1
        assert summary.blocked == 0
        assert summary.tests == 1
        assert summary.has_conflicts

    def test_summary_aliases(self):
        summary = ChangeSet(safe_to_sync=[_make_record()]).summary()
        assert summary.model_dump(by_alias=True) == {
            "safeToSync": 1,
            "needsReview": 0,
            "blocked": 0,
            "tests": 0,
            "hasConflicts": False,
            "degraded": False,
        }

    def test_all_records_order(self):
        a = _make_record(path="a")
        b = _make_record(path="b")
        c = _make_record(path="c")
        changes = ChangeSet(safe_to_sync=[a], blocked=[b], tests=[c])
        assert [r.path for r in changes.all_records()] == ["a", "b", "c"]


class TestSyncConfig:
    def test_defaults(self):
        config = SyncConfig()
        assert config.conflict_strategy == ConflictStrategyName.SPEC_WINS
        assert config.tests_extension_field == DEFAULT_TESTS_FIELD == "x-postman-tests"
        assert config.baseline_dir == ".sync-baselines"
        assert config.match_policy == MatchPolicy.FIRST_MATCH
        assert config.auto_merge_descriptions
        assert config.store_tests_as_extension
        assert config.backup

    def test_strategy_from_string(self):
        config = SyncConfig(conflict_strategy="collection-wins")
        assert config.conflict_strategy == ConflictStrategyName.COLLECTION_WINS

    def test_invalid_strategy(self):
        with pytest.raises(ValidationError):
            SyncConfig(conflict_strategy="remote-wins")

    def test_max_depth_bounds(self):
        with pytest.raises(ValidationError):
            SyncConfig(max_depth=0)
        with pytest.raises(ValidationError):
            SyncConfig(max_depth=5000)


class TestTestScript:
    def test_default_type(self):
        script = TestScript(name="t", script=["a"])
        assert script.model_dump() == {"name": "t", "script": ["a"], "type": "text/javascript"}
