"""Tests for conflict strategy selection."""

from __future__ import annotations

import pytest

from specsync.schemas.changes import ChangeDirection, ChangeKind, ChangeRecord, ChangeSet
from specsync.schemas.sync import ConflictStrategyName
from specsync.sync.strategies import (
    CollectionWinsStrategy,
    SpecWinsStrategy,
    get_strategy,
)


def _make_record(path: str, conflict: bool = False, direction=ChangeDirection.BIDIRECTIONAL):
    return ChangeRecord(
        path=path,
        segments=path.split("."),
        kind=ChangeKind.MODIFIED,
        old_value="local",
        new_value="remote",
        direction=direction,
        has_conflict=conflict,
    )


def _make_changes() -> ChangeSet:
    return ChangeSet(
        safe_to_sync=[_make_record("paths./a.get.description")],
        needs_review=[
            _make_record("paths./a.get.summary", conflict=True),
            _make_record("paths./b.get.summary"),
        ],
        blocked=[
            _make_record(
                "paths./c", conflict=True, direction=ChangeDirection.STRUCTURAL_ONLY
            ),
        ],
    )


class TestGetStrategy:
    def test_by_enum(self):
        assert isinstance(get_strategy(ConflictStrategyName.SPEC_WINS), SpecWinsStrategy)

    def test_by_string(self):
        assert isinstance(get_strategy("collection-wins"), CollectionWinsStrategy)

    def test_unknown_raises(self):
        with pytest.raises(ValueError, match="Unknown conflict strategy"):
            get_strategy("remote-wins")


class TestSpecWins:
    def test_selects_safe_only(self):
        selected = SpecWinsStrategy().select(_make_changes())
        assert [r.path for r in selected] == ["paths./a.get.description"]

    def test_does_not_allow_conflicts(self):
        assert not SpecWinsStrategy().allows_conflicts


class TestCollectionWins:
    def test_adds_conflicted_descriptive_records(self):
        selected = CollectionWinsStrategy().select(_make_changes())
        assert [r.path for r in selected] == [
            "paths./a.get.description",
            "paths./a.get.summary",
        ]

    def test_never_selects_blocked(self):
        selected = CollectionWinsStrategy().select(_make_changes())
        assert all(r.direction != ChangeDirection.STRUCTURAL_ONLY for r in selected)

    def test_allows_conflicts(self):
        assert CollectionWinsStrategy().allows_conflicts
