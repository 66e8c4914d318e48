"""Reverse sync configuration, merge, and result schemas.

Defines the SyncConfig loaded from defaults.toml, the MergeResult audit
record returned by the spec merge, the TestScript entries stored in the
tests vendor extension, and the SyncResult returned by the engine.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from specsync.schemas.changes import ChangeRecord, ChangeSet

DEFAULT_TESTS_FIELD = "x-postman-tests"


class ConflictStrategyName(StrEnum):
    """How conflicted descriptive fields are resolved at merge time."""

    SPEC_WINS = "spec-wins"
    COLLECTION_WINS = "collection-wins"


class MatchPolicy(StrEnum):
    """Tie-break used when several path templates match a concrete path."""

    FIRST_MATCH = "first-match"
    MOST_SPECIFIC = "most-specific"


class SyncStatus(StrEnum):
    DRY_RUN = "dry-run"
    NO_CHANGES = "no-changes"
    SYNCED = "synced"


class SyncConfig(BaseModel):
    """Reverse sync settings.

    Loaded from the [sync] table of defaults.toml and overridden by
    CLI flags.
    """

    conflict_strategy: ConflictStrategyName = Field(
        default=ConflictStrategyName.SPEC_WINS,
        description="Resolution for conflicted descriptive fields",
    )
    auto_merge_descriptions: bool = Field(
        default=True, description="Sync description/summary/title changes automatically"
    )
    auto_merge_examples: bool = Field(
        default=True, description="Sync example/examples changes automatically"
    )
    store_tests_as_extension: bool = Field(
        default=True, description="Write collection test scripts onto operations"
    )
    tests_extension_field: str = Field(
        default=DEFAULT_TESTS_FIELD, description="Vendor extension key holding test scripts"
    )
    baseline_dir: str = Field(
        default=".sync-baselines", description="Baseline directory, sibling to the spec"
    )
    match_policy: MatchPolicy = Field(
        default=MatchPolicy.FIRST_MATCH, description="Path template tie-break"
    )
    backup: bool = Field(default=True, description="Back up the spec before overwriting it")
    max_depth: int = Field(
        default=64, gt=0, le=1024, description="Deepest tree level walked field by field"
    )
    ignored_keys: list[str] = Field(
        default_factory=list, description="Extra keys excluded from the three-way diff"
    )


class TestScript(BaseModel):
    """One collection test-listener script, stored verbatim."""

    __test__ = False  # not a pytest class

    name: str = Field(description="Name of the collection request")
    script: list[str] = Field(default_factory=list, description="Source lines, in order")
    type: str = Field(default="text/javascript", description="Script MIME type")


class MergeResult(BaseModel):
    """Audit record for a spec merge."""

    spec: dict[str, Any] = Field(description="Local spec with the applied writes")
    applied: list[ChangeRecord] = Field(
        default_factory=list, description="Records written into the spec"
    )
    skipped: list[ChangeRecord] = Field(
        default_factory=list, description="Records not written; reason says why"
    )


class SyncResult(BaseModel):
    """Outcome of one reverse sync run."""

    status: SyncStatus = Field(description="What the run did")
    changes: ChangeSet = Field(description="Classified changes")
    applied: list[ChangeRecord] = Field(default_factory=list)
    skipped: list[ChangeRecord] = Field(default_factory=list)
    tests_applied: int = Field(default=0, ge=0, description="Operations given test scripts")
    output_path: str = Field(default="", description="Where the merged spec was written")
    backup_path: str = Field(default="", description="Backup of the original spec, if any")
    would_apply: int = Field(default=0, ge=0)
    would_skip: int = Field(default=0, ge=0)
    would_review: int = Field(default=0, ge=0)
