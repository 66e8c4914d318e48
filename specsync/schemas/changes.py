"""Change classification schemas for three-way reconciliation.

Defines the ChangeRecord produced for every detected divergence, the
direction and kind enums used to classify it, and the ChangeSet that
groups records into the safe, review, blocked, and test buckets.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Serialise as camelCase (oldValue, hasConflict, safeToSync) for callers
# that consume the JSON form, while keeping snake_case attributes in Python.
_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChangeKind(StrEnum):
    """What happened to a field between local and remote."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


class ChangeDirection(StrEnum):
    """Which way a change may safely flow.

    Bidirectional changes are descriptive metadata. Collection-only
    changes only exist on the collection side (test scripts).
    Structural-only changes alter contract shape and are never
    auto-applied.
    """

    BIDIRECTIONAL = "bidirectional"
    COLLECTION_ONLY = "collection-only"
    STRUCTURAL_ONLY = "structural-only"


class ChangeRecord(BaseModel):
    """A single classified divergence at one position in the document tree."""

    model_config = _CAMEL

    path: str = Field(description="Dotted locator, e.g. 'paths./test.get.description'")
    segments: list[str | int] = Field(
        default_factory=list,
        description="Exact key/index sequence the dotted path stands for",
    )
    kind: ChangeKind = Field(description="Added, modified, or deleted")
    old_value: Any = Field(default=None, description="Current local value")
    new_value: Any = Field(default=None, description="Incoming remote value")
    base_value: Any = Field(default=None, description="Value in the baseline snapshot")
    direction: ChangeDirection = Field(description="Safe flow direction")
    reason: str = Field(default="", description="Why the change landed in its bucket")
    has_conflict: bool = Field(
        default=False, description="Both sides changed the field differently"
    )


class ChangeSummary(BaseModel):
    """Bucket counts exposed to callers for reporting."""

    model_config = _CAMEL

    safe_to_sync: int = Field(default=0, ge=0)
    needs_review: int = Field(default=0, ge=0)
    blocked: int = Field(default=0, ge=0)
    tests: int = Field(default=0, ge=0)
    has_conflicts: bool = Field(default=False)
    degraded: bool = Field(
        default=False, description="Produced by collection fallback extraction"
    )


class ChangeSet(BaseModel):
    """Classified result of a three-way comparison.

    The four buckets are disjoint and keep detection order.
    """

    model_config = _CAMEL

    safe_to_sync: list[ChangeRecord] = Field(
        default_factory=list, description="Descriptive changes safe to merge"
    )
    needs_review: list[ChangeRecord] = Field(
        default_factory=list, description="Descriptive changes requiring a decision"
    )
    blocked: list[ChangeRecord] = Field(
        default_factory=list, description="Structural changes, never auto-applied"
    )
    tests: list[ChangeRecord] = Field(
        default_factory=list, description="Collection test scripts"
    )
    degraded: bool = Field(
        default=False,
        description="True when extracted from the raw collection without a remote spec",
    )

    @property
    def has_conflicts(self) -> bool:
        return any(r.has_conflict for r in self.all_records())

    @property
    def is_empty(self) -> bool:
        return not (self.safe_to_sync or self.needs_review or self.blocked or self.tests)

    def all_records(self) -> list[ChangeRecord]:
        return [*self.safe_to_sync, *self.needs_review, *self.blocked, *self.tests]

    def summary(self) -> ChangeSummary:
        """Count each bucket and flag conflicts."""
        return ChangeSummary(
            safe_to_sync=len(self.safe_to_sync),
            needs_review=len(self.needs_review),
            blocked=len(self.blocked),
            tests=len(self.tests),
            has_conflicts=self.has_conflicts,
            degraded=self.degraded,
        )
