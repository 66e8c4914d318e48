"""specsync schema definitions.

All Pydantic v2 models used by the detector, merge, and sync engine.
"""

from specsync.schemas.changes import (
    ChangeDirection,
    ChangeKind,
    ChangeRecord,
    ChangeSet,
    ChangeSummary,
)
from specsync.schemas.sync import (
    DEFAULT_TESTS_FIELD,
    ConflictStrategyName,
    MatchPolicy,
    MergeResult,
    SyncConfig,
    SyncResult,
    SyncStatus,
    TestScript,
)

__all__ = [
    "DEFAULT_TESTS_FIELD",
    "ChangeDirection",
    "ChangeKind",
    "ChangeRecord",
    "ChangeSet",
    "ChangeSummary",
    "ConflictStrategyName",
    "MatchPolicy",
    "MergeResult",
    "SyncConfig",
    "SyncResult",
    "SyncStatus",
    "TestScript",
]
