"""Conflict strategies for reverse sync.

A strategy decides which classified records are handed to the merge.
Classification itself never depends on the strategy, so new strategies
only need a class here and an entry in the dispatcher.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from specsync.schemas.changes import ChangeDirection, ChangeRecord, ChangeSet
from specsync.schemas.sync import ConflictStrategyName


class ConflictStrategy(ABC):
    """Selects the records a merge should attempt."""

    name: ConflictStrategyName
    # Whether the merge must accept conflicted records from select()
    allows_conflicts: bool = False

    @abstractmethod
    def select(self, changes: ChangeSet) -> list[ChangeRecord]:
        """Return the records to merge, in detection order."""


class SpecWinsStrategy(ConflictStrategy):
    """Local value retained on conflict; the conflict stays reported."""

    name = ConflictStrategyName.SPEC_WINS

    def select(self, changes: ChangeSet) -> list[ChangeRecord]:
        return list(changes.safe_to_sync)


class CollectionWinsStrategy(ConflictStrategy):
    """Remote value applied for conflicted descriptive fields.

    Structural conflicts never reach needs_review, so they stay blocked.
    """

    name = ConflictStrategyName.COLLECTION_WINS
    allows_conflicts = True

    def select(self, changes: ChangeSet) -> list[ChangeRecord]:
        conflicted = [
            r for r in changes.needs_review
            if r.has_conflict and r.direction == ChangeDirection.BIDIRECTIONAL
        ]
        return [*changes.safe_to_sync, *conflicted]


_STRATEGIES: dict[ConflictStrategyName, type[ConflictStrategy]] = {
    ConflictStrategyName.SPEC_WINS: SpecWinsStrategy,
    ConflictStrategyName.COLLECTION_WINS: CollectionWinsStrategy,
}


def get_strategy(name: ConflictStrategyName | str) -> ConflictStrategy:
    """Instantiate the strategy registered under *name*.

    Raises:
        ValueError: If no strategy has that name.
    """
    try:
        key = ConflictStrategyName(name)
    except ValueError:
        valid = ", ".join(s.value for s in ConflictStrategyName)
        raise ValueError(f"Unknown conflict strategy '{name}' (expected one of: {valid})") from None
    return _STRATEGIES[key]()
