"""Reverse sync engine: orchestrates the full collection-to-spec flow.

Loads the local spec, fetches the collection and its OpenAPI
transformation, detects and classifies changes against the baseline,
merges what the conflict strategy allows, stores collection test scripts
as vendor extensions, and persists the result and the new baseline.
This is a synchronous engine; all I/O happens here, not in the detector
or merge.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console

from specsync.document import (
    MISSING,
    Segment,
    clone,
    delete_value,
    format_path,
    get_value,
    has_path,
    iter_operations,
    parent_exists,
    resolve_path,
    set_value,
)
from specsync.schemas.changes import ChangeKind, ChangeSet
from specsync.schemas.sync import MergeResult, SyncConfig, SyncResult, SyncStatus
from specsync.sync.baseline import BaselineManager
from specsync.sync.detector import ChangeDetector
from specsync.sync.extensions import TestExtensionStore
from specsync.sync.merge import SpecMerge
from specsync.sync.source import CollectionSource, unwrap_collection
from specsync.sync.strategies import get_strategy

logger = logging.getLogger(__name__)

# How many blocked changes to list before summarising the rest
_BLOCKED_PREVIEW = 5


def _adopt_agreed(
    snapshot: dict, segments: list[Segment], merged: dict, remote: dict | None
) -> None:
    """Copy the first container absent from *snapshot* along *segments*.

    Only done when remote holds the same value there, so the baseline
    never takes in a subtree the two sides do not yet agree on.
    """
    for depth in range(1, len(segments) + 1):
        prefix = segments[:depth]
        if has_path(snapshot, prefix):
            continue
        if remote is None or not parent_exists(snapshot, prefix):
            break
        value = get_value(merged, prefix)
        if value is not MISSING and value == get_value(remote, prefix):
            set_value(snapshot, prefix, clone(value))
            return
        break
    logger.debug("Baseline not advanced at %s", format_path(segments))


class ReverseSyncEngine:
    """Runs one reverse sync of a collection back into a local spec."""

    def __init__(
        self,
        source: CollectionSource,
        config: SyncConfig | None = None,
        console: Console | None = None,
    ) -> None:
        self._source = source
        self._config = config or SyncConfig()
        self._console = console or Console()
        self._detector = ChangeDetector(self._config)
        self._merger = SpecMerge()
        self._store = TestExtensionStore(
            self._config.tests_extension_field, self._config.match_policy
        )
        self._baselines = BaselineManager(self._config.baseline_dir)

    def run(
        self,
        spec_path: str | Path,
        collection_uid: str = "",
        dry_run: bool = False,
        output_path: str | Path | None = None,
        no_backup: bool = False,
    ) -> SyncResult:
        """Execute the reverse sync flow.

        Flow:
        1. Load local spec
        2. Fetch collection
        3. Transform collection to OpenAPI (fallback on failure)
        4. Load baseline
        5. Detect and classify changes
        6. Dry run: report and stop
        7. Merge the records selected by the conflict strategy
        8. Store test scripts as vendor extensions
        9. Backup + write spec
        10. Advance the baseline by what was synced (after the spec is on disk)

        Raises:
            FileNotFoundError: If the spec or collection cannot be found.
            ValueError: If the spec or collection does not parse to a mapping.
        """
        spec_path = Path(spec_path)
        console = self._console

        # ── 1. Local spec ────────────────────────────────────────
        local = self._merger.read_spec(spec_path)
        info = local.get("info") if isinstance(local.get("info"), dict) else {}
        console.print(
            f"  [dim]Loaded:[/dim] {info.get('title', '?')} v{info.get('version', '?')}"
        )

        # ── 2. Collection ────────────────────────────────────────
        collection = unwrap_collection(self._source.get_collection(collection_uid))
        coll_info = collection.get("info") if isinstance(collection.get("info"), dict) else {}
        name = coll_info.get("name", collection_uid or "?")
        console.print(f"  [dim]Collection:[/dim] {name}")

        # ── 3. Transformation ────────────────────────────────────
        try:
            remote = self._source.get_collection_as_openapi(collection_uid)
        except Exception as e:
            logger.warning("Collection transformation failed: %s", e)
            console.print(f"  [yellow]Transformation failed:[/yellow] {e}")
            console.print("  [dim]Falling back to description/test extraction only[/dim]")
            remote = None

        # ── 4. Baseline ──────────────────────────────────────────
        baseline = self._baselines.load(spec_path)
        if baseline is None:
            console.print("  [dim]No baseline found; comparing local against remote[/dim]")

        # ── 5. Detect ────────────────────────────────────────────
        if remote is not None:
            changes = self._detector.detect_changes(baseline, local, remote, collection)
        else:
            changes = self._detector.extract_changes_from_collection(collection, local)

        strategy = get_strategy(self._config.conflict_strategy)
        selected = strategy.select(changes)
        from_review = sum(1 for r in selected if r in changes.needs_review)

        # ── 6. Dry run ───────────────────────────────────────────
        if dry_run:
            return SyncResult(
                status=SyncStatus.DRY_RUN,
                changes=changes,
                would_apply=len(selected),
                would_skip=len(changes.blocked),
                would_review=len(changes.needs_review) - from_review,
            )

        if changes.blocked:
            self._print_blocked(changes)

        store_tests = self._config.store_tests_as_extension and bool(changes.tests)
        if not selected and not store_tests:
            console.print("  [dim]No changes to apply[/dim]")
            return SyncResult(status=SyncStatus.NO_CHANGES, changes=changes)

        # ── 7. Merge ─────────────────────────────────────────────
        merged = self._merger.merge_specs(
            local, remote, selected, allow_conflicts=strategy.allows_conflicts
        )

        # ── 8. Tests as extensions ───────────────────────────────
        tests_applied = 0
        if self._config.store_tests_as_extension:
            tests_applied = self._store.apply_tests_as_extensions(merged.spec, collection)
            if tests_applied:
                console.print(
                    f"  [green]Stored test scripts on {tests_applied} operation(s)[/green] "
                    f"as {self._config.tests_extension_field}"
                )

        # ── 9. Backup + write ────────────────────────────────────
        target = Path(output_path) if output_path else spec_path
        backup_path = ""
        if target == spec_path and self._config.backup and not no_backup:
            backup_path = str(self._merger.backup_spec(spec_path))
            console.print(f"  [dim]Backup created:[/dim] {backup_path}")

        self._merger.write_spec(merged.spec, target)
        console.print(f"  [green]Updated:[/green] {target}")

        # ── 10. Baseline ─────────────────────────────────────────
        previous = baseline if baseline is not None else local
        snapshot = self._baseline_snapshot(previous, merged, remote)
        self._baselines.save(spec_path, snapshot)

        return SyncResult(
            status=SyncStatus.SYNCED,
            changes=changes,
            applied=merged.applied,
            skipped=merged.skipped,
            tests_applied=tests_applied,
            output_path=str(target),
            backup_path=backup_path,
        )

    def _baseline_snapshot(
        self, previous: dict, merged: MergeResult, remote: dict | None
    ) -> dict:
        """Previous baseline advanced by exactly what this run synced.

        Only applied records and stored test scripts move the baseline.
        Local-only edits and unapplied conflicts keep their old base value,
        so an author's edit never reads as a remote change on the next run
        and a conflict is reported again until it is resolved.
        """
        snapshot = clone(previous)
        for record in merged.applied:
            segments = list(record.segments) or resolve_path(merged.spec, record.path)
            if not segments:
                continue
            if record.kind == ChangeKind.DELETED:
                if has_path(snapshot, segments):
                    delete_value(snapshot, segments)
            elif parent_exists(snapshot, segments):
                set_value(snapshot, segments, clone(record.new_value))
            else:
                _adopt_agreed(snapshot, segments, merged.spec, remote)

        field = self._config.tests_extension_field
        for template, method, operation in iter_operations(merged.spec):
            target = get_value(snapshot, ["paths", template, method])
            if field in operation and isinstance(target, dict):
                target[field] = clone(operation[field])
        return snapshot

    def _print_blocked(self, changes: ChangeSet) -> None:
        console = self._console
        console.print(
            "  [yellow]Blocked changes[/yellow] (structural changes cannot reverse-sync):"
        )
        for record in changes.blocked[:_BLOCKED_PREVIEW]:
            console.print(f"    - {record.path}: {record.reason}")
        remaining = len(changes.blocked) - _BLOCKED_PREVIEW
        if remaining > 0:
            console.print(f"    [dim]... and {remaining} more[/dim]")
