"""Three-way change detection between baseline, local, and remote specs.

Every field reachable from the union of the three documents' paths is
compared with three equality tests (base=local, base=remote,
local=remote):

    remote changed only        -> candidate
    local changed only         -> no action (the author's edit wins)
    both changed the same way  -> converged, safe to sync
    both changed differently   -> conflict

Candidates and conflicts are then split into descriptive fields
(description, summary, title, examples, externalDocs), which may sync,
and structural fields (everything else), which are always blocked.
"""

from __future__ import annotations

import logging
from typing import Any

from specsync.document import HTTP_METHODS, MISSING, Segment, format_path, get_value
from specsync.schemas.changes import ChangeDirection, ChangeKind, ChangeRecord, ChangeSet
from specsync.schemas.sync import SyncConfig
from specsync.sync.extensions import TestExtensionStore, iter_requests, request_key
from specsync.sync.matcher import PathMatcher

logger = logging.getLogger(__name__)

_DESCRIPTIVE_FIELDS = frozenset({"description", "summary", "title"})
_EXAMPLE_KEYS = frozenset({"example", "examples"})
_DOCS_KEYS = frozenset({"externalDocs"})

# A walked position: (segments, base, local, remote)
_Position = tuple[list[Segment], Any, Any, Any]


def _value(v: Any) -> Any:
    return None if v is MISSING else v


def _paths_of(document: Any) -> dict:
    paths = document.get("paths") if isinstance(document, dict) else None
    return paths if isinstance(paths, dict) else {}


def _item(seq: Any, index: int) -> Any:
    if isinstance(seq, list) and index < len(seq):
        return seq[index]
    return MISSING


def _change_word(local: Any, remote: Any, base: Any = MISSING) -> str:
    if local is MISSING:
        if base is not MISSING and remote is not MISSING:
            return "removed locally, changed remotely"
        return "added"
    if remote is MISSING:
        if base is not MISSING and local != base:
            return "changed locally, removed remotely"
        return "removed"
    return "changed"


def _kind(local: Any, remote: Any) -> ChangeKind:
    if remote is MISSING:
        return ChangeKind.DELETED
    if local is MISSING and isinstance(remote, (dict, list)):
        return ChangeKind.ADDED
    return ChangeKind.MODIFIED


def _description_text(item: dict) -> str:
    """Description of a request item (item level first, then request level)."""
    for source in (item, item.get("request") or {}):
        desc = source.get("description") if isinstance(source, dict) else None
        if isinstance(desc, dict):
            desc = desc.get("content")
        if isinstance(desc, str) and desc.strip():
            return desc
    return ""


def structural_reason(
    segments: list[Segment], local: Any, remote: Any, base: Any = MISSING
) -> str:
    """Name the contract dimension a structural change touches."""
    change = _change_word(local, remote, base)
    rest = list(segments[2:])
    if not rest:
        if change == "added":
            return "new endpoint: path added"
        return f"path {change}"
    if rest[0] in HTTP_METHODS:
        rest = rest[1:]
        if not rest:
            return f"operation {change}"

    first = rest[0]
    if first == "parameters":
        if len(rest) == 1:
            return f"parameters {change}"
        if len(rest) == 2:
            return f"parameter {change}"
        if rest[-1] == "type":
            return "parameter type changed"
        if rest[2] in ("name", "in", "required"):
            return f"parameter {rest[2]} changed"
        return "parameter schema changed" if "schema" in rest else "parameter changed"
    if first == "requestBody":
        return "request body changed" if len(rest) > 1 else f"request body {change}"
    if first == "responses":
        if len(rest) == 2:
            return f"response {change}"
        if "schema" in rest:
            return "response schema type changed" if rest[-1] == "type" else "response schema changed"
        return "response changed"
    return f"{first} {change}"


class ChangeDetector:
    """Classifies divergences between baseline, local, and remote specs.

    Pure over its inputs: documents are read, never modified.
    """

    def __init__(self, config: SyncConfig | None = None) -> None:
        self._config = config or SyncConfig()
        self._ignored = {self._config.tests_extension_field, *self._config.ignored_keys}
        self._matcher = PathMatcher(self._config.match_policy)
        self._store = TestExtensionStore(
            self._config.tests_extension_field, self._config.match_policy
        )

    def detect_changes(
        self,
        baseline: dict | None,
        local: dict,
        remote: dict,
        collection: dict | None = None,
    ) -> ChangeSet:
        """Run the three-way comparison.

        Args:
            baseline: Last agreed spec. None on first run, in which case
                local is used and only local-vs-remote divergence shows.
            local: The authored spec.
            remote: The spec re-derived from the collection.
            collection: Raw collection; when given, its test scripts are
                reported in the tests bucket.

        Returns:
            ChangeSet with every divergence classified.
        """
        if baseline is None:
            baseline = local

        changes = ChangeSet()
        for segments, base, loc, rem in self._walk(baseline, local, remote):
            self._classify(segments, base, loc, rem, changes)

        if collection is not None:
            changes.tests.extend(self._test_changes(local, collection))

        summary = changes.summary()
        logger.info(
            "Detected changes: safe=%d review=%d blocked=%d tests=%d conflicts=%s",
            summary.safe_to_sync, summary.needs_review, summary.blocked,
            summary.tests, summary.has_conflicts,
        )
        return changes

    def extract_changes_from_collection(
        self, collection: dict, local: dict | None = None
    ) -> ChangeSet:
        """Fallback when no remote spec could be derived from the collection.

        Extracts request descriptions (all safe to sync) and test scripts
        straight from the collection, without a three-way comparison.
        With *local*, requests are resolved to their operations and
        descriptions already present locally are not reported.
        """
        changes = ChangeSet(degraded=True)
        spec = local or {}

        for item in iter_requests(collection):
            description = _description_text(item)
            if not description:
                continue
            name = str(item.get("name", ""))
            key = request_key(item)
            template = (
                self._matcher.match_template(spec, key[0], key[1]) if key else None
            )
            if template is not None:
                segments: list[Segment] = ["paths", template, key[1], "description"]
                current = get_value(spec, segments)
                if current == description:
                    continue
            else:
                segments = ["request", name, "description"]
                current = MISSING

            changes.safe_to_sync.append(ChangeRecord(
                path=format_path(segments),
                segments=segments,
                kind=ChangeKind.MODIFIED,
                old_value=_value(current),
                new_value=description,
                direction=ChangeDirection.BIDIRECTIONAL,
                reason="collection fallback: request description",
            ))

        changes.tests.extend(self._test_changes(spec, collection))
        logger.warning(
            "Collection fallback: %d description(s), %d test record(s) extracted",
            len(changes.safe_to_sync), len(changes.tests),
        )
        return changes

    # ── Walk ─────────────────────────────────────────────────────

    def _walk(self, baseline: dict, local: dict, remote: dict):
        """Yield leaf positions under paths, depth-first in document order."""
        stack: list[_Position] = [
            (["paths"], _paths_of(baseline), _paths_of(local), _paths_of(remote))
        ]
        while stack:
            position = stack.pop()
            children = self._children(*position)
            if children is None:
                yield position
            else:
                stack.extend(reversed(children))

    def _children(
        self, segments: list[Segment], base: Any, local: Any, remote: Any
    ) -> list[_Position] | None:
        """Child positions, or None when this position is compared whole."""
        if len(segments) >= self._config.max_depth:
            return None

        if isinstance(local, dict) and isinstance(remote, dict):
            base_map = base if isinstance(base, dict) else {}
            keys = list(local)
            keys += [k for k in remote if k not in local]
            keys += [k for k in base_map if k not in local and k not in remote]
            return [
                (
                    [*segments, k],
                    base_map.get(k, MISSING),
                    local.get(k, MISSING),
                    remote.get(k, MISSING),
                )
                for k in keys
                if k not in self._ignored
            ]

        if (
            isinstance(local, list)
            and isinstance(remote, list)
            and any(isinstance(x, (dict, list)) for x in [*local, *remote])
        ):
            size = max(len(local), len(remote), len(base) if isinstance(base, list) else 0)
            return [
                ([*segments, i], _item(base, i), _item(local, i), _item(remote, i))
                for i in range(size)
            ]

        return None

    # ── Classification ───────────────────────────────────────────

    def _classify(
        self,
        segments: list[Segment],
        base: Any,
        local: Any,
        remote: Any,
        changes: ChangeSet,
    ) -> None:
        base_local = base == local
        base_remote = base == remote

        if base_remote:
            # Unchanged, or changed locally only: the author's edit stands.
            return

        record = ChangeRecord(
            path=format_path(segments),
            segments=segments,
            kind=_kind(local, remote),
            old_value=_value(local),
            new_value=_value(remote),
            base_value=_value(base),
            direction=ChangeDirection.BIDIRECTIONAL,
        )

        if not base_local and local == remote:
            record.reason = "converged: both sides made the same change"
            changes.safe_to_sync.append(record)
            return

        conflict = not base_local
        if not self._is_descriptive(segments):
            record.direction = ChangeDirection.STRUCTURAL_ONLY
            record.has_conflict = conflict
            reason = structural_reason(segments, local, remote, base)
            if conflict and not reason.endswith("remotely"):
                reason = f"{reason} on both sides"
            record.reason = reason
            changes.blocked.append(record)
            return

        field = next((s for s in reversed(segments) if isinstance(s, str)), "field")
        if conflict:
            record.has_conflict = True
            record.reason = f"{field} changed on both sides"
            changes.needs_review.append(record)
        elif not self._auto_merge(segments):
            record.reason = f"auto-merge disabled for {field}"
            changes.needs_review.append(record)
        else:
            record.reason = f"{field} updated in collection"
            changes.safe_to_sync.append(record)

    def _is_descriptive(self, segments: list[Segment]) -> bool:
        keys = segments[2:]
        if not keys:
            return False
        for i, key in enumerate(keys):
            # A schema property that happens to be called "description"
            if i > 0 and keys[i - 1] == "properties":
                continue
            if key in _EXAMPLE_KEYS or key in _DOCS_KEYS:
                return True
        last = keys[-1]
        if len(keys) > 1 and keys[-2] == "properties":
            return False
        return isinstance(last, str) and last in _DESCRIPTIVE_FIELDS

    def _auto_merge(self, segments: list[Segment]) -> bool:
        if any(s in _EXAMPLE_KEYS for s in segments[2:]):
            return self._config.auto_merge_examples
        return self._config.auto_merge_descriptions

    # ── Tests ────────────────────────────────────────────────────

    def _test_changes(self, local: dict, collection: dict) -> list[ChangeRecord]:
        """Tests bucket records for scripts that differ from the stored extension."""
        field = self._config.tests_extension_field
        records: list[ChangeRecord] = []
        for (url_path, method), scripts in self._store.extract_tests(collection).items():
            new_value = [s.model_dump() for s in scripts]
            template = self._matcher.match_template(local, url_path, method)
            if template is not None:
                segments: list[Segment] = ["paths", template, method, field]
            else:
                segments = ["request", scripts[0].name, "tests"]

            current = get_value(local, segments)
            if current == new_value:
                continue
            records.append(ChangeRecord(
                path=format_path(segments),
                segments=segments,
                kind=ChangeKind.ADDED if current is MISSING else ChangeKind.MODIFIED,
                old_value=_value(current),
                new_value=new_value,
                direction=ChangeDirection.COLLECTION_ONLY,
                reason="test scripts from collection",
            ))
        return records


def detect_changes(
    baseline: dict | None,
    local: dict,
    remote: dict,
    collection: dict | None = None,
    config: SyncConfig | None = None,
) -> ChangeSet:
    """Convenience wrapper around ChangeDetector.detect_changes."""
    return ChangeDetector(config).detect_changes(baseline, local, remote, collection)
