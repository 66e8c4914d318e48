"""Spec merge: applies classified changes to the local spec.

Works on a copy of the local document and writes exactly the fields
named by the given records, nothing else. A record that can no longer be
applied (its position vanished, or the remote moved on since detection)
is skipped with a reason instead of failing the merge.
"""

from __future__ import annotations

import json
import logging
import shutil
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml

from specsync.document import (
    MISSING,
    clone,
    delete_value,
    get_value,
    has_path,
    parent_exists,
    resolve_path,
    set_value,
)
from specsync.schemas.changes import ChangeDirection, ChangeKind, ChangeRecord
from specsync.schemas.sync import MergeResult

logger = logging.getLogger(__name__)

SKIP_STALE = "path no longer present"
SKIP_STRUCTURAL = "structural change requires review"
SKIP_CONFLICT = "conflict requires explicit resolution"
SKIP_REMOTE_MOVED = "remote changed since detection"

_YAML_SUFFIXES = frozenset({".yaml", ".yml"})


def is_yaml(path: Path) -> bool:
    return path.suffix.lower() in _YAML_SUFFIXES


def _string_keys(value: Any) -> Any:
    """Stringify mapping keys; YAML reads an unquoted ``200:`` as an int."""
    if isinstance(value, dict):
        return {str(k): _string_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_string_keys(v) for v in value]
    return value


def _skipped(record: ChangeRecord, reason: str) -> ChangeRecord:
    detail = f"{reason} ({record.reason})" if record.reason else reason
    return record.model_copy(update={"reason": detail})


class SpecMerge:
    """Merges change records into a local spec and handles spec files."""

    def merge_specs(
        self,
        local: dict,
        remote: dict | None,
        changes: list[ChangeRecord],
        allow_conflicts: bool = False,
    ) -> MergeResult:
        """Apply *changes* to a copy of *local*.

        Args:
            local: The authored spec. Never modified.
            remote: The spec the records were detected against, or None
                (collection fallback). When given, a record whose position
                holds a different value in remote is skipped as stale.
            changes: Records to apply, in order.
            allow_conflicts: Apply records flagged as conflicts. Only a
                strategy that explicitly resolves conflicts sets this.

        Returns:
            MergeResult with the merged spec and the applied/skipped audit.
        """
        spec = clone(local)
        applied: list[ChangeRecord] = []
        skipped: list[ChangeRecord] = []

        for record in changes:
            reason = self._apply(spec, remote, record, allow_conflicts)
            if reason is None:
                applied.append(record)
            else:
                logger.debug("Skipped %s: %s", record.path, reason)
                skipped.append(_skipped(record, reason))

        logger.info("Merge: %d applied, %d skipped", len(applied), len(skipped))
        return MergeResult(spec=spec, applied=applied, skipped=skipped)

    def _apply(
        self,
        spec: dict,
        remote: dict | None,
        record: ChangeRecord,
        allow_conflicts: bool,
    ) -> str | None:
        """Write one record into *spec*; return a skip reason on failure."""
        if record.direction == ChangeDirection.STRUCTURAL_ONLY:
            return SKIP_STRUCTURAL
        if record.has_conflict and not allow_conflicts:
            return SKIP_CONFLICT

        segments = list(record.segments) or resolve_path(spec, record.path)
        if not segments:
            return SKIP_STALE

        if remote is not None and record.direction == ChangeDirection.BIDIRECTIONAL:
            current = get_value(remote, segments)
            expected = MISSING if record.kind == ChangeKind.DELETED else record.new_value
            if current != expected:
                return SKIP_REMOTE_MOVED

        if record.kind == ChangeKind.DELETED:
            if not has_path(spec, segments):
                return SKIP_STALE
            delete_value(spec, segments)
            return None

        if not parent_exists(spec, segments):
            return SKIP_STALE
        set_value(spec, segments, clone(record.new_value))
        return None

    # ── Spec files ───────────────────────────────────────────────

    @staticmethod
    def read_spec(spec_path: str | Path) -> dict[str, Any]:
        """Load a spec file, YAML for .yaml/.yml and JSON otherwise.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file does not parse to a mapping.
        """
        path = Path(spec_path)
        if not path.exists():
            raise FileNotFoundError(f"Spec not found: {path}")
        text = path.read_text(encoding="utf-8")
        if is_yaml(path):
            try:
                data = yaml.safe_load(text)
            except yaml.YAMLError as e:
                raise ValueError(f"Spec {path} is not valid YAML: {e}") from e
            if not isinstance(data, dict):
                raise ValueError(f"Spec {path} must contain a YAML mapping")
            return _string_keys(data)
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Spec {path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Spec {path} must contain a JSON object")
        return data

    @staticmethod
    def write_spec(spec: dict, output_path: str | Path) -> Path:
        """Write *spec* as UTF-8 YAML or JSON (by suffix), keys in document order."""
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        if is_yaml(path):
            text = yaml.safe_dump(spec, sort_keys=False, allow_unicode=True)
        else:
            text = json.dumps(spec, indent=2, ensure_ascii=False) + "\n"
        path.write_text(text, encoding="utf-8")
        return path

    @staticmethod
    def backup_spec(spec_path: str | Path) -> Path:
        """Copy the spec to a timestamped sibling before it is overwritten."""
        path = Path(spec_path)
        stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%f")
        backup = path.with_name(f"{path.stem}.backup-{stamp}{path.suffix}")
        shutil.copy2(path, backup)
        logger.info("Backed up %s to %s", path, backup)
        return backup


def merge_specs(
    local: dict,
    remote: dict | None,
    changes: list[ChangeRecord],
    allow_conflicts: bool = False,
) -> MergeResult:
    """Convenience wrapper around SpecMerge.merge_specs."""
    return SpecMerge().merge_specs(local, remote, changes, allow_conflicts)
