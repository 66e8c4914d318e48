"""Baseline snapshots for three-way reconciliation.

The baseline is the last spec state both sides agreed on. It lives in a
directory next to the spec (.sync-baselines/ by default), one file per
spec named after the spec's base filename, so several specs in the same
workspace never share a snapshot.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class BaselineManager:
    """Loads and persists baseline snapshots.

    An unreadable snapshot is reported as absent, so reconciliation falls
    back to comparing local against remote only.
    """

    def __init__(self, baseline_dir: str = ".sync-baselines") -> None:
        self._baseline_dir = baseline_dir

    def path_for(self, spec_path: str | Path) -> Path:
        """Return the baseline file location for a spec."""
        spec = Path(spec_path)
        return spec.parent / self._baseline_dir / f"{spec.stem}.baseline.json"

    def exists(self, spec_path: str | Path) -> bool:
        return self.path_for(spec_path).is_file()

    def load(self, spec_path: str | Path) -> dict[str, Any] | None:
        """Load the baseline for a spec.

        Returns:
            The snapshot, or None when it is missing or unreadable.
        """
        path = self.path_for(spec_path)
        if not path.exists():
            return None

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Could not load baseline %s: %s", path, e)
            return None

        if not isinstance(data, dict):
            logger.warning("Ignoring baseline %s: not a JSON object", path)
            return None
        return data

    def save(self, spec_path: str | Path, document: dict) -> Path:
        """Persist *document* as the new baseline.

        Written to a temporary file first and moved into place, so a crash
        never leaves a half-written snapshot.
        """
        path = self.path_for(spec_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.stem}.", suffix=".tmp", dir=str(path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
                f.write("\n")
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info("Saved baseline %s", path)
        return path
