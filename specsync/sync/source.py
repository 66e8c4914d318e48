"""Collection sources for reverse sync.

The engine only needs two things from the outside world: the raw
collection, and the collection transformed back into an OpenAPI spec.
Network clients implement CollectionSource; FileCollectionSource reads
both from exported files (the derived spec may be JSON or YAML).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol

from specsync.sync.merge import SpecMerge


class CollectionSource(Protocol):
    """Provides a collection and its OpenAPI transformation."""

    def get_collection(self, collection_uid: str) -> dict[str, Any]:
        """Return the collection, optionally wrapped as {"collection": {...}}."""
        ...

    def get_collection_as_openapi(self, collection_uid: str) -> dict[str, Any]:
        """Return the collection transformed into an OpenAPI spec.

        May raise any exception when the transformation is unavailable.
        """
        ...


def unwrap_collection(payload: dict[str, Any]) -> dict[str, Any]:
    """Strip the {"collection": {...}} envelope used by API responses."""
    inner = payload.get("collection") if isinstance(payload, dict) else None
    return inner if isinstance(inner, dict) else payload


def _read_json(path: Path, what: str) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"{what} not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"{what} {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"{what} {path} must contain a JSON object")
    return data


class FileCollectionSource:
    """Reads an exported collection and, optionally, its derived spec.

    The collection uid is ignored; the files stand for one collection.
    """

    def __init__(self, collection_path: str | Path, remote_path: str | Path | None = None) -> None:
        self._collection_path = Path(collection_path)
        self._remote_path = Path(remote_path) if remote_path else None

    def get_collection(self, collection_uid: str) -> dict[str, Any]:
        return _read_json(self._collection_path, "Collection")

    def get_collection_as_openapi(self, collection_uid: str) -> dict[str, Any]:
        if self._remote_path is None:
            raise RuntimeError("No transformed spec available for this collection")
        return SpecMerge.read_spec(self._remote_path)
