"""Document model helpers for OpenAPI specs held as plain dict trees.

Positions in a document are addressed by segment lists (mapping keys and
list indices). The dotted form ("paths./users/{id}.get.description") is
used for display and for locating records by hand; because path templates
may themselves contain dots, dotted paths are resolved greedily against
the keys actually present in the document.

All walks use an explicit stack so adversarially deep input cannot
exhaust the interpreter's recursion limit.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator
from typing import Any

Segment = str | int


class _Missing:
    """Marker for a position that does not exist in a document."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __deepcopy__(self, memo: dict) -> _Missing:
        return self


MISSING: Any = _Missing()

HTTP_METHODS = frozenset(
    {"get", "put", "post", "delete", "options", "head", "patch", "trace"}
)


def format_path(segments: list[Segment]) -> str:
    """Render a segment list as a dotted path."""
    return ".".join(str(s) for s in segments)


def clone(document: Any) -> Any:
    """Deep copy a document so callers' instances are never mutated."""
    return copy.deepcopy(document)


def get_value(document: Any, segments: list[Segment], default: Any = MISSING) -> Any:
    """Return the value at *segments*, or *default* when any step is absent."""
    node = document
    for seg in segments:
        if isinstance(node, dict):
            if seg not in node:
                return default
            node = node[seg]
        elif isinstance(node, list) and isinstance(seg, int):
            if seg < 0 or seg >= len(node):
                return default
            node = node[seg]
        else:
            return default
    return node


def has_path(document: Any, segments: list[Segment]) -> bool:
    return get_value(document, segments) is not MISSING


def parent_exists(document: Any, segments: list[Segment]) -> bool:
    """Whether the container that would hold *segments* exists."""
    if not segments:
        return False
    parent = get_value(document, segments[:-1])
    if isinstance(parent, dict):
        return True
    if isinstance(parent, list) and isinstance(segments[-1], int):
        return 0 <= segments[-1] <= len(parent)
    return False


def set_value(document: Any, segments: list[Segment], value: Any) -> None:
    """Write *value* at *segments*.

    The parent container must already exist; a list index equal to the
    list length appends.

    Raises:
        KeyError: If the parent container is absent.
    """
    if not parent_exists(document, segments):
        raise KeyError(format_path(segments))
    parent = get_value(document, segments[:-1])
    last = segments[-1]
    if isinstance(parent, list):
        if last == len(parent):
            parent.append(value)
        else:
            parent[last] = value
    else:
        parent[last] = value


def delete_value(document: Any, segments: list[Segment]) -> None:
    """Remove the value at *segments*.

    Raises:
        KeyError: If nothing is stored there.
    """
    if not has_path(document, segments):
        raise KeyError(format_path(segments))
    parent = get_value(document, segments[:-1])
    del parent[segments[-1]]


def resolve_path(document: Any, dotted: str) -> list[Segment] | None:
    """Turn a dotted path into segments using the document's own keys.

    At each mapping the longest key that matches the remaining text wins,
    so "paths./v1.0/users.get" resolves even though the template contains
    a dot. Returns None when the path does not exist.
    """
    segments: list[Segment] = []
    node = document
    rest = dotted
    while rest:
        if isinstance(node, dict):
            best = None
            for key in node:
                k = str(key)
                if (rest == k or rest.startswith(k + ".")) and (
                    best is None or len(k) > len(str(best))
                ):
                    best = key
            if best is None:
                return None
            segments.append(best)
            node = node[best]
            rest = rest[len(str(best)) + 1:]
        elif isinstance(node, list):
            head, _, rest = rest.partition(".")
            if not head.isdigit() or int(head) >= len(node):
                return None
            segments.append(int(head))
            node = node[int(head)]
        else:
            return None
    return segments


def iter_leaves(document: Any, max_depth: int = 64) -> Iterator[tuple[list[Segment], Any]]:
    """Yield (segments, value) for every leaf, depth-first in document order.

    Empty containers and anything deeper than *max_depth* are yielded as
    leaves.
    """
    stack: list[tuple[list[Segment], Any]] = [([], document)]
    while stack:
        segments, node = stack.pop()
        if isinstance(node, dict) and node and len(segments) < max_depth:
            children = list(node.items())
        elif isinstance(node, list) and node and len(segments) < max_depth:
            children = list(enumerate(node))
        else:
            yield segments, node
            continue
        for key, child in reversed(children):
            stack.append(([*segments, key], child))


def iter_operations(spec: dict) -> Iterator[tuple[str, str, dict]]:
    """Yield (template, method, operation) for every operation in *spec*."""
    paths = spec.get("paths") if isinstance(spec, dict) else None
    if not isinstance(paths, dict):
        return
    for template, item in paths.items():
        if not isinstance(item, dict):
            continue
        for method, operation in item.items():
            if method in HTTP_METHODS and isinstance(operation, dict):
                yield template, method, operation
