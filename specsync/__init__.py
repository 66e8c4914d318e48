"""specsync: keep an OpenAPI spec and its request collection in step."""

__version__ = "0.3.0"

from .sync import ReverseSyncEngine, detect_changes, merge_specs

__all__ = ["ReverseSyncEngine", "detect_changes", "merge_specs"]
