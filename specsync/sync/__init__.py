"""Reverse sync: three-way change detection and safe merging.

Reconciles a baseline, the authored spec, and the spec derived from a
request collection, merging only descriptive changes and carrying test
scripts through a vendor extension.
"""

from specsync.sync.baseline import BaselineManager
from specsync.sync.detector import ChangeDetector, detect_changes
from specsync.sync.engine import ReverseSyncEngine
from specsync.sync.extensions import TestExtensionStore
from specsync.sync.matcher import PathMatcher, paths_match, url_to_path
from specsync.sync.merge import SpecMerge, merge_specs
from specsync.sync.source import CollectionSource, FileCollectionSource
from specsync.sync.strategies import (
    CollectionWinsStrategy,
    ConflictStrategy,
    SpecWinsStrategy,
    get_strategy,
)

__all__ = [
    "BaselineManager",
    "ChangeDetector",
    "CollectionSource",
    "CollectionWinsStrategy",
    "ConflictStrategy",
    "FileCollectionSource",
    "PathMatcher",
    "ReverseSyncEngine",
    "SpecMerge",
    "SpecWinsStrategy",
    "TestExtensionStore",
    "detect_changes",
    "get_strategy",
    "merge_specs",
    "paths_match",
    "url_to_path",
]
