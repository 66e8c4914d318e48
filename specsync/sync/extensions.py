"""Test script extraction and vendor-extension storage.

Collection test scripts have no place in the OpenAPI schema, so they are
carried on each operation under a reserved vendor extension
(x-postman-tests by default). That field survives collection regeneration
and is copied back verbatim, replacing whatever was stored before.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from specsync.schemas.sync import DEFAULT_TESTS_FIELD, MatchPolicy, TestScript
from specsync.sync.matcher import PathMatcher, url_to_path

logger = logging.getLogger(__name__)


def iter_requests(collection: dict) -> Iterator[dict]:
    """Yield every request item of a collection, depth-first.

    Folders (items with an "item" list) are expanded in place; items that
    are neither folders nor requests are skipped.
    """
    root = collection.get("item") if isinstance(collection, dict) else None
    if not isinstance(root, list):
        return
    stack: list[Any] = list(reversed(root))
    while stack:
        item = stack.pop()
        if not isinstance(item, dict):
            logger.debug("Skipping malformed collection item: %r", item)
            continue
        children = item.get("item")
        if isinstance(children, list):
            stack.extend(reversed(children))
        elif isinstance(item.get("request"), dict):
            yield item
        else:
            logger.debug("Skipping item without request: %s", item.get("name", "?"))


def request_key(item: dict) -> tuple[str, str] | None:
    """Return (url path, lowercase method) for a request item, or None."""
    request = item["request"]
    path = url_to_path(request.get("url"))
    if path is None:
        return None
    method = request.get("method") or "get"
    if not isinstance(method, str):
        return None
    return path, method.lower()


def collect_scripts(item: dict) -> list[TestScript]:
    """Collect the test-listener scripts attached to a request item."""
    scripts: list[TestScript] = []
    for event in item.get("event") or []:
        if not isinstance(event, dict) or event.get("listen") != "test":
            continue
        script = event.get("script") or {}
        if not isinstance(script, dict):
            continue
        exec_lines = script.get("exec") or []
        if isinstance(exec_lines, str):
            exec_lines = exec_lines.splitlines()
        scripts.append(TestScript(
            name=str(item.get("name", "")),
            script=[str(line) for line in exec_lines],
            type=str(script.get("type") or "text/javascript"),
        ))
    return scripts


class TestExtensionStore:
    """Extracts collection test scripts and writes them onto operations."""

    __test__ = False  # not a pytest class

    def __init__(
        self,
        field: str = DEFAULT_TESTS_FIELD,
        policy: MatchPolicy = MatchPolicy.FIRST_MATCH,
    ) -> None:
        self.field = field
        self._matcher = PathMatcher(policy)

    def extract_tests(self, collection: dict) -> dict[tuple[str, str], list[TestScript]]:
        """Group test scripts by (url path, method).

        A later request for the same key replaces an earlier one.
        """
        tests: dict[tuple[str, str], list[TestScript]] = {}
        for item in iter_requests(collection):
            scripts = collect_scripts(item)
            if not scripts:
                continue
            key = request_key(item)
            if key is None:
                logger.debug("Skipping tests for %s: no usable URL", item.get("name", "?"))
                continue
            tests[key] = scripts
        return tests

    def apply_tests_as_extensions(self, spec: dict, collection: dict) -> int:
        """Store collection test scripts on matching operations of *spec*.

        Mutates *spec* in place. Requests with no matching operation are
        skipped.

        Returns:
            Number of distinct operations updated.
        """
        updated: set[tuple[str, str]] = set()
        for (url_path, method), scripts in self.extract_tests(collection).items():
            template = self._matcher.match_template(spec, url_path, method)
            if template is None:
                logger.debug("No operation for %s %s; tests not stored", method, url_path)
                continue
            operation = spec["paths"][template][method]
            operation[self.field] = [s.model_dump() for s in scripts]
            updated.add((template, method))

        logger.info("Stored test scripts on %d operation(s)", len(updated))
        return len(updated)
