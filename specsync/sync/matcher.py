"""Collection URL to OpenAPI path template matching.

Maps the concrete path of a collection request (/users/123) to the spec
template that documents it (/users/{id}). Resolution cascade:
1. Exact template key
2. Template match in document order (first-match), or the template with
   the fewest parameters (most-specific)
3. Retry both with each server base path stripped from the request path
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urlsplit

from specsync.document import HTTP_METHODS
from specsync.schemas.sync import MatchPolicy

logger = logging.getLogger(__name__)

# Leading Postman variable standing in for scheme + host, e.g. {{baseUrl}}
_LEADING_VARIABLE = re.compile(r"^\{\{[^}]*\}\}")


def _is_param(segment: str) -> bool:
    return len(segment) > 2 and segment.startswith("{") and segment.endswith("}")


def paths_match(template: str, concrete: str) -> bool:
    """Check whether a concrete request path matches a path template.

    Both are split on "/" and must have the same number of segments. A
    "{name}" template segment matches any single segment; every other
    segment must be equal.
    """
    template_parts = template.split("/")
    concrete_parts = concrete.split("/")
    if len(template_parts) != len(concrete_parts):
        return False
    return all(
        _is_param(t) or t == c for t, c in zip(template_parts, concrete_parts)
    )


def url_to_path(url) -> str | None:
    """Extract the request path from a Postman URL (string or object).

    Returns None when no path can be recovered.
    """
    if isinstance(url, dict):
        parts = url.get("path")
        if isinstance(parts, list):
            return "/" + "/".join(str(p) for p in parts)
        if isinstance(parts, str):
            return parts if parts.startswith("/") else "/" + parts
        url = url.get("raw")

    if not isinstance(url, str) or not url.strip():
        return None

    raw = _LEADING_VARIABLE.sub("", url.strip())
    if "://" in raw:
        path = urlsplit(raw).path
    else:
        path = raw.split("?", 1)[0].split("#", 1)[0]
    if not path.startswith("/"):
        path = "/" + path
    return path


def _server_prefixes(spec: dict) -> list[str]:
    """Path components of the spec's server URLs, longest first."""
    prefixes: list[str] = []
    for server in spec.get("servers") or []:
        if not isinstance(server, dict) or not isinstance(server.get("url"), str):
            continue
        path = urlsplit(server["url"]).path.rstrip("/")
        if path and path not in prefixes:
            prefixes.append(path)
    return sorted(prefixes, key=len, reverse=True)


class PathMatcher:
    """Locates the spec operation a collection request documents.

    Overlapping templates (/users/{id} vs /users/me) are resolved by the
    configured policy after an exact key lookup. With first-match the
    order in which templates are declared decides.
    """

    def __init__(self, policy: MatchPolicy = MatchPolicy.FIRST_MATCH) -> None:
        self._policy = policy

    def match_template(self, spec: dict, url_path: str, method: str) -> str | None:
        """Return the template whose operation documents *method url_path*."""
        paths = spec.get("paths") if isinstance(spec, dict) else None
        if not isinstance(paths, dict):
            return None
        method = method.lower()
        if method not in HTTP_METHODS:
            return None

        candidates = [url_path]
        for prefix in _server_prefixes(spec):
            if url_path.startswith(prefix + "/"):
                candidates.append(url_path[len(prefix):])

        for candidate in candidates:
            template = self._match_one(paths, candidate, method)
            if template is not None:
                return template
        return None

    def find_operation(self, spec: dict, url_path: str, method: str) -> dict | None:
        """Return the operation mapping for *method url_path*, or None."""
        template = self.match_template(spec, url_path, method)
        if template is None:
            return None
        return spec["paths"][template][method.lower()]

    def _match_one(self, paths: dict, url_path: str, method: str) -> str | None:
        exact = paths.get(url_path)
        if isinstance(exact, dict) and isinstance(exact.get(method), dict):
            return url_path

        matches = [
            template
            for template, item in paths.items()
            if isinstance(item, dict)
            and isinstance(item.get(method), dict)
            and paths_match(template, url_path)
        ]
        if not matches:
            return None
        if len(matches) > 1:
            logger.debug(
                "Ambiguous templates for %s %s: %s (policy=%s)",
                method, url_path, matches, self._policy.value,
            )
        if self._policy == MatchPolicy.MOST_SPECIFIC:
            return min(
                matches,
                key=lambda t: sum(1 for part in t.split("/") if _is_param(part)),
            )
        return matches[0]
