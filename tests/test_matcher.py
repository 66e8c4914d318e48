"""Tests for specsync.sync.matcher: URL to path template matching."""

from __future__ import annotations

import pytest

from specsync.schemas.sync import MatchPolicy
from specsync.sync.matcher import PathMatcher, paths_match, url_to_path


def _make_spec(*templates: str, method: str = "get", servers=None) -> dict:
    spec: dict = {"paths": {t: {method: {"summary": t}} for t in templates}}
    if servers:
        spec["servers"] = [{"url": u} for u in servers]
    return spec


class TestPathsMatch:
    def test_parameter_segment(self):
        assert paths_match("/users/{id}", "/users/123")

    def test_literal_mismatch(self):
        assert not paths_match("/users/{id}", "/accounts/123")

    def test_segment_count_must_match(self):
        assert not paths_match("/users/{id}", "/users/123/posts")
        assert not paths_match("/users/{id}/posts", "/users/123")

    def test_exact_literal(self):
        assert paths_match("/health", "/health")

    def test_multiple_parameters(self):
        assert paths_match("/users/{uid}/posts/{pid}", "/users/1/posts/2")

    def test_empty_braces_are_literal(self):
        assert not paths_match("/a/{}", "/a/x")
        assert paths_match("/a/{}", "/a/{}")

    def test_trailing_slash_is_a_segment(self):
        assert not paths_match("/users", "/users/")


class TestUrlToPath:
    def test_path_list(self):
        assert url_to_path({"raw": "{{baseUrl}}/users/1", "path": ["users", "1"]}) == "/users/1"

    def test_path_string(self):
        assert url_to_path({"path": "users/1"}) == "/users/1"

    def test_raw_with_variable_host(self):
        assert url_to_path("{{baseUrl}}/users/1?expand=true") == "/users/1"

    def test_raw_absolute_url(self):
        assert url_to_path("https://api.example.com/v1/users#top") == "/v1/users"

    def test_raw_from_object(self):
        assert url_to_path({"raw": "{{host}}/items"}) == "/items"

    def test_unusable(self):
        assert url_to_path(None) is None
        assert url_to_path("   ") is None
        assert url_to_path({"raw": 5}) is None


class TestPathMatcher:
    def test_exact_template_key_wins(self):
        spec = _make_spec("/users/{id}", "/users/me")
        assert PathMatcher().match_template(spec, "/users/me", "get") == "/users/me"

    def test_first_match_uses_document_order(self):
        spec = _make_spec("/users/{id}/{tab}", "/users/me/{tab}")
        matcher = PathMatcher(MatchPolicy.FIRST_MATCH)
        assert matcher.match_template(spec, "/users/me/posts", "get") == "/users/{id}/{tab}"

    def test_most_specific_prefers_fewer_parameters(self):
        spec = _make_spec("/users/{id}/{tab}", "/users/me/{tab}")
        matcher = PathMatcher(MatchPolicy.MOST_SPECIFIC)
        assert matcher.match_template(spec, "/users/me/posts", "get") == "/users/me/{tab}"

    def test_method_must_exist(self):
        spec = _make_spec("/users/{id}", method="get")
        assert PathMatcher().match_template(spec, "/users/1", "post") is None

    def test_method_case_insensitive(self):
        spec = _make_spec("/users/{id}")
        assert PathMatcher().match_template(spec, "/users/1", "GET") == "/users/{id}"

    def test_unknown_method(self):
        spec = _make_spec("/users/{id}")
        assert PathMatcher().match_template(spec, "/users/1", "fetch") is None

    def test_server_prefix_stripped(self):
        spec = _make_spec("/users/{id}", servers=["https://api.example.com/v1"])
        assert PathMatcher().match_template(spec, "/v1/users/7", "get") == "/users/{id}"

    def test_no_paths(self):
        assert PathMatcher().match_template({}, "/users/1", "get") is None

    def test_find_operation(self):
        spec = _make_spec("/users/{id}")
        op = PathMatcher().find_operation(spec, "/users/1", "get")
        assert op == {"summary": "/users/{id}"}

    @pytest.mark.parametrize("policy", list(MatchPolicy))
    def test_no_match(self, policy):
        spec = _make_spec("/users/{id}")
        assert PathMatcher(policy).find_operation(spec, "/orders/1", "get") is None
