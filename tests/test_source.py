"""Tests for file-backed collection sources."""

from __future__ import annotations

import json

import pytest

from specsync.sync.source import FileCollectionSource, unwrap_collection


class TestUnwrapCollection:
    def test_envelope(self):
        assert unwrap_collection({"collection": {"item": []}}) == {"item": []}

    def test_bare(self):
        assert unwrap_collection({"item": []}) == {"item": []}

    def test_non_dict_envelope_kept(self):
        payload = {"collection": "uid-123", "item": []}
        assert unwrap_collection(payload) is payload


class TestFileCollectionSource:
    def test_reads_collection(self, tmp_path):
        path = tmp_path / "c.json"
        path.write_text(json.dumps({"info": {"name": "C"}, "item": []}))
        assert FileCollectionSource(path).get_collection("ignored")["info"]["name"] == "C"

    def test_reads_remote(self, tmp_path):
        coll = tmp_path / "c.json"
        coll.write_text("{}")
        remote = tmp_path / "r.json"
        remote.write_text(json.dumps({"paths": {}}))
        assert FileCollectionSource(coll, remote).get_collection_as_openapi("") == {"paths": {}}

    def test_reads_yaml_remote(self, tmp_path):
        coll = tmp_path / "c.json"
        coll.write_text("{}")
        remote = tmp_path / "r.yaml"
        remote.write_text("paths:\n  /test: {}\n")
        assert FileCollectionSource(coll, remote).get_collection_as_openapi("") == {
            "paths": {"/test": {}}
        }

    def test_no_remote_raises(self, tmp_path):
        with pytest.raises(RuntimeError):
            FileCollectionSource(tmp_path / "c.json").get_collection_as_openapi("")

    def test_missing_collection(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Collection not found"):
            FileCollectionSource(tmp_path / "c.json").get_collection("")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "c.json"
        path.write_text("nope")
        with pytest.raises(ValueError, match="not valid JSON"):
            FileCollectionSource(path).get_collection("")

    def test_non_object(self, tmp_path):
        path = tmp_path / "c.json"
        path.write_text("[]")
        with pytest.raises(ValueError, match="JSON object"):
            FileCollectionSource(path).get_collection("")
