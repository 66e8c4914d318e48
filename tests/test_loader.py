"""Tests for specsync.loader: TOML sync config loading."""

from pathlib import Path

import pytest

from specsync.loader import (
    PROJECT_CONFIG,
    default_config_path,
    load_sync_config,
    resolve_config_path,
)
from specsync.schemas.sync import ConflictStrategyName, MatchPolicy, SyncConfig

# Path to the real config file shipped with the package
_CONFIG_DIR = Path(__file__).parent.parent / "specsync" / "config"


class TestLoadSyncConfig:
    def test_loads_shipped_defaults(self):
        config = load_sync_config(_CONFIG_DIR / "defaults.toml")
        assert config == SyncConfig()

    def test_default_path_is_shipped_file(self):
        assert default_config_path() == _CONFIG_DIR / "defaults.toml"
        assert load_sync_config() == SyncConfig()

    def test_overrides(self, tmp_path):
        path = tmp_path / "sync.toml"
        path.write_text(
            '[sync]\n'
            'conflict_strategy = "collection-wins"\n'
            'match_policy = "most-specific"\n'
            'ignored_keys = ["x-internal"]\n'
        )
        config = load_sync_config(path)
        assert config.conflict_strategy == ConflictStrategyName.COLLECTION_WINS
        assert config.match_policy == MatchPolicy.MOST_SPECIFIC
        assert config.ignored_keys == ["x-internal"]
        assert config.backup

    def test_missing_section_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.toml"
        path.write_text("# nothing here\n")
        assert load_sync_config(path) == SyncConfig()

    def test_missing_file_raises(self):
        with pytest.raises(FileNotFoundError):
            load_sync_config(Path("/nonexistent/sync.toml"))

    def test_invalid_toml_raises(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[sync\n")
        with pytest.raises(ValueError, match="Invalid TOML"):
            load_sync_config(path)

    def test_invalid_value_raises(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text('[sync]\nconflict_strategy = "remote-wins"\n')
        with pytest.raises(ValueError, match="Invalid sync config"):
            load_sync_config(path)

    def test_non_table_section_raises(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text('sync = "yes"\n')
        with pytest.raises(ValueError, match="must be a table"):
            load_sync_config(path)


class TestResolveConfigPath:
    def test_explicit_wins(self, tmp_path):
        explicit = tmp_path / "mine.toml"
        (tmp_path / PROJECT_CONFIG).write_text("[sync]\n")
        assert resolve_config_path(explicit, cwd=tmp_path) == explicit

    def test_project_file(self, tmp_path):
        (tmp_path / PROJECT_CONFIG).write_text("[sync]\n")
        assert resolve_config_path(cwd=tmp_path) == tmp_path / PROJECT_CONFIG

    def test_falls_back_to_defaults(self, tmp_path):
        assert resolve_config_path(cwd=tmp_path) == default_config_path()
