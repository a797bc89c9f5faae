"""
Tests for engine configuration persistence.
"""

import json

from sidequest.config import (
    CONFIG_FILENAME,
    DEFAULT_CONFIG,
    get_config_path,
    get_data_dir,
    load_config,
    save_config,
    set_value,
)


class TestDataDir:
    """Tests for data directory resolution."""

    def test_argument_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SIDEQUEST_DATA_DIR", "/elsewhere")
        assert get_data_dir(tmp_path) == tmp_path

    def test_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SIDEQUEST_DATA_DIR", str(tmp_path))
        assert get_data_dir() == tmp_path

    def test_default(self, monkeypatch):
        monkeypatch.delenv("SIDEQUEST_DATA_DIR", raising=False)
        assert str(get_data_dir()) == "sidequest_data"

    def test_config_path(self, tmp_path):
        assert get_config_path(tmp_path) == tmp_path / CONFIG_FILENAME


class TestLoadSave:
    """Tests for reading and writing the config file."""

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_defaults_not_shared(self, tmp_path):
        config = load_config(tmp_path)
        config["image_tokens"] = 1
        assert DEFAULT_CONFIG["image_tokens"] == 2500

    def test_round_trip(self, tmp_path):
        config = load_config(tmp_path)
        config["min_distance_meters"] = 35.0
        assert save_config(config, tmp_path) is True
        assert load_config(tmp_path)["min_distance_meters"] == 35.0

    def test_partial_file_merged_with_defaults(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text(json.dumps({"image_tokens": 1200}))
        config = load_config(tmp_path)
        assert config["image_tokens"] == 1200
        assert config["max_accuracy_meters"] == 50.0

    def test_unknown_keys_dropped(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text(json.dumps({"theme": "dark"}))
        assert "theme" not in load_config(tmp_path)

    def test_corrupt_file_gives_defaults(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("{broken")
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_non_object_gives_defaults(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("[1, 2, 3]")
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_save_creates_directory(self, tmp_path):
        target = tmp_path / "new"
        assert save_config(DEFAULT_CONFIG, target) is True
        assert (target / CONFIG_FILENAME).exists()


class TestSetValue:
    """Tests for updating a single setting."""

    def test_known_key(self, tmp_path):
        assert set_value("history_full_limit", 4, tmp_path) is True
        assert load_config(tmp_path)["history_full_limit"] == 4

    def test_unknown_key_rejected(self, tmp_path):
        assert set_value("backend", "claude", tmp_path) is False
        assert not (tmp_path / CONFIG_FILENAME).exists()
