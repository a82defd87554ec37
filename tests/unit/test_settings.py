"""Tests for the settings store and completion settings."""

from __future__ import annotations

import json
import logging
import os
import stat

import pytest

from mysqlit.domains.shell.store.settings import (
    DEFAULT_SCHEMA_MAX_AGE_SECONDS,
    DEFAULT_SYSTEM_DATABASES,
    CompletionSettings,
    SettingsStore,
    load_completion_settings,
)


@pytest.fixture
def store(tmp_path):
    return SettingsStore(tmp_path / "config" / "settings.json")


class TestSettingsStore:
    """Tests for JSON-backed settings persistence."""

    def test_missing_file_is_empty(self, store):
        assert not store.exists()
        assert store.load_all() == {}
        assert store.get("log_level", "WARNING") == "WARNING"

    def test_set_and_get(self, store):
        store.set("log_level", "DEBUG")
        assert store.exists()
        assert store.get("log_level") == "DEBUG"
        assert json.loads(store.file_path.read_text()) == {"log_level": "DEBUG"}

    def test_file_is_owner_only(self, store):
        store.save_all({"a": 1})
        mode = stat.S_IMODE(os.stat(store.file_path).st_mode)
        assert mode == 0o600

    def test_corrupt_file_reads_empty(self, store):
        store.file_path.parent.mkdir(parents=True)
        store.file_path.write_text("{not json")
        assert store.load_all() == {}

    def test_non_object_reads_empty(self, store):
        store.file_path.parent.mkdir(parents=True)
        store.file_path.write_text("[1, 2]")
        assert store.load_all() == {}

    def test_env_override(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.json"
        monkeypatch.setenv("MYSQLIT_SETTINGS_PATH", str(path))
        assert SettingsStore().file_path == path


class TestCompletionSettings:
    """Tests for reading completion settings."""

    def test_defaults(self):
        settings = CompletionSettings.from_dict({})
        assert settings.system_databases == DEFAULT_SYSTEM_DATABASES
        assert settings.schema_max_age_seconds == DEFAULT_SCHEMA_MAX_AGE_SECONDS
        assert settings.log_level == "WARNING"

    def test_values(self):
        settings = CompletionSettings.from_dict(
            {
                "system_databases": ["sys"],
                "schema_max_age_seconds": 60,
                "log_level": " debug ",
            }
        )
        assert settings.system_databases == frozenset({"sys"})
        assert settings.schema_max_age_seconds == 60.0
        assert settings.log_level == "DEBUG"

    def test_disable_expiry(self):
        assert CompletionSettings.from_dict({"schema_max_age_seconds": None}).schema_max_age_seconds is None

    @pytest.mark.parametrize(
        "data",
        [
            {"system_databases": "mysql"},
            {"system_databases": [1, 2]},
            {"schema_max_age_seconds": -1},
            {"schema_max_age_seconds": "soon"},
            {"schema_max_age_seconds": True},
            {"log_level": "LOUD"},
            {"log_level": 10},
        ],
    )
    def test_invalid_values_ignored(self, data, caplog):
        with caplog.at_level(logging.WARNING, logger="mysqlit.domains.shell.store.settings"):
            settings = CompletionSettings.from_dict(data)
        assert settings == CompletionSettings()
        assert "Ignoring invalid" in caplog.text

    def test_load_from_store(self, store):
        store.save_all({"schema_max_age_seconds": 30})
        assert load_completion_settings(store).schema_max_age_seconds == 30.0

    def test_load_missing_file(self, store):
        assert load_completion_settings(store) == CompletionSettings()

    def test_unreadable_file_logged(self, store, caplog):
        store.file_path.parent.mkdir(parents=True)
        store.file_path.write_bytes(b"\xff\xfe{")
        with caplog.at_level(logging.WARNING, logger="mysqlit.domains.shell.store.settings"):
            assert load_completion_settings(store) == CompletionSettings()
        assert "Ignoring unreadable settings file" in caplog.text
