"""
Unit tests for store settings.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from leafdb import LeafDB
from leafdb.config import LeafDbSettings


class TestLeafDbSettings:
    """Tests for LeafDbSettings."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for var in ("LEAFDB_NAME", "LEAFDB_DIRECTORY", "LEAFDB_EXTENSION", "LEAFDB_STRICT"):
            monkeypatch.delenv(var, raising=False)

    def test_defaults(self):
        settings = LeafDbSettings()

        assert settings.name == "leafdb"
        assert settings.directory is None
        assert settings.extension == ".txt"
        assert settings.strict is False
        assert not settings.persistent
        assert settings.path is None

    def test_path(self, tmp_path):
        settings = LeafDbSettings(name="users", directory=str(tmp_path))

        assert settings.persistent
        assert settings.path == Path(tmp_path) / "users.txt"

    def test_extension_gets_dot(self):
        assert LeafDbSettings(extension="log").extension == ".log"
        assert LeafDbSettings(extension=".db").extension == ".db"

    @pytest.mark.parametrize("name", ["", "a/b", "a\\b"])
    def test_invalid_name(self, name):
        with pytest.raises(ValidationError):
            LeafDbSettings(name=name)

    def test_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LEAFDB_NAME", "events")
        monkeypatch.setenv("LEAFDB_DIRECTORY", str(tmp_path))
        monkeypatch.setenv("LEAFDB_STRICT", "true")

        settings = LeafDbSettings()

        assert settings.path == Path(tmp_path) / "events.txt"
        assert settings.strict is True

    def test_store_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LEAFDB_DIRECTORY", str(tmp_path))

        db = LeafDB.from_env()

        assert db.persistent
        assert db.path == Path(tmp_path) / "leafdb.txt"

    def test_store_arguments_ignore_environment(self, monkeypatch, tmp_path):
        """Explicit constructor arguments win over the environment."""
        monkeypatch.setenv("LEAFDB_DIRECTORY", str(tmp_path))

        db = LeafDB()

        assert not db.persistent
