"""Tests for data directory resolution."""

from pathlib import Path

from src.utils.paths import ensure_dirs_exist, get_data_dir, get_default_db_path


class TestPaths:
    """Tests for platformdirs-backed paths."""

    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CHATBRIDGE_DATA_DIR", str(tmp_path))
        assert get_data_dir() == tmp_path
        assert get_default_db_path() == tmp_path / "chatbridge.db"

    def test_platform_default(self, monkeypatch):
        monkeypatch.delenv("CHATBRIDGE_DATA_DIR", raising=False)
        data_dir = get_data_dir()
        assert isinstance(data_dir, Path)
        assert data_dir.name == "chatbridge"

    def test_ensure_dirs_exist(self, monkeypatch, tmp_path):
        target = tmp_path / "nested" / "data"
        monkeypatch.setenv("CHATBRIDGE_DATA_DIR", str(target))
        ensure_dirs_exist()
        assert target.is_dir()
