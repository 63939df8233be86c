"""Tests for app bootstrap."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from discogs_catalog_sync.config import ApiConfig, Config, DatabaseConfig, DiscogsConfig, SyncConfig
from discogs_catalog_sync.main import create_app, find_config_path
from discogs_catalog_sync.sync import SyncEngine, SyncScheduler


def test_config_path_from_env(tmp_path: Path, monkeypatch):
    """Test CONFIG_PATH wins when it exists."""
    config_file = tmp_path / "custom.yaml"
    config_file.write_text("discogs: {}\n")
    monkeypatch.setenv("CONFIG_PATH", str(config_file))

    assert find_config_path() == config_file


def test_config_path_local_fallback(tmp_path: Path, monkeypatch):
    """Test ./config.yaml is used when CONFIG_PATH is missing."""
    (tmp_path / "config.yaml").write_text("discogs: {}\n")
    monkeypatch.setenv("CONFIG_PATH", str(tmp_path / "missing.yaml"))
    monkeypatch.chdir(tmp_path)

    assert find_config_path() == Path("config.yaml")


def test_config_path_missing(tmp_path: Path, monkeypatch):
    """Test a clear error when no config exists."""
    monkeypatch.setenv("CONFIG_PATH", str(tmp_path / "missing.yaml"))
    monkeypatch.chdir(tmp_path)

    with pytest.raises(FileNotFoundError):
        find_config_path()


def test_app_lifespan(tmp_path: Path):
    """Test startup wires the database, engine and scheduler."""
    config = Config(
        discogs=DiscogsConfig(username="digger", api_token="secret-token"),
        sync=SyncConfig(sync_on_startup=False, cron_sync_enabled=False),
        database=DatabaseConfig(path=str(tmp_path / "catalog.db")),
        api=ApiConfig(api_key="test-key"),
    )
    app = create_app(config)

    with TestClient(app) as client:
        assert isinstance(app.state.engine, SyncEngine)
        assert isinstance(app.state.scheduler, SyncScheduler)
        assert client.get("/readyz").status_code == 200

        response = client.get("/stats/digger", headers={"X-API-Key": "test-key"})
        assert response.status_code == 200
        assert response.json()["summary"]["total_items"] == 0

    assert (tmp_path / "catalog.db").exists()
