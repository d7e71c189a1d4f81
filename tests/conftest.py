"""Shared fixtures: keep every test off the real settings file."""

import pytest

from utils.settings_store import refresh_settings


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    path = tmp_path / "settings" / "deploy_settings.json"
    monkeypatch.setenv("DEPLOY_SETTINGS_PATH", str(path))
    refresh_settings()
    yield path
    monkeypatch.undo()
    refresh_settings()
