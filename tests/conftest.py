"""Shared test fixtures for sshfs-box."""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture
def config_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point $SSHFS_BOX_CONFIG at a temporary file."""
    path = tmp_path / "config" / "sshfs-box.json"
    monkeypatch.setenv("SSHFS_BOX_CONFIG", str(path))
    return path


@pytest.fixture
def sample_config(tmp_path: Path) -> dict:
    """A parsed config with a mount folder inside tmp_path."""
    return {
        "urls": ["alice@alpha:", "alice@beta:/srv/www", "bob@gamma:/home/bob"],
        "folder": str(tmp_path / "remote"),
    }
