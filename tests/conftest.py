"""Pytest fixtures for geolayers tests."""

from pathlib import Path

import pytest

from geolayers.config import GeoLayersConfig
from geolayers.notes.store import VaultDocumentStore


@pytest.fixture
def temp_vault(tmp_path):
    """Create a temporary vault for testing.

    Args:
        tmp_path: pytest's built-in temporary directory fixture

    Returns:
        Path to temporary vault root
    """
    vault_root = tmp_path / "test_vault"
    vault_root.mkdir()
    return vault_root


@pytest.fixture
def write_note(temp_vault):
    """Return a helper that writes a file into the temporary vault."""

    def _write(rel_path: str, text: str) -> Path:
        path = temp_vault / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def vault_config(temp_vault):
    """Create GeoLayersConfig pointing to temporary vault."""
    return GeoLayersConfig(vault_path=temp_vault)


@pytest.fixture
def store(temp_vault, vault_config):
    """Create a document store over the temporary vault."""
    return VaultDocumentStore(
        temp_vault,
        exclude_globs=vault_config.exclude_globs,
        extensions=vault_config.track_extensions,
    )
