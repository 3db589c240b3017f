"""Tests for the typer CLI."""

import pytest
from typer.testing import CliRunner

from geolayers import __version__
from geolayers.cli import app


runner = CliRunner()


@pytest.fixture
def vault(temp_vault, write_note, monkeypatch):
    monkeypatch.chdir(temp_vault)
    monkeypatch.delenv("GEOLAYERS_VAULT", raising=False)
    write_note("Paris.md", "---\nlocation: 48.85,2.35\ntags: [food]\n---\n")
    write_note("Archive/Rome.md", "---\nlocation: 41.9,12.5\ntags: [food]\n---\n[[Paris]]\n")
    return temp_vault


def test_scan_lists_layers(vault):
    result = runner.invoke(app, ["scan", "--vault", str(vault)])
    assert result.exit_code == 0
    assert "Paris" in result.stdout
    assert "2 of 2 layers shown" in result.stdout


def test_scan_with_query(vault):
    result = runner.invoke(app, ["scan", "-v", str(vault), "-q", 'tag:#food AND NOT path:"Archive"'])
    assert result.exit_code == 0
    assert "1 of 2 layers shown" in result.stdout


def test_scan_with_bad_query_exits_1(vault):
    result = runner.invoke(app, ["scan", "-v", str(vault), "-q", "tag:food"])
    assert result.exit_code == 1
    assert "Query error" in result.stdout


def test_scan_with_missing_vault_exits_1(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, ["scan", "--vault", str(tmp_path / "nope")])
    assert result.exit_code == 1
    assert "does not exist" in result.stdout


def test_links(vault):
    result = runner.invoke(app, ["links", "-v", str(vault)])
    assert result.exit_code == 0
    assert "1 links" in result.stdout


def test_check_query():
    ok = runner.invoke(app, ["check-query", "tag:#a OR name:b"])
    assert ok.exit_code == 0
    assert "OK" in ok.stdout

    empty = runner.invoke(app, ["check-query", "  "])
    assert empty.exit_code == 0
    assert "Empty query" in empty.stdout

    bad = runner.invoke(app, ["check-query", "tag:#a AND"])
    assert bad.exit_code == 1
    assert "Error" in bad.stdout


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout
