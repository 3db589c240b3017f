"""Tests for configuration loading and vault resolution."""

import pytest

from geolayers.config import GeoLayersConfig, resolve_vault_root


def _make_repo(tmp_path, config_text=None):
    repo_root = tmp_path / "repo"
    (repo_root / ".git").mkdir(parents=True)
    if config_text is not None:
        (repo_root / ".geolayers").mkdir()
        (repo_root / ".geolayers" / "config.toml").write_text(config_text, encoding="utf-8")
    return repo_root


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "GEOLAYERS_VAULT",
        "GEOLAYERS_FRONT_MATTER_KEY",
        "GEOLAYERS_SCAN_ALL_NOTES",
        "GEOLAYERS_SHOW_LINKS",
    ):
        monkeypatch.delenv(name, raising=False)


class TestResolveVaultRoot:
    def test_cli_path_wins(self, tmp_path, monkeypatch):
        cli_vault = tmp_path / "cli"
        cli_vault.mkdir()
        env_vault = tmp_path / "env"
        env_vault.mkdir()
        monkeypatch.setenv("GEOLAYERS_VAULT", str(env_vault))
        assert resolve_vault_root(str(cli_vault), {"vault_path": str(env_vault)}) == cli_vault.resolve()

    def test_repo_config_before_env(self, tmp_path, monkeypatch):
        config_vault = tmp_path / "config"
        config_vault.mkdir()
        monkeypatch.setenv("GEOLAYERS_VAULT", str(tmp_path))
        assert resolve_vault_root(None, {"vault_path": str(config_vault)}) == config_vault.resolve()

    def test_env_then_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert resolve_vault_root(None, None) == tmp_path.resolve()
        env_vault = tmp_path / "env"
        env_vault.mkdir()
        monkeypatch.setenv("GEOLAYERS_VAULT", str(env_vault))
        assert resolve_vault_root(None, {}) == env_vault.resolve()

    def test_missing_path_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="does not exist"):
            resolve_vault_root(str(tmp_path / "nonexistent"))

    def test_file_path_raises(self, tmp_path):
        note = tmp_path / "note.md"
        note.write_text("x")
        with pytest.raises(FileNotFoundError, match="not a directory"):
            resolve_vault_root(str(note))


class TestFromEnv:
    def test_defaults_without_config_file(self, tmp_path, monkeypatch):
        repo_root = _make_repo(tmp_path)
        monkeypatch.chdir(repo_root)
        cfg = GeoLayersConfig.from_env()
        assert cfg.vault_path == repo_root.resolve()
        assert cfg.front_matter_key == "location"
        assert cfg.multi_location_key == "locations"
        assert cfg.show_links is True
        assert cfg.scan_all_notes is False
        assert cfg.track_extensions == ["gpx", "kml", "tcx", "geojson"]
        assert [rule.preset for rule in cfg.display_rules] == [True, False, False, False]

    def test_repo_config_is_read_from_subdirectory(self, tmp_path, monkeypatch):
        vault_dir = tmp_path / "vault"
        vault_dir.mkdir()
        repo_root = _make_repo(
            tmp_path,
            f'vault_path = "{vault_dir.as_posix()}"\n'
            "\n"
            "[geolayers]\n"
            'front_matter_key = "coords"\n'
            'tag_for_geolocation_notes = "#geo*"\n'
            "show_links = false\n"
            'track_extensions = [".GPX"]\n'
            "\n"
            "[[display_rules]]\n"
            'query = ""\n'
            "preset = true\n"
            'icon_details = { icon = "fa-star", marker_color = "red" }\n'
            "\n"
            "[[display_rules]]\n"
            'query = "tag:#food"\n'
            'icon_details = { icon = "fa-utensils" }\n',
        )
        (repo_root / "sub").mkdir()
        monkeypatch.chdir(repo_root / "sub")
        cfg = GeoLayersConfig.from_env()
        assert cfg.vault_path == vault_dir.resolve()
        assert cfg.front_matter_key == "coords"
        assert cfg.tag_for_geolocation_notes == "#geo*"
        assert cfg.show_links is False
        assert cfg.track_extensions == ["gpx"]
        assert cfg.display_rules[0].icon_details.icon == "fa-star"
        assert cfg.display_rules[1].query == "tag:#food"

    def test_env_overrides(self, tmp_path, monkeypatch):
        repo_root = _make_repo(tmp_path, "[geolayers]\nscan_all_notes = false\n")
        monkeypatch.chdir(repo_root)
        monkeypatch.setenv("GEOLAYERS_SCAN_ALL_NOTES", "yes")
        monkeypatch.setenv("GEOLAYERS_FRONT_MATTER_KEY", "where")
        cfg = GeoLayersConfig.from_env(cli_vault_path=str(repo_root))
        assert cfg.scan_all_notes is True
        assert cfg.front_matter_key == "where"

    @pytest.mark.parametrize(
        "config_text,message",
        [
            ("[geolayers\n", "not valid TOML"),
            ("geolayers = 3\n", "must be a table"),
            ('[geolayers]\nfront_matter_key = ""\n', "front_matter_key"),
            ('[geolayers]\nshow_links = "no"\n', "must be booleans"),
            ('[geolayers]\nexclude_globs = "x"\n', "exclude_globs"),
            ('[[display_rules]]\nquery = "tag:#a"\n', "exactly one display rule"),
            ('[[display_rules]]\nquery = "bogus:x"\npreset = true\n', "display rule rejected"),
        ],
    )
    def test_invalid_config(self, tmp_path, monkeypatch, config_text, message):
        repo_root = _make_repo(tmp_path, config_text)
        monkeypatch.chdir(repo_root)
        with pytest.raises(ValueError, match=message):
            GeoLayersConfig.from_env()
