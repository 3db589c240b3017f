"""Configuration management for geolayers."""

import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from .query.display_rules import DEFAULT_DISPLAY_RULES, DisplayRule

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Python < 3.11


CONFIG_DIR = ".geolayers"
CONFIG_FILE = "config.toml"


def _find_repo_root(start_dir: Path) -> Path:
    """Find repository root by walking upward looking for .git or pyproject.toml."""
    current_dir = start_dir

    while True:
        if (current_dir / ".git").exists() or (current_dir / "pyproject.toml").exists():
            return current_dir

        parent_dir = current_dir.parent

        # Stop if we reach filesystem root
        if parent_dir == current_dir:
            return start_dir

        current_dir = parent_dir


def _load_repo_config_data(repo_root: Path) -> Optional[dict]:
    """Load repo config data from .geolayers/config.toml if it exists."""
    config_file = repo_root / CONFIG_DIR / CONFIG_FILE

    if not config_file.exists():
        return None

    try:
        with open(config_file, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid config: {config_file} is not valid TOML ({e})") from e


def _nested_get(data: Optional[dict[str, Any]], path: list[str]) -> Any:
    cur: Any = data or {}
    for key in path:
        if not isinstance(cur, dict) or key not in cur:
            return None
        cur = cur[key]
    return cur


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def resolve_vault_root(cli_vault_path: Optional[str] = None, repo_config: Optional[dict] = None) -> Path:
    """Resolve the vault root with the following precedence:

    1. CLI --vault option (if provided)
    2. repo-local .geolayers/config.toml ``vault_path`` (walk upward from CWD)
    3. GEOLAYERS_VAULT environment variable
    4. The current directory

    Raises:
        FileNotFoundError: If the resolved path is not an existing directory
    """
    if cli_vault_path:
        vault_path = Path(cli_vault_path).expanduser().resolve()
        source = "--vault"
    elif isinstance(_nested_get(repo_config, ["vault_path"]), str) and repo_config["vault_path"].strip():
        vault_path = Path(repo_config["vault_path"]).expanduser().resolve()
        source = f"{CONFIG_DIR}/{CONFIG_FILE}"
    elif os.environ.get("GEOLAYERS_VAULT"):
        vault_path = Path(os.environ["GEOLAYERS_VAULT"]).expanduser().resolve()
        source = "GEOLAYERS_VAULT"
    else:
        return Path.cwd().resolve()

    if not vault_path.exists():
        raise FileNotFoundError(f"Vault path from {source} does not exist: {vault_path}")
    if not vault_path.is_dir():
        raise FileNotFoundError(f"Vault path from {source} is not a directory: {vault_path}")
    return vault_path


def _string_list(section: dict, key: str, default: list[str]) -> list[str]:
    value = section.get(key, default)
    if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
        raise ValueError(f"Invalid config: [geolayers].{key} must be a list of strings")
    return value


class GeoLayersConfig(BaseModel):
    """Configuration for indexing a vault's geo layers."""

    vault_path: Path = Field(default_factory=Path.cwd)
    front_matter_key: str = Field(default="location")
    multi_location_key: str = Field(default="locations")
    tag_for_geolocation_notes: str = Field(default="")
    scan_all_notes: bool = Field(default=False)
    show_links: bool = Field(default=True)
    track_extensions: list[str] = Field(default_factory=lambda: ["gpx", "kml", "tcx", "geojson"])
    exclude_globs: list[str] = Field(default_factory=lambda: [".obsidian/**", ".git/**", ".trash/**"])
    display_rules: list[DisplayRule] = Field(default_factory=lambda: list(DEFAULT_DISPLAY_RULES))

    model_config = {"frozen": True}

    @classmethod
    def from_env(cls, cli_vault_path: Optional[str] = None) -> "GeoLayersConfig":
        """Load configuration from the repo config file, environment and defaults.

        Args:
            cli_vault_path: Vault path from CLI --vault option (highest precedence)
        """
        repo_config = _load_repo_config_data(_find_repo_root(Path.cwd())) or {}
        vault_path = resolve_vault_root(cli_vault_path, repo_config)

        section = repo_config.get("geolayers", {})
        if not isinstance(section, dict):
            raise ValueError("Invalid config: [geolayers] must be a table")

        fm_key = os.environ.get("GEOLAYERS_FRONT_MATTER_KEY") or section.get("front_matter_key", "location")
        multi_key = section.get("multi_location_key", "locations")
        tag_pattern = section.get("tag_for_geolocation_notes", "")
        for key, value in (
            ("front_matter_key", fm_key),
            ("multi_location_key", multi_key),
        ):
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"Invalid config: [geolayers].{key} must be a non-empty string")
        if not isinstance(tag_pattern, str):
            raise ValueError("Invalid config: [geolayers].tag_for_geolocation_notes must be a string")

        scan_all = section.get("scan_all_notes", False)
        show_links = section.get("show_links", True)
        if not isinstance(scan_all, bool) or not isinstance(show_links, bool):
            raise ValueError("Invalid config: [geolayers].scan_all_notes and show_links must be booleans")

        rules_data = repo_config.get("display_rules")
        if rules_data is None:
            display_rules = list(DEFAULT_DISPLAY_RULES)
        else:
            if not isinstance(rules_data, list):
                raise ValueError("Invalid config: [[display_rules]] must be an array of tables")
            try:
                display_rules = [DisplayRule.model_validate(rule) for rule in rules_data]
            except ValidationError as e:
                raise ValueError(f"Invalid config: display rule rejected ({e})") from e
            if sum(1 for rule in display_rules if rule.preset) != 1:
                raise ValueError("Invalid config: exactly one display rule must have preset = true")

        return cls(
            vault_path=vault_path,
            front_matter_key=fm_key,
            multi_location_key=multi_key,
            tag_for_geolocation_notes=tag_pattern,
            scan_all_notes=_env_bool("GEOLAYERS_SCAN_ALL_NOTES", scan_all),
            show_links=_env_bool("GEOLAYERS_SHOW_LINKS", show_links),
            track_extensions=[e.lower().lstrip(".") for e in _string_list(section, "track_extensions", ["gpx", "kml", "tcx", "geojson"])],
            exclude_globs=_string_list(section, "exclude_globs", [".obsidian/**", ".git/**", ".trash/**"]),
            display_rules=display_rules,
        )
