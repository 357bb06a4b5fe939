"""Configuration helpers for changeset-release."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, MutableMapping

import yaml

CONFIG_FILENAME = "changeset-release.yaml"

DEFAULT_CHANGESETS_DIR = ".changesets"
DEFAULT_CHANGELOG = "CHANGELOG.md"
DEFAULT_README = "readme.txt"
DEFAULT_VERSION_FILES: tuple[str, ...] = ("package.json", "constants.php", "readme.txt")
DEFAULT_COMMIT_MESSAGE = "release: prepare v{version}"
DEFAULT_TAG_PREFIX = "v"


def default_config_path(project_root: Path) -> Path:
    """Return the default config path for a project root."""
    return project_root / CONFIG_FILENAME


@dataclass
class ReleaseConfig:
    """Configuration for release operations."""

    commit_message: str = DEFAULT_COMMIT_MESSAGE
    tag_prefix: str = DEFAULT_TAG_PREFIX


@dataclass
class Config:
    """Structured representation of the release automation config."""

    repository: str | None = None
    changesets_dir: str = DEFAULT_CHANGESETS_DIR
    changelog: str = DEFAULT_CHANGELOG
    readme: str = DEFAULT_README
    develop_branch: str = "develop"
    main_branch: str = "main"
    milestone_prefix: str = "milestone/"
    version_files: list[str] = field(default_factory=lambda: list(DEFAULT_VERSION_FILES))
    version_constant: str | None = None
    release: ReleaseConfig = field(default_factory=ReleaseConfig)

    def milestone_branch(self, name: str) -> str:
        """Return the branch name for a milestone, accepting either form."""
        if name.startswith(self.milestone_prefix):
            return name
        return f"{self.milestone_prefix}{name}"

    def is_tracked_branch(self, branch: str) -> bool:
        """Return True for branches that collect changesets."""
        return branch == self.develop_branch or branch.startswith(self.milestone_prefix)


def _optional_string(raw: MutableMapping[str, Any], key: str, default: str | None) -> str | None:
    value = raw.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"Config option '{key}' must be a string.")
    stripped = value.strip()
    return stripped or default


def _required_string(raw: MutableMapping[str, Any], key: str, default: str) -> str:
    return _optional_string(raw, key, None) or default


def load_config(path: Path) -> Config:
    """Load the configuration from disk."""
    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, MutableMapping):
        raise ValueError("Config root must be a mapping")

    version_files_raw = raw.get("version_files")
    version_files = list(DEFAULT_VERSION_FILES)
    if version_files_raw is not None:
        if isinstance(version_files_raw, str):
            version_files_raw = [version_files_raw]
        if not isinstance(version_files_raw, list):
            raise ValueError("Config option 'version_files' must be a list of paths.")
        version_files = [str(item).strip() for item in version_files_raw if str(item).strip()]

    release_config = ReleaseConfig()
    release_raw = raw.get("release")
    if release_raw is not None:
        if not isinstance(release_raw, MutableMapping):
            raise ValueError("Config option 'release' must be a mapping.")
        release_config = ReleaseConfig(
            commit_message=str(release_raw.get("commit_message") or DEFAULT_COMMIT_MESSAGE),
            tag_prefix=str(release_raw.get("tag_prefix", DEFAULT_TAG_PREFIX) or ""),
        )

    return Config(
        repository=_optional_string(raw, "repository", None),
        changesets_dir=_required_string(raw, "changesets_dir", DEFAULT_CHANGESETS_DIR),
        changelog=_required_string(raw, "changelog", DEFAULT_CHANGELOG),
        readme=_required_string(raw, "readme", DEFAULT_README),
        develop_branch=_required_string(raw, "develop_branch", "develop"),
        main_branch=_required_string(raw, "main_branch", "main"),
        milestone_prefix=_required_string(raw, "milestone_prefix", "milestone/"),
        version_files=version_files,
        version_constant=_optional_string(raw, "version_constant", None),
        release=release_config,
    )


def load_project_config(project_root: Path, config_path: Path | None = None) -> Config:
    """Load a project config, falling back to defaults when none exists."""
    path = config_path or default_config_path(project_root)
    if path.exists():
        return load_config(path)
    if config_path is not None:
        raise FileNotFoundError(f"No config found at {config_path}.")
    return Config()


def dump_config(config: Config) -> dict[str, Any]:
    """Convert a Config into a plain dictionary suitable for YAML output."""
    defaults = Config()
    data: dict[str, Any] = {}
    if config.repository:
        data["repository"] = config.repository
    for key in (
        "changesets_dir",
        "changelog",
        "readme",
        "develop_branch",
        "main_branch",
        "milestone_prefix",
    ):
        value = getattr(config, key)
        if value != getattr(defaults, key):
            data[key] = value
    if config.version_files != defaults.version_files:
        data["version_files"] = list(config.version_files)
    if config.version_constant:
        data["version_constant"] = config.version_constant
    if config.release != defaults.release:
        data["release"] = {
            "commit_message": config.release.commit_message,
            "tag_prefix": config.release.tag_prefix,
        }
    return data


def save_config(config: Config, path: Path) -> None:
    """Write the configuration to disk."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(dump_config(config), handle, sort_keys=False)
