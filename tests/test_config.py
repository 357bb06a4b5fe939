"""Unit tests for configuration helpers."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from changeset_release.config import (
    Config,
    ReleaseConfig,
    dump_config,
    load_config,
    load_project_config,
    save_config,
)


def write_yaml(path: Path, content: dict[str, object]) -> None:
    path.write_text(yaml.safe_dump(content, sort_keys=False), encoding="utf-8")


def test_load_config_reads_all_fields(tmp_path: Path) -> None:
    config_path = tmp_path / "changeset-release.yaml"
    write_yaml(
        config_path,
        {
            "repository": "acme/plugin",
            "changesets_dir": "changes",
            "develop_branch": "dev",
            "version_files": ["package.json"],
            "version_constant": "ACME_VERSION",
            "release": {"commit_message": "chore: release {version}", "tag_prefix": ""},
        },
    )

    config = load_config(config_path)

    assert config.repository == "acme/plugin"
    assert config.changesets_dir == "changes"
    assert config.develop_branch == "dev"
    assert config.main_branch == "main"
    assert config.version_files == ["package.json"]
    assert config.version_constant == "ACME_VERSION"
    assert config.release == ReleaseConfig(commit_message="chore: release {version}", tag_prefix="")


def test_load_config_rejects_bad_types(tmp_path: Path) -> None:
    config_path = tmp_path / "changeset-release.yaml"
    write_yaml(config_path, {"changelog": ["not", "a", "string"]})
    with pytest.raises(ValueError):
        load_config(config_path)

    write_yaml(config_path, {"version_files": {"a": 1}})
    with pytest.raises(ValueError):
        load_config(config_path)


def test_load_config_blank_strings_fall_back_to_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "changeset-release.yaml"
    write_yaml(config_path, {"develop_branch": "  ", "changelog": "", "repository": " "})

    config = load_config(config_path)

    assert config.develop_branch == "develop"
    assert config.changelog == "CHANGELOG.md"
    assert config.repository is None


def test_load_project_config_defaults_when_missing(tmp_path: Path) -> None:
    assert load_project_config(tmp_path) == Config()
    with pytest.raises(FileNotFoundError):
        load_project_config(tmp_path, tmp_path / "nope.yaml")


def test_dump_config_omits_defaults() -> None:
    assert dump_config(Config()) == {}
    assert dump_config(Config(repository="acme/plugin", readme="README.txt")) == {
        "repository": "acme/plugin",
        "readme": "README.txt",
    }


def test_save_config_round_trips(tmp_path: Path) -> None:
    config = Config(repository="acme/plugin", main_branch="trunk", version_files=["a.php"])
    path = tmp_path / "nested" / "changeset-release.yaml"
    save_config(config, path)
    assert load_config(path) == config


def test_milestone_helpers() -> None:
    config = Config()
    assert config.milestone_branch("2.0") == "milestone/2.0"
    assert config.milestone_branch("milestone/2.0") == "milestone/2.0"
    assert config.is_tracked_branch("develop")
    assert config.is_tracked_branch("milestone/2.0")
    assert not config.is_tracked_branch("main")
