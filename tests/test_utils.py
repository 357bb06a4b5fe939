"""Unit tests for shared utilities."""

from __future__ import annotations

import subprocess
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

from changeset_release import utils
from changeset_release.utils import (
    coerce_datetime,
    detect_github_repository,
    detect_github_token,
    normalize_markdown,
    slugify,
)


def test_slugify_treats_slashes_and_dots_as_separators() -> None:
    assert slugify("milestone/2.0") == "milestone-2-0"
    assert slugify("Feature  Branch") == "feature-branch"
    assert slugify("///") == ""


def test_coerce_datetime_accepts_common_forms() -> None:
    expected = datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc)
    assert coerce_datetime("2026-10-19T08:30:00Z") == expected
    assert coerce_datetime("2026-10-19T08:30:00+00:00") == expected
    assert coerce_datetime(datetime(2026, 10, 19, 8, 30)) == expected
    assert coerce_datetime("2026-10-19") == datetime(2026, 10, 19, tzinfo=timezone.utc)
    assert coerce_datetime("yesterday") is None
    assert coerce_datetime(None) is None


def test_normalize_markdown_unwraps_paragraphs() -> None:
    text = "First line\nsecond line.\r\n\r\n* item"
    assert normalize_markdown(text) == "First line second line.\n\n- item"
    assert normalize_markdown("   ") == ""


def test_detect_github_token_prefers_github_token() -> None:
    assert detect_github_token({"GH_TOKEN": "b", "GITHUB_TOKEN": "a"}) == "a"
    assert detect_github_token({"GH_TOKEN": " b "}) == "b"
    assert detect_github_token({}) is None


def test_detect_github_repository_from_env(tmp_path: Path) -> None:
    assert detect_github_repository(tmp_path, env={"GITHUB_REPOSITORY": "acme/plugin"}) == (
        "acme/plugin"
    )


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("git@github.com:acme/plugin.git", "acme/plugin"),
        ("https://github.com/acme/plugin.git", "acme/plugin"),
    ],
)
def test_detect_github_repository_from_remote(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, url: str, expected: str
) -> None:
    def fake_run(*args: object, **kwargs: object) -> SimpleNamespace:
        return SimpleNamespace(stdout=f"{url}\n", returncode=0)

    monkeypatch.setattr(utils.subprocess, "run", fake_run)
    assert detect_github_repository(tmp_path, env={}) == expected


def test_push_git_ref_raises_runtime_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def fake_run(command: list[str], **kwargs: object) -> None:
        raise subprocess.CalledProcessError(1, command)

    monkeypatch.setattr(utils.subprocess, "run", fake_run)
    with pytest.raises(RuntimeError, match="failed to push 'v1.0.0'"):
        utils.push_git_ref(tmp_path, "v1.0.0")
