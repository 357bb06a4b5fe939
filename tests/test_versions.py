"""Tests for next-version resolution."""

from __future__ import annotations

import pytest
from packaging.version import Version

from changeset_release.changesets import ChangesetRecord
from changeset_release.notes import Target, aggregate
from changeset_release.versions import (
    NoChangesError,
    VersionOrderError,
    bump_version,
    ensure_newer,
    parse_version,
    required_bump,
    resolve,
)


def _record(pr: int, title: str, body: str = "") -> ChangesetRecord:
    return ChangesetRecord.create(pr=pr, title=title, target="develop", body=body)


def test_feature_and_fix_bump_minor() -> None:
    records = [_record(10, "feat: add export"), _record(11, "fix: crash")]
    assert resolve(records, "1.2.3") == Version("1.3.0")

    notes = aggregate(records, Target.branch("develop"))
    assert [section.title for section in notes.sections] == ["Features", "Fixes"]


def test_breaking_feature_bumps_major() -> None:
    record = _record(20, "feat!: drop legacy API")
    assert record.change_type == "feature"
    assert record.breaking is True
    assert resolve([record], Version("2.0.0")) == Version("3.0.0")


def test_breaking_wins_over_other_changes() -> None:
    records = [
        _record(1, "fix: a"),
        _record(2, "docs: b", body="## Breaking Changes\n\nRenamed hooks."),
        _record(3, "feat: c"),
    ]
    assert required_bump(records) == "major"
    assert resolve(records, "v0.9.1") == Version("1.0.0")


def test_other_changes_bump_patch() -> None:
    assert resolve([_record(1, "chore: tidy"), _record(2, "Misc")], "1.2.3") == Version("1.2.4")


def test_empty_records_raise_no_changes() -> None:
    notes = aggregate([], Target.branch("develop"))
    assert notes.is_empty
    with pytest.raises(NoChangesError):
        resolve([], "1.0.0")


@pytest.mark.parametrize(
    ("override", "expected"),
    [("major", "2.0.0"), ("minor", "1.3.0"), ("patch", "1.2.4")],
)
def test_override_applies_directly(override: str, expected: str) -> None:
    assert resolve([_record(1, "feat!: big")], "1.2.3", override) == Version(expected)
    assert resolve([], "1.2.3", override) == Version(expected)


def test_auto_override_uses_records() -> None:
    assert resolve([_record(1, "fix: x")], "1.2.3", "auto") == Version("1.2.4")


def test_parse_version_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        parse_version("not-a-version")
    assert parse_version("v1.2.3") == Version("1.2.3")


def test_bump_version_rejects_unknown_type() -> None:
    with pytest.raises(ValueError):
        bump_version(Version("1.0.0"), "huge")


def test_ensure_newer() -> None:
    ensure_newer(Version("1.3.0"), Version("1.2.3"))
    ensure_newer(Version("1.0.0"), None)
    with pytest.raises(VersionOrderError):
        ensure_newer(Version("1.2.3"), Version("1.2.3"))
