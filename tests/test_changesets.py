"""Tests for reading and writing changeset files."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
import yaml

from changeset_release.changesets import (
    ChangesetError,
    ChangesetRecord,
    changeset_id,
    delete_changesets,
    read_all,
    read_all_with_issues,
    read_changeset,
    write_changeset,
)


def _record(**overrides: object) -> ChangesetRecord:
    values: dict[str, object] = {
        "pr": 42,
        "title": "feat: add CSV export",
        "target": "develop",
        "author": "octocat",
        "source": "feature/csv",
        "body": "Adds a CSV export button.",
        "created": datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return ChangesetRecord.create(**values)  # type: ignore[arg-type]


def test_write_then_read_round_trips(tmp_path: Path) -> None:
    record = _record(extra={"milestone": "2.0"})
    path = write_changeset(tmp_path, record)

    assert path.name == "develop-pr-42.md"
    assert read_changeset(path) == record


def test_frontmatter_contains_derived_fields(tmp_path: Path) -> None:
    path = write_changeset(tmp_path, _record(title="fix!: drop old flag"))
    text = path.read_text(encoding="utf-8")
    frontmatter = yaml.safe_load(text.split("---\n")[1])

    assert frontmatter["pr"] == 42
    assert frontmatter["type"] == "fix"
    assert frontmatter["breaking"] is True
    assert frontmatter["branch"] == "develop"


def test_regenerating_overwrites_same_file_and_keeps_created(tmp_path: Path) -> None:
    first = write_changeset(tmp_path, _record())
    second = write_changeset(
        tmp_path, ChangesetRecord.create(pr=42, title="feat: renamed", target="develop")
    )

    assert first == second
    assert len(list(tmp_path.glob("*.md"))) == 1
    reread = read_changeset(second)
    assert reread.title == "feat: renamed"
    assert reread.created == datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def test_write_leaves_callers_record_untouched(tmp_path: Path) -> None:
    record = ChangesetRecord.create(pr=8, title="docs: readme", target="develop")

    path = write_changeset(tmp_path, record)

    assert record.created is None
    assert read_changeset(path).created is not None


def test_milestone_branch_slug() -> None:
    assert changeset_id("milestone/2.0", 7) == "milestone-2-0-pr-7"


def test_hand_edited_type_is_recomputed(tmp_path: Path) -> None:
    path = tmp_path / "develop-pr-5.md"
    path.write_text(
        "---\npr: 5\ntitle: 'fix: handle nulls'\ntarget: develop\ntype: feature\n"
        "breaking: true\n---\n\nBody.\n",
        encoding="utf-8",
    )
    record = read_changeset(path)
    assert record.change_type == "fix"
    assert record.breaking is False


@pytest.mark.parametrize(
    "content",
    [
        "no front matter here\n",
        "---\ntitle: missing pr\ntarget: develop\n---\n",
        "---\npr: abc\ntitle: bad pr\ntarget: develop\n---\n",
        "---\npr: 3\ntarget: develop\n---\n",
        "---\npr: 3\ntitle: oops: colon\ntarget: develop\n---\n",
        "---\n- just\n- a list\n---\n",
    ],
)
def test_read_changeset_rejects_malformed_files(tmp_path: Path, content: str) -> None:
    path = tmp_path / "broken.md"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ChangesetError):
        read_changeset(path)


def test_read_all_skips_malformed_and_sorts(tmp_path: Path) -> None:
    write_changeset(tmp_path, _record(pr=9))
    write_changeset(tmp_path, _record(pr=10, target="milestone/2.0"))
    (tmp_path / "develop-pr-11.md").write_text("garbage", encoding="utf-8")
    (tmp_path / "README.md").write_text("# About changesets\n", encoding="utf-8")

    records, issues = read_all_with_issues(tmp_path)
    assert [record.pr for record in records] == [9, 10]
    assert [issue.path.name for issue in issues] == ["develop-pr-11.md"]

    assert [record.pr for record in read_all(tmp_path, target="develop")] == [9]


def test_read_all_on_missing_directory_is_empty(tmp_path: Path) -> None:
    assert read_all(tmp_path / "missing") == []


def test_delete_changesets_removes_records_only(tmp_path: Path) -> None:
    write_changeset(tmp_path, _record(pr=1))
    write_changeset(tmp_path, _record(pr=2))
    readme = tmp_path / "README.md"
    readme.write_text("keep me\n", encoding="utf-8")

    removed = delete_changesets(tmp_path)

    assert sorted(path.name for path in removed) == ["develop-pr-1.md", "develop-pr-2.md"]
    assert readme.exists()
    assert read_all(tmp_path) == []
