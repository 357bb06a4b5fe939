"""Tests for changeset analysis."""

from __future__ import annotations

from pathlib import Path

from changeset_release.changesets import ChangesetRecord, write_changeset
from changeset_release.notes import Target
from changeset_release.validate import analyze_changesets


def _write(directory: Path, pr: int, title: str, target: str = "develop") -> None:
    write_changeset(directory, ChangesetRecord.create(pr=pr, title=title, target=target))


def test_analysis_counts_and_bump(tmp_path: Path) -> None:
    _write(tmp_path, 1, "feat: a")
    _write(tmp_path, 2, "fix: b")
    _write(tmp_path, 3, "fix: c", target="milestone/2.0")

    analysis = analyze_changesets(tmp_path, Target.branch("develop"))

    assert [record.pr for record in analysis.records] == [1, 2]
    assert analysis.counts["feature"] == 1
    assert analysis.counts["fix"] == 1
    assert analysis.has_breaking is False
    assert analysis.recommended_bump == "minor"
    assert analysis.issues == []


def test_analysis_reports_malformed_files(tmp_path: Path) -> None:
    _write(tmp_path, 1, "Something")
    (tmp_path / "develop-pr-2.md").write_text("---\npr: 2\n---\n", encoding="utf-8")

    analysis = analyze_changesets(tmp_path)

    assert analysis.has_errors
    assert [issue.path.name for issue in analysis.issues] == ["develop-pr-2.md"]
    assert analysis.recommended_bump == "patch"
    assert analysis.to_dict()["total"] == 1


def test_analysis_of_empty_directory(tmp_path: Path) -> None:
    analysis = analyze_changesets(tmp_path / ".changesets")
    assert analysis.records == []
    assert analysis.recommended_bump is None
