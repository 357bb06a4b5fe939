"""Validation and analysis of pending changesets."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .changesets import ChangesetIssue, ChangesetRecord, read_all_with_issues
from .notes import CATEGORY_ORDER, Target, category_of, select_records
from .versions import required_bump


@dataclass
class ValidationIssue:
    """Represents a warning or error encountered during validation."""

    path: Path
    message: str
    severity: str = "error"  # can be "error" or "warning"


@dataclass
class ChangesetAnalysis:
    """Summary of the changesets that would go into the next release."""

    records: list[ChangesetRecord] = field(default_factory=list)
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        counts = {category: 0 for category in CATEGORY_ORDER}
        for record in self.records:
            counts[category_of(record)] += 1
        return counts

    @property
    def has_breaking(self) -> bool:
        return any(category_of(record) == "breaking" for record in self.records)

    @property
    def recommended_bump(self) -> Optional[str]:
        return required_bump(self.records)

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    def to_dict(self) -> dict[str, object]:
        return {
            "total": len(self.records),
            "counts": self.counts,
            "breaking": self.has_breaking,
            "bump": self.recommended_bump,
            "prs": [record.pr for record in self.records],
            "issues": [
                {"path": str(issue.path), "message": issue.message, "severity": issue.severity}
                for issue in self.issues
            ],
        }


def _issues_from_read(issues: Iterable[ChangesetIssue]) -> list[ValidationIssue]:
    return [ValidationIssue(issue.path, issue.message) for issue in issues]


def _duplicate_pr_warnings(records: Iterable[ChangesetRecord]) -> list[ValidationIssue]:
    """Flag PRs recorded more than once for the same target branch."""
    seen: dict[tuple[str, int], ChangesetRecord] = {}
    issues: list[ValidationIssue] = []
    for record in records:
        key = (record.target, record.pr)
        if key in seen:
            issues.append(
                ValidationIssue(
                    Path(record.record_id),
                    f"PR #{record.pr} is recorded more than once for '{record.target}'.",
                    severity="warning",
                )
            )
            continue
        seen[key] = record
    return issues


def analyze_changesets(directory: Path, target: Target | None = None) -> ChangesetAnalysis:
    """Read all changesets and summarize the ones selected by `target`."""
    records, read_issues = read_all_with_issues(directory)
    issues = _issues_from_read(read_issues) + _duplicate_pr_warnings(records)
    selected = select_records(records, target or Target.everything())
    return ChangesetAnalysis(records=selected, issues=issues)
