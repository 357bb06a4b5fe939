"""Aggregate changesets into release notes."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from .changesets import ChangesetRecord

CATEGORY_ORDER = ("breaking", "feature", "fix", "docs", "chore", "other")

CATEGORY_TITLES: dict[str, str] = {
    "breaking": "Breaking Changes",
    "feature": "Features",
    "fix": "Fixes",
    "docs": "Documentation",
    "chore": "Chores",
    "other": "Other Changes",
}

PLACEHOLDER = "No changes have been recorded yet."

PR_BODY_HEADING = "## Upcoming Changes"
PR_BODY_DISCLAIMER = (
    "This PR contains all changes that will be included in the next release. "
    "It is updated automatically when changesets are added."
)

_TITLE_TO_CATEGORY = {title.lower(): key for key, title in CATEGORY_TITLES.items()}
_SECTION_PATTERN = re.compile(r"^#{2,4}\s+(?P<title>.+?)\s*$")
_ENTRY_PATTERN = re.compile(
    r"^[-*]\s+(?P<title>.*?)\s+\(#(?P<pr>\d+)\)(?:\s+by\s+@(?P<author>\S+))?\s*$"
)


@dataclass(frozen=True)
class Target:
    """Selection of changesets to aggregate."""

    branches: tuple[str, ...] = ()
    primary: Optional[str] = None

    @classmethod
    def branch(cls, name: str) -> "Target":
        return cls(branches=(name,), primary=name)

    @classmethod
    def milestone(cls, branch: str, develop: str) -> "Target":
        """Changes on `develop` plus the milestone branch."""
        return cls(branches=(develop, branch), primary=develop)

    @classmethod
    def everything(cls, primary: Optional[str] = None) -> "Target":
        """Every recorded change, as consumed by a promotion to main."""
        return cls(branches=(), primary=primary)

    def matches(self, record: ChangesetRecord) -> bool:
        return not self.branches or record.target in self.branches


@dataclass(frozen=True)
class NoteEntry:
    """One line of the release notes."""

    pr: int
    title: str
    author: str = ""

    def render(self) -> str:
        line = f"- {self.title} (#{self.pr})"
        if self.author:
            line += f" by @{self.author}"
        return line


@dataclass
class NotesSection:
    """A category section of the release notes."""

    category: str
    entries: list[NoteEntry] = field(default_factory=list)

    @property
    def title(self) -> str:
        return CATEGORY_TITLES.get(self.category, self.category.title())


@dataclass
class ReleaseNotes:
    """Release notes grouped by category in display order."""

    sections: list[NotesSection] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not any(section.entries for section in self.sections)

    @property
    def has_breaking(self) -> bool:
        return any(
            section.category == "breaking" and section.entries for section in self.sections
        )

    def section(self, category: str) -> Optional[NotesSection]:
        for section in self.sections:
            if section.category == category:
                return section
        return None

    def entries(self) -> list[NoteEntry]:
        return [entry for section in self.sections for entry in section.entries]

    def render(self, *, heading_level: int = 3) -> str:
        """Render the notes as Markdown; identical input yields identical bytes."""
        if self.is_empty:
            return PLACEHOLDER
        hashes = "#" * heading_level
        blocks: list[str] = []
        for section in self.sections:
            if not section.entries:
                continue
            lines = [f"{hashes} {section.title}", ""]
            lines.extend(entry.render() for entry in section.entries)
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)

    def to_dict(self) -> dict[str, object]:
        return {
            "empty": self.is_empty,
            "breaking": self.has_breaking,
            "sections": [
                {
                    "category": section.category,
                    "title": section.title,
                    "entries": [
                        {"pr": entry.pr, "title": entry.title, "author": entry.author}
                        for entry in section.entries
                    ],
                }
                for section in self.sections
                if section.entries
            ],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)


def category_of(record: ChangesetRecord) -> str:
    """Return the display category; breaking records are grouped together."""
    if record.breaking:
        return "breaking"
    if record.change_type in CATEGORY_ORDER:
        return record.change_type
    return "other"


def _preference_key(record: ChangesetRecord, primary: Optional[str]) -> tuple[int, datetime, str]:
    created = record.created or datetime.min.replace(tzinfo=timezone.utc)
    return (1 if record.target == primary else 0, created, record.record_id)


def select_records(records: Iterable[ChangesetRecord], target: Target) -> list[ChangesetRecord]:
    """Filter records for a target and keep one record per PR number.

    When the same PR was recorded on several branches (for example on a
    milestone and again on develop), the record on the primary branch wins,
    then the most recently created one.
    """
    chosen: dict[int, ChangesetRecord] = {}
    for record in records:
        if not target.matches(record):
            continue
        current = chosen.get(record.pr)
        if current is None or _preference_key(record, target.primary) > _preference_key(
            current, target.primary
        ):
            chosen[record.pr] = record
    return [chosen[pr] for pr in sorted(chosen)]


def build_notes(records: Iterable[ChangesetRecord]) -> ReleaseNotes:
    """Group already-selected records into ordered category sections."""
    buckets: dict[str, list[NoteEntry]] = {}
    for record in records:
        buckets.setdefault(category_of(record), []).append(
            NoteEntry(pr=record.pr, title=record.title, author=record.author)
        )
    sections: list[NotesSection] = []
    for category in CATEGORY_ORDER:
        entries = buckets.get(category)
        if not entries:
            continue
        entries.sort(key=lambda entry: (entry.pr, entry.title))
        sections.append(NotesSection(category=category, entries=entries))
    return ReleaseNotes(sections=sections)


def aggregate(records: Iterable[ChangesetRecord], target: Target) -> ReleaseNotes:
    """Select, de-duplicate, and group records for a target."""
    return build_notes(select_records(records, target))


def parse_notes(text: str) -> ReleaseNotes:
    """Parse rendered release notes (for example a notes file) back into sections.

    Unknown section titles land in `other`; lines outside a section and
    the placeholder line are ignored.
    """
    buckets: dict[str, list[NoteEntry]] = {}
    current: Optional[str] = None
    for raw_line in text.replace("\r\n", "\n").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        section_match = _SECTION_PATTERN.match(line)
        if section_match:
            title = section_match.group("title").strip().lower()
            if title in {"upcoming changes", "release notes"}:
                current = None
                continue
            current = _TITLE_TO_CATEGORY.get(title, "other")
            continue
        if current is None:
            continue
        entry_match = _ENTRY_PATTERN.match(line)
        if entry_match is None:
            continue
        buckets.setdefault(current, []).append(
            NoteEntry(
                pr=int(entry_match.group("pr")),
                title=entry_match.group("title").strip(),
                author=entry_match.group("author") or "",
            )
        )
    sections: list[NotesSection] = []
    for category in CATEGORY_ORDER:
        entries = buckets.get(category)
        if entries:
            entries.sort(key=lambda entry: (entry.pr, entry.title))
            sections.append(NotesSection(category=category, entries=entries))
    return ReleaseNotes(sections=sections)


def render_pr_body(notes: ReleaseNotes) -> str:
    """Render the body of the develop-to-main release pull request."""
    return f"{PR_BODY_HEADING}\n\n{notes.render()}\n\n{PR_BODY_DISCLAIMER}\n"


def extract_pr_body_notes(body: str) -> str:
    """Return the release notes embedded in a release pull request body."""
    text = body.replace("\r\n", "\n")
    _, heading, remainder = text.partition(PR_BODY_HEADING)
    if not heading:
        return ""
    notes, _, _ = remainder.partition(PR_BODY_DISCLAIMER.split(".")[0])
    return notes.strip()


def replace_pr_body_notes(body: str, notes: ReleaseNotes) -> str:
    """Swap the generated block of a release pull request body for fresh notes.

    Text written around the block is kept. A body without the generated
    block is replaced entirely.
    """
    text = body.replace("\r\n", "\n")
    before, heading, remainder = text.partition(PR_BODY_HEADING)
    _, disclaimer, after = remainder.partition(PR_BODY_DISCLAIMER)
    if not heading or not disclaimer:
        return render_pr_body(notes)
    return before + render_pr_body(notes).rstrip("\n") + after
