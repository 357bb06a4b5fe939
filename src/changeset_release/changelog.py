"""Merge release notes into persistent changelog documents.

A changelog is modelled as an ordered list of named sections: a preamble, a
single `Unreleased` section that reflects in-flight branch state, and frozen
version sections ordered newest first. Merging is a pure function from one
document to the next; callers decide when to persist the result.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Callable, Optional

from packaging.version import InvalidVersion, Version

from . import readme
from .notes import ReleaseNotes

UNRELEASED_TITLE = "Unreleased"
_UNRELEASED_ALIASES = {"unreleased", "upcoming", "upcoming changes"}
_VERSION_TITLE_PATTERN = re.compile(
    r"^\[?v?(?P<version>\d+(?:\.\d+){0,2}[0-9A-Za-z.+-]*?)\]?(?:\s+[-(]\s*(?P<date>[^)\s]+)\)?)?\s*$"
)

README_CHANGELOG_SECTION = "Changelog"
README_UPGRADE_NOTICE_SECTION = "Upgrade Notice"


@dataclass(frozen=True)
class Section:
    """A top-level changelog section."""

    title: str
    body: str = ""

    @property
    def is_unreleased(self) -> bool:
        return self.title.strip().lower() in _UNRELEASED_ALIASES

    @property
    def version(self) -> Optional[str]:
        if self.is_unreleased:
            return None
        match = _VERSION_TITLE_PATTERN.match(self.title.strip())
        if match is None:
            return None
        return match.group("version")


@dataclass(frozen=True)
class ChangelogStyle:
    """How a changelog variant spells headings and renders notes."""

    name: str
    heading: Callable[[str], str]
    parse_heading: Callable[[str], Optional[str]]
    render_notes: Callable[[ReleaseNotes], str]
    version_title: Callable[[str, date], str]
    default_preamble: str = ""
    keep_empty_unreleased: bool = True
    breaking_only: bool = False


@dataclass(frozen=True)
class ChangelogDocument:
    """An immutable changelog: preamble plus ordered sections."""

    style: ChangelogStyle
    preamble: str = ""
    sections: tuple[Section, ...] = field(default_factory=tuple)

    def find_version(self, version: str) -> Optional[Section]:
        wanted = _normalize_version(version)
        for section in self.sections:
            if section.version is not None and _normalize_version(section.version) == wanted:
                return section
        return None

    def has_version(self, version: str) -> bool:
        return self.find_version(version) is not None

    @property
    def unreleased(self) -> Optional[Section]:
        for section in self.sections:
            if section.is_unreleased:
                return section
        return None

    def versions(self) -> list[str]:
        return [section.version for section in self.sections if section.version is not None]

    def render(self) -> str:
        blocks: list[str] = []
        if self.preamble.strip():
            blocks.append(self.preamble.strip("\n"))
        for section in self.sections:
            heading = self.style.heading(section.title)
            body = section.body.strip("\n")
            blocks.append(f"{heading}\n\n{body}" if body else heading)
        if not blocks:
            return ""
        return "\n\n".join(blocks) + "\n"


def _normalize_version(value: str) -> str:
    stripped = value.strip().lstrip("vV")
    try:
        return str(Version(stripped))
    except InvalidVersion:
        return stripped


def _markdown_heading(title: str) -> str:
    return f"## {title}"


def _markdown_parse_heading(line: str) -> Optional[str]:
    if line.startswith("## "):
        return line[3:].strip()
    return None


def _markdown_version_title(version: str, release_date: date) -> str:
    return f"{version} - {release_date.isoformat()}"


def _readme_heading(title: str) -> str:
    return f"= {title} ="


def _readme_parse_heading(line: str) -> Optional[str]:
    stripped = line.strip()
    if stripped.startswith("==") or not stripped.startswith("=") or not stripped.endswith("="):
        return None
    inner = stripped.strip("=").strip()
    return inner or None


def _readme_version_title(version: str, release_date: date) -> str:
    return version


def _render_markdown_notes(notes: ReleaseNotes) -> str:
    return notes.render(heading_level=3)


def _render_readme_notes(notes: ReleaseNotes) -> str:
    if notes.is_empty:
        return notes.render()
    blocks: list[str] = []
    for section in notes.sections:
        if not section.entries:
            continue
        lines = [f"**{section.title}**", ""]
        lines.extend("* " + entry.render()[2:] for entry in section.entries)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def _render_upgrade_notice(notes: ReleaseNotes) -> str:
    section = notes.section("breaking")
    if section is None or not section.entries:
        return ""
    lines = ["This release contains breaking changes. Review them before upgrading:", ""]
    lines.extend("* " + entry.render()[2:] for entry in section.entries)
    return "\n".join(lines)


MARKDOWN_STYLE = ChangelogStyle(
    name="markdown",
    heading=_markdown_heading,
    parse_heading=_markdown_parse_heading,
    render_notes=_render_markdown_notes,
    version_title=_markdown_version_title,
    default_preamble=(
        "# Changelog\n\nAll notable changes to this project are documented in this file."
    ),
)

README_CHANGELOG_STYLE = ChangelogStyle(
    name="readme-changelog",
    heading=_readme_heading,
    parse_heading=_readme_parse_heading,
    render_notes=_render_readme_notes,
    version_title=_readme_version_title,
    keep_empty_unreleased=False,
)

UPGRADE_NOTICE_STYLE = ChangelogStyle(
    name="upgrade-notice",
    heading=_readme_heading,
    parse_heading=_readme_parse_heading,
    render_notes=_render_upgrade_notice,
    version_title=_readme_version_title,
    keep_empty_unreleased=False,
    breaking_only=True,
)


def parse_changelog(text: str, style: ChangelogStyle = MARKDOWN_STYLE) -> ChangelogDocument:
    """Split changelog text into a preamble and sections."""
    if not text.strip():
        return ChangelogDocument(style=style, preamble=style.default_preamble)
    preamble_lines: list[str] = []
    sections: list[Section] = []
    title: Optional[str] = None
    body_lines: list[str] = []
    for line in text.replace("\r\n", "\n").split("\n"):
        heading = style.parse_heading(line)
        if heading is not None:
            if title is not None:
                sections.append(Section(title=title, body="\n".join(body_lines).strip("\n")))
            title = heading
            body_lines = []
            continue
        if title is None:
            preamble_lines.append(line)
        else:
            body_lines.append(line)
    if title is not None:
        sections.append(Section(title=title, body="\n".join(body_lines).strip("\n")))
    return ChangelogDocument(
        style=style,
        preamble="\n".join(preamble_lines).strip("\n"),
        sections=tuple(sections),
    )


def _with_unreleased(document: ChangelogDocument, body: str) -> tuple[Section, ...]:
    """Return sections with the Unreleased section first and set to `body`."""
    others = [section for section in document.sections if not section.is_unreleased]
    existing = document.unreleased
    if not body.strip() and not document.style.keep_empty_unreleased:
        return tuple(others)
    title = existing.title if existing is not None else UNRELEASED_TITLE
    return (Section(title=title, body=body),) + tuple(others)


def merge(
    document: ChangelogDocument,
    notes: ReleaseNotes,
    version: Optional[str],
    *,
    final: bool,
    release_date: Optional[date] = None,
) -> ChangelogDocument:
    """Merge release notes into a changelog document.

    In-flight merges (`final=False`) replace only the Unreleased body. Final
    merges insert a frozen section for `version` above the newest existing
    frozen section and reset Unreleased. A final merge for a version that
    already has a section returns the document unchanged, as does any merge
    of notes without breaking changes into a breaking-only document.
    """
    style = document.style
    if style.breaking_only and not notes.has_breaking:
        return document
    body = style.render_notes(notes)
    if not final:
        return replace(document, sections=_with_unreleased(document, body))

    if not version:
        raise ValueError("A version is required to record a release in the changelog.")
    if document.has_version(version):
        return document
    title = style.version_title(version, release_date or date.today())
    new_section = Section(title=title, body=body)
    sections = list(_with_unreleased(document, ""))
    insert_at = len(sections)
    for index, section in enumerate(sections):
        if not section.is_unreleased:
            insert_at = index
            break
    sections.insert(insert_at, new_section)
    return replace(document, sections=tuple(sections))


def latest_version(document: ChangelogDocument) -> Optional[Version]:
    """Return the highest semantic version recorded in the document."""
    parsed: list[Version] = []
    for value in document.versions():
        try:
            parsed.append(Version(value.lstrip("vV")))
        except InvalidVersion:
            continue
    return max(parsed) if parsed else None


def merge_changelog_text(
    text: str,
    notes: ReleaseNotes,
    version: Optional[str],
    *,
    final: bool,
    release_date: Optional[date] = None,
) -> str:
    """Merge notes into `CHANGELOG.md` text, keeping the input when nothing changes."""
    document = parse_changelog(text, MARKDOWN_STYLE)
    merged = merge(document, notes, version, final=final, release_date=release_date)
    if merged is document and text.strip():
        return text
    return merged.render()


def _merge_readme_section(
    text: str,
    section_name: str,
    style: ChangelogStyle,
    notes: ReleaseNotes,
    version: Optional[str],
    *,
    final: bool,
    release_date: Optional[date],
) -> str:
    current = readme.get_section(text, section_name) or ""
    document = parse_changelog(current, style)
    merged = merge(document, notes, version, final=final, release_date=release_date)
    if merged is document:
        return text
    return readme.replace_section(text, section_name, merged.render())


def merge_readme_changelog(
    text: str,
    notes: ReleaseNotes,
    version: Optional[str],
    *,
    final: bool,
    release_date: Optional[date] = None,
) -> str:
    """Merge notes into the `== Changelog ==` section of a readme."""
    return _merge_readme_section(
        text,
        README_CHANGELOG_SECTION,
        README_CHANGELOG_STYLE,
        notes,
        version,
        final=final,
        release_date=release_date,
    )


def merge_upgrade_notice(
    text: str,
    notes: ReleaseNotes,
    version: Optional[str],
    *,
    final: bool,
    release_date: Optional[date] = None,
) -> str:
    """Merge breaking changes into the `== Upgrade Notice ==` section of a readme."""
    return _merge_readme_section(
        text,
        README_UPGRADE_NOTICE_SECTION,
        UPGRADE_NOTICE_STYLE,
        notes,
        version,
        final=final,
        release_date=release_date,
    )
