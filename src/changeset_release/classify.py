"""Derive a change category and breaking flag from a PR title and body."""

from __future__ import annotations

import re
from dataclasses import dataclass

CHANGE_TYPES = ("feature", "fix", "chore", "docs", "breaking", "other")

CONVENTIONAL_TAGS: dict[str, str] = {
    "feat": "feature",
    "feature": "feature",
    "fix": "fix",
    "bugfix": "fix",
    "hotfix": "fix",
    "docs": "docs",
    "doc": "docs",
    "chore": "chore",
    "build": "chore",
    "ci": "chore",
    "refactor": "chore",
    "perf": "chore",
    "test": "chore",
    "tests": "chore",
    "style": "chore",
}

# type(scope)!: description
_PREFIX_PATTERN = re.compile(r"^\s*(?P<tag>[A-Za-z]+)(?:\((?P<scope>[^)]*)\))?(?P<bang>!)?\s*:")
_BREAKING_FOOTER_PATTERN = re.compile(r"^\s*BREAKING[ -]CHANGES?\s*:", re.MULTILINE)
_BREAKING_HEADING_PATTERN = re.compile(
    r"^\s{0,3}#{1,6}\s*breaking[ -]changes?\b",
    re.IGNORECASE | re.MULTILINE,
)


@dataclass(frozen=True)
class Classification:
    """Result of classifying a change."""

    change_type: str
    breaking: bool


def conventional_tag(title: str) -> str | None:
    """Return the lowercased conventional prefix of a title, if any."""
    match = _PREFIX_PATTERN.match(title)
    if match is None:
        return None
    return match.group("tag").lower()


def has_breaking_marker(title: str, body: str = "") -> bool:
    """Return True when the title or body carries an explicit breaking marker.

    Only the `!` suffix on a conventional prefix, a `BREAKING CHANGE:` footer
    and a `Breaking Changes` heading count; prose mentioning breakage does not.
    """
    match = _PREFIX_PATTERN.match(title)
    if match is not None and match.group("bang"):
        return True
    if _BREAKING_FOOTER_PATTERN.search(title) or _BREAKING_FOOTER_PATTERN.search(body):
        return True
    return _BREAKING_HEADING_PATTERN.search(body) is not None


def classify(title: str, body: str = "") -> Classification:
    """Classify a change from its title and body.

    A recognized conventional prefix decides the category, and the breaking
    flag is independent of it. A breaking marker without a recognized prefix
    files the change under `breaking`; anything else is `other`.
    """
    breaking = has_breaking_marker(title, body)
    tag = conventional_tag(title)
    change_type = CONVENTIONAL_TAGS.get(tag) if tag else None
    if change_type is None:
        change_type = "breaking" if breaking else "other"
    return Classification(change_type=change_type, breaking=breaking)
