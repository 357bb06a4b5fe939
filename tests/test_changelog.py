"""Tests for merging release notes into changelog documents."""

from __future__ import annotations

from datetime import date

import pytest

from changeset_release.changelog import (
    MARKDOWN_STYLE,
    UPGRADE_NOTICE_STYLE,
    latest_version,
    merge,
    merge_changelog_text,
    merge_readme_changelog,
    merge_upgrade_notice,
    parse_changelog,
)
from changeset_release.changesets import ChangesetRecord
from changeset_release.notes import Target, aggregate
from changeset_release.readme import get_section

EXISTING_CHANGELOG = """# Changelog

Hand-written intro that must survive.

## Unreleased

- stale entry

## 1.3.0 - 2026-09-01

### Features

- feat: old feature (#3) by @dev

## 1.2.3 - 2026-08-01

### Fixes

- fix: ancient fix (#1) by @dev
"""

README = """=== My Plugin ===
Contributors: someone
Stable tag: 1.3.0

A plugin.

== Description ==

Does things.

== Changelog ==

= 1.3.0 =
* Old stuff.
"""


def _notes(*titles: str):
    records = [
        ChangesetRecord.create(pr=10 + index, title=title, target="develop", author="dev")
        for index, title in enumerate(titles)
    ]
    return aggregate(records, Target.branch("develop"))


def test_merge_onto_existing_version_is_noop() -> None:
    document = parse_changelog(EXISTING_CHANGELOG, MARKDOWN_STYLE)
    merged = merge(document, _notes("feat: new"), "1.3.0", final=True)

    assert merged is document
    assert merge_changelog_text(EXISTING_CHANGELOG, _notes("feat: new"), "1.3.0", final=True) == (
        EXISTING_CHANGELOG
    )


def test_final_merge_inserts_section_above_newest_and_resets_unreleased() -> None:
    text = merge_changelog_text(
        EXISTING_CHANGELOG,
        _notes("feat: shiny", "fix: crash"),
        "1.4.0",
        final=True,
        release_date=date(2026, 10, 19),
    )
    document = parse_changelog(text, MARKDOWN_STYLE)

    assert [section.title for section in document.sections] == [
        "Unreleased",
        "1.4.0 - 2026-10-19",
        "1.3.0 - 2026-09-01",
        "1.2.3 - 2026-08-01",
    ]
    assert document.unreleased is not None and document.unreleased.body == ""
    assert "- feat: shiny (#10) by @dev" in document.find_version("1.4.0").body
    assert "Hand-written intro that must survive." in text
    assert "- fix: ancient fix (#1) by @dev" in text


def test_in_flight_merge_replaces_only_unreleased() -> None:
    text = merge_changelog_text(EXISTING_CHANGELOG, _notes("feat: wip"), None, final=False)
    document = parse_changelog(text, MARKDOWN_STYLE)

    assert document.unreleased is not None
    assert document.unreleased.body == "### Features\n\n- feat: wip (#10) by @dev"
    assert "stale entry" not in text
    assert document.versions() == ["1.3.0", "1.2.3"]


@pytest.mark.parametrize("final", [True, False])
def test_merge_is_idempotent(final: bool) -> None:
    notes = _notes("feat: a", "fix: b")
    document = parse_changelog(EXISTING_CHANGELOG, MARKDOWN_STYLE)
    once = merge(document, notes, "1.4.0", final=final, release_date=date(2026, 10, 19))
    twice = merge(once, notes, "1.4.0", final=final, release_date=date(2026, 10, 19))

    assert twice == once
    assert twice.render() == once.render()


def test_final_merge_requires_version() -> None:
    document = parse_changelog(EXISTING_CHANGELOG, MARKDOWN_STYLE)
    with pytest.raises(ValueError):
        merge(document, _notes("feat: a"), None, final=True)


def test_missing_changelog_gets_default_preamble() -> None:
    text = merge_changelog_text("", _notes("fix: a"), None, final=False)
    assert text.startswith("# Changelog\n\n")
    assert "## Unreleased\n\n### Fixes\n\n- fix: a (#10) by @dev\n" in text


def test_latest_version_picks_highest() -> None:
    document = parse_changelog(EXISTING_CHANGELOG, MARKDOWN_STYLE)
    assert str(latest_version(document)) == "1.3.0"


def test_readme_changelog_final_merge() -> None:
    text = merge_readme_changelog(README, _notes("feat: new thing"), "1.4.0", final=True)
    section = get_section(text, "Changelog")

    assert section is not None
    assert section.startswith("= 1.4.0 =\n\n**Features**\n\n* feat: new thing (#10) by @dev")
    assert section.index("= 1.4.0 =") < section.index("= 1.3.0 =")
    assert "== Description ==\n\nDoes things." in text


def test_readme_changelog_is_appended_when_missing() -> None:
    readme = "=== Plugin ===\nStable tag: 1.0.0\n"
    text = merge_readme_changelog(readme, _notes("fix: a"), "1.0.1", final=True)
    assert text.endswith("== Changelog ==\n\n= 1.0.1 =\n\n**Fixes**\n\n* fix: a (#10) by @dev\n")


def test_upgrade_notice_skips_releases_without_breaking_changes() -> None:
    assert merge_upgrade_notice(README, _notes("feat: safe"), "1.4.0", final=True) == README


def test_upgrade_notice_lists_only_breaking_entries() -> None:
    notes = _notes("feat!: drop PHP 7", "fix: small")
    text = merge_upgrade_notice(README, notes, "2.0.0", final=True)
    section = get_section(text, "Upgrade Notice")

    assert section is not None
    assert section.startswith("= 2.0.0 =")
    assert "* feat!: drop PHP 7 (#10) by @dev" in section
    assert "fix: small" not in section
    document = parse_changelog(section, UPGRADE_NOTICE_STYLE)
    assert merge(document, notes, "2.0.0", final=True) is document
