"""Tests for release note aggregation and rendering."""

from __future__ import annotations

import json
from datetime import datetime, timezone

from changeset_release.changesets import ChangesetRecord
from changeset_release.notes import (
    PLACEHOLDER,
    PR_BODY_DISCLAIMER,
    Target,
    aggregate,
    extract_pr_body_notes,
    parse_notes,
    render_pr_body,
    replace_pr_body_notes,
)


def _record(
    pr: int,
    title: str,
    target: str = "develop",
    author: str = "dev",
    body: str = "",
    created: datetime | None = None,
) -> ChangesetRecord:
    return ChangesetRecord.create(
        pr=pr, title=title, target=target, author=author, body=body, created=created
    )


def test_aggregate_groups_and_orders_sections() -> None:
    records = [
        _record(14, "chore: bump deps"),
        _record(12, "fix: handle empty cart", author="bob"),
        _record(11, "feat: add export", author="alice"),
        _record(13, "feat!: drop legacy API", author="carol"),
        _record(15, "Tweak wording"),
    ]
    notes = aggregate(records, Target.branch("develop"))

    assert notes.render() == (
        "### Breaking Changes\n\n"
        "- feat!: drop legacy API (#13) by @carol\n\n"
        "### Features\n\n"
        "- feat: add export (#11) by @alice\n\n"
        "### Fixes\n\n"
        "- fix: handle empty cart (#12) by @bob\n\n"
        "### Chores\n\n"
        "- chore: bump deps (#14) by @dev\n\n"
        "### Other Changes\n\n"
        "- Tweak wording (#15) by @dev"
    )


def test_entries_are_sorted_by_pr_and_rendering_is_deterministic() -> None:
    records = [_record(pr, f"fix: issue {pr}") for pr in (30, 4, 17)]
    first = aggregate(records, Target.branch("develop")).render()
    second = aggregate(list(reversed(records)), Target.branch("develop")).render()

    assert first == second
    assert [entry.pr for entry in aggregate(records, Target.branch("develop")).entries()] == [
        4,
        17,
        30,
    ]


def test_empty_selection_renders_placeholder() -> None:
    notes = aggregate([_record(1, "feat: x", target="other")], Target.branch("develop"))
    assert notes.is_empty
    assert notes.render() == PLACEHOLDER


def test_milestone_target_includes_develop_and_milestone() -> None:
    records = [
        _record(1, "feat: on develop"),
        _record(2, "fix: on milestone", target="milestone/2.0"),
        _record(3, "fix: elsewhere", target="milestone/3.0"),
    ]
    notes = aggregate(records, Target.milestone("milestone/2.0", "develop"))
    assert [entry.pr for entry in notes.entries()] == [1, 2]


def test_duplicate_pr_prefers_primary_branch() -> None:
    older = datetime(2026, 1, 1, tzinfo=timezone.utc)
    newer = datetime(2026, 2, 1, tzinfo=timezone.utc)
    records = [
        _record(7, "feat: milestone wording", target="milestone/2.0", created=newer),
        _record(7, "feat: develop wording", target="develop", created=older),
    ]
    notes = aggregate(records, Target.milestone("milestone/2.0", "develop"))

    assert [entry.title for entry in notes.entries()] == ["feat: develop wording"]


def test_duplicate_pr_without_primary_prefers_newest() -> None:
    older = datetime(2026, 1, 1, tzinfo=timezone.utc)
    newer = datetime(2026, 2, 1, tzinfo=timezone.utc)
    records = [
        _record(7, "feat: old", target="milestone/1.0", created=older),
        _record(7, "feat: new", target="milestone/2.0", created=newer),
    ]
    notes = aggregate(records, Target.everything())
    assert [entry.title for entry in notes.entries()] == ["feat: new"]


def test_parse_notes_reads_rendered_markdown() -> None:
    records = [
        _record(5, "feat: a", author="alice"),
        _record(6, "fix!: b", author="bob"),
    ]
    notes = aggregate(records, Target.branch("develop"))
    parsed = parse_notes(notes.render())

    assert parsed.render() == notes.render()
    assert parsed.has_breaking


def test_parse_notes_ignores_placeholder() -> None:
    assert parse_notes(PLACEHOLDER).is_empty


def test_pr_body_embeds_notes_and_disclaimer() -> None:
    notes = aggregate([_record(1, "feat: a")], Target.branch("develop"))
    body = render_pr_body(notes)

    assert body.startswith("## Upcoming Changes\n\n### Features")
    assert body.rstrip().endswith(PR_BODY_DISCLAIMER)
    assert extract_pr_body_notes(body) == notes.render()
    assert extract_pr_body_notes("unrelated body") == ""


def test_replace_pr_body_notes_keeps_surrounding_text() -> None:
    old = aggregate([], Target.everything())
    new = aggregate([_record(7, "fix: crash")], Target.everything())
    body = "Please review.\n\n" + render_pr_body(old) + "\nDeploy on Friday.\n"

    updated = replace_pr_body_notes(body, new)

    assert updated.startswith("Please review.\n\n## Upcoming Changes\n\n### Fixes")
    assert updated.endswith(PR_BODY_DISCLAIMER + "\n\nDeploy on Friday.\n")
    assert extract_pr_body_notes(updated) == new.render()
    assert replace_pr_body_notes("hand written", new) == render_pr_body(new)


def test_to_json_lists_sections() -> None:
    notes = aggregate([_record(2, "docs: guide")], Target.branch("develop"))
    payload = json.loads(notes.to_json())

    assert payload["empty"] is False
    assert payload["sections"][0]["title"] == "Documentation"
    assert payload["sections"][0]["entries"] == [{"pr": 2, "title": "docs: guide", "author": "dev"}]
