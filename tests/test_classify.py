"""Tests for change classification."""

from __future__ import annotations

import pytest

from changeset_release.classify import (
    Classification,
    classify,
    conventional_tag,
    has_breaking_marker,
)


@pytest.mark.parametrize(
    ("title", "expected"),
    [
        ("feat: add export", "feature"),
        ("feature(api): add endpoint", "feature"),
        ("fix: handle empty input", "fix"),
        ("hotfix: patch crash", "fix"),
        ("docs: update readme", "docs"),
        ("chore(deps): bump requests", "chore"),
        ("refactor: split module", "chore"),
        ("ci: cache dependencies", "chore"),
        ("Improve things", "other"),
        ("wip: unknown prefix", "other"),
    ],
)
def test_classify_maps_conventional_prefixes(title: str, expected: str) -> None:
    result = classify(title)
    assert result.change_type == expected
    assert result.breaking is False


def test_bang_suffix_keeps_type_and_marks_breaking() -> None:
    assert classify("feat!: drop legacy API") == Classification("feature", True)
    assert classify("fix(api)!: change status codes") == Classification("fix", True)


def test_breaking_heading_in_body_marks_breaking() -> None:
    body = "Some context.\n\n## Breaking Changes\n\n- The `foo` option is gone."
    result = classify("feat: new options", body)
    assert result == Classification("feature", True)


def test_breaking_footer_without_prefix_yields_breaking_type() -> None:
    body = "Rework storage.\n\nBREAKING CHANGE: the cache format changed."
    assert classify("Rework storage", body) == Classification("breaking", True)


def test_free_text_mention_is_not_breaking() -> None:
    body = "This might break some setups, but only in unusual cases."
    assert has_breaking_marker("fix: tighten validation", body) is False
    assert classify("fix: tighten validation", body).breaking is False


def test_conventional_tag_is_lowercased() -> None:
    assert conventional_tag("FEAT(ui): shiny") == "feat"
    assert conventional_tag("no prefix here") is None
