"""Helpers for WordPress-style `readme.txt` files."""

from __future__ import annotations

import re
from typing import Optional

_SECTION_PATTERN = re.compile(r"^==\s*(?P<name>[^=].*?)\s*==\s*$")
_STABLE_TAG_PATTERN = re.compile(
    r"^(?P<prefix>Stable tag:[ \t]*)(?P<value>\S*)(?P<suffix>[ \t]*)$", re.MULTILINE
)


def _section_bounds(lines: list[str], name: str) -> Optional[tuple[int, int]]:
    """Return the (heading index, end index) of a `== name ==` section."""
    wanted = name.strip().lower()
    start: Optional[int] = None
    for index, line in enumerate(lines):
        match = _SECTION_PATTERN.match(line.strip())
        if match is None:
            continue
        if start is not None:
            return start, index
        if match.group("name").strip().lower() == wanted:
            start = index
    if start is None:
        return None
    return start, len(lines)


def get_section(text: str, name: str) -> Optional[str]:
    """Return the body of a `== name ==` section, or None when absent."""
    lines = text.splitlines()
    bounds = _section_bounds(lines, name)
    if bounds is None:
        return None
    start, end = bounds
    return "\n".join(lines[start + 1 : end]).strip("\n")


def replace_section(text: str, name: str, body: str) -> str:
    """Replace the body of a `== name ==` section, appending the section if missing."""
    lines = text.splitlines()
    new_body = body.strip("\n")
    bounds = _section_bounds(lines, name)
    if bounds is None:
        head = text.rstrip("\n")
        prefix = f"{head}\n\n" if head else ""
        return f"{prefix}== {name} ==\n\n{new_body}\n"
    start, end = bounds
    before = lines[: start + 1]
    after = lines[end:]
    block = [""] + (new_body.splitlines() if new_body else [])
    if after:
        block.append("")
    result = "\n".join(before + block + after)
    return result.rstrip("\n") + "\n"


def read_stable_tag(text: str) -> Optional[str]:
    match = _STABLE_TAG_PATTERN.search(text)
    if match is None:
        return None
    return match.group("value") or None


def update_stable_tag(text: str, version: str) -> str:
    """Return readme text with the `Stable tag:` header set to `version`."""
    if _STABLE_TAG_PATTERN.search(text) is None:
        raise ValueError("readme has no 'Stable tag:' header")
    return _STABLE_TAG_PATTERN.sub(
        lambda match: f"{match.group('prefix')}{version}{match.group('suffix')}", text, count=1
    )
