"""Compute the next semantic version from pending changesets."""

from __future__ import annotations

from typing import Iterable, Optional

from packaging.version import InvalidVersion, Version

from .changesets import ChangesetRecord

BUMP_TYPES = ("major", "minor", "patch")


class NoChangesError(ValueError):
    """Raised when there is nothing to release."""

    def __init__(self, message: str = "No changesets found; nothing to release.") -> None:
        super().__init__(message)


class VersionOrderError(ValueError):
    """Raised when a computed version does not exceed the last released one."""


def parse_version(value: str) -> Version:
    """Parse a version label such as `1.2.3` or `v1.2.3`."""
    text = value.strip()
    if text.startswith(("v", "V")):
        text = text[1:]
    try:
        return Version(text)
    except InvalidVersion as exc:
        raise ValueError(
            f"'{value}' is not a valid semantic version (expected e.g. 1.2.3 or v1.2.3)."
        ) from exc


def bump_version(base: Version, bump: str) -> Version:
    """Apply a major/minor/patch bump to a version."""
    if bump not in BUMP_TYPES:
        raise ValueError(f"Unknown bump type '{bump}'. Expected one of: {', '.join(BUMP_TYPES)}")
    major, minor, micro = (list(base.release) + [0, 0, 0])[:3]
    if bump == "major":
        major += 1
        minor = 0
        micro = 0
    elif bump == "minor":
        minor += 1
        micro = 0
    else:
        micro += 1
    return Version(f"{major}.{minor}.{micro}")


def required_bump(records: Iterable[ChangesetRecord]) -> Optional[str]:
    """Return the bump implied by the highest-impact record, or None when empty."""
    bump: Optional[str] = None
    for record in records:
        if record.breaking or record.change_type == "breaking":
            return "major"
        if record.change_type == "feature":
            bump = "minor"
        elif bump is None:
            bump = "patch"
    return bump


def resolve(
    records: Iterable[ChangesetRecord],
    last_version: Version | str,
    override: Optional[str] = None,
) -> Version:
    """Return the next version for a batch of records.

    An explicit `override` is applied directly. Otherwise a breaking record
    forces a major bump, a feature a minor bump, and anything else a patch.
    """
    base = parse_version(last_version) if isinstance(last_version, str) else last_version
    if override is not None and override != "auto":
        return bump_version(base, override)
    bump = required_bump(records)
    if bump is None:
        raise NoChangesError()
    return bump_version(base, bump)


def ensure_newer(candidate: Version, recorded: Optional[Version]) -> None:
    """Fail unless `candidate` strictly exceeds the last recorded version."""
    if recorded is not None and candidate <= recorded:
        raise VersionOrderError(
            f"Next version {candidate} must be greater than the last released version {recorded}."
        )
