"""Helpers for planning and applying version string updates in project files."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional, Sequence

from . import readme

VersionFileKind = Literal["package_json", "php", "readme"]

_DEFINE_PATTERN_TEMPLATE = (
    r"(?P<prefix>define\(\s*['\"]{name}['\"]\s*,\s*)(?P<quote>['\"])(?P<value>[^'\"]*)(?P=quote)"
)
_ANY_VERSION_DEFINE_PATTERN = re.compile(
    _DEFINE_PATTERN_TEMPLATE.format(name=r"[A-Z0-9_]*VERSION")
)
_PLUGIN_HEADER_PATTERN = re.compile(
    r"^(?P<prefix>[ \t/*#@]*Version:[ \t]*)(?P<value>[0-9][^\s]*)", re.MULTILINE
)


class VersionFileError(ValueError):
    """Raised when a version file cannot be read or updated."""


@dataclass(frozen=True)
class VersionFileUpdate:
    """In-memory representation of one file update."""

    path: Path
    old_version: str | None
    new_version: str
    content: str


def strip_release_prefix(version: str) -> str:
    """Convert release labels like v1.2.3 into plain version strings."""
    if version.startswith(("v", "V")):
        return version[1:]
    return version


def version_file_kind(path: Path) -> VersionFileKind:
    lowered = path.name.lower()
    if lowered == "package.json":
        return "package_json"
    if lowered.endswith(".php"):
        return "php"
    if lowered == "readme.txt":
        return "readme"
    raise VersionFileError(
        f"Unsupported version file {path}. Supported: package.json, *.php, readme.txt."
    )


def _define_pattern(constant: Optional[str]) -> re.Pattern[str]:
    if constant:
        return re.compile(_DEFINE_PATTERN_TEMPLATE.format(name=re.escape(constant)))
    return _ANY_VERSION_DEFINE_PATTERN


def _update_package_json(path: Path, content: str, new_version: str) -> tuple[str, str | None]:
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as exc:
        raise VersionFileError(f"Cannot parse JSON in {path}: {exc.msg}") from exc
    if not isinstance(parsed, dict):
        raise VersionFileError(f"Expected a JSON object in {path}.")
    old_value = parsed.get("version")
    if old_value is not None and not isinstance(old_value, str):
        raise VersionFileError(
            f"Expected 'version' in {path} to be a string, got {type(old_value).__name__}."
        )
    if old_value == new_version:
        return content, old_value
    parsed["version"] = new_version
    return json.dumps(parsed, indent=2, ensure_ascii=False) + "\n", old_value


def _update_php(
    path: Path, content: str, new_version: str, constant: Optional[str]
) -> tuple[str, str | None]:
    old_version: str | None = None
    updated = content
    define_pattern = _define_pattern(constant)
    define_match = define_pattern.search(updated)
    if define_match is not None:
        old_version = define_match.group("value")
        updated = define_pattern.sub(
            lambda m: f"{m.group('prefix')}{m.group('quote')}{new_version}{m.group('quote')}",
            updated,
            count=1,
        )
    header_match = _PLUGIN_HEADER_PATTERN.search(updated)
    if header_match is not None:
        old_version = old_version or header_match.group("value")
        updated = _PLUGIN_HEADER_PATTERN.sub(
            lambda m: f"{m.group('prefix')}{new_version}", updated, count=1
        )
    if define_match is None and header_match is None:
        raise VersionFileError(f"{path} has no version constant or 'Version:' plugin header.")
    return updated, old_version


def _update_readme(path: Path, content: str, new_version: str) -> tuple[str, str | None]:
    try:
        return readme.update_stable_tag(content, new_version), readme.read_stable_tag(content)
    except ValueError as exc:
        raise VersionFileError(f"{path}: {exc}") from exc


def read_file_version(path: Path, *, constant: Optional[str] = None) -> Optional[str]:
    """Return the version currently recorded in a version file."""
    content = path.read_text(encoding="utf-8")
    kind = version_file_kind(path)
    if kind == "package_json":
        try:
            value = json.loads(content).get("version")
        except (json.JSONDecodeError, AttributeError) as exc:
            raise VersionFileError(f"Cannot read a version from {path}.") from exc
        return value if isinstance(value, str) else None
    if kind == "php":
        match = _define_pattern(constant).search(content) or _PLUGIN_HEADER_PATTERN.search(
            content
        )
        return match.group("value") if match else None
    return readme.read_stable_tag(content)


def resolve_version_file_targets(project_root: Path, paths: Sequence[str]) -> list[Path]:
    """Return the configured version files that exist, in configured order."""
    targets: list[Path] = []
    seen: set[Path] = set()
    for raw_path in paths:
        path = Path(raw_path).expanduser()
        if not path.is_absolute():
            path = project_root / path
        path = path.resolve()
        if path in seen or not path.is_file():
            continue
        seen.add(path)
        targets.append(path)
    return targets


def current_version(
    project_root: Path, paths: Sequence[str], *, constant: Optional[str] = None
) -> Optional[str]:
    """Return the version from the first configured file that records one."""
    for path in resolve_version_file_targets(project_root, paths):
        value = read_file_version(path, constant=constant)
        if value:
            return value
    return None


def plan_version_file_updates(
    project_root: Path,
    release_version: str,
    paths: Sequence[str],
    *,
    constant: Optional[str] = None,
) -> list[VersionFileUpdate]:
    """Plan version updates for the configured files without writing anything."""
    new_version = strip_release_prefix(release_version)
    updates: list[VersionFileUpdate] = []
    for path in resolve_version_file_targets(project_root, paths):
        content = path.read_text(encoding="utf-8")
        kind = version_file_kind(path)
        if kind == "package_json":
            updated, old_version = _update_package_json(path, content, new_version)
        elif kind == "php":
            updated, old_version = _update_php(path, content, new_version, constant)
        else:
            updated, old_version = _update_readme(path, content, new_version)
        if updated == content:
            continue
        updates.append(
            VersionFileUpdate(
                path=path,
                old_version=old_version,
                new_version=new_version,
                content=updated,
            )
        )
    return updates


def apply_version_file_updates(updates: Sequence[VersionFileUpdate]) -> None:
    """Write planned version file updates to disk."""
    for update in updates:
        update.path.write_text(update.content, encoding="utf-8")
