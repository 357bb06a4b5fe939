"""Changeset record store: one Markdown file with YAML front matter per PR."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml

from .classify import classify
from .utils import coerce_datetime, log_warning, slugify

CHANGESET_SUFFIX = ".md"
KNOWN_KEYS = ("pr", "title", "author", "branch", "source", "target", "type", "breaking", "created")
# Written for human readers only; recomputed on read.
DERIVED_KEYS = ("type", "breaking")


class ChangesetError(ValueError):
    """Raised when a changeset file cannot be parsed or validated."""


@dataclass
class ChangesetRecord:
    """A single merged change, keyed by PR number and target branch."""

    pr: int
    title: str
    target: str
    author: str = ""
    source: str = ""
    branch: str = ""
    body: str = ""
    change_type: str = "other"
    breaking: bool = False
    created: Optional[datetime] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.branch:
            self.branch = self.target
        self.body = self.body.strip()

    @classmethod
    def create(
        cls,
        *,
        pr: int,
        title: str,
        target: str,
        author: str = "",
        source: str = "",
        branch: str = "",
        body: str = "",
        created: Optional[datetime] = None,
        extra: Optional[dict[str, Any]] = None,
    ) -> "ChangesetRecord":
        """Build a record, letting the classifier fill in the category."""
        classification = classify(title, body)
        return cls(
            pr=pr,
            title=title.strip(),
            target=target,
            author=author.strip().lstrip("@"),
            source=source,
            branch=branch,
            body=body,
            change_type=classification.change_type,
            breaking=classification.breaking,
            created=created,
            extra=dict(extra or {}),
        )

    @property
    def record_id(self) -> str:
        return changeset_id(self.target, self.pr)


def changeset_id(target: str, pr: int) -> str:
    """Return the stable identifier for a PR's changeset on a branch."""
    branch_slug = slugify(target) or "unknown"
    return f"{branch_slug}-pr-{pr}"


def changeset_directory(project_root: Path, directory: str | Path = ".changesets") -> Path:
    """Return the directory holding changeset files."""
    return project_root / directory


def changeset_path(directory: Path, target: str, pr: int) -> Path:
    return directory / f"{changeset_id(target, pr)}{CHANGESET_SUFFIX}"


class _IndentedDumper(yaml.SafeDumper):
    """Custom YAML dumper that indents list items under their parent key."""

    def increase_indent(self, flow: bool = False, indentless: bool = False) -> None:
        return super().increase_indent(flow=flow, indentless=False)


def format_frontmatter(metadata: dict[str, Any]) -> str:
    """Render metadata as YAML front matter."""
    cleaned = {key: value for key, value in metadata.items() if value is not None}
    yaml_block = yaml.dump(
        cleaned,
        Dumper=_IndentedDumper,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=1000,
        indent=2,
    ).strip()
    return f"---\n{yaml_block}\n---\n"


def _record_metadata(record: ChangesetRecord, created: datetime) -> dict[str, Any]:
    metadata: dict[str, Any] = {
        "pr": record.pr,
        "title": record.title,
        "author": record.author or None,
        "branch": record.branch,
        "source": record.source or None,
        "target": record.target,
        "type": record.change_type,
        "breaking": record.breaking,
        "created": created.isoformat(),
    }
    for key, value in record.extra.items():
        if key not in metadata:
            metadata[key] = value
    return metadata


def write_changeset(directory: Path, record: ChangesetRecord) -> Path:
    """Write a changeset and return its path.

    The file name depends only on the target branch and PR number, so
    regenerating a changeset for the same PR overwrites the earlier file.
    The original creation time is kept when the file already exists. The
    record passed in is not modified.
    """
    directory.mkdir(parents=True, exist_ok=True)
    path = changeset_path(directory, record.target, record.pr)
    created = record.created
    if created is None and path.exists():
        try:
            created = read_changeset(path).created
        except ChangesetError:
            created = None
    if created is None:
        created = datetime.now(timezone.utc)
    frontmatter = format_frontmatter(_record_metadata(record, created))
    with path.open("w", encoding="utf-8") as handle:
        handle.write(frontmatter)
        if record.body:
            handle.write("\n" + record.body + "\n")
    return path


def _split_frontmatter(content: str, path: Path) -> tuple[dict[str, Any], str]:
    content = content.replace("\r\n", "\n")
    if not content.startswith("---\n"):
        raise ChangesetError(f"Changeset {path.name} is missing YAML front matter")
    remainder = content[len("---\n") :]
    if remainder.startswith("---\n"):
        frontmatter, body = "", remainder[len("---\n") :]
    else:
        frontmatter, separator, body = remainder.partition("\n---\n")
        if not separator:
            if remainder.rstrip().endswith("\n---") or remainder.rstrip() == "---":
                frontmatter, body = remainder.rstrip()[: -len("---")], ""
            else:
                raise ChangesetError(f"Changeset {path.name} has unterminated front matter")
    try:
        metadata = yaml.safe_load(frontmatter) or {}
    except yaml.YAMLError as exc:
        raise ChangesetError(
            f"Failed to parse YAML front matter in '{path.name}': {exc}\n\n"
            "Hint: If your title contains colons, wrap it in quotes."
        ) from exc
    if not isinstance(metadata, dict):
        raise ChangesetError(f"Front matter in '{path.name}' must be a mapping")
    return metadata, body


def _coerce_pr(value: Any, path: Path) -> int:
    if isinstance(value, bool):
        raise ChangesetError(f"Changeset {path.name} has an invalid 'pr' value: {value!r}")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and value.strip().lstrip("#").isdigit():
        number = int(value.strip().lstrip("#"))
    else:
        raise ChangesetError(f"Changeset {path.name} has an invalid 'pr' value: {value!r}")
    if number <= 0:
        raise ChangesetError(f"Changeset {path.name} has an invalid 'pr' value: {value!r}")
    return number


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def read_changeset(path: Path) -> ChangesetRecord:
    """Parse a changeset file, validating its front matter."""
    metadata, body = _split_frontmatter(path.read_text(encoding="utf-8"), path)

    if "pr" not in metadata:
        raise ChangesetError(f"Changeset {path.name} is missing required 'pr'")
    pr = _coerce_pr(metadata["pr"], path)
    title = _coerce_text(metadata.get("title"))
    if not title:
        raise ChangesetError(f"Changeset {path.name} is missing required 'title'")
    target = _coerce_text(metadata.get("target")) or _coerce_text(metadata.get("branch"))
    if not target:
        raise ChangesetError(f"Changeset {path.name} is missing 'target' and 'branch'")

    raw_created = metadata.get("created")
    created = coerce_datetime(raw_created)
    if raw_created is not None and created is None and _coerce_text(raw_created):
        raise ChangesetError(f"Changeset {path.name} has an invalid 'created' value")

    extra = {key: value for key, value in metadata.items() if key not in KNOWN_KEYS}
    return ChangesetRecord.create(
        pr=pr,
        title=title,
        target=target,
        author=_coerce_text(metadata.get("author")),
        source=_coerce_text(metadata.get("source")),
        branch=_coerce_text(metadata.get("branch")),
        body=body,
        created=created,
        extra=extra,
    )


@dataclass
class ChangesetIssue:
    """A changeset file that could not be read."""

    path: Path
    message: str


def iter_changeset_paths(directory: Path) -> Iterable[Path]:
    if not directory.exists():
        return []
    return sorted(
        path for path in directory.glob(f"*{CHANGESET_SUFFIX}") if path.name.lower() != "readme.md"
    )


def read_all_with_issues(
    directory: Path, target: Optional[str] = None
) -> tuple[list[ChangesetRecord], list[ChangesetIssue]]:
    """Read every changeset, collecting unreadable files instead of failing."""
    records: list[ChangesetRecord] = []
    issues: list[ChangesetIssue] = []
    for path in iter_changeset_paths(directory):
        try:
            record = read_changeset(path)
        except (ChangesetError, OSError, UnicodeDecodeError) as exc:
            issues.append(ChangesetIssue(path=path, message=str(exc)))
            continue
        if target is not None and record.target != target:
            continue
        records.append(record)
    return records, issues


def read_all(directory: Path, target: Optional[str] = None) -> list[ChangesetRecord]:
    """Return all readable changesets, skipping malformed files with a warning."""
    records, issues = read_all_with_issues(directory, target)
    for issue in issues:
        log_warning(f"skipping malformed changeset {issue.path.name}: {issue.message}")
    return records


def delete_changesets(directory: Path) -> list[Path]:
    """Delete consumed changeset files and return the removed paths."""
    removed: list[Path] = []
    for path in iter_changeset_paths(directory):
        path.unlink()
        removed.append(path)
    return removed
