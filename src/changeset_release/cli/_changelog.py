"""Commands that merge release notes into CHANGELOG.md and readme.txt."""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Optional

import click

from ..changelog import (
    MARKDOWN_STYLE,
    merge_changelog_text,
    merge_readme_changelog,
    merge_upgrade_notice,
    parse_changelog,
)
from ..notes import ReleaseNotes, Target, aggregate
from ..version_files import strip_release_prefix
from ..utils import log_info, log_success, log_warning
from ._core import CLIContext, _read_notes_file

__all__ = [
    "update_changelog",
    "update_changelog_cmd",
    "update_changelogs",
    "update_changelogs_cmd",
    "update_upgrade_notice",
    "update_upgrade_notice_cmd",
]


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8") if path.exists() else ""


def _write_if_changed(path: Path, before: str, after: str) -> bool:
    if before == after:
        log_info(f"{path.name} is already up to date.")
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(after, encoding="utf-8")
    log_success(f"updated {path.name}.")
    return True


def _coerce_date(value: Optional[datetime | date]) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    return value


def _warn_if_recorded(path: Path, text: str, version: str) -> None:
    if parse_changelog(text, MARKDOWN_STYLE).has_version(version):
        log_warning(f"{path.name} already has a section for {version}; leaving it unchanged.")


def _require_notes(notes: ReleaseNotes, version: str) -> None:
    if notes.is_empty:
        raise click.ClickException(
            f"No changes to release for {version}; refusing to record an empty version section."
        )


def update_changelog(
    ctx: CLIContext,
    *,
    version: str,
    notes: ReleaseNotes,
    release_date: Optional[date] = None,
) -> bool:
    """Record a released version in CHANGELOG.md."""
    version = strip_release_prefix(version)
    _require_notes(notes, version)
    path = ctx.changelog_path
    text = _read_text(path)
    _warn_if_recorded(path, text, version)
    updated = merge_changelog_text(text, notes, version, final=True, release_date=release_date)
    return _write_if_changed(path, text, updated)


@click.command("update-changelog")
@click.option("--version", "version", required=True, help="Released version.")
@click.option(
    "--notes-file",
    type=click.Path(path_type=Path, dir_okay=False, exists=True),
    required=True,
    help="Release notes written by generate-release-notes.",
)
@click.option(
    "--date",
    "release_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Release date (YYYY-MM-DD). Defaults to today.",
)
@click.pass_obj
def update_changelog_cmd(
    ctx: CLIContext,
    version: str,
    notes_file: Path,
    release_date: Optional[datetime],
) -> None:
    """Add a frozen version section to CHANGELOG.md."""
    ctx.ensure_config()
    update_changelog(
        ctx,
        version=version,
        notes=_read_notes_file(notes_file),
        release_date=_coerce_date(release_date),
    )


def update_changelogs(
    ctx: CLIContext,
    *,
    version: Optional[str] = None,
    notes: Optional[ReleaseNotes] = None,
    milestone: Optional[str] = None,
    release_date: Optional[date] = None,
) -> list[Path]:
    """Merge notes into CHANGELOG.md and the readme changelog.

    Without a version the notes replace the Unreleased sections; with one
    they are recorded as a frozen release. Returns the files that changed.
    """
    config = ctx.ensure_config()
    if notes is None:
        if milestone:
            target = Target.milestone(config.milestone_branch(milestone), config.develop_branch)
        elif version:
            target = Target.everything(primary=config.develop_branch)
        else:
            target = Target.branch(config.develop_branch)
        notes = aggregate(ctx.load_records(), target)

    final = version is not None
    version = strip_release_prefix(version) if version else None
    if version:
        _require_notes(notes, version)
    changed: list[Path] = []

    changelog_path = ctx.changelog_path
    text = _read_text(changelog_path)
    if version:
        _warn_if_recorded(changelog_path, text, version)
    updated = merge_changelog_text(text, notes, version, final=final, release_date=release_date)
    if _write_if_changed(changelog_path, text, updated):
        changed.append(changelog_path)

    readme_path = ctx.readme_path
    if not readme_path.exists():
        log_info(f"no {readme_path.name} found; skipping the readme changelog.")
        return changed
    readme_text = readme_path.read_text(encoding="utf-8")
    readme_updated = merge_readme_changelog(
        readme_text, notes, version, final=final, release_date=release_date
    )
    if _write_if_changed(readme_path, readme_text, readme_updated):
        changed.append(readme_path)
    return changed


@click.command("update-changelogs")
@click.option("--version", "version", help="Released version; omit to update Unreleased.")
@click.option(
    "--notes-file",
    type=click.Path(path_type=Path, dir_okay=False, exists=True),
    help="Release notes file; defaults to aggregating pending changesets.",
)
@click.option("--milestone", help="Aggregate develop plus the given milestone branch.")
@click.option(
    "--date",
    "release_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Release date (YYYY-MM-DD). Defaults to today.",
)
@click.pass_obj
def update_changelogs_cmd(
    ctx: CLIContext,
    version: Optional[str],
    notes_file: Optional[Path],
    milestone: Optional[str],
    release_date: Optional[datetime],
) -> None:
    """Update CHANGELOG.md and the readme changelog."""
    ctx.ensure_config()
    update_changelogs(
        ctx,
        version=version,
        notes=_read_notes_file(notes_file) if notes_file else None,
        milestone=milestone,
        release_date=_coerce_date(release_date),
    )


def update_upgrade_notice(
    ctx: CLIContext,
    *,
    notes: ReleaseNotes,
    version: Optional[str] = None,
) -> bool:
    """Record breaking changes in the readme upgrade notice."""
    ctx.ensure_config()
    path = ctx.readme_path
    if not path.exists():
        raise click.ClickException(f"Readme not found: {path}")
    if not notes.has_breaking:
        log_info("no breaking changes; upgrade notice left unchanged.")
        return False
    text = path.read_text(encoding="utf-8")
    updated = merge_upgrade_notice(
        text,
        notes,
        strip_release_prefix(version) if version else None,
        final=version is not None,
    )
    return _write_if_changed(path, text, updated)


@click.command("update-upgrade-notice")
@click.option("--version", "version", help="Released version; omit to update Unreleased.")
@click.option(
    "--notes-file",
    type=click.Path(path_type=Path, dir_okay=False, exists=True),
    required=True,
    help="Release notes written by generate-release-notes.",
)
@click.pass_obj
def update_upgrade_notice_cmd(ctx: CLIContext, version: Optional[str], notes_file: Path) -> None:
    """Add breaking changes to the readme upgrade notice."""
    update_upgrade_notice(ctx, notes=_read_notes_file(notes_file), version=version)
