"""Version bump and readme stable-tag commands."""

from __future__ import annotations

from typing import Optional

import click
from packaging.version import Version

from .. import readme, versions
from ..changelog import parse_changelog
from ..changesets import ChangesetRecord
from ..notes import Target, parse_notes, select_records
from ..version_files import (
    apply_version_file_updates,
    current_version,
    plan_version_file_updates,
    strip_release_prefix,
)
from ..utils import emit_output, log_info, log_success
from ._core import CLIContext

__all__ = [
    "BUMP_CHOICES",
    "base_version",
    "prepared_version",
    "next_release_version",
    "bump_version",
    "bump_version_cmd",
    "update_readme",
    "update_readme_cmd",
]

BUMP_CHOICES = ("auto",) + versions.BUMP_TYPES


def base_version(ctx: CLIContext) -> Version:
    """Return the version the next release builds on.

    The first configured version file wins, then the newest changelog
    section, then 0.0.0 for a project that has never been released.
    """
    config = ctx.ensure_config()
    try:
        recorded = current_version(
            ctx.project_root, config.version_files, constant=config.version_constant
        )
        if recorded:
            return versions.parse_version(recorded)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    return ctx.recorded_version() or Version("0.0.0")


def prepared_version(ctx: CLIContext, records: list[ChangesetRecord]) -> Optional[Version]:
    """Return the current version when it was already prepared from `records`.

    A prepared but unpublished release has a frozen changelog section for
    the current version listing the still pending changesets. Re-running the
    release then reuses that version instead of bumping past it.
    """
    path = ctx.changelog_path
    if not records or not path.exists():
        return None
    current = base_version(ctx)
    section = parse_changelog(path.read_text(encoding="utf-8")).find_version(str(current))
    if section is None:
        return None
    recorded = {entry.pr for entry in parse_notes(section.body).entries()}
    pending = {record.pr for record in records}
    if not pending & recorded:
        return None
    if not pending <= recorded:
        raise click.ClickException(
            f"Release {current} is already prepared but not published; "
            "run publish-release --consume before preparing the next release."
        )
    return current


def next_release_version(ctx: CLIContext, bump_type: str = "auto") -> Version:
    """Resolve the next version from every pending changeset."""
    config = ctx.ensure_config()
    records = select_records(
        ctx.load_records(), Target.everything(primary=config.develop_branch)
    )
    prepared = prepared_version(ctx, records)
    if prepared is not None:
        log_info(f"release {prepared} is already prepared; reusing it.")
        return prepared
    try:
        candidate = versions.resolve(records, base_version(ctx), bump_type)
        versions.ensure_newer(candidate, ctx.recorded_version())
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    return candidate


def bump_version(ctx: CLIContext, *, bump_type: str = "auto", dry_run: bool = False) -> Version:
    """Resolve the next version and write it to the configured version files."""
    config = ctx.ensure_config()
    next_version = next_release_version(ctx, bump_type)
    try:
        updates = plan_version_file_updates(
            ctx.project_root,
            str(next_version),
            config.version_files,
            constant=config.version_constant,
        )
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    if dry_run:
        for update in updates:
            log_info(f"would update {update.path.name}: {update.old_version} -> {update.new_version}")
        return next_version

    apply_version_file_updates(updates)
    for update in updates:
        log_success(f"updated {update.path.name}: {update.old_version} -> {update.new_version}")
    if not updates:
        log_info("no version files needed updating.")
    return next_version


@click.command("bump-version")
@click.option(
    "--type",
    "bump_type",
    type=click.Choice(BUMP_CHOICES),
    default="auto",
    show_default=True,
    help="Force a bump type instead of deriving it from the changesets.",
)
@click.option("--dry-run", is_flag=True, help="Print the next version without writing files.")
@click.pass_obj
def bump_version_cmd(ctx: CLIContext, bump_type: str, dry_run: bool) -> None:
    """Compute the next version and update the version files."""
    emit_output(str(bump_version(ctx, bump_type=bump_type, dry_run=dry_run)))


def update_readme(ctx: CLIContext, *, version: Optional[str] = None) -> bool:
    """Set the readme `Stable tag:` to `version` or to the recorded plugin version."""
    config = ctx.ensure_config()
    path = ctx.readme_path
    if not path.exists():
        raise click.ClickException(f"Readme not found: {path}")

    if version is None:
        readme_file = path.resolve()
        sources = [
            item for item in config.version_files if ctx.resolve_path(item).resolve() != readme_file
        ]
        try:
            version = current_version(
                ctx.project_root, sources, constant=config.version_constant
            )
        except ValueError as exc:
            raise click.ClickException(str(exc)) from exc
        if not version:
            raise click.ClickException(
                "Cannot determine the current version; pass --version explicitly."
            )
    version = strip_release_prefix(version)

    text = path.read_text(encoding="utf-8")
    try:
        updated = readme.update_stable_tag(text, version)
    except ValueError as exc:
        raise click.ClickException(f"{path.name}: {exc}") from exc
    if updated == text:
        log_info(f"{path.name} stable tag is already {version}.")
        return False
    path.write_text(updated, encoding="utf-8")
    log_success(f"set {path.name} stable tag to {version}.")
    return True


@click.command("update-readme")
@click.option("--version", "version", help="Version to record (defaults to the plugin version).")
@click.pass_obj
def update_readme_cmd(ctx: CLIContext, version: Optional[str]) -> None:
    """Sync the readme stable tag with the released version."""
    update_readme(ctx, version=version)
