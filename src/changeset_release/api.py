"""Python-friendly facade for invoking changeset-release functionality."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Optional

from packaging.version import Version

from .cli import (
    CLIContext,
    bump_version,
    create_changeset,
    create_cli_context,
    render_release_notes,
    run_analyze,
    run_prepare_release,
    run_publish_release,
    sync_release_pr,
    update_changelog,
    update_changelogs,
    update_readme,
    update_upgrade_notice,
)
from .cli._notes import NotesFormat
from .notes import ReleaseNotes, parse_notes
from .validate import ChangesetAnalysis


class ReleaseManager:
    """High-level helper that mirrors the CLI commands for Python callers."""

    def __init__(
        self,
        *,
        root: Path | str | None = None,
        config: Path | str | None = None,
        debug: bool = False,
    ) -> None:
        resolved_root = Path(root) if root is not None else None
        resolved_config = Path(config) if config is not None else None
        self._ctx = create_cli_context(
            root=resolved_root,
            config=resolved_config,
            debug=debug,
        )

    @property
    def context(self) -> CLIContext:
        """Expose the underlying CLIContext for advanced scenarios."""

        return self._ctx

    def generate_changeset(
        self,
        *,
        pr: int,
        title: Optional[str] = None,
        author: Optional[str] = None,
        body: Optional[str] = None,
        branch: Optional[str] = None,
        source: Optional[str] = None,
        target: Optional[str] = None,
        fetch: bool = False,
    ) -> Path:
        """Record a changeset and return the resulting file path."""

        return create_changeset(
            self._ctx,
            pr=pr,
            title=title,
            author=author,
            body=body,
            branch=branch,
            source=source,
            target=target,
            fetch=fetch,
        )

    def analyze(self, *, branch: Optional[str] = None) -> ChangesetAnalysis:
        return run_analyze(self._ctx, branch=branch, as_json=False)

    def release_notes(
        self,
        *,
        branch: Optional[str] = None,
        milestone: Optional[str] = None,
        select_all: bool = False,
        output_format: NotesFormat = "markdown",
    ) -> str:
        """Return rendered release notes for the selected changesets.

        Args:
            branch: Aggregate changesets targeting this branch.
            milestone: Aggregate develop plus the milestone branch.
            select_all: Aggregate every pending changeset.
            output_format: "markdown", "pr-body", or "json".
        """

        return render_release_notes(
            self._ctx,
            branch=branch,
            milestone=milestone,
            select_all=select_all,
            output_format=output_format,
        )

    def bump_version(self, *, bump_type: str = "auto", dry_run: bool = False) -> Version:
        return bump_version(self._ctx, bump_type=bump_type, dry_run=dry_run)

    def update_changelog(
        self,
        *,
        version: str,
        notes: ReleaseNotes | str,
        release_date: Optional[date] = None,
    ) -> bool:
        return update_changelog(
            self._ctx,
            version=version,
            notes=_coerce_notes(notes),
            release_date=release_date,
        )

    def update_changelogs(
        self,
        *,
        version: Optional[str] = None,
        notes: ReleaseNotes | str | None = None,
        milestone: Optional[str] = None,
        release_date: Optional[date] = None,
    ) -> list[Path]:
        return update_changelogs(
            self._ctx,
            version=version,
            notes=_coerce_notes(notes) if notes is not None else None,
            milestone=milestone,
            release_date=release_date,
        )

    def update_readme(self, *, version: Optional[str] = None) -> bool:
        return update_readme(self._ctx, version=version)

    def update_upgrade_notice(
        self, *, notes: ReleaseNotes | str, version: Optional[str] = None
    ) -> bool:
        return update_upgrade_notice(self._ctx, notes=_coerce_notes(notes), version=version)

    def sync_release_pr(self, *, dry_run: bool = False) -> bool:
        return sync_release_pr(self._ctx, dry_run=dry_run)

    def prepare_release(
        self,
        *,
        bump_type: str = "auto",
        commit: bool = False,
        notes_output: Optional[Path] = None,
    ) -> Version:
        """Run the whole release preparation and return the new version."""

        return run_prepare_release(
            self._ctx, bump_type=bump_type, commit=commit, notes_output=notes_output
        )

    def publish_release(
        self,
        *,
        version: str,
        notes_file: Optional[Path] = None,
        create_tag: bool = False,
        consume: bool = False,
    ) -> list[Path]:
        """Publish a release to GitHub using the same workflow as the CLI."""

        return run_publish_release(
            self._ctx,
            version=version,
            notes_file=notes_file,
            create_tag=create_tag,
            consume=consume,
        )


def _coerce_notes(notes: ReleaseNotes | str) -> ReleaseNotes:
    if isinstance(notes, ReleaseNotes):
        return notes
    return parse_notes(notes)
