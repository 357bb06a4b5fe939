"""Release commands: prepare the release commit and publish it on GitHub."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import NoReturn, Optional

import click
from packaging.version import Version
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from .. import readme
from ..changelog import (
    MARKDOWN_STYLE,
    merge_changelog_text,
    merge_readme_changelog,
    merge_upgrade_notice,
    parse_changelog,
)
from ..changesets import delete_changesets
from ..github import GitHubError, publish_release
from ..notes import ReleaseNotes, Target, aggregate
from ..version_files import plan_version_file_updates, strip_release_prefix
from ..utils import (
    console,
    create_annotated_git_tag,
    create_git_commit,
    emit_output,
    has_staged_changes,
    log_info,
    log_success,
    log_warning,
    push_git_ref,
    stage_paths,
)
from ._core import CLIContext
from ._version import BUMP_CHOICES, next_release_version

__all__ = [
    "StepStatus",
    "ReleaseStep",
    "StepTracker",
    "run_prepare_release",
    "prepare_release_cmd",
    "run_publish_release",
    "publish_release_cmd",
]


class StepStatus(Enum):
    """Status of a release workflow step."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ReleaseStep:
    """A single step in the release workflow."""

    name: str
    command: str
    status: StepStatus = StepStatus.PENDING


@dataclass
class StepTracker:
    """Tracks progress through release workflow steps."""

    steps: list[ReleaseStep] = field(default_factory=list)

    def add(self, name: str, command: str) -> None:
        self.steps.append(ReleaseStep(name, command))

    def _set(self, name: str, status: StepStatus) -> None:
        for step in self.steps:
            if step.name == name:
                step.status = status

    def complete(self, name: str) -> None:
        self._set(name, StepStatus.COMPLETED)

    def skip(self, name: str) -> None:
        self._set(name, StepStatus.SKIPPED)

    def fail(self, name: str) -> None:
        self._set(name, StepStatus.FAILED)

    def update_command(self, name: str, command: str) -> None:
        for step in self.steps:
            if step.name == name:
                step.command = command

    @property
    def failed(self) -> Optional[ReleaseStep]:
        for step in self.steps:
            if step.status == StepStatus.FAILED:
                return step
        return None


def _render_release_progress(tracker: StepTracker) -> None:
    """Render release progress summary to stderr on failure."""
    total = len(tracker.steps)
    done = len([s for s in tracker.steps if s.status == StepStatus.COMPLETED])
    progress = f"{done}/{total}"

    lines: list[str] = []
    for step in tracker.steps:
        if step.status == StepStatus.COMPLETED:
            icon = "[green]✔[/green]"
            cmd = f"[dim]{escape(step.command)}[/dim]"
        elif step.status == StepStatus.FAILED:
            icon = "[red]✘[/red]"
            cmd = f"[red]{escape(step.command)}[/red]"
        elif step.status == StepStatus.SKIPPED:
            continue
        else:
            icon = "[dim]○[/dim]"
            cmd = f"[dim]{escape(step.command)}[/dim]"
        lines.append(f"{icon} {cmd}")

    if lines:
        content = Text.from_markup("\n".join(lines))
        console.print(Panel(content, title=f"Release Progress ({progress})", border_style="red"))

    failed = tracker.failed
    if failed is not None:
        console.print()
        console.print("[bold]To retry the failed step, run:[/bold]", highlight=False)
        console.print(f"  {failed.command}", highlight=False, markup=False, soft_wrap=True)


def _fail_step_and_raise(tracker: StepTracker, step_name: str, exc: Exception) -> NoReturn:
    """Mark step as failed, render progress, and raise a CLI error."""
    tracker.fail(step_name)
    _render_release_progress(tracker)
    message = exc.message if isinstance(exc, click.ClickException) else str(exc)
    raise click.ClickException(message) from exc


class _PendingWrites:
    """File contents computed in memory and written only at the end."""

    def __init__(self) -> None:
        self._originals: dict[Path, str] = {}
        self._contents: dict[Path, str] = {}

    def read(self, path: Path) -> str:
        if path in self._contents:
            return self._contents[path]
        if path not in self._originals:
            self._originals[path] = path.read_text(encoding="utf-8") if path.exists() else ""
        return self._originals[path]

    def stage(self, path: Path, content: str) -> None:
        self.read(path)
        self._contents[path] = content

    def changed(self) -> list[Path]:
        return [
            path
            for path, content in self._contents.items()
            if content != self._originals.get(path, "")
        ]

    def flush(self) -> list[Path]:
        written: list[Path] = []
        for path in self.changed():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self._contents[path], encoding="utf-8")
            written.append(path)
        return written


def run_prepare_release(
    ctx: CLIContext,
    *,
    bump_type: str = "auto",
    commit: bool = False,
    notes_output: Optional[Path] = None,
    release_date: Optional[date] = None,
) -> Version:
    """Compute every release file update in memory and write them together.

    Nothing touches the working tree until the version, the version files,
    the changelog, and the readme have all been computed successfully.
    """
    config = ctx.ensure_config()
    tracker = StepTracker()
    tracker.add("resolve", "changeset-release bump-version --dry-run")
    tracker.add("version_files", f"changeset-release bump-version --type {bump_type}")
    tracker.add("changelog", "changeset-release update-changelogs --version <version>")
    tracker.add("readme", "changeset-release update-readme --version <version>")
    tracker.add("write", "write release files")
    if commit:
        tracker.add("commit", 'git commit -m "<message>"')

    pending = _PendingWrites()

    try:
        next_version = next_release_version(ctx, bump_type)
        notes = aggregate(ctx.load_records(), Target.everything(primary=config.develop_branch))
    except (click.ClickException, ValueError) as exc:
        _fail_step_and_raise(tracker, "resolve", exc)
    version = str(next_version)
    tracker.complete("resolve")
    tracker.update_command("version_files", f"changeset-release bump-version --type {bump_type}")
    tracker.update_command("changelog", f"changeset-release update-changelogs --version {version}")
    tracker.update_command("readme", f"changeset-release update-readme --version {version}")
    log_info(f"preparing release {version}.")

    try:
        for update in plan_version_file_updates(
            ctx.project_root, version, config.version_files, constant=config.version_constant
        ):
            pending.stage(update.path, update.content)
    except (ValueError, OSError) as exc:
        _fail_step_and_raise(tracker, "version_files", exc)
    tracker.complete("version_files")

    try:
        changelog_text = pending.read(ctx.changelog_path)
        pending.stage(
            ctx.changelog_path,
            merge_changelog_text(
                changelog_text, notes, version, final=True, release_date=release_date
            ),
        )
    except (ValueError, OSError) as exc:
        _fail_step_and_raise(tracker, "changelog", exc)
    tracker.complete("changelog")

    if ctx.readme_path.exists():
        try:
            text = pending.read(ctx.readme_path)
            text = merge_readme_changelog(text, notes, version, final=True)
            text = merge_upgrade_notice(text, notes, version, final=True)
            if readme.read_stable_tag(text) is not None:
                text = readme.update_stable_tag(text, version)
            pending.stage(ctx.readme_path, text)
        except (ValueError, OSError) as exc:
            _fail_step_and_raise(tracker, "readme", exc)
        tracker.complete("readme")
    else:
        tracker.skip("readme")

    try:
        written = pending.flush()
        if notes_output is not None:
            notes_output.parent.mkdir(parents=True, exist_ok=True)
            notes_output.write_text(notes.render() + "\n", encoding="utf-8")
    except OSError as exc:
        _fail_step_and_raise(tracker, "write", exc)
    tracker.complete("write")
    for path in written:
        log_success(f"updated {path.name}.")

    if commit:
        message = config.release.commit_message.format(version=version)
        tracker.update_command("commit", f'git commit -m "{message}"')
        try:
            stage_paths(ctx.project_root, written)
            if has_staged_changes(ctx.project_root):
                create_git_commit(ctx.project_root, message)
                log_success(f"created commit: {message}")
            else:
                log_warning("no changes to commit.")
        except RuntimeError as exc:
            _fail_step_and_raise(tracker, "commit", exc)
        tracker.complete("commit")

    return next_version


@click.command("prepare-release")
@click.option(
    "--type",
    "bump_type",
    type=click.Choice(BUMP_CHOICES),
    default="auto",
    show_default=True,
    help="Force a bump type instead of deriving it from the changesets.",
)
@click.option("--commit", is_flag=True, help="Commit the updated files.")
@click.option(
    "--notes-output",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Also write the release notes to this file.",
)
@click.pass_obj
def prepare_release_cmd(
    ctx: CLIContext, bump_type: str, commit: bool, notes_output: Optional[Path]
) -> None:
    """Bump versions and update changelogs for the next release in one step."""
    emit_output(
        str(run_prepare_release(ctx, bump_type=bump_type, commit=commit, notes_output=notes_output))
    )


def _release_notes_text(ctx: CLIContext, version: str, notes_file: Optional[Path]) -> str:
    """Return the release body: the notes file, the changelog section, or fresh notes."""
    if notes_file is not None:
        return notes_file.read_text(encoding="utf-8").strip()
    path = ctx.changelog_path
    if path.exists():
        section = parse_changelog(path.read_text(encoding="utf-8"), MARKDOWN_STYLE).find_version(
            version
        )
        if section is not None and section.body.strip():
            return section.body.strip()
    config = ctx.ensure_config()
    notes: ReleaseNotes = aggregate(
        ctx.load_records(), Target.everything(primary=config.develop_branch)
    )
    return notes.render()


def run_publish_release(
    ctx: CLIContext,
    *,
    version: str,
    notes_file: Optional[Path] = None,
    create_tag: bool = False,
    consume: bool = False,
) -> list[Path]:
    """Tag and publish a release, then optionally delete consumed changesets.

    Returns the changeset files that were removed.
    """
    config = ctx.ensure_config()
    version = strip_release_prefix(version)
    tag_name = f"{config.release.tag_prefix}{version}"
    notes_text = _release_notes_text(ctx, version, notes_file)

    tracker = StepTracker()
    if create_tag:
        tracker.add("tag", f'git tag -a {tag_name} -m "Release {tag_name}"')
        tracker.add("push_tag", f"git push origin {tag_name}")
    tracker.add("publish", f"gh release create {tag_name} --notes-file <notes>")
    if consume:
        tracker.add("consume", f"rm {config.changesets_dir}/*.md")

    if create_tag:
        try:
            created = create_annotated_git_tag(ctx.project_root, tag_name, f"Release {tag_name}")
        except RuntimeError as exc:
            _fail_step_and_raise(tracker, "tag", exc)
        tracker.complete("tag")
        if created:
            log_success(f"created git tag {tag_name}.")
        else:
            log_warning(f"git tag {tag_name} already exists; skipping creation.")
        try:
            push_git_ref(ctx.project_root, tag_name)
        except RuntimeError as exc:
            _fail_step_and_raise(tracker, "push_tag", exc)
        tracker.complete("push_tag")
        log_success(f"pushed git tag {tag_name}.")

    try:
        publish_release(
            ctx.github_client(),
            tag_name,
            notes_text,
            name=f"Release {tag_name}",
            notes_file=notes_file,
        )
    except (GitHubError, click.ClickException) as exc:
        _fail_step_and_raise(tracker, "publish", exc)
    tracker.complete("publish")

    removed: list[Path] = []
    if consume:
        try:
            removed = delete_changesets(ctx.changesets_dir)
        except OSError as exc:
            _fail_step_and_raise(tracker, "consume", exc)
        tracker.complete("consume")
        log_success(f"removed {len(removed)} consumed changeset(s).")
    return removed


@click.command("publish-release")
@click.option("--version", "version", required=True, help="Version being released.")
@click.option(
    "--notes-file",
    type=click.Path(path_type=Path, dir_okay=False, exists=True),
    help="Release notes; defaults to the CHANGELOG.md section for the version.",
)
@click.option("--tag", "create_tag", is_flag=True, help="Create and push the git tag first.")
@click.option(
    "--consume",
    is_flag=True,
    help="Delete the released changesets after publishing.",
)
@click.pass_obj
def publish_release_cmd(
    ctx: CLIContext,
    version: str,
    notes_file: Optional[Path],
    create_tag: bool,
    consume: bool,
) -> None:
    """Publish a GitHub release for a prepared version."""
    run_publish_release(
        ctx,
        version=version,
        notes_file=notes_file,
        create_tag=create_tag,
        consume=consume,
    )
