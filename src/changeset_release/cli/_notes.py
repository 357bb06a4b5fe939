"""Release notes rendering and release pull request synchronisation."""

from __future__ import annotations

from typing import Literal, Optional

import click

from ..github import GitHubError
from ..notes import (
    ReleaseNotes,
    Target,
    aggregate,
    extract_pr_body_notes,
    render_pr_body,
    replace_pr_body_notes,
)
from ..utils import emit_output, log_info, log_success
from ._core import CLIContext, _resolve_target

__all__ = [
    "NotesFormat",
    "render_release_notes",
    "generate_release_notes",
    "sync_release_pr",
    "sync_release_pr_cmd",
]

NotesFormat = Literal["markdown", "pr-body", "json"]

RELEASE_PR_TITLE = "Release {develop} to {main}"


def _collect_notes(ctx: CLIContext, target: Target) -> ReleaseNotes:
    return aggregate(ctx.load_records(), target)


def render_release_notes(
    ctx: CLIContext,
    *,
    branch: Optional[str] = None,
    milestone: Optional[str] = None,
    select_all: bool = False,
    output_format: NotesFormat = "markdown",
) -> str:
    """Aggregate pending changesets and return the rendered notes."""
    config = ctx.ensure_config()
    target = _resolve_target(config, branch=branch, milestone=milestone, select_all=select_all)
    notes = _collect_notes(ctx, target)
    if output_format == "json":
        return notes.to_json()
    if output_format == "pr-body":
        return render_pr_body(notes).rstrip("\n")
    return notes.render()


@click.command("generate-release-notes")
@click.option("--branch", help="Aggregate changesets targeting this branch.")
@click.option("--milestone", help="Aggregate develop plus the given milestone branch.")
@click.option("--all", "select_all", is_flag=True, help="Aggregate every pending changeset.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["markdown", "pr-body", "json"]),
    default="markdown",
    show_default=True,
    help="Output format.",
)
@click.pass_obj
def generate_release_notes(
    ctx: CLIContext,
    branch: Optional[str],
    milestone: Optional[str],
    select_all: bool,
    output_format: NotesFormat,
) -> None:
    """Print release notes for pending changesets to stdout."""
    emit_output(
        render_release_notes(
            ctx,
            branch=branch,
            milestone=milestone,
            select_all=select_all,
            output_format=output_format,
        )
    )


def sync_release_pr(ctx: CLIContext, *, dry_run: bool = False) -> bool:
    """Create or update the develop-to-main pull request body.

    Returns True when the pull request was created or its body changed.
    """
    config = ctx.ensure_config()
    notes = _collect_notes(ctx, Target.everything(primary=config.develop_branch))
    body = render_pr_body(notes)
    if dry_run:
        emit_output(body, newline=False)
        return False

    client = ctx.github_client()
    try:
        pull = client.find_open_pull_request(config.develop_branch, config.main_branch)
        if pull is None:
            title = RELEASE_PR_TITLE.format(
                develop=config.develop_branch, main=config.main_branch
            )
            created = client.create_pull_request(
                title=title,
                head=config.develop_branch,
                base=config.main_branch,
                body=body,
            )
            log_success(f"opened release pull request #{created.number}.")
            return True
        if extract_pr_body_notes(pull.body) == notes.render():
            log_info(f"release pull request #{pull.number} is already up to date.")
            return False
        client.update_pull_request_body(pull.number, replace_pr_body_notes(pull.body, notes))
    except GitHubError as exc:
        raise click.ClickException(str(exc)) from exc
    log_success(f"updated release pull request #{pull.number}.")
    return True


@click.command("sync-release-pr")
@click.option(
    "--dry-run",
    is_flag=True,
    help="Print the pull request body instead of talking to GitHub.",
)
@click.pass_obj
def sync_release_pr_cmd(ctx: CLIContext, dry_run: bool) -> None:
    """Keep the open develop-to-main release pull request in sync."""
    sync_release_pr(ctx, dry_run=dry_run)
