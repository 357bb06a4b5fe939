"""Commands that record and inspect changesets."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import click
from rich.table import Table

from ..changesets import ChangesetRecord, write_changeset
from ..github import GitHubError
from ..notes import CATEGORY_TITLES
from ..utils import (
    console,
    emit_output,
    log_error,
    log_info,
    log_success,
    log_warning,
    normalize_markdown,
)
from ..validate import ChangesetAnalysis, analyze_changesets
from ._core import CLIContext, _resolve_target

__all__ = [
    "create_changeset",
    "generate_changeset",
    "run_analyze",
    "analyze_changesets_cmd",
    "_read_body_file",
    "_resolve_body_input",
]


def _read_body_file(path: Path) -> str:
    """Read the PR body from a file or stdin (if path is '-')."""
    if str(path) == "-":
        if sys.stdin.isatty():
            raise click.ClickException("No input provided on stdin. Pipe content or use --body.")
        return sys.stdin.read()
    if not path.exists():
        raise click.ClickException(f"Body file not found: {path}")
    return path.read_text(encoding="utf-8")


def _resolve_body_input(body: Optional[str], body_file: Optional[Path]) -> Optional[str]:
    if body is not None and body_file is not None:
        raise click.ClickException("Use only one of --body or --body-file, not both.")
    if body is not None:
        return body
    if body_file is not None:
        return _read_body_file(body_file)
    return None


def create_changeset(
    ctx: CLIContext,
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
    """Write (or overwrite) the changeset for a merged pull request."""
    config = ctx.ensure_config()
    if pr <= 0:
        raise click.ClickException(f"PR number must be positive, got {pr}.")

    if fetch and (title is None or author is None or body is None or not (target or branch)):
        try:
            pull = ctx.github_client().get_pull_request(pr)
        except GitHubError as exc:
            raise click.ClickException(str(exc)) from exc
        title = title if title is not None else pull.title
        author = author if author is not None else pull.author
        body = body if body is not None else pull.body
        source = source or pull.head
        target = target or branch or pull.base

    target = target or branch
    if not title or not title.strip():
        raise click.ClickException("A title is required (pass --title or --fetch).")
    if not target:
        raise click.ClickException("A target branch is required (pass --target or --branch).")
    if not config.is_tracked_branch(target):
        log_warning(
            f"'{target}' is not {config.develop_branch} or a {config.milestone_prefix}* branch; "
            "the changeset will only show up when aggregating that branch explicitly."
        )

    record = ChangesetRecord.create(
        pr=pr,
        title=title,
        target=target,
        author=author or "",
        source=source or "",
        branch=branch or target,
        body=normalize_markdown(body or ""),
    )
    path = write_changeset(ctx.changesets_dir, record)
    try:
        display_path = path.relative_to(ctx.project_root)
    except ValueError:
        display_path = path
    label = "breaking " if record.breaking else ""
    log_success(f"recorded {label}{record.change_type} change #{pr} in {display_path}")
    return path


@click.command("generate-changeset")
@click.option("--pr", type=int, required=True, help="Number of the merged pull request.")
@click.option("--title", help="Pull request title.")
@click.option("--author", help="GitHub login of the pull request author.")
@click.option("--body", help="Pull request body (Markdown).")
@click.option(
    "--body-file",
    type=click.Path(path_type=Path, dir_okay=False),
    help="File containing the pull request body. Use '-' to read from stdin.",
)
@click.option("--branch", help="Branch the pull request merged into.")
@click.option("--source", help="Head branch of the pull request.")
@click.option("--target", help="Branch whose release the change belongs to.")
@click.option(
    "--fetch",
    is_flag=True,
    help="Fetch missing pull request details from the GitHub API.",
)
@click.pass_obj
def generate_changeset(
    ctx: CLIContext,
    pr: int,
    title: Optional[str],
    author: Optional[str],
    body: Optional[str],
    body_file: Optional[Path],
    branch: Optional[str],
    source: Optional[str],
    target: Optional[str],
    fetch: bool,
) -> None:
    """Record a changeset for a merged pull request."""
    path = create_changeset(
        ctx,
        pr=pr,
        title=title,
        author=author,
        body=_resolve_body_input(body, body_file),
        branch=branch,
        source=source,
        target=target,
        fetch=fetch,
    )
    emit_output(str(path))


def _render_analysis(analysis: ChangesetAnalysis) -> None:
    table = Table(title="Pending changesets", show_lines=False)
    table.add_column("Category")
    table.add_column("Count", justify="right")
    for category, count in analysis.counts.items():
        if count:
            table.add_row(CATEGORY_TITLES[category], str(count))
    table.add_row("[bold]Total[/bold]", f"[bold]{len(analysis.records)}[/bold]")
    console.print(table)


def run_analyze(
    ctx: CLIContext,
    *,
    branch: Optional[str] = None,
    as_json: bool = False,
) -> ChangesetAnalysis:
    """Summarize pending changesets and report malformed files."""
    config = ctx.ensure_config()
    target = _resolve_target(config, branch=branch, select_all=branch is None)
    analysis = analyze_changesets(ctx.changesets_dir, target)

    for issue in analysis.issues:
        message = f"{issue.path.name}: {issue.message}"
        if issue.severity == "error":
            log_error(message)
        else:
            log_warning(message)

    if as_json:
        emit_output(json.dumps(analysis.to_dict(), indent=2))
        return analysis

    if not analysis.records:
        log_info("no pending changesets.")
        return analysis
    _render_analysis(analysis)
    if analysis.has_breaking:
        log_warning("pending changes include breaking changes.")
    emit_output(analysis.recommended_bump or "none")
    return analysis


@click.command("analyze-changesets")
@click.option("--branch", help="Only consider changesets aggregated for this branch.")
@click.option("--json", "as_json", is_flag=True, help="Emit the analysis as JSON.")
@click.pass_obj
def analyze_changesets_cmd(ctx: CLIContext, branch: Optional[str], as_json: bool) -> None:
    """Summarize pending changesets and the version bump they require."""
    run_analyze(ctx, branch=branch, as_json=as_json)
