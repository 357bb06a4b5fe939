"""Core CLI infrastructure: context, shared option handling, and the entry point."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version as metadata_version
from pathlib import Path
from typing import Optional

import click
from packaging.version import Version

from .. import __version__ as package_version
from ..changelog import MARKDOWN_STYLE, latest_version, parse_changelog
from ..changesets import ChangesetRecord, changeset_directory, read_all
from ..config import Config, default_config_path, load_project_config
from ..github import GitHubClient
from ..notes import ReleaseNotes, Target, parse_notes
from ..utils import (
    abort_on_user_interrupt,
    configure_logging,
    detect_github_repository,
    detect_github_token,
    log_debug,
)

__all__ = [
    "CLIContext",
    "create_cli_context",
    "cli",
    "VERSION_FLAGS",
    "_read_notes_file",
    "_resolve_target",
    "_create_cli_group",
    "main",
]

VERSION_FLAGS = {"--version", "-V"}


def _resolve_cli_version() -> str:
    try:
        return metadata_version("changeset-release")
    except PackageNotFoundError:
        return package_version


@dataclass
class CLIContext:
    """Shared command context."""

    project_root: Path
    config_path: Path
    explicit_config: bool = False
    _config: Optional[Config] = None

    def ensure_config(self) -> Config:
        if self._config is None:
            try:
                self._config = load_project_config(
                    self.project_root,
                    self.config_path if self.explicit_config else None,
                )
            except (FileNotFoundError, ValueError) as error:
                raise click.ClickException(str(error)) from error
        return self._config

    def resolve_path(self, value: str | Path) -> Path:
        path = Path(value).expanduser()
        return path if path.is_absolute() else self.project_root / path

    @property
    def changesets_dir(self) -> Path:
        return changeset_directory(self.project_root, self.ensure_config().changesets_dir)

    @property
    def changelog_path(self) -> Path:
        return self.resolve_path(self.ensure_config().changelog)

    @property
    def readme_path(self) -> Path:
        return self.resolve_path(self.ensure_config().readme)

    def load_records(self) -> list[ChangesetRecord]:
        return read_all(self.changesets_dir)

    def recorded_version(self) -> Optional[Version]:
        """Return the newest version recorded in the changelog, if any."""
        path = self.changelog_path
        if not path.exists():
            return None
        return latest_version(parse_changelog(path.read_text(encoding="utf-8"), MARKDOWN_STYLE))

    def github_client(self) -> GitHubClient:
        config = self.ensure_config()
        repository = config.repository or detect_github_repository(self.project_root)
        if not repository:
            raise click.ClickException(
                "Cannot determine the GitHub repository. Set 'repository' in "
                "changeset-release.yaml or export GITHUB_REPOSITORY."
            )
        token = detect_github_token()
        if token is None:
            log_debug("no GitHub token found; using unauthenticated requests.")
        return GitHubClient(repository, token=token)


def create_cli_context(
    *,
    root: Path | None = None,
    config: Optional[Path] = None,
    debug: bool = False,
) -> CLIContext:
    """Return a CLIContext using the same resolution logic as the CLI entry point."""

    configure_logging(debug)

    resolved_root = (root or Path(".")).resolve()
    config_path = config.resolve() if config else default_config_path(resolved_root)
    log_debug(f"resolved project root: {resolved_root}")
    log_debug(f"using config path: {config_path}")
    return CLIContext(
        project_root=resolved_root,
        config_path=config_path,
        explicit_config=config is not None,
    )


def _read_notes_file(path: Path) -> ReleaseNotes:
    """Load release notes previously written by `generate-release-notes`."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise click.ClickException(f"Cannot read notes file {path}: {exc}") from exc
    return parse_notes(text)


def _resolve_target(
    config: Config,
    *,
    branch: Optional[str] = None,
    milestone: Optional[str] = None,
    select_all: bool = False,
) -> Target:
    """Map the --branch/--milestone/--all options to an aggregation target."""
    if sum(bool(value) for value in (branch, milestone, select_all)) > 1:
        raise click.UsageError("Use only one of --branch, --milestone, or --all.")
    if select_all:
        return Target.everything(primary=config.develop_branch)
    if milestone:
        return Target.milestone(config.milestone_branch(milestone), config.develop_branch)
    if branch:
        if branch.startswith(config.milestone_prefix):
            return Target.milestone(branch, config.develop_branch)
        if branch == config.main_branch:
            return Target.everything(primary=config.develop_branch)
        return Target.branch(branch)
    return Target.branch(config.develop_branch)


# Placeholder for the cli group; assigned in the package __init__ once all
# commands are defined.
cli: click.Group = None  # type: ignore[assignment]


def _create_cli_group() -> click.Group:
    """Create the main CLI group. Called after all commands are defined."""

    @click.group(context_settings={"help_option_names": ["-h", "--help"]})
    @click.option(
        "--root",
        type=click.Path(path_type=Path, exists=True, file_okay=False),
        help="Repository root containing the changesets and changelogs.",
    )
    @click.option(
        "--config",
        type=click.Path(path_type=Path, dir_okay=False),
        help="Path to an explicit changeset-release.yaml file.",
    )
    @click.option(
        "--debug",
        "-d",
        is_flag=True,
        help="Enable debug logging.",
    )
    @click.pass_context
    def _cli(
        ctx: click.Context,
        root: Path | None,
        config: Optional[Path],
        debug: bool,
    ) -> None:
        """Record changesets and turn them into versioned releases."""

        ctx.obj = create_cli_context(root=root, config=config, debug=debug)

    return click.version_option(version=_resolve_cli_version())(_cli)


def main(argv: list[str] | None = None) -> int:
    """Entry point for console_scripts."""
    from . import cli

    args = list(argv) if argv is not None else list(sys.argv[1:])

    # Subcommands accept their own --version option.
    has_command = any(arg in cli.commands for arg in args)
    if not has_command and any(flag in args for flag in VERSION_FLAGS):
        click.echo(_resolve_cli_version())
        return 0

    try:
        result = cli.main(args=args, prog_name="changeset-release", standalone_mode=False)
    except click.ClickException as exc:
        exc.show(file=sys.stderr)
        exit_code = getattr(exc, "exit_code", 1)
        return exit_code if isinstance(exit_code, int) else 1
    except click.exceptions.Abort as exc:
        try:
            abort_on_user_interrupt(exc)
        except click.exceptions.Exit as exit_exc:
            return exit_exc.exit_code
    except KeyboardInterrupt as exc:
        try:
            abort_on_user_interrupt(exc)
        except click.exceptions.Exit as exit_exc:
            exit_code = getattr(exit_exc, "exit_code", 130)
            return exit_code if isinstance(exit_code, int) else 130
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 0
    return result if isinstance(result, int) else 0
