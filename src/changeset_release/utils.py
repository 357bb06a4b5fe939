"""Shared utilities: logging, Markdown normalization, and git helpers."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Mapping, NoReturn, Optional

import click
import mdformat
from rich.console import Console
from rich.style import Style
from rich.theme import Theme

CHECKMARK = "\033[92;1m✔\033[0m"
CROSS = "\033[31m✘\033[0m"
INFO = "\033[94;1mi\033[0m"
WARNING = "○"
DEBUG_PREFIX = "\033[95m◆\033[0m"

CHECKMARK_PREFIX = f"{CHECKMARK} "
CROSS_PREFIX = f"{CROSS} "
INFO_PREFIX = f"{INFO} "
WARNING_PREFIX = f"{WARNING} "
DEBUG_PREFIX_WITH_SPACE = f"{DEBUG_PREFIX} "

_LOGGER_NAME = "changeset_release"
_LOGGER = logging.getLogger(_LOGGER_NAME)

console = Console(
    stderr=True,
    theme=Theme(
        {
            "markdown.code": Style(bold=True, color="cyan"),
            "markdown.code_block": Style(color="cyan"),
        }
    ),
)


def configure_logging(debug: bool = False) -> logging.Logger:
    """Configure the shared logger used across the CLI."""
    level = logging.DEBUG if debug else logging.INFO
    _LOGGER.setLevel(level)
    while _LOGGER.handlers:
        handler = _LOGGER.handlers.pop()
        handler.close()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(level)
    _LOGGER.addHandler(handler)
    _LOGGER.propagate = False
    return _LOGGER


def _log(prefix: str, message: str, level: int) -> None:
    logger = logging.getLogger(_LOGGER_NAME)
    lines = message.splitlines() or [""]
    for line in lines:
        if line:
            logger.log(level, f"{prefix}{line}")
        else:
            logger.log(level, prefix.rstrip())


def log_info(message: str) -> None:
    """Log an informational message with the standardized prefix."""
    _log(INFO_PREFIX, message, logging.INFO)


def log_success(message: str) -> None:
    """Log a success message with the standardized prefix."""
    _log(CHECKMARK_PREFIX, message, logging.INFO)


def log_error(message: str) -> None:
    """Log an error message with the standardized prefix."""
    _log(CROSS_PREFIX, message, logging.ERROR)


def log_warning(message: str) -> None:
    """Log a warning message with the standardized prefix."""
    _log(WARNING_PREFIX, message, logging.WARNING)


def log_debug(message: str) -> None:
    """Log a debug message with the standardized prefix."""
    _log(DEBUG_PREFIX_WITH_SPACE, message, logging.DEBUG)


def abort_on_user_interrupt(exc: BaseException | None = None) -> NoReturn:
    """Log a standardized cancellation message and exit the command."""

    log_error("operation cancelled by user (Ctrl+C).")
    raise click.exceptions.Exit(130) from exc


def emit_output(content: str, *, newline: bool = True) -> None:
    """Emit raw command output to stdout for machine consumption."""
    click.echo(content, nl=newline, err=False)


def coerce_datetime(value: object) -> Optional[datetime]:
    """Return a UTC-aware datetime object for ISO-like inputs, preserving None.

    Accepts datetime objects, date objects (converted to midnight UTC),
    and ISO-formatted strings (with or without time component).
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError:
        pass
    try:
        d = date.fromisoformat(text)
        return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
    except ValueError:
        return None


def slugify(value: str) -> str:
    """Generate a safe slug for file names, treating '/' as a separator."""
    safe_chars = []
    for char in value.lower():
        if char.isalnum():
            safe_chars.append(char)
        elif char in {" ", "-", "_", "/", "."}:
            safe_chars.append("-")
    slug = "".join(safe_chars)
    while "--" in slug:
        slug = slug.replace("--", "-")
    return slug.strip("-")


def normalize_markdown(text: str) -> str:
    """Return Markdown with paragraphs normalized to single lines."""
    if not text.strip():
        return ""
    formatted = mdformat.text(text.replace("\r\n", "\n"), options={"wrap": "no"})
    return formatted.rstrip("\n")


_GH_REPOSITORY_ENV_KEYS = ("GITHUB_REPOSITORY", "GH_REPO")
_GH_TOKEN_ENV_KEYS = ("GITHUB_TOKEN", "GH_TOKEN", "REPO_PAT")


def detect_github_token(env: Mapping[str, str] | None = None) -> Optional[str]:
    """Return an API token from the environment, if any."""
    env_mapping = env if env is not None else os.environ
    for key in _GH_TOKEN_ENV_KEYS:
        value = (env_mapping.get(key) or "").strip()
        if value:
            log_debug(f"using GitHub token from environment key {key}.")
            return value
    return None


def detect_github_repository(
    project_root: Path, *, env: Mapping[str, str] | None = None
) -> Optional[str]:
    """Return the `owner/name` slug from the environment or the git remote."""
    env_mapping = env if env is not None else os.environ
    for key in _GH_REPOSITORY_ENV_KEYS:
        value = (env_mapping.get(key) or "").strip()
        if value:
            log_debug(f"detected repository '{value}' from environment key {key}.")
            return value
    return guess_git_remote(project_root)


def guess_git_remote(project_root: Path) -> Optional[str]:
    """Return the GitHub repository slug (owner/name) if available."""
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            cwd=str(project_root),
            check=True,
            capture_output=True,
            text=True,
        )
    except (subprocess.CalledProcessError, FileNotFoundError):
        return None
    url = result.stdout.strip()
    if not url:
        return None
    if url.endswith(".git"):
        url = url[: -len(".git")]
    if url.startswith("git@"):
        _, _, remainder = url.partition(":")
        return remainder
    if url.startswith("https://"):
        remainder = url[len("https://") :]
        parts = remainder.split("/", 1)
        if len(parts) == 2:
            return parts[1]
    return url


def create_annotated_git_tag(project_root: Path, tag_name: str, message: str) -> bool:
    """Create an annotated Git tag for the provided version.

    Returns True when a new tag was created, False if the tag already existed.
    """
    try:
        result = subprocess.run(
            ["git", "tag", "--list", tag_name],
            cwd=str(project_root),
            check=True,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as exc:
        raise RuntimeError(
            "git is required to create release tags but was not found in PATH."
        ) from exc
    except subprocess.CalledProcessError as exc:
        raise RuntimeError("failed to query existing git tags.") from exc

    existing_tags = {line.strip() for line in result.stdout.splitlines()}
    if tag_name in existing_tags:
        return False

    try:
        subprocess.run(
            ["git", "tag", "-a", tag_name, "-m", message],
            cwd=str(project_root),
            check=True,
        )
    except subprocess.CalledProcessError as exc:
        raise RuntimeError(
            f"git failed to create tag '{tag_name}' (exit status {exc.returncode})."
        ) from exc
    return True


def stage_paths(project_root: Path, paths: list[Path]) -> None:
    """Stage the given paths, including deletions."""
    if not paths:
        return
    try:
        subprocess.run(
            ["git", "add", "-A", "--", *[str(path) for path in paths]],
            cwd=str(project_root),
            check=True,
        )
    except FileNotFoundError as exc:
        raise RuntimeError("git is required to stage changes but was not found in PATH.") from exc
    except subprocess.CalledProcessError as exc:
        raise RuntimeError(f"git failed to stage changes (exit status {exc.returncode}).") from exc


def has_staged_changes(project_root: Path) -> bool:
    """Check if there are staged changes to commit."""
    try:
        result = subprocess.run(
            ["git", "diff", "--cached", "--quiet"],
            cwd=str(project_root),
        )
    except FileNotFoundError as exc:
        raise RuntimeError(
            "git is required to check for staged changes but was not found in PATH."
        ) from exc
    return result.returncode != 0


def create_git_commit(project_root: Path, message: str) -> None:
    """Create a git commit with the given message."""
    try:
        subprocess.run(
            ["git", "commit", "-m", message],
            cwd=str(project_root),
            check=True,
        )
    except FileNotFoundError as exc:
        raise RuntimeError("git is required to create commits but was not found in PATH.") from exc
    except subprocess.CalledProcessError as exc:
        raise RuntimeError(f"git failed to create commit (exit status {exc.returncode}).") from exc


def push_git_ref(project_root: Path, ref: str, remote: str = "origin") -> None:
    """Push a branch or tag to the remote.

    A rejected push (for example after a concurrent CI run) is fatal; the
    step has to be re-run after fetching.
    """
    try:
        subprocess.run(
            ["git", "push", remote, ref],
            cwd=str(project_root),
            check=True,
        )
    except FileNotFoundError as exc:
        raise RuntimeError("git is required to push but was not found in PATH.") from exc
    except subprocess.CalledProcessError as exc:
        raise RuntimeError(
            f"git failed to push '{ref}' to remote '{remote}' (exit status {exc.returncode})."
        ) from exc
