"""GitHub REST client for pull requests and releases."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import requests

from .utils import log_debug, log_info, log_success, log_warning

API_URL = "https://api.github.com"
RATE_LIMIT_WARNING_THRESHOLD = 10


class GitHubError(RuntimeError):
    """Raised when a GitHub operation fails."""


@dataclass
class PullRequest:
    """The subset of pull request metadata the release tooling needs."""

    number: int
    title: str
    author: str
    body: str
    base: str
    head: str
    merged: bool = False
    html_url: str = ""


@dataclass
class Release:
    id: int
    tag_name: str
    html_url: str = ""


@dataclass
class RateLimit:
    remaining: int
    limit: int
    reset: datetime

    @property
    def is_low(self) -> bool:
        return self.remaining <= RATE_LIMIT_WARNING_THRESHOLD


class GitHubClient:
    """Thin wrapper around the GitHub REST API."""

    def __init__(
        self,
        repository: str,
        token: str | None = None,
        api_url: str = API_URL,
        timeout: float = 30,
    ) -> None:
        self.repository = repository
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "changeset-release",
            }
        )
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    def _request(
        self, method: str, path: str, *, allow_404: bool = False, **kwargs: Any
    ) -> Optional[Any]:
        url = f"{self.api_url}{path}"
        log_debug(f"{method} {url}")
        try:
            resp = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise GitHubError(f"GitHub request {method} {path} failed: {exc}") from exc
        if resp.status_code == 404 and allow_404:
            return None
        if resp.status_code >= 400:
            message = resp.text
            try:
                data = resp.json()
                if isinstance(data, dict) and "message" in data:
                    message = data["message"]
            except ValueError:
                pass
            raise GitHubError(f"GitHub API error {resp.status_code} for {method} {path}: {message}")
        if resp.status_code == 204:
            return None
        return resp.json()

    # Pull requests

    def get_pull_request(self, number: int) -> PullRequest:
        data = self._request("GET", f"/repos/{self.repository}/pulls/{number}")
        return self._parse_pull_request(data)

    def find_open_pull_request(self, head: str, base: str) -> Optional[PullRequest]:
        """Return the open pull request from `head` into `base`, if any."""
        owner = self.repository.split("/", 1)[0]
        data = self._request(
            "GET",
            f"/repos/{self.repository}/pulls",
            params={"state": "open", "head": f"{owner}:{head}", "base": base},
        )
        if not data:
            return None
        return self._parse_pull_request(data[0])

    def create_pull_request(self, *, title: str, head: str, base: str, body: str) -> PullRequest:
        data = self._request(
            "POST",
            f"/repos/{self.repository}/pulls",
            json={"title": title, "head": head, "base": base, "body": body},
        )
        return self._parse_pull_request(data)

    def update_pull_request_body(self, number: int, body: str) -> PullRequest:
        data = self._request(
            "PATCH", f"/repos/{self.repository}/pulls/{number}", json={"body": body}
        )
        return self._parse_pull_request(data)

    def _parse_pull_request(self, data: dict[str, Any]) -> PullRequest:
        user = data.get("user") or {}
        return PullRequest(
            number=int(data["number"]),
            title=data.get("title") or "",
            author=user.get("login", ""),
            body=data.get("body") or "",
            base=(data.get("base") or {}).get("ref", ""),
            head=(data.get("head") or {}).get("ref", ""),
            merged=bool(data.get("merged", False)),
            html_url=data.get("html_url", ""),
        )

    # Releases

    def get_release_by_tag(self, tag: str) -> Optional[Release]:
        data = self._request("GET", f"/repos/{self.repository}/releases/tags/{tag}", allow_404=True)
        if data is None:
            return None
        return Release(id=int(data["id"]), tag_name=data.get("tag_name", tag), html_url=data.get("html_url", ""))

    def create_release(
        self,
        tag: str,
        *,
        name: str,
        body: str,
        draft: bool = False,
        prerelease: bool = False,
    ) -> Release:
        data = self._request(
            "POST",
            f"/repos/{self.repository}/releases",
            json={
                "tag_name": tag,
                "name": name,
                "body": body,
                "draft": draft,
                "prerelease": prerelease,
            },
        )
        return Release(id=int(data["id"]), tag_name=data.get("tag_name", tag), html_url=data.get("html_url", ""))

    def rate_limit(self) -> RateLimit:
        data = self._request("GET", "/rate_limit")
        core = (data or {}).get("resources", {}).get("core", {})
        return RateLimit(
            remaining=int(core.get("remaining", 0)),
            limit=int(core.get("limit", 0)),
            reset=datetime.fromtimestamp(int(core.get("reset", 0)), tz=timezone.utc),
        )


def _warn_on_rate_limit(client: GitHubClient) -> None:
    try:
        limit = client.rate_limit()
    except GitHubError as exc:
        log_debug(f"could not read rate limit: {exc}")
        return
    if limit.is_low:
        log_warning(
            f"GitHub API rate limit is low: {limit.remaining} requests remaining. "
            f"Resets at {limit.reset.isoformat()}."
        )


def _create_release_with_gh(
    repository: str, tag: str, name: str, *, notes_file: Optional[Path], notes: str
) -> bool:
    gh_path = shutil.which("gh")
    if gh_path is None:
        log_warning("gh CLI not found; cannot retry release creation.")
        return False
    base_command = [gh_path, "release", "create", tag, "--repo", repository, "--title", name]
    attempts: list[list[str]] = []
    if notes_file is not None and notes_file.exists():
        attempts.append(base_command + ["--notes-file", str(notes_file)])
    attempts.append(base_command + ["--notes", notes])
    for command in attempts:
        try:
            subprocess.run(command, check=True)
        except subprocess.CalledProcessError as exc:
            log_warning(f"'gh release create' exited with status {exc.returncode}.")
            continue
        return True
    return False


def publish_release(
    client: GitHubClient,
    tag: str,
    notes: str,
    *,
    name: Optional[str] = None,
    notes_file: Optional[Path] = None,
) -> Optional[Release]:
    """Create a GitHub release, falling back to the gh CLI when the API call fails.

    An existing release for the tag counts as success. Returns the created
    release when the REST call succeeded, otherwise None.
    """
    release_name = name or f"Release {tag}"
    try:
        release = client.create_release(tag, name=release_name, body=notes)
    except GitHubError as exc:
        log_warning(f"failed to create release {tag} via the API: {exc}")
    else:
        log_success(f"created GitHub release {tag}.")
        return release

    try:
        existing = client.get_release_by_tag(tag)
    except GitHubError as exc:
        log_debug(f"could not look up release {tag}: {exc}")
        existing = None
    if existing is not None:
        log_info(f"release {tag} already exists; skipping creation.")
        return existing

    _warn_on_rate_limit(client)
    log_info("attempting to create the release with the gh CLI.")
    if _create_release_with_gh(
        client.repository, tag, release_name, notes_file=notes_file, notes=notes
    ):
        log_success(f"created GitHub release {tag} with the gh CLI.")
        return None
    raise GitHubError(f"Failed to create release {tag} using all available methods.")
