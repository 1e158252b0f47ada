"""GitHub project identity resolution for theme source URLs."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse

from theme_gallery.crawlers.contracts import FetchState
from theme_gallery.errors import (
    DefaultBranchNotFound,
    MalformedURL,
    NotAGithubURL,
    RateLimitExceeded,
    ThemeGalleryError,
)

logger = logging.getLogger(__name__)

GITHUB_HOSTS = frozenset(
    {
        "github.com",
        "www.github.com",
        "raw.githubusercontent.com",
        "api.github.com",
    }
)
REPO_API_URL = "https://api.github.com/repos/{owner}/{name}"
RAW_FILE_URL = "https://raw.githubusercontent.com/{owner}/{name}/{branch}/{path}"
FALLBACK_BRANCH = "master"


def repo_hash(repo_url: str) -> str:
    """Deterministic identity digest of a canonical repository URL."""
    return hashlib.sha256(repo_url.encode("utf-8")).hexdigest()


@dataclass(slots=True)
class ProjectRepository:
    """Identity of a GitHub project: owner, name and lazily loaded branch/license."""

    owner: str
    name: str
    branch: str = ""
    license: str = ""

    @property
    def url(self) -> str:
        return f"https://github.com/{self.owner}/{self.name}"

    @property
    def repo_id(self) -> str:
        return repo_hash(self.url)

    def raw_file_url(self, path: str, *, branch: Optional[str] = None) -> str:
        return RAW_FILE_URL.format(
            owner=self.owner,
            name=self.name,
            branch=branch or self.branch or FALLBACK_BRANCH,
            path=path.lstrip("/"),
        )

    async def load_branch_and_license(self, client: Any) -> None:
        """
        Resolve the default branch and license with one GitHub API call

        Results are cached on the instance; a known branch skips the request.

        Raises:
            RateLimitExceeded: GitHub answered 403/429
            DefaultBranchNotFound: no branch metadata was returned
        """
        if self.branch:
            return

        response = await client.get_json(REPO_API_URL.format(owner=self.owner, name=self.name))
        if response.state == FetchState.RATE_LIMITED:
            raise RateLimitExceeded(f"GitHub rate limit exceeded while resolving {self.url}")
        if response.state != FetchState.OK or not isinstance(response.data, dict):
            raise DefaultBranchNotFound(f"default branch not found for {self.url}")

        default_branch = response.data.get("default_branch")
        if not isinstance(default_branch, str) or not default_branch.strip():
            raise DefaultBranchNotFound(f"default branch not found for {self.url}")

        if not self.license:
            license_data = response.data.get("license")
            if isinstance(license_data, dict) and isinstance(license_data.get("name"), str):
                self.license = license_data["name"]
        self.branch = default_branch.strip()

    async def infer_readme_url(self, client: Any = None) -> str:
        """
        Best-effort README location; the file's existence is not checked

        Tries to resolve the default branch when a client is given and falls
        back to `master`. Never raises.
        """
        if not self.branch and client is not None:
            try:
                await self.load_branch_and_license(client)
            except ThemeGalleryError as exc:
                logger.debug(f"Falling back to {FALLBACK_BRANCH} branch for {self.url}: {exc}")
        return self.raw_file_url("README.md")

    def __str__(self) -> str:
        return self.url


def raw_url_branch(source_url: str) -> str:
    """Branch segment of a raw.githubusercontent.com file URL, or empty."""
    parsed = urlparse(source_url)
    if (parsed.hostname or "").lower() != "raw.githubusercontent.com":
        return ""
    segments = [part for part in parsed.path.split("/") if part]
    return segments[2] if len(segments) >= 4 else ""


def resolve_repo(source_url: str) -> ProjectRepository:
    """
    Infer the owning GitHub project from a web, raw-file or API URL

    Branch and license are left empty; see `load_branch_and_license`.

    Raises:
        NotAGithubURL: host is not a GitHub domain
        MalformedURL: unparsable URL or fewer than two path segments
    """
    try:
        parsed = urlparse(source_url.strip())
        host = (parsed.hostname or "").lower()
    except (AttributeError, ValueError) as exc:
        raise MalformedURL(str(source_url), reason=str(exc)) from exc

    if not host:
        raise MalformedURL(source_url, reason="missing host")
    if host not in GITHUB_HOSTS:
        raise NotAGithubURL(source_url)

    segments = [part for part in parsed.path.split("/") if part]
    if host == "api.github.com" and segments[:1] == ["repos"]:
        segments = segments[1:]
    if len(segments) < 2:
        raise MalformedURL(source_url)

    owner, name = segments[0], segments[1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    if not owner or not name:
        raise MalformedURL(source_url)

    return ProjectRepository(owner=owner, name=name)
