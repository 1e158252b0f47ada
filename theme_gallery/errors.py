"""Exception hierarchy shared by providers, the repository resolver and the catalog store."""

from __future__ import annotations

from typing import Any, Optional


class ThemeGalleryError(Exception):
    """Base class for every error raised by the theme gallery."""


# Repository identity errors


class NotAGithubURL(ThemeGalleryError):
    """The URL host is not a recognized GitHub web, raw or API domain."""

    def __init__(self, url: str) -> None:
        super().__init__(f"not a github repository url: {url}")
        self.url = url


class MalformedURL(ThemeGalleryError):
    """The URL cannot be parsed or has no owner/name path."""

    def __init__(self, url: str, reason: str = "missing owner/name") -> None:
        super().__init__(f"malformed repository url ({reason}): {url}")
        self.url = url


class DefaultBranchNotFound(ThemeGalleryError):
    """GitHub returned no default branch metadata for a repository."""


class RateLimitExceeded(ThemeGalleryError):
    """The upstream API is rate limiting us. Transient, retry later."""

    def __init__(self, message: str = "API rate limit exceeded", *, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


# Provider errors


class SourceUnavailable(ThemeGalleryError):
    """The upstream source answered with a non-success status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeError(ThemeGalleryError):
    """The upstream payload is malformed or lacks required fields."""


class NoThemesFound(ThemeGalleryError):
    """The upstream source reported zero themes."""


class ProviderError(ThemeGalleryError):
    """A fanned-out fetch failed. Carries the best-effort partial result."""

    def __init__(self, message: str, *, partial: Optional[list[Any]] = None) -> None:
        super().__init__(message)
        self.partial = partial or []


# Catalog store errors


class NotFound(ThemeGalleryError):
    """No stored theme matches the given identifier."""

    def __init__(self, theme_id: str) -> None:
        super().__init__(f"theme not found: {theme_id}")
        self.theme_id = theme_id


class BatchInsertError(ThemeGalleryError):
    """A batch insert did not persist every record and was rolled back."""

    def __init__(self, message: str, *, requested: int, inserted: int = 0) -> None:
        super().__init__(message)
        self.requested = requested
        self.inserted = inserted
