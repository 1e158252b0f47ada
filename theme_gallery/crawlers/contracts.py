"""Typed contracts shared by theme providers, the HTTP client and the catalog store."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from dateutil import parser as date_parser

T = TypeVar("T")


class FetchState(str, Enum):
    """Outcome of one upstream HTTP request."""

    OK = "ok"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    MALFORMED = "malformed"
    FAILED = "failed"


@dataclass(slots=True)
class FetchResult(Generic[T]):
    """Upstream response envelope returned by `ThemeHttpClient`."""

    state: FetchState
    data: Optional[T] = None
    status_code: Optional[int] = None
    headers: dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state == FetchState.OK


def url_hash(url: str) -> str:
    """Stable dedup key for a theme download URL."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


@dataclass(slots=True)
class ThemeRecord:
    """
    Normalized metadata describing one color theme

    Value object copied across provider, aggregator and store boundaries.
    Only the catalog store assigns `id`.
    """

    name: str
    url: str
    author: str = ""
    description: str = ""
    hash: str = ""
    light: bool = False
    version: Optional[str] = None
    project_repo_id: Optional[str] = None
    project_repo: Optional[str] = None
    readme: Optional[str] = None
    license: Optional[str] = None
    provider: Optional[str] = None
    updated_at: Optional[datetime] = None
    id: str = ""

    def is_valid(self) -> bool:
        """Name and URL are required before a record enters a gallery."""
        return bool(self.name and self.name.strip() and self.url and self.url.strip())

    def with_hash(self) -> "ThemeRecord":
        """Return a copy whose `hash` matches its URL."""
        return replace(self, hash=url_hash(self.url))

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the catalog interchange field names."""
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "author": self.author,
            "description": self.description,
            "url": self.url,
            "hash": self.hash,
            "light": self.light,
            "projectRepoId": self.project_repo_id or "",
            "projectRepo": self.project_repo or "",
            "readme": self.readme or "",
        }
        if self.version:
            payload["version"] = self.version
        if self.license:
            payload["license"] = self.license
        if self.provider:
            payload["provider"] = self.provider
        if self.updated_at:
            payload["updatedAt"] = self.updated_at.isoformat()
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ThemeRecord":
        updated_raw = payload.get("updatedAt")
        return cls(
            id=str(payload.get("id") or ""),
            name=str(payload.get("name") or ""),
            author=str(payload.get("author") or ""),
            description=str(payload.get("description") or ""),
            url=str(payload.get("url") or ""),
            hash=str(payload.get("hash") or ""),
            light=payload.get("light") is True,
            version=payload.get("version") or None,
            project_repo_id=payload.get("projectRepoId") or None,
            project_repo=payload.get("projectRepo") or None,
            readme=payload.get("readme") or None,
            license=payload.get("license") or None,
            provider=payload.get("provider") or None,
            updated_at=parse_timestamp(updated_raw),
        )

    def __repr__(self):
        return f"<ThemeRecord {self.provider}: {self.name[:50]}>"


Gallery = list[ThemeRecord]


@dataclass(slots=True)
class ListFilter:
    """Page window for catalog listing. Non-positive values mean no restriction."""

    limit: int = 0
    offset: int = 0


def parse_timestamp(raw: Any) -> Optional[datetime]:
    """Parse upstream ISO-8601 timestamps, ignoring blanks and garbage."""
    if isinstance(raw, datetime):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return date_parser.isoparse(raw)
    except (TypeError, ValueError):
        return None
