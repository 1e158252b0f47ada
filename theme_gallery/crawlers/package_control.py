"""Sublime Package Control provider using label search and package detail endpoints"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Sequence
from urllib.parse import quote

from theme_gallery.crawlers.base import BaseProvider
from theme_gallery.crawlers.contracts import FetchState, Gallery, ThemeRecord, parse_timestamp
from theme_gallery.crawlers.github_repo import repo_hash, resolve_repo
from theme_gallery.errors import DecodeError, ThemeGalleryError


@dataclass(slots=True)
class PackageInfo:
    """Package detail payload; `is_missing` marks a tombstone"""

    name: str
    description: str = ""
    homepage: str = ""
    authors: List[str] = field(default_factory=list)
    labels: List[str] = field(default_factory=list)
    versions: List[int] = field(default_factory=list)
    last_modified: Optional[datetime] = None
    is_missing: bool = False
    missing_error: str = ""
    sources: List[str] = field(default_factory=list)
    readme: str = ""
    removed: bool = False


def parse_package_names(payload: Any) -> List[str]:
    """Extract package names from a `{packages: [{name}]}` label listing."""
    if not isinstance(payload, dict) or not isinstance(payload.get("packages"), list):
        raise DecodeError("label listing without a packages array")

    names: List[str] = []
    for item in payload["packages"]:
        if isinstance(item, dict) and isinstance(item.get("name"), str) and item["name"].strip():
            names.append(item["name"].strip())
    return names


def parse_package(payload: Any) -> PackageInfo:
    """Map a package detail JSON object to PackageInfo."""
    if not isinstance(payload, dict) or not isinstance(payload.get("name"), str):
        raise DecodeError("package detail without a name")

    def _strings(value: Any) -> List[str]:
        return [str(item) for item in value if item] if isinstance(value, list) else []

    versions = payload.get("st_versions")
    return PackageInfo(
        name=payload["name"],
        description=str(payload.get("description") or ""),
        homepage=str(payload.get("homepage") or ""),
        authors=_strings(payload.get("authors")),
        labels=_strings(payload.get("labels")),
        versions=[v for v in versions if isinstance(v, int)] if isinstance(versions, list) else [],
        last_modified=parse_timestamp(payload.get("last_modified")),
        is_missing=bool(payload.get("is_missing", False)),
        missing_error=str(payload.get("missing_error") or ""),
        sources=_strings(payload.get("sources")),
        readme=str(payload.get("readme") or ""),
        removed=bool(payload.get("removed", False)),
    )


class PackageControlProvider(BaseProvider):
    """
    Two-phase provider for https://packagecontrol.io

    Phase one lists package names for every configured label; phase two
    fetches each package's detail, paced by the request ticker. Names listed
    under several labels are fetched once per listing. Packages answering 404
    become tombstones and are left out of the gallery.
    """

    key = "package-control"
    name = "Package Control"
    LABEL_URL = "https://packagecontrol.io/browse/labels/{label}.json"
    PACKAGE_URL = "https://packagecontrol.io/packages/{name}.json"
    PACKAGE_PAGE_URL = "https://packagecontrol.io/packages/{name}"
    DEFAULT_LABELS = ("theme", "color scheme", "monokai")

    def __init__(self, labels: Optional[Sequence[str]] = None, **kwargs):
        super().__init__(**kwargs)
        self.labels = list(labels) if labels is not None else list(self.DEFAULT_LABELS)

    async def get_gallery(self) -> Gallery:
        self.log_start()

        names = await self.fetch_package_names()
        self.logger.info(f"Collected {len(names)} package names from {len(self.labels)} labels")

        packages = await self.fetch_packages(names)
        records = [self._to_theme(package) for package in packages if not package.is_missing]

        gallery = self.accept(records)
        self.log_end(len(gallery))
        return gallery

    async def fetch_package_names(self) -> List[str]:
        """Concatenate package names across labels, duplicates included."""

        async def fetch_label(label: str) -> List[str]:
            self.logger.info(f"Fetching label: {label}")
            response = await self.client.get_json(self.LABEL_URL.format(label=quote(label)))
            return parse_package_names(self.expect_ok(response, f"label {label!r}"))

        return await self.fan_out(self.labels, fetch_label, paced=False)

    async def fetch_packages(self, names: Sequence[str]) -> List[PackageInfo]:
        """Fetch package details; 404 answers become tombstones."""

        async def fetch_package(name: str) -> List[PackageInfo]:
            response = await self.client.get_json(self.PACKAGE_URL.format(name=quote(name)))
            if response.state == FetchState.NOT_FOUND:
                self.logger.debug(f"Package no longer exists: {name}")
                return [PackageInfo(name=name, is_missing=True, removed=True)]

            package = parse_package(self.expect_ok(response, f"package {name!r}"))
            if package.is_missing:
                return []
            return [package]

        return await self.fan_out(names, fetch_package)

    def _to_theme(self, package: PackageInfo) -> ThemeRecord:
        record = ThemeRecord(
            name=package.name,
            url=(package.sources[0] if package.sources else "")
            or package.homepage
            or self.PACKAGE_PAGE_URL.format(name=quote(package.name)),
            description=package.description,
            author=", ".join(package.authors),
            provider=self.name,
            readme=package.readme or None,
            updated_at=package.last_modified,
        )
        if package.versions:
            record.version = str(package.versions[-1])

        source_repo = ""
        for source in package.sources:
            source_repo = source
            try:
                repo = resolve_repo(source)
            except ThemeGalleryError:
                continue
            self.link_repository(record, repo)
            return record

        if source_repo:
            record.project_repo = source_repo
            record.project_repo_id = repo_hash(source_repo)
        return record
