"""Gallery sync and theme download entrypoints."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Sequence

import httpx

from theme_gallery.config.settings import settings
from theme_gallery.crawlers.github_search import GithubSearchProvider
from theme_gallery.errors import ThemeGalleryError
from theme_gallery.orchestrator import GalleryOrchestrator
from theme_gallery.services.downloader import download_theme
from theme_gallery.services.snapshot import load_snapshot

logger = logging.getLogger(__name__)

GITHUB_PROVIDER_PREFIX = f"{GithubSearchProvider.key}:"


def normalize_provider_selector(providers: str | Sequence[str] | None, *, available: Sequence[str]) -> list[str]:
    """
    Normalize provider selector input into registry order

    `github` selects every registered `github:<owner>/<name>` provider. Unknown
    names are dropped; a selection with no known names selects nothing.
    """
    if providers is None:
        return list(available)

    if isinstance(providers, str):
        requested = [part.strip() for part in providers.split(",") if part.strip()]
    else:
        requested = [str(part).strip() for part in providers if str(part).strip()]

    if not requested:
        return list(available)

    wanted: set[str] = set()
    unknown: set[str] = set()
    for name in requested:
        if name == GithubSearchProvider.key:
            expanded = [candidate for candidate in available if candidate.startswith(GITHUB_PROVIDER_PREFIX)]
        else:
            expanded = [name] if name in available else []
        if not expanded:
            unknown.add(name)
        wanted.update(expanded)

    if unknown:
        logger.warning(f"Ignoring unknown providers: {', '.join(sorted(unknown))}")
    return [name for name in available if name in wanted]


async def run_gallery_sync(
    *,
    orchestrator: GalleryOrchestrator | None = None,
    providers: str | Sequence[str] | None = None,
) -> dict[str, Any]:
    """Fetch every selected provider and persist the themes not stored yet."""
    job_orchestrator = orchestrator or GalleryOrchestrator()
    selected = normalize_provider_selector(providers, available=job_orchestrator.registry.names())
    return await job_orchestrator.run_sync(providers=selected)


async def run_theme_download(
    *,
    snapshot_path: str | Path | None = None,
    dest_dir: str | Path | None = None,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Download every theme listed in a gallery snapshot into light/dark folders."""
    gallery = load_snapshot(snapshot_path or settings.SNAPSHOT_PATH)
    stats: dict[str, Any] = {"requested": len(gallery), "downloaded": 0, "errors": []}

    owns_client = client is None
    http = client or httpx.AsyncClient(
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        headers={"User-Agent": settings.USER_AGENT},
        follow_redirects=True,
    )
    try:
        for record in gallery:
            try:
                await download_theme(record, dest_dir, client=http)
                stats["downloaded"] += 1
            except (ThemeGalleryError, httpx.HTTPError, OSError, ValueError) as e:
                logger.error(f"Error downloading {record.name}: {e}")
                stats["errors"].append(f"{record.name}: {e}")
    finally:
        if owns_client:
            await http.aclose()

    stats["success"] = not stats["errors"]
    logger.info(f"Theme download completed: {stats['downloaded']} of {stats['requested']} files")
    return stats
