"""Orchestrator to coordinate provider aggregation and catalog persistence"""

from __future__ import annotations

from datetime import UTC, datetime
import logging
from pathlib import Path
from typing import Any, Callable, Sequence

from theme_gallery.config.settings import settings
from theme_gallery.crawlers.client import sanitize_for_log, sanitize_log_extra
from theme_gallery.crawlers.contracts import Gallery
from theme_gallery.errors import BatchInsertError
from theme_gallery.services.aggregator import GalleryAggregator
from theme_gallery.services.catalog_store import CatalogStore
from theme_gallery.services.registry import ProviderRegistry, build_default_registry
from theme_gallery.services.snapshot import write_snapshot

logger = logging.getLogger(__name__)


class GalleryOrchestrator:
    """Runs the registered providers, stores new themes and replicates the gallery to JSON."""

    def __init__(
        self,
        *,
        registry: ProviderRegistry | None = None,
        registry_factory: Callable[[], ProviderRegistry] = build_default_registry,
        store: CatalogStore | None = None,
        aggregator: GalleryAggregator | None = None,
        snapshot_path: str | Path | None = settings.SNAPSHOT_PATH,
    ) -> None:
        self._registry = registry
        self._registry_factory = registry_factory
        self._store = store
        self.aggregator = aggregator or GalleryAggregator()
        self.snapshot_path = snapshot_path

    @property
    def registry(self) -> ProviderRegistry:
        if self._registry is None:
            self._registry = self._registry_factory()
        return self._registry

    @property
    def store(self) -> CatalogStore:
        if self._store is None:
            self._store = CatalogStore()
        return self._store

    async def run_sync(self, *, providers: Sequence[str] | None = None) -> dict[str, Any]:
        """
        Aggregate the selected providers and persist themes not stored yet

        Returns:
            Dictionary with per-provider and overall statistics
        """
        selected = self.registry.select(providers)
        stats: dict[str, Any] = {
            "started_at": datetime.now(UTC).isoformat(),
            "providers_requested": [name for name, _ in selected],
            "sources": {},
            "total_fetched": 0,
            "total_saved": 0,
            "skipped": 0,
            "errors": [],
        }
        logger.info(
            "Gallery sync started",
            extra=sanitize_log_extra(providers_requested=stats["providers_requested"]),
        )

        if not selected:
            stats["errors"].append("no providers selected")
            return self._finish(stats)

        try:
            gallery, failures = await self.aggregator.aggregate(selected)
        finally:
            # Clients are bound to the running event loop
            await self.registry.aclose()

        for outcome in self.aggregator.last_outcomes:
            source_stats: dict[str, Any] = {"fetched": outcome.fetched, "success": outcome.success}
            if outcome.error:
                source_stats["error"] = sanitize_for_log(outcome.error)
            stats["sources"][outcome.provider] = source_stats
        stats["errors"].extend(sanitize_for_log(str(failure)) for failure in failures)
        stats["total_fetched"] = len(gallery)

        fresh = self._filter_known(gallery)
        stats["skipped"] = len(gallery) - len(fresh)

        if fresh:
            try:
                stats["total_saved"] = self.store.save_batch(*fresh)
            except BatchInsertError as e:
                logger.error(f"Error saving gallery: {e}", exc_info=True)
                stats["errors"].append(f"store: {e}")

        if self.snapshot_path and gallery:
            try:
                stats["snapshot"] = str(write_snapshot(gallery, self.snapshot_path))
            except OSError as e:
                logger.error(f"Error writing gallery snapshot: {e}")
                stats["errors"].append(f"snapshot: {e}")

        return self._finish(stats)

    def _filter_known(self, gallery: Gallery) -> Gallery:
        """Drop themes whose URL hash is already stored or repeats within the gallery."""
        seen = self.store.existing_hashes(record.hash for record in gallery)
        fresh: Gallery = []
        for record in gallery:
            if record.hash in seen:
                continue
            seen.add(record.hash)
            fresh.append(record)
        return fresh

    @staticmethod
    def _finish(stats: dict[str, Any]) -> dict[str, Any]:
        stats["completed_at"] = datetime.now(UTC).isoformat()
        stats["success"] = not stats["errors"]
        logger.info(
            f"Gallery sync completed. Fetched: {stats['total_fetched']}, saved: {stats['total_saved']}, "
            f"skipped: {stats['skipped']}",
            extra=sanitize_log_extra(success=stats["success"], errors=stats["errors"]),
        )
        return stats
