"""Gallery aggregation across independent providers"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Tuple, Union

from theme_gallery.crawlers.base import BaseProvider
from theme_gallery.crawlers.contracts import Gallery

logger = logging.getLogger(__name__)

ProviderEntry = Union[BaseProvider, Tuple[str, BaseProvider]]


@dataclass(slots=True)
class ProviderFailure:
    """One provider's failed fetch"""

    provider: str
    error: BaseException

    def __str__(self) -> str:
        return f"{self.provider}: {self.error}"


@dataclass(slots=True)
class ProviderOutcome:
    """Per-provider fetch statistics for run reports"""

    provider: str
    fetched: int
    success: bool
    error: str | None = None


class GalleryAggregator:
    """
    Runs every provider concurrently and merges their galleries

    A failing provider never aborts the others: its error is collected and
    the merged gallery holds the output of every provider that succeeded.
    No cross-provider dedup happens here.
    """

    def __init__(self) -> None:
        self.last_outcomes: list[ProviderOutcome] = []

    async def aggregate(self, providers: Iterable[ProviderEntry]) -> Tuple[Gallery, list[ProviderFailure]]:
        named = [self._named(entry) for entry in providers]
        logger.info(f"Aggregating {len(named)} providers...")

        results = await asyncio.gather(
            *(provider.get_gallery() for _, provider in named),
            return_exceptions=True,
        )

        gallery: Gallery = []
        failures: list[ProviderFailure] = []
        outcomes: list[ProviderOutcome] = []
        for (name, _), result in zip(named, results):
            if isinstance(result, BaseException):
                logger.error(f"Error fetching {name}: {result}", exc_info=result)
                failures.append(ProviderFailure(provider=name, error=result))
                outcomes.append(ProviderOutcome(provider=name, fetched=0, success=False, error=str(result)))
                continue

            gallery.extend(result)
            outcomes.append(ProviderOutcome(provider=name, fetched=len(result), success=True))

        self.last_outcomes = outcomes
        logger.info(f"Aggregated {len(gallery)} themes, {len(failures)} providers failed")
        return gallery, failures

    @staticmethod
    def _named(entry: Any) -> Tuple[str, BaseProvider]:
        if isinstance(entry, tuple):
            return entry[0], entry[1]
        name = getattr(entry, "key", "") or getattr(entry, "name", "") or entry.__class__.__name__
        return name, entry

