"""Base provider class with common functionality"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Tuple, TypeVar
import asyncio
import math
import logging

from theme_gallery.crawlers.client import ThemeHttpClient
from theme_gallery.crawlers.contracts import FetchResult, FetchState, Gallery, ThemeRecord
from theme_gallery.crawlers.github_repo import ProjectRepository
from theme_gallery.crawlers.rate_limit import RequestTicker
from theme_gallery.errors import (
    DecodeError,
    NoThemesFound,
    ProviderError,
    RateLimitExceeded,
    SourceUnavailable,
)

ItemT = TypeVar("ItemT")
ResultT = TypeVar("ResultT")


class BaseProvider(ABC):
    """
    Base theme provider

    All source-specific providers inherit from this class. The HTTP client and
    the request ticker are injected so tests can swap in fake transports and a
    zero-interval ticker.
    """

    key: str = ""
    name: str = ""

    def __init__(
        self,
        *,
        client: Optional[ThemeHttpClient] = None,
        ticker: Optional[RequestTicker] = None,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.client = client or ThemeHttpClient()
        self.ticker = ticker or RequestTicker(0)

    @abstractmethod
    async def get_gallery(self) -> Gallery:
        """
        Fetch the source and return normalized theme records

        Returns:
            List of valid ThemeRecord objects

        Raises:
            ThemeGalleryError subclasses; `ProviderError.partial` holds the
            best-effort records gathered before a fanned-out fetch failed
        """
        pass

    async def aclose(self) -> None:
        await self.client.aclose()

    def log_start(self):
        """Log fetch start"""
        self.logger.info(f"Starting {self.__class__.__name__}")

    def log_end(self, count: int):
        """Log fetch end with count"""
        self.logger.info(f"Finished {self.__class__.__name__}: {count} themes")

    def expect_ok(self, response: FetchResult[Any], what: str) -> Any:
        """Unwrap a successful response or raise the matching gallery error."""
        if response.state == FetchState.OK:
            return response.data
        if response.state == FetchState.RATE_LIMITED:
            raise RateLimitExceeded(f"{self.name}: rate limited while fetching {what}")
        if response.state == FetchState.MALFORMED:
            raise DecodeError(f"{self.name}: malformed {what}: {response.error}")
        raise SourceUnavailable(
            f"{self.name}: {what} not available ({response.error})",
            status_code=response.status_code,
        )

    async def fan_out(
        self,
        items: Iterable[ItemT],
        worker: Callable[[ItemT], Awaitable[Optional[List[ResultT]]]],
        *,
        paced: bool = True,
    ) -> List[ResultT]:
        """
        Run `worker` once per item concurrently and merge what they return

        Each task takes a ticker permit before starting its request when
        `paced`. The barrier waits for every task; on failure the first error
        is raised as ProviderError carrying the results gathered so far.
        Cancelling the caller cancels and awaits every outstanding task.
        """
        results: List[ResultT] = []
        lock = asyncio.Lock()

        async def run(item: ItemT) -> None:
            if paced:
                await self.ticker.wait()
            produced = await worker(item)
            if not produced:
                return
            async with lock:
                results.extend(produced)

        tasks = [asyncio.create_task(run(item)) for item in items]
        try:
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        errors = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
        if errors:
            self.logger.warning(f"{len(errors)} of {len(tasks)} requests failed in {self.__class__.__name__}")
            raise ProviderError(f"{self.name}: {errors[0]}", partial=list(results)) from errors[0]
        return results

    def accept(self, records: Iterable[ThemeRecord]) -> Gallery:
        """Drop records without name or URL and stamp the URL hash and provider."""
        gallery: Gallery = []
        for record in records:
            if not record.is_valid():
                self.logger.debug(f"Skipping theme without name or url: {record!r}")
                continue
            record = record.with_hash()
            if not record.provider:
                record.provider = self.name
            gallery.append(record)
        return gallery

    @staticmethod
    def link_repository(record: ThemeRecord, repo: ProjectRepository) -> ThemeRecord:
        """Attach canonical repository URL and its identity hash."""
        record.project_repo = repo.url
        record.project_repo_id = repo.repo_id
        if repo.license and not record.license:
            record.license = repo.license
        return record


class StaticListProvider(BaseProvider):
    """
    Provider for sources that publish every theme in one JSON array

    One GET, one decode, one mapping pass.
    """

    SOURCE_URL: str = ""

    async def get_gallery(self) -> Gallery:
        self.log_start()

        response = await self.client.get_json(self.SOURCE_URL)
        payload = self.expect_ok(response, "theme list")
        if not isinstance(payload, list):
            raise DecodeError(f"{self.name}: expected a JSON array of themes")
        if not payload:
            raise NoThemesFound(f"{self.name}: themes not found")

        records = []
        for entry in payload:
            if not isinstance(entry, dict):
                self.logger.warning(f"Skipping non-object theme entry: {entry!r}")
                continue
            records.append(self.parse_entry(entry))

        gallery = self.accept(records)
        self.log_end(len(gallery))
        return gallery

    @abstractmethod
    def parse_entry(self, entry: dict[str, Any]) -> ThemeRecord:
        """Map one upstream JSON object to a ThemeRecord."""
        pass


class PagedSearchProvider(BaseProvider):
    """
    Provider for search APIs that report a total count

    Page 1 is fetched first to learn the total; `total == 0` means the source
    has no themes. The remaining `ceil(total / page_size) - 1` pages are then
    fetched concurrently. Every page request, page 1 included, takes a ticker
    permit first.
    """

    page_size: int = 100

    @abstractmethod
    async def fetch_page(self, page: int) -> Tuple[List[Any], int]:
        """Fetch one page and return its items plus the reported total."""
        pass

    async def fetch_all_pages(self) -> List[Any]:
        await self.ticker.wait()
        items, total = await self.fetch_page(1)
        if total <= 0:
            raise NoThemesFound(f"{self.name}: themes not found")

        pages = math.ceil(total / self.page_size)
        self.logger.info(f"{self.name} reports {total} results over {pages} pages")

        async def fetch_rest(page: int) -> List[Any]:
            page_items, _ = await self.fetch_page(page)
            return page_items

        try:
            rest = await self.fan_out(range(2, pages + 1), fetch_rest)
        except ProviderError as exc:
            exc.partial = list(items) + exc.partial
            raise
        return list(items) + rest
