"""GitHub code search provider for repositories that bundle many .tmTheme files"""

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, List, Tuple, Union

from theme_gallery.crawlers.base import PagedSearchProvider
from theme_gallery.crawlers.contracts import Gallery, ThemeRecord
from theme_gallery.crawlers.github_repo import ProjectRepository, resolve_repo
from theme_gallery.errors import DecodeError


@dataclass(slots=True)
class ThemeFile:
    """One search hit: file name and path inside the repository"""

    name: str
    path: str


class GithubSearchProvider(PagedSearchProvider):
    """Finds theme files inside one GitHub repository with the code search API"""

    key = "github"
    name = "Github"
    SEARCH_URL = "https://api.github.com/search/code"
    FILE_EXTENSION = "tmTheme"

    def __init__(self, repo: Union[ProjectRepository, str], *, page_size: int = 100, **kwargs):
        super().__init__(**kwargs)
        self.repo = resolve_repo(repo) if isinstance(repo, str) else repo
        self.page_size = page_size

    async def get_gallery(self) -> Gallery:
        self.log_start()

        # Resolves the default branch too, falling back to master
        if not self.repo.branch:
            await self.ticker.wait()
        readme = await self.repo.infer_readme_url(self.client)

        files = await self.fetch_all_pages()
        records = []
        for theme_file in files:
            record = ThemeRecord(
                name=PurePosixPath(theme_file.name).stem,
                url=self.repo.raw_file_url(theme_file.path),
                author=self.repo.owner,
                provider=self.name,
                readme=readme,
            )
            records.append(self.link_repository(record, self.repo))

        gallery = self.accept(records)
        self.log_end(len(gallery))
        return gallery

    async def fetch_page(self, page: int) -> Tuple[List[ThemeFile], int]:
        response = await self.client.get_json(
            self.SEARCH_URL,
            params={
                "q": f"repo:{self.repo.owner}/{self.repo.name} extension:{self.FILE_EXTENSION}",
                "page": page,
                "per_page": self.page_size,
            },
        )
        return parse_search_result(self.expect_ok(response, f"search page {page}"))


def parse_search_result(payload: Any) -> Tuple[List[ThemeFile], int]:
    """Decode a `{total_count, items: [{name, path}]}` code search response."""
    if not isinstance(payload, dict) or not isinstance(payload.get("total_count"), int):
        raise DecodeError("code search response without total_count")

    files = []
    for item in payload.get("items") or []:
        if isinstance(item, dict) and item.get("name") and item.get("path"):
            files.append(ThemeFile(name=str(item["name"]), path=str(item["path"])))
    return files, payload["total_count"]
