"""tmTheme-editor gallery provider"""

from typing import Any

from theme_gallery.crawlers.base import StaticListProvider
from theme_gallery.crawlers.contracts import ThemeRecord
from theme_gallery.crawlers.github_repo import raw_url_branch, resolve_repo
from theme_gallery.errors import ThemeGalleryError


class TmThemeEditorProvider(StaticListProvider):
    """
    Reads the tmTheme-editor public gallery

    The gallery is a JSON array of `{name, url, light, author, maintainer}`
    objects whose URLs point at raw GitHub files.
    """

    key = "tmtheme-editor"
    name = "tmTheme-editor"
    SOURCE_URL = "https://tmtheme-editor.herokuapp.com/gallery.json"

    def parse_entry(self, entry: dict[str, Any]) -> ThemeRecord:
        url = str(entry.get("url") or "").strip()
        record = ThemeRecord(
            name=str(entry.get("name") or "").strip(),
            url=url,
            light=bool(entry.get("light", False)),
            author=str(entry.get("author") or entry.get("maintainer") or "").strip(),
            provider=self.name,
        )

        if not url:
            return record

        try:
            repo = resolve_repo(url)
        except ThemeGalleryError as exc:
            self.logger.debug(f"Failed to get repo info for {record.name}: {exc}")
            return record

        repo.branch = raw_url_branch(url)
        self.link_repository(record, repo)
        record.readme = repo.raw_file_url("README.md")
        if not record.author:
            record.author = repo.owner
        return record
