"""Color Sublime themes provider"""

from typing import Any

from theme_gallery.crawlers.base import StaticListProvider
from theme_gallery.crawlers.contracts import ThemeRecord
from theme_gallery.crawlers.github_repo import raw_url_branch, resolve_repo


class ColorSublimeProvider(StaticListProvider):
    """Reads the Colorsublime project's `themes.json` manifest"""

    key = "colorsublime"
    name = "Color Sublime"
    SOURCE_URL = "https://raw.githubusercontent.com/Colorsublime/Colorsublime-Themes/master/themes.json"
    THEME_FILE_URL = "https://raw.githubusercontent.com/Colorsublime/Colorsublime-Themes/master/themes/"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Every theme lives in the manifest's own repository
        self._repo = resolve_repo(self.SOURCE_URL)
        self._repo.branch = raw_url_branch(self.SOURCE_URL)

    def parse_entry(self, entry: dict[str, Any]) -> ThemeRecord:
        file_name = str(entry.get("FileName") or "").strip()
        record = ThemeRecord(
            name=str(entry.get("Title") or "").strip(),
            url=self.THEME_FILE_URL + file_name if file_name else "",
            author=str(entry.get("Author") or "").strip(),
            description=str(entry.get("Description") or "").strip(),
            provider=self.name,
            readme=self._repo.raw_file_url("README.md"),
        )
        return self.link_repository(record, self._repo)
