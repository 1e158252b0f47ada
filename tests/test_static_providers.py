from __future__ import annotations

import httpx
import pytest

from theme_gallery.crawlers.colorsublime import ColorSublimeProvider
from theme_gallery.crawlers.contracts import url_hash
from theme_gallery.crawlers.github_repo import repo_hash
from theme_gallery.crawlers.tmteditor import TmThemeEditorProvider
from theme_gallery.errors import DecodeError, NoThemesFound, SourceUnavailable

TMTHEME_GALLERY = [
    {
        "name": "Monokai Soda",
        "url": "https://raw.githubusercontent.com/deplorableword/textmate-solarized/develop/Monokai%20Soda.tmTheme",
        "light": False,
        "author": "",
        "maintainer": "",
    },
    {
        "name": "Espresso",
        "url": "https://example.org/themes/Espresso.tmTheme",
        "light": True,
        "maintainer": "Jane",
    },
    {"name": "", "url": "https://example.org/themes/Nameless.tmTheme"},
    {"name": "No Url"},
]

COLORSUBLIME_THEMES = [
    {
        "Author": "Buymeasoda",
        "Description": "Soda theme colors",
        "FileName": "Soda.tmTheme",
        "Title": "Soda",
    },
    {"Author": "Nobody", "Title": "Missing File"},
]


def _static(payload=None, *, status_code: int = 200, content: bytes | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if content is not None:
            return httpx.Response(status_code, content=content)
        return httpx.Response(status_code, json=payload)

    return handler


@pytest.mark.asyncio
async def test_tmtheme_editor_maps_entries_and_drops_invalid(make_client) -> None:
    provider = TmThemeEditorProvider(client=make_client(_static(TMTHEME_GALLERY)))
    gallery = await provider.get_gallery()
    await provider.aclose()

    assert [theme.name for theme in gallery] == ["Monokai Soda", "Espresso"]

    soda, espresso = gallery
    assert soda.hash == url_hash(soda.url)
    assert soda.author == "deplorableword"
    assert soda.project_repo == "https://github.com/deplorableword/textmate-solarized"
    assert soda.project_repo_id == repo_hash("https://github.com/deplorableword/textmate-solarized")
    assert soda.readme == "https://raw.githubusercontent.com/deplorableword/textmate-solarized/develop/README.md"
    assert soda.provider == "tmTheme-editor"

    assert espresso.light is True
    assert espresso.author == "Jane"
    assert espresso.project_repo is None
    assert espresso.project_repo_id is None


@pytest.mark.asyncio
async def test_colorsublime_builds_file_urls_and_shares_repository(make_client) -> None:
    provider = ColorSublimeProvider(client=make_client(_static(COLORSUBLIME_THEMES)))
    gallery = await provider.get_gallery()

    assert len(gallery) == 1
    soda = gallery[0]
    assert soda.name == "Soda"
    assert soda.url == "https://raw.githubusercontent.com/Colorsublime/Colorsublime-Themes/master/themes/Soda.tmTheme"
    assert soda.author == "Buymeasoda"
    assert soda.description == "Soda theme colors"
    assert soda.project_repo == "https://github.com/Colorsublime/Colorsublime-Themes"
    assert soda.project_repo_id == repo_hash("https://github.com/Colorsublime/Colorsublime-Themes")
    assert soda.readme == "https://raw.githubusercontent.com/Colorsublime/Colorsublime-Themes/master/README.md"


@pytest.mark.asyncio
@pytest.mark.parametrize("provider_cls", [TmThemeEditorProvider, ColorSublimeProvider])
async def test_static_list_error_mapping(make_client, provider_cls) -> None:
    with pytest.raises(SourceUnavailable) as exc_info:
        await provider_cls(client=make_client(_static(status_code=500, content=b"boom"))).get_gallery()
    assert exc_info.value.status_code == 500

    with pytest.raises(DecodeError):
        await provider_cls(client=make_client(_static(content=b"{not json"))).get_gallery()

    with pytest.raises(DecodeError):
        await provider_cls(client=make_client(_static({"themes": []}))).get_gallery()

    with pytest.raises(NoThemesFound):
        await provider_cls(client=make_client(_static([]))).get_gallery()
