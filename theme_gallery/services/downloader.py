"""Theme file download into light/dark folders"""

import logging
import re
from pathlib import Path
from typing import Optional, Union

import httpx

from theme_gallery.config.settings import settings
from theme_gallery.crawlers.contracts import ThemeRecord
from theme_gallery.errors import SourceUnavailable

logger = logging.getLogger(__name__)

THEME_FILE_SUFFIX = ".tmTheme"

# Alternation order matters: " - " must win over the single space
_FILE_NAME_REPLACEMENTS = {"(": "", ")": "", "_": "-", " - ": "-", " ": "-", "/": "-", "\\": "-"}
_FILE_NAME_PATTERN = re.compile(r"\(|\)|_| - | |/|\\")
_WORD_START = re.compile(r"(?<!\w)\w")


def to_file_name(name: str) -> str:
    """
    File-system friendly theme file name, e.g. `Monokai (Dark)` -> `Monokai-Dark.tmTheme`

    Path separators become hyphens and leading dots are dropped, so the
    result is always a single path component.

    Raises:
        ValueError: nothing usable is left of the name
    """
    filename = _FILE_NAME_PATTERN.sub(lambda match: _FILE_NAME_REPLACEMENTS[match.group(0)], name)
    filename = _WORD_START.sub(lambda match: match.group(0).upper(), filename)
    filename = filename.lstrip(".-")
    if not filename.strip():
        raise ValueError(f"theme name has no usable file name characters: {name!r}")
    return filename + THEME_FILE_SUFFIX


def theme_folder(record: ThemeRecord) -> str:
    return "light" if record.light else "dark"


async def download_theme(
    record: ThemeRecord,
    dest_dir: Union[str, Path, None] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> Path:
    """
    Download one theme file to `<dest_dir>/<light|dark>/<file name>`

    Raises:
        SourceUnavailable: the theme URL answered with a non-200 status
        httpx.HTTPError: transport failure
        ValueError: the theme name does not map to a file inside the folder
    """
    folder = Path(dest_dir or settings.DOWNLOAD_DIR) / theme_folder(record)
    folder.mkdir(parents=True, exist_ok=True)
    target = folder / to_file_name(record.name)
    if target.resolve().parent != folder.resolve():
        raise ValueError(f"theme file {target} escapes download folder {folder}")

    logger.info(f"Downloading theme {record.name} to {target}")

    owns_client = client is None
    http = client or httpx.AsyncClient(
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        headers={"User-Agent": settings.USER_AGENT},
        follow_redirects=True,
    )
    try:
        response = await http.get(record.url)
    finally:
        if owns_client:
            await http.aclose()

    if response.status_code != 200:
        logger.warning(f"Theme download failed for {record.name}: HTTP {response.status_code}")
        raise SourceUnavailable(
            f"download of {record.url} failed with status {response.status_code}",
            status_code=response.status_code,
        )

    target.write_bytes(response.content)
    return target
