"""JSON snapshot of a gallery using the catalog interchange field names"""

import json
import logging
from pathlib import Path
from typing import Iterable, Union

from theme_gallery.crawlers.contracts import Gallery, ThemeRecord
from theme_gallery.errors import DecodeError

logger = logging.getLogger(__name__)


def dump_gallery(gallery: Iterable[ThemeRecord]) -> str:
    return json.dumps([record.to_dict() for record in gallery], ensure_ascii=False)


def parse_gallery(raw: str) -> Gallery:
    try:
        payload = json.loads(raw)
    except ValueError as e:
        raise DecodeError(f"invalid gallery snapshot: {e}") from e

    if not isinstance(payload, list):
        raise DecodeError("gallery snapshot must be a JSON array")
    return [ThemeRecord.from_dict(item) for item in payload if isinstance(item, dict)]


def write_snapshot(gallery: Iterable[ThemeRecord], path: Union[str, Path]) -> Path:
    """Replicate the gallery metadata to a JSON file and return its path."""
    target = Path(path)
    if target.parent and not target.parent.exists():
        target.parent.mkdir(parents=True, exist_ok=True)

    records = list(gallery)
    target.write_text(dump_gallery(records), encoding="utf-8")
    logger.info(f"Wrote {len(records)} themes to {target}")
    return target


def load_snapshot(path: Union[str, Path]) -> Gallery:
    return parse_gallery(Path(path).read_text(encoding="utf-8"))
