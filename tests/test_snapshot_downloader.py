from __future__ import annotations

import json
from datetime import UTC, datetime

import httpx
import pytest

from theme_gallery.crawlers.contracts import ThemeRecord
from theme_gallery.errors import DecodeError, SourceUnavailable
from theme_gallery.jobs.gallery_sync import run_theme_download
from theme_gallery.services.downloader import download_theme, to_file_name
from theme_gallery.services.snapshot import dump_gallery, load_snapshot, parse_gallery, write_snapshot


def _record(**overrides) -> ThemeRecord:
    record = ThemeRecord(
        name="Monokai Soda",
        url="https://example.org/Monokai%20Soda.tmTheme",
        author="octo",
        description="Dark and fizzy",
        project_repo="https://github.com/octo/themes",
        project_repo_id="f" * 64,
        readme="https://raw.githubusercontent.com/octo/themes/master/README.md",
        provider="tmTheme-editor",
    ).with_hash()
    for key, value in overrides.items():
        setattr(record, key, value)
    return record


def test_snapshot_uses_interchange_field_names() -> None:
    payload = json.loads(dump_gallery([_record(version="2.1", updated_at=datetime(2021, 5, 1, tzinfo=UTC))]))

    assert set(payload[0]) == {
        "id",
        "name",
        "author",
        "description",
        "url",
        "hash",
        "light",
        "version",
        "projectRepoId",
        "projectRepo",
        "readme",
        "provider",
        "updatedAt",
    }
    assert payload[0]["updatedAt"] == "2021-05-01T00:00:00+00:00"


def test_snapshot_omits_empty_optional_fields() -> None:
    payload = json.loads(dump_gallery([_record(provider=None)]))[0]

    for key in ("version", "license", "provider", "updatedAt"):
        assert key not in payload


def test_snapshot_file_round_trip(tmp_path) -> None:
    gallery = [
        _record(version="1.0", license="MIT", updated_at=datetime(2020, 1, 2, 3, 4, 5, tzinfo=UTC)),
        _record(name="Espresso", url="https://example.org/Espresso.tmTheme", light=True).with_hash(),
    ]

    path = write_snapshot(gallery, tmp_path / "nested" / "themes_meta.json")

    assert load_snapshot(path) == gallery


def test_parse_gallery_rejects_non_arrays() -> None:
    with pytest.raises(DecodeError):
        parse_gallery('{"name": "x"}')
    with pytest.raises(DecodeError):
        parse_gallery("not json")


@pytest.mark.parametrize(("raw", "expected"), [("true", True), ('"false"', False), ('"true"', False), ("1", False)])
def test_parse_gallery_only_accepts_boolean_light_flag(raw: str, expected: bool) -> None:
    gallery = parse_gallery(f'[{{"name": "x", "url": "https://example.org/x.tmTheme", "light": {raw}}}]')

    assert gallery[0].light is expected


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("Monokai (Dark)", "Monokai-Dark.tmTheme"),
        ("solarized_light - v2", "Solarized-Light-V2.tmTheme"),
        ("Tomorrow Night Eighties", "Tomorrow-Night-Eighties.tmTheme"),
        ("iPlastic", "IPlastic.tmTheme"),
        ("../../escaped", "Escaped.tmTheme"),
        ("themes\\dark/Night", "Themes-Dark-Night.tmTheme"),
    ],
)
def test_to_file_name(name: str, expected: str) -> None:
    assert to_file_name(name) == expected


@pytest.mark.asyncio
async def test_download_theme_writes_into_light_or_dark_folder(tmp_path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<plist/>")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        dark = await download_theme(_record(), tmp_path, client=client)
        light = await download_theme(_record(name="Espresso", light=True), tmp_path, client=client)

    assert dark == tmp_path / "dark" / "Monokai-Soda.tmTheme"
    assert light == tmp_path / "light" / "Espresso.tmTheme"
    assert dark.read_bytes() == b"<plist/>"


@pytest.mark.parametrize("name", ["", "..", " . ", "/"])
def test_to_file_name_rejects_names_without_usable_characters(name: str) -> None:
    with pytest.raises(ValueError):
        to_file_name(name)


@pytest.mark.asyncio
async def test_download_theme_stays_inside_destination_folder(tmp_path) -> None:
    dest = tmp_path / "themes"
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"<plist/>"))

    async with httpx.AsyncClient(transport=transport) as client:
        target = await download_theme(_record(name="../../escaped"), dest, client=client)
        with pytest.raises(ValueError):
            await download_theme(_record(name=".."), dest, client=client)

    assert target == dest / "dark" / "Escaped.tmTheme"
    assert target.resolve().parent == (dest / "dark").resolve()
    assert not (tmp_path / "Escaped.tmTheme").exists()
    assert sorted(path.name for path in (dest / "dark").iterdir()) == ["Escaped.tmTheme"]


@pytest.mark.asyncio
async def test_download_theme_raises_on_error_status(tmp_path) -> None:
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(404))) as client:
        with pytest.raises(SourceUnavailable) as exc_info:
            await download_theme(_record(), tmp_path, client=client)

    assert exc_info.value.status_code == 404
    assert not (tmp_path / "dark" / "Monokai-Soda.tmTheme").exists()


@pytest.mark.asyncio
async def test_theme_download_job_collects_failures(tmp_path) -> None:
    snapshot = write_snapshot(
        [_record(), _record(name="Gone", url="https://example.org/Gone.tmTheme")],
        tmp_path / "themes_meta.json",
    )

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("Gone.tmTheme"):
            return httpx.Response(404)
        return httpx.Response(200, content=b"<plist/>")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        stats = await run_theme_download(snapshot_path=snapshot, dest_dir=tmp_path / "out", client=client)

    assert stats["requested"] == 2
    assert stats["downloaded"] == 1
    assert len(stats["errors"]) == 1 and stats["errors"][0].startswith("Gone:")
    assert stats["success"] is False
