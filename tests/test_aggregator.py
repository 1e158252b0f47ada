from __future__ import annotations

import asyncio

import pytest

from theme_gallery.config.settings import Settings
from theme_gallery.crawlers.base import BaseProvider
from theme_gallery.crawlers.contracts import ThemeRecord
from theme_gallery.errors import ProviderError, SourceUnavailable
from theme_gallery.services.aggregator import GalleryAggregator
from theme_gallery.services.registry import ProviderRegistry, build_default_registry


class StaticProvider(BaseProvider):
    name = "static"

    def __init__(self, names: list[str], *, delay: float = 0) -> None:
        super().__init__()
        self.names = names
        self.delay = delay

    async def get_gallery(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.accept(ThemeRecord(name=name, url=f"https://example.org/{name}.tmTheme") for name in self.names)


class FailingProvider(BaseProvider):
    name = "failing"

    def __init__(self, error: Exception) -> None:
        super().__init__()
        self.error = error

    async def get_gallery(self):
        raise self.error


def test_one_failing_provider_does_not_abort_the_others() -> None:
    aggregator = GalleryAggregator()
    providers = [
        ("first", StaticProvider(["A", "B"], delay=0.01)),
        ("broken", FailingProvider(SourceUnavailable("upstream down", status_code=503))),
        ("second", StaticProvider(["C"])),
    ]

    gallery, failures = asyncio.run(aggregator.aggregate(providers))

    assert sorted(theme.name for theme in gallery) == ["A", "B", "C"]
    assert len(failures) == 1
    assert failures[0].provider == "broken"
    assert isinstance(failures[0].error, SourceUnavailable)
    assert str(failures[0]) == "broken: upstream down"

    outcomes = {outcome.provider: outcome for outcome in aggregator.last_outcomes}
    assert outcomes["first"].fetched == 2 and outcomes["first"].success is True
    assert outcomes["broken"].success is False and outcomes["broken"].error == "upstream down"


def test_partial_gallery_of_failed_provider_is_not_merged() -> None:
    partial = [ThemeRecord(name="Half", url="https://example.org/half.tmTheme").with_hash()]
    aggregator = GalleryAggregator()

    gallery, failures = asyncio.run(
        aggregator.aggregate(
            [
                StaticProvider(["Full"]),
                FailingProvider(ProviderError("page 2 failed", partial=partial)),
            ]
        )
    )

    assert [theme.name for theme in gallery] == ["Full"]
    assert failures[0].provider == "failing"
    assert failures[0].error.partial == partial


def test_aggregating_nothing_returns_empty_results() -> None:
    gallery, failures = asyncio.run(GalleryAggregator().aggregate([]))
    assert gallery == []
    assert failures == []


def test_registry_rejects_duplicates_and_selects_in_order() -> None:
    registry = ProviderRegistry()
    registry.register("a", StaticProvider(["A"]))
    registry.register("b", StaticProvider(["B"]))
    registry.register("c", StaticProvider(["C"]))

    with pytest.raises(ValueError):
        registry.register("a", StaticProvider(["A"]))
    with pytest.raises(KeyError):
        registry.get("missing")

    assert [name for name, _ in registry.select(["c", "a"])] == ["a", "c"]
    assert registry.names() == ["a", "b", "c"]
    assert "b" in registry and len(registry) == 3


def test_default_registry_expands_github_repositories_and_skips_unknown() -> None:
    config = Settings(
        ENABLED_PROVIDERS=["colorsublime", "github", "vs-marketplace", "nope"],
        GITHUB_THEME_REPOS=["https://github.com/octo/themes", "https://gitlab.com/not/github"],
        _env_file=None,
    )

    registry = build_default_registry(config)

    assert registry.names() == ["colorsublime", "github:octo/themes", "vs-marketplace"]
    assert registry.get("github:octo/themes").repo.url == "https://github.com/octo/themes"
