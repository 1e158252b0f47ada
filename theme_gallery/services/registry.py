"""Explicit provider registry and the factories that populate it."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, Optional, Sequence

import httpx

from theme_gallery.config.settings import Settings, settings as default_settings
from theme_gallery.crawlers.base import BaseProvider
from theme_gallery.crawlers.client import ThemeHttpClient
from theme_gallery.crawlers.colorsublime import ColorSublimeProvider
from theme_gallery.crawlers.github_repo import resolve_repo
from theme_gallery.crawlers.github_search import GithubSearchProvider
from theme_gallery.crawlers.package_control import PackageControlProvider
from theme_gallery.crawlers.rate_limit import RequestTicker
from theme_gallery.crawlers.tmteditor import TmThemeEditorProvider
from theme_gallery.crawlers.vs_marketplace import VSMarketplaceProvider
from theme_gallery.errors import ThemeGalleryError

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Name -> provider mapping built once at startup and passed by reference."""

    def __init__(self) -> None:
        self._providers: dict[str, BaseProvider] = {}

    def register(self, name: str, provider: BaseProvider) -> None:
        if name in self._providers:
            raise ValueError(f"provider already registered: {name}")
        self._providers[name] = provider

    def get(self, name: str) -> BaseProvider:
        try:
            return self._providers[name]
        except KeyError:
            raise KeyError(f"provider not registered: {name}") from None

    def names(self) -> list[str]:
        return list(self._providers)

    def select(self, names: Optional[Iterable[str]] = None) -> list[tuple[str, BaseProvider]]:
        """Registered providers in registration order, optionally restricted to `names`."""
        if names is None:
            return list(self._providers.items())
        wanted = set(names)
        return [(name, provider) for name, provider in self._providers.items() if name in wanted]

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __iter__(self) -> Iterator[str]:
        return iter(self._providers)

    def __len__(self) -> int:
        return len(self._providers)


def build_http_client(
    config: Settings,
    *,
    headers: Optional[dict[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ThemeHttpClient:
    return ThemeHttpClient(
        headers=headers,
        timeout_seconds=config.HTTP_TIMEOUT_SECONDS,
        max_retries=config.HTTP_MAX_RETRIES,
        backoff_base_seconds=config.HTTP_BACKOFF_BASE_SECONDS,
        backoff_max_seconds=config.HTTP_BACKOFF_MAX_SECONDS,
        rate_limit_buffer_seconds=config.HTTP_RATE_LIMIT_BUFFER_SECONDS,
        transport=transport,
    )


def build_github_client(
    config: Settings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ThemeHttpClient:
    headers = {"Accept": "application/vnd.github.v3+json"}
    if config.GITHUB_TOKEN:
        headers["Authorization"] = f"token {config.GITHUB_TOKEN}"
    return build_http_client(config, headers=headers, transport=transport)


def new_tmtheme_editor_provider(config: Settings, **deps: Any) -> TmThemeEditorProvider:
    return TmThemeEditorProvider(client=build_http_client(config, transport=deps.get("transport")))


def new_colorsublime_provider(config: Settings, **deps: Any) -> ColorSublimeProvider:
    return ColorSublimeProvider(client=build_http_client(config, transport=deps.get("transport")))


def new_package_control_provider(config: Settings, **deps: Any) -> PackageControlProvider:
    return PackageControlProvider(
        labels=config.PACKAGE_CONTROL_LABELS,
        client=build_http_client(config, transport=deps.get("transport")),
        ticker=deps.get("ticker") or RequestTicker(config.PACKAGE_CONTROL_REQUEST_INTERVAL_SECONDS),
    )


def new_vs_marketplace_provider(config: Settings, **deps: Any) -> VSMarketplaceProvider:
    return VSMarketplaceProvider(
        client=build_http_client(config, transport=deps.get("transport")),
        ticker=deps.get("ticker") or RequestTicker(config.VS_MARKETPLACE_REQUEST_INTERVAL_SECONDS),
    )


def new_github_search_provider(config: Settings, repo_url: str, **deps: Any) -> GithubSearchProvider:
    return GithubSearchProvider(
        repo_url,
        client=build_github_client(config, transport=deps.get("transport")),
        ticker=deps.get("ticker") or RequestTicker(config.GITHUB_REQUEST_INTERVAL_SECONDS),
    )


PROVIDER_FACTORIES = {
    TmThemeEditorProvider.key: new_tmtheme_editor_provider,
    ColorSublimeProvider.key: new_colorsublime_provider,
    PackageControlProvider.key: new_package_control_provider,
    VSMarketplaceProvider.key: new_vs_marketplace_provider,
}


def github_provider_name(repo_url: str) -> str:
    repo = resolve_repo(repo_url)
    return f"{GithubSearchProvider.key}:{repo.owner}/{repo.name}"


def build_default_registry(
    config: Optional[Settings] = None,
    *,
    enabled: Optional[Sequence[str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    ticker: Optional[RequestTicker] = None,
) -> ProviderRegistry:
    """
    Build the registry from settings

    `enabled` overrides `ENABLED_PROVIDERS`; the `github` entry expands to one
    code-search provider per `GITHUB_THEME_REPOS` repository. `transport` and
    `ticker` are forwarded to every provider (tests pass fakes here).
    """
    config = config or default_settings
    registry = ProviderRegistry()

    for name in enabled if enabled is not None else config.ENABLED_PROVIDERS:
        if name == GithubSearchProvider.key:
            for repo_url in config.GITHUB_THEME_REPOS:
                try:
                    registry.register(
                        github_provider_name(repo_url),
                        new_github_search_provider(config, repo_url, transport=transport, ticker=ticker),
                    )
                except ThemeGalleryError as exc:
                    logger.warning(f"Skipping github theme repository {repo_url}: {exc}")
            continue

        factory = PROVIDER_FACTORIES.get(name)
        if factory is None:
            logger.warning(f"Unknown provider in configuration: {name}")
            continue
        registry.register(name, factory(config, transport=transport, ticker=ticker))

    logger.info(f"Registered providers: {', '.join(registry.names()) or 'none'}")
    return registry
