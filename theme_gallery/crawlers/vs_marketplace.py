"""Visual Studio Marketplace provider using the public extension query API"""

import json
from typing import Any, Dict, List, Optional, Tuple

from theme_gallery.crawlers.base import PagedSearchProvider
from theme_gallery.crawlers.client import ThemeHttpClient
from theme_gallery.crawlers.contracts import Gallery, ThemeRecord, parse_timestamp
from theme_gallery.crawlers.github_repo import repo_hash, resolve_repo
from theme_gallery.errors import DecodeError, ThemeGalleryError

PROPERTY_SOURCE = "Microsoft.VisualStudio.Services.Links.Source"
PROPERTY_LEARN = "Microsoft.VisualStudio.Services.Links.Learn"
PROPERTY_BRANDING_THEME = "Microsoft.VisualStudio.Services.Branding.Theme"
ASSET_VSIX = "Microsoft.VisualStudio.Services.VSIXPackage"


def build_query(page_number: int, page_size: int) -> Dict[str, Any]:
    """Extension query body for VS Code extensions in the Themes category."""
    return {
        "assetTypes": [
            "Microsoft.VisualStudio.Services.Icons.Default",
            "Microsoft.VisualStudio.Services.Icons.Branding",
            "Microsoft.VisualStudio.Services.Icons.Small",
        ],
        "filters": [
            {
                "criteria": [
                    {"filterType": 8, "value": "Microsoft.VisualStudio.Code"},
                    {"filterType": 10, "value": 'target:"Microsoft.VisualStudio.Code" '},
                    {"filterType": 12, "value": "37888"},
                    {"filterType": 5, "value": "Themes"},
                ],
                "direction": 2,
                "pageSize": page_size,
                "pageNumber": page_number,
                "sortBy": 4,
                "sortOrder": 0,
                "pagingToken": None,
            }
        ],
        "flags": 870,
    }


def parse_extensions(payload: Any) -> Tuple[List[Dict[str, Any]], int]:
    """
    Split an extension query response into its extensions and TotalCount

    Raises:
        DecodeError: results, result metadata or the total count are missing
    """
    results = payload.get("results") if isinstance(payload, dict) else None
    if not isinstance(results, list) or not results or not isinstance(results[0], dict):
        raise DecodeError("no result for extensions")

    first = results[0]
    metadata = first.get("resultMetadata")
    if not isinstance(metadata, list) or not metadata:
        raise DecodeError("result metadata not found")

    total = -1
    for group in metadata:
        items = group.get("metadataItems") if isinstance(group, dict) else None
        for item in items or []:
            if isinstance(item, dict) and item.get("name") == "TotalCount" and isinstance(item.get("count"), int):
                total = item["count"]
                break
        if total >= 0:
            break

    if total < 0:
        raise DecodeError("total count not found")

    extensions = first.get("extensions")
    if not isinstance(extensions, list):
        extensions = []
    return [ext for ext in extensions if isinstance(ext, dict)], total


def version_properties(version: Dict[str, Any]) -> Dict[str, str]:
    """Flatten a version's `[{key, value}]` properties into a dict."""
    properties = version.get("properties")
    if not isinstance(properties, list):
        return {}
    return {
        str(prop.get("key")): str(prop.get("value") or "")
        for prop in properties
        if isinstance(prop, dict) and prop.get("key")
    }


class VSMarketplaceProvider(PagedSearchProvider):
    """
    Pages through the VS Code Themes category of the Visual Studio Marketplace

    The marketplace reports a TotalCount in the first page's result metadata;
    the remaining pages are fetched concurrently.
    """

    key = "vs-marketplace"
    name = "Visual Studio Marketplace"
    EXTENSIONS_URL = "https://marketplace.visualstudio.com/_apis/public/gallery/extensionquery"
    VSPACKAGE_URL = (
        "https://marketplace.visualstudio.com/_apis/public/gallery/publishers/"
        "{publisher}/vsextensions/{extension}/{version}/vspackage"
    )
    ACCEPT = "application/json;api-version=6.1-preview.1;excludeUrls=true"

    def __init__(self, *, page_size: int = 100, github_client: Optional[ThemeHttpClient] = None, **kwargs):
        super().__init__(**kwargs)
        self.page_size = page_size
        self._github_client = github_client

    async def get_gallery(self) -> Gallery:
        self.log_start()

        extensions = await self.fetch_all_pages()
        self.logger.info(f"Fetched {len(extensions)} extensions")

        records = []
        for extension in extensions:
            record = await self._to_theme(extension)
            if record is not None:
                records.append(record)

        gallery = self.accept(records)
        self.log_end(len(gallery))
        return gallery

    async def fetch_page(self, page: int) -> Tuple[List[Dict[str, Any]], int]:
        response = await self.client.post_json(
            self.EXTENSIONS_URL,
            content=json.dumps(build_query(page, self.page_size)),
            headers={"Accept": self.ACCEPT},
        )
        return parse_extensions(self.expect_ok(response, f"extensions page {page}"))

    async def _to_theme(self, extension: Dict[str, Any]) -> Optional[ThemeRecord]:
        versions = extension.get("versions")
        if not isinstance(versions, list) or not versions or not isinstance(versions[0], dict):
            self.logger.debug(f"Skipping extension without versions: {extension.get('extensionName')}")
            return None

        version = versions[0]
        properties = version_properties(version)
        publisher = extension.get("publisher") if isinstance(extension.get("publisher"), dict) else {}
        publisher_name = str(publisher.get("publisherName") or "")
        version_number = str(version.get("version") or "")

        record = ThemeRecord(
            name=str(extension.get("displayName") or extension.get("extensionName") or ""),
            url=self._package_url(extension, version, publisher_name, version_number),
            author=publisher_name,
            description=str(extension.get("shortDescription") or ""),
            version=version_number or None,
            readme=properties.get(PROPERTY_LEARN) or None,
            provider=self.name,
            updated_at=parse_timestamp(version.get("lastUpdated")),
            light=properties.get(PROPERTY_BRANDING_THEME, "").lower() == "light",
        )

        source = properties.get(PROPERTY_SOURCE, "")
        if not source:
            return record

        try:
            repo = resolve_repo(source)
        except ThemeGalleryError:
            record.project_repo = source
            record.project_repo_id = repo_hash(source)
            return record

        self.link_repository(record, repo)
        record.readme = await repo.infer_readme_url(self._github_client)
        return record

    def _package_url(
        self,
        extension: Dict[str, Any],
        version: Dict[str, Any],
        publisher_name: str,
        version_number: str,
    ) -> str:
        files = version.get("files")
        for asset in files if isinstance(files, list) else []:
            if isinstance(asset, dict) and asset.get("assetType") == ASSET_VSIX and asset.get("source"):
                return str(asset["source"])

        extension_name = str(extension.get("extensionName") or "")
        if not (publisher_name and extension_name and version_number):
            return ""
        return self.VSPACKAGE_URL.format(
            publisher=publisher_name,
            extension=extension_name,
            version=version_number,
        )
