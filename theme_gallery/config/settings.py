"""Application settings and configuration"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "Theme Gallery Crawler"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///themes.db"
    STORE_BATCH_SIZE: int = 500  # Rows per multi-values INSERT statement

    # GitHub API
    GITHUB_TOKEN: Optional[str] = None

    # HTTP client resilience controls
    HTTP_TIMEOUT_SECONDS: float = 30.0
    HTTP_MAX_RETRIES: int = 3
    HTTP_BACKOFF_BASE_SECONDS: float = 1.0
    HTTP_BACKOFF_MAX_SECONDS: float = 16.0
    HTTP_RATE_LIMIT_BUFFER_SECONDS: int = 2
    USER_AGENT: str = "ThemeGalleryCrawler/1.0"

    # Per-provider request pacing (seconds between new request starts)
    GITHUB_REQUEST_INTERVAL_SECONDS: float = 6.0  # 10 requests per minute
    PACKAGE_CONTROL_REQUEST_INTERVAL_SECONDS: float = 0.04  # 25 requests per second
    VS_MARKETPLACE_REQUEST_INTERVAL_SECONDS: float = 0.2  # 5 requests per second

    # Provider selection
    ENABLED_PROVIDERS: List[str] = [
        "tmtheme-editor",
        "colorsublime",
        "package-control",
        "vs-marketplace",
    ]
    PACKAGE_CONTROL_LABELS: List[str] = ["theme", "color scheme", "monokai"]
    GITHUB_THEME_REPOS: List[str] = [
        "https://github.com/filmgirl/TextMate-Themes",
    ]

    # Output
    SNAPSHOT_PATH: Optional[str] = "themes_meta.json"
    DOWNLOAD_DIR: str = "."

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env


settings = Settings()
