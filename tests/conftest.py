from __future__ import annotations

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from theme_gallery.config.database import init_db
from theme_gallery.crawlers.client import ThemeHttpClient
from theme_gallery.services.catalog_store import CatalogStore


@pytest.fixture
def make_client():
    """Client over an in-process handler, without retry backoff."""

    def _make(handler, **kwargs) -> ThemeHttpClient:
        kwargs.setdefault("max_retries", 1)
        kwargs.setdefault("backoff_base_seconds", 0)
        return ThemeHttpClient(transport=httpx.MockTransport(handler), **kwargs)

    return _make


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> CatalogStore:
    return CatalogStore(session_factory, batch_size=2)
