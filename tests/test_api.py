from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from theme_gallery import main
from theme_gallery.crawlers.contracts import ThemeRecord


class FakeRegistry:
    def names(self) -> list[str]:
        return ["colorsublime", "vs-marketplace"]


class FakeOrchestrator:
    def __init__(self) -> None:
        self.registry = FakeRegistry()
        self.calls: list[list[str]] = []

    async def run_sync(self, *, providers=None):
        self.calls.append(list(providers or []))
        return {"success": True, "total_saved": 7, "errors": [], "sources": {}}


@pytest.fixture
def client(monkeypatch, store):
    monkeypatch.setattr(main, "store", store)
    monkeypatch.setattr(main, "last_stats", {})
    # Without the context manager the lifespan hook (init_db on the configured database) does not run
    return TestClient(main.app)


def _save(store, *names: str) -> list[ThemeRecord]:
    themes = [ThemeRecord(name=name, url=f"https://example.org/{name}.tmTheme").with_hash() for name in names]
    store.save_batch(*themes)
    return themes


def test_health(client) -> None:
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_list_themes_with_window(client, store) -> None:
    _save(store, "D", "B", "A", "C")

    response = client.get("/api/themes", params={"limit": 2, "offset": 1})

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    assert [theme["name"] for theme in body["themes"]] == ["B", "C"]
    assert "projectRepoId" in body["themes"][0]


def test_list_themes_rejects_negative_window(client) -> None:
    assert client.get("/api/themes", params={"limit": -1}).status_code == 422


def test_get_theme_and_not_found(client, store) -> None:
    (theme,) = _save(store, "Monokai")

    found = client.get(f"/api/themes/{theme.id}")
    missing = client.get("/api/themes/does-not-exist")

    assert found.status_code == 200
    assert found.json()["name"] == "Monokai"
    assert found.json()["hash"] == theme.hash
    assert missing.status_code == 404


def test_sync_runs_in_background_and_updates_stats(client, monkeypatch) -> None:
    orchestrator = FakeOrchestrator()
    monkeypatch.setattr(main, "orchestrator", orchestrator)

    before = client.get("/api/stats").json()
    response = client.post("/api/sync", params={"providers": "vs-marketplace"})
    after = client.get("/api/stats").json()

    assert before["last_run"] is None
    assert response.status_code == 200
    assert response.json()["status"] == "started"
    assert orchestrator.calls == [["vs-marketplace"]]
    assert after["total_saved"] == 7
