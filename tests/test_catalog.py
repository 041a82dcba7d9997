from __future__ import annotations

import json

import httpx

from formation_hub import catalog
from formation_hub.domain.enums import Category


def test_bundled_catalog_loads():
    heroes = catalog.hero_name_to_id()
    assert heroes["odie"] == "3"
    assert heroes["smokey & meerky"] == "8"

    artifacts = catalog.get_artifact_catalog()
    assert {a.category for a in artifacts} == {Category.STARTER, Category.SEASONAL}
    assert all(a.level == 0 for a in artifacts)


def test_catalog_file_override_and_refresh(tmp_path, monkeypatch):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"heroes": [{"id": 1, "name": "Valen"}], "artifacts": []}))
    monkeypatch.setattr(catalog.config, "CATALOG_PATH", str(path))
    assert catalog.hero_name_to_id() == {"valen": "1"}

    path.write_text(json.dumps({"heroes": [{"id": 2, "name": "Thoran"}], "artifacts": []}))
    # still served from cache
    assert catalog.hero_name_to_id() == {"valen": "1"}
    catalog.refresh_catalog()
    assert catalog.hero_name_to_id() == {"thoran": "2"}


def test_catalog_from_cms(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={
            "heroes": [{"id": "9", "name": "Vala"}],
            "artifacts": [{
                "key": "starter-9", "label": "Test", "category": "starter", "max_level": 2,
            }],
        })

    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(catalog.config, "CMS_URL", "https://cms.example/catalog")
    monkeypatch.setattr(
        catalog.httpx, "get",
        lambda url, **kwargs: httpx.Client(transport=transport).get(url),
    )

    assert catalog.hero_name_to_id() == {"vala": "9"}
    assert catalog.get_artifact_catalog()[0].max_level == 2
