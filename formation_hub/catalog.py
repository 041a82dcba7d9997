"""
Hero and artifact catalog ("CMS data").

The catalog is fetched from ``CMS_URL`` when configured, otherwise read from
the bundled ``data/catalog.json``.  Either way it is cached in the shared
cache backend for ``CATALOG_TTL_SECONDS``.

Shape::

    {
      "heroes":    [{"id": "12", "name": "Valen"}, ...],
      "artifacts": [{"key": "...", "label": "...", "image_url": "...",
                     "category": "starter", "max_level": 10, "active": true}, ...]
    }
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

import httpx

from formation_hub import config
from formation_hub.cache_backend import cached_json, revalidate_tags
from formation_hub.domain.models import Artifact

logger = logging.getLogger(__name__)

CATALOG_TAG = "catalog"


def _fetch_catalog() -> Dict[str, Any]:
    if config.CMS_URL:
        logger.info("Fetching catalog from %s", config.CMS_URL)
        resp = httpx.get(config.CMS_URL, timeout=10.0)
        resp.raise_for_status()
        data = resp.json()
    else:
        with open(config.CATALOG_PATH, "r", encoding="utf-8") as fh:
            data = json.load(fh)

    if not isinstance(data, dict):
        raise ValueError("catalog must be a JSON object")
    return {
        "heroes": list(data.get("heroes") or []),
        "artifacts": list(data.get("artifacts") or []),
    }


def load_catalog() -> Dict[str, Any]:
    return cached_json(
        "catalog",
        _fetch_catalog,
        tags=(CATALOG_TAG,),
        ttl_seconds=config.CATALOG_TTL_SECONDS,
    )


def refresh_catalog() -> None:
    revalidate_tags(CATALOG_TAG)


def hero_name_to_id() -> Dict[str, str]:
    """Map lowercase hero names to their catalog ids."""
    return {
        str(hero["name"]).strip().lower(): str(hero["id"])
        for hero in load_catalog()["heroes"]
        if hero.get("name") and hero.get("id") is not None
    }


def get_artifact_catalog() -> List[Artifact]:
    return [Artifact(**raw) for raw in load_catalog()["artifacts"]]
