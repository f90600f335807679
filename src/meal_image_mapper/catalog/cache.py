# src/meal_image_mapper/catalog/cache.py
from __future__ import annotations

"""
cache.py

Purpose:
    Turn the raw catalog (embeddings + cuisines index) into ImageRecord objects
    and keep them for the lifetime of the process.

    CatalogCache has explicit load-if-absent semantics: the first successful
    get_or_load() reads the source, later calls return the same Catalog.
    A failed load leaves the cache empty so the next invocation tries again.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from meal_image_mapper.catalog.sources import CatalogLoadError, CatalogSource
from meal_image_mapper.logging_utils import get_logger
from meal_image_mapper.schema import ImageRecord

logger = get_logger(__name__)


@dataclass
class Catalog:
    images: List[ImageRecord]
    # Cuisine name -> cuisine entry (only entries with both name and imageUrl)
    cuisine_index: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.images)


def build_cuisine_index(cuisines: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    index: Dict[str, Dict[str, Any]] = {}
    for cuisine in cuisines:
        if not isinstance(cuisine, dict):
            continue
        if isinstance(cuisine.get("name"), str) and cuisine["name"] and cuisine.get("imageUrl"):
            index[cuisine["name"]] = cuisine
    return index


def _optional_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def build_image_records(
    embeddings: List[Dict[str, Any]],
    cuisine_index: Dict[str, Dict[str, Any]],
) -> List[ImageRecord]:
    """
    Join embedding entries with the cuisine index.

    url / description / isVegetarian come from the embedding entry first, then
    from the cuisine entry of the same name. Entries without a name, an
    embedding, or a resolvable url are skipped.
    """
    records: List[ImageRecord] = []
    skipped = 0

    for item in embeddings:
        if not isinstance(item, dict):
            skipped += 1
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name:
            skipped += 1
            continue

        embedding = item.get("embedding")
        cuisine = cuisine_index.get(name, {})
        url = item.get("url") or cuisine.get("imageUrl")

        if not isinstance(url, str) or not url or not isinstance(embedding, list) or not embedding:
            skipped += 1
            continue

        is_veg = _optional_bool(item.get("isVegetarian"))
        if is_veg is None:
            is_veg = _optional_bool(cuisine.get("isVegetarian"))

        records.append(
            ImageRecord(
                name=name,
                url=url,
                embedding=tuple(float(x) for x in embedding),
                description=item.get("description") or cuisine.get("description") or "",
                is_vegetarian=is_veg,
            )
        )

    if skipped:
        logger.warning(
            "Skipped %d catalog entries without name, embedding or image url",
            skipped,
            extra={
                "invoking_func": "build_image_records",
                "invoking_purpose": "Join embeddings with cuisine index",
                "next_step": "Continue with remaining images",
                "resolution": "Regenerate image-embeddings.json / cuisines.json for the skipped names",
            },
        )
    return records


class CatalogCache:
    """Holds the loaded Catalog; load happens at most once per successful read."""

    def __init__(self) -> None:
        self._catalog: Optional[Catalog] = None

    @property
    def loaded(self) -> bool:
        return self._catalog is not None

    def get_or_load(self, source: CatalogSource) -> Catalog:
        if self._catalog is not None:
            logger.debug(
                "Reusing cached catalog with %d images",
                len(self._catalog),
                extra={
                    "invoking_func": "CatalogCache.get_or_load",
                    "invoking_purpose": "Load catalog at most once per process",
                    "next_step": "Return cached catalog",
                    "resolution": "",
                },
            )
            return self._catalog

        embeddings = source.load_embeddings()
        cuisines = source.load_cuisines()
        cuisine_index = build_cuisine_index(cuisines)
        images = build_image_records(embeddings, cuisine_index)
        if not images:
            raise CatalogLoadError("Catalog contains no usable images")

        self._catalog = Catalog(images=images, cuisine_index=cuisine_index)
        logger.info(
            "Loaded %d image embeddings and %d cuisines into catalog",
            len(images),
            len(cuisine_index),
            extra={
                "invoking_func": "CatalogCache.get_or_load",
                "invoking_purpose": "Load catalog at most once per process",
                "next_step": "Match meals against cached catalog",
                "resolution": "",
            },
        )
        return self._catalog

    def clear(self) -> None:
        self._catalog = None
