# src/meal_image_mapper/catalog/sources.py
from __future__ import annotations

"""
sources.py

Purpose:
    Read the raw image catalog:
      - image-embeddings.json : [{"name", "embedding", "url"?, "description"?, "isVegetarian"?}, ...]
      - cuisines.json         : [{"name", "imageUrl", "description"?, "isVegetarian"?, ...}, ...]

Two sources, chosen explicitly by CatalogMode (no silent fallback):
  - SupabaseStorageCatalogSource : objects in a Supabase Storage bucket
  - LocalCatalogSource           : files in a local directory

Either source fails loudly (CatalogLoadError) when data is missing or is not
a JSON array.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from supabase import Client

from meal_image_mapper.config import CatalogMode, MapperConfig
from meal_image_mapper.logging_utils import get_logger

logger = get_logger(__name__)


class CatalogLoadError(RuntimeError):
    """The image catalog could not be obtained. Fatal for an invocation."""


class CatalogSource(Protocol):
    """Narrow contract: two parseable JSON arrays, or CatalogLoadError."""

    def load_embeddings(self) -> List[Dict[str, Any]]:
        ...

    def load_cuisines(self) -> List[Dict[str, Any]]:
        ...


def parse_catalog_array(raw: Optional[str], label: str) -> List[Dict[str, Any]]:
    if not raw:
        raise CatalogLoadError(f"No {label} data found")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CatalogLoadError(f"{label} is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise CatalogLoadError(f"{label} must be a JSON array, got {type(data).__name__}")
    return data


class LocalCatalogSource:
    def __init__(
        self,
        data_dir: str | Path,
        embeddings_file: str = "image-embeddings.json",
        cuisines_file: str = "cuisines.json",
    ) -> None:
        self.data_dir = Path(data_dir)
        self.embeddings_path = self.data_dir / embeddings_file
        self.cuisines_path = self.data_dir / cuisines_file

    def _read(self, path: Path, label: str) -> List[Dict[str, Any]]:
        logger.info(
            "Loading %s from local file %s",
            label,
            path,
            extra={
                "invoking_func": "LocalCatalogSource._read",
                "invoking_purpose": "Read catalog file from disk (local mode)",
                "next_step": "Parse JSON array",
                "resolution": "",
            },
        )
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CatalogLoadError(f"Failed to load {label} from local file {path}: {exc}") from exc
        return parse_catalog_array(raw, label)

    def load_embeddings(self) -> List[Dict[str, Any]]:
        return self._read(self.embeddings_path, "image embeddings")

    def load_cuisines(self) -> List[Dict[str, Any]]:
        return self._read(self.cuisines_path, "cuisines")


class SupabaseStorageCatalogSource:
    def __init__(
        self,
        client: Client,
        bucket: Optional[str],
        embeddings_key: str = "data/image-embeddings.json",
        cuisines_key: str = "data/cuisines.json",
    ) -> None:
        if not bucket:
            raise CatalogLoadError(
                "Catalog bucket not configured. Set CATALOG_BUCKET or use CATALOG_MODE=local"
            )
        self.client = client
        self.bucket = bucket
        self.embeddings_key = embeddings_key
        self.cuisines_key = cuisines_key

    def _fetch(self, key: str, label: str) -> List[Dict[str, Any]]:
        logger.info(
            "Fetching %s (%s) from storage bucket '%s'",
            label,
            key,
            self.bucket,
            extra={
                "invoking_func": "SupabaseStorageCatalogSource._fetch",
                "invoking_purpose": "Download catalog object (remote mode)",
                "next_step": "Decode and parse JSON array",
                "resolution": "",
            },
        )
        try:
            content = self.client.storage.from_(self.bucket).download(key)
        except Exception as exc:  # noqa: BLE001
            raise CatalogLoadError(f"Error fetching {key} from bucket {self.bucket}: {exc}") from exc

        raw = content.decode("utf-8") if isinstance(content, (bytes, bytearray)) else content
        return parse_catalog_array(raw, label)

    def load_embeddings(self) -> List[Dict[str, Any]]:
        return self._fetch(self.embeddings_key, "image embeddings")

    def load_cuisines(self) -> List[Dict[str, Any]]:
        return self._fetch(self.cuisines_key, "cuisines")


def build_catalog_source(config: MapperConfig, client: Optional[Client] = None) -> CatalogSource:
    """Pick the catalog source for the configured mode."""
    if config.catalog_mode is CatalogMode.LOCAL:
        return LocalCatalogSource(config.local_data_dir)

    if client is None:
        raise CatalogLoadError("Remote catalog mode needs a Supabase client")
    return SupabaseStorageCatalogSource(
        client,
        config.catalog_bucket,
        embeddings_key=config.embeddings_key,
        cuisines_key=config.cuisines_key,
    )
