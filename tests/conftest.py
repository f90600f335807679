"""Pytest fixtures and fakes for meal-image mapper tests."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

import pytest

from meal_image_mapper.catalog.cache import CatalogCache
from meal_image_mapper.config import MapperConfig
from meal_image_mapper.enrichment.embeddings import EmbeddingError
from meal_image_mapper.orchestration.batch import BatchOrchestrator
from meal_image_mapper.orchestration.budget import TimeBudget
from meal_image_mapper.schema import ImageRecord
from meal_image_mapper.stores.meal_store import InMemoryMealStore


# ----------------------------------------------------------------------
# Fakes
# ----------------------------------------------------------------------
class DictEmbeddingProvider:
    """Embeddings looked up by text; unknown texts get `default`."""

    def __init__(
        self,
        vectors: Optional[Dict[str, List[float]]] = None,
        default: Optional[List[float]] = None,
        failing: Iterable[str] = (),
    ) -> None:
        self.vectors = dict(vectors or {})
        self.default = default
        self.failing = set(failing)
        self.calls: List[str] = []

    def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if text in self.failing:
            raise EmbeddingError(f"rate limited while embedding '{text}'")
        if text in self.vectors:
            return self.vectors[text]
        if self.default is None:
            raise EmbeddingError(f"no vector for '{text}'")
        return self.default


class StaticCatalogSource:
    def __init__(self, embeddings: List[Dict[str, Any]], cuisines: Optional[List[Dict[str, Any]]] = None) -> None:
        self.embeddings = embeddings
        self.cuisines = cuisines or []
        self.loads = 0

    def load_embeddings(self) -> List[Dict[str, Any]]:
        self.loads += 1
        return self.embeddings

    def load_cuisines(self) -> List[Dict[str, Any]]:
        return self.cuisines


class ScriptedRemaining:
    """Remaining-seconds callable that replays values, then repeats the last one."""

    def __init__(self, values: Sequence[float]) -> None:
        self.values = list(values)
        self.calls = 0

    def __call__(self) -> float:
        index = min(self.calls, len(self.values) - 1)
        self.calls += 1
        return self.values[index]


class FailingMealStore(InMemoryMealStore):
    def __init__(self, *args, fail_reads: bool = False, fail_writes: bool = False, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    def list_meal_documents(self) -> List[Dict[str, Any]]:
        if self.fail_reads:
            raise ConnectionError("meal store unavailable")
        return super().list_meal_documents()

    def add_mappings(self, documents: List[Dict[str, Any]]) -> int:
        if self.fail_writes:
            raise ConnectionError("insert rejected")
        return super().add_mappings(documents)


class FakeResponse:
    def __init__(self, data: Any) -> None:
        self.data = data


class FakeQuery:
    def __init__(self, client: "FakeSupabaseClient", table: str) -> None:
        self.client = client
        self.table = table
        self._pending: Optional[Any] = None

    def select(self, columns: str) -> "FakeQuery":
        rows = self.client.tables.get(self.table, [])
        if columns == "*":
            self._pending = [dict(r) for r in rows]
        else:
            keys = [c.strip() for c in columns.split(",")]
            self._pending = [{k: r.get(k) for k in keys} for r in rows]
        return self

    def insert(self, documents: List[Dict[str, Any]]) -> "FakeQuery":
        self.client.tables.setdefault(self.table, []).extend(documents)
        self._pending = documents
        return self

    def execute(self) -> FakeResponse:
        return FakeResponse(self._pending)


class FakeBucket:
    def __init__(self, objects: Dict[str, bytes]) -> None:
        self.objects = objects

    def download(self, key: str) -> bytes:
        if key not in self.objects:
            raise FileNotFoundError(f"Object not found: {key}")
        return self.objects[key]


class FakeStorage:
    def __init__(self, buckets: Dict[str, Dict[str, bytes]]) -> None:
        self.buckets = buckets

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self.buckets.get(bucket, {}))


class FakeSupabaseClient:
    """Just enough of supabase.Client: table(...) queries and storage downloads."""

    def __init__(
        self,
        tables: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        buckets: Optional[Dict[str, Dict[str, bytes]]] = None,
    ) -> None:
        self.tables = tables or {}
        self.storage = FakeStorage(buckets or {})

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def make_image(
    name: str,
    embedding: Sequence[float],
    is_vegetarian: Optional[bool] = None,
    url: Optional[str] = None,
) -> ImageRecord:
    slug = name.lower().replace(" ", "-")
    return ImageRecord(
        name=name,
        url=url or f"https://cdn.test/{slug}.jpg",
        embedding=tuple(embedding),
        is_vegetarian=is_vegetarian,
    )


def catalog_entry(name: str, embedding: Sequence[float], **extra: Any) -> Dict[str, Any]:
    slug = name.lower().replace(" ", "-")
    entry: Dict[str, Any] = {"name": name, "embedding": list(embedding), "url": f"https://cdn.test/{slug}.jpg"}
    entry.update(extra)
    return entry


# ----------------------------------------------------------------------
# Fixtures
# ----------------------------------------------------------------------
@pytest.fixture
def config() -> MapperConfig:
    return MapperConfig(max_meals_per_batch=50, max_execution_seconds=240.0, timeout_buffer_seconds=30.0)


@pytest.fixture
def veg_catalog_source() -> StaticCatalogSource:
    return StaticCatalogSource(
        [
            catalog_entry("Paneer Tikka", [1.0, 0.0, 0.0], isVegetarian=True),
            catalog_entry("Dal Makhani", [0.0, 1.0, 0.0], isVegetarian=True),
        ]
    )


@pytest.fixture
def make_orchestrator(config):
    def build(
        source,
        store=None,
        provider=None,
        cache=None,
        cfg=None,
    ) -> BatchOrchestrator:
        return BatchOrchestrator(
            config=cfg or config,
            catalog_source=source,
            catalog_cache=cache or CatalogCache(),
            meal_store=store if store is not None else InMemoryMealStore(),
            embedding_provider=provider or DictEmbeddingProvider(default=[1.0, 0.0, 0.0]),
        )

    return build


@pytest.fixture
def roomy_budget() -> TimeBudget:
    return TimeBudget(240.0, 30.0, remaining_fn=ScriptedRemaining([300.0]))
