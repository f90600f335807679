# src/meal_image_mapper/orchestration/batch.py
from __future__ import annotations

"""
batch.py

Purpose:
    Drive one mapping invocation end to end:

        LOAD_CATALOG -> RESOLVE_MEALS -> (PROCESS_BATCH -> PERSIST)* -> DONE | TIMEOUT_STOP

    - LOAD_CATALOG  : CatalogCache.get_or_load (fatal on failure)
    - RESOLVE_MEALS : request mode (caller-supplied names) or fetch mode
                      (meal store documents minus already-mapped names)
    - PROCESS_BATCH : one embedding per meal, sequentially, then the match
                      selector; a failing meal becomes an "error" result
    - PERSIST       : mapped rows -> mappings table, everything else ->
                      failed-mappings table, after every batch
    - Loop control  : before each batch, stop if the time budget is inside its
                      safety buffer. Persisted batches stay valid; the rest is
                      left for the next invocation.

No retries anywhere. Unmapped meals are rediscovered by the next fetch-mode
run because mapped names are excluded by name.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from meal_image_mapper.catalog.cache import CatalogCache
from meal_image_mapper.catalog.sources import CatalogSource
from meal_image_mapper.config import MapperConfig
from meal_image_mapper.enrichment.embeddings import EmbeddingProvider
from meal_image_mapper.logging_utils import get_logger
from meal_image_mapper.matching.selector import select_best_image
from meal_image_mapper.orchestration.budget import TimeBudget
from meal_image_mapper.schema import ImageRecord, MatchMethod, MatchResult, Meal
from meal_image_mapper.stores.meal_store import MealStore, unmapped_meals_from_documents
from meal_image_mapper.vegetarian_detection import detect_meal_vegetarian

MODULE_PURPOSE = (
    "Batch orchestrator: resolve meals, match them to catalog images in "
    "bounded batches and persist progress after every batch."
)

logger = get_logger(__name__)

MODE_FETCH = "fetch"
MODE_REQUEST = "request"

MESSAGE_COMPLETED = "Meal-image mapping completed"
MESSAGE_STOPPED_EARLY = "Meal-image mapping stopped early: execution budget nearly exhausted"
MESSAGE_NO_REQUEST_MEALS = "No meal names provided in request"
MESSAGE_NO_UNMAPPED_MEALS = "No unmapped meals found"


@dataclass
class InvocationOutcome:
    mode: str
    message: str
    processed_count: int = 0
    results: List[MatchResult] = field(default_factory=list)
    stopped_early: bool = False
    persist_errors: int = 0

    @property
    def mapped_results(self) -> List[MatchResult]:
        return [r for r in self.results if r.mapped]

    @property
    def successful_mappings(self) -> int:
        return len(self.mapped_results)

    @property
    def failed_mappings(self) -> int:
        return len(self.results) - self.successful_mappings


def resolve_request_meals(
    meal_names: Sequence[str],
    classify: Callable[[str, str], bool] = detect_meal_vegetarian,
    now_ms: Optional[int] = None,
) -> List[Meal]:
    """Synthetic Meal objects for caller-supplied names."""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return [
        Meal(
            id=f"request_{index}_{stamp}",
            name=name,
            description=f"Requested meal: {name}",
            is_vegetarian=classify(name, ""),
            source="request",
        )
        for index, name in enumerate(meal_names)
    ]


class BatchOrchestrator:
    def __init__(
        self,
        *,
        config: MapperConfig,
        catalog_source: CatalogSource,
        catalog_cache: CatalogCache,
        meal_store: MealStore,
        embedding_provider: EmbeddingProvider,
        classify: Callable[[str, str], bool] = detect_meal_vegetarian,
    ) -> None:
        self.config = config
        self.catalog_source = catalog_source
        self.catalog_cache = catalog_cache
        self.meal_store = meal_store
        self.embedding_provider = embedding_provider
        self.classify = classify

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run(self, meal_names: Optional[Sequence[str]], budget: TimeBudget) -> InvocationOutcome:
        """
        Execute one invocation.

        Args:
            meal_names: None for fetch mode; a (possibly empty) list of names
                for request mode.
            budget: wall-clock budget checked before every batch.

        Raises:
            CatalogLoadError, or any meal store read error: fatal failures.
        """
        # LOAD_CATALOG
        catalog = self.catalog_cache.get_or_load(self.catalog_source)

        # RESOLVE_MEALS
        if meal_names is not None:
            mode = MODE_REQUEST
            meals = resolve_request_meals(meal_names, self.classify)
        else:
            mode = MODE_FETCH
            meals = self.resolve_store_meals()

        logger.info(
            "Processing mode %s: %d meals to map against %d images",
            mode.upper(),
            len(meals),
            len(catalog),
            extra={
                "invoking_func": "BatchOrchestrator.run",
                "invoking_purpose": MODULE_PURPOSE,
                "next_step": "Process meals in batches" if meals else "Return empty response",
                "resolution": "",
            },
        )

        if not meals:
            message = MESSAGE_NO_REQUEST_MEALS if mode == MODE_REQUEST else MESSAGE_NO_UNMAPPED_MEALS
            return InvocationOutcome(mode=mode, message=message)

        outcome = InvocationOutcome(mode=mode, message=MESSAGE_COMPLETED)
        batch_size = self.config.max_meals_per_batch
        total_batches = (len(meals) + batch_size - 1) // batch_size

        for start in range(0, len(meals), batch_size):
            if budget.should_stop():
                outcome.stopped_early = True
                outcome.message = MESSAGE_STOPPED_EARLY
                logger.warning(
                    "Approaching timeout (%.1fs left), stopping after %d of %d meals",
                    budget.remaining_seconds(),
                    outcome.processed_count,
                    len(meals),
                    extra={
                        "invoking_func": "BatchOrchestrator.run",
                        "invoking_purpose": MODULE_PURPOSE,
                        "next_step": "Return partial response; remaining meals stay unmapped",
                        "resolution": "Next invocation picks up the remaining meals",
                    },
                )
                break

            batch = meals[start : start + batch_size]
            batch_number = start // batch_size + 1
            logger.info(
                "Processing batch %d/%d (%d meals)",
                batch_number,
                total_batches,
                len(batch),
                extra={
                    "invoking_func": "BatchOrchestrator.run",
                    "invoking_purpose": MODULE_PURPOSE,
                    "next_step": "Embed + match each meal",
                    "resolution": "",
                },
            )

            batch_results = self.process_batch(batch, catalog.images)
            outcome.processed_count += len(batch)
            outcome.results.extend(batch_results)

            # PERSIST after every batch so partial progress survives an early stop
            outcome.persist_errors += self.persist(batch_results)

        logger.info(
            "%s: %d processed, %d mapped, %d unmapped, %d persist errors in %dms",
            outcome.message,
            outcome.processed_count,
            outcome.successful_mappings,
            outcome.failed_mappings,
            outcome.persist_errors,
            budget.elapsed_ms(),
            extra={
                "invoking_func": "BatchOrchestrator.run",
                "invoking_purpose": MODULE_PURPOSE,
                "next_step": "Return response to caller",
                "resolution": "",
            },
        )
        return outcome

    def resolve_store_meals(self) -> List[Meal]:
        """Fetch-mode meals: store documents minus names that already have a mapping."""
        mapped_names = self.meal_store.list_mapped_meal_names()
        documents = self.meal_store.list_meal_documents()
        meals = unmapped_meals_from_documents(documents, mapped_names, self.classify)
        logger.info(
            "Found %d unmapped meals in %d documents (%d names already mapped)",
            len(meals),
            len(documents),
            len(mapped_names),
            extra={
                "invoking_func": "BatchOrchestrator.resolve_store_meals",
                "invoking_purpose": "Resolve candidate meals for fetch mode",
                "next_step": "Batch processing",
                "resolution": "",
            },
        )
        return meals

    # ------------------------------------------------------------------
    # PROCESS_BATCH
    # ------------------------------------------------------------------
    def process_batch(self, batch: Sequence[Meal], images: Sequence[ImageRecord]) -> List[MatchResult]:
        return [self.match_meal(meal, images) for meal in batch]

    def match_meal(self, meal: Meal, images: Sequence[ImageRecord]) -> MatchResult:
        """Embed + match one meal. Any failure is confined to this meal."""
        try:
            embedding = self.embedding_provider.embed(meal.name)
            return select_best_image(
                meal.name,
                embedding,
                meal.is_vegetarian,
                images,
                cosine_threshold=self.config.cosine_threshold,
                text_threshold=self.config.text_threshold,
                meal_id=meal.id,
                provenance=meal.provenance,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Error processing meal '%s': %s",
                meal.name,
                exc,
                extra={
                    "invoking_func": "BatchOrchestrator.match_meal",
                    "invoking_purpose": "Embed and match one meal",
                    "next_step": "Record error result and continue with next meal",
                    "resolution": "Check embedding provider credentials / catalog vector lengths",
                },
            )
            return MatchResult(
                meal_id=meal.id,
                meal_name=meal.name,
                method=MatchMethod.ERROR,
                reason=str(exc),
                meal_is_vegetarian=meal.is_vegetarian,
                error=str(exc),
                provenance=dict(meal.provenance),
            )

    # ------------------------------------------------------------------
    # PERSIST
    # ------------------------------------------------------------------
    def persist(self, batch_results: Sequence[MatchResult]) -> int:
        """Write one batch. Returns the number of failed writes (0, 1 or 2)."""
        mapped, unmapped = partition_results(batch_results)
        errors = 0

        for label, write, docs in (
            ("mappings", self.meal_store.add_mappings, [r.to_mapping_document() for r in mapped]),
            ("failed mappings", self.meal_store.add_failed_mappings, [r.to_failed_document() for r in unmapped]),
        ):
            if not docs:
                continue
            try:
                write(docs)
            except Exception as exc:  # noqa: BLE001
                errors += 1
                logger.error(
                    "Failed to store %d %s: %s",
                    len(docs),
                    label,
                    exc,
                    extra={
                        "invoking_func": "BatchOrchestrator.persist",
                        "invoking_purpose": "Persist batch results",
                        "next_step": "Continue with next batch; meals are retried next run",
                        "resolution": "Check Supabase availability and table permissions",
                    },
                    exc_info=True,
                )
        return errors


def partition_results(results: Sequence[MatchResult]) -> Tuple[List[MatchResult], List[MatchResult]]:
    """(mapped, unmapped) keeping input order; errors count as unmapped."""
    mapped = [r for r in results if r.mapped]
    unmapped = [r for r in results if not r.mapped]
    return mapped, unmapped
