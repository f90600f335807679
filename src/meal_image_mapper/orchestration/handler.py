# src/meal_image_mapper/orchestration/handler.py
from __future__ import annotations

"""
handler.py

Purpose:
    Invocation surface of the mapper.

    - parse_meal_names(event)   : request body -> Optional[List[str]]
                                  (None means fetch mode)
    - build_response(...)       : InvocationOutcome -> {statusCode, headers, body}
    - handle_invocation(...)    : parse, build the orchestrator, run, shape
    - lambda_handler(event, ctx): serverless entry point with a process-wide
                                  CatalogCache reused across warm invocations

Fatal failures (catalog unavailable, store or embedding provider cannot be
initialised, store read failure) produce a 500 with
{error, mode, processedCount, executionTimeMs}.
"""

import base64
import json
from typing import Any, Callable, Dict, List, Optional

from meal_image_mapper.catalog.cache import CatalogCache
from meal_image_mapper.catalog.sources import build_catalog_source
from meal_image_mapper.config import CatalogMode, MapperConfig, get_supabase_client
from meal_image_mapper.enrichment.embeddings import build_embedding_provider
from meal_image_mapper.logging_utils import get_logger
from meal_image_mapper.orchestration.batch import (
    MODE_FETCH,
    MODE_REQUEST,
    BatchOrchestrator,
    InvocationOutcome,
)
from meal_image_mapper.orchestration.budget import TimeBudget
from meal_image_mapper.stores.meal_store import SupabaseMealStore

MODULE_PURPOSE = "Invocation handler: parse payload, run the orchestrator and shape the JSON response."

logger = get_logger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}

# Reused across warm invocations of the same process
_CATALOG_CACHE = CatalogCache()


# ----------------------------------------------------------------------
# Payload parsing
# ----------------------------------------------------------------------
def _decode_body(event: Dict[str, Any]) -> Any:
    body = event.get("body")
    if body is None:
        return None
    if isinstance(body, dict):
        return body

    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")
    if not isinstance(body, str) or not body.strip():
        return None

    if event.get("isBase64Encoded"):
        try:
            body = base64.b64decode(body).decode("utf-8")
        except ValueError:
            return None

    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        logger.warning(
            "Could not parse request body, falling back to fetch mode: %s",
            exc,
            extra={
                "invoking_func": "parse_meal_names",
                "invoking_purpose": "Decide request vs fetch mode",
                "next_step": "Process unmapped meals from the meal store",
                "resolution": "Send {\"mealNames\": [...]} as JSON to map specific meals",
            },
        )
        return None


def parse_meal_names(event: Optional[Dict[str, Any]]) -> Optional[List[str]]:
    """
    Meal names from {"mealNames": [...]} in the invocation body.

    Returns None (fetch mode) for a missing or unparsable body, or when
    mealNames is absent or not a list. Names are kept as sent; blank and
    non-string entries are dropped, so the list may end up empty (request
    mode with nothing to do).
    """
    if not isinstance(event, dict):
        return None

    payload = _decode_body(event)
    if not isinstance(payload, dict):
        return None

    names = payload.get("mealNames")
    if not isinstance(names, list):
        return None

    return [n for n in names if isinstance(n, str) and n.strip()]


# ----------------------------------------------------------------------
# Response shaping
# ----------------------------------------------------------------------
def build_response(outcome: InvocationOutcome, execution_time_ms: int) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "message": outcome.message,
        "mode": outcome.mode,
        "processedCount": outcome.processed_count,
    }
    if outcome.mode == MODE_REQUEST:
        payload["mealImageMappings"] = {r.meal_name: r.image_url for r in outcome.mapped_results}
    else:
        payload["successfulMappings"] = outcome.successful_mappings

    payload.update(
        {
            "failedMappings": outcome.failed_mappings,
            "persistErrors": outcome.persist_errors,
            "stoppedEarly": outcome.stopped_early,
            "executionTimeMs": execution_time_ms,
            "results": [r.to_dict() for r in outcome.results],
        }
    )
    return {"statusCode": 200, "headers": JSON_HEADERS, "body": json.dumps(payload)}


def build_error_response(error: Exception, mode: str, execution_time_ms: int) -> Dict[str, Any]:
    payload = {
        "error": str(error),
        "mode": mode,
        "processedCount": 0,
        "executionTimeMs": execution_time_ms,
    }
    return {"statusCode": 500, "headers": JSON_HEADERS, "body": json.dumps(payload)}


# ----------------------------------------------------------------------
# Invocation
# ----------------------------------------------------------------------
def build_default_orchestrator(
    config: MapperConfig,
    catalog_cache: Optional[CatalogCache] = None,
) -> BatchOrchestrator:
    """Wire Supabase, the catalog source and the embedding provider from config."""
    client = get_supabase_client()
    store = SupabaseMealStore(
        client,
        meals_table=config.meals_table,
        mappings_table=config.mappings_table,
        failed_mappings_table=config.failed_mappings_table,
    )
    source = build_catalog_source(
        config,
        client=client if config.catalog_mode is CatalogMode.REMOTE else None,
    )
    return BatchOrchestrator(
        config=config,
        catalog_source=source,
        catalog_cache=catalog_cache if catalog_cache is not None else _CATALOG_CACHE,
        meal_store=store,
        embedding_provider=build_embedding_provider(config),
    )


def handle_invocation(
    event: Optional[Dict[str, Any]],
    build_orchestrator: Callable[[], BatchOrchestrator],
    budget: TimeBudget,
) -> Dict[str, Any]:
    """Run one invocation and always return a response dict (200 or 500)."""
    meal_names = parse_meal_names(event)
    mode = MODE_REQUEST if meal_names is not None else MODE_FETCH

    try:
        orchestrator = build_orchestrator()
        outcome = orchestrator.run(meal_names, budget)
    except Exception as exc:  # noqa: BLE001
        logger.error(
            "Meal-image mapping failed: %s",
            exc,
            extra={
                "invoking_func": "handle_invocation",
                "invoking_purpose": MODULE_PURPOSE,
                "next_step": "Return 500 response",
                "resolution": "Check catalog location, Supabase credentials and embedding provider settings",
            },
            exc_info=True,
        )
        return build_error_response(exc, mode, budget.elapsed_ms())

    return build_response(outcome, budget.elapsed_ms())


def lambda_handler(event: Optional[Dict[str, Any]], context: Any = None) -> Dict[str, Any]:
    budget_source = "host" if hasattr(context, "get_remaining_time_in_millis") else "wall-clock"

    try:
        config = MapperConfig.from_env()
    except ValueError as exc:
        logger.error(
            "Invalid mapper configuration: %s",
            exc,
            extra={
                "invoking_func": "lambda_handler",
                "invoking_purpose": MODULE_PURPOSE,
                "next_step": "Return 500 response",
                "resolution": "Fix the environment variables named in the error",
            },
        )
        mode = MODE_REQUEST if parse_meal_names(event) is not None else MODE_FETCH
        return build_error_response(exc, mode, 0)

    remaining_fn = None
    if budget_source == "host":
        remaining_fn = lambda: context.get_remaining_time_in_millis() / 1000.0  # noqa: E731

    budget = TimeBudget(
        config.max_execution_seconds,
        config.timeout_buffer_seconds,
        remaining_fn=remaining_fn,
    )

    logger.info(
        "Meal-image mapping invoked (%s budget) with config %s",
        budget_source,
        config.summary(),
        extra={
            "invoking_func": "lambda_handler",
            "invoking_purpose": MODULE_PURPOSE,
            "next_step": "Load catalog and resolve meals",
            "resolution": "",
        },
    )
    return handle_invocation(event, lambda: build_default_orchestrator(config), budget)
