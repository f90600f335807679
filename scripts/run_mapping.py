"""
run_mapping.py

Purpose:
    Local runner for the meal-image mapping invocation.

    Builds the same orchestrator the serverless handler uses, runs a single
    invocation and prints the JSON response.

Design:
    - Uses the shared LOG_RUN_ID (from logging_utils).
    - Emits a "Run Banner" at the start.
    - --dry-run swaps the Supabase meal store for an in-memory one, so nothing
      is written. Seed it with --meal-plans to exercise fetch mode offline.

Usage:
    python scripts/run_mapping.py
    python scripts/run_mapping.py --meal "Paneer Tikka" --meal "Chicken Biryani"
    python scripts/run_mapping.py --local --data-dir data --dry-run --meal "Dal Makhani"
"""

from __future__ import annotations

import argparse
import dataclasses
import datetime
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from meal_image_mapper.catalog.cache import CatalogCache
from meal_image_mapper.catalog.sources import build_catalog_source
from meal_image_mapper.config import CatalogMode, MapperConfig, get_supabase_client
from meal_image_mapper.enrichment.embeddings import build_embedding_provider
from meal_image_mapper.logging_utils import LOG_RUN_ID, init_logging, log_error, log_info
from meal_image_mapper.orchestration.batch import BatchOrchestrator
from meal_image_mapper.orchestration.budget import TimeBudget
from meal_image_mapper.orchestration.handler import build_default_orchestrator, handle_invocation
from meal_image_mapper.stores.meal_store import InMemoryMealStore


MODULE_PURPOSE = "Local runner for one meal-image mapping invocation (request or fetch mode)."


# ---------------------------------------------------------------------------
# RUN BANNER
# ---------------------------------------------------------------------------
def print_run_banner(config: MapperConfig, meal_names: Optional[List[str]], dry_run: bool) -> None:
    now = datetime.datetime.now(datetime.timezone.utc)
    mode = f"request ({len(meal_names)} meals)" if meal_names is not None else "fetch (unmapped meals)"
    banner = [
        "\n===============================================================",
        "  MEAL-IMAGE MAPPING RUN",
        f"  Run ID       : {LOG_RUN_ID}",
        f"  UTC Time     : {now.strftime('%Y-%m-%d %H:%M:%S')}",
        f"  Mode         : {mode}",
        f"  Dry run      : {'yes' if dry_run else 'no'}",
        "  Settings:",
    ]
    for key, value in config.summary().items():
        banner.append(f"    • {key}: {value}")

    banner.append("===============================================================\n")
    print("\n".join(banner))


def load_meal_plans(path: Path) -> List[Dict[str, Any]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array of meal-plan documents")
    return data


def build_dry_run_orchestrator(config: MapperConfig, documents: List[Dict[str, Any]]) -> BatchOrchestrator:
    """Orchestrator that reads the catalog for real but keeps all writes in memory."""
    client = get_supabase_client() if config.catalog_mode is CatalogMode.REMOTE else None
    return BatchOrchestrator(
        config=config,
        catalog_source=build_catalog_source(config, client=client),
        catalog_cache=CatalogCache(),
        meal_store=InMemoryMealStore(documents=documents),
        embedding_provider=build_embedding_provider(config),
    )


# ---------------------------------------------------------------------------
# MAIN
# ---------------------------------------------------------------------------
def run_mapping(args: argparse.Namespace) -> int:
    config = MapperConfig.from_env()
    overrides: Dict[str, Any] = {}
    if args.local:
        overrides["catalog_mode"] = CatalogMode.LOCAL
    if args.data_dir:
        overrides["local_data_dir"] = args.data_dir
    if args.batch_size is not None:
        overrides["max_meals_per_batch"] = args.batch_size
    if args.budget_seconds is not None:
        overrides["max_execution_seconds"] = args.budget_seconds
    if overrides:
        config = dataclasses.replace(config, **overrides)

    meal_names: Optional[List[str]] = args.meal
    event: Dict[str, Any] = {"body": json.dumps({"mealNames": meal_names})} if meal_names is not None else {}

    print_run_banner(config, meal_names, args.dry_run)

    if args.dry_run:
        documents = load_meal_plans(Path(args.meal_plans)) if args.meal_plans else []

        def build():
            return build_dry_run_orchestrator(config, documents)
    else:
        def build():
            return build_default_orchestrator(config)

    log_info(
        "Starting mapping invocation",
        module_purpose=MODULE_PURPOSE,
        invoking_function="run_mapping",
        invoking_purpose="Single local invocation",
        next_step="handle_invocation()",
    )

    budget = TimeBudget(config.max_execution_seconds, config.timeout_buffer_seconds)
    response = handle_invocation(event, build, budget)
    body = json.loads(response["body"])
    print(json.dumps(body, indent=2))

    if response["statusCode"] != 200:
        log_error(
            f"Mapping invocation failed: {body.get('error')}",
            module_purpose=MODULE_PURPOSE,
            invoking_function="run_mapping",
            invoking_purpose="Single local invocation",
            next_step="Exit with non-zero status",
            resolution="Check catalog location, Supabase credentials and OPENAI_API_KEY",
        )
        return 1

    log_info(
        f"Mapping invocation finished: {body.get('message')} ({body.get('processedCount')} processed)",
        module_purpose=MODULE_PURPOSE,
        invoking_function="run_mapping",
        invoking_purpose="Single local invocation",
        next_step="Exit",
    )
    return 0


# ---------------------------------------------------------------------------
# CLI ENTRYPOINT
# ---------------------------------------------------------------------------
def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Meal-image mapping runner")
    parser.add_argument(
        "--meal",
        action="append",
        metavar="NAME",
        help="Map this meal name (repeatable). Omit to process unmapped meals from the store.",
    )
    parser.add_argument("--local", action="store_true", help="Read the catalog from local files")
    parser.add_argument("--data-dir", help="Directory holding image-embeddings.json and cuisines.json")
    parser.add_argument("--budget-seconds", type=float, help="Wall-clock budget for the run")
    parser.add_argument("--batch-size", type=int, help="Meals per batch")
    parser.add_argument("--dry-run", action="store_true", help="Keep all writes in memory")
    parser.add_argument(
        "--meal-plans",
        metavar="PATH",
        help="JSON array of meal-plan documents seeding the in-memory store (with --dry-run)",
    )
    return parser.parse_args(argv)


if __name__ == "__main__":
    init_logging()
    sys.exit(run_mapping(parse_args()))
