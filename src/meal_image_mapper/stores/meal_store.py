# src/meal_image_mapper/stores/meal_store.py
from __future__ import annotations

"""
meal_store.py

Purpose:
    Supabase-backed meal store for the mapper:
      - list meal-plan documents (weekly day x slot plans, or flat name rows)
      - list meal names that already have a mapping
      - append mapping rows and failed-mapping (audit) rows

Also holds the pure parsing of meal-plan documents into Meal objects, so the
fetch path can be exercised without Supabase.

Tables (names configurable via MapperConfig):
    meal_plans             id, meals (jsonb weekly plan) | name, description, weekStartDate, userId, ...
    meal_image_mappings    mealName, imageUrl, imageName, cosineScore, ...
    failed_image_mappings  mealId, mealName, method, reason, ...
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Set

from supabase import Client

from meal_image_mapper.logging_utils import get_logger
from meal_image_mapper.schema import Meal

logger = get_logger(__name__)

DAYS = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")
MEAL_SLOTS = ("breakfast", "lunch", "dinner", "morningSnack", "eveningSnack")


class MealStore(Protocol):
    """Narrow contract the orchestrator needs from a document store."""

    def list_meal_documents(self) -> List[Dict[str, Any]]:
        ...

    def list_mapped_meal_names(self) -> Set[str]:
        ...

    def add_mappings(self, documents: List[Dict[str, Any]]) -> int:
        ...

    def add_failed_mappings(self, documents: List[Dict[str, Any]]) -> int:
        ...


# ----------------------------------------------------------------------
# Document parsing
# ----------------------------------------------------------------------
def _slot_meal_name(item: Any) -> Optional[str]:
    # Slots hold either a plain string or an object with a name
    if isinstance(item, str):
        return item
    if isinstance(item, dict) and item.get("name"):
        return str(item["name"])
    return None


def meals_from_document(
    doc: Dict[str, Any],
    classify: Callable[[str, str], bool],
    exclude_names: Set[str],
) -> List[Meal]:
    """
    Unmapped Meal objects contained in one meal-plan document.

    `classify(name, description)` decides the vegetarian flag. Names already in
    `exclude_names` are skipped.
    """
    doc_id = str(doc.get("id", ""))
    meals: List[Meal] = []

    weekly = doc.get("meals")
    if weekly:
        # A present plan decides the document's shape even when malformed
        if not isinstance(weekly, dict):
            return meals
        for day in DAYS:
            day_plan = weekly.get(day)
            if not isinstance(day_plan, dict):
                continue
            for slot in MEAL_SLOTS:
                name = _slot_meal_name(day_plan.get(slot))
                if not name or name in exclude_names:
                    continue
                meals.append(
                    Meal(
                        id=f"{doc_id}_{day}_{slot}",
                        name=name,
                        description=f"{slot} for {day}",
                        # Slot descriptions carry no dietary signal; classify on the name
                        is_vegetarian=classify(name, ""),
                        provenance={
                            "day": day,
                            "mealType": slot,
                            "weekStartDate": doc.get("weekStartDate"),
                            "userId": doc.get("userId"),
                            "originalDocId": doc_id,
                        },
                    )
                )
        return meals

    name = doc.get("name")
    if isinstance(name, str) and name and name not in exclude_names:
        description = doc.get("description") or ""
        meals.append(
            Meal(
                id=doc_id,
                name=name,
                description=description,
                is_vegetarian=classify(name, description),
                provenance={
                    "userId": doc.get("userId"),
                    "originalDocId": doc_id,
                },
            )
        )
    return meals


def unmapped_meals_from_documents(
    documents: Iterable[Dict[str, Any]],
    mapped_names: Set[str],
    classify: Callable[[str, str], bool],
) -> List[Meal]:
    """
    Flatten all documents into unmapped meals, in document order.

    The vegetarian decision is made once per (name, description) pair and
    reused for repeats of the same meal across slots and documents.
    """
    decided: Dict[tuple, bool] = {}

    def classify_once(name: str, description: str) -> bool:
        key = (name, description)
        if key not in decided:
            decided[key] = classify(name, description)
        return decided[key]

    meals: List[Meal] = []
    for doc in documents:
        meals.extend(meals_from_document(doc, classify_once, mapped_names))
    return meals


class InMemoryMealStore:
    """Store kept in process memory. Used by the local runner's --dry-run."""

    def __init__(
        self,
        documents: Optional[List[Dict[str, Any]]] = None,
        mappings: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        self.documents: List[Dict[str, Any]] = list(documents or [])
        self.mappings: List[Dict[str, Any]] = list(mappings or [])
        self.failed_mappings: List[Dict[str, Any]] = []

    def list_meal_documents(self) -> List[Dict[str, Any]]:
        return list(self.documents)

    def list_mapped_meal_names(self) -> Set[str]:
        return {m["mealName"] for m in self.mappings if m.get("mealName")}

    def add_mappings(self, documents: List[Dict[str, Any]]) -> int:
        self.mappings.extend(documents)
        return len(documents)

    def add_failed_mappings(self, documents: List[Dict[str, Any]]) -> int:
        self.failed_mappings.extend(documents)
        return len(documents)


# ----------------------------------------------------------------------
# Supabase implementation
# ----------------------------------------------------------------------
class SupabaseMealStore:
    def __init__(
        self,
        client: Client,
        *,
        meals_table: str = "meal_plans",
        mappings_table: str = "meal_image_mappings",
        failed_mappings_table: str = "failed_image_mappings",
    ) -> None:
        self.client = client
        self.meals_table = meals_table
        self.mappings_table = mappings_table
        self.failed_mappings_table = failed_mappings_table

    def list_meal_documents(self) -> List[Dict[str, Any]]:
        res = self.client.table(self.meals_table).select("*").execute()
        rows = res.data or []
        logger.info(
            "Fetched %d meal-plan documents from '%s'",
            len(rows),
            self.meals_table,
            extra={
                "invoking_func": "SupabaseMealStore.list_meal_documents",
                "invoking_purpose": "Read candidate meals for fetch mode",
                "next_step": "Exclude already-mapped names",
                "resolution": "",
            },
        )
        return rows

    def list_mapped_meal_names(self) -> Set[str]:
        res = self.client.table(self.mappings_table).select("mealName").execute()
        return {row["mealName"] for row in (res.data or []) if row.get("mealName")}

    def _insert(self, table: str, documents: List[Dict[str, Any]]) -> int:
        if not documents:
            return 0
        self.client.table(table).insert(documents).execute()
        logger.info(
            "Inserted %d rows into '%s'",
            len(documents),
            table,
            extra={
                "invoking_func": "SupabaseMealStore._insert",
                "invoking_purpose": "Persist batch results",
                "next_step": "Continue with next batch",
                "resolution": "",
            },
        )
        return len(documents)

    def add_mappings(self, documents: List[Dict[str, Any]]) -> int:
        return self._insert(self.mappings_table, documents)

    def add_failed_mappings(self, documents: List[Dict[str, Any]]) -> int:
        return self._insert(self.failed_mappings_table, documents)
