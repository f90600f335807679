"""Tests for meal-plan parsing and the Supabase meal store."""

from __future__ import annotations

from conftest import FakeSupabaseClient
from meal_image_mapper.stores.meal_store import (
    InMemoryMealStore,
    SupabaseMealStore,
    meals_from_document,
    unmapped_meals_from_documents,
)
from meal_image_mapper.vegetarian_detection import detect_meal_vegetarian

WEEKLY_PLAN = {
    "id": "plan1",
    "userId": "user-42",
    "weekStartDate": "2024-06-02",
    "meals": {
        "monday": {"breakfast": "Poha", "lunch": {"name": "Chicken Biryani"}, "dinner": None},
        "sunday": {"eveningSnack": "Samosa"},
        "funday": {"lunch": "Ignored"},
    },
}


class TestMealsFromDocument:
    def test_weekly_plan_expands_day_and_slot(self):
        meals = meals_from_document(WEEKLY_PLAN, detect_meal_vegetarian, set())

        # Days iterate sunday..saturday, slots in fixed order
        assert [m.id for m in meals] == [
            "plan1_sunday_eveningSnack",
            "plan1_monday_breakfast",
            "plan1_monday_lunch",
        ]
        lunch = meals[2]
        assert lunch.name == "Chicken Biryani"
        assert lunch.description == "lunch for monday"
        assert lunch.is_vegetarian is False
        assert lunch.provenance == {
            "day": "monday",
            "mealType": "lunch",
            "weekStartDate": "2024-06-02",
            "userId": "user-42",
            "originalDocId": "plan1",
        }

    def test_flat_document(self):
        meals = meals_from_document(
            {"id": "m1", "name": "Rajma Chawal", "description": "kidney beans with rice", "userId": "u1"},
            detect_meal_vegetarian,
            set(),
        )
        assert len(meals) == 1
        assert meals[0].id == "m1"
        assert meals[0].is_vegetarian is True
        assert meals[0].provenance == {"userId": "u1", "originalDocId": "m1"}

    def test_mapped_names_are_excluded(self):
        meals = meals_from_document(WEEKLY_PLAN, detect_meal_vegetarian, {"Poha", "Samosa"})
        assert [m.name for m in meals] == ["Chicken Biryani"]

    def test_malformed_weekly_plan_yields_nothing(self):
        doc = {"id": "bad", "name": "Poha", "meals": ["Poha", "Upma"]}
        assert meals_from_document(doc, detect_meal_vegetarian, set()) == []

    def test_empty_weekly_plan_falls_back_to_flat_name(self):
        doc = {"id": "m2", "name": "Upma", "meals": {}}
        assert [m.id for m in meals_from_document(doc, detect_meal_vegetarian, set())] == ["m2"]

    def test_document_without_meals_or_name(self):
        assert meals_from_document({"id": "x"}, detect_meal_vegetarian, set()) == []


class TestUnmappedMeals:
    def test_classification_is_memoized_per_name(self):
        calls = []

        def classify(name, description):
            calls.append(name)
            return True

        docs = [
            {"id": "a", "meals": {"monday": {"lunch": "Poha"}, "tuesday": {"lunch": "Poha"}}},
            {"id": "b", "meals": {"monday": {"dinner": "Poha"}}},
        ]
        meals = unmapped_meals_from_documents(docs, set(), classify)

        assert len(meals) == 3
        assert calls == ["Poha"]


class TestInMemoryMealStore:
    def test_mapped_names_come_from_mappings(self):
        store = InMemoryMealStore(mappings=[{"mealName": "Poha"}, {"imageUrl": "x"}])
        assert store.list_mapped_meal_names() == {"Poha"}

        store.add_mappings([{"mealName": "Upma"}])
        store.add_failed_mappings([{"mealName": "Mystery"}])

        assert store.list_mapped_meal_names() == {"Poha", "Upma"}
        assert store.failed_mappings == [{"mealName": "Mystery"}]


class TestSupabaseMealStore:
    def test_reads_and_writes_configured_tables(self):
        client = FakeSupabaseClient(
            tables={
                "plans": [{"id": "m1", "name": "Poha"}],
                "maps": [{"mealName": "Upma", "imageUrl": "https://cdn.test/upma.jpg"}],
            }
        )
        store = SupabaseMealStore(client, meals_table="plans", mappings_table="maps", failed_mappings_table="fails")

        assert store.list_meal_documents() == [{"id": "m1", "name": "Poha"}]
        assert store.list_mapped_meal_names() == {"Upma"}

        assert store.add_mappings([{"mealName": "Poha"}]) == 1
        assert store.add_failed_mappings([{"mealName": "Mystery"}]) == 1
        assert store.add_failed_mappings([]) == 0

        assert client.tables["maps"][-1] == {"mealName": "Poha"}
        assert client.tables["fails"] == [{"mealName": "Mystery"}]
