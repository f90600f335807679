"""Tests for invocation payload parsing and response shaping."""

from __future__ import annotations

import base64
import json

import pytest

from conftest import StaticCatalogSource
from meal_image_mapper.config import StoreInitializationError
from meal_image_mapper.orchestration import handler
from meal_image_mapper.orchestration.handler import handle_invocation, lambda_handler, parse_meal_names
from meal_image_mapper.stores.meal_store import InMemoryMealStore


class TestParseMealNames:
    @pytest.mark.parametrize(
        "event",
        [
            None,
            {},
            {"body": None},
            {"body": ""},
            {"body": "{not json"},
            {"body": "[1, 2]"},
            {"body": json.dumps({"other": 1})},
            {"body": json.dumps({"mealNames": "Poha"})},
        ],
    )
    def test_falls_back_to_fetch_mode(self, event):
        assert parse_meal_names(event) is None

    def test_string_body_keeps_names_as_sent(self):
        event = {"body": json.dumps({"mealNames": ["Poha", "  Upma  "]})}
        assert parse_meal_names(event) == ["Poha", "  Upma  "]

    def test_dict_body(self):
        assert parse_meal_names({"body": {"mealNames": ["Poha"]}}) == ["Poha"]

    def test_base64_body(self):
        raw = base64.b64encode(json.dumps({"mealNames": ["Idli"]}).encode("utf-8")).decode("ascii")
        assert parse_meal_names({"body": raw, "isBase64Encoded": True}) == ["Idli"]

    def test_blank_and_non_string_names_are_dropped(self):
        event = {"body": json.dumps({"mealNames": ["", "  ", 3, None, "Poha"]})}
        assert parse_meal_names(event) == ["Poha"]

    def test_empty_list_stays_request_mode(self):
        assert parse_meal_names({"body": json.dumps({"mealNames": []})}) == []


def body_of(response):
    return json.loads(response["body"])


class TestHandleInvocation:
    def test_request_mode_response(self, make_orchestrator, veg_catalog_source, roomy_budget):
        event = {"body": json.dumps({"mealNames": ["Paneer Tikka"]})}
        response = handle_invocation(event, lambda: make_orchestrator(veg_catalog_source), roomy_budget)
        body = body_of(response)

        assert response["statusCode"] == 200
        assert body["mode"] == "request"
        assert body["processedCount"] == 1
        assert body["mealImageMappings"] == {"Paneer Tikka": "https://cdn.test/paneer-tikka.jpg"}
        assert "successfulMappings" not in body
        assert body["failedMappings"] == 0
        assert body["stoppedEarly"] is False
        assert body["results"][0]["method"] == "cosine"
        assert isinstance(body["executionTimeMs"], int)

    def test_request_mapping_keyed_by_name_as_sent(self, make_orchestrator, veg_catalog_source, roomy_budget):
        event = {"body": json.dumps({"mealNames": [" Poha"]})}
        body = body_of(handle_invocation(event, lambda: make_orchestrator(veg_catalog_source), roomy_budget))

        assert list(body["mealImageMappings"]) == [" Poha"]
        assert body["results"][0]["mealName"] == " Poha"

    def test_fetch_mode_response(self, make_orchestrator, veg_catalog_source, roomy_budget):
        store = InMemoryMealStore(documents=[{"id": "d1", "name": "Poha"}])
        response = handle_invocation({}, lambda: make_orchestrator(veg_catalog_source, store=store), roomy_budget)
        body = body_of(response)

        assert body["mode"] == "fetch"
        assert body["successfulMappings"] == 1
        assert "mealImageMappings" not in body
        assert body["message"] == "Meal-image mapping completed"

    def test_empty_request_list_message(self, make_orchestrator, veg_catalog_source, roomy_budget):
        event = {"body": json.dumps({"mealNames": []})}
        body = body_of(handle_invocation(event, lambda: make_orchestrator(veg_catalog_source), roomy_budget))

        assert body["processedCount"] == 0
        assert body["message"] == "No meal names provided in request"

    def test_invalid_json_falls_back_to_fetch(self, make_orchestrator, veg_catalog_source, roomy_budget):
        body = body_of(
            handle_invocation({"body": "{oops"}, lambda: make_orchestrator(veg_catalog_source), roomy_budget)
        )

        assert body["mode"] == "fetch"
        assert body["message"] == "No unmapped meals found"

    def test_catalog_failure_returns_500(self, make_orchestrator, roomy_budget):
        event = {"body": json.dumps({"mealNames": ["Poha"]})}
        response = handle_invocation(event, lambda: make_orchestrator(StaticCatalogSource([])), roomy_budget)
        body = body_of(response)

        assert response["statusCode"] == 500
        assert body["mode"] == "request"
        assert body["processedCount"] == 0
        assert "no usable images" in body["error"]
        assert set(body) == {"error", "mode", "processedCount", "executionTimeMs"}

    def test_initialisation_failure_returns_500(self, roomy_budget):
        def build():
            raise StoreInitializationError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

        response = handle_invocation({}, build, roomy_budget)

        assert response["statusCode"] == 500
        assert body_of(response)["mode"] == "fetch"


class FakeContext:
    def __init__(self, remaining_ms):
        self.remaining_ms = remaining_ms

    def get_remaining_time_in_millis(self):
        return self.remaining_ms


class TestLambdaHandler:
    def test_missing_store_credentials_is_fatal(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)

        response = lambda_handler({}, FakeContext(300_000))

        assert response["statusCode"] == 500
        assert "SUPABASE_URL" in body_of(response)["error"]

    def test_invalid_catalog_mode_is_fatal(self, monkeypatch):
        monkeypatch.setenv("CATALOG_MODE", "s3")
        event = {"body": json.dumps({"mealNames": ["Poha"]})}

        response = lambda_handler(event, None)

        assert response["statusCode"] == 500
        assert body_of(response)["mode"] == "request"

    def test_host_remaining_time_drives_budget(self, monkeypatch):
        captured = {}

        def fake_handle(event, build, budget):
            captured["remaining"] = budget.remaining_seconds()
            return {"statusCode": 200, "body": "{}"}

        monkeypatch.setattr(handler, "handle_invocation", fake_handle)
        lambda_handler({}, FakeContext(12_000))

        assert captured["remaining"] == pytest.approx(12.0)
