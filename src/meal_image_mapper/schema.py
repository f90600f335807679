# src/meal_image_mapper/schema.py
from __future__ import annotations

"""
schema.py

Purpose:
    Shared dataclasses for the meal-image mapper.

    These are the "internal contracts" between:
      - meal sources (meal store documents, request payloads),
      - the image catalog,
      - the match selector and the batch orchestrator.

    Nothing in this module talks to Supabase or to an embedding provider.

Objects:
      - Meal (a candidate to be matched)
      - ImageRecord (one catalog entry with a precomputed embedding)
      - MatchResult (outcome of matching one meal)
"""

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class MatchMethod(str, Enum):
    COSINE = "cosine"
    TEXT = "text"
    NONE = "none"
    ERROR = "error"


def utc_now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


@dataclass
class Meal:
    """A meal name waiting for an image."""

    id: str
    name: str
    description: str = ""
    # Decided once at ingestion; never recomputed downstream
    is_vegetarian: bool = True
    source: str = "store"

    # Provenance carried through to persistence (day, mealType, weekStartDate, userId, originalDocId)
    provenance: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ImageRecord:
    """One catalog image. The embedding is a tuple so it cannot be mutated in place."""

    name: str
    url: str
    embedding: Tuple[float, ...]
    description: str = ""
    # None until provided by the catalog or resolved by the classifier
    is_vegetarian: Optional[bool] = None

    @property
    def vegetarian_resolved(self) -> bool:
        return self.is_vegetarian is not None


@dataclass
class MatchResult:
    meal_id: str
    meal_name: str
    method: MatchMethod
    reason: str
    meal_is_vegetarian: bool
    cosine_score: float = 0.0
    text_score: float = 0.0
    image: Optional[ImageRecord] = None
    image_is_vegetarian: Optional[bool] = None
    error: Optional[str] = None
    provenance: Dict[str, Any] = field(default_factory=dict)
    processed_at: str = field(default_factory=utc_now_iso)

    @property
    def mapped(self) -> bool:
        return self.image is not None

    @property
    def image_url(self) -> Optional[str]:
        return self.image.url if self.image is not None else None

    @property
    def image_name(self) -> Optional[str]:
        return self.image.name if self.image is not None else None

    def to_dict(self) -> Dict[str, Any]:
        """JSON view used in invocation responses."""
        out: Dict[str, Any] = {
            "mealId": self.meal_id,
            "mealName": self.meal_name,
            "imageUrl": self.image_url,
            "imageName": self.image_name,
            "cosineScore": self.cosine_score,
            "textScore": self.text_score,
            "method": self.method.value,
            "reason": self.reason,
            "mealIsVegetarian": self.meal_is_vegetarian,
            "imageIsVegetarian": self.image_is_vegetarian,
            "processedAt": self.processed_at,
        }
        if self.error is not None:
            out["error"] = self.error
        return out

    def to_mapping_document(self) -> Dict[str, Any]:
        """Row appended to the mappings table for a successful match."""
        return {
            "mealName": self.meal_name,
            "imageUrl": self.image_url,
            "imageName": self.image_name,
            "cosineScore": self.cosine_score,
            "textScore": self.text_score,
            "method": self.method.value,
            "mealIsVegetarian": self.meal_is_vegetarian,
            "imageIsVegetarian": self.image_is_vegetarian,
            "processedAt": self.processed_at,
            "createdAt": utc_now_iso(),
        }

    def to_failed_document(self) -> Dict[str, Any]:
        """Row appended to the failed-mappings (audit) table."""
        return {
            "mealId": self.meal_id,
            "mealName": self.meal_name,
            "cosineScore": self.cosine_score,
            "textScore": self.text_score,
            "method": self.method.value,
            "reason": self.reason,
            "error": self.error,
            "mealIsVegetarian": self.meal_is_vegetarian,
            "day": self.provenance.get("day"),
            "mealType": self.provenance.get("mealType"),
            "weekStartDate": self.provenance.get("weekStartDate"),
            "userId": self.provenance.get("userId"),
            "originalDocId": self.provenance.get("originalDocId"),
            "processedAt": self.processed_at,
            "createdAt": utc_now_iso(),
        }
