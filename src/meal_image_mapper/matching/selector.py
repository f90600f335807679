# src/meal_image_mapper/matching/selector.py
from __future__ import annotations

"""
selector.py

Purpose:
    Pick the single best catalog image for one meal.

Rules (single pass over the catalog, in catalog order):
  1) Resolve the image's vegetarian flag (catalog value, else classified once).
  2) Vegetarian fail-safe: a vegetarian meal skips every non-vegetarian image,
     whatever its score.
  3) Score cosine(meal embedding, image embedding) and text(meal name, image name).
  4) Cosine matches dominate:
       - cosine >= cosine_threshold and better than the best cosine match so far
         -> becomes the match (method "cosine")
       - else, while no cosine match exists, text >= text_threshold and better
         than the best text match so far -> becomes the match (method "text")
     A later qualifying cosine score replaces a text match; a text score never
     replaces a cosine match. Ties keep the earlier image.

The reported cosine_score / text_score are the best scores seen over the
eligible images, so a failed match still shows how close it came.
"""

from typing import Any, Dict, Iterable, Optional, Sequence

from meal_image_mapper.logging_utils import get_logger
from meal_image_mapper.matching.similarity import cosine_similarity, text_similarity
from meal_image_mapper.schema import ImageRecord, MatchMethod, MatchResult
from meal_image_mapper.vegetarian_detection import resolve_image_vegetarian

logger = get_logger(__name__)

NO_MATCH_REASON = "No suitable match found"


def _format_reason(method: MatchMethod, score: float, threshold: float) -> str:
    label = "Cosine" if method is MatchMethod.COSINE else "Text"
    return f"{label} similarity {score:.3f} >= {threshold}"


def select_best_image(
    meal_name: str,
    meal_embedding: Sequence[float],
    meal_is_vegetarian: bool,
    catalog: Iterable[ImageRecord],
    *,
    cosine_threshold: float,
    text_threshold: float,
    meal_id: str = "",
    provenance: Optional[Dict[str, Any]] = None,
) -> MatchResult:
    """
    Return the MatchResult for one meal against the whole catalog.

    Raises:
        VectorLengthMismatchError: if an eligible image's embedding length
            differs from the meal's. The caller fails this meal only.
    """
    best_image: Optional[ImageRecord] = None
    method = MatchMethod.NONE
    best_qualifying_cosine = float("-inf")
    best_qualifying_text = float("-inf")

    # Reporting trackers: best seen over eligible images, qualifying or not
    seen_cosine: Optional[float] = None
    seen_text: Optional[float] = None
    eligible = 0

    for image in catalog:
        image_is_veg = resolve_image_vegetarian(image)
        if meal_is_vegetarian and not image_is_veg:
            continue
        eligible += 1

        cosine_score = cosine_similarity(meal_embedding, image.embedding)
        text_score = text_similarity(meal_name, image.name or "")

        if seen_cosine is None or cosine_score > seen_cosine:
            seen_cosine = cosine_score
        if seen_text is None or text_score > seen_text:
            seen_text = text_score

        if cosine_score >= cosine_threshold and cosine_score > best_qualifying_cosine:
            best_image = image
            best_qualifying_cosine = cosine_score
            method = MatchMethod.COSINE
        elif (
            method is not MatchMethod.COSINE
            and text_score >= text_threshold
            and text_score > best_qualifying_text
        ):
            best_image = image
            best_qualifying_text = text_score
            method = MatchMethod.TEXT

    if method is MatchMethod.COSINE:
        reason = _format_reason(method, best_qualifying_cosine, cosine_threshold)
    elif method is MatchMethod.TEXT:
        reason = _format_reason(method, best_qualifying_text, text_threshold)
    else:
        reason = NO_MATCH_REASON

    result = MatchResult(
        meal_id=meal_id,
        meal_name=meal_name,
        method=method,
        reason=reason,
        meal_is_vegetarian=meal_is_vegetarian,
        cosine_score=seen_cosine if seen_cosine is not None else 0.0,
        text_score=seen_text if seen_text is not None else 0.0,
        image=best_image,
        image_is_vegetarian=best_image.is_vegetarian if best_image is not None else None,
        provenance=dict(provenance or {}),
    )

    logger.debug(
        "Match for '%s' (vegetarian=%s): method=%s image=%s cosine=%.3f text=%.3f eligible=%d",
        meal_name,
        meal_is_vegetarian,
        method.value,
        result.image_name,
        result.cosine_score,
        result.text_score,
        eligible,
        extra={
            "invoking_func": "select_best_image",
            "invoking_purpose": "Pick best catalog image for one meal",
            "next_step": "Return MatchResult to batch orchestrator",
            "resolution": "",
        },
    )
    return result
