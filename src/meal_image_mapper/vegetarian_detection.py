# vegetarian_detection.py
"""
Vegetarian detection for meals and catalog images.

A vegetarian meal must never be mapped to a non-vegetarian image. This module
decides "vegetarian-safe or not" for free text with a fixed keyword heuristic:

  1) any STRONG_NON_VEGETARIAN_INDICATORS substring  -> not vegetarian
  2) any STRONG_VEGETARIAN_INDICATORS substring      -> vegetarian
  3) count VEGETARIAN_INDICATORS vs NON_VEGETARIAN_INDICATORS substrings
  4) no hits at all -> vegetarian (default-safe)
  5) otherwise vegetarian iff veg_count >= non_veg_count

The keyword tables are part of the stored-mapping contract: historical mapping
rows were classified with exactly these lists, duplicates included (a
duplicated entry counts twice). Do not edit them casually.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from meal_image_mapper.logging_utils import get_logger
from meal_image_mapper.schema import ImageRecord

logger = get_logger(__name__)

# ----------------------------------------------------------------------
# Keyword tables
# ----------------------------------------------------------------------
VEGETARIAN_INDICATORS: Tuple[str, ...] = (
    # Proteins
    "paneer", "tofu", "soy", "beans", "lentils", "dal", "chickpeas", "rajma", "chana",
    "moong", "masoor", "urad", "toor", "black beans", "kidney beans", "white beans",
    "tempeh", "seitan", "quinoa", "nuts", "almonds", "cashews", "peanuts",

    # Vegetables
    "vegetable", "veggie", "potato", "onion", "tomato", "carrot", "spinach", "palak",
    "cabbage", "cauliflower", "broccoli", "peas", "corn", "bell pepper", "capsicum",
    "eggplant", "brinjal", "okra", "lady finger", "bitter gourd", "bottle gourd",
    "ridge gourd", "snake gourd", "pumpkin", "sweet potato", "beetroot", "radish",
    "cucumber", "lettuce", "cabbage", "mushroom", "ginger", "garlic", "coriander",
    "mint", "curry leaves", "fenugreek", "methi", "dill", "basil", "oregano",

    # Grains and cereals
    "rice", "wheat", "flour", "atta", "maida", "semolina", "rava", "sooji",
    "oats", "barley", "millet", "bajra", "jowar", "ragi", "corn flour",

    # Dairy
    "milk", "curd", "yogurt", "dahi", "butter", "ghee", "cheese", "cream",
    "buttermilk", "lassi", "paneer", "cottage cheese",

    # Spices and seasonings
    "turmeric", "cumin", "coriander", "cardamom", "cinnamon", "cloves", "pepper",
    "chili", "red chili", "green chili", "mustard", "fenugreek", "asafoetida",
    "hing", "bay leaves", "curry leaves", "mint leaves", "coriander leaves",

    # Cooking methods
    "steamed", "boiled", "roasted", "grilled", "baked", "stir-fried", "sautéed",

    # Vegetarian dish names
    "vegetarian", "veggie", "vegan", "sabzi", "subzi", "curry", "masala", "tikka",
    "biryani", "pulao", "fried rice", "noodles", "pasta", "sandwich", "wrap",
    "salad", "soup", "stew", "gravy", "sauce", "chutney", "pickle", "raita",

    # Specific vegetarian dishes
    "dal", "sambar", "rasam", "kadhi", "korma", "butter masala", "tikka masala",
    "palak paneer", "mutter paneer", "chana masala", "rajma masala", "aloo gobi",
    "baingan bharta", "aloo matar", "mushroom curry", "vegetable biryani",
    "paneer biryani", "mushroom biryani", "vegetable pulao", "jeera rice",
    "coconut rice", "lemon rice", "tamarind rice", "curd rice", "bisi bele bath",
    "upma", "poha", "idli", "dosa", "uttapam", "pancake", "paratha", "roti",
    "naan", "kulcha", "poori", "chapati", "phulka", "thepla", "methi thepla",
    "aloo paratha", "gobi paratha", "paneer paratha", "onion paratha",

    # Fruits
    "apple", "banana", "orange", "mango", "grapes", "strawberry", "blueberry",
    "pineapple", "papaya", "guava", "pomegranate", "watermelon", "muskmelon",
    "coconut", "dates", "figs", "raisins", "dry fruits", "nuts",

    # Beverages
    "tea", "coffee", "milk", "lassi", "buttermilk", "juice", "smoothie",
    "lemonade", "coconut water", "tender coconut",
)

NON_VEGETARIAN_INDICATORS: Tuple[str, ...] = (
    # Meat types
    "chicken", "mutton", "lamb", "beef", "pork", "duck", "turkey", "goat",
    "meat", "flesh", "protein", "animal",

    # Fish and seafood
    "fish", "salmon", "tuna", "prawn", "shrimp", "crab", "lobster", "oyster",
    "mussel", "clam", "squid", "octopus", "seafood", "marine", "sea food",

    # Eggs
    "egg", "eggs", "omelette", "scrambled", "boiled egg", "fried egg",
    "egg curry", "egg biryani", "egg roll", "egg sandwich",

    # Non-vegetarian dish names
    "non-vegetarian", "non veg", "nonveg", "nonvegetarian", "meat curry",
    "chicken curry", "mutton curry", "fish curry", "prawn curry", "egg curry",
    "chicken biryani", "mutton biryani", "fish biryani", "prawn biryani",
    "egg biryani", "chicken tikka", "mutton tikka", "fish tikka", "prawn tikka",
    "chicken masala", "mutton masala", "fish masala", "prawn masala",
    "chicken korma", "mutton korma", "fish korma", "prawn korma",
    "chicken tandoori", "mutton tandoori", "fish tandoori", "prawn tandoori",
    "chicken 65", "mutton 65", "fish 65", "prawn 65", "chicken lollipop",
    "mutton seekh", "fish fry", "prawn fry", "chicken fry", "mutton fry",
    "chicken roll", "mutton roll", "fish roll", "prawn roll", "egg roll",
    "chicken sandwich", "mutton sandwich", "fish sandwich", "prawn sandwich",
    "egg sandwich", "chicken burger", "mutton burger", "fish burger",
    "prawn burger", "egg burger", "chicken pizza", "mutton pizza",
    "fish pizza", "prawn pizza", "egg pizza", "chicken pasta", "mutton pasta",
    "fish pasta", "prawn pasta", "egg pasta", "chicken noodles", "mutton noodles",
    "fish noodles", "prawn noodles", "egg noodles", "chicken soup", "mutton soup",
    "fish soup", "prawn soup", "egg soup", "chicken stew", "mutton stew",
    "fish stew", "prawn stew", "egg stew", "chicken gravy", "mutton gravy",
    "fish gravy", "prawn gravy", "egg gravy", "chicken sauce", "mutton sauce",
    "fish sauce", "prawn sauce", "egg sauce", "chicken chutney", "mutton chutney",
    "fish chutney", "prawn chutney", "egg chutney", "chicken pickle", "mutton pickle",
    "fish pickle", "prawn pickle", "egg pickle", "chicken raita", "mutton raita",
    "fish raita", "prawn raita", "egg raita",

    # Cooking methods with meat
    "grilled chicken", "roasted chicken", "baked chicken", "fried chicken",
    "steamed fish", "grilled fish", "roasted fish", "baked fish", "fried fish",
    "grilled mutton", "roasted mutton", "baked mutton", "fried mutton",
    "grilled prawn", "roasted prawn", "baked prawn", "fried prawn",
    "grilled egg", "roasted egg", "baked egg", "fried egg",

    # Specific non-vegetarian dishes
    "butter chicken", "chicken tikka masala", "mutton tikka masala",
    "fish tikka masala", "prawn tikka masala", "egg tikka masala",
    "chicken korma", "mutton korma", "fish korma", "prawn korma", "egg korma",
    "chicken vindaloo", "mutton vindaloo", "fish vindaloo", "prawn vindaloo",
    "egg vindaloo", "chicken jalfrezi", "mutton jalfrezi", "fish jalfrezi",
    "prawn jalfrezi", "egg jalfrezi", "chicken dopiaza", "mutton dopiaza",
    "fish dopiaza", "prawn dopiaza", "egg dopiaza", "chicken makhani",
    "mutton makhani", "fish makhani", "prawn makhani", "egg makhani",
    "chicken kadai", "mutton kadai", "fish kadai", "prawn kadai", "egg kadai",
    "chicken chettinad", "mutton chettinad", "fish chettinad", "prawn chettinad",
    "egg chettinad", "chicken hyderabadi", "mutton hyderabadi", "fish hyderabadi",
    "prawn hyderabadi", "egg hyderabadi", "chicken kerala", "mutton kerala",
    "fish kerala", "prawn kerala", "egg kerala", "chicken goan", "mutton goan",
    "fish goan", "prawn goan", "egg goan", "chicken bengali", "mutton bengali",
    "fish bengali", "prawn bengali", "egg bengali", "chicken punjabi",
    "mutton punjabi", "fish punjabi", "prawn punjabi", "egg punjabi",
    "chicken south indian", "mutton south indian", "fish south indian",
    "prawn south indian", "egg south indian", "chicken north indian",
    "mutton north indian", "fish north indian", "prawn north indian",
    "egg north indian", "chicken west indian", "mutton west indian",
    "fish west indian", "prawn west indian", "egg west indian",
    "chicken east indian", "mutton east indian", "fish east indian",
    "prawn east indian", "egg east indian",
)

# Strong indicators short-circuit the counting step
STRONG_VEGETARIAN_INDICATORS: Tuple[str, ...] = (
    "vegetarian", "veggie", "vegan", "pure veg", "pure vegetarian",
    "sattvic", "jain", "brahmin", "pure veg restaurant",
)

STRONG_NON_VEGETARIAN_INDICATORS: Tuple[str, ...] = (
    "non-vegetarian", "non veg", "nonveg", "nonvegetarian", "meat",
    "chicken", "mutton", "fish", "prawn", "egg", "seafood", "maas",
)


# ----------------------------------------------------------------------
# Core scoring
# ----------------------------------------------------------------------
def _count_hits(text: str, keywords: Sequence[str]) -> int:
    return sum(1 for kw in keywords if kw in text)


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(kw in text for kw in keywords)


def classify_text(*parts: Optional[str]) -> bool:
    """
    Classify the concatenation of `parts` (lower-cased, space-joined).

    Returns:
        True when the text is vegetarian-safe, False otherwise.
    """
    text = " ".join(p or "" for p in parts).lower()

    if _contains_any(text, STRONG_NON_VEGETARIAN_INDICATORS):
        return False
    if _contains_any(text, STRONG_VEGETARIAN_INDICATORS):
        return True

    veg_score = _count_hits(text, VEGETARIAN_INDICATORS)
    non_veg_score = _count_hits(text, NON_VEGETARIAN_INDICATORS)

    if veg_score == 0 and non_veg_score == 0:
        return True

    # Ties favour vegetarian
    return veg_score >= non_veg_score


def detect_meal_vegetarian(meal_name: Optional[str], description: Optional[str] = "") -> bool:
    """Vegetarian status of a meal from its name + description."""
    if not meal_name:
        return True
    return classify_text(meal_name, description or "")


def detect_image_vegetarian(
    image_url: Optional[str],
    image_name: Optional[str] = "",
    description: Optional[str] = "",
) -> bool:
    """Vegetarian status of a catalog image from url + name + description."""
    if not image_url:
        return True
    return classify_text(image_url, image_name or "", description or "")


def resolve_image_vegetarian(image: ImageRecord) -> bool:
    """
    Return the image's vegetarian flag, classifying and storing it on first use.

    A flag supplied by the catalog always wins. Once resolved, the flag is
    authoritative for the rest of the process.
    """
    if image.is_vegetarian is None:
        image.is_vegetarian = detect_image_vegetarian(image.url, image.name, image.description)
        logger.debug(
            "Classified image '%s' as vegetarian=%s",
            image.name,
            image.is_vegetarian,
            extra={
                "invoking_func": "resolve_image_vegetarian",
                "invoking_purpose": "Resolve catalog image dietary flag",
                "next_step": "Cache flag on the ImageRecord",
                "resolution": "",
            },
        )
    return bool(image.is_vegetarian)


# ----------------------------------------------------------------------
# Constraint helpers
# ----------------------------------------------------------------------
@dataclass
class VegetarianCheck:
    is_valid: bool
    meal_is_vegetarian: bool
    image_is_vegetarian: bool
    reason: str


def validate_vegetarian_constraint(
    meal_name: str,
    meal_description: Optional[str],
    image_url: str,
    image_name: Optional[str],
    image_description: Optional[str],
) -> VegetarianCheck:
    """A vegetarian meal may only map to a vegetarian image; a non-vegetarian meal may map to any."""
    meal_is_veg = detect_meal_vegetarian(meal_name, meal_description)
    image_is_veg = detect_image_vegetarian(image_url, image_name, image_description)

    is_valid = (not meal_is_veg) or image_is_veg

    if not is_valid:
        reason = f'Vegetarian meal "{meal_name}" cannot be mapped to non-vegetarian image "{image_url}"'
    elif meal_is_veg and image_is_veg:
        reason = "Both meal and image are vegetarian - valid match"
    elif not meal_is_veg and image_is_veg:
        reason = "Non-vegetarian meal mapped to vegetarian image - valid match"
    else:
        reason = "Non-vegetarian meal mapped to non-vegetarian image - valid match"

    return VegetarianCheck(
        is_valid=is_valid,
        meal_is_vegetarian=meal_is_veg,
        image_is_vegetarian=image_is_veg,
        reason=reason,
    )


def filter_images_by_vegetarian_constraint(
    images: Iterable[ImageRecord],
    meal_name: str,
    meal_description: Optional[str] = "",
) -> List[ImageRecord]:
    """Images a meal may be mapped to. Resolves each image's flag as a side effect."""
    meal_is_veg = detect_meal_vegetarian(meal_name, meal_description)
    return [
        image
        for image in images
        if not meal_is_veg or resolve_image_vegetarian(image)
    ]


def get_vegetarian_confidence(text: str, is_vegetarian: bool) -> float:
    """
    Share of the matched indicator weight that supports the given label.

    Strong indicators count double. Returns 0.0 when nothing matched.
    """
    lower = (text or "").lower()
    if is_vegetarian:
        regular, strong = VEGETARIAN_INDICATORS, STRONG_VEGETARIAN_INDICATORS
    else:
        regular, strong = NON_VEGETARIAN_INDICATORS, STRONG_NON_VEGETARIAN_INDICATORS

    score = 0
    total = 0
    for kw in regular:
        if kw in lower:
            score += 1
            total += 1
    for kw in strong:
        if kw in lower:
            score += 2
            total += 2

    return score / total if total > 0 else 0.0
