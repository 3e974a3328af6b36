"""Turn raw model output into validated records.

Parsing tolerates the usual LLM quirks (code fences, single quotes, bare
keys, trailing commas, chatter around the JSON). Validation is fail-closed
for arrays: one element missing its required field rejects the whole
record, because a partial list is worse than a clean fallback.

``normalize`` never raises; it returns Normalized or NormalizationFailure.
"""

import datetime
import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from mealkit.extract.models import (
    CATEGORY_VOCABULARY,
    DEFAULT_CATEGORY,
    ActivityRecord,
    ActivityRequest,
    Ingredient,
    IngredientList,
    IngredientsRequest,
    InventoryItem,
    InventoryList,
    InventoryRequest,
    MealSuggestion,
    MealSuggestionList,
    MealSuggestionsRequest,
    PantryIngredient,
    PantryMeal,
    PantryMealList,
    PantryMealsRequest,
    RecipeAnalysis,
    RecipeAnalysisRequest,
    Record,
)
from mealkit.extract.servings import format_amount, parse_amount

logger = logging.getLogger(__name__)

TITLE_MAX = 100
DESCRIPTION_MAX = 500
SUGGESTION_COUNT = 3

_FENCE_OPEN_RE = re.compile(r"^```[\w+-]*[ \t]*\n?")
_FENCE_CLOSE_RE = re.compile(r"\n?[ \t]*```$")
_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")

_CLOSERS = {"{": "}", "[": "]"}

# Values models use to mean "not known"; treated as absent
_PLACEHOLDERS = {
    "",
    "null",
    "none",
    "n/a",
    "na",
    "unknown",
    "undefined",
    "not specified",
    "not mentioned",
    "not available",
}

# Whole month names or their abbreviations, so "marinara" and "decaf" are not dates
_MONTHS = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\b\.?"
)
_WEEKDAYS = r"(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)"
# Slash dates need a year; "1/2 gallon" is a fraction
_SLASH_DATE = r"\b(?:0?[1-9]|1[0-2])/(?:0?[1-9]|[12]\d|3[01])/(?:\d{4}|\d{2})\b"
_EXPIRY_CUE_RE = re.compile(
    r"\d{4}-\d{1,2}-\d{1,2}"
    rf"|{_SLASH_DATE}"
    rf"|\b{_MONTHS}\s+\d{{1,2}}\b"
    rf"|\b\d{{1,2}}(?:st|nd|rd|th)?\s+(?:of\s+)?{_MONTHS}"
    r"|\bexpir\w*|\bbest\s+(?:before|by)\b|\buse\s+by\b|\bsell\s+by\b"
    r"|\bgood\s+(?:until|till|for|through)\b|\buntil\b|\btill\b"
    r"|\btoday\b|\btonight\b|\btomorrow\b|\byesterday\b"
    r"|\b(?:this|next|last)\s+(?:week|month|weekend)\b"
    r"|\bin\s+\d+\s+(?:days?|weeks?|months?)\b|\b\d+\s+(?:days?|weeks?)\s+(?:left|old)\b"
    rf"|\b{_WEEKDAYS}\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class Normalized:
    record: Record


@dataclass(frozen=True)
class NormalizationFailure:
    reason: str


# ============================================================================
# Tolerant JSON recovery
# ============================================================================


def strip_code_fence(text: str) -> str:
    """Trim and remove one leading and one trailing ``` marker."""
    text = text.strip()
    text = _FENCE_OPEN_RE.sub("", text, count=1)
    text = _FENCE_CLOSE_RE.sub("", text, count=1)
    return text.strip()


def repair_json_text(text: str) -> str:
    """Apply the bounded textual repairs.

    Every single quote becomes a double quote, so a value such as
    "Trader Joe's" is corrupted. Only called after strict parsing failed.
    """
    text = text.replace("'", '"')
    text = _BARE_KEY_RE.sub(r'\1"\2"\3', text)
    text = _TRAILING_COMMA_RE.sub(r"\1", text)
    return text


def find_json_span(text: str) -> str | None:
    """Return the first balanced top-level ``{...}`` or ``[...]`` span.

    Brackets inside double-quoted strings are ignored. Returns None when
    there is no opening bracket or the brackets never balance.
    """
    start = next((i for i, ch in enumerate(text) if ch in _CLOSERS), None)
    if start is None:
        return None

    stack: list[str] = []
    in_string = False
    escaped = False
    for j in range(start, len(text)):
        ch = text[j]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in "}]":
            if not stack or stack[-1] != ch:
                return None
            stack.pop()
            if not stack:
                return text[start : j + 1]
    return None


def _try_loads(text: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except json.JSONDecodeError:
        return False, None


def parse_llm_json(text: str) -> Any:
    """Parse JSON from an LLM response, handling common quirks.

    Steps, each tried only if the previous one failed: strip fences and
    parse strictly; repair and reparse; parse the first balanced
    bracket span, strictly and then repaired.

    Raises:
        ValueError: If no step produced valid JSON
    """
    cleaned = strip_code_fence(text or "")
    if not cleaned:
        raise ValueError("Could not parse JSON from LLM response: empty response")

    ok, data = _try_loads(cleaned)
    if ok:
        return data

    ok, data = _try_loads(repair_json_text(cleaned))
    if ok:
        logger.debug("Parsed LLM JSON after textual repairs")
        return data

    span = find_json_span(cleaned)
    if span is None:
        # Brackets may only balance once single quotes are normalized
        span = find_json_span(repair_json_text(cleaned))
    if span is not None:
        for candidate in (span, repair_json_text(span)):
            ok, data = _try_loads(candidate)
            if ok:
                logger.debug("Parsed LLM JSON from embedded span")
                return data

    raise ValueError(f"Could not parse JSON from LLM response: {cleaned[:200]}...")


# ============================================================================
# Field coercion
# ============================================================================


def _clean_str(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = format_amount(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    if value.lower() in _PLACEHOLDERS:
        return None
    return value


def _clean_amount(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return format_amount(value)
    return _clean_str(value)


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to at most ``limit`` characters, marking the cut."""
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def coerce_categories(raw: Any) -> list[str]:
    """Keep only labels from the closed vocabulary; default to general."""
    if isinstance(raw, str):
        raw = re.split(r"[,;/|]", raw)
    if not isinstance(raw, list):
        raw = []
    categories: list[str] = []
    for item in raw:
        if not isinstance(item, str):
            continue
        label = item.strip().lower()
        if label in CATEGORY_VOCABULARY and label not in categories:
            categories.append(label)
    return categories or [DEFAULT_CATEGORY]


def _coerce_minutes(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(round(value)) if value > 0 else None
    if not isinstance(value, str):
        return None
    m = re.search(r"(\d+(?:\.\d+)?)\s*(h|hr|hrs|hour|hours)\b", value, re.IGNORECASE)
    if m:
        return int(round(float(m.group(1)) * 60))
    m = re.search(r"\d+", value)
    return int(m.group()) if m and int(m.group()) > 0 else None


def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes"):
            return True
        if lowered in ("false", "no"):
            return False
    return None


def _coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else None
    if isinstance(value, str):
        m = re.search(r"\d+", value)
        return int(m.group()) if m else None
    return None


def _coerce_quantity(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    return parse_amount(value)


def mentions_expiry(text: str) -> bool:
    """True when the text states a date or a relative time phrase."""
    return bool(_EXPIRY_CUE_RE.search(text or ""))


def _parse_expiry(value: Any) -> datetime.date | None:
    cleaned = _clean_str(value)
    if not cleaned:
        return None
    try:
        return datetime.date.fromisoformat(cleaned[:10])
    except ValueError:
        return None


def _unwrap_object(data: Any) -> dict:
    if isinstance(data, list) and len(data) == 1:
        data = data[0]
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _unwrap_list(data: Any, key: str) -> list:
    if isinstance(data, dict) and isinstance(data.get(key), list):
        data = data[key]
    if not isinstance(data, list):
        raise ValueError(f"expected a JSON array of {key}, got {type(data).__name__}")
    return data


# ============================================================================
# Record validation
# ============================================================================


def validate_activity(data: Any) -> ActivityRecord:
    """Validate an activity object; title and description are required."""
    obj = _unwrap_object(data)
    title = _clean_str(obj.get("title"))
    description = _clean_str(obj.get("description"))
    if not title or not description:
        raise ValueError("activity is missing title or description")

    return ActivityRecord(
        title=truncate(title, TITLE_MAX),
        description=truncate(description, DESCRIPTION_MAX),
        location=_clean_str(obj.get("location")),
        date=_clean_str(obj.get("date")),
        time=_clean_str(obj.get("time")),
        estimated_duration=_coerce_minutes(obj.get("estimated_duration")),
        cost_estimate=_clean_str(obj.get("cost_estimate")),
        age_appropriate=_clean_str(obj.get("age_appropriate")),
        weather_dependent=_coerce_bool(obj.get("weather_dependent")),
        categories=coerce_categories(obj.get("categories")),
    )


def validate_ingredients(data: Any) -> IngredientList:
    """Validate an ingredient list. Any element without a name rejects all."""
    items = _unwrap_list(data, "ingredients")
    if not items:
        raise ValueError("ingredient list is empty")

    ingredients = []
    for i, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValueError(f"ingredient {i} is not an object")
        name = _clean_str(raw.get("name"))
        if not name:
            raise ValueError(f"ingredient {i} has no name")
        amount = _clean_amount(raw.get("amount"))
        ingredients.append(Ingredient(
            name=name,
            amount=amount,
            unit=_clean_str(raw.get("unit")) if amount else None,
            notes=_clean_str(raw.get("notes")),
        ))
    return IngredientList(ingredients=ingredients)


def validate_recipe(data: Any) -> RecipeAnalysis:
    obj = _unwrap_object(data)
    return RecipeAnalysis(
        category=_clean_str(obj.get("category")) or "",
        details=_clean_str(obj.get("details")) or "",
    )


def validate_inventory(data: Any, request: InventoryRequest) -> InventoryList:
    """Validate inventory items against the source text.

    Expiry dates survive only when the user's text states a date or a
    relative time phrase; otherwise the model inferred them and they are
    dropped.
    """
    items = _unwrap_list(data, "items")
    if not items:
        raise ValueError("inventory list is empty")

    allow_expiry = mentions_expiry(request.text)
    parsed = []
    for i, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValueError(f"inventory item {i} is not an object")
        name = _clean_str(raw.get("name"))
        if not name:
            raise ValueError(f"inventory item {i} has no name")
        expiry = _parse_expiry(raw.get("estimated_expiry")) if allow_expiry else None
        if not allow_expiry and raw.get("estimated_expiry"):
            logger.debug(f"Dropping inferred expiry for {name}: source text states no date")
        parsed.append(InventoryItem(
            name=name,
            quantity=_coerce_quantity(raw.get("quantity")),
            unit=_clean_str(raw.get("unit")),
            category=_clean_str(raw.get("category")) or "",
            notes=_clean_str(raw.get("notes")),
            estimated_expiry=expiry,
        ))
    return InventoryList(location=request.location_name.strip(), items=parsed)


def pad_suggestions(suggestions: list[MealSuggestion], category: str) -> list[MealSuggestion]:
    """Trim or pad to exactly three suggestions."""
    padded = list(suggestions[:SUGGESTION_COUNT])
    while len(padded) < SUGGESTION_COUNT:
        padded.append(MealSuggestion(
            title=f"{category} Option {len(padded) + 1}",
            description=f"A delicious {category.lower()} meal option for your family.",
        ))
    return padded


def validate_meal_suggestions(data: Any, request: MealSuggestionsRequest) -> MealSuggestionList:
    items = _unwrap_list(data, "suggestions")
    if not items:
        raise ValueError("suggestion list is empty")
    suggestions = []
    for i, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValueError(f"suggestion {i} is not an object")
        title = _clean_str(raw.get("title"))
        if not title:
            raise ValueError(f"suggestion {i} has no title")
        suggestions.append(MealSuggestion(
            title=truncate(title, TITLE_MAX),
            description=_clean_str(raw.get("description")) or "",
        ))
    return MealSuggestionList(suggestions=pad_suggestions(suggestions, request.category.strip()))


def _coerce_difficulty(value: Any) -> str | None:
    cleaned = _clean_str(value)
    if cleaned and cleaned.capitalize() in ("Easy", "Medium", "Hard"):
        return cleaned.capitalize()
    return None


def validate_pantry_meals(data: Any) -> PantryMealList:
    """Validate meals built from inventory.

    Ingredients get safe defaults for id, amount and unit; a missing
    ingredients array or ingredient name rejects the whole list.
    """
    items = _unwrap_list(data, "meals")
    if not items:
        raise ValueError("meal list is empty")

    meals = []
    for i, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValueError(f"meal {i} is not an object")
        title = _clean_str(raw.get("title"))
        if not title:
            raise ValueError(f"meal {i} has no title")
        raw_ingredients = raw.get("ingredients")
        if not isinstance(raw_ingredients, list):
            raise ValueError(f'meal "{title}" is missing its ingredients array')

        ingredients = []
        for k, ing in enumerate(raw_ingredients, start=1):
            if not isinstance(ing, dict):
                raise ValueError(f'meal "{title}" has an ingredient that is not an object')
            name = _clean_str(ing.get("name"))
            if not name:
                raise ValueError(f'meal "{title}" has an ingredient with no name')
            ingredients.append(PantryIngredient(
                id=_clean_str(ing.get("id")) or f"ing{k}",
                name=name,
                amount=_clean_amount(ing.get("amount")) or "1",
                unit=_clean_str(ing.get("unit")) or "portion",
                notes=_clean_str(ing.get("notes")),
            ))

        meals.append(PantryMeal(
            title=truncate(title, TITLE_MAX),
            description=_clean_str(raw.get("description")) or "",
            ingredients=ingredients,
            difficulty=_coerce_difficulty(raw.get("difficulty")),
            prep_time=_clean_str(raw.get("prep_time", raw.get("prepTime"))),
            servings=_coerce_int(raw.get("servings")),
        ))
    return PantryMealList(meals=meals)


def validate_record(data: Any, request) -> Record:
    """Validate parsed JSON into the record type for ``request``."""
    match request:
        case ActivityRequest():
            return validate_activity(data)
        case IngredientsRequest():
            return validate_ingredients(data)
        case RecipeAnalysisRequest():
            return validate_recipe(data)
        case InventoryRequest():
            return validate_inventory(data, request)
        case MealSuggestionsRequest():
            return validate_meal_suggestions(data, request)
        case PantryMealsRequest():
            return validate_pantry_meals(data)
        case _:
            raise ValueError(f"Unsupported request type: {type(request).__name__}")


def normalize(text: str, request) -> Normalized | NormalizationFailure:
    """Parse and validate a model response for ``request``. Never raises."""
    try:
        data = parse_llm_json(text)
    except ValueError as e:
        return NormalizationFailure(reason=str(e))

    try:
        record = validate_record(data, request)
    except (ValueError, TypeError) as e:
        return NormalizationFailure(reason=f"Response failed validation: {e}")
    return Normalized(record=record)
