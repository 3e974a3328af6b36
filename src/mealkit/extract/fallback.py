"""Rule-based records for when the model path fails.

Every generator here is a pure function of the request: no network, no
clock, no randomness. They never raise for a well-formed request, which is
what lets the extractor promise callers a usable record every time.
"""

import datetime
import re
from urllib.parse import unquote, urlparse

from mealkit.extract.models import (
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
from mealkit.extract.normalizer import DESCRIPTION_MAX, TITLE_MAX, truncate
from mealkit.extract.servings import format_amount, parse_amount, scale_amount, serving_count

# ============================================================================
# Activity
# ============================================================================

# A place runs until punctuation or the next preposition
_PLACE = r"([^,.;!?\n]+?)(?=\s+(?:at|in|on|near|by|from)\b|[,.;!?\n]|$)"

_LOCATION_PATTERNS = [
    re.compile(rf"\bat\s+{_PLACE}", re.IGNORECASE),
    re.compile(rf"\bin\s+{_PLACE}", re.IGNORECASE),
    re.compile(rf"\bnear\s+{_PLACE}", re.IGNORECASE),
    re.compile(rf"@\s*{_PLACE}", re.IGNORECASE),
]

_MONTH_NAMES = "january|february|march|april|may|june|july|august|september|october|november|december"

_DATE_PATTERNS = [
    re.compile(r"\b(\d{1,2}/\d{1,2}/\d{4})\b"),
    re.compile(r"\b(\d{4}-\d{2}-\d{2})\b"),
    re.compile(rf"\b((?:{_MONTH_NAMES})\s+\d{{1,2}}(?:st|nd|rd|th)?(?:,?\s+\d{{4}})?)\b", re.IGNORECASE),
    re.compile(r"\b(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b", re.IGNORECASE),
]

_TIME_PATTERNS = [
    re.compile(r"\b(\d{1,2}:\d{2}\s*(?:am|pm)?)", re.IGNORECASE),
    re.compile(r"\b(\d{1,2}\s*(?:am|pm))\b", re.IGNORECASE),
]

# A location candidate that is really a time or date ("at 7pm")
_NOT_A_PLACE_RE = re.compile(r"^\d|^(?:noon|midnight|night|home)\b", re.IGNORECASE)

# Whole words, with an optional plural, so "spaghetti" is not "spa"
CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "food": ["restaurant", "cafe", "café", "dining", "food", "eat", "eating", "lunch", "dinner", "breakfast", "brunch", "bakery", "bakeries", "picnic"],
    "entertainment": ["movie", "cinema", "theater", "theatre", "show", "concert", "festival", "comedy", "entertainment"],
    "outdoor": ["park", "hiking", "hike", "beach", "outdoor", "nature", "walk", "walking", "bike", "biking", "farm", "orchard", "picking", "garden", "camping", "trail", "lake"],
    "culture": ["museum", "gallery", "galleries", "art", "culture", "exhibition", "exhibit", "history", "library", "libraries"],
    "shopping": ["shop", "shopping", "store", "mall", "market", "boutique"],
    "family": ["family", "families", "kid", "children", "child", "toddler", "playground", "zoo", "aquarium"],
    "social": ["party", "parties", "gathering", "meet", "meetup", "social", "friend", "group", "potluck"],
    "sports": ["sport", "soccer", "football", "basketball", "baseball", "tennis", "golf", "hockey", "swim", "swimming", "skating"],
    "education": ["class", "lesson", "workshop", "lecture", "course", "tutor", "tutoring", "learn", "learning"],
    "wellness": ["yoga", "spa", "massage", "meditation", "wellness", "fitness", "gym", "workout"],
    "travel": ["trip", "travel", "flight", "vacation", "hotel", "getaway", "airport"],
}

_CATEGORY_RES = {
    category: re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")(?:s|es)?\b", re.IGNORECASE)
    for category, keywords in CATEGORY_KEYWORDS.items()
}


def _first_match(patterns: list[re.Pattern], text: str) -> str | None:
    for pattern in patterns:
        m = pattern.search(text)
        if m:
            return m.group(1).strip()
    return None


def extract_location(text: str) -> str | None:
    for pattern in _LOCATION_PATTERNS:
        for m in pattern.finditer(text):
            candidate = m.group(1).strip()
            if candidate and not _NOT_A_PLACE_RE.match(candidate):
                return candidate
    return None


def detect_categories(text: str) -> list[str]:
    """Keyword-match text against the category table, default general."""
    found = [category for category, regex in _CATEGORY_RES.items() if regex.search(text)]
    return found or [DEFAULT_CATEGORY]


def activity_fallback(request: ActivityRequest) -> ActivityRecord:
    text = request.text.strip()
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    title = lines[0] if lines else "New Activity"
    description = " ".join(lines[1:]) or text or title

    return ActivityRecord(
        title=truncate(title, TITLE_MAX),
        description=truncate(description, DESCRIPTION_MAX),
        location=extract_location(text),
        date=_first_match(_DATE_PATTERNS, text),
        time=_first_match(_TIME_PATTERNS, text),
        categories=detect_categories(text),
    )


# ============================================================================
# Ingredients
# ============================================================================

# (name, amount for 4 servings, unit, notes)
IngredientTemplate = list[tuple[str, str, str, str | None]]

INGREDIENT_TEMPLATES: dict[str, IngredientTemplate] = {
    "pasta night": [
        ("Pasta", "1", "lb", "any shape"),
        ("Olive oil", "2", "tbsp", None),
        ("Garlic", "3", "cloves", "minced"),
        ("Parmesan cheese", "0.5", "cup", "grated"),
        ("Salt", "1", "tsp", None),
        ("Black pepper", "1", "tsp", None),
    ],
    "taco tuesday": [
        ("Ground beef", "1", "lb", None),
        ("Taco shells", "8", "count", None),
        ("Lettuce", "0.5", "head", "shredded"),
        ("Tomatoes", "2", "count", "diced"),
        ("Cheese", "1", "cup", "shredded"),
        ("Sour cream", "0.5", "cup", None),
    ],
    "pizza night": [
        ("Pizza dough", "1", "lb", None),
        ("Pizza sauce", "1", "cup", None),
        ("Mozzarella cheese", "2", "cup", "shredded"),
        ("Pepperoni", "0.5", "cup", "sliced"),
        ("Olive oil", "2", "tbsp", None),
        ("Italian seasoning", "1", "tsp", None),
    ],
    "breakfast for dinner": [
        ("Eggs", "8", "count", None),
        ("Bacon", "0.5", "lb", None),
        ("Bread", "8", "slices", "for toast"),
        ("Butter", "2", "tbsp", None),
        ("Milk", "0.5", "cup", None),
        ("Salt", "1", "tsp", None),
        ("Black pepper", "1", "tsp", None),
    ],
    "burgers": [
        ("Ground beef", "1.5", "lb", None),
        ("Hamburger buns", "4", "count", None),
        ("Cheddar cheese", "4", "slices", None),
        ("Lettuce", "0.5", "head", "leaves separated"),
        ("Tomato", "1", "count", "sliced"),
        ("Salt", "1", "tsp", None),
    ],
    "salad night": [
        ("Mixed greens", "8", "cups", None),
        ("Chicken breast", "1", "lb", "grilled"),
        ("Cherry tomatoes", "1", "cup", "halved"),
        ("Cucumber", "1", "count", "sliced"),
        ("Salad dressing", "0.5", "cup", None),
    ],
    "soup & stew": [
        ("Stew meat", "1.5", "lb", "cubed"),
        ("Potatoes", "1", "lb", "diced"),
        ("Carrots", "3", "count", "sliced"),
        ("Onion", "1", "count", "diced"),
        ("Broth", "4", "cups", None),
        ("Salt", "1", "tsp", None),
    ],
    "fish & seafood": [
        ("White fish fillets", "1.5", "lb", None),
        ("Lemon", "1", "count", "sliced"),
        ("Butter", "2", "tbsp", None),
        ("Rice", "1.5", "cups", None),
        ("Green beans", "1", "lb", "trimmed"),
    ],
    "sandwich night": [
        ("Sandwich bread", "8", "slices", None),
        ("Deli turkey", "0.75", "lb", "sliced"),
        ("Cheese", "4", "slices", None),
        ("Lettuce", "0.25", "head", None),
        ("Mayonnaise", "2", "tbsp", None),
    ],
}

DEFAULT_INGREDIENT_TEMPLATE: IngredientTemplate = [
    ("Protein", "1", "lb", "chicken, beef, or fish"),
    ("Vegetables", "2", "cups", "mixed vegetables"),
    ("Starch", "1", "cup", "rice, potatoes, or pasta"),
    ("Oil", "2", "tbsp", "olive oil or cooking oil"),
    ("Seasonings", "1", "tsp", "salt, pepper, herbs"),
]

CATEGORY_ALIASES = {
    "pasta": "pasta night",
    "taco": "taco tuesday",
    "tacos": "taco tuesday",
    "mexican": "taco tuesday",
    "pizza": "pizza night",
    "breakfast": "breakfast for dinner",
    "burger": "burgers",
    "salad": "salad night",
    "soup": "soup & stew",
    "stew": "soup & stew",
    "soup and stew": "soup & stew",
    "fish": "fish & seafood",
    "seafood": "fish & seafood",
    "fish and seafood": "fish & seafood",
    "sandwich": "sandwich night",
    "sandwiches": "sandwich night",
}


def normalize_category(category: str) -> str:
    """Lowercase, drop emoji and punctuation (except &), collapse spaces."""
    cleaned = re.sub(r"[^a-z0-9& ]+", " ", category.lower())
    return re.sub(r"\s+", " ", cleaned).strip()


def ingredient_template(category: str) -> IngredientTemplate:
    key = normalize_category(category)
    key = CATEGORY_ALIASES.get(key, key)
    return INGREDIENT_TEMPLATES.get(key, DEFAULT_INGREDIENT_TEMPLATE)


def ingredients_fallback(request: IngredientsRequest) -> IngredientList:
    """Template ingredients scaled linearly from 4 servings."""
    servings = serving_count(request.target, request.servings)
    return IngredientList(ingredients=[
        Ingredient(name=name, amount=scale_amount(amount, servings), unit=unit, notes=notes)
        for name, amount, unit, notes in ingredient_template(request.category)
    ])


# ============================================================================
# Recipe analysis
# ============================================================================


def dish_name_from_url(url: str) -> str:
    """Best-guess dish name from the last URL path segment.

    "https://x.com/recipes/lemon-garlic_salmon.html" -> "Lemon Garlic Salmon"
    """
    path = urlparse(url.strip()).path.rstrip("/")
    segment = unquote(path.rsplit("/", 1)[-1]) if path else ""
    segment = re.sub(r"[-_]+", " ", segment)
    segment = re.sub(r"\.[^/.]+$", "", segment)
    words = segment.split()
    return " ".join(w[:1].upper() + w[1:] for w in words)


def recipe_fallback(request: RecipeAnalysisRequest) -> RecipeAnalysis:
    return RecipeAnalysis(category=dish_name_from_url(request.url), details="")


# ============================================================================
# Inventory
# ============================================================================

_SPLIT_RE = re.compile(r"\s*(?:\n|,|;|\band\b)\s*", re.IGNORECASE)
_EXPIRY_RE = re.compile(
    r"(?:\b(?:expires?|expiring|exp|good until|good till|use by|best by|best before)\s*(?:on\s+)?)?"
    r"\b(\d{4}-\d{2}-\d{2}|\d{1,2}/\d{1,2}/\d{4})\b",
    re.IGNORECASE,
)
_QUANTITY_RE = re.compile(r"^(\d+\s+\d+/\d+|\d+/\d+|\d+(?:\.\d+)?)\s*(.*)$")

_WORD_QUANTITIES = {
    "a": 1.0, "an": 1.0, "one": 1.0, "two": 2.0, "three": 3.0, "four": 4.0, "five": 5.0,
    "six": 6.0, "seven": 7.0, "eight": 8.0, "nine": 9.0, "ten": 10.0, "dozen": 12.0,
    "half": 0.5,
}

UNITS = {
    "can", "cans", "lb", "lbs", "pound", "pounds", "oz", "ounce", "ounces", "bag", "bags",
    "box", "boxes", "bottle", "bottles", "jar", "jars", "carton", "cartons", "pack", "packs",
    "package", "packages", "piece", "pieces", "gallon", "gallons", "cup", "cups", "bunch",
    "bunches", "head", "heads", "loaf", "loaves", "container", "containers", "dozen", "g", "kg",
}

_NOTE_WORDS = ("leftover", "opened", "frozen", "half full")


def _parse_date(value: str) -> datetime.date | None:
    try:
        if "-" in value:
            return datetime.date.fromisoformat(value)
        month, day, year = (int(p) for p in value.split("/"))
        return datetime.date(year, month, day)
    except ValueError:
        return None


def parse_inventory_fragment(fragment: str) -> InventoryItem | None:
    """Parse "2 cans black beans expires 2025-01-04" into an item."""
    text = fragment.strip()
    expiry = None
    m = _EXPIRY_RE.search(text)
    if m:
        expiry = _parse_date(m.group(1))
        text = (text[: m.start()] + text[m.end():]).strip()

    notes = [word for word in _NOTE_WORDS if re.search(rf"\b{word}\b", text, re.IGNORECASE)]
    for word in notes:
        text = re.sub(rf"\b{word}\b", " ", text, flags=re.IGNORECASE)
    text = re.sub(r"^\s*(?:some|a few|a couple of)\b", " ", text, flags=re.IGNORECASE).strip()

    quantity = None
    m = _QUANTITY_RE.match(text)
    if m:
        quantity = parse_amount(m.group(1))
        text = m.group(2)
    else:
        first, _, rest = text.partition(" ")
        if first.lower() in _WORD_QUANTITIES and rest:
            quantity = _WORD_QUANTITIES[first.lower()]
            text = re.sub(r"^(?:a|an)\s+", "", rest, flags=re.IGNORECASE)

    unit = None
    first, _, rest = text.strip().partition(" ")
    if first.lower() in UNITS and rest:
        unit = first.lower()
        text = re.sub(r"^of\s+", "", rest.strip(), flags=re.IGNORECASE)

    name = re.sub(r"\s+", " ", text).strip(" .-")
    if not name:
        return None
    return InventoryItem(
        name=" ".join(w[:1].upper() + w[1:] for w in name.split()),
        quantity=quantity,
        unit=unit,
        notes=", ".join(notes) or None,
        estimated_expiry=expiry,
    )


def split_items(text: str) -> list[str]:
    return [part for part in _SPLIT_RE.split(text or "") if part and part.strip()]


def inventory_fallback(request: InventoryRequest) -> InventoryList:
    items = [item for item in map(parse_inventory_fragment, split_items(request.text)) if item]
    return InventoryList(location=request.location_name.strip(), items=items)


# ============================================================================
# Meal suggestions
# ============================================================================


def meal_suggestions_fallback(request: MealSuggestionsRequest) -> MealSuggestionList:
    category = request.category.strip() or "Family"
    lower = category.lower()
    if request.kids:
        suggestions = [
            (f"Classic {category}", f"Fun and tasty {lower} that kids will love to eat."),
            (f"Homestyle {category}", f"Comforting {lower} that's familiar and easy for kids to enjoy."),
            (f"Quick {category}", f"Fast and kid-friendly {lower} perfect for busy families."),
        ]
    else:
        suggestions = [
            (f"Classic {category}", f"A traditional {lower} meal that's perfect for family dinner."),
            (f"Homestyle {category}", f"A comforting {lower} dish with familiar flavors everyone will love."),
            (f"Quick {category}", f"An easy-to-make {lower} meal perfect for busy weeknights."),
        ]

    preferences = request.preferences.strip()
    if preferences:
        suffixes = ["Includes your preferences", "Customized to match", "Tailored for"]
        suggestions = [
            (title, f"{description} {suffix}: {preferences}.")
            for (title, description), suffix in zip(suggestions, suffixes)
        ]
    return MealSuggestionList(suggestions=[
        MealSuggestion(title=truncate(title, TITLE_MAX), description=description)
        for title, description in suggestions
    ])


# ============================================================================
# Meals from inventory
# ============================================================================

# (dish suffix, difficulty, prep time, description)
_PANTRY_DISHES = [
    ("Stir-Fry", "Easy", "20 min", "A quick stir-fry built from what you already have on hand."),
    ("Sheet Pan Bake", "Easy", "45 min", "Everything roasted together on one pan for an easy cleanup."),
    ("Hearty Soup", "Medium", "1 hour", "A cozy pot of soup that uses up your pantry and fridge staples."),
]
_PANTRY_MAX_INGREDIENTS = 6


def pantry_meals_fallback(request: PantryMealsRequest) -> PantryMealList:
    """Simple dishes that rotate which available ingredient leads."""
    names = []
    for fragment in split_items(request.ingredients):
        item = parse_inventory_fragment(fragment)
        if item and item.name not in names:
            names.append(item.name)
    names = names[:_PANTRY_MAX_INGREDIENTS]

    meals = []
    for i, (dish, difficulty, prep_time, description) in enumerate(_PANTRY_DISHES):
        rotated = names[i % len(names):] + names[: i % len(names)] if names else []
        lead = rotated[0] if rotated else "Pantry"
        meals.append(PantryMeal(
            title=truncate(f"{lead} {dish}", TITLE_MAX),
            description=description,
            ingredients=[
                PantryIngredient(id=f"ing{k}", name=name, amount=format_amount(1), unit="portion")
                for k, name in enumerate(rotated, start=1)
            ],
            difficulty=difficulty,
            prep_time=prep_time,
            servings=4,
        ))
    return PantryMealList(meals=meals)


def fallback_record(request) -> Record:
    """Produce the rule-based record for any extraction request."""
    match request:
        case ActivityRequest():
            return activity_fallback(request)
        case IngredientsRequest():
            return ingredients_fallback(request)
        case RecipeAnalysisRequest():
            return recipe_fallback(request)
        case InventoryRequest():
            return inventory_fallback(request)
        case MealSuggestionsRequest():
            return meal_suggestions_fallback(request)
        case PantryMealsRequest():
            return pantry_meals_fallback(request)
        case _:
            raise TypeError(f"Unsupported request type: {type(request).__name__}")
