"""LLM extraction prompts, one builder per task.

Every builder is a pure function of its request: the same request always
renders the same system and user message. Each prompt spells out a closed
output schema, the allowed values and a worked example, since that is what
decides whether the response parses downstream.
"""

import json
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict

from mealkit.errors import InvalidRequest
from mealkit.extract.models import (
    CATEGORY_VOCABULARY,
    ActivityRequest,
    IngredientsRequest,
    InventoryRequest,
    MealSuggestionsRequest,
    PageContent,
    PantryMealsRequest,
    RecipeAnalysisRequest,
)
from mealkit.extract.servings import scale_amount, serving_count


class Prompt(BaseModel):
    """A rendered system + user message pair."""

    model_config = ConfigDict(frozen=True)

    system: str
    user: str


def _require(value: str | None, message: str) -> str:
    if value is None or not value.strip():
        raise InvalidRequest(message)
    return value.strip()


def is_http_url(url: str) -> bool:
    parsed = urlparse(url.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


# ============================================================================
# Activity
# ============================================================================

ACTIVITY_SYSTEM = (
    "You are an assistant that extracts structured information from activity "
    "descriptions or URLs. You respond with ONLY a valid JSON object."
)

_ACTIVITY_EXAMPLE = {
    "title": "Farmers market with the kids",
    "description": "Morning trip to the Union Square farmers market to pick up produce and let the kids try samples.",
    "location": "Union Square",
    "categories": ["food", "shopping", "family"],
    "date": "Sunday",
    "time": "9:00 am",
    "estimated_duration": 90,
    "weather_dependent": True,
}


def _page_block(page: PageContent) -> str:
    lines = []
    if page.title:
        lines.append(f"Page title: {page.title}")
    if page.description:
        lines.append(f"Page description: {page.description}")
    if page.text:
        lines.append(f"Page content: {page.text}")
    return "".join(f"\n{line}" for line in lines)


def build_activity_prompt(request: ActivityRequest) -> Prompt:
    """Build the activity extraction prompt.

    Args:
        request: Activity request; ``text`` must be non-blank

    Raises:
        InvalidRequest: If the text is empty
    """
    text = _require(request.text, "Content is required")
    categories = ", ".join(CATEGORY_VOCABULARY)

    source = f'Text to analyze: "{text}"'
    if request.url:
        source += f"\nSource URL: {request.url.strip()}"
    if request.page:
        source += _page_block(request.page)

    user = f"""Analyze the following text and extract key details about an activity or event.

{source}

OUTPUT SCHEMA (a single JSON object):
{{
  "title": "clear, concise title (max 100 characters)",
  "description": "what the activity is (max 500 characters)",
  "location": "venue or place, only if mentioned",
  "categories": ["one or more allowed categories"],
  "date": "YYYY-MM-DD or the day as written, only if mentioned",
  "time": "HH:MM am/pm, only if mentioned",
  "estimated_duration": "integer minutes, only if mentioned",
  "cost_estimate": "cost information, only if mentioned",
  "age_appropriate": "age recommendation, only if mentioned",
  "weather_dependent": "true/false, only if weather dependency is clear"
}}

ALLOWED CATEGORIES (use ONLY these exact values): [{categories}]

EXAMPLE:
Input: "Sunday farmers market at Union Square, 9am, kids can try samples"
Output: {json.dumps(_ACTIVITY_EXAMPLE)}

RULES:
- "title" and "description" are required
- If information is not available or unclear, omit that field entirely
- Do not invent locations, dates, times or costs
- Return ONLY the JSON object, no other text

OUTPUT JSON:"""
    return Prompt(system=ACTIVITY_SYSTEM, user=user)


# ============================================================================
# Ingredients
# ============================================================================

INGREDIENTS_SYSTEM = (
    "You are a helpful cooking assistant that generates ingredient lists for "
    "meal planning. Always respond with valid JSON only."
)

# Worked example, authored for 4 servings and scaled to the request
_INGREDIENT_EXAMPLE = [
    ("Chicken breast", "1.5", "lb", "boneless, skinless"),
    ("Rice", "2", "cups", None),
    ("Eggs", "4", "count", None),
    ("Garlic", "3", "cloves", "minced"),
]


def build_ingredients_prompt(request: IngredientsRequest) -> Prompt:
    """Build the ingredient-list prompt.

    Example quantities are scaled to the request's serving count with the
    same function the fallback templates use.

    Raises:
        InvalidRequest: If the category is missing
    """
    category = _require(request.category, "Category is required")
    servings = serving_count(request.target, request.servings)
    meal_type = "adult meal" if request.target == "main" else "kids meal"
    eaters = "adults" if request.target == "main" else "children"

    example = {
        "ingredients": [
            {"name": name, "amount": scale_amount(amount, servings), "unit": unit}
            | ({"notes": notes} if notes else {})
            for name, amount, unit, notes in _INGREDIENT_EXAMPLE
        ]
        + [{"name": "Fresh parsley", "notes": "for garnish"}]
    }

    kids_rule = ""
    if request.target == "kids":
        kids_rule = "\n- This is a kids meal: prefer simpler ingredients and smaller portions"

    user = f"""Generate a shopping list of ingredients for a {meal_type} serving {servings} people.

MEAL DETAILS:
- Category: {category}
- Title: {request.title.strip() or 'Not specified'}
- Details: {request.details.strip() or 'Not specified'}
- Target: {meal_type}

OUTPUT SCHEMA:
{{
  "ingredients": [
    {{
      "name": "ingredient name (required)",
      "amount": "quantity as a string, only for measurable amounts (e.g. \\"2\\", \\"1/2\\")",
      "unit": "unit of measurement, only when amount is given",
      "notes": "optional preparation notes"
    }}
  ]
}}

EXAMPLE for {servings} servings:
{json.dumps(example)}

RULES:
- Include realistic quantities for {servings} {eaters}
- For whole items, omit both amount and unit
- For countable items use "count" as the unit
- Use common units: cups, lbs, tsp, tbsp, count, oz, cloves
- Every ingredient MUST have a name{kids_rule}
- Return only the JSON, no additional text

OUTPUT JSON:"""
    return Prompt(system=INGREDIENTS_SYSTEM, user=user)


# ============================================================================
# Recipe analysis
# ============================================================================

RECIPE_SYSTEM = """You are a recipe analyzer. Given a recipe URL, produce:
1. The specific name of the recipe or meal (e.g. "Pasta alla Norma", "Chicken Tikka Masala")
2. A brief, inspiring description of the dish (1-2 sentences max)

Be specific and appetizing. Use the actual recipe name, not a generic category. If the page is unclear, use the URL itself to make your best guess. Only respond with empty strings if absolutely nothing is available."""


def build_recipe_prompt(request: RecipeAnalysisRequest) -> Prompt:
    """Build the recipe analysis prompt.

    Raises:
        InvalidRequest: If the URL is missing or not an http(s) URL
    """
    url = _require(request.url, "URL is required")
    if not is_http_url(url):
        raise InvalidRequest("Invalid URL format")

    existing = ""
    if request.existing_category.strip() or request.existing_details.strip():
        existing = (
            "\nCURRENT VALUES (refine these rather than replacing them outright):\n"
            f"- category: {request.existing_category.strip() or '(empty)'}\n"
            f"- details: {request.existing_details.strip() or '(empty)'}\n"
        )

    user = f"""Analyze this recipe URL and generate the recipe name and description.

URL: {url}
{existing}
OUTPUT SCHEMA:
{{"category": "specific recipe name or meal title", "details": "brief description or empty string"}}

EXAMPLE:
URL: https://example.com/recipes/lemon-garlic-salmon
Output: {{"category": "Lemon Garlic Salmon", "details": "Flaky baked salmon with a bright lemon and garlic butter glaze."}}

Respond with the JSON object only.

OUTPUT JSON:"""
    return Prompt(system=RECIPE_SYSTEM, user=user)


# ============================================================================
# Inventory
# ============================================================================

_INVENTORY_EXAMPLES = """Input: "2 cans black beans, 1 lb ground beef, 3 bell peppers"
Output: [
  {"name": "Black Beans", "quantity": 2, "unit": "cans", "category": "Pantry Staples", "notes": null, "estimated_expiry": null},
  {"name": "Ground Beef", "quantity": 1, "unit": "lb", "category": "Proteins", "notes": null, "estimated_expiry": null},
  {"name": "Bell Peppers", "quantity": 3, "unit": "pieces", "category": "Vegetables", "notes": null, "estimated_expiry": null}
]

Input: "some leftover chicken, half a bag of spinach"
Output: [
  {"name": "Cooked Chicken", "quantity": null, "unit": null, "category": "Proteins", "notes": "leftover", "estimated_expiry": null},
  {"name": "Spinach", "quantity": 0.5, "unit": "bag", "category": "Vegetables", "notes": "half full", "estimated_expiry": null}
]

Input: "milk expires 2025-01-02, cheese"
Output: [
  {"name": "Milk", "quantity": null, "unit": null, "category": "Dairy", "notes": null, "estimated_expiry": "2025-01-02"},
  {"name": "Cheese", "quantity": null, "unit": null, "category": "Dairy", "notes": null, "estimated_expiry": null}
]"""


def build_inventory_prompt(request: InventoryRequest) -> Prompt:
    """Build the inventory extraction prompt.

    Raises:
        InvalidRequest: If the location name or the text is missing
    """
    location = _require(request.location_name, "Location name and raw input are required")
    text = _require(request.text, "Location name and raw input are required")

    system = f"""You are a helpful inventory management assistant. You convert natural language descriptions of food items into structured inventory data.

The user is describing what they see in their {location}. Convert the description into a list of individual food items.

OUTPUT SCHEMA (a JSON array):
[
  {{
    "name": "specific food item name (required)",
    "quantity": number or null,
    "unit": "cans, lbs, pieces, bags, ... or null",
    "category": "Proteins, Vegetables, Fruits, Grains, Dairy, Pantry Staples, Frozen Foods, Beverages, Condiments or Other",
    "notes": "extra context such as 'leftover' or 'half full', or null",
    "estimated_expiry": "YYYY-MM-DD ONLY if the user explicitly states a date or time period, otherwise null"
  }}
]

RULES:
- Break compound descriptions into individual items
- Be specific with names ("Black Beans", not "beans")
- If no quantity or unit is mentioned, use null
- CRITICAL: never guess an expiry date from the food type or storage location
- Only set estimated_expiry when the text says something like "expires Aug 25" or "good until next week"

EXAMPLES:
{_INVENTORY_EXAMPLES}"""

    reference = ""
    if request.reference_date is not None:
        reference = f"\nToday's date: {request.reference_date.isoformat()}"

    user = (
        f"Location: {location}{reference}\n"
        f'Raw input: "{text}"\n\n'
        "Convert this into structured inventory items. Return only the JSON array."
    )
    return Prompt(system=system, user=user)


# ============================================================================
# Meal suggestions
# ============================================================================


def build_meal_suggestions_prompt(request: MealSuggestionsRequest) -> Prompt:
    """Build the three-suggestion prompt for a meal-plan category.

    Raises:
        InvalidRequest: If the category is missing
    """
    category = _require(request.category, "Category is required")

    kids_note = ""
    if request.kids:
        kids_note = (
            "\nIMPORTANT: These are KIDS MEALS. Make them fun, easy to eat and built "
            "on familiar, comforting foods that children enjoy."
        )

    system = f"""You are a helpful meal planning assistant. Generate 3 specific, practical meal suggestions for the meal category and preferences provided. Each suggestion should be a complete meal a family could realistically prepare.

OUTPUT SCHEMA (a JSON array of exactly 3 objects):
[
  {{"title": "specific meal name", "description": "one short, inspiring sentence"}}
]

EXAMPLE:
[{{"title": "Honey Garlic Chicken Thighs with Roasted Vegetables", "description": "Sticky, savory chicken with caramelized veggies, all on one sheet pan."}}]

Focus on practical meals, specific names, and variety in cooking methods and flavors.{kids_note}"""

    target = "Kids meal" if request.kids else "Family meal"
    if request.preferences.strip():
        user = (
            f"Category: {category}\nUser preferences: {request.preferences.strip()}\nTarget: {target}\n\n"
            f"Please suggest 3 specific {category.lower()} meals that match these preferences."
        )
    else:
        friendly = "kid-friendly" if request.kids else "family-friendly"
        user = (
            f"Category: {category}\nTarget: {target}\n\n"
            f"Please suggest 3 popular, {friendly} {category.lower()} meals."
        )
    return Prompt(system=system, user=user)


# ============================================================================
# Meals from inventory
# ============================================================================

PANTRY_MEAL_COUNT = 6


def build_pantry_meals_prompt(request: PantryMealsRequest) -> Prompt:
    """Build the prompt that suggests meals from available ingredients.

    Raises:
        InvalidRequest: If no ingredients are given
    """
    ingredients = _require(request.ingredients, "Ingredients are required")

    example = {
        "title": "Creamy Mushroom and Spinach Pasta",
        "description": "Silky garlic cream sauce with earthy mushrooms and wilted spinach.",
        "ingredients": [
            {"id": "ing1", "name": "pasta", "amount": scale_amount(1, 4), "unit": "lb"},
            {"id": "ing2", "name": "mushrooms", "amount": scale_amount(8, 4), "unit": "oz", "notes": "sliced"},
            {"id": "ing3", "name": "garlic", "amount": scale_amount(3, 4), "unit": "cloves", "notes": "minced"},
        ],
        "difficulty": "Easy",
        "prepTime": "30 min",
        "servings": 4,
    }

    system = f"""You are a creative chef and meal planning expert. Suggest delicious, practical meals that can be made using the available ingredients.

Generate {PANTRY_MEAL_COUNT} meal suggestions that use primarily the listed ingredients, are realistic for home cooking, and mix difficulty levels.

OUTPUT SCHEMA (a JSON array):
[
  {{
    "title": "descriptive meal name (required)",
    "description": "1-2 appetizing sentences",
    "ingredients": [{{"id": "ing1", "name": "required", "amount": "2", "unit": "cups", "notes": "optional"}}],
    "difficulty": "Easy|Medium|Hard",
    "prepTime": "15 min|30 min|45 min|1 hour",
    "servings": 4
  }}
]

EXAMPLE ELEMENT:
{json.dumps(example)}

RULES:
- Every meal MUST have an "ingredients" array and every ingredient MUST have a "name"
- Ingredient ids are simple unique strings: "ing1", "ing2", ...
- Use standard cooking units (cups, tbsp, cloves, lb, oz)
- Include at least 2 "Easy" meals"""

    location = f" (from my {request.location.strip()})" if request.location.strip() else ""
    user = (
        f"Available ingredients{location}: {ingredients}\n\n"
        f"Please suggest {PANTRY_MEAL_COUNT} meals I can make with these ingredients, "
        "with proper amounts and units for each ingredient."
    )
    return Prompt(system=system, user=user)


def build_prompt(request) -> Prompt:
    """Render the prompt for any extraction request."""
    match request:
        case ActivityRequest():
            return build_activity_prompt(request)
        case IngredientsRequest():
            return build_ingredients_prompt(request)
        case RecipeAnalysisRequest():
            return build_recipe_prompt(request)
        case InventoryRequest():
            return build_inventory_prompt(request)
        case MealSuggestionsRequest():
            return build_meal_suggestions_prompt(request)
        case PantryMealsRequest():
            return build_pantry_meals_prompt(request)
        case _:
            raise InvalidRequest(f"Unsupported request type: {type(request).__name__}")
