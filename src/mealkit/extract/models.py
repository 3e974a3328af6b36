"""Pydantic models for extraction requests, records and results.

Requests are a discriminated union on ``task``. Records are frozen once
emitted; any field the normalizer could not extract is left as None and
dropped from the wire form by ``model_dump(exclude_none=True)``.
"""

import datetime
from enum import Enum
from typing import Annotated, Literal, get_args

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class TaskKind(str, Enum):
    """The extraction tasks the pipeline knows how to run."""

    ACTIVITY = "activity-from-text"
    INGREDIENTS = "ingredients-for-meal"
    RECIPE_ANALYSIS = "recipe-analysis-from-url"
    INVENTORY = "inventory-items-from-text"
    MEAL_SUGGESTIONS = "meal-suggestions-for-category"
    PANTRY_MEALS = "meal-suggestions-from-inventory"


Category = Literal[
    "food",
    "entertainment",
    "outdoor",
    "culture",
    "shopping",
    "family",
    "social",
    "sports",
    "education",
    "wellness",
    "travel",
    "general",
]

CATEGORY_VOCABULARY: tuple[str, ...] = get_args(Category)
DEFAULT_CATEGORY = "general"

Target = Literal["main", "kids"]
Difficulty = Literal["Easy", "Medium", "Hard"]


# ============================================================================
# Requests
# ============================================================================


class _Request(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class PageContent(BaseModel):
    """Readable text and metadata scraped from a linked web page."""

    model_config = ConfigDict(frozen=True)

    url: str
    text: str = ""
    title: str | None = None
    description: str | None = None
    image: str | None = None


class ActivityRequest(_Request):
    """Free-text activity note, optionally with the page it came from."""

    task: Literal["activity-from-text"] = "activity-from-text"
    text: str = Field(default="", validation_alias=AliasChoices("text", "content", "raw_text"))
    url: str | None = None
    page: PageContent | None = None


class IngredientsRequest(_Request):
    """Shopping-list generation for one planned meal."""

    task: Literal["ingredients-for-meal"] = "ingredients-for-meal"
    category: str = ""
    title: str = ""
    details: str = ""
    target: Target = "main"
    servings: int | None = Field(default=None, ge=1)


class RecipeAnalysisRequest(_Request):
    """Name-and-describe a recipe page, refining any values already entered."""

    task: Literal["recipe-analysis-from-url"] = "recipe-analysis-from-url"
    url: str = ""
    existing_category: str = Field(
        default="", validation_alias=AliasChoices("existing_category", "existingCategory")
    )
    existing_details: str = Field(
        default="", validation_alias=AliasChoices("existing_details", "existingDetails")
    )


class InventoryRequest(_Request):
    """A rambling description of what is in one storage location."""

    task: Literal["inventory-items-from-text"] = "inventory-items-from-text"
    location_name: str = Field(
        default="", validation_alias=AliasChoices("location_name", "locationName", "location")
    )
    text: str = Field(default="", validation_alias=AliasChoices("text", "rawInput", "raw_input"))
    # Lets the model resolve "expires tomorrow"; part of the request so prompts stay deterministic
    reference_date: datetime.date | None = Field(
        default=None, validation_alias=AliasChoices("reference_date", "referenceDate", "today")
    )


class MealSuggestionsRequest(_Request):
    """Three meal ideas for a meal-plan category."""

    task: Literal["meal-suggestions-for-category"] = "meal-suggestions-for-category"
    category: str = ""
    preferences: str = ""
    kids: bool = Field(default=False, validation_alias=AliasChoices("kids", "isKidsMeal", "is_kids_meal"))


class PantryMealsRequest(_Request):
    """Recipe ideas built from what is already on hand."""

    task: Literal["meal-suggestions-from-inventory"] = "meal-suggestions-from-inventory"
    ingredients: str = ""
    location: str = ""


ExtractionRequest = Annotated[
    ActivityRequest
    | IngredientsRequest
    | RecipeAnalysisRequest
    | InventoryRequest
    | MealSuggestionsRequest
    | PantryMealsRequest,
    Field(discriminator="task"),
]


# ============================================================================
# Records
# ============================================================================


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class ActivityRecord(_Record):
    """An activity or event extracted from a note."""

    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=500)
    location: str | None = None
    date: str | None = None
    time: str | None = None
    estimated_duration: int | None = None  # minutes
    cost_estimate: str | None = None
    age_appropriate: str | None = None
    weather_dependent: bool | None = None
    categories: list[Category] = Field(min_length=1)


class Ingredient(_Record):
    name: str = Field(min_length=1)
    amount: str | None = None
    unit: str | None = None  # only kept when amount is present
    notes: str | None = None


class IngredientList(_Record):
    ingredients: list[Ingredient] = Field(default_factory=list)


class RecipeAnalysis(_Record):
    """Dish name and a short description. Either may be empty."""

    category: str = ""
    details: str = ""


class InventoryItem(_Record):
    name: str = Field(min_length=1)
    quantity: float | None = None
    unit: str | None = None
    category: str = ""
    notes: str | None = None
    estimated_expiry: datetime.date | None = None


class InventoryList(_Record):
    location: str = ""
    items: list[InventoryItem] = Field(default_factory=list)


class MealSuggestion(_Record):
    title: str = Field(min_length=1)
    description: str = ""


class MealSuggestionList(_Record):
    suggestions: list[MealSuggestion] = Field(default_factory=list)


class PantryIngredient(_Record):
    id: str
    name: str = Field(min_length=1)
    amount: str = "1"
    unit: str = "portion"
    notes: str | None = None


class PantryMeal(_Record):
    title: str = Field(min_length=1)
    description: str = ""
    ingredients: list[PantryIngredient] = Field(default_factory=list)
    difficulty: Difficulty | None = None
    prep_time: str | None = None
    servings: int | None = None


class PantryMealList(_Record):
    meals: list[PantryMeal] = Field(default_factory=list)


Record = (
    ActivityRecord
    | IngredientList
    | RecipeAnalysis
    | InventoryList
    | MealSuggestionList
    | PantryMealList
)


# ============================================================================
# Results
# ============================================================================


class Ok(BaseModel):
    """The model answered and its output passed validation."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["ok"] = "ok"
    task: TaskKind
    record: Record


class Fallback(BaseModel):
    """The model path failed; ``record`` came from the rule-based generator."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["fallback"] = "fallback"
    task: TaskKind
    record: Record
    reason: str


ExtractionResult = Annotated[Ok | Fallback, Field(discriminator="kind")]
