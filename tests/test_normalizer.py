"""Tests for mealkit.extract.normalizer."""

import datetime
import json

import pytest

from mealkit.extract.models import (
    ActivityRecord,
    ActivityRequest,
    IngredientsRequest,
    InventoryRequest,
    MealSuggestionsRequest,
    PantryMealsRequest,
    RecipeAnalysisRequest,
)
from mealkit.extract.normalizer import (
    NormalizationFailure,
    Normalized,
    coerce_categories,
    find_json_span,
    mentions_expiry,
    normalize,
    parse_llm_json,
    strip_code_fence,
    truncate,
)

ACTIVITY = ActivityRequest(text="Zoo trip")


class TestParseLlmJson:
    """Test JSON recovery from LLM responses."""

    def test_clean_json(self):
        """Parse clean JSON object."""
        assert parse_llm_json('{"key": "value"}') == {"key": "value"}

    def test_json_with_markdown_fences(self):
        """Parse JSON wrapped in markdown code fences."""
        assert parse_llm_json('```json\n{"key": "value"}\n```') == {"key": "value"}

    def test_json_with_plain_fences(self):
        """Parse JSON wrapped in plain code fences."""
        assert parse_llm_json('```\n{"key": "value"}\n```') == {"key": "value"}

    def test_single_quotes_and_trailing_comma(self):
        """Fenced single-quoted JSON with a trailing comma is repaired."""
        text = "```json\n{'title': 'Zoo Trip', 'description': 'Fun day',}\n```"
        assert parse_llm_json(text) == {"title": "Zoo Trip", "description": "Fun day"}

    def test_bare_keys(self):
        assert parse_llm_json('{title: "Zoo", tags: ["a", "b",]}') == {"title": "Zoo", "tags": ["a", "b"]}

    def test_apostrophe_survives_when_json_is_valid(self):
        """Repairs are only applied after strict parsing fails."""
        assert parse_llm_json('{"name": "Trader Joe\'s"}') == {"name": "Trader Joe's"}

    def test_json_with_leading_and_trailing_text(self):
        """Parse JSON surrounded by explanation text."""
        text = 'Here is the result:\n[{"name": "Milk"}]\nLet me know if you need more.'
        assert parse_llm_json(text) == [{"name": "Milk"}]

    def test_brackets_inside_strings_ignored(self):
        """The span scan does not stop at a brace inside a string."""
        text = 'Sure! {"title": "Curly {braces} night", "n": 1} Note: {not json}'
        assert parse_llm_json(text) == {"title": "Curly {braces} night", "n": 1}

    def test_invalid_json_raises(self):
        """Non-JSON text raises ValueError."""
        with pytest.raises(ValueError, match="Could not parse"):
            parse_llm_json("This is just plain text with no JSON.")

    def test_empty_string_raises(self):
        with pytest.raises(ValueError):
            parse_llm_json("")

    def test_unbalanced_raises(self):
        with pytest.raises(ValueError):
            parse_llm_json('{"title": "Zoo"')


class TestHelpers:
    """Test the small text helpers."""

    def test_strip_code_fence_only_once(self):
        assert strip_code_fence("  ```python\n[1]\n```  ") == "[1]"
        assert strip_code_fence("[1]") == "[1]"

    def test_find_json_span(self):
        assert find_json_span('x [1, [2]] y') == "[1, [2]]"
        assert find_json_span("no brackets") is None
        assert find_json_span("{]") is None

    def test_truncate(self):
        assert truncate("short", 10) == "short"
        cut = truncate("x" * 150, 100)
        assert len(cut) == 100
        assert cut.endswith("...")

    def test_coerce_categories(self):
        """Only vocabulary labels survive, in order, without duplicates."""
        assert coerce_categories(["Outdoor", "picnic", "family", "outdoor"]) == ["outdoor", "family"]
        assert coerce_categories("food, social") == ["food", "social"]
        assert coerce_categories(["nonsense"]) == ["general"]
        assert coerce_categories(None) == ["general"]

    def test_mentions_expiry(self):
        assert mentions_expiry("milk expires 2025-01-02")
        assert mentions_expiry("yogurt good until Friday")
        assert mentions_expiry("chicken, use by tomorrow")
        assert mentions_expiry("cheese Jan 5")
        assert not mentions_expiry("some leftover chicken, half a bag of spinach")
        assert not mentions_expiry("2 cans black beans")

    @pytest.mark.parametrize("text", [
        "1/2 gallon milk, eggs",
        "2 marinara jars, pasta",
        "1 mayonnaise, bread",
        "12 marshmallows",
        "2 decaf coffee pods",
    ])
    def test_quantities_are_not_dates(self, text):
        """Fractions and food words that start like month names carry no date."""
        assert not mentions_expiry(text)

    def test_date_shapes(self):
        assert mentions_expiry("yogurt 3/14/2025")
        assert mentions_expiry("bread, 5th of March")
        assert mentions_expiry("eggs Sept. 9")
        assert not mentions_expiry("13/40/2025 batch")


class TestActivityValidation:
    """Test activity record validation."""

    def test_zoo_trip_example(self):
        """A fenced, single-quoted object normalizes to a full record."""
        text = "```json\n{'title': 'Zoo Trip', 'description': 'Fun day',}\n```"
        result = normalize(text, ACTIVITY)
        assert isinstance(result, Normalized)
        assert result.record.title == "Zoo Trip"
        assert result.record.description == "Fun day"
        assert result.record.categories == ["general"]

    def test_optional_fields_coerced(self):
        text = json.dumps({
            "title": "Hike",
            "description": "Morning hike",
            "location": "Bear Mountain",
            "estimated_duration": "2 hours",
            "weather_dependent": "yes",
            "cost_estimate": "Free",
            "categories": ["outdoor", "sports", "space travel"],
        })
        record = normalize(text, ACTIVITY).record
        assert record.estimated_duration == 120
        assert record.weather_dependent is True
        assert record.categories == ["outdoor", "sports"]
        assert record.location == "Bear Mountain"

    def test_placeholders_are_dropped(self):
        """Placeholder values are omitted rather than filled in."""
        text = json.dumps({"title": "Hike", "description": "Hike", "location": "N/A", "date": "unknown", "time": None})
        record = normalize(text, ACTIVITY).record
        assert record.location is None
        assert record.date is None
        assert "location" not in record.model_dump(exclude_none=True)

    def test_long_fields_truncated(self):
        text = json.dumps({"title": "T" * 140, "description": "D" * 700})
        record = normalize(text, ACTIVITY).record
        assert len(record.title) <= 100
        assert len(record.description) <= 500

    def test_missing_description_fails(self):
        result = normalize('{"title": "Zoo"}', ACTIVITY)
        assert isinstance(result, NormalizationFailure)
        assert "title or description" in result.reason

    def test_unparseable_fails(self):
        result = normalize("I could not find any activity.", ACTIVITY)
        assert isinstance(result, NormalizationFailure)
        assert "Could not parse" in result.reason

    def test_record_is_frozen(self):
        record = normalize('{"title": "Zoo", "description": "Fun"}', ACTIVITY).record
        assert isinstance(record, ActivityRecord)
        with pytest.raises(ValueError):
            record.title = "Changed"


class TestIngredientValidation:
    """Test fail-closed ingredient list validation."""

    REQUEST = IngredientsRequest(category="Tacos")

    def test_bare_array(self):
        text = '[{"name": "Tortillas", "amount": 8, "unit": "count"}, {"name": "Cilantro", "notes": "chopped"}]'
        record = normalize(text, self.REQUEST).record
        assert [i.name for i in record.ingredients] == ["Tortillas", "Cilantro"]
        assert record.ingredients[0].amount == "8"
        assert record.ingredients[1].amount is None

    def test_wrapped_object(self):
        record = normalize('{"ingredients": [{"name": "Beef", "amount": "1", "unit": "lb"}]}', self.REQUEST).record
        assert record.ingredients[0].unit == "lb"

    def test_unit_without_amount_dropped(self):
        record = normalize('[{"name": "Salt", "unit": "tsp"}]', self.REQUEST).record
        assert record.ingredients[0].unit is None

    def test_one_nameless_element_rejects_all(self):
        """A single element without a name rejects the whole list."""
        text = '[{"name": "Beef"}, {"amount": "2", "unit": "cups"}]'
        result = normalize(text, self.REQUEST)
        assert isinstance(result, NormalizationFailure)
        assert "no name" in result.reason

    def test_empty_list_fails(self):
        assert isinstance(normalize("[]", self.REQUEST), NormalizationFailure)


class TestRecipeValidation:
    REQUEST = RecipeAnalysisRequest(url="https://example.com/r/ragu")

    def test_values_kept(self):
        record = normalize('{"category": "Ragu alla Bolognese", "details": "Slow-simmered"}', self.REQUEST).record
        assert record.category == "Ragu alla Bolognese"

    def test_empty_strings_allowed(self):
        """Both fields may legitimately come back empty."""
        result = normalize('{"category": "", "details": ""}', self.REQUEST)
        assert isinstance(result, Normalized)
        assert result.record.category == ""


class TestInventoryValidation:
    """Test inventory validation and the expiry rule."""

    def test_inferred_expiry_dropped(self):
        """Expiry dates are dropped when the text states none."""
        request = InventoryRequest(location_name="Fridge", text="some leftover chicken, half a bag of spinach")
        text = json.dumps([
            {"name": "Cooked Chicken", "quantity": None, "notes": "leftover", "estimated_expiry": "2025-01-05"},
            {"name": "Spinach", "quantity": 0.5, "unit": "bag", "estimated_expiry": "2025-01-07"},
        ])
        record = normalize(text, request).record
        assert record.location == "Fridge"
        assert all(item.estimated_expiry is None for item in record.items)
        assert record.items[1].quantity == 0.5

    def test_stated_expiry_kept(self):
        request = InventoryRequest(location_name="Fridge", text="milk expires 2025-01-02, cheese")
        text = json.dumps([
            {"name": "Milk", "category": "Dairy", "estimated_expiry": "2025-01-02"},
            {"name": "Cheese", "category": "Dairy", "estimated_expiry": None},
        ])
        record = normalize(text, request).record
        assert record.items[0].estimated_expiry == datetime.date(2025, 1, 2)
        assert record.items[1].estimated_expiry is None
        assert record.items[0].category == "Dairy"

    @pytest.mark.parametrize("text", ["1/2 gallon milk, eggs", "2 marinara jars, pasta", "12 marshmallows"])
    def test_guessed_expiry_dropped_for_quantity_text(self, text):
        request = InventoryRequest(location_name="Fridge", text=text)
        record = normalize('[{"name": "X", "estimated_expiry": "2030-01-01"}]', request).record
        assert record.items[0].estimated_expiry is None

    def test_nameless_item_rejects_all(self):
        request = InventoryRequest(location_name="Pantry", text="rice, beans")
        result = normalize('[{"name": "Rice"}, {"quantity": 2}]', request)
        assert isinstance(result, NormalizationFailure)


class TestMealSuggestionValidation:
    REQUEST = MealSuggestionsRequest(category="Pasta")

    def test_padded_to_three(self):
        """Short lists are padded with "<category> Option N"."""
        record = normalize('[{"title": "Cacio e Pepe", "description": "Peppery"}]', self.REQUEST).record
        assert [s.title for s in record.suggestions] == ["Cacio e Pepe", "Pasta Option 2", "Pasta Option 3"]

    def test_extra_dropped(self):
        text = json.dumps([{"title": f"Dish {i}"} for i in range(5)])
        record = normalize(text, self.REQUEST).record
        assert len(record.suggestions) == 3
        assert record.suggestions[2].title == "Dish 2"

    def test_missing_title_fails(self):
        assert isinstance(normalize('[{"description": "???"}]', self.REQUEST), NormalizationFailure)

    def test_empty_list_fails(self):
        """An empty reply goes to the fallback instead of being padded."""
        assert isinstance(normalize("[]", self.REQUEST), NormalizationFailure)
        assert isinstance(normalize('{"suggestions": []}', self.REQUEST), NormalizationFailure)


class TestPantryMealValidation:
    REQUEST = PantryMealsRequest(ingredients="pasta, mushrooms")

    def test_ingredient_defaults(self):
        """Missing id, amount and unit get safe defaults."""
        text = json.dumps([{
            "title": "Mushroom Pasta",
            "ingredients": [{"name": "pasta", "amount": 1, "unit": "lb"}, {"name": "mushrooms"}],
            "difficulty": "easy",
            "prepTime": "30 min",
            "servings": "4",
        }])
        meal = normalize(text, self.REQUEST).record.meals[0]
        assert meal.ingredients[1].id == "ing2"
        assert meal.ingredients[1].amount == "1"
        assert meal.ingredients[1].unit == "portion"
        assert meal.difficulty == "Easy"
        assert meal.prep_time == "30 min"
        assert meal.servings == 4

    def test_missing_ingredients_array_fails(self):
        result = normalize('[{"title": "Mystery Meal"}]', self.REQUEST)
        assert isinstance(result, NormalizationFailure)
        assert "ingredients array" in result.reason

    def test_nameless_ingredient_fails(self):
        text = '{"meals": [{"title": "Bowl", "ingredients": [{"amount": "1"}]}]}'
        assert isinstance(normalize(text, self.REQUEST), NormalizationFailure)
