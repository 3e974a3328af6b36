"""mealkit: free-text to structured-record extraction.

Turns loosely formatted notes into typed records for a weekly meal planner
and activity tracker, using any LLM provider. When the model is slow,
unreachable or returns garbage, a rule-based fallback still produces a
usable record.
"""

__version__ = "0.1.0"

from mealkit.config import MealkitConfig, ModelProfile
from mealkit.errors import InvalidRequest
from mealkit.extract.extractor import aextract, extract
from mealkit.extract.llm_client import LLMClient
from mealkit.extract.models import Fallback, Ok, TaskKind
from mealkit.pipeline import (
    handle_request,
    parse_request,
    run_activity,
    run_ingredients,
    run_inventory,
    run_meal_suggestions,
    run_pantry_meals,
    run_recipe_analysis,
)

__all__ = [
    "__version__",
    "Fallback",
    "InvalidRequest",
    "LLMClient",
    "MealkitConfig",
    "ModelProfile",
    "Ok",
    "TaskKind",
    "aextract",
    "extract",
    "handle_request",
    "parse_request",
    "run_activity",
    "run_ingredients",
    "run_inventory",
    "run_meal_suggestions",
    "run_pantry_meals",
    "run_recipe_analysis",
]
