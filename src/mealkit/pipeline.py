"""Library-usable pipeline functions.

Each ``run_*`` function corresponds to a CLI command but takes explicit
parameters instead of reading CLI args. ``handle_request`` is the
framework-neutral endpoint: hand it a decoded JSON body and the raw
Authorization header from whatever web framework you host it in.
"""

import logging
from typing import Any, Protocol

from pydantic import BaseModel, TypeAdapter, ValidationError

from mealkit.config import MealkitConfig
from mealkit.errors import InvalidRequest
from mealkit.extract.extractor import aextract, extract, reports_success
from mealkit.extract.llm_client import LLMClient
from mealkit.extract.page import attach_page
from mealkit.extract.models import (
    ActivityRequest,
    ExtractionRequest,
    Fallback,
    IngredientsRequest,
    InventoryRequest,
    MealSuggestionsRequest,
    Ok,
    PantryMealsRequest,
    RecipeAnalysisRequest,
)

logger = logging.getLogger(__name__)

_REQUEST_ADAPTER = TypeAdapter(ExtractionRequest)


def _invalid(error: ValidationError) -> InvalidRequest:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return InvalidRequest(f"Invalid request ({location}): {first['msg']}")


def _build(request_cls, **fields):
    """Construct a request model, reporting bad fields as InvalidRequest."""
    try:
        return request_cls(**fields)
    except ValidationError as e:
        raise _invalid(e) from e


def run_activity(
    text: str,
    url: str | None = None,
    llm: LLMClient | None = None,
    config: MealkitConfig | None = None,
    offline: bool = False,
    fetch_url: bool = True,
) -> Ok | Fallback:
    """Turn a free-text note into an activity record.

    When ``url`` is given and the run is not offline, the linked page is
    fetched and its text passed to the model as extra context. A page that
    cannot be read is skipped.
    """
    request = _build(ActivityRequest, text=text, url=url)
    if url and fetch_url and not offline:
        request = attach_page(request)
    return extract(request, llm=llm, config=config, offline=offline)


def run_ingredients(
    category: str,
    title: str = "",
    details: str = "",
    target: str = "main",
    servings: int | None = None,
    llm: LLMClient | None = None,
    config: MealkitConfig | None = None,
    offline: bool = False,
) -> Ok | Fallback:
    """Build a shopping list for one planned meal.

    Args:
        category: Meal-plan category, e.g. "Taco Tuesday"
        target: "main" (serves 4) or "kids" (serves 2)
        servings: Explicit head count, overriding the target default
    """
    request = _build(
        IngredientsRequest,
        category=category, title=title, details=details, target=target, servings=servings
    )
    return extract(request, llm=llm, config=config, offline=offline)


def run_recipe_analysis(
    url: str,
    existing_category: str = "",
    existing_details: str = "",
    llm: LLMClient | None = None,
    config: MealkitConfig | None = None,
    offline: bool = False,
) -> Ok | Fallback:
    """Name and describe the dish behind a recipe URL."""
    request = _build(
        RecipeAnalysisRequest,
        url=url, existing_category=existing_category, existing_details=existing_details
    )
    return extract(request, llm=llm, config=config, offline=offline)


def run_inventory(
    location_name: str,
    text: str,
    llm: LLMClient | None = None,
    config: MealkitConfig | None = None,
    offline: bool = False,
) -> Ok | Fallback:
    """Itemize a description of one storage location (fridge, pantry, ...)."""
    request = _build(InventoryRequest, location_name=location_name, text=text)
    return extract(request, llm=llm, config=config, offline=offline)


def run_meal_suggestions(
    category: str,
    preferences: str = "",
    kids: bool = False,
    llm: LLMClient | None = None,
    config: MealkitConfig | None = None,
    offline: bool = False,
) -> Ok | Fallback:
    """Three meal ideas for a category."""
    request = _build(MealSuggestionsRequest, category=category, preferences=preferences, kids=kids)
    return extract(request, llm=llm, config=config, offline=offline)


def run_pantry_meals(
    ingredients: str,
    location: str = "",
    llm: LLMClient | None = None,
    config: MealkitConfig | None = None,
    offline: bool = False,
) -> Ok | Fallback:
    """Recipe ideas that use what is already on hand."""
    request = _build(PantryMealsRequest, ingredients=ingredients, location=location)
    return extract(request, llm=llm, config=config, offline=offline)


# ============================================================================
# Endpoint
# ============================================================================


class IdentityVerifier(Protocol):
    """Resolves a bearer token to a user id, or None if it is not valid."""

    def verify_token(self, token: str) -> str | None: ...


class EndpointResponse(BaseModel):
    status_code: int
    body: dict[str, Any]


def parse_request(body: Any):
    """Validate a decoded JSON body into an extraction request.

    Raises:
        InvalidRequest: The body is not an object, names no known task, or has bad field types
    """
    if not isinstance(body, dict):
        raise InvalidRequest("Request body must be a JSON object")
    try:
        return _REQUEST_ADAPTER.validate_python(body)
    except ValidationError as e:
        raise _invalid(e) from e


def result_body(result: Ok | Fallback) -> dict[str, Any]:
    """Flatten a result into the response body the endpoint returns."""
    return {
        "success": reports_success(result),
        "task": result.task.value,
        "degraded": isinstance(result, Fallback),
        **result.record.model_dump(mode="json", exclude_none=True),
    }


def _error(status_code: int, message: str) -> EndpointResponse:
    return EndpointResponse(status_code=status_code, body={"success": False, "error": message})


async def handle_request(
    body: Any,
    authorization: str | None,
    *,
    identity: IdentityVerifier,
    llm: LLMClient | None = None,
    config: MealkitConfig | None = None,
) -> EndpointResponse:
    """Authenticate, validate and run one extraction request.

    Auth is checked first, so an unauthenticated caller learns nothing about
    the request shape. Only invalid requests produce a 400; model failures
    come back as 200 with ``degraded`` set.
    """
    if not authorization or not authorization.startswith("Bearer "):
        return _error(401, "Missing or invalid authorization header")
    token = authorization.removeprefix("Bearer ").strip()
    user_id = identity.verify_token(token) if token else None
    if user_id is None:
        return _error(401, "Invalid or expired token")

    try:
        request = parse_request(body)
        result = await aextract(request, llm=llm, config=config)
    except InvalidRequest as e:
        logger.info(f"Rejected request from {user_id}: {e}")
        return _error(400, str(e))

    return EndpointResponse(status_code=200, body=result_body(result))
