"""CLI interface for mealkit."""

import logging

import typer
from rich.console import Console
from rich.table import Table

from mealkit.config import MealkitConfig

app = typer.Typer(
    name="mealkit",
    help="Turn free-text notes into structured meal-planner and activity records",
    add_completion=True,
    rich_markup_mode="rich",
)

console = Console()

_OFFLINE_HELP = "Skip the model and use the rule-based fallback"
_PROFILE_HELP = "Model profile to use instead of the task default (see: mealkit profiles)"


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )
    # Suppress noisy libraries
    logging.getLogger("litellm").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load_config() -> MealkitConfig:
    try:
        return MealkitConfig()
    except ValueError as e:
        console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(1) from None


def _run(request, profile: str | None, offline: bool, verbose: bool) -> None:
    """Run one request and print its record as JSON."""
    from mealkit.errors import InvalidRequest
    from mealkit.extract.extractor import extract
    from mealkit.extract.llm_client import LLMClient
    from mealkit.extract.models import Fallback
    from mealkit.pipeline import result_body

    _setup_logging(verbose)
    config = _load_config()

    llm = None
    if not offline:
        try:
            llm = LLMClient.for_task(config, request.task, profile_name=profile)
        except ValueError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from None
        try:
            config.validate_api_keys(llm.model)
        except ValueError as e:
            console.print(f"[yellow]Warning:[/yellow] {e}")
        console.print(f"[cyan]Model:[/cyan] {llm.model}")

    try:
        result = extract(request, llm=llm, offline=offline)
    except InvalidRequest as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    console.print_json(data=result_body(result))
    if isinstance(result, Fallback):
        console.print(f"[yellow]Degraded:[/yellow] {result.reason}")
    if llm and llm.total_cost_usd:
        console.print(f"  Cost: ${llm.total_cost_usd:.4f}")


# ============================================================================
# Extraction Commands
# ============================================================================


@app.command()
def activity(
    text: str = typer.Argument(..., help="Free-text description of the activity"),
    url: str | None = typer.Option(None, help="Page the note came from"),
    profile: str | None = typer.Option(None, "--profile", "-p", help=_PROFILE_HELP),
    offline: bool = typer.Option(False, "--offline", help=_OFFLINE_HELP),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Extract an activity record from a note.

    With --url, the linked page is read (10 s limit) and given to the model
    as extra context; an unreadable page is skipped.
    """
    from mealkit.extract.models import ActivityRequest
    from mealkit.extract.page import attach_page

    request = ActivityRequest(text=text, url=url)
    if url and not offline:
        _setup_logging(verbose)
        request = attach_page(request)
        if request.page:
            console.print(f"[cyan]Read page:[/cyan] {request.page.title or request.page.url}")
    _run(request, profile, offline, verbose)


@app.command()
def ingredients(
    category: str = typer.Argument(..., help='Meal category, e.g. "Taco Tuesday"'),
    title: str = typer.Option("", help="Specific meal title"),
    details: str = typer.Option("", help="Extra notes about the meal"),
    kids: bool = typer.Option(False, "--kids", help="Kids meal (serves 2 by default)"),
    servings: int | None = typer.Option(None, min=1, help="Explicit number of servings"),
    profile: str | None = typer.Option(None, "--profile", "-p", help=_PROFILE_HELP),
    offline: bool = typer.Option(False, "--offline", help=_OFFLINE_HELP),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Generate a shopping list for a planned meal."""
    from mealkit.extract.models import IngredientsRequest

    request = IngredientsRequest(
        category=category,
        title=title,
        details=details,
        target="kids" if kids else "main",
        servings=servings,
    )
    _run(request, profile, offline, verbose)


@app.command()
def recipe(
    url: str = typer.Argument(..., help="Recipe page URL"),
    category: str = typer.Option("", "--category", help="Dish name already entered, to refine"),
    details: str = typer.Option("", "--details", help="Description already entered, to refine"),
    profile: str | None = typer.Option(None, "--profile", "-p", help=_PROFILE_HELP),
    offline: bool = typer.Option(False, "--offline", help=_OFFLINE_HELP),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Name and describe the dish behind a recipe URL."""
    from mealkit.extract.models import RecipeAnalysisRequest

    request = RecipeAnalysisRequest(url=url, existing_category=category, existing_details=details)
    _run(request, profile, offline, verbose)


@app.command()
def inventory(
    location: str = typer.Argument(..., help='Storage location, e.g. "Fridge"'),
    text: str = typer.Argument(..., help="What is in it, in your own words"),
    profile: str | None = typer.Option(None, "--profile", "-p", help=_PROFILE_HELP),
    offline: bool = typer.Option(False, "--offline", help=_OFFLINE_HELP),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Itemize the contents of a fridge, freezer or pantry."""
    from mealkit.extract.models import InventoryRequest

    _run(InventoryRequest(location_name=location, text=text), profile, offline, verbose)


@app.command()
def suggest(
    category: str = typer.Argument(..., help='Meal category, e.g. "Pasta"'),
    preferences: str = typer.Option("", help="Dietary needs or likes"),
    kids: bool = typer.Option(False, "--kids", help="Kid-friendly suggestions"),
    profile: str | None = typer.Option(None, "--profile", "-p", help=_PROFILE_HELP),
    offline: bool = typer.Option(False, "--offline", help=_OFFLINE_HELP),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Suggest three meals for a category."""
    from mealkit.extract.models import MealSuggestionsRequest

    request = MealSuggestionsRequest(category=category, preferences=preferences, kids=kids)
    _run(request, profile, offline, verbose)


@app.command(name="pantry-meals")
def pantry_meals(
    ingredients_text: str = typer.Argument(..., metavar="INGREDIENTS", help="What you have on hand"),
    location: str = typer.Option("", help="Where the ingredients are stored"),
    profile: str | None = typer.Option(None, "--profile", "-p", help=_PROFILE_HELP),
    offline: bool = typer.Option(False, "--offline", help=_OFFLINE_HELP),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Suggest recipes that use what is already in the kitchen."""
    from mealkit.extract.models import PantryMealsRequest

    _run(PantryMealsRequest(ingredients=ingredients_text, location=location), profile, offline, verbose)


# ============================================================================
# Info Commands
# ============================================================================


@app.command()
def profiles() -> None:
    """List model profiles and which tasks use them."""
    config = _load_config()

    table = Table(title="Model Profiles", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="green")
    table.add_column("Model")
    table.add_column("Max tokens", justify="right")
    table.add_column("Temperature", justify="right")
    table.add_column("Timeout", justify="right")
    table.add_column("Tasks")

    for name, profile in sorted(config.profiles.items()):
        tasks = [task.value for task, profile_name in config.task_profiles.items() if profile_name == name]
        key_note = "" if config.has_api_key(profile.model) else " [yellow](no key)[/yellow]"
        table.add_row(
            name,
            f"{profile.model}{key_note}",
            str(profile.max_tokens),
            f"{profile.temperature:.1f}",
            f"{profile.timeout_ms} ms",
            "\n".join(tasks) or "-",
        )

    console.print(table)
    console.print()
    console.print("Override: [cyan]MEALKIT_PROFILES__FAST__TIMEOUT_MS=5000[/cyan] or a [cyan]mealkit.yaml[/cyan] file")
