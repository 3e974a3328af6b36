"""Serving-size arithmetic shared by prompt examples and fallback templates.

Quantities are authored for BASE_SERVINGS and scaled linearly. Keeping a
single scaling function means a prompt's worked example and the offline
template for the same meal always agree.
"""

import math
import re
from fractions import Fraction

BASE_SERVINGS = 4

# Default head count per meal target
TARGET_SERVINGS = {
    "main": 4,
    "kids": 2,
}

_MIXED_FRACTION_RE = re.compile(r"^\s*(\d+)\s+(\d+)\s*/\s*(\d+)\s*$")
_FRACTION_RE = re.compile(r"^\s*(\d+)\s*/\s*(\d+)\s*$")

# Floats from model output are snapped to the nearest fraction with this denominator
_MAX_DENOMINATOR = 10_000
_MAX_DECIMAL_PLACES = 8


def serving_count(target: str, servings: int | None = None) -> int:
    """Servings for a meal target, with an explicit override winning."""
    if servings:
        return servings
    return TARGET_SERVINGS.get(target, BASE_SERVINGS)


def parse_quantity(amount: float | int | str) -> Fraction | None:
    """Parse "2", "0.5", "1/2" or "1 1/2" exactly. None if unparseable."""
    if isinstance(amount, bool):
        return None
    if isinstance(amount, Fraction):
        return amount
    if isinstance(amount, int):
        return Fraction(amount)
    if isinstance(amount, float):
        if not math.isfinite(amount):
            return None
        return Fraction(amount).limit_denominator(_MAX_DENOMINATOR)
    text = str(amount).strip()
    if not text:
        return None
    m = _MIXED_FRACTION_RE.match(text)
    if m:
        whole, num, den = (int(g) for g in m.groups())
        return whole + Fraction(num, den) if den else None
    m = _FRACTION_RE.match(text)
    if m:
        num, den = int(m.group(1)), int(m.group(2))
        return Fraction(num, den) if den else None
    try:
        return Fraction(text)
    except ValueError:
        return None


def parse_amount(amount: float | int | str) -> float | None:
    """Parse "2", "0.5", "1/2" or "1 1/2" into a float. None if unparseable."""
    value = parse_quantity(amount)
    return float(value) if value is not None else None


def _decimal_places(denominator: int) -> int | None:
    """Digits needed to write 1/denominator exactly, or None if it repeats."""
    for places in range(_MAX_DECIMAL_PLACES + 1):
        if 10**places % denominator == 0:
            return places
    return None


def format_amount(value: Fraction | float | int) -> str:
    """Render a quantity exactly.

    Terminating values are written as decimals (2 -> "2", 9/16 -> "0.5625");
    repeating ones as a mixed fraction (4/3 -> "1 1/3"), which parse_amount
    reads back unchanged.
    """
    quantity = parse_quantity(value)
    if quantity is None:
        return str(value)
    value = quantity
    if value.denominator == 1:
        return str(value.numerator)
    places = _decimal_places(value.denominator)
    if places is not None:
        scaled = value.numerator * 10**places // value.denominator
        sign = "-" if scaled < 0 else ""
        whole, frac = divmod(abs(scaled), 10**places)
        return f"{sign}{whole}.{frac:0{places}d}".rstrip("0")
    whole, rest = divmod(value.numerator, value.denominator)
    if whole == 0:
        return f"{rest}/{value.denominator}"
    return f"{whole} {rest}/{value.denominator}"


def scale_amount(amount: float | int | str, servings: int, base: int = BASE_SERVINGS) -> str:
    """Scale a per-``base`` quantity to ``servings`` people, exactly.

    Unparseable amounts (e.g. "to taste") are returned unchanged.
    """
    value = parse_quantity(amount)
    if value is None:
        return str(amount)
    return format_amount(value * servings / base)
