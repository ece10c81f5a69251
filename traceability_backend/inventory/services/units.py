# inventory/services/units.py

"""
UNIT CONVERSION SERVICE

Purpose:
- Convert quantities between compatible units so batches recorded in
  different units can be compared (mass balance, consumption, recalls).
- Normalize externally-sourced quantities and dates before use.

Rules:
- Fixed compatibility table: mass (g, kg), volume (ml, L), count (pcs).
- Conversion across dimensions raises IncompatibleUnitsError. Never coerce.
- Decimal arithmetic only. No side effects.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.utils.dateparse import parse_date

from inventory.services.exceptions import IncompatibleUnitsError


MASS = "mass"
VOLUME = "volume"
COUNT = "count"

# symbol -> (dimension, factor to the dimension's base unit)
UNIT_TABLE: dict[str, tuple[str, Decimal]] = {
    "g": (MASS, Decimal("1")),
    "kg": (MASS, Decimal("1000")),
    "ml": (VOLUME, Decimal("1")),
    "L": (VOLUME, Decimal("1000")),
    "pcs": (COUNT, Decimal("1")),
}

UNIT_ALIASES = {
    "l": "L",
    "ltr": "L",
    "litre": "L",
    "liter": "L",
    "gram": "g",
    "grams": "g",
    "kilogram": "kg",
    "kilograms": "kg",
    "kgs": "kg",
    "pc": "pcs",
    "piece": "pcs",
    "pieces": "pcs",
    "each": "pcs",
}

UNIT_CHOICES = [(symbol, symbol) for symbol in UNIT_TABLE]

QUANTITY_PLACES = Decimal("0.001")


@dataclass(frozen=True)
class ConvertedQuantity:
    quantity: Decimal
    unit: str


def canonical_unit(unit: str) -> str:
    symbol = (unit or "").strip()
    if symbol in UNIT_TABLE:
        return symbol
    aliased = UNIT_ALIASES.get(symbol.lower())
    if aliased:
        return aliased
    if symbol.lower() in UNIT_TABLE:
        return symbol.lower()
    raise IncompatibleUnitsError(f"Unknown unit '{unit}'")


def dimension_of(unit: str) -> str:
    return UNIT_TABLE[canonical_unit(unit)][0]


def are_compatible(unit_a: str, unit_b: str) -> bool:
    try:
        return dimension_of(unit_a) == dimension_of(unit_b)
    except IncompatibleUnitsError:
        return False


def normalize_quantity(value, *, field_name: str = "quantity", allow_zero: bool = True) -> Decimal:
    """
    Quantity normalizer for anything arriving from outside the core.

    Rejects booleans, non-numeric strings, NaN/Infinity and negatives.
    """
    if value is None or value == "":
        raise ValidationError(f"{field_name} is required")

    if isinstance(value, bool):
        # bool is an int subclass in Python
        raise ValidationError(f"{field_name} must be a number")

    try:
        qty = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValidationError(f"{field_name} must be a number") from exc

    if not qty.is_finite():
        raise ValidationError(f"{field_name} must be a finite number")

    if qty < 0:
        raise ValidationError(f"{field_name} cannot be negative")

    if not allow_zero and qty == 0:
        raise ValidationError(f"{field_name} must be greater than zero")

    return qty


def quantize_quantity(value: Decimal) -> Decimal:
    """Round to the storage precision of quantity columns (3 dp)."""
    return Decimal(value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def normalize_allergens(values) -> list[str]:
    return sorted({str(a).strip().lower() for a in (values or []) if str(a).strip()})


def parse_iso_date(value, *, field_name: str = "date") -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        parsed = parse_date(str(value).strip())
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{field_name} must be a valid date (YYYY-MM-DD)")
    return parsed


def convert(quantity, from_unit: str, to_unit: str) -> ConvertedQuantity:
    """
    Convert `quantity` from `from_unit` into `to_unit`.

    Raises IncompatibleUnitsError when the units belong to different
    dimension classes or are not in the table.
    """
    qty = normalize_quantity(quantity)
    source = canonical_unit(from_unit)
    target = canonical_unit(to_unit)

    source_dim, source_factor = UNIT_TABLE[source]
    target_dim, target_factor = UNIT_TABLE[target]

    if source_dim != target_dim:
        raise IncompatibleUnitsError(
            f"Cannot convert between different dimensions: {source} ({source_dim}) -> {target} ({target_dim})"
        )

    if source == target:
        return ConvertedQuantity(quantity=qty, unit=target)

    result = (qty * source_factor) / target_factor
    return ConvertedQuantity(quantity=result, unit=target)
