"""Measurement unit formatting, conversion and parsing."""

import re
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple

from ..constants import (
    BUILTIN_UNITS,
    COMMON_UNIT_ABBREVIATIONS,
    VOLUME_TO_FLUID_OUNCES,
    WEIGHT_TO_OUNCES,
)
from ..domain.exceptions import UnitConversionError
from ..domain.models import MeasurementUnit
from ..enums import UnitType

BUILTIN_MEASUREMENT_UNITS: Dict[str, MeasurementUnit] = {
    key: MeasurementUnit(**spec) for key, spec in BUILTIN_UNITS.items()
}

_GENERIC_UNIT_ABBREVIATIONS: Dict[str, str] = {
    "OUNCE": "oz",
    "POUND": "lb",
    "FLUID_OUNCE": "fl oz",
    "GALLON": "gal",
    "LITER": "L",
    "MILLILITER": "mL",
    "GRAM": "g",
    "KILOGRAM": "kg",
    "INCH": "in",
    "FOOT": "ft",
    "YARD": "yd",
    "METER": "m",
    "CENTIMETER": "cm",
    "MILLIMETER": "mm",
}

_UNIT_FAMILIES: Dict[UnitType, Tuple[str, ...]] = {
    UnitType.WEIGHT: ("OUNCE", "POUND", "GRAM", "KILOGRAM"),
    UnitType.VOLUME: ("FLUID_OUNCE", "GALLON", "LITER", "MILLILITER"),
    UnitType.LENGTH: ("INCH", "FOOT", "YARD", "METER", "CENTIMETER", "MILLIMETER"),
}

_TEXT_PATTERNS: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"(\d+(?:\.\d+)?)\s*fl\s*oz(?:s|\b)"), "fl oz"),
    (re.compile(r"(\d+(?:\.\d+)?)\s*oz(?:s|\b)"), "oz"),
    (re.compile(r"(\d+(?:\.\d+)?)\s*(?:lb|lbs|pound|pounds)\b"), "lb"),
    (re.compile(r"(\d+(?:\.\d+)?)\s*(?:g|gram|grams)\b"), "g"),
    (re.compile(r"(\d+(?:\.\d+)?)\s*(?:kg|kilogram|kilograms)\b"), "kg"),
    (re.compile(r"(\d+(?:\.\d+)?)\s*(?:ml|milliliter|milliliters)\b"), "ml"),
    (re.compile(r"(\d+(?:\.\d+)?)\s*(?:l|liter|liters)\b"), "l"),
]


def _format_quantity(quantity: float) -> str:
    if float(quantity).is_integer():
        return str(int(quantity))
    return f"{quantity:.1f}"


def format_unit(quantity: float, unit: Optional[MeasurementUnit] = None) -> str:
    """Render a quantity with its unit, e.g. ``8 oz`` or ``2 eachs``.

    Common weight/volume units use their abbreviation; anything else uses
    the lowercased name, pluralised when the quantity is not exactly one.
    """
    if unit is None:
        return _format_quantity(quantity)
    if unit.abbreviation.lower() in COMMON_UNIT_ABBREVIATIONS:
        display = unit.abbreviation
    else:
        display = (unit.name if quantity == 1 else unit.name + "s").lower()
    return f"{_format_quantity(quantity)} {display}"


def _factor(unit: MeasurementUnit) -> float:
    abbreviation = unit.abbreviation.lower()
    if unit.type == UnitType.WEIGHT:
        return WEIGHT_TO_OUNCES.get(abbreviation, 1.0)
    if unit.type == UnitType.VOLUME:
        return VOLUME_TO_FLUID_OUNCES.get(abbreviation, 1.0)
    return 1.0


def convert_unit(
    quantity: float, from_unit: MeasurementUnit, to_unit: MeasurementUnit
) -> float:
    """Convert *quantity* between two units of the same family.

    Weights go through ounces and volumes through fluid ounces. Units the
    tables do not know convert one-to-one.

    Raises:
        UnitConversionError: If the units belong to different families.
    """
    if from_unit.type != to_unit.type:
        raise UnitConversionError(
            f"Cannot convert between different unit types: "
            f"{from_unit.type} to {to_unit.type}"
        )
    if from_unit.type not in (UnitType.WEIGHT, UnitType.VOLUME):
        return quantity
    return quantity * _factor(from_unit) / _factor(to_unit)


def best_display_unit(quantity: float, unit_type: UnitType) -> MeasurementUnit:
    """Pick the unit a quantity (in the family's base unit) reads best in."""
    if unit_type == UnitType.WEIGHT:
        if quantity >= 16:
            return BUILTIN_MEASUREMENT_UNITS["POUND"]
        return BUILTIN_MEASUREMENT_UNITS["OUNCE"]
    if unit_type == UnitType.VOLUME:
        return BUILTIN_MEASUREMENT_UNITS["FLUID_OUNCE"]
    for unit in BUILTIN_MEASUREMENT_UNITS.values():
        if unit.type == unit_type:
            return unit
    return BUILTIN_MEASUREMENT_UNITS["OUNCE"]


def _unit_by_abbreviation(abbreviation: str) -> MeasurementUnit:
    for unit in BUILTIN_MEASUREMENT_UNITS.values():
        if unit.abbreviation == abbreviation:
            return unit
    unit_type = (
        UnitType.WEIGHT if abbreviation in WEIGHT_TO_OUNCES else UnitType.VOLUME
    )
    return MeasurementUnit(
        id=abbreviation.replace(" ", "_"),
        name=abbreviation,
        abbreviation=abbreviation,
        type=unit_type,
    )


def parse_unit_from_text(text: str) -> Optional[Tuple[float, MeasurementUnit]]:
    """Find the first ``<number> <unit>`` mention in a product name or description."""
    lowered = text.lower()
    for pattern, abbreviation in _TEXT_PATTERNS:
        match = pattern.search(lowered)
        if match:
            return float(match.group(1)), _unit_by_abbreviation(abbreviation)
    return None


def price_per_unit(
    price: float, quantity: float, unit: Optional[MeasurementUnit] = None
) -> str:
    if unit is None or quantity <= 0:
        return ""
    return f"${price / quantity:.2f}/{unit.abbreviation}"


def _unit_type_for(generic_name: str) -> UnitType:
    upper = generic_name.upper()
    for unit_type, names in _UNIT_FAMILIES.items():
        if upper in names:
            return unit_type
    return UnitType.GENERIC


def convert_square_units(objects: Iterable[Dict[str, Any]]) -> List[MeasurementUnit]:
    """Map upstream ``MEASUREMENT_UNIT`` catalog objects to :class:`MeasurementUnit`."""
    units: List[MeasurementUnit] = []
    for obj in objects:
        if obj.get("type") != "MEASUREMENT_UNIT":
            continue
        unit_data = obj.get("measurement_unit_data") or {}
        measurement = unit_data.get("measurement_unit") or {}
        custom = measurement.get("custom_unit") or {}
        generic = measurement.get("generic_unit") or ""
        units.append(
            MeasurementUnit(
                id=obj.get("id", ""),
                name=custom.get("name") or generic or "Unknown Unit",
                abbreviation=custom.get("abbreviation")
                or _GENERIC_UNIT_ABBREVIATIONS.get(generic, generic),
                type=_unit_type_for(generic or custom.get("name", "")),
                precision=unit_data.get("precision") or 0,
            )
        )
    return units


def merge_measurement_units(
    remote: Iterable[MeasurementUnit],
    local: Optional[Iterable[MeasurementUnit]] = None,
) -> List[MeasurementUnit]:
    """Built-in units first, then remote units not already present.

    Duplicates are detected by abbreviation or name, case-insensitively.
    """
    merged = list(local if local is not None else BUILTIN_MEASUREMENT_UNITS.values())
    for unit in remote:
        duplicate = any(
            existing.abbreviation.lower() == unit.abbreviation.lower()
            or existing.name.lower() == unit.name.lower()
            for existing in merged
        )
        if not duplicate:
            merged.append(unit)
    return merged
