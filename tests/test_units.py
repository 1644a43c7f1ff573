"""Tests for measurement unit helpers."""

import pytest

from orderproxy.application.units import (
    BUILTIN_MEASUREMENT_UNITS,
    best_display_unit,
    convert_square_units,
    convert_unit,
    format_unit,
    merge_measurement_units,
    parse_unit_from_text,
    price_per_unit,
)
from orderproxy.domain.exceptions import UnitConversionError
from orderproxy.domain.models import MeasurementUnit
from orderproxy.enums import UnitType

OUNCE = BUILTIN_MEASUREMENT_UNITS["OUNCE"]
POUND = BUILTIN_MEASUREMENT_UNITS["POUND"]
FLUID_OUNCE = BUILTIN_MEASUREMENT_UNITS["FLUID_OUNCE"]
EACH = BUILTIN_MEASUREMENT_UNITS["EACH"]


class TestFormatting:
    def test_common_units_use_abbreviation(self) -> None:
        assert format_unit(8, OUNCE) == "8 oz"
        assert format_unit(1.5, POUND) == "1.5 lb"

    def test_other_units_use_pluralised_name(self) -> None:
        assert format_unit(1, EACH) == "1 each"
        assert format_unit(3, EACH) == "3 eachs"

    def test_without_unit(self) -> None:
        assert format_unit(2.0) == "2"

    def test_price_per_unit(self) -> None:
        assert price_per_unit(10.0, 4, OUNCE) == "$2.50/oz"
        assert price_per_unit(10.0, 0, OUNCE) == ""
        assert price_per_unit(10.0, 4) == ""


class TestConversion:
    def test_pounds_to_ounces(self) -> None:
        assert convert_unit(2, POUND, OUNCE) == pytest.approx(32)

    def test_ounces_to_pounds(self) -> None:
        assert convert_unit(8, OUNCE, POUND) == pytest.approx(0.5)

    def test_generic_units_convert_one_to_one(self) -> None:
        assert convert_unit(3, EACH, EACH) == 3

    def test_mixed_families_raise(self) -> None:
        with pytest.raises(UnitConversionError, match="different unit types"):
            convert_unit(1, OUNCE, FLUID_OUNCE)

    def test_best_display_unit(self) -> None:
        assert best_display_unit(20, UnitType.WEIGHT) == POUND
        assert best_display_unit(4, UnitType.WEIGHT) == OUNCE
        assert best_display_unit(4, UnitType.VOLUME) == FLUID_OUNCE
        assert best_display_unit(1, UnitType.GENERIC) == EACH


class TestParsing:
    @pytest.mark.parametrize(
        "text, quantity, abbreviation",
        [
            ("Cold Brew 12 fl oz", 12.0, "fl oz"),
            ("Ribeye 16oz", 16.0, "oz"),
            ("Brisket by the pound - 1.5 lbs", 1.5, "lb"),
            ("Olive Oil 500 ml", 500.0, "ml"),
        ],
    )
    def test_parse_unit_from_text(
        self, text: str, quantity: float, abbreviation: str
    ) -> None:
        parsed = parse_unit_from_text(text)
        assert parsed is not None
        assert parsed[0] == quantity
        assert parsed[1].abbreviation == abbreviation

    def test_no_unit_in_text(self) -> None:
        assert parse_unit_from_text("Turkey Club") is None


class TestSquareUnits:
    def test_generic_and_custom_units(self) -> None:
        objects = [
            {
                "type": "MEASUREMENT_UNIT",
                "id": "MU1",
                "measurement_unit_data": {
                    "measurement_unit": {"generic_unit": "POUND"},
                    "precision": 2,
                },
            },
            {
                "type": "MEASUREMENT_UNIT",
                "id": "MU2",
                "measurement_unit_data": {
                    "measurement_unit": {
                        "custom_unit": {"name": "Slice", "abbreviation": "sl"}
                    }
                },
            },
            {"type": "ITEM", "id": "ignored"},
        ]
        units = convert_square_units(objects)
        assert [u.id for u in units] == ["MU1", "MU2"]
        assert units[0].abbreviation == "lb"
        assert units[0].type == UnitType.WEIGHT
        assert units[0].precision == 2
        assert units[1].name == "Slice"
        assert units[1].type == UnitType.GENERIC

    def test_merge_skips_duplicates(self) -> None:
        remote = [
            MeasurementUnit(id="x", name="Pound", abbreviation="LB"),
            MeasurementUnit(id="y", name="Slice", abbreviation="sl"),
        ]
        merged = merge_measurement_units(remote)
        assert len(merged) == len(BUILTIN_MEASUREMENT_UNITS) + 1
        assert merged[-1].id == "y"
