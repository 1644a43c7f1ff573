"""Tests for price arithmetic."""

import pytest

from orderproxy.application.pricing import (
    calculate_cart_item_price,
    calculate_cart_subtotal,
    calculate_item_price,
    calculate_total_with_discount,
    format_price,
    from_minor_units,
    options_price,
    to_minor_units,
)
from orderproxy.domain.models import CartItem, Product, ProductVariant, VariantOption


@pytest.fixture
def sandwich() -> Product:
    return Product(
        id="sandwich",
        name="Sandwich",
        price=8.5,
        variants=[
            ProductVariant(
                id="size",
                name="Size",
                options=[
                    VariantOption(name="Regular"),
                    VariantOption(name="Large", price=2.0),
                ],
            ),
            ProductVariant(
                id="extras",
                name="Extras",
                type="checklist",
                options=[
                    VariantOption(name="Bacon", price=1.5),
                    VariantOption(name="Pickles", price=0),
                ],
            ),
        ],
    )


class TestMinorUnits:
    @pytest.mark.parametrize(
        "amount, expected",
        [(12.345, 1235), (0.1, 10), (19.99, 1999), (1.005, 101), (0, 0), (7, 700)],
    )
    def test_rounds_half_up(self, amount: float, expected: int) -> None:
        assert to_minor_units(amount) == expected

    def test_from_minor_units(self) -> None:
        assert from_minor_units(1250) == 12.5


class TestItemPricing:
    def test_options_add_to_base_price(self, sandwich: Product) -> None:
        selected = {"size": "Large", "extras": ["Bacon", "Pickles"]}
        assert calculate_item_price(8.5, selected, sandwich.variants) == 12.0

    def test_unknown_variants_and_options_add_nothing(self, sandwich: Product) -> None:
        selected = {"size": "Huge", "nope": "x"}
        assert options_price(selected, sandwich.variants) == 0.0

    def test_no_selection(self, sandwich: Product) -> None:
        assert calculate_item_price(8.5, None, sandwich.variants) == 8.5

    def test_cart_item_price_multiplies_quantity(self, sandwich: Product) -> None:
        line = CartItem(
            id="line", product=sandwich, quantity=3, selected_variants={"size": "Large"}
        )
        assert calculate_cart_item_price(line) == pytest.approx(31.5)

    def test_subtotal(self, sandwich: Product) -> None:
        lines = [
            CartItem(id="a", product=sandwich, quantity=1),
            CartItem(
                id="b",
                product=sandwich,
                quantity=2,
                selected_variants={"extras": ["Bacon"]},
            ),
        ]
        assert calculate_cart_subtotal(lines) == pytest.approx(8.5 + 20.0)

    def test_empty_subtotal(self) -> None:
        assert calculate_cart_subtotal([]) == 0.0


class TestTotals:
    def test_total_with_percentage_discount(self, sandwich: Product) -> None:
        lines = [CartItem(id="a", product=sandwich, quantity=2)]
        totals = calculate_total_with_discount(lines, 10)
        assert totals["subtotal"] == 17.0
        assert totals["discount"] == pytest.approx(1.7)
        assert totals["tax"] == 0.0
        assert totals["total"] == pytest.approx(15.3)

    @pytest.mark.parametrize(
        "amount, expected",
        [(0, "$0.00"), (5, "$5.00"), (1234.5, "$1,234.50"), (-3.456, "-$3.46")],
    )
    def test_format_price(self, amount: float, expected: str) -> None:
        assert format_price(amount) == expected
