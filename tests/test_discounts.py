"""Tests for discount mapping, eligibility and merging."""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from orderproxy.application.discounts import (
    automatic_discounts,
    calculate_total_discount,
    check_conditions,
    discount_amount,
    discount_from_catalog,
    discounts_from_catalog,
    evaluate_discount,
    find_discount,
    merge_discounts,
    to_applied,
    validate_discount,
)
from orderproxy.domain.models import (
    CartItem,
    Discount,
    DiscountConditions,
    Product,
    TimeRestrictions,
)
from orderproxy.enums import DiscountType

# 2024-01-10 is a Wednesday
WEDNESDAY_NOON = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


def make_discount(**overrides: Any) -> Discount:
    fields: dict = {
        "id": "D1",
        "name": "Ten Off",
        "type": DiscountType.PERCENTAGE,
        "value": 10,
    }
    fields.update(overrides)
    return Discount(**fields)


def cart_line(product_id: str = "p1", quantity: int = 1, **product: Any) -> CartItem:
    return CartItem(
        id=f"line-{product_id}",
        product=Product(id=product_id, name=product_id, price=10.0, **product),
        quantity=quantity,
    )


class TestCatalogMapping:
    def test_percentage_discount(self) -> None:
        discount = discount_from_catalog(
            {
                "type": "DISCOUNT",
                "id": "D1",
                "discount_data": {"name": "TENOFF", "percentage": "10.0"},
            }
        )
        assert discount is not None
        assert discount.type == DiscountType.PERCENTAGE
        assert discount.value == 10.0
        assert discount.automatic is False

    def test_fixed_amount_discount_in_cents(self) -> None:
        discount = discount_from_catalog(
            {
                "type": "DISCOUNT",
                "id": "D2",
                "discount_data": {
                    "name": "FIVE",
                    "amount_money": {"amount": 500, "currency": "USD"},
                },
            }
        )
        assert discount is not None
        assert discount.type == DiscountType.FIXED_AMOUNT
        assert discount.value == 500

    def test_variable_discount_is_automatic(self) -> None:
        discount = discount_from_catalog(
            {"type": "DISCOUNT", "id": "D3", "discount_data": {"name": "Staff"}}
        )
        assert discount is not None
        assert discount.type == DiscountType.AUTOMATIC
        assert discount.automatic is True

    def test_non_discounts_are_skipped(self) -> None:
        objects = [
            {"type": "ITEM", "id": "I1"},
            {"type": "DISCOUNT", "id": "D4"},
            {"type": "DISCOUNT", "id": "D5", "discount_data": {"name": "X", "percentage": "5"}},
        ]
        assert [d.id for d in discounts_from_catalog(objects)] == ["D5"]

    def test_deleted_discount_is_inactive(self) -> None:
        discount = discount_from_catalog(
            {
                "type": "DISCOUNT",
                "id": "D6",
                "is_deleted": True,
                "discount_data": {"name": "Old", "percentage": "5"},
            }
        )
        assert discount is not None
        assert discount.is_active is False


class TestAmounts:
    def test_percentage(self) -> None:
        assert discount_amount(make_discount(), 25.0) == 2.5

    def test_percentage_capped(self) -> None:
        capped = make_discount(value=50, max_discount_amount=200)
        assert discount_amount(capped, 25.0) == 2.0

    def test_fixed_amount_capped_by_subtotal(self) -> None:
        fixed = make_discount(type=DiscountType.FIXED_AMOUNT, value=500)
        assert discount_amount(fixed, 3.0) == 3.0
        assert discount_amount(fixed, 30.0) == 5.0

    def test_variable_discount_is_worth_nothing(self) -> None:
        variable = make_discount(type=DiscountType.AUTOMATIC, value=0)
        assert discount_amount(variable, 30.0) == 0.0


class TestEvaluation:
    def test_valid_discount(self) -> None:
        result = evaluate_discount(make_discount(), [cart_line()], 25.0, WEDNESDAY_NOON)
        assert result.is_valid
        assert result.applied_amount == 2.5

    def test_inactive_discount(self) -> None:
        result = evaluate_discount(make_discount(is_active=False), [], 25.0)
        assert not result.is_valid
        assert result.error == "Invalid discount code"

    def test_outside_validity_window(self) -> None:
        future = make_discount(valid_from=WEDNESDAY_NOON + timedelta(days=1))
        past = make_discount(valid_until=WEDNESDAY_NOON - timedelta(days=1))
        for discount in (future, past):
            result = evaluate_discount(discount, [], 25.0, WEDNESDAY_NOON)
            assert result.error == "Discount code has expired"

    def test_naive_and_aware_times_compare(self) -> None:
        discount = make_discount(valid_until=datetime(2030, 1, 1))
        assert evaluate_discount(discount, [], 25.0, WEDNESDAY_NOON).is_valid

    def test_minimum_order(self) -> None:
        result = evaluate_discount(
            make_discount(min_order_amount=3000), [], 25.0, WEDNESDAY_NOON
        )
        assert result.error == "Minimum order amount of $30.00 required"


class TestConditions:
    def test_minimum_quantity(self) -> None:
        conditions = DiscountConditions(minimum_quantity=3)
        assert (
            check_conditions(conditions, [cart_line(quantity=2)], WEDNESDAY_NOON)
            == "Minimum 3 items required"
        )
        assert check_conditions(conditions, [cart_line(quantity=3)], WEDNESDAY_NOON) is None

    def test_applicable_items(self) -> None:
        conditions = DiscountConditions(applicable_item_ids=["p2"])
        assert (
            check_conditions(conditions, [cart_line("p1")], WEDNESDAY_NOON)
            == "No eligible items in cart for this discount"
        )
        assert check_conditions(conditions, [cart_line("p2")], WEDNESDAY_NOON) is None

    def test_applicable_categories_include_legacy_id(self) -> None:
        conditions = DiscountConditions(applicable_category_ids=["deli"])
        assert (
            check_conditions(conditions, [cart_line(category_ids=["bakery"])], WEDNESDAY_NOON)
            == "No eligible categories in cart for this discount"
        )
        assert check_conditions(conditions, [cart_line(category_id="deli")], WEDNESDAY_NOON) is None

    def test_day_restriction_counts_sunday_as_zero(self) -> None:
        weekdays_only = DiscountConditions(
            time_restrictions=TimeRestrictions(day_of_week=[1, 2, 3, 4, 5])
        )
        sunday = datetime(2024, 1, 7, 12, 0)
        assert (
            check_conditions(weekdays_only, [], sunday)
            == "Discount not available on this day"
        )
        assert check_conditions(weekdays_only, [], WEDNESDAY_NOON) is None

    def test_time_window(self) -> None:
        lunch = DiscountConditions(
            time_restrictions=TimeRestrictions(start_time="11:00", end_time="14:00")
        )
        assert check_conditions(lunch, [], WEDNESDAY_NOON) is None
        assert (
            check_conditions(lunch, [], WEDNESDAY_NOON.replace(hour=15, minute=30))
            == "Discount not available at this time"
        )


class TestLookup:
    def test_matches_code_case_insensitively(self) -> None:
        discounts = [make_discount(code="SAVE10")]
        assert find_discount("  save10 ", discounts) is discounts[0]

    def test_falls_back_to_name(self) -> None:
        discounts = [make_discount(name="TENOFF")]
        assert find_discount("tenoff", discounts) is discounts[0]

    def test_code_match_wins_over_name(self) -> None:
        by_name = make_discount(id="A", name="SAVE10")
        by_code = make_discount(id="B", name="Other", code="save10")
        assert find_discount("SAVE10", [by_name, by_code]) is by_code

    def test_inactive_discounts_never_match(self) -> None:
        assert find_discount("x", [make_discount(code="x", is_active=False)]) is None

    def test_validate_unknown_code(self) -> None:
        result = validate_discount("nope", [make_discount()], [], 10.0)
        assert not result.is_valid
        assert result.error == "Invalid discount code"

    def test_validate_known_code(self) -> None:
        result = validate_discount(
            "ten off", [make_discount()], [cart_line()], 40.0, WEDNESDAY_NOON
        )
        assert result.is_valid
        assert result.applied_amount == 4.0


class TestAutomaticDiscounts:
    def test_only_automatic_with_value_sorted_descending(self) -> None:
        discounts = [
            make_discount(id="small", automatic=True, value=5),
            make_discount(id="manual", value=50),
            make_discount(id="big", automatic=True, value=20),
            make_discount(id="zero", type=DiscountType.AUTOMATIC, automatic=True, value=0),
        ]
        applied = automatic_discounts(discounts, [cart_line()], 100.0, WEDNESDAY_NOON)
        assert [d.discount_id for d in applied] == ["big", "small"]
        assert [d.applied_amount for d in applied] == [20.0, 5.0]

    def test_merge_keeps_manual_and_replaces_automatic(self) -> None:
        manual = to_applied(make_discount(id="M", code="SAVE"), 2.0)
        stale_auto = to_applied(make_discount(id="A1", automatic=True), 1.0)
        fresh_auto = to_applied(make_discount(id="A2", automatic=True), 3.0)
        merged = merge_discounts([manual, stale_auto], [fresh_auto])
        assert [d.discount_id for d in merged] == ["M", "A2"]

    def test_merge_dedupes_by_discount_id(self) -> None:
        manual = to_applied(make_discount(id="X"), 2.0)
        auto_same_id = to_applied(make_discount(id="X", automatic=True), 3.0)
        merged = merge_discounts([manual], [auto_same_id])
        assert len(merged) == 1
        assert merged[0].applied_amount == 2.0

    def test_merge_is_idempotent(self) -> None:
        manual = to_applied(make_discount(id="M"), 2.0)
        auto = to_applied(make_discount(id="A", automatic=True), 3.0)
        once = merge_discounts([manual], [auto])
        assert merge_discounts(once, [auto]) == once

    def test_total_discount(self) -> None:
        applied = [
            to_applied(make_discount(id="a"), 1.25),
            to_applied(make_discount(id="b"), 2.5),
        ]
        assert calculate_total_discount(applied) == pytest.approx(3.75)
        assert calculate_total_discount([]) == 0.0
