"""Discount mapping, eligibility checks and amount calculation.

Amounts are worked out in minor units and reported back in currency units,
matching how the cart stores ``applied_amount``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..constants import DISCOUNT_INVALID_MESSAGE
from ..domain.models import (
    AppliedDiscount,
    CartItem,
    Discount,
    DiscountConditions,
    DiscountValidationResult,
)
from ..enums import DiscountType
from .pricing import to_minor_units


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def discount_from_catalog(obj: Dict[str, Any]) -> Optional[Discount]:
    """Map an upstream ``DISCOUNT`` catalog object to a :class:`Discount`.

    A fixed percentage becomes a percentage discount, a fixed amount becomes
    a fixed-amount discount in minor units; anything else (variable
    discounts) is treated as automatic.
    """
    if obj.get("type") != "DISCOUNT" or not obj.get("discount_data"):
        return None
    data = obj["discount_data"]

    discount_type = DiscountType.AUTOMATIC
    value = 0.0
    if data.get("percentage"):
        discount_type = DiscountType.PERCENTAGE
        value = float(data["percentage"])
    elif data.get("amount_money"):
        discount_type = DiscountType.FIXED_AMOUNT
        value = float(data["amount_money"].get("amount", 0))

    return Discount(
        id=obj.get("id", ""),
        name=data.get("name") or "Unnamed Discount",
        description=data.get("description", ""),
        type=discount_type,
        value=value,
        is_active=not obj.get("is_deleted", False),
        automatic=discount_type == DiscountType.AUTOMATIC,
        scope=data.get("scope") or "ORDER",
        valid_from=_parse_timestamp(obj.get("created_at")),
    )


def discounts_from_catalog(objects: Iterable[Dict[str, Any]]) -> List[Discount]:
    return [d for d in (discount_from_catalog(obj) for obj in objects) if d]


def _item_category_ids(item: CartItem) -> List[str]:
    ids = list(item.product.category_ids)
    if item.product.category_id:
        ids.append(item.product.category_id)
    return ids


def check_conditions(
    conditions: DiscountConditions, items: Sequence[CartItem], now: datetime
) -> Optional[str]:
    """Return the reason *conditions* are not met, or ``None`` if they are."""
    if conditions.minimum_quantity:
        total_quantity = sum(item.quantity for item in items)
        if total_quantity < conditions.minimum_quantity:
            return f"Minimum {conditions.minimum_quantity} items required"

    if conditions.applicable_item_ids:
        if not any(item.product.id in conditions.applicable_item_ids for item in items):
            return "No eligible items in cart for this discount"

    if conditions.applicable_category_ids:
        eligible = set(conditions.applicable_category_ids)
        if not any(eligible.intersection(_item_category_ids(item)) for item in items):
            return "No eligible categories in cart for this discount"

    restrictions = conditions.time_restrictions
    if restrictions:
        # Sunday is day 0, as stored on the discount
        weekday = (now.weekday() + 1) % 7
        if restrictions.day_of_week and weekday not in restrictions.day_of_week:
            return "Discount not available on this day"
        if restrictions.start_time and restrictions.end_time:
            current = now.hour * 100 + now.minute
            start = int(restrictions.start_time.replace(":", ""))
            end = int(restrictions.end_time.replace(":", ""))
            if current < start or current > end:
                return "Discount not available at this time"
    return None


def discount_amount(discount: Discount, subtotal: float) -> float:
    """Amount *discount* takes off *subtotal*, in currency units."""
    subtotal_cents = to_minor_units(subtotal)
    amount_cents = 0
    if discount.type == DiscountType.PERCENTAGE:
        amount_cents = to_minor_units(subtotal_cents * discount.value / 100 / 100)
        if discount.max_discount_amount and amount_cents > discount.max_discount_amount:
            amount_cents = discount.max_discount_amount
    elif discount.type == DiscountType.FIXED_AMOUNT:
        amount_cents = min(int(discount.value), subtotal_cents)
    return amount_cents / 100


def evaluate_discount(
    discount: Discount,
    items: Sequence[CartItem],
    subtotal: float,
    now: Optional[datetime] = None,
) -> DiscountValidationResult:
    """Check one discount against the cart and compute what it is worth."""
    now = now or datetime.now(timezone.utc)
    if not discount.is_active:
        return DiscountValidationResult(is_valid=False, error=DISCOUNT_INVALID_MESSAGE)

    if discount.valid_from and _aware(now) < _aware(discount.valid_from):
        return DiscountValidationResult(
            is_valid=False, error="Discount code has expired"
        )
    if discount.valid_until and _aware(now) > _aware(discount.valid_until):
        return DiscountValidationResult(
            is_valid=False, error="Discount code has expired"
        )

    subtotal_cents = to_minor_units(subtotal)
    if discount.min_order_amount and subtotal_cents < discount.min_order_amount:
        return DiscountValidationResult(
            is_valid=False,
            error=f"Minimum order amount of ${discount.min_order_amount / 100:.2f} required",
        )

    if discount.conditions:
        reason = check_conditions(discount.conditions, items, now)
        if reason:
            return DiscountValidationResult(is_valid=False, error=reason)

    return DiscountValidationResult(
        is_valid=True,
        discount=discount,
        applied_amount=discount_amount(discount, subtotal),
    )


def _aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def find_discount(code: str, discounts: Iterable[Discount]) -> Optional[Discount]:
    """Match a customer-entered code, falling back to the discount name.

    Catalog discounts carry no coupon code, so their name serves as one.
    """
    wanted = code.strip().lower()
    candidates = [d for d in discounts if d.is_active]
    for discount in candidates:
        if discount.code and discount.code.lower() == wanted:
            return discount
    for discount in candidates:
        if discount.name.lower() == wanted:
            return discount
    return None


def validate_discount(
    code: str,
    discounts: Iterable[Discount],
    items: Sequence[CartItem],
    subtotal: float,
    now: Optional[datetime] = None,
) -> DiscountValidationResult:
    discount = find_discount(code, discounts)
    if discount is None:
        return DiscountValidationResult(is_valid=False, error=DISCOUNT_INVALID_MESSAGE)
    return evaluate_discount(discount, items, subtotal, now)


def to_applied(discount: Discount, applied_amount: float) -> AppliedDiscount:
    return AppliedDiscount(
        discount_id=discount.id,
        code=discount.code,
        name=discount.name,
        type=discount.type,
        value=discount.value,
        applied_amount=applied_amount,
        applied_to="order",
        discount=discount,
    )


def automatic_discounts(
    discounts: Iterable[Discount],
    items: Sequence[CartItem],
    subtotal: float,
    now: Optional[datetime] = None,
) -> List[AppliedDiscount]:
    """Every automatic discount the cart currently qualifies for.

    Pure in (discounts, items, subtotal, now). Sorted by amount, largest
    first; discounts worth nothing are left out.
    """
    applied: List[AppliedDiscount] = []
    for discount in discounts:
        if not discount.automatic or not discount.is_active:
            continue
        result = evaluate_discount(discount, items, subtotal, now)
        if result.is_valid and result.applied_amount > 0:
            applied.append(to_applied(discount, result.applied_amount))
    applied.sort(key=lambda d: d.applied_amount, reverse=True)
    return applied


def merge_discounts(
    current: Iterable[AppliedDiscount], automatic: Iterable[AppliedDiscount]
) -> List[AppliedDiscount]:
    """Keep manual entries, replace automatic ones, one entry per discount id."""
    merged: List[AppliedDiscount] = []
    seen: set[str] = set()
    for discount in [d for d in current if not d.is_automatic] + list(automatic):
        if discount.discount_id in seen:
            continue
        seen.add(discount.discount_id)
        merged.append(discount)
    return merged


def calculate_total_discount(applied: Iterable[AppliedDiscount]) -> float:
    return sum((d.applied_amount for d in applied), 0.0)
