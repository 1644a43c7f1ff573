"""Upstream payload construction for orders, payment links and payments.

Nothing here performs I/O. The route layer resolves the pickup location and
hands everything to :func:`build_payment_link_request`, which fails fast with
:class:`ValidationError` before any payload is produced.
"""

import random
import string
import time
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from ..constants import (
    CENTRAL_DAYLIGHT_OFFSET,
    CENTRAL_STANDARD_OFFSET,
    DEFAULT_CURRENCY,
    DEFAULT_RECIPIENT_NAME,
    IDEMPOTENCY_SUFFIX_LENGTH,
    ITEMS_REQUIRED_MESSAGE,
    PICKUP_FULFILLMENT_NOTE,
    PICKUP_REQUIRED_MESSAGE,
)
from ..domain.exceptions import CheckoutError, ValidationError
from ..domain.models import AppliedDiscount, CheckoutItem, CheckoutRequest
from ..enums import DiscountType
from .pricing import to_minor_units

_BASE36 = string.digits + string.ascii_lowercase


def _random_suffix(length: int = IDEMPOTENCY_SUFFIX_LENGTH) -> str:
    return "".join(random.choice(_BASE36) for _ in range(length))


def new_idempotency_key(prefix: str = "checkout") -> str:
    """A key unique per attempt: nanosecond timestamp plus a random suffix."""
    return f"{prefix}-{time.time_ns()}-{_random_suffix()}"


def ensure_idempotency_key(body: Dict[str, Any], prefix: str = "order") -> Dict[str, Any]:
    """Return *body* with an ``idempotency_key``, keeping one the caller sent."""
    if body.get("idempotency_key"):
        return body
    return {**body, "idempotency_key": new_idempotency_key(prefix)}


def money(amount_cents: int, currency: str = DEFAULT_CURRENCY) -> Dict[str, Any]:
    return {"amount": amount_cents, "currency": currency}


def _nth_weekday(year: int, month: int, weekday: int, n: int) -> date:
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset + 7 * (n - 1))


def central_utc_offset(day: date) -> str:
    """UTC offset of America/Chicago on *day*.

    Uses the current US rule (second Sunday of March to first Sunday of
    November) instead of a timezone database, which is what a same-year
    January/July offset probe yields for this locale. Historical rule
    changes and other regions are not covered.
    """
    dst_start = _nth_weekday(day.year, 3, 6, 2)
    dst_end = _nth_weekday(day.year, 11, 6, 1)
    if dst_start <= day < dst_end:
        return CENTRAL_DAYLIGHT_OFFSET
    return CENTRAL_STANDARD_OFFSET


def build_pickup_at(pickup_date: str, pickup_time: str) -> str:
    """Combine a local ``YYYY-MM-DD`` date and ``HH:MM`` time with the Chicago offset."""
    try:
        day = date.fromisoformat(pickup_date)
        clock = datetime.strptime(pickup_time[:5], "%H:%M")
    except ValueError as e:
        raise ValidationError(
            "Invalid pickup date or time",
            field_errors=[{"field": "pickupTime", "message": str(e)}],
        ) from e
    return f"{day.isoformat()}T{clock.strftime('%H:%M')}:00{central_utc_offset(day)}"


def _item_name(item: CheckoutItem, index: int) -> str:
    if item.product is not None and item.product.name:
        return item.product.name
    return item.name or f"Item {index + 1}"


def build_line_item(
    item: CheckoutItem, index: int, currency: str = DEFAULT_CURRENCY
) -> Dict[str, Any]:
    """One order line item.

    Priced options become modifiers so the base price stays untouched;
    free options are listed in the note after any special instructions.
    """
    name = _item_name(item, index)
    base_price = item.product.price if item.product is not None else 0
    base_cents = to_minor_units(base_price)
    if base_cents <= 0:
        raise CheckoutError(f"Invalid base price for item: {name}")

    line: Dict[str, Any] = {
        "name": name,
        "quantity": str(item.quantity),
        "base_price_money": money(base_cents, currency),
    }

    modifiers: List[Dict[str, Any]] = []
    free_options: List[str] = []
    variants = item.product.variants if item.product is not None else []
    for variant_id, selected in (item.selected_variants or {}).items():
        variant = next((v for v in variants if v.id == variant_id), None)
        if variant is None:
            continue
        names = [selected] if isinstance(selected, str) else list(selected)
        for option_name in names:
            option = variant.find_option(option_name)
            if option is None:
                continue
            label = f"{variant.name}: {option.name}"
            if option.price and option.price > 0:
                modifiers.append(
                    {
                        "name": label,
                        "base_price_money": money(to_minor_units(option.price), currency),
                    }
                )
            else:
                free_options.append(label)

    if modifiers:
        line["modifiers"] = modifiers

    note_parts = [item.special_instructions] if item.special_instructions else []
    if free_options:
        note_parts.append(", ".join(free_options))
    if note_parts:
        line["note"] = " | ".join(note_parts)
    return line


def build_line_items(
    items: Iterable[CheckoutItem], currency: str = DEFAULT_CURRENCY
) -> List[Dict[str, Any]]:
    return [build_line_item(item, i, currency) for i, item in enumerate(items)]


def build_order_discounts(
    applied: Iterable[AppliedDiscount], currency: str = DEFAULT_CURRENCY
) -> List[Dict[str, Any]]:
    """Order-level discounts; each carries a percentage or an amount, never both."""
    discounts = []
    for discount in applied:
        entry: Dict[str, Any] = {"name": discount.name, "scope": "ORDER"}
        if discount.type == DiscountType.PERCENTAGE:
            entry["percentage"] = str(discount.value)
        else:
            entry["amount_money"] = money(to_minor_units(discount.applied_amount), currency)
        discounts.append(entry)
    return discounts


def validate_checkout(request: CheckoutRequest) -> None:
    """Reject a checkout missing its pickup slot, then one with no items."""
    if not request.pickup_date or not request.pickup_time:
        raise ValidationError(
            PICKUP_REQUIRED_MESSAGE,
            field_errors=[
                {"field": name, "message": "Required"}
                for name, value in (
                    ("pickupDate", request.pickup_date),
                    ("pickupTime", request.pickup_time),
                )
                if not value
            ],
        )
    if not request.items:
        raise ValidationError(
            ITEMS_REQUIRED_MESSAGE,
            field_errors=[{"field": "items", "message": "Required"}],
        )


def build_payment_link_request(
    request: CheckoutRequest,
    location_id: str,
    redirect_origin: str,
    support_email: str,
    currency: str = DEFAULT_CURRENCY,
    idempotency_key: Optional[str] = None,
) -> Dict[str, Any]:
    """Payload for the hosted payment-link endpoint.

    Raises:
        ValidationError: Pickup date/time or items are missing.
        CheckoutError: A line item has no positive base price.
    """
    validate_checkout(request)
    customer = request.customer_info

    order: Dict[str, Any] = {
        "location_id": location_id,
        "line_items": build_line_items(request.items, currency),
    }
    if request.applied_discounts:
        order["discounts"] = build_order_discounts(request.applied_discounts, currency)

    recipient_name = (customer.name if customer else None) or DEFAULT_RECIPIENT_NAME
    order["fulfillments"] = [
        {
            "type": "PICKUP",
            "state": "PROPOSED",
            "pickup_details": {
                "recipient": {"display_name": recipient_name},
                "pickup_at": build_pickup_at(request.pickup_date, request.pickup_time),
                "note": PICKUP_FULFILLMENT_NOTE,
            },
        }
    ]

    customer_email = customer.email if customer else None
    payload: Dict[str, Any] = {
        "idempotency_key": idempotency_key or new_idempotency_key("checkout"),
        "order": order,
        "checkout_options": {
            "ask_for_shipping_address": False,
            "merchant_support_email": customer_email or support_email,
            "redirect_url": f"{redirect_origin.rstrip('/')}/checkout/success",
        },
    }
    if customer_email:
        payload["pre_populated_data"] = {"buyer_email": customer_email}
    return payload


def build_payment_request(
    token: str,
    amount: Any,
    order_id: Optional[str] = None,
    currency: str = DEFAULT_CURRENCY,
) -> Dict[str, Any]:
    """Payload for the payments endpoint; *amount* is already in minor units."""
    payload: Dict[str, Any] = {
        "source_id": token,
        "amount_money": money(int(float(amount)), currency),
        "idempotency_key": f"{order_id or 'payment'}-{time.time_ns()}",
    }
    if order_id:
        payload["order_id"] = order_id
    return payload
