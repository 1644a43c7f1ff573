"""Price arithmetic for carts and checkout payloads.

Prices on the storefront side are decimal currency units (dollars). The
commerce API wants integer minor units (cents); :func:`to_minor_units` is the
only place that conversion happens.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, Optional, Sequence, Union

from ..domain.models import CartItem, ProductVariant, SelectedVariants

Number = Union[int, float, Decimal]


def to_minor_units(amount: Number) -> int:
    """Convert a currency amount to cents, rounding half up.

    The decimal value is rounded, not its binary float approximation, so
    ``12.345`` becomes ``1235`` rather than truncating to ``1234``.
    """
    cents = Decimal(str(amount)) * 100
    return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> float:
    return amount / 100


def _selected_names(selected: Union[str, Sequence[str]]) -> Sequence[str]:
    if isinstance(selected, str):
        return [selected]
    return list(selected)


def options_price(
    selected_variants: Optional[SelectedVariants],
    product_variants: Optional[Sequence[ProductVariant]],
) -> float:
    """Sum of the add-on prices of every selected option.

    Unknown variant ids, unknown option names and unpriced options add
    nothing.
    """
    if not selected_variants or not product_variants:
        return 0.0
    by_id = {variant.id: variant for variant in product_variants}
    total = 0.0
    for variant_id, selected in selected_variants.items():
        variant = by_id.get(variant_id)
        if variant is None:
            continue
        for name in _selected_names(selected):
            option = variant.find_option(name)
            if option is not None and option.price is not None:
                total += option.price
    return total


def calculate_item_price(
    base_price: float,
    selected_variants: Optional[SelectedVariants] = None,
    product_variants: Optional[Sequence[ProductVariant]] = None,
) -> float:
    return base_price + options_price(selected_variants, product_variants)


def calculate_cart_item_price(item: CartItem) -> float:
    unit_price = calculate_item_price(
        item.product.price, item.selected_variants, item.product.variants
    )
    return unit_price * item.quantity


def calculate_cart_subtotal(items: Iterable[CartItem]) -> float:
    return sum((calculate_cart_item_price(item) for item in items), 0.0)


def calculate_tax(subtotal: float) -> float:
    # Tax is computed upstream at checkout from the location's configuration
    return 0.0


def format_price(amount: Number) -> str:
    """Format an amount as US dollars, e.g. ``$1,234.50``."""
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def calculate_discount(subtotal: float, percentage: float) -> float:
    return subtotal * (percentage / 100)


def calculate_total_with_discount(
    items: Iterable[CartItem], discount_percentage: float = 0
) -> Dict[str, float]:
    subtotal = calculate_cart_subtotal(items)
    discount = calculate_discount(subtotal, discount_percentage)
    tax = calculate_tax(subtotal - discount)
    return {
        "subtotal": subtotal,
        "discount": discount,
        "tax": tax,
        "total": max(0.0, subtotal - discount + tax),
    }
