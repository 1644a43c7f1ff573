from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..enums import DiscountType, SelectionType, UnitType

SelectedVariants = Dict[str, Union[str, List[str]]]


class StorefrontModel(BaseModel):
    """Base for models exchanged with the storefront.

    The storefront speaks camelCase JSON; Python code uses snake_case names.
    Both spellings are accepted on input, ``to_wire()`` emits camelCase.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class MeasurementUnit(StorefrontModel):
    """A unit a product or option is sold by.

    Attributes:
        id: Stable identifier (``oz``, ``lb``, or an upstream object id).
        name: Display name, e.g. ``Fluid Ounce``.
        abbreviation: Short form used for formatting, e.g. ``fl oz``.
        type: Unit family; conversions only work within one family.
        precision: Decimal places the unit is normally shown with.
    """

    id: str
    name: str
    abbreviation: str
    type: UnitType = UnitType.GENERIC
    precision: Optional[int] = None


class VariantOption(StorefrontModel):
    """One choice inside a product variant.

    ``price`` is an add-on amount in currency units; ``None`` and ``0`` both
    mean the option is free.
    """

    id: Optional[str] = None
    name: str
    price: Optional[float] = None
    measurement_unit: Optional[MeasurementUnit] = None
    unit_quantity: Optional[float] = None


class ProductVariant(StorefrontModel):
    id: str
    name: str
    type: Literal["dropdown", "checklist"] = "dropdown"
    options: List[VariantOption] = Field(default_factory=list)
    selection_type: Optional[SelectionType] = None

    def find_option(self, name: str) -> Optional[VariantOption]:
        for option in self.options:
            if option.name == name:
                return option
        return None


class Product(StorefrontModel):
    """Product snapshot carried inside a cart item.

    Attributes:
        price: Base price in currency units (dollars), before options.
        category_id: Legacy single-category reference.
        category_ids: Current-style category references.
    """

    id: str
    name: str
    description: str = ""
    price: float = 0.0
    category_id: Optional[str] = None
    category_ids: List[str] = Field(default_factory=list)
    variants: List[ProductVariant] = Field(default_factory=list)
    measurement_unit: Optional[MeasurementUnit] = None
    unit_quantity: Optional[float] = None

    def find_variant(self, variant_id: str) -> Optional[ProductVariant]:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None


class CartItem(StorefrontModel):
    """A product line in the cart.

    ``total_price`` is derived from the product, its selected options and the
    quantity; the cart store recomputes it on every quantity or variant change.
    """

    id: str
    product: Product
    quantity: int = Field(ge=1)
    selected_variants: SelectedVariants = Field(default_factory=dict)
    special_instructions: Optional[str] = None
    total_price: float = 0.0
    added_at: str = ""


class TimeRestrictions(StorefrontModel):
    # 0 = Sunday ... 6 = Saturday
    day_of_week: List[int] = Field(default_factory=list)
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class DiscountConditions(StorefrontModel):
    minimum_quantity: Optional[int] = None
    applicable_item_ids: List[str] = Field(default_factory=list)
    applicable_category_ids: List[str] = Field(default_factory=list)
    time_restrictions: Optional[TimeRestrictions] = None


class Discount(StorefrontModel):
    """A discount the merchant offers.

    Attributes:
        value: Percentage (0-100) for percentage discounts, minor units
            (cents) for fixed-amount discounts.
        min_order_amount: Minimum subtotal in minor units.
        max_discount_amount: Cap in minor units for percentage discounts.
        automatic: Applied by the cart without the customer entering a code.
    """

    id: str
    code: Optional[str] = None
    name: str
    description: str = ""
    type: DiscountType
    value: float = 0.0
    min_order_amount: Optional[int] = None
    max_discount_amount: Optional[int] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True
    automatic: bool = False
    scope: str = "ORDER"
    conditions: Optional[DiscountConditions] = None


class AppliedDiscount(StorefrontModel):
    """A discount applied to the current cart.

    ``applied_amount`` is in currency units. Automatic entries are replaced on
    every recompute; manual (coded) entries are kept.
    """

    discount_id: str = ""
    code: Optional[str] = None
    name: str
    type: DiscountType
    value: float = 0.0
    applied_amount: float = 0.0
    applied_to: Literal["order", "item"] = "order"
    discount: Optional[Discount] = None

    @property
    def is_automatic(self) -> bool:
        if self.discount is not None:
            return self.discount.automatic or self.discount.type == DiscountType.AUTOMATIC
        return self.type == DiscountType.AUTOMATIC


class BusinessHours(StorefrontModel):
    open: str = ""
    close: str = ""
    closed: bool = False


class Coordinates(StorefrontModel):
    lat: float
    lng: float


class StoreLocation(StorefrontModel):
    id: str
    name: str
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    phone: str = ""
    email: str = ""
    hours: Dict[str, BusinessHours] = Field(default_factory=dict)
    coordinates: Optional[Coordinates] = None
    features: List[str] = Field(default_factory=list)
    estimated_wait_time: int = 15
    is_active: bool = True


class CustomerInfo(StorefrontModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class PickupLocationRef(StorefrontModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    id: Optional[str] = None


class CheckoutItem(StorefrontModel):
    """A cart line as posted to checkout.

    More lenient than :class:`CartItem`: only quantity and a product snapshot
    (or a bare name) are needed to build a line item.
    """

    id: Optional[str] = None
    product: Optional[Product] = None
    name: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    selected_variants: SelectedVariants = Field(default_factory=dict)
    special_instructions: Optional[str] = None


class CheckoutRequest(StorefrontModel):
    items: List[CheckoutItem] = Field(default_factory=list)
    customer_info: Optional[CustomerInfo] = Field(
        default=None,
        validation_alias=AliasChoices("customerInfo", "customer", "customer_info"),
    )
    pickup_location: Optional[PickupLocationRef] = None
    applied_discounts: List[AppliedDiscount] = Field(default_factory=list)
    pickup_date: Optional[str] = None
    pickup_time: Optional[str] = None


class CheckoutSession(StorefrontModel):
    checkout_url: Optional[str] = None
    order_id: Optional[str] = None


class DiscountValidationResult(StorefrontModel):
    is_valid: bool
    discount: Optional[Discount] = None
    applied_amount: float = 0.0
    error: Optional[str] = None
