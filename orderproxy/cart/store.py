"""
Cart state for a single shopper.

:class:`CartStore` owns the item list, the selected pickup location and slot,
and the applied discounts. Every change is mirrored to a :class:`CartStorage`
under its own key and rehydrated by :meth:`CartStore.load`. Item-list changes
schedule a debounced recompute of automatic discounts; manually applied
codes survive the recompute.
"""

import json
import random
import string
import time
from datetime import datetime, timezone
from types import TracebackType
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    Type,
)

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..application.discounts import calculate_total_discount, merge_discounts, to_applied
from ..application.locations import revalidate_location
from ..application.pricing import calculate_cart_subtotal, calculate_item_price
from ..constants import (
    CART_STORE_CLOSED_MESSAGE,
    DEFAULT_DISCOUNT_DEBOUNCE_SECONDS,
    DISCOUNT_ALREADY_APPLIED_MESSAGE,
    DISCOUNT_INVALID_MESSAGE,
    LOCATION_REQUIRED_MESSAGE,
    STORAGE_KEY_CART,
    STORAGE_KEY_DISCOUNTS,
    STORAGE_KEY_LOCATION,
    STORAGE_KEY_PICKUP_DATE,
    STORAGE_KEY_PICKUP_TIME,
)
from ..domain.exceptions import OrderProxyException
from ..domain.models import (
    AppliedDiscount,
    CartItem,
    DiscountValidationResult,
    Product,
    SelectedVariants,
    StoreLocation,
)
from ..logging import LogEvent, LogRecord, info, warning
from .debounce import Debouncer
from .storage import CartStorage

_ITEMS_ADAPTER = TypeAdapter(List[CartItem])
_DISCOUNTS_ADAPTER = TypeAdapter(List[AppliedDiscount])
_BASE36 = string.digits + string.ascii_lowercase

Notifier = Callable[[str, str], None]


class StorefrontCatalog(Protocol):
    async def fetch_locations(self) -> List[StoreLocation]: ...

    async def get_automatic_discounts(
        self, items: Sequence[CartItem], subtotal: float
    ) -> List[AppliedDiscount]: ...

    async def validate_discount(
        self, code: str, items: Sequence[CartItem], subtotal: float
    ) -> DiscountValidationResult: ...


def log_notifier(level: str, message: str) -> None:
    record = LogRecord(event=LogEvent.CART_EVENT.value, message=message)
    if level == "error":
        warning(record)
    else:
        info(record)


def new_cart_item_id(product_id: str) -> str:
    suffix = "".join(random.choice(_BASE36) for _ in range(9))
    return f"{product_id}-{int(time.time() * 1000)}-{suffix}"


class CartStore:
    """
    Explicitly owned cart state, constructed once and passed to consumers.

    Args:
        storage: Where state is mirrored on every change
        catalog: Source of locations and discounts
        is_store_online: Polled before items are added
        notify: ``(level, message)`` sink for user-facing messages;
            ``level`` is ``"success"`` or ``"error"``
        debounce_seconds: Delay before automatic discounts are recomputed

    Use ``async with store:`` to run the debounced recompute in the
    background; without it call :meth:`recompute_automatic_discounts`.
    """

    def __init__(
        self,
        storage: CartStorage,
        catalog: StorefrontCatalog,
        is_store_online: Callable[[], bool],
        notify: Optional[Notifier] = None,
        debounce_seconds: float = DEFAULT_DISCOUNT_DEBOUNCE_SECONDS,
    ) -> None:
        self.storage = storage
        self.catalog = catalog
        self.is_store_online = is_store_online
        self.notify = notify or log_notifier
        self._debouncer = Debouncer(debounce_seconds, self.recompute_automatic_discounts)

        self.items: List[CartItem] = []
        self.selected_location: Optional[StoreLocation] = None
        self.store_locations: List[StoreLocation] = []
        self.applied_discounts: List[AppliedDiscount] = []
        self.selected_pickup_date: Optional[str] = None
        self.selected_pickup_time: Optional[str] = None

    async def __aenter__(self) -> "CartStore":
        await self._debouncer.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> Optional[bool]:
        return await self._debouncer.__aexit__(exc_type, exc, tb)

    @property
    def debouncer(self) -> Debouncer:
        return self._debouncer

    # Persistence

    def _read_json(self, key: str) -> Any:
        raw = self.storage.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            warning(
                LogRecord(
                    event=LogEvent.CART_EVENT.value,
                    message=f"Discarding unreadable stored value for {key}",
                )
            )
            return None

    def _save_items(self) -> None:
        self.storage.set(
            STORAGE_KEY_CART, json.dumps([item.to_wire() for item in self.items])
        )

    def _save_discounts(self) -> None:
        self.storage.set(
            STORAGE_KEY_DISCOUNTS,
            json.dumps([d.to_wire() for d in self.applied_discounts]),
        )

    def _save_optional(self, key: str, value: Optional[str]) -> None:
        if value:
            self.storage.set(key, value)
        else:
            self.storage.remove(key)

    def _save_location(self) -> None:
        if self.selected_location is not None:
            self.storage.set(
                STORAGE_KEY_LOCATION, json.dumps(self.selected_location.to_wire())
            )
        else:
            self.storage.remove(STORAGE_KEY_LOCATION)

    def _items_changed(self) -> None:
        self._save_items()
        self._debouncer.schedule()

    async def load(self) -> None:
        """Rehydrate from storage and revalidate the selected location.

        A stored location missing from the fresh list is dropped without
        error. Failing to fetch locations leaves the list empty.
        """
        try:
            self.store_locations = await self.catalog.fetch_locations()
        except (OrderProxyException, httpx.HTTPError) as e:
            warning(
                LogRecord(
                    event=LogEvent.CART_EVENT.value,
                    message="Could not fetch store locations",
                ),
                exc=e,
            )
            self.store_locations = []

        try:
            self.items = _ITEMS_ADAPTER.validate_python(
                self._read_json(STORAGE_KEY_CART) or []
            )
        except PydanticValidationError:
            self.items = []

        stored_location = self._read_json(STORAGE_KEY_LOCATION)
        selected = None
        if isinstance(stored_location, dict):
            try:
                selected = StoreLocation.model_validate(stored_location)
            except PydanticValidationError:
                selected = None
        self.selected_location = revalidate_location(selected, self.store_locations)
        if selected is not None and self.selected_location is None:
            self.storage.remove(STORAGE_KEY_LOCATION)

        self.selected_pickup_date = self.storage.get(STORAGE_KEY_PICKUP_DATE)
        self.selected_pickup_time = self.storage.get(STORAGE_KEY_PICKUP_TIME)

        try:
            self.applied_discounts = _DISCOUNTS_ADAPTER.validate_python(
                self._read_json(STORAGE_KEY_DISCOUNTS) or []
            )
        except PydanticValidationError:
            self.applied_discounts = []

    def reset(self) -> None:
        """Forget all state, in memory and in storage."""
        self._debouncer.cancel()
        self.items = []
        self.selected_location = None
        self.store_locations = []
        self.applied_discounts = []
        self.selected_pickup_date = None
        self.selected_pickup_time = None
        for key in (
            STORAGE_KEY_CART,
            STORAGE_KEY_LOCATION,
            STORAGE_KEY_PICKUP_DATE,
            STORAGE_KEY_PICKUP_TIME,
            STORAGE_KEY_DISCOUNTS,
        ):
            self.storage.remove(key)

    # Items

    def _find(self, item_id: str) -> Optional[CartItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def add_to_cart(
        self,
        product: Product,
        quantity: int,
        selected_variants: Optional[SelectedVariants] = None,
        special_instructions: Optional[str] = None,
    ) -> Optional[CartItem]:
        """Add a new line; returns it, or ``None`` when adding is not allowed."""
        if not self.is_store_online():
            self.notify("error", CART_STORE_CLOSED_MESSAGE)
            return None
        if self.selected_location is None:
            self.notify("error", LOCATION_REQUIRED_MESSAGE)
            return None

        variants = selected_variants or {}
        unit_price = calculate_item_price(product.price, variants, product.variants)
        item = CartItem(
            id=new_cart_item_id(product.id),
            product=product,
            quantity=quantity,
            selected_variants=variants,
            special_instructions=special_instructions,
            total_price=unit_price * quantity,
            added_at=datetime.now(timezone.utc).isoformat(),
        )
        self.items = [*self.items, item]
        self._items_changed()
        self.notify("success", "Item added to cart")
        return item

    def remove_from_cart(self, item_id: str) -> None:
        self.items = [item for item in self.items if item.id != item_id]
        self._items_changed()
        self.notify("success", "Item removed from cart")

    def update_quantity(self, item_id: str, quantity: int) -> None:
        """Change a line's quantity; zero or less removes the line."""
        item = self._find(item_id)
        if item is None:
            return
        if quantity <= 0:
            self.remove_from_cart(item_id)
            return
        unit_price = calculate_item_price(
            item.product.price, item.selected_variants, item.product.variants
        )
        updated = item.model_copy(
            update={"quantity": quantity, "total_price": unit_price * quantity}
        )
        self.items = [updated if i.id == item_id else i for i in self.items]
        self._items_changed()

    def update_customizations(
        self, item_id: str, selected_variants: SelectedVariants
    ) -> None:
        item = self._find(item_id)
        if item is None:
            return
        unit_price = calculate_item_price(
            item.product.price, selected_variants, item.product.variants
        )
        updated = item.model_copy(
            update={
                "selected_variants": selected_variants,
                "total_price": unit_price * item.quantity,
            }
        )
        self.items = [updated if i.id == item_id else i for i in self.items]
        self._items_changed()

    def update_special_instructions(self, item_id: str, instructions: str) -> None:
        self.items = [
            i.model_copy(update={"special_instructions": instructions})
            if i.id == item_id
            else i
            for i in self.items
        ]
        self._items_changed()

    def clear_cart(self) -> None:
        self.items = []
        self.applied_discounts = []
        self._save_items()
        self.storage.remove(STORAGE_KEY_DISCOUNTS)
        self._debouncer.cancel()
        self.notify("success", "Cart cleared")

    # Pickup

    def set_pickup_location(self, location: Optional[StoreLocation]) -> None:
        self.selected_location = location
        self._save_location()
        if location is not None:
            self.notify("success", "Pickup location selected")

    def set_pickup_date_time(self, date: Optional[str], time_of_day: Optional[str]) -> None:
        self.selected_pickup_date = date
        self.selected_pickup_time = time_of_day
        self._save_optional(STORAGE_KEY_PICKUP_DATE, date)
        self._save_optional(STORAGE_KEY_PICKUP_TIME, time_of_day)
        self.notify("success", "Pickup date and time selected")

    def get_estimated_pickup_time(self) -> Optional[datetime]:
        if not (self.selected_pickup_date and self.selected_pickup_time):
            return None
        try:
            return datetime.fromisoformat(
                f"{self.selected_pickup_date}T{self.selected_pickup_time}"
            )
        except ValueError:
            return None

    # Totals

    def get_total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    def get_subtotal(self) -> float:
        return calculate_cart_subtotal(self.items)

    def get_total_discount(self) -> float:
        return calculate_total_discount(self.applied_discounts)

    def get_total_price(self) -> float:
        return max(0.0, self.get_subtotal() - self.get_total_discount())

    # Discounts

    async def apply_discount(self, code: str) -> bool:
        """Validate *code* against the catalog and apply it. Returns success."""
        if any(
            d.code is not None and d.code.lower() == code.lower()
            for d in self.applied_discounts
        ):
            self.notify("error", DISCOUNT_ALREADY_APPLIED_MESSAGE)
            return False

        try:
            result = await self.catalog.validate_discount(
                code, self.items, self.get_subtotal()
            )
        except (OrderProxyException, httpx.HTTPError) as e:
            warning(
                LogRecord(
                    event=LogEvent.DISCOUNT_EVENT.value,
                    message="Discount validation failed",
                ),
                exc=e,
            )
            self.notify("error", "Failed to apply discount code")
            return False

        if not (result.is_valid and result.discount and result.applied_amount):
            self.notify("error", result.error or DISCOUNT_INVALID_MESSAGE)
            return False

        applied = to_applied(result.discount, result.applied_amount)
        if applied.code is None:
            applied = applied.model_copy(update={"code": code})
        self.applied_discounts = [*self.applied_discounts, applied]
        self._save_discounts()
        self.notify("success", f"Discount applied: {result.discount.name}")
        return True

    def remove_discount(self, discount_id: str) -> None:
        removed = [d for d in self.applied_discounts if d.discount_id == discount_id]
        self.applied_discounts = [
            d for d in self.applied_discounts if d.discount_id != discount_id
        ]
        self._save_discounts()
        if removed:
            self.notify("success", f"Removed discount: {removed[0].name}")

    async def recompute_automatic_discounts(self) -> None:
        """Replace automatic discounts with the set the current cart earns.

        Idempotent for a given cart. An empty cart clears every discount.
        """
        if not self.items:
            if self.applied_discounts:
                self.applied_discounts = []
                self._save_discounts()
            return

        automatic = await self.catalog.get_automatic_discounts(
            self.items, self.get_subtotal()
        )
        merged = merge_discounts(self.applied_discounts, automatic)
        if _wire(merged) == _wire(self.applied_discounts):
            return

        previous_ids = {d.discount_id for d in self.applied_discounts}
        newly_applied = [d for d in automatic if d.discount_id not in previous_ids]
        self.applied_discounts = merged
        self._save_discounts()
        if newly_applied:
            count = len(newly_applied)
            self.notify(
                "success",
                f"{count} automatic discount{'s' if count > 1 else ''} applied!",
            )


def _wire(discounts: Sequence[AppliedDiscount]) -> List[Dict[str, Any]]:
    return [d.to_wire() for d in discounts]
