"""Constants module for OrderProxy configuration.

Contains the constant values used throughout the application: upstream
endpoints, cache TTLs per resource class, catalog type markers, user-facing
messages and the built-in measurement unit table.
"""

from typing import Dict, FrozenSet, Tuple

from .enums import CacheClass, UnitType

# Upstream commerce API
SQUARE_PRODUCTION_BASE_URL = "https://connect.squareup.com/v2"
SQUARE_SANDBOX_BASE_URL = "https://connect.squareupsandbox.com/v2"
DEFAULT_SQUARE_API_VERSION = "2023-10-18"
DEFAULT_CURRENCY = "USD"

# Cache TTLs in seconds, looked up by class rather than by key
CACHE_TTL_SECONDS: Dict[CacheClass, int] = {
    CacheClass.LOCATIONS: 30 * 60,
    CacheClass.PRODUCTS: 30 * 60,
    CacheClass.CATEGORIES: 60 * 60,
    CacheClass.MODIFIERS: 30 * 60,
    CacheClass.DISCOUNTS: 15 * 60,
    CacheClass.DEFAULT: 5 * 60,
}

# Sweep removes anything older than the ceiling, whatever its class
DEFAULT_CACHE_SWEEP_INTERVAL_SECONDS = 10 * 60
DEFAULT_CACHE_MAX_AGE_SECONDS = 60 * 60

CACHE_NO_BODY_SENTINEL = "no_body"
CATALOG_SEARCH_ENDPOINT = "/catalog/search"
LOCATIONS_ENDPOINT = "/locations"

# Checked in this order; the first marker found in a search body wins
CATALOG_TYPE_MARKERS: Tuple[Tuple[str, CacheClass], ...] = (
    ("ITEM", CacheClass.PRODUCTS),
    ("CATEGORY", CacheClass.CATEGORIES),
    ("MODIFIER", CacheClass.MODIFIERS),
    ("DISCOUNT", CacheClass.DISCOUNTS),
)

# Mutating upstream endpoints never go through the response cache
UNCACHED_ENDPOINT_PREFIXES: FrozenSet[str] = frozenset(
    {
        "/orders",
        "/payments",
        "/online-checkout/payment-links",
    }
)

# Substrings in an upstream error meaning "merchant configured none of these"
EMPTY_RESULT_ERROR_MARKERS: Tuple[str, ...] = ("not found", "No objects")

# Checkout
PICKUP_FULFILLMENT_NOTE = "Order placed via online checkout"
DEFAULT_RECIPIENT_NAME = "Customer"
CENTRAL_STANDARD_OFFSET = "-06:00"
CENTRAL_DAYLIGHT_OFFSET = "-05:00"
IDEMPOTENCY_SUFFIX_LENGTH = 9

# User-facing messages
STORE_OFFLINE_MESSAGE = (
    "Online ordering is currently unavailable. "
    "Please try again later or contact us directly."
)
PICKUP_REQUIRED_MESSAGE = (
    "Pickup date and time are required. "
    "Please select a pickup time before proceeding."
)
ITEMS_REQUIRED_MESSAGE = "Items are required for checkout"
LOCATION_UNRESOLVED_MESSAGE = (
    "Unable to determine store location. Please select a pickup location."
)
INTERNAL_ERROR_MESSAGE = "Internal server error"
CART_STORE_CLOSED_MESSAGE = (
    "Store is currently closed for online ordering. "
    "You can browse our menu but cannot add items to cart."
)
LOCATION_REQUIRED_MESSAGE = (
    "Please select a pickup location before adding items to cart."
)
DISCOUNT_ALREADY_APPLIED_MESSAGE = "This discount code is already applied"
DISCOUNT_INVALID_MESSAGE = "Invalid discount code"

# Cart persistence keys, each serialized independently
STORAGE_KEY_CART = "cart"
STORAGE_KEY_LOCATION = "selectedLocation"
STORAGE_KEY_PICKUP_DATE = "selectedPickupDate"
STORAGE_KEY_PICKUP_TIME = "selectedPickupTime"
STORAGE_KEY_DISCOUNTS = "appliedDiscounts"

DEFAULT_DISCOUNT_DEBOUNCE_SECONDS = 0.5
DEFAULT_ESTIMATED_WAIT_MINUTES = 15

# Health
HIGH_MEMORY_THRESHOLD_MB = 500
HEALTH_CACHE_PROBE_KEY = "health_check_test"

# Validation
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
PHONE_PATTERN = (
    r"^[\+]?[1-9][\d]{0,2}[\s\-\.]?[\(]?[\d]{1,3}[\)]?[\s\-\.]?[\d]{3,4}"
    r"[\s\-\.]?[\d]{3,4}$"
)
MAX_PRICE = 9999.99

# Measurement units. Conversion factors are relative to the base unit of each
# type: ounces for weight, fluid ounces for volume.
WEIGHT_TO_OUNCES: Dict[str, float] = {
    "oz": 1.0,
    "lb": 16.0,
    "g": 0.035274,
    "kg": 35.274,
}
VOLUME_TO_FLUID_OUNCES: Dict[str, float] = {
    "fl oz": 1.0,
    "ml": 0.033814,
    "l": 33.814,
    "cup": 8.0,
    "pt": 16.0,
    "qt": 32.0,
    "gal": 128.0,
}
COMMON_UNIT_ABBREVIATIONS: FrozenSet[str] = frozenset(
    {"oz", "lb", "fl oz", "g", "kg", "ml", "l"}
)

BUILTIN_UNITS: Dict[str, Dict[str, object]] = {
    "OUNCE": {
        "id": "oz",
        "name": "Ounce",
        "abbreviation": "oz",
        "type": UnitType.WEIGHT,
        "precision": 2,
    },
    "POUND": {
        "id": "lb",
        "name": "Pound",
        "abbreviation": "lb",
        "type": UnitType.WEIGHT,
        "precision": 2,
    },
    "FLUID_OUNCE": {
        "id": "fl_oz",
        "name": "Fluid Ounce",
        "abbreviation": "fl oz",
        "type": UnitType.VOLUME,
        "precision": 2,
    },
    "EACH": {
        "id": "each",
        "name": "Each",
        "abbreviation": "ea",
        "type": UnitType.GENERIC,
        "precision": 0,
    },
}

BUSINESS_DAY_NAMES: Dict[str, str] = {
    "MON": "monday",
    "TUE": "tuesday",
    "WED": "wednesday",
    "THU": "thursday",
    "FRI": "friday",
    "SAT": "saturday",
    "SUN": "sunday",
}
