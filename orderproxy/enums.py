"""Enums module for OrderProxy configuration.

Contains all enumeration classes used throughout the application.
"""

from enum import StrEnum


class CacheClass(StrEnum):
    """TTL bucket an upstream request is cached under."""
    LOCATIONS = "locations"
    PRODUCTS = "products"
    CATEGORIES = "categories"
    MODIFIERS = "modifiers"
    DISCOUNTS = "discounts"
    DEFAULT = "default"


class DiscountType(StrEnum):
    """How a discount's amount is computed."""
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    AUTOMATIC = "automatic"


class UnitType(StrEnum):
    """Measurement unit families. Conversion only works within a family."""
    WEIGHT = "weight"
    VOLUME = "volume"
    LENGTH = "length"
    AREA = "area"
    GENERIC = "generic"


class HealthStatus(StrEnum):
    OK = "OK"
    DEGRADED = "DEGRADED"


class SelectionType(StrEnum):
    SINGLE = "SINGLE"
    MULTIPLE = "MULTIPLE"
