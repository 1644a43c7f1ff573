"""Fluent field validation and input sanitisation helpers."""

import html
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Pattern, Tuple, Union
from urllib.parse import urlparse

from ..constants import EMAIL_PATTERN, MAX_PRICE, PHONE_PATTERN

EMAIL_REGEX = re.compile(EMAIL_PATTERN)
PHONE_REGEX = re.compile(PHONE_PATTERN)
SCRIPT_TAG_REGEX = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)

Rule = Tuple[Callable[[Any], bool], str]


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, str):
        try:
            float(value)
        except ValueError:
            return False
        return value.strip() != ""
    return False


class Validator:
    """Chainable rule builder over a single value.

    Every rule except :meth:`required` lets an empty value through, so
    optional fields only need ``required()`` left off::

        Validator(email).required().email().validate()
    """

    def __init__(self, value: Any):
        self._value = value
        self._rules: List[Rule] = []

    @classmethod
    def create(cls, value: Any) -> "Validator":
        return cls(value)

    def _add(self, test: Callable[[Any], bool], message: str) -> "Validator":
        self._rules.append((test, message))
        return self

    def required(self, message: str = "This field is required") -> "Validator":
        return self._add(lambda v: not _is_empty(v), message)

    def email(self, message: str = "Please enter a valid email address") -> "Validator":
        return self.pattern(EMAIL_REGEX, message)

    def phone(self, message: str = "Please enter a valid phone number") -> "Validator":
        return self.pattern(PHONE_REGEX, message)

    def pattern(self, regex: Union[str, Pattern[str]], message: str) -> "Validator":
        compiled = re.compile(regex) if isinstance(regex, str) else regex

        def test(v: Any) -> bool:
            if not v:
                return True
            return isinstance(v, str) and compiled.search(v) is not None

        return self._add(test, message)

    def min_length(self, minimum: int, message: Optional[str] = None) -> "Validator":
        def test(v: Any) -> bool:
            if not v:
                return True
            return isinstance(v, (str, list, tuple)) and len(v) >= minimum

        return self._add(test, message or f"Must be at least {minimum} characters long")

    def max_length(self, maximum: int, message: Optional[str] = None) -> "Validator":
        def test(v: Any) -> bool:
            if not v:
                return True
            return isinstance(v, (str, list, tuple)) and len(v) <= maximum

        return self._add(
            test, message or f"Must be no more than {maximum} characters long"
        )

    def min(self, minimum: float, message: Optional[str] = None) -> "Validator":
        def test(v: Any) -> bool:
            if _is_empty(v):
                return True
            return _is_number(v) and float(v) >= minimum

        return self._add(test, message or f"Must be at least {minimum}")

    def max(self, maximum: float, message: Optional[str] = None) -> "Validator":
        def test(v: Any) -> bool:
            if _is_empty(v):
                return True
            return _is_number(v) and float(v) <= maximum

        return self._add(test, message or f"Must be no more than {maximum}")

    def numeric(self, message: str = "Must be a number") -> "Validator":
        return self._add(lambda v: _is_empty(v) or _is_number(v), message)

    def string(self, message: str = "Must be a string") -> "Validator":
        return self._add(lambda v: v is None or isinstance(v, str), message)

    def url(self, message: str = "Please enter a valid URL") -> "Validator":
        def test(v: Any) -> bool:
            if not v:
                return True
            if not isinstance(v, str):
                return False
            parsed = urlparse(v)
            return bool(parsed.scheme and parsed.netloc)

        return self._add(test, message)

    def custom(self, test: Callable[[Any], bool], message: str) -> "Validator":
        return self._add(test, message)

    def validate(self) -> ValidationResult:
        errors = [message for test, message in self._rules if not test(self._value)]
        return ValidationResult(is_valid=not errors, errors=errors)


def validate_form(
    data: Mapping[str, Any],
    rules: Mapping[str, Callable[[Any], ValidationResult]],
) -> Tuple[bool, Dict[str, List[str]]]:
    """Run one rule set per field; returns ``(is_valid, {field: errors})``."""
    errors: Dict[str, List[str]] = {}
    for field_name, rule in rules.items():
        result = rule(data.get(field_name))
        if not result.is_valid:
            errors[field_name] = result.errors
    return not errors, errors


def validate_price(price: Any) -> ValidationResult:
    return (
        Validator(price)
        .required("Price is required")
        .min(0, "Price must be positive")
        .max(MAX_PRICE, f"Price cannot exceed ${MAX_PRICE}")
        .validate()
    )


PAYMENT_RULES: Dict[str, Callable[[Any], ValidationResult]] = {
    "token": lambda v: Validator(v).required("Payment token is required").validate(),
    "amount": lambda v: Validator(v)
    .required("Amount must be a number")
    .numeric("Amount must be a number")
    .validate(),
    "orderId": lambda v: Validator(v).string("Order ID must be a string").validate(),
}


def validate_payment_request(body: Mapping[str, Any]) -> List[Dict[str, str]]:
    """Field errors for a payment request body; empty when valid."""
    _, errors = validate_form(body, PAYMENT_RULES)
    return [
        {"field": field_name, "message": message}
        for field_name, messages in errors.items()
        for message in messages
    ]


def sanitize_string(value: str) -> str:
    """Trim and escape the HTML-significant characters ``<>"'&``."""
    return html.escape(value.strip(), quote=True)


def sanitize_email(value: str) -> str:
    return value.strip().lower()


def sanitize_phone(value: str) -> str:
    return re.sub(r"[^\d+\-()\s]", "", value).strip()


def sanitize_price(value: Union[str, float, int]) -> float:
    price = float(value)
    return max(0.0, round(price * 100) / 100)


def strip_script_tags(payload: Any) -> Any:
    """Recursively remove ``<script>...</script>`` blocks from string values."""
    if isinstance(payload, str):
        return SCRIPT_TAG_REGEX.sub("", payload)
    if isinstance(payload, dict):
        return {key: strip_script_tags(value) for key, value in payload.items()}
    if isinstance(payload, list):
        return [strip_script_tags(item) for item in payload]
    return payload
