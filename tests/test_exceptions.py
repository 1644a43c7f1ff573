"""Tests for the exception hierarchy."""

import pytest

from orderproxy.domain.exceptions import (
    CacheError,
    CheckoutError,
    ConfigurationError,
    OrderProxyException,
    StoreOfflineError,
    UnitConversionError,
    UpstreamError,
    UpstreamTimeoutError,
    ValidationError,
)


class TestExceptionHierarchy:
    @pytest.mark.parametrize(
        "exc_class",
        [
            UpstreamError,
            UpstreamTimeoutError,
            ValidationError,
            CheckoutError,
            StoreOfflineError,
            CacheError,
            UnitConversionError,
            ConfigurationError,
        ],
    )
    def test_all_derive_from_base(self, exc_class):
        assert issubclass(exc_class, OrderProxyException)

    def test_timeout_is_an_upstream_error(self):
        assert issubclass(UpstreamTimeoutError, UpstreamError)

    def test_checkout_error_is_a_validation_error(self):
        assert issubclass(CheckoutError, ValidationError)


class TestExceptionAttributes:
    def test_base_fields(self):
        exc = OrderProxyException("boom", request_id="req-1", details={"a": 1})
        assert str(exc) == "boom"
        assert exc.message == "boom"
        assert exc.request_id == "req-1"
        assert exc.details == {"a": 1}

    def test_details_default_to_empty(self):
        assert OrderProxyException("boom").details == {}

    def test_upstream_status_code(self):
        exc = UpstreamError("Square API error: Not Found", status_code=404)
        assert exc.status_code == 404
        assert UpstreamError("x").status_code is None

    def test_validation_field_errors(self):
        errors = [{"field": "token", "message": "Payment token is required"}]
        assert ValidationError("Validation failed", field_errors=errors).field_errors == errors
        assert ValidationError("Validation failed").field_errors == []

    def test_configuration_key(self):
        exc = ConfigurationError("missing", config_key="SQUARE_ACCESS_TOKEN")
        assert exc.config_key == "SQUARE_ACCESS_TOKEN"
