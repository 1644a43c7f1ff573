import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from orderproxy.constants import (
    CACHE_TTL_SECONDS,
    DEFAULT_CACHE_MAX_AGE_SECONDS,
    DEFAULT_CACHE_SWEEP_INTERVAL_SECONDS,
    DEFAULT_CURRENCY,
    DEFAULT_DISCOUNT_DEBOUNCE_SECONDS,
    DEFAULT_SQUARE_API_VERSION,
    SQUARE_PRODUCTION_BASE_URL,
    SQUARE_SANDBOX_BASE_URL,
)
from orderproxy.domain.exceptions import ConfigurationError
from orderproxy.enums import CacheClass

__all__ = ["Settings", "ConfigurationError"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_prefix="",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Upstream commerce API
    square_access_token: str = Field(
        default="",
        validation_alias=AliasChoices(
            "SQUARE_ACCESS_TOKEN", "REACT_APP_SQUARE_ACCESS_TOKEN"
        ),
    )
    square_environment: str = Field(
        default="sandbox",
        validation_alias=AliasChoices(
            "SQUARE_ENVIRONMENT", "REACT_APP_SQUARE_ENVIRONMENT"
        ),
    )
    square_api_version: str = Field(
        default=DEFAULT_SQUARE_API_VERSION,
        validation_alias=AliasChoices("SQUARE_API_VERSION"),
    )
    store_online: bool = Field(
        default=False, validation_alias=AliasChoices("STORE_ONLINE")
    )
    currency: str = Field(
        default=DEFAULT_CURRENCY, validation_alias=AliasChoices("CURRENCY")
    )
    merchant_support_email: str = Field(
        default="support@fettermans.com",
        validation_alias=AliasChoices("MERCHANT_SUPPORT_EMAIL"),
    )
    default_redirect_origin: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("DEFAULT_REDIRECT_ORIGIN"),
    )

    # Optional with defaults
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("NODE_ENV", "APP_ENV", "ENVIRONMENT"),
    )
    app_name: str = "OrderProxy"
    app_version: str = "1.0.0"
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL"))
    log_file_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("LOG_FILE_PATH")
    )
    error_log_file_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ERROR_LOG_FILE_PATH")
    )
    log_pretty_console: bool = Field(
        default=False, validation_alias=AliasChoices("LOG_PRETTY_CONSOLE")
    )
    host: str = Field(default="127.0.0.1", validation_alias=AliasChoices("HOST"))
    port: int = Field(default=3001, validation_alias=AliasChoices("PORT"))
    reload: bool = False

    rate_limit_enabled: bool = Field(
        default=True, validation_alias=AliasChoices("RATE_LIMIT_ENABLED")
    )
    rate_limit_window_seconds: int = Field(
        default=15 * 60, validation_alias=AliasChoices("RATE_LIMIT_WINDOW_SECONDS")
    )
    rate_limit_max_requests: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("RATE_LIMIT_MAX_REQUESTS")
    )

    security_headers_enabled: bool = Field(
        default=True, validation_alias=AliasChoices("SECURITY_HEADERS_ENABLED")
    )
    enable_hsts: bool = Field(
        default=False, validation_alias=AliasChoices("ENABLE_HSTS")
    )
    sanitize_input_enabled: bool = Field(
        default=True, validation_alias=AliasChoices("SANITIZE_INPUT_ENABLED")
    )
    max_body_bytes: int = Field(
        default=10 * 1024 * 1024, validation_alias=AliasChoices("MAX_BODY_BYTES")
    )

    enable_cors: bool = Field(
        default=True, validation_alias=AliasChoices("ENABLE_CORS")
    )
    cors_allow_origins: Union[List[str], str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("ALLOWED_ORIGINS", "CORS_ALLOW_ORIGINS"),
    )
    cors_allow_origin_regex: Optional[str] = Field(
        default=r"https://.*\.vercel\.app",
        validation_alias=AliasChoices("CORS_ALLOW_ORIGIN_REGEX"),
    )
    cors_allow_methods: Union[List[str], str] = Field(
        default_factory=lambda: ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        validation_alias=AliasChoices("CORS_ALLOW_METHODS"),
    )
    cors_allow_headers: Union[List[str], str] = Field(
        default_factory=lambda: ["Content-Type", "Authorization", "X-Requested-With"],
        validation_alias=AliasChoices("CORS_ALLOW_HEADERS"),
    )

    redact_log_fields: Union[List[str], str] = Field(
        default_factory=lambda: [
            "authorization",
            "square_access_token",
            "token",
            "source_id",
        ],
        validation_alias=AliasChoices("REDACT_LOG_FIELDS"),
    )

    # Response cache
    cache_ttl_locations_s: int = Field(
        default=CACHE_TTL_SECONDS[CacheClass.LOCATIONS],
        validation_alias=AliasChoices("CACHE_TTL_LOCATIONS_S"),
    )
    cache_ttl_products_s: int = Field(
        default=CACHE_TTL_SECONDS[CacheClass.PRODUCTS],
        validation_alias=AliasChoices("CACHE_TTL_PRODUCTS_S"),
    )
    cache_ttl_categories_s: int = Field(
        default=CACHE_TTL_SECONDS[CacheClass.CATEGORIES],
        validation_alias=AliasChoices("CACHE_TTL_CATEGORIES_S"),
    )
    cache_ttl_modifiers_s: int = Field(
        default=CACHE_TTL_SECONDS[CacheClass.MODIFIERS],
        validation_alias=AliasChoices("CACHE_TTL_MODIFIERS_S"),
    )
    cache_ttl_discounts_s: int = Field(
        default=CACHE_TTL_SECONDS[CacheClass.DISCOUNTS],
        validation_alias=AliasChoices("CACHE_TTL_DISCOUNTS_S"),
    )
    cache_ttl_default_s: int = Field(
        default=CACHE_TTL_SECONDS[CacheClass.DEFAULT],
        validation_alias=AliasChoices("CACHE_TTL_DEFAULT_S"),
    )
    cache_sweep_interval_s: int = Field(
        default=DEFAULT_CACHE_SWEEP_INTERVAL_SECONDS,
        validation_alias=AliasChoices("CACHE_SWEEP_INTERVAL_S"),
    )
    cache_max_age_s: int = Field(
        default=DEFAULT_CACHE_MAX_AGE_SECONDS,
        validation_alias=AliasChoices("CACHE_MAX_AGE_S"),
    )

    # Connection pool configuration
    pool_max_keepalive_connections: int = Field(
        default=20, validation_alias=AliasChoices("POOL_MAX_KEEPALIVE_CONNECTIONS")
    )
    pool_max_connections: int = Field(
        default=100, validation_alias=AliasChoices("POOL_MAX_CONNECTIONS")
    )
    pool_keepalive_expiry: int = Field(
        default=60, validation_alias=AliasChoices("POOL_KEEPALIVE_EXPIRY")
    )

    # HTTP timeout configuration
    http_connect_timeout: float = Field(
        default=10.0, validation_alias=AliasChoices("HTTP_CONNECT_TIMEOUT")
    )
    http_read_timeout: float = Field(
        default=30.0, validation_alias=AliasChoices("HTTP_READ_TIMEOUT")
    )
    http_write_timeout: float = Field(
        default=30.0, validation_alias=AliasChoices("HTTP_WRITE_TIMEOUT")
    )
    http_pool_timeout: float = Field(
        default=10.0, validation_alias=AliasChoices("HTTP_POOL_TIMEOUT")
    )

    # Storefront client (used by the cart store)
    storefront_base_url: str = Field(
        default="http://localhost:3001/api",
        validation_alias=AliasChoices("STOREFRONT_BASE_URL", "REACT_APP_API_URL"),
    )
    storefront_max_attempts: int = Field(
        default=3, validation_alias=AliasChoices("STOREFRONT_MAX_ATTEMPTS")
    )
    storefront_retry_base_delay: float = Field(
        default=1.0, validation_alias=AliasChoices("STOREFRONT_RETRY_BASE_DELAY")
    )
    storefront_retry_jitter: float = Field(
        default=1.0, validation_alias=AliasChoices("STOREFRONT_RETRY_JITTER")
    )
    discount_debounce_seconds: float = Field(
        default=DEFAULT_DISCOUNT_DEBOUNCE_SECONDS,
        validation_alias=AliasChoices("DISCOUNT_DEBOUNCE_SECONDS"),
    )

    @field_validator(
        "cors_allow_origins",
        "cors_allow_methods",
        "cors_allow_headers",
        "redact_log_fields",
    )
    @classmethod
    def parse_comma_separated(cls, v: Union[List[str], str]) -> List[str]:
        """Parse comma-separated string values into lists for configuration fields.

        Handles both string inputs (splitting by commas) and already-list inputs.
        Empty strings are converted to empty lists.
        """
        if isinstance(v, str):
            if v.strip() == "":
                return []
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    def __init__(self, **kwargs: Any) -> None:
        """Initialize settings object and validate the upstream credentials.

        Raises:
            ConfigurationError: If a production deployment has no access token,
                or the cache ceiling is shorter than a class TTL
        """
        super().__init__(**kwargs)
        self._validate_required_credentials()
        self._validate_cache_ceiling()

    def _validate_required_credentials(self) -> None:
        if self.is_production and not self.square_access_token.strip():
            message = (
                "SQUARE_ACCESS_TOKEN is required in production. "
                "Set it in your environment or .env."
            )
            logging.error(f"Configuration Error:\n{message}\n")
            raise ConfigurationError(message, config_key="SQUARE_ACCESS_TOKEN")

    def _validate_cache_ceiling(self) -> None:
        longest = max(self.cache_ttls().values())
        if self.cache_max_age_s < longest:
            message = (
                f"CACHE_MAX_AGE_S ({self.cache_max_age_s}s) must be at least "
                f"the longest cache TTL ({longest}s)."
            )
            logging.error(f"Configuration Error:\n{message}\n")
            raise ConfigurationError(message, config_key="CACHE_MAX_AGE_S")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def square_base_url(self) -> str:
        if self.square_environment.lower() == "production":
            return SQUARE_PRODUCTION_BASE_URL
        return SQUARE_SANDBOX_BASE_URL

    @property
    def effective_rate_limit(self) -> int:
        """Requests allowed per client per window; stricter in production."""
        if self.rate_limit_max_requests is not None:
            return self.rate_limit_max_requests
        return 100 if self.is_production else 1000

    def cache_ttls(self) -> Dict[CacheClass, int]:
        return {
            CacheClass.LOCATIONS: self.cache_ttl_locations_s,
            CacheClass.PRODUCTS: self.cache_ttl_products_s,
            CacheClass.CATEGORIES: self.cache_ttl_categories_s,
            CacheClass.MODIFIERS: self.cache_ttl_modifiers_s,
            CacheClass.DISCOUNTS: self.cache_ttl_discounts_s,
            CacheClass.DEFAULT: self.cache_ttl_default_s,
        }
