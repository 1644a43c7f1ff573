import json
import logging
import time
from contextlib import asynccontextmanager

import anyio
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from pydantic import ValidationError as PydanticValidationError

from ...application.cache import ResponseCache
from ...config import Settings
from ...constants import INTERNAL_ERROR_MESSAGE
from ...domain.exceptions import OrderProxyException
from ...infrastructure.square.client import SquareClient
from ...logging import LogEvent, LogRecord, info as log_info, init_logging, shutdown_logging
from .errors import (
    field_errors_from_pydantic,
    get_error_details_from_exc,
    log_and_return_error_response,
)
from .guardrails import (
    BodySizeLimitMiddleware,
    InputSanitizationMiddleware,
    RateLimitMiddleware,
    SecurityHeadersMiddleware,
)
from .middleware import logging_middleware
from .routes.catalog import router as catalog_router
from .routes.health import router as health_router
from .routes.monitoring import router as monitoring_router
from .routes.orders import router as orders_router
from .routes.store import router as store_router


def create_app(settings: Settings) -> FastAPI:
    """Creates and configures the FastAPI application instance.

    Initializes logging, builds the shared response cache and commerce API
    client, installs guardrail middleware and registers routes.

    Args:
        settings: Configuration settings object

    Returns:
        Fully configured FastAPI application instance
    """
    init_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log_info(
            LogRecord(
                event=LogEvent.CACHE_EVENT.value,
                message="Starting response cache sweeper",
                data={
                    "sweep_interval_seconds": settings.cache_sweep_interval_s,
                    "max_age_seconds": settings.cache_max_age_s,
                },
            )
        )
        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(app.state.response_cache.run_sweeper)
                try:
                    yield
                finally:
                    logging.info("Initiating application shutdown")
                    tg.cancel_scope.cancel()
        finally:
            logging.info("Closing commerce API client")
            try:
                await app.state.square_client.aclose()
            except Exception as e:
                logging.error(f"Failed to close commerce API client: {str(e)}")
            shutdown_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=None,
        redoc_url=None,
        description="Caching proxy between a restaurant storefront and the Square API.",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
    )
    app.state.settings = settings
    app.state.started_at = time.monotonic()
    app.state.response_cache = ResponseCache(
        max_age_seconds=settings.cache_max_age_s,
        sweep_interval_seconds=settings.cache_sweep_interval_s,
    )
    app.state.square_client = SquareClient(settings, app.state.response_cache)
    logging.info(
        f"Commerce API client initialized ({settings.square_environment}, "
        f"store online: {settings.store_online})"
    )

    # Core middleware
    app.middleware("http")(logging_middleware)

    # Guardrails, innermost first: body size -> sanitization -> rate limit
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)

    if settings.sanitize_input_enabled:
        app.add_middleware(InputSanitizationMiddleware)

    if settings.rate_limit_enabled:
        logging.info(
            f"Rate limiting enabled: {settings.effective_rate_limit} requests per "
            f"{settings.rate_limit_window_seconds}s"
        )
        app.add_middleware(
            RateLimitMiddleware,
            max_requests=settings.effective_rate_limit,
            window_seconds=settings.rate_limit_window_seconds,
        )

    if settings.enable_cors:
        logging.info(
            f"CORS enabled for origins: {settings.cors_allow_origins}, regex: {settings.cors_allow_origin_regex}"
        )
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_origin_regex=settings.cors_allow_origin_regex,
            allow_methods=settings.cors_allow_methods,
            allow_headers=settings.cors_allow_headers,
            allow_credentials=True,
            max_age=600,
        )

    if settings.security_headers_enabled:
        logging.info(f"Security headers enabled (HSTS: {settings.enable_hsts})")
        app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.enable_hsts)

    app.include_router(health_router, tags=["Health"])
    app.include_router(store_router, tags=["Store"])
    app.include_router(catalog_router, tags=["Catalog"])
    app.include_router(orders_router, tags=["Orders"])
    app.include_router(monitoring_router, tags=["Monitoring"])

    @app.exception_handler(OrderProxyException)
    async def order_proxy_error_handler(request: Request, exc: OrderProxyException):
        status_code, message, extra = get_error_details_from_exc(exc)
        return await log_and_return_error_response(
            request, status_code, message, caught_exception=exc, extra=extra
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(
        request: Request, exc: RequestValidationError
    ):
        return await log_and_return_error_response(
            request,
            400,
            "Validation failed",
            caught_exception=exc,
            extra={"errors": field_errors_from_pydantic(list(exc.errors()))},
        )

    @app.exception_handler(PydanticValidationError)
    async def pydantic_validation_error_handler(
        request: Request, exc: PydanticValidationError
    ):
        return await log_and_return_error_response(
            request,
            400,
            "Validation failed",
            caught_exception=exc,
            extra={"errors": field_errors_from_pydantic(list(exc.errors()))},
        )

    @app.exception_handler(json.JSONDecodeError)
    async def json_decode_error_handler(request: Request, exc: json.JSONDecodeError):
        return await log_and_return_error_response(
            request, 400, "Invalid JSON format.", caught_exception=exc
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        return await log_and_return_error_response(
            request, 500, INTERNAL_ERROR_MESSAGE, caught_exception=exc
        )

    return app
