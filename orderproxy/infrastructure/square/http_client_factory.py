"""
HTTP client factory for upstream API clients.
Handles configuration and initialization of pooled httpx clients with explicit
timeouts, so a hung upstream call is always bounded.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ...config import Settings


@dataclass
class ConnectionLimits:
    """Connection pool configuration."""

    max_keepalive: int
    max_connections: int
    keepalive_expiry: float

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectionLimits":
        """Create connection limits; production keeps a larger keepalive pool."""
        if settings.is_production:
            return cls(
                max_keepalive=max(settings.pool_max_keepalive_connections, 50),
                max_connections=min(settings.pool_max_connections, 300),
                keepalive_expiry=settings.pool_keepalive_expiry,
            )
        return cls(
            max_keepalive=settings.pool_max_keepalive_connections,
            max_connections=settings.pool_max_connections,
            keepalive_expiry=settings.pool_keepalive_expiry,
        )


class HttpClientFactory:
    """Factory for creating configured httpx clients."""

    @staticmethod
    def create_client(
        settings: Settings,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> httpx.AsyncClient:
        """
        Create a pooled async client bound to *base_url*.

        Args:
            settings: Application settings
            base_url: Base URL every request path is joined to
            headers: Default headers sent with every request
            transport: Optional transport override (tests)

        Returns:
            Configured httpx client
        """
        limits = ConnectionLimits.from_settings(settings)
        kwargs = HttpClientFactory._build_httpx_config(settings, limits)
        if transport is not None:
            kwargs["transport"] = transport
        client = httpx.AsyncClient(base_url=base_url, headers=headers or {}, **kwargs)
        HttpClientFactory.log_client_configuration(settings, base_url)
        return client

    @staticmethod
    def _build_httpx_config(
        settings: Settings, limits: ConnectionLimits
    ) -> Dict[str, Any]:
        """Build httpx client configuration."""
        return {
            "limits": httpx.Limits(
                max_keepalive_connections=limits.max_keepalive,
                max_connections=limits.max_connections,
                keepalive_expiry=limits.keepalive_expiry,
            ),
            "timeout": httpx.Timeout(
                connect=settings.http_connect_timeout,
                read=settings.http_read_timeout,
                write=settings.http_write_timeout,
                pool=settings.http_pool_timeout,
            ),
            "verify": os.getenv("SSL_CERT_FILE", True),
            "follow_redirects": True,
        }

    @staticmethod
    async def close_client(client: Optional[httpx.AsyncClient]) -> None:
        """
        Properly close an HTTP client to avoid resource leaks.

        Args:
            client: HTTP client to close
        """
        if not client:
            return

        try:
            await client.aclose()
        except Exception as e:
            logging.warning(f"Error closing HTTP client: {e}")

    @staticmethod
    def get_square_headers(settings: Settings) -> Dict[str, str]:
        """
        Get default headers for commerce API requests.

        Args:
            settings: Application settings

        Returns:
            Dictionary of default headers
        """
        return {
            "Authorization": f"Bearer {settings.square_access_token}",
            "Square-Version": settings.square_api_version,
            "Content-Type": "application/json",
            "Accept-Charset": "utf-8",
        }

    @staticmethod
    def log_client_configuration(settings: Settings, base_url: str) -> None:
        config_info = {
            "base_url": base_url,
            "pool_max_keepalive": settings.pool_max_keepalive_connections,
            "pool_max_connections": settings.pool_max_connections,
            "read_timeout": settings.http_read_timeout,
        }
        logging.info(f"HTTP client configuration: {config_info}")
