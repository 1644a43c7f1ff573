"""Client for the proxy's own storefront API, with retries."""

from .client import StorefrontClient
from .retry import RetryHandler, TransientUpstreamError

__all__ = ["StorefrontClient", "RetryHandler", "TransientUpstreamError"]
