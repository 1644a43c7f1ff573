"""Commerce API client and its connection factory."""

from .client import SquareClient
from .http_client_factory import HttpClientFactory

__all__ = ["SquareClient", "HttpClientFactory"]
