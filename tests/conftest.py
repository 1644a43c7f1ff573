from typing import Iterator

from unittest.mock import MagicMock, patch
import pytest

from orderproxy.config import Settings


# Configure anyio to only use asyncio backend
@pytest.fixture
def anyio_backend() -> str:
    """Force tests to use asyncio backend only."""
    return "asyncio"


@pytest.fixture(autouse=True, scope="session")
def mock_logger() -> Iterator[MagicMock]:
    with patch("orderproxy.logging._logger", MagicMock()) as mock_logger:
        mock_logger.log.return_value = None
        yield mock_logger


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        square_access_token="test-token",
        square_environment="sandbox",
        environment="test",
        store_online=True,
        rate_limit_enabled=False,
        storefront_retry_base_delay=0.0,
        storefront_retry_jitter=0.0,
    )
