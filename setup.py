"""Setup script for OrderProxy."""

from setuptools import setup, find_packages

setup(
    name="orderproxy",
    version="1.0.0",
    description="Caching proxy and cart logic for a Square-backed restaurant storefront",
    python_requires=">=3.11",
    packages=find_packages(include=["orderproxy", "orderproxy.*"]),
    install_requires=[
        "fastapi>=0.110",
        "uvicorn[standard]>=0.29",
        "gunicorn>=21.2",
        "pydantic>=2.6",
        "pydantic-settings>=2.2",
        "python-dotenv>=1.0",
        "httpx>=0.27",
        "anyio>=4.3",
        "orjson>=3.10",
        "psutil>=5.9",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "respx>=0.21",
        ],
    },
)
