"""Cart state, persistence and debounced discount recomputation."""

from .debounce import Debouncer
from .storage import CartStorage, JsonFileStorage, MemoryStorage
from .store import CartStore, StorefrontCatalog

__all__ = [
    "CartStore",
    "StorefrontCatalog",
    "CartStorage",
    "MemoryStorage",
    "JsonFileStorage",
    "Debouncer",
]
