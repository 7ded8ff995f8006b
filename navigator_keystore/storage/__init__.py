"""KeyStore storage backends and the persistence adapter."""
from .abstract import AbstractStorage
from .memory import MemoryStorage
from .file import FileStorage
from .routing import RoutingStorage
from .adapter import PersistenceAdapter

__all__ = [
    "AbstractStorage",
    "MemoryStorage",
    "FileStorage",
    "RoutingStorage",
    "PersistenceAdapter",
]
