"""Volatile, session-scoped storage."""
from typing import Optional

from .abstract import AbstractStorage


class MemoryStorage(AbstractStorage):
    """In-process storage cleared when the session (process) ends.

    A single instance may be shared between KeyStore instances to simulate
    a reload within the same session.
    """

    durable = False

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    async def get_item(self, name: str) -> Optional[str]:
        return self._items.get(name)

    async def set_item(self, name: str, value: str) -> None:
        self._items[name] = value

    async def remove_item(self, name: str) -> None:
        self._items.pop(name, None)

    def __len__(self) -> int:
        return len(self._items)
