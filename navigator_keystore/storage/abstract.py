"""Base class for KeyStore storage backends."""
from abc import ABC, abstractmethod
from typing import Optional


class AbstractStorage(ABC):
    """Name-addressed string storage (the Web Storage contract).

    Backends store opaque strings; they know nothing about records,
    envelopes or passphrases.
    """

    durable: bool = False

    @abstractmethod
    async def get_item(self, name: str) -> Optional[str]:
        """Return the stored value, or None if missing."""

    @abstractmethod
    async def set_item(self, name: str, value: str) -> None:
        """Create or replace the stored value."""

    @abstractmethod
    async def remove_item(self, name: str) -> None:
        """Delete the stored value. Missing names are ignored."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} durable={self.durable}>"
