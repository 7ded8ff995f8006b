"""
Routing storage — encrypted records are durable, everything else volatile.

Reads prefer the durable backend. A record holding an encrypted envelope
is written to the durable backend and removed from the volatile one; any
other record (plaintext or empty) goes to the volatile backend only and
any stale durable copy is removed, so plaintext never reaches disk.
"""
from typing import Optional

import orjson

from ..envelope import is_envelope
from .abstract import AbstractStorage


def _holds_envelope(value: str) -> bool:
    try:
        parsed = orjson.loads(value)
        api_key = parsed["state"]["apiKey"]
    except (ValueError, KeyError, TypeError):
        return False
    return isinstance(api_key, str) and is_envelope(api_key)


class RoutingStorage(AbstractStorage):
    """Route records between a durable and a volatile backend."""

    durable = True

    def __init__(self, durable: AbstractStorage, volatile: AbstractStorage):
        self.durable_storage = durable
        self.volatile_storage = volatile

    async def get_item(self, name: str) -> Optional[str]:
        value = await self.durable_storage.get_item(name)
        if value is not None:
            return value
        return await self.volatile_storage.get_item(name)

    async def set_item(self, name: str, value: str) -> None:
        if _holds_envelope(value):
            await self.durable_storage.set_item(name, value)
            await self.volatile_storage.remove_item(name)
        else:
            await self.volatile_storage.set_item(name, value)
            await self.durable_storage.remove_item(name)

    async def remove_item(self, name: str) -> None:
        await self.durable_storage.remove_item(name)
        await self.volatile_storage.remove_item(name)
