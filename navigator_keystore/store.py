"""
KeyStore — The in-memory source of truth for a single API key.

Provides the public API consumers use:
- ``get_state()`` — synchronous snapshot, never performs I/O
- ``set_key(secret, intent)`` — update memory now, persist in the background
- ``set_model(model)`` — change the chat model kept next to the key
- ``rehydrate(passphrase)`` — load the persisted record once at startup
- ``unlock(passphrase)`` — retry a locked rehydrate from a prompt
- ``clear()`` — forget the key and remove the persisted record

Lifecycle::

    create → rehydrate once at startup → mutate via set_key → optional clear

State machine: ``EMPTY → SET → (LOCKED ↔ SET)`` across reloads, and
``set_key(None)`` / ``clear()`` return to ``EMPTY``.

Security Note:
    Never log the key or the passphrase. The passphrase lives only in the
    PersistIntent captured by one queued write and is dropped once that
    write completes.
"""
import asyncio
import functools
import logging
from typing import Any, Callable, Optional, Union

from .conf import KeyStoreConfig
from .crypto import ensure_cipher_available
from .envelope import from_record_async, to_record_async
from .exceptions import DecryptionError, StorageError
from .models import (
    PROVIDERS,
    KeyState,
    KeyStatus,
    PersistIntent,
    RehydrateStatus,
    StorageRecord,
)
from .storage import PersistenceAdapter

logger = logging.getLogger("navigator.keystore")

ErrorCallback = Callable[[Exception], Any]


class KeyStore:
    """Holds one secret in memory and drives its persistence.

    In-memory state is always ahead of or equal to persisted state: every
    ``set_key`` updates memory before its write is queued, and writes land
    in storage in the order they were queued.
    """

    def __init__(
        self,
        adapter: PersistenceAdapter,
        on_error: Optional[ErrorCallback] = None,
    ):
        self._adapter = adapter
        self._on_error = on_error
        self._api_key: Optional[str] = None
        self._status = KeyStatus.EMPTY
        self._provider: Optional[str] = None
        self._model: Optional[str] = None
        # bumped on every local mutation; rehydrate never overwrites a newer value
        self._generation = 0
        self.persist_error: Optional[Exception] = None

    @classmethod
    def from_config(
        cls,
        config: Optional[KeyStoreConfig] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> "KeyStore":
        """Build a store from configuration (environment by default)."""
        config = config or KeyStoreConfig.from_env()
        adapter = PersistenceAdapter(config.build_storage(), config.storage_name)
        return cls(adapter, on_error=on_error)

    def __repr__(self) -> str:
        return f"<KeyStore status={self._status.value} adapter={self._adapter!r}>"

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_state(self) -> KeyState:
        return KeyState(
            api_key=self._api_key,
            status=self._status,
            provider=self._provider,
            model=self._model,
        )

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key

    @property
    def status(self) -> KeyStatus:
        return self._status

    @property
    def provider(self) -> Optional[str]:
        return self._provider

    @property
    def model(self) -> Optional[str]:
        return self._model

    @property
    def adapter(self) -> PersistenceAdapter:
        return self._adapter

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set_key(
        self,
        secret: Optional[str],
        intent: Union[PersistIntent, dict, None] = None,
        provider: Optional[str] = None,
    ) -> asyncio.Future:
        """Replace the secret and queue its persistence.

        Memory is updated before this returns. Persistence failures do not
        raise here: they resolve the returned future with an exception, are
        stored in ``persist_error`` and passed to ``on_error``.

        Args:
            secret: New secret, or None to clear it.
            intent: ``remember`` and optional ``passphrase``.
            provider: ``openai`` or ``anthropic``; the current one is kept
                if omitted. The chat model is reset.

        Returns:
            Future resolved once this write has reached storage.

        Raises (before any state is changed):
            EncryptionError: A passphrase was given but AES-GCM is not
                available.
            ValueError: Unsupported provider.
            RuntimeError: No running event loop.
        """
        if isinstance(intent, dict):
            intent = PersistIntent(**intent)
        intent = intent or PersistIntent()
        if provider is not None and provider not in PROVIDERS:
            raise ValueError(f"Unsupported provider: {provider}")
        if secret is not None and intent.remember and intent.passphrase is not None:
            ensure_cipher_available()
        asyncio.get_running_loop()

        self._generation += 1
        self._api_key = secret
        self._status = KeyStatus.SET if secret is not None else KeyStatus.EMPTY
        if provider is not None:
            self._provider = provider
        self._model = None

        future = self._adapter.write(
            functools.partial(
                to_record_async, secret, intent, self._provider, self._model
            )
        )
        future.add_done_callback(self._persisted)
        return future

    def set_model(self, model: Optional[str]) -> asyncio.Future:
        """Change the chat model and update the stored record, if any.

        The stored key (plain or encrypted) is left untouched, so no
        passphrase is needed.
        """
        asyncio.get_running_loop()
        self._model = model

        def apply(record: StorageRecord) -> StorageRecord:
            state = record.state.model_copy(update={"model": model})
            return record.model_copy(update={"state": state})

        future = self._adapter.update(apply)
        future.add_done_callback(self._persisted)
        return future

    def clear(self) -> asyncio.Future:
        """Forget the secret and remove the persisted record."""
        asyncio.get_running_loop()
        self._generation += 1
        self._api_key = None
        self._status = KeyStatus.EMPTY
        self._provider = None
        self._model = None
        future = self._adapter.clear()
        future.add_done_callback(self._persisted)
        return future

    def _persisted(self, future: asyncio.Future) -> None:
        if future.cancelled():
            return
        err = future.exception()
        if err is None:
            self.persist_error = None
            return
        self.persist_error = err
        logger.error(
            "Failed to persist key record %s: %s",
            self._adapter.name, err.__class__.__name__,
        )
        if self._on_error is not None:
            self._on_error(err)

    async def flush(self) -> None:
        """Wait for every queued persistence job to finish."""
        await self._adapter.flush()

    # ------------------------------------------------------------------
    # Rehydration
    # ------------------------------------------------------------------

    async def rehydrate(self, passphrase: Optional[str] = None) -> RehydrateStatus:
        """Load the persisted record into memory.

        Returns:
            ``OK`` if the secret was restored, ``LOCKED`` if it is encrypted
            and no passphrase was given, ``ABSENT`` if there is no usable
            record (missing, empty or malformed).

        Raises:
            DecryptionError: Wrong passphrase or tampered envelope. The key
                stays unavailable.
        """
        generation = self._generation
        try:
            record = await self._adapter.read()
            if record is None:
                logger.info("No stored key record %s", self._adapter.name)
                return RehydrateStatus.ABSENT
            secret = await from_record_async(record, passphrase)
        except StorageError as err:
            logger.warning(
                "Ignoring unreadable key record %s: %s", self._adapter.name, err,
            )
            return RehydrateStatus.ABSENT
        except DecryptionError:
            logger.info("Stored key record %s failed to decrypt", self._adapter.name)
            self._lock(generation)
            raise

        self._restore_metadata(record, generation)
        if secret is None:
            return RehydrateStatus.ABSENT
        if secret is KeyStatus.LOCKED:
            logger.info("Stored key record %s is locked", self._adapter.name)
            self._lock(generation)
            return RehydrateStatus.LOCKED
        if generation == self._generation:
            self._api_key = secret
            self._status = KeyStatus.SET
        else:
            logger.debug("Key changed during rehydrate; keeping in-memory value")
        logger.info("Stored key record %s restored", self._adapter.name)
        return RehydrateStatus.OK

    def _restore_metadata(self, record: StorageRecord, generation: int) -> None:
        if generation != self._generation or self._status is KeyStatus.SET:
            return
        provider = record.state.provider
        self._provider = provider if provider in PROVIDERS else None
        self._model = record.state.model

    def _lock(self, generation: int) -> None:
        # a key set in this session is never downgraded by a stale record
        if generation == self._generation and self._status is not KeyStatus.SET:
            self._api_key = None
            self._status = KeyStatus.LOCKED

    async def unlock(self, passphrase: str) -> bool:
        """Retry rehydration with a passphrase; False if it is wrong."""
        try:
            return await self.rehydrate(passphrase) is RehydrateStatus.OK
        except DecryptionError:
            return False
