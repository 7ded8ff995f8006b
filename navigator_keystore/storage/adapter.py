"""
Persistence Adapter — the single write/read boundary to a storage backend.

All jobs (writes, reads, removals) go through one FIFO queue drained by a
single worker task. A job runs to completion, including any encryption it
performs, before the next one starts, so the last queued write is always
the one that ends up in storage.
"""
import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Optional, Union

import orjson
from pydantic import ValidationError

from ..exceptions import StorageError
from ..models import StorageRecord
from .abstract import AbstractStorage

logger = logging.getLogger("navigator.keystore")

Job = Callable[[], Awaitable[Any]]
RecordProducer = Callable[[], Awaitable[StorageRecord]]


class PersistenceAdapter:
    """Serializes access to one named record in a storage backend."""

    def __init__(self, storage: AbstractStorage, name: str):
        if not name:
            raise ValueError("Storage name cannot be empty")
        self._storage = storage
        self._name = name
        self._queue: deque[tuple[Job, asyncio.Future]] = deque()
        self._worker: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"<PersistenceAdapter name={self._name} storage={self._storage!r}>"

    @property
    def storage(self) -> AbstractStorage:
        return self._storage

    @property
    def name(self) -> str:
        return self._name

    @property
    def pending(self) -> int:
        """Number of queued jobs not yet started."""
        return len(self._queue)

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def enqueue(self, job: Job) -> asyncio.Future:
        """Append a job to the queue and return a future for its result.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._queue.append((job, future))
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain())
        return future

    async def _drain(self) -> None:
        while self._queue:
            job, future = self._queue.popleft()
            try:
                result = await job()
            except asyncio.CancelledError:
                # the worker is going away; nothing left in the queue would run
                future.cancel()
                while self._queue:
                    self._queue.popleft()[1].cancel()
                raise
            except Exception as err:
                if not future.done():
                    future.set_exception(err)
            else:
                if not future.done():
                    future.set_result(result)

    async def flush(self) -> None:
        """Wait until every job queued so far has completed."""
        await self.enqueue(self._noop)

    @staticmethod
    async def _noop() -> None:
        return None

    # ------------------------------------------------------------------
    # Record I/O (run inside the queue)
    # ------------------------------------------------------------------

    async def _load(self) -> Optional[StorageRecord]:
        try:
            raw = await self._storage.get_item(self._name)
        except (OSError, ValueError) as err:
            raise StorageError(
                f"Unable to read record {self._name}: {err}"
            ) from err
        if raw is None:
            return None
        try:
            parsed = orjson.loads(raw)
        except orjson.JSONDecodeError as err:
            raise StorageError(
                f"Malformed record {self._name}: {err}"
            ) from err
        if not isinstance(parsed, dict):
            raise StorageError(
                f"Malformed record {self._name}: expected a JSON object"
            )
        try:
            return StorageRecord.model_validate(parsed)
        except ValidationError as err:
            raise StorageError(
                f"Malformed record {self._name}: "
                f"{err.error_count()} invalid field(s)"
            ) from err

    async def _store(self, record: StorageRecord) -> None:
        payload = orjson.dumps(record.to_dict()).decode("utf-8")
        try:
            await self._storage.set_item(self._name, payload)
        except (OSError, ValueError) as err:
            raise StorageError(
                f"Unable to write record {self._name}: {err}"
            ) from err
        logger.debug("Persisted record name=%s", self._name)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def write(
        self, record: Union[StorageRecord, RecordProducer]
    ) -> asyncio.Future:
        """Queue a write of a record, or of the record a producer returns.

        A producer is awaited inside the queue, so slow work such as
        encryption is ordered along with the write itself.
        """
        async def job() -> None:
            value = await record() if callable(record) else record
            await self._store(value)

        return self.enqueue(job)

    def read(self) -> asyncio.Future:
        """Queue a read; resolves to a StorageRecord or None if missing."""
        return self.enqueue(self._load)

    def update(
        self, func: Callable[[StorageRecord], StorageRecord]
    ) -> asyncio.Future:
        """Queue a read-modify-write of the stored record.

        Nothing is written when no record exists. Resolves to True if the
        record was updated.
        """
        async def job() -> bool:
            record = await self._load()
            if record is None:
                return False
            await self._store(func(record))
            return True

        return self.enqueue(job)

    def clear(self) -> asyncio.Future:
        """Queue removal of the record."""
        async def job() -> None:
            try:
                await self._storage.remove_item(self._name)
            except OSError as err:
                raise StorageError(
                    f"Unable to remove record {self._name}: {err}"
                ) from err
            logger.debug("Removed record name=%s", self._name)

        return self.enqueue(job)
