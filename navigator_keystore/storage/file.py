"""
Durable file storage — one JSON document per logical name.

Writes go to a temp file in the same directory and are moved into place,
so a crash never leaves a half-written record behind.
"""
import os
import asyncio
import logging
import functools
from pathlib import Path
from typing import Optional, Union

from .abstract import AbstractStorage

logger = logging.getLogger("navigator.keystore")


class FileStorage(AbstractStorage):
    """Storage that survives process restarts."""

    durable = True

    def __init__(self, directory: Union[str, Path]):
        self._directory = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, name: str) -> Path:
        if not name or os.sep in name or (os.altsep and os.altsep in name):
            raise ValueError(f"Invalid storage name: {name!r}")
        return self._directory / f"{name}.json"

    # ------------------------------------------------------------------
    # Blocking helpers (run in the default executor)
    # ------------------------------------------------------------------

    def _read(self, path: Path) -> Optional[str]:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def _write(self, path: Path, value: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        temp_file = path.with_suffix(".json.tmp")
        # a stale temp file would keep its old permissions
        temp_file.unlink(missing_ok=True)
        try:
            fd = os.open(temp_file, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(temp_file, path)
        finally:
            if temp_file.exists():
                temp_file.unlink()

    def _remove(self, path: Path) -> None:
        path.unlink(missing_ok=True)

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_item(self, name: str) -> Optional[str]:
        return await self._run(self._read, self._path(name))

    async def set_item(self, name: str, value: str) -> None:
        await self._run(self._write, self._path(name), value)
        logger.debug("FileStorage wrote record name=%s", name)

    async def remove_item(self, name: str) -> None:
        await self._run(self._remove, self._path(name))
