"""
KeyStore Configuration — storage backend selection and validated settings.

Reads settings from environment variables:
    KEYSTORE_STORAGE_NAME = <logical record name>
    KEYSTORE_BACKEND      = session | local | auto
    KEYSTORE_STORAGE_DIR  = <directory for durable records>

Security Note:
    Nothing here holds secret material; passphrases are never configured.
"""
import os
import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from .storage import (
    AbstractStorage,
    FileStorage,
    MemoryStorage,
    RoutingStorage,
)

logger = logging.getLogger("navigator.keystore")

DEFAULT_STORAGE_NAME = "valet-openai-key"
BACKENDS = ("session", "local", "auto")


def get_config_dir() -> Path:
    """Get config directory following the XDG base directory layout."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        base = Path(xdg_config)
    else:
        base = Path.home() / ".config"
    return base / "navigator-keystore"


class KeyStoreConfig(BaseModel):
    """Validated keystore configuration."""

    storage_name: str = Field(default=DEFAULT_STORAGE_NAME, min_length=1, max_length=255)
    backend: str = Field(default="session")
    storage_dir: Path = Field(default_factory=get_config_dir)

    @field_validator("storage_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Storage names become file names; reject path separators."""
        if "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError(f"Invalid storage name: {v!r}")
        return v

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate storage backend is supported."""
        v = v.lower()
        if v not in BACKENDS:
            raise ValueError(f"Unsupported storage backend: {v}")
        return v

    @classmethod
    def from_env(cls) -> "KeyStoreConfig":
        """Create KeyStoreConfig by loading values from environment.

        Returns:
            Populated KeyStoreConfig instance.
        """
        kwargs = {
            "storage_name": os.environ.get("KEYSTORE_STORAGE_NAME", DEFAULT_STORAGE_NAME),
            "backend": os.environ.get("KEYSTORE_BACKEND", "session"),
        }
        storage_dir = os.environ.get("KEYSTORE_STORAGE_DIR")
        if storage_dir:
            kwargs["storage_dir"] = Path(storage_dir).expanduser()
        return cls(**kwargs)

    def build_storage(self) -> AbstractStorage:
        """Instantiate the configured storage backend."""
        logger.debug(
            "Using %s storage for record %s", self.backend, self.storage_name,
        )
        if self.backend == "local":
            return FileStorage(self.storage_dir)
        if self.backend == "auto":
            return RoutingStorage(
                durable=FileStorage(self.storage_dir),
                volatile=MemoryStorage(),
            )
        return MemoryStorage()
