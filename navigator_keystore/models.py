"""
KeyStore data models — envelopes, persisted records and in-memory state.

Security Note:
    ``PersistIntent.passphrase`` is a ``SecretStr``; it is masked in every
    repr and is never part of a serialized ``StorageRecord``.
"""
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_serializer,
    field_validator,
)

IV_SIZE = 12  # 96-bit GCM nonce
SALT_SIZE = 16
TAG_SIZE = 16  # GCM authentication tag
RECORD_VERSION = 1
PROVIDERS = ("openai", "anthropic")


class KeyStatus(str, Enum):
    """Lifecycle of the in-memory secret."""
    EMPTY = "empty"
    SET = "set"
    LOCKED = "locked"


class RehydrateStatus(str, Enum):
    """Outcome of loading the persisted record at startup."""
    OK = "ok"
    LOCKED = "locked"
    ABSENT = "absent"


def _as_bytes(value: Any) -> bytes:
    """Accept raw bytes or a JSON array of ints in range 0..255."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, list):
        if not all(isinstance(v, int) and not isinstance(v, bool) for v in value):
            raise ValueError("byte array must contain integers only")
        try:
            return bytes(value)
        except ValueError as err:
            raise ValueError(str(err)) from err
    raise ValueError(f"expected a byte array, got {type(value).__name__}")


class Envelope(BaseModel):
    """Result of one encryption: IV, salt and ciphertext (with GCM tag)."""

    iv: bytes
    salt: bytes
    data: bytes

    model_config = ConfigDict(frozen=True)

    @field_validator("iv", "salt", "data", mode="before")
    @classmethod
    def coerce_bytes(cls, v: Any) -> bytes:
        return _as_bytes(v)

    @field_validator("iv")
    @classmethod
    def validate_iv(cls, v: bytes) -> bytes:
        if len(v) != IV_SIZE:
            raise ValueError(f"iv must be {IV_SIZE} bytes, got {len(v)}")
        return v

    @field_validator("salt")
    @classmethod
    def validate_salt(cls, v: bytes) -> bytes:
        if len(v) != SALT_SIZE:
            raise ValueError(f"salt must be {SALT_SIZE} bytes, got {len(v)}")
        return v

    @field_validator("data")
    @classmethod
    def validate_data(cls, v: bytes) -> bytes:
        if len(v) < TAG_SIZE:
            raise ValueError(
                f"data too short: {len(v)} bytes (minimum {TAG_SIZE})"
            )
        return v

    @field_serializer("iv", "salt", "data")
    def serialize_bytes(self, v: bytes) -> list[int]:
        return list(v)

    def __repr__(self) -> str:
        return f"<Envelope iv={len(self.iv)}B salt={len(self.salt)}B data={len(self.data)}B>"


class RecordState(BaseModel):
    """The ``state`` object of a persisted record."""

    api_key: Optional[str] = Field(default=None, alias="apiKey", repr=False)
    provider: Optional[str] = None
    model: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class StorageRecord(BaseModel):
    """Top-level JSON document written to the storage backend."""

    version: int = RECORD_VERSION
    state: RecordState = Field(default_factory=RecordState)

    def to_dict(self) -> dict:
        data = self.model_dump(by_alias=True)
        # provider and model are optional extras; apiKey is always present
        data["state"] = {
            k: v for k, v in data["state"].items()
            if v is not None or k == "apiKey"
        }
        return data

    @property
    def api_key(self) -> Optional[str]:
        return self.state.api_key


class PersistIntent(BaseModel):
    """Whether a secret should survive reload, and how to protect it."""

    remember: bool = False
    passphrase: Optional[SecretStr] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("passphrase", mode="before")
    @classmethod
    def empty_is_none(cls, v: Any) -> Any:
        # an empty passphrase would silently derive a guessable key
        if v == "":
            return None
        return v

    def get_passphrase(self) -> Optional[str]:
        if self.passphrase is None:
            return None
        return self.passphrase.get_secret_value()


class KeyState(BaseModel):
    """Snapshot of the store returned by ``KeyStore.get_state()``."""

    api_key: Optional[str] = Field(default=None, repr=False)
    status: KeyStatus = KeyStatus.EMPTY
    provider: Optional[str] = None
    model: Optional[str] = None

    model_config = ConfigDict(frozen=True)
