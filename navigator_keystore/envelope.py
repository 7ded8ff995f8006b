"""
Envelope Codec — Converts between the in-memory secret and StorageRecord.

Record shape::

    {"version": 1, "state": {"apiKey": <secret | EnvelopeB64 | null>,
                             "provider": <str>, "model": <str>}}

where ``EnvelopeB64`` is base64 of ``{"iv": [..12], "salt": [..16], "data": [..]}``.

Security Note:
    The passphrase is only used for the duration of one encrypt/decrypt call
    and is never written into the record.
"""
import re
import base64
import asyncio
import binascii
import functools
from typing import Any, Optional, Union

import orjson
from pydantic import ValidationError

from .crypto import encrypt, decrypt
from .exceptions import StorageError
from .models import (
    Envelope,
    KeyStatus,
    PersistIntent,
    RecordState,
    StorageRecord,
    RECORD_VERSION,
)

# base64 of '{"iv":', the first bytes encode_envelope always emits
_ENVELOPE_PREFIX = "eyJpdiI6"
_ENVELOPE_KEYS = frozenset({"iv", "salt", "data"})
_B64_PATTERN = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")

Secret = Optional[str]
Decoded = Union[str, KeyStatus, None]


def encode_envelope(envelope: Envelope) -> str:
    """Serialize an envelope into a base64 string."""
    return base64.b64encode(orjson.dumps(envelope.model_dump())).decode("ascii")


def _peek_json(value: str) -> Any:
    try:
        return orjson.loads(base64.b64decode(value, validate=True))
    except ValueError:
        return None


def is_envelope(value: str) -> bool:
    """Return True if a stored apiKey value is an encoded envelope.

    A value is an envelope when it carries the exact prefix written by
    :func:`encode_envelope` (so a truncated envelope still fails closed),
    or when it decodes to a JSON object with exactly the keys
    ``iv``, ``salt`` and ``data``. Anything else is a plaintext key, even
    if it happens to be base64 JSON (``eyJhbGciOiJIUzI1NiJ9``).
    """
    if not _B64_PATTERN.match(value):
        return False
    if value.startswith(_ENVELOPE_PREFIX):
        return True
    parsed = _peek_json(value)
    return isinstance(parsed, dict) and set(parsed) == _ENVELOPE_KEYS


def decode_envelope(value: str) -> Envelope:
    """Parse a base64 envelope string.

    Raises:
        StorageError: If the value is not valid base64, not JSON, or the
            byte arrays have the wrong length.
    """
    try:
        raw = base64.b64decode(value, validate=True)
        parsed = orjson.loads(raw)
    except (binascii.Error, ValueError) as err:
        raise StorageError(f"Malformed envelope encoding: {err}") from err
    if not isinstance(parsed, dict):
        raise StorageError("Malformed envelope: expected a JSON object")
    try:
        return Envelope.model_validate(parsed)
    except ValidationError as err:
        raise StorageError(
            f"Malformed envelope: {err.error_count()} invalid field(s)"
        ) from err


def to_record(
    secret: Secret,
    intent: Optional[PersistIntent] = None,
    provider: Optional[str] = None,
    model: Optional[str] = None,
) -> StorageRecord:
    """Build the record to persist for a secret.

    - not remembered, or secret unset: ``apiKey`` is null
    - remembered without passphrase: the raw secret (plaintext at rest)
    - remembered with passphrase: an encoded envelope

    ``provider`` and ``model`` are not secret and are stored as given.

    Raises:
        EncryptionError: If encryption fails; never falls back to plaintext.
    """
    intent = intent or PersistIntent()
    api_key = None
    if secret is not None and intent.remember:
        passphrase = intent.get_passphrase()
        if passphrase is None:
            api_key = secret
        else:
            api_key = encode_envelope(encrypt(secret, passphrase))
    return StorageRecord(
        state=RecordState(api_key=api_key, provider=provider, model=model)
    )


def from_record(record: StorageRecord, passphrase: Optional[str] = None) -> Decoded:
    """Recover the secret from a persisted record.

    Returns:
        The secret, ``KeyStatus.LOCKED`` if it is encrypted and no passphrase
        was given, or None if the record holds no secret.

    Raises:
        StorageError: Unsupported record version or malformed envelope.
        DecryptionError: Wrong passphrase or tampered envelope.
    """
    if record.version != RECORD_VERSION:
        raise StorageError(
            f"Unsupported record version {record.version} "
            f"(expected {RECORD_VERSION})"
        )
    value = record.api_key
    if value is None:
        return None
    if not is_envelope(value):
        return value
    envelope = decode_envelope(value)
    if not passphrase:
        return KeyStatus.LOCKED
    return decrypt(envelope, passphrase)


async def to_record_async(
    secret: Secret,
    intent: Optional[PersistIntent] = None,
    provider: Optional[str] = None,
    model: Optional[str] = None,
) -> StorageRecord:
    """Run :func:`to_record` in the default executor; PBKDF2 is slow."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None, functools.partial(to_record, secret, intent, provider, model)
    )


async def from_record_async(
    record: StorageRecord, passphrase: Optional[str] = None
) -> Decoded:
    """Run :func:`from_record` in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None, functools.partial(from_record, record, passphrase)
    )
