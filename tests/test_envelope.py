"""
Tests for the Envelope Codec.

Tests cover:
- StorageRecord construction for every PersistIntent combination
- The no-plaintext-at-rest invariant with a passphrase
- Decoding plain, locked, encrypted and corrupted records
- The passphrase never reaching the record
"""
import base64

import orjson
import pytest

from navigator_keystore.crypto import encrypt
from navigator_keystore.envelope import (
    decode_envelope,
    encode_envelope,
    from_record,
    from_record_async,
    is_envelope,
    to_record,
    to_record_async,
)
from navigator_keystore.exceptions import DecryptionError, StorageError
from navigator_keystore.models import (
    KeyStatus,
    PersistIntent,
    RecordState,
    StorageRecord,
)


def record_of(api_key):
    return StorageRecord(state=RecordState(api_key=api_key))


class TestToRecord:
    """Tests for building the persisted record."""

    def test_not_remembered(self):
        """Without remember nothing is persisted."""
        record = to_record("sk-123", PersistIntent(remember=False))
        assert record.to_dict() == {"version": 1, "state": {"apiKey": None}}

    def test_default_intent(self):
        """A missing intent means do not remember."""
        assert to_record("sk-123").api_key is None

    def test_remember_plaintext(self):
        """Remember without passphrase stores the raw secret."""
        record = to_record("sk-123", PersistIntent(remember=True))
        assert record.to_dict() == {"version": 1, "state": {"apiKey": "sk-123"}}

    def test_cleared_secret(self):
        """A None secret persists as null even when remembered."""
        record = to_record(None, PersistIntent(remember=True, passphrase="x"))
        assert record.api_key is None

    def test_empty_passphrase_is_none(self):
        """An empty passphrase is treated as no passphrase."""
        intent = PersistIntent(remember=True, passphrase="")
        assert intent.get_passphrase() is None

    def test_passphrase_is_encrypted(self):
        """With a passphrase the stored value is an envelope, not the secret."""
        secret = "sk-123"
        record = to_record(secret, PersistIntent(remember=True, passphrase="x"))
        value = record.api_key
        assert value != secret
        assert is_envelope(value)
        decoded = base64.b64decode(value)
        assert secret.encode() not in decoded
        assert value != base64.b64encode(secret.encode()).decode()
        assert set(orjson.loads(decoded)) == {"iv", "salt", "data"}

    def test_passphrase_not_in_record(self):
        """The passphrase never appears in the serialized record."""
        record = to_record(
            "sk-123", PersistIntent(remember=True, passphrase="orange-passphrase")
        )
        payload = orjson.dumps(record.to_dict())
        assert b"orange-passphrase" not in payload
        assert b"orange-passphrase" not in base64.b64decode(record.api_key)

    def test_provider_and_model(self):
        """Provider and model are stored next to the key."""
        record = to_record(
            "sk-123", PersistIntent(remember=True), provider="anthropic", model="claude-x"
        )
        assert record.to_dict() == {
            "version": 1,
            "state": {"apiKey": "sk-123", "provider": "anthropic", "model": "claude-x"},
        }

    def test_intent_repr_masks_passphrase(self):
        """PersistIntent never shows the passphrase."""
        intent = PersistIntent(remember=True, passphrase="orange")
        assert "orange" not in repr(intent)
        assert "orange" not in str(intent)

    @pytest.mark.asyncio
    async def test_async_variant(self):
        """to_record_async produces an equivalent record."""
        record = await to_record_async(
            "sk-123", PersistIntent(remember=True, passphrase="x")
        )
        assert from_record(record, "x") == "sk-123"


class TestFromRecord:
    """Tests for recovering the secret from a record."""

    def test_plain_secret(self):
        """Plain strings are returned as-is."""
        assert from_record(record_of("sk-123")) == "sk-123"

    def test_jwt_like_secret_is_plain(self):
        """Keys that start like base64 JSON but contain dots stay plain."""
        jwt = "eyJhbGciOiJIUzI1NiJ9.eyJzdWIiOiIxIn0.c2ln"
        assert from_record(record_of(jwt)) == jwt

    def test_base64_json_secret_is_plain(self):
        """A key that is valid base64 JSON but not an envelope stays plain."""
        secret = "eyJhbGciOiJIUzI1NiJ9"
        assert not is_envelope(secret)
        assert from_record(record_of(secret)) == secret

    def test_reordered_envelope_keys(self):
        """An envelope is recognized by its keys, not their order."""
        envelope = encrypt("sk-123", "x").model_dump()
        value = base64.b64encode(
            orjson.dumps({k: envelope[k] for k in ("salt", "data", "iv")})
        ).decode()
        assert is_envelope(value)
        assert from_record(record_of(value)) is KeyStatus.LOCKED
        assert from_record(record_of(value), "x") == "sk-123"

    def test_null_secret(self):
        """A null apiKey decodes to None."""
        assert from_record(record_of(None)) is None

    def test_locked_without_passphrase(self):
        """An envelope with no passphrase is locked."""
        record = to_record("sk-123", PersistIntent(remember=True, passphrase="x"))
        assert from_record(record) is KeyStatus.LOCKED

    def test_decrypts_with_passphrase(self):
        """The right passphrase restores the secret."""
        record = to_record("sk-123", PersistIntent(remember=True, passphrase="x"))
        assert from_record(record, "x") == "sk-123"

    def test_wrong_passphrase(self):
        """A wrong passphrase raises DecryptionError."""
        record = to_record("sk-123", PersistIntent(remember=True, passphrase="x"))
        with pytest.raises(DecryptionError):
            from_record(record, "y")

    def test_unsupported_version(self):
        """Unknown record versions fail closed."""
        record = StorageRecord(version=2, state=RecordState(api_key="sk-123"))
        with pytest.raises(StorageError):
            from_record(record)

    def test_truncated_envelope(self):
        """A truncated envelope raises StorageError, not a crash."""
        value = encode_envelope(encrypt("sk-123", "x"))
        truncated = value[:40]
        with pytest.raises(StorageError):
            from_record(record_of(truncated), "x")

    def test_wrong_length_arrays(self):
        """Wrong-length byte arrays raise StorageError."""
        bad = base64.b64encode(
            orjson.dumps({"iv": [0] * 8, "salt": [0] * 16, "data": [0] * 16})
        ).decode()
        with pytest.raises(StorageError):
            from_record(record_of(bad), "x")

    def test_not_an_object(self):
        """An envelope that decodes to a JSON array raises StorageError."""
        with pytest.raises(StorageError):
            decode_envelope(base64.b64encode(b"[1, 2, 3]").decode())

    def test_invalid_json(self):
        """An envelope with broken JSON raises StorageError."""
        with pytest.raises(StorageError):
            decode_envelope(base64.b64encode(b'{"iv"').decode())

    def test_invalid_base64(self):
        """Non-base64 input raises StorageError."""
        with pytest.raises(StorageError):
            decode_envelope("eyJ!!!")

    @pytest.mark.asyncio
    async def test_async_variant(self):
        """from_record_async decrypts in the executor."""
        record = to_record("sk-123", PersistIntent(remember=True, passphrase="x"))
        assert await from_record_async(record, "x") == "sk-123"
