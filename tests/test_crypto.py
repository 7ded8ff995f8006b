"""
Tests for the KeyStore crypto core.

Tests cover:
- PBKDF2 key derivation (determinism, salt validation)
- AES-GCM round-trip and non-determinism of envelopes
- Fail-closed decryption (wrong passphrase, tampering)
- Envelope model validation
"""
import pytest
from pydantic import ValidationError

from navigator_keystore.crypto import (
    KEY_LENGTH,
    decrypt,
    derive_key,
    encrypt,
    ensure_cipher_available,
)
from navigator_keystore.exceptions import DecryptionError
from navigator_keystore.models import Envelope, IV_SIZE, SALT_SIZE, TAG_SIZE


class TestDeriveKey:
    """Tests for passphrase key derivation."""

    def test_key_length(self):
        """Derived keys are 32 bytes (AES-256)."""
        key = derive_key("orange", b"\x00" * SALT_SIZE)
        assert len(key) == KEY_LENGTH

    def test_deterministic(self):
        """Same passphrase and salt give the same key."""
        salt = b"\x01" * SALT_SIZE
        assert derive_key("orange", salt) == derive_key("orange", salt)

    def test_salt_changes_key(self):
        """Different salts give different keys."""
        assert derive_key("orange", b"\x01" * SALT_SIZE) != derive_key(
            "orange", b"\x02" * SALT_SIZE
        )

    def test_wrong_salt_length(self):
        """Salts must be exactly 16 bytes."""
        with pytest.raises(ValueError):
            derive_key("orange", b"short")


class TestEncryptDecrypt:
    """Tests for authenticated encryption."""

    @pytest.mark.parametrize("secret,passphrase", [
        ("sk-123", "orange"),
        ("", "orange"),
        ("clé-ünïcødé-🔑", "pässwörd"),
        ("x" * 4096, "a"),
    ])
    def test_round_trip(self, secret, passphrase):
        """decrypt(encrypt(s, p), p) == s."""
        assert decrypt(encrypt(secret, passphrase), passphrase) == secret

    def test_envelope_sizes(self):
        """Envelopes carry a 12-byte iv, 16-byte salt and tagged ciphertext."""
        envelope = encrypt("sk-123", "orange")
        assert len(envelope.iv) == IV_SIZE
        assert len(envelope.salt) == SALT_SIZE
        assert len(envelope.data) == len("sk-123") + TAG_SIZE

    def test_fresh_iv_and_salt(self):
        """Encrypting the same input twice never reuses iv or salt."""
        first = encrypt("sk-123", "orange")
        second = encrypt("sk-123", "orange")
        assert first.iv != second.iv
        assert first.salt != second.salt
        assert first.data != second.data

    def test_ciphertext_hides_plaintext(self):
        """The plaintext does not appear in the ciphertext."""
        envelope = encrypt("sk-secret-value", "orange")
        assert b"sk-secret-value" not in envelope.data

    def test_wrong_passphrase_fails_closed(self):
        """A different passphrase raises DecryptionError."""
        envelope = encrypt("sk-123", "orange")
        with pytest.raises(DecryptionError):
            decrypt(envelope, "apple")

    def test_tampered_data_fails_closed(self):
        """Flipping a ciphertext bit raises DecryptionError."""
        envelope = encrypt("sk-123", "orange")
        data = bytearray(envelope.data)
        data[0] ^= 0x01
        tampered = Envelope(iv=envelope.iv, salt=envelope.salt, data=bytes(data))
        with pytest.raises(DecryptionError):
            decrypt(tampered, "orange")

    def test_tampered_iv_fails_closed(self):
        """A different iv raises DecryptionError."""
        envelope = encrypt("sk-123", "orange")
        iv = bytes(b ^ 0xFF for b in envelope.iv)
        tampered = Envelope(iv=iv, salt=envelope.salt, data=envelope.data)
        with pytest.raises(DecryptionError):
            decrypt(tampered, "orange")

    def test_cipher_available(self):
        """AES-GCM is available in the test runtime."""
        ensure_cipher_available()


class TestEnvelopeModel:
    """Tests for Envelope validation and serialization."""

    def test_accepts_int_lists(self):
        """Byte arrays may be given as lists of ints."""
        envelope = Envelope(iv=[0] * 12, salt=[1] * 16, data=[2] * 16)
        assert envelope.iv == bytes(12)
        assert envelope.salt == b"\x01" * 16

    def test_dumps_int_lists(self):
        """Serialized envelopes use lists of ints."""
        dumped = Envelope(iv=[0] * 12, salt=[1] * 16, data=[2] * 20).model_dump()
        assert dumped["iv"] == [0] * 12
        assert dumped["data"] == [2] * 20

    @pytest.mark.parametrize("field,value", [
        ("iv", [0] * 11),
        ("salt", [0] * 15),
        ("data", [0] * 4),
        ("iv", [0] * 11 + [256]),
        ("iv", ["a"] * 12),
        ("salt", "not-a-list"),
    ])
    def test_rejects_bad_arrays(self, field, value):
        """Wrong lengths, out-of-range or non-int values are rejected."""
        fields = {"iv": [0] * 12, "salt": [0] * 16, "data": [0] * 16}
        fields[field] = value
        with pytest.raises(ValidationError):
            Envelope(**fields)

    def test_repr_hides_bytes(self):
        """The repr only shows sizes."""
        envelope = encrypt("sk-123", "orange")
        assert repr(envelope) == "<Envelope iv=12B salt=16B data=22B>"
