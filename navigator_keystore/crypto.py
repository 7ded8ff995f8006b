"""
KeyStore Crypto Core — Passphrase key derivation and AEAD encryption.

Every encryption derives a fresh key:
    PBKDF2-HMAC-SHA256(passphrase, salt 16B, 120k iterations) → AES-256-GCM

Security Note:
    Never log plaintext, passphrases or key material.
    Salt and IV are drawn from os.urandom on every call and are never reused.
"""
import os

from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .exceptions import DecryptionError, EncryptionError
from .models import Envelope, IV_SIZE, SALT_SIZE

KEY_LENGTH = 32  # AES-256
PBKDF2_ITERATIONS = 120_000


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(passphrase: str, salt: bytes) -> bytes:
    """Derive a 32-byte AES key from a passphrase using PBKDF2-HMAC-SHA256.

    Args:
        passphrase: User-supplied passphrase.
        salt: 16 random bytes stored alongside the ciphertext.

    Returns:
        32-byte derived key.

    Raises:
        ValueError: If salt is not exactly 16 bytes.
    """
    if len(salt) != SALT_SIZE:
        raise ValueError(
            f"salt must be exactly {SALT_SIZE} bytes, got {len(salt)}"
        )
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(passphrase.encode("utf-8"))


def ensure_cipher_available() -> None:
    """Check that AES-GCM can be constructed in this runtime.

    Raises:
        EncryptionError: If the AEAD primitive is not supported.
    """
    try:
        AESGCM(bytes(KEY_LENGTH))
    except UnsupportedAlgorithm as err:
        raise EncryptionError(
            f"AES-GCM is not available: {err}"
        ) from err


# ---------------------------------------------------------------------------
# Authenticated encryption
# ---------------------------------------------------------------------------

def encrypt(plaintext: str, passphrase: str) -> Envelope:
    """Encrypt a string with a key derived from passphrase.

    Args:
        plaintext: Secret to protect.
        passphrase: Passphrase used to derive the key.

    Returns:
        Envelope with fresh iv and salt, and ciphertext+tag as data.

    Raises:
        EncryptionError: If the cipher is unavailable or encryption fails.
    """
    salt = os.urandom(SALT_SIZE)
    iv = os.urandom(IV_SIZE)
    try:
        key = derive_key(passphrase, salt)
        ct = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    except (UnsupportedAlgorithm, OverflowError, ValueError) as err:
        raise EncryptionError(f"Unable to encrypt secret: {err}") from err
    return Envelope(iv=iv, salt=salt, data=ct)


def decrypt(envelope: Envelope, passphrase: str) -> str:
    """Decrypt an envelope produced by :func:`encrypt`.

    Args:
        envelope: iv, salt and ciphertext+tag.
        passphrase: Passphrase used at encryption time.

    Returns:
        Decrypted plaintext.

    Raises:
        DecryptionError: If the passphrase is wrong or the envelope was
            tampered with.
    """
    key = derive_key(passphrase, envelope.salt)
    try:
        pt = AESGCM(key).decrypt(envelope.iv, envelope.data, None)
    except InvalidTag as err:
        raise DecryptionError(
            "Authentication failed: wrong passphrase or tampered envelope"
        ) from err
    try:
        return pt.decode("utf-8")
    except UnicodeDecodeError as err:
        raise DecryptionError("Decrypted payload is not valid UTF-8") from err
