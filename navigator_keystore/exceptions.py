"""KeyStore error taxonomy.

Callers must be able to tell "no secret stored" apart from "secret exists
but is locked" and from "wrong passphrase", so each failure mode has its
own exception class.
"""


class KeyStoreError(Exception):
    """Base exception for keystore errors."""
    pass


class DecryptionError(KeyStoreError):
    """Authentication tag mismatch: wrong passphrase or tampered envelope."""
    pass


class EncryptionError(KeyStoreError):
    """The AEAD primitive is unavailable or failed to encrypt."""
    pass


class StorageError(KeyStoreError):
    """Storage backend unavailable or the stored record is malformed."""
    pass


class MissingKeyError(KeyStoreError):
    """An outbound request was attempted with no API key set."""
    pass


class ChatError(KeyStoreError):
    """The chat endpoint answered with a non-success status."""

    def __init__(self, status: int, message: str):
        super().__init__(f"Chat request failed ({status}): {message}")
        self.status = status
