"""Navigator KeyStore — Passphrase-protected storage for a single API key.

Security Note (Threat Model):
    The key is held in clear in process memory for the session. Only the
    persisted record is protected: with a passphrase it is stored as an
    AES-256-GCM envelope and the passphrase itself is never persisted.
    A compromised runtime can always read live memory.
"""
from .version import __version__
from .conf import KeyStoreConfig
from .exceptions import (
    KeyStoreError,
    DecryptionError,
    EncryptionError,
    StorageError,
    MissingKeyError,
    ChatError,
)
from .models import (
    Envelope,
    KeyState,
    KeyStatus,
    PersistIntent,
    RehydrateStatus,
    StorageRecord,
)
from .storage import (
    FileStorage,
    MemoryStorage,
    PersistenceAdapter,
    RoutingStorage,
)
from .store import KeyStore

__all__ = [
    "__version__",
    "KeyStore",
    "KeyStoreConfig",
    "KeyStoreError",
    "DecryptionError",
    "EncryptionError",
    "StorageError",
    "MissingKeyError",
    "ChatError",
    "Envelope",
    "KeyState",
    "KeyStatus",
    "PersistIntent",
    "RehydrateStatus",
    "StorageRecord",
    "FileStorage",
    "MemoryStorage",
    "PersistenceAdapter",
    "RoutingStorage",
]
