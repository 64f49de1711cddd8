"""
Rotating Keyring

Symmetric encryption of short secrets with a versioned set of keys, plus a
salted digest that stays stable across key rotation.

Overview
--------
- Each key is a base64 secret split into an HMAC-SHA256 signing key and an
  AES encryption key
- Messages are encrypted with the current key (highest id) using AES-CBC and
  authenticated with HMAC-SHA256 over IV || ciphertext
- Old keys stay in the keyring so previously stored values keep decrypting
- Digests are SHA1(message + salt) and do not depend on any key, so they can
  be used as lookup / uniqueness columns

Quick Start
-----------
```python
from rotating_keyring import AES128CBC, create_keyring

keyring = create_keyring(
    {"1": "uDiMcWVNTuz//naQ88sOcN+E40CyBRGzGTT7OkoBS6M="},
    digest_salt="<custom salt>",
    algorithm=AES128CBC,
)

encrypted = keyring.encrypt("super secret")
# store encrypted.encrypted, encrypted.key_id and encrypted.digest

decrypted = keyring.decrypt(encrypted.encrypted, encrypted.key_id)

# Rotate: new messages use key 2, key 1 still decrypts old ones
keyring.rotate(2, "VN8UXRVMNbIh9FWEFVde0q7GUA1SGOie1+FgAKlNYHc=")
```

Modules
-------
- `crypto`: Algorithms and the AES-CBC + HMAC-SHA256 envelope cipher
- `keys`: Key derivation and the thread-safe key store
- `keyring`: Keyring service, create_keyring and parse_keys
- `config`: Keyring from KEYRING_* environment variables / .env
- `postgres`: Re-encrypt PostgreSQL columns after rotation
- `errors`: Error types and exception classes
"""

import logging

__version__ = "0.1.0"

# ============================================================================
# Crypto Exports
# ============================================================================

from .crypto import (
    AES128CBC,
    AES192CBC,
    AES256CBC,
    ALGORITHMS,
    BLOCK_SIZE,
    MAC_SIZE,
    AesCbcHmacCipher,
    Algorithm,
    Envelope,
    generate_random_bytes,
)

# ============================================================================
# Error Exports
# ============================================================================

from .errors import (
    AuthenticationError,
    ConfigError,
    CryptoError,
    DecodeError,
    EmptyKeyringError,
    EmptyKeyStoreError,
    InvalidKeyIdError,
    KeyFormatError,
    KeyNotFoundError,
    KeyringError,
    MalformedEnvelopeError,
    SerializationError,
    StorageError,
)

# ============================================================================
# Key Exports
# ============================================================================

from .keys import (
    Key,
    KeyStore,
    derive_key,
    generate_secret,
)

# ============================================================================
# Keyring Exports (Primary API)
# ============================================================================

from .keyring import (
    EncryptedMessage,
    Keyring,
    create_keyring,
    parse_keys,
)

from .config import (
    KeyringSettings,
    keyring_from_env,
    load_settings,
)

# ============================================================================
# PostgreSQL Exports
# ============================================================================

from .postgres import (
    ColumnReencryptor,
    ReencryptionResult,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

# ============================================================================
# Public API
# ============================================================================

__all__ = [
    # Version
    "__version__",
    # Crypto
    "AES128CBC",
    "AES192CBC",
    "AES256CBC",
    "ALGORITHMS",
    "BLOCK_SIZE",
    "MAC_SIZE",
    "Algorithm",
    "AesCbcHmacCipher",
    "Envelope",
    "generate_random_bytes",
    # Errors
    "KeyringError",
    "EmptyKeyringError",
    "EmptyKeyStoreError",
    "KeyFormatError",
    "KeyNotFoundError",
    "InvalidKeyIdError",
    "DecodeError",
    "CryptoError",
    "AuthenticationError",
    "MalformedEnvelopeError",
    "SerializationError",
    "ConfigError",
    "StorageError",
    # Keys
    "Key",
    "KeyStore",
    "derive_key",
    "generate_secret",
    # Keyring (Primary API)
    "Keyring",
    "EncryptedMessage",
    "create_keyring",
    "parse_keys",
    # Config
    "KeyringSettings",
    "load_settings",
    "keyring_from_env",
    # PostgreSQL
    "ColumnReencryptor",
    "ReencryptionResult",
]
