"""
Exception classes for keyring operations.

Every failure surfaces as a subclass of KeyringError and is raised to the
immediate caller. Nothing here is retried or logged.
"""

from __future__ import annotations


class KeyringError(Exception):
    """Base exception for all keyring operations."""

    pass


class EmptyKeyringError(KeyringError):
    """No keys were supplied when building a keyring."""

    def __init__(self, message: str = "You must provide at least 1 key") -> None:
        super().__init__(message)


class EmptyKeyStoreError(KeyringError):
    """The key store holds no keys, so there is no current key."""

    def __init__(self, message: str = "Key store is empty") -> None:
        super().__init__(message)


class KeyFormatError(KeyringError):
    """Decoded key secret has the wrong byte length."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected key with {expected} bytes, got {actual} bytes")


class KeyNotFoundError(KeyringError):
    """Key id is not present in the key store."""

    def __init__(self, key_id: int) -> None:
        self.key_id = key_id
        super().__init__(f"Key with id={key_id} doesn't exist")


class InvalidKeyIdError(KeyringError):
    """Key id is not a non-negative integer."""

    pass


class DecodeError(KeyringError):
    """Text could not be decoded (invalid base64 or invalid UTF-8)."""

    pass


class CryptoError(KeyringError):
    """Envelope encryption or decryption failed."""

    pass


class AuthenticationError(CryptoError):
    """HMAC verification failed: the envelope was tampered with or the key is wrong."""

    def __init__(self, message: str = "HMAC couldn't be verified") -> None:
        super().__init__(message)


class MalformedEnvelopeError(CryptoError):
    """Envelope is too short or not block aligned."""

    pass


class SerializationError(KeyringError):
    """Serialization or deserialization error."""

    pass


class ConfigError(KeyringError):
    """Configuration error."""

    pass


class StorageError(KeyringError):
    """Storage backend error (database)."""

    pass
