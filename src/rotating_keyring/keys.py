"""
Key derivation and the versioned key store.

This module provides:
- Key: One keyring entry, split into a signing key and an encryption key
- derive_key: Build a Key from a base64 secret
- KeyStore: Thread-safe mapping of integer ids to keys
- generate_secret: Produce a fresh base64 secret for an algorithm

Each secret decodes to 2 * key_size bytes. The first half is the HMAC signing
key, the second half is the AES encryption key. The key with the highest id is
the current key; older keys stay available to decrypt existing envelopes.
"""

from __future__ import annotations

import base64
import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from .crypto import Algorithm, b64decode, generate_random_bytes
from .errors import (
    EmptyKeyStoreError,
    InvalidKeyIdError,
    KeyFormatError,
    KeyNotFoundError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False, repr=False)
class Key:
    """
    A derived key pair identified by an integer id.

    The decoded secret is held in one bytearray; signing_key is its first
    half and encryption_key its second. The bytearray is zeroed when the key
    is garbage collected (best-effort, CPython gives no timing guarantee).
    """

    id: int
    encoded: str
    size: int
    secret: bytearray

    @property
    def signing_key(self) -> bytes:
        """HMAC-SHA256 key."""
        return bytes(self.secret[: self.size])

    @property
    def encryption_key(self) -> bytes:
        """AES key."""
        return bytes(self.secret[self.size :])

    def __repr__(self) -> str:
        return f"Key(id={self.id}, size={self.size}, secret=[REDACTED])"

    def __del__(self) -> None:
        secret = self.__dict__.get("secret")
        if secret is not None:
            for i in range(len(secret)):
                secret[i] = 0


def validate_key_id(key_id: object) -> int:
    """
    Check that key_id is a non-negative integer.

    Raises:
        InvalidKeyIdError: If it is not
    """
    if isinstance(key_id, bool) or not isinstance(key_id, int) or key_id < 0:
        raise InvalidKeyIdError(f"Key id must be a non-negative integer, got {key_id!r}")
    return key_id


def derive_key(key_id: int, encoded: str, key_size: int) -> Key:
    """
    Split a base64 secret into signing and encryption keys.

    Zero bytes are not trimmed from the decoded secret, so a secret whose last
    byte is 0x00 is accepted. The Go keyring trims zeros from both ends of its
    decode buffer and rejects such a secret as too short.

    Args:
        key_id: Non-negative key id
        encoded: Standard base64 secret of 2 * key_size bytes
        key_size: AES key size in bytes (16, 24 or 32)

    Returns:
        Key with both halves

    Raises:
        InvalidKeyIdError: If key_id is not a non-negative integer
        DecodeError: If encoded is not valid base64
        KeyFormatError: If the decoded secret is not 2 * key_size bytes
    """
    validate_key_id(key_id)
    secret = b64decode(encoded)

    expected = key_size * 2
    if len(secret) != expected:
        raise KeyFormatError(expected=expected, actual=len(secret))

    return Key(
        id=key_id,
        encoded=encoded,
        size=key_size,
        secret=bytearray(secret),
    )


def generate_secret(algorithm: Algorithm) -> str:
    """Generate a random base64 secret suitable for algorithm."""
    return base64.standard_b64encode(
        generate_random_bytes(algorithm.secret_size)
    ).decode("ascii")


class KeyStore:
    """
    Keys indexed by integer id.

    Uses a threading.RLock so rotation (add) can run while other threads
    encrypt and decrypt.
    """

    def __init__(self, algorithm: Algorithm) -> None:
        self._algorithm = algorithm
        self._keys: Dict[int, Key] = {}
        self._current_id: Optional[int] = None
        self._lock = threading.RLock()

    @property
    def algorithm(self) -> Algorithm:
        return self._algorithm

    def add(self, key_id: int, encoded: str) -> Key:
        """
        Derive a key and store it under key_id, replacing any existing entry.

        Ids are not required to increase; the highest id is always current.

        Raises:
            InvalidKeyIdError: If key_id is not a non-negative integer
            DecodeError: If encoded is not valid base64
            KeyFormatError: If the decoded secret has the wrong length
        """
        key = derive_key(key_id, encoded, self._algorithm.key_size)

        with self._lock:
            replaced = key_id in self._keys
            self._keys[key_id] = key
            if self._current_id is None or key_id > self._current_id:
                self._current_id = key_id

        logger.debug(
            "%s key id=%d (%s)",
            "Replaced" if replaced else "Added",
            key_id,
            self._algorithm,
        )
        return key

    def get(self, key_id: int) -> Key:
        """
        Get a key by id.

        Raises:
            KeyNotFoundError: If no key has this id
        """
        with self._lock:
            key = self._keys.get(key_id)
        if key is None:
            raise KeyNotFoundError(key_id)
        return key

    def current(self) -> Key:
        """
        Get the key with the highest id.

        Raises:
            EmptyKeyStoreError: If the store holds no keys
        """
        with self._lock:
            if self._current_id is None:
                raise EmptyKeyStoreError()
            return self._keys[self._current_id]

    def ids(self) -> List[int]:
        """List all key ids in ascending order."""
        with self._lock:
            return sorted(self._keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def __contains__(self, key_id: object) -> bool:
        with self._lock:
            return key_id in self._keys

    def __repr__(self) -> str:
        return f"KeyStore(algorithm={self._algorithm}, ids={self.ids()})"
