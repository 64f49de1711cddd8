"""
Keyring service.

This module provides:
- Keyring: Encrypts with the current key, decrypts with any known key
- EncryptedMessage: Result of Keyring.encrypt
- create_keyring: Build a Keyring from a mapping of ids to base64 secrets
- parse_keys: Parse a JSON key map

Digests are SHA1(message + digest_salt). They do not depend on any key, so
a digest column stays valid for lookups after rotation.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Union

from .crypto import AES128CBC, AesCbcHmacCipher, Algorithm
from .errors import EmptyKeyringError, InvalidKeyIdError, SerializationError
from .keys import Key, KeyStore

logger = logging.getLogger(__name__)

KeyMap = Mapping[Union[str, int], str]


@dataclass(frozen=True)
class EncryptedMessage:
    """Result of Keyring.encrypt."""

    encrypted: str  # base64 envelope
    digest: str  # 40-char lowercase hex SHA1
    key_id: int  # Needed to decrypt


class Keyring:
    """
    Encrypts and decrypts messages with a rotating set of keys.

    New messages always use the current key (highest id). Decryption uses
    the key id recorded alongside the message.
    """

    def __init__(
        self,
        keys: KeyStore,
        digest_salt: str = "",
    ) -> None:
        """
        Initialize Keyring.

        Args:
            keys: KeyStore holding at least one key
            digest_salt: Suffix appended to messages before hashing
        """
        self._keys = keys
        self._digest_salt = digest_salt

    @classmethod
    def from_env(
        cls,
        env_file: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> Keyring:
        """
        Build a Keyring from KEYRING_* environment variables.

        See rotating_keyring.config.load_settings.
        """
        from .config import keyring_from_env

        return keyring_from_env(env_file=env_file, environ=environ)

    @property
    def keys(self) -> KeyStore:
        return self._keys

    @property
    def digest_salt(self) -> str:
        return self._digest_salt

    @property
    def algorithm(self) -> Algorithm:
        return self._keys.algorithm

    def digest(self, message: str) -> str:
        """Return the hex SHA1 of message + digest_salt."""
        return hashlib.sha1(
            (message + self._digest_salt).encode("utf-8")
        ).hexdigest()

    def encrypt(self, message: str) -> EncryptedMessage:
        """
        Encrypt message with the current key.

        Raises:
            EmptyKeyStoreError: If there is no key
        """
        key = self._keys.current()
        return EncryptedMessage(
            encrypted=AesCbcHmacCipher.encrypt(key, message),
            digest=self.digest(message),
            key_id=key.id,
        )

    def decrypt(self, encrypted: str, key_id: int) -> str:
        """
        Decrypt an envelope produced with key key_id.

        Raises:
            KeyNotFoundError: If key_id is unknown
            DecodeError: If the envelope is not valid base64
            MalformedEnvelopeError: If the envelope is truncated
            AuthenticationError: If the envelope fails HMAC verification
        """
        key = self._keys.get(key_id)
        return AesCbcHmacCipher.decrypt(key, encrypted)

    def rotate(self, key_id: int, encoded: str) -> Key:
        """Add a new key; it becomes current if key_id is the highest id."""
        key = self._keys.add(key_id, encoded)
        logger.debug("Rotated keyring, current key id=%d", self._keys.current().id)
        return key


def _parse_key_id(raw: Union[str, int]) -> int:
    if isinstance(raw, str):
        try:
            return int(raw.strip(), 10)
        except ValueError:
            raise InvalidKeyIdError(f"Key id must be an integer, got {raw!r}") from None
    return raw


def create_keyring(
    keys: KeyMap,
    digest_salt: str = "",
    algorithm: Algorithm = AES128CBC,
) -> Keyring:
    """
    Build a Keyring from a mapping of ids to base64 secrets.

    Args:
        keys: Mapping of key id (int or decimal string) to base64 secret
        digest_salt: Suffix appended to messages before hashing
        algorithm: AES128CBC, AES192CBC or AES256CBC

    Returns:
        Keyring instance

    Raises:
        EmptyKeyringError: If keys is empty
        InvalidKeyIdError: If an id is not a non-negative integer
        DecodeError: If a secret is not valid base64
        KeyFormatError: If a secret has the wrong length
    """
    if not keys:
        raise EmptyKeyringError()

    store = KeyStore(algorithm)
    for raw_id, encoded in keys.items():
        store.add(_parse_key_id(raw_id), encoded)

    return Keyring(store, digest_salt=digest_salt)


def parse_keys(json_text: str) -> Dict[str, str]:
    """
    Parse a JSON object of key ids to base64 secrets.

    Raises:
        SerializationError: If the text is not a JSON object of strings
    """
    try:
        data = json.loads(json_text)
    except ValueError as e:
        raise SerializationError(f"Failed to parse keys: {e}") from e

    if not isinstance(data, dict):
        raise SerializationError("Keys must be a JSON object")
    for key_id, encoded in data.items():
        if not isinstance(encoded, str):
            raise SerializationError(f"Key {key_id!r} must be a string")

    return data
