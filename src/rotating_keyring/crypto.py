"""
Cryptographic primitives for AES-CBC + HMAC-SHA256 envelopes.

This module provides:
- Algorithm: AES-CBC variant descriptor (AES128CBC, AES192CBC, AES256CBC)
- Envelope: Parsed envelope with MAC, IV and ciphertext
- AesCbcHmacCipher: Authenticated encryption/decryption of short strings

Envelope wire format (base64 encoded):

    HMAC-SHA256(iv || ciphertext) (32) || IV (16) || AES-CBC ciphertext (N*16)
"""

from __future__ import annotations

import base64
import binascii
import secrets
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .errors import (
    AuthenticationError,
    ConfigError,
    DecodeError,
    MalformedEnvelopeError,
)

if TYPE_CHECKING:
    from .keys import Key

# Cryptographic constants
BLOCK_SIZE: int = 16  # AES block size in bytes, also the IV size
MAC_SIZE: int = 32  # HMAC-SHA256 output
HEADER_SIZE: int = MAC_SIZE + BLOCK_SIZE


@dataclass(frozen=True)
class Algorithm:
    """
    AES-CBC algorithm descriptor.

    All variants share the same envelope layout and differ only in AES key
    length. `has_auth_data` is reserved for AEAD modes and is always False;
    the envelope is authenticated with HMAC regardless.
    """

    key_size: int
    name: str
    has_auth_data: bool = False

    @property
    def secret_size(self) -> int:
        """Decoded secret length: signing key + encryption key."""
        return self.key_size * 2

    @classmethod
    def from_name(cls, name: str) -> Algorithm:
        """
        Look up an algorithm by name.

        Accepts "AES-256-CBC" and "AES256CBC" spellings, case-insensitively.

        Raises:
            ConfigError: If the name is unknown
        """
        normalized = name.strip().upper().replace("-", "").replace("_", "")
        for algorithm in ALGORITHMS:
            if algorithm.name.replace("-", "") == normalized:
                return algorithm
        raise ConfigError(f"Unknown algorithm: {name!r}")

    def __str__(self) -> str:
        return self.name


AES128CBC = Algorithm(key_size=16, name="AES-128-CBC")
AES192CBC = Algorithm(key_size=24, name="AES-192-CBC")
AES256CBC = Algorithm(key_size=32, name="AES-256-CBC")

ALGORITHMS = (AES128CBC, AES192CBC, AES256CBC)


@dataclass
class Envelope:
    """Envelope split into its three fields."""

    mac: bytes  # 32 bytes
    iv: bytes  # 16 bytes
    ciphertext: bytes  # N * 16 bytes

    def to_blob(self) -> bytes:
        """Concatenate as mac || iv || ciphertext."""
        return self.mac + self.iv + self.ciphertext

    @classmethod
    def from_blob(cls, blob: bytes) -> Envelope:
        """
        Split a raw envelope.

        Raises:
            MalformedEnvelopeError: If blob cannot hold a MAC and an IV
        """
        if len(blob) < HEADER_SIZE:
            raise MalformedEnvelopeError(
                f"Envelope too small: expected at least {HEADER_SIZE} bytes, got {len(blob)}"
            )
        return cls(
            mac=blob[:MAC_SIZE],
            iv=blob[MAC_SIZE:HEADER_SIZE],
            ciphertext=blob[HEADER_SIZE:],
        )

    def to_base64(self) -> str:
        return base64.standard_b64encode(self.to_blob()).decode("ascii")

    @classmethod
    def from_base64(cls, encoded: str) -> Envelope:
        """
        Decode from base64 string.

        Raises:
            DecodeError: If the text is not valid base64
            MalformedEnvelopeError: If the decoded envelope is too small
        """
        return cls.from_blob(b64decode(encoded))


def b64decode(encoded: str) -> bytes:
    """
    Strict standard base64 decoding.

    Raises:
        DecodeError: If the text is not valid base64
    """
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise DecodeError(f"Base64 decode error: {e}") from e


def generate_random_bytes(length: int) -> bytes:
    """Generate cryptographically secure random bytes."""
    return secrets.token_bytes(length)


def _sign(signing_key: bytes, iv: bytes, ciphertext: bytes) -> hmac.HMAC:
    mac = hmac.HMAC(signing_key, hashes.SHA256())
    mac.update(iv + ciphertext)
    return mac


def _trim_padding(data: bytes) -> bytes:
    # The last byte is trusted as the pad length; pad bytes are not checked.
    if not data:
        return data
    return data[: max(len(data) - data[-1], 0)]


class AesCbcHmacCipher:
    """
    AES-CBC encryption authenticated with HMAC-SHA256 (encrypt-then-MAC).

    The signing half of the key only feeds HMAC, the encryption half only
    feeds AES.
    """

    @staticmethod
    def encrypt(key: Key, plaintext: str) -> str:
        """
        Encrypt plaintext into a base64 envelope.

        Args:
            key: Key providing the signing and encryption halves
            plaintext: Message to encrypt

        Returns:
            Base64-encoded mac || iv || ciphertext
        """
        iv = generate_random_bytes(BLOCK_SIZE)

        padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

        encryptor = Cipher(
            algorithms.AES(key.encryption_key), modes.CBC(iv)
        ).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()

        mac = _sign(key.signing_key, iv, ciphertext).finalize()

        return Envelope(mac=mac, iv=iv, ciphertext=ciphertext).to_base64()

    @staticmethod
    def decrypt(key: Key, encoded: str) -> str:
        """
        Verify and decrypt a base64 envelope.

        The MAC is always checked before any decryption happens.

        Args:
            key: Key the envelope was produced with
            encoded: Base64 envelope

        Returns:
            Decrypted plaintext

        Raises:
            DecodeError: If the envelope is not valid base64 or the plaintext is not UTF-8
            MalformedEnvelopeError: If the envelope is too short or not block aligned
            AuthenticationError: If the MAC does not match
        """
        envelope = Envelope.from_base64(encoded)

        try:
            _sign(key.signing_key, envelope.iv, envelope.ciphertext).verify(envelope.mac)
        except InvalidSignature:
            raise AuthenticationError() from None

        if not envelope.ciphertext or len(envelope.ciphertext) % BLOCK_SIZE:
            raise MalformedEnvelopeError(
                f"Ciphertext length {len(envelope.ciphertext)} is not a positive "
                f"multiple of {BLOCK_SIZE}"
            )

        decryptor = Cipher(
            algorithms.AES(key.encryption_key), modes.CBC(envelope.iv)
        ).decryptor()
        decrypted = decryptor.update(envelope.ciphertext) + decryptor.finalize()

        try:
            return _trim_padding(decrypted).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Decrypted message is not valid UTF-8: {e}") from e
