"""
Keyring configuration from environment variables.

Variables:
- KEYRING_KEYS: JSON object of key id to base64 secret (required)
- KEYRING_DIGEST_SALT: Digest salt (default: empty)
- KEYRING_ALGORITHM: AES-128-CBC, AES-192-CBC or AES-256-CBC (default: AES-128-CBC)

Values are read from os.environ after loading an optional .env file, or from
an explicit mapping.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from .crypto import AES128CBC, Algorithm
from .errors import ConfigError
from .keyring import Keyring, create_keyring, parse_keys

logger = logging.getLogger(__name__)

KEYS_VAR = "KEYRING_KEYS"
DIGEST_SALT_VAR = "KEYRING_DIGEST_SALT"
ALGORITHM_VAR = "KEYRING_ALGORITHM"


@dataclass
class KeyringSettings:
    """Settings needed to build a Keyring."""

    keys: Dict[str, str] = field(repr=False)
    digest_salt: str = field(default="", repr=False)
    algorithm: Algorithm = AES128CBC


def load_settings(
    env_file: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> KeyringSettings:
    """
    Read keyring settings.

    Args:
        env_file: Optional .env path, loaded into os.environ without overriding
            existing variables. Ignored when environ is given.
        environ: Explicit variables to read instead of os.environ

    Returns:
        KeyringSettings

    Raises:
        ConfigError: If KEYRING_KEYS is missing or the algorithm is unknown
        SerializationError: If KEYRING_KEYS is not a JSON object of strings
    """
    if environ is None:
        load_dotenv(env_file)
        environ = os.environ

    raw_keys = environ.get(KEYS_VAR, "").strip()
    if not raw_keys:
        raise ConfigError(f"{KEYS_VAR} not set")

    algorithm_name = environ.get(ALGORITHM_VAR, "").strip()
    algorithm = Algorithm.from_name(algorithm_name) if algorithm_name else AES128CBC

    settings = KeyringSettings(
        keys=parse_keys(raw_keys),
        digest_salt=environ.get(DIGEST_SALT_VAR, ""),
        algorithm=algorithm,
    )
    logger.debug(
        "Loaded keyring settings: %d key(s), %s", len(settings.keys), settings.algorithm
    )
    return settings


def keyring_from_env(
    env_file: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Keyring:
    """Build a Keyring from load_settings()."""
    settings = load_settings(env_file=env_file, environ=environ)
    return create_keyring(
        settings.keys,
        digest_salt=settings.digest_salt,
        algorithm=settings.algorithm,
    )
