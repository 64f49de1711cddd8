"""
PostgreSQL column re-encryption after key rotation.

This module provides:
- ColumnReencryptor: Rewrites encrypted column values under the current key
- ReencryptionResult: Result of a re-encryption run

Expected table shape (names configurable):

    id               -- primary key
    encrypted_value  -- base64 envelope from Keyring.encrypt
    keyring_id       -- key id from Keyring.encrypt

Digest columns are left alone: digests do not depend on the key.

Rotation strategy:
1. Resolve the current key, then select up to batch_size rows whose key id
   is lower, FOR UPDATE SKIP LOCKED so several workers can run at once
2. Decrypt each row with its recorded key, encrypt with the current key
3. Update value and key id in the same transaction
4. Repeat until no stale rows remain

Rows under a newer key than the one resolved for a batch are never touched,
so rotating the keyring while a run is in progress cannot downgrade them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import asyncpg

from .crypto import AesCbcHmacCipher
from .errors import ConfigError, StorageError
from .keyring import Keyring
from .keys import Key

logger = logging.getLogger(__name__)

_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def quote_identifier(name: str) -> str:
    """Quote a possibly schema-qualified SQL identifier."""
    if not name:
        raise ConfigError("Identifier must not be empty")
    return ".".join('"' + part.replace('"', '""') + '"' for part in name.split("."))


@dataclass
class ReencryptionResult:
    """Result of ColumnReencryptor.reencrypt."""

    target_key_id: int
    rows_reencrypted: int
    batches: int

    def __str__(self) -> str:
        return (
            f"{self.rows_reencrypted} row(s) re-encrypted "
            f"with key {self.target_key_id} in {self.batches} batch(es)"
        )


class ColumnReencryptor:
    """
    Re-encrypts a table column so every row uses the current key.

    Rows encrypted with a key that is no longer current keep decrypting as
    long as the keyring still holds that key; running this lets old keys be
    retired afterwards.
    """

    def __init__(
        self,
        pool: asyncpg.Pool,
        keyring: Keyring,
        table: str,
        *,
        id_column: str = "id",
        value_column: str = "encrypted_value",
        key_id_column: str = "keyring_id",
        batch_size: int = 50,
    ) -> None:
        """
        Initialize re-encryptor.

        Args:
            pool: asyncpg connection pool
            keyring: Keyring holding the old keys and the current key
            table: Table name, optionally schema-qualified
            id_column: Primary key column
            value_column: Column holding the base64 envelope
            key_id_column: Column holding the key id
            batch_size: Rows per transaction
        """
        if batch_size < 1:
            raise ConfigError(f"batch_size must be positive, got {batch_size}")

        self._pool = pool
        self._keyring = keyring
        self._batch_size = batch_size

        table_sql = quote_identifier(table)
        id_sql = quote_identifier(id_column)
        value_sql = quote_identifier(value_column)
        key_id_sql = quote_identifier(key_id_column)

        stale = f"{key_id_sql} < $1 AND {value_sql} IS NOT NULL"
        self._count_query = f"SELECT count(*) FROM {table_sql} WHERE {stale}"
        self._select_query = f"""
            SELECT {id_sql} AS row_id, {value_sql} AS value, {key_id_sql} AS key_id
            FROM {table_sql}
            WHERE {stale}
            ORDER BY {id_sql}
            LIMIT $2
            FOR UPDATE SKIP LOCKED
        """
        self._update_query = (
            f"UPDATE {table_sql} SET {value_sql} = $1, {key_id_sql} = $2 "
            f"WHERE {id_sql} = $3"
        )

    @property
    def pool(self) -> asyncpg.Pool:
        return self._pool

    async def count_stale(self) -> int:
        """
        Count rows encrypted with a key older than the current one.

        Raises:
            EmptyKeyStoreError: If the keyring has no keys
            StorageError: If the query fails
        """
        current = self._keyring.keys.current()
        try:
            return await self._pool.fetchval(self._count_query, current.id)
        except _DB_ERRORS as e:
            raise StorageError(f"Failed to count stale rows: {e}") from e

    async def reencrypt(self, max_batches: Optional[int] = None) -> ReencryptionResult:
        """
        Re-encrypt stale rows in batches.

        Each batch runs in its own transaction and targets the key that is
        current when the batch starts. A keyring error (unknown key id,
        failed authentication) rolls back the current batch and is raised
        unchanged; earlier batches stay committed.

        Args:
            max_batches: Stop after this many batches (default: until done)

        Returns:
            ReencryptionResult with counts and the last target key id

        Raises:
            EmptyKeyStoreError: If the keyring has no keys
            StorageError: If a database operation fails
        """
        target = self._keyring.keys.current()
        reencrypted = 0
        batches = 0

        while max_batches is None or batches < max_batches:
            target = self._keyring.keys.current()
            updated = await self._reencrypt_batch(target)
            if updated == 0:
                break

            batches += 1
            reencrypted += updated
            logger.info(
                "Re-encrypted batch %d: %d row(s) to key id=%d",
                batches,
                updated,
                target.id,
            )

        result = ReencryptionResult(
            target_key_id=target.id,
            rows_reencrypted=reencrypted,
            batches=batches,
        )
        logger.info("Re-encryption finished: %s", result)
        return result

    async def _reencrypt_batch(self, target: Key) -> int:
        """Internal: Re-encrypt one batch, returning the number of rows updated."""
        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    rows = await conn.fetch(self._select_query, target.id, self._batch_size)
                    updates = []
                    for row in rows:
                        plaintext = self._keyring.decrypt(row["value"], row["key_id"])
                        updates.append(
                            (
                                AesCbcHmacCipher.encrypt(target, plaintext),
                                target.id,
                                row["row_id"],
                            )
                        )
                    if updates:
                        await conn.executemany(self._update_query, updates)
        except _DB_ERRORS as e:
            raise StorageError(f"Failed to re-encrypt batch: {e}") from e

        return len(updates)
