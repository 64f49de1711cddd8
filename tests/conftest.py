"""
Pytest configuration and fixtures for keyring tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import AsyncGenerator

import pytest
import asyncpg
from dotenv import load_dotenv

from rotating_keyring import (
    AES128CBC,
    Keyring,
    create_keyring,
)

KEY_0 = "uDiMcWVNTuz//naQ88sOcN+E40CyBRGzGTT7OkoBS6M="


@pytest.fixture
def keyring() -> Keyring:
    """Create an AES-128-CBC keyring holding key 0 and an empty salt."""
    return create_keyring({"0": KEY_0}, "", AES128CBC)


@pytest.fixture
async def pg_pool() -> AsyncGenerator[asyncpg.Pool, None]:
    """Create a PostgreSQL connection pool for testing."""
    # Load environment from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(env_path)

    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set, skipping PostgreSQL tests")

    pool = await asyncpg.create_pool(database_url)
    if pool is None:
        pytest.skip("Failed to create PostgreSQL connection pool")

    await pool.execute("DROP TABLE IF EXISTS keyring_test_secrets")
    await pool.execute(
        """
        CREATE TABLE keyring_test_secrets (
            id SERIAL PRIMARY KEY,
            encrypted_value TEXT,
            keyring_id INTEGER NOT NULL,
            digest TEXT NOT NULL
        )
        """
    )

    yield pool

    await pool.execute("DROP TABLE IF EXISTS keyring_test_secrets")
    await pool.close()
