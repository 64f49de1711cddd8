"""
Tests for key derivation and the key store.
"""

from __future__ import annotations

import base64
import threading

import pytest

from rotating_keyring import (
    AES128CBC,
    AES192CBC,
    AES256CBC,
    DecodeError,
    EmptyKeyStoreError,
    InvalidKeyIdError,
    KeyFormatError,
    KeyNotFoundError,
    KeyStore,
    derive_key,
    generate_secret,
)

KEY_0 = "uDiMcWVNTuz//naQ88sOcN+E40CyBRGzGTT7OkoBS6M="
KEY_1 = "VN8UXRVMNbIh9FWEFVde0q7GUA1SGOie1+FgAKlNYHc="


class TestDeriveKey:
    def test_split_halves(self):
        secret = base64.b64decode(KEY_0)
        key = derive_key(3, KEY_0, 16)

        assert key.id == 3
        assert key.size == 16
        assert key.encoded == KEY_0
        assert key.signing_key == secret[:16]
        assert key.encryption_key == secret[16:]

    def test_repr_hides_material(self):
        key = derive_key(0, KEY_0, 16)
        assert KEY_0 not in repr(key)
        assert "REDACTED" in repr(key)

    def test_secret_zeroed_on_release(self):
        key = derive_key(0, KEY_0, 16)
        secret = key.secret
        assert any(secret)

        key.__del__()

        assert secret == bytearray(32)
        assert key.signing_key == b"\x00" * 16

    def test_wrong_length(self):
        with pytest.raises(KeyFormatError) as exc_info:
            derive_key(0, "ud3UH9tBzHKTaQ==", 16)

        assert exc_info.value.expected == 32
        assert exc_info.value.actual == 10
        assert str(exc_info.value) == "Expected key with 32 bytes, got 10 bytes"

    def test_aes128_secret_rejected_for_aes256(self):
        with pytest.raises(KeyFormatError) as exc_info:
            derive_key(0, KEY_0, AES256CBC.key_size)
        assert (exc_info.value.expected, exc_info.value.actual) == (64, 32)

    def test_secret_ending_in_zero_byte(self):
        secret = b"\x11" * 31 + b"\x00"
        key = derive_key(0, base64.b64encode(secret).decode("ascii"), 16)
        assert key.encryption_key == b"\x11" * 15 + b"\x00"

    @pytest.mark.parametrize("encoded", ["not base64!", "uDiMcWVNTuz//naQ88sOcN+E40CyBRGzGTT7OkoBS6M"])
    def test_invalid_base64(self, encoded: str):
        with pytest.raises(DecodeError):
            derive_key(0, encoded, 16)

    @pytest.mark.parametrize("key_id", [-1, "1", 1.0, True, None])
    def test_invalid_key_id(self, key_id):
        with pytest.raises(InvalidKeyIdError):
            derive_key(key_id, KEY_0, 16)


class TestKeyStore:
    def test_empty_store(self):
        store = KeyStore(AES128CBC)

        assert len(store) == 0
        with pytest.raises(EmptyKeyStoreError):
            store.current()

    def test_get(self):
        store = KeyStore(AES128CBC)
        store.add(0, KEY_0)

        assert store.get(0).encoded == KEY_0
        assert 0 in store
        assert 1 not in store

    def test_get_missing(self):
        store = KeyStore(AES128CBC)
        store.add(0, KEY_0)

        with pytest.raises(KeyNotFoundError) as exc_info:
            store.get(5)
        assert exc_info.value.key_id == 5
        assert str(exc_info.value) == "Key with id=5 doesn't exist"

    def test_current_is_highest_id_not_latest_insert(self):
        store = KeyStore(AES128CBC)
        store.add(10, KEY_0)
        store.add(2, KEY_1)

        assert store.current().id == 10
        assert store.ids() == [2, 10]

    def test_rotation_changes_current(self):
        store = KeyStore(AES128CBC)
        store.add(0, KEY_0)
        assert store.current().id == 0

        store.add(1, KEY_1)
        assert store.current().id == 1
        assert store.get(0).encoded == KEY_0

    def test_overwrite_same_id(self):
        store = KeyStore(AES128CBC)
        store.add(0, KEY_0)
        store.add(0, KEY_1)

        assert len(store) == 1
        assert store.get(0).encoded == KEY_1

    def test_failed_add_leaves_store_unchanged(self):
        store = KeyStore(AES128CBC)
        store.add(0, KEY_0)

        with pytest.raises(KeyFormatError):
            store.add(1, "ud3UH9tBzHKTaQ==")
        assert store.ids() == [0]
        assert store.current().id == 0

    def test_uses_algorithm_key_size(self):
        store = KeyStore(AES192CBC)
        key = store.add(0, generate_secret(AES192CBC))

        assert key.size == 24
        assert len(key.signing_key) == 24
        assert len(key.encryption_key) == 24

    def test_concurrent_add_and_current(self):
        store = KeyStore(AES128CBC)
        store.add(0, KEY_0)
        errors = []

        def writer():
            try:
                for key_id in range(1, 201):
                    store.add(key_id, KEY_1)
            except Exception as e:  # pragma: no cover
                errors.append(e)

        def reader():
            try:
                previous = 0
                for _ in range(500):
                    current = store.current().id
                    assert current >= previous
                    store.get(current)
                    previous = current
            except Exception as e:  # pragma: no cover
                errors.append(e)

        threads = [threading.Thread(target=writer)] + [
            threading.Thread(target=reader) for _ in range(4)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert store.current().id == 200
        assert len(store) == 201


def test_generate_secret_sizes():
    for algorithm in (AES128CBC, AES192CBC, AES256CBC):
        secret = generate_secret(algorithm)
        assert len(base64.b64decode(secret)) == algorithm.secret_size
