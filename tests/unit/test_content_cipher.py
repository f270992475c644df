"""Tests for the AES-256-GCM content cipher and manifest seal."""

from __future__ import annotations

import pytest

from sealforge.core.content_cipher import (
    KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    decrypt_stream,
    encrypt_stream,
    generate_data_key,
    seal_manifest,
    verify_manifest_seal,
)
from sealforge.core.errors import CryptoError


class TestContentCipher:
    def test_round_trip(self):
        key = generate_data_key()
        sealed = encrypt_stream(b"attack at dawn", key)
        assert decrypt_stream(sealed, key) == b"attack at dawn"

    def test_output_layout(self):
        sealed = encrypt_stream(b"x" * 10, generate_data_key())
        assert len(sealed) == NONCE_SIZE + 10 + TAG_SIZE

    def test_empty_plaintext(self):
        key = generate_data_key()
        assert decrypt_stream(encrypt_stream(b"", key), key) == b""

    def test_fresh_nonce_per_call(self):
        key = generate_data_key()
        a = encrypt_stream(b"same", key)
        b = encrypt_stream(b"same", key)
        assert a[:NONCE_SIZE] != b[:NONCE_SIZE]
        assert a != b

    def test_data_keys_are_random(self):
        assert len(generate_data_key()) == KEY_SIZE
        assert generate_data_key() != generate_data_key()

    def test_wrong_key_fails_authentication(self):
        sealed = encrypt_stream(b"secret", generate_data_key())
        with pytest.raises(CryptoError, match="authentication failed"):
            decrypt_stream(sealed, generate_data_key())

    def test_truncated_input_fails_authentication(self):
        key = generate_data_key()
        with pytest.raises(CryptoError, match="authentication failed"):
            decrypt_stream(b"\x00" * (NONCE_SIZE + TAG_SIZE - 1), key)

    def test_flipped_tag_bit_detected(self):
        key = generate_data_key()
        sealed = bytearray(encrypt_stream(b"secret", key))
        sealed[-1] ^= 0x01
        with pytest.raises(CryptoError):
            decrypt_stream(bytes(sealed), key)

    def test_bad_key_length_rejected(self):
        with pytest.raises(CryptoError, match="invalid key length"):
            encrypt_stream(b"x", b"short")


class TestManifestSeal:
    def test_valid_seal_verifies(self):
        key = generate_data_key()
        seal = seal_manifest(key, b"manifest")
        verify_manifest_seal(key, b"manifest", seal)

    def test_modified_manifest_rejected(self):
        key = generate_data_key()
        seal = seal_manifest(key, b"manifest")
        with pytest.raises(CryptoError, match="manifest authentication failed"):
            verify_manifest_seal(key, b"manifest!", seal)

    def test_missing_seal_rejected(self):
        with pytest.raises(CryptoError):
            verify_manifest_seal(generate_data_key(), b"manifest", b"")
