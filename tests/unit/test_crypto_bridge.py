"""Tests for the PyNaCl crypto bridge (sealed boxes, Ed25519, MFA tokens)."""

from __future__ import annotations

from pathlib import Path

import pytest

from sealforge.bridge import crypto_bridge
from sealforge.core.errors import CryptoError, InvalidRequestError, VaultIOError


class TestSealedBoxes:
    def test_round_trip(self):
        private_key, public_key = crypto_bridge.generate_box_keypair()
        sealed = crypto_bridge.seal_to_public_key(b"data key", public_key)
        assert crypto_bridge.open_sealed(sealed, private_key) == b"data key"

    def test_wrong_private_key(self):
        _, public_key = crypto_bridge.generate_box_keypair()
        other, _ = crypto_bridge.generate_box_keypair()
        sealed = crypto_bridge.seal_to_public_key(b"data key", public_key)
        with pytest.raises(CryptoError, match="authentication failed"):
            crypto_bridge.open_sealed(sealed, other)

    def test_public_key_for(self):
        private_key, public_key = crypto_bridge.generate_box_keypair()
        assert crypto_bridge.public_key_for(private_key) == public_key

    def test_malformed_key(self):
        with pytest.raises(InvalidRequestError):
            crypto_bridge.seal_to_public_key(b"x", "zz-not-hex")
        with pytest.raises(InvalidRequestError):
            crypto_bridge.seal_to_public_key(b"x", "abcd")


class TestSignatures:
    def test_sign_and_verify(self):
        private_key, public_key = crypto_bridge.generate_signing_keypair()
        sig = crypto_bridge.sign_data(b"payload", private_key)
        assert len(sig) == 128
        assert crypto_bridge.verify_data(b"payload", sig, public_key) is True
        assert crypto_bridge.verify_data(b"tampered", sig, public_key) is False

    def test_verify_fails_closed(self):
        _, public_key = crypto_bridge.generate_signing_keypair()
        assert crypto_bridge.verify_data(b"p", "", public_key) is False
        assert crypto_bridge.verify_data(b"p", "nothex", public_key) is False
        assert crypto_bridge.verify_data(b"p", "ab" * 64, "short") is False


class TestMfaProofs:
    def test_issue_and_verify(self):
        signing, verify = crypto_bridge.generate_signing_keypair()
        token = crypto_bridge.issue_mfa_proof("art-1", signing, issued_at=1_000)
        assert token.startswith("1000.")
        ok, reason = crypto_bridge.verify_mfa_proof(
            token, "art-1", verify, now=1_010, max_age_seconds=300
        )
        assert ok and reason == ""

    def test_clock_skew_tolerated(self):
        signing, verify = crypto_bridge.generate_signing_keypair()
        token = crypto_bridge.issue_mfa_proof("art-1", signing, issued_at=1_020)
        ok, _ = crypto_bridge.verify_mfa_proof(token, "art-1", verify, now=1_000, max_age_seconds=300)
        assert ok

    def test_future_token_rejected(self):
        signing, verify = crypto_bridge.generate_signing_keypair()
        token = crypto_bridge.issue_mfa_proof("art-1", signing, issued_at=2_000)
        ok, reason = crypto_bridge.verify_mfa_proof(token, "art-1", verify, now=1_000, max_age_seconds=300)
        assert not ok
        assert "future" in reason

    def test_tampered_timestamp_rejected(self):
        signing, verify = crypto_bridge.generate_signing_keypair()
        token = crypto_bridge.issue_mfa_proof("art-1", signing, issued_at=1_000)
        forged = "1500" + token[len("1000"):]
        ok, _ = crypto_bridge.verify_mfa_proof(forged, "art-1", verify, now=1_500, max_age_seconds=300)
        assert not ok


class TestKeyFiles:
    def test_read_strips_whitespace(self, tmp_dir: Path):
        (tmp_dir / "k.pub").write_text("  abcd\n")
        assert crypto_bridge.read_key_file(tmp_dir / "k.pub") == "abcd"

    def test_missing_file(self, tmp_dir: Path):
        with pytest.raises(VaultIOError):
            crypto_bridge.read_key_file(tmp_dir / "missing.key")
