"""Tests for the binary artifact container (assemble / load)."""

from __future__ import annotations

import struct

import pytest

from sealforge.core import container
from sealforge.core.content_cipher import encrypt_stream, generate_data_key
from sealforge.core.errors import ArtifactFormatError
from sealforge.core.hasher import hash_data_key
from sealforge.core.key_derivation import derive_seal_key
from sealforge.models.artifacts import (
    AccessMethod,
    AccessMethodType,
    ArtifactMetadata,
    EncryptionPolicy,
    PolicyType,
)


@pytest.fixture
def parts():
    key = generate_data_key()
    metadata = ArtifactMetadata(
        name="alpha-artifact", data_key_hash=hash_data_key(key), compression=True,
        content_size=10, file_count=2,
    )
    methods = [AccessMethod(
        artifact_id=metadata.id, type=AccessMethodType.RUNTIME, name="runtime",
        encrypted_key="d3JhcHBlZA==",
    )]
    policies = [EncryptionPolicy(
        artifact_id=metadata.id, type=PolicyType.TTL, name="ttl", rules={"duration": "1h"},
    )]
    content = encrypt_stream(b"archive bytes", key)
    return key, content, metadata, methods, policies


@pytest.fixture
def blob(parts) -> bytes:
    key, content, metadata, methods, policies = parts
    return container.assemble(content, metadata, methods, policies, seal_key=derive_seal_key(key))


class TestRoundTrip:
    def test_load_returns_assembled_parts(self, parts, blob):
        _, content, metadata, methods, policies = parts
        loaded = container.load(blob)
        assert loaded.encrypted_content == content
        assert loaded.metadata == metadata
        assert loaded.access_methods == methods
        assert loaded.policies == policies
        assert loaded.compressed is True
        assert len(loaded.seal) == 32

    def test_tuple_unpacking(self, blob, parts):
        content, metadata, methods, policies, *_ = container.load(blob)
        assert content == parts[1]
        assert metadata.name == "alpha-artifact"

    def test_artifact_view(self, blob):
        artifact = container.load(blob).artifact
        assert artifact.active_methods(AccessMethodType.RUNTIME)
        assert artifact.active_policies[0].name == "ttl"

    def test_header_fields(self, blob, parts):
        assert blob[:4] == container.MAGIC
        (version,) = struct.unpack(">H", blob[4:6])
        assert version == container.FORMAT_MAJOR

    def test_content_is_last(self, blob, parts):
        assert blob.endswith(parts[1])

    def test_seal_optional(self, parts):
        _, content, metadata, methods, policies = parts
        loaded = container.load(container.assemble(content, metadata, methods, policies))
        assert loaded.seal == b""

    def test_assemble_rejects_other_algorithms(self, parts):
        _, content, metadata, methods, policies = parts
        other = metadata.model_copy(update={"algorithm": "ChaCha20"})
        with pytest.raises(ArtifactFormatError, match="unsupported algorithm"):
            container.assemble(content, other, methods, policies)


def _raw(metadata, sections) -> bytes:
    """Hand-built container from (tag, payload) pairs."""
    return container._header(metadata, len(sections)) + b"".join(
        container._pack_section(tag, payload) for tag, payload in sections
    )


class TestCorruption:
    def test_bad_magic(self, blob):
        with pytest.raises(ArtifactFormatError, match="bad magic"):
            container.load(b"XXXX" + blob[4:])

    def test_unsupported_version(self, blob):
        with pytest.raises(ArtifactFormatError, match="unsupported format version"):
            container.load(blob[:4] + struct.pack(">H", 99) + blob[6:])

    def test_truncated(self, blob):
        with pytest.raises(ArtifactFormatError, match="truncated"):
            container.load(blob[:-5])

    def test_truncated_header(self):
        with pytest.raises(ArtifactFormatError, match="truncated"):
            container.load(b"SFGA")

    def test_trailing_bytes(self, blob):
        with pytest.raises(ArtifactFormatError, match="trailing"):
            container.load(blob + b"\x00")

    def test_checksum_mismatch(self, blob):
        tampered = blob.replace(b"alpha-artifact", b"omega-artifact", 1)
        with pytest.raises(ArtifactFormatError, match="checksum"):
            container.load(tampered)

    def test_unknown_section(self, parts):
        _, content, metadata, _, _ = parts
        data = _raw(metadata, [(0x09, b"?"), (container.SECTION_CONTENT, content)])
        with pytest.raises(ArtifactFormatError, match="unknown section"):
            container.load(data)

    def test_duplicate_section(self, parts):
        _, content, metadata, _, _ = parts
        data = _raw(metadata, [(container.SECTION_METADATA, b"{}"), (container.SECTION_METADATA, b"{}")])
        with pytest.raises(ArtifactFormatError, match="duplicate"):
            container.load(data)

    def test_out_of_order(self, parts):
        _, content, metadata, _, _ = parts
        data = _raw(metadata, [
            (container.SECTION_ACCESS_METHODS, b"[]"),
            (container.SECTION_METADATA, b"{}"),
            (container.SECTION_POLICIES, b"[]"),
            (container.SECTION_DIGEST, b"\x00" * 32),
            (container.SECTION_CONTENT, content),
        ])
        with pytest.raises(ArtifactFormatError, match="out of order"):
            container.load(data)

    def test_missing_required(self, parts):
        _, _, metadata, _, _ = parts
        data = _raw(metadata, [
            (container.SECTION_METADATA, b"{}"),
            (container.SECTION_ACCESS_METHODS, b"[]"),
            (container.SECTION_POLICIES, b"[]"),
            (container.SECTION_DIGEST, b"\x00" * 32),
        ])
        with pytest.raises(ArtifactFormatError, match="missing required"):
            container.load(data)
