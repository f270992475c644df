"""Artifact container — the on-disk layout of an encrypted artifact.

Layout (all integers big-endian)::

    header
        magic           4 B   b"SFGA"
        format_version  u16   (major)
        flags           u16   bit 0 = content is gzip-compressed
        artifact_id     16 B  UUID bytes
        algorithm_len   u8
        algorithm       ASCII, e.g. "AES-256-GCM"
        section_count   u16
    sections, each
        tag             u8
        length          u64
        payload         length bytes

Sections, in order: METADATA, ACCESS_METHODS, POLICIES (canonical JSON),
DIGEST (SHA-256 of the manifest), SEAL (HMAC under a data-key sub-key,
optional), CONTENT (``nonce || ciphertext || tag``).  CONTENT is last so
the AEAD tag is the final bytes of the file.

The *manifest* is the header followed by the METADATA, ACCESS_METHODS and
POLICIES sections exactly as stored.  DIGEST detects corruption at load;
SEAL detects deliberate edits (e.g. stripping a policy) once the data key
is known.
"""

from __future__ import annotations

import json
import logging
import struct
import uuid
from typing import NamedTuple

from pydantic import ValidationError

from sealforge.core.content_cipher import ALGORITHM, seal_manifest
from sealforge.core.errors import ArtifactFormatError
from sealforge.core.hasher import canonical_json_bytes, sha256_hex
from sealforge.models.artifacts import (
    FORMAT_VERSION,
    AccessMethod,
    ArtifactMetadata,
    EncryptedArtifact,
    EncryptionPolicy,
)

logger = logging.getLogger(__name__)

MAGIC = b"SFGA"
FORMAT_MAJOR = int(FORMAT_VERSION.split(".")[0])
FLAG_COMPRESSED = 0x0001

SECTION_METADATA = 0x01
SECTION_ACCESS_METHODS = 0x02
SECTION_POLICIES = 0x03
SECTION_DIGEST = 0x04
SECTION_SEAL = 0x05
SECTION_CONTENT = 0x06

_REQUIRED = (
    SECTION_METADATA,
    SECTION_ACCESS_METHODS,
    SECTION_POLICIES,
    SECTION_DIGEST,
    SECTION_CONTENT,
)
_KNOWN = frozenset(_REQUIRED) | {SECTION_SEAL}
_MANIFEST_SECTIONS = (SECTION_METADATA, SECTION_ACCESS_METHODS, SECTION_POLICIES)
_SECTION_ORDER = (*_MANIFEST_SECTIONS, SECTION_DIGEST, SECTION_SEAL, SECTION_CONTENT)

_HEADER_FIXED = struct.Struct(">4sHH16sB")
_U16 = struct.Struct(">H")
_SECTION_HEAD = struct.Struct(">BQ")


class LoadedContainer(NamedTuple):
    """Result of ``load``; unpacks as ``(content, metadata, methods, policies, ...)``."""

    encrypted_content: bytes
    metadata: ArtifactMetadata
    access_methods: list[AccessMethod]
    policies: list[EncryptionPolicy]
    manifest: bytes
    seal: bytes
    compressed: bool

    @property
    def artifact(self) -> EncryptedArtifact:
        return EncryptedArtifact(
            **self.metadata.model_dump(),
            access_methods=self.access_methods,
            policies=self.policies,
        )


def _pack_section(tag: int, payload: bytes) -> bytes:
    return _SECTION_HEAD.pack(tag, len(payload)) + payload


def _header(metadata: ArtifactMetadata, section_count: int) -> bytes:
    try:
        artifact_uuid = uuid.UUID(metadata.id)
    except ValueError as exc:
        raise ArtifactFormatError(f"artifact id is not a UUID: {metadata.id!r}") from exc
    algorithm = metadata.algorithm.encode("ascii")
    flags = FLAG_COMPRESSED if metadata.compression else 0
    return (
        _HEADER_FIXED.pack(MAGIC, FORMAT_MAJOR, flags, artifact_uuid.bytes, len(algorithm))
        + algorithm
        + _U16.pack(section_count)
    )


def _manifest_sections(
    metadata: ArtifactMetadata,
    access_methods: list[AccessMethod],
    policies: list[EncryptionPolicy],
) -> list[tuple[int, bytes]]:
    return [
        (SECTION_METADATA, canonical_json_bytes(metadata.model_dump(mode="json"))),
        (
            SECTION_ACCESS_METHODS,
            canonical_json_bytes([m.model_dump(mode="json") for m in access_methods]),
        ),
        (
            SECTION_POLICIES,
            canonical_json_bytes([p.model_dump(mode="json") for p in policies]),
        ),
    ]


def assemble(
    encrypted_content: bytes,
    metadata: ArtifactMetadata,
    access_methods: list[AccessMethod],
    policies: list[EncryptionPolicy],
    *,
    seal_key: bytes | None = None,
) -> bytes:
    """Combine encrypted content, metadata, methods and policies into container bytes."""
    if isinstance(metadata, EncryptedArtifact):
        metadata = metadata.metadata
    if metadata.algorithm != ALGORITHM:
        raise ArtifactFormatError(f"unsupported algorithm: {metadata.algorithm}")

    sections = _manifest_sections(metadata, access_methods, policies)
    section_count = len(sections) + 2 + (1 if seal_key is not None else 0)
    header = _header(metadata, section_count)
    manifest = header + b"".join(_pack_section(tag, payload) for tag, payload in sections)

    sections.append((SECTION_DIGEST, bytes.fromhex(sha256_hex(manifest))))
    if seal_key is not None:
        sections.append((SECTION_SEAL, seal_manifest(seal_key, manifest)))
    sections.append((SECTION_CONTENT, encrypted_content))

    return header + b"".join(_pack_section(tag, payload) for tag, payload in sections)


def _read_header(data: bytes) -> tuple[dict, int]:
    if len(data) < _HEADER_FIXED.size:
        raise ArtifactFormatError("container is truncated (header)")
    magic, version, flags, id_bytes, alg_len = _HEADER_FIXED.unpack_from(data, 0)
    if magic != MAGIC:
        raise ArtifactFormatError("not a sealforge artifact (bad magic)")
    if version != FORMAT_MAJOR:
        raise ArtifactFormatError(f"unsupported format version {version}")
    offset = _HEADER_FIXED.size
    if len(data) < offset + alg_len + _U16.size:
        raise ArtifactFormatError("container is truncated (header)")
    try:
        algorithm = data[offset:offset + alg_len].decode("ascii")
    except UnicodeDecodeError as exc:
        raise ArtifactFormatError("algorithm tag is not ASCII") from exc
    offset += alg_len
    (section_count,) = _U16.unpack_from(data, offset)
    offset += _U16.size
    return {
        "artifact_id": str(uuid.UUID(bytes=id_bytes)),
        "algorithm": algorithm,
        "compressed": bool(flags & FLAG_COMPRESSED),
        "section_count": section_count,
    }, offset


def _read_sections(data: bytes, offset: int, count: int) -> tuple[dict[int, bytes], int]:
    """Return payloads by tag and the offset where the manifest ends."""
    sections: dict[int, bytes] = {}
    manifest_end = 0
    for _ in range(count):
        if len(data) < offset + _SECTION_HEAD.size:
            raise ArtifactFormatError("container is truncated (section header)")
        tag, length = _SECTION_HEAD.unpack_from(data, offset)
        offset += _SECTION_HEAD.size
        if tag not in _KNOWN:
            raise ArtifactFormatError(f"unknown section tag 0x{tag:02x}")
        if tag in sections:
            raise ArtifactFormatError(f"duplicate section tag 0x{tag:02x}")
        if len(data) < offset + length:
            raise ArtifactFormatError(f"container is truncated (section 0x{tag:02x})")
        sections[tag] = data[offset:offset + length]
        offset += length
        if tag == _MANIFEST_SECTIONS[-1]:
            manifest_end = offset
    order = list(sections)
    expected = [t for t in _SECTION_ORDER if t in sections]
    if order != expected:
        raise ArtifactFormatError("sections are out of order")
    if offset != len(data):
        raise ArtifactFormatError(f"{len(data) - offset} trailing bytes after last section")
    missing = [f"0x{t:02x}" for t in _REQUIRED if t not in sections]
    if missing:
        raise ArtifactFormatError(f"missing required sections: {', '.join(missing)}")
    return sections, manifest_end


def _json_section(payload: bytes, what: str):
    try:
        return json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ArtifactFormatError(f"{what} section is not valid JSON") from exc


def load(data: bytes) -> LoadedContainer:
    """Parse container bytes.

    Raises
    ------
    ArtifactFormatError
        On any header or section corruption, checksum mismatch, or
        disagreement between header and metadata.
    """
    header, offset = _read_header(data)
    sections, manifest_end = _read_sections(data, offset, header["section_count"])

    manifest = data[:manifest_end]
    if sections[SECTION_DIGEST] != bytes.fromhex(sha256_hex(manifest)):
        raise ArtifactFormatError("manifest checksum mismatch")

    try:
        metadata = ArtifactMetadata.model_validate(
            _json_section(sections[SECTION_METADATA], "metadata")
        )
        access_methods = [
            AccessMethod.model_validate(m)
            for m in _json_section(sections[SECTION_ACCESS_METHODS], "access methods")
        ]
        policies = [
            EncryptionPolicy.model_validate(p)
            for p in _json_section(sections[SECTION_POLICIES], "policies")
        ]
    except (ValidationError, TypeError) as exc:
        raise ArtifactFormatError(f"malformed manifest: {exc}") from exc

    if metadata.id != header["artifact_id"]:
        raise ArtifactFormatError("header artifact id does not match metadata")
    if metadata.algorithm != header["algorithm"] or header["algorithm"] != ALGORITHM:
        raise ArtifactFormatError(f"unsupported algorithm: {header['algorithm']}")
    if not any(m.is_active for m in access_methods):
        raise ArtifactFormatError("artifact carries no active access method")

    logger.debug(
        "Loaded artifact %s: %d method(s), %d polic(ies), %d content bytes",
        metadata.id, len(access_methods), len(policies), len(sections[SECTION_CONTENT]),
    )
    return LoadedContainer(
        encrypted_content=sections[SECTION_CONTENT],
        metadata=metadata,
        access_methods=access_methods,
        policies=policies,
        manifest=manifest,
        seal=sections.get(SECTION_SEAL, b""),
        compressed=header["compressed"],
    )
