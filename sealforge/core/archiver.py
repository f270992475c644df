"""Deterministic tar archiving of a file or directory tree.

``pack`` walks the source in sorted order and records relative paths,
file modes and regular-file contents.  Ownership and entry mtimes are
normalized and the optional gzip wrapper carries ``mtime=0``, so the same
tree always yields the same stream.  The root directory itself is not
recorded; a single file source is stored under its basename.

``unpack`` takes the compression flag the stream was packed with,
recreates directories (mode 0755) before regular files and ignores every
other entry type.  Entry names that are absolute or climb out of the
output directory are rejected.
"""

from __future__ import annotations

import gzip
import io
import logging
import os
import stat
import tarfile
import zlib
from pathlib import Path, PurePosixPath
from typing import NamedTuple

from sealforge.core.cancellation import UNBOUNDED, OperationGuard
from sealforge.core.errors import VaultIOError

logger = logging.getLogger(__name__)

DIR_MODE = 0o755
_COPY_CHUNK = 1024 * 1024


class PackResult(NamedTuple):
    """Archive bytes plus what went into them."""

    data: bytes
    content_size: int  # sum of regular-file sizes
    file_count: int


class UnpackResult(NamedTuple):
    content_size: int
    file_count: int


def _iter_tree(root: Path, guard: OperationGuard):
    """Yield ``(path, relative_posix_name)`` for everything under *root*, sorted."""
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
        guard.check("archive walk")
        dirnames.sort()
        base = Path(dirpath)
        for name in dirnames + sorted(filenames):
            full = base / name
            yield full, full.relative_to(root).as_posix()


def _raise_walk_error(exc: OSError) -> None:
    raise VaultIOError(f"cannot read {exc.filename}: {exc.strerror}") from exc


def _add_entry(tar: tarfile.TarFile, path: Path, arcname: str) -> int | None:
    """Add one directory or regular file.

    Returns the content size for a regular file, ``None`` otherwise.
    """
    st = path.lstat()
    info = tarfile.TarInfo(arcname)
    info.mode = stat.S_IMODE(st.st_mode)
    info.mtime = 0
    info.uid = info.gid = 0
    info.uname = info.gname = ""

    if stat.S_ISDIR(st.st_mode):
        info.type = tarfile.DIRTYPE
        tar.addfile(info)
        return None
    if stat.S_ISREG(st.st_mode):
        info.type = tarfile.REGTYPE
        info.size = st.st_size
        with path.open("rb") as fh:
            tar.addfile(info, fh)
        return st.st_size

    logger.debug("Skipping non-regular entry %s", path)
    return None


def pack(
    source_path: str | Path,
    compressed: bool = True,
    *,
    guard: OperationGuard = UNBOUNDED,
) -> PackResult:
    """Serialize *source_path* into a tar stream, gzip-wrapped when *compressed*.

    Raises
    ------
    VaultIOError
        On any read or permission failure, or if the source does not exist.
    """
    source = Path(source_path)
    buf = io.BytesIO()
    content_size = 0
    file_count = 0
    try:
        if not source.exists():
            raise VaultIOError(f"source path does not exist: {source}")
        with tarfile.open(fileobj=buf, mode="w", format=tarfile.PAX_FORMAT) as tar:
            if source.is_dir():
                entries = _iter_tree(source, guard)
            else:
                entries = iter([(source, source.name)])
            for path, arcname in entries:
                guard.check("archive walk")
                written = _add_entry(tar, path, arcname)
                if written is not None:
                    content_size += written
                    file_count += 1
    except OSError as exc:
        if isinstance(exc, VaultIOError):
            raise
        raise VaultIOError(f"failed to archive {source}: {exc}") from exc

    data = buf.getvalue()
    if compressed:
        out = io.BytesIO()
        with gzip.GzipFile(fileobj=out, mode="wb", mtime=0) as gz:
            gz.write(data)
        data = out.getvalue()

    logger.debug(
        "Packed %s: %d file(s), %d content bytes, %d archive bytes (compressed=%s)",
        source, file_count, content_size, len(data), compressed,
    )
    return PackResult(data, content_size, file_count)


def _safe_target(output: Path, name: str) -> Path:
    rel = PurePosixPath(name)
    if rel.is_absolute() or ".." in rel.parts:
        raise VaultIOError(f"refusing unsafe archive entry name: {name!r}")
    return output.joinpath(*rel.parts)


def unpack(
    data: bytes,
    output_path: str | Path,
    compressed: bool = True,
    *,
    guard: OperationGuard = UNBOUNDED,
) -> UnpackResult:
    """Recreate the archived tree under *output_path*.

    *compressed* must match the flag the stream was packed with.
    """
    output = Path(output_path)
    content_size = 0
    file_count = 0
    try:
        raw = gzip.decompress(data) if compressed else data
        with tarfile.open(fileobj=io.BytesIO(raw), mode="r:") as tar:
            members = tar.getmembers()
            output.mkdir(parents=True, exist_ok=True)

            for member in members:
                if member.isdir():
                    guard.check("archive extraction")
                    _safe_target(output, member.name).mkdir(
                        mode=DIR_MODE, parents=True, exist_ok=True
                    )

            for member in members:
                if not member.isreg():
                    if not member.isdir():
                        logger.debug("Ignoring archive entry %s (type %r)", member.name, member.type)
                    continue
                guard.check("archive extraction")
                target = _safe_target(output, member.name)
                target.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
                src = tar.extractfile(member)
                if src is None:
                    continue
                with src, target.open("wb") as dst:
                    while chunk := src.read(_COPY_CHUNK):
                        dst.write(chunk)
                os.chmod(target, member.mode & 0o777)
                content_size += member.size
                file_count += 1
    except (tarfile.TarError, EOFError, gzip.BadGzipFile, zlib.error) as exc:
        raise VaultIOError(f"corrupt archive stream: {exc}") from exc
    except OSError as exc:
        if isinstance(exc, VaultIOError):
            raise
        raise VaultIOError(f"failed to extract into {output}: {exc}") from exc

    logger.debug(
        "Unpacked %d file(s), %d content bytes into %s", file_count, content_size, output
    )
    return UnpackResult(content_size, file_count)
