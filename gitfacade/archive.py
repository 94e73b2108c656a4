"""Archive export with an on-disk cache keyed by repository, commit and format."""

from __future__ import annotations

import bz2
import contextlib
import gzip
import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from ._backend import Engine
from .models import ArchiveFormat

logger = logging.getLogger(__name__)

DEFAULT_FORMAT = "tar.gz"

TAR_BZ2 = ArchiveFormat(extension=".tar.bz2", git_format="tar", compression="bzip2")
TAR = ArchiveFormat(extension=".tar", git_format="tar")
ZIP = ArchiveFormat(extension=".zip", git_format="zip")
TAR_GZ = ArchiveFormat(extension=".tar.gz", git_format="tar", compression="gzip")

_FORMATS = {
    "tar.bz2": TAR_BZ2,
    "tbz": TAR_BZ2,
    "tbz2": TAR_BZ2,
    "tb2": TAR_BZ2,
    "bz2": TAR_BZ2,
    "tar": TAR,
    "zip": ZIP,
}


def resolve_archive_format(name: Optional[str]) -> ArchiveFormat:
    """Map a user supplied format name onto one of the four archive kinds.

    Anything unrecognised, including an empty name, falls back to ``.tar.gz``.
    """

    return _FORMATS.get((name or "").strip().lower(), TAR_GZ)


def archive_path(storage_path: str | Path, repo_name: str, commit_id: str, archive_format: ArchiveFormat) -> Path:
    stem = repo_name[: -len(".git")] if repo_name.endswith(".git") else repo_name
    file_name = f"{stem}-{commit_id}{archive_format.extension}"
    return Path(storage_path) / repo_name / file_name


@contextlib.contextmanager
def _compressed(raw: BinaryIO, compression: Optional[str]) -> Iterator[BinaryIO]:
    if compression == "gzip":
        with gzip.GzipFile(fileobj=raw, mode="wb", mtime=0) as stream:
            yield stream
    elif compression == "bzip2":
        with bz2.BZ2File(raw, mode="wb") as stream:
            yield stream
    else:
        yield raw


def write_archive(
    engine: Engine,
    commit_id: str,
    prefix: str,
    destination: Path,
    archive_format: ArchiveFormat,
) -> None:
    """Package *commit_id* into *destination*.

    The archive is streamed into a temporary file next to the destination and
    renamed into place, so readers only ever observe complete artifacts.
    """

    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{destination.name}.", dir=destination.parent)
    try:
        with os.fdopen(fd, "wb") as raw:
            with _compressed(raw, archive_format.compression) as stream:
                engine.archive_to_stream(stream, commit_id, prefix, archive_format.git_format)
        os.replace(tmp_name, destination)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


def export_archive(
    engine: Engine,
    repo_name: str,
    commit_id: str,
    storage_path: str | Path,
    format: Optional[str] = DEFAULT_FORMAT,
) -> Path:
    """Return the cached archive for *commit_id*, creating it when absent."""

    archive_format = resolve_archive_format(format)
    destination = archive_path(storage_path, repo_name, commit_id, archive_format)

    if destination.exists():
        logger.debug("Reusing cached archive %s", destination)
        return destination

    # Extracted contents land in a directory named after the repository.
    prefix = os.path.basename(repo_name) + "/"
    logger.debug("Writing archive %s", destination)
    write_archive(engine, commit_id, prefix, destination, archive_format)
    return destination


__all__ = [
    "DEFAULT_FORMAT",
    "archive_path",
    "export_archive",
    "resolve_archive_format",
    "write_archive",
]
