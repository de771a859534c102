"""Artifact staging: persist an upload and detect the disk images it holds."""

import logging
import os
import re
import shutil
import tempfile
import time
import uuid
import zipfile
from contextlib import contextmanager

from vmdock.artifacts.types import ARCHIVE, IMAGE, DiskEntry, UploadSession
from vmdock.errors import CleanupError, StagingError

logger = logging.getLogger(__name__)

ARCHIVE_EXTENSION = ".zip"
DISK_IMAGE_EXTENSIONS = (".qcow2", ".img", ".iso")

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")
_COPY_CHUNK = 1024 * 1024


def sanitize_name(name: str) -> str:
    """Replace every character outside letters, digits, '.' and '-' with '_'."""
    return _UNSAFE_CHARS.sub("_", name)


def clean_name(name: str) -> str:
    """Strip any directory prefix, then sanitize. Used for remote file names."""
    return sanitize_name(name.replace("\\", "/").rsplit("/", 1)[-1])


def is_disk_image(name: str) -> bool:
    return name.lower().endswith(DISK_IMAGE_EXTENSIONS)


def is_archive(name: str) -> bool:
    return name.lower().endswith(ARCHIVE_EXTENSION)


def default_staging_dir() -> str:
    return tempfile.gettempdir()


def _new_file_id(file_name: str) -> str:
    # ms timestamp keeps ids sortable; the random part avoids same-ms collisions
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{sanitize_name(file_name)}"


def _write(source, path: str) -> int:
    """Write bytes or a binary stream to path. Returns the number of bytes written."""
    with open(path, "xb") as f:
        if isinstance(source, (bytes, bytearray, memoryview)):
            f.write(source)
        else:
            shutil.copyfileobj(source, f, _COPY_CHUNK)
        return f.tell()


def _archive_entries(path: str) -> list[DiskEntry]:
    try:
        with zipfile.ZipFile(path) as zf:
            return [
                DiskEntry(name=info.filename, size=info.file_size)
                for info in zf.infolist()
                if not info.is_dir() and is_disk_image(info.filename)
            ]
    except (zipfile.BadZipFile, OSError) as e:
        raise StagingError(f"Failed to read archive content: {e}") from e


def _check_unique_names(disks: list[DiskEntry]) -> None:
    # remote temp paths and volume ids are built from the clean name
    seen = {}
    for disk in disks:
        name = clean_name(disk.name)
        if name in seen:
            raise StagingError(f"Archive disks '{seen[name]}' and '{disk.name}' both map to '{name}'; rename one of them")
        seen[name] = disk.name


def _inspect(path: str, file_id: str, display_name: str, size: int) -> UploadSession:
    if is_archive(display_name):
        disks = _archive_entries(path)
        if not disks:
            exts = ", ".join(DISK_IMAGE_EXTENSIONS)
            raise StagingError(f"No valid disk images ({exts}) found in archive")
        _check_unique_names(disks)
        return UploadSession(file_id=file_id, path=path, kind=ARCHIVE, disks=disks)
    return UploadSession(file_id=file_id, path=path, kind=IMAGE, disks=[DiskEntry(name=sanitize_name(display_name), size=size)])


def stage(source, file_name, staging_dir=None) -> UploadSession:
    """Persist an upload to temporary storage and inspect it.

    Args:
        source: upload content as bytes or a readable binary stream.
        file_name: original upload filename; a ``.zip`` suffix marks an archive.
        staging_dir: directory for the staged file (default: system temp dir).

    Returns:
        UploadSession with the detected disk entries.

    Raises:
        StagingError: upload missing, archive unreadable, no disk images found, or
            two archive disks share a file name.
            The staged file is removed before raising.
    """
    if source is None or not file_name:
        raise StagingError("No file provided")

    staging_dir = staging_dir or default_staging_dir()
    file_id = _new_file_id(file_name)
    path = os.path.join(staging_dir, file_id)

    try:
        size = _write(source, path)
    except OSError as e:
        _remove_partial(path)
        raise StagingError(f"Failed to stage upload '{file_name}': {e}") from e

    try:
        session = _inspect(path, file_id, file_name, size)
    except StagingError:
        _remove_partial(path)
        raise

    logger.info(f"Staged {file_name} as {file_id} ({size} bytes, {len(session.disks)} disk(s))")
    return session


def load_session(file_id, staging_dir=None) -> UploadSession:
    """Re-inspect a previously staged artifact by its identifier."""
    if not file_id or file_id != os.path.basename(file_id) or file_id in (".", ".."):
        raise StagingError(f"Invalid upload id: {file_id!r}")
    path = os.path.join(staging_dir or default_staging_dir(), file_id)
    if not os.path.isfile(path):
        raise StagingError(f"Unknown upload id: {file_id}")
    # file_id is "<ms>-<hex>-<name>"; the suffix is the sanitized upload name
    display_name = file_id.split("-", 2)[-1]
    try:
        return _inspect(path, file_id, display_name, os.path.getsize(path))
    except StagingError:
        # an artifact that fails inspection can never be deployed
        _remove_partial(path)
        raise


@contextmanager
def open_disk(session: UploadSession, entry: DiskEntry):
    """Yield a readable binary stream for one disk of a staged upload."""
    if session.is_archive:
        with zipfile.ZipFile(session.path) as zf, zf.open(entry.name) as member:
            yield member
    else:
        with open(session.path, "rb") as f:
            yield f


def discard(session: UploadSession) -> None:
    """Delete the staged file.

    Raises:
        CleanupError: the file exists but could not be removed.
    """
    try:
        os.unlink(session.path)
    except FileNotFoundError:
        logger.debug(f"Staging file already gone: {session.path}")
    except OSError as e:
        raise CleanupError(f"Failed to remove staging file {session.path}: {e}") from e


def _remove_partial(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove partial upload {path}: {e}")
