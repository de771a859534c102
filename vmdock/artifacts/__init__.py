"""Artifact staging and disk ordering."""

from vmdock.artifacts.resolve import resolve
from vmdock.artifacts.stage import (
    DISK_IMAGE_EXTENSIONS,
    clean_name,
    discard,
    load_session,
    open_disk,
    sanitize_name,
    stage,
)
from vmdock.artifacts.types import DiskEntry, UploadSession

__all__ = [
    "DiskEntry",
    "UploadSession",
    "DISK_IMAGE_EXTENSIONS",
    "stage",
    "load_session",
    "open_disk",
    "discard",
    "sanitize_name",
    "clean_name",
    "resolve",
]
