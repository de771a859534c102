"""Staged artifact data types."""

from dataclasses import dataclass, field

ARCHIVE = "archive"
IMAGE = "image"


@dataclass(frozen=True)
class DiskEntry:
    """One disk image found in an upload.

    ``name`` is the member path inside the archive, or the sanitized upload
    filename for a single-image upload. ``slot`` is assigned by the resolver.
    """

    name: str
    size: int
    slot: int | None = None


@dataclass
class UploadSession:
    """A staged upload: identifier, local staging path and detected disks."""

    file_id: str
    path: str
    kind: str = IMAGE
    disks: list[DiskEntry] = field(default_factory=list)

    @property
    def is_archive(self) -> bool:
        return self.kind == ARCHIVE

    def to_dict(self) -> dict:
        return {
            "file_id": self.file_id,
            "path": self.path,
            "kind": self.kind,
            "disks": [{"name": d.name, "size": d.size} for d in self.disks],
        }
