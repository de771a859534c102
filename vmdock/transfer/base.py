"""Transfer strategy interface: deliver one disk image and attach it to a VM slot."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from vmdock.errors import TransferError

logger = logging.getLogger(__name__)

BOOT_SLOT = 0


def slot_key(slot: int) -> str:
    """Controller key for a slot, e.g. ``scsi0``."""
    return f"scsi{slot}"


@dataclass
class TransferOutcome:
    """Result of one ``deliver`` call."""

    slot: int
    success: bool
    remote_id: str | None = None
    detail: str | None = None
    error: TransferError | None = None

    @classmethod
    def ok(cls, slot, remote_id):
        return cls(slot=slot, success=True, remote_id=remote_id)

    @classmethod
    def failed(cls, slot, error: TransferError):
        return cls(slot=slot, success=False, detail=str(error), error=error)


class TransferStrategy(ABC):
    """Delivers disk images into a storage pool and binds them to controller slots.

    One instance serves one deployment. Subclasses implement ``_deliver`` and
    raise ``TransferError`` (or ``AttachError``) on failure; ``deliver`` turns
    that into a failed ``TransferOutcome``.

    ``progress`` is a callable receiving human-readable status lines.
    """

    name = "abstract"

    def __init__(self, progress=None):
        self.progress = progress or logger.info

    async def deliver(self, stream, clean_name, vmid, storage, node, slot) -> TransferOutcome:
        """Deliver one disk image (a readable binary stream) and attach it at *slot*."""
        try:
            remote_id = await self._deliver(stream, clean_name, vmid, storage, node, slot)
        except TransferError as e:
            return TransferOutcome.failed(slot, e)
        return TransferOutcome.ok(slot, remote_id)

    @abstractmethod
    async def _deliver(self, stream, clean_name, vmid, storage, node, slot) -> str:
        """Deliver and attach; return the remote artifact id (path or volume id)."""

    async def close(self):
        """Release per-deployment resources. Safe to call more than once."""
