"""Error kinds raised by the staging and deployment pipeline."""


class VmdockError(Exception):
    """Base class for all vmdock errors."""


class StagingError(VmdockError):
    """Upload missing, archive unreadable, or no disk images found."""


class VmCreationError(VmdockError):
    """VM creation call failed for a reason other than an existing VM id."""


class TransferError(VmdockError):
    """Disk could not be delivered: connection, auth, import exit code or HTTP status."""


class AttachError(TransferError):
    """Disk was delivered but binding it to the VM (or setting boot order) failed."""


class CleanupError(VmdockError):
    """A local or remote temporary file could not be removed. Never fatal."""
