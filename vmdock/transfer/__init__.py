"""Transfer strategies: deliver disk images to the hypervisor and attach them."""

from vmdock.transfer.base import BOOT_SLOT, TransferOutcome, TransferStrategy, slot_key
from vmdock.transfer.management_api import ManagementApiStrategy
from vmdock.transfer.remote_shell import RemoteShellStrategy


def select_strategy(ssh, api, progress=None, connect=None) -> TransferStrategy:
    """Pick the strategy for a whole deployment.

    Remote-shell when SSH host, user and password are all present,
    otherwise the management API.
    """
    if ssh is not None and ssh.complete:
        if progress:
            progress("SSH credentials found. Using remote-shell strategy for upload/import...")
        return RemoteShellStrategy(ssh, connect=connect, progress=progress)
    if progress:
        progress("No SSH credentials. Using management API strategy for upload/import...")
    return ManagementApiStrategy(api, progress=progress)


__all__ = [
    "BOOT_SLOT",
    "TransferOutcome",
    "TransferStrategy",
    "RemoteShellStrategy",
    "ManagementApiStrategy",
    "select_strategy",
    "slot_key",
]
