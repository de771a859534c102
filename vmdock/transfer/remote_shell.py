"""Remote-shell strategy: SFTP the image to the node, then import it with ``qm``."""

import shlex

from vmdock.errors import AttachError, TransferError
from vmdock.provisioning.ssh_transport import CONNECT_TIMEOUT, RemoteShell
from vmdock.provisioning.types import SshCredentials
from vmdock.transfer.base import BOOT_SLOT, TransferStrategy, slot_key

REMOTE_TMP_DIR = "/tmp"


def remote_tmp_path(clean_name):
    return f"{REMOTE_TMP_DIR}/{clean_name}"


def import_command(vmid, remote_path, storage, slot):
    """Import *remote_path* into *storage* and attach it at *slot* in one ``qm set``."""
    volume = f"{storage}:0,import-from={remote_path}"
    return f"qm set {vmid} --{slot_key(slot)} {shlex.quote(volume)}"


def boot_order_command(vmid, slot):
    return f"qm set {vmid} --boot order={slot_key(slot)}"


class RemoteShellStrategy(TransferStrategy):
    """Push each disk over SFTP and run ``qm`` on the node.

    The SSH session is opened on the first ``deliver`` and reused for every
    disk; ``close`` tears it down once at the end of the deployment.
    ``connect`` defaults to ``RemoteShell.connect`` and is injectable for tests.
    """

    name = "remote-shell"

    def __init__(self, credentials: SshCredentials, connect_timeout=CONNECT_TIMEOUT, connect=None, progress=None):
        super().__init__(progress)
        self.credentials = credentials
        self.connect_timeout = connect_timeout
        self._connect = connect or RemoteShell.connect
        self._shell = None

    async def _session(self):
        if self._shell is None:
            self.progress(f"Connecting to {self.credentials.address} via SSH...")
            self._shell = await self._connect(self.credentials, timeout=self.connect_timeout)
        return self._shell

    async def _deliver(self, stream, clean_name, vmid, storage, node, slot):
        shell = await self._session()
        remote_path = remote_tmp_path(clean_name)

        try:
            self.progress(f"SFTP uploading {clean_name} to {remote_path}...")
            await shell.put_file(stream, remote_path)
            self.progress(f"Upload done. Importing {clean_name} into {storage} as {slot_key(slot)}...")
            rc, _, stderr = await shell.run(import_command(vmid, remote_path, storage, slot))
            if rc != 0:
                raise TransferError(f"qm import of {clean_name} failed: {stderr.strip()}")
        finally:
            await self._remove_remote(shell, remote_path)

        if slot == BOOT_SLOT:
            self.progress(f"Setting boot order to {slot_key(slot)}...")
            rc, _, stderr = await shell.run(boot_order_command(vmid, slot))
            if rc != 0:
                raise AttachError(f"Setting boot order on VM {vmid} failed: {stderr.strip()}")

        self.progress(f"Imported {clean_name} as {slot_key(slot)}.")
        return remote_path

    async def _remove_remote(self, shell, remote_path):
        try:
            rc, _, stderr = await shell.run(f"rm -f {shlex.quote(remote_path)}")
        except TransferError as e:
            self.progress(f"Warning: failed to remove remote temp file {remote_path}: {e}")
            return
        if rc != 0:
            self.progress(f"Warning: failed to remove remote temp file {remote_path}: {stderr.strip()}")

    async def close(self):
        if self._shell is not None:
            shell, self._shell = self._shell, None
            await shell.close()
