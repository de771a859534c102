"""SSH transport: run commands and push files to the hypervisor node over SSH/SFTP.

Password authentication is required, so this uses paramiko rather than the
``ssh``/``scp`` binaries. Blocking paramiko calls run in a worker thread.
"""

import asyncio
import logging
import socket

import paramiko

from vmdock.errors import TransferError
from vmdock.provisioning.types import SshCredentials

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 20


class RemoteShell:
    """One open SSH session. Reused for every disk of a deployment, closed once."""

    def __init__(self, client: paramiko.SSHClient, address: str = ""):
        self.client = client
        self.address = address

    @classmethod
    async def connect(cls, credentials: SshCredentials, timeout=CONNECT_TIMEOUT) -> "RemoteShell":
        """Open a session, failing fast after *timeout* seconds.

        Raises:
            TransferError: connection or authentication failure.
        """
        return await asyncio.to_thread(cls._connect_sync, credentials, timeout)

    @classmethod
    def _connect_sync(cls, credentials, timeout):
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=credentials.host,
                port=credentials.port,
                username=credentials.user,
                password=credentials.password,
                timeout=timeout,
                banner_timeout=timeout,
                auth_timeout=timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except paramiko.AuthenticationException as e:
            client.close()
            raise TransferError(f"SSH authentication failed for {credentials.address}: {e}") from e
        except (paramiko.SSHException, socket.timeout, OSError) as e:
            client.close()
            raise TransferError(f"SSH connection to {credentials.address} failed: {e}") from e
        logger.debug(f"SSH session opened to {credentials.address}")
        return cls(client, credentials.address)

    async def run(self, command, timeout=None):
        """Run a command and return (returncode, stdout, stderr).

        Raises:
            TransferError: the command could not be started or the channel broke.
        """
        logger.debug(f"ssh {self.address}: {command}")
        try:
            _, stdout, stderr = await asyncio.to_thread(self.client.exec_command, command, timeout=timeout)
            # drain both streams at once; a full stderr window would otherwise stall stdout
            out, err = await asyncio.gather(asyncio.to_thread(stdout.read), asyncio.to_thread(stderr.read))
            rc = await asyncio.to_thread(stdout.channel.recv_exit_status)
        except (paramiko.SSHException, socket.timeout, OSError) as e:
            raise TransferError(f"SSH command failed on {self.address}: {command}: {e}") from e
        return rc, out.decode(errors="replace"), err.decode(errors="replace")

    async def put_file(self, stream, remote_path):
        """Stream a readable binary file object to *remote_path* over SFTP.

        Raises:
            TransferError: SFTP open or write failed.
        """
        await asyncio.to_thread(self._put_file_sync, stream, remote_path)

    def _put_file_sync(self, stream, remote_path):
        try:
            sftp = self.client.open_sftp()
            try:
                sftp.putfo(stream, remote_path)
            finally:
                sftp.close()
        except (paramiko.SSHException, OSError) as e:
            raise TransferError(f"SFTP upload to {self.address}:{remote_path} failed: {e}") from e

    async def close(self):
        await asyncio.to_thread(self.client.close)
        logger.debug(f"SSH session to {self.address} closed")
