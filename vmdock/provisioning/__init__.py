"""Hypervisor access: Proxmox REST API client and SSH transport."""

from vmdock.provisioning.proxmox import ApiError, ProxmoxApi, content_types
from vmdock.provisioning.ssh_transport import CONNECT_TIMEOUT, RemoteShell
from vmdock.provisioning.types import ApiConfig, SshCredentials

__all__ = [
    "ApiConfig",
    "SshCredentials",
    "ApiError",
    "ProxmoxApi",
    "content_types",
    "RemoteShell",
    "CONNECT_TIMEOUT",
]
