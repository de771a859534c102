"""Deployment request dataclass."""

from dataclasses import dataclass

from vmdock.provisioning.types import ApiConfig, SshCredentials

DEFAULT_NODE = "pve"
DEFAULT_MEMORY = 2048
DEFAULT_CORES = 2
DEFAULT_STORAGE = "local-lvm"


@dataclass(frozen=True)
class DeploymentRequest:
    """All parameters needed for a single deployment. Built once, never mutated."""

    vmid: int
    name: str
    api: ApiConfig
    node: str = DEFAULT_NODE
    memory: int = DEFAULT_MEMORY  # MB
    cores: int = DEFAULT_CORES
    storage: str = DEFAULT_STORAGE  # target pool for imported disks
    ssh: SshCredentials | None = None
    order: tuple[str, ...] | None = None  # caller's disk-name ordering
