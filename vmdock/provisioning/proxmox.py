"""Proxmox VE REST API client: VM creation, storage listing, uploads, VM config."""

import logging

import httpx

from vmdock.provisioning.types import ApiConfig

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60
# Disk images can be many GB; let the upload run as long as the transfer takes
UPLOAD_TIMEOUT = httpx.Timeout(DEFAULT_TIMEOUT, read=None, write=None)

# Fixed hardware defaults for new VMs
DEFAULT_NET0 = "virtio,bridge=vmbr0,firewall=1"
DEFAULT_SCSIHW = "virtio-scsi-pci"
DEFAULT_OSTYPE = "l26"

FIRST_VMID = 100


class ApiError(Exception):
    """A Proxmox API call failed (transport error or non-200 response)."""

    def __init__(self, message, status_code=None, errors=None):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or {}

    @classmethod
    def from_response(cls, method, path, resp: httpx.Response) -> "ApiError":
        errors = {}
        detail = resp.reason_phrase
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            errors = body.get("errors") or {}
            detail = body.get("message") or detail
        if errors:
            detail = f"{detail} " + "; ".join(f"{k}: {v}" for k, v in errors.items())
        return cls(f"{method} {path} returned {resp.status_code}: {detail.strip()}", resp.status_code, errors)

    @property
    def is_vmid_conflict(self) -> bool:
        """True if the call failed because the VM id is already taken."""
        return "vmid" in self.errors or "already exists" in str(self).lower()


class ProxmoxApi:
    """Thin async client for the subset of the Proxmox API vmdock uses.

    Every instance carries its own configuration; a client is opened per call,
    so instances can be shared freely within a deployment without global state.
    ``transport`` is an optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(self, config: ApiConfig, transport=None):
        self.config = config
        self._transport = transport

    @property
    def _headers(self):
        return {"Authorization": f"PVEAPIToken={self.config.token}"}

    async def _api_request(self, method, path, data=None, files=None, params=None, timeout=DEFAULT_TIMEOUT):
        """Make an authenticated API request.

        Returns:
            The ``data`` member of the JSON response.

        Raises:
            ApiError: on transport failure or any non-200 status.
        """
        url = f"{self.config.base_url}{path}"
        try:
            async with httpx.AsyncClient(verify=self.config.verify_tls, transport=self._transport) as client:
                resp = await client.request(method, url, data=data, files=files, params=params, headers=self._headers, timeout=timeout)
        except httpx.HTTPError as e:
            raise ApiError(f"{method} {path} failed: {e}") from e

        if resp.status_code != 200:
            raise ApiError.from_response(method, path, resp)
        try:
            return resp.json().get("data")
        except ValueError:
            return None

    async def create_vm(self, node, vmid, name, memory, cores):
        """Create an empty VM shell. POST /nodes/{node}/qemu"""
        data = {
            "vmid": str(vmid),
            "name": name,
            "memory": str(memory),
            "cores": str(cores),
            "net0": DEFAULT_NET0,
            "scsihw": DEFAULT_SCSIHW,
            "ostype": DEFAULT_OSTYPE,
        }
        return await self._api_request("POST", f"/nodes/{node}/qemu", data=data)

    async def list_vms(self, node) -> list[dict]:
        """GET /nodes/{node}/qemu"""
        return await self._api_request("GET", f"/nodes/{node}/qemu") or []

    async def next_vmid(self, node) -> int:
        """Suggest a free VM id: highest existing id on the node plus one."""
        ids = [int(vm["vmid"]) for vm in await self.list_vms(node) if "vmid" in vm]
        return max(ids) + 1 if ids else FIRST_VMID

    async def list_storage(self, node) -> list[dict]:
        """GET /nodes/{node}/storage

        Each pool dict carries ``storage`` (name), ``active`` (0/1) and
        ``content`` (comma-separated content types, e.g. ``"iso,vztmpl,backup"``).
        """
        return await self._api_request("GET", f"/nodes/{node}/storage") or []

    async def upload(self, node, storage, filename, stream, content="iso"):
        """Multipart upload into a storage pool. POST /nodes/{node}/storage/{storage}/upload"""
        data = {"content": content, "filename": filename}
        files = {"file": (filename, stream, "application/octet-stream")}
        return await self._api_request(
            "POST", f"/nodes/{node}/storage/{storage}/upload", data=data, files=files, timeout=UPLOAD_TIMEOUT
        )

    async def set_vm_config(self, node, vmid, options: dict):
        """POST /nodes/{node}/qemu/{vmid}/config"""
        return await self._api_request("POST", f"/nodes/{node}/qemu/{vmid}/config", data=options)


def content_types(pool: dict) -> set[str]:
    """Parse a storage pool's comma-separated ``content`` field."""
    content = pool.get("content") or ""
    if isinstance(content, (list, tuple)):
        return set(content)
    return {c.strip() for c in str(content).split(",") if c.strip()}
