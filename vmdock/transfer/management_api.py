"""Management-API strategy: upload through the Proxmox API and attach with a config call."""

from vmdock.errors import AttachError, TransferError
from vmdock.provisioning.proxmox import ApiError, ProxmoxApi, content_types
from vmdock.transfer.base import BOOT_SLOT, TransferStrategy, slot_key

UPLOAD_CONTENT = "iso"
DEFAULT_UPLOAD_STORAGE = "local"


def volume_id(pool, clean_name):
    return f"{pool}:{UPLOAD_CONTENT}/{clean_name}"


def attach_options(storage, volid, slot):
    """Config options binding *volid* to *slot*; slot 0 also sets boot order."""
    options = {slot_key(slot): f"{storage}:0,import-from={volid}"}
    if slot == BOOT_SLOT:
        options["boot"] = f"order={slot_key(slot)}"
    return options


class ManagementApiStrategy(TransferStrategy):
    """Upload each disk to an ISO-capable pool, then import it via VM config.

    The upload pool is discovered once per instance and memoized.
    """

    name = "management-api"

    def __init__(self, api: ProxmoxApi, progress=None):
        super().__init__(progress)
        self.api = api
        self._upload_storage = None

    async def upload_storage(self, node):
        if self._upload_storage is None:
            self._upload_storage = await self._discover_upload_storage(node)
        return self._upload_storage

    async def _discover_upload_storage(self, node):
        self.progress(f"Discovering a storage pool for uploads on node {node}...")
        try:
            pools = await self.api.list_storage(node)
        except ApiError as e:
            self.progress(f"Storage discovery failed ({e}); defaulting to '{DEFAULT_UPLOAD_STORAGE}'.")
            return DEFAULT_UPLOAD_STORAGE

        for pool in pools:
            if pool.get("active") and UPLOAD_CONTENT in content_types(pool):
                self.progress(f"Using storage '{pool['storage']}' for uploads.")
                return pool["storage"]

        self.progress(f"No active storage accepts '{UPLOAD_CONTENT}' content; defaulting to '{DEFAULT_UPLOAD_STORAGE}'.")
        return DEFAULT_UPLOAD_STORAGE

    async def _deliver(self, stream, clean_name, vmid, storage, node, slot):
        pool = await self.upload_storage(node)

        self.progress(f"Uploading {clean_name} to storage '{pool}'...")
        try:
            await self.api.upload(node, pool, clean_name, stream, content=UPLOAD_CONTENT)
        except ApiError as e:
            raise TransferError(f"API upload of {clean_name} failed: {e}") from e

        volid = volume_id(pool, clean_name)
        action = f"{slot_key(slot)} with boot order" if slot == BOOT_SLOT else slot_key(slot)
        self.progress(f"Upload done. Attaching {volid} as {action}...")
        try:
            await self.api.set_vm_config(node, vmid, attach_options(storage, volid, slot))
        except ApiError as e:
            raise AttachError(f"Attaching {volid} to VM {vmid} failed: {e}") from e

        self.progress(f"Imported {clean_name} as {slot_key(slot)}.")
        return volid
