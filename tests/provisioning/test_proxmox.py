"""Unit tests for the Proxmox API client."""

import io

import httpx
import pytest

from vmdock.provisioning.proxmox import (
    DEFAULT_NET0,
    DEFAULT_OSTYPE,
    DEFAULT_SCSIHW,
    ApiError,
    ProxmoxApi,
    content_types,
)
from vmdock.provisioning.types import ApiConfig


def test_base_url_adds_scheme_and_api_root():
    assert ApiConfig(host="https://pve:8006/", token="t").base_url == "https://pve:8006/api2/json"
    assert ApiConfig(host="10.0.0.5:8006", token="t").base_url == "https://10.0.0.5:8006/api2/json"


async def test_create_vm_sends_fixed_defaults(api, fake_pve, api_config):
    await api.create_vm("pve", 103, "web", 4096, 4)

    call = fake_pve.calls[0]
    assert call["method"] == "POST"
    assert call["path"] == "/nodes/pve/qemu"
    assert call["headers"]["authorization"] == f"PVEAPIToken={api_config.token}"
    assert call["form"] == {
        "vmid": "103",
        "name": "web",
        "memory": "4096",
        "cores": "4",
        "net0": DEFAULT_NET0,
        "scsihw": DEFAULT_SCSIHW,
        "ostype": DEFAULT_OSTYPE,
    }


async def test_create_vm_conflict_is_detected(api, fake_pve):
    fake_pve.vm_exists = True
    with pytest.raises(ApiError) as exc_info:
        await api.create_vm("pve", 100, "web", 2048, 2)
    assert exc_info.value.status_code == 500
    assert exc_info.value.is_vmid_conflict


async def test_vmid_validation_error_counts_as_conflict(api_config):
    def handler(request):
        return httpx.Response(400, json={"data": None, "errors": {"vmid": "VM 100 already exists"}})

    api = ProxmoxApi(api_config, transport=httpx.MockTransport(handler))
    with pytest.raises(ApiError) as exc_info:
        await api.create_vm("pve", 100, "web", 2048, 2)
    assert exc_info.value.errors == {"vmid": "VM 100 already exists"}
    assert exc_info.value.is_vmid_conflict


async def test_other_errors_are_not_conflicts(api, fake_pve):
    fake_pve.create_status = 403
    with pytest.raises(ApiError, match="403: permission denied") as exc_info:
        await api.create_vm("pve", 100, "web", 2048, 2)
    assert not exc_info.value.is_vmid_conflict


async def test_transport_errors_become_api_errors(api_config):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    api = ProxmoxApi(api_config, transport=httpx.MockTransport(handler))
    with pytest.raises(ApiError, match="connection refused"):
        await api.list_storage("pve")


async def test_list_storage_and_content_types(api):
    pools = await api.list_storage("pve")
    assert [p["storage"] for p in pools] == ["local", "local-lvm"]
    assert content_types(pools[0]) == {"iso", "vztmpl", "backup"}
    assert content_types({"content": ""}) == set()
    assert content_types({}) == set()


async def test_next_vmid(api, fake_pve):
    assert await api.next_vmid("pve") == 102
    fake_pve.vms = []
    assert await api.next_vmid("pve") == 100


async def test_upload_is_multipart(api, fake_pve):
    await api.upload("pve", "local", "disk.img", io.BytesIO(b"DISKDATA"))

    call = fake_pve.calls_to("/upload")[0]
    assert call["path"] == "/nodes/pve/storage/local/upload"
    assert call["headers"]["content-type"].startswith("multipart/form-data")
    assert b'name="content"' in call["body"]
    assert b"iso" in call["body"]
    assert b'filename="disk.img"' in call["body"]
    assert b"DISKDATA" in call["body"]


async def test_set_vm_config(api, fake_pve):
    await api.set_vm_config("pve", 103, {"scsi1": "local-lvm:0,import-from=local:iso/b.img"})
    call = fake_pve.calls_to("/config")[0]
    assert call["path"] == "/nodes/pve/qemu/103/config"
    assert call["form"] == {"scsi1": "local-lvm:0,import-from=local:iso/b.img"}


async def test_set_vm_config_error_includes_field_errors(api, fake_pve):
    fake_pve.config_status = 400
    with pytest.raises(ApiError, match="scsi0: invalid format"):
        await api.set_vm_config("pve", 103, {"scsi0": "bad"})
