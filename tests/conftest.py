"""Shared pytest fixtures for all test modules."""

import io
import os
import subprocess
import sys
import zipfile
from urllib.parse import parse_qs

import httpx
import pytest

from vmdock.provisioning.proxmox import ProxmoxApi
from vmdock.provisioning.types import ApiConfig, SshCredentials

PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))

API_HOST = "https://pve.test:8006"
API_TOKEN = "root@pam!vmdock=00000000-1111-2222-3333-444444444444"


@pytest.fixture(scope="session")
def project_root():
    """Absolute path to the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def run_cli(project_root):
    """Return a callable that invokes the vmdock CLI as a subprocess."""

    def _run(*args, env=None):
        result = subprocess.run(
            [sys.executable, "-m", "vmdock.vmdock", *args],
            capture_output=True,
            text=True,
            cwd=project_root,
            env={**os.environ, **(env or {})},
        )
        return result.returncode, result.stdout, result.stderr

    return _run


# ── Artifacts ───────────────────────────────────────────────────────


@pytest.fixture
def staging_dir(tmp_path):
    path = tmp_path / "staging"
    path.mkdir()
    return str(path)


def zip_bytes(members):
    """Build an in-memory zip. *members* maps entry name -> bytes (None for a directory)."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in members.items():
            if data is None:
                zf.writestr(zipfile.ZipInfo(name.rstrip("/") + "/"), b"")
            else:
                zf.writestr(name, data)
    return buf.getvalue()


@pytest.fixture
def make_zip():
    return zip_bytes


# ── Proxmox API double ──────────────────────────────────────────────


class FakeProxmox:
    """Records Proxmox API calls and answers them from configurable state.

    Attributes to tweak per test:
        vm_exists: creation returns the Proxmox "vmid already exists" error.
        create_status: status for VM creation when the VM does not exist.
        storage: list of pool dicts returned by GET /storage (None -> HTTP 500).
        upload_status / config_status: status codes for upload and config calls.
    """

    def __init__(self):
        self.calls = []
        self.vm_exists = False
        self.create_status = 200
        self.vms = [{"vmid": 100}, {"vmid": 101}]
        self.storage = [
            {"storage": "local", "active": 1, "content": "iso,vztmpl,backup"},
            {"storage": "local-lvm", "active": 1, "content": "images,rootdir"},
        ]
        self.upload_status = 200
        self.config_status = 200

    def _record(self, request):
        body = request.content
        content_type = request.headers.get("content-type", "")
        if content_type.startswith("application/x-www-form-urlencoded"):
            form = {k: v[0] for k, v in parse_qs(body.decode()).items()}
        else:
            form = {}
        path = request.url.path.removeprefix("/api2/json")
        self.calls.append({"method": request.method, "path": path, "form": form, "body": body, "headers": request.headers})
        return path

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = self._record(request)
        parts = path.strip("/").split("/")

        if request.method == "POST" and parts[-1] == "qemu":
            if self.vm_exists:
                return httpx.Response(
                    500,
                    json={"data": None, "message": "unable to create VM 100 - VM 100 already exists on node 'pve'\n"},
                )
            if self.create_status != 200:
                return httpx.Response(self.create_status, json={"data": None, "message": "permission denied"})
            return httpx.Response(200, json={"data": "UPID:pve:create"})

        if request.method == "GET" and parts[-1] == "qemu":
            return httpx.Response(200, json={"data": self.vms})

        if request.method == "GET" and parts[-1] == "storage":
            if self.storage is None:
                return httpx.Response(500, json={"data": None, "message": "storage status failed"})
            return httpx.Response(200, json={"data": self.storage})

        if request.method == "POST" and parts[-1] == "upload":
            if self.upload_status != 200:
                return httpx.Response(self.upload_status, json={"data": None, "message": "upload rejected"})
            return httpx.Response(200, json={"data": "UPID:pve:upload"})

        if request.method == "POST" and parts[-1] == "config":
            if self.config_status != 200:
                return httpx.Response(
                    self.config_status,
                    json={"data": None, "errors": {"scsi0": "invalid format"}, "message": "Parameter verification failed."},
                )
            return httpx.Response(200, json={"data": None})

        return httpx.Response(404, json={"data": None, "message": "no such path"})

    def paths(self, method=None):
        return [c["path"] for c in self.calls if method is None or c["method"] == method]

    def calls_to(self, suffix):
        return [c for c in self.calls if c["path"].endswith(suffix)]


@pytest.fixture
def api_config():
    return ApiConfig(host=API_HOST, token=API_TOKEN)


@pytest.fixture
def fake_pve():
    return FakeProxmox()


@pytest.fixture
def api(api_config, fake_pve):
    """ProxmoxApi wired to the FakeProxmox handler."""
    return ProxmoxApi(api_config, transport=httpx.MockTransport(fake_pve.handler))


# ── Remote shell double ─────────────────────────────────────────────


class FakeShell:
    """Stands in for RemoteShell: records uploads and commands.

    ``fail`` maps a command prefix to (returncode, stderr) for commands that
    should fail; everything else exits 0.
    """

    def __init__(self):
        self.commands = []
        self.uploads = {}
        self.fail = {}
        self.closed = 0

    async def put_file(self, stream, remote_path):
        self.uploads[remote_path] = stream.read()

    async def run(self, command, timeout=None):
        self.commands.append(command)
        for prefix, (rc, stderr) in self.fail.items():
            if command.startswith(prefix):
                return rc, "", stderr
        return 0, "", ""

    async def close(self):
        self.closed += 1


@pytest.fixture
def fake_shell():
    return FakeShell()


@pytest.fixture
def connect(fake_shell):
    """Connect callable returning the FakeShell; records each call."""
    opened = []

    async def _connect(credentials, timeout=None):
        opened.append((credentials, timeout))
        return fake_shell

    _connect.opened = opened
    return _connect


@pytest.fixture
def ssh_credentials():
    return SshCredentials(host="pve.test", user="root", password="hunter2-long-password")
