"""Deploy command: create a VM and import staged disks, streaming events as NDJSON."""

import asyncio
import logging
import os
import sys

from vmdock.artifacts import load_session, stage
from vmdock.config import load_config
from vmdock.deploy import DeploymentRequest, EventKind, deploy_events
from vmdock.errors import StagingError
from vmdock.provisioning.proxmox import ApiError, ProxmoxApi
from vmdock.provisioning.types import SshCredentials
from vmdock.redact import register_secret

logger = logging.getLogger(__name__)


def _parse_order(raw):
    if not raw:
        return None
    return tuple(name.strip() for name in raw.split(",") if name.strip())


def _ssh_from_args(args, settings):
    """CLI flags override the configured SSH credentials field by field."""
    base = settings.ssh or SshCredentials()
    ssh = SshCredentials(
        host=args.ssh_host or base.host,
        user=args.ssh_user or base.user,
        password=args.ssh_password or base.password,
        port=args.ssh_port or base.port,
    )
    register_secret(ssh.password)
    return ssh if ssh.complete else None


def handle_deploy(args):
    """CLI handler for 'deploy'."""
    ok = asyncio.run(_handle_deploy(args))
    if not ok:
        sys.exit(1)


async def _handle_deploy(args):
    try:
        settings = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Error: {e}")
        return False

    if not settings.api.host or not settings.api.token:
        logger.error("Error: Proxmox host and API token required. Set them in the config file or PVE_HOST / PVE_TOKEN.")
        return False

    node = args.node or settings.node
    staging_dir = args.staging_dir or settings.staging_dir
    api = ProxmoxApi(settings.api)

    vmid = args.vmid
    if vmid is None:
        try:
            vmid = await api.next_vmid(node)
        except ApiError as e:
            logger.error(f"Error: no --vmid given and VM id lookup failed: {e}")
            return False
        logger.info(f"No --vmid given, using next free id {vmid}")

    # From here on the staging file belongs to the deployment, which removes it
    try:
        if args.file:
            with open(args.file, "rb") as f:
                session = stage(f, os.path.basename(args.file), staging_dir=staging_dir)
        else:
            session = load_session(args.file_id, staging_dir=staging_dir)
    except (StagingError, OSError) as e:
        logger.error(f"Error: {e}")
        return False

    request = DeploymentRequest(
        vmid=vmid,
        name=args.name,
        api=settings.api,
        node=node,
        memory=args.memory or settings.memory,
        cores=args.cores or settings.cores,
        storage=args.storage or settings.storage,
        ssh=_ssh_from_args(args, settings),
        order=_parse_order(args.order),
    )

    success = False
    async for event in deploy_events(request, session, api=api):
        sys.stdout.write(event.to_json() + "\n")
        sys.stdout.flush()
        success = event.kind is EventKind.DONE
    return success


def register_deploy_command(subparsers):
    """Register the deploy subcommand."""
    parser = subparsers.add_parser("deploy", help="Create a VM and import disk images into it")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Disk image or .zip archive to stage and deploy")
    source.add_argument("--file-id", help="Identifier of an artifact staged with 'vmdock stage'")
    parser.add_argument("--name", default="new-vm", help="VM display name (default: new-vm)")
    parser.add_argument("--vmid", type=int, default=None, help="VM id (default: highest existing id + 1)")
    parser.add_argument("--memory", type=int, default=None, help="Memory in MB (default: 2048)")
    parser.add_argument("--cores", type=int, default=None, help="CPU cores (default: 2)")
    parser.add_argument("--storage", default=None, help="Target storage pool for disks (default: local-lvm)")
    parser.add_argument("--node", default=None, help="Proxmox node name (default: pve)")
    parser.add_argument("--order", default=None, help="Comma-separated disk names; first becomes the boot disk")
    parser.add_argument("--config", default=None, help="YAML config file (default: ./vmdock.yaml if present)")
    parser.add_argument("--staging-dir", default=None, help="Staging directory (default: system temp dir)")
    parser.add_argument("--ssh-host", default=None, help="SSH host of the Proxmox node (enables the SSH strategy)")
    parser.add_argument("--ssh-user", default=None, help="SSH user (fallback: PVE_SSH_USER)")
    parser.add_argument("--ssh-password", default=None, help="SSH password (fallback: PVE_SSH_PASSWORD)")
    parser.add_argument("--ssh-port", type=int, default=None, help="SSH port (default: 22)")
    parser.set_defaults(func=handle_deploy)
