"""Storage command: list a node's active storage pools."""

import asyncio
import logging
import sys

from vmdock.config import load_config
from vmdock.provisioning.proxmox import ApiError, ProxmoxApi, content_types

logger = logging.getLogger(__name__)


def handle_storage(args):
    """CLI handler for 'storage'."""
    if not asyncio.run(_handle_storage(args)):
        sys.exit(1)


async def _handle_storage(args):
    try:
        settings = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Error: {e}")
        return False

    if not settings.api.host or not settings.api.token:
        logger.error("Error: Proxmox host and API token required. Set them in the config file or PVE_HOST / PVE_TOKEN.")
        return False

    node = args.node or settings.node
    try:
        pools = await ProxmoxApi(settings.api).list_storage(node)
    except ApiError as e:
        logger.error(f"Error: {e}")
        return False

    active = [p for p in pools if p.get("active")]
    if not active:
        logger.info(f"No active storage on node {node}.")
        return True
    for pool in active:
        print(f"{pool['storage']:<20} {','.join(sorted(content_types(pool)))}")
    return True


def register_storage_command(subparsers):
    """Register the storage subcommand."""
    parser = subparsers.add_parser("storage", help="List active storage pools on the node")
    parser.add_argument("--node", default=None, help="Proxmox node name (default: pve)")
    parser.add_argument("--config", default=None, help="YAML config file (default: ./vmdock.yaml if present)")
    parser.set_defaults(func=handle_storage)
