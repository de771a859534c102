#!/usr/bin/env python3
"""Proxmox VM deployment tools: CLI entrypoint."""

import argparse

from vmdock.commands.deploy import register_deploy_command
from vmdock.commands.stage import register_stage_command
from vmdock.commands.storage import register_storage_command
from vmdock.logging_setup import setup_cli_logging


def main():
    parser = argparse.ArgumentParser(description="Deploy disk images as Proxmox VMs")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_stage_command(subparsers)
    register_deploy_command(subparsers)
    register_storage_command(subparsers)

    args = parser.parse_args()
    setup_cli_logging(verbose=args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
