"""Stage command: persist an image or archive and report the detected disks."""

import json
import logging
import os
import sys

from vmdock.artifacts import stage
from vmdock.errors import StagingError

logger = logging.getLogger(__name__)


def handle_stage(args):
    """Handle the stage command."""
    try:
        with open(args.file, "rb") as f:
            session = stage(f, os.path.basename(args.file), staging_dir=args.staging_dir)
    except (StagingError, OSError) as e:
        logger.error(f"Error: {e}")
        sys.exit(1)

    print(json.dumps(session.to_dict(), indent=2))


def register_stage_command(subparsers):
    """Register the stage subcommand."""
    parser = subparsers.add_parser("stage", help="Stage a disk image or .zip bundle for deployment")
    parser.add_argument("file", help="Disk image (.qcow2, .img, .iso) or .zip archive of images")
    parser.add_argument("--staging-dir", default=None, help="Staging directory (default: system temp dir)")
    parser.set_defaults(func=handle_stage)
