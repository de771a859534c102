"""CLI logging setup: plain %(message)s format on stderr."""

import logging
import sys

from vmdock.redact import SecretRedactingFilter


def setup_cli_logging(verbose=False):
    """Configure root logger with plain message format for CLI commands.

    Logs go to stderr; stdout is reserved for the newline-delimited event
    stream written by ``vmdock deploy`` and the JSON printed by ``vmdock stage``.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(SecretRedactingFilter())
    root.addHandler(handler)
    root.addFilter(SecretRedactingFilter())
    # paramiko is chatty at INFO (banner, auth negotiation)
    logging.getLogger("paramiko").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
