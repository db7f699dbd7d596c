"""Logging setup for the ghs command line."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "WARNING") -> None:
    """
    Install a single stderr handler on the root logger.

    stdout is reserved for command output (and commit hook messages), so
    diagnostics always go to stderr. Calling this again only adjusts the level.
    """
    resolved = getattr(logging, str(level).upper(), logging.WARNING)
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(resolved)
        return
    logging.basicConfig(
        level=resolved,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )
