"""
Module entrypoint for the gh-switcher CLI.

This file exists so that `python -m ghs ...` works consistently in all
environments, including when the console-script wrapper is not installed. The
installed commit hook relies on it.

Notes
-----
This module contains no business logic. It delegates to the CLI module.
"""

from __future__ import annotations

from ghs.cli import main


def _run() -> None:
    """
    Execute the gh-switcher command line interface.

    Raises
    ------
    SystemExit
        Always, carrying the CLI exit code.
    """
    raise SystemExit(main())


if __name__ == "__main__":
    _run()
