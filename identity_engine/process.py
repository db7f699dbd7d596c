"""
Bounded execution of external commands.

Every call the engine makes to git, the account-status CLI or ssh goes through
run_bounded. A missing executable or a timeout becomes ExternalUnavailableError,
so no operation can hang its caller.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Final, Mapping, Sequence

from .errors import ExternalUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS: Final[float] = 5.0


def _command_env(extra: Mapping[str, str] | None) -> dict[str, str]:
    """Copy the environment with a fixed locale so tool output parses the same everywhere."""
    env = os.environ.copy()
    env["LC_ALL"] = "C"
    if extra:
        env.update(extra)
    return env


def run_bounded(
    argv: Sequence[str],
    *,
    capability: str,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> subprocess.CompletedProcess[str]:
    """
    Run a command with a timeout and captured text output.

    Parameters
    ----------
    argv:
        Command and arguments. Never passed through a shell.
    capability:
        Capability name reported in errors ("git", "account-status", ...).
    timeout:
        Seconds before the command is abandoned.
    cwd:
        Working directory.
    env:
        Extra environment variables.

    Returns
    -------
    subprocess.CompletedProcess[str]
        The finished process. A non-zero exit status is not an error here;
        callers interpret return codes.

    Raises
    ------
    ExternalUnavailableError
        If the executable is missing, cannot be started, or times out.
    """
    try:
        return subprocess.run(
            list(argv),
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            cwd=str(cwd) if cwd is not None else None,
            env=_command_env(env),
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ExternalUnavailableError(capability, f"{argv[0]} is not installed") from exc
    except subprocess.TimeoutExpired as exc:
        logger.warning("%s timed out after %.1fs: %s", capability, timeout, argv[0])
        raise ExternalUnavailableError(capability, f"{argv[0]} timed out after {timeout:g}s") from exc
    except OSError as exc:
        raise ExternalUnavailableError(capability, f"cannot run {argv[0]} ({exc!s})") from exc
