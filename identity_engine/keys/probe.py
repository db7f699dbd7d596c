"""
Key authentication probe.

Attempts to authenticate against the configured host with a specific key and
classifies the outcome. The probe never raises for network trouble; it reports
NETWORK_UNREACHABLE instead so that callers decide how strict to be.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from ..errors import ExternalUnavailableError
from ..process import DEFAULT_TIMEOUT_SECONDS, run_bounded

logger = logging.getLogger(__name__)


class ProbeOutcome(str, Enum):
    """Classification of a key authentication attempt."""

    SUCCESS = "success"
    REJECTED = "rejected"
    NETWORK_UNREACHABLE = "network_unreachable"


class KeyProbe(Protocol):
    """Capability that tests a key against a host."""

    def probe(self, key_path: Path, host: str) -> ProbeOutcome:
        """Return how the host responded to the key."""
        ...


def classify_ssh_output(output: str) -> ProbeOutcome:
    """
    Classify ``ssh -T`` output.

    Notes
    -----
    Hosting services exit non-zero even on successful authentication (no shell
    access), so the text, not the exit status, decides the outcome.
    """
    lowered = output.lower()
    if "successfully authenticated" in lowered or "welcome to gitlab" in lowered:
        return ProbeOutcome.SUCCESS
    if "permission denied" in lowered:
        return ProbeOutcome.REJECTED
    return ProbeOutcome.NETWORK_UNREACHABLE


@dataclass(frozen=True, slots=True)
class SshKeyProbe:
    """KeyProbe backed by the ssh client."""

    timeout: float = DEFAULT_TIMEOUT_SECONDS

    def probe(self, key_path: Path, host: str) -> ProbeOutcome:
        """See KeyProbe.probe."""
        connect_timeout = max(1, int(self.timeout))
        argv = [
            "ssh",
            "-T",
            "-i",
            str(key_path),
            "-o",
            "IdentitiesOnly=yes",
            "-o",
            "BatchMode=yes",
            "-o",
            "StrictHostKeyChecking=accept-new",
            "-o",
            f"ConnectTimeout={connect_timeout}",
            f"git@{host}",
        ]
        try:
            result = run_bounded(argv, capability="key-probe", timeout=self.timeout + 1)
        except ExternalUnavailableError as exc:
            logger.debug("Key probe unavailable: %s", exc)
            return ProbeOutcome.NETWORK_UNREACHABLE
        outcome = classify_ssh_output(result.stdout + "\n" + result.stderr)
        logger.debug("Key probe for %s on %s: %s", key_path, host, outcome.value)
        return outcome
