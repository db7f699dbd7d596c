"""
Account-status query.

The engine does not authenticate anywhere itself. It asks an external tool
which account is currently active for a host. The default implementation uses
the GitHub CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .errors import ExternalUnavailableError
from .process import DEFAULT_TIMEOUT_SECONDS, run_bounded


class AccountStatusQuery(Protocol):
    """Capability that reports the active account login for a host."""

    def active_login(self, host: str) -> str:
        """
        Return the active login.

        Raises
        ------
        ExternalUnavailableError
            If the query cannot be answered (not installed, not
            authenticated, timed out).
        """
        ...


@dataclass(frozen=True, slots=True)
class GhCliAccountQuery:
    """AccountStatusQuery backed by ``gh api user``."""

    timeout: float = DEFAULT_TIMEOUT_SECONDS
    executable: str = "gh"

    def active_login(self, host: str) -> str:
        """See AccountStatusQuery.active_login."""
        result = run_bounded(
            [self.executable, "api", "--hostname", host, "user", "--jq", ".login"],
            capability="account-status",
            timeout=self.timeout,
        )
        login = result.stdout.strip()
        if result.returncode != 0 or not login:
            detail = result.stderr.strip().splitlines()[0] if result.stderr.strip() else "no login"
            raise ExternalUnavailableError(
                "account-status", f"cannot determine active account on {host} ({detail})"
            )
        return login
