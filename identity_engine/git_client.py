"""
Git access for repository discovery and identity configuration.

Engine components depend on the GitClient protocol; SubprocessGitClient is the
production implementation. Tests substitute an in-memory client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from .errors import ExternalUnavailableError, ValidationError
from .process import DEFAULT_TIMEOUT_SECONDS, run_bounded

logger = logging.getLogger(__name__)

# `git config --unset` exit status when the key is not set.
_GIT_CONFIG_KEY_MISSING = 5


class ConfigScope(str, Enum):
    """Which git configuration file a read or write targets."""

    LOCAL = "local"
    GLOBAL = "global"
    EFFECTIVE = "effective"


class GitClient(Protocol):
    """Capability for repository discovery and config access."""

    def toplevel(self, cwd: Path) -> Path | None:
        """Return the work tree root containing cwd, or None outside a repository."""
        ...

    def hooks_dir(self, cwd: Path) -> Path:
        """Return the hooks directory for the repository containing cwd."""
        ...

    def get_config(self, key: str, *, cwd: Path, scope: ConfigScope) -> str | None:
        """Return a config value, or None when unset."""
        ...

    def set_config(self, key: str, value: str, *, cwd: Path, scope: ConfigScope) -> None:
        """Write a config value."""
        ...

    def unset_config(self, key: str, *, cwd: Path, scope: ConfigScope) -> None:
        """Remove a config value. Removing an unset key is not an error."""
        ...


def _scope_flags(scope: ConfigScope) -> list[str]:
    if scope is ConfigScope.LOCAL:
        return ["--local"]
    if scope is ConfigScope.GLOBAL:
        return ["--global"]
    return []


@dataclass(frozen=True, slots=True)
class SubprocessGitClient:
    """GitClient that shells out to the git executable."""

    timeout: float = DEFAULT_TIMEOUT_SECONDS
    executable: str = "git"

    def _run(self, args: list[str], cwd: Path | None):
        work_dir = cwd if cwd is not None and cwd.is_dir() else None
        return run_bounded(
            [self.executable, *args], capability="git", timeout=self.timeout, cwd=work_dir
        )

    def toplevel(self, cwd: Path) -> Path | None:
        """See GitClient.toplevel."""
        if not cwd.is_dir():
            return None
        result = self._run(["rev-parse", "--show-toplevel"], cwd)
        if result.returncode != 0:
            return None
        out = result.stdout.strip()
        return Path(out).resolve() if out else None

    def hooks_dir(self, cwd: Path) -> Path:
        """
        See GitClient.hooks_dir.

        Notes
        -----
        ``--git-path hooks`` honors core.hooksPath and linked worktrees.
        """
        if not cwd.is_dir():
            raise ValidationError("path", str(cwd), "a directory inside a git repository")
        result = self._run(["rev-parse", "--git-path", "hooks"], cwd)
        if result.returncode != 0:
            raise ValidationError("path", str(cwd), "a directory inside a git repository")
        hooks = Path(result.stdout.strip())
        if not hooks.is_absolute():
            hooks = cwd / hooks
        return hooks.resolve()

    def get_config(self, key: str, *, cwd: Path, scope: ConfigScope) -> str | None:
        """See GitClient.get_config."""
        result = self._run(["config", *_scope_flags(scope), "--get", key], cwd)
        if result.returncode != 0:
            return None
        value = result.stdout.rstrip("\n")
        return value or None

    def set_config(self, key: str, value: str, *, cwd: Path, scope: ConfigScope) -> None:
        """See GitClient.set_config."""
        if scope is ConfigScope.EFFECTIVE:
            raise ValidationError("scope", scope.value, "local or global for writes")
        result = self._run(["config", *_scope_flags(scope), key, value], cwd)
        if result.returncode != 0:
            raise ExternalUnavailableError(
                "git", f"failed to set {key} ({scope.value}): {result.stderr.strip()}"
            )
        logger.debug("git config --%s %s updated", scope.value, key)

    def unset_config(self, key: str, *, cwd: Path, scope: ConfigScope) -> None:
        """See GitClient.unset_config."""
        if scope is ConfigScope.EFFECTIVE:
            raise ValidationError("scope", scope.value, "local or global for writes")
        result = self._run(["config", *_scope_flags(scope), "--unset", key], cwd)
        if result.returncode not in (0, _GIT_CONFIG_KEY_MISSING):
            raise ExternalUnavailableError(
                "git", f"failed to unset {key} ({scope.value}): {result.stderr.strip()}"
            )
