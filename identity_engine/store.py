"""
Store facade.

Resolves the data root once and wires every engine component to the same
paths and external capabilities. This is the surface the command line adapter
(and any other caller) uses; nothing here prints.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Self

from .accounts import AccountStatusQuery, GhCliAccountQuery
from .data_models import DirectoryLink, ProjectAssignment, UserProfile, validate_project_name
from .errors import ProfileNotFoundError, ValidationError
from .git_client import ConfigScope, GitClient, SubprocessGitClient
from .guard.evaluate import GuardVerdict, evaluate_guard
from .guard.hook_script import (
    HookInstallResult,
    HookStatus,
    HookUninstallResult,
    guard_hook_status,
    install_guard_hook,
    uninstall_guard_hook,
)
from .health import ProfileHealth, check_profile
from .keys.probe import KeyProbe, SshKeyProbe
from .keys.validator import PermissionFix, find_alternatives, fix_permissions
from .links.decision_cache import DecisionCache
from .links.engine import DirectoryLinkEngine
from .links.link_store import DirectoryLinkTable
from .paths_and_safety import StorePaths, ensure_store_directories, normalize_directory, resolve_store_paths
from .profile_store.text_store import MigrationReport, TextProfileStore
from .projects import ProjectAssignmentTable
from .settings import EngineSettings, load_settings, save_settings
from .switching import ApplyResult, apply_profile

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CascadeReport:
    """
    What deleting a profile removed.

    Attributes
    ----------
    username:
        Deleted profile.
    links:
        Directory links that referenced the profile.
    projects:
        Project names whose assignment referenced the profile.
    """

    username: str
    links: tuple[DirectoryLink, ...] = field(default_factory=tuple)
    projects: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class Store:
    """
    Engine components bound to one data root.

    Use Store.open() rather than constructing this directly.
    """

    paths: StorePaths
    profiles: TextProfileStore
    links: DirectoryLinkEngine
    projects: ProjectAssignmentTable
    cache: DecisionCache
    git: GitClient
    accounts: AccountStatusQuery
    key_probe: KeyProbe
    ssh_dir: Path | None = None

    @classmethod
    def open(
        cls,
        data_root: Path | None = None,
        *,
        git: GitClient | None = None,
        accounts: AccountStatusQuery | None = None,
        key_probe: KeyProbe | None = None,
        ssh_dir: Path | None = None,
    ) -> Self:
        """
        Open the store at a data root.

        Parameters
        ----------
        data_root:
            Root directory. Defaults to default_data_root().
        git, accounts, key_probe:
            External capabilities. Defaults shell out to git, gh and ssh with
            the configured timeout.
        ssh_dir:
            Directory searched for alternative keys. Defaults to ~/.ssh.
        """
        paths = resolve_store_paths(data_root)
        ensure_store_directories(paths)
        settings = load_settings(paths.settings_file)
        timeout = settings.external_timeout_seconds

        git = git if git is not None else SubprocessGitClient(timeout=timeout)
        profiles = TextProfileStore(paths.profiles_file)
        cache = DecisionCache(paths.cache_root)
        links = DirectoryLinkEngine(
            table=DirectoryLinkTable(paths.links_file),
            cache=cache,
            profiles=profiles,
            git=git,
            settings_path=paths.settings_file,
        )
        return cls(
            paths=paths,
            profiles=profiles,
            links=links,
            projects=ProjectAssignmentTable(paths.projects_file),
            cache=cache,
            git=git,
            accounts=accounts if accounts is not None else GhCliAccountQuery(timeout=timeout),
            key_probe=key_probe if key_probe is not None else SshKeyProbe(timeout=timeout),
            ssh_dir=ssh_dir,
        )

    # Settings

    @property
    def settings(self) -> EngineSettings:
        """Current settings, read from disk with environment overrides."""
        return load_settings(self.paths.settings_file)

    def set_auto_switch(self, enabled: bool) -> EngineSettings:
        updated = replace(load_settings(self.paths.settings_file), auto_switch=enabled)
        save_settings(self.paths.settings_file, updated)
        logger.info("Auto-switch %s", "enabled" if enabled else "disabled")
        return updated

    # Profiles

    def migrate(self) -> MigrationReport:
        return self.profiles.migrate()

    def delete_profile(self, username: str) -> CascadeReport:
        """
        Delete a profile and everything that references it.

        Raises
        ------
        ProfileNotFoundError
            If username is not registered.
        FormatMigrationNeededError
            If the profile registry still holds legacy lines. Nothing is
            changed in that case.
        """
        # Every registry must be readable before the first write.
        if username not in {p.username for p in self.profiles.list()}:
            raise ProfileNotFoundError(username)
        self.links.list_links()
        self.projects.list()

        self.profiles.delete(username)
        removed_links = self.links.remove_user(username)
        removed_projects = self.projects.remove_user(username)
        if removed_links or removed_projects:
            logger.info(
                "Deleting %s removed %d link(s) and %d project assignment(s)",
                username,
                len(removed_links),
                len(removed_projects),
            )
        return CascadeReport(
            username=username, links=tuple(removed_links), projects=tuple(removed_projects)
        )

    def capture_profile(self, username: str, cwd: Path) -> UserProfile:
        """
        Create a profile from the identity git currently uses in cwd.

        The key path is the best-ranked alternative key for the username, if
        any. Missing name or email fall back to the usual defaults.
        """
        name = self.git.get_config("user.name", cwd=cwd, scope=ConfigScope.EFFECTIVE) or ""
        email = self.git.get_config("user.email", cwd=cwd, scope=ConfigScope.EFFECTIVE) or ""
        candidates = find_alternatives(username, self.ssh_dir)
        key_path = str(candidates[0]) if candidates else ""
        return self.profiles.create(
            username,
            display_name=name,
            email=email,
            key_path=key_path,
            host=self.settings.default_host,
        )

    def apply_profile(self, username: str, cwd: Path) -> ApplyResult:
        """Apply a profile's identity in cwd (the repository, or globally)."""
        return apply_profile(self.profiles.get(username), normalize_directory(cwd), self.git)

    # Keys

    def fix_key(self, username: str) -> PermissionFix:
        """
        Enforce key permissions for a profile's key.

        Raises
        ------
        ValidationError
            If the profile has no key configured.
        """
        profile = self.profiles.get(username)
        if not profile.has_key:
            raise ValidationError("key_path", "", f"a key path configured on profile {username}")
        return fix_permissions(profile.key_path)

    def find_keys(self, username: str) -> list[Path]:
        return find_alternatives(username, self.ssh_dir)

    # Project assignments

    def project_name_for(self, cwd: Path) -> str:
        """Return the repository top-level basename, or cwd's basename outside a repository."""
        current = normalize_directory(cwd)
        repository = self.git.toplevel(current)
        return validate_project_name((repository or current).name)

    def assign_project(self, project: str, username: str) -> ProjectAssignment:
        self.profiles.get(username)
        return self.projects.assign(project, username)

    def unassign_project(self, project: str) -> ProjectAssignment:
        return self.projects.unassign(project)

    def project_for(self, cwd: Path) -> ProjectAssignment | None:
        return self.projects.get(self.project_name_for(cwd))

    # Health

    def check_profile(self, username: str, *, probe: bool = False) -> ProfileHealth:
        return check_profile(
            self.profiles.get(username),
            accounts=self.accounts,
            key_probe=self.key_probe if probe else None,
        )

    def check_all_profiles(self, *, probe: bool = False) -> list[ProfileHealth]:
        return [
            check_profile(
                profile, accounts=self.accounts, key_probe=self.key_probe if probe else None
            )
            for profile in self.profiles.list()
        ]

    # Commit guard

    def install_guard(self, repo_path: Path, python_executable: str | None = None) -> HookInstallResult:
        return install_guard_hook(
            normalize_directory(repo_path),
            git=self.git,
            data_root=self.paths.data_root,
            python_executable=python_executable,
        )

    def uninstall_guard(self, repo_path: Path) -> HookUninstallResult:
        return uninstall_guard_hook(normalize_directory(repo_path), git=self.git)

    def guard_status(self, repo_path: Path) -> HookStatus:
        return guard_hook_status(normalize_directory(repo_path), git=self.git)

    def evaluate_guard(self, cwd: Path) -> GuardVerdict:
        current = normalize_directory(cwd)
        installed: bool | None = None
        if self.git.toplevel(current) is not None:
            installed = self.guard_status(current).managed
        return evaluate_guard(
            current,
            git=self.git,
            links=self.links,
            projects=self.projects,
            profiles=self.profiles,
            accounts=self.accounts,
            installed=installed,
        )

