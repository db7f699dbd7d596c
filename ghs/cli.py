"""
Command-line interface for gh-switcher.

Notes
-----
The CLI is intentionally thin. It parses arguments, calls Store operations and
renders their results. Engine errors are mapped to exit codes:

- 2: validation errors, unknown entities, registries needing migration.
- 1: I/O failures, unavailable external tools, a failing commit guard or
  profile health check.
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path

from identity_engine.data_models import LinkMode
from identity_engine.errors import (
    ExternalUnavailableError,
    FormatMigrationNeededError,
    IOFailureError,
    NotFoundError,
    ValidationError,
)
from identity_engine.guard.evaluate import SKIP_HOOK_ENV
from identity_engine.keys.validator import find_alternatives
from identity_engine.links.engine import SwitchStatus
from identity_engine.logging_config import configure_logging
from identity_engine.store import Store
from identity_engine.switching import ApplyResult

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def open_store(data_root: Path | None) -> Store:
    """Open the store used by every command."""
    return Store.open(data_root)


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--data-root",
        type=Path,
        default=None,
        help="Override the gh-switcher data root (primarily for testing). If omitted, defaults are used.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")


def _add_path(parser: argparse.ArgumentParser, help_text: str) -> None:
    parser.add_argument("--path", type=Path, default=None, help=f"{help_text} (default: current directory)")


def build_parser() -> argparse.ArgumentParser:
    """
    Build and return the top-level argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured parser.
    """
    parser = argparse.ArgumentParser(
        prog="ghs",
        description="Switch git identities between multiple accounts",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    add_p = sub.add_parser("add", help="Register a new profile")
    add_p.add_argument("username", help="Account login")
    add_p.add_argument("--name", default="", help="Display name for user.name (default: username)")
    add_p.add_argument("--email", default="", help="Email for user.email (default: noreply address)")
    add_p.add_argument("--key", default="", help="SSH private key path")
    add_p.add_argument("--host", default="", help="Account host (default: from settings)")
    add_p.add_argument(
        "--capture",
        action="store_true",
        help="Take name and email from the current git config and pick a matching key",
    )
    _add_common(add_p)

    edit_p = sub.add_parser("edit", help="Change profile fields (creates the profile if unknown)")
    edit_p.add_argument("username", help="Account login")
    edit_p.add_argument("--name", default=None, help="New display name")
    edit_p.add_argument("--email", default=None, help="New email")
    edit_p.add_argument("--key", default=None, help="New SSH key path ('' clears it)")
    edit_p.add_argument("--host", default=None, help="New account host")
    _add_common(edit_p)

    show_p = sub.add_parser("show", help="Show one profile")
    show_p.add_argument("username")
    _add_common(show_p)

    list_p = sub.add_parser("list", help="List profiles")
    _add_common(list_p)

    remove_p = sub.add_parser("remove", help="Delete a profile with its links and project assignments")
    remove_p.add_argument("username")
    _add_common(remove_p)

    migrate_p = sub.add_parser("migrate", help="Upgrade legacy profile records (a backup is written first)")
    _add_common(migrate_p)

    validate_p = sub.add_parser("validate", help="Check key files and the active account for profiles")
    validate_p.add_argument("username", nargs="?", default=None, help="Profile to check (default: all)")
    validate_p.add_argument("--probe", action="store_true", help="Also try authenticating with each key")
    _add_common(validate_p)

    fix_p = sub.add_parser("fix-key", help="Set a profile's key file permissions to 600")
    fix_p.add_argument("username")
    _add_common(fix_p)

    find_p = sub.add_parser("find-keys", help="List candidate private keys for a username")
    find_p.add_argument("username")
    find_p.add_argument("--ssh-dir", type=Path, default=None, help="Directory to search (default: ~/.ssh)")
    _add_common(find_p)

    link_p = sub.add_parser("link", help="Link a directory (and its subdirectories) to a profile")
    link_p.add_argument("username")
    _add_path(link_p, "Directory to link")
    link_p.add_argument(
        "--mode",
        default=LinkMode.ALWAYS.value,
        choices=[mode.value for mode in LinkMode],
        help="Auto-switch behavior (default: always)",
    )
    _add_common(link_p)

    unlink_p = sub.add_parser("unlink", help="Remove a directory link")
    _add_path(unlink_p, "Linked directory")
    _add_common(unlink_p)

    links_p = sub.add_parser("links", help="List directory links")
    _add_common(links_p)

    resolve_p = sub.add_parser("resolve", help="Show which link governs a directory")
    _add_path(resolve_p, "Directory to resolve")
    _add_common(resolve_p)

    check_p = sub.add_parser("check", help="Apply the linked identity for a directory if needed")
    _add_path(check_p, "Directory to check")
    check_p.add_argument("--yes", action="store_true", help="Apply without confirmation for 'ask' links")
    _add_common(check_p)

    switch_p = sub.add_parser("switch", help="Apply a profile's identity to the repository (or globally)")
    switch_p.add_argument("username")
    _add_path(switch_p, "Directory to apply in")
    _add_common(switch_p)

    assign_p = sub.add_parser("assign", help="Assign the current project to a profile")
    assign_p.add_argument("username")
    assign_p.add_argument("--project", default=None, help="Project name (default: repository directory name)")
    _add_path(assign_p, "Directory inside the project")
    _add_common(assign_p)

    unassign_p = sub.add_parser("unassign", help="Remove a project assignment")
    unassign_p.add_argument("--project", default=None, help="Project name (default: repository directory name)")
    _add_path(unassign_p, "Directory inside the project")
    _add_common(unassign_p)

    assignments_p = sub.add_parser("assignments", help="List project assignments")
    _add_common(assignments_p)

    auto_p = sub.add_parser("auto-switch", help="Turn automatic switching on or off")
    auto_p.add_argument("state", choices=["on", "off", "status"])
    _add_common(auto_p)

    guard_p = sub.add_parser("guard", help="Manage the commit identity guard")
    guard_sub = guard_p.add_subparsers(dest="guard_command", required=True)
    for name, help_text in (
        ("install", "Install the pre-commit guard hook"),
        ("uninstall", "Remove the pre-commit guard hook"),
        ("status", "Show whether the guard hook is installed"),
        ("evaluate", "Run the guard checks (used by the hook)"),
    ):
        cmd_p = guard_sub.add_parser(name, help=help_text)
        _add_path(cmd_p, "Directory inside the repository")
        _add_common(cmd_p)

    return parser


def _cwd(args: argparse.Namespace) -> Path:
    return args.path if getattr(args, "path", None) is not None else Path.cwd()


def _print_warnings(warnings: tuple[str, ...] | list[str]) -> None:
    for warning in warnings:
        print(f"WARNING: {warning}")


def _print_apply(result: ApplyResult) -> None:
    where = f"repository {result.repository}" if result.repository else "global config"
    print(f"Switched to {result.username} ({where})")
    if result.ssh_command:
        print(f"  core.sshCommand = {result.ssh_command}")
    _print_warnings(result.warnings)


def _run_profile_command(args: argparse.Namespace, store: Store) -> int:
    if args.command == "add":
        if args.capture:
            profile = store.capture_profile(args.username, _cwd(args))
        else:
            profile = store.profiles.create(
                args.username,
                display_name=args.name,
                email=args.email,
                key_path=args.key,
                host=args.host or store.settings.default_host,
            )
        print(f"Added {profile.username}: {profile.display_name} <{profile.email}>")
        return EXIT_OK

    if args.command == "edit":
        fields = {
            name: value
            for name, value in (
                ("display_name", args.name),
                ("email", args.email),
                ("key_path", args.key),
                ("host", args.host),
            )
            if value is not None
        }
        profile = store.profiles.edit(args.username, **fields)
        print(f"Updated {profile.username}: {profile.display_name} <{profile.email}>")
        return EXIT_OK

    if args.command == "show":
        profile = store.profiles.get(args.username)
        print(f"username: {profile.username}")
        print(f"name:     {profile.display_name}")
        print(f"email:    {profile.email}")
        print(f"key:      {profile.key_path or '(none)'}")
        print(f"host:     {profile.host}")
        return EXIT_OK

    if args.command == "list":
        profiles = store.profiles.list()
        if not profiles:
            print("No profiles registered.")
        for index, profile in enumerate(profiles, start=1):
            key = f" [{profile.key_path}]" if profile.key_path else ""
            print(f"{index}. {profile.username}: {profile.display_name} <{profile.email}> @{profile.host}{key}")
        return EXIT_OK

    if args.command == "remove":
        report = store.delete_profile(args.username)
        print(f"Removed {report.username}")
        for link in report.links:
            print(f"  unlinked {link.path}")
        for project in report.projects:
            print(f"  unassigned project {project}")
        return EXIT_OK

    if args.command == "migrate":
        migration = store.migrate()
        if not migration.changed:
            print("Profile registry is already up to date.")
            return EXIT_OK
        print(f"Upgraded {len(migration.upgraded)} record(s); backup at {migration.backup_path}")
        for username in migration.dropped_duplicates:
            print(f"WARNING: dropped duplicate record for {username}")
        return EXIT_OK

    return EXIT_USAGE


def _run_key_command(args: argparse.Namespace, store: Store) -> int:
    if args.command == "validate":
        if args.username:
            results = [store.check_profile(args.username, probe=args.probe)]
        else:
            results = store.check_all_profiles(probe=args.probe)
        for health in results:
            print(f"{health.username}: {'ok' if health.ok else 'problems found'}")
            for issue in health.issues:
                print(f"  ERROR: {issue}")
            for warning in health.warnings:
                print(f"  WARNING: {warning}")
        return EXIT_OK if all(h.ok for h in results) else EXIT_FAILURE

    if args.command == "fix-key":
        fix = store.fix_key(args.username)
        if fix.skipped_reason:
            print(f"Skipped {fix.path}: {fix.skipped_reason}")
        elif fix.changed:
            print(f"Fixed {fix.path}: {fix.previous_mode:03o} -> {fix.mode:03o}")
        else:
            print(f"{fix.path} already has mode {fix.mode:03o}")
        return EXIT_OK

    if args.command == "find-keys":
        ssh_dir = args.ssh_dir if args.ssh_dir is not None else store.ssh_dir
        candidates = find_alternatives(args.username, ssh_dir)
        if not candidates:
            print("No candidate keys found.")
        for candidate in candidates:
            print(candidate)
        return EXIT_OK

    return EXIT_USAGE


def _run_link_command(args: argparse.Namespace, store: Store) -> int:
    if args.command == "link":
        link = store.links.link(_cwd(args), args.username, LinkMode.parse(args.mode))
        print(f"Linked {link.path} -> {link.username} ({link.mode.value})")
        return EXIT_OK

    if args.command == "unlink":
        removed = store.links.unlink(_cwd(args))
        print(f"Unlinked {removed.path} (was {removed.username})")
        return EXIT_OK

    if args.command == "links":
        links = store.links.list_links()
        if not links:
            print("No directory links.")
        for link in links:
            print(f"{link.path} -> {link.username} ({link.mode.value})")
        return EXIT_OK

    if args.command == "resolve":
        link = store.links.resolve(_cwd(args))
        if link is None:
            print("No link applies here.")
        else:
            print(f"{link.username} ({link.mode.value}) via {link.path}")
        return EXIT_OK

    if args.command == "check":
        decision = store.links.check_and_apply(_cwd(args))
        if decision.status is SwitchStatus.NO_MATCH:
            print("No link applies here.")
        elif decision.status is SwitchStatus.SKIPPED:
            print(f"Skipped ({decision.reason.value if decision.reason else 'unknown'})")
        elif decision.status is SwitchStatus.NEEDS_CONFIRMATION:
            username = decision.link.username if decision.link else ""
            if args.yes:
                _print_apply(store.apply_profile(username, decision.path))
            else:
                print(
                    f"{decision.path} is linked to {username}; "
                    f"run 'ghs switch {username}' or 'ghs check --yes' to apply."
                )
        elif decision.applied is not None:
            _print_apply(decision.applied)
        return EXIT_OK

    if args.command == "switch":
        _print_apply(store.apply_profile(args.username, _cwd(args)))
        return EXIT_OK

    return EXIT_USAGE


def _run_project_command(args: argparse.Namespace, store: Store) -> int:
    if args.command == "assign":
        project = args.project or store.project_name_for(_cwd(args))
        assignment = store.assign_project(project, args.username)
        print(f"Assigned project {assignment.project} to {assignment.username}")
        return EXIT_OK

    if args.command == "unassign":
        project = args.project or store.project_name_for(_cwd(args))
        removed = store.unassign_project(project)
        print(f"Removed assignment {removed.project} -> {removed.username}")
        return EXIT_OK

    if args.command == "assignments":
        assignments = store.projects.list()
        if not assignments:
            print("No project assignments.")
        for assignment in assignments:
            print(f"{assignment.project} -> {assignment.username}")
        return EXIT_OK

    if args.command == "auto-switch":
        if args.state == "status":
            enabled = store.settings.auto_switch
        else:
            enabled = store.set_auto_switch(args.state == "on").auto_switch
        print(f"Auto-switch is {'on' if enabled else 'off'}")
        return EXIT_OK

    return EXIT_USAGE


def _run_guard_command(args: argparse.Namespace, store: Store) -> int:
    repo = _cwd(args)

    if args.guard_command == "install":
        result = store.install_guard(repo)
        print(f"Guard hook {result.action.value}: {result.path}")
        if result.backup_path is not None:
            print(f"  existing hook moved to {result.backup_path}")
        return EXIT_OK

    if args.guard_command == "uninstall":
        removed = store.uninstall_guard(repo)
        print(f"Guard hook removed: {removed.path}")
        if removed.restored_backup:
            print("  previous hook restored")
        return EXIT_OK

    if args.guard_command == "status":
        status = store.guard_status(repo)
        if not status.installed:
            print(f"Guard hook not installed ({status.path})")
        elif status.managed:
            print(f"Guard hook installed: {status.path}")
        else:
            print(f"A different pre-commit hook is installed: {status.path}")
        if status.backup_present:
            print("  a previous hook is saved as backup")
        return EXIT_OK

    if args.guard_command == "evaluate":
        verdict = store.evaluate_guard(repo)
        _print_warnings(verdict.warnings)
        if verdict.passed:
            return EXIT_OK
        print(f"ERROR: commit blocked ({verdict.state.value})")
        if verdict.assigned_username and verdict.active_account:
            print(f"  assigned account: {verdict.assigned_username}")
            print(f"  active account:   {verdict.active_account}")
        for step in verdict.remediation:
            print(f"  fix: {step}")
        return EXIT_FAILURE

    return EXIT_USAGE


_COMMAND_HANDLERS = {
    **dict.fromkeys(("add", "edit", "show", "list", "remove", "migrate"), _run_profile_command),
    **dict.fromkeys(("validate", "fix-key", "find-keys"), _run_key_command),
    **dict.fromkeys(("link", "unlink", "links", "resolve", "check", "switch"), _run_link_command),
    **dict.fromkeys(("assign", "unassign", "assignments", "auto-switch"), _run_project_command),
    "guard": _run_guard_command,
}


def main(argv: list[str] | None = None) -> int:
    """
    CLI entry point.

    Parameters
    ----------
    argv:
        Optional argument vector. If None, argparse uses sys.argv.

    Returns
    -------
    int
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "guard" and args.guard_command == "evaluate" and os.environ.get(SKIP_HOOK_ENV) == "1":
        print(f"Commit guard skipped ({SKIP_HOOK_ENV}=1)")
        return EXIT_OK

    try:
        store = open_store(args.data_root)
        configure_logging("DEBUG" if args.verbose else store.settings.log_level)

        handler = _COMMAND_HANDLERS.get(args.command)
        if handler is not None:
            return handler(args, store)
    except (ValidationError, NotFoundError, FormatMigrationNeededError) as exc:
        print(f"ERROR: {exc}")
        return EXIT_USAGE
    except (IOFailureError, ExternalUnavailableError) as exc:
        print(f"ERROR: {exc}")
        return EXIT_FAILURE

    parser.print_help()
    return EXIT_USAGE


if __name__ == "__main__":
    raise SystemExit(main())
