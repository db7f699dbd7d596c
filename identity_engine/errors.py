"""
Domain exceptions for the identity engine.

Notes
-----
Engine code does not raise generic exceptions. Every expected failure maps to
one of five families so that the command line layer can render an actionable
message and pick an exit code without inspecting message text:

- ValidationError: a field, path or name violates a constraint.
- NotFoundError: an unknown user, link, assignment, key or hook.
- FormatMigrationNeededError: a registry line uses an older record shape.
- IOFailureError: the registry or key file itself cannot be read or written.
- ExternalUnavailableError: git, the account query or the key probe failed.
"""

from __future__ import annotations

from pathlib import Path


class IdentityEngineError(RuntimeError):
    """Base exception for all identity engine failures."""


class ValidationError(IdentityEngineError):
    """
    Raised when a value violates a field constraint.

    Attributes
    ----------
    field:
        Name of the offending field (e.g. "email", "host", "path").
    value:
        The rejected value, as supplied.
    expected:
        Human-readable description of the constraint that was violated.
    """

    def __init__(self, field: str, value: object, expected: str) -> None:
        self.field = field
        self.value = value
        self.expected = expected
        super().__init__(f"Invalid {field} {value!r}: expected {expected}.")


class ProfileExistsError(ValidationError):
    """Raised when creating a profile whose username is already registered."""

    def __init__(self, username: str) -> None:
        super().__init__("username", username, "a username that is not already registered")


class HookConflictError(ValidationError):
    """Raised when a commit hook cannot be installed or removed without clobbering a foreign hook."""

    def __init__(self, path: Path, expected: str) -> None:
        self.path = path
        super().__init__("hook", str(path), expected)


class NotFoundError(IdentityEngineError):
    """
    Raised when a referenced entity does not exist.

    Attributes
    ----------
    kind:
        Entity kind ("profile", "link", "assignment", "key", "hook").
    key:
        The identifier that was looked up.
    """

    kind = "entity"

    def __init__(self, key: object, message: str | None = None) -> None:
        self.key = key
        super().__init__(message or f"Unknown {self.kind}: {key}")


class ProfileNotFoundError(NotFoundError):
    """Raised when a username is not present in the profile registry."""

    kind = "profile"


class LinkNotFoundError(NotFoundError):
    """Raised when no directory link exists for a normalized path."""

    kind = "directory link"


class AssignmentNotFoundError(NotFoundError):
    """Raised when a project has no account assignment."""

    kind = "project assignment"


class KeyNotFoundError(NotFoundError):
    """Raised when a configured key file does not exist after ~-expansion."""

    kind = "key file"


class HookNotInstalledError(NotFoundError):
    """Raised when uninstalling a guard hook that is not present."""

    kind = "guard hook"


class FormatMigrationNeededError(IdentityEngineError):
    """
    Raised when a registry holds records in an older format version.

    Attributes
    ----------
    path:
        Registry file that needs migration.
    line_number:
        1-based line number of the first legacy record found.
    detected_version:
        Format version detected for that line.
    username:
        Username of that record when it could be determined.
    """

    def __init__(
        self,
        path: Path,
        *,
        line_number: int,
        detected_version: int,
        username: str | None = None,
    ) -> None:
        self.path = path
        self.line_number = line_number
        self.detected_version = detected_version
        self.username = username
        who = f" for {username!r}" if username else ""
        super().__init__(
            f"Registry {path} line {line_number}{who} uses format v{detected_version}; "
            "run 'ghs migrate' to upgrade it to the current format."
        )


class IOFailureError(IdentityEngineError):
    """
    Raised when a registry or key file cannot be read or written.

    Attributes
    ----------
    path:
        The file the operation failed on.
    """

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(message)


class RegistryCorruptError(IOFailureError):
    """Raised when a registry line matches no known record shape."""

    def __init__(self, path: Path, line_number: int, reason: str) -> None:
        self.line_number = line_number
        super().__init__(path, f"Unrecognized record in {path} line {line_number}: {reason}")


class KeyPermissionError(IOFailureError):
    """Raised when key file permissions cannot be corrected."""


class ExternalUnavailableError(IdentityEngineError):
    """
    Raised when an external capability fails, times out or is not installed.

    Attributes
    ----------
    capability:
        Short capability name ("git", "account-status", "key-probe").
    """

    def __init__(self, capability: str, message: str) -> None:
        self.capability = capability
        super().__init__(f"{capability}: {message}")
