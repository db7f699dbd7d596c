"""Data models for the identity engine.

This module defines the typed records that the registries persist. Each record
validates its own shape in ``__post_init__`` so that a malformed value can
never be constructed, whether it came from user input or from disk.

The models in this module are intentionally standard-library-only (dataclasses).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Final, Self

from .errors import ValidationError
from .paths_and_safety import reject_record_breaking
from .profile_store.rules import (
    DEFAULT_HOST,
    default_email,
    validate_display_name,
    validate_email,
    validate_host,
    validate_key_path,
    validate_username,
)

CURRENT_FORMAT_VERSION: Final[int] = 5


class LinkMode(str, Enum):
    """Auto-switch behavior for a directory link."""

    ALWAYS = "always"
    ASK = "ask"
    NEVER = "never"

    @classmethod
    def parse(cls, value: str) -> "LinkMode":
        """Parse a mode name, raising ValidationError on unknown values."""
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            raise ValidationError("mode", value, "one of always, ask, never") from exc


@dataclass(frozen=True, slots=True)
class UserProfile:
    """
    A persisted identity.

    Attributes
    ----------
    username:
        Unique account login.
    display_name:
        Value written to ``user.name``.
    email:
        Value written to ``user.email``.
    key_path:
        SSH private key path, or "" for no key (HTTPS-style auth).
    host:
        Account host as a bare FQDN.
    format_version:
        Record format version. Always the current version once constructed.
    """

    username: str
    display_name: str
    email: str
    key_path: str = ""
    host: str = DEFAULT_HOST
    format_version: int = CURRENT_FORMAT_VERSION

    def __post_init__(self) -> None:
        validate_username(self.username)
        object.__setattr__(self, "display_name", validate_display_name(self.display_name))
        object.__setattr__(self, "email", validate_email(self.email))
        object.__setattr__(self, "key_path", validate_key_path(self.key_path))
        object.__setattr__(self, "host", validate_host(self.host))
        if self.format_version != CURRENT_FORMAT_VERSION:
            raise ValidationError(
                "format_version", self.format_version, f"v{CURRENT_FORMAT_VERSION}"
            )

    @classmethod
    def new(
        cls,
        username: str,
        display_name: str = "",
        email: str = "",
        key_path: str = "",
        host: str = DEFAULT_HOST,
    ) -> Self:
        """
        Build a profile, filling defaults for omitted fields.

        A missing display name defaults to the username; a missing email is
        synthesized from username and host.
        """
        validate_username(username)
        clean_host = validate_host(host or DEFAULT_HOST)
        return cls(
            username=username,
            display_name=display_name.strip() or username,
            email=email.strip() or default_email(username, clean_host),
            key_path=key_path,
            host=clean_host,
        )

    @property
    def has_key(self) -> bool:
        """Return True when a key path is configured."""
        return bool(self.key_path)


@dataclass(frozen=True, slots=True)
class DirectoryLink:
    """
    A rule binding a directory (and its descendants) to a profile.

    Attributes
    ----------
    path:
        Normalized absolute directory path.
    username:
        Linked profile.
    mode:
        Auto-switch behavior.
    """

    path: Path
    username: str
    mode: LinkMode = LinkMode.ALWAYS

    def __post_init__(self) -> None:
        if not self.path.is_absolute():
            raise ValidationError("path", str(self.path), "an absolute directory path")
        reject_record_breaking("path", str(self.path))
        validate_username(self.username)


@dataclass(frozen=True, slots=True)
class ProjectAssignment:
    """A legacy, non-hierarchical binding of a project name to a profile."""

    project: str
    username: str

    def __post_init__(self) -> None:
        validate_project_name(self.project)
        validate_username(self.username)


def validate_project_name(project: str) -> str:
    """Validate a project name for the ``project=username`` registry."""
    if not project or not project.strip():
        raise ValidationError("project", project, "a non-empty project name")
    reject_record_breaking("project", project)
    if "=" in project or "/" in project:
        raise ValidationError("project", project, "a directory basename without '=' or '/'")
    return project
