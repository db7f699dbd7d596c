"""
Field validation and normalization for profile records.

This module provides deterministic, syntax-only checks for user-supplied
profile fields. It performs no filesystem access.

Invariants
----------
- Usernames use only letters, digits, '.', '_' and '-'.
- Hosts are bare fully-qualified domains: no scheme, no port, no path, at
  least two labels. Hosts are stored lower-cased.
- No field may contain a TAB or a line break (registry records are TAB
  separated and line oriented).
"""

from __future__ import annotations

import re
from typing import Final

from ..errors import ValidationError
from ..paths_and_safety import reject_record_breaking

DEFAULT_HOST: Final[str] = "github.com"

MAX_USERNAME_LENGTH: Final[int] = 39
MAX_TEXT_LENGTH: Final[int] = 255
MAX_KEY_PATH_LENGTH: Final[int] = 4096

_USERNAME_RE = re.compile(r"^[A-Za-z0-9._-]+$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_HOST_LABEL_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")


def validate_username(username: str) -> str:
    """
    Validate a username and return it unchanged.

    Raises
    ------
    ValidationError
        If the username is empty, too long or has disallowed characters.
    """
    if not username:
        raise ValidationError("username", username, "a non-empty username")
    if len(username) > MAX_USERNAME_LENGTH:
        raise ValidationError("username", username, f"at most {MAX_USERNAME_LENGTH} characters")
    if not _USERNAME_RE.match(username):
        raise ValidationError(
            "username", username, "only letters, digits, '.', '_' and '-'"
        )
    return username


def validate_display_name(name: str) -> str:
    """Validate a display name (non-empty, bounded, single line)."""
    reject_record_breaking("display_name", name)
    cleaned = name.strip()
    if not cleaned:
        raise ValidationError("display_name", name, "a non-empty display name")
    if len(cleaned) > MAX_TEXT_LENGTH:
        raise ValidationError("display_name", name, f"at most {MAX_TEXT_LENGTH} characters")
    return cleaned


def validate_email(email: str) -> str:
    """Validate an email address of the form local@domain.tld."""
    reject_record_breaking("email", email)
    cleaned = email.strip()
    if len(cleaned) > MAX_TEXT_LENGTH:
        raise ValidationError("email", email, f"at most {MAX_TEXT_LENGTH} characters")
    if not _EMAIL_RE.match(cleaned):
        raise ValidationError("email", email, "an address of the form name@domain.tld")
    return cleaned


def validate_key_path(key_path: str) -> str:
    """
    Validate a key path for storage.

    Notes
    -----
    An empty string is valid and means "no key configured". Existence is the
    Key Validator's concern, not a storage constraint.
    """
    reject_record_breaking("key_path", key_path)
    cleaned = key_path.strip()
    if len(cleaned) > MAX_KEY_PATH_LENGTH:
        raise ValidationError("key_path", key_path, f"at most {MAX_KEY_PATH_LENGTH} characters")
    return cleaned


def validate_host(host: str) -> str:
    """
    Validate a host and return its lower-cased form.

    Raises
    ------
    ValidationError
        If host has a scheme, a port, a path, or fewer than two labels.
    """
    reject_record_breaking("host", host)
    cleaned = host.strip().lower()
    if not cleaned:
        raise ValidationError("host", host, "a non-empty domain name")
    if "://" in cleaned:
        raise ValidationError("host", host, "a bare domain without a scheme prefix")
    if ":" in cleaned:
        raise ValidationError("host", host, "a bare domain without a port suffix")
    if "/" in cleaned:
        raise ValidationError("host", host, "a bare domain without a path")
    if len(cleaned) > 253:
        raise ValidationError("host", host, "at most 253 characters")

    labels = cleaned.split(".")
    if len(labels) < 2:
        raise ValidationError("host", host, "a fully-qualified domain such as github.com")
    for label in labels:
        if not _HOST_LABEL_RE.match(label):
            raise ValidationError(
                "host",
                host,
                "dot-separated labels of letters, digits and inner hyphens",
            )
    return cleaned


def default_email(username: str, host: str = DEFAULT_HOST) -> str:
    """
    Synthesize an email for a profile created without one.

    Returns
    -------
    str
        ``{username}@users.noreply.{host}`` for the default host, otherwise
        ``{username}@{host}``.
    """
    if host == DEFAULT_HOST:
        return f"{username}@users.noreply.{host}"
    return f"{username}@{host}"
