"""
Profile record encoding and format-version detection.

Current records (v5) are six TAB-separated fields::

    username  v5  display_name  email  key_path  host

Older shapes are recognized by field count and delimiter so that they are
never mistaken for v5:

- v1: ``username=Name|email`` or ``username:1:b64(name):b64(email)``
- v2: ``username:2:b64(name):b64(email):b64(gpg):b64(ssh):auto_sign:last_used``
- v3: ``username<TAB>name<TAB>email``
- v4: ``username<TAB>name<TAB>email<TAB>key_path``
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from pathlib import Path

from ..data_models import CURRENT_FORMAT_VERSION, UserProfile
from ..errors import RegistryCorruptError, ValidationError

FIELD_SEPARATOR = "\t"
V5_TOKEN = f"v{CURRENT_FORMAT_VERSION}"
V5_FIELD_COUNT = 6

_COLON_FORM_RE = re.compile(r"^([A-Za-z0-9._-]+):(\d+):")
_EQUALS_FORM_RE = re.compile(r"^([A-Za-z0-9._-]+)=(.*)$")
_VERSION_TOKEN_RE = re.compile(r"^v(\d+)$")


@dataclass(frozen=True, slots=True)
class RecordVersion:
    """
    Detected format of one registry line.

    Attributes
    ----------
    line_number:
        1-based line number.
    version:
        Detected format version (1..5).
    username:
        Username parsed from the line.
    """

    line_number: int
    version: int
    username: str

    @property
    def is_current(self) -> bool:
        return self.version == CURRENT_FORMAT_VERSION


def encode_profile(profile: UserProfile) -> str:
    """Encode a profile as a single v5 registry line (no terminator)."""
    return FIELD_SEPARATOR.join(
        (
            profile.username,
            V5_TOKEN,
            profile.display_name,
            profile.email,
            profile.key_path,
            profile.host,
        )
    )


def detect_version(line: str, *, path: Path, line_number: int) -> RecordVersion:
    """
    Detect the format version of a registry line.

    Raises
    ------
    RegistryCorruptError
        If the line matches no known record shape.
    """
    if FIELD_SEPARATOR in line:
        fields = line.split(FIELD_SEPARATOR)
        username = fields[0]
        token = _VERSION_TOKEN_RE.match(fields[1]) if len(fields) > 1 else None
        # Tab-separated legacy shapes carry no token, so "v1".."v4" there is a display name.
        version = int(token.group(1)) if token is not None else 0
        if version >= CURRENT_FORMAT_VERSION:
            if version > CURRENT_FORMAT_VERSION:
                raise RegistryCorruptError(
                    path, line_number, f"format v{version} is newer than this version supports"
                )
            if version == CURRENT_FORMAT_VERSION and len(fields) != V5_FIELD_COUNT:
                raise RegistryCorruptError(
                    path,
                    line_number,
                    f"expected {V5_FIELD_COUNT} fields for {V5_TOKEN}, found {len(fields)}",
                )
            return RecordVersion(line_number, version, username)
        if len(fields) == 3:
            return RecordVersion(line_number, 3, username)
        if len(fields) == 4:
            return RecordVersion(line_number, 4, username)
        raise RegistryCorruptError(
            path, line_number, f"{len(fields)} tab-separated fields match no known format"
        )

    colon = _COLON_FORM_RE.match(line)
    if colon is not None:
        version = int(colon.group(2))
        field_count = len(line.split(":"))
        if (version, field_count) in {(1, 4), (2, 8)}:
            return RecordVersion(line_number, version, colon.group(1))
        raise RegistryCorruptError(
            path, line_number, f"colon record v{version} with {field_count} fields"
        )

    equals = _EQUALS_FORM_RE.match(line)
    if equals is not None:
        return RecordVersion(line_number, 1, equals.group(1))

    raise RegistryCorruptError(path, line_number, "no field separator found")


def decode_profile(line: str, *, path: Path, line_number: int) -> UserProfile:
    """
    Decode a v5 registry line.

    Callers must check the version first; a non-v5 line is rejected here as
    corrupt rather than reinterpreted.

    Raises
    ------
    RegistryCorruptError
        If the line is not a well-formed v5 record.
    """
    fields = line.split(FIELD_SEPARATOR)
    if len(fields) != V5_FIELD_COUNT or fields[1] != V5_TOKEN:
        raise RegistryCorruptError(path, line_number, f"not a {V5_TOKEN} record")
    username, _version, display_name, email, key_path, host = fields
    try:
        return UserProfile(
            username=username,
            display_name=display_name,
            email=email,
            key_path=key_path,
            host=host,
        )
    except ValidationError as exc:
        raise RegistryCorruptError(path, line_number, str(exc)) from exc


def _b64(value: str) -> str:
    return base64.b64decode(value.encode("ascii"), validate=True).decode("utf-8").strip()


def upgrade_legacy_line(line: str, version: RecordVersion, *, path: Path) -> UserProfile:
    """
    Convert a legacy record into a current profile.

    Notes
    -----
    Legacy records predate multi-host support and are upgraded with the
    default host. v2 GPG, auto-sign and last-used fields have no current
    counterpart and are dropped.

    Raises
    ------
    RegistryCorruptError
        If the legacy payload cannot be decoded or fails validation.
    """
    username = version.username
    key_path = ""
    try:
        if version.version == 1 and "=" in line and ":" not in line.split("=", 1)[0]:
            payload = line.split("=", 1)[1]
            name, _, email = payload.partition("|")
        elif version.version == 1:
            parts = line.split(":")
            name, email = _b64(parts[2]), _b64(parts[3])
        elif version.version == 2:
            parts = line.split(":")
            name, email = _b64(parts[2]), _b64(parts[3])
            key_path = _b64(parts[5]) if parts[5] else ""
        elif version.version == 3:
            _user, name, email = line.split(FIELD_SEPARATOR)
        elif version.version == 4:
            _user, name, email, key_path = line.split(FIELD_SEPARATOR)
        else:
            raise RegistryCorruptError(
                path, version.line_number, f"no upgrade path from v{version.version}"
            )
        return UserProfile.new(username, name, email, key_path)
    except (binascii.Error, UnicodeDecodeError, ValueError, IndexError) as exc:
        raise RegistryCorruptError(
            path, version.line_number, f"cannot decode v{version.version} record ({exc!s})"
        ) from exc
    except ValidationError as exc:
        raise RegistryCorruptError(path, version.line_number, str(exc)) from exc
