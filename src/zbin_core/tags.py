"""zbin - Placeholder tag encoding."""
from __future__ import annotations

import os
import secrets
from dataclasses import dataclass

from .errors import DestinationError, TagError
from .protocol import MAGIC_ALPHABET, MAGIC_LEN, PAYLOAD_CAPACITY, ROLES, TAG_SEPARATOR


def validate_magic(magic: str) -> str:
    """Reject magic tokens that are empty or not plain alphanumerics."""
    if not magic or any(c not in MAGIC_ALPHABET for c in magic):
        raise TagError(f"magic must be non-empty [A-Za-z0-9]: {magic!r}")
    return magic


def validate_role(role: str) -> str:
    if role not in ROLES:
        raise TagError(f"unknown role {role!r}; expected one of {', '.join(ROLES)}")
    return role


def generate_magic(length: int = MAGIC_LEN) -> str:
    """Draw a fresh magic token for one build."""
    if length < 8:
        raise TagError(f"magic length {length} is too short to be unique")
    return "".join(secrets.choice(MAGIC_ALPHABET) for _ in range(length))


def tag_header(magic: str, role: str) -> bytes:
    """Header bytes that precede a placeholder payload: b":MAGIC:ROLE:"."""
    validate_magic(magic)
    validate_role(role)
    sep = TAG_SEPARATOR
    return sep + magic.encode("ascii") + sep + role.encode("ascii") + sep


def reserved_size(magic: str, role: str) -> int:
    """Total bytes reserved for one placeholder, header included."""
    return len(tag_header(magic, role)) + PAYLOAD_CAPACITY


@dataclass(frozen=True)
class Tag:
    """One placeholder: its header identity plus the directory it holds."""

    magic: str
    role: str
    directory: str = ""

    def __post_init__(self) -> None:
        validate_magic(self.magic)
        validate_role(self.role)

    @property
    def header(self) -> bytes:
        return tag_header(self.magic, self.role)

    @property
    def reserved_size(self) -> int:
        return len(self.header) + PAYLOAD_CAPACITY

    @property
    def payload(self) -> bytes:
        return encode_directory(self.directory)

    def __str__(self) -> str:
        return self.header.decode("ascii")


def text_placeholder(magic: str, directory: str = "") -> bytes:
    """Inline text placeholder: MAGIC, newline, directory, newline, MAGIC.

    Used as the body of a quoted here-document, so the directory is taken
    literally by the shell.
    """
    m = validate_magic(magic).encode("ascii")
    return m + b"\n" + encode_directory(directory) + b"\n" + m


def encode_directory(directory: str) -> bytes:
    """UTF-8 bytes of a directory, as stored in placeholders."""
    try:
        return directory.encode("utf-8")
    except UnicodeEncodeError as e:
        raise DestinationError(f"path is not valid UTF-8: {directory!r}",
                               path=os.fsencode(directory)) from e
