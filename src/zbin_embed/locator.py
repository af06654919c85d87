"""Offset Locator: find placeholder payloads by scanning the binary's own bytes.

No symbol table or debug info is consulted. Every byte outside [A-Za-z0-9:]
is mapped to a space, which keeps offsets intact, and the tag must then
appear exactly once.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from zbin_core.errors import MalformedSourceError
from zbin_core.protocol import PAYLOAD_CAPACITY, ROLES, SCAN_KEEP
from zbin_core.tags import Tag

log = logging.getLogger(__name__)

_SCAN_TABLE = bytes(b if b in SCAN_KEEP else 0x20 for b in range(256))


def scan_view(image: bytes) -> bytes:
    """Length-preserving view of image with non-tag bytes blanked."""
    return image.translate(_SCAN_TABLE)


def locate_payload(image: bytes, magic: str, role: str, view: bytes | None = None) -> int:
    """Return the 0-based offset of the first payload byte for role."""
    header = Tag(magic, role).header
    if view is None:
        view = scan_view(image)

    parts = view.split(header)
    if len(parts) != 2:
        raise MalformedSourceError(
            f"tag {header.decode('ascii')} found {len(parts) - 1} times, expected exactly 1",
            role=role,
            occurrences=len(parts) - 1,
        )

    pos = len(parts[0]) + len(header)
    if pos + PAYLOAD_CAPACITY > len(image):
        raise MalformedSourceError(
            f"payload for role {role!r} at offset {pos} does not fit in {len(image)} bytes",
            code="E_LAYOUT_ASSUMPTION",
            role=role,
            offset=pos,
        )
    log.debug("role %s: payload at offset %d", role, pos)
    return pos


def locate_offsets(binary: Path, magic: str, roles: Iterable[str] = ROLES) -> dict[str, int]:
    """Build the offset table for every role in one pass over the binary."""
    image = Path(binary).read_bytes()
    view = scan_view(image)
    return {role: locate_payload(image, magic, role, view=view) for role in roles}
