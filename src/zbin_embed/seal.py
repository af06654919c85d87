"""zbin - Seal an install tree for relocation.

Runs once per build, after the interpreter is installed into a prefix:
turns the run-help functions into text placeholders, records the offset of
every binary placeholder, and writes the signed layout manifest that the
relocator ships with.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path

from zbin_core.crypto import signing_key
from zbin_core.errors import MalformedSourceError
from zbin_core.layout import InstallLayout, Manifest, write_manifest
from zbin_core.tags import text_placeholder, validate_magic

from .locator import locate_offsets

log = logging.getLogger(__name__)

_HELPDIR_LINE = re.compile(rb"local HELPDIR=[^\n]*")


def template_help_file(path: Path, magic: str) -> bool:
    """Replace the `local HELPDIR=...` assignment with a text placeholder.

    Returns True if the file was rewritten, False if it already carries
    this build's placeholder.
    """
    data = path.read_bytes()
    m = validate_magic(magic).encode("ascii")
    count = data.count(m)
    if count == 2:
        return False
    if count != 0:
        raise MalformedSourceError(f"magic found {count} times in {path}", path=str(path))

    matches = _HELPDIR_LINE.findall(data)
    if len(matches) != 1:
        raise MalformedSourceError(
            f"expected one 'local HELPDIR=' line in {path}, found {len(matches)}", path=str(path)
        )
    replacement = (
        b'[[ -n "${HELPDIR:-}" ]] || local HELPDIR="$(<<\\' + text_placeholder(magic) + b'\n)"'
    )
    # Callable replacement: the bytes are inserted verbatim
    path.write_bytes(_HELPDIR_LINE.sub(lambda _: replacement, data))
    log.info("templated %s", path)
    return True


def seal_install(
    root: Path,
    magic: str,
    layout: InstallLayout | None = None,
    seed: bytes | None = None,
    timestamp: str | None = None,
) -> Manifest:
    """Seal the install tree at root and return the written manifest."""
    root = Path(root)
    layout = layout or InstallLayout()
    validate_magic(magic)

    if timestamp is None:
        timestamp = datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")

    # 1. Offset table
    offsets = locate_offsets(root / layout.binary, magic, layout.role_dirs)
    for role, off in sorted(offsets.items()):
        log.info("%s placeholder payload at offset %d", role, off)

    # 2. Text artifacts
    for rel in layout.help_files:
        template_help_file(root / rel, magic)

    # 3. Signed manifest
    sk = signing_key(seed)
    manifest = Manifest(
        magic=magic,
        offsets=offsets,
        layout=layout,
        created=timestamp,
        pubkey=sk.verify_key.encode().hex(),
    )
    write_manifest(root, manifest, sk)
    return manifest
