"""zbin - Relocate an installed interpreter to a new directory.

Copy, patch, verify, commit. All mutation happens on private scratch
siblings; the originals are replaced with os.replace only after the patched
binary has reported the new paths back. Any failure, including one midway
through the commit, leaves the originals in place.
"""
from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from zbin_core.errors import CapacityExceededError, DestinationError, ManifestError, RelocationError, RelocationIOError
from zbin_core.layout import InstallLayout, load_manifest
from zbin_core.protocol import DEFAULT_VERIFY_TIMEOUT, PAYLOAD_CAPACITY
from zbin_core.tags import encode_directory

from .binpatch import patch_binary
from .textpatch import patch_text_file, scratch_sibling
from .verify import verify_relocation

log = logging.getLogger(__name__)


@dataclass
class RelocationResult:
    src: Path
    dst: str
    directories: dict[str, str] = field(default_factory=dict)
    verified: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "src": str(self.src),
            "dst": self.dst,
            "directories": dict(self.directories),
            "verified": dict(self.verified),
        }


def normalize_dst(dst: str, magic: str, layout: InstallLayout) -> str:
    """Validate dst and return it with exactly one trailing slash."""
    encode_directory(dst)
    if not dst.startswith("/"):
        raise DestinationError(f"path not absolute: {dst}", path=dst)
    if "\n" in dst or "\x00" in dst:
        raise DestinationError(f"cannot relocate to this directory: {dst!r}", path=dst)
    if magic in dst:
        raise DestinationError(f"cannot relocate to this directory: {dst}", path=dst)

    dst = dst.rstrip("/") + "/"
    limit = PAYLOAD_CAPACITY - layout.max_subpath_len()
    if len(encode_directory(dst)) > limit:
        raise CapacityExceededError(f"directory name too long: {dst}", path=dst, limit=limit)
    return dst


def relocate(
    src_dir: Path | str,
    dst_dir: str | None = None,
    layout: InstallLayout | None = None,
    probes: Mapping[str, str] | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float = DEFAULT_VERIFY_TIMEOUT,
) -> RelocationResult:
    """Make the install tree under src_dir believe it lives at dst_dir."""
    src = Path(src_dir)
    if not src.is_dir():
        raise DestinationError(f"not a directory: {src}", path=str(src))
    src = src.resolve()
    if dst_dir is None:
        dst_dir = str(src)

    manifest = load_manifest(src, layout)
    layout = manifest.layout
    magic = manifest.magic
    dst = normalize_dst(str(dst_dir), magic, layout)

    binary = src / layout.binary
    if not binary.is_file() or not os.access(binary, os.X_OK):
        raise ManifestError(f"not an executable file: {binary}", path=str(binary))
    help_files = [src / rel for rel in layout.help_files]
    for p in help_files:
        if not p.is_file():
            raise ManifestError(f"cannot relocate zsh from this directory: {src}", path=str(p))

    directories = {role: dst + sub for role, sub in layout.role_dirs.items()}
    help_dir = dst + layout.help_dir
    result = RelocationResult(src=src, dst=dst, directories=directories)

    scratch_files: list[Path] = []
    staged: list[tuple[Path, Path]] = []
    backups: dict[Path, Path] = {}
    try:
        for p in help_files:
            tmp = patch_text_file(p, magic, help_dir)
            scratch_files.append(tmp)
            staged.append((tmp, p))
        scratch = scratch_sibling(binary)
        scratch_files.append(scratch)
        try:
            shutil.copy2(binary, scratch)
        except OSError as e:
            raise RelocationIOError(f"cannot copy {binary}: {e}", path=str(binary)) from e
        patch_binary(scratch, manifest.offsets, magic, directories)
        result.verified = verify_relocation(scratch, directories, manifest.offsets, probes, env, timeout)
        staged.insert(0, (scratch, binary))

        # Originals are kept aside until every replacement has landed
        for _, target in staged:
            bak = scratch_sibling(target)
            scratch_files.append(bak)
            shutil.copy2(target, bak)
            backups[target] = bak
    except (RelocationError, OSError) as e:
        _discard(scratch_files)
        if isinstance(e, OSError):
            raise RelocationIOError(str(e)) from e
        raise

    _commit(staged, backups)
    _discard(backups.values())
    log.info("relocated %s -> %s", src, dst)
    return result


def _commit(staged: list[tuple[Path, Path]], backups: Mapping[Path, Path]) -> None:
    """Replace every target with its scratch copy, or restore all of them."""
    done: list[Path] = []
    try:
        for tmp, target in staged:
            os.replace(tmp, target)
            done.append(target)
    except OSError as e:
        for target in reversed(done):
            try:
                os.replace(backups[target], target)
            except OSError as e2:
                _discard(tmp for tmp, t in staged if t not in done)
                raise RelocationIOError(
                    f"commit failed ({e}) and {target} could not be restored: {e2}; "
                    f"original kept at {backups[target]}",
                    path=str(target),
                    backup=str(backups[target]),
                ) from e2
        _discard([tmp for tmp, _ in staged] + list(backups.values()))
        raise RelocationIOError(f"commit failed, originals restored: {e}") from e


def _discard(paths) -> None:
    for p in paths:
        try:
            p.unlink()
        except FileNotFoundError:
            pass
