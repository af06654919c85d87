"""Relocation Verifier: run the patched binary and check what it reports.

A patch is a raw byte overwrite, so the only trustworthy confirmation is to
execute the result. Roles without a self-report probe are checked by
reading the payload back from the patched image.
"""
from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping
from pathlib import Path

from zbin_core.errors import VerificationError
from zbin_core.protocol import DEFAULT_PROBES, DEFAULT_VERIFY_TIMEOUT
from zbin_core.tags import encode_directory

from .binpatch import read_placeholder

log = logging.getLogger(__name__)


def probe_env(extra: Mapping[str, str] | None = None) -> dict[str, str]:
    """Scoped environment for a probe run. Nothing is inherited implicitly."""
    env = {"LC_ALL": "C", "PATH": os.defpath}
    env.update(extra or {})
    return env


def run_probe(binary: Path, script: str, env: Mapping[str, str], timeout: float) -> str:
    """Run `binary -f -c script` and return the first line of stdout."""
    try:
        r = subprocess.run(
            [str(binary), "-f", "-c", script],
            env=dict(env),
            stdin=subprocess.DEVNULL,
            capture_output=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        raise VerificationError(f"probe timed out after {timeout}s", script=script) from e
    except OSError as e:
        raise VerificationError(f"cannot execute {binary}: {e}", script=script) from e

    if r.returncode != 0:
        raise VerificationError(
            f"probe exited with status {r.returncode}",
            script=script,
            stderr=r.stderr.decode("utf-8", "replace").strip(),
        )
    out = r.stdout.decode("utf-8", "replace")
    return out.split("\n", 1)[0]


def verify_relocation(
    binary: Path,
    expected: Mapping[str, str],
    offsets: Mapping[str, int],
    probes: Mapping[str, str] | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float = DEFAULT_VERIFY_TIMEOUT,
) -> dict[str, str]:
    """Confirm every role of the patched binary resolves under expected[role].

    Returns role -> how it was verified ("probe" or "readback").
    """
    probes = DEFAULT_PROBES if probes is None else probes
    env = probe_env(env)
    image = Path(binary).read_bytes()
    how: dict[str, str] = {}

    for role, want in expected.items():
        script = probes.get(role)
        if script is not None:
            got = run_probe(binary, script, env, timeout)
            if not got.startswith(want):
                raise VerificationError(
                    f"role {role!r} reported {got!r}", role=role, expected=want, actual=got
                )
            how[role] = "probe"
        else:
            got_b = read_placeholder(image, offsets[role])
            if got_b != encode_directory(want):
                raise VerificationError(
                    f"role {role!r} payload reads back as {got_b!r}",
                    role=role,
                    expected=want,
                    actual=got_b,
                )
            how[role] = "readback"
        log.debug("verified %s by %s", role, how[role])
    return how
