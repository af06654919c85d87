"""Build a demo zsh install tree with a stand-in interpreter.

The stand-in `bin/zsh` is a /bin/sh stub followed by the three tagged
placeholder buffers, laid out the way the real binary carries them. When
run as `zsh -f -c SCRIPT` it execs libexec/zsh-probe.py, which reads the
placeholders out of its own file and prints one of them:

  print -r -- $fpath[1]   -> fpath payload
  report ROLE             -> ROLE payload

Usage:
  python tools/make_demo_install.py OUT_DIR [--magic MAGIC] [--no-seal]
"""
from __future__ import annotations

import sys
from pathlib import Path

from zbin_core.layout import InstallLayout
from zbin_core.protocol import DEFAULT_DIRS, PAYLOAD_CAPACITY, ROLES
from zbin_core.tags import generate_magic, tag_header
from zbin_embed.seal import seal_install

DEMO_MAGIC = "iLWDLaG9dUlsxzEQp10k"

PROBE = r'''import re
import sys

path, args = sys.argv[1], sys.argv[2:]
if "-c" not in args:
    sys.exit(2)
script = args[args.index("-c") + 1]
role = "fpath" if "$fpath" in script else script.split()[-1]

data = open(path, "rb").read()
m = re.search(rb":[A-Za-z0-9]+:" + role.encode("ascii") + rb":", data)
if m is None:
    sys.stderr.write("no placeholder for " + role + "\n")
    sys.exit(1)
payload = data[m.end():m.end() + 4096].split(b"\0", 1)[0]
sys.stdout.write(payload.decode("utf-8") + "\n")
'''

RUN_HELP = """#!/bin/zsh
#
# Figure out where to get documentation for a command.

emulate -RL zsh

local HELPDIR=/usr/share/zsh/5.8/help
[[ $1 == "." ]] && 1=dot
[[ $1 == ":" ]] && 1=colon

if [[ -r $HELPDIR/$1 ]]; then
  ${=PAGER:-more} $HELPDIR/$1
fi
"""


def demo_binary(magic: str, python: str = sys.executable) -> bytes:
    """Stub launcher plus tagged placeholder buffers."""
    stub = (
        "#!/bin/sh\n"
        f'exec "{python}" "${{0%/*}}/../libexec/zsh-probe.py" "$0" "$@"\n'
    ).encode("utf-8")
    out = bytearray(stub)
    # Filler between buffers, as the real data section has.
    out += b"\x7fELF\x02\x01\x01" + bytes(range(0, 64))
    for role in ROLES:
        path = DEFAULT_DIRS[role].encode("utf-8")
        out += tag_header(magic, role)
        out += path + bytes(PAYLOAD_CAPACITY - len(path))
        out += b"\x00"  # C string terminator of the reserved array
        out += b"\x90\x90\xc3" * 16
    return bytes(out)


def build_demo_install(out_dir: Path, magic: str = DEMO_MAGIC, seal: bool = True) -> Path:
    layout = InstallLayout()
    root = Path(out_dir)

    binary = root / layout.binary
    binary.parent.mkdir(parents=True, exist_ok=True)
    binary.write_bytes(demo_binary(magic))
    binary.chmod(0o755)

    probe = root / "libexec" / "zsh-probe.py"
    probe.parent.mkdir(parents=True, exist_ok=True)
    probe.write_text(PROBE, encoding="utf-8")

    for rel in layout.help_files:
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(RUN_HELP, encoding="utf-8")
    for rel in layout.role_dirs.values():
        (root / rel).mkdir(parents=True, exist_ok=True)
    (root / layout.help_dir).mkdir(parents=True, exist_ok=True)

    if seal:
        seal_install(root, magic, layout, timestamp="2026-01-01T00:00:00Z")

    print(f"GENERATED: {root}")
    return root


if __name__ == "__main__":
    args = [a for a in sys.argv[1:] if a]

    no_seal = "--no-seal" in args
    args = [a for a in args if a != "--no-seal"]

    magic = DEMO_MAGIC
    if "--magic" in args:
        i = args.index("--magic")
        if i + 1 >= len(args):
            raise SystemExit("--magic requires a value")
        magic = args[i + 1] if args[i + 1] != "random" else generate_magic()
        args = args[:i] + args[i + 2:]

    if len(args) != 1:
        print(__doc__)
        raise SystemExit(2)

    build_demo_install(Path(args[0]), magic, seal=not no_seal)
