import json
import subprocess
import sys
from pathlib import Path

import pytest

from zbin_core.crypto import sign_ed25519, signing_key
from zbin_core.layout import InstallLayout, canonical_json_bytes

REPO = Path(__file__).resolve().parents[1]
MAGIC = "iLWDLaG9dUlsxzEQp10k"
SEED = bytes(range(32))


def run(cmd, cwd=REPO, env=None):
    return subprocess.run(cmd, cwd=cwd, check=False, capture_output=True, text=True, env=env)


def make_demo(root: Path, *extra: str) -> Path:
    r = run([sys.executable, "tools/make_demo_install.py", str(root), "--magic", MAGIC, *extra])
    assert r.returncode == 0, r.stderr + r.stdout
    return root


@pytest.fixture
def demo_root(tmp_path):
    return make_demo(tmp_path / "zsh-bin")


@pytest.fixture
def unsealed_root(tmp_path):
    return make_demo(tmp_path / "zsh-bin", "--no-seal")


def resign(root: Path, mutate, seed: bytes = SEED) -> None:
    """Apply mutate to the manifest object and seal it again with a new key."""
    layout = InstallLayout()
    obj = json.loads((root / layout.manifest).read_bytes())
    mutate(obj)
    sk = signing_key(seed)
    obj["publisher"]["pubkey"] = sk.verify_key.encode().hex()
    data = canonical_json_bytes(obj)
    (root / layout.manifest).write_bytes(data)
    (root / layout.signature).write_bytes(sign_ed25519(sk, data))
    (root / layout.publisher).write_bytes(bytes(sk.verify_key))
