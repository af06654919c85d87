import shutil

import pytest

from zbin_core.errors import VerificationError
from zbin_core.layout import load_manifest
from zbin_relocate.binpatch import patch_binary
from zbin_relocate.verify import probe_env, run_probe, verify_relocation


@pytest.fixture
def scratch(demo_root):
    manifest = load_manifest(demo_root)
    binary = demo_root / "bin" / "zsh"
    tmp = demo_root / "bin" / "zsh.tmp"
    shutil.copy2(binary, tmp)
    dirs = {role: "/opt/zsh/" + sub for role, sub in manifest.layout.role_dirs.items()}
    patch_binary(tmp, manifest.offsets, manifest.magic, dirs)
    return tmp, manifest, dirs


def test_probe_reports_fpath(scratch):
    tmp, _, dirs = scratch
    assert run_probe(tmp, "print -r -- $fpath[1]", probe_env(), 30) == dirs["fpath"]


def test_every_role_is_verified(scratch):
    tmp, manifest, dirs = scratch
    how = verify_relocation(tmp, dirs, manifest.offsets)
    assert how == {"fpath": "probe", "script": "readback", "terminfo": "readback"}


def test_probes_for_all_roles(scratch):
    tmp, manifest, dirs = scratch
    probes = {"fpath": "print -r -- $fpath[1]", "script": "report script", "terminfo": "report terminfo"}
    how = verify_relocation(tmp, dirs, manifest.offsets, probes=probes)
    assert set(how.values()) == {"probe"}


def test_wrong_prefix_rejected(scratch):
    tmp, manifest, dirs = scratch
    with pytest.raises(VerificationError) as ei:
        verify_relocation(tmp, dirs, manifest.offsets, probes={"fpath": "report terminfo"})
    err = ei.value.to_dict()
    assert err["role"] == "fpath"
    assert err["actual"] == dirs["terminfo"]


def test_readback_mismatch_rejected(scratch):
    tmp, manifest, dirs = scratch
    want = dict(dirs, script="/elsewhere/share/zsh/5.8/scripts")
    with pytest.raises(VerificationError) as ei:
        verify_relocation(tmp, want, manifest.offsets)
    assert ei.value.context["role"] == "script"


def test_failing_probe_rejected(scratch):
    tmp, manifest, dirs = scratch
    with pytest.raises(VerificationError) as ei:
        verify_relocation(tmp, dirs, manifest.offsets, probes={"fpath": "report nosuchrole"})
    assert "status" in ei.value.detail


def test_unexecutable_binary_rejected(scratch):
    tmp, manifest, dirs = scratch
    tmp.chmod(0o644)
    with pytest.raises(VerificationError):
        verify_relocation(tmp, dirs, manifest.offsets)


def test_probe_env_is_scoped(monkeypatch):
    monkeypatch.setenv("TERMINFO_DIRS", "/leaked")
    env = probe_env({"HOME": "/nonexistent"})
    assert "TERMINFO_DIRS" not in env
    assert env["HOME"] == "/nonexistent"
    assert env["LC_ALL"] == "C"
