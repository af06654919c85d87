import json

import pytest

from conftest import resign
from zbin_core.errors import CapacityExceededError, ManifestError, MalformedSourceError
from zbin_core.layout import InstallLayout, load_manifest
from zbin_embed.cheader import render_paths_header, render_tagged_buffers
from zbin_embed.locator import locate_offsets
from zbin_embed.seal import seal_install, template_help_file
from zbin_relocate.textpatch import read_text_directory

MAGIC = "iLWDLaG9dUlsxzEQp10k"
SEED = bytes.fromhex("a665a45920422f9d417e4867efdc4fb8a04a1f3fff1fa07e998e86f7f7a27ae3")


def test_paths_header():
    h = render_paths_header(MAGIC)
    assert '#define FPATH_DIR_TAG ":iLWDLaG9dUlsxzEQp10k:fpath:"' in h
    assert "extern volatile char tagged_terminfo_dir[sizeof(TERMINFO_DIR_TAG) + 4096];" in h
    assert "#define SCRIPT_DIR ((const char *)(tagged_script_dir + sizeof(SCRIPT_DIR_TAG) - 1))" in h
    assert '#define MODULE_DIR "/dev/null"' in h


def test_tagged_buffers():
    b = render_tagged_buffers({"terminfo": "/opt/terminfo"})
    assert 'TERMINFO_DIR_TAG "/opt/terminfo"' in b
    assert 'FPATH_DIR_TAG "/usr/share/zsh/5.8/functions"' in b
    with pytest.raises(CapacityExceededError):
        render_tagged_buffers({"script": "/" + "s" * 4096})


def test_template_help_file(tmp_path):
    p = tmp_path / "run-help"
    p.write_bytes(b"emulate -RL zsh\n\n  local HELPDIR=/usr/share/zsh/5.8/help\nls $HELPDIR\n")
    assert template_help_file(p, MAGIC) is True
    data = p.read_bytes()
    assert data.count(MAGIC.encode()) == 2
    assert b'  [[ -n "${HELPDIR:-}" ]] || local HELPDIR="$(<<\\iLWDLaG9dUlsxzEQp10k\n' in data
    assert data.endswith(b'iLWDLaG9dUlsxzEQp10k\n)"\nls $HELPDIR\n')
    assert read_text_directory(data, MAGIC) == b""
    # Second pass is a no-op
    assert template_help_file(p, MAGIC) is False
    assert p.read_bytes() == data


def test_template_requires_helpdir_line(tmp_path):
    p = tmp_path / "run-help"
    p.write_bytes(b"emulate -RL zsh\n")
    with pytest.raises(MalformedSourceError):
        template_help_file(p, MAGIC)


def test_seal_and_load(unsealed_root):
    manifest = seal_install(unsealed_root, MAGIC, seed=SEED, timestamp="2026-01-01T00:00:00Z")
    layout = InstallLayout()
    assert manifest.offsets == locate_offsets(unsealed_root / layout.binary, MAGIC)

    loaded = load_manifest(unsealed_root)
    assert loaded.magic == MAGIC
    assert loaded.offsets == manifest.offsets
    assert loaded.layout == layout
    assert loaded.created == "2026-01-01T00:00:00Z"
    for rel in layout.help_files:
        assert (unsealed_root / rel).read_bytes().count(MAGIC.encode()) == 2


def test_seal_is_deterministic_with_seed(unsealed_root):
    layout = InstallLayout()
    seal_install(unsealed_root, MAGIC, seed=SEED, timestamp="2026-01-01T00:00:00Z")
    first = (unsealed_root / layout.manifest).read_bytes()
    seal_install(unsealed_root, MAGIC, seed=SEED, timestamp="2026-01-01T00:00:00Z")
    assert (unsealed_root / layout.manifest).read_bytes() == first


def test_tampered_manifest_rejected(demo_root):
    layout = InstallLayout()
    p = demo_root / layout.manifest
    obj = json.loads(p.read_text(encoding="utf-8"))
    obj["offsets"]["fpath"] += 1
    p.write_text(json.dumps(obj), encoding="utf-8")
    with pytest.raises(ManifestError) as ei:
        load_manifest(demo_root)
    assert ei.value.code == "E_SIG_INVALID"


def test_missing_signature(demo_root):
    (demo_root / InstallLayout().signature).unlink()
    with pytest.raises(ManifestError) as ei:
        load_manifest(demo_root)
    assert ei.value.code == "E_LAYOUT_MISSING"


def test_garbage_manifest(demo_root):
    (demo_root / InstallLayout().manifest).write_bytes(b"{not json")
    with pytest.raises(ManifestError) as ei:
        load_manifest(demo_root)
    assert ei.value.code == "E_MANIFEST_JSON"


def test_unsealed_tree_has_no_manifest(unsealed_root):
    with pytest.raises(ManifestError) as ei:
        load_manifest(unsealed_root)
    assert ei.value.code == "E_LAYOUT_MISSING"


@pytest.mark.parametrize("offset", [-1, True, "12", 1.5, None])
def test_offset_must_be_nonnegative_int(demo_root, offset):
    resign(demo_root, lambda obj: obj["offsets"].__setitem__("fpath", offset))
    with pytest.raises(ManifestError) as ei:
        load_manifest(demo_root)
    assert ei.value.code == "E_MANIFEST_JSON"
    assert ei.value.context["role"] == "fpath"


def test_resigned_manifest_loads(demo_root):
    resign(demo_root, lambda obj: None)
    assert load_manifest(demo_root).magic == MAGIC


@pytest.mark.parametrize("field,value", [
    ("binary", "/usr/bin/zsh"),
    ("binary", "bin/../../zsh"),
    ("manifest", ""),
    ("help_dir", "../help"),
])
def test_layout_paths_stay_inside_root(field, value):
    d = InstallLayout().to_dict()
    d[field] = value
    with pytest.raises(ManifestError) as ei:
        InstallLayout.from_dict(d)
    assert ei.value.code == "E_MANIFEST_JSON"


def test_layout_role_dir_outside_root():
    d = InstallLayout().to_dict()
    d["role_dirs"]["terminfo"] = "/etc/terminfo"
    with pytest.raises(ManifestError):
        InstallLayout.from_dict(d)
    assert InstallLayout.from_dict(InstallLayout().to_dict()) == InstallLayout()
