import json
import logging
from pathlib import Path

import click

from zbin_core.errors import RelocationError
from zbin_core.layout import CANONICAL_JSON_KW
from zbin_core.protocol import ROLES
from zbin_core.tags import generate_magic

from .cheader import render_paths_header, render_tagged_buffers
from .locator import locate_offsets
from .seal import seal_install


def _fatal(e: Exception):
    click.echo(f"FATAL: {e}", err=True)
    raise SystemExit(1)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log each step.")
def main(verbose: bool):
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@main.command("magic")
@click.option("--length", type=int, default=20, show_default=True)
def magic_cmd(length: int):
    """Print a fresh magic token."""
    try:
        click.echo(generate_magic(length))
    except RelocationError as e:
        _fatal(e)


@main.command("header")
@click.argument("magic")
def header_cmd(magic: str):
    """Print zshpaths.h for MAGIC."""
    try:
        click.echo(render_paths_header(magic), nl=False)
    except RelocationError as e:
        _fatal(e)


@main.command("buffers")
@click.option("--script", help="Default script directory.")
@click.option("--fpath", help="Default function directory.")
@click.option("--terminfo", help="Default terminfo directory.")
def buffers_cmd(script, fpath, terminfo):
    """Print the tagged buffer definitions."""
    given = {"script": script, "fpath": fpath, "terminfo": terminfo}
    try:
        click.echo(render_tagged_buffers({k: v for k, v in given.items() if v}), nl=False)
    except RelocationError as e:
        _fatal(e)


@main.command("locate")
@click.argument("binary", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("magic")
@click.argument("roles", nargs=-1, type=click.Choice(ROLES))
def locate_cmd(binary: Path, magic: str, roles):
    """Print the payload offset of each ROLE in BINARY as JSON."""
    try:
        offsets = locate_offsets(binary, magic, roles or ROLES)
    except (RelocationError, OSError) as e:
        _fatal(e)
    click.echo(json.dumps(offsets, **CANONICAL_JSON_KW))


@main.command("seal")
@click.argument("root", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--magic", required=True, help="Magic token the binary was built with.")
@click.option("--key", "key_hex", help="Hex Ed25519 seed; a fresh key is generated if omitted.")
@click.option("--timestamp", help="Fixed creation timestamp for reproducible manifests.")
def seal_cmd(root: Path, magic: str, key_hex, timestamp):
    """Template text artifacts under ROOT and write the signed offset table."""
    try:
        seed = bytes.fromhex(key_hex) if key_hex else None
    except ValueError:
        raise click.BadParameter("not a hex string", param_hint="--key")
    if seed is not None and len(seed) != 32:
        raise click.BadParameter("seed must be 32 bytes", param_hint="--key")

    try:
        manifest = seal_install(root, magic, seed=seed, timestamp=timestamp)
    except (RelocationError, OSError) as e:
        _fatal(e)

    click.echo(f"PASS: sealed {root}")
    for role, off in sorted(manifest.offsets.items()):
        click.echo(f"  {role}: offset {off}")


if __name__ == "__main__":
    main()
