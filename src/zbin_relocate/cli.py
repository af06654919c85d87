"""zbin-relocate - Point a zsh install tree at a new directory."""
from __future__ import annotations

import json
import logging
from pathlib import Path

import click

from zbin_core.errors import RelocationError
from zbin_core.layout import CANONICAL_JSON_KW
from zbin_core.protocol import DEFAULT_VERIFY_TIMEOUT

from .relocate import relocate


@click.command()
@click.option("-s", "--src", "src", envvar="ZBIN_SRC",
              type=click.Path(path_type=Path),
              help="Directory where zsh is currently installed (has bin and share); defaults to the current directory.")
@click.option("-d", "--dst", "dst", envvar="ZBIN_DST",
              help="Absolute directory from which zsh will be used; defaults to SRC.")
@click.option("--timeout", envvar="ZBIN_TIMEOUT", type=float, default=DEFAULT_VERIFY_TIMEOUT,
              show_default=True, help="Seconds allowed for the self-report probe.")
@click.option("--json", "as_json", is_flag=True, help="Print a JSON result instead of a status line.")
@click.option("-v", "--verbose", is_flag=True, help="Log each step.")
def main(src: Path | None, dst: str | None, timeout: float, as_json: bool, verbose: bool) -> None:
    """Modify hard-coded paths within zsh residing in SRC so that they point to DST."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    if src is None:
        src = Path.cwd()

    try:
        result = relocate(src, dst, timeout=timeout)
    except RelocationError as e:
        if as_json:
            click.echo(json.dumps({"status": "FAIL", "error_count": 1, "errors": [e.to_dict()]},
                                  **CANONICAL_JSON_KW))
        else:
            # Fail closed, with a single-line reason.
            click.echo(f"FATAL: {e}", err=True)
        raise SystemExit(1)

    if as_json:
        click.echo(json.dumps({"status": "PASS", "error_count": 0, "errors": [],
                               "result": result.to_dict()}, **CANONICAL_JSON_KW))
    else:
        click.echo(f"PASS: relocated {result.src} -> {result.dst}")
        for role, d in sorted(result.directories.items()):
            click.echo(f"  {role}: {d} ({result.verified.get(role, '?')})")


if __name__ == "__main__":
    main()
