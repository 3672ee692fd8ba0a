"""Command-line interface for thyme."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import typer

from .config import DEFAULT_SHOW_MODE, TrackerSettings
from .errors import ThymeError

logger = logging.getLogger(__name__)

app = typer.Typer(
    help=(
        "Track which windows are open, visible and active, and report how long "
        "each was used. All data stays in a local SQLite file."
    )
)

DbOption = typer.Option(
    None,
    "--db",
    envvar="THYME_DB",
    path_type=Path,
    help="Location of the snapshot SQLite database.",
)
SystemOption = typer.Option(
    None,
    "--system",
    help="Platform tracker to use (linux, darwin, windows). Defaults to this OS.",
)


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _fail(error: ThymeError) -> typer.Exit:
    typer.echo(f"Error: {error}", err=True)
    return typer.Exit(code=1)


@app.command()
def track(
    db_path: Optional[Path] = DbOption,
    out: Optional[Path] = typer.Option(
        None,
        "--out",
        "-o",
        path_type=Path,
        help="Also export every recorded snapshot to this JSON file.",
    ),
    system: Optional[str] = SystemOption,
) -> None:
    """Record the current windows as one snapshot."""
    from .collector import capture, get_tracker
    from .db import append_snapshot, database_connection, load_stream
    from .serialization import dump_snapshot, dump_stream

    settings = TrackerSettings.from_options(db_path=db_path, system=system)
    try:
        snapshot = capture(get_tracker(settings.system))
        with database_connection(settings.db_path) as conn:
            append_snapshot(conn, snapshot)
            stream = load_stream(conn) if out else None
    except ThymeError as exc:
        raise _fail(exc) from exc

    if stream is not None:
        try:
            out.write_text(dump_stream(stream, indent=2), encoding="utf-8")
        except OSError as exc:
            typer.echo(f"Error: cannot write {out}: {exc}", err=True)
            raise typer.Exit(code=1) from exc
        logger.info("Exported %d snapshots to %s", len(stream), out)
    else:
        typer.echo(dump_snapshot(snapshot, indent=2))


@app.command()
def show(
    db_path: Optional[Path] = DbOption,
    in_path: Optional[str] = typer.Option(
        None,
        "--in",
        "-i",
        help="Read an exported JSON file ('-' for stdin) instead of the database.",
    ),
    what: str = typer.Option(
        DEFAULT_SHOW_MODE,
        "--what",
        "-w",
        help="What to show: list or stats. Unrecognized values show the list.",
    ),
    as_html: bool = typer.Option(
        False,
        "--html",
        help="Render stats as a standalone HTML page (ignored for the list).",
    ),
) -> None:
    """Show a chronological listing or usage statistics."""
    from .db import database_connection, load_stream
    from .reporting import render_show
    from .serialization import load_any

    try:
        if in_path == "-":
            stream = load_any(sys.stdin.read())
        elif in_path:
            stream = load_any(Path(in_path).expanduser().read_bytes())
        else:
            settings = TrackerSettings.from_options(db_path=db_path)
            with database_connection(settings.db_path) as conn:
                stream = load_stream(conn)
    except ThymeError as exc:
        raise _fail(exc) from exc
    except OSError as exc:
        typer.echo(f"Error: cannot read {in_path}: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    logger.debug("Showing %d snapshots as %r", len(stream), what)
    typer.echo(render_show(stream, what, as_html=as_html))


@app.command()
def deps(system: Optional[str] = SystemOption) -> None:
    """Show installation instructions for platform dependencies."""
    from .collector import get_tracker

    settings = TrackerSettings.from_options(system=system)
    typer.echo(get_tracker(settings.system).deps())
