"""seff command line: deploy, destroy, state and test a project file."""

from __future__ import annotations

import logging
import sys

import typer
from pydantic import ValidationError

from seff import __version__
from seff.config.schema import Settings

app = typer.Typer(
    name="seff",
    help="Deploy declared cloud resources and keep their state in sync.",
    no_args_is_help=True,
    add_completion=False,
)

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"
_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"seff {__version__}")
        raise typer.Exit


def _settings_level() -> str | None:
    """The ``SFF_LOG`` level, read through the tool settings."""
    try:
        return Settings().log
    except ValidationError as exc:
        typer.echo(f"WARNING: ignoring invalid SFF_* settings: {exc}", err=True)
        return None


def _level_for(verbose: int, log_level: str | None) -> int | None:
    """Pick the ``seff`` logger level, or ``None`` to leave logging alone.

    An explicit level (``--log-level`` or ``SFF_LOG``) beats ``-v`` counts.
    """
    if log_level:
        name = log_level.upper()
        if name not in _LEVELS:
            typer.echo(
                f"WARNING: invalid SFF_LOG level '{name}', "
                f"expected one of {', '.join(sorted(_LEVELS))}; defaulting to INFO",
                err=True,
            )
        return _LEVELS.get(name, logging.INFO)
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return None


def _configure_logging(verbose: int, log_level: str | None = None) -> None:
    """Route ``seff`` log records to stderr at the chosen level.

    Other libraries stay at WARNING.
    """
    level = _level_for(verbose, log_level or _settings_level())
    if level is None:
        return
    logging.basicConfig(
        level=logging.WARNING,
        format=_LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    logging.getLogger("seff").setLevel(level)


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_print_version,
        is_eager=True,
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Log engine steps to stderr (-v info, -vv debug).",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Log level for seff (overrides -v and SFF_LOG).",
    ),
) -> None:
    _ = version
    _configure_logging(verbose, log_level)


# Commands import app, so they are registered once it exists.
from seff.cli import commands as _commands  # noqa: E402, F401
