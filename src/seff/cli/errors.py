"""Map exceptions to clean stderr messages and exit codes."""

from __future__ import annotations

import typer


def _err(msg: str, *, fg: str | None) -> None:
    """Print a styled message to stderr."""
    typer.echo(typer.style(msg, fg=fg), err=True)


def handle_error(exc: Exception, *, color: bool = True) -> int:
    """Print a one-line error message to stderr and return an exit code.

    All errors map to exit code 1.  No tracebacks are printed.
    """
    from seff.config.loader import ConfigError
    from seff.engine.errors import (
        DeserializationError,
        EngineError,
        StateError,
        StateLockError,
    )

    fg = typer.colors.RED if color else None

    if isinstance(exc, ConfigError):
        _err(f"Configuration error: {exc}", fg=fg)
    elif isinstance(exc, StateLockError):
        _err(f"State is locked: {exc}", fg=fg)
    elif isinstance(exc, StateError | DeserializationError):
        _err(f"Invalid state: {exc}", fg=fg)
    elif isinstance(exc, EngineError):
        _err(f"Engine error: {exc}", fg=fg)
    else:
        _err(f"Error: {exc}", fg=fg)

    return 1
