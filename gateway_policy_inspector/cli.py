"""Command-line interface for the Gateway API policy inspector."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from gateway_policy_inspector.commands import describe, get  # noqa: F401
from gateway_policy_inspector.commands.common import _version_callback, app
from gateway_policy_inspector.logging_utils import configure_logging


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show gwpi version and exit.",
            is_eager=True,
            callback=_version_callback,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose debug logging."),
    ] = False,
    log_file: Annotated[
        Path | None,
        typer.Option("--log-file", help="Write logs to this file instead of stderr."),
    ] = None,
) -> None:
    """Inspect Gateway API policy attachment and effective policies."""
    configure_logging(log_file=log_file, verbose=verbose)


if __name__ == "__main__":
    app()
