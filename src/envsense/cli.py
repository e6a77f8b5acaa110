"""Command line interface for the envsense package."""
from __future__ import annotations

import logging

import typer

from .bme280.runner import app as bme280_app

app = typer.Typer(context_settings={"help_option_names": ["-h", "--help"]})
app.add_typer(bme280_app, name="bme280")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Environmental sensor utilities."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    run()
