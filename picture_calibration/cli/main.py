"""Main Typer CLI application for picture calibration tools."""

import logging

import typer

app = typer.Typer(
    help="Picture calibration tools: .cal files and GIS world files",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Convert and inspect picture calibrations."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(name)s: %(message)s",
    )


def _register_commands() -> None:
    """
    Import command modules to register commands with the app.

    Commands use the @app.command() decorator and register themselves when
    the module is imported.
    """
    from picture_calibration.cli import convert

    _ = convert


_register_commands()


if __name__ == "__main__":
    app()
