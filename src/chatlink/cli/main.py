"""
Top-level CLI commands: start.
"""

import os

import typer


def configure_logging(verbose: bool = False):
    """Configure logging for the CLI."""
    from chatlink.logger import setup_logging

    log_level = "DEBUG" if verbose else "WARNING"
    setup_logging(level=log_level)

    if not verbose:
        os.environ["LOGURU_LEVEL"] = "WARNING"


def register_commands(app: typer.Typer):
    """Register top-level commands."""

    @app.command()
    def start(
        host: str = typer.Option(None, "--host", help="Bind address"),
        port: int = typer.Option(None, "--port", "-p", help="Bind port"),
        debug: bool = typer.Option(False, "--debug", help="Debug logging"),
    ):
        """Start the chatlink server."""
        from chatlink.server import run

        if debug:
            os.environ["CHATLINK_LOG_LEVEL"] = "DEBUG"
        typer.echo("🚀 Starting chatlink...")
        run(host=host or None, port=port or None)
