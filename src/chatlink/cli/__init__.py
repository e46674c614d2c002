"""
chatlink CLI.

- main:    start (run the server)
- session: status, qr, restart, logout, clear-session (talk to a running server)
"""

import typer

from chatlink.cli._http import _http_get, _http_post  # noqa: F401 re-export for test patching
from chatlink.cli.main import configure_logging, register_commands
from chatlink.cli.session import register_session_commands

app = typer.Typer(help="chatlink - messaging session manager")


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging (DEBUG level)"
    ),
):
    """
    chatlink - messaging session manager.
    """
    configure_logging(verbose)


register_commands(app)
register_session_commands(app)

if __name__ == "__main__":
    app()
