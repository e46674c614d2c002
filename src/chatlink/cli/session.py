"""
CLI commands for the session of a running server.

Usage:
    chatlink status
    chatlink qr
    chatlink restart
    chatlink logout
    chatlink clear-session
"""

import typer

from chatlink.cli._http import _http_get, _http_post


def register_session_commands(app: typer.Typer):
    """Register session commands on the root app."""

    @app.command()
    def status():
        """Show session state."""
        data = _http_get("/status")

        if data.get("degraded"):
            icon = "⚠️ "
        elif data.get("authenticated"):
            icon = "🟢"
        else:
            icon = "🔴"

        typer.echo(f"{icon} Session '{data.get('session_key')}': {data.get('state')}")
        typer.echo(f"   Authenticated: {data.get('authenticated')}")
        typer.echo(f"   Client ready:  {data.get('client_ready')}")
        typer.echo(f"   Connected:     {data.get('connected')}")
        typer.echo(f"   Restarting:    {data.get('restarting')}")
        if data.get("degraded"):
            typer.echo("   Degraded mode: messaging unavailable")
        if data.get("has_qr"):
            typer.echo("   Login pending: run `chatlink qr` for the login code")

    @app.command()
    def qr():
        """Print the pending login code as a data URL."""
        data = _http_get("/qr")
        token = data.get("qr")
        if not token:
            if data.get("connected"):
                typer.echo("Already logged in.")
            else:
                typer.echo("No login code available yet.")
            return
        typer.echo(token)

    @app.command()
    def restart():
        """Restart the messaging client."""
        data = _http_post("/restart")
        if data.get("success"):
            typer.echo(f"🔄 {data.get('status')}")
        else:
            typer.echo(f"⏳ {data.get('status')}")

    @app.command()
    def logout():
        """Log out and start a fresh session."""
        data = _http_post("/logout")
        typer.echo(f"🚪 {data.get('status')}")

    @app.command("clear-session")
    def clear_session():
        """Delete the on-disk session artifacts."""
        data = _http_post("/debug/clear-session")
        typer.echo(f"🗑️  {data.get('status')}")
