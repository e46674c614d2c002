"""
Shared HTTP helpers for CLI commands that talk to the running server.
"""

import os

import typer


def get_server_url() -> str:
    """Get the server URL from environment or default."""
    url = os.getenv("CHATLINK_SERVER_URL")
    if url:
        return url.rstrip("/")

    port = os.getenv("CHATLINK_PORT") or "5005"
    host = os.getenv("CHATLINK_HOST", "localhost")
    if host == "0.0.0.0":
        host = "localhost"
    return f"http://{host}:{port}"


def _request(method: str, path: str, data: dict = None, timeout: float = 10.0) -> dict:
    import httpx

    url = f"{get_server_url()}{path}"
    try:
        resp = httpx.request(method, url, json=data, timeout=timeout)
        resp.raise_for_status()
        return resp.json()
    except httpx.ConnectError:
        typer.echo("❌ Cannot connect to chatlink server. Is it running?")
        raise typer.Exit(code=1)
    except httpx.HTTPStatusError as e:
        try:
            detail = e.response.json().get("message", str(e))
        except Exception:
            detail = str(e)
        typer.echo(f"❌ Server error ({e.response.status_code}): {detail}")
        raise typer.Exit(code=1)
    except Exception as e:
        typer.echo(f"❌ Error: {e}")
        raise typer.Exit(code=1)


def _http_get(path: str) -> dict:
    """Make a GET request to the running server."""
    return _request("GET", path)


def _http_post(path: str, data: dict = None) -> dict:
    """Make a POST request to the running server."""
    return _request("POST", path, data=data or {}, timeout=30.0)
