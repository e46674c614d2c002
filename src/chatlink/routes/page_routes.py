"""
Browser pages for scanning the login token.

``/`` shows the token as a scannable image until the session is
authenticated, then a logged-in page. ``/debug`` always shows the login
view together with a live status readout.
"""

from html import escape
from typing import Optional

from starlette.requests import Request
from starlette.responses import HTMLResponse

from chatlink.logger import get_logger

logger = get_logger(__name__)

QR_POLL_INTERVAL_MS = 3000

PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>chatlink</title>
    <style>
        body {{ font-family: sans-serif; text-align: center; margin-top: 40px; }}
        #qr {{ width: 264px; height: 264px; }}
        pre {{ text-align: left; display: inline-block; background: #f4f4f4; padding: 12px; }}
    </style>
</head>
<body>
{body}
</body>
</html>
"""

LOGIN_BODY = """    <h1>Link your device</h1>
    <p id="hint">{hint}</p>
    <img id="qr" alt="Login QR code" src="{qr}"{hidden}>
{extra}
    <script>
        async function pollQr() {{
            try {{
                const resp = await fetch("/qr");
                const data = await resp.json();
                if (data.connected) {{
                    window.location.reload();
                    return;
                }}
                const img = document.getElementById("qr");
                const hint = document.getElementById("hint");
                if (data.qr) {{
                    if (img.getAttribute("src") !== data.qr) img.setAttribute("src", data.qr);
                    img.hidden = false;
                    hint.textContent = "Scan the code with the app on your phone.";
                }} else {{
                    img.hidden = true;
                    hint.textContent = "Waiting for a login code...";
                }}
            }} catch (e) {{
                console.error("QR poll failed", e);
            }}
        }}
        setInterval(pollQr, {interval});
    </script>
"""

DEBUG_EXTRA = """    <h2>Status</h2>
    <pre id="status">loading...</pre>
    <script>
        async function pollStatus() {{
            const resp = await fetch("/status");
            document.getElementById("status").textContent =
                JSON.stringify(await resp.json(), null, 2);
        }}
        pollStatus();
        setInterval(pollStatus, {interval});
    </script>
"""

LOGGED_IN_BODY = """    <h1>Logged in</h1>
    <p>The session is authenticated and ready to send messages.</p>
    <button onclick="fetch('/logout', {method: 'POST'}).then(() => window.location.reload())">
        Log out
    </button>
"""


def _login_page(token: Optional[str], extra: str = "") -> str:
    if token:
        hint = "Scan the code with the app on your phone."
    else:
        hint = "Waiting for a login code..."
    body = LOGIN_BODY.format(
        hint=hint,
        qr=escape(token or "", quote=True),
        hidden="" if token else " hidden",
        extra=extra,
        interval=QR_POLL_INTERVAL_MS,
    )
    return PAGE.format(body=body)


def _unavailable() -> HTMLResponse:
    return HTMLResponse(
        PAGE.format(body="    <h1>Session manager not initialized</h1>"),
        status_code=503,
    )


async def index(request: Request) -> HTMLResponse:
    """GET /: login page, or the logged-in page once authenticated."""
    manager = getattr(request.app.state, "session_manager", None)
    if not manager:
        return _unavailable()

    if manager.is_authenticated():
        return HTMLResponse(PAGE.format(body=LOGGED_IN_BODY))
    return HTMLResponse(_login_page(manager.login_token))


async def debug_page(request: Request) -> HTMLResponse:
    """GET /debug: login view with a live status readout."""
    manager = getattr(request.app.state, "session_manager", None)
    if not manager:
        return _unavailable()

    logger.debug("Serving debug login page")
    extra = DEBUG_EXTRA.format(interval=QR_POLL_INTERVAL_MS)
    return HTMLResponse(_login_page(manager.login_token, extra))
