"""
Starlette web server for chatlink.

Exposes the session manager over HTTP:
- /, /debug: browser pages showing the login token
- /qr, /status, /health: login token polling and monitoring
- /logout, /restart, /debug/*: session control
- /send, /send-file, /conversations: messaging through a ready session
"""

import contextlib
import sys
from typing import Optional

from dotenv import load_dotenv
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Route

from chatlink.config import CONFIG, PROJECT_DIR
from chatlink.logger import get_logger, setup_logging
from chatlink.routes.page_routes import debug_page, index
from chatlink.routes.session_routes import (
    clear_session,
    force_restart,
    get_qr,
    get_qr_raw,
    get_status,
    health_check,
    list_conversations,
    logout,
    send_file,
    send_text,
)
from chatlink.session.manager import SessionManager

logger = get_logger(__name__)

routes = [
    Route("/", index, methods=["GET"]),
    Route("/debug", debug_page, methods=["GET"]),
    Route("/health", health_check, methods=["GET"]),
    Route("/qr", get_qr, methods=["GET"]),
    Route("/status", get_status, methods=["GET"]),
    Route("/logout", logout, methods=["POST"]),
    Route("/restart", force_restart, methods=["POST"]),
    Route("/debug/force-restart", force_restart, methods=["POST"]),
    Route("/debug/clear-session", clear_session, methods=["POST"]),
    Route("/debug/qr-raw", get_qr_raw, methods=["GET"]),
    Route("/send", send_text, methods=["POST"]),
    Route("/send-file", send_file, methods=["POST"]),
    Route("/conversations", list_conversations, methods=["GET"]),
]


def create_app(manager: Optional[SessionManager] = None) -> Starlette:
    """
    Build the application.

    With an explicit manager the app uses it as-is and leaves its lifecycle
    to the caller; otherwise one is created from CONFIG at startup and
    closed at shutdown.
    """

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        owned = app.state.session_manager is None
        if owned:
            logger.info("Application startup - starting session manager")
            app.state.session_manager = SessionManager(CONFIG)
            await app.state.session_manager.start()
        try:
            yield
        finally:
            if owned:
                logger.info("Application shutdown - closing session manager")
                await app.state.session_manager.close()
                app.state.session_manager = None

    app = Starlette(
        routes=routes,
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_methods=["*"],
                allow_headers=["*"],
            )
        ],
        lifespan=lifespan,
    )
    app.state.session_manager = manager
    return app


def run(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Load settings and serve the application with uvicorn."""
    import uvicorn

    load_dotenv(PROJECT_DIR / ".env")
    CONFIG.reload()

    if "--debug" in sys.argv:
        CONFIG.log_level = "DEBUG"
    setup_logging(level=CONFIG.log_level, log_file=CONFIG.log_file)

    host = host or CONFIG.host
    port = port or CONFIG.port
    logger.info(f"Starting chatlink server on http://{host}:{port}")
    uvicorn.run(create_app(), host=host, port=port, log_level=CONFIG.log_level.lower())


if __name__ == "__main__":
    run()
