"""
HTTP routes over the session manager.

Provides:
- login token polling and status (/qr, /status, /health)
- session control (/logout, /restart, /debug/clear-session)
- messaging (/send, /send-file, /conversations)

Routes only read manager state; messaging goes through the manager so a
non-ready session fails fast.
"""

import sys
import time
from datetime import datetime

from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from chatlink.errors import ClientNotReadyError, ClientUnavailableError
from chatlink.logger import get_logger
from chatlink.models import ActionResponse, QrResponse, SendFileRequest, SendTextRequest
from chatlink.utils import to_serializable

logger = get_logger(__name__)
start_time = time.time()


def _get_session_manager(request: Request):
    """Get SessionManager from app state."""
    return getattr(request.app.state, "session_manager", None)


def _not_initialized() -> JSONResponse:
    return JSONResponse(
        {"status": "error", "message": "Session manager not initialized"},
        status_code=503,
    )


def _client_error(e: Exception) -> JSONResponse:
    status_code = 503 if isinstance(e, ClientUnavailableError) else 400
    return JSONResponse({"status": "error", "message": str(e)}, status_code=status_code)


async def health_check(request: Request) -> JSONResponse:
    """GET /health: liveness."""
    return JSONResponse(
        {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "uptime_seconds": int(time.time() - start_time),
        }
    )


async def get_qr(request: Request) -> JSONResponse:
    """GET /qr: current login token (for polling) and connection flag."""
    manager = _get_session_manager(request)
    if not manager:
        return _not_initialized()

    resp = QrResponse(qr=manager.login_token, connected=await manager.is_connected())
    return JSONResponse(resp.model_dump())


async def get_status(request: Request) -> JSONResponse:
    """GET /status: session snapshot for monitoring."""
    manager = _get_session_manager(request)
    if not manager:
        return _not_initialized()

    try:
        status = manager.status()
        status["connected"] = await manager.is_connected()
        status["environment"] = sys.platform
        status["timestamp"] = datetime.now().isoformat()
        return JSONResponse(status)
    except Exception as e:
        logger.error(f"Error building status: {e}")
        return JSONResponse({"error": str(e)}, status_code=500)


async def logout(request: Request) -> JSONResponse:
    """POST /logout: log out and start a fresh session in the background."""
    manager = _get_session_manager(request)
    if not manager:
        return _not_initialized()

    manager.request_logout()
    return JSONResponse(ActionResponse(status="Logout initiated").model_dump())


async def force_restart(request: Request) -> JSONResponse:
    """POST /restart: trigger a restart unless one is already running."""
    manager = _get_session_manager(request)
    if not manager:
        return _not_initialized()

    logger.info("Manual restart requested")
    if manager.request_restart():
        resp = ActionResponse(status="Restart initiated")
    else:
        resp = ActionResponse(status="Restart already in progress", success=False)
    return JSONResponse(resp.model_dump())


async def clear_session(request: Request) -> JSONResponse:
    """POST /debug/clear-session: delete the on-disk session artifacts."""
    manager = _get_session_manager(request)
    if not manager:
        return _not_initialized()

    logger.info("Manual session clear requested")
    if await manager.remove_session():
        return JSONResponse(ActionResponse(status="Session cleared").model_dump())
    return JSONResponse(
        ActionResponse(status="Session could not be cleared", success=False).model_dump(),
        status_code=500,
    )


async def get_qr_raw(request: Request) -> JSONResponse:
    """GET /debug/qr-raw: login token preview and flags."""
    manager = _get_session_manager(request)
    if not manager:
        return _not_initialized()

    token = manager.login_token
    return JSONResponse(
        {
            "has_qr": token is not None,
            "qr_length": len(token) if token else 0,
            "qr_preview": f"{token[:100]}..." if token else None,
            "client_ready": manager.is_ready(),
            "restarting": manager.restarting,
            "state": manager.state.value,
        }
    )


async def send_text(request: Request) -> JSONResponse:
    """
    POST /send: send a text message.

    Body: {"chat_id": "...", "text": "..."}
    """
    manager = _get_session_manager(request)
    if not manager:
        return _not_initialized()

    try:
        body = await request.json()
        send_req = SendTextRequest(**body)
    except ValidationError as e:
        return JSONResponse({"status": "error", "message": str(e)}, status_code=400)
    except Exception:
        return JSONResponse(
            {"status": "error", "message": "Invalid JSON body"}, status_code=400
        )

    try:
        receipt = await manager.send_message(send_req.chat_id, send_req.text)
        return JSONResponse(
            {"status": "success", "receipt": to_serializable(receipt)}
        )
    except (ClientNotReadyError, ClientUnavailableError) as e:
        return _client_error(e)
    except Exception as e:
        logger.error(f"Send message error: {e}")
        return JSONResponse({"status": "error", "message": str(e)}, status_code=500)


async def send_file(request: Request) -> JSONResponse:
    """
    POST /send-file: send a document by URL.

    Body: {"chat_id": "...", "file_url": "...", "file_name": "..."}
    """
    manager = _get_session_manager(request)
    if not manager:
        return _not_initialized()

    try:
        body = await request.json()
        file_req = SendFileRequest(**body)
    except ValidationError as e:
        return JSONResponse({"status": "error", "message": str(e)}, status_code=400)
    except Exception:
        return JSONResponse(
            {"status": "error", "message": "Invalid JSON body"}, status_code=400
        )

    try:
        await manager.send_message(file_req.chat_id, file_req.to_payload())
        return JSONResponse({"status": "send file success"})
    except (ClientNotReadyError, ClientUnavailableError) as e:
        return _client_error(e)
    except Exception as e:
        logger.error(f"Send file error: {e}")
        return JSONResponse({"status": "error", "message": str(e)}, status_code=500)


async def list_conversations(request: Request) -> JSONResponse:
    """GET /conversations: conversations known to the client."""
    manager = _get_session_manager(request)
    if not manager:
        return _not_initialized()

    try:
        conversations = await manager.list_conversations()
        return JSONResponse(
            {"status": "success", "conversations": to_serializable(conversations)}
        )
    except (ClientNotReadyError, ClientUnavailableError) as e:
        return _client_error(e)
    except Exception as e:
        logger.error(f"Get conversations error: {e}")
        return JSONResponse({"status": "error", "message": str(e)}, status_code=500)
