"""
Base classes for messaging clients.

A client is an event-emitting handle to one authenticated connection. It
reports its lifecycle through ``emit`` and exposes the handful of async
operations the session manager and HTTP routes need.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from chatlink.logger import get_logger

logger = get_logger(__name__)


class ClientEvent(str, Enum):
    """Lifecycle events a client can emit."""

    QR = "qr"
    AUTHENTICATED = "authenticated"
    READY = "ready"
    AUTH_FAILURE = "auth_failure"
    DISCONNECTED = "disconnected"
    CHANGE_STATE = "change_state"
    LOADING = "loading"
    ERROR = "error"


class ConnectionState:
    """Connection states reported by ``get_state``."""

    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    CONFLICT = "CONFLICT"
    UNPAIRED = "UNPAIRED"
    TIMEOUT = "TIMEOUT"


EventHandler = Callable[..., Awaitable[None]]


@dataclass
class ClientOptions:
    """
    Construction options handed to a client driver.

    ``executable_path`` and ``browser_args`` are None when the driver should
    use its own bundled browser defaults.
    """

    session_key: str
    auth_dir: str
    headless: bool = True
    executable_path: Optional[str] = None
    browser_args: Optional[List[str]] = None
    takeover_on_conflict: bool = True
    takeover_timeout_ms: int = 30000
    restart_on_auth_fail: bool = False
    web_version_cache: str = "local"
    label: str = "default"


class MessagingClient(ABC):
    """
    Abstract messaging client.

    Drivers subclass this, accept a ClientOptions in their constructor and
    call ``emit`` for every lifecycle event.
    """

    degraded = False

    def __init__(self, options: ClientOptions):
        self.options = options
        self._event_handler: Optional[EventHandler] = None

    def set_event_handler(self, handler: EventHandler) -> None:
        """Subscribe the single consumer of this client's events."""
        self._event_handler = handler

    async def emit(self, event: ClientEvent, *args: Any) -> None:
        """Deliver an event to the subscribed handler."""
        if not self._event_handler:
            logger.debug(f"Dropping {event.value} event: no handler subscribed")
            return
        await self._event_handler(event, *args)

    @property
    def pid(self) -> Optional[int]:
        """Process id of the automation backend, if the driver knows it."""
        return None

    @abstractmethod
    async def initialize(self) -> None:
        pass

    @abstractmethod
    async def destroy(self) -> None:
        pass

    @abstractmethod
    async def logout(self) -> None:
        pass

    @abstractmethod
    async def get_state(self) -> str:
        """Return one of the ConnectionState values."""
        pass

    @abstractmethod
    async def send_message(self, target: str, payload: Any) -> Any:
        """Send a payload to a chat and return the driver's receipt."""
        pass

    @abstractmethod
    async def list_conversations(self) -> List[Any]:
        pass
