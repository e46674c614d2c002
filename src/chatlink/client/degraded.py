"""
Stand-in client used when no real client can be built.
"""

from typing import Any, List

from chatlink.client.base import ConnectionState, MessagingClient
from chatlink.errors import ClientUnavailableError
from chatlink.logger import get_logger

logger = get_logger(__name__)


class DegradedClient(MessagingClient):
    """
    Client with no backend.

    It initializes successfully so the manager settles, but never becomes
    ready and refuses to send.
    """

    degraded = True

    async def initialize(self) -> None:
        logger.warning(
            f"Degraded client initialized for session '{self.options.session_key}'; "
            "messaging is unavailable"
        )

    async def destroy(self) -> None:
        logger.debug("Degraded client destroyed")

    async def logout(self) -> None:
        logger.debug("Degraded client logout")

    async def get_state(self) -> str:
        return ConnectionState.DISCONNECTED

    async def send_message(self, target: str, payload: Any) -> Any:
        raise ClientUnavailableError("Degraded client cannot send messages")

    async def list_conversations(self) -> List[Any]:
        return []
