"""
Session lifecycle manager.

Owns the single messaging client of the process and drives it through its
lifecycle:

- creates the client, subscribes to its events and initializes it
- tracks login token and readiness from the client's events
- tears the client down and rebuilds it on disconnect or failure
- removes on-disk session artifacts so every rebuild starts a fresh login
- retries failed rebuilds with capped exponential backoff

The HTTP routes only read state from here and go through
``send_message``/``list_conversations`` to reach the client.
"""

import asyncio
from functools import partial
from pathlib import Path
from typing import Any, Callable, Coroutine, Dict, List, Optional, Set

import psutil

from chatlink.client.base import (
    ClientEvent,
    ClientOptions,
    ConnectionState,
    MessagingClient,
)
from chatlink.client.degraded import DegradedClient
from chatlink.client.factory import create_client
from chatlink.config import CONFIG, SessionConfig
from chatlink.errors import ClientNotReadyError, ClientUnavailableError
from chatlink.logger import get_logger
from chatlink.qr import encode_login_token
from chatlink.session.artifacts import remove_session_artifacts, session_dir
from chatlink.session.backoff import BackoffPolicy
from chatlink.session.scheduler import AsyncioScheduler, Scheduler
from chatlink.session.state import ReadyState

logger = get_logger(__name__)

EXIT_POLL_INTERVAL = 0.25


def _process_alive(pid: int) -> bool:
    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        return psutil.pid_exists(pid)


class SessionManager:
    """
    State machine over one messaging session.

    At most one restart sequence runs at a time; any restart trigger that
    arrives while one is in flight is dropped.
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        client_factory: Optional[Callable[[], MessagingClient]] = None,
        encoder: Optional[Callable[[str], str]] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.config = config or CONFIG
        self._client_factory = client_factory or partial(create_client, self.config)
        self._encoder = encoder or encode_login_token
        self._scheduler = scheduler or AsyncioScheduler()
        self._backoff = BackoffPolicy(
            self.config.backoff_initial_ms, self.config.backoff_cap_ms
        )

        self._client: Optional[MessagingClient] = None
        self._state = ReadyState.UNINITIALIZED
        self._login_token: Optional[str] = None
        self._restarting = False
        self._degraded = False
        self._attempts = 0
        self._closed = False
        self._logout_pending = False
        self._closing_client: Optional[MessagingClient] = None
        self._tasks: Set[asyncio.Task] = set()

        self._handlers = {
            ClientEvent.QR: self._on_login_token,
            ClientEvent.AUTHENTICATED: self._on_authenticated,
            ClientEvent.READY: self._on_ready,
            ClientEvent.AUTH_FAILURE: self._on_auth_failure,
            ClientEvent.DISCONNECTED: self._on_disconnected,
            ClientEvent.CHANGE_STATE: self._on_change_state,
            ClientEvent.LOADING: self._on_loading,
            ClientEvent.ERROR: self._on_error,
        }

    # -- Read surface ---------------------------------------------------------

    @property
    def state(self) -> ReadyState:
        return self._state

    @property
    def login_token(self) -> Optional[str]:
        """Displayable login token, present only while login is pending."""
        return self._login_token

    @property
    def restarting(self) -> bool:
        return self._restarting

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def backoff_ms(self) -> int:
        return self._backoff.current_ms

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def session_path(self) -> Path:
        return session_dir(self.config.auth_dir, self.config.session_key)

    def is_authenticated(self) -> bool:
        """True when no login is pending and the client is ready."""
        if self._degraded:
            return False
        return self._login_token is None and self._state == ReadyState.READY

    def is_ready(self) -> bool:
        """True when the client can serve send/list operations."""
        if self._degraded:
            return False
        return (
            self._state == ReadyState.READY
            and self._client is not None
            and not self._restarting
        )

    async def is_connected(self) -> bool:
        """
        Ask the client for its connection state.

        Never raises: any failure to query the client counts as not connected.
        """
        client = self._client
        if not self.is_ready() or client is None:
            return False
        try:
            state = await client.get_state()
        except Exception as e:
            logger.error(f"Error checking connection state: {e}")
            return False
        return state == ConnectionState.CONNECTED

    def status(self) -> Dict[str, Any]:
        """Snapshot of the session for monitoring."""
        return {
            "authenticated": self.is_authenticated(),
            "client_ready": self.is_ready(),
            "restarting": self._restarting,
            "degraded": self._degraded,
            "state": self._state.value,
            "has_qr": self._login_token is not None,
            "qr_length": len(self._login_token) if self._login_token else 0,
            "attempts": self._attempts,
            "backoff_ms": self._backoff.current_ms,
            "session_key": self.config.session_key,
        }

    # -- Client operations ----------------------------------------------------

    def _require_client(self) -> MessagingClient:
        if self._degraded:
            raise ClientUnavailableError()
        if not self.is_ready():
            raise ClientNotReadyError()
        return self._client

    async def send_message(self, target: str, payload: Any) -> Any:
        """
        Send a payload through the client.

        Raises:
            ClientUnavailableError: In degraded mode.
            ClientNotReadyError: When the session is not ready.
        """
        client = self._require_client()
        return await client.send_message(target, payload)

    async def list_conversations(self) -> List[Any]:
        """
        List the client's conversations.

        Raises:
            ClientUnavailableError: In degraded mode.
            ClientNotReadyError: When the session is not ready.
        """
        client = self._require_client()
        return await client.list_conversations()

    # -- Lifecycle ------------------------------------------------------------

    async def start(self) -> None:
        """Create and initialize the first client. Failures schedule a restart."""
        self._closed = False
        logger.info(f"Starting session '{self.config.session_key}'")
        try:
            await self._start_client()
        except Exception as e:
            logger.error(f"Client initialization failed: {e}")
            await self._handle_failed_attempt(e, grow_backoff=False)

    async def restart(self) -> bool:
        """
        Tear down and rebuild the client.

        An explicit restart also leaves degraded mode and clears the attempt
        count. Returns False if a restart was already in flight or this
        attempt failed (a retry is then scheduled).
        """
        if self._restarting:
            logger.info("Restart already in progress, skipping")
            return False
        if self._degraded:
            logger.info("Leaving degraded mode for explicit restart")
            self._degraded = False
            self._attempts = 0
        return await self._run_restart()

    async def logout(self) -> bool:
        """
        Log the session out and start a fresh one.

        The client logout is best effort; a restart is always triggered. While
        a restart is in flight the client being rebuilt is left alone and the
        running sequence starts one more restart when it finishes; False is
        returned then.
        """
        logger.info("Logging out")
        self._login_token = None
        if self._restarting:
            logger.info("Restart in progress, logout will follow it")
            self._logout_pending = True
            return False
        self._set_state(ReadyState.UNINITIALIZED)

        client = self._client
        if client is not None and not client.degraded:
            try:
                await client.logout()
            except Exception as e:
                logger.error(f"Client logout failed: {e}")

        await self.remove_session()
        return await self.restart()

    def request_restart(self) -> bool:
        """Run ``restart`` in the background. False if one is already in flight."""
        if self._restarting:
            return False
        return self._spawn(self.restart()) is not None

    def request_logout(self) -> bool:
        """Run ``logout`` in the background."""
        return self._spawn(self.logout()) is not None

    async def remove_session(self) -> bool:
        """Delete the on-disk artifacts of this session key."""
        return await remove_session_artifacts(
            self.session_path,
            retries=self.config.remove_retries,
            retry_delay=self.config.remove_retry_delay_seconds,
            sleep=self._scheduler.sleep,
        )

    async def close(self) -> None:
        """Cancel scheduled work and destroy the client. Artifacts are kept."""
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._closing_client is not None:
            logger.info("Finishing interrupted client teardown")
            await self._destroy_client(self._closing_client)
        await self._teardown_client()
        self._login_token = None
        self._set_state(ReadyState.UNINITIALIZED)
        logger.info("Session manager closed")

    async def wait_idle(self) -> None:
        """Wait until no spawned restart or retry task remains."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -- Event dispatch -------------------------------------------------------

    async def handle_event(
        self, client: MessagingClient, event: ClientEvent, *args: Any
    ) -> None:
        """
        Apply one client event to the session state.

        Events from a client that has already been replaced are ignored.
        """
        if client is not self._client:
            logger.debug(f"Ignoring '{event.value}' from a replaced client")
            return

        handler = self._handlers.get(event)
        if handler is None:
            logger.debug(f"Unhandled client event: {event}")
            return

        try:
            handler(*args)
        except Exception as e:
            logger.error(f"Error handling '{event.value}' event: {e}")

    def _on_login_token(self, token: Optional[str] = None, *_: Any) -> None:
        if not token:
            logger.warning("Received empty login token")
            return
        try:
            encoded = self._encoder(token)
        except Exception as e:
            logger.error(f"Login token encoding failed: {e}")
            return
        self._login_token = encoded
        self._set_state(ReadyState.AWAITING_LOGIN)
        logger.info(f"Login token received (encoded length {len(encoded)})")

    def _on_authenticated(self, *_: Any) -> None:
        logger.info("Client authenticated")
        self._login_token = None
        self._set_state(ReadyState.AUTHENTICATING)

    def _on_ready(self, *_: Any) -> None:
        logger.info("Client is ready")
        self._login_token = None
        self._attempts = 0
        self._set_state(ReadyState.READY)

    def _on_auth_failure(self, *args: Any) -> None:
        logger.error(f"Authentication failed: {args[0] if args else 'no detail'}")
        self._login_token = None
        self._set_state(ReadyState.FAILED)

    def _on_disconnected(self, reason: Any = None, *_: Any) -> None:
        logger.warning(f"Client disconnected: {reason}")
        if self._restarting:
            logger.debug("Disconnect during restart ignored")
            return
        self._set_state(ReadyState.FAILED)
        self._spawn(self._run_restart())

    def _on_change_state(self, state: Any = None, *_: Any) -> None:
        logger.info(f"Client state changed: {state}")

    def _on_loading(self, percent: Any = None, message: Any = None, *_: Any) -> None:
        logger.info(f"Loading: {percent}% {message or ''}".rstrip())

    def _on_error(self, error: Any = None, *_: Any) -> None:
        logger.error(f"Client error: {error}")
        if (
            self.config.restart_on_error
            and not self._restarting
            and self._state != ReadyState.READY
        ):
            self._spawn(self._run_restart())

    # -- Internal -------------------------------------------------------------

    def _set_state(self, state: ReadyState) -> None:
        if state != self._state:
            logger.debug(f"Session state: {self._state.value} -> {state.value}")
            self._state = state

    def _spawn(self, coro: Coroutine) -> Optional[asyncio.Task]:
        if self._closed:
            coro.close()
            return None
        task = self._scheduler.spawn(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _subscribe(self, client: MessagingClient) -> None:
        client.set_event_handler(partial(self.handle_event, client))

    async def _start_client(self) -> None:
        """Create a client, subscribe to it and initialize it."""
        client = self._client_factory()
        self._client = client
        self._degraded = client.degraded
        if client.degraded:
            logger.warning("Running with degraded client")
        self._subscribe(client)

        await client.initialize()
        logger.info("Client initialization finished")

        if self._state in (ReadyState.UNINITIALIZED, ReadyState.RESTARTING):
            self._set_state(
                ReadyState.FAILED if client.degraded else ReadyState.AWAITING_LOGIN
            )

    async def _run_restart(self) -> bool:
        """The teardown/rebuild sequence, guarded against re-entry."""
        if self._restarting:
            logger.info("Restart already in progress, skipping")
            return False

        self._restarting = True
        self._logout_pending = False
        self._login_token = None
        self._set_state(ReadyState.RESTARTING)
        logger.info("Restarting messaging client")

        try:
            await self._teardown_client()
            await self.remove_session()
            logger.info(f"Recreating client in {self._backoff.current_ms}ms")
            await self._scheduler.sleep(self._backoff.delay_seconds)
            await self._start_client()
        except Exception as e:
            logger.error(f"Restart failed: {e}")
            await self._handle_failed_attempt(e, grow_backoff=True)
            return False
        finally:
            self._restarting = False

        self._backoff.reset()
        logger.info("Restart completed")
        if self._logout_pending:
            logger.info("Logout requested during restart, starting a fresh session")
            self._spawn(self._run_restart())
        return True

    async def _handle_failed_attempt(self, error: Exception, grow_backoff: bool) -> None:
        self._attempts += 1
        self._set_state(ReadyState.UNINITIALIZED)
        if grow_backoff:
            self._backoff.fail()

        cap = self.config.max_attempts
        if cap and self._attempts >= cap:
            logger.error(
                f"Giving up after {self._attempts} failed attempts, "
                "switching to degraded mode"
            )
            await self._enter_degraded_mode()
            return

        logger.warning(
            f"Attempt {self._attempts} failed ({error}), "
            f"retrying with {self._backoff.current_ms}ms backoff"
        )
        self._spawn(self._run_restart())

    async def _enter_degraded_mode(self) -> None:
        await self._teardown_client()
        self._degraded = True
        self._login_token = None
        self._set_state(ReadyState.FAILED)

        client = DegradedClient(
            ClientOptions(
                session_key=self.config.session_key,
                auth_dir=self.config.auth_dir,
                label="degraded",
            )
        )
        self._client = client
        self._subscribe(client)
        await client.initialize()

    async def _teardown_client(self) -> None:
        """Destroy the current client. Failures are logged, never raised."""
        client = self._client
        if client is None:
            return
        self._client = None
        await self._destroy_client(client)

    async def _destroy_client(self, client: MessagingClient) -> None:
        # Stays set if the destroy is cancelled, so close() can finish it
        self._closing_client = client
        pid = client.pid

        try:
            await client.destroy()
            logger.info("Client destroyed")
        except Exception as e:
            logger.error(f"Error destroying client: {e}")
        self._closing_client = None

        if pid:
            await self._wait_for_exit(pid)

    async def _wait_for_exit(self, pid: int) -> None:
        timeout = self.config.exit_timeout_seconds

        async def poll():
            while _process_alive(pid):
                await asyncio.sleep(EXIT_POLL_INTERVAL)

        try:
            await asyncio.wait_for(poll(), timeout)
            logger.debug(f"Automation process {pid} exited")
        except asyncio.TimeoutError:
            logger.warning(
                f"Automation process {pid} still running after {timeout}s, continuing"
            )
