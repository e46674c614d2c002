"""Shared pytest fixtures: fake messaging client, scheduler and config."""

import asyncio
from typing import Any, List, Optional

import pytest

from chatlink.client.base import ClientOptions, ConnectionState, MessagingClient
from chatlink.config import SessionConfig
from chatlink.session.manager import SessionManager
from chatlink.session.scheduler import Scheduler


class FakeClient(MessagingClient):
    """In-memory client that records calls and can be told to fail."""

    def __init__(
        self,
        options: Optional[ClientOptions] = None,
        init_error: Optional[Exception] = None,
    ):
        super().__init__(options or ClientOptions(session_key="test", auth_dir="."))
        self.init_error = init_error
        self.destroy_error: Optional[Exception] = None
        self.logout_error: Optional[Exception] = None
        self.state_error: Optional[Exception] = None
        self.connection_state = ConnectionState.CONNECTED
        self.init_gate: Optional[asyncio.Event] = None
        self.destroy_gate: Optional[asyncio.Event] = None
        self.calls: List[str] = []
        self.sent: List[tuple] = []
        self.conversations: List[Any] = []
        self.fake_pid: Optional[int] = None

    @property
    def pid(self) -> Optional[int]:
        return self.fake_pid

    async def initialize(self) -> None:
        self.calls.append("initialize")
        if self.init_gate:
            await self.init_gate.wait()
        if self.init_error:
            raise self.init_error

    async def destroy(self) -> None:
        self.calls.append("destroy")
        if self.destroy_gate:
            await self.destroy_gate.wait()
        if self.destroy_error:
            raise self.destroy_error

    async def logout(self) -> None:
        self.calls.append("logout")
        if self.logout_error:
            raise self.logout_error

    async def get_state(self) -> str:
        if self.state_error:
            raise self.state_error
        return self.connection_state

    async def send_message(self, target: str, payload: Any) -> Any:
        self.sent.append((target, payload))
        return {"id": f"msg-{len(self.sent)}", "to": target}

    async def list_conversations(self) -> List[Any]:
        return self.conversations


class ClientFactory:
    """Builds FakeClients; the first ``failures`` of them fail to initialize."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.init_gate: Optional[asyncio.Event] = None
        self.created: List[FakeClient] = []

    def __call__(self) -> FakeClient:
        error = None
        if len(self.created) < self.failures:
            error = RuntimeError("Failed to launch the browser process")
        client = FakeClient(init_error=error)
        client.init_gate = self.init_gate
        self.created.append(client)
        return client

    @property
    def current(self) -> FakeClient:
        return self.created[-1]


class RecordingScheduler(Scheduler):
    """Scheduler that records requested delays instead of waiting."""

    def __init__(self):
        self.sleeps: List[float] = []

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        await asyncio.sleep(0)

    def spawn(self, coro) -> asyncio.Task:
        return asyncio.create_task(coro)


def fake_encoder(token: str) -> str:
    return f"encoded:{token}"


@pytest.fixture
def config(tmp_path):
    """Session config pointing at a temporary auth directory."""
    return SessionConfig(
        session_key="test",
        auth_dir=str(tmp_path / "auth"),
        remove_retry_delay_seconds=0,
        exit_timeout_seconds=0.05,
    )


@pytest.fixture
def factory():
    return ClientFactory()


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def manager(config, factory, scheduler):
    return SessionManager(
        config, client_factory=factory, encoder=fake_encoder, scheduler=scheduler
    )
