"""
Unit tests for the session lifecycle manager.
"""

import asyncio
from unittest.mock import patch

import pytest
from conftest import ClientFactory, RecordingScheduler, fake_encoder

from chatlink.client.base import ClientEvent, ConnectionState
from chatlink.errors import ClientNotReadyError, ClientUnavailableError
from chatlink.session.manager import SessionManager
from chatlink.session.state import ReadyState


async def make_ready(manager, factory):
    await manager.start()
    await factory.current.emit(ClientEvent.READY)
    assert manager.is_ready()


async def wait_for_clients(factory, count):
    while len(factory.created) < count:
        await asyncio.sleep(0)


class TestStartup:
    @pytest.mark.asyncio
    async def test_start_initializes_client(self, manager, factory):
        await manager.start()

        assert len(factory.created) == 1
        assert factory.current.calls == ["initialize"]
        assert manager.state == ReadyState.AWAITING_LOGIN
        assert not manager.is_authenticated()
        assert not manager.is_ready()

    @pytest.mark.asyncio
    async def test_start_failure_schedules_restart(self, config, scheduler):
        factory = ClientFactory(failures=1)
        manager = SessionManager(
            config, client_factory=factory, encoder=fake_encoder, scheduler=scheduler
        )

        await manager.start()
        await manager.wait_idle()

        assert len(factory.created) == 2
        assert scheduler.sleeps == [2.0]
        assert manager.backoff_ms == 2000
        assert manager.state == ReadyState.AWAITING_LOGIN
        assert not manager.restarting

    @pytest.mark.asyncio
    async def test_start_does_not_raise_on_failure(self, config, scheduler):
        factory = ClientFactory(failures=1)
        manager = SessionManager(
            config, client_factory=factory, encoder=fake_encoder, scheduler=scheduler
        )

        await manager.start()

        assert manager.attempts == 1
        await manager.wait_idle()


class TestEvents:
    @pytest.mark.asyncio
    async def test_login_token_then_ready(self, manager, factory):
        await manager.start()
        client = factory.current

        await client.emit(ClientEvent.QR, "ABC")
        assert manager.login_token == "encoded:ABC"
        assert manager.state == ReadyState.AWAITING_LOGIN
        assert not manager.is_authenticated()

        await client.emit(ClientEvent.READY)
        assert manager.login_token is None
        assert manager.state == ReadyState.READY
        assert manager.is_authenticated()

    @pytest.mark.asyncio
    async def test_authenticated_clears_token(self, manager, factory):
        await manager.start()
        client = factory.current

        await client.emit(ClientEvent.QR, "ABC")
        await client.emit(ClientEvent.AUTHENTICATED)

        assert manager.login_token is None
        assert manager.state == ReadyState.AUTHENTICATING
        assert not manager.is_authenticated()

    @pytest.mark.asyncio
    async def test_auth_failure_clears_token(self, manager, factory):
        await manager.start()
        client = factory.current

        await client.emit(ClientEvent.QR, "ABC")
        await client.emit(ClientEvent.AUTH_FAILURE, "bad credentials")

        assert manager.login_token is None
        assert manager.state == ReadyState.FAILED
        assert not manager.restarting

    @pytest.mark.asyncio
    async def test_empty_login_token_ignored(self, manager, factory):
        await manager.start()

        await factory.current.emit(ClientEvent.QR, "")

        assert manager.login_token is None

    @pytest.mark.asyncio
    async def test_encoder_failure_keeps_token_absent(self, config, factory, scheduler):
        def broken_encoder(token):
            raise ValueError("cannot encode")

        manager = SessionManager(
            config, client_factory=factory, encoder=broken_encoder, scheduler=scheduler
        )
        await manager.start()

        await factory.current.emit(ClientEvent.QR, "ABC")

        assert manager.login_token is None
        assert manager.state == ReadyState.AWAITING_LOGIN

    @pytest.mark.asyncio
    async def test_new_token_replaces_old(self, manager, factory):
        await manager.start()
        client = factory.current

        await client.emit(ClientEvent.QR, "first")
        await client.emit(ClientEvent.QR, "second")

        assert manager.login_token == "encoded:second"

    @pytest.mark.asyncio
    async def test_informational_events_keep_state(self, manager, factory):
        await make_ready(manager, factory)
        client = factory.current

        await client.emit(ClientEvent.CHANGE_STATE, "CONNECTED")
        await client.emit(ClientEvent.LOADING, 50, "Loading chats")

        assert manager.state == ReadyState.READY

    @pytest.mark.asyncio
    async def test_events_from_replaced_client_ignored(self, manager, factory):
        await manager.start()
        old = factory.current

        assert await manager.restart() is True
        await old.emit(ClientEvent.READY)

        assert manager.state == ReadyState.AWAITING_LOGIN
        assert not manager.is_ready()

    @pytest.mark.asyncio
    async def test_error_event_does_not_restart_by_default(self, manager, factory):
        await manager.start()

        await factory.current.emit(ClientEvent.ERROR, RuntimeError("boom"))
        await manager.wait_idle()

        assert len(factory.created) == 1

    @pytest.mark.asyncio
    async def test_error_event_restarts_when_enabled(self, config, factory, scheduler):
        config.restart_on_error = True
        manager = SessionManager(
            config, client_factory=factory, encoder=fake_encoder, scheduler=scheduler
        )
        await manager.start()

        await factory.current.emit(ClientEvent.ERROR, RuntimeError("boom"))
        await manager.wait_idle()

        assert len(factory.created) == 2

    @pytest.mark.asyncio
    async def test_error_event_ignored_when_ready(self, config, factory, scheduler):
        config.restart_on_error = True
        manager = SessionManager(
            config, client_factory=factory, encoder=fake_encoder, scheduler=scheduler
        )
        await make_ready(manager, factory)

        await factory.current.emit(ClientEvent.ERROR, RuntimeError("boom"))
        await manager.wait_idle()

        assert len(factory.created) == 1
        assert manager.is_ready()


class TestRestart:
    @pytest.mark.asyncio
    async def test_disconnect_triggers_single_restart(self, manager, factory):
        await make_ready(manager, factory)
        old = factory.current
        old.destroy_gate = asyncio.Event()

        await old.emit(ClientEvent.DISCONNECTED, "NAVIGATION")
        await asyncio.sleep(0)

        assert manager.restarting
        assert manager.state == ReadyState.RESTARTING
        assert not manager.is_ready()

        # Concurrent triggers while the sequence is in flight are dropped
        assert await manager.restart() is False
        assert manager.request_restart() is False

        old.destroy_gate.set()
        await manager.wait_idle()

        assert len(factory.created) == 2
        assert not manager.restarting
        assert manager.backoff_ms == 2000
        assert manager.state == ReadyState.AWAITING_LOGIN

    @pytest.mark.asyncio
    async def test_repeated_disconnects_start_one_sequence(self, manager, factory):
        await make_ready(manager, factory)
        old = factory.current
        old.destroy_gate = asyncio.Event()

        await old.emit(ClientEvent.DISCONNECTED, "NAVIGATION")
        await asyncio.sleep(0)
        await old.emit(ClientEvent.DISCONNECTED, "CONFLICT")
        await old.emit(ClientEvent.DISCONNECTED, "LOGOUT")

        old.destroy_gate.set()
        await manager.wait_idle()

        assert len(factory.created) == 2
        assert old.calls.count("destroy") == 1

    @pytest.mark.asyncio
    async def test_backoff_grows_then_resets(self, config, scheduler):
        factory = ClientFactory(failures=3)
        manager = SessionManager(
            config, client_factory=factory, encoder=fake_encoder, scheduler=scheduler
        )

        await manager.start()
        await manager.wait_idle()

        assert scheduler.sleeps == [2.0, 4.0, 8.0]
        assert len(factory.created) == 4
        assert manager.backoff_ms == 2000
        assert manager.attempts == 3

        await factory.current.emit(ClientEvent.READY)
        assert manager.attempts == 0

    @pytest.mark.asyncio
    async def test_backoff_is_capped(self, config, scheduler):
        config.backoff_cap_ms = 5000
        factory = ClientFactory(failures=5)
        manager = SessionManager(
            config, client_factory=factory, encoder=fake_encoder, scheduler=scheduler
        )

        await manager.start()
        await manager.wait_idle()

        assert scheduler.sleeps == [2.0, 4.0, 5.0, 5.0, 5.0]
        assert manager.backoff_ms == 2000

    @pytest.mark.asyncio
    async def test_destroy_failure_is_not_fatal(self, manager, factory):
        await make_ready(manager, factory)
        factory.current.destroy_error = RuntimeError("browser already gone")

        assert await manager.restart() is True
        assert len(factory.created) == 2

    @pytest.mark.asyncio
    async def test_restart_removes_session_artifacts(self, manager, factory):
        session_path = manager.session_path
        (session_path / "Default").mkdir(parents=True)
        (session_path / "Default" / "Cookies").write_text("data")
        await manager.start()

        assert await manager.restart() is True

        assert not session_path.exists()

    @pytest.mark.asyncio
    async def test_restart_survives_artifact_removal_failure(self, manager, factory):
        await manager.start()

        with patch(
            "chatlink.session.artifacts.shutil.rmtree",
            side_effect=OSError(5, "Input/output error"),
        ):
            assert await manager.restart() is True

        assert len(factory.created) == 2

    @pytest.mark.asyncio
    async def test_restart_waits_for_process_exit(self, manager, factory):
        manager.config.exit_timeout_seconds = 2.0
        await manager.start()
        factory.current.fake_pid = 4242

        with patch(
            "chatlink.session.manager._process_alive", side_effect=[True, False]
        ) as alive:
            assert await manager.restart() is True

        assert alive.call_count == 2

    @pytest.mark.asyncio
    async def test_process_exit_timeout_is_not_an_error(self, manager, factory):
        await manager.start()
        factory.current.fake_pid = 4242

        with patch("chatlink.session.manager._process_alive", return_value=True):
            assert await manager.restart() is True

        assert len(factory.created) == 2


class TestDegradedMode:
    @pytest.mark.asyncio
    async def test_attempt_cap_switches_to_degraded(self, config, scheduler):
        config.max_attempts = 2
        factory = ClientFactory(failures=10)
        manager = SessionManager(
            config, client_factory=factory, encoder=fake_encoder, scheduler=scheduler
        )

        await manager.start()
        await manager.wait_idle()

        assert len(factory.created) == 2
        assert manager.degraded
        assert not manager.is_ready()
        assert not manager.is_authenticated()
        assert await manager.is_connected() is False
        with pytest.raises(ClientUnavailableError):
            await manager.send_message("123@c.us", "hi")
        with pytest.raises(ClientUnavailableError):
            await manager.list_conversations()

    @pytest.mark.asyncio
    async def test_explicit_restart_leaves_degraded_mode(self, config, scheduler):
        config.max_attempts = 1
        factory = ClientFactory(failures=1)
        manager = SessionManager(
            config, client_factory=factory, encoder=fake_encoder, scheduler=scheduler
        )
        await manager.start()
        await manager.wait_idle()
        assert manager.degraded

        assert await manager.restart() is True

        assert not manager.degraded
        assert manager.attempts == 0
        assert manager.state == ReadyState.AWAITING_LOGIN

    @pytest.mark.asyncio
    async def test_degraded_client_from_factory(self, config, scheduler):
        from chatlink.client.degraded import DegradedClient
        from chatlink.client.base import ClientOptions

        manager = SessionManager(
            config,
            client_factory=lambda: DegradedClient(
                ClientOptions(session_key="test", auth_dir=config.auth_dir)
            ),
            encoder=fake_encoder,
            scheduler=scheduler,
        )

        await manager.start()

        assert manager.degraded
        assert manager.state == ReadyState.FAILED
        assert manager.status()["degraded"] is True


class TestLogout:
    @pytest.mark.asyncio
    async def test_logout_restarts_session(self, manager, factory):
        await make_ready(manager, factory)
        old = factory.current

        assert await manager.logout() is True

        assert "logout" in old.calls
        assert len(factory.created) == 2
        assert manager.login_token is None
        assert not manager.is_authenticated()

    @pytest.mark.asyncio
    async def test_logout_failure_still_restarts(self, manager, factory):
        await make_ready(manager, factory)
        factory.current.logout_error = RuntimeError("page crashed")

        assert await manager.logout() is True

        assert len(factory.created) == 2
        assert manager.state == ReadyState.AWAITING_LOGIN

    @pytest.mark.asyncio
    async def test_logout_removes_artifacts(self, manager, factory):
        await make_ready(manager, factory)
        manager.session_path.mkdir(parents=True)

        await manager.logout()

        assert not manager.session_path.exists()

    @pytest.mark.asyncio
    async def test_logout_during_restart_starts_fresh_session(self, manager, factory):
        await make_ready(manager, factory)
        factory.init_gate = asyncio.Event()

        assert manager.request_restart() is True
        await asyncio.wait_for(wait_for_clients(factory, 2), timeout=1)
        rebuilt = factory.current
        assert manager.restarting

        assert await manager.logout() is False
        # The client being rebuilt is not touched mid-initialization
        assert rebuilt.calls == ["initialize"]

        manager.session_path.mkdir(parents=True)
        factory.init_gate.set()
        await manager.wait_idle()

        assert len(factory.created) == 3
        assert "destroy" in rebuilt.calls
        assert "logout" not in rebuilt.calls
        assert not manager.session_path.exists()
        assert not manager.restarting
        assert manager.state == ReadyState.AWAITING_LOGIN

    @pytest.mark.asyncio
    async def test_background_logout(self, manager, factory):
        await make_ready(manager, factory)

        assert manager.request_logout() is True
        await manager.wait_idle()

        assert len(factory.created) == 2


class TestQueries:
    @pytest.mark.asyncio
    async def test_is_connected_without_client(self, manager):
        assert await manager.is_connected() is False

    @pytest.mark.asyncio
    async def test_is_connected_when_not_ready(self, manager, factory):
        await manager.start()
        assert await manager.is_connected() is False

    @pytest.mark.asyncio
    async def test_is_connected_when_ready(self, manager, factory):
        await make_ready(manager, factory)
        assert await manager.is_connected() is True

        factory.current.connection_state = ConnectionState.CONFLICT
        assert await manager.is_connected() is False

    @pytest.mark.asyncio
    async def test_is_connected_swallows_state_errors(self, manager, factory):
        await make_ready(manager, factory)
        factory.current.state_error = RuntimeError("Session closed")

        assert await manager.is_connected() is False

    @pytest.mark.asyncio
    async def test_status_snapshot(self, manager, factory):
        await manager.start()
        await factory.current.emit(ClientEvent.QR, "ABC")

        status = manager.status()

        assert status["state"] == "awaiting_login"
        assert status["has_qr"] is True
        assert status["qr_length"] == len("encoded:ABC")
        assert status["authenticated"] is False
        assert status["session_key"] == "test"
        assert status["backoff_ms"] == 2000


class TestClientOperations:
    @pytest.mark.asyncio
    async def test_send_when_not_ready_fails_fast(self, manager, factory):
        await manager.start()

        with pytest.raises(ClientNotReadyError):
            await manager.send_message("123@c.us", "hi")
        assert factory.current.sent == []

    @pytest.mark.asyncio
    async def test_list_when_not_started(self, manager):
        with pytest.raises(ClientNotReadyError):
            await manager.list_conversations()

    @pytest.mark.asyncio
    async def test_send_when_ready(self, manager, factory):
        await make_ready(manager, factory)

        receipt = await manager.send_message("123@c.us", "hi")

        assert receipt["to"] == "123@c.us"
        assert factory.current.sent == [("123@c.us", "hi")]

    @pytest.mark.asyncio
    async def test_list_conversations_when_ready(self, manager, factory):
        await make_ready(manager, factory)
        factory.current.conversations = [{"id": "123@c.us", "name": "Alice"}]

        assert await manager.list_conversations() == [
            {"id": "123@c.us", "name": "Alice"}
        ]


class TestClose:
    @pytest.mark.asyncio
    async def test_close_cancels_pending_retry(self, config):
        class BlockingScheduler(RecordingScheduler):
            async def sleep(self, seconds):
                self.sleeps.append(seconds)
                await asyncio.Event().wait()

        factory = ClientFactory(failures=1)
        manager = SessionManager(
            config,
            client_factory=factory,
            encoder=fake_encoder,
            scheduler=BlockingScheduler(),
        )
        await manager.start()
        await asyncio.sleep(0.01)
        assert manager.restarting

        await manager.close()

        assert not manager.restarting
        assert manager.state == ReadyState.UNINITIALIZED
        assert len(factory.created) == 1
        assert "destroy" in factory.created[0].calls

    @pytest.mark.asyncio
    async def test_close_finishes_interrupted_teardown(self, manager, factory):
        await make_ready(manager, factory)
        client = factory.current
        client.destroy_gate = asyncio.Event()

        assert manager.request_restart() is True
        while "destroy" not in client.calls:
            await asyncio.sleep(0)
        # The pending destroy stays blocked; the next one returns at once
        client.destroy_gate = None

        await manager.close()

        assert client.calls.count("destroy") == 2
        assert len(factory.created) == 1
        assert manager.state == ReadyState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_no_restart_after_close(self, manager, factory):
        await make_ready(manager, factory)
        client = factory.current

        await manager.close()
        # The closed client is no longer current, so its events are dropped
        await client.emit(ClientEvent.DISCONNECTED, "NAVIGATION")
        await manager.wait_idle()

        assert len(factory.created) == 1
