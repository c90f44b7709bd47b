"""End-to-end tests for the chat engine."""

import asyncio

import pytest
from langchain_core.messages import SystemMessage

from defichat.config import Settings
from defichat.errors import ThreadNotFoundError, ValidationError
from defichat.services.engine import FALLBACK_RESPONSE, create_engine
from defichat.services.router import HELP_TEXT
from tests.conftest import RECIPIENT, SENDER


class TestDirectAndToolTurns:
    """Tests for turns that are answered directly or go through tools."""

    @pytest.mark.asyncio
    async def test_help_skips_model(self, engine, session, chat_model):
        """Test that /help is answered directly without calling the model."""
        response = await engine.send_message(session, "/help")

        assert response.is_direct
        assert response.content == HELP_TEXT
        assert response.error is False
        assert chat_model.calls == []

        history = engine.get_history(session, response.thread_id)
        assert [m.role for m in history] == ["user", "assistant"]
        assert history[1].metadata == {"is_direct": True}

    @pytest.mark.asyncio
    async def test_balance_without_identity(self, engine, session, chat_model):
        """Test that /balance with no wallet yields a MissingAddress tool result."""
        response = await engine.send_message(session, "/balance")

        assert [r.error_type for r in response.tool_results] == ["MissingAddress"]
        assert response.error is True
        assert response.content == "Here is what I found."
        assert len(chat_model.calls) == 1

    @pytest.mark.asyncio
    async def test_balance_uses_session_wallet(self, engine, chat_model):
        """Test that the connected wallet is the implicit balance address."""
        session = await engine.get_session(wallet_address=SENDER)

        response = await engine.send_message(session, "/balance")

        result = response.tool_results[0]
        assert result.ok
        assert result.result["usdc"] == "125.500000"
        assert response.error is False
        assert "125.500000" in chat_model.calls[0][0].content

    @pytest.mark.asyncio
    async def test_transfer_to_short_address(self, engine, session):
        """Test that a 39-character recipient is rejected by the payload builder."""
        short = "0x" + "a" * 39
        response = await engine.send_message(session, f"/transfer 10 {short}", caller_address=SENDER)

        result = response.tool_results[0]
        assert result.tool_name == "create_transfer"
        assert result.error_type == "ValidationError"
        assert "Invalid recipient address" in result.error

    @pytest.mark.asyncio
    async def test_transfer_builds_payload(self, engine, session):
        """Test a successful transfer turn."""
        response = await engine.send_message(session, f"/transfer 2.5 {RECIPIENT}", caller_address=SENDER)

        body = response.tool_results[0].result
        assert body["transaction"]["chainId"] == "0x14a34"
        assert body["details"]["amount"] == "2.500000"

    @pytest.mark.asyncio
    async def test_natural_language_gas_question(self, engine, session, chat_model):
        """Test that a gas question runs the network status tool before the model."""
        response = await engine.send_message(session, "what's the gas price right now?")

        assert [r.tool_name for r in response.tool_results] == ["get_network_status"]
        system = chat_model.calls[0][0]
        assert isinstance(system, SystemMessage)
        assert "get_network_status" in system.content

    @pytest.mark.asyncio
    async def test_usage_error_is_direct(self, engine, session, chat_model):
        """Test that malformed command arguments get usage help without the model."""
        response = await engine.send_message(session, "/transfer 10")

        assert response.is_direct
        assert "Usage:" in response.content
        assert chat_model.calls == []

    @pytest.mark.asyncio
    async def test_unknown_command_goes_to_model(self, engine, session, chat_model):
        """Test that an unrecognised command is answered by the model under the command prompt."""
        response = await engine.send_message(session, "/swap 10 usdc eth")

        assert response.is_direct is False
        assert response.message_kind == "command"
        assert response.tool_results == []
        assert len(chat_model.calls) == 1
        assert chat_model.calls[0][0].content.startswith("You are processing a command")


class TestFailures:
    """Tests for validation and model failures."""

    @pytest.mark.asyncio
    async def test_empty_message_creates_nothing(self, engine, session):
        """Test that an empty message is rejected before any thread exists."""
        response = await engine.send_message(session, "   ")

        assert response.error is True
        assert response.thread_id is None
        assert engine.list_threads(session) == []

    @pytest.mark.asyncio
    async def test_message_over_token_limit(self, engine, session, chat_model):
        """Test that overlong messages are refused without side effects."""
        response = await engine.send_message(session, "word " * 2000)

        assert response.error is True
        assert response.content.startswith("Message exceeds token limit")
        assert chat_model.calls == []

    @pytest.mark.asyncio
    async def test_model_failure_falls_back(self, engine, session, chat_model):
        """Test the fallback reply and that it is not counted as a message."""
        chat_model.fail = True

        response = await engine.send_message(session, "Tell me about Aave")

        assert response.error is True
        assert response.content == FALLBACK_RESPONSE

        thread = session.store.get_thread(response.thread_id)
        assert thread.message_count == 1
        history = engine.get_history(session, thread.id)
        assert history[-1].is_error

    @pytest.mark.asyncio
    async def test_unknown_thread_raises(self, engine, session):
        """Test that sending to a missing thread raises."""
        with pytest.raises(ThreadNotFoundError):
            await engine.send_message(session, "hello", thread_id="missing")

    @pytest.mark.asyncio
    async def test_thread_operations_on_unknown_ids_hold_no_locks(self, engine, session):
        """Test that failed clear, delete and message removal leave no per-thread lock behind."""
        for index in range(20):
            thread_id = f"missing-{index}"
            with pytest.raises(ThreadNotFoundError):
                await engine.clear_thread(session, thread_id)
            with pytest.raises(ThreadNotFoundError):
                await engine.delete_thread(session, thread_id)
            with pytest.raises(ThreadNotFoundError):
                await engine.delete_messages(session, thread_id, ["m1"])

        assert len(engine._thread_locks) == 0

    def test_engine_requires_model_credentials(self):
        """Test that the default model cannot be built without an API key."""
        with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
            create_engine(Settings(anthropic_api_key=None))

    def test_build_transfer_payload_validates(self, engine):
        """Test the model-free payload operation."""
        with pytest.raises(ValidationError):
            engine.build_transfer_payload(SENDER, SENDER, "1")
        assert engine.build_transfer_payload(SENDER, RECIPIENT, "1").from_address == SENDER


class TestThreads:
    """Tests for thread operations through the engine."""

    @pytest.mark.asyncio
    async def test_first_message_creates_titled_thread(self, engine, session):
        """Test implicit thread creation and titling."""
        response = await engine.send_message(session, "gm frens")

        thread = session.store.get_thread(response.thread_id)
        assert thread.title == "gm frens"
        assert thread.message_count == 2

    @pytest.mark.asyncio
    async def test_clear_resets_model_history(self, engine, session, chat_model):
        """Test that after clearing, the model sees only the new message."""
        first = await engine.send_message(session, "remember the number 42")
        await engine.clear_thread(session, first.thread_id)

        assert engine.get_history(session, first.thread_id) == []
        assert await engine.pipeline.checkpoint_messages(first.thread_id) == []

        await engine.send_message(session, "what number?")
        assert [m.content for m in chat_model.calls[-1][1:]] == ["what number?"]

    @pytest.mark.asyncio
    async def test_threads_do_not_share_history(self, engine, session, chat_model):
        """Test that a new thread starts without the previous thread's history."""
        await engine.send_message(session, "first thread")
        engine.create_thread(session, "Other")
        await engine.send_message(session, "second thread")

        assert [m.content for m in chat_model.calls[-1][1:]] == ["second thread"]

    @pytest.mark.asyncio
    async def test_delete_active_thread_falls_back(self, engine, session):
        """Test the active pointer after deleting the active thread."""
        first = engine.create_thread(session)
        second = engine.create_thread(session)
        await engine.send_message(session, "hello")

        active = await engine.delete_thread(session, second.id)

        assert active == first.id
        assert await engine.pipeline.checkpoint_messages(second.id) == []
        assert [t.id for t in engine.list_threads(session)] == [first.id]

    @pytest.mark.asyncio
    async def test_delete_messages(self, engine, session):
        """Test that removed messages leave both the store and model history."""
        response = await engine.send_message(session, "hello")
        thread_id = response.thread_id

        removed = await engine.delete_messages(session, thread_id, [response.message_id])

        assert removed == [response.message_id]
        checkpoint_ids = [m.id for m in await engine.pipeline.checkpoint_messages(thread_id)]
        assert response.message_id not in checkpoint_ids
        assert session.store.get_thread(thread_id).message_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_turns_are_serialised(self, engine, session):
        """Test that two turns on one thread never interleave."""
        engine.create_thread(session)

        await asyncio.gather(
            engine.send_message(session, "one"),
            engine.send_message(session, "two"),
        )

        thread_id = session.store.active_thread_id
        roles = [m.role for m in engine.get_history(session, thread_id)]
        assert roles == ["user", "assistant", "user", "assistant"]


class TestSessions:
    """Tests for session handling."""

    @pytest.mark.asyncio
    async def test_close_session_forgets_threads(self, engine):
        """Test that closing a session drops its threads and model history."""
        session = await engine.get_session()
        response = await engine.send_message(session, "hello")

        assert await engine.close_session(session.session_id) is True
        assert await engine.pipeline.checkpoint_messages(response.thread_id) == []
        assert await engine.close_session(session.session_id) is False

    @pytest.mark.asyncio
    async def test_health_check(self, engine):
        """Test the model probe through the engine."""
        assert (await engine.health_check())["status"] == "healthy"
