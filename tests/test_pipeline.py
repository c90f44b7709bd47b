"""Tests for the model pipeline."""

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from defichat.errors import ModelInvocationError
from defichat.graphs.pipeline import ModelPipeline, build_context
from defichat.graphs.prompts import select_prompt
from defichat.models.messages import ToolCall, ToolResult
from tests.conftest import RecordingChatModel


@pytest.fixture
def pipeline(chat_model):
    return ModelPipeline(chat_model, "- get_balance: Get balances", "Base Sepolia", max_history_messages=4)


async def turn(pipeline, thread_id, text, n, message_kind="question", analysis_kind="general", **kwargs):
    return await pipeline.run(
        thread_id,
        text,
        user_message_id=f"u{n}",
        reply_id=f"a{n}",
        message_kind=message_kind,
        analysis_kind=analysis_kind,
        **kwargs,
    )


class TestPromptSelection:
    """Tests for template choice."""

    @pytest.mark.parametrize(
        ("message_kind", "analysis_kind", "expected"),
        [
            ("command", "market", "command"),
            ("question", "market", "market"),
            ("casual", "technical", "general"),
            ("question", "general", "general"),
        ],
    )
    def test_select_prompt(self, message_kind, analysis_kind, expected):
        """Test that commands win, then market analysis; technical analysis falls to general."""
        name, _ = select_prompt(message_kind, analysis_kind)
        assert name == expected

    def test_build_context(self):
        """Test the context blob with and without tool results."""
        assert build_context("question", None, []) == "Message type: question\nTool results: none"
        assert "Command: /gas" in build_context("command", "/gas", ["Tool x (estimate_gas): {}"])


class TestRun:
    """Tests for a full pipeline turn."""

    @pytest.mark.asyncio
    async def test_reply_and_checkpoint(self, pipeline):
        """Test that a turn stores the user message and the reply under their ids."""
        reply = await turn(pipeline, "t1", "hello", 1)

        assert reply == "Here is what I found."
        messages = await pipeline.checkpoint_messages("t1")
        assert [m.id for m in messages] == ["u1", "a1"]
        assert isinstance(messages[0], HumanMessage)
        assert isinstance(messages[1], AIMessage)

    @pytest.mark.asyncio
    async def test_tool_results_reach_system_prompt(self, pipeline, chat_model):
        """Test that tool summaries are injected into the system message."""
        call = ToolCall(id="c1", name="get_balance")
        result = ToolResult.success(call, {"usdc": "1.000000"})

        await turn(
            pipeline,
            "t1",
            "/balance",
            1,
            message_kind="command",
            command="/balance",
            caller_address="0x" + "1" * 40,
            tool_results=[result],
        )

        system = chat_model.calls[0][0]
        assert isinstance(system, SystemMessage)
        assert system.content.startswith("You are processing a command")
        assert 'Tool c1 (get_balance): {"usdc": "1.000000"}' in system.content
        assert "0x" + "1" * 40 in system.content

    @pytest.mark.asyncio
    async def test_market_template(self, pipeline, chat_model):
        """Test that market questions use the market template."""
        await turn(pipeline, "t1", "best yields?", 1, analysis_kind="market")
        assert "market analysis" in chat_model.calls[0][0].content

    @pytest.mark.asyncio
    async def test_history_is_trimmed(self, pipeline, chat_model):
        """Test that the model sees a bounded, human-first window of history."""
        for n in range(1, 6):
            await turn(pipeline, "t1", f"message {n}", n)

        last_prompt = chat_model.calls[-1]
        history = last_prompt[1:]
        assert len(history) <= 4
        assert isinstance(history[0], HumanMessage)
        assert history[-1].content == "message 5"
        assert len(await pipeline.checkpoint_messages("t1")) == 10

    @pytest.mark.asyncio
    async def test_threads_are_isolated(self, pipeline, chat_model):
        """Test that one thread's history never reaches another."""
        await turn(pipeline, "t1", "secret", 1)
        await turn(pipeline, "t2", "hello", 2)

        assert [m.content for m in chat_model.calls[-1][1:]] == ["hello"]

    @pytest.mark.asyncio
    async def test_model_failure(self, chat_model):
        """Test that backend errors surface as ModelInvocationError."""
        chat_model.fail = True
        pipeline = ModelPipeline(chat_model, "", "Base Sepolia")

        with pytest.raises(ModelInvocationError):
            await turn(pipeline, "t1", "hello", 1)

    @pytest.mark.asyncio
    async def test_empty_reply_is_failure(self):
        """Test that an empty completion is treated as a model failure."""
        pipeline = ModelPipeline(RecordingChatModel(responses=["   "]), "", "Base Sepolia")

        with pytest.raises(ModelInvocationError):
            await turn(pipeline, "t1", "hello", 1)


class TestCheckpointMaintenance:
    """Tests for forgetting and pruning checkpoint history."""

    @pytest.mark.asyncio
    async def test_forget_resets_history(self, pipeline, chat_model):
        """Test that a forgotten thread starts from an empty history."""
        await turn(pipeline, "t1", "first", 1)
        await pipeline.forget("t1")

        assert await pipeline.checkpoint_messages("t1") == []

        await turn(pipeline, "t1", "second", 2)
        assert [m.content for m in chat_model.calls[-1][1:]] == ["second"]

    @pytest.mark.asyncio
    async def test_remove_messages(self, pipeline):
        """Test that only known ids are removed from the checkpoint."""
        await turn(pipeline, "t1", "first", 1)
        await turn(pipeline, "t1", "second", 2)

        removed = await pipeline.remove_messages("t1", ["u1", "a1", "missing"])

        assert removed == 2
        assert [m.id for m in await pipeline.checkpoint_messages("t1")] == ["u2", "a2"]

    @pytest.mark.asyncio
    async def test_remove_from_unknown_thread(self, pipeline):
        """Test that pruning a thread without history is a no-op."""
        assert await pipeline.remove_messages("nothing", ["u1"]) == 0


class TestHealthCheck:
    """Tests for the model probe."""

    @pytest.mark.asyncio
    async def test_healthy(self, pipeline):
        """Test a responsive model."""
        status = await pipeline.health_check()
        assert status["status"] == "healthy"
        assert status["response"] == "Here is what I found."

    @pytest.mark.asyncio
    async def test_unhealthy(self, pipeline, chat_model):
        """Test that probe failures are reported, not raised."""
        chat_model.fail = True
        status = await pipeline.health_check()
        assert status["status"] == "unhealthy"
        assert "unavailable" in status["error"]
