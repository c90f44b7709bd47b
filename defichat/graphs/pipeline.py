"""Model invocation pipeline built on a LangGraph state graph."""

from datetime import UTC, datetime
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, RemoveMessage, SystemMessage, trim_messages
from langchain_core.runnables import RunnableConfig
from langgraph.checkpoint.memory import MemorySaver
from langgraph.graph import END, StateGraph

from defichat.clients.llm import ModelRateLimiter, TokenEstimator, message_text
from defichat.errors import ModelInvocationError
from defichat.graphs.prompts import select_prompt
from defichat.graphs.state import ConversationState
from defichat.models.messages import ToolResult
from defichat.utils.logging import get_logger

logger = get_logger(__name__)

HEALTH_CHECK_SYSTEM = "Respond with 'OK' if you're working properly."
HEALTH_CHECK_USER = "Health check"


def build_context(message_kind: str, command: str | None, tool_summaries: list[str]) -> str:
    """Serialise the per-turn context blob handed to the prompt."""
    lines = [f"Message type: {message_kind}"]
    if command:
        lines.append(f"Command: {command}")
    if tool_summaries:
        lines.append("Tool results:")
        lines.extend(tool_summaries)
    else:
        lines.append("Tool results: none")
    return "\n".join(lines)


class ModelPipeline:
    """Trims history, selects a prompt, injects tool results and calls the model.

    History lives in a checkpointer keyed by thread id, so the graph remembers
    previous turns of a thread without the caller resending them.
    """

    def __init__(
        self,
        llm: BaseChatModel,
        tools_description: str,
        network_name: str,
        max_history_messages: int = 40,
        checkpointer: MemorySaver | None = None,
        rate_limiter: ModelRateLimiter | None = None,
        token_estimator: TokenEstimator | None = None,
    ):
        """Initialize the pipeline.

        Args:
            llm: Chat model used for replies
            tools_description: Tool catalogue rendered into every prompt
            network_name: Display name of the active network
            max_history_messages: Trimming budget, counted in messages
            checkpointer: Optional checkpointer for per-thread history
            rate_limiter: Optional limiter applied before each model call
            token_estimator: Token estimator feeding the rate limiter
        """
        self.llm = llm
        self.tools_description = tools_description
        self.network_name = network_name
        self.max_history_messages = max_history_messages
        self.checkpointer = checkpointer or MemorySaver()
        self.rate_limiter = rate_limiter
        self.token_estimator = token_estimator or TokenEstimator()
        self.graph = self._build_graph()

    def _build_graph(self):
        workflow = StateGraph(ConversationState)
        workflow.add_node("context", self._context_node)
        workflow.add_node("model", self._model_node)
        workflow.set_entry_point("context")
        workflow.add_edge("context", "model")
        workflow.add_edge("model", END)
        compiled = workflow.compile(checkpointer=self.checkpointer)
        logger.info("Model pipeline graph compiled")
        return compiled

    @staticmethod
    def _config(thread_id: str) -> RunnableConfig:
        return {"configurable": {"thread_id": thread_id}}

    async def _context_node(self, state: ConversationState) -> dict[str, Any]:
        """Fold this turn's tool results into the context blob."""
        return {"context_data": build_context(state.message_kind, state.command, state.tool_summaries)}

    async def _model_node(self, state: ConversationState) -> dict[str, Any]:
        """Invoke the model on the trimmed history with the selected template."""
        history = trim_messages(
            list(state.messages),
            max_tokens=self.max_history_messages,
            token_counter=len,
            strategy="last",
            include_system=True,
            start_on="human",
        )
        template_name, prompt = select_prompt(state.message_kind, state.analysis_kind)
        prompt_value = await prompt.ainvoke(
            {
                "messages": history,
                "tools": self.tools_description,
                "network_name": self.network_name,
                "user_address": state.caller_address or "Not connected",
                "analysis_kind": state.analysis_kind,
                "context_data": state.context_data or "None",
                "command": state.command or "",
                "parameters": state.parameters or "none",
            }
        )
        prompt_messages = prompt_value.to_messages()

        if self.rate_limiter is not None:
            await self.rate_limiter.acquire(self.token_estimator.count_messages(prompt_messages))

        logger.debug(
            f"Invoking model for thread {state.thread_id} with {len(history)} history messages "
            f"and the {template_name} template"
        )
        response = await self.llm.ainvoke(prompt_messages)
        content = message_text(response).strip()
        if not content:
            raise ModelInvocationError("Model returned an empty response")

        return {"messages": [AIMessage(content=content, id=state.reply_id)]}

    async def run(
        self,
        thread_id: str,
        text: str,
        *,
        user_message_id: str,
        reply_id: str,
        message_kind: str,
        analysis_kind: str,
        command: str | None = None,
        parameters: str = "",
        caller_address: str | None = None,
        tool_results: list[ToolResult] | None = None,
    ) -> str:
        """Process one user turn and return the assistant reply text.

        Raises:
            ModelInvocationError: If the model fails or replies with nothing
        """
        state = {
            "messages": [HumanMessage(content=text, id=user_message_id)],
            "thread_id": thread_id,
            "caller_address": caller_address,
            "message_kind": message_kind,
            "analysis_kind": analysis_kind,
            "command": command,
            "parameters": parameters,
            "tool_summaries": [r.summary() for r in tool_results or []],
            "context_data": "",
            "reply_id": reply_id,
        }

        try:
            result = await self.graph.ainvoke(state, self._config(thread_id))
        except ModelInvocationError:
            raise
        except Exception as e:
            logger.error(f"Model pipeline failed for thread {thread_id}: {e}", exc_info=True)
            raise ModelInvocationError(f"Model invocation failed: {e}", original=e) from e

        messages = result.get("messages") or []
        if not messages or not isinstance(messages[-1], AIMessage):
            raise ModelInvocationError("Model pipeline produced no assistant message")
        return message_text(messages[-1])

    async def checkpoint_messages(self, thread_id: str) -> list[BaseMessage]:
        """Messages currently held in the thread's checkpoint."""
        snapshot = await self.graph.aget_state(self._config(thread_id))
        if not snapshot.values:
            return []
        return list(snapshot.values.get("messages", []))

    async def forget(self, thread_id: str) -> None:
        """Drop every checkpoint of a thread so the next turn starts empty."""
        await self.checkpointer.adelete_thread(thread_id)
        logger.info(f"Forgot model history for thread {thread_id}")

    async def remove_messages(self, thread_id: str, message_ids: list[str]) -> int:
        """Remove specific messages from the thread's checkpoint.

        Returns:
            Number of checkpoint messages removed
        """
        existing = {m.id for m in await self.checkpoint_messages(thread_id)}
        removals = [RemoveMessage(id=mid) for mid in message_ids if mid in existing]
        if removals:
            await self.graph.aupdate_state(self._config(thread_id), {"messages": removals}, as_node="model")
        return len(removals)

    async def health_check(self) -> dict[str, Any]:
        """Send a fixed probe to the model and report whether it answered."""
        checked_at = datetime.now(UTC)
        try:
            response = await self.llm.ainvoke(
                [SystemMessage(content=HEALTH_CHECK_SYSTEM), HumanMessage(content=HEALTH_CHECK_USER)]
            )
            reply = message_text(response).strip()
        except Exception as e:
            logger.warning(f"Model health check failed: {e}")
            return {"status": "unhealthy", "error": str(e), "timestamp": checked_at}

        if not reply:
            return {"status": "unhealthy", "error": "Empty response", "timestamp": checked_at}
        return {"status": "healthy", "response": reply, "timestamp": checked_at}
