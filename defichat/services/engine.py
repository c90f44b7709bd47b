"""Chat engine: the public operations of the conversational command engine."""

import asyncio
from collections import defaultdict
from typing import Any

from langchain_core.language_models import BaseChatModel

from defichat.clients.llm import ModelRateLimiter, TokenEstimator, create_chat_model
from defichat.config import Settings
from defichat.errors import ModelInvocationError, ValidationError
from defichat.graphs.pipeline import ModelPipeline
from defichat.models.conversation import ChatResponse
from defichat.models.messages import Message, Thread, ToolCall, ToolResult
from defichat.models.session import Session
from defichat.models.transaction import TransactionPayload, get_network_config
from defichat.services.chain import ChainReader, InMemoryChainReader, JsonRpcChainReader
from defichat.services.classifier import ClassifiedMessage, classify
from defichat.services.defi_catalog import DefiCatalogService, StaticDefiCatalog
from defichat.services.router import CommandRouter, RouteDecision
from defichat.services.session_manager import InMemorySessionManager
from defichat.services.transactions import TransactionBuilder
from defichat.tools.base import ToolDependencies
from defichat.tools.registry import ToolsRegistry
from defichat.utils.ids import new_id
from defichat.utils.logging import get_logger

logger = get_logger(__name__)

FALLBACK_RESPONSE = (
    "I'm experiencing some technical difficulties right now. You can still use basic commands like "
    "/help, /status, /balance, /gas, /yields, /protocols or /validate, or try asking your question "
    "again in a moment."
)


class ChatEngine:
    """Classifies, routes, runs tools, calls the model and records the turn.

    Built once by the process entry point with its collaborators injected.
    """

    def __init__(
        self,
        registry: ToolsRegistry,
        router: CommandRouter,
        pipeline: ModelPipeline,
        builder: TransactionBuilder,
        sessions: InMemorySessionManager | None = None,
        token_estimator: TokenEstimator | None = None,
    ):
        self.registry = registry
        self.router = router
        self.pipeline = pipeline
        self.builder = builder
        self.sessions = sessions or InMemorySessionManager()
        self.token_estimator = token_estimator or TokenEstimator()
        self._thread_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # Stateless operations

    def classify(self, text: str) -> ClassifiedMessage:
        return classify(text)

    def route(self, classified: ClassifiedMessage, caller_address: str | None = None) -> RouteDecision:
        return self.router.route(classified, caller_address)

    async def execute_tool(self, name: str, arguments: dict[str, Any], caller_address: str | None = None) -> ToolResult:
        """Run a single tool by name; failures come back as error results."""
        return await self.registry.execute(ToolCall(name=name, arguments=arguments), caller_address)

    def build_transfer_payload(self, from_address: str, to_address: str, amount) -> TransactionPayload:
        """Build a transfer payload without involving the model.

        Raises:
            ValidationError: Listing every violated rule
        """
        return self.builder.build_transfer(from_address, to_address, amount)

    # Sessions

    async def get_session(self, session_id: str | None = None, wallet_address: str | None = None) -> Session:
        """Get or create a caller session, forgetting model history of expired ones."""
        for expired in self.sessions.pop_expired():
            await self._forget_session(expired)

        session = self.sessions.get_or_create_session(session_id)
        if wallet_address is not None:
            session.connect_wallet(wallet_address)
        return session

    async def close_session(self, session_id: str) -> bool:
        """Delete a session and every thread it owns."""
        session = self.sessions.delete_session(session_id)
        if session is None:
            return False
        await self._forget_session(session)
        return True

    async def _forget_session(self, session: Session) -> None:
        for thread in session.store.list_threads():
            await self.pipeline.forget(thread.id)
            self._thread_locks.pop(thread.id, None)
        session.store.clear_all()
        logger.info(f"Released session {session.session_id}")

    # Thread lifecycle

    def create_thread(self, session: Session, title: str | None = None) -> Thread:
        return session.store.create_thread(title)

    def switch_thread(self, session: Session, thread_id: str) -> Thread:
        return session.store.switch_thread(thread_id)

    def rename_thread(self, session: Session, thread_id: str, title: str) -> Thread:
        return session.store.rename_thread(thread_id, title)

    def list_threads(self, session: Session) -> list[Thread]:
        return session.store.list_threads()

    def get_history(self, session: Session, thread_id: str) -> list[Message]:
        return session.store.get_history(thread_id)

    async def clear_thread(self, session: Session, thread_id: str) -> Thread:
        """Remove a thread's messages and its model history; the thread survives."""
        session.store.get_thread(thread_id)
        async with self._thread_locks[thread_id]:
            thread = session.store.clear_thread(thread_id)
            await self.pipeline.forget(thread_id)
        return thread

    async def delete_thread(self, session: Session, thread_id: str) -> str | None:
        """Delete a thread; returns the active thread id afterwards."""
        session.store.get_thread(thread_id)
        async with self._thread_locks[thread_id]:
            active = session.store.delete_thread(thread_id)
            await self.pipeline.forget(thread_id)
        self._thread_locks.pop(thread_id, None)
        return active

    async def delete_messages(self, session: Session, thread_id: str, message_ids: list[str]) -> list[str]:
        """Remove specific messages from the thread and from its model history."""
        session.store.get_thread(thread_id)
        async with self._thread_locks[thread_id]:
            removed = session.store.delete_messages(thread_id, message_ids)
            await self.pipeline.remove_messages(thread_id, removed)
        return removed

    # Conversation

    async def send_message(
        self,
        session: Session,
        text: str,
        thread_id: str | None = None,
        caller_address: str | None = None,
    ) -> ChatResponse:
        """Process one user turn end to end.

        Validation, tool and model failures are folded into the response with
        ``error=True``; only broken thread state raises.

        Raises:
            ThreadNotFoundError: If ``thread_id`` names no thread of this session
            StateCorruptionError: If the thread vanishes mid-turn
        """
        store = session.store
        caller_address = caller_address or session.wallet_address
        classified = classify(text)

        if thread_id is not None:
            store.switch_thread(thread_id)

        problems = self._validate_text(text)
        if problems:
            return ChatResponse(
                content="\n".join(problems),
                thread_id=store.active_thread_id,
                message_kind=classified.message_kind,
                analysis_kind=classified.analysis_kind,
                error=True,
            )

        if store.active_thread is None:
            store.create_thread()
        thread_id = store.active_thread_id

        async with self._thread_locks[thread_id]:
            return await self._process_turn(session, thread_id, text.strip(), classified, caller_address)

    def _validate_text(self, text: str) -> list[str]:
        if not text or not text.strip():
            return ["Message cannot be empty."]
        try:
            self.token_estimator.validate_message(text)
        except ValidationError as e:
            return e.errors
        return []

    async def _process_turn(
        self,
        session: Session,
        thread_id: str,
        text: str,
        classified: ClassifiedMessage,
        caller_address: str | None,
    ) -> ChatResponse:
        store = session.store
        user_message = store.append_message(thread_id, "user", text)
        logger.info(
            f"Session {session.session_id} thread {thread_id}: {classified.message_kind} message "
            f"({classified.analysis_kind}) {text[:50]}"
        )

        decision = self.router.route(classified, caller_address)
        if decision.is_direct:
            reply = store.append_message(thread_id, "assistant", decision.direct_response, metadata={"is_direct": True})
            return ChatResponse(
                content=decision.direct_response,
                thread_id=thread_id,
                message_kind=classified.message_kind,
                analysis_kind=classified.analysis_kind,
                is_direct=True,
                message_id=reply.id,
            )

        tool_results = await self.registry.execute_all(decision.tool_calls, caller_address)
        metadata = {"tool_calls": [{"id": c.id, "name": c.name} for c in decision.tool_calls]}
        reply_id = new_id()

        try:
            content = await self.pipeline.run(
                thread_id,
                text,
                user_message_id=user_message.id,
                reply_id=reply_id,
                message_kind=classified.message_kind,
                analysis_kind=classified.analysis_kind,
                command=classified.command,
                parameters=classified.parameters,
                caller_address=caller_address,
                tool_results=tool_results,
            )
        except ModelInvocationError as e:
            logger.error(f"Falling back after model failure on thread {thread_id}: {e.message}")
            reply = store.append_message(
                thread_id, "assistant", FALLBACK_RESPONSE, is_error=True, metadata={**metadata, "error": e.message}
            )
            return ChatResponse(
                content=FALLBACK_RESPONSE,
                thread_id=thread_id,
                message_kind=classified.message_kind,
                analysis_kind=classified.analysis_kind,
                tool_results=tool_results,
                error=True,
                message_id=reply.id,
            )

        reply = store.append_message(thread_id, "assistant", content, metadata=metadata, message_id=reply_id)
        return ChatResponse(
            content=content,
            thread_id=thread_id,
            message_kind=classified.message_kind,
            analysis_kind=classified.analysis_kind,
            tool_results=tool_results,
            error=any(not r.ok for r in tool_results),
            message_id=reply.id,
        )

    async def health_check(self) -> dict[str, Any]:
        """Probe the model backend."""
        return await self.pipeline.health_check()


def create_engine(
    settings: Settings,
    llm: BaseChatModel | None = None,
    chain: ChainReader | None = None,
    catalog: DefiCatalogService | None = None,
) -> ChatEngine:
    """Wire an engine and its collaborators from settings.

    Args:
        settings: Runtime configuration
        llm: Chat model; defaults to the configured Anthropic model
        chain: Chain reader; defaults to the configured backend
        catalog: Protocol and yield data; defaults to the static catalogue
    """
    network = get_network_config(settings.network_id)
    builder = TransactionBuilder(network)

    if chain is None:
        if settings.chain_backend == "rpc":
            chain = JsonRpcChainReader(settings.rpc_url or network.rpc_url)
        else:
            chain = InMemoryChainReader(chain_id=network.chain_id)

    deps = ToolDependencies(
        chain=chain,
        catalog=catalog or StaticDefiCatalog(),
        builder=builder,
        eth_price_usd=settings.eth_price_usd,
    )
    registry = ToolsRegistry(deps, timeout_seconds=settings.tool_timeout_seconds)
    token_estimator = TokenEstimator(settings.max_message_tokens)

    pipeline = ModelPipeline(
        llm=llm or create_chat_model(settings),
        tools_description=registry.describe(),
        network_name=network.network_name,
        max_history_messages=settings.max_history_messages,
        rate_limiter=ModelRateLimiter(settings.requests_per_minute, settings.tokens_per_minute),
        token_estimator=token_estimator,
    )

    logger.info(
        f"Chat engine ready on {network.network_id} with {len(registry.get_tool_names())} tools "
        f"({settings.chain_backend} chain backend)"
    )
    return ChatEngine(
        registry=registry,
        router=CommandRouter(registry, network),
        pipeline=pipeline,
        builder=builder,
        sessions=InMemorySessionManager(settings.session_timeout_minutes),
        token_estimator=token_estimator,
    )
