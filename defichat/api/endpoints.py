"""API endpoints for the DeFi chat service."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Request

from defichat import __version__
from defichat.errors import StateCorruptionError, ThreadNotFoundError, ValidationError
from defichat.models.conversation import (
    ApprovalRequest,
    BatchTransferRequest,
    CheckpointResponse,
    ClassifyRequest,
    ConversationRequest,
    ConversationResponse,
    DeleteMessagesRequest,
    DeleteMessagesResponse,
    HealthResponse,
    MessageListResponse,
    ModelHealthResponse,
    PayloadResponse,
    SessionRequest,
    ThreadCreateRequest,
    ThreadDeleteResponse,
    ThreadListResponse,
    ThreadRenameRequest,
    ThreadResponse,
    ToolRequest,
    TransferRequest,
)
from defichat.models.messages import ToolResult
from defichat.models.session import Session
from defichat.services.classifier import ClassifiedMessage
from defichat.services.engine import ChatEngine
from defichat.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def get_engine(request: Request) -> ChatEngine:
    """Engine instance created by the application lifespan."""
    return request.app.state.engine


def _require_session(engine: ChatEngine, session_id: str) -> Session:
    session = engine.sessions.get_session(session_id)
    if not session:
        logger.warning(f"Unknown session ID: {session_id}")
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return session


def _thread_not_found(e: ThreadNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=e.message)


@router.post("/conversation", response_model=ConversationResponse, tags=["Conversation"])
async def handle_conversation(
    request: ConversationRequest, engine: ChatEngine = Depends(get_engine)
) -> ConversationResponse:
    """Handle a conversation message and return the engine's structured response."""
    if request.session_id:
        logger.info(f"Validating existing session: {request.session_id}")
        session = engine.sessions.get_session(request.session_id)
        if not session:
            logger.warning(f"Invalid session ID provided: {request.session_id}")
            raise HTTPException(status_code=400, detail=f"Invalid session ID: {request.session_id}")
        if request.wallet_address is not None:
            session.connect_wallet(request.wallet_address)
    else:
        logger.info("Creating new session")
        session = await engine.get_session(wallet_address=request.wallet_address)

    session_id = session.session_id
    try:
        logger.info(f"Processing message for session {session_id}: {request.message[:50]}...")
        result = await engine.send_message(session, request.message, thread_id=request.thread_id)
        logger.info(f"Generated response for session {session_id}: {result.content[:50]}...")
        return ConversationResponse(**result.model_dump(), session_id=session_id)
    except ThreadNotFoundError as e:
        raise _thread_not_found(e) from e
    except StateCorruptionError as e:
        logger.error(f"State corruption in session {session_id}: {e.message}", exc_info=True)
        raise HTTPException(status_code=500, detail="Conversation state is inconsistent") from e


@router.post("/classify", response_model=ClassifiedMessage, tags=["Conversation"])
async def classify_message(request: ClassifyRequest, engine: ChatEngine = Depends(get_engine)) -> ClassifiedMessage:
    """Classify a message without processing it."""
    return engine.classify(request.message)


@router.get("/threads", response_model=ThreadListResponse, tags=["Threads"])
async def list_threads(session_id: str, engine: ChatEngine = Depends(get_engine)) -> ThreadListResponse:
    """List a session's threads, newest first."""
    session = _require_session(engine, session_id)
    return ThreadListResponse(
        session_id=session_id,
        threads=engine.list_threads(session),
        active_thread_id=session.store.active_thread_id,
    )


@router.post("/threads", response_model=ThreadResponse, tags=["Threads"])
async def create_thread(request: ThreadCreateRequest, engine: ChatEngine = Depends(get_engine)) -> ThreadResponse:
    """Create a thread, starting a session if none is given."""
    if request.session_id:
        session = _require_session(engine, request.session_id)
    else:
        session = await engine.get_session()
    thread = engine.create_thread(session, request.title)
    return ThreadResponse(session_id=session.session_id, thread=thread, active_thread_id=thread.id)


@router.post("/threads/{thread_id}/switch", response_model=ThreadResponse, tags=["Threads"])
async def switch_thread(
    thread_id: str, request: SessionRequest, engine: ChatEngine = Depends(get_engine)
) -> ThreadResponse:
    """Make a thread the session's active thread."""
    session = _require_session(engine, request.session_id)
    try:
        thread = engine.switch_thread(session, thread_id)
    except ThreadNotFoundError as e:
        raise _thread_not_found(e) from e
    return ThreadResponse(session_id=session.session_id, thread=thread, active_thread_id=thread.id)


@router.patch("/threads/{thread_id}", response_model=ThreadResponse, tags=["Threads"])
async def rename_thread(
    thread_id: str, request: ThreadRenameRequest, engine: ChatEngine = Depends(get_engine)
) -> ThreadResponse:
    """Set a thread's title."""
    session = _require_session(engine, request.session_id)
    try:
        thread = engine.rename_thread(session, thread_id, request.title)
    except ThreadNotFoundError as e:
        raise _thread_not_found(e) from e
    return ThreadResponse(session_id=session.session_id, thread=thread, active_thread_id=session.store.active_thread_id)


@router.post("/threads/{thread_id}/clear", response_model=ThreadResponse, tags=["Threads"])
async def clear_thread(
    thread_id: str, request: SessionRequest, engine: ChatEngine = Depends(get_engine)
) -> ThreadResponse:
    """Remove a thread's messages and model history, keeping the thread."""
    session = _require_session(engine, request.session_id)
    try:
        thread = await engine.clear_thread(session, thread_id)
    except ThreadNotFoundError as e:
        raise _thread_not_found(e) from e
    return ThreadResponse(session_id=session.session_id, thread=thread, active_thread_id=session.store.active_thread_id)


@router.delete("/threads/{thread_id}", response_model=ThreadDeleteResponse, tags=["Threads"])
async def delete_thread(
    thread_id: str, session_id: str, engine: ChatEngine = Depends(get_engine)
) -> ThreadDeleteResponse:
    """Delete a thread and its messages."""
    session = _require_session(engine, session_id)
    try:
        active = await engine.delete_thread(session, thread_id)
    except ThreadNotFoundError as e:
        raise _thread_not_found(e) from e
    return ThreadDeleteResponse(session_id=session_id, deleted_thread_id=thread_id, active_thread_id=active)


@router.get("/threads/{thread_id}/messages", response_model=MessageListResponse, tags=["Threads"])
async def get_history(
    thread_id: str, session_id: str, engine: ChatEngine = Depends(get_engine)
) -> MessageListResponse:
    """Get a thread's messages in order."""
    session = _require_session(engine, session_id)
    try:
        messages = engine.get_history(session, thread_id)
    except ThreadNotFoundError as e:
        raise _thread_not_found(e) from e
    return MessageListResponse(session_id=session_id, thread_id=thread_id, messages=messages)


@router.post("/threads/{thread_id}/messages/delete", response_model=DeleteMessagesResponse, tags=["Threads"])
async def delete_messages(
    thread_id: str, request: DeleteMessagesRequest, engine: ChatEngine = Depends(get_engine)
) -> DeleteMessagesResponse:
    """Remove specific messages from a thread."""
    session = _require_session(engine, request.session_id)
    try:
        removed = await engine.delete_messages(session, thread_id, request.message_ids)
        thread = session.store.get_thread(thread_id)
    except ThreadNotFoundError as e:
        raise _thread_not_found(e) from e
    return DeleteMessagesResponse(removed=removed, thread=thread)


@router.get("/threads/{thread_id}/checkpoint", response_model=CheckpointResponse, tags=["Threads"])
async def get_checkpoint(
    thread_id: str, session_id: str, engine: ChatEngine = Depends(get_engine)
) -> CheckpointResponse:
    """Show the model-side history held for a thread."""
    session = _require_session(engine, session_id)
    if not session.store.has_thread(thread_id):
        raise HTTPException(status_code=404, detail=f"Thread not found: {thread_id}")
    messages = await engine.pipeline.checkpoint_messages(thread_id)
    return CheckpointResponse(
        thread_id=thread_id,
        messages=[{"id": m.id, "type": m.type, "content": m.content} for m in messages],
    )


@router.delete("/sessions/{session_id}", tags=["Threads"])
async def close_session(session_id: str, engine: ChatEngine = Depends(get_engine)) -> dict[str, str]:
    """Delete a session and all of its threads."""
    if not await engine.close_session(session_id):
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return {"status": "deleted", "session_id": session_id}


@router.post("/tools/{name}", response_model=ToolResult, tags=["Tools"])
async def execute_tool(name: str, request: ToolRequest, engine: ChatEngine = Depends(get_engine)) -> ToolResult:
    """Run a single tool directly."""
    if not engine.registry.has_tool(name):
        raise HTTPException(status_code=404, detail=f"Unknown tool: {name}")
    return await engine.execute_tool(name, request.arguments, request.caller_address)


@router.post("/transactions/transfer", response_model=PayloadResponse, tags=["Transactions"])
async def build_transfer(request: TransferRequest, engine: ChatEngine = Depends(get_engine)) -> PayloadResponse:
    """Build an unsent USDC transfer payload."""
    try:
        payload = engine.build_transfer_payload(request.from_address, request.to_address, request.amount)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail={"errors": e.errors}) from e
    return PayloadResponse.from_payload(payload, engine.builder.summarize(payload))


@router.post("/transactions/approve", response_model=PayloadResponse, tags=["Transactions"])
async def build_approval(request: ApprovalRequest, engine: ChatEngine = Depends(get_engine)) -> PayloadResponse:
    """Build an unsent USDC approval payload."""
    try:
        payload = engine.builder.build_approval(request.from_address, request.spender, request.amount)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail={"errors": e.errors}) from e
    return PayloadResponse.from_payload(payload, engine.builder.summarize(payload))


@router.post("/transactions/batch", response_model=PayloadResponse, tags=["Transactions"])
async def build_batch(request: BatchTransferRequest, engine: ChatEngine = Depends(get_engine)) -> PayloadResponse:
    """Build an unsent payload transferring USDC to several recipients."""
    transfers = [(item.to_address, item.amount) for item in request.transfers]
    try:
        batch = engine.builder.build_batch_transfer(request.from_address, transfers)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail={"errors": e.errors}) from e
    return PayloadResponse.from_payload(batch.payload, engine.builder.summarize(batch.payload), batch.total_amount)


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(engine: ChatEngine = Depends(get_engine)) -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
        network=engine.builder.network.network_id,
        tools=engine.registry.get_tool_names(),
        sessions=engine.sessions.get_session_count(),
    )


@router.get("/health/model", response_model=ModelHealthResponse, tags=["Health"])
async def model_health_check(engine: ChatEngine = Depends(get_engine)) -> ModelHealthResponse:
    """Probe the language model backend."""
    return ModelHealthResponse(**await engine.health_check())
