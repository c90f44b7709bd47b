"""Conversation request and response models."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from defichat.models.messages import Message, Thread, ToolResult
from defichat.models.transaction import TransactionPayload


class ChatResponse(BaseModel):
    """Structured outcome of one user turn."""

    content: str
    thread_id: str | None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    message_kind: str
    analysis_kind: str
    is_direct: bool = False
    tool_results: list[ToolResult] = Field(default_factory=list)
    error: bool = False
    message_id: str | None = None


class ConversationRequest(BaseModel):
    """Request model for conversation endpoint."""

    message: str
    session_id: str | None = None
    thread_id: str | None = None
    wallet_address: str | None = None


class ConversationResponse(ChatResponse):
    """Response model for conversation endpoint."""

    session_id: str


class ClassifyRequest(BaseModel):
    """Request model for the classification endpoint."""

    message: str


class SessionRequest(BaseModel):
    """Request body naming an existing session."""

    session_id: str


class ThreadCreateRequest(BaseModel):
    """Request model for creating a thread."""

    session_id: str | None = None
    title: str | None = None


class ThreadRenameRequest(BaseModel):
    """Request model for renaming a thread."""

    session_id: str
    title: str = Field(..., min_length=1, max_length=200)


class ThreadResponse(BaseModel):
    """A thread together with the session it belongs to."""

    session_id: str
    thread: Thread
    active_thread_id: str | None


class ThreadListResponse(BaseModel):
    """All threads of a session, newest first."""

    session_id: str
    threads: list[Thread]
    active_thread_id: str | None


class ThreadDeleteResponse(BaseModel):
    """Result of deleting a thread."""

    session_id: str
    deleted_thread_id: str
    active_thread_id: str | None


class MessageListResponse(BaseModel):
    """History of a thread."""

    session_id: str
    thread_id: str
    messages: list[Message]


class DeleteMessagesRequest(BaseModel):
    """Request model for removing specific messages."""

    session_id: str
    message_ids: list[str] = Field(..., min_length=1)


class DeleteMessagesResponse(BaseModel):
    """Ids actually removed and the thread afterwards."""

    removed: list[str]
    thread: Thread


class CheckpointResponse(BaseModel):
    """Model-side history of a thread."""

    thread_id: str
    messages: list[dict[str, Any]]


class ToolRequest(BaseModel):
    """Request model for running a tool directly."""

    arguments: dict[str, Any] = Field(default_factory=dict)
    caller_address: str | None = None


class TransferRequest(BaseModel):
    """Request model for building a transfer payload directly."""

    from_address: str
    to_address: str
    amount: str


class ApprovalRequest(BaseModel):
    """Request model for building an approval payload."""

    from_address: str
    spender: str
    amount: str


class BatchTransferItem(BaseModel):
    to_address: str
    amount: str


class BatchTransferRequest(BaseModel):
    """Request model for building a batch transfer payload."""

    from_address: str
    transfers: list[BatchTransferItem] = Field(..., min_length=1)


class PayloadResponse(BaseModel):
    """A built payload with a human-readable summary."""

    transaction: dict[str, Any]
    summary: str
    total_amount: str | None = None

    @classmethod
    def from_payload(cls, payload: TransactionPayload, summary: str, total_amount: str | None = None):
        return cls(transaction=payload.to_wire(), summary=summary, total_amount=total_amount)


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
    network: str | None = None
    tools: list[str] = Field(default_factory=list)
    sessions: int = 0


class ModelHealthResponse(BaseModel):
    """Response model for the model probe."""

    status: str
    timestamp: datetime
    response: str | None = None
    error: str | None = None
