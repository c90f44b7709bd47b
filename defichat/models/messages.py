"""Thread, message and tool-call data models."""

import json
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from defichat.utils.ids import new_id


def utcnow() -> datetime:
    return datetime.now(UTC)


class Thread(BaseModel):
    """A conversation context with its own history and metadata."""

    id: str = Field(default_factory=new_id)
    title: str
    title_explicit: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    message_count: int = 0


class Message(BaseModel):
    """A message in a thread."""

    id: str = Field(default_factory=new_id)
    thread_id: str
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    is_error: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)


class ToolCall(BaseModel):
    """A request to run a named tool, produced by the router."""

    id: str = Field(default_factory=new_id)
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    def signature(self) -> tuple[str, tuple[tuple[str, str], ...]]:
        """Identity of the call ignoring its id, used for de-duplication."""
        return self.name, tuple(sorted((k, repr(v)) for k, v in self.arguments.items()))


class ToolResult(BaseModel):
    """Outcome of one tool call: exactly one of result or error is set."""

    tool_call_id: str
    tool_name: str
    result: Any = None
    error: str | None = None
    error_type: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_exclusive(self) -> "ToolResult":
        """Reject results that are both or neither success and failure."""
        if self.error is None and self.result is None:
            raise ValueError("ToolResult requires either a result or an error")
        if self.error is not None and self.result is not None:
            raise ValueError("ToolResult cannot carry both a result and an error")
        return self

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, call: ToolCall, result: Any, **metadata: Any) -> "ToolResult":
        return cls(tool_call_id=call.id, tool_name=call.name, result=result, metadata=metadata)

    @classmethod
    def failure(cls, call: ToolCall, error: str, error_type: str, **metadata: Any) -> "ToolResult":
        return cls(tool_call_id=call.id, tool_name=call.name, error=error, error_type=error_type, metadata=metadata)

    def summary(self) -> str:
        """One-line rendering used in the model context."""
        if self.error is not None:
            return f"Tool {self.tool_call_id} ({self.tool_name}): error: {self.error}"
        return f"Tool {self.tool_call_id} ({self.tool_name}): {json.dumps(self.result, default=str)}"
