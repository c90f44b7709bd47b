"""State definitions for the LangGraph model pipeline."""

from collections.abc import Sequence
from typing import Annotated

from langchain_core.messages import BaseMessage
from langgraph.graph import add_messages
from pydantic import BaseModel, ConfigDict, Field


class ConversationState(BaseModel):
    """State carried through the model pipeline for one thread.

    ``messages`` accumulates across turns through the checkpointer; every
    other field describes the current turn only.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    messages: Annotated[Sequence[BaseMessage], add_messages]
    thread_id: str

    # Turn classification
    caller_address: str | None = None
    message_kind: str = "casual"
    analysis_kind: str = "general"
    command: str | None = None
    parameters: str = ""

    # Tool output for this turn, one rendered line per result
    tool_summaries: list[str] = Field(default_factory=list)
    context_data: str = ""

    # Id assigned to the assistant message produced this turn
    reply_id: str | None = None
