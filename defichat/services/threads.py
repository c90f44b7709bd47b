"""Per-session thread and message store."""

from datetime import UTC, datetime
from typing import Any, Literal

from defichat.errors import StateCorruptionError, ThreadNotFoundError
from defichat.models.messages import Message, Thread
from defichat.utils.logging import get_logger

logger = get_logger(__name__)

TITLE_LENGTH = 30


def title_from_content(content: str) -> str:
    """Derive a thread title from the first user message."""
    text = " ".join(content.split())
    if len(text) > TITLE_LENGTH:
        return text[:TITLE_LENGTH] + "..."
    return text or "New Chat"


class ConversationStore:
    """Threads, their ordered messages, and the active-thread pointer for one session.

    ``message_count`` is always recomputed from the live, non-error messages of
    a thread, so removals can never leave it stale.
    """

    def __init__(self):
        self._threads: dict[str, Thread] = {}
        self._messages: dict[str, list[Message]] = {}
        self._created_order: list[str] = []
        self._chat_counter = 0
        self.active_thread_id: str | None = None

    def create_thread(self, title: str | None = None) -> Thread:
        """Create a thread and make it active."""
        self._chat_counter += 1
        thread = Thread(
            title=title.strip() if title and title.strip() else f"Chat {self._chat_counter}",
            title_explicit=bool(title and title.strip()),
        )
        self._threads[thread.id] = thread
        self._messages[thread.id] = []
        self._created_order.append(thread.id)
        self.active_thread_id = thread.id
        logger.info(f"Created thread {thread.id} ({thread.title})")
        return thread

    def get_thread(self, thread_id: str) -> Thread:
        """Get a thread by id.

        Raises:
            ThreadNotFoundError: If the id is unknown
        """
        thread = self._threads.get(thread_id)
        if thread is None:
            raise ThreadNotFoundError(thread_id)
        return thread

    def has_thread(self, thread_id: str) -> bool:
        return thread_id in self._threads

    @property
    def active_thread(self) -> Thread | None:
        if self.active_thread_id is None:
            return None
        return self._threads.get(self.active_thread_id)

    def list_threads(self) -> list[Thread]:
        """All threads, most recently created first."""
        return [self._threads[tid] for tid in reversed(self._created_order)]

    def switch_thread(self, thread_id: str) -> Thread:
        """Make an existing thread active without touching any thread's data."""
        thread = self.get_thread(thread_id)
        self.active_thread_id = thread_id
        return thread

    def rename_thread(self, thread_id: str, title: str) -> Thread:
        """Set an explicit title; later messages no longer rename the thread."""
        thread = self.get_thread(thread_id)
        thread.title = title.strip() or thread.title
        thread.title_explicit = True
        thread.updated_at = datetime.now(UTC)
        return thread

    def append_message(
        self,
        thread_id: str,
        role: Literal["user", "assistant"],
        content: str,
        is_error: bool = False,
        metadata: dict[str, Any] | None = None,
        message_id: str | None = None,
    ) -> Message:
        """Append a message to an existing thread.

        Raises:
            StateCorruptionError: If the thread does not exist
        """
        thread = self._threads.get(thread_id)
        if thread is None:
            raise StateCorruptionError(f"Cannot append message to missing thread {thread_id}")

        message = Message(thread_id=thread_id, role=role, content=content, is_error=is_error, metadata=metadata or {})
        if message_id:
            message = message.model_copy(update={"id": message_id})

        messages = self._messages[thread_id]
        is_first_user_message = role == "user" and not any(m.role == "user" for m in messages)
        messages.append(message)

        if is_first_user_message and not thread.title_explicit:
            thread.title = title_from_content(content)

        thread.updated_at = message.timestamp
        self._refresh_count(thread)
        return message

    def get_history(self, thread_id: str) -> list[Message]:
        """Messages of a thread in append order."""
        self.get_thread(thread_id)
        return list(self._messages[thread_id])

    def clear_thread(self, thread_id: str) -> Thread:
        """Remove every message but keep the thread record. Idempotent."""
        thread = self.get_thread(thread_id)
        self._messages[thread_id] = []
        self._refresh_count(thread)
        logger.info(f"Cleared thread {thread_id}")
        return thread

    def delete_thread(self, thread_id: str) -> str | None:
        """Remove a thread and its messages.

        Returns:
            The active thread id afterwards; when the deleted thread was active
            this is the most recently created remaining thread, or None
        """
        self.get_thread(thread_id)
        del self._threads[thread_id]
        del self._messages[thread_id]
        self._created_order.remove(thread_id)

        if self.active_thread_id == thread_id:
            self.active_thread_id = self._created_order[-1] if self._created_order else None

        logger.info(f"Deleted thread {thread_id}, active thread now {self.active_thread_id}")
        return self.active_thread_id

    def delete_messages(self, thread_id: str, message_ids: list[str]) -> list[str]:
        """Remove the given messages from a thread.

        Returns:
            Ids that were actually removed
        """
        thread = self.get_thread(thread_id)
        wanted = set(message_ids)
        messages = self._messages[thread_id]
        removed = [m.id for m in messages if m.id in wanted]
        self._messages[thread_id] = [m for m in messages if m.id not in wanted]
        self._refresh_count(thread)
        return removed

    def clear_all(self) -> None:
        """Remove every thread and reset the active pointer."""
        self._threads.clear()
        self._messages.clear()
        self._created_order.clear()
        self._chat_counter = 0
        self.active_thread_id = None

    def _refresh_count(self, thread: Thread) -> None:
        messages = self._messages.get(thread.id, [])
        thread.message_count = sum(1 for m in messages if not m.is_error)
