"""Caller session model."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from defichat.services.threads import ConversationStore
from defichat.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Session:
    """A caller session owning a set of threads."""

    session_id: str
    wallet_address: str | None = None
    store: ConversationStore = field(default_factory=ConversationStore)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_activity: datetime = field(default_factory=lambda: datetime.now(UTC))

    def as_dict(self) -> dict[str, Any]:
        """Return the session as a dictionary."""
        return {
            "session_id": self.session_id,
            "wallet_address": self.wallet_address,
            "active_thread_id": self.store.active_thread_id,
            "thread_count": len(self.store.list_threads()),
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
        }

    def update_activity(self) -> None:
        """Update the last activity timestamp."""
        self.last_activity = datetime.now(UTC)

    def connect_wallet(self, address: str | None) -> None:
        """Attach (or detach, with None) the caller's wallet address."""
        if address != self.wallet_address:
            logger.info(f"Session {self.session_id} wallet set to {address}")
        self.wallet_address = address
        self.update_activity()
