"""Language model client construction, rate limiting and token estimation."""

import asyncio
import time

import tiktoken
from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from defichat.config import Settings
from defichat.errors import ValidationError
from defichat.utils.logging import get_logger

logger = get_logger(__name__)

CHARS_PER_TOKEN = 4


def message_text(message: BaseMessage) -> str:
    """Plain text of a message whose content may be a list of content blocks."""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def create_chat_model(settings: Settings) -> BaseChatModel:
    """Create the production chat model.

    Raises:
        ValueError: If no Anthropic API key is configured
    """
    if not settings.anthropic_api_key:
        raise ValueError("ANTHROPIC_API_KEY environment variable is required")

    return ChatAnthropic(
        model=settings.model,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
        anthropic_api_key=settings.anthropic_api_key,
    )


class ModelRateLimiter:
    """Moving-window limits on model requests and estimated tokens."""

    def __init__(self, requests_per_minute: int = 50, tokens_per_minute: int = 40_000):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests per minute
            tokens_per_minute: Maximum tokens per minute
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)

        self.request_limit = parse(f"{requests_per_minute}/minute")
        self.token_limit = parse(f"{tokens_per_minute}/minute")

    async def acquire(self, estimated_tokens: int, identifier: str = "model") -> None:
        """Wait until one request of ``estimated_tokens`` fits in both windows."""
        logger.debug(f"Checking rate limit for {estimated_tokens} tokens, identifier: {identifier}")

        if not self.limiter.hit(self.request_limit, identifier):
            await self._wait_for_reset(self.request_limit, identifier, "Request")

        token_identifier = f"{identifier}_tokens"
        cost = max(1, min(estimated_tokens, self.token_limit.amount))
        if not self.limiter.hit(self.token_limit, token_identifier, cost=cost):
            await self._wait_for_reset(self.token_limit, token_identifier, "Token")

    async def _wait_for_reset(self, limit, identifier: str, label: str) -> None:
        window_stats = self.limiter.get_window_stats(limit, identifier)
        wait_time = max(0.0, window_stats.reset_time - time.time())
        if wait_time > 0:
            logger.warning(f"{label} rate limit exceeded, waiting {wait_time:.2f}s")
            await asyncio.sleep(wait_time)


class TokenEstimator:
    """Approximate token counting for message validation and rate limiting."""

    def __init__(self, max_message_tokens: int = 1000):
        self.max_message_tokens = max_message_tokens
        try:
            # Close approximation for Claude
            self.tokenizer: tiktoken.Encoding | None = tiktoken.encoding_for_model("gpt-4")
        except Exception as e:
            logger.warning(f"Tokenizer unavailable, using character estimate: {e}")
            self.tokenizer = None

    def count(self, text: str) -> int:
        """Estimate tokens in ``text``."""
        if self.tokenizer is None:
            return len(text) // CHARS_PER_TOKEN
        return len(self.tokenizer.encode(text))

    def count_messages(self, messages: list[BaseMessage]) -> int:
        return sum(self.count(message_text(m)) for m in messages)

    def validate_message(self, text: str) -> None:
        """Reject a user message that exceeds the per-message token ceiling.

        Raises:
            ValidationError: If the message is too long
        """
        tokens = self.count(text)
        if tokens > self.max_message_tokens:
            raise ValidationError(
                [f"Message exceeds token limit ({tokens} > {self.max_message_tokens}). Please shorten your message."]
            )
