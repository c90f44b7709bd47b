"""Shared fixtures for engine tests."""

from unittest.mock import Mock

import pytest
import tiktoken
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage
from langchain_core.outputs import ChatGeneration, ChatResult
from pydantic import Field

from defichat.config import Settings
from defichat.services.chain import InMemoryChainReader
from defichat.services.defi_catalog import StaticDefiCatalog
from defichat.services.engine import create_engine
from defichat.services.transactions import TransactionBuilder
from defichat.tools.base import ToolDependencies
from defichat.tools.registry import ToolsRegistry

SENDER = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
RECIPIENT = "0x8ba1f109551bD432803012645Ac136ddd64DBA72"
CONTRACT = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"


class RecordingChatModel(BaseChatModel):
    """Chat model fake that records every prompt it receives."""

    responses: list[str] = Field(default_factory=lambda: ["Here is what I found."])
    calls: list[list[BaseMessage]] = Field(default_factory=list)
    fail: bool = False

    @property
    def _llm_type(self) -> str:
        return "recording-fake"

    def _generate(self, messages, stop=None, run_manager=None, **kwargs) -> ChatResult:
        self.calls.append(list(messages))
        if self.fail:
            raise RuntimeError("model backend unavailable")
        text = self.responses[min(len(self.calls), len(self.responses)) - 1]
        return ChatResult(generations=[ChatGeneration(message=AIMessage(content=text))])


@pytest.fixture(autouse=True)
def offline_tokenizer(monkeypatch):
    """Use the character-based token estimate instead of downloading encodings."""
    monkeypatch.setattr(tiktoken, "encoding_for_model", Mock(side_effect=KeyError("offline")))


@pytest.fixture
def chain():
    """In-memory chain with 125.5 USDC and 0.5 ETH for the sender."""
    return InMemoryChainReader(
        chain_id=84532,
        token_balances={SENDER: 125_500_000},
        native_balances={SENDER: 500_000_000_000_000_000},
        contracts={CONTRACT},
        gas_price=1_500_000_000,
    )


@pytest.fixture
def builder():
    return TransactionBuilder("base-sepolia")


@pytest.fixture
def registry(chain, builder):
    deps = ToolDependencies(chain=chain, catalog=StaticDefiCatalog(), builder=builder, eth_price_usd=2500.0)
    return ToolsRegistry(deps, timeout_seconds=2.0)


@pytest.fixture
def chat_model():
    return RecordingChatModel()


@pytest.fixture
def settings():
    return Settings(max_history_messages=6, tool_timeout_seconds=2.0)


@pytest.fixture
def engine(settings, chat_model, chain):
    return create_engine(settings, llm=chat_model, chain=chain)


@pytest.fixture
def session(engine):
    return engine.sessions.get_or_create_session()
