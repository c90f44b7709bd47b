"""Deterministic message classification."""

from typing import Literal

from pydantic import BaseModel, ConfigDict

MessageKind = Literal["command", "question", "casual"]
AnalysisKind = Literal["market", "technical", "general"]

QUESTION_INDICATORS = (
    "how",
    "what",
    "when",
    "where",
    "why",
    "which",
    "who",
    "can you",
    "could you",
    "would you",
    "should i",
    "explain",
    "tell me",
    "help me",
    "show me",
    "is it",
    "are there",
    "do you",
    "does it",
)
MARKET_KEYWORDS = ("market", "price", "yield", "apy", "farming")
TECHNICAL_KEYWORDS = ("technical", "analysis", "chart")


class ClassifiedMessage(BaseModel):
    """Result of classifying one raw message."""

    model_config = ConfigDict(frozen=True)

    message_kind: MessageKind
    analysis_kind: AnalysisKind
    command: str | None = None
    parameters: str = ""
    text: str = ""

    @property
    def is_command(self) -> bool:
        return self.message_kind == "command"


def classify_analysis(text: str) -> AnalysisKind:
    lowered = text.lower()
    if any(keyword in lowered for keyword in MARKET_KEYWORDS):
        return "market"
    if any(keyword in lowered for keyword in TECHNICAL_KEYWORDS):
        return "technical"
    return "general"


def classify(text: str) -> ClassifiedMessage:
    """Classify a raw message.

    Slash-prefixed text is a command: the first token, lower-cased, is the
    command and the remaining tokens joined by single spaces are its
    parameters. Otherwise the text is a question when it contains ``?`` or an
    interrogative phrase, else casual.
    """
    stripped = text.strip()
    lowered = stripped.lower()
    analysis_kind = classify_analysis(lowered)

    if lowered.startswith("/"):
        tokens = stripped.split()
        return ClassifiedMessage(
            message_kind="command",
            analysis_kind=analysis_kind,
            command=tokens[0].lower(),
            parameters=" ".join(tokens[1:]),
            text=stripped,
        )

    if "?" in lowered or any(indicator in lowered for indicator in QUESTION_INDICATORS):
        return ClassifiedMessage(message_kind="question", analysis_kind=analysis_kind, text=stripped)

    return ClassifiedMessage(message_kind="casual", analysis_kind=analysis_kind, text=stripped)
