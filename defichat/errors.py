"""Exception hierarchy for the chat engine."""


class DefiChatError(Exception):
    """Base class for engine errors.

    Args:
        message: Human-readable description
        original: Underlying exception, if any
    """

    error_type: str = "DefiChatError"

    def __init__(self, message: str, original: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original = original


class ValidationError(DefiChatError):
    """Malformed address, amount or parameters. Carries every violated rule."""

    error_type = "ValidationError"

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("Validation failed: " + "; ".join(self.errors))


class ToolExecutionError(DefiChatError):
    """A tool could not produce a result."""

    error_type = "ToolExecutionError"


class MissingAddressError(ToolExecutionError):
    """Neither an explicit address nor a caller identity was available."""

    error_type = "MissingAddress"

    def __init__(self, message: str = "No address provided and no wallet connected"):
        super().__init__(message)


class UnknownToolError(ToolExecutionError):
    """Lookup of a tool name that is not registered."""

    error_type = "UnknownTool"

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ChainReadError(ToolExecutionError):
    """The chain reader failed or returned an unusable response."""

    error_type = "ChainReadError"


class ToolTimeoutError(ToolExecutionError):
    """A tool did not complete within its time budget."""

    error_type = "Timeout"


class ModelInvocationError(DefiChatError):
    """The language model failed or returned an empty reply."""

    error_type = "ModelInvocationError"


class StateCorruptionError(DefiChatError):
    """Thread or message invariants are broken. Never recovered."""

    error_type = "StateCorruptionError"


class ThreadNotFoundError(DefiChatError):
    """A thread id does not exist in the caller's store."""

    error_type = "ThreadNotFound"

    def __init__(self, thread_id: str):
        super().__init__(f"Thread not found: {thread_id}")
        self.thread_id = thread_id
