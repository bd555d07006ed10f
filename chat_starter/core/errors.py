"""
Application errors for clean API error handling.

Every error carries the HTTP status the outermost handler should answer with.
Provider SDK errors (openai.APIStatusError, httpx errors) are not wrapped; the
handler reads their own status attribute.
"""


class ChatStarterError(Exception):
    """Base error with a user-facing message and an HTTP status."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class InvalidRequestError(ChatStarterError):
    """Raised for malformed caller input (e.g. an empty message list)."""

    status_code = 400


class ServiceUnavailableError(ChatStarterError):
    """Raised when a required service (e.g. vector store, embeddings API) is unavailable or misconfigured."""

    status_code = 503


class EmbeddingDimensionError(ChatStarterError):
    """Raised when a vector's length differs from the configured embedding dimensionality."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Embedding dimension mismatch: expected {expected}, got {actual}")


class AgentDidNotConvergeError(ChatStarterError):
    """Raised when the model/tool loop exceeds the configured iteration budget."""

    def __init__(self, max_iterations: int) -> None:
        self.max_iterations = max_iterations
        super().__init__(f"Agent did not converge after {max_iterations} model calls")


def status_for(exc: BaseException) -> int:
    """Best-available HTTP status for an exception: its own status if present, else 500."""
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and 400 <= value <= 599:
            return value
    return 500
