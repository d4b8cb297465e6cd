from typing import Optional, Sequence


RETRYABLE_SERVICE_HINTS = ("failed to connect", "timeout", "timed out", "network", "connection", "http")
TERMINAL_SERVICE_HINTS = ("empty response", "model not found", "invalid model")


class OllamaCommitError(Exception):
    """Base exception for ollama-commit errors.

    ``retryable`` tells the generation loop whether another attempt may
    succeed. Subclasses set the default; instances may override it.
    """

    retryable: bool = False

    def __init__(self, message: str = "", *, retryable: Optional[bool] = None) -> None:
        super().__init__(message)
        if retryable is not None:
            self.retryable = retryable


class ConfigurationError(OllamaCommitError):
    """Raised for unknown keys, malformed key paths or invalid values."""

    def __init__(self, message: str, suggestions: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.suggestions = list(suggestions)


class RepositoryError(OllamaCommitError):
    """Raised when the target directory is not a git repository."""


class NoChangesError(OllamaCommitError):
    """Raised when there is nothing staged or unstaged to describe."""


class CommandExecutionError(OllamaCommitError):
    """Raised when a git command cannot be run or exits non-zero."""

    retryable = True

    def __init__(
        self, message: str, *, command: Sequence[str] = (), stderr: str = ""
    ) -> None:
        super().__init__(message)
        self.command = tuple(command)
        self.stderr = stderr


class GenerationServiceError(OllamaCommitError):
    """Raised when the model service fails or returns an unusable response."""

    def __init__(self, message: str, *, retryable: Optional[bool] = None) -> None:
        if retryable is None:
            retryable = _retryable_from_message(message)
        super().__init__(message, retryable=retryable)


class InteractionError(OllamaCommitError):
    """Raised when the interactive prompt cannot be completed."""


def _retryable_from_message(message: str) -> bool:
    lowered = message.lower()
    if any(hint in lowered for hint in TERMINAL_SERVICE_HINTS):
        return False
    return any(hint in lowered for hint in RETRYABLE_SERVICE_HINTS)
