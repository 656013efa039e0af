"""Custom exceptions for careahead.

Provides domain-specific error types for better error handling and debugging.
Insufficient data is never an exception: the statistics functions return None.
"""


class CareAheadError(Exception):
    """Base exception for all careahead errors."""

    pass


class ConfigurationError(CareAheadError):
    """Raised when configuration is invalid or missing."""

    pass


class PromptError(CareAheadError):
    """Raised when a required prompt file is missing or invalid."""

    def __init__(self, message: str, prompt_name: str | None = None):
        super().__init__(message)
        self.prompt_name = prompt_name


class HistoryLoadError(CareAheadError):
    """Raised when the sample history file cannot be read."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class GenerationError(CareAheadError):
    """Raised when the language model call fails or returns nothing usable.

    The message is shown to the user as-is, so keep it short and readable.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.cause = cause
