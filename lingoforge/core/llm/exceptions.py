"""
LLM-specific exceptions.

This module defines all custom exceptions used in the LLM provider system.
"""


class LLMProviderError(Exception):
    """
    Raised when a provider cannot produce a response after all retries.

    Attributes:
        status_code: HTTP status of the last failed request, if any
    """

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class ContextOverflowError(LLMProviderError):
    """
    Raised when the prompt exceeds the model's context window.

    Not retried: sending the same batch again cannot succeed.
    """
    pass
