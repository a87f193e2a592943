"""
SmartNotes Backend — Abstract Summarization Service Interface
===============================================================

What:  Abstract base class for text-to-summary providers.
How:   Concrete implementations inherit from Summarizer and implement
       summarize() and health_check().
Who:   Called by NoteLifecycleManager and the standalone /api/summarize route.

Implementations:
    - GeminiSummarizer: Google Gemini (default)
    - Test doubles in tests/conftest.py
"""

from abc import ABC, abstractmethod


class Summarizer(ABC):
    """
    Abstract interface for AI-powered text summarization.

    Contract:
        - summarize() accepts raw text and returns a non-empty summary
        - Implementations handle their own retry logic and error translation
        - Every provider-specific failure surfaces as SummarizationFailedError
          (or a subclass such as CircuitBreakerOpenError)
    """

    @abstractmethod
    async def summarize(self, text: str) -> str:
        """
        Produce a concise summary of `text`.

        Args:
            text: The note content snapshot. Must contain non-whitespace text.

        Returns:
            The summary, stripped of surrounding whitespace. Never empty.

        Raises:
            SummarizationFailedError: Empty input, network error, upstream
                error, or a response without usable text.
            CircuitBreakerOpenError: Too many consecutive failures recently.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the provider is reachable and operational.

        Returns: True if reachable, False otherwise. Never raises.
        """
        ...
