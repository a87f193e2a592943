"""
SmartNotes Backend — Google Gemini Summarizer
===============================================

What:  Concrete Summarizer using the Google Gemini text API.
How:   Sends the note content with a short summarization prompt, with retry
       logic for transient errors, a circuit breaker, and latency logging.
Who:   Instantiated once at import; called by NoteLifecycleManager.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter for transient failures
       (connection errors, timeouts, 429/500/503 from the API)
    2. Circuit breaker to fail fast while Gemini is down
    3. Per-request timeout passed to the SDK
    4. Every failure leaves as SummarizationFailedError with the upstream
       message attached for diagnostics
"""

import logging
import time
import uuid
from typing import Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    wait_random,
    retry_if_exception_type,
    before_sleep_log,
)

from smartnotes.config import settings
from smartnotes.exceptions import CircuitBreakerOpenError, SummarizationFailedError
from smartnotes.services.summarizer_base import Summarizer

logger = logging.getLogger(__name__)

# Errors worth another attempt; everything else fails on the first try.
TRANSIENT_ERRORS = (
    ConnectionError,
    TimeoutError,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
    google_exceptions.ServiceUnavailable,
    google_exceptions.TooManyRequests,
)

# wait = min(max_wait, min_wait * 2^(attempt - 1)) + random(0, 1)
RETRY_WAIT = wait_exponential(
    multiplier=settings.retry_min_wait,
    max=settings.retry_max_wait,
) + wait_random(0, 1)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Implements the circuit breaker pattern to prevent cascade failures.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → Allow ONE request through
            → On success: transition to CLOSED (reset failure_count)
            → On failure: transition back to OPEN (reset timer)

    Not thread-safe; shared by coroutines of a single event loop.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Check if a request is allowed through the circuit breaker.

        Raises:
            CircuitBreakerOpenError if circuit is OPEN and recovery timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        """Record a failed API call. May trigger CLOSED → OPEN transition."""
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Gemini Summarizer
# ══════════════════════════════════════════════════════════════════════════

class GeminiSummarizer(Summarizer):
    """
    Google Gemini implementation of the Summarizer interface.

    Error Handling Chain:
        API call fails with a transient error → tenacity retries
        → All retries fail → record circuit breaker failure
        → SummarizationFailedError(upstream_message=<SDK error text>)
        → Threshold reached → later calls raise CircuitBreakerOpenError at once
    """

    SUMMARY_PROMPT = "Please summarize the following text concisely:\n\n"

    def __init__(self):
        if settings.gemini_api_key and settings.gemini_api_key != "your_gemini_api_key_here":
            genai.configure(api_key=settings.gemini_api_key)

        self.model = genai.GenerativeModel(settings.gemini_model)
        self.generation_config = {
            "temperature": settings.summary_temperature,
            "max_output_tokens": settings.summary_max_output_tokens,
        }

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "GeminiSummarizer initialized with model=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            settings.gemini_model,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    async def summarize(self, text: str) -> str:
        """
        Summarize `text` with Gemini.

        Flow:
            1. Reject empty input (no API call)
            2. Check circuit breaker → may raise CircuitBreakerOpenError
            3. Call Gemini with retry logic
            4. Record success/failure in circuit breaker
            5. Return the summary

        Raises:
            SummarizationFailedError: Empty input, upstream failure after
                retries, or a response without text.
            CircuitBreakerOpenError: Circuit is open.
        """
        if not text or not text.strip():
            raise SummarizationFailedError(
                message="No content provided to summarize.",
                upstream_message="empty input",
            )

        request_id = str(uuid.uuid4())[:8]

        self.circuit_breaker.can_execute()

        logger.info("[%s] Starting Gemini summary for %d chars", request_id, len(text))

        try:
            summary = await self._call_gemini_with_retry(text, request_id)
        except SummarizationFailedError:
            # Response-level problem (blocked / empty); the service itself answered.
            raise
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] Gemini summarization failed: %s",
                request_id,
                str(e),
                exc_info=not isinstance(e, TRANSIENT_ERRORS),
            )
            raise SummarizationFailedError(
                upstream_message=str(e) or type(e).__name__,
                context={"request_id": request_id, "error_type": type(e).__name__},
            ) from e

        self.circuit_breaker.record_success()
        return summary

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=RETRY_WAIT,
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _call_gemini_with_retry(self, text: str, request_id: str) -> str:
        """
        Internal method: the actual Gemini call, decorated with tenacity.

        Kept apart from summarize() so the circuit breaker check is not retried.
        """
        start_time = time.time()

        try:
            response = await self.model.generate_content_async(
                self.SUMMARY_PROMPT + text,
                generation_config=self.generation_config,
                request_options={"timeout": settings.summary_timeout},
            )
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                "[%s] Gemini API call failed after %.0fms: %s",
                request_id,
                duration_ms,
                str(e),
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        try:
            summary = (response.text or "").strip()
        except ValueError as e:
            # .text raises ValueError when the candidate has no text parts (e.g. blocked)
            raise SummarizationFailedError(
                message="The summarization service returned no usable text.",
                upstream_message=str(e),
                context={"request_id": request_id},
            ) from e

        if not summary:
            raise SummarizationFailedError(
                message="The summarization service returned an empty summary.",
                upstream_message="empty response text",
                context={"request_id": request_id},
            )

        logger.info(
            "[%s] Gemini summary completed in %.0fms, %d chars",
            request_id,
            duration_ms,
            len(summary),
        )
        return summary

    async def health_check(self) -> bool:
        """
        Check if Gemini API is reachable.

        How:     Lists available models (no token cost).
        Returns: True if reachable and authenticated, False otherwise.
        """
        try:
            models = genai.list_models()
            model_names = [m.name for m in models]
            target = f"models/{settings.gemini_model}"
            if target not in model_names:
                logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False


# ── Singleton Instance ────────────────────────────────────────────────────
# One instance per process so every request shares the circuit breaker state.
gemini_summarizer = GeminiSummarizer()
