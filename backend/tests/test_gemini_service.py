"""
SmartNotes Backend — Gemini Summarizer Unit Tests (Mocked)
============================================================

What:  Tests for GeminiSummarizer with a mocked Google Generative AI SDK.
How:   Patches the genai module and swaps in a mock model.

What we test:
    ✅ Successful summary returns stripped text
    ✅ Empty input never reaches the API
    ✅ Non-transient API errors become SummarizationFailedError
    ✅ Blocked / empty responses become SummarizationFailedError
    ✅ Circuit breaker opens after consecutive failures
    ❌ Real API calls (use integration tests for that)
"""

import time
from unittest.mock import AsyncMock, MagicMock, PropertyMock, patch

import pytest
from google.api_core import exceptions as google_exceptions

from smartnotes.exceptions import CircuitBreakerOpenError, SummarizationFailedError
from smartnotes.config import settings
from smartnotes.services.gemini_service import RETRY_WAIT, CircuitBreaker, GeminiSummarizer


class TestCircuitBreaker:
    """Tests for the CircuitBreaker resilience pattern."""

    def test_initial_state_is_closed(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        assert cb.state == "closed"
        assert cb.failure_count == 0

    def test_stays_closed_under_threshold(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        for _ in range(4):
            cb.record_failure()
        assert cb.state == "closed"
        assert cb.can_execute() is True

    def test_opens_at_threshold(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        for _ in range(3):
            cb.record_failure()
        assert cb.state == "open"

    def test_open_circuit_rejects_calls(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        cb.record_failure()

        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            cb.can_execute()
        assert 0 < exc_info.value.recovery_time <= 60

    def test_success_resets_failure_count(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        cb.record_failure()
        cb.record_failure()
        assert cb.failure_count == 2

        cb.record_success()
        assert cb.failure_count == 0
        assert cb.state == "closed"

    def test_half_open_after_recovery_timeout(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        time.sleep(0.01)

        assert cb.can_execute() is True
        assert cb.state == "half_open"

    def test_failure_in_half_open_reopens(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=0)
        for _ in range(3):
            cb.record_failure()
        time.sleep(0.01)
        cb.can_execute()

        cb.record_failure()
        assert cb.state == "open"


def _response(text):
    response = MagicMock()
    response.text = text
    return response


@pytest.fixture
def mock_model():
    model = MagicMock()
    model.generate_content_async = AsyncMock(return_value=_response("  A fox runs.  "))
    return model


@pytest.fixture
def service(mock_model):
    with patch("smartnotes.services.gemini_service.genai") as mock_genai:
        mock_genai.GenerativeModel.return_value = mock_model
        yield GeminiSummarizer()


class TestGeminiSummarizerMocked:
    """Tests for GeminiSummarizer with a mocked Gemini API."""

    @pytest.mark.asyncio
    async def test_summarize_success(self, service, mock_model):
        result = await service.summarize("The quick brown fox...")

        assert result == "A fox runs."
        prompt = mock_model.generate_content_async.await_args.args[0]
        assert prompt.startswith(GeminiSummarizer.SUMMARY_PROMPT)
        assert prompt.endswith("The quick brown fox...")
        assert service.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   "])
    async def test_empty_input_skips_api(self, service, mock_model, text):
        with pytest.raises(SummarizationFailedError):
            await service.summarize(text)
        mock_model.generate_content_async.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_api_error_is_wrapped(self, service, mock_model):
        mock_model.generate_content_async.side_effect = google_exceptions.InvalidArgument(
            "API key not valid"
        )

        with pytest.raises(SummarizationFailedError) as exc_info:
            await service.summarize("some text")

        assert "API key not valid" in exc_info.value.upstream_message
        assert "API key not valid" not in exc_info.value.message
        # Not a transient error: exactly one attempt.
        assert mock_model.generate_content_async.await_count == 1
        assert service.circuit_breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_blocked_response(self, service, mock_model):
        response = MagicMock()
        type(response).text = PropertyMock(side_effect=ValueError("response was blocked"))
        mock_model.generate_content_async.return_value = response

        with pytest.raises(SummarizationFailedError) as exc_info:
            await service.summarize("some text")
        assert exc_info.value.upstream_message == "response was blocked"
        assert service.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_empty_response(self, service, mock_model):
        mock_model.generate_content_async.return_value = _response("   ")

        with pytest.raises(SummarizationFailedError):
            await service.summarize("some text")

    @pytest.mark.asyncio
    async def test_circuit_breaker_open(self, service, mock_model):
        for _ in range(service.circuit_breaker.failure_threshold):
            service.circuit_breaker.record_failure()

        with pytest.raises(CircuitBreakerOpenError):
            await service.summarize("some text")
        mock_model.generate_content_async.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_circuit_breaker_open_is_a_summarization_failure(self, service):
        for _ in range(service.circuit_breaker.failure_threshold):
            service.circuit_breaker.record_failure()

        with pytest.raises(SummarizationFailedError):
            await service.summarize("some text")

    @pytest.mark.asyncio
    async def test_health_check_returns_bool(self, service):
        with patch("smartnotes.services.gemini_service.genai") as mock_genai:
            mock_genai.list_models.return_value = [MagicMock()]
            assert await service.health_check() is True

    @pytest.mark.asyncio
    async def test_health_check_failure(self, service):
        with patch("smartnotes.services.gemini_service.genai") as mock_genai:
            mock_genai.list_models.side_effect = RuntimeError("unreachable")
            assert await service.health_check() is False


class TestRetryWait:

    @pytest.mark.parametrize("attempt,floor", [
        (1, settings.retry_min_wait),
        (2, min(settings.retry_min_wait * 2, settings.retry_max_wait)),
        (10, settings.retry_max_wait),
    ])
    def test_wait_grows_then_caps(self, attempt, floor):
        for _ in range(20):
            wait = RETRY_WAIT(MagicMock(attempt_number=attempt))
            assert floor <= wait <= floor + 1
