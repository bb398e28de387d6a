"""
Unit tests for error classification and user-facing messages
"""
import asyncio

import pytest

from homework_marker.core import (
    CollaboratorError,
    ErrorCategory,
    InputValidationError,
    MarkingError,
    PreprocessingError,
    classify_error,
    format_error_message,
)
from homework_marker.core.errors import CATEGORY_MESSAGES, SUPPORT_SUFFIX


class TestClassifyError:
    """Test cases for classify_error"""

    @pytest.mark.parametrize("message, category", [
        ("429 Too Many Requests", ErrorCategory.QUOTA),
        ("Rate limit reached for model", ErrorCategory.QUOTA),
        ("RESOURCE_EXHAUSTED: quota exceeded", ErrorCategory.QUOTA),
        ("Request timed out", ErrorCategory.TIMEOUT),
        ("401 Unauthorized", ErrorCategory.AUTH),
        ("Invalid API key provided", ErrorCategory.AUTH),
        ("ECONNREFUSED 127.0.0.1:11434", ErrorCategory.NETWORK),
        ("getaddrinfo ENOTFOUND api.groq.com", ErrorCategory.NETWORK),
        ("unexpected token in JSON", ErrorCategory.GENERIC),
    ])
    def test_message_patterns(self, message, category):
        assert classify_error(RuntimeError(message)) == category

    def test_timeout_type(self):
        assert classify_error(asyncio.TimeoutError()) == ErrorCategory.TIMEOUT

    def test_connection_type(self):
        assert classify_error(ConnectionResetError()) == ErrorCategory.NETWORK

    def test_collaborator_category_is_reused(self):
        error = CollaboratorError("Text extraction", RuntimeError("403 Forbidden"))
        assert error.category == ErrorCategory.AUTH
        assert classify_error(error) == ErrorCategory.AUTH


class TestFormatErrorMessage:
    """Test cases for format_error_message"""

    def test_production_hides_detail(self):
        error = CollaboratorError("Scoring", RuntimeError("429 quota exceeded for key sk-123"))
        message = format_error_message(error, debug=False)

        assert message.startswith(CATEGORY_MESSAGES[ErrorCategory.QUOTA])
        assert message.endswith(SUPPORT_SUFFIX)
        assert "sk-123" not in message

    def test_debug_shows_detail(self):
        error = CollaboratorError("Scoring", RuntimeError("429 quota exceeded"))
        message = format_error_message(error, debug=True)

        assert "RuntimeError: 429 quota exceeded" in message
        assert SUPPORT_SUFFIX not in message

    def test_pipeline_errors_are_descriptive(self):
        assert format_error_message(InputValidationError("No files were uploaded")) == "No files were uploaded"
        assert "page 3" in format_error_message(PreprocessingError(2, "bad pixels"))

    def test_marking_error_uses_cause_category(self):
        error = MarkingError("Marking failed", cause=asyncio.TimeoutError())
        assert format_error_message(error).startswith(CATEGORY_MESSAGES[ErrorCategory.TIMEOUT])

    def test_unexpected_error(self):
        message = format_error_message(KeyError("resultsByQuestion"), debug=False)
        assert message.startswith(CATEGORY_MESSAGES[ErrorCategory.GENERIC])
        assert "resultsByQuestion" not in message
