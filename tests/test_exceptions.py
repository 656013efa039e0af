"""Tests for custom exception classes."""

import pytest

from careahead.exceptions import (
    CareAheadError,
    ConfigurationError,
    GenerationError,
    HistoryLoadError,
    PromptError,
)


class TestExceptionHierarchy:
    """Tests for exception class hierarchy."""

    def test_all_exceptions_inherit_from_base(self):
        """All custom exceptions inherit from CareAheadError."""
        assert issubclass(ConfigurationError, CareAheadError)
        assert issubclass(PromptError, CareAheadError)
        assert issubclass(HistoryLoadError, CareAheadError)
        assert issubclass(GenerationError, CareAheadError)

    def test_base_inherits_from_exception(self):
        """Base class inherits from Exception."""
        assert issubclass(CareAheadError, Exception)


class TestPromptError:
    """Tests for PromptError."""

    def test_basic_message(self):
        err = PromptError("Prompt file not found")
        assert str(err) == "Prompt file not found"
        assert err.prompt_name is None

    def test_with_prompt_name(self):
        err = PromptError("Prompt file not found", prompt_name="insight")
        assert err.prompt_name == "insight"


class TestHistoryLoadError:
    """Tests for HistoryLoadError."""

    def test_with_path(self):
        """Error stores the offending path."""
        with pytest.raises(HistoryLoadError) as exc_info:
            raise HistoryLoadError("History file not found", path="/tmp/vitals.csv")
        assert exc_info.value.path == "/tmp/vitals.csv"


class TestGenerationError:
    """Tests for GenerationError."""

    def test_basic_message(self):
        err = GenerationError("The language model returned an empty response")
        assert str(err) == "The language model returned an empty response"
        assert err.status_code is None
        assert err.cause is None

    def test_with_status_and_cause(self):
        """Error keeps the HTTP status and the underlying exception."""
        cause = RuntimeError("boom")
        err = GenerationError("Language model HTTP 503: busy", status_code=503, cause=cause)
        assert err.status_code == 503
        assert err.cause is cause

    def test_caught_as_base(self):
        with pytest.raises(CareAheadError):
            raise GenerationError("failed")
