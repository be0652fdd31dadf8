"""Unit tests for error handling system"""

import pytest
import logging
from unittest.mock import Mock, patch
from docintake.errors import (
    DocIntakeError, ConfigurationError, UnsupportedFormatError, FileAccessError,
    CorruptDocumentError, OCRError, NoTemplateMatchError, FieldExtractionError,
    BatchCancelledError, TemplateSourceError, retry_on_failure, handle_document_errors,
    ErrorHandler, remediation_for, REMEDIATION_GUIDANCE
)


class TestDocIntakeError:
    """Test base DocIntakeError functionality"""

    def test_basic_error(self):
        """Test basic error creation"""
        error = DocIntakeError("Test error message")
        assert str(error) == "Test error message"
        assert error.message == "Test error message"
        assert error.recovery_suggestion is None
        assert error.original_error is None
        assert error.error_code == "INTERNAL_ERROR"

    def test_error_with_suggestion(self):
        """Test error with recovery suggestion"""
        error = DocIntakeError("Test error", "Try this fix")
        assert str(error) == "Test error\n💡 Suggestion: Try this fix"


class TestSpecificErrors:
    """Test specific error types and their codes"""

    def test_error_codes(self):
        """Test every error type carries its stable code"""
        assert UnsupportedFormatError("a.xyz").error_code == "UNSUPPORTED_FORMAT"
        assert FileAccessError("a.pdf").error_code == "FILE_ACCESS_ERROR"
        assert CorruptDocumentError("a.pdf").error_code == "CORRUPT_DOCUMENT"
        assert OCRError("a.pdf").error_code == "OCR_FAILED"
        assert NoTemplateMatchError("doc", "BelowThreshold").error_code == "NO_TEMPLATE_MATCH"
        assert FieldExtractionError("f").error_code == "NO_EXTRACTION_METHOD_SUCCEEDED"
        assert BatchCancelledError("stop").error_code == "BATCH_CANCELLED"
        assert TemplateSourceError("/x").error_code == "TEMPLATE_SOURCE_ERROR"
        assert ConfigurationError("bad").error_code == "CONFIGURATION_ERROR"

    def test_unsupported_format_mentions_extension(self):
        error = UnsupportedFormatError("/docs/report.xyz")
        assert ".xyz" in error.message
        assert error.file_path == "/docs/report.xyz"

    def test_corrupt_document_error(self):
        error = CorruptDocumentError("/path/to/file.pdf", reason="bad xref")
        assert "corrupted or unreadable" in str(error)
        assert "bad xref" in str(error)
        assert "password-protected" in str(error)

    def test_field_extraction_error_lists_attempts(self):
        error = FieldExtractionError("incident_id", ["regex", "zone"])
        assert "incident_id" in error.message
        assert "regex, zone" in error.message
        assert error.attempted == ["regex", "zone"]

    def test_batch_cancelled_carries_result(self):
        partial = object()
        error = BatchCancelledError("stopped", partial)
        assert error.batch_result is partial


class TestRetryDecorator:
    """Test retry_on_failure decorator"""

    @patch("docintake.errors.time.sleep")
    def test_retries_then_succeeds(self, mock_sleep):
        """Test function is retried on listed exceptions"""
        mock_func = Mock(side_effect=[OCRError("a.pdf"), "ok"])
        mock_func.__name__ = "mock_func"

        decorated = retry_on_failure(max_retries=2, delay=0.5)(mock_func)

        assert decorated() == "ok"
        assert mock_func.call_count == 2
        mock_sleep.assert_called_once_with(0.5)

    @patch("docintake.errors.time.sleep")
    def test_gives_up_after_max_retries(self, mock_sleep):
        """Test last exception is raised once retries are exhausted"""
        mock_func = Mock(side_effect=OCRError("a.pdf"))
        mock_func.__name__ = "mock_func"

        decorated = retry_on_failure(max_retries=2, delay=1.0, backoff_factor=2.0)(mock_func)

        with pytest.raises(OCRError):
            decorated()
        assert mock_func.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    def test_other_exceptions_not_retried(self):
        """Test exceptions outside the list propagate immediately"""
        mock_func = Mock(side_effect=FileAccessError("a.pdf"))
        mock_func.__name__ = "mock_func"

        decorated = retry_on_failure(max_retries=3)(mock_func)

        with pytest.raises(FileAccessError):
            decorated()
        assert mock_func.call_count == 1


class TestHandleDocumentErrors:
    """Test translation of low-level exceptions"""

    class Reader:
        @handle_document_errors
        def process(self, file_path, error=None):
            if error:
                raise error
            return "done"

    def test_passthrough(self):
        assert self.Reader().process("a.pdf") == "done"

    def test_file_not_found(self):
        with pytest.raises(FileAccessError) as exc_info:
            self.Reader().process("a.pdf", FileNotFoundError("gone"))
        assert exc_info.value.file_path == "a.pdf"
        assert isinstance(exc_info.value.original_error, FileNotFoundError)

    def test_permission_denied(self):
        with pytest.raises(FileAccessError):
            self.Reader().process("a.pdf", PermissionError("denied"))

    def test_decoder_exception_becomes_corrupt(self):
        with pytest.raises(CorruptDocumentError) as exc_info:
            self.Reader().process("a.pdf", ValueError("Unexpected EOF"))
        assert "Unexpected EOF" in exc_info.value.message

    def test_access_message_becomes_file_access(self):
        with pytest.raises(FileAccessError):
            self.Reader().process("a.pdf", RuntimeError("Permission denied by policy"))

    def test_docintake_errors_pass_through(self):
        original = OCRError("a.pdf")
        with pytest.raises(OCRError) as exc_info:
            self.Reader().process("a.pdf", original)
        assert exc_info.value is original


class TestErrorHandler:
    """Test ErrorHandler logging"""

    def test_handle_docintake_error(self):
        logger = Mock(spec=logging.Logger)
        handler = ErrorHandler(logger)

        handler.handle_error(FileAccessError("a.pdf", ValueError("x")), "Reading")

        logged = logger.error.call_args[0][0]
        assert "FILE_ACCESS_ERROR" in logged
        assert logged.startswith("Reading")
        logger.info.assert_called_once()
        logger.debug.assert_called_once()

    def test_handle_unexpected_error(self):
        logger = Mock(spec=logging.Logger)
        ErrorHandler(logger).handle_error(ValueError("boom"), "Batch")
        assert "Unexpected error: boom" in logger.error.call_args[0][0]


class TestRemediation:
    """Test remediation guidance catalogue"""

    def test_known_codes(self):
        guidance = remediation_for("NO_TEMPLATE_MATCH")
        assert any("threshold" in g for g in guidance)
        assert any("keywords" in g for g in guidance)

        guidance = remediation_for("NO_EXTRACTION_METHOD_SUCCEEDED")
        assert any("zone" in g for g in guidance)
        assert any("OCR" in g for g in guidance)

    def test_unknown_code(self):
        assert remediation_for("SOMETHING_ELSE") == []

    def test_returns_copy(self):
        remediation_for("FILE_ACCESS_ERROR").append("x")
        assert "x" not in REMEDIATION_GUIDANCE["FILE_ACCESS_ERROR"]
