"""Error taxonomy and error handling helpers for docintake"""

import logging
import time
import functools
from typing import Optional, Callable, Any, Dict, List
from pathlib import Path


class DocIntakeError(Exception):
    """Base exception for docintake errors"""

    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, recovery_suggestion: Optional[str] = None,
                 original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.recovery_suggestion = recovery_suggestion
        self.original_error = original_error

    def __str__(self) -> str:
        result = self.message
        if self.recovery_suggestion:
            result += f"\n💡 Suggestion: {self.recovery_suggestion}"
        return result


class ConfigurationError(DocIntakeError):
    """Configuration-related errors"""
    error_code = "CONFIGURATION_ERROR"


class TemplateSourceError(DocIntakeError):
    """The template source could not be read; aborts a batch before it starts"""
    error_code = "TEMPLATE_SOURCE_ERROR"

    def __init__(self, source: str, original_error: Optional[Exception] = None,
                 message: Optional[str] = None):
        super().__init__(
            message or f"Cannot load templates from: {source}",
            "Check that the templates directory exists and contains valid JSON template files.",
            original_error
        )
        self.source = source


class ProcessingError(DocIntakeError):
    """Document reading errors; fatal for the affected document only"""
    error_code = "PROCESSING_ERROR"

    def __init__(self, message: str, recovery_suggestion: Optional[str] = None,
                 original_error: Optional[Exception] = None, file_path: Optional[str] = None):
        super().__init__(message, recovery_suggestion, original_error)
        self.file_path = file_path


class UnsupportedFormatError(ProcessingError):
    """No registered reader strategy claims the file"""
    error_code = "UNSUPPORTED_FORMAT"

    def __init__(self, file_path: str):
        extension = Path(file_path).suffix or "(none)"
        super().__init__(
            f"Unsupported document format '{extension}': {file_path}",
            "Convert the document to PDF, Word, Excel or plain text, or register a reader for this format.",
            file_path=file_path
        )


class FileAccessError(ProcessingError):
    """File missing, locked or not readable at read time"""
    error_code = "FILE_ACCESS_ERROR"

    def __init__(self, file_path: str, original_error: Optional[Exception] = None,
                 reason: Optional[str] = None):
        message = f"Cannot access file: {file_path}"
        if reason:
            message += f" ({reason})"
        super().__init__(
            message,
            "Check file permissions and ensure the file exists and is not locked by another program.",
            original_error,
            file_path
        )


class CorruptDocumentError(ProcessingError):
    """Reader detected structurally invalid content"""
    error_code = "CORRUPT_DOCUMENT"

    def __init__(self, file_path: str, original_error: Optional[Exception] = None,
                 reason: Optional[str] = None):
        message = f"Document is corrupted or unreadable: {file_path}"
        if reason:
            message += f" ({reason})"
        super().__init__(
            message,
            "Try opening the document in its native application to verify it's not corrupted. "
            "If the file is password-protected, remove the password first.",
            original_error,
            file_path
        )


class OCRError(ProcessingError):
    """OCR processing errors"""
    error_code = "OCR_FAILED"

    def __init__(self, file_path: str, original_error: Optional[Exception] = None):
        super().__init__(
            f"OCR processing failed for: {file_path}",
            "Ensure Tesseract and Poppler are installed and the OCR language pack is available.",
            original_error,
            file_path
        )


class NoTemplateMatchError(DocIntakeError):
    """No template scored above its confidence floor for the document"""
    error_code = "NO_TEMPLATE_MATCH"

    def __init__(self, document_id: str, reason: str):
        super().__init__(
            f"No template matched document {document_id}: {reason}",
            "Lower the template confidence threshold, add keywords that appear in the document, "
            "or assign a template manually."
        )
        self.document_id = document_id
        self.reason = reason


class FieldExtractionError(DocIntakeError):
    """All extraction methods for a field were exhausted"""
    error_code = "NO_EXTRACTION_METHOD_SUCCEEDED"

    def __init__(self, field_name: str, attempted: Optional[List[str]] = None):
        attempted = attempted or []
        super().__init__(
            f"No extraction method succeeded for field '{field_name}'"
            + (f" (tried: {', '.join(attempted)})" if attempted else ""),
            "Adjust the field's regex pattern or zone, or add keywords for proximity extraction."
        )
        self.field_name = field_name
        self.attempted = attempted


class BatchCancelledError(DocIntakeError):
    """Batch stopped early; the partial result is attached"""
    error_code = "BATCH_CANCELLED"

    def __init__(self, message: str, batch_result: Any = None):
        super().__init__(
            message,
            "Fix the failing document and rerun, or run the batch with continue-on-error enabled."
        )
        self.batch_result = batch_result


def retry_on_failure(
    max_retries: int = 3,
    delay: float = 1.0,
    backoff_factor: float = 2.0,
    exceptions: tuple = (OCRError,),
    logger: Optional[logging.Logger] = None
):
    """
    Decorator to retry function calls on specific exceptions

    Args:
        max_retries: Maximum number of retry attempts
        delay: Initial delay between retries in seconds
        backoff_factor: Factor to multiply delay by after each retry
        exceptions: Tuple of exception types to retry on
        logger: Logger instance for retry messages
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            current_delay = delay
            last_exception = None

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt == max_retries:
                        break

                    if logger:
                        logger.warning(
                            f"Attempt {attempt + 1}/{max_retries + 1} failed for {func.__name__}: {e}. "
                            f"Retrying in {current_delay:.1f}s..."
                        )

                    time.sleep(current_delay)
                    current_delay *= backoff_factor

            if logger:
                logger.error(f"All {max_retries + 1} attempts failed for {func.__name__}")
            raise last_exception

        return wrapper
    return decorator


def _file_path_from_call(args: tuple, kwargs: dict) -> str:
    """Find the document path among method arguments"""
    for value in list(args[:2]) + [kwargs.get('file_path'), kwargs.get('path')]:
        if isinstance(value, (str, Path)):
            return str(value)
    return "unknown"


def handle_document_errors(func: Callable) -> Callable:
    """Decorator translating decoder and OS exceptions into the docintake taxonomy"""
    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Any:
        try:
            return func(*args, **kwargs)
        except DocIntakeError:
            raise
        except (FileNotFoundError, PermissionError, IsADirectoryError) as e:
            raise FileAccessError(_file_path_from_call(args, kwargs), e, reason=type(e).__name__)
        except OSError as e:
            raise FileAccessError(_file_path_from_call(args, kwargs), e, reason=str(e))
        except Exception as e:
            error_message = str(e).lower()
            file_path = _file_path_from_call(args, kwargs)

            if any(keyword in error_message for keyword in [
                'permission denied', 'access denied', 'file not found', 'no such file'
            ]):
                raise FileAccessError(file_path, e)
            raise CorruptDocumentError(file_path, e, reason=str(e) or type(e).__name__)

    return wrapper


class ErrorHandler:
    """Centralized error handling and logging"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def handle_error(self, error: Exception, context: str = "") -> None:
        """Handle and log errors with appropriate level and formatting"""
        if isinstance(error, DocIntakeError):
            self.logger.error(f"{context}: [{error.error_code}] {error.message}")
            if error.recovery_suggestion:
                self.logger.info(f"Recovery suggestion: {error.recovery_suggestion}")
            if error.original_error:
                self.logger.debug(f"Original error: {error.original_error!r}")
        else:
            self.logger.error(f"{context}: Unexpected error: {error}", exc_info=error)


REMEDIATION_GUIDANCE: Dict[str, List[str]] = {
    "UNSUPPORTED_FORMAT": [
        "Run 'docintake formats' to list the supported file extensions",
        "Convert the document to PDF, DOCX, XLSX or plain text"
    ],
    "FILE_ACCESS_ERROR": [
        "Ensure the file still exists at the given path",
        "Check read permissions on the file and its directory",
        "Close other programs that may hold a lock on the file"
    ],
    "CORRUPT_DOCUMENT": [
        "Open the document in its native application to verify it's readable",
        "If password-protected, remove the password first",
        "Re-download the file if it may have been corrupted during transfer"
    ],
    "OCR_FAILED": [
        "Ensure Tesseract is installed: apt-get install tesseract-ocr (Ubuntu) or brew install tesseract (macOS)",
        "Ensure Poppler is installed for PDF to image conversion",
        "Check that the configured OCR language pack is installed"
    ],
    "NO_TEMPLATE_MATCH": [
        "Lower the template's minimum confidence threshold",
        "Add keywords that actually appear in this kind of document",
        "Enable OCR if the document is a scan without a text layer",
        "Assign a template manually"
    ],
    "NO_EXTRACTION_METHOD_SUCCEEDED": [
        "Adjust the field's regex pattern",
        "Adjust the extraction zone coordinates or page number",
        "Add keywords for proximity extraction",
        "Enable OCR if the document is a scan without a text layer"
    ],
    "BATCH_CANCELLED": [
        "Rerun the batch with continue-on-error enabled to process the remaining documents"
    ],
    "TEMPLATE_SOURCE_ERROR": [
        "Check that the templates directory exists",
        "Run 'docintake templates validate' to find invalid template files"
    ],
}


def remediation_for(error_code: str) -> List[str]:
    """Get remediation guidance for an error code"""
    return list(REMEDIATION_GUIDANCE.get(error_code, []))
