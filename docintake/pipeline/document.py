"""Single-document pipeline: read, match, extract"""

import dataclasses
import threading
import time
from pathlib import Path
from typing import List, Optional, Sequence

from docintake.config import IntakeConfig
from docintake.errors import (
    DocIntakeError, UnsupportedFormatError, FileAccessError, CorruptDocumentError,
    NoTemplateMatchError, BatchCancelledError, FieldExtractionError, ErrorHandler
)
from docintake.extraction.engine import FieldExtractionEngine
from docintake.logging_setup import get_logger
from docintake.models import (
    Template, ExtractedDocument, MatchResult, DocumentProcessingResult, FieldExtractionResult,
    ProcessingStatus, ResultError
)
from docintake.processing.ocr import OCREngine
from docintake.processing.registry import StrategyRegistry, create_default_registry
from docintake.templates.matcher import TemplateMatcher


class CancellationToken:
    """Cooperative cancellation signal shared by the documents of a batch"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


def result_error_from(error: Exception) -> ResultError:
    """Turn an exception into a structured result error"""
    if isinstance(error, DocIntakeError):
        return ResultError(code=error.error_code, message=error.message, suggestion=error.recovery_suggestion)
    return ResultError(
        code="INTERNAL_ERROR",
        message=f"Unexpected error: {error}",
        suggestion="Check the error log for details.",
    )


class DocumentPipeline:
    """Runs one document through the reader registry, the matcher and the extraction engine"""

    def __init__(self, registry: StrategyRegistry, matcher: TemplateMatcher,
                 extractor: FieldExtractionEngine, config: Optional[IntakeConfig] = None):
        self.registry = registry
        self.matcher = matcher
        self.extractor = extractor
        self.config = config or IntakeConfig.create_default()
        self.logger = get_logger(f"{__name__}.DocumentPipeline")
        self.error_handler = ErrorHandler(self.logger)

    @classmethod
    def from_config(cls, config: IntakeConfig, ocr: Optional[OCREngine] = None) -> 'DocumentPipeline':
        """Wire the default registry, matcher and extractor from configuration"""
        return cls(
            registry=create_default_registry(config, ocr),
            matcher=TemplateMatcher(config.matching),
            extractor=FieldExtractionEngine(config.extraction),
            config=config,
        )

    def read(self, file_path: str) -> ExtractedDocument:
        """
        Select a strategy, validate the file and extract its content

        Raises:
            UnsupportedFormatError: If no strategy claims the file
            FileAccessError: If the file is missing or unreadable
            CorruptDocumentError: If validation or decoding detects corruption
        """
        strategy = self.registry.get_strategy(file_path)
        if strategy is None:
            raise UnsupportedFormatError(file_path)

        validation = strategy.validate(file_path, self.config.processing.max_file_size)
        if not validation.is_valid:
            if not Path(file_path).is_file():
                raise FileAccessError(file_path, reason="; ".join(validation.errors))
            raise CorruptDocumentError(file_path, reason="; ".join(validation.errors))

        self.logger.debug(f"Reading {file_path} with strategy '{strategy.name}'")
        document = strategy.process(file_path)
        if validation.warnings:
            document = dataclasses.replace(document, warnings=validation.warnings + document.warnings)
        return document

    def process(self, file_path: str, templates: Sequence[Template],
                cancellation: Optional[CancellationToken] = None,
                document_id: Optional[str] = None,
                template_id: Optional[str] = None) -> DocumentProcessingResult:
        """
        Process one document end to end

        Errors never escape: they are recorded on the returned result.

        Args:
            file_path: Path to the document
            templates: Template snapshot to match against
            cancellation: Checked between reading and matching and between
                matching and extraction
            document_id: Identity reported in the result; defaults to the path
            template_id: Assign this template instead of the automatic choice

        Returns:
            DocumentProcessingResult for the document
        """
        start_time = time.perf_counter()
        document_id = document_id or str(file_path)

        def finish(status: ProcessingStatus, **kwargs) -> DocumentProcessingResult:
            return DocumentProcessingResult(
                document_id=document_id,
                path=str(file_path),
                status=status,
                elapsed=time.perf_counter() - start_time,
                **kwargs
            )

        def cancelled(**kwargs) -> DocumentProcessingResult:
            error = BatchCancelledError(f"Processing of {document_id} was cancelled")
            self.logger.info(f"Cancelled {document_id}")
            return finish(ProcessingStatus.FAILED, errors=(result_error_from(error),), **kwargs)

        try:
            document = self.read(file_path)
        except Exception as e:
            self.error_handler.handle_error(e, f"Reading {document_id}")
            return finish(ProcessingStatus.FAILED, errors=(result_error_from(e),))

        if cancellation is not None and cancellation.is_cancelled:
            return cancelled(extracted_document=document, warnings=document.warnings)

        warnings: List[str] = list(document.warnings)
        try:
            match_result = self._match(document, templates, template_id)
        except Exception as e:
            self.error_handler.handle_error(e, f"Matching {document_id}")
            return finish(ProcessingStatus.FAILED, extracted_document=document,
                          errors=(result_error_from(e),), warnings=tuple(warnings))

        if match_result.selected_template is None:
            error = NoTemplateMatchError(document_id, match_result.decision_reason.value)
            self.logger.info(error.message)
            return finish(ProcessingStatus.FAILED, extracted_document=document, match_result=match_result,
                          errors=(result_error_from(error),), warnings=tuple(warnings))

        if match_result.requires_confirmation:
            warnings.append(
                f"Template '{match_result.selected_template.template_id}' requires confirmation "
                f"({match_result.decision_reason.value})"
            )

        if cancellation is not None and cancellation.is_cancelled:
            return cancelled(extracted_document=document, match_result=match_result, warnings=tuple(warnings))

        try:
            field_results = self.extractor.extract_fields(document, match_result.selected_template)
        except Exception as e:
            self.error_handler.handle_error(e, f"Extracting fields from {document_id}")
            return finish(ProcessingStatus.FAILED, extracted_document=document, match_result=match_result,
                          errors=(result_error_from(e),), warnings=tuple(warnings))

        status = self.extractor.compute_status(field_results)
        confidence = self.extractor.aggregate_confidence(field_results)
        errors = tuple(self._field_error(r) for r in field_results if not r.succeeded)

        result = finish(
            status,
            extracted_document=document,
            match_result=match_result,
            field_results=tuple(field_results),
            confidence=confidence,
            errors=errors,
            warnings=tuple(warnings),
        )
        self.logger.info(
            f"Processed {document_id}: {status.value} with template "
            f"'{match_result.selected_template.template_id}' (confidence {confidence:.2f}, {result.elapsed:.3f}s)"
        )
        return result

    def _match(self, document: ExtractedDocument, templates: Sequence[Template],
               template_id: Optional[str]) -> MatchResult:
        extension = Path(document.path).suffix.lower() or None
        if template_id:
            try:
                return self.matcher.match_with_override(document.text, templates, template_id, extension)
            except ValueError as e:
                raise NoTemplateMatchError(document.path, str(e))
        return self.matcher.match(document.text, templates, extension)

    @staticmethod
    def _field_error(result: FieldExtractionResult) -> ResultError:
        error = FieldExtractionError(result.field_name, [kind.value for kind in result.attempts])
        return ResultError(
            code=result.error or error.error_code,
            message=error.message,
            suggestion=error.recovery_suggestion,
            field_name=result.field_name,
        )
