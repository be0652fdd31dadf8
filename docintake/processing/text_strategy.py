"""Plain text reader"""

from pathlib import Path
from typing import Optional

from docintake.errors import handle_document_errors
from docintake.models import ExtractedDocument, DocumentValidationResult
from docintake.processing.strategies import DocumentStrategy, read_file_metadata


class TextStrategy(DocumentStrategy):
    """Reads text-like files as UTF-8, replacing undecodable bytes"""

    name = "text"
    priority = 10
    extensions = frozenset({".txt", ".csv", ".log", ".md"})

    def validate(self, file_path: str, max_file_size: Optional[int] = None) -> DocumentValidationResult:
        result = super().validate(file_path, max_file_size)
        # An empty text file is a well-formed empty document
        if "File is empty" in result.errors:
            errors = tuple(e for e in result.errors if e != "File is empty")
            return DocumentValidationResult(not errors, errors, result.warnings + ("File is empty",))
        return result

    @handle_document_errors
    def process(self, file_path: str) -> ExtractedDocument:
        raw = Path(file_path).read_bytes()
        text = raw.decode("utf-8", errors="replace")

        warnings = []
        if "\ufffd" in text:
            warnings.append("File contains bytes that are not valid UTF-8")
        if not text.strip():
            warnings.append("Document contains no extractable text")

        return ExtractedDocument(
            path=str(file_path),
            text=text,
            page_count=1,
            metadata=read_file_metadata(file_path),
            extraction_method="direct",
            warnings=tuple(warnings),
        )
