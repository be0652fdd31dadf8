"""Word (.docx) reader built on python-docx"""

from pathlib import Path
from typing import List

from docx import Document as DocxDocument

from docintake.errors import handle_document_errors
from docintake.logging_setup import log_performance
from docintake.models import ExtractedDocument
from docintake.processing.strategies import DocumentStrategy, read_file_metadata, ZIP_SIGNATURE


class WordStrategy(DocumentStrategy):
    """Reads paragraphs and table cells of Word documents"""

    name = "word"
    priority = 90
    extensions = frozenset({".docx"})
    signature = ZIP_SIGNATURE

    @handle_document_errors
    def process(self, file_path: str) -> ExtractedDocument:
        warnings: List[str] = []

        with log_performance(f"Word text extraction from {Path(file_path).name}", self.logger):
            doc = DocxDocument(file_path)

            lines = [para.text for para in doc.paragraphs if para.text.strip()]
            for table in doc.tables:
                for row in table.rows:
                    cells = [cell.text.strip() for cell in row.cells]
                    if any(cells):
                        lines.append("\t".join(cells))

            core = doc.core_properties
            properties = {
                "author": core.author,
                "title": core.title,
                "subject": core.subject,
                "created": core.created.isoformat() if core.created else None,
                "modified": core.modified.isoformat() if core.modified else None,
            }

        text = "\n".join(lines)
        if not text.strip():
            warnings.append("Document contains no extractable text")
        # Word files expose no reliable encryption flag once opened
        warnings.append("Encryption status could not be determined; treating document as not encrypted")

        self.logger.debug(f"Extracted {len(text)} characters from {len(lines)} paragraphs and rows")

        return ExtractedDocument(
            path=str(file_path),
            text=text,
            page_count=1,
            metadata=read_file_metadata(file_path, {k: v for k, v in properties.items() if v}),
            encrypted=False,
            encryption_known=False,
            extraction_method="direct",
            warnings=tuple(warnings),
        )
