"""PDF reader built on pdfplumber with optional OCR fallback"""

from pathlib import Path
from typing import List, Optional, Tuple

import pdfplumber

from docintake.config import OCRConfig
from docintake.errors import handle_document_errors, OCRError
from docintake.logging_setup import log_performance
from docintake.models import ExtractedDocument, PageLayout, PositionedWord
from docintake.processing.ocr import OCREngine
from docintake.processing.strategies import DocumentStrategy, read_file_metadata, PDF_SIGNATURE


class PdfStrategy(DocumentStrategy):
    """Extracts per-page text and positioned words from PDF files"""

    name = "pdf"
    priority = 100
    extensions = frozenset({".pdf"})
    signature = PDF_SIGNATURE

    def __init__(self, ocr_config: Optional[OCRConfig] = None, ocr_engine: Optional[OCREngine] = None):
        super().__init__()
        self.ocr_config = ocr_config or OCRConfig()
        self.ocr_engine = ocr_engine

    @property
    def ocr_available(self) -> bool:
        return self.ocr_engine is not None and self.ocr_config.enabled

    @handle_document_errors
    def process(self, file_path: str) -> ExtractedDocument:
        """
        Extract text from a PDF file

        Args:
            file_path: Path to the PDF file

        Returns:
            ExtractedDocument with per-page layout for zone extraction

        Raises:
            FileAccessError: If the file cannot be opened
            CorruptDocumentError: If pdfplumber cannot parse the file
            OCRError: If the PDF has no text layer and OCR fails
        """
        warnings: List[str] = []

        with log_performance(f"Direct text extraction from {Path(file_path).name}", self.logger):
            with pdfplumber.open(file_path) as pdf:
                page_texts, layouts = self._read_pages(pdf, warnings)
                encrypted = self._detect_encryption(pdf)
                properties = {k: v for k, v in (pdf.metadata or {}).items() if isinstance(v, (str, int, float))}

        page_count = len(page_texts)
        if page_count == 0:
            warnings.append("PDF has no pages")

        encryption_known = encrypted is not None
        if not encryption_known:
            warnings.append("Encryption status could not be determined; treating document as not encrypted")

        total_chars = sum(len(text) for text in page_texts)
        scanned = total_chars == 0
        if scanned:
            warnings.append("No text layer detected")

        text_pages = page_texts
        ocr_used = False
        extraction_method = "direct"

        if self.ocr_available and self._needs_ocr(page_texts):
            try:
                ocr_pages = self.ocr_engine.extract_text(file_path)
            except OCRError as e:
                if scanned:
                    raise
                self.logger.warning(f"OCR failed, keeping direct text: {e.message}")
                warnings.append("OCR failed; using direct text only")
            else:
                text_pages = self._combine_direct_and_ocr_text(page_texts, ocr_pages)
                ocr_used = True
                extraction_method = "hybrid" if any(page_texts) else "ocr"
        elif scanned and self.ocr_engine is not None and not self.ocr_config.enabled:
            warnings.append("OCR is disabled; enable it to read scanned documents")

        text = "\n".join(text_pages)
        if not text.strip():
            warnings.append("Document contains no extractable text")

        self.logger.debug(f"Extracted {len(text)} characters from {page_count} pages ({extraction_method})")

        return ExtractedDocument(
            path=str(file_path),
            text=text,
            page_count=max(page_count, 1),
            metadata=read_file_metadata(file_path, properties),
            encrypted=bool(encrypted),
            encryption_known=encryption_known,
            scanned=scanned,
            ocr_used=ocr_used,
            extraction_method=extraction_method,
            warnings=tuple(warnings),
            pages=tuple(layouts),
        )

    def _read_pages(self, pdf, warnings: List[str]) -> Tuple[List[str], List[PageLayout]]:
        page_texts = []
        layouts = []
        for i, page in enumerate(pdf.pages, 1):
            try:
                text = page.extract_text() or ""
                words = page.extract_words() or []
            except Exception as e:
                self.logger.warning(f"Failed to extract text from page {i}: {e}")
                warnings.append(f"Page {i} could not be read")
                text, words = "", []

            page_texts.append(text.strip())
            layouts.append(PageLayout(
                page_number=i,
                width=float(page.width),
                height=float(page.height),
                words=tuple(
                    PositionedWord(
                        text=w["text"],
                        x0=float(w["x0"]),
                        top=float(w["top"]),
                        x1=float(w["x1"]),
                        bottom=float(w["bottom"]),
                    )
                    for w in words
                ),
            ))
        return page_texts, layouts

    def _detect_encryption(self, pdf) -> Optional[bool]:
        """True/False from the document trailer, None when the reader does not expose it"""
        document = getattr(pdf, "doc", None)
        if document is None or not hasattr(document, "encryption"):
            return None
        return document.encryption is not None

    def _needs_ocr(self, page_texts: List[str]) -> bool:
        """Average characters per page below the configured threshold"""
        if not page_texts:
            return True
        average = sum(len(text) for text in page_texts) / len(page_texts)
        self.logger.debug(f"OCR analysis: {average:.1f} chars/page (threshold: {self.ocr_config.threshold})")
        return average < self.ocr_config.threshold

    def _combine_direct_and_ocr_text(self, direct_pages: List[str], ocr_pages: List[str]) -> List[str]:
        """Pick direct or OCR text per page, preferring whichever carries more content"""
        if len(ocr_pages) != len(direct_pages):
            self.logger.warning(
                f"Page count mismatch: PDF has {len(direct_pages)} pages, OCR returned {len(ocr_pages)}"
            )
            if not direct_pages:
                return [page.strip() for page in ocr_pages]

        combined = []
        for i, direct_text in enumerate(direct_pages):
            direct_stripped = direct_text.strip()
            ocr_stripped = ocr_pages[i].strip() if i < len(ocr_pages) else ""

            if len(direct_stripped) >= self.ocr_config.threshold:
                combined.append(direct_stripped)
            elif len(ocr_stripped) > len(direct_stripped):
                combined.append(ocr_stripped)
            elif direct_stripped and ocr_stripped:
                combined.append(f"{direct_stripped}\n{ocr_stripped}")
            else:
                combined.append(direct_stripped or ocr_stripped)
        return combined
