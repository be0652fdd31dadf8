"""OCR collaborator used for documents without a text layer"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

import pdf2image
import pytesseract
from PIL import Image

from docintake.config import OCRConfig
from docintake.errors import OCRError, retry_on_failure
from docintake.logging_setup import get_logger, log_performance


class OCREngine(ABC):
    """Turns a document into per-page text"""

    @abstractmethod
    def extract_text(self, file_path: str) -> List[str]:
        """
        Recognise the text of every page

        Args:
            file_path: Path to the document

        Returns:
            One string per page, empty for pages without recognised text

        Raises:
            OCRError: If recognition fails for the whole document
        """


class TesseractOCR(OCREngine):
    """OCR via Poppler page rendering and Tesseract"""

    def __init__(self, config: Optional[OCRConfig] = None):
        self.config = config or OCRConfig()
        self.logger = get_logger(f"{__name__}.TesseractOCR")

    @retry_on_failure(max_retries=2, delay=1.0, exceptions=(OCRError,))
    def extract_text(self, file_path: str) -> List[str]:
        with log_performance(f"OCR of {Path(file_path).name}", self.logger):
            try:
                self.logger.debug(f"Converting {file_path} to images at {self.config.dpi} DPI")
                images = pdf2image.convert_from_path(file_path, dpi=self.config.dpi)
            except Exception as e:
                raise OCRError(file_path, Exception(f"Failed to convert PDF to images: {e}"))

            pages = []
            recognised = 0
            for i, image in enumerate(images):
                try:
                    text = pytesseract.image_to_string(
                        self._preprocess_image(image),
                        lang=self.config.language,
                        config=self.config.tesseract_config,
                    )
                except Exception as e:
                    self.logger.warning(f"OCR failed for page {i + 1}: {e}")
                    text = ""

                text = (text or "").strip()
                if text:
                    recognised += 1
                pages.append(text)

            self.logger.debug(f"OCR completed: {recognised}/{len(images)} pages with text")

            if images and recognised == 0:
                raise OCRError(file_path, Exception("OCR failed to extract text from any page"))

            return pages

    def _preprocess_image(self, image: Image.Image) -> Image.Image:
        """Convert to grayscale before recognition"""
        if image.mode != "L":
            image = image.convert("L")
        return image
