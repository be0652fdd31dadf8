"""Registry selecting the format strategy for a document"""

import threading
from typing import Optional, Set, Tuple, List

from docintake.config import IntakeConfig
from docintake.logging_setup import get_logger
from docintake.processing.excel_strategy import ExcelStrategy
from docintake.processing.ocr import OCREngine, TesseractOCR
from docintake.processing.pdf_strategy import PdfStrategy
from docintake.processing.strategies import DocumentStrategy
from docintake.processing.text_strategy import TextStrategy
from docintake.processing.word_strategy import WordStrategy


class StrategyRegistry:
    """
    Ordered table of format strategies.

    Writers take a lock and swap in a new tuple; readers iterate whatever
    tuple was current when they started, so a lookup never sees a
    half-applied registration.
    """

    def __init__(self, strategies: Optional[List[DocumentStrategy]] = None):
        self.logger = get_logger(f"{__name__}.StrategyRegistry")
        self._lock = threading.Lock()
        self._strategies: Tuple[DocumentStrategy, ...] = ()
        for strategy in strategies or []:
            self.register(strategy)

    def register(self, strategy: DocumentStrategy) -> None:
        """Add a strategy, replacing any strategy registered under the same name"""
        with self._lock:
            kept = tuple(s for s in self._strategies if s.name != strategy.name)
            if len(kept) != len(self._strategies):
                self.logger.info(f"Replacing strategy '{strategy.name}'")
            self._strategies = kept + (strategy,)
        self.logger.debug(f"Registered strategy '{strategy.name}' (priority {strategy.priority})")

    def unregister(self, name: str) -> bool:
        """Remove a strategy by name; False if no such strategy was registered"""
        with self._lock:
            kept = tuple(s for s in self._strategies if s.name != name)
            removed = len(kept) != len(self._strategies)
            self._strategies = kept
        if removed:
            self.logger.debug(f"Unregistered strategy '{name}'")
        return removed

    def strategies(self) -> Tuple[DocumentStrategy, ...]:
        return self._strategies

    def get_strategy(self, file_path: str) -> Optional[DocumentStrategy]:
        """
        Select the strategy for a document

        Args:
            file_path: Path to the document

        Returns:
            The highest-priority strategy whose can_process() accepts the file,
            earliest registration first among equal priorities, or None
        """
        best = None
        for strategy in self._strategies:
            try:
                claims = strategy.can_process(file_path)
            except Exception as e:
                self.logger.warning(f"Strategy '{strategy.name}' failed to inspect {file_path}: {e}")
                continue
            if claims and (best is None or strategy.priority > best.priority):
                best = strategy

        if best is None:
            self.logger.debug(f"No strategy claims {file_path}")
        return best

    def get_supported_extensions(self) -> Set[str]:
        extensions: Set[str] = set()
        for strategy in self._strategies:
            extensions.update(strategy.extensions)
        return extensions

    def __len__(self) -> int:
        return len(self._strategies)


def create_default_registry(config: Optional[IntakeConfig] = None,
                            ocr: Optional[OCREngine] = None) -> StrategyRegistry:
    """
    Build a registry holding the built-in PDF, Word, Excel and text strategies

    Args:
        config: Configuration supplying OCR settings. If None, uses defaults.
        ocr: OCR collaborator for PDFs without a text layer. When None and OCR
            is enabled in the configuration, Tesseract is used.
    """
    config = config or IntakeConfig.create_default()
    if ocr is None and config.ocr.enabled:
        ocr = TesseractOCR(config.ocr)

    return StrategyRegistry([
        PdfStrategy(config.ocr, ocr),
        WordStrategy(),
        ExcelStrategy(),
        TextStrategy(),
    ])
