"""Field extraction"""

from docintake.extraction.engine import FieldExtractionEngine

__all__ = ["FieldExtractionEngine"]
