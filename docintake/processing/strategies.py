"""Base class and shared helpers for format strategies"""

import mimetypes
import os
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional, FrozenSet, List, Dict, Any

from docintake.errors import FileAccessError
from docintake.models import ExtractedDocument, DocumentValidationResult, FileMetadata
from docintake.logging_setup import get_logger


PDF_SIGNATURE = b"%PDF"
ZIP_SIGNATURE = b"PK\x03\x04"

MIME_TYPES = {
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".xlsm": "application/vnd.ms-excel.sheet.macroEnabled.12",
    ".txt": "text/plain",
    ".log": "text/plain",
    ".csv": "text/csv",
    ".md": "text/markdown",
}


def guess_mime_type(path: Path) -> str:
    extension = path.suffix.lower()
    if extension in MIME_TYPES:
        return MIME_TYPES[extension]
    guessed, _ = mimetypes.guess_type(str(path))
    return guessed or "application/octet-stream"


def read_file_metadata(file_path: str, properties: Optional[Dict[str, Any]] = None) -> FileMetadata:
    """
    Collect file system metadata for a document

    Args:
        file_path: Path to the document
        properties: Format-specific properties (author, title, ...) to attach

    Returns:
        FileMetadata for the file

    Raises:
        FileAccessError: If the file cannot be stat'ed
    """
    path = Path(file_path)
    try:
        stat = os.stat(path)
    except OSError as e:
        raise FileAccessError(str(file_path), e, reason=type(e).__name__)

    return FileMetadata(
        file_name=path.name,
        file_size=stat.st_size,
        created=datetime.fromtimestamp(stat.st_ctime),
        modified=datetime.fromtimestamp(stat.st_mtime),
        mime_type=guess_mime_type(path),
        extension=path.suffix.lower(),
        properties=dict(properties or {}),
    )


def read_signature(file_path: str, length: int = 8) -> bytes:
    """Read the leading bytes of a file, empty when it cannot be read"""
    try:
        with open(file_path, "rb") as f:
            return f.read(length)
    except OSError:
        return b""


class DocumentStrategy(ABC):
    """
    A reader for one family of document formats.

    Subclasses declare the extensions they claim, an optional magic-number
    signature and a priority used by the registry when several strategies
    claim the same file.
    """

    name: str = "base"
    priority: int = 0
    extensions: FrozenSet[str] = frozenset()
    signature: Optional[bytes] = None

    def __init__(self):
        self.logger = get_logger(f"{__name__}.{type(self).__name__}")

    def can_process(self, file_path: str) -> bool:
        """
        Claim files by extension

        Content is not sniffed here: a file whose signature does not match
        its extension is claimed and then rejected by validate() as corrupt.
        """
        return Path(file_path).suffix.lower() in self.extensions

    def validate(self, file_path: str, max_file_size: Optional[int] = None) -> DocumentValidationResult:
        """
        Upfront checks before decoding

        Args:
            file_path: Path to the document
            max_file_size: Size in bytes above which a warning is issued

        Returns:
            DocumentValidationResult with errors and warnings
        """
        errors: List[str] = []
        warnings: List[str] = []
        path = Path(file_path)

        if not path.exists():
            errors.append(f"File does not exist: {file_path}")
            return DocumentValidationResult(False, tuple(errors), tuple(warnings))

        if not path.is_file():
            errors.append(f"Not a regular file: {file_path}")
            return DocumentValidationResult(False, tuple(errors), tuple(warnings))

        try:
            size = path.stat().st_size
        except OSError as e:
            errors.append(f"Cannot read file size: {e}")
            return DocumentValidationResult(False, tuple(errors), tuple(warnings))

        if size == 0:
            errors.append("File is empty")
        elif max_file_size and size > max_file_size:
            warnings.append(
                f"Large file ({size / (1024 * 1024):.1f}MB) may take longer to process"
            )

        if size > 0 and self.signature is not None:
            header = read_signature(file_path, len(self.signature))
            if not header.startswith(self.signature):
                errors.append(f"File signature does not match the {self.name} format")

        return DocumentValidationResult(not errors, tuple(errors), tuple(warnings))

    @abstractmethod
    def process(self, file_path: str) -> ExtractedDocument:
        """
        Decode the document into text and metadata

        Raises:
            FileAccessError: If the file vanished or cannot be read
            CorruptDocumentError: If the content is structurally invalid
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, priority={self.priority})"
