"""Batch orchestration with bounded concurrency"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

from docintake.config import IntakeConfig
from docintake.errors import BatchCancelledError
from docintake.logging_setup import get_logger, log_performance
from docintake.models import (
    Template, DocumentProcessingResult, BatchResult, ProcessingStatus, ResultError
)
from docintake.pipeline.document import DocumentPipeline, CancellationToken, result_error_from
from docintake.templates.store import TemplateStore, TemplateSnapshot


ProgressCallback = Callable[[int, int, str], None]
TemplateSource = Union[TemplateStore, TemplateSnapshot, Sequence[Template]]

# How often a blocked admission re-checks for cancellation, in seconds
ADMISSION_POLL_INTERVAL = 0.05


def collect_documents(directory: Path, recursive: bool = False, pattern: str = "*") -> List[Path]:
    """
    List files in a directory

    Args:
        directory: Directory to scan
        recursive: Descend into subdirectories
        pattern: Glob pattern for file names

    Returns:
        Sorted list of file paths
    """
    directory = Path(directory)
    paths = directory.rglob(pattern) if recursive else directory.glob(pattern)
    return sorted(p for p in paths if p.is_file())


class BatchOrchestrator:
    """Runs the document pipeline over many documents"""

    def __init__(self, pipeline: DocumentPipeline, templates: TemplateSource,
                 config: Optional[IntakeConfig] = None):
        """
        Args:
            pipeline: Pipeline run for every document
            templates: Template store (snapshotted at the start of each batch),
                an existing snapshot, or a sequence of templates
            config: Supplies default concurrency and error policy
        """
        self.pipeline = pipeline
        self.templates = templates
        self.config = config or pipeline.config
        self.logger = get_logger(f"{__name__}.BatchOrchestrator")

    def filter_supported(self, paths: Sequence[Union[str, Path]]) -> List[str]:
        """Drop paths whose extension no registered strategy claims"""
        extensions = self.pipeline.registry.get_supported_extensions()
        supported = []
        for path in paths:
            if Path(path).suffix.lower() in extensions:
                supported.append(str(path))
            else:
                self.logger.info(f"Skipping unsupported file: {path}")
        return supported

    def snapshot_templates(self) -> TemplateSnapshot:
        """
        Freeze the template list for one run

        Raises:
            TemplateSourceError: If the template store cannot be read
        """
        if isinstance(self.templates, TemplateSnapshot):
            return self.templates
        if isinstance(self.templates, TemplateStore):
            return self.templates.snapshot()
        return TemplateSnapshot(tuple(self.templates))

    def process_batch(self, paths: Sequence[Union[str, Path]],
                      max_concurrent: Optional[int] = None,
                      continue_on_error: Optional[bool] = None,
                      progress_callback: Optional[ProgressCallback] = None,
                      cancellation: Optional[CancellationToken] = None) -> BatchResult:
        """
        Process documents concurrently

        At most ``max_concurrent`` documents are in flight; the next document
        is admitted as soon as one finishes. Progress is reported in
        completion order.

        Args:
            paths: Documents to process
            max_concurrent: Bound on in-flight documents (default from config)
            continue_on_error: When False, the first failed document stops
                admission of further documents (default from config)
            progress_callback: Called with (completed, total, document_id)
            cancellation: External cancellation signal

        Returns:
            BatchResult over all documents

        Raises:
            TemplateSourceError: If templates cannot be loaded; no document runs
            BatchCancelledError: If continue_on_error is False and a document
                failed; carries the partial BatchResult
        """
        if max_concurrent is None:
            max_concurrent = self.config.processing.max_concurrent
        if continue_on_error is None:
            continue_on_error = self.config.processing.continue_on_error
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")

        snapshot = self.snapshot_templates()
        templates = snapshot.templates
        document_ids = _document_ids([str(p) for p in paths])
        total = len(document_ids)

        started_at = datetime.now()
        slots = threading.BoundedSemaphore(max_concurrent)
        progress_lock = threading.Lock()
        stop_admission = threading.Event()
        results: Dict[str, DocumentProcessingResult] = {}
        completed = [0]
        first_failure: List[str] = []
        skipped = 0

        def is_cancelled() -> bool:
            return cancellation is not None and cancellation.is_cancelled

        def run(path: str, document_id: str) -> None:
            try:
                result = self._run_pipeline(path, document_id, templates, cancellation)
                if result.status == ProcessingStatus.FAILED and not continue_on_error:
                    # Set before the slot is released so no further document is admitted
                    stop_admission.set()
            finally:
                slots.release()

            with progress_lock:
                results[document_id] = result
                completed[0] += 1
                if result.status == ProcessingStatus.FAILED and not continue_on_error and not first_failure:
                    first_failure.append(document_id)
                    self.logger.warning(f"Stopping batch admission after failure of {document_id}")
                if progress_callback is not None:
                    try:
                        progress_callback(completed[0], total, document_id)
                    except Exception as e:
                        self.logger.warning(f"Progress callback failed for {document_id}: {e}")

        self.logger.info(
            f"Starting batch of {total} documents with {len(templates)} templates "
            f"(max concurrent: {max_concurrent})"
        )

        with log_performance(f"Batch of {total} documents", self.logger):
            with ThreadPoolExecutor(max_workers=max_concurrent, thread_name_prefix="docintake") as executor:
                for index, (document_id, path) in enumerate(document_ids):
                    if not self._acquire_slot(slots, stop_admission, is_cancelled):
                        skipped = total - index
                        break
                    if stop_admission.is_set() or is_cancelled():
                        slots.release()
                        skipped = total - index
                        break
                    executor.submit(run, path, document_id)

        finished_at = datetime.now()
        cancelled = skipped > 0 or bool(first_failure) or is_cancelled()
        batch_result = self._build_result(
            [results[doc_id] for doc_id, _ in document_ids if doc_id in results],
            total, skipped, started_at, finished_at, cancelled
        )

        self.logger.info(
            f"Batch finished: {batch_result.successful_files}/{total} successful, "
            f"{batch_result.failed_files} failed, {skipped} skipped"
        )

        if first_failure:
            raise BatchCancelledError(
                f"Batch stopped after document {first_failure[0]} failed "
                f"({skipped} documents not started)",
                batch_result
            )
        return batch_result

    def _run_pipeline(self, path: str, document_id: str, templates: Sequence[Template],
                      cancellation: Optional[CancellationToken]) -> DocumentProcessingResult:
        try:
            return self.pipeline.process(path, templates, cancellation, document_id=document_id)
        except Exception as e:
            self.logger.exception(f"Pipeline raised for {document_id}: {e}")
            return DocumentProcessingResult(
                document_id=document_id,
                path=path,
                status=ProcessingStatus.FAILED,
                errors=(result_error_from(e),),
            )

    def _acquire_slot(self, slots: threading.BoundedSemaphore, stop_admission: threading.Event,
                      is_cancelled: Callable[[], bool]) -> bool:
        """Block until a slot frees up; False if admission stopped while waiting"""
        while not slots.acquire(timeout=ADMISSION_POLL_INTERVAL):
            if stop_admission.is_set() or is_cancelled():
                return False
        return True

    @staticmethod
    def _build_result(results: List[DocumentProcessingResult], total: int, skipped: int,
                      started_at: datetime, finished_at: datetime, cancelled: bool) -> BatchResult:
        successful = sum(1 for r in results if r.status != ProcessingStatus.FAILED)
        partial = sum(1 for r in results if r.status == ProcessingStatus.PARTIAL_SUCCESS)
        failed = sum(1 for r in results if r.status == ProcessingStatus.FAILED)
        errors_by_document: Dict[str, List[ResultError]] = {
            r.document_id: list(r.errors) for r in results if r.errors
        }
        return BatchResult(
            total_files=total,
            successful_files=successful,
            partial_files=partial,
            failed_files=failed,
            skipped_files=skipped,
            results=tuple(results),
            errors_by_document=errors_by_document,
            started_at=started_at,
            finished_at=finished_at,
            cancelled=cancelled,
        )


def _document_ids(paths: List[str]) -> List[tuple]:
    """Pair each path with a unique document id, suffixing repeated paths"""
    seen: Dict[str, int] = {}
    pairs = []
    for path in paths:
        count = seen.get(path, 0)
        seen[path] = count + 1
        pairs.append((path if count == 0 else f"{path}#{count + 1}", path))
    return pairs
