"""Document and batch pipelines"""

from docintake.pipeline.batch import BatchOrchestrator, collect_documents
from docintake.pipeline.document import DocumentPipeline, CancellationToken

__all__ = ["BatchOrchestrator", "DocumentPipeline", "CancellationToken", "collect_documents"]
