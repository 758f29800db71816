"""Service layer for business logic."""

from docarchive.services.aggregator import aggregate
from docarchive.services.archive_service import ArchivableRecord, ArchiveService
from docarchive.services.compilation_service import CompilationService
from docarchive.services.document_service import DocumentService
from docarchive.services.request_service import RequestService

__all__ = [
    "aggregate",
    "ArchivableRecord",
    "ArchiveService",
    "CompilationService",
    "DocumentService",
    "RequestService",
]
