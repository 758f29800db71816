"""Storage layer for the archive service."""

from docarchive.storage.database import Database, fetch_rows, fetch_scalar
from docarchive.storage.repositories import (
    ArchiveRepository,
    AuthorRepository,
    CompiledDocumentRepository,
    DocumentRepository,
    DocumentRequestRepository,
)

__all__ = [
    "Database",
    "fetch_rows",
    "fetch_scalar",
    "ArchiveRepository",
    "AuthorRepository",
    "CompiledDocumentRepository",
    "DocumentRepository",
    "DocumentRequestRepository",
]
