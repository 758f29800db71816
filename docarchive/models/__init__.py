"""Database models for the archive service."""

from docarchive.models.base import Base
from docarchive.models.author import Author, DocumentAuthor
from docarchive.models.compiled_document import CompiledDocument, CompiledDocumentItem
from docarchive.models.document import Document, DocumentType
from docarchive.models.document_request import DocumentRequest, RequestStatus
from docarchive.models.topic import DocumentTopic, Topic

__all__ = [
    "Base",
    "Author",
    "DocumentAuthor",
    "CompiledDocument",
    "CompiledDocumentItem",
    "Document",
    "DocumentType",
    "DocumentRequest",
    "RequestStatus",
    "Topic",
    "DocumentTopic",
]
