"""Shared pytest fixtures and test utilities for archive service tests."""

import os
import tempfile
from datetime import date, datetime
from typing import Any, Generator, Iterable, Optional

import pytest
from sqlalchemy import select

from docarchive.config import Settings
from docarchive.models.author import Author, DocumentAuthor
from docarchive.models.compiled_document import CompiledDocument, CompiledDocumentItem
from docarchive.models.document import Document
from docarchive.models.document_request import DocumentRequest
from docarchive.models.topic import DocumentTopic, Topic
from docarchive.services import (
    ArchiveService,
    CompilationService,
    DocumentService,
    RequestService,
)
from docarchive.storage.database import Database
from docarchive.storage.repositories import next_record_id


@pytest.fixture(scope="function")
def temp_db() -> Generator[Database, None, None]:
    """
    Create a temporary SQLite database for testing.

    Yields:
        Database instance with tables created
    """
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    database = Database(f"sqlite:///{db_path}")
    database.create_tables()

    yield database

    # Cleanup
    database.drop_tables()
    database.dispose()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def settings() -> Settings:
    return Settings(default_page_size=10, max_page_size=100)


@pytest.fixture
def db_session(temp_db):
    """Get a database session from temp_db."""
    with temp_db.session() as session:
        yield session


@pytest.fixture
def archive_service(db_session, settings):
    return ArchiveService(db_session, settings=settings)


@pytest.fixture
def document_service(db_session, settings):
    return DocumentService(db_session, settings=settings)


@pytest.fixture
def compilation_service(db_session):
    return CompilationService(db_session)


@pytest.fixture
def request_service(db_session):
    return RequestService(db_session)


class Seeder:
    """Write fixture rows directly, bypassing service validation.

    Rows without an explicit id draw from the shared record id space, so a
    document and a group only share an id when a test asks for it.
    """

    def __init__(self, session):
        self.session = session

    def document(
        self,
        title: str,
        document_type: str = "THESIS",
        id: Optional[int] = None,
        abstract: Optional[str] = None,
        publication_date: Optional[date] = None,
        volume: Optional[str] = None,
        is_public: bool = False,
        deleted_at: Optional[datetime] = None,
        compiled_parent_id: Optional[int] = None,
        authors: Iterable[str] = (),
        topics: Iterable[str] = (),
    ) -> Document:
        document = Document(
            id=id if id is not None else next_record_id(self.session),
            title=title,
            document_type=document_type,
            abstract=abstract,
            publication_date=publication_date,
            volume=volume,
            is_public=is_public,
            deleted_at=deleted_at,
            compiled_parent_id=compiled_parent_id,
        )
        self.session.add(document)
        self.session.flush()

        for order, name in enumerate(authors):
            author = self.author(name)
            self.session.add(
                DocumentAuthor(document_id=document.id, author_id=author.id, author_order=order)
            )
        for name in topics:
            topic = self.session.scalar(select(Topic).where(Topic.name == name))
            if topic is None:
                topic = Topic(name=name)
                self.session.add(topic)
                self.session.flush()
            self.session.add(DocumentTopic(document_id=document.id, topic_id=topic.id))

        self.session.commit()
        return document

    def author(self, full_name: str) -> Author:
        author = self.session.scalar(select(Author).where(Author.full_name == full_name))
        if author is None:
            author = Author(full_name=full_name)
            self.session.add(author)
            self.session.flush()
        return author

    def compilation(
        self,
        members: Iterable[Document] = (),
        category: str = "CONFLUENCE",
        volume: Optional[int] = 1,
        start_year: Optional[int] = 2020,
        end_year: Optional[int] = 2021,
        id: Optional[int] = None,
        deleted_at: Optional[datetime] = None,
    ) -> CompiledDocument:
        compiled = CompiledDocument(
            id=id if id is not None else next_record_id(self.session),
            category=category,
            volume=volume,
            start_year=start_year,
            end_year=end_year,
            deleted_at=deleted_at,
        )
        self.session.add(compiled)
        self.session.flush()
        for member in members:
            self.session.add(
                CompiledDocumentItem(compiled_document_id=compiled.id, document_id=member.id)
            )
            member.compiled_parent_id = compiled.id
        self.session.commit()
        return compiled

    def request(self, document: Document, email: str, status: str = "pending") -> DocumentRequest:
        request = DocumentRequest(
            document_id=document.id,
            full_name="Dana Reyes",
            email=email,
            affiliation="Graduate School",
            reason="Research",
            status=status,
        )
        self.session.add(request)
        self.session.commit()
        return request


@pytest.fixture
def seed(db_session) -> Seeder:
    """Provide a Seeder bound to the test session."""
    return Seeder(db_session)


def read_deleted_at(database: Database, model: Any, record_id: int) -> Optional[datetime]:
    """Read a tombstone through a fresh session so nothing cached is observed."""
    with database.session() as session:
        row = session.get(model, record_id)
        return None if row is None else row.deleted_at


@pytest.fixture
def deleted_at(temp_db):
    """Return a reader for committed deleted_at values."""

    def reader(model: Any, record_id: int) -> Optional[datetime]:
        return read_deleted_at(temp_db, model, record_id)

    return reader
