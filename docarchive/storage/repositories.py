"""Repository pattern implementation for data access layer.

Repositories only read and stage writes on the session they were given; the
service layer owns commit/rollback so that one archive or restore call is one
transaction.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import (
    Boolean,
    Date,
    Integer,
    String,
    Text,
    and_,
    case,
    cast,
    delete,
    exists,
    func,
    literal,
    null,
    or_,
    select,
    union_all,
    update,
)
from sqlalchemy.orm import Session, aliased

from docarchive.models.author import Author, DocumentAuthor
from docarchive.models.compiled_document import CompiledDocument, CompiledDocumentItem
from docarchive.models.document import Document
from docarchive.models.document_request import DocumentRequest, RequestStatus
from docarchive.models.topic import DocumentTopic, Topic
from docarchive.storage.database import fetch_rows, fetch_scalar


def next_record_id(session: Session) -> int:
    """
    Next id unused by both documents and compiled groups.

    A document and a compiled group with the same id are one record, so new
    rows of either kind draw from one id space instead of each table's own
    autoincrement.
    """
    highest = union_all(
        select(func.coalesce(func.max(Document.id), 0).label("id")),
        select(func.coalesce(func.max(CompiledDocument.id), 0).label("id")),
    ).subquery("highest_ids")
    return (fetch_scalar(session, select(func.max(highest.c.id))) or 0) + 1


def _compiled_title_expr(category, volume, start_year, end_year):
    """SQL expression mirroring :func:`docarchive.models.compiled_document.compiled_title`."""
    years = case(
        (
            and_(start_year.isnot(None), end_year.isnot(None)),
            literal(" (") + cast(start_year, String) + literal("-") + cast(end_year, String) + literal(")"),
        ),
        (start_year.isnot(None), literal(" (") + cast(start_year, String) + literal(")")),
        else_=literal(""),
    )
    return (
        func.coalesce(category, literal(""))
        + literal(" Vol. ")
        + func.coalesce(cast(volume, String), literal(""))
        + years
    )


class DocumentRepository:
    """Repository for document operations."""

    def __init__(self, session: Session):
        """Initialize repository with a database session."""
        self.session = session

    def create(self, document: Document) -> Document:
        """Create a new document, taking its id from the shared record id space."""
        if document.id is None:
            document.id = next_record_id(self.session)
        self.session.add(document)
        self.session.flush()
        return document

    def get_by_id(self, document_id: int) -> Optional[Document]:
        """Get document by ID."""
        return self.session.get(Document, document_id)

    def get_archived(self, document_id: int) -> Optional[Document]:
        stmt = select(Document).where(
            Document.id == document_id, Document.deleted_at.isnot(None)
        )
        return self.session.scalar(stmt)

    def find_active_duplicate(
        self, title: str, document_type: str, exclude_id: int
    ) -> Optional[Document]:
        """Find another active document with the same title and type."""
        stmt = (
            select(Document)
            .where(
                Document.title == title,
                Document.document_type == document_type,
                Document.deleted_at.is_(None),
                Document.id != exclude_id,
            )
            .order_by(Document.id)
            .limit(1)
        )
        return self.session.scalar(stmt)

    def set_deleted_at(self, document_ids: Iterable[int], value: Optional[datetime]) -> list[int]:
        """Set the tombstone on every listed document whose state differs.

        Archiving only touches active rows and restoring only touches archived
        rows, so an already-matching row keeps its original timestamp.

        Returns:
            IDs of the rows that changed
        """
        ids = list(document_ids)
        if not ids:
            return []
        pending = Document.deleted_at.is_(None) if value is not None else Document.deleted_at.isnot(None)
        changed = list(
            self.session.scalars(
                select(Document.id).where(Document.id.in_(ids), pending).order_by(Document.id)
            )
        )
        if changed:
            self.session.execute(
                update(Document)
                .where(Document.id.in_(changed))
                .values(deleted_at=value)
                .execution_options(synchronize_session="fetch")
            )
        return changed

    def get_archived_members(self, compiled_id: int) -> list[Document]:
        """Get archived documents linked to a compiled group, ordered by title."""
        stmt = (
            select(Document)
            .join(CompiledDocumentItem, CompiledDocumentItem.document_id == Document.id)
            .where(
                CompiledDocumentItem.compiled_document_id == compiled_id,
                Document.deleted_at.isnot(None),
            )
            .order_by(Document.title, Document.id)
        )
        return list(self.session.scalars(stmt))

    def get_active_members(self, compiled_id: int) -> list[Document]:
        stmt = (
            select(Document)
            .join(CompiledDocumentItem, CompiledDocumentItem.document_id == Document.id)
            .where(
                CompiledDocumentItem.compiled_document_id == compiled_id,
                Document.deleted_at.is_(None),
            )
            .order_by(Document.title, Document.id)
        )
        return list(self.session.scalars(stmt))

    def list_active_rows(
        self,
        category: Optional[str] = None,
        volume: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """
        Flat document x author x topic rows for active documents.

        Each row carries at most one author name and one topic. Membership is
        read from compiled_document_items first and falls back to the
        compiled_parent_id pointer; members of an archived group are returned
        without a compiled_document_id so they list as standalone documents.
        Documents sharing an id with a compiled group are that group's own
        record and are left out.
        """
        parent = aliased(CompiledDocument)
        mirror = aliased(CompiledDocument)
        membership = func.coalesce(
            CompiledDocumentItem.compiled_document_id, Document.compiled_parent_id
        )

        stmt = (
            select(
                Document.id.label("id"),
                Document.title.label("title"),
                Document.abstract.label("abstract"),
                Document.publication_date.label("publication_date"),
                Document.document_type.label("document_type"),
                Document.volume.label("volume"),
                Document.issue_number.label("issue_number"),
                Document.file_path.label("file_path"),
                Document.is_public.label("is_public"),
                case(
                    (parent.deleted_at.isnot(None), null()),
                    else_=membership,
                ).label("compiled_document_id"),
                parent.category.label("compiled_category"),
                parent.volume.label("compiled_volume"),
                parent.start_year.label("compiled_start_year"),
                parent.end_year.label("compiled_end_year"),
                Author.full_name.label("author_name"),
                Topic.id.label("topic_id"),
                Topic.name.label("topic_name"),
            )
            .select_from(Document)
            .outerjoin(CompiledDocumentItem, CompiledDocumentItem.document_id == Document.id)
            .outerjoin(parent, parent.id == membership)
            .outerjoin(DocumentAuthor, DocumentAuthor.document_id == Document.id)
            .outerjoin(Author, Author.id == DocumentAuthor.author_id)
            .outerjoin(DocumentTopic, DocumentTopic.document_id == Document.id)
            .outerjoin(Topic, Topic.id == DocumentTopic.topic_id)
            .where(
                Document.deleted_at.is_(None),
                ~exists().where(mirror.id == Document.id),
            )
        )

        if category:
            stmt = stmt.where(func.upper(Document.document_type) == category.upper())
        if volume:
            stmt = stmt.where(Document.volume == volume)
        if search:
            pattern = f"%{search}%"
            author_match = (
                select(DocumentAuthor.document_id)
                .join(Author, Author.id == DocumentAuthor.author_id)
                .where(
                    DocumentAuthor.document_id == Document.id,
                    Author.full_name.ilike(pattern),
                )
                .exists()
            )
            stmt = stmt.where(
                or_(
                    Document.title.ilike(pattern),
                    func.coalesce(Document.abstract, "").ilike(pattern),
                    author_match,
                )
            )

        stmt = stmt.order_by(Document.id, DocumentAuthor.author_order, Topic.id)
        return fetch_rows(self.session, stmt)


class CompiledDocumentRepository:
    """Repository for compiled groups and their membership table."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, compiled: CompiledDocument) -> CompiledDocument:
        if compiled.id is None:
            compiled.id = next_record_id(self.session)
        self.session.add(compiled)
        self.session.flush()
        return compiled

    def get_by_id(self, compiled_id: int) -> Optional[CompiledDocument]:
        return self.session.get(CompiledDocument, compiled_id)

    def get_archived(self, compiled_id: int) -> Optional[CompiledDocument]:
        stmt = select(CompiledDocument).where(
            CompiledDocument.id == compiled_id, CompiledDocument.deleted_at.isnot(None)
        )
        return self.session.scalar(stmt)

    def member_ids(self, compiled_id: int) -> list[int]:
        """IDs of every document in the group, archived or not."""
        stmt = (
            select(CompiledDocumentItem.document_id)
            .where(CompiledDocumentItem.compiled_document_id == compiled_id)
            .order_by(CompiledDocumentItem.document_id)
        )
        return list(self.session.scalars(stmt))

    def group_ids_for(self, document_id: int) -> list[int]:
        """IDs of every group the document belongs to."""
        stmt = (
            select(CompiledDocumentItem.compiled_document_id)
            .where(CompiledDocumentItem.document_id == document_id)
            .order_by(CompiledDocumentItem.compiled_document_id)
        )
        return list(self.session.scalars(stmt))

    def count_members(self, compiled_id: int) -> int:
        stmt = select(func.count(CompiledDocumentItem.id)).where(
            CompiledDocumentItem.compiled_document_id == compiled_id
        )
        return self.session.scalar(stmt) or 0

    def get_item(self, compiled_id: int, document_id: int) -> Optional[CompiledDocumentItem]:
        stmt = select(CompiledDocumentItem).where(
            CompiledDocumentItem.compiled_document_id == compiled_id,
            CompiledDocumentItem.document_id == document_id,
        )
        return self.session.scalar(stmt)

    def add_item(self, compiled_id: int, document_id: int) -> CompiledDocumentItem:
        item = CompiledDocumentItem(compiled_document_id=compiled_id, document_id=document_id)
        self.session.add(item)
        self.session.flush()
        return item

    def remove_item(self, compiled_id: int, document_id: int) -> bool:
        result = self.session.execute(
            delete(CompiledDocumentItem).where(
                CompiledDocumentItem.compiled_document_id == compiled_id,
                CompiledDocumentItem.document_id == document_id,
            )
        )
        return (result.rowcount or 0) > 0

    def find_active_duplicate(
        self, category: str, volume: Optional[int], exclude_id: int
    ) -> Optional[CompiledDocument]:
        """Find another active group with the same category and volume."""
        volume_match = (
            CompiledDocument.volume.is_(None) if volume is None else CompiledDocument.volume == volume
        )
        stmt = (
            select(CompiledDocument)
            .where(
                CompiledDocument.category == category,
                volume_match,
                CompiledDocument.deleted_at.is_(None),
                CompiledDocument.id != exclude_id,
            )
            .order_by(CompiledDocument.id)
            .limit(1)
        )
        return self.session.scalar(stmt)


class ArchiveRepository:
    """Read-side queries spanning both documents and compiled groups."""

    def __init__(self, session: Session):
        self.session = session

    def _archived_union(self):
        doc_is_compilation = or_(
            exists().where(CompiledDocumentItem.compiled_document_id == Document.id),
            exists().where(CompiledDocument.id == Document.id),
        )
        documents = select(
            Document.id.label("id"),
            Document.title.label("title"),
            Document.abstract.label("abstract"),
            Document.publication_date.label("publication_date"),
            Document.document_type.label("document_type"),
            Document.volume.label("volume"),
            Document.deleted_at.label("deleted_at"),
            Document.created_at.label("created_at"),
            Document.compiled_parent_id.label("parent_document_id"),
            select(func.count(CompiledDocumentItem.id))
            .where(CompiledDocumentItem.compiled_document_id == Document.id)
            .scalar_subquery()
            .label("child_count"),
            case((doc_is_compilation, literal(True, Boolean)), else_=literal(False, Boolean)).label(
                "is_compilation"
            ),
            literal("documents").label("source_table"),
            cast(null(), Integer).label("start_year"),
            cast(null(), Integer).label("end_year"),
        ).where(Document.deleted_at.isnot(None))

        compiled = select(
            CompiledDocument.id.label("id"),
            _compiled_title_expr(
                CompiledDocument.category,
                CompiledDocument.volume,
                CompiledDocument.start_year,
                CompiledDocument.end_year,
            ).label("title"),
            cast(null(), Text).label("abstract"),
            cast(null(), Date).label("publication_date"),
            CompiledDocument.category.label("document_type"),
            cast(CompiledDocument.volume, String).label("volume"),
            CompiledDocument.deleted_at.label("deleted_at"),
            CompiledDocument.created_at.label("created_at"),
            cast(null(), Integer).label("parent_document_id"),
            select(func.count(CompiledDocumentItem.id))
            .where(CompiledDocumentItem.compiled_document_id == CompiledDocument.id)
            .scalar_subquery()
            .label("child_count"),
            literal(True, Boolean).label("is_compilation"),
            literal("compiled_documents").label("source_table"),
            CompiledDocument.start_year.label("start_year"),
            CompiledDocument.end_year.label("end_year"),
        ).where(
            CompiledDocument.deleted_at.isnot(None),
            ~exists().where(
                Document.id == CompiledDocument.id, Document.deleted_at.isnot(None)
            ),
        )

        return union_all(documents, compiled).subquery("archived")

    def list_archived(
        self,
        limit: int,
        offset: int,
        document_type: Optional[str] = None,
        search: Optional[str] = None,
        compiled_only: bool = False,
    ) -> tuple[list[dict[str, Any]], int]:
        """
        Page through archived standalone documents and compiled groups.

        Compiled groups whose id also has an archived document row are only
        returned once, through the document row.

        Returns:
            (rows for the requested page ordered by archive time desc, total matching)
        """
        archived = self._archived_union()
        conditions = []
        if document_type:
            conditions.append(func.upper(archived.c.document_type) == document_type.upper())
        if compiled_only:
            conditions.append(
                or_(archived.c.is_compilation == True, archived.c.parent_document_id.isnot(None))  # noqa: E712
            )
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    archived.c.title.ilike(pattern),
                    func.coalesce(archived.c.abstract, "").ilike(pattern),
                )
            )

        count_stmt = select(func.count()).select_from(archived).where(*conditions)
        total = self.session.scalar(count_stmt) or 0

        page_stmt = (
            select(archived)
            .where(*conditions)
            .order_by(archived.c.deleted_at.desc(), archived.c.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return fetch_rows(self.session, page_stmt), int(total)

    def category_counts(self) -> list[dict[str, Any]]:
        """Archived record counts per category without double counting mirrored groups."""
        document_counts = (
            select(
                Document.document_type.label("category"),
                func.count(Document.id).label("count"),
            )
            .where(Document.deleted_at.isnot(None))
            .group_by(Document.document_type)
        )
        compiled_counts = (
            select(
                CompiledDocument.category.label("category"),
                func.count(CompiledDocument.id).label("count"),
            )
            .where(
                CompiledDocument.deleted_at.isnot(None),
                ~exists().where(
                    Document.id == CompiledDocument.id, Document.deleted_at.isnot(None)
                ),
            )
            .group_by(CompiledDocument.category)
        )
        combined = union_all(document_counts, compiled_counts).subquery("category_counts")
        stmt = (
            select(combined.c.category, func.sum(combined.c["count"]).label("count"))
            .group_by(combined.c.category)
            .order_by(combined.c.category)
        )
        return fetch_rows(self.session, stmt)


class AuthorRepository:
    """Repository for authors and their ordered links to documents."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, author: Author) -> Author:
        self.session.add(author)
        self.session.flush()
        return author

    def get_by_id(self, author_id: int) -> Optional[Author]:
        return self.session.get(Author, author_id)

    def link(self, document_id: int, author_id: int, author_order: int = 0) -> DocumentAuthor:
        link = DocumentAuthor(document_id=document_id, author_id=author_id, author_order=author_order)
        self.session.add(link)
        self.session.flush()
        return link

    def names_by_document(self, document_ids: Iterable[int]) -> dict[int, str]:
        """Map each document to its distinct author names joined with ', ' in author order."""
        ids = list(document_ids)
        if not ids:
            return {}
        stmt = (
            select(DocumentAuthor.document_id, Author.full_name)
            .join(Author, Author.id == DocumentAuthor.author_id)
            .where(DocumentAuthor.document_id.in_(ids))
            .order_by(DocumentAuthor.document_id, DocumentAuthor.author_order, Author.id)
        )
        names: dict[int, list[str]] = {}
        for document_id, full_name in self.session.execute(stmt):
            bucket = names.setdefault(document_id, [])
            if full_name not in bucket:
                bucket.append(full_name)
        return {document_id: ", ".join(bucket) for document_id, bucket in names.items()}


class DocumentRequestRepository:
    """Repository for document access requests."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, request: DocumentRequest) -> DocumentRequest:
        self.session.add(request)
        self.session.flush()
        return request

    def get_by_id(self, request_id: int) -> Optional[DocumentRequest]:
        return self.session.get(DocumentRequest, request_id)

    def list(
        self,
        status: Optional[str] = None,
        document_id: Optional[int] = None,
    ) -> list[DocumentRequest]:
        query = select(DocumentRequest)
        if status:
            query = query.where(DocumentRequest.status == status)
        if document_id is not None:
            query = query.where(DocumentRequest.document_id == document_id)
        query = query.order_by(DocumentRequest.created_at.desc(), DocumentRequest.id.desc())
        return list(self.session.scalars(query))

    def has_approved(self, document_id: int, email: str) -> bool:
        stmt = select(
            exists().where(
                DocumentRequest.document_id == document_id,
                func.lower(DocumentRequest.email) == email.strip().lower(),
                DocumentRequest.status == RequestStatus.APPROVED.value,
            )
        )
        return bool(self.session.scalar(stmt))
