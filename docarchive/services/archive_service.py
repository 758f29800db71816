"""Archive service: soft-delete and restore of documents and compiled groups.

A document and a compiled group may share an id. Such a pair is one logical
record, so every operation here resolves an id to an :class:`ArchivableRecord`
holding whichever of the two rows exist, and writes the same tombstone to all
of them inside one transaction.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from docarchive.config import Settings, get_settings
from docarchive.exceptions import (
    AlreadyArchivedError,
    ArchiveServiceError,
    ConflictError,
    InvalidRequestError,
    NotArchivedError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from docarchive.models.compiled_document import CompiledDocument
from docarchive.models.document import Document
from docarchive.serializers import serialize_compiled, serialize_document
from docarchive.storage.repositories import (
    ArchiveRepository,
    AuthorRepository,
    CompiledDocumentRepository,
    DocumentRepository,
)
from docarchive.storage.normalize import normalize_value

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def coerce_id(value: Any, field: str = "document_id") -> int:
    """Accept a positive integer id given as int or digit string."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int):
        raise ValidationError(f"{field} is required and must be an integer", field)
    if value < 1:
        raise ValidationError(f"{field} must be positive", field)
    return value


@dataclass
class ArchivableRecord:
    """The document row and/or compiled row that share one id.

    Compilation status comes from the membership table keyed by this id, never
    from ``compiled_parent_id``, which marks a document as a member of some
    other group.
    """

    record_id: int
    document: Optional[Document] = None
    compiled: Optional[CompiledDocument] = None
    member_count: int = 0

    @property
    def is_compilation(self) -> bool:
        return self.compiled is not None or self.member_count > 0

    def rows(self) -> list[Any]:
        return [row for row in (self.document, self.compiled) if row is not None]


class ArchiveService:
    """Service layer for archive, restore and archived listings."""

    def __init__(self, session: Session, settings: Settings | None = None):
        """
        Initialize archive service with database session.

        Args:
            session: SQLAlchemy database session; each mutating call commits it once
            settings: Optional settings override (page size limits)
        """
        self.session = session
        self.settings = settings or get_settings()
        self.document_repo = DocumentRepository(session)
        self.compiled_repo = CompiledDocumentRepository(session)
        self.archive_repo = ArchiveRepository(session)
        self.author_repo = AuthorRepository(session)

    def resolve(self, record_id: int) -> Optional[ArchivableRecord]:
        """Load both rows for an id; None when neither table has it."""
        document = self.document_repo.get_by_id(record_id)
        compiled = self.compiled_repo.get_by_id(record_id)
        if document is None and compiled is None:
            return None
        return ArchivableRecord(
            record_id,
            document=document,
            compiled=compiled,
            member_count=self.compiled_repo.count_members(record_id),
        )

    def list_archived(
        self,
        page: int = 1,
        page_size: int | None = None,
        document_type: str | None = None,
        search: str | None = None,
        compiled_only: bool = False,
    ) -> dict[str, Any]:
        """
        List archived documents and compiled groups, newest archive first.

        Args:
            page: 1-based page number
            page_size: Records per page; defaults to settings.default_page_size
            document_type: Optional category filter (case-insensitive, "All" disables it)
            search: Optional case-insensitive substring over title and abstract
            compiled_only: Only compiled groups and their members

        Returns:
            ``{documents, total_documents, current_page, total_pages, limit, category_counts}``

        Raises:
            ValidationError: If page or page_size is out of range
            StorageError: If the query fails
        """
        page_size = self._validate_page(page, page_size)
        if document_type and document_type.strip().lower() == "all":
            document_type = None

        try:
            rows, total = self.archive_repo.list_archived(
                limit=page_size,
                offset=(page - 1) * page_size,
                document_type=document_type.strip() if document_type else None,
                search=search.strip() if search else None,
                compiled_only=compiled_only,
            )
            standalone_ids = [row["id"] for row in rows if row["source_table"] == "documents"]
            authors = self.author_repo.names_by_document(standalone_ids)

            documents = []
            for row in rows:
                row["is_compilation"] = bool(row["is_compilation"])
                row["is_compiled"] = row["source_table"] == "compiled_documents"
                row["authors"] = authors.get(row["id"]) if not row["is_compiled"] else None
                documents.append(row)

            return {
                "documents": documents,
                "total_documents": total,
                "current_page": page,
                "total_pages": math.ceil(total / page_size),
                "limit": page_size,
                "category_counts": self.archive_repo.category_counts(),
            }
        except ArchiveServiceError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to fetch archived documents: {str(e)}", e) from e

    def get_archived_record(self, record_id: Any) -> dict[str, Any]:
        """
        Get one archived record with its archived members when it is a compilation.

        Raises:
            NotFoundError: If neither table holds an archived row with this id
        """
        record_id = coerce_id(record_id)
        try:
            document = self.document_repo.get_archived(record_id)
            if document is not None:
                authors = self.author_repo.names_by_document([record_id])
                result = serialize_document(document, authors.get(record_id))
                record = self.resolve(record_id)
                result["is_compilation"] = record.is_compilation
                if record.is_compilation:
                    self._attach_archived_children(result, record_id)
                return result

            compiled = self.compiled_repo.get_archived(record_id)
            if compiled is None:
                raise NotFoundError("Archived document", record_id)
            result = serialize_compiled(compiled)
            result["document_type"] = compiled.category
            result["is_compilation"] = True
            self._attach_archived_children(result, record_id)
            return result
        except ArchiveServiceError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to fetch archived document: {str(e)}", e) from e

    def archive(
        self,
        document_id: Any,
        archive_children: bool = True,
        is_compiled: bool = False,
    ) -> dict[str, Any]:
        """
        Archive a document or compiled group, cascading to its members.

        The compiled path is taken when ``is_compiled`` is set or the id only
        exists as a compiled group. Every row of the record and, when
        ``archive_children`` is set, every active member gets the same
        timestamp. Rows that are already archived keep their timestamp.

        Returns:
            ``{document_id, is_compilation, archived_at, child_count, child_documents}``

        Raises:
            ValidationError: If document_id is invalid
            NotFoundError: If the record does not exist
            AlreadyArchivedError: If the record is already archived
            StorageError: If the transaction fails; nothing is written
        """
        document_id = coerce_id(document_id)

        try:
            record = self.resolve(document_id)
            if record is None:
                raise NotFoundError("Document", document_id)

            compiled_path = is_compiled or record.document is None
            if compiled_path:
                if record.compiled is None:
                    raise NotFoundError("Compiled document", document_id)
                primary, label = record.compiled, "Compiled document"
            else:
                primary, label = record.document, "Document"

            if primary.deleted_at is not None:
                logger.warning("Archive rejected, %s %s already archived", label.lower(), document_id)
                raise AlreadyArchivedError(label, document_id)

            now = utcnow()
            for row in record.rows():
                if row.deleted_at is None:
                    row.deleted_at = now
            self.session.flush()

            archived_children: list[int] = []
            is_compilation = compiled_path or record.is_compilation
            if is_compilation and archive_children:
                archived_children = self.document_repo.set_deleted_at(
                    self._member_ids(document_id), now
                )

            self.session.commit()
            logger.info(
                "Archived %s %s with %d child documents",
                label.lower(),
                document_id,
                len(archived_children),
            )
            return {
                "document_id": document_id,
                "is_compilation": is_compilation,
                "archived_at": normalize_value(now),
                "child_count": len(archived_children),
                "child_documents": archived_children,
            }
        except ArchiveServiceError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise StorageError(f"Failed to archive document: {str(e)}", e) from e

    def restore(self, document_id: Any) -> dict[str, Any]:
        """
        Restore an archived record and the archived members of a compilation.

        Before anything is written, the record is checked against active
        records it could be confused with: same title and type for a document
        row, same category and volume for a compiled row.

        Returns:
            ``{document_id, is_compilation, child_count, child_documents}``

        Raises:
            ValidationError: If document_id is invalid
            NotFoundError: If the id is in neither table
            NotArchivedError: If the record is not archived
            ConflictError: If an indistinguishable active record exists
            StorageError: If the transaction fails; nothing is written
        """
        document_id = coerce_id(document_id)

        try:
            record = self.resolve(document_id)
            if record is None:
                raise NotFoundError("Document", document_id)

            primary = record.document if record.document is not None else record.compiled
            label = "Document" if record.document is not None else "Compiled document"
            if primary.deleted_at is None:
                logger.warning("Restore rejected, %s %s is not archived", label.lower(), document_id)
                raise NotArchivedError(label, document_id)

            self._check_duplicates(record)

            for row in record.rows():
                row.deleted_at = None
            self.session.flush()

            restored_children: list[int] = []
            if record.is_compilation:
                restored_children = self.document_repo.set_deleted_at(
                    self._member_ids(document_id), None
                )

            self.session.commit()
            logger.info(
                "Restored %s %s with %d child documents",
                label.lower(),
                document_id,
                len(restored_children),
            )
            return {
                "document_id": document_id,
                "is_compilation": record.is_compilation,
                "child_count": len(restored_children),
                "child_documents": restored_children,
            }
        except ArchiveServiceError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise StorageError(f"Failed to restore document: {str(e)}", e) from e

    def get_archived_children(self, record_id: Any) -> dict[str, Any]:
        """
        List archived members of a compiled record, ordered by title.

        Raises:
            NotFoundError: If the id does not exist
            InvalidRequestError: If the id is not a compiled record
        """
        record_id = coerce_id(record_id)
        try:
            record = self.resolve(record_id)
            if record is None:
                raise NotFoundError("Compiled document", record_id)
            if not record.is_compilation:
                raise InvalidRequestError(f"Document '{record_id}' is not a compiled document")

            children = self._archived_children(record_id)
            return {
                "compiled_document_id": record_id,
                "documents": children,
                "count": len(children),
            }
        except ArchiveServiceError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to fetch archived child documents: {str(e)}", e) from e

    def category_counts(self) -> list[dict[str, Any]]:
        """Archived record counts per category; mirrored groups count once."""
        try:
            return self.archive_repo.category_counts()
        except Exception as e:
            raise StorageError(f"Failed to count archived documents: {str(e)}", e) from e

    def _member_ids(self, compiled_id: int) -> list[int]:
        return [
            member_id
            for member_id in self.compiled_repo.member_ids(compiled_id)
            if member_id != compiled_id
        ]

    def _archived_children(self, compiled_id: int) -> list[dict[str, Any]]:
        children = [
            child
            for child in self.document_repo.get_archived_members(compiled_id)
            if child.id != compiled_id
        ]
        authors = self.author_repo.names_by_document(child.id for child in children)
        return [serialize_document(child, authors.get(child.id)) for child in children]

    def _attach_archived_children(self, result: dict[str, Any], compiled_id: int) -> None:
        result["child_documents"] = self._archived_children(compiled_id)
        result["child_count"] = len(result["child_documents"])

    def _check_duplicates(self, record: ArchivableRecord) -> None:
        if record.document is not None:
            document = record.document
            duplicate = self.document_repo.find_active_duplicate(
                document.title, document.document_type, record.record_id
            )
            if duplicate is not None:
                logger.warning(
                    "Restore of document %s blocked by active document %s",
                    record.record_id,
                    duplicate.id,
                )
                raise ConflictError(
                    "document",
                    {"title": document.title, "document_type": document.document_type},
                    duplicate.id,
                )

        if record.compiled is not None:
            compiled = record.compiled
            duplicate = self.compiled_repo.find_active_duplicate(
                compiled.category, compiled.volume, record.record_id
            )
            if duplicate is not None:
                logger.warning(
                    "Restore of compiled document %s blocked by active compiled document %s",
                    record.record_id,
                    duplicate.id,
                )
                raise ConflictError(
                    "compiled document",
                    {"category": compiled.category, "volume": compiled.volume},
                    duplicate.id,
                )

    def _validate_page(self, page: int, page_size: int | None) -> int:
        if page_size is None:
            page_size = self.settings.default_page_size
        if not isinstance(page, int) or page < 1:
            raise ValidationError("page must be at least 1", "page")
        if not isinstance(page_size, int) or page_size < 1:
            raise ValidationError("size must be at least 1", "size")
        if page_size > self.settings.max_page_size:
            raise ValidationError(
                f"size must be at most {self.settings.max_page_size}", "size"
            )
        return page_size
