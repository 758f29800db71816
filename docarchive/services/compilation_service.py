"""Compiled group creation and membership management."""

import logging
from typing import Any

from sqlalchemy.orm import Session

from docarchive.exceptions import (
    ArchiveServiceError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from docarchive.models.compiled_document import CompiledDocument
from docarchive.serializers import serialize_compiled, serialize_document
from docarchive.services.archive_service import coerce_id
from docarchive.services.document_service import normalize_document_type
from docarchive.storage.repositories import (
    AuthorRepository,
    CompiledDocumentRepository,
    DocumentRepository,
)

logger = logging.getLogger(__name__)


def _optional_int(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", field) from None


class CompilationService:
    """
    Service layer for compiled groups.

    Membership lives in compiled_document_items. Every write here also keeps
    the documents.compiled_parent_id pointer in step, in the same transaction.
    """

    def __init__(self, session: Session):
        self.session = session
        self.compiled_repo = CompiledDocumentRepository(session)
        self.document_repo = DocumentRepository(session)
        self.author_repo = AuthorRepository(session)

    def create_compilation(
        self,
        category: str,
        volume: int | str | None = None,
        start_year: int | str | None = None,
        end_year: int | str | None = None,
        issue_number: int | str | None = None,
        department: str | None = None,
        document_ids: list[int] | None = None,
    ) -> CompiledDocument:
        """
        Create a compiled group and its memberships in one transaction.

        Raises:
            ValidationError: If a field is invalid or the year range is reversed
            NotFoundError: If a member document does not exist
            StorageError: If database operation fails
        """
        category = normalize_document_type(category, "category")
        volume = _optional_int(volume, "volume")
        start_year = _optional_int(start_year, "start_year")
        end_year = _optional_int(end_year, "end_year")
        issue_number = _optional_int(issue_number, "issue_number")
        if start_year is not None and end_year is not None and end_year < start_year:
            raise ValidationError("end_year cannot be before start_year", "end_year")
        member_ids = [coerce_id(value, "document_ids") for value in document_ids or []]

        try:
            compiled = CompiledDocument(
                category=category,
                volume=volume,
                start_year=start_year,
                end_year=end_year,
                issue_number=issue_number,
                department=department,
            )
            self.compiled_repo.create(compiled)

            for document_id in dict.fromkeys(member_ids):
                document = self.document_repo.get_by_id(document_id)
                if document is None:
                    raise NotFoundError("Document", document_id)
                self.compiled_repo.add_item(compiled.id, document_id)
                document.compiled_parent_id = compiled.id

            self.session.commit()
            logger.info(
                "Created compiled document %s with %d documents", compiled.id, len(member_ids)
            )
            return compiled
        except ArchiveServiceError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise StorageError(f"Failed to create compiled document: {str(e)}", e) from e

    def add_document(self, compiled_id: Any, document_id: Any) -> dict[str, Any]:
        """
        Add a document to a group. Adding an existing member is a no-op.

        Returns:
            ``{compiled_document_id, document_id, added}``
        """
        compiled_id = coerce_id(compiled_id, "compiled_document_id")
        document_id = coerce_id(document_id)

        try:
            if self.compiled_repo.get_by_id(compiled_id) is None:
                raise NotFoundError("Compiled document", compiled_id)
            document = self.document_repo.get_by_id(document_id)
            if document is None:
                raise NotFoundError("Document", document_id)

            added = self.compiled_repo.get_item(compiled_id, document_id) is None
            if added:
                self.compiled_repo.add_item(compiled_id, document_id)
            document.compiled_parent_id = compiled_id
            self.session.commit()

            if added:
                logger.info("Added document %s to compiled document %s", document_id, compiled_id)
            return {"compiled_document_id": compiled_id, "document_id": document_id, "added": added}
        except ArchiveServiceError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise StorageError(f"Failed to add document to compiled document: {str(e)}", e) from e

    def remove_document(self, compiled_id: Any, document_id: Any) -> dict[str, Any]:
        """
        Remove a document from a group.

        When the document's pointer referenced this group it moves to another
        group the document still belongs to, or is cleared.

        Raises:
            NotFoundError: If the document is not a member of the group
        """
        compiled_id = coerce_id(compiled_id, "compiled_document_id")
        document_id = coerce_id(document_id)

        try:
            if not self.compiled_repo.remove_item(compiled_id, document_id):
                raise NotFoundError("Compiled document item", f"{compiled_id}/{document_id}")

            document = self.document_repo.get_by_id(document_id)
            if document is not None and document.compiled_parent_id in (compiled_id, None):
                remaining = self.compiled_repo.group_ids_for(document_id)
                document.compiled_parent_id = remaining[0] if remaining else None

            self.session.commit()
            logger.info("Removed document %s from compiled document %s", document_id, compiled_id)
            return {"compiled_document_id": compiled_id, "document_id": document_id, "removed": True}
        except ArchiveServiceError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise StorageError(
                f"Failed to remove document from compiled document: {str(e)}", e
            ) from e

    def get_compilation(self, compiled_id: Any) -> dict[str, Any]:
        """Get an active compiled group with its active members ordered by title."""
        compiled_id = coerce_id(compiled_id, "compiled_document_id")
        compiled = self.compiled_repo.get_by_id(compiled_id)
        if compiled is None or compiled.deleted_at is not None:
            raise NotFoundError("Compiled document", compiled_id)

        children = [
            child
            for child in self.document_repo.get_active_members(compiled_id)
            if child.id != compiled_id
        ]
        authors = self.author_repo.names_by_document(child.id for child in children)
        result = serialize_compiled(compiled)
        result["child_documents"] = [
            serialize_document(child, authors.get(child.id)) for child in children
        ]
        result["child_count"] = len(children)
        return result
