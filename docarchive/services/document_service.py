"""Document service layer for active documents."""

import logging
from datetime import date
from typing import Any

from sqlalchemy.orm import Session

from docarchive.config import Settings, get_settings
from docarchive.exceptions import (
    ArchiveServiceError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from docarchive.models.document import Document, DocumentType
from docarchive.serializers import serialize_document
from docarchive.services.aggregator import SORT_LATEST, SORT_OPTIONS, aggregate
from docarchive.services.archive_service import coerce_id
from docarchive.storage.repositories import AuthorRepository, DocumentRepository

logger = logging.getLogger(__name__)


def normalize_document_type(value: Any, field: str = "document_type") -> str:
    """Upper-case and validate a category name for write paths."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field)
    try:
        return DocumentType.normalize(value).value
    except ValueError:
        allowed = ", ".join(member.value for member in DocumentType)
        raise ValidationError(f"{field} must be one of {allowed}", field) from None


class DocumentService:
    """Service layer for creating and listing active documents."""

    TITLE_MAX_LENGTH = 500

    def __init__(self, session: Session, settings: Settings | None = None):
        """
        Initialize document service with database session.

        Args:
            session: SQLAlchemy database session
            settings: Optional settings override (page size limits)
        """
        self.session = session
        self.settings = settings or get_settings()
        self.document_repo = DocumentRepository(session)
        self.author_repo = AuthorRepository(session)

    def create_document(
        self,
        title: str,
        document_type: str,
        abstract: str | None = None,
        publication_date: date | str | None = None,
        volume: str | None = None,
        issue_number: str | None = None,
        file_path: str | None = None,
        is_public: bool = False,
        author_ids: list[int] | None = None,
    ) -> Document:
        """
        Create a new active document.

        Args:
            title: Document title (required, non-empty)
            document_type: Category, matched case-insensitively against DocumentType
            publication_date: ``date`` or ISO ``YYYY-MM-DD`` string
            author_ids: Existing author ids, linked in the given order

        Raises:
            ValidationError: If a field is invalid
            NotFoundError: If an author does not exist
            StorageError: If database operation fails
        """
        self._validate_title(title)
        document_type = normalize_document_type(document_type)
        if isinstance(publication_date, str):
            try:
                publication_date = date.fromisoformat(publication_date)
            except ValueError:
                raise ValidationError(
                    "publication_date must be an ISO date (YYYY-MM-DD)", "publication_date"
                ) from None

        try:
            document = Document(
                title=title.strip(),
                document_type=document_type,
                abstract=abstract,
                publication_date=publication_date,
                volume=volume,
                issue_number=issue_number,
                file_path=file_path,
                is_public=bool(is_public),
            )
            self.document_repo.create(document)

            for order, author_id in enumerate(author_ids or []):
                if self.author_repo.get_by_id(author_id) is None:
                    raise NotFoundError("Author", author_id)
                self.author_repo.link(document.id, author_id, order)

            self.session.commit()
            logger.info("Created document %s (%s)", document.id, document_type)
            return document
        except ArchiveServiceError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise StorageError(f"Failed to create document: {str(e)}", e) from e

    def get_document(self, document_id: Any) -> dict[str, Any]:
        """Get an active document with its author names."""
        document_id = coerce_id(document_id)
        document = self.document_repo.get_by_id(document_id)
        if document is None or document.deleted_at is not None:
            raise NotFoundError("Document", document_id)
        authors = self.author_repo.names_by_document([document_id])
        return serialize_document(document, authors.get(document_id))

    def list_documents(
        self,
        page: int = 1,
        page_size: int | None = None,
        category: str | None = None,
        volume: str | None = None,
        search: str | None = None,
        sort: str | None = SORT_LATEST,
    ) -> dict[str, Any]:
        """
        List active documents as cards, folding compiled members into their group.

        Args:
            page: 1-based page number
            page_size: Cards per page; defaults to settings.default_page_size
            category: Optional category filter ("All" disables it)
            volume: Optional exact volume filter
            search: Case-insensitive match on title, abstract or author name
            sort: ``latest`` (default), ``earliest`` or ``title``

        Returns:
            ``{documents, totalCount, totalPages, currentPage}``
        """
        if page_size is None:
            page_size = self.settings.default_page_size
        if isinstance(page_size, int) and page_size > self.settings.max_page_size:
            raise ValidationError(f"size must be at most {self.settings.max_page_size}", "size")
        if sort is not None and sort not in SORT_OPTIONS:
            raise ValidationError(f"sort must be one of {', '.join(SORT_OPTIONS)}", "sort")
        if category and category.strip().lower() == "all":
            category = None

        try:
            rows = self.document_repo.list_active_rows(
                category=category.strip() if category else None,
                volume=volume.strip() if volume else None,
                search=search.strip() if search else None,
            )
        except Exception as e:
            raise StorageError(f"Failed to fetch documents: {str(e)}", e) from e

        return aggregate(rows, page_size=page_size, page=page, sort=sort)

    def _validate_title(self, title: str) -> None:
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("Title cannot be empty", "title")
        if len(title) > self.TITLE_MAX_LENGTH:
            raise ValidationError(
                f"Title must be at most {self.TITLE_MAX_LENGTH} characters", "title"
            )
