"""Document access requests and the access gate for non-public documents."""

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from docarchive.exceptions import (
    ArchiveServiceError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from docarchive.models.document_request import DocumentRequest, RequestStatus
from docarchive.services.archive_service import coerce_id
from docarchive.storage.repositories import DocumentRepository, DocumentRequestRepository

logger = logging.getLogger(__name__)

REVIEW_OUTCOMES = (RequestStatus.APPROVED.value, RequestStatus.REJECTED.value)


class RequestService:
    """Service layer for document requests."""

    REQUIRED_FIELDS = ("full_name", "email", "affiliation", "reason")

    def __init__(self, session: Session):
        self.session = session
        self.request_repo = DocumentRequestRepository(session)
        self.document_repo = DocumentRepository(session)

    def create_request(
        self,
        document_id: Any,
        full_name: str,
        email: str,
        affiliation: str,
        reason: str,
        reason_details: str | None = None,
    ) -> DocumentRequest:
        """
        File a pending request to view a document.

        Raises:
            ValidationError: If a required field is missing or the email is malformed
            NotFoundError: If the document does not exist
            StorageError: If database operation fails
        """
        document_id = coerce_id(document_id)
        values = {
            "full_name": full_name,
            "email": email,
            "affiliation": affiliation,
            "reason": reason,
        }
        for field in self.REQUIRED_FIELDS:
            value = values[field]
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"{field} is required", field)
        if "@" not in email.strip()[1:-1]:
            raise ValidationError("email is not a valid address", "email")

        try:
            if self.document_repo.get_by_id(document_id) is None:
                raise NotFoundError("Document", document_id)

            request = DocumentRequest(
                document_id=document_id,
                full_name=full_name.strip(),
                email=email.strip(),
                affiliation=affiliation.strip(),
                reason=reason.strip(),
                reason_details=reason_details,
                status=RequestStatus.PENDING.value,
            )
            self.request_repo.create(request)
            self.session.commit()
            logger.info("Created document request %s for document %s", request.id, document_id)
            return request
        except ArchiveServiceError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise StorageError(f"Failed to create document request: {str(e)}", e) from e

    def get_request(self, request_id: Any) -> DocumentRequest:
        request_id = coerce_id(request_id, "request_id")
        request = self.request_repo.get_by_id(request_id)
        if request is None:
            raise NotFoundError("Document request", request_id)
        return request

    def list_requests(
        self, status: str | None = None, document_id: Any = None
    ) -> list[DocumentRequest]:
        """List requests, newest first, optionally filtered by status and document."""
        if status is not None:
            status = status.strip().lower()
            if status not in {member.value for member in RequestStatus}:
                raise ValidationError(f"Unknown request status '{status}'", "status")
        if document_id is not None:
            document_id = coerce_id(document_id)
        try:
            return self.request_repo.list(status=status, document_id=document_id)
        except Exception as e:
            raise StorageError(f"Failed to fetch document requests: {str(e)}", e) from e

    def review_request(
        self,
        request_id: Any,
        status: str,
        reviewed_by: str,
        review_notes: str | None = None,
    ) -> DocumentRequest:
        """
        Approve or reject a pending request.

        Only ``pending`` requests can be reviewed; approved and rejected are
        terminal.

        Raises:
            ValidationError: If status is not approved/rejected or reviewer is missing
            NotFoundError: If the request does not exist
            InvalidTransitionError: If the request was already reviewed
        """
        status = status.strip().lower() if isinstance(status, str) else status
        if status not in REVIEW_OUTCOMES:
            raise ValidationError(
                f"status must be one of {', '.join(REVIEW_OUTCOMES)}", "status"
            )
        if not isinstance(reviewed_by, str) or not reviewed_by.strip():
            raise ValidationError("reviewed_by is required", "reviewed_by")

        try:
            request = self.get_request(request_id)
            if request.status != RequestStatus.PENDING.value:
                logger.warning(
                    "Review of document request %s rejected, already %s", request.id, request.status
                )
                raise InvalidTransitionError(request.id, request.status, status)

            request.status = status
            request.reviewed_by = reviewed_by.strip()
            request.reviewed_at = datetime.now(timezone.utc)
            request.review_notes = review_notes
            self.session.commit()
            logger.info("Document request %s %s by %s", request.id, status, request.reviewed_by)
            return request
        except ArchiveServiceError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise StorageError(f"Failed to review document request: {str(e)}", e) from e

    def check_access(self, document_id: Any, email: str | None = None) -> dict[str, Any]:
        """
        Decide whether a reader may open a document.

        Public documents are always allowed. Non-public documents need an
        approved request for the same document and email.

        Returns:
            ``{document_id, allowed, reason}``
        """
        document_id = coerce_id(document_id)
        try:
            document = self.document_repo.get_by_id(document_id)
            if document is None:
                raise NotFoundError("Document", document_id)

            if document.is_public:
                allowed, reason = True, "public"
            elif not email or not email.strip():
                allowed, reason = False, "email_required"
            elif self.request_repo.has_approved(document_id, email):
                allowed, reason = True, "approved_request"
            else:
                allowed, reason = False, "no_approved_request"
            return {"document_id": document_id, "allowed": allowed, "reason": reason}
        except ArchiveServiceError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to check document access: {str(e)}", e) from e
