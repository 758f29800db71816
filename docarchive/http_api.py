"""HTTP API for the document archive service."""

import logging
from typing import Any, Generator, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from docarchive import __version__
from docarchive.config import configure_logging, get_settings
from docarchive.exceptions import ArchiveServiceError, StorageError
from docarchive.serializers import serialize_model
from docarchive.services import (
    ArchiveService,
    CompilationService,
    DocumentService,
    RequestService,
)
from docarchive.storage.database import Database

logger = logging.getLogger(__name__)


class ArchiveRequest(BaseModel):
    document_id: int
    archive_children: bool = True
    is_compiled: bool = False


class CompiledArchiveRequest(BaseModel):
    archive_children: bool = True


class DocumentCreate(BaseModel):
    title: str
    document_type: str
    abstract: Optional[str] = None
    publication_date: Optional[str] = None
    volume: Optional[str] = None
    issue_number: Optional[str] = None
    file_path: Optional[str] = None
    is_public: bool = False
    author_ids: list[int] = []


class CompilationCreate(BaseModel):
    category: str
    volume: Optional[int] = None
    start_year: Optional[int] = None
    end_year: Optional[int] = None
    issue_number: Optional[int] = None
    department: Optional[str] = None
    document_ids: list[int] = []


class DocumentRequestCreate(BaseModel):
    document_id: int
    full_name: str
    email: str
    affiliation: str
    reason: str
    reason_details: Optional[str] = None


class DocumentRequestReview(BaseModel):
    status: str
    reviewed_by: str
    review_notes: Optional[str] = None


def get_session(request: Request) -> Generator[Session, None, None]:
    """Open one session per request from the app's injected Database."""
    session = request.app.state.database.get_session()
    try:
        yield session
    finally:
        session.close()


router = APIRouter(prefix="/api")


# Archives

@router.get("/archives")
def list_archived(
    page: int = Query(1),
    size: Optional[int] = Query(None),
    document_type: Optional[str] = Query(None, alias="type"),
    search: Optional[str] = Query(None),
    compiled_only: bool = Query(False),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Archived documents and compiled groups, newest archive first."""
    return ArchiveService(session).list_archived(
        page=page,
        page_size=size,
        document_type=document_type,
        search=search,
        compiled_only=compiled_only,
    )


@router.get("/archives/categories")
def archive_categories(session: Session = Depends(get_session)) -> list[dict[str, Any]]:
    return ArchiveService(session).category_counts()


@router.get("/archives/{record_id}")
def get_archived_record(record_id: int, session: Session = Depends(get_session)) -> dict[str, Any]:
    return ArchiveService(session).get_archived_record(record_id)


@router.post("/archives")
def archive_document(body: ArchiveRequest, session: Session = Depends(get_session)) -> dict[str, Any]:
    result = ArchiveService(session).archive(
        body.document_id,
        archive_children=body.archive_children,
        is_compiled=body.is_compiled,
    )
    return {"message": "Document archived successfully", **result}


@router.post("/archives/compiled/{record_id}")
def archive_compiled(
    record_id: int,
    body: Optional[CompiledArchiveRequest] = None,
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Archive through the compiled path regardless of a mirrored document row."""
    archive_children = body.archive_children if body is not None else True
    result = ArchiveService(session).archive(
        record_id, archive_children=archive_children, is_compiled=True
    )
    return {"message": "Compiled document archived successfully", **result}


@router.delete("/archives/{record_id}")
def restore_document(record_id: int, session: Session = Depends(get_session)) -> dict[str, Any]:
    """Restore an archived record; the record itself is never deleted."""
    result = ArchiveService(session).restore(record_id)
    return {"message": "Document restored successfully", **result}


@router.get("/archives/{record_id}/children")
def get_archived_children(record_id: int, session: Session = Depends(get_session)) -> dict[str, Any]:
    return ArchiveService(session).get_archived_children(record_id)


# Documents

@router.get("/documents")
def list_documents(
    page: int = Query(1),
    size: Optional[int] = Query(None),
    category: Optional[str] = Query(None),
    volume: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort: str = Query("latest"),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    return DocumentService(session).list_documents(
        page=page,
        page_size=size,
        category=category,
        volume=volume,
        search=search,
        sort=sort,
    )


@router.post("/documents", status_code=201)
def create_document(body: DocumentCreate, session: Session = Depends(get_session)) -> dict[str, Any]:
    service = DocumentService(session)
    document = service.create_document(**body.model_dump())
    return service.get_document(document.id)


@router.get("/documents/{document_id}")
def get_document(document_id: int, session: Session = Depends(get_session)) -> dict[str, Any]:
    return DocumentService(session).get_document(document_id)


@router.get("/documents/{document_id}/access")
def check_document_access(
    document_id: int,
    email: Optional[str] = Query(None),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    return RequestService(session).check_access(document_id, email)


# Compiled documents

@router.post("/compiled-documents", status_code=201)
def create_compilation(
    body: CompilationCreate, session: Session = Depends(get_session)
) -> dict[str, Any]:
    service = CompilationService(session)
    compiled = service.create_compilation(**body.model_dump())
    return service.get_compilation(compiled.id)


@router.get("/compiled-documents/{compiled_id}")
def get_compilation(compiled_id: int, session: Session = Depends(get_session)) -> dict[str, Any]:
    return CompilationService(session).get_compilation(compiled_id)


@router.post("/compiled-documents/{compiled_id}/documents/{document_id}")
def add_compiled_member(
    compiled_id: int, document_id: int, session: Session = Depends(get_session)
) -> dict[str, Any]:
    return CompilationService(session).add_document(compiled_id, document_id)


@router.delete("/compiled-documents/{compiled_id}/documents/{document_id}")
def remove_compiled_member(
    compiled_id: int, document_id: int, session: Session = Depends(get_session)
) -> dict[str, Any]:
    return CompilationService(session).remove_document(compiled_id, document_id)


# Document requests

@router.post("/document-requests", status_code=201)
def create_document_request(
    body: DocumentRequestCreate, session: Session = Depends(get_session)
) -> dict[str, Any]:
    request = RequestService(session).create_request(**body.model_dump())
    return serialize_model(request)


@router.get("/document-requests")
def list_document_requests(
    status: Optional[str] = Query(None),
    document_id: Optional[int] = Query(None),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    requests = RequestService(session).list_requests(status=status, document_id=document_id)
    return {"requests": [serialize_model(request) for request in requests], "count": len(requests)}


@router.get("/document-requests/{request_id}")
def get_document_request(request_id: int, session: Session = Depends(get_session)) -> dict[str, Any]:
    return serialize_model(RequestService(session).get_request(request_id))


@router.patch("/document-requests/{request_id}")
def review_document_request(
    request_id: int,
    body: DocumentRequestReview,
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    request = RequestService(session).review_request(
        request_id, body.status, body.reviewed_by, body.review_notes
    )
    return serialize_model(request)


def create_app(database: Database | None = None) -> FastAPI:
    """
    Build the FastAPI application around an explicitly provided Database.

    Args:
        database: Database to serve; a new one is built from settings when omitted

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Document Archive Service",
        description="Archive, restore and browse documents and compiled volumes",
        version=__version__,
    )
    app.state.database = database or Database()

    @app.exception_handler(ArchiveServiceError)
    async def archive_error_handler(request: Request, exc: ArchiveServiceError) -> JSONResponse:
        if isinstance(exc, StorageError):
            logger.error(
                "Storage failure on %s %s: %s",
                request.method,
                request.url.path,
                exc.message,
                exc_info=exc.original_error,
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})

    @app.get("/health")
    def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "docarchive"}

    app.include_router(router)
    return app


def main() -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings)
    uvicorn.run(create_app(Database()), host=settings.http_host, port=settings.http_port)


if __name__ == "__main__":
    main()
