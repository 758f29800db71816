"""Custom exceptions for archive service operations."""


class ArchiveServiceError(Exception):
    """Base exception for archive service errors."""

    status_code = 500
    error = "Internal server error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.error, "details": self.message}


class ValidationError(ArchiveServiceError):
    """Raised when input validation fails."""

    status_code = 400
    error = "Invalid request"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class InvalidRequestError(ArchiveServiceError):
    """Raised when an id resolves to a record of the wrong kind."""

    status_code = 400
    error = "Invalid request"


class NotFoundError(ArchiveServiceError):
    """Raised when a record is not found."""

    status_code = 404
    error = "Not found"

    def __init__(self, resource_type: str, resource_id: int | str):
        message = f"{resource_type} with ID '{resource_id}' not found"
        super().__init__(message)
        self.resource_type = resource_type
        self.resource_id = resource_id


class AlreadyArchivedError(ArchiveServiceError):
    """Raised when archiving a record that already carries a tombstone."""

    status_code = 400
    error = "Document is already archived"

    def __init__(self, resource_type: str, resource_id: int):
        message = f"{resource_type} with ID '{resource_id}' is already archived"
        super().__init__(message)
        self.resource_type = resource_type
        self.resource_id = resource_id


class NotArchivedError(ArchiveServiceError):
    """Raised when restoring a record that is not archived."""

    status_code = 400
    error = "Document is not archived"

    def __init__(self, resource_type: str, resource_id: int):
        message = f"{resource_type} with ID '{resource_id}' is not archived"
        super().__init__(message)
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(ArchiveServiceError):
    """Raised when a restore would produce two indistinguishable active records."""

    status_code = 409
    error = "Cannot restore document"

    def __init__(self, resource_type: str, fields: dict[str, object], existing_id: int):
        described = ", ".join(f"{key} '{value}'" for key, value in fields.items())
        message = f"An active {resource_type} with {described} already exists (ID '{existing_id}')"
        super().__init__(message)
        self.resource_type = resource_type
        self.fields = fields
        self.existing_id = existing_id


class InvalidTransitionError(ArchiveServiceError):
    """Raised when a document request changes status outside pending -> reviewed."""

    status_code = 400
    error = "Invalid status transition"

    def __init__(self, request_id: int, current: str, requested: str):
        message = f"Document request '{request_id}' cannot move from '{current}' to '{requested}'"
        super().__init__(message)
        self.request_id = request_id
        self.current = current
        self.requested = requested


class StorageError(ArchiveServiceError):
    """Raised when a database operation fails."""

    status_code = 500
    error = "Storage failure"

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.original_error = original_error
