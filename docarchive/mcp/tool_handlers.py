"""MCP tool handlers for executing tool operations."""

import json
import logging
from typing import Any, Awaitable, Callable

from mcp import McpError
from mcp.types import ErrorData, TextContent

from docarchive.exceptions import (
    AlreadyArchivedError,
    ConflictError,
    InvalidRequestError,
    InvalidTransitionError,
    NotArchivedError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from docarchive.services import ArchiveService, DocumentService, RequestService

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any], Any], Awaitable[list[TextContent]]]


def _text(result: Any) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(result, indent=2))]


# Archive handlers
async def handle_list_archived(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle list_archived tool."""
    with db.session() as session:
        result = ArchiveService(session).list_archived(
            page=arguments.get("page", 1),
            page_size=arguments.get("size"),
            document_type=arguments.get("type"),
            search=arguments.get("search"),
            compiled_only=bool(arguments.get("compiled_only", False)),
        )
        return _text(result)


async def handle_get_archived_record(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle get_archived_record tool."""
    with db.session() as session:
        return _text(ArchiveService(session).get_archived_record(arguments.get("document_id")))


async def handle_archive_document(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle archive_document tool."""
    with db.session() as session:
        result = ArchiveService(session).archive(
            arguments.get("document_id"),
            archive_children=bool(arguments.get("archive_children", True)),
            is_compiled=bool(arguments.get("is_compiled", False)),
        )
        return _text(result)


async def handle_restore_document(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle restore_document tool."""
    with db.session() as session:
        return _text(ArchiveService(session).restore(arguments.get("document_id")))


async def handle_get_archived_children(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle get_archived_children tool."""
    with db.session() as session:
        return _text(ArchiveService(session).get_archived_children(arguments.get("document_id")))


async def handle_archive_category_counts(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle archive_category_counts tool."""
    with db.session() as session:
        return _text({"category_counts": ArchiveService(session).category_counts()})


# Document handlers
async def handle_list_documents(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle list_documents tool."""
    with db.session() as session:
        result = DocumentService(session).list_documents(
            page=arguments.get("page", 1),
            page_size=arguments.get("size"),
            category=arguments.get("category"),
            volume=arguments.get("volume"),
            search=arguments.get("search"),
            sort=arguments.get("sort", "latest"),
        )
        return _text(result)


async def handle_check_document_access(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle check_document_access tool."""
    with db.session() as session:
        result = RequestService(session).check_access(
            arguments.get("document_id"), arguments.get("email")
        )
        return _text(result)


# Tool handler registry
TOOL_HANDLERS: dict[str, Handler] = {
    "list_archived": handle_list_archived,
    "get_archived_record": handle_get_archived_record,
    "archive_document": handle_archive_document,
    "restore_document": handle_restore_document,
    "get_archived_children": handle_get_archived_children,
    "archive_category_counts": handle_archive_category_counts,
    "list_documents": handle_list_documents,
    "check_document_access": handle_check_document_access,
}

# Custom error codes
NOT_FOUND = -32001
CONFLICT = -32002
INVALID_STATE = -32003


async def call_tool_handler(tool_name: str, arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """
    Call the appropriate tool handler.

    Args:
        tool_name: Name of the tool to call
        arguments: Tool arguments
        db: Database instance

    Returns:
        List of TextContent with tool execution result

    Raises:
        McpError: If tool name is unknown or handler raises an error
    """
    if tool_name not in TOOL_HANDLERS:
        raise McpError(
            ErrorData(
                code=-32601,  # Method not found
                message=f"Unknown tool: {tool_name}",
            )
        )

    handler = TOOL_HANDLERS[tool_name]

    try:
        return await handler(arguments, db)
    except McpError:
        raise
    except (ValidationError, InvalidRequestError) as e:
        raise McpError(
            ErrorData(
                code=-32602,  # Invalid params
                message=f"Validation error: {str(e)}",
            )
        ) from e
    except NotFoundError as e:
        raise McpError(ErrorData(code=NOT_FOUND, message=str(e))) from e
    except ConflictError as e:
        raise McpError(ErrorData(code=CONFLICT, message=str(e))) from e
    except (AlreadyArchivedError, NotArchivedError, InvalidTransitionError) as e:
        raise McpError(ErrorData(code=INVALID_STATE, message=str(e))) from e
    except StorageError as e:
        logger.error("Storage failure in tool %s: %s", tool_name, e, exc_info=e.original_error)
        raise McpError(
            ErrorData(
                code=-32603,  # Internal error
                message=f"Storage error: {str(e)}",
            )
        ) from e
    except Exception as e:
        logger.exception("Unexpected error handling tool %s", tool_name)
        raise McpError(
            ErrorData(
                code=-32603,
                message=f"Internal error: {str(e)}",
            )
        ) from e
