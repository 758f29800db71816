"""MCP tool schema definitions."""

from typing import Any

_CATEGORIES = ["THESIS", "DISSERTATION", "CONFLUENCE", "SYNERGY", "RESEARCH_STUDY"]

_ID = {"type": "integer", "minimum": 1}


def get_tool_schemas() -> dict[str, dict[str, Any]]:
    """Get all MCP tool schemas."""
    return {
        "list_archived": {
            "name": "list_archived",
            "description": "List archived documents and compiled volumes, most recently archived first",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "page": {"type": "integer", "minimum": 1, "description": "1-based page (default: 1)"},
                    "size": {"type": "integer", "minimum": 1, "description": "Records per page"},
                    "type": {
                        "type": "string",
                        "description": f"Category filter, one of {', '.join(_CATEGORIES)} or All",
                    },
                    "search": {
                        "type": "string",
                        "description": "Case-insensitive match on title or abstract",
                    },
                    "compiled_only": {
                        "type": "boolean",
                        "description": "Only compiled volumes and their members (default: false)",
                    },
                },
            },
        },
        "get_archived_record": {
            "name": "get_archived_record",
            "description": "Get one archived document or compiled volume with its archived members",
            "inputSchema": {
                "type": "object",
                "properties": {"document_id": {**_ID, "description": "Record ID"}},
                "required": ["document_id"],
            },
        },
        "archive_document": {
            "name": "archive_document",
            "description": (
                "Archive a document or compiled volume. Members of a compiled volume are "
                "archived with it in the same transaction"
            ),
            "inputSchema": {
                "type": "object",
                "properties": {
                    "document_id": {**_ID, "description": "Record ID"},
                    "archive_children": {
                        "type": "boolean",
                        "description": "Also archive members of a compiled volume (default: true)",
                    },
                    "is_compiled": {
                        "type": "boolean",
                        "description": "Treat the ID as a compiled volume (default: false)",
                    },
                },
                "required": ["document_id"],
            },
        },
        "restore_document": {
            "name": "restore_document",
            "description": (
                "Restore an archived record and its archived members. Fails if an active "
                "record with the same title and type (or category and volume) exists"
            ),
            "inputSchema": {
                "type": "object",
                "properties": {"document_id": {**_ID, "description": "Record ID"}},
                "required": ["document_id"],
            },
        },
        "get_archived_children": {
            "name": "get_archived_children",
            "description": "List archived members of a compiled volume, ordered by title",
            "inputSchema": {
                "type": "object",
                "properties": {"document_id": {**_ID, "description": "Compiled volume ID"}},
                "required": ["document_id"],
            },
        },
        "archive_category_counts": {
            "name": "archive_category_counts",
            "description": "Count archived records per category",
            "inputSchema": {"type": "object", "properties": {}},
        },
        "list_documents": {
            "name": "list_documents",
            "description": "List active documents; members of a compiled volume are grouped under it",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "page": {"type": "integer", "minimum": 1},
                    "size": {"type": "integer", "minimum": 1},
                    "category": {"type": "string", "description": "Category filter or All"},
                    "volume": {"type": "string"},
                    "search": {
                        "type": "string",
                        "description": "Case-insensitive match on title, abstract or author",
                    },
                    "sort": {"type": "string", "enum": ["latest", "earliest", "title"]},
                },
            },
        },
        "check_document_access": {
            "name": "check_document_access",
            "description": "Check whether a reader may open a document",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "document_id": {**_ID, "description": "Document ID"},
                    "email": {"type": "string", "description": "Reader email"},
                },
                "required": ["document_id"],
            },
        },
    }
