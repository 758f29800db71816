"""Model serialization for HTTP and MCP responses."""

from typing import Any

from sqlalchemy import inspect

from docarchive.storage.normalize import normalize_value


def serialize_model(obj: Any) -> dict[str, Any]:
    """
    Serialize a SQLAlchemy model to dictionary.

    Only mapped columns are included; relationships are left for callers to
    attach explicitly.

    Args:
        obj: SQLAlchemy model instance

    Returns:
        Dictionary representation of the model
    """
    mapper = inspect(obj).mapper
    return {
        attr.key: normalize_value(getattr(obj, attr.key))
        for attr in mapper.column_attrs
    }


def serialize_document(document: Any, authors: str | None = None) -> dict[str, Any]:
    """Serialize a document with its concatenated author names."""
    result = serialize_model(document)
    result["authors"] = authors
    return result


def serialize_compiled(compiled: Any) -> dict[str, Any]:
    result = serialize_model(compiled)
    result["title"] = compiled.title
    return result
