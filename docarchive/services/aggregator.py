"""Reshape joined document rows into listing cards.

A relational join of documents with their authors and topics yields one row
per (document, author, topic) combination. :func:`aggregate` folds those rows
back into one entry per document, and folds documents that belong to a
compiled group into a single synthetic entry for that group, so that a page
shows cards rather than rows.

Rows may also arrive pre-aggregated (``authors``/``topics`` already lists, as
produced by a ``GROUP BY`` with array aggregation); both shapes are accepted.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping, Optional

from docarchive.exceptions import ValidationError
from docarchive.models.compiled_document import compiled_title

SORT_LATEST = "latest"
SORT_EARLIEST = "earliest"
SORT_TITLE = "title"
SORT_OPTIONS = (SORT_LATEST, SORT_EARLIEST, SORT_TITLE)

DOCUMENT_FIELDS = (
    "id",
    "title",
    "abstract",
    "publication_date",
    "document_type",
    "volume",
    "issue_number",
    "file_path",
    "is_public",
)


def _row_authors(row: Mapping[str, Any]) -> list[str]:
    authors = row.get("authors")
    if isinstance(authors, (list, tuple)):
        names = []
        for author in authors:
            name = author.get("full_name") if isinstance(author, Mapping) else author
            if name:
                names.append(name)
        return names
    name = row.get("author_name")
    return [name] if name else []


def _row_topics(row: Mapping[str, Any]) -> list[dict[str, Any]]:
    topics = row.get("topics")
    if isinstance(topics, (list, tuple)):
        result = []
        for topic in topics:
            if isinstance(topic, Mapping):
                if topic.get("name"):
                    result.append({"id": topic.get("id"), "name": topic["name"]})
            elif topic:
                result.append({"id": None, "name": topic})
        return result
    name = row.get("topic_name")
    return [{"id": row.get("topic_id"), "name": name}] if name else []


def _merge_names(target: list[str], names: Iterable[str]) -> None:
    for name in names:
        if name not in target:
            target.append(name)


def _merge_topics(target: list[dict[str, Any]], topics: Iterable[dict[str, Any]]) -> None:
    seen = {(topic["id"], topic["name"]) for topic in target}
    for topic in topics:
        key = (topic["id"], topic["name"])
        if key not in seen:
            seen.add(key)
            target.append(topic)


def _new_document(row: Mapping[str, Any]) -> dict[str, Any]:
    entry = {field: row.get(field) for field in DOCUMENT_FIELDS}
    entry["is_public"] = bool(entry["is_public"])
    entry["authors"] = []
    entry["topics"] = []
    entry["is_compiled"] = False
    return entry


def _new_compiled(compiled_id: Any, row: Mapping[str, Any]) -> dict[str, Any]:
    category = row.get("compiled_category")
    volume = row.get("compiled_volume")
    start_year = row.get("compiled_start_year")
    end_year = row.get("compiled_end_year")

    if category is None and volume is None:
        # Group row missing from the join; still show its members together
        title = f"Compiled Document {compiled_id}"
    else:
        title = compiled_title(category or row.get("document_type"), volume, start_year, end_year)

    return {
        "id": compiled_id,
        "title": title,
        "document_type": category or row.get("document_type"),
        "volume": volume,
        "start_year": start_year,
        "end_year": end_year,
        "publication_date": None,
        "authors": [],
        "topics": [],
        "is_compiled": True,
        "child_count": 0,
        "child_documents": [],
    }


def _child_dates(entry: Mapping[str, Any]) -> list[str]:
    return [child["publication_date"] for child in entry["child_documents"] if child["publication_date"]]


def _sort_date(entry: Mapping[str, Any], sort: str) -> Optional[str]:
    if not entry["is_compiled"]:
        return entry["publication_date"]
    dates = _child_dates(entry)
    if not dates:
        return None
    return min(dates) if sort == SORT_EARLIEST else max(dates)


def sort_entries(entries: list[dict[str, Any]], sort: Optional[str]) -> list[dict[str, Any]]:
    """
    Order standalone and compiled entries together by one criterion.

    Dates are ISO strings, so lexical order is chronological. Entries without a
    date go last; ties keep their arrival order.
    """
    if sort is None:
        return list(entries)
    if sort == SORT_TITLE:
        return sorted(entries, key=lambda entry: (entry["title"] or "").casefold())

    dated = [entry for entry in entries if _sort_date(entry, sort)]
    undated = [entry for entry in entries if not _sort_date(entry, sort)]
    dated.sort(key=lambda entry: _sort_date(entry, sort), reverse=(sort == SORT_LATEST))
    return dated + undated


def group_rows(rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """
    Fold joined rows into distinct entries in first-seen order.

    Returns:
        Standalone document entries and synthetic compiled entries, each with
        de-duplicated ``authors`` and ``topics`` lists
    """
    documents: dict[Any, dict[str, Any]] = {}
    compiled: dict[Any, dict[str, Any]] = {}
    entries: list[dict[str, Any]] = []
    seen_standalone: set[Any] = set()
    child_ids: dict[Any, set[Any]] = {}

    for row in rows:
        document_id = row.get("id")
        document = documents.get(document_id)
        if document is None:
            document = documents[document_id] = _new_document(row)
        _merge_names(document["authors"], _row_authors(row))
        _merge_topics(document["topics"], _row_topics(row))

        compiled_id = row.get("compiled_document_id")
        if compiled_id is None:
            if document_id not in seen_standalone:
                seen_standalone.add(document_id)
                entries.append(document)
            continue

        parent = compiled.get(compiled_id)
        if parent is None:
            parent = compiled[compiled_id] = _new_compiled(compiled_id, row)
            child_ids[compiled_id] = set()
            entries.append(parent)
        if document_id not in child_ids[compiled_id]:
            child_ids[compiled_id].add(document_id)
            parent["child_documents"].append(document)

    for parent in compiled.values():
        for child in parent["child_documents"]:
            _merge_names(parent["authors"], child["authors"])
        parent["child_count"] = len(parent["child_documents"])
        dates = _child_dates(parent)
        parent["publication_date"] = max(dates) if dates else None

    return entries


def aggregate(
    rows: Iterable[Mapping[str, Any]],
    page_size: int,
    page: int = 1,
    sort: Optional[str] = SORT_LATEST,
) -> dict[str, Any]:
    """
    Turn joined rows into one page of document cards.

    Args:
        rows: Joined rows, one per document x author x topic (or pre-aggregated)
        page_size: Cards per page (>= 1)
        page: 1-based page number
        sort: One of ``latest``, ``earliest``, ``title``; None keeps arrival order

    Returns:
        ``{documents, totalCount, totalPages, currentPage}``; a compiled group
        counts as one card however many members it has

    Raises:
        ValidationError: If page, page_size or sort is invalid
    """
    if not isinstance(page_size, int) or page_size < 1:
        raise ValidationError("page size must be at least 1", "size")
    if not isinstance(page, int) or page < 1:
        raise ValidationError("page must be at least 1", "page")
    if sort is not None and sort not in SORT_OPTIONS:
        raise ValidationError(f"sort must be one of {', '.join(SORT_OPTIONS)}", "sort")

    entries = sort_entries(group_rows(rows), sort)
    total_count = len(entries)
    offset = (page - 1) * page_size

    return {
        "documents": entries[offset : offset + page_size],
        "totalCount": total_count,
        "totalPages": math.ceil(total_count / page_size),
        "currentPage": page,
    }
