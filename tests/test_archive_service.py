"""Tests for archiving, restoring and listing archived records."""

from datetime import date, datetime

import pytest
from sqlalchemy.exc import SQLAlchemyError

pytestmark = pytest.mark.unit

from docarchive.exceptions import (
    AlreadyArchivedError,
    ConflictError,
    InvalidRequestError,
    NotArchivedError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from docarchive.models.compiled_document import CompiledDocument
from docarchive.models.document import Document
from docarchive.services.archive_service import ArchivableRecord
from docarchive.storage.repositories import DocumentRepository

EARLIER = datetime(2024, 1, 15, 9, 30, 0)
LATER = datetime(2024, 3, 1, 12, 0, 0)


class TestArchiveDocument:
    """Tests for archiving standalone documents."""

    def test_archive_sets_tombstone(self, archive_service, seed, deleted_at):
        """Test archiving an active document."""
        doc = seed.document("Soil Microbes")

        result = archive_service.archive(doc.id)

        assert result["document_id"] == doc.id
        assert result["is_compilation"] is False
        assert result["child_count"] == 0
        assert result["child_documents"] == []
        assert isinstance(result["archived_at"], str)
        assert deleted_at(Document, doc.id) is not None

    def test_archive_already_archived_keeps_timestamp(self, archive_service, seed, deleted_at):
        """Test archiving twice is rejected and the first timestamp survives."""
        doc = seed.document("Soil Microbes", deleted_at=EARLIER)

        with pytest.raises(AlreadyArchivedError):
            archive_service.archive(doc.id)

        assert deleted_at(Document, doc.id) == EARLIER

    def test_archive_twice_through_service(self, archive_service, seed, deleted_at):
        """Test the second archive call leaves the first tombstone untouched."""
        doc = seed.document("Soil Microbes")
        archive_service.archive(doc.id)
        first = deleted_at(Document, doc.id)

        with pytest.raises(AlreadyArchivedError):
            archive_service.archive(doc.id)

        assert deleted_at(Document, doc.id) == first

    def test_archive_not_found(self, archive_service):
        """Test archiving an unknown id."""
        with pytest.raises(NotFoundError):
            archive_service.archive(999)

    @pytest.mark.parametrize("bad_id", [None, "abc", 0, -3, True])
    def test_archive_invalid_id(self, archive_service, bad_id):
        """Test malformed ids are rejected before touching storage."""
        with pytest.raises(ValidationError):
            archive_service.archive(bad_id)

    def test_archive_accepts_digit_string(self, archive_service, seed, deleted_at):
        doc = seed.document("Soil Microbes")
        archive_service.archive(str(doc.id))
        assert deleted_at(Document, doc.id) is not None

    def test_archive_compiled_flag_without_compiled_row(self, archive_service, seed):
        """Test forcing the compiled path for an id that is only a document."""
        doc = seed.document("Soil Microbes")
        with pytest.raises(NotFoundError):
            archive_service.archive(doc.id, is_compiled=True)


class TestArchiveCompilation:
    """Tests for cascading archive of compiled groups."""

    def test_cascade_writes_one_timestamp(self, archive_service, seed, deleted_at):
        """Test the group and all active members share the archive timestamp."""
        children = [seed.document(f"Paper {i}", "CONFLUENCE") for i in range(3)]
        compiled = seed.compilation(children)

        result = archive_service.archive(compiled.id, is_compiled=True)

        assert result["is_compilation"] is True
        assert result["child_count"] == 3
        assert result["child_documents"] == sorted(child.id for child in children)

        parent_stamp = deleted_at(CompiledDocument, compiled.id)
        assert parent_stamp is not None
        for child in children:
            assert deleted_at(Document, child.id) == parent_stamp

    def test_cascade_routes_compiled_only_id(self, archive_service, seed, deleted_at):
        """Test an id found only among compiled groups takes the compiled path."""
        children = [seed.document("Paper A", "CONFLUENCE")]
        compiled = seed.compilation(children, id=500)

        result = archive_service.archive(500)

        assert result["is_compilation"] is True
        assert deleted_at(CompiledDocument, compiled.id) is not None

    def test_cascade_skips_already_archived_child(self, archive_service, seed, deleted_at):
        """Test a member archived earlier keeps its own timestamp."""
        old = seed.document("Old Paper", "CONFLUENCE", deleted_at=EARLIER)
        fresh = seed.document("Fresh Paper", "CONFLUENCE")
        compiled = seed.compilation([old, fresh])

        result = archive_service.archive(compiled.id, is_compiled=True)

        assert result["child_documents"] == [fresh.id]
        assert deleted_at(Document, old.id) == EARLIER
        assert deleted_at(Document, fresh.id) == deleted_at(CompiledDocument, compiled.id)

    def test_archive_without_children(self, archive_service, seed, deleted_at):
        """Test archive_children=False leaves members active."""
        child = seed.document("Paper A", "CONFLUENCE")
        compiled = seed.compilation([child])

        result = archive_service.archive(compiled.id, archive_children=False, is_compiled=True)

        assert result["child_count"] == 0
        assert deleted_at(CompiledDocument, compiled.id) is not None
        assert deleted_at(Document, child.id) is None

    def test_mirrored_record_archives_both_rows(self, archive_service, seed, deleted_at):
        """Test a document and compiled group sharing an id are archived together."""
        child = seed.document("Paper A", "SYNERGY")
        seed.compilation([child], category="SYNERGY", id=70)
        seed.document("SYNERGY Vol. 1", "SYNERGY", id=70)

        result = archive_service.archive(70)

        assert result["is_compilation"] is True
        assert result["child_documents"] == [child.id]
        stamp = deleted_at(Document, 70)
        assert stamp is not None
        assert deleted_at(CompiledDocument, 70) == stamp
        assert deleted_at(Document, child.id) == stamp

    def test_failed_cascade_changes_nothing(
        self, archive_service, seed, deleted_at, monkeypatch
    ):
        """Test a failure after the parent write rolls every row back."""
        children = [seed.document(f"Paper {i}", "CONFLUENCE") for i in range(3)]
        compiled = seed.compilation(children)

        original = DocumentRepository.set_deleted_at

        def failing(self, document_ids, value):
            original(self, document_ids, value)
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(DocumentRepository, "set_deleted_at", failing)

        with pytest.raises(StorageError) as exc_info:
            archive_service.archive(compiled.id, is_compiled=True)

        assert "disk I/O error" in str(exc_info.value)
        assert isinstance(exc_info.value.original_error, SQLAlchemyError)
        assert deleted_at(CompiledDocument, compiled.id) is None
        for child in children:
            assert deleted_at(Document, child.id) is None

    def test_compiled_already_archived(self, archive_service, seed):
        compiled = seed.compilation([], deleted_at=EARLIER)
        with pytest.raises(AlreadyArchivedError):
            archive_service.archive(compiled.id, is_compiled=True)


class TestRestore:
    """Tests for restoring archived records."""

    def test_restore_round_trip(self, archive_service, seed, temp_db):
        """Test archive then restore returns the record to its original state."""
        doc = seed.document(
            "Coastal Erosion",
            "RESEARCH_STUDY",
            abstract="Shoreline change",
            publication_date=date(2021, 6, 1),
            volume="4",
            is_public=True,
        )

        archive_service.archive(doc.id)
        result = archive_service.restore(doc.id)

        assert result == {
            "document_id": doc.id,
            "is_compilation": False,
            "child_count": 0,
            "child_documents": [],
        }
        with temp_db.session() as session:
            restored = session.get(Document, doc.id)
            assert restored.deleted_at is None
            assert restored.title == "Coastal Erosion"
            assert restored.document_type == "RESEARCH_STUDY"
            assert restored.abstract == "Shoreline change"
            assert restored.publication_date == date(2021, 6, 1)
            assert restored.volume == "4"
            assert restored.is_public is True

    def test_restore_not_found(self, archive_service):
        with pytest.raises(NotFoundError):
            archive_service.restore(12345)

    def test_restore_not_archived(self, archive_service, seed):
        """Test restoring an active document."""
        doc = seed.document("Active Paper")
        with pytest.raises(NotArchivedError):
            archive_service.restore(doc.id)

    def test_restore_rejects_duplicate_title_and_type(self, archive_service, seed, deleted_at):
        """Test an active twin blocks the restore and nothing changes."""
        archived = seed.document("Urban Heat", "THESIS", deleted_at=EARLIER)
        active = seed.document("Urban Heat", "THESIS")

        with pytest.raises(ConflictError) as exc_info:
            archive_service.restore(archived.id)

        assert exc_info.value.existing_id == active.id
        assert deleted_at(Document, archived.id) == EARLIER

    def test_restore_allows_same_title_other_type(self, archive_service, seed, deleted_at):
        archived = seed.document("Urban Heat", "THESIS", deleted_at=EARLIER)
        seed.document("Urban Heat", "DISSERTATION")

        archive_service.restore(archived.id)

        assert deleted_at(Document, archived.id) is None

    def test_restore_ignores_archived_twin(self, archive_service, seed, deleted_at):
        archived = seed.document("Urban Heat", "THESIS", deleted_at=EARLIER)
        seed.document("Urban Heat", "THESIS", deleted_at=LATER)

        archive_service.restore(archived.id)

        assert deleted_at(Document, archived.id) is None

    def test_restore_rejects_duplicate_category_and_volume(
        self, archive_service, seed, deleted_at
    ):
        """Test an active group with the same category and volume blocks the restore."""
        archived = seed.compilation([], category="CONFLUENCE", volume=3, deleted_at=EARLIER)
        seed.compilation([], category="CONFLUENCE", volume=3)

        with pytest.raises(ConflictError):
            archive_service.restore(archived.id)

        assert deleted_at(CompiledDocument, archived.id) == EARLIER

    def test_restore_cascade(self, archive_service, seed, deleted_at):
        """Test archived members come back and an active member is left alone."""
        first = seed.document("Paper A", "CONFLUENCE", deleted_at=EARLIER)
        second = seed.document("Paper B", "CONFLUENCE", deleted_at=EARLIER)
        already_active = seed.document("Paper C", "CONFLUENCE")
        compiled = seed.compilation([first, second, already_active], deleted_at=EARLIER)

        result = archive_service.restore(compiled.id)

        assert result["is_compilation"] is True
        assert result["child_documents"] == sorted([first.id, second.id])
        assert deleted_at(CompiledDocument, compiled.id) is None
        for child in (first, second, already_active):
            assert deleted_at(Document, child.id) is None

    def test_restore_mirrored_record(self, archive_service, seed, deleted_at):
        """Test restoring an id present in both tables clears both tombstones."""
        child = seed.document("Paper A", "SYNERGY", deleted_at=EARLIER)
        seed.compilation([child], category="SYNERGY", id=80, deleted_at=EARLIER)
        seed.document("SYNERGY Vol. 1", "SYNERGY", id=80, deleted_at=EARLIER)

        archive_service.restore(80)

        assert deleted_at(Document, 80) is None
        assert deleted_at(CompiledDocument, 80) is None
        assert deleted_at(Document, child.id) is None

    def test_compilation_round_trip(self, archive_service, seed, deleted_at):
        children = [seed.document(f"Paper {i}", "CONFLUENCE") for i in range(2)]
        compiled = seed.compilation(children)

        archive_service.archive(compiled.id, is_compiled=True)
        archive_service.restore(compiled.id)

        assert deleted_at(CompiledDocument, compiled.id) is None
        assert all(deleted_at(Document, child.id) is None for child in children)


class TestArchivableRecord:
    """Tests for resolving ids across both tables."""

    def test_resolve_missing(self, archive_service):
        assert archive_service.resolve(42) is None

    def test_resolve_document_only(self, archive_service, seed):
        doc = seed.document("Plain")
        record = archive_service.resolve(doc.id)
        assert isinstance(record, ArchivableRecord)
        assert record.compiled is None
        assert record.is_compilation is False
        assert record.rows() == [record.document]

    def test_resolve_both_rows(self, archive_service, seed):
        seed.compilation([], id=90)
        seed.document("Mirror", "CONFLUENCE", id=90)
        record = archive_service.resolve(90)
        assert record.document is not None
        assert record.compiled is not None
        assert record.is_compilation is True
        assert len(record.rows()) == 2


class TestListArchived:
    """Tests for the archived listing."""

    def test_lists_both_tables_newest_first(self, archive_service, seed):
        """Test standalone documents and compiled-only groups are merged."""
        older = seed.document("Older Paper", deleted_at=EARLIER, authors=["Ana Cruz", "Ben Ito"])
        compiled = seed.compilation([], category="CONFLUENCE", volume=2, deleted_at=LATER)
        seed.document("Active Paper")

        result = archive_service.list_archived(page=1, page_size=10)

        assert result["total_documents"] == 2
        assert result["total_pages"] == 1
        assert result["current_page"] == 1
        assert result["limit"] == 10
        ids = [row["id"] for row in result["documents"]]
        assert ids == [compiled.id, older.id]

        compiled_row, document_row = result["documents"]
        assert compiled_row["title"] == "CONFLUENCE Vol. 2 (2020-2021)"
        assert compiled_row["is_compilation"] is True
        assert compiled_row["is_compiled"] is True
        assert compiled_row["authors"] is None
        assert document_row["authors"] == "Ana Cruz, Ben Ito"
        assert document_row["is_compilation"] is False
        assert isinstance(document_row["child_count"], int)

    def test_mirrored_group_listed_once(self, archive_service, seed):
        seed.compilation([], category="SYNERGY", id=60, deleted_at=EARLIER)
        seed.document("SYNERGY Vol. 1", "SYNERGY", id=60, deleted_at=EARLIER)

        result = archive_service.list_archived()

        assert result["total_documents"] == 1
        assert result["documents"][0]["source_table"] == "documents"
        assert result["documents"][0]["is_compilation"] is True

    def test_pagination(self, archive_service, seed):
        for i in range(5):
            seed.document(f"Paper {i}", deleted_at=datetime(2024, 1, i + 1))

        result = archive_service.list_archived(page=2, page_size=2)

        assert result["total_documents"] == 5
        assert result["total_pages"] == 3
        assert [row["title"] for row in result["documents"]] == ["Paper 2", "Paper 1"]

    def test_filters(self, archive_service, seed):
        """Test type, search and compiled-only filters."""
        seed.document("Wetland Birds", "THESIS", deleted_at=EARLIER)
        seed.document("Desert Plants", "DISSERTATION", abstract="Birds nesting", deleted_at=EARLIER)
        child = seed.document("Volume Paper", "CONFLUENCE", deleted_at=EARLIER)
        seed.compilation([child], deleted_at=EARLIER)

        by_type = archive_service.list_archived(document_type="thesis")
        assert [row["title"] for row in by_type["documents"]] == ["Wetland Birds"]

        by_search = archive_service.list_archived(search="BIRDS")
        assert {row["title"] for row in by_search["documents"]} == {"Wetland Birds", "Desert Plants"}

        every = archive_service.list_archived(document_type="All")
        assert every["total_documents"] == 4

        compiled_only = archive_service.list_archived(compiled_only=True)
        assert {row["title"] for row in compiled_only["documents"]} == {
            "Volume Paper",
            "CONFLUENCE Vol. 1 (2020-2021)",
        }

    def test_unknown_type_matches_nothing(self, archive_service, seed):
        seed.document("Wetland Birds", deleted_at=EARLIER)
        result = archive_service.list_archived(document_type="POEM")
        assert result["total_documents"] == 0
        assert result["total_pages"] == 0
        assert result["documents"] == []

    @pytest.mark.parametrize("page,size", [(0, 10), (1, 0), (1, 101)])
    def test_invalid_paging(self, archive_service, page, size):
        with pytest.raises(ValidationError):
            archive_service.list_archived(page=page, page_size=size)

    def test_includes_category_counts(self, archive_service, seed):
        seed.document("Wetland Birds", "THESIS", deleted_at=EARLIER)
        result = archive_service.list_archived()
        assert result["category_counts"] == [{"category": "THESIS", "count": 1}]


class TestCategoryCounts:
    """Tests for archived counts per category."""

    def test_mirrored_group_counted_once(self, archive_service, seed):
        seed.compilation([], category="CONFLUENCE", id=55, deleted_at=EARLIER)
        seed.document("CONFLUENCE Vol. 1", "CONFLUENCE", id=55, deleted_at=EARLIER)
        seed.compilation([], category="CONFLUENCE", volume=2, deleted_at=EARLIER)
        seed.document("Thesis One", "THESIS", deleted_at=EARLIER)
        seed.document("Thesis Two", "THESIS")

        counts = archive_service.category_counts()

        assert counts == [
            {"category": "CONFLUENCE", "count": 2},
            {"category": "THESIS", "count": 1},
        ]
        assert all(isinstance(entry["count"], int) for entry in counts)

    def test_empty(self, archive_service):
        assert archive_service.category_counts() == []


class TestArchivedRecordAndChildren:
    """Tests for single archived record lookups."""

    def test_get_archived_document(self, archive_service, seed):
        doc = seed.document("Wetland Birds", deleted_at=EARLIER, authors=["Ana Cruz"])

        result = archive_service.get_archived_record(doc.id)

        assert result["id"] == doc.id
        assert result["authors"] == "Ana Cruz"
        assert result["is_compilation"] is False
        assert result["deleted_at"].startswith("2024-01-15")

    def test_get_archived_compiled_only(self, archive_service, seed):
        child = seed.document("Paper B", "CONFLUENCE", deleted_at=EARLIER)
        other = seed.document("Paper A", "CONFLUENCE", deleted_at=EARLIER)
        compiled = seed.compilation([child, other], deleted_at=EARLIER)

        result = archive_service.get_archived_record(compiled.id)

        assert result["title"] == "CONFLUENCE Vol. 1 (2020-2021)"
        assert result["is_compilation"] is True
        assert result["child_count"] == 2
        assert [c["title"] for c in result["child_documents"]] == ["Paper A", "Paper B"]

    def test_get_active_record_not_found(self, archive_service, seed):
        doc = seed.document("Active")
        with pytest.raises(NotFoundError):
            archive_service.get_archived_record(doc.id)

    def test_archived_children_ordered_by_title(self, archive_service, seed):
        """Test only archived members are returned, sorted by title."""
        b = seed.document("Beta", "CONFLUENCE", deleted_at=EARLIER, authors=["Ana Cruz"])
        a = seed.document("Alpha", "CONFLUENCE", deleted_at=EARLIER)
        active = seed.document("Gamma", "CONFLUENCE")
        compiled = seed.compilation([b, a, active], deleted_at=EARLIER)

        result = archive_service.get_archived_children(compiled.id)

        assert result["compiled_document_id"] == compiled.id
        assert result["count"] == 2
        assert [c["title"] for c in result["documents"]] == ["Alpha", "Beta"]
        assert result["documents"][1]["authors"] == "Ana Cruz"

    def test_archived_children_of_plain_document(self, archive_service, seed):
        doc = seed.document("Plain", deleted_at=EARLIER)
        with pytest.raises(InvalidRequestError):
            archive_service.get_archived_children(doc.id)

    def test_archived_children_not_found(self, archive_service):
        with pytest.raises(NotFoundError):
            archive_service.get_archived_children(404)


class TestGroupMembers:
    """Tests for documents that belong to a group without being one."""

    @pytest.fixture
    def group(self, compilation_service, seed):
        first = seed.document("Paper A", "CONFLUENCE")
        second = seed.document("Paper B", "CONFLUENCE")
        compiled = compilation_service.create_compilation(
            category="CONFLUENCE", volume=2, document_ids=[first.id, second.id]
        )
        return compiled, first, second

    def test_children_of_member_rejected(self, archive_service, group):
        _, _, second = group
        with pytest.raises(InvalidRequestError):
            archive_service.get_archived_children(second.id)

    def test_archiving_member_leaves_group_alone(self, archive_service, group, deleted_at):
        compiled, first, second = group

        result = archive_service.archive(second.id)

        assert result["is_compilation"] is False
        assert result["child_documents"] == []
        assert deleted_at(Document, second.id) is not None
        assert deleted_at(Document, first.id) is None
        assert deleted_at(CompiledDocument, compiled.id) is None

    def test_member_flag_agrees_with_listing(self, archive_service, group):
        _, _, second = group
        archive_service.archive(second.id)

        listed = archive_service.list_archived()["documents"]

        assert [(row["id"], row["is_compilation"]) for row in listed] == [(second.id, False)]
        assert archive_service.resolve(second.id).is_compilation is False


class TestServiceWorkflow:
    """Create, group, list, archive and restore through the services alone."""

    def test_group_never_takes_over_a_document(
        self, document_service, compilation_service, archive_service, deleted_at
    ):
        thesis = document_service.create_document("Unrelated thesis", "THESIS")
        first = document_service.create_document(
            "Paper A", "CONFLUENCE", publication_date="2021-01-01"
        )
        second = document_service.create_document(
            "Paper B", "CONFLUENCE", publication_date="2021-02-01"
        )

        group = compilation_service.create_compilation(
            category="CONFLUENCE", volume=1, start_year=2021, document_ids=[first.id, second.id]
        )
        later = document_service.create_document("Later thesis", "THESIS")

        assert group.id not in {thesis.id, first.id, second.id}
        assert later.id > group.id
        assert archive_service.resolve(thesis.id).compiled is None

        listing = document_service.list_documents(sort="title")
        assert listing["totalCount"] == 3
        assert [card["title"] for card in listing["documents"]] == [
            "CONFLUENCE Vol. 1 (2021)",
            "Later thesis",
            "Unrelated thesis",
        ]

        archived = archive_service.archive(thesis.id)
        assert archived["is_compilation"] is False
        assert archived["child_count"] == 0
        assert deleted_at(CompiledDocument, group.id) is None
        assert deleted_at(Document, first.id) is None

    def test_archive_and_restore_created_group(
        self, document_service, compilation_service, archive_service, deleted_at
    ):
        document_service.create_document("Standalone thesis", "THESIS")
        members = [
            document_service.create_document(f"Paper {name}", "SYNERGY") for name in ("A", "B")
        ]
        group = compilation_service.create_compilation(
            category="SYNERGY", volume=5, document_ids=[m.id for m in members]
        )

        archived = archive_service.archive(group.id)

        assert archived["is_compilation"] is True
        assert archived["child_documents"] == [m.id for m in members]
        stamp = deleted_at(CompiledDocument, group.id)
        assert all(deleted_at(Document, m.id) == stamp for m in members)
        assert archive_service.list_archived(compiled_only=True)["total_documents"] == 3
        assert archive_service.get_archived_children(group.id)["count"] == 2
        assert [c["title"] for c in document_service.list_documents()["documents"]] == [
            "Standalone thesis"
        ]

        restored = archive_service.restore(group.id)

        assert restored["child_documents"] == [m.id for m in members]
        listing = document_service.list_documents()
        assert listing["totalCount"] == 2
        assert archive_service.list_archived()["total_documents"] == 0
