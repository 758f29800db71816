"""Initial schema: documents, compiled documents, authors, topics, requests

Revision ID: 3c9a1f5e7b20
Revises:
Create Date: 2026-10-19 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c9a1f5e7b20"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    is_sqlite = bind.dialect.name == "sqlite"

    # Use appropriate timestamp defaults
    if is_sqlite:
        now_default = sa.text("(datetime('now'))")
        timestamp_type = sa.DateTime()
    else:
        now_default = sa.text("now()")
        timestamp_type = sa.DateTime(timezone=True)

    def timestamps() -> list[sa.Column]:
        return [
            sa.Column("created_at", timestamp_type, server_default=now_default, nullable=False),
            sa.Column("updated_at", timestamp_type, server_default=now_default, nullable=False),
        ]

    op.create_table(
        "authors",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("affiliation", sa.String(length=255), nullable=True),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("orcid_id", sa.String(length=50), nullable=True),
        sa.Column("biography", sa.Text(), nullable=True),
        *timestamps(),
        sa.Column("deleted_at", timestamp_type, nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_authors_full_name"), "authors", ["full_name"], unique=False)
    op.create_index(op.f("ix_authors_deleted_at"), "authors", ["deleted_at"], unique=False)

    op.create_table(
        "topics",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    # compiled_documents first so documents.compiled_parent_id can reference it
    op.create_table(
        "compiled_documents",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("start_year", sa.Integer(), nullable=True),
        sa.Column("end_year", sa.Integer(), nullable=True),
        sa.Column("volume", sa.Integer(), nullable=True),
        sa.Column("issue_number", sa.Integer(), nullable=True),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("category", sa.String(length=50), nullable=False),
        *timestamps(),
        sa.Column("deleted_at", timestamp_type, nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_compiled_documents_category"), "compiled_documents", ["category"], unique=False
    )
    op.create_index(
        op.f("ix_compiled_documents_deleted_at"), "compiled_documents", ["deleted_at"], unique=False
    )

    op.create_table(
        "documents",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("abstract", sa.Text(), nullable=True),
        sa.Column("publication_date", sa.Date(), nullable=True),
        sa.Column("document_type", sa.String(length=50), nullable=False),
        sa.Column("volume", sa.String(length=50), nullable=True),
        sa.Column("issue_number", sa.String(length=50), nullable=True),
        sa.Column("file_path", sa.String(length=1000), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("compiled_parent_id", sa.Integer(), nullable=True),
        *timestamps(),
        sa.Column("deleted_at", timestamp_type, nullable=True),
        sa.ForeignKeyConstraint(
            ["compiled_parent_id"], ["compiled_documents.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_documents_title"), "documents", ["title"], unique=False)
    op.create_index(op.f("ix_documents_document_type"), "documents", ["document_type"], unique=False)
    op.create_index(op.f("ix_documents_deleted_at"), "documents", ["deleted_at"], unique=False)
    op.create_index(
        op.f("ix_documents_compiled_parent_id"), "documents", ["compiled_parent_id"], unique=False
    )

    op.create_table(
        "compiled_document_items",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("compiled_document_id", sa.Integer(), nullable=False),
        sa.Column("document_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["compiled_document_id"], ["compiled_documents.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "compiled_document_id", "document_id", name="uq_compiled_document_item"
        ),
    )
    op.create_index(
        op.f("ix_compiled_document_items_compiled_document_id"),
        "compiled_document_items",
        ["compiled_document_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_compiled_document_items_document_id"),
        "compiled_document_items",
        ["document_id"],
        unique=False,
    )

    op.create_table(
        "document_authors",
        sa.Column("document_id", sa.Integer(), nullable=False),
        sa.Column("author_id", sa.Integer(), nullable=False),
        sa.Column("author_order", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["author_id"], ["authors.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("document_id", "author_id"),
    )

    op.create_table(
        "document_topics",
        sa.Column("document_id", sa.Integer(), nullable=False),
        sa.Column("topic_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["topic_id"], ["topics.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("document_id", "topic_id"),
    )

    op.create_table(
        "document_requests",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("document_id", sa.Integer(), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("affiliation", sa.String(length=255), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=False),
        sa.Column("reason_details", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("reviewed_by", sa.String(length=255), nullable=True),
        sa.Column("reviewed_at", timestamp_type, nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_document_requests_document_id"), "document_requests", ["document_id"], unique=False
    )
    op.create_index(op.f("ix_document_requests_email"), "document_requests", ["email"], unique=False)
    op.create_index(
        op.f("ix_document_requests_status"), "document_requests", ["status"], unique=False
    )


def downgrade() -> None:
    op.drop_table("document_requests")
    op.drop_table("document_topics")
    op.drop_table("document_authors")
    op.drop_table("compiled_document_items")
    op.drop_table("documents")
    op.drop_table("compiled_documents")
    op.drop_table("topics")
    op.drop_table("authors")
