"""Document model for standalone archive entries."""

import enum
from datetime import date
from typing import Optional

from sqlalchemy import Boolean, Date, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docarchive.models.base import Base, SoftDeleteMixin, TimestampMixin


class DocumentType(str, enum.Enum):
    """Categories a document or compiled group can belong to."""

    THESIS = "THESIS"
    DISSERTATION = "DISSERTATION"
    CONFLUENCE = "CONFLUENCE"
    SYNERGY = "SYNERGY"
    RESEARCH_STUDY = "RESEARCH_STUDY"

    @classmethod
    def normalize(cls, value: str) -> "DocumentType":
        """Resolve a case-insensitive category name, raising ValueError if unknown."""
        return cls(value.strip().upper())


class Document(Base, TimestampMixin, SoftDeleteMixin):
    """A single archived or active document."""

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    abstract: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    publication_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    document_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    volume: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    issue_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    file_path: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Derived pointer; compiled_document_items is the source of truth for membership
    compiled_parent_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("compiled_documents.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    author_links: Mapped[list["DocumentAuthor"]] = relationship(
        "DocumentAuthor",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentAuthor.author_order",
    )
    topic_links: Mapped[list["DocumentTopic"]] = relationship(
        "DocumentTopic", back_populates="document", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Document(id={self.id!r}, title={self.title!r}, deleted_at={self.deleted_at!r})>"
