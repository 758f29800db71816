"""Compiled document groups and their membership table."""

from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docarchive.models.base import Base, SoftDeleteMixin, TimestampMixin


class CompiledDocument(Base, TimestampMixin, SoftDeleteMixin):
    """A parent record grouping several documents, e.g. a journal volume."""

    __tablename__ = "compiled_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    start_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    end_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    volume: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    issue_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    department: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    items: Mapped[list["CompiledDocumentItem"]] = relationship(
        "CompiledDocumentItem",
        back_populates="compiled_document",
        cascade="all, delete-orphan",
    )

    @property
    def title(self) -> str:
        return compiled_title(self.category, self.volume, self.start_year, self.end_year)

    def __repr__(self) -> str:
        return f"<CompiledDocument(id={self.id!r}, category={self.category!r}, volume={self.volume!r})>"


class CompiledDocumentItem(Base):
    """Canonical membership of a document in a compiled group."""

    __tablename__ = "compiled_document_items"
    __table_args__ = (
        UniqueConstraint("compiled_document_id", "document_id", name="uq_compiled_document_item"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    compiled_document_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("compiled_documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )

    compiled_document: Mapped[CompiledDocument] = relationship(
        "CompiledDocument", back_populates="items"
    )

    def __repr__(self) -> str:
        return (
            f"<CompiledDocumentItem(compiled_document_id={self.compiled_document_id!r}, "
            f"document_id={self.document_id!r})>"
        )


def compiled_title(
    category: str | None,
    volume: int | str | None,
    start_year: int | None,
    end_year: int | None,
) -> str:
    """Build the display title of a compiled group: ``{category} Vol. {volume} ({start}-{end})``."""
    title = f"{category or ''} Vol. {'' if volume is None else volume}"
    if start_year is not None and end_year is not None:
        title += f" ({start_year}-{end_year})"
    elif start_year is not None:
        title += f" ({start_year})"
    return title
