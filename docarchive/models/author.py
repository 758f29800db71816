"""Author model and the ordered document/author link."""

from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docarchive.models.base import Base, SoftDeleteMixin, TimestampMixin


class Author(Base, TimestampMixin, SoftDeleteMixin):
    """Author of one or more documents."""

    __tablename__ = "authors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    affiliation: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    department: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    orcid_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    biography: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Author(id={self.id!r}, full_name={self.full_name!r})>"


class DocumentAuthor(Base):
    """Ordered many-to-many link between documents and authors."""

    __tablename__ = "document_authors"

    document_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True
    )
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("authors.id", ondelete="CASCADE"), primary_key=True
    )
    author_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    document: Mapped["Document"] = relationship("Document", back_populates="author_links")
    author: Mapped[Author] = relationship("Author")
