"""Topic model and document/topic link."""

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docarchive.models.base import Base


class Topic(Base):
    """Research topic a document can be tagged with."""

    __tablename__ = "topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<Topic(id={self.id!r}, name={self.name!r})>"


class DocumentTopic(Base):
    __tablename__ = "document_topics"

    document_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True
    )
    topic_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("topics.id", ondelete="CASCADE"), primary_key=True
    )

    document: Mapped["Document"] = relationship("Document", back_populates="topic_links")
    topic: Mapped[Topic] = relationship("Topic")
