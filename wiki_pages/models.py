from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# BIGINT on PostgreSQL, INTEGER on SQLite so the primary key stays a rowid alias.
Id = BigInteger().with_variant(Integer, "sqlite")


class Document(Base):
    __tablename__ = "document"

    id = Column(Id, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    last_modified = Column(DateTime(timezone=True), nullable=False)
    current_revision_id = Column(
        Id,
        ForeignKey(
            "document_history.id",
            use_alter=True,
            name="fk_document_document_history",
        ),
        nullable=True,
    )

    def __repr__(self):
        return f"<Document(name='{self.name}')>"


class DocumentRevision(Base):
    __tablename__ = "document_history"

    id = Column(Id, primary_key=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    document_id = Column(
        Id,
        ForeignKey("document.id", name="fk_document_history_document"),
        nullable=False,
        index=True,
    )
    modified_by = Column(String, nullable=False)
    document_data = Column(Text, nullable=False)

    def __repr__(self):
        return f"<DocumentRevision(id={self.id}, document_id={self.document_id})>"
