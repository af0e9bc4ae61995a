import functools
import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wiki_pages.errors import NotFound, StorageError
from wiki_pages.models import Document, DocumentRevision
from wiki_pages.schemas import DocumentSummary, HistoryRecord, RevisionContent

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def storage_errors(func):
    """Re-raise database failures from ``func`` as ``StorageError``."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except SQLAlchemyError as e:
            raise StorageError(f"{func.__name__} failed") from e

    return wrapper


def _revision_columns():
    return (
        DocumentRevision.id.label("revision_id"),
        DocumentRevision.document_data.label("content"),
        DocumentRevision.created_at.label("modified_at"),
        DocumentRevision.modified_by,
    )


@storage_errors
async def fetch_current(db: AsyncSession, name: str) -> RevisionContent:
    """
    Fetch the current revision of a document.

    Args:
        db: Database session
        name: Name of the document

    Returns:
        RevisionContent of the revision the document currently points at

    Raises:
        NotFound: if no document with that name has a current revision
    """
    stmt = (
        select(*_revision_columns())
        .join(Document, Document.current_revision_id == DocumentRevision.id)
        .where(Document.name == name)
    )
    row = (await db.execute(stmt)).one_or_none()
    if row is None:
        raise NotFound(f"document {name!r} not found")
    return RevisionContent(**row._mapping)


@storage_errors
async def fetch_revision(db: AsyncSession, name: str, revision_id: int) -> RevisionContent:
    """
    Fetch one revision of a document.

    Both the document name and the revision id must match, so the id of a
    revision that belongs to another document is reported as not found.
    """
    stmt = (
        select(*_revision_columns())
        .join(Document, Document.id == DocumentRevision.document_id)
        .where(Document.name == name, DocumentRevision.id == revision_id)
    )
    row = (await db.execute(stmt)).one_or_none()
    if row is None:
        raise NotFound(f"revision {revision_id} of {name!r} not found")
    return RevisionContent(**row._mapping)


@storage_errors
async def fetch_history(
    db: AsyncSession, name: str, limit: int = HISTORY_LIMIT
) -> list[HistoryRecord]:
    """
    List the revisions of a document, newest first, at most ``limit`` of them.

    Raises:
        NotFound: if the document has no revisions (which is also the case
            for a document that does not exist)
    """
    stmt = (
        select(
            DocumentRevision.id.label("revision_id"),
            DocumentRevision.created_at,
            DocumentRevision.modified_by.label("created_by"),
        )
        .join(Document, Document.id == DocumentRevision.document_id)
        .where(Document.name == name)
        .order_by(DocumentRevision.created_at.desc(), DocumentRevision.id.desc())
        .limit(limit)
    )
    rows = (await db.execute(stmt)).all()
    if not rows:
        raise NotFound(f"no history for {name!r}")
    return [HistoryRecord(**row._mapping) for row in rows]


@storage_errors
async def list_documents(db: AsyncSession) -> list[DocumentSummary]:
    stmt = select(
        Document.name, Document.last_modified, Document.current_revision_id
    ).order_by(Document.last_modified.desc(), Document.id.desc())
    rows = (await db.execute(stmt)).all()
    return [DocumentSummary(**row._mapping) for row in rows]


async def _upsert_document(db: AsyncSession, name: str, now: datetime) -> int:
    insert = _UPSERT_INSERTS[db.get_bind().dialect.name]
    stmt = insert(Document).values(name=name, last_modified=now)
    stmt = stmt.on_conflict_do_update(
        index_elements=[Document.name],
        set_={"last_modified": stmt.excluded.last_modified},
    ).returning(Document.id)
    return (await db.execute(stmt)).scalar_one()


@storage_errors
async def append_revision(db: AsyncSession, name: str, author: str, content: str) -> int:
    """
    Store ``content`` as the new current revision of ``name``.

    The document row is created on first write. Creating or touching the
    document, inserting the revision and moving the current pointer happen in
    one transaction; ``db`` must not have a transaction in progress.

    Args:
        db: Database session
        name: Name of the document
        author: Identity recorded as the revision's author
        content: Full text of the new revision

    Returns:
        int: id of the new revision
    """
    now = datetime.now(timezone.utc)
    async with db.begin():
        document_id = await _upsert_document(db, name, now)

        revision = DocumentRevision(
            document_id=document_id, modified_by=author, document_data=content
        )
        db.add(revision)
        await db.flush()

        await db.execute(
            update(Document)
            .where(Document.id == document_id)
            .values(current_revision_id=revision.id, last_modified=now)
        )

    logger.info("stored revision %s of %r by %s", revision.id, name, author)
    return revision.id
