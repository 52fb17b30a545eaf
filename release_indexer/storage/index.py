"""
Search index for release and file documents.

Stores documents in SQLite through SQLModel. Every document keeps its full
JSON body next to a handful of indexed term columns used for filtering.
"""
from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import Column, JSON, func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine, select

from release_indexer.storage.bulk import BulkIndexer
from release_indexer.utils.errors import IndexCommitError
from release_indexer.utils.logger import get_logger

logger = get_logger(__name__)

LATEST_CANDIDATE_STATUSES = ("cpan", "latest")


class IndexedDocument(SQLModel, table=True):
    """
    SQLModel representation of an indexed document.

    ``doc_type`` is ``release`` or ``file``; the term columns mirror fields
    of the body so they can be filtered on.
    """

    __tablename__ = "documents"

    doc_type: str = Field(primary_key=True)
    doc_id: str = Field(primary_key=True)
    author: Optional[str] = Field(default=None, index=True)
    archive: Optional[str] = Field(default=None, index=True)
    distribution: Optional[str] = Field(default=None, index=True)
    release: Optional[str] = Field(default=None, index=True)
    status: Optional[str] = Field(default=None, index=True)
    version_numified: Optional[float] = Field(default=None)
    body: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    updated_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))


TERM_COLUMNS = ("author", "archive", "distribution", "release", "status")


class SQLiteSearchIndex:
    """
    Database-backed search index.

    Features:
    - Whole-document puts (last write wins)
    - Term filtering and counting
    - Batched writes through ``bulk()``
    - "first" and "latest" bookkeeping queries per distribution

    Example:
        >>> index = SQLiteSearchIndex(Path("./data/release-index.db"))
        >>> index.count("release", archive="Foo-1.0.tar.gz", author="AUTHOR")
        0
    """

    def __init__(self, db_path: Path) -> None:
        """
        Initialize the index.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(f"sqlite:///{self.db_path}", echo=False)
        SQLModel.metadata.create_all(self.engine)
        logger.info(f"Search index initialized: {self.db_path}")

    def bulk(self, size: int = 10) -> BulkIndexer:
        return BulkIndexer(self, size=size)

    def put(self, document: Any) -> None:
        """Write one document immediately."""
        self.put_many([document])

    def put_many(self, documents: Iterable[Any]) -> int:
        """
        Write documents in a single transaction.

        Documents provide ``doc_type``, ``document_id``, ``index_terms()``
        and ``to_document()``.

        Raises:
            IndexCommitError: If the transaction fails
        """
        documents = list(documents)
        if not documents:
            return 0

        now = dt.datetime.now(dt.timezone.utc)
        try:
            with Session(self.engine) as session:
                for document in documents:
                    key = (document.doc_type, document.document_id)
                    row = session.get(IndexedDocument, key)
                    if row is None:
                        row = IndexedDocument(doc_type=key[0], doc_id=key[1])
                    for column, value in document.index_terms().items():
                        setattr(row, column, value)
                    row.body = document.to_document()
                    row.updated_at = now
                    session.add(row)
                session.commit()
        except SQLAlchemyError as e:
            raise IndexCommitError(len(documents), str(e)) from e

        logger.debug(f"Wrote {len(documents)} documents")
        return len(documents)

    def refresh(self) -> None:
        """Make the latest writes visible to searches and update planner statistics."""
        with self.engine.connect() as connection:
            connection.exec_driver_sql("PRAGMA optimize")
        logger.info("Index refreshed")

    def _filtered(self, statement, doc_type: str, terms: Dict[str, Any]):
        statement = statement.where(IndexedDocument.doc_type == doc_type)
        for column, value in terms.items():
            if column not in TERM_COLUMNS:
                raise ValueError(f"Cannot filter on {column!r}")
            statement = statement.where(getattr(IndexedDocument, column) == value)
        return statement

    def count(self, doc_type: str, **terms: Any) -> int:
        """Number of documents of ``doc_type`` matching all ``terms``."""
        with Session(self.engine) as session:
            statement = self._filtered(
                select(func.count()).select_from(IndexedDocument), doc_type, terms
            )
            return session.exec(statement).one()

    def search(self, doc_type: str, **terms: Any) -> List[Dict[str, Any]]:
        """Bodies of all documents of ``doc_type`` matching all ``terms``."""
        with Session(self.engine) as session:
            statement = self._filtered(select(IndexedDocument), doc_type, terms)
            return [row.body for row in session.exec(statement).all()]

    def get(self, doc_type: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with Session(self.engine) as session:
            row = session.get(IndexedDocument, (doc_type, doc_id))
            return row.body if row else None

    def has_earlier_release(
        self,
        distribution: str,
        version_numified: float,
        exclude_id: Optional[str] = None
    ) -> bool:
        """True if another release of ``distribution`` has a lower version."""
        with Session(self.engine) as session:
            statement = (
                select(func.count())
                .select_from(IndexedDocument)
                .where(IndexedDocument.doc_type == "release")
                .where(IndexedDocument.distribution == distribution)
                .where(IndexedDocument.version_numified < version_numified)
            )
            if exclude_id:
                statement = statement.where(IndexedDocument.doc_id != exclude_id)
            return session.exec(statement).one() > 0

    def recompute_latest(self, distribution: str) -> Optional[str]:
        """
        Mark the highest released version of ``distribution`` as latest.

        Only releases with status ``cpan`` or ``latest`` take part; the
        previous latest release (and its files) revert to ``cpan``.

        Returns:
            Document id of the latest release, or None if there is none
        """
        with Session(self.engine) as session:
            rows = session.exec(
                select(IndexedDocument)
                .where(IndexedDocument.doc_type == "release")
                .where(IndexedDocument.distribution == distribution)
                .where(IndexedDocument.status.in_(LATEST_CANDIDATE_STATUSES))
            ).all()
            if not rows:
                return None

            latest = max(rows, key=lambda r: (r.version_numified or 0.0, r.body.get("date") or ""))
            for row in rows:
                status = "latest" if row is latest else "cpan"
                if row.status == status:
                    continue
                row.status = status
                row.body = {**row.body, "status": status}
                session.add(row)
                files = session.exec(
                    select(IndexedDocument)
                    .where(IndexedDocument.doc_type == "file")
                    .where(IndexedDocument.author == row.author)
                    .where(IndexedDocument.release == row.release)
                ).all()
                for file_row in files:
                    file_row.status = status
                    file_row.body = {**file_row.body, "status": status}
                    session.add(file_row)
            session.commit()

            logger.info(f"Latest release of {distribution} is {latest.doc_id}")
            return latest.doc_id
