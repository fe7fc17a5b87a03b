"""Collection writer for the document store.

This module turns decoded rows into documents and writes them in chunked
atomic batches. Each chunk is all-or-nothing; chunks committed before a
failing one keep their state.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from hub_migration.client.exceptions import APIError, BatchCommitError, NetworkError
from hub_migration.client.firestore_client import DocumentWrite, StoredDocument, WriteKind
from hub_migration.config import MAX_BATCH_WRITES
from hub_migration.migration.decoder import ABSENT, Row
from hub_migration.utils.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for the destination document store.

    FirestoreClient implements it; tests use an in-memory store.
    """

    def new_document_id(self) -> str:
        """Generate a fresh document key."""
        ...

    async def get_document(self, collection: str, document_id: str) -> dict[str, Any] | None:
        """Fetch one document's fields, or None when it does not exist."""
        ...

    async def list_documents(self, collection: str) -> list[StoredDocument]:
        """Return every document of a collection."""
        ...

    async def commit(self, writes: Sequence[DocumentWrite]) -> dict[str, Any]:
        """Apply writes as one atomic unit."""
        ...


@dataclass
class WriteResult:
    """Counts of one collection write."""

    collection: str
    written: int = 0
    deleted: int = 0
    commits: int = 0


def document_fields(row: Row) -> dict[str, Any]:
    """Fields of a row as stored, without ABSENT columns."""
    return {key: value for key, value in row.items() if value is not ABSENT}


def _document_key(row: Row) -> str | None:
    value = row.get("id")
    if value is None or value is ABSENT or value == "":
        return None
    return str(value)


def chunked(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    """Yield consecutive slices of at most size items."""
    for start in range(0, len(items), size):
        yield items[start : start + size]


class CollectionWriter:
    """Writes documents to the store in atomic batches."""

    def __init__(self, store: DocumentStore, batch_size: int = MAX_BATCH_WRITES):
        """Initialize collection writer.

        Args:
            store: Destination document store
            batch_size: Writes per atomic commit (at most the store's ceiling)
        """
        if not 1 <= batch_size <= MAX_BATCH_WRITES:
            raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_WRITES}")
        self.store = store
        self.batch_size = batch_size

    async def write(self, collection: str, rows: Sequence[Row]) -> int:
        """Merge-upsert rows into a collection.

        A row's ``id`` becomes its document key; rows without one get a fresh
        key. Writing the same rows again updates the same documents.

        Args:
            collection: Destination collection
            rows: Decoded rows

        Returns:
            Number of rows written

        Raises:
            BatchCommitError: If a chunk fails to commit
        """
        if not rows:
            return 0

        documents = [(_document_key(row), document_fields(row)) for row in rows]
        await self.write_documents(collection, documents)
        return len(rows)

    async def write_documents(
        self,
        collection: str,
        documents: Sequence[tuple[str | None, dict[str, Any]]],
        kind: WriteKind = WriteKind.MERGE,
    ) -> WriteResult:
        """Write (key, fields) pairs to a collection.

        Pairs sharing a key are folded into one write, in input order, with
        the same result as writing them one after another.

        Raises:
            BatchCommitError: If a chunk fails to commit
        """
        writes = self._build_writes(collection, documents, kind)
        result = WriteResult(collection=collection)
        result.commits = await self._commit_chunks(collection, writes)
        result.written = len(documents)

        logger.info(
            "collection_written",
            collection=collection,
            documents=len(writes),
            rows=len(documents),
            commits=result.commits,
        )
        return result

    async def replace_collection(
        self, collection: str, documents: Sequence[dict[str, Any]]
    ) -> WriteResult:
        """Replace the whole content of a collection.

        Every existing document is deleted and the new documents are inserted
        under fresh keys. When deletes and inserts fit in one batch they are
        committed together; otherwise all deletes are committed before any
        insert, and a failure in between leaves the collection partly empty
        until the next run.

        Args:
            collection: Collection to replace
            documents: Fields of the new documents

        Returns:
            WriteResult with deleted and written counts

        Raises:
            BatchCommitError: If the existing documents cannot be listed, or
                a chunk fails to commit
        """
        try:
            existing = await self.store.list_documents(collection)
        except (APIError, NetworkError) as e:
            logger.error("collection_listing_failed", collection=collection, error=str(e))
            raise BatchCommitError(
                f"Cannot list existing documents: {e}",
                collection=collection,
                chunk_index=0,
                committed=0,
            ) from e

        deletes = [DocumentWrite.delete(collection, doc.id) for doc in existing]
        inserts = [
            DocumentWrite.replace(collection, self.store.new_document_id(), fields)
            for fields in documents
        ]

        result = WriteResult(collection=collection)

        if len(deletes) + len(inserts) <= self.batch_size:
            result.commits = await self._commit_chunks(collection, deletes + inserts)
        else:
            result.commits = await self._commit_chunks(collection, deletes)
            result.commits += await self._commit_chunks(collection, inserts)

        result.deleted = len(deletes)
        result.written = len(inserts)

        logger.info(
            "collection_replaced",
            collection=collection,
            deleted=result.deleted,
            inserted=result.written,
            commits=result.commits,
        )
        return result

    def _build_writes(
        self,
        collection: str,
        documents: Sequence[tuple[str | None, dict[str, Any]]],
        kind: WriteKind,
    ) -> list[DocumentWrite]:
        folded: dict[str, dict[str, Any]] = {}

        for key, fields in documents:
            if key is None:
                key = self.store.new_document_id()
            if key in folded and kind is WriteKind.MERGE:
                folded[key].update(fields)
            else:
                folded[key] = dict(fields)

        return [DocumentWrite(kind, collection, key, fields) for key, fields in folded.items()]

    async def _commit_chunks(self, collection: str, writes: Sequence[DocumentWrite]) -> int:
        """Commit writes in chunks of batch_size; returns the number of commits."""
        committed = 0
        commits = 0

        for chunk_index, chunk in enumerate(chunked(writes, self.batch_size)):
            try:
                await self.store.commit(chunk)
            except (APIError, NetworkError) as e:
                logger.error(
                    "batch_commit_failed",
                    collection=collection,
                    chunk_index=chunk_index,
                    chunk_size=len(chunk),
                    committed=committed,
                    error=str(e),
                )
                raise BatchCommitError(
                    f"Batch commit failed: {e}",
                    collection=collection,
                    chunk_index=chunk_index,
                    committed=committed,
                ) from e

            committed += len(chunk)
            commits += 1
            logger.debug(
                "batch_committed",
                collection=collection,
                chunk_index=chunk_index,
                chunk_size=len(chunk),
            )

        return commits
