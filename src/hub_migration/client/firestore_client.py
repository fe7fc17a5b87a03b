"""Document store client (Cloud Firestore REST API).

This client exposes the operations the migration consumes: get a document by
id, page through a collection, and commit a batch of writes atomically.
"""

import secrets
import string
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import quote

from hub_migration.client.base_client import BaseAPIClient, TokenProvider
from hub_migration.client.exceptions import NotFoundError
from hub_migration.client.values import decode_fields, encode_fields, quote_field_path
from hub_migration.utils.logging import get_logger

logger = get_logger(__name__)

AUTO_ID_ALPHABET = string.ascii_letters + string.digits
AUTO_ID_LENGTH = 20


class WriteKind(str, Enum):
    """Kinds of write accepted in a batch commit."""

    MERGE = "merge"  # update only the supplied fields, create if absent
    REPLACE = "replace"  # overwrite the whole document
    DELETE = "delete"


@dataclass(frozen=True)
class DocumentWrite:
    """One write inside an atomic batch commit."""

    kind: WriteKind
    collection: str
    document_id: str
    fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def merge(cls, collection: str, document_id: str, fields: dict[str, Any]) -> "DocumentWrite":
        return cls(WriteKind.MERGE, collection, document_id, dict(fields))

    @classmethod
    def replace(
        cls, collection: str, document_id: str, fields: dict[str, Any]
    ) -> "DocumentWrite":
        return cls(WriteKind.REPLACE, collection, document_id, dict(fields))

    @classmethod
    def delete(cls, collection: str, document_id: str) -> "DocumentWrite":
        return cls(WriteKind.DELETE, collection, document_id)


@dataclass(frozen=True)
class StoredDocument:
    """A document read back from the store."""

    collection: str
    id: str
    fields: dict[str, Any]


def new_document_id() -> str:
    """Generate a random 20-character document key, like the store's own auto-ids."""
    return "".join(secrets.choice(AUTO_ID_ALPHABET) for _ in range(AUTO_ID_LENGTH))


class FirestoreClient(BaseAPIClient):
    """Client for the destination document store."""

    def __init__(
        self,
        base_url: str,
        project_id: str,
        token_provider: TokenProvider,
        database_id: str = "(default)",
        page_size: int = 300,
        **kwargs: Any,
    ):
        """Initialize document store client.

        Args:
            base_url: REST base URL (``https://firestore.googleapis.com/v1``)
            project_id: Project that owns the database
            token_provider: Coroutine function returning a bearer token
            database_id: Database ID within the project
            page_size: Documents per page when listing a collection
            **kwargs: Passed through to BaseAPIClient
        """
        super().__init__(base_url=base_url, token_provider=token_provider, **kwargs)
        self.project_id = project_id
        self.database_id = database_id
        self.page_size = page_size
        self.database_path = f"projects/{project_id}/databases/{database_id}"
        self.documents_path = f"{self.database_path}/documents"
        logger.info("firestore_client_initialized", project_id=project_id, database=database_id)

    def new_document_id(self) -> str:
        return new_document_id()

    def document_name(self, collection: str, document_id: str) -> str:
        """Full resource name of a document, as used inside request bodies."""
        return f"{self.documents_path}/{collection}/{document_id}"

    def _document_endpoint(self, collection: str, document_id: str | None = None) -> str:
        endpoint = f"{self.documents_path}/{quote(collection, safe='')}"
        if document_id is not None:
            endpoint = f"{endpoint}/{quote(document_id, safe='')}"
        return endpoint

    async def get_document(self, collection: str, document_id: str) -> dict[str, Any] | None:
        """Fetch one document's fields, or None when it does not exist."""
        try:
            data = await self.request_with_retry(
                "GET", self._document_endpoint(collection, document_id)
            )
        except NotFoundError:
            return None
        return decode_fields(data.get("fields", {}))

    async def iter_documents(self, collection: str) -> AsyncIterator[StoredDocument]:
        """Page through every document of a collection."""
        page_token: str | None = None

        while True:
            params: dict[str, Any] = {"pageSize": self.page_size}
            if page_token:
                params["pageToken"] = page_token

            data = await self.request_with_retry(
                "GET", self._document_endpoint(collection), params=params
            )

            for doc in data.get("documents", []):
                yield StoredDocument(
                    collection=collection,
                    id=doc["name"].rsplit("/", 1)[-1],
                    fields=decode_fields(doc.get("fields", {})),
                )

            page_token = data.get("nextPageToken")
            if not page_token:
                break

    async def list_documents(self, collection: str) -> list[StoredDocument]:
        """Return every document of a collection."""
        return [doc async for doc in self.iter_documents(collection)]

    def _to_rest_write(self, write: DocumentWrite) -> dict[str, Any]:
        name = self.document_name(write.collection, write.document_id)

        if write.kind is WriteKind.DELETE:
            return {"delete": name}

        rest_write: dict[str, Any] = {
            "update": {"name": name, "fields": encode_fields(write.fields)},
        }
        if write.kind is WriteKind.MERGE:
            rest_write["updateMask"] = {
                "fieldPaths": [quote_field_path(key) for key in write.fields]
            }
        return rest_write

    async def commit(self, writes: Sequence[DocumentWrite]) -> dict[str, Any]:
        """Commit writes as one atomic unit: all are applied or none is.

        Merge, replace and delete writes are idempotent, so a commit whose
        response was lost can be retried safely.

        Args:
            writes: Writes to apply (at most the store's per-commit ceiling)

        Returns:
            Commit response (write results and commit time)
        """
        if not writes:
            return {}

        payload = {"writes": [self._to_rest_write(write) for write in writes]}
        result = await self.request_with_retry(
            "POST", f"{self.documents_path}:commit", json_data=payload
        )

        logger.debug(
            "batch_committed",
            writes=len(writes),
            commit_time=result.get("commitTime"),
        )
        return result
