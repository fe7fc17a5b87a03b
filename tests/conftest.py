"""
Shared fixtures: in-memory stand-ins for the document store and the identity
provider, and helpers for writing export files.
"""

import itertools
from collections import defaultdict
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest

from hub_migration.client.exceptions import ConflictError, ServerError
from hub_migration.client.firestore_client import DocumentWrite, StoredDocument, WriteKind
from hub_migration.client.identity_client import IdentityAccount
from hub_migration.migration.identity import IdentityMigrator
from hub_migration.migration.locator import SourceLocator
from hub_migration.migration.orchestrator import MigrationOrchestrator
from hub_migration.migration.writer import CollectionWriter


class FakeDocumentStore:
    """Dict-backed document store with atomic commits and failure injection."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.commits: list[list[DocumentWrite]] = []
        self.fail_when: Callable[[Sequence[DocumentWrite]], bool] | None = None
        self._ids = itertools.count(1)

    def new_document_id(self) -> str:
        return f"auto{next(self._ids):05d}"

    async def get_document(self, collection: str, document_id: str) -> dict[str, Any] | None:
        doc = self.collections[collection].get(document_id)
        return dict(doc) if doc is not None else None

    async def list_documents(self, collection: str) -> list[StoredDocument]:
        return [
            StoredDocument(collection, doc_id, dict(fields))
            for doc_id, fields in self.collections[collection].items()
        ]

    async def iter_documents(self, collection: str):
        for doc in await self.list_documents(collection):
            yield doc

    async def commit(self, writes: Sequence[DocumentWrite]) -> dict[str, Any]:
        if self.fail_when is not None and self.fail_when(writes):
            raise ServerError("commit rejected", status_code=503)

        self.commits.append(list(writes))
        for write in writes:
            docs = self.collections[write.collection]
            if write.kind is WriteKind.DELETE:
                docs.pop(write.document_id, None)
            elif write.kind is WriteKind.MERGE:
                docs.setdefault(write.document_id, {}).update(write.fields)
            else:
                docs[write.document_id] = dict(write.fields)
        return {"commitTime": "2024-01-01T00:00:00Z"}

    def docs(self, collection: str) -> dict[str, dict[str, Any]]:
        return self.collections[collection]


class FakeIdentityProvider:
    """In-memory identity provider."""

    def __init__(self) -> None:
        self.accounts: dict[str, IdentityAccount] = {}
        self.passwords: dict[str, str] = {}
        self.fail_emails: set[str] = set()
        self.hidden_emails: set[str] = set()  # exist, but not listed
        self.create_calls: list[str] = []
        self._uids = itertools.count(1)

    def add_account(self, email: str, uid: str | None = None, listed: bool = True) -> IdentityAccount:
        account = IdentityAccount(uid=uid or f"uid-{next(self._uids):03d}", email=email)
        self.accounts[account.uid] = account
        if not listed:
            self.hidden_emails.add(email.lower())
        return account

    def find(self, email: str) -> IdentityAccount | None:
        for account in self.accounts.values():
            if account.email and account.email.lower() == email.lower():
                return account
        return None

    async def iter_accounts(self):
        for account in list(self.accounts.values()):
            if account.email and account.email.lower() in self.hidden_emails:
                continue
            yield account

    async def create_account(
        self, email: str, password: str, display_name: str | None = None
    ) -> IdentityAccount:
        self.create_calls.append(email)
        if email in self.fail_emails:
            raise ServerError("INTERNAL_ERROR", status_code=500)
        if self.find(email) is not None:
            raise ConflictError("EMAIL_EXISTS", status_code=400)

        account = IdentityAccount(
            uid=f"uid-{next(self._uids):03d}", email=email, display_name=display_name
        )
        self.accounts[account.uid] = account
        self.passwords[account.uid] = password
        return account

    async def find_account_by_email(self, email: str) -> IdentityAccount | None:
        return self.find(email)


def write_export(directory: Path, table: str, content: str, suffix: str = "") -> Path:
    """Write ``{table}-export{suffix}.csv`` into directory."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{table}-export{suffix}.csv"
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def writer(store) -> CollectionWriter:
    return CollectionWriter(store)


@pytest.fixture
def csv_dir(tmp_path) -> Path:
    path = tmp_path / "csv-import"
    path.mkdir()
    return path


@pytest.fixture
def make_orchestrator(store, provider, csv_dir):
    """Build an orchestrator over the fakes; a fresh migrator per call."""

    def factory(batch_size: int = 500, skip_tables: Sequence[str] = ()) -> MigrationOrchestrator:
        writer = CollectionWriter(store, batch_size=batch_size)
        return MigrationOrchestrator(
            locator=SourceLocator(csv_dir),
            writer=writer,
            identity_migrator=IdentityMigrator(provider, writer, password_factory=lambda: "pw-1"),
            skip_tables=skip_tables,
        )

    return factory


@pytest.fixture
def export(csv_dir):
    """Write an export file into the import directory."""

    def factory(table: str, content: str, suffix: str = "") -> Path:
        return write_export(csv_dir, table, content, suffix)

    return factory
