"""Snapshot document-store collections to a JSON file."""

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from hub_migration.migration.writer import DocumentStore
from hub_migration.resources import BACKUP_COLLECTIONS
from hub_migration.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class BackupResult:
    """Where a backup was written and how many documents each collection had."""

    path: Path
    timestamp: str
    counts: dict[str, int] = field(default_factory=dict)

    @property
    def total_documents(self) -> int:
        return sum(self.counts.values())


async def backup_collections(
    store: DocumentStore,
    backup_dir: str | Path,
    collections: Sequence[str] = BACKUP_COLLECTIONS,
    now: datetime | None = None,
) -> BackupResult:
    """Write every document of the given collections to one JSON file.

    The file is ``backup_dir/backup_<YYYY-MM-DD>.json`` and holds
    ``{"timestamp": ..., "collections": {name: [{"id": ..., **fields}]}}``.
    A second backup on the same day overwrites the first.

    Args:
        store: Document store to read from
        backup_dir: Directory for the backup file
        collections: Collections to snapshot
        now: Backup time (defaults to UTC now)

    Returns:
        BackupResult with the file path and per-collection counts
    """
    now = now or datetime.now(UTC)
    data: dict[str, list[dict]] = {}

    for collection in collections:
        logger.info("backup_collection_started", collection=collection)
        documents = await store.list_documents(collection)
        data[collection] = [{"id": doc.id, **doc.fields} for doc in documents]

    output_dir = Path(backup_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"backup_{now.strftime('%Y-%m-%d')}.json"

    payload = {"timestamp": now.isoformat(), "collections": data}
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False, default=str), encoding="utf-8")

    result = BackupResult(
        path=path,
        timestamp=now.isoformat(),
        counts={name: len(docs) for name, docs in data.items()},
    )
    logger.info("backup_completed", path=str(path), documents=result.total_documents)
    return result
