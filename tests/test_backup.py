"""Tests for collection backups."""

import asyncio
import json
from datetime import UTC, datetime

from hub_migration.migration.backup import backup_collections

NOW = datetime(2024, 7, 14, 23, 30, tzinfo=UTC)


class TestBackupCollections:

    def test_writes_dated_snapshot(self, store, tmp_path):
        store.docs("branches").update({"1": {"name": "Haifa"}, "2": {"name": "Eilat"}})
        store.docs("profiles")["uid-1"] = {"email": "a@x.com"}

        result = asyncio.run(
            backup_collections(store, tmp_path / "backups", ["branches", "profiles", "projects"], now=NOW)
        )

        assert result.path == tmp_path / "backups" / "backup_2024-07-14.json"
        assert result.counts == {"branches": 2, "profiles": 1, "projects": 0}
        assert result.total_documents == 3

        data = json.loads(result.path.read_text(encoding="utf-8"))
        assert data["timestamp"] == NOW.isoformat()
        assert data["collections"]["branches"] == [
            {"id": "1", "name": "Haifa"},
            {"id": "2", "name": "Eilat"},
        ]
        assert data["collections"]["projects"] == []

    def test_same_day_backup_overwrites(self, store, tmp_path):
        asyncio.run(backup_collections(store, tmp_path, ["branches"], now=NOW))
        store.docs("branches")["1"] = {"name": "Haifa"}

        result = asyncio.run(backup_collections(store, tmp_path, ["branches"], now=NOW))

        assert len(list(tmp_path.iterdir())) == 1
        assert result.counts["branches"] == 1

    def test_non_ascii_text_is_kept(self, store, tmp_path):
        store.docs("branches")["1"] = {"name": "חיפה"}

        result = asyncio.run(backup_collections(store, tmp_path, ["branches"], now=NOW))

        assert "חיפה" in result.path.read_text(encoding="utf-8")
