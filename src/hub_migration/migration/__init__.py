"""
Migration module for Hub Bridge.

This module provides record decoding, export file lookup, batched collection
writes, identity migration and run orchestration.
"""

# Backup
from hub_migration.migration.backup import BackupResult, backup_collections

# Decoding
from hub_migration.migration.decoder import (
    ABSENT,
    DecodedTable,
    RowRejection,
    coerce_value,
    decode,
    decode_table,
    split_fields,
)

# Identity migration
from hub_migration.migration.identity import (
    IdentityMap,
    IdentityMigrator,
    IdentityProvider,
    IdentityRecord,
    PhaseResult,
    RowOutcome,
    RowStatus,
    grant_role,
)
from hub_migration.migration.locator import SourceLocator

# Orchestration
from hub_migration.migration.orchestrator import (
    MigrationOrchestrator,
    RunSummary,
    TableOutcome,
    TableStatus,
)

# Writing
from hub_migration.migration.writer import CollectionWriter, DocumentStore, WriteResult

__all__ = [
    # Decoding
    "ABSENT",
    "DecodedTable",
    "RowRejection",
    "coerce_value",
    "decode",
    "decode_table",
    "split_fields",
    "SourceLocator",
    # Writing
    "CollectionWriter",
    "DocumentStore",
    "WriteResult",
    # Identity migration
    "IdentityMap",
    "IdentityMigrator",
    "IdentityProvider",
    "IdentityRecord",
    "PhaseResult",
    "RowOutcome",
    "RowStatus",
    "grant_role",
    # Orchestration
    "MigrationOrchestrator",
    "RunSummary",
    "TableOutcome",
    "TableStatus",
    # Backup
    "BackupResult",
    "backup_collections",
]
