"""Migration orchestrator.

This module drives a run: the generic table pass over the catalog (locate,
decode, write, one table at a time in catalog order), then the identity
phases (profiles, roles, project links). Outcomes are collected into a
RunSummary; only batch commit failures are fatal, and they never undo what
earlier tables or phases committed.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from hub_migration.client.exceptions import BatchCommitError
from hub_migration.migration.decoder import RowRejection, decode_table
from hub_migration.migration.identity import IdentityMigrator, PhaseResult
from hub_migration.migration.locator import SourceLocator
from hub_migration.migration.writer import CollectionWriter
from hub_migration.resources import (
    PROFILES_TABLE,
    TABLE_CATALOG,
    USER_PROJECTS_TABLE,
    USER_ROLES_TABLE,
    TableDescriptor,
    get_schema,
)
from hub_migration.utils.logging import get_logger, log_table_progress

logger = get_logger(__name__)


class TableStatus(str, Enum):
    """Outcome of one table in the generic pass."""

    IMPORTED = "imported"
    DISABLED = "disabled"
    MISSING_FILE = "missing_file"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass
class TableOutcome:
    """Result of importing one catalog table."""

    table: str
    status: TableStatus
    rows: int = 0
    written: int = 0
    rejected: int = 0
    source: str | None = None
    note: str = ""


@dataclass
class RunSummary:
    """Everything a run did, for the console summary and the report."""

    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None
    tables: list[TableOutcome] = field(default_factory=list)
    phases: list[PhaseResult] = field(default_factory=list)
    rejections: dict[str, list[RowRejection]] = field(default_factory=dict)
    fatal_errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.fatal_errors

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def total_written(self) -> int:
        return sum(t.written for t in self.tables) + sum(p.written for p in self.phases)

    def add_fatal(self, unit: str, error: BatchCommitError) -> None:
        self.fatal_errors.append(
            {
                "unit": unit,
                "collection": error.collection,
                "chunk_index": error.chunk_index,
                "committed": error.committed,
                "error": str(error),
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )

    def finish(self) -> "RunSummary":
        self.finished_at = datetime.now(UTC)
        return self


class MigrationOrchestrator:
    """Coordinates the table pass and the identity phases.

    Work is strictly sequential: one table, one phase, one request at a time.
    """

    def __init__(
        self,
        locator: SourceLocator,
        writer: CollectionWriter,
        identity_migrator: IdentityMigrator,
        catalog: Sequence[TableDescriptor] = TABLE_CATALOG,
        skip_tables: Sequence[str] = (),
    ):
        """Initialize migration orchestrator.

        Args:
            locator: Finds export files
            writer: Writes collections to the document store
            identity_migrator: Runs the identity phases
            catalog: Ordered table catalog
            skip_tables: Extra tables to leave out of the generic pass
        """
        self.locator = locator
        self.writer = writer
        self.identity_migrator = identity_migrator
        self.catalog = list(catalog)
        self.skip_tables = set(skip_tables)

    async def migrate_table(
        self, descriptor: TableDescriptor, summary: RunSummary | None = None
    ) -> TableOutcome:
        """Locate, decode and write one table.

        Raises:
            BatchCommitError: If a chunk of the table fails to commit
        """
        table = descriptor.name

        if not descriptor.enabled or table in self.skip_tables:
            note = descriptor.note if not descriptor.enabled else "skipped by configuration"
            logger.info("table_skipped", table=table, reason=note)
            return TableOutcome(table, TableStatus.DISABLED, note=note)

        source = self.locator.read(table)
        if source is None:
            logger.warning("table_source_missing", table=table)
            return TableOutcome(table, TableStatus.MISSING_FILE, note="export file not found")

        path, content = source
        logger.info("table_import_started", table=table, source=str(path))

        decoded = decode_table(content, descriptor.schema)
        if decoded.rejected:
            logger.warning("table_rows_rejected", table=table, rejected=len(decoded.rejected))
            if summary is not None:
                summary.rejections[table] = decoded.rejected

        outcome = TableOutcome(
            table,
            TableStatus.EMPTY,
            rows=len(decoded.rows),
            rejected=len(decoded.rejected),
            source=str(path),
        )

        if not decoded.rows:
            logger.info("table_empty", table=table, source=str(path))
            outcome.note = "no rows"
            return outcome

        outcome.written = await self.writer.write(table, decoded.rows)
        outcome.status = TableStatus.IMPORTED
        log_table_progress(
            logger, table, written=outcome.written, total=outcome.rows, rejected=outcome.rejected
        )
        return outcome

    async def run_tables(self, summary: RunSummary | None = None) -> RunSummary:
        """Run the generic table pass over the catalog.

        A missing, empty or failing table never stops the tables after it.
        """
        summary = summary or RunSummary()
        logger.info("table_pass_started", tables=len(self.catalog))

        for descriptor in self.catalog:
            try:
                outcome = await self.migrate_table(descriptor, summary)
            except BatchCommitError as e:
                logger.error("table_import_failed", table=descriptor.name, error=str(e))
                summary.add_fatal(descriptor.name, e)
                outcome = TableOutcome(
                    descriptor.name,
                    TableStatus.FAILED,
                    written=e.committed,
                    note=str(e),
                )
            summary.tables.append(outcome)

        logger.info(
            "table_pass_completed",
            imported=sum(1 for t in summary.tables if t.status is TableStatus.IMPORTED),
            failed=sum(1 for t in summary.tables if t.status is TableStatus.FAILED),
        )
        return summary

    def _decode_identity_table(self, table: str, summary: RunSummary) -> list[dict] | None:
        source = self.locator.read(table)
        if source is None:
            return None

        path, content = source
        decoded = decode_table(content, get_schema(table))
        if decoded.rejected:
            summary.rejections[table] = decoded.rejected
        logger.info("identity_source_loaded", table=table, source=str(path), rows=len(decoded.rows))
        return decoded.rows

    async def run_identity(self, summary: RunSummary | None = None) -> RunSummary:
        """Run the identity phases in order: profiles, roles, project links.

        Without a profiles export nothing runs. A missing roles or project
        links export skips that phase only; in particular the existing
        project links are kept. A batch failure stops the remaining phases.
        """
        summary = summary or RunSummary()
        migrator = self.identity_migrator

        profiles = self._decode_identity_table(PROFILES_TABLE, summary)
        if profiles is None:
            logger.warning("identity_source_missing", table=PROFILES_TABLE)
            for table in (PROFILES_TABLE, USER_ROLES_TABLE, USER_PROJECTS_TABLE):
                summary.phases.append(PhaseResult.not_run(table, "profiles export not found"))
            return summary

        phases = (
            (USER_ROLES_TABLE, migrator.migrate_roles),
            (USER_PROJECTS_TABLE, migrator.migrate_user_projects),
        )

        try:
            summary.phases.append(await migrator.migrate_profiles(profiles))

            for table, migrate in phases:
                rows = self._decode_identity_table(table, summary)
                if rows is None:
                    logger.warning("identity_source_missing", table=table)
                    summary.phases.append(PhaseResult.not_run(table, "export file not found"))
                    continue
                summary.phases.append(await migrate(rows))

        except BatchCommitError as e:
            logger.error("identity_phase_failed", collection=e.collection, error=str(e))
            summary.add_fatal(e.collection, e)
            done = {phase.phase for phase in summary.phases}
            for table in (PROFILES_TABLE, USER_ROLES_TABLE, USER_PROJECTS_TABLE):
                if table not in done:
                    summary.phases.append(PhaseResult.not_run(table, f"aborted: {e}"))

        return summary

    async def run(self) -> RunSummary:
        """Run the table pass, then the identity phases."""
        summary = RunSummary()
        logger.info("migration_started")

        await self.run_tables(summary)
        await self.run_identity(summary)

        summary.finish()
        logger.info(
            "migration_completed",
            success=summary.success,
            written=summary.total_written,
            fatal_errors=len(summary.fatal_errors),
        )
        return summary
