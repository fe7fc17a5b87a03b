"""
Tests for the migration orchestrator.

Runs whole passes against the in-memory store and provider with export
files in a temporary import directory.
"""

import asyncio

import pytest

from hub_migration.client.exceptions import NetworkError, ServerError
from hub_migration.migration.identity import IdentityMigrator
from hub_migration.migration.locator import SourceLocator
from hub_migration.migration.orchestrator import MigrationOrchestrator, RunSummary, TableStatus
from hub_migration.migration.writer import CollectionWriter
from hub_migration.resources import TABLE_CATALOG, ColumnType, TableDescriptor, TableSchema


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def catalog_orchestrator(store, provider, csv_dir):
    """Orchestrator over a caller-supplied catalog."""

    def factory(catalog):
        writer = CollectionWriter(store)
        return MigrationOrchestrator(
            locator=SourceLocator(csv_dir),
            writer=writer,
            identity_migrator=IdentityMigrator(provider, writer),
            catalog=catalog,
        )

    return factory


def outcomes_by_table(summary: RunSummary) -> dict:
    return {outcome.table: outcome for outcome in summary.tables}


def phases_by_name(summary: RunSummary) -> dict:
    return {phase.phase: phase for phase in summary.phases}


# =============================================================================
# Table pass
# =============================================================================


class TestTablePass:

    def test_every_catalog_table_gets_an_outcome_in_order(self, make_orchestrator):
        summary = run(make_orchestrator().run_tables())
        assert [t.table for t in summary.tables] == [d.name for d in TABLE_CATALOG]

    def test_missing_export_does_not_stop_later_tables(self, make_orchestrator, export, store):
        export("employees", "id;name;branch_id\n1;Ann;3\n")

        summary = run(make_orchestrator().run_tables())
        outcomes = outcomes_by_table(summary)

        assert outcomes["branches"].status is TableStatus.MISSING_FILE
        assert outcomes["employees"].status is TableStatus.IMPORTED
        assert store.docs("employees") == {"1": {"id": 1, "name": "Ann", "branch_id": 3}}
        assert summary.success

    def test_identity_tables_are_not_imported_generically(self, make_orchestrator, export, store):
        export("profiles", "user_id;email\nu1;a@x.com\n")
        export("user_form_preferences", "id;user_id\n1;u1\n")

        outcomes = outcomes_by_table(run(make_orchestrator().run_tables()))

        assert outcomes["profiles"].status is TableStatus.DISABLED
        assert outcomes["user_form_preferences"].status is TableStatus.DISABLED
        assert store.docs("profiles") == {}
        assert store.docs("user_form_preferences") == {}

    def test_header_only_export_is_empty(self, make_orchestrator, export, store):
        export("branches", "id;name\n")

        outcome = outcomes_by_table(run(make_orchestrator().run_tables()))["branches"]

        assert outcome.status is TableStatus.EMPTY
        assert store.commits == []

    def test_skip_tables_from_configuration(self, make_orchestrator, export, store):
        export("branches", "id;name\n1;Haifa\n")

        outcome = outcomes_by_table(
            run(make_orchestrator(skip_tables=["branches"]).run_tables())
        )["branches"]

        assert outcome.status is TableStatus.DISABLED
        assert outcome.note == "skipped by configuration"
        assert store.docs("branches") == {}

    def test_rerun_is_idempotent(self, make_orchestrator, export, store):
        export("job_roles", "id;title\n1;Engineer\n2;Manager\n")

        run(make_orchestrator().run_tables())
        run(make_orchestrator().run_tables())

        assert len(store.docs("job_roles")) == 2

    def test_commit_failure_is_recorded_and_pass_continues(
        self, make_orchestrator, export, store
    ):
        export("branches", "id\n1\n2\n3\n")
        export("projects", "id\n10\n")
        store.fail_when = lambda writes: any(
            w.collection == "branches" and w.document_id == "3" for w in writes
        )

        summary = run(make_orchestrator(batch_size=2).run_tables())
        outcomes = outcomes_by_table(summary)

        assert outcomes["branches"].status is TableStatus.FAILED
        assert outcomes["branches"].written == 2
        assert outcomes["projects"].status is TableStatus.IMPORTED
        assert not summary.success
        assert summary.fatal_errors[0]["unit"] == "branches"
        assert summary.fatal_errors[0]["chunk_index"] == 1

    def test_custom_catalog(self, catalog_orchestrator, export, store):
        export("widgets", "id;size\n1;3\n")

        summary = run(catalog_orchestrator([TableDescriptor("widgets")]).run_tables())

        assert [t.table for t in summary.tables] == ["widgets"]
        assert store.docs("widgets") == {"1": {"id": 1, "size": 3}}

    def test_rejected_rows_are_collected(self, catalog_orchestrator, export, store):
        schema = TableSchema({"rank": ColumnType.NUMBER})
        export("levels", "id;rank\n1;3\n2;high\n")

        summary = run(catalog_orchestrator([TableDescriptor("levels", schema=schema)]).run_tables())

        outcome = summary.tables[0]
        assert outcome.status is TableStatus.IMPORTED
        assert outcome.written == 1
        assert outcome.rejected == 1
        assert [r.line_number for r in summary.rejections["levels"]] == [3]
        assert set(store.docs("levels")) == {"1"}


# =============================================================================
# Identity phases
# =============================================================================


class TestIdentityPass:

    def test_full_identity_run(self, make_orchestrator, export, provider, store):
        export("profiles", "user_id;email;full_name\nu1;A@X.com;Ann\n")
        export("user_roles", "user_id;role\nu1;manager\nu404;admin\n")
        export("user_projects", "user_id;project_id\nu1;p9\n")

        summary = run(make_orchestrator().run_identity())
        phases = phases_by_name(summary)

        uid = provider.find("a@x.com").uid
        assert phases["profiles"].created == 1
        assert phases["user_roles"].written == 1
        assert phases["user_roles"].dropped == 1
        assert store.docs("user_roles") == {uid: {"role": "manager"}}
        assert list(store.docs("user_projects").values()) == [{"user_id": uid, "project_id": "p9"}]
        assert summary.success

    def test_numeric_looking_ids_still_match(self, make_orchestrator, export, provider, store):
        export("profiles", "user_id;email\n007;a@x.com\n")
        export("user_roles", "user_id;role\n007;admin\n")
        export("user_projects", "user_id;project_id\n007;0042\n")

        phases = phases_by_name(run(make_orchestrator().run_identity()))

        assert phases["user_roles"].written == 1
        link = next(iter(store.docs("user_projects").values()))
        assert link["project_id"] == "0042"

    def test_no_profiles_export_runs_nothing(self, make_orchestrator, export, store):
        export("user_roles", "user_id;role\nu1;admin\n")

        summary = run(make_orchestrator().run_identity())

        assert [p.ran for p in summary.phases] == [False, False, False]
        assert store.commits == []

    def test_missing_links_export_keeps_existing_links(self, make_orchestrator, export, store):
        export("profiles", "user_id;email\nu1;a@x.com\n")
        store.docs("user_projects")["keep"] = {"user_id": "x", "project_id": "p1"}

        phases = phases_by_name(run(make_orchestrator().run_identity()))

        assert not phases["user_projects"].ran
        assert not phases["user_roles"].ran
        assert store.docs("user_projects") == {"keep": {"user_id": "x", "project_id": "p1"}}

    def test_empty_links_export_clears_links(self, make_orchestrator, export, store):
        export("profiles", "user_id;email\nu1;a@x.com\n")
        export("user_projects", "user_id;project_id\n")
        store.docs("user_projects")["old"] = {"user_id": "x", "project_id": "p1"}

        phases = phases_by_name(run(make_orchestrator().run_identity()))

        assert phases["user_projects"].deleted == 1
        assert store.docs("user_projects") == {}

    def test_commit_failure_aborts_later_phases(self, make_orchestrator, export, store):
        export("profiles", "user_id;email\nu1;a@x.com\n")
        export("user_roles", "user_id;role\nu1;admin\n")
        export("user_projects", "user_id;project_id\nu1;p1\n")
        store.fail_when = lambda writes: writes[0].collection == "user_roles"

        summary = run(make_orchestrator().run_identity())
        phases = phases_by_name(summary)

        assert phases["profiles"].ran
        assert not phases["user_projects"].ran
        assert phases["user_projects"].note.startswith("aborted")
        assert summary.fatal_errors[0]["collection"] == "user_roles"
        assert store.docs("user_projects") == {}


# =============================================================================
# Whole run
# =============================================================================


class TestRun:

    def test_run_covers_tables_and_identity(self, make_orchestrator, export, store):
        export("branches", "id;name\n1;Haifa\n")
        export("profiles", "user_id;email\nu1;a@x.com\n")

        summary = run(make_orchestrator().run())

        assert summary.finished_at is not None
        assert summary.duration_seconds >= 0
        assert summary.total_written == 2
        assert len(summary.phases) == 3

    def test_table_failure_does_not_block_identity(self, make_orchestrator, export, store):
        export("branches", "id\n1\n")
        export("profiles", "user_id;email\nu1;a@x.com\n")
        store.fail_when = lambda writes: writes[0].collection == "branches"

        summary = run(make_orchestrator().run())

        assert not summary.success
        assert phases_by_name(summary)["profiles"].written == 1


# =============================================================================
# Backend failures outside batch commits
# =============================================================================


class TestBackendFailures:

    def test_account_listing_failure_still_yields_summary(
        self, make_orchestrator, export, provider, store, monkeypatch
    ):
        existing = provider.add_account("a@x.com")
        export("branches", "id;name\n1;Haifa\n")
        export("profiles", "user_id;email\nu1;A@x.com\nu2;b@x.com\n")

        async def listing_down():
            raise ServerError("listing down", status_code=503)
            yield  # pragma: no cover

        monkeypatch.setattr(provider, "iter_accounts", listing_down)

        summary = run(make_orchestrator().run())
        profiles = phases_by_name(summary)["profiles"]

        assert summary.success
        assert summary.finished_at is not None
        assert profiles.matched == 1
        assert profiles.created == 1
        assert store.docs("branches") == {"1": {"id": 1, "name": "Haifa"}}
        assert store.docs("profiles")[existing.uid]["email"] == "a@x.com"
        assert len(provider.accounts) == 2

    def test_link_listing_failure_is_recorded_as_fatal(
        self, make_orchestrator, export, store, monkeypatch
    ):
        export("profiles", "user_id;email\nu1;a@x.com\n")
        export("user_projects", "user_id;project_id\nu1;p1\n")

        async def list_timed_out(collection):
            raise NetworkError("list timed out")

        monkeypatch.setattr(store, "list_documents", list_timed_out)

        summary = run(make_orchestrator().run())
        phases = phases_by_name(summary)

        assert not summary.success
        assert summary.finished_at is not None
        assert summary.fatal_errors[0]["collection"] == "user_projects"
        assert summary.fatal_errors[0]["committed"] == 0
        assert phases["profiles"].written == 1
        assert not phases["user_projects"].ran
        assert phases["user_projects"].note.startswith("aborted")
        assert store.docs("user_projects") == {}
