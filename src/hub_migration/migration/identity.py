"""Identity migration: accounts, profiles, roles and project links.

User ids change when accounts move to the identity provider, so this module
runs three phases in strict order:

1. Profiles: match each profile e-mail to an existing account, or create
   one, and record ``source user id -> account uid`` in the IdentityMap.
   The map is frozen once the phase completes.
2. Roles: re-key each role assignment through the map and merge it into
   ``user_roles/{uid}``.
3. Project links: re-key each link through the map and replace the whole
   ``user_projects`` collection with the result.

Rows whose user id is not in the map are dropped and counted, never written
with a dangling reference. Per-row results are returned as RowOutcome values;
only batch commit failures raise.
"""

import secrets
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from hub_migration.client.exceptions import (
    APIError,
    ConflictError,
    IdentityCreationError,
    MigrationError,
    NetworkError,
    StateError,
)
from hub_migration.client.identity_client import IdentityAccount
from hub_migration.migration.decoder import ABSENT, Row
from hub_migration.migration.writer import CollectionWriter
from hub_migration.resources import PROFILES_TABLE, USER_PROJECTS_TABLE, USER_ROLES_TABLE
from hub_migration.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ROLE = "user"


@runtime_checkable
class IdentityProvider(Protocol):
    """Protocol for the identity provider.

    IdentityClient implements it; tests use an in-memory provider.
    """

    def iter_accounts(self) -> AsyncIterator[IdentityAccount]:
        """Page through every existing account."""
        ...

    async def create_account(
        self, email: str, password: str, display_name: str | None = None
    ) -> IdentityAccount:
        """Create an account; ConflictError if the e-mail is taken."""
        ...

    async def find_account_by_email(self, email: str) -> IdentityAccount | None:
        """Look an account up by e-mail."""
        ...


def generate_password() -> str:
    """One-time password for a created account. Never logged or reported."""
    return secrets.token_urlsafe(16)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _text(row: Row, column: str) -> str | None:
    """Column value as text, or None when null, absent or blank."""
    value = row.get(column)
    if value is None or value is ABSENT:
        return None
    text = str(value).strip()
    return text or None


class RowStatus(str, Enum):
    """What happened to one source row."""

    CREATED = "created"  # account created
    MATCHED = "matched"  # existing account reused
    WRITTEN = "written"
    SKIPPED = "skipped"  # not migratable, not an error
    DROPPED = "dropped"  # user id has no identity mapping
    FAILED = "failed"


@dataclass(frozen=True)
class RowOutcome:
    """Result of processing one source row."""

    phase: str
    row_index: int
    status: RowStatus
    key: str | None = None  # e-mail or source user id
    reason: str = ""


@dataclass
class PhaseResult:
    """Counts and row outcomes of one identity phase."""

    phase: str
    rows: int = 0
    created: int = 0
    matched: int = 0
    written: int = 0
    skipped: int = 0
    dropped: int = 0
    failed: int = 0
    deleted: int = 0
    ran: bool = True
    note: str = ""
    outcomes: list[RowOutcome] = field(default_factory=list)

    def record(self, outcome: RowOutcome) -> None:
        counter = outcome.status.value
        setattr(self, counter, getattr(self, counter) + 1)
        if outcome.status is not RowStatus.WRITTEN:
            self.outcomes.append(outcome)

    def counts(self) -> dict[str, int]:
        return {
            "rows": self.rows,
            "created": self.created,
            "matched": self.matched,
            "written": self.written,
            "skipped": self.skipped,
            "dropped": self.dropped,
            "failed": self.failed,
            "deleted": self.deleted,
        }

    @classmethod
    def not_run(cls, phase: str, note: str) -> "PhaseResult":
        return cls(phase=phase, ran=False, note=note)


@dataclass(frozen=True)
class IdentityRecord:
    """One migrated user: old id, new account uid, e-mail and name."""

    source_id: str
    dest_id: str
    email: str
    display_name: str = ""


class IdentityMap:
    """Maps source user ids to account uids for one run.

    Entries are only ever added, and only until the map is frozen; a source
    id keeps its first mapping.
    """

    def __init__(self) -> None:
        self._by_source: dict[str, IdentityRecord] = {}
        self._by_dest: dict[str, list[str]] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def add(self, record: IdentityRecord) -> bool:
        """Add a mapping; returns False when the source id is already mapped.

        Raises:
            StateError: If the map is frozen
        """
        if self._frozen:
            raise StateError("Identity map is frozen; mappings can only be added during profiles")

        existing = self._by_source.get(record.source_id)
        if existing is not None:
            if existing.dest_id != record.dest_id:
                logger.warning(
                    "identity_mapping_conflict",
                    source_id=record.source_id,
                    kept=existing.dest_id,
                    ignored=record.dest_id,
                )
            return False

        self._by_source[record.source_id] = record
        self._by_dest.setdefault(record.dest_id, []).append(record.source_id)
        return True

    def resolve(self, source_id: str | None) -> str | None:
        """Account uid for a source user id, or None."""
        if source_id is None:
            return None
        record = self._by_source.get(source_id)
        return record.dest_id if record else None

    def get(self, source_id: str) -> IdentityRecord | None:
        return self._by_source.get(source_id)

    def sources_for(self, dest_id: str) -> list[str]:
        """Source user ids mapped to an account uid."""
        return list(self._by_dest.get(dest_id, []))

    def as_dict(self) -> dict[str, str]:
        return {source: record.dest_id for source, record in self._by_source.items()}

    def records(self) -> list[IdentityRecord]:
        return list(self._by_source.values())

    def __len__(self) -> int:
        return len(self._by_source)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._by_source


class IdentityMigrator:
    """Runs the profile, role and project-link phases."""

    def __init__(
        self,
        provider: IdentityProvider,
        writer: CollectionWriter,
        password_factory: Callable[[], str] = generate_password,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize identity migrator.

        Args:
            provider: Identity provider holding the accounts
            writer: Writer for the profile, role and link collections
            password_factory: Generates one-time passwords for new accounts
            clock: Returns the current time (defaults to UTC now)
        """
        self.provider = provider
        self.writer = writer
        self.password_factory = password_factory
        self.clock = clock or (lambda: datetime.now(UTC))
        self.identity_map = IdentityMap()
        self._accounts_by_email: dict[str, IdentityAccount] | None = None

    async def load_accounts(self) -> dict[str, IdentityAccount]:
        """Index every existing account by lowercase e-mail.

        If listing fails, the accounts read so far are kept. An e-mail missing
        from the index still resolves to its account through the conflict
        lookup in account creation.

        Returns:
            The e-mail index
        """
        index: dict[str, IdentityAccount] = {}
        try:
            async for account in self.provider.iter_accounts():
                if account.email:
                    index.setdefault(normalize_email(account.email), account)
        except (APIError, NetworkError) as e:
            logger.warning("identity_accounts_unavailable", indexed=len(index), error=str(e))

        self._accounts_by_email = index
        logger.info("identity_accounts_loaded", accounts=len(index))
        return index

    async def _account_index(self) -> dict[str, IdentityAccount]:
        if self._accounts_by_email is None:
            return await self.load_accounts()
        return self._accounts_by_email

    async def _ensure_account(
        self, email: str, display_name: str | None
    ) -> tuple[IdentityAccount, RowStatus]:
        """Reuse the account for an e-mail, or create it.

        Raises:
            IdentityCreationError: If the account can be neither found nor created
        """
        accounts = await self._account_index()

        account = accounts.get(email)
        if account is not None:
            logger.debug("identity_account_matched", email=email, uid=account.uid)
            return account, RowStatus.MATCHED

        try:
            account = await self.provider.create_account(
                email=email,
                password=self.password_factory(),
                display_name=display_name,
            )
            status = RowStatus.CREATED
        except ConflictError as e:
            # Created by someone else, or by a request whose response was lost
            try:
                account = await self.provider.find_account_by_email(email)
            except (APIError, NetworkError) as lookup_error:
                raise IdentityCreationError(
                    f"Account exists but lookup failed: {lookup_error}", email=email
                ) from lookup_error
            if account is None:
                raise IdentityCreationError(
                    f"Account reported as existing but not found: {e.message}", email=email
                ) from e
            status = RowStatus.MATCHED
        except (APIError, NetworkError) as e:
            raise IdentityCreationError(f"Account creation failed: {e}", email=email) from e

        accounts[email] = account
        return account, status

    async def migrate_profiles(self, rows: Sequence[Row]) -> PhaseResult:
        """Profile phase: accounts, identity map and profile documents.

        Rows without an e-mail are skipped. A row whose account cannot be
        created is logged and skipped, so its dependents are dropped later.

        Raises:
            StateError: If the profile phase already ran
            BatchCommitError: If writing profile documents fails
        """
        if self.identity_map.frozen:
            raise StateError("The profile phase has already run")

        await self._account_index()

        result = PhaseResult(phase=PROFILES_TABLE, rows=len(rows))
        documents: list[tuple[str | None, dict[str, Any]]] = []

        for index, row in enumerate(rows):
            raw_email = _text(row, "email")
            if raw_email is None:
                result.record(
                    RowOutcome(PROFILES_TABLE, index, RowStatus.SKIPPED, reason="missing email")
                )
                continue

            email = normalize_email(raw_email)
            full_name = _text(row, "full_name")
            source_id = _text(row, "user_id")

            try:
                account, status = await self._ensure_account(email, full_name)
            except IdentityCreationError as e:
                logger.error("identity_account_failed", email=email, error=str(e))
                result.record(RowOutcome(PROFILES_TABLE, index, RowStatus.FAILED, email, str(e)))
                continue

            if status is RowStatus.CREATED:
                logger.info("identity_account_created", email=email, uid=account.uid)
            result.record(RowOutcome(PROFILES_TABLE, index, status, email))

            if source_id is None:
                logger.warning("profile_without_user_id", email=email, uid=account.uid)
            else:
                self.identity_map.add(
                    IdentityRecord(
                        source_id=source_id,
                        dest_id=account.uid,
                        email=email,
                        display_name=full_name or "",
                    )
                )

            documents.append(
                (
                    account.uid,
                    {
                        "user_id": account.uid,
                        "email": email,
                        "full_name": full_name or "",
                        "created_at": _text(row, "created_at") or self.clock().isoformat(),
                    },
                )
            )

        if documents:
            await self.writer.write_documents(PROFILES_TABLE, documents)
        result.written = len(documents)

        self.identity_map.freeze()
        logger.info(
            "profile_phase_completed",
            created=result.created,
            matched=result.matched,
            skipped=result.skipped,
            failed=result.failed,
            mapped=len(self.identity_map),
        )
        return result

    def _require_frozen_map(self, phase: str) -> None:
        if not self.identity_map.frozen:
            raise StateError(f"The {phase} phase needs a completed profile phase")

    async def migrate_roles(self, rows: Sequence[Row]) -> PhaseResult:
        """Role phase: merge ``{role}`` into ``user_roles/{uid}``.

        Raises:
            StateError: If the profile phase has not completed
            BatchCommitError: If writing role documents fails
        """
        self._require_frozen_map(USER_ROLES_TABLE)

        result = PhaseResult(phase=USER_ROLES_TABLE, rows=len(rows))
        documents: list[tuple[str | None, dict[str, Any]]] = []

        for index, row in enumerate(rows):
            source_id = _text(row, "user_id")
            uid = self.identity_map.resolve(source_id)
            if uid is None:
                result.record(
                    RowOutcome(
                        USER_ROLES_TABLE, index, RowStatus.DROPPED, source_id, "unmapped user_id"
                    )
                )
                continue

            documents.append((uid, {"role": _text(row, "role") or DEFAULT_ROLE}))
            result.record(RowOutcome(USER_ROLES_TABLE, index, RowStatus.WRITTEN, source_id))

        if documents:
            await self.writer.write_documents(USER_ROLES_TABLE, documents)

        logger.info("role_phase_completed", written=result.written, dropped=result.dropped)
        return result

    async def migrate_user_projects(self, rows: Sequence[Row]) -> PhaseResult:
        """Project-link phase: replace ``user_projects`` with re-keyed links.

        The collection is wiped even when no row survives: this run's input
        is authoritative.

        Raises:
            StateError: If the profile phase has not completed
            BatchCommitError: If deleting or inserting links fails
        """
        self._require_frozen_map(USER_PROJECTS_TABLE)

        result = PhaseResult(phase=USER_PROJECTS_TABLE, rows=len(rows))
        links: list[dict[str, Any]] = []

        for index, row in enumerate(rows):
            source_id = _text(row, "user_id")
            uid = self.identity_map.resolve(source_id)
            if uid is None:
                result.record(
                    RowOutcome(
                        USER_PROJECTS_TABLE, index, RowStatus.DROPPED, source_id, "unmapped user_id"
                    )
                )
                continue

            project_id = row.get("project_id")
            if project_id is None or project_id is ABSENT or project_id == "":
                result.record(
                    RowOutcome(
                        USER_PROJECTS_TABLE,
                        index,
                        RowStatus.SKIPPED,
                        source_id,
                        "missing project_id",
                    )
                )
                continue

            links.append({"user_id": uid, "project_id": project_id})
            result.record(RowOutcome(USER_PROJECTS_TABLE, index, RowStatus.WRITTEN, source_id))

        replaced = await self.writer.replace_collection(USER_PROJECTS_TABLE, links)
        result.deleted = replaced.deleted

        logger.info(
            "user_projects_phase_completed",
            deleted=result.deleted,
            written=result.written,
            dropped=result.dropped,
        )
        return result


async def grant_role(
    provider: IdentityProvider,
    writer: CollectionWriter,
    email: str,
    role: str = "super_admin",
) -> IdentityAccount:
    """Merge a role document for an existing account.

    Raises:
        MigrationError: If no account has this e-mail
        BatchCommitError: If the role document cannot be written
    """
    email = normalize_email(email)
    account = await provider.find_account_by_email(email)
    if account is None:
        raise MigrationError(f"No account found with e-mail {email}")

    await writer.write_documents(USER_ROLES_TABLE, [(account.uid, {"role": role})])
    logger.info("role_granted", email=email, uid=account.uid, role=role)
    return account
