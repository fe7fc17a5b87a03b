"""
CLI context manager for Hub Bridge.

This module provides the context object that is passed to all CLI commands,
containing configuration, the credential and the two REST clients. Clients
are created once per command and passed explicitly to the migration code.
"""

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from hub_migration.client.base_client import TokenProvider, static_token
from hub_migration.client.credentials import EMULATOR_TOKEN, ServiceAccount, load_service_account
from hub_migration.client.exceptions import ConfigurationError
from hub_migration.client.firestore_client import FirestoreClient
from hub_migration.client.identity_client import IdentityClient
from hub_migration.config import MigrationConfig, load_config_from_yaml
from hub_migration.migration.identity import IdentityMigrator
from hub_migration.migration.locator import SourceLocator
from hub_migration.migration.orchestrator import MigrationOrchestrator
from hub_migration.migration.writer import CollectionWriter
from hub_migration.utils.logging import get_logger

logger = get_logger(__name__)


def load_config(config_path: Path | None) -> MigrationConfig:
    """Load configuration from YAML, or from defaults and environment.

    Raises:
        ConfigurationError: If the file cannot be read or is invalid
    """
    try:
        if config_path is None:
            return MigrationConfig()
        return load_config_from_yaml(config_path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


@dataclass
class MigrationContext:
    """
    Context object for CLI commands.

    This object holds configuration and clients that are shared across CLI
    commands. It is passed via Click's context mechanism.

    Attributes:
        config_path: Path to configuration file
        log_level: Console logging level
        log_file: Optional log file path
        config: Loaded migration configuration
        service_account: Credential for both REST APIs
        firestore_client: Client for the document store
        identity_client: Client for the identity provider
    """

    config_path: Path | None = None
    log_level: str = "WARNING"
    log_file: Path | None = None

    # Lazy-loaded attributes
    _config: MigrationConfig | None = field(default=None, repr=False)
    _service_account: ServiceAccount | None = field(default=None, init=False, repr=False)
    _firestore_client: FirestoreClient | None = field(default=None, init=False, repr=False)
    _identity_client: IdentityClient | None = field(default=None, init=False, repr=False)

    @property
    def config(self) -> MigrationConfig:
        """Get or load migration configuration."""
        if self._config is None:
            logger.debug("loading_configuration", config_path=str(self.config_path))
            self._config = load_config(self.config_path)
        return self._config

    @property
    def service_account(self) -> ServiceAccount:
        """Get or load the service-account credential.

        Raises:
            CredentialMissingError: If no credential is available
        """
        if self._service_account is None:
            self._service_account = load_service_account(self.config.paths.credentials_file)
        return self._service_account

    @property
    def project_id(self) -> str:
        return self.config.firebase.project_id or self.service_account.project_id

    def _token_provider(self, emulator_host: str | None) -> TokenProvider:
        if emulator_host:
            return static_token(EMULATOR_TOKEN)
        return self.service_account.access_token

    def _client_options(self) -> dict:
        perf = self.config.performance
        return {
            "timeout": self.config.firebase.timeout,
            "rate_limit": perf.rate_limit,
            "retry_attempts": perf.retry_attempts,
            "retry_backoff_min": perf.retry_backoff_min,
            "retry_backoff_max": perf.retry_backoff_max,
            "max_connections": perf.http_max_connections,
            "max_keepalive_connections": perf.http_max_keepalive_connections,
            "log_payloads": self.config.logging.log_payloads,
            "max_payload_size": self.config.logging.max_payload_size,
        }

    @property
    def firestore_client(self) -> FirestoreClient:
        """Get or create the document store client."""
        if self._firestore_client is None:
            firebase = self.config.firebase
            # Loading the credential first makes its absence fatal in every mode
            _ = self.service_account
            self._firestore_client = FirestoreClient(
                base_url=firebase.resolved_firestore_url(),
                project_id=self.project_id,
                token_provider=self._token_provider(firebase.firestore_emulator_host),
                database_id=firebase.database_id,
                page_size=self.config.performance.document_page_size,
                **self._client_options(),
            )
        return self._firestore_client

    @property
    def identity_client(self) -> IdentityClient:
        """Get or create the identity provider client."""
        if self._identity_client is None:
            firebase = self.config.firebase
            _ = self.service_account
            self._identity_client = IdentityClient(
                base_url=firebase.resolved_identity_url(),
                project_id=self.project_id,
                token_provider=self._token_provider(firebase.auth_emulator_host),
                page_size=self.config.performance.account_page_size,
                **self._client_options(),
            )
        return self._identity_client

    def writer(self) -> CollectionWriter:
        return CollectionWriter(self.firestore_client, batch_size=self.config.performance.batch_size)

    def locator(self) -> SourceLocator:
        paths = self.config.paths
        return SourceLocator(paths.import_dir, extension=paths.export_extension)

    def orchestrator(self) -> MigrationOrchestrator:
        """Build an orchestrator wired to this context's clients."""
        writer = self.writer()
        return MigrationOrchestrator(
            locator=self.locator(),
            writer=writer,
            identity_migrator=IdentityMigrator(self.identity_client, writer),
            skip_tables=self.config.tables.skip_tables,
        )

    async def aclose(self) -> None:
        """Close the clients created by this context."""
        if self._firestore_client is not None:
            await self._firestore_client.close()
            self._firestore_client = None
        if self._identity_client is not None:
            await self._identity_client.close()
            self._identity_client = None
