"""Central table definitions - single source of truth.

This module provides the definitive, ordered catalog of the tables exported
from the source system. All other modules should import from here rather
than defining their own hardcoded lists.

Order matters: entities referenced by others come before their referrers
(branches before employees, profiles before user_roles). The order is a
convention of this list and is not checked at runtime.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum


class ColumnType(str, Enum):
    """Semantic type declared for a column of an export file."""

    AUTO = "auto"  # empty -> null, numeric -> number, true/false -> bool, else text
    TEXT = "text"  # raw text, empty -> null
    NUMBER = "number"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class TableSchema:
    """Declared column types for one table.

    Columns that are not declared are decoded as AUTO.
    """

    columns: Mapping[str, ColumnType] = field(default_factory=dict)

    def type_of(self, column: str) -> ColumnType:
        return self.columns.get(column, ColumnType.AUTO)

    def __hash__(self) -> int:
        return hash(tuple(sorted(self.columns.items())))


@dataclass(frozen=True)
class TableDescriptor:
    """Metadata for a table in the catalog."""

    name: str
    enabled: bool = True
    note: str = ""  # Shown when the table is skipped
    schema: TableSchema | None = None


# Identity-bound tables keep their keys textual: a numeric-looking user id
# must still match the profile it came from.
PROFILES_SCHEMA = TableSchema(
    {
        "user_id": ColumnType.TEXT,
        "email": ColumnType.TEXT,
        "full_name": ColumnType.TEXT,
        "created_at": ColumnType.TEXT,
    }
)
USER_ROLES_SCHEMA = TableSchema({"user_id": ColumnType.TEXT, "role": ColumnType.TEXT})
USER_PROJECTS_SCHEMA = TableSchema({"user_id": ColumnType.TEXT, "project_id": ColumnType.TEXT})

IDENTITY_NOTE = "migrated by the identity phase"

# Complete catalog of exported tables, in dependency order
TABLE_CATALOG: tuple[TableDescriptor, ...] = (
    # Lookup entities (no references)
    TableDescriptor("branches"),
    TableDescriptor("employing_companies"),
    TableDescriptor("seniority_levels"),
    TableDescriptor("leaving_reasons"),
    TableDescriptor("job_roles"),
    TableDescriptor("projects"),
    # References every lookup entity above
    TableDescriptor("employees"),
    # Identity-bound tables: account ids change, so rows are re-keyed
    TableDescriptor("profiles", enabled=False, note=IDENTITY_NOTE, schema=PROFILES_SCHEMA),
    TableDescriptor("user_roles", enabled=False, note=IDENTITY_NOTE, schema=USER_ROLES_SCHEMA),
    TableDescriptor(
        "user_projects", enabled=False, note=IDENTITY_NOTE, schema=USER_PROJECTS_SCHEMA
    ),
    TableDescriptor(
        "user_form_preferences", enabled=False, note="per-user UI preferences are not migrated"
    ),
)

PROFILES_TABLE = "profiles"
USER_ROLES_TABLE = "user_roles"
USER_PROJECTS_TABLE = "user_projects"

# Identity phases run in this order
IDENTITY_TABLES: tuple[str, ...] = (PROFILES_TABLE, USER_ROLES_TABLE, USER_PROJECTS_TABLE)

# Collections snapshotted by the backup command
BACKUP_COLLECTIONS: tuple[str, ...] = (
    "employees",
    "job_roles",
    "projects",
    "branches",
    "employing_companies",
    "seniority_levels",
    "leaving_reasons",
    "performance_levels",
    "profiles",
    "user_roles",
    "user_projects",
)


def get_all_tables() -> list[str]:
    """Get all catalog table names in dependency order."""
    return [descriptor.name for descriptor in TABLE_CATALOG]


def get_descriptor(table: str) -> TableDescriptor:
    """Get the catalog entry of a table.

    Args:
        table: Table name

    Returns:
        TableDescriptor for the table

    Raises:
        KeyError: If the table is not in the catalog
    """
    for descriptor in TABLE_CATALOG:
        if descriptor.name == table:
            return descriptor
    raise KeyError(f"Unknown table: {table}")


def get_schema(table: str) -> TableSchema | None:
    """Get the declared schema of a table, if any."""
    try:
        return get_descriptor(table).schema
    except KeyError:
        return None


def get_enabled_tables(
    skip_tables: Iterable[str] = (),
    catalog: Iterable[TableDescriptor] = TABLE_CATALOG,
) -> list[TableDescriptor]:
    """Get the tables the generic table pass imports, in catalog order.

    Args:
        skip_tables: Extra table names to disable
        catalog: Catalog to filter

    Returns:
        Enabled descriptors not listed in skip_tables
    """
    skipped = set(skip_tables)
    return [d for d in catalog if d.enabled and d.name not in skipped]


def is_valid_table(table: str) -> bool:
    """Check if a table is in the catalog."""
    return table in get_all_tables()


ALL_TABLES = get_all_tables()
