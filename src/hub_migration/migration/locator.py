"""Resolve table names to export files in the import directory."""

from pathlib import Path

from hub_migration.utils.logging import get_logger

logger = get_logger(__name__)


class SourceLocator:
    """Finds the export file of a table.

    A table's file is the first entry (in name order) of the import directory
    whose name starts with ``{table}-export`` and ends with the export
    extension, for example ``branches-export-2024-05-01.csv``.
    """

    def __init__(self, import_dir: str | Path, extension: str = ".csv"):
        """Initialize source locator.

        Args:
            import_dir: Directory holding the export files
            extension: Extension of export files, including the dot
        """
        self.import_dir = Path(import_dir)
        self.extension = extension

    def locate(self, table: str) -> Path | None:
        """Find the export file of a table.

        Returns:
            Path to the file, or None when the table has no export
        """
        if not self.import_dir.is_dir():
            logger.warning("import_dir_missing", import_dir=str(self.import_dir), table=table)
            return None

        prefix = f"{table}-export"
        for entry in sorted(self.import_dir.iterdir()):
            if entry.is_file() and entry.name.startswith(prefix) and entry.name.endswith(
                self.extension
            ):
                logger.debug("source_file_located", table=table, path=str(entry))
                return entry

        logger.debug("source_file_not_found", table=table, import_dir=str(self.import_dir))
        return None

    def read(self, table: str) -> tuple[Path, str] | None:
        """Locate and read the export file of a table.

        The file is read as UTF-8; a byte-order mark is dropped.

        Returns:
            (path, content), or None when the table has no export
        """
        path = self.locate(table)
        if path is None:
            return None
        return path, path.read_text(encoding="utf-8-sig")
