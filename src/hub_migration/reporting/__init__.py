"""Reporting for Hub Bridge migration runs."""

from hub_migration.reporting.report import RunReport, generate_run_report

__all__ = [
    "RunReport",
    "generate_run_report",
]
