"""
Period report job.

Builds the revenue report of one competency from ledger history, stores the
display snapshot and prints the rows as JSON.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import List, Optional

from src.core.config import Config
from src.core.database import close_connection, initialize_database
from src.repositories.key_value_store import SQLiteKeyValueStore
from src.services.period_report_service import PeriodReport, PeriodReportService
from src.utils.datetime_helpers import parse_competency
from src.utils.logging_config import get_logger

logger = get_logger(__name__)


def generate_report(
    competency: str, company_id: Optional[str] = None, db_path: Optional[str] = None
) -> PeriodReport:
    """Run the period report for ``competency`` (mm/yyyy) and return it."""
    month, year = parse_competency(competency)
    conn = initialize_database(db_path)
    try:
        report = PeriodReportService(SQLiteKeyValueStore(conn)).report(month, year, company_id)
    finally:
        close_connection(conn)

    logger.info(
        "period_report_job_completed",
        competency=report.competency,
        company_id=company_id,
        rows=len(report.rows),
        recebido=str(report.total.recebido),
    )
    return report


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate the monthly revenue report.")
    parser.add_argument("competency", help="Competency as mm/yyyy (e.g. 03/2025).")
    parser.add_argument(
        "--company-id",
        default=None,
        help="Optional company ID to limit the report to its projects.",
    )
    parser.add_argument(
        "--db-path",
        default=None,
        help=f"SQLite file to read (defaults to {Config.DB_PATH}).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    try:
        Config.validate()
    except ValueError as exc:
        logger.error("configuration_validation_failed", error=str(exc))
        sys.exit(1)

    try:
        report = generate_report(args.competency, args.company_id, args.db_path)
    except Exception as exc:  # pragma: no cover
        logger.error("period_report_job_failed", error=str(exc))
        sys.exit(1)
    print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
